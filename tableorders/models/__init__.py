"""Models package - exports all SQLAlchemy models."""
from tableorders.models.app_user import AppUser, UserRole
from tableorders.models.company import Company
from tableorders.models.menu_item import MenuItem
from tableorders.models.table_session import (
    TableSession, TableSessionStatus, PaymentStatus, OPEN_SESSION_STATUSES
)
from tableorders.models.part_order import PartOrder, PartOrderStatus
from tableorders.models.part_order_item import PartOrderItem
from tableorders.models.order import Order, OrderItem, OrderStatus
from tableorders.models.session_payment import SessionPayment, PaymentMethod

__all__ = [
    'AppUser', 'UserRole',
    'Company', 'MenuItem',
    'TableSession', 'TableSessionStatus', 'PaymentStatus', 'OPEN_SESSION_STATUSES',
    'PartOrder', 'PartOrderStatus', 'PartOrderItem',
    'Order', 'OrderItem', 'OrderStatus',
    'SessionPayment', 'PaymentMethod',
]
