"""
Order service - whole orders with their own pending/confirmed/.../delivered chain.

Orders do not belong to a table session and follow ORDER_MACHINE, which
is kept separate from the part order machine.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session, selectinload

from tableorders.database import transaction
from tableorders.exceptions import InvalidInputError, InvalidStateError, NotFoundError
from tableorders.models import Order, OrderItem, OrderStatus, PaymentStatus, UserRole
from tableorders.services.access_control import ORDER_STATUS_PERMISSIONS, require_status_permission
from tableorders.services.catalog_service import get_orderable_items
from tableorders.services.pricing_service import LineInput, compute_totals, round_money
from tableorders.services.status_machine import ORDER_MACHINE, PAYMENT_STATUS_MACHINE

logger = logging.getLogger(__name__)


def _order_query(session: Session):
    return session.query(Order).options(selectinload(Order.items))


def get_order(session: Session, order_id: int) -> Order:
    order = _order_query(session).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError('order', order_id)
    return order


def list_orders(session: Session, actor_id: int, actor_role, status: Optional[str] = None,
                start_date: Optional[datetime] = None, end_date: Optional[datetime] = None) -> List[Order]:
    """Servers only see the orders they placed; kitchen and admin see all."""
    query = _order_query(session)
    if UserRole(actor_role) == UserRole.SERVER:
        query = query.filter(Order.customer_id == actor_id)
    if status:
        query = query.filter(Order.status == ORDER_MACHINE.parse(status).value)
    if start_date:
        query = query.filter(Order.created_at >= start_date)
    if end_date:
        query = query.filter(Order.created_at <= end_date)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def create_order(session: Session, customer_id: int, items, table_number: Optional[int] = None,
                 special_instructions: Optional[str] = None) -> Order:
    """
    Create a pending order.

    Prices and tax rates come from the catalog, never from the request,
    and are copied into the order items.
    """
    if not items or not isinstance(items, list):
        raise InvalidInputError('items', 'At least one item is required')
    if table_number is not None and (isinstance(table_number, bool) or not isinstance(table_number, int)
                                     or table_number <= 0):
        raise InvalidInputError('table_number', 'Table number must be a positive integer')

    with transaction(session, 'create_order'):
        requested = []
        for index, raw in enumerate(items):
            menu_item_id = raw.get('menu_item_id') if isinstance(raw, dict) else None
            if isinstance(menu_item_id, bool) or not isinstance(menu_item_id, int):
                raise InvalidInputError(f'items[{index}].menu_item_id', 'menu_item_id is required')
            requested.append((menu_item_id, raw.get('quantity', 1)))

        menu = get_orderable_items(session, [menu_item_id for menu_item_id, _ in requested])
        lines = [
            LineInput(quantity=quantity, unit_price=menu[menu_item_id].price,
                      tax_rate=menu[menu_item_id].tax_rate)
            for menu_item_id, quantity in requested
        ]
        totals = compute_totals(lines)

        order = Order(
            customer_id=customer_id,
            table_number=table_number,
            special_instructions=(special_instructions or '').strip() or None,
            status=ORDER_MACHINE.initial.value,
            payment_status=PaymentStatus.PENDING.value,
            subtotal=totals.subtotal,
            tax_amount=totals.tax,
            total_amount=totals.total,
        )
        for (menu_item_id, _), line in zip(requested, lines):
            order.items.append(OrderItem(
                menu_item_id=menu_item_id,
                name=menu[menu_item_id].name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                tax_rate=line.tax_rate,
            ))
        session.add(order)
        session.flush()
        order_id = order.id

    logger.info(f"Order {order_id} created by user {customer_id}: total {totals.total}")
    return get_order(session, order_id)


def update_order_status(session: Session, order_id: int, target_status, actor_role,
                        strict: bool = True) -> Order:
    """Same check order as part orders: existence, role, then the order machine."""
    target = ORDER_MACHINE.parse(target_status)

    with transaction(session, 'update_order_status'):
        order = get_order(session, order_id)
        require_status_permission(actor_role, target, ORDER_STATUS_PERMISSIONS)
        current = order.status
        if strict:
            ORDER_MACHINE.check_transition(current, target, order.id)
        order.status = target.value
        order.updated_at = datetime.now()

    logger.info(f"Order {order_id}: {current} -> {target.value}")
    return get_order(session, order_id)


def update_order_payment_status(session: Session, order_id: int, payment_status) -> Order:
    target = PAYMENT_STATUS_MACHINE.parse(payment_status, 'payment_status')

    with transaction(session, 'update_order_payment_status'):
        order = get_order(session, order_id)
        current = order.payment_status
        if not PAYMENT_STATUS_MACHINE.can_transition(current, target):
            raise InvalidStateError(
                f"Payment of order {order_id} cannot go from {current} to {target.value}",
                entity='order', entity_id=order_id, current=current, payload={'target': target.value}
            )
        order.payment_status = target.value
        order.updated_at = datetime.now()

    logger.info(f"Order {order_id} payment {current} -> {target.value}")
    return get_order(session, order_id)


def get_order_stats(session: Session) -> Dict[str, Any]:
    """Counts and revenue over all orders."""
    row = session.query(
        func.count(Order.id),
        func.coalesce(func.sum(Order.total_amount), 0),
        func.count(case((Order.status == OrderStatus.DELIVERED.value, 1))),
        func.count(case((Order.payment_status == PaymentStatus.PAID.value, 1))),
    ).one()

    total_orders, total_revenue, completed, paid = row
    total_revenue = Decimal(str(total_revenue))
    average = round_money(total_revenue / total_orders) if total_orders else Decimal('0.00')
    return {
        'total_orders': total_orders,
        'total_revenue': round_money(total_revenue),
        'average_order_value': average,
        'completed_orders': completed,
        'paid_orders': paid,
    }


def serialize_order(order: Order) -> Dict[str, Any]:
    return {
        'id': order.id,
        'customer_id': order.customer_id,
        'table_number': order.table_number,
        'special_instructions': order.special_instructions,
        'status': order.status,
        'payment_status': order.payment_status,
        'subtotal': str(order.subtotal),
        'tax_amount': str(order.tax_amount),
        'total_amount': str(order.total_amount),
        'created_at': order.created_at.isoformat() if order.created_at else None,
        'items': [
            {
                'id': item.id,
                'menu_item_id': item.menu_item_id,
                'name': item.name,
                'quantity': item.quantity,
                'unit_price': str(item.unit_price),
                'tax_rate': str(item.tax_rate),
            }
            for item in order.items
        ],
    }
