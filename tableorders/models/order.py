"""Order model - whole orders with their own status chain."""
import enum
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from tableorders.database import Base, IdType
from tableorders.models.table_session import PaymentStatus


class OrderStatus(str, enum.Enum):
    """Order status. Unlike part orders, an order can be cancelled while pending."""
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    PREPARING = 'preparing'
    READY = 'ready'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'


class Order(Base):
    """Order placed outside a table session."""

    __tablename__ = 'customer_order'

    id = Column(IdType, primary_key=True, autoincrement=True)
    customer_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=False, index=True)
    table_number = Column(Integer, nullable=True)
    special_instructions = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    customer = relationship('AppUser')
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan', order_by='OrderItem.id')

    def __repr__(self):
        return f"<Order(id={self.id}, total={self.total_amount}, status='{self.status}')>"


class OrderItem(Base):
    """Order Item with captured price and tax rate."""

    __tablename__ = 'customer_order_item'

    id = Column(IdType, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey('customer_order.id', ondelete='CASCADE'), nullable=False, index=True)
    menu_item_id = Column(BigInteger, ForeignKey('menu_item.id'), nullable=False)
    name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)

    # Relationships
    order = relationship('Order', back_populates='items')
    menu_item = relationship('MenuItem')

    def __repr__(self):
        return f"<OrderItem(id={self.id}, menu_item_id={self.menu_item_id}, qty={self.quantity})>"
