"""Part Order model - one kitchen-bound round of a table's order."""
import enum
from sqlalchemy import Column, BigInteger, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from tableorders.database import Base, IdType


class PartOrderStatus(str, enum.Enum):
    """Part order status, in kitchen order."""
    DRAFT = 'draft'
    SENT_TO_KITCHEN = 'sent_to_kitchen'
    PREPARING = 'preparing'
    READY = 'ready'
    SERVED = 'served'


class PartOrder(Base):
    """Part Order (a round of items sent to the kitchen)."""

    __tablename__ = 'part_order'

    id = Column(IdType, primary_key=True, autoincrement=True)
    table_session_id = Column(BigInteger, ForeignKey('table_session.id', ondelete='CASCADE'), nullable=False, index=True)
    server_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=False)
    # Copied from the session for printing
    table_number = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=PartOrderStatus.DRAFT.value, index=True)
    special_instructions = Column(Text, nullable=True)
    printed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    table_session = relationship('TableSession', back_populates='part_orders')
    server = relationship('AppUser')
    items = relationship(
        'PartOrderItem', back_populates='part_order',
        cascade='all, delete-orphan', order_by='PartOrderItem.position'
    )

    def __repr__(self):
        return f"<PartOrder(id={self.id}, session={self.table_session_id}, status='{self.status}')>"
