"""Part Order Item model - a single line of a part order."""
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, Text, ForeignKey
from sqlalchemy.orm import relationship
from tableorders.database import Base, IdType


class PartOrderItem(Base):
    """
    Part Order Item.

    Name, unit price and tax rate are captured from the menu at creation.
    A line carries at most one discount, either a percentage or an amount.
    """

    __tablename__ = 'part_order_item'

    id = Column(IdType, primary_key=True, autoincrement=True)
    part_order_id = Column(BigInteger, ForeignKey('part_order.id', ondelete='CASCADE'), nullable=False, index=True)
    menu_item_id = Column(BigInteger, ForeignKey('menu_item.id'), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)

    # Item-level discount (applied to this line only)
    discount_type = Column(String(10))  # 'PERCENT' or 'AMOUNT' or NULL
    discount_value = Column(Numeric(10, 2), default=0)

    special_instructions = Column(Text, nullable=True)

    # Relationships
    part_order = relationship('PartOrder', back_populates='items')
    menu_item = relationship('MenuItem')

    def __repr__(self):
        return f"<PartOrderItem(id={self.id}, menu_item_id={self.menu_item_id}, qty={self.quantity})>"
