"""MenuItem model."""
from sqlalchemy import Column, BigInteger, String, Text, Boolean, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from tableorders.database import Base, IdType


class MenuItem(Base):
    """
    Orderable menu item.

    Price and tax rate are copied into each line item when it is created,
    so editing an item here never changes historical orders.
    """

    __tablename__ = 'menu_item'

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0, server_default='0')
    category = Column(String(80), nullable=False, default='General')
    food_category = Column(String(80), nullable=True)
    company_id = Column(BigInteger, ForeignKey('company.id'), nullable=True)
    available = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    company = relationship('Company', back_populates='menu_items')

    @property
    def is_active(self):
        return self.deleted_at is None

    @property
    def is_orderable(self):
        return self.is_active and bool(self.available)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'price': str(self.price),
            'tax_rate': str(self.tax_rate),
            'category': self.category,
            'food_category': self.food_category,
            'company_id': self.company_id,
            'company': self.company.name if self.company else None,
            'available': self.available,
        }

    def __repr__(self):
        return f"<MenuItem(id={self.id}, name='{self.name}', price={self.price})>"
