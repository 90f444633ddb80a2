"""Company model - brands/suppliers whose items appear on the menu."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from tableorders.database import Base, IdType


class Company(Base):
    """Company model. Soft-deleted via deleted_at."""

    __tablename__ = 'company'

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    category = Column(String(80), nullable=True)
    contact_email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(String(255), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    menu_items = relationship('MenuItem', back_populates='company')

    @property
    def is_active(self):
        return self.deleted_at is None

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'contact_email': self.contact_email,
            'phone': self.phone,
            'address': self.address,
        }

    def __repr__(self):
        return f"<Company(id={self.id}, name='{self.name}')>"
