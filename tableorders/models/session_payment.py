"""Session Payment model - one payment attempt against a table session."""
import enum
from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from tableorders.database import Base, IdType


class PaymentMethod(str, enum.Enum):
    """How the table paid."""
    CASH = 'cash'
    CARD = 'card'
    ONLINE = 'online'


class SessionPayment(Base):
    """
    Session Payment.

    Cash is settled in person; card and online payments go through the
    payment provider and keep its reference or failure reason.
    """

    __tablename__ = 'session_payment'

    id = Column(IdType, primary_key=True, autoincrement=True)
    table_session_id = Column(BigInteger, ForeignKey('table_session.id', ondelete='CASCADE'), nullable=False, index=True)
    method = Column(String(20), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(20), nullable=False)  # 'succeeded' or 'failed'
    provider_reference = Column(String(120), nullable=True)
    failure_reason = Column(String(255), nullable=True)
    created_by = Column(BigInteger, ForeignKey('app_user.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    table_session = relationship('TableSession', back_populates='payments')

    def __repr__(self):
        return f"<SessionPayment(id={self.id}, session_id={self.table_session_id}, method={self.method}, status={self.status})>"
