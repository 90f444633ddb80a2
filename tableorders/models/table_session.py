"""Table Session model - one table's visit, from first part order to payment."""
import enum
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from tableorders.database import Base, IdType


class TableSessionStatus(str, enum.Enum):
    """Table session status."""
    ACTIVE = 'active'
    READY_TO_CLOSE = 'ready_to_close'
    CLOSED = 'closed'


class PaymentStatus(str, enum.Enum):
    """Payment status of a table session or order."""
    PENDING = 'pending'
    PAID = 'paid'
    FAILED = 'failed'
    REFUNDED = 'refunded'


OPEN_SESSION_STATUSES = (TableSessionStatus.ACTIVE.value, TableSessionStatus.READY_TO_CLOSE.value)


class TableSession(Base):
    """
    Table Session aggregate.

    The stored amounts are always the result of a full recomputation over
    every part-order item plus the session discount, never an increment.
    At most one session per table may be 'active' (partial unique index).
    """

    __tablename__ = 'table_session'
    __table_args__ = (
        Index(
            'uq_table_session_active_table', 'table_number',
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    table_number = Column(Integer, nullable=False, index=True)
    server_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=False)
    customer_name = Column(String(200), nullable=True)

    status = Column(String(20), nullable=False, default=TableSessionStatus.ACTIVE.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(20), nullable=True)
    payment_reference = Column(String(120), nullable=True)

    # Session-level discount, applied after item discounts
    discount_type = Column(String(10))  # 'PERCENT' or 'AMOUNT' or NULL
    discount_value = Column(Numeric(10, 2), default=0)

    subtotal_amount = Column(Numeric(12, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)

    opened_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    closed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    server = relationship('AppUser')
    part_orders = relationship(
        'PartOrder', back_populates='table_session',
        cascade='all, delete-orphan', order_by='PartOrder.id'
    )
    payments = relationship(
        'SessionPayment', back_populates='table_session',
        cascade='all, delete-orphan', order_by='SessionPayment.id'
    )

    @property
    def is_open(self):
        return self.status in OPEN_SESSION_STATUSES

    def __repr__(self):
        return f"<TableSession(id={self.id}, table={self.table_number}, status='{self.status}', total={self.total_amount})>"
