"""
Table Session service - the aggregate for one table's visit.

Every write runs in one transaction and ends with a full recomputation of
the session amounts from its part-order items and session discount.
Nothing is ever added to or subtracted from a stored total, so a retried
or concurrent write converges on the same value.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from tableorders.database import transaction
from tableorders.exceptions import InvalidInputError, InvalidStateError, NotFoundError, TransactionFailure
from tableorders.models import TableSession, TableSessionStatus, PaymentStatus, PartOrder, PartOrderItem
from tableorders.services.pricing_service import (
    Discount, LineInput, Totals, compute_totals, line_input_from_item
)
from tableorders.services.status_machine import TABLE_SESSION_MACHINE, PAYMENT_STATUS_MACHINE

logger = logging.getLogger(__name__)

# Payment statuses under which a closed session still accepts discount corrections
_CORRECTABLE_PAYMENT_STATUSES = (PaymentStatus.PENDING.value, PaymentStatus.FAILED.value)


# =====================================================
# READS
# =====================================================

def _session_query(session: Session):
    return session.query(TableSession).options(
        selectinload(TableSession.part_orders).selectinload(PartOrder.items),
        selectinload(TableSession.payments),
    )


def get_table_session(session: Session, table_session_id: int, for_update: bool = False) -> TableSession:
    """Session with nested part orders and items, or NotFoundError."""
    query = _session_query(session).filter(TableSession.id == table_session_id)
    if for_update:
        query = query.with_for_update()
    table_session = query.first()
    if not table_session:
        raise NotFoundError('table_session', table_session_id)
    return table_session


def get_active_for_table(session: Session, table_number: int) -> Optional[TableSession]:
    return _session_query(session).filter(
        TableSession.table_number == table_number,
        TableSession.status == TableSessionStatus.ACTIVE.value
    ).order_by(TableSession.id.desc()).first()


def list_table_sessions(session: Session, status: Optional[str] = None, table_number: Optional[int] = None,
                        server_id: Optional[int] = None) -> List[TableSession]:
    query = _session_query(session)
    if status:
        query = query.filter(TableSession.status == TABLE_SESSION_MACHINE.parse(status).value)
    if table_number is not None:
        query = query.filter(TableSession.table_number == table_number)
    if server_id is not None:
        query = query.filter(TableSession.server_id == server_id)
    return query.order_by(TableSession.id.desc()).all()


# =====================================================
# TOTALS
# =====================================================

def session_discount(table_session: TableSession) -> Optional[Discount]:
    return Discount.from_fields(table_session.discount_type, table_session.discount_value)


def session_line_inputs(table_session: TableSession) -> List[LineInput]:
    return [
        line_input_from_item(item)
        for part_order in table_session.part_orders
        for item in part_order.items
    ]


def compute_session_totals(table_session: TableSession) -> Totals:
    """Totals over every item of every part order, with the session discount."""
    return compute_totals(session_line_inputs(table_session), session_discount(table_session))


def recalculate_session_totals(session: Session, table_session: TableSession) -> Totals:
    """
    Recompute and store the session amounts from source.

    Must be called inside the transaction of the write that changed the
    items or the discount. Expires the part orders first so rows added
    or removed in this transaction are seen.
    """
    session.flush()
    session.expire(table_session, ['part_orders'])
    totals = compute_session_totals(table_session)
    table_session.subtotal_amount = totals.subtotal
    table_session.discount_amount = totals.discount_amount
    table_session.tax_amount = totals.tax
    table_session.total_amount = totals.total
    table_session.updated_at = datetime.now()
    session.flush()
    return totals


def refresh_session_totals(session: Session, table_session_id: int) -> Totals:
    """Standalone recompute (repair path); idempotent."""
    with transaction(session, 'refresh_session_totals'):
        table_session = get_table_session(session, table_session_id, for_update=True)
        totals = recalculate_session_totals(session, table_session)
    return totals


# =====================================================
# GUARDS
# =====================================================

def ensure_open(table_session: TableSession, action: str):
    """Items can only change while the session is active or ready to close."""
    if not table_session.is_open:
        logger.warning(f"Rejected {action} on table session {table_session.id} ({table_session.status})")
        raise InvalidStateError(
            f"Cannot {action}: table session {table_session.id} is {table_session.status}",
            entity='table_session', entity_id=table_session.id, current=table_session.status
        )


def ensure_discount_editable(table_session: TableSession, allow_after_close: bool):
    """Open sessions always; closed ones only before payment and when configured."""
    if table_session.is_open:
        return
    if allow_after_close and table_session.payment_status in _CORRECTABLE_PAYMENT_STATUSES:
        return
    raise InvalidStateError(
        f"Discounts of table session {table_session.id} can no longer be changed "
        f"(status {table_session.status}, payment {table_session.payment_status})",
        entity='table_session', entity_id=table_session.id, current=table_session.status,
        payload={'payment_status': table_session.payment_status}
    )


# =====================================================
# WRITES
# =====================================================

def open_session(session: Session, table_number: int, server_id: int,
                 customer_name: Optional[str] = None) -> Tuple[TableSession, bool]:
    """
    Open a table. Returns (session, created).

    If the table already has an active session it is returned unchanged,
    so opening twice yields the same session id.
    """
    if isinstance(table_number, bool) or not isinstance(table_number, int) or table_number <= 0:
        raise InvalidInputError('table_number', 'Table number must be a positive integer')

    existing = get_active_for_table(session, table_number)
    if existing:
        return existing, False

    try:
        table_session = TableSession(
            table_number=table_number,
            server_id=server_id,
            customer_name=(customer_name or '').strip() or None,
            status=TableSessionStatus.ACTIVE.value,
            payment_status=PaymentStatus.PENDING.value,
            subtotal_amount=Decimal('0'),
            discount_amount=Decimal('0'),
            tax_amount=Decimal('0'),
            total_amount=Decimal('0'),
            opened_at=datetime.now(),
        )
        session.add(table_session)
        session.commit()
    except IntegrityError as e:
        # Another request opened this table first; the unique index kept it single
        session.rollback()
        existing = get_active_for_table(session, table_number)
        if existing:
            return existing, False
        raise TransactionFailure('open_session', str(e.orig)) from e

    logger.info(f"Table session {table_session.id} opened for table {table_number} by user {server_id}")
    return get_table_session(session, table_session.id), True


def edit_line_item(session: Session, table_session_id: int, item_id: int, changes: Dict[str, Any],
                   allow_discount_after_close: bool = True) -> TableSession:
    """
    Change a line's quantity and/or discount, then recompute the session.

    Quantity changes need an open session; a discount-only correction
    follows the same rule as session discounts.
    """
    with transaction(session, 'edit_line_item'):
        table_session = get_table_session(session, table_session_id, for_update=True)
        item = session.query(PartOrderItem).join(PartOrder).filter(
            PartOrderItem.id == item_id,
            PartOrder.table_session_id == table_session.id
        ).first()
        if not item:
            raise NotFoundError('part_order_item', item_id)

        if 'quantity' in changes:
            ensure_open(table_session, 'change item quantity')
            quantity = changes['quantity']
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise InvalidInputError('quantity', 'Quantity must be a positive integer')
            item.quantity = quantity

        if 'discount_type' in changes or 'discount_value' in changes:
            ensure_discount_editable(table_session, allow_discount_after_close)
            discount = Discount.from_fields(
                changes.get('discount_type', item.discount_type),
                changes.get('discount_value', item.discount_value)
            )
            item.discount_type = discount.kind if discount else None
            item.discount_value = discount.value if discount else Decimal('0')

        totals = recalculate_session_totals(session, table_session)

    logger.info(f"Line {item_id} of table session {table_session_id} edited; total now {totals.total}")
    return get_table_session(session, table_session_id)


def set_session_discount(session: Session, table_session_id: int, discount_type: Optional[str],
                         discount_value=None, allow_after_close: bool = True) -> TableSession:
    """Set (or clear with discount_type=None) the session discount and recompute."""
    discount = Discount.from_fields(discount_type, discount_value)

    with transaction(session, 'set_session_discount'):
        table_session = get_table_session(session, table_session_id, for_update=True)
        ensure_discount_editable(table_session, allow_after_close)
        table_session.discount_type = discount.kind if discount else None
        table_session.discount_value = discount.value if discount else Decimal('0')
        totals = recalculate_session_totals(session, table_session)

    logger.info(f"Session discount of table session {table_session_id} set to "
                f"{discount.kind if discount else None} {discount.value if discount else ''}; total now {totals.total}")
    return get_table_session(session, table_session_id)


def _move_status(table_session: TableSession, target: TableSessionStatus):
    current = table_session.status
    if not TABLE_SESSION_MACHINE.can_transition(current, target):
        raise InvalidStateError(
            f"Table session {table_session.id} cannot go from {current} to {target.value}",
            entity='table_session', entity_id=table_session.id, current=current,
            payload={'target': target.value}
        )
    table_session.status = target.value


def mark_ready_to_close(session: Session, table_session_id: int) -> TableSession:
    with transaction(session, 'mark_ready_to_close'):
        table_session = get_table_session(session, table_session_id, for_update=True)
        _move_status(table_session, TableSessionStatus.READY_TO_CLOSE)
    logger.info(f"Table session {table_session_id} ready to close")
    return get_table_session(session, table_session_id)


def close_session(session: Session, table_session_id: int) -> TableSession:
    """Close an active or ready_to_close session; the total is final from here on."""
    with transaction(session, 'close_session'):
        table_session = get_table_session(session, table_session_id, for_update=True)
        _move_status(table_session, TableSessionStatus.CLOSED)
        table_session.closed_at = datetime.now()
        totals = recalculate_session_totals(session, table_session)
    logger.info(f"Table session {table_session_id} closed with total {totals.total}")
    return get_table_session(session, table_session_id)


def update_status(session: Session, table_session_id: int, status: str) -> TableSession:
    """Dispatch a requested session status to the matching operation."""
    target = TABLE_SESSION_MACHINE.parse(status)
    if target == TableSessionStatus.CLOSED:
        return close_session(session, table_session_id)
    if target == TableSessionStatus.READY_TO_CLOSE:
        return mark_ready_to_close(session, table_session_id)
    table_session = get_table_session(session, table_session_id)
    raise InvalidStateError(
        f"Table session {table_session_id} cannot go back to {target.value}",
        entity='table_session', entity_id=table_session_id, current=table_session.status,
        payload={'target': target.value}
    )


def set_payment_status(session: Session, table_session_id: int, payment_status: str,
                       method: Optional[str] = None, reference: Optional[str] = None) -> TableSession:
    """Independent of open/closed status; follows the payment status machine."""
    target = PAYMENT_STATUS_MACHINE.parse(payment_status, 'payment_status')
    with transaction(session, 'set_payment_status'):
        table_session = get_table_session(session, table_session_id, for_update=True)
        current = table_session.payment_status
        if not PAYMENT_STATUS_MACHINE.can_transition(current, target):
            raise InvalidStateError(
                f"Payment of table session {table_session_id} cannot go from {current} to {target.value}",
                entity='table_session', entity_id=table_session_id, current=current,
                payload={'target': target.value}
            )
        table_session.payment_status = target.value
        if method:
            table_session.payment_method = method
        if reference:
            table_session.payment_reference = reference
        table_session.updated_at = datetime.now()
    logger.info(f"Table session {table_session_id} payment {current} -> {target.value}")
    return get_table_session(session, table_session_id)


# =====================================================
# SERIALIZATION / RECEIPT
# =====================================================

def _iso(value):
    return value.isoformat() if value else None


def serialize_part_order(part_order: PartOrder, totals: Optional[Totals] = None) -> Dict[str, Any]:
    totals = totals or compute_totals([line_input_from_item(i) for i in part_order.items])
    line_totals = {line.ref: line for line in totals.lines}
    items = []
    for item in part_order.items:
        line = line_totals.get(item.id)
        items.append({
            'id': item.id,
            'menu_item_id': item.menu_item_id,
            'name': item.name,
            'quantity': item.quantity,
            'unit_price': str(item.unit_price),
            'tax_rate': str(item.tax_rate),
            'discount_type': item.discount_type,
            'discount_value': str(item.discount_value or 0),
            'special_instructions': item.special_instructions,
            'subtotal': str(line.subtotal) if line else None,
            'discount_amount': str(line.discount_amount) if line else None,
            'tax': str(line.tax) if line else None,
        })
    return {
        'id': part_order.id,
        'table_session_id': part_order.table_session_id,
        'server_id': part_order.server_id,
        'table_number': part_order.table_number,
        'status': part_order.status,
        'special_instructions': part_order.special_instructions,
        'printed_at': _iso(part_order.printed_at),
        'created_at': _iso(part_order.created_at),
        'items': items,
        'totals': totals.to_dict(include_lines=False),
    }


def serialize_table_session(table_session: TableSession, include_part_orders: bool = True) -> Dict[str, Any]:
    rv = {
        'id': table_session.id,
        'table_number': table_session.table_number,
        'server_id': table_session.server_id,
        'customer_name': table_session.customer_name,
        'status': table_session.status,
        'payment_status': table_session.payment_status,
        'payment_method': table_session.payment_method,
        'payment_reference': table_session.payment_reference,
        'discount_type': table_session.discount_type,
        'discount_value': str(table_session.discount_value or 0),
        'subtotal_amount': str(table_session.subtotal_amount),
        'discount_amount': str(table_session.discount_amount),
        'tax_amount': str(table_session.tax_amount),
        'total_amount': str(table_session.total_amount),
        'opened_at': _iso(table_session.opened_at),
        'closed_at': _iso(table_session.closed_at),
    }
    if include_part_orders:
        rv['part_orders'] = [serialize_part_order(po) for po in table_session.part_orders]
    return rv


def build_receipt(table_session: TableSession) -> Dict[str, Any]:
    """
    Itemised receipt data for the printing boundary.

    Lines of all part orders are listed in order; amounts come from the
    same computation that produced the stored total.
    """
    totals = compute_session_totals(table_session)
    line_totals = {line.ref: line for line in totals.lines}
    lines = []
    for part_order in table_session.part_orders:
        for item in part_order.items:
            line = line_totals[item.id]
            lines.append({
                'part_order_id': part_order.id,
                'name': item.name,
                'quantity': item.quantity,
                'unit_price': line.unit_price,
                'tax_rate': line.tax_rate,
                'subtotal': line.subtotal,
                'discount_amount': line.discount_amount,
                'discount_label': _discount_label(item.discount_type, item.discount_value),
                'tax': line.tax,
            })
    return {
        'table_session_id': table_session.id,
        'table_number': table_session.table_number,
        'customer_name': table_session.customer_name,
        'status': table_session.status,
        'payment_status': table_session.payment_status,
        'payment_method': table_session.payment_method,
        'opened_at': table_session.opened_at,
        'closed_at': table_session.closed_at,
        'lines': lines,
        'session_discount_label': _discount_label(table_session.discount_type, table_session.discount_value),
        'totals': totals,
    }


def _discount_label(discount_type, discount_value) -> Optional[str]:
    discount = Discount.from_fields(discount_type, discount_value)
    if not discount or discount.value == 0:
        return None
    if discount.kind == 'PERCENT':
        return f"{discount.value.normalize():f}%"
    return f"-{discount.value:.2f}"


def receipt_to_dict(receipt: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-safe copy of build_receipt()."""
    rv = dict(receipt)
    rv['opened_at'] = _iso(receipt['opened_at'])
    rv['closed_at'] = _iso(receipt['closed_at'])
    rv['lines'] = [
        {k: (str(v) if isinstance(v, Decimal) else v) for k, v in line.items()}
        for line in receipt['lines']
    ]
    rv['totals'] = receipt['totals'].to_dict(include_lines=False)
    return rv
