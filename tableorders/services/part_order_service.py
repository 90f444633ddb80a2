"""Part Order service - rounds of items attached to a table session and sent to the kitchen."""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from tableorders.database import transaction
from tableorders.exceptions import InvalidInputError, InvalidStateError, NotFoundError
from tableorders.models import PartOrder, PartOrderItem, PartOrderStatus
from tableorders.services.access_control import PART_ORDER_STATUS_PERMISSIONS, require_status_permission
from tableorders.services.catalog_service import get_orderable_items
from tableorders.services.pricing_service import Discount, Totals, compute_totals, line_input_from_item
from tableorders.services.status_machine import PART_ORDER_MACHINE
from tableorders.services.table_session_service import (
    ensure_open, get_table_session, recalculate_session_totals
)

logger = logging.getLogger(__name__)

KITCHEN_QUEUE_STATUSES = (PartOrderStatus.SENT_TO_KITCHEN.value, PartOrderStatus.PREPARING.value)


def _clean_lines(items) -> List[Dict[str, Any]]:
    """Validate requested lines before touching the database."""
    if not items or not isinstance(items, list):
        raise InvalidInputError('items', 'At least one item is required')

    lines = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise InvalidInputError(f'items[{index}]', 'Each item must be an object')
        menu_item_id = raw.get('menu_item_id')
        if isinstance(menu_item_id, bool) or not isinstance(menu_item_id, int):
            raise InvalidInputError(f'items[{index}].menu_item_id', 'menu_item_id is required')
        quantity = raw.get('quantity', 1)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidInputError(f'items[{index}].quantity', 'Quantity must be a positive integer')
        lines.append({
            'menu_item_id': menu_item_id,
            'quantity': quantity,
            'discount': Discount.from_fields(raw.get('discount_type'), raw.get('discount_value')),
            'special_instructions': (raw.get('special_instructions') or '').strip() or None,
        })
    return lines


def _build_items(session: Session, lines: List[Dict[str, Any]]) -> List[PartOrderItem]:
    """Line rows with name, price and tax rate captured from the menu now."""
    menu = get_orderable_items(session, [line['menu_item_id'] for line in lines])
    rows = []
    for position, line in enumerate(lines):
        menu_item = menu[line['menu_item_id']]
        discount = line['discount']
        rows.append(PartOrderItem(
            menu_item_id=menu_item.id,
            position=position,
            name=menu_item.name,
            quantity=line['quantity'],
            unit_price=menu_item.price,
            tax_rate=menu_item.tax_rate,
            discount_type=discount.kind if discount else None,
            discount_value=discount.value if discount else Decimal('0'),
            special_instructions=line['special_instructions'],
        ))
    return rows


def _part_order_query(session: Session):
    return session.query(PartOrder).options(selectinload(PartOrder.items))


def get_part_order(session: Session, part_order_id: int) -> PartOrder:
    part_order = _part_order_query(session).filter(PartOrder.id == part_order_id).first()
    if not part_order:
        raise NotFoundError('part_order', part_order_id)
    return part_order


def list_part_orders(session: Session, table_session_id: Optional[int] = None, status: Optional[str] = None,
                     server_id: Optional[int] = None) -> List[PartOrder]:
    query = _part_order_query(session)
    if table_session_id is not None:
        query = query.filter(PartOrder.table_session_id == table_session_id)
    if status:
        query = query.filter(PartOrder.status == PART_ORDER_MACHINE.parse(status).value)
    if server_id is not None:
        query = query.filter(PartOrder.server_id == server_id)
    return query.order_by(PartOrder.created_at.desc(), PartOrder.id.desc()).all()


def kitchen_queue(session: Session) -> List[PartOrder]:
    """Part orders the kitchen still has to work on, oldest first."""
    return _part_order_query(session).filter(
        PartOrder.status.in_(KITCHEN_QUEUE_STATUSES)
    ).order_by(PartOrder.created_at.asc(), PartOrder.id.asc()).all()


def part_order_totals(part_order: PartOrder) -> Totals:
    """This part order's contribution before any session discount."""
    return compute_totals([line_input_from_item(item) for item in part_order.items])


def create_part_order(session: Session, table_session_id: int, server_id: int, items,
                      special_instructions: Optional[str] = None) -> PartOrder:
    """
    Attach a new draft part order to an open table session.

    The part order, its items and the session recompute are one
    transaction; any failure leaves neither rows nor a changed total.
    """
    lines = _clean_lines(items)

    with transaction(session, 'create_part_order'):
        table_session = get_table_session(session, table_session_id, for_update=True)
        ensure_open(table_session, 'add a part order')

        part_order = PartOrder(
            table_session_id=table_session.id,
            server_id=server_id,
            table_number=table_session.table_number,
            status=PART_ORDER_MACHINE.initial.value,
            special_instructions=(special_instructions or '').strip() or None,
            created_at=datetime.now(),
        )
        part_order.items = _build_items(session, lines)
        session.add(part_order)
        session.flush()

        totals = recalculate_session_totals(session, table_session)
        part_order_id = part_order.id

    logger.info(
        f"Part order {part_order_id} ({len(lines)} lines) attached to table session "
        f"{table_session_id}; session total now {totals.total}"
    )
    return get_part_order(session, part_order_id)


def _ensure_editable(part_order: PartOrder, action: str):
    """Only drafts can be rewritten or removed; the kitchen may already have the others."""
    if part_order.status != PartOrderStatus.DRAFT.value:
        raise InvalidStateError(
            f"Cannot {action}: part order {part_order.id} is {part_order.status}",
            entity='part_order', entity_id=part_order.id, current=part_order.status
        )


def update_part_order(session: Session, part_order_id: int, data: Dict[str, Any]) -> PartOrder:
    """Replace the items and/or instructions of a draft part order."""
    lines = _clean_lines(data['items']) if 'items' in data else None

    with transaction(session, 'update_part_order'):
        part_order = get_part_order(session, part_order_id)
        table_session = get_table_session(session, part_order.table_session_id, for_update=True)
        ensure_open(table_session, 'change a part order')
        _ensure_editable(part_order, 'change part order')

        if 'special_instructions' in data:
            part_order.special_instructions = (data['special_instructions'] or '').strip() or None
        if lines is not None:
            part_order.items.clear()
            session.flush()
            part_order.items.extend(_build_items(session, lines))
        part_order.updated_at = datetime.now()

        totals = recalculate_session_totals(session, table_session)

    logger.info(f"Part order {part_order_id} updated; session {table_session.id} total now {totals.total}")
    return get_part_order(session, part_order_id)


def delete_part_order(session: Session, part_order_id: int) -> None:
    with transaction(session, 'delete_part_order'):
        part_order = get_part_order(session, part_order_id)
        table_session = get_table_session(session, part_order.table_session_id, for_update=True)
        ensure_open(table_session, 'delete a part order')
        _ensure_editable(part_order, 'delete part order')

        session.delete(part_order)
        totals = recalculate_session_totals(session, table_session)

    logger.info(f"Part order {part_order_id} deleted; session {table_session.id} total now {totals.total}")


def transition_part_order(session: Session, part_order_id: int, target_status, actor_role,
                          strict: bool = True) -> PartOrder:
    """
    Move a part order to target_status on behalf of actor_role.

    Checks run in order: the part order must exist, the role must be
    allowed to set the target (ForbiddenError regardless of the current
    status), and with strict=True the move must be a forward edge of the
    part order machine. With strict=False any permitted target is set.
    """
    target = PART_ORDER_MACHINE.parse(target_status)

    with transaction(session, 'transition_part_order'):
        part_order = get_part_order(session, part_order_id)
        require_status_permission(actor_role, target, PART_ORDER_STATUS_PERMISSIONS)
        current = part_order.status
        if strict:
            PART_ORDER_MACHINE.check_transition(current, target, part_order.id)
        part_order.status = target.value
        part_order.updated_at = datetime.now()

    logger.info(f"Part order {part_order_id}: {current} -> {target.value} by {getattr(actor_role, 'value', actor_role)}")
    return get_part_order(session, part_order_id)


def mark_printed(session: Session, part_order_id: int) -> PartOrder:
    """
    Stamp printed_at; a draft moves to sent_to_kitchen.

    Reprinting refreshes the timestamp and never moves the status back.
    """
    with transaction(session, 'mark_printed'):
        part_order = get_part_order(session, part_order_id)
        part_order.printed_at = datetime.now()
        if part_order.status == PartOrderStatus.DRAFT.value:
            part_order.status = PartOrderStatus.SENT_TO_KITCHEN.value
            logger.info(f"Part order {part_order_id} printed and sent to kitchen")
        part_order.updated_at = datetime.now()
    return get_part_order(session, part_order_id)
