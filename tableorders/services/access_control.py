"""
Access control - which role may set which status.

The tables are explicit role x status mappings. They are validated when the
module is imported: every role must have an entry and every status must
belong to the machine the table governs, so adding a role or a status
without updating the tables fails at startup.
"""
from typing import Dict, FrozenSet, Type
import enum

from tableorders.exceptions import ForbiddenError, InvalidInputError
from tableorders.models import UserRole, PartOrderStatus, OrderStatus

Role = UserRole

StatusTable = Dict[UserRole, FrozenSet[enum.Enum]]


def _status_table(states: Type[enum.Enum], mapping) -> StatusTable:
    table = {Role(role): frozenset(states(s) for s in statuses) for role, statuses in mapping.items()}
    missing = set(Role) - set(table)
    if missing:
        raise ValueError(f"Status permissions missing roles: {sorted(r.value for r in missing)}")
    return table


PART_ORDER_STATUS_PERMISSIONS = _status_table(PartOrderStatus, {
    Role.SERVER: [PartOrderStatus.DRAFT, PartOrderStatus.SENT_TO_KITCHEN],
    Role.KITCHEN: [PartOrderStatus.SENT_TO_KITCHEN, PartOrderStatus.PREPARING, PartOrderStatus.READY],
    Role.ADMIN: list(PartOrderStatus),
})

ORDER_STATUS_PERMISSIONS = _status_table(OrderStatus, {
    Role.SERVER: [OrderStatus.PENDING, OrderStatus.CANCELLED],
    Role.KITCHEN: [OrderStatus.CONFIRMED, OrderStatus.PREPARING, OrderStatus.READY],
    Role.ADMIN: list(OrderStatus),
})


def parse_role(role) -> UserRole:
    try:
        return Role(role)
    except ValueError:
        raise InvalidInputError('role', f"Unknown role '{role}'")


def is_allowed(role, target_status, status_table: StatusTable) -> bool:
    """True if role may set target_status according to status_table."""
    try:
        role = Role(role)
    except ValueError:
        return False
    allowed = status_table.get(role, frozenset())
    return any(status.value == getattr(target_status, 'value', target_status) for status in allowed)


def require_status_permission(role, target_status, status_table: StatusTable):
    """Raise ForbiddenError unless role may set target_status."""
    if not is_allowed(role, target_status, status_table):
        target = getattr(target_status, 'value', target_status)
        raise ForbiddenError(
            f"Role '{getattr(role, 'value', role)}' is not authorized to set status '{target}'",
            role=getattr(role, 'value', role),
            target=target,
        )
