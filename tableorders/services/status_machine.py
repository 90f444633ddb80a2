"""
Named status machines.

Part orders and whole orders use different vocabularies and edges, so each
gets its own machine; they are never merged.
"""
import logging
from typing import Dict, FrozenSet, Mapping, Type
import enum

from tableorders.exceptions import InvalidTransitionError, InvalidInputError
from tableorders.models import PartOrderStatus, OrderStatus, TableSessionStatus, PaymentStatus

logger = logging.getLogger(__name__)


class StateMachine:
    """A finite set of statuses with explicit allowed edges."""

    def __init__(self, name: str, states: Type[enum.Enum], initial, transitions: Mapping):
        self.name = name
        self.states = states
        self.initial = states(initial)
        self.transitions: Dict[enum.Enum, FrozenSet[enum.Enum]] = {
            states(src): frozenset(states(dst) for dst in dsts)
            for src, dsts in transitions.items()
        }
        missing = set(states) - set(self.transitions)
        if missing:
            raise ValueError(f"{name}: no transitions declared for {sorted(s.value for s in missing)}")

    def parse(self, value, field_name='status'):
        """Coerce a raw value to a member of this machine, or raise InvalidInputError."""
        try:
            return self.states(value)
        except ValueError:
            allowed = ', '.join(s.value for s in self.states)
            raise InvalidInputError(field_name, f"Unknown {self.name} status '{value}' (expected one of: {allowed})")

    def next_states(self, current):
        return self.transitions[self.states(current)]

    def is_terminal(self, current) -> bool:
        return not self.next_states(current)

    def can_transition(self, current, target) -> bool:
        return self.states(target) in self.next_states(current)

    def check_transition(self, current, target, entity_id=None):
        """Raise InvalidTransitionError unless current -> target is an edge."""
        current = self.states(current)
        target = self.states(target)
        if target not in self.transitions[current]:
            logger.warning(f"{self.name} {entity_id}: rejected transition {current.value} -> {target.value}")
            raise InvalidTransitionError(self.name, current.value, target.value, entity_id)
        return target

    def __repr__(self):
        return f"<StateMachine(name='{self.name}')>"


PART_ORDER_MACHINE = StateMachine(
    'part_order',
    PartOrderStatus,
    initial=PartOrderStatus.DRAFT,
    transitions={
        PartOrderStatus.DRAFT: [PartOrderStatus.SENT_TO_KITCHEN],
        PartOrderStatus.SENT_TO_KITCHEN: [PartOrderStatus.PREPARING],
        PartOrderStatus.PREPARING: [PartOrderStatus.READY],
        PartOrderStatus.READY: [PartOrderStatus.SERVED],
        PartOrderStatus.SERVED: [],
    },
)

ORDER_MACHINE = StateMachine(
    'order',
    OrderStatus,
    initial=OrderStatus.PENDING,
    transitions={
        OrderStatus.PENDING: [OrderStatus.CONFIRMED, OrderStatus.CANCELLED],
        OrderStatus.CONFIRMED: [OrderStatus.PREPARING],
        OrderStatus.PREPARING: [OrderStatus.READY],
        OrderStatus.READY: [OrderStatus.DELIVERED],
        OrderStatus.DELIVERED: [],
        OrderStatus.CANCELLED: [],
    },
)

TABLE_SESSION_MACHINE = StateMachine(
    'table_session',
    TableSessionStatus,
    initial=TableSessionStatus.ACTIVE,
    transitions={
        TableSessionStatus.ACTIVE: [TableSessionStatus.READY_TO_CLOSE, TableSessionStatus.CLOSED],
        TableSessionStatus.READY_TO_CLOSE: [TableSessionStatus.CLOSED],
        TableSessionStatus.CLOSED: [],
    },
)

PAYMENT_STATUS_MACHINE = StateMachine(
    'payment',
    PaymentStatus,
    initial=PaymentStatus.PENDING,
    transitions={
        PaymentStatus.PENDING: [PaymentStatus.PAID, PaymentStatus.FAILED, PaymentStatus.REFUNDED],
        # a declined payment can be retried
        PaymentStatus.FAILED: [PaymentStatus.PENDING, PaymentStatus.PAID, PaymentStatus.FAILED],
        PaymentStatus.PAID: [PaymentStatus.REFUNDED],
        PaymentStatus.REFUNDED: [],
    },
)
