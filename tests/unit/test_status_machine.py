"""
Unit tests for the status machines and the role x status tables.
"""

import pytest

from tableorders.exceptions import ForbiddenError, InvalidInputError, InvalidTransitionError, InvalidStateError
from tableorders.models import PartOrderStatus, OrderStatus, TableSessionStatus, PaymentStatus, UserRole
from tableorders.services.access_control import (
    PART_ORDER_STATUS_PERMISSIONS, ORDER_STATUS_PERMISSIONS, is_allowed, parse_role, require_status_permission
)
from tableorders.services.status_machine import (
    StateMachine, PART_ORDER_MACHINE, ORDER_MACHINE, TABLE_SESSION_MACHINE, PAYMENT_STATUS_MACHINE
)

PART_ORDER_EDGES = {
    ('draft', 'sent_to_kitchen'),
    ('sent_to_kitchen', 'preparing'),
    ('preparing', 'ready'),
    ('ready', 'served'),
}

ORDER_EDGES = {
    ('pending', 'confirmed'),
    ('pending', 'cancelled'),
    ('confirmed', 'preparing'),
    ('preparing', 'ready'),
    ('ready', 'delivered'),
}


class TestPartOrderMachine:
    """draft -> sent_to_kitchen -> preparing -> ready -> served."""

    def test_initial_and_terminal(self):
        assert PART_ORDER_MACHINE.initial == PartOrderStatus.DRAFT
        assert PART_ORDER_MACHINE.is_terminal('served')
        assert not PART_ORDER_MACHINE.is_terminal('draft')

    @pytest.mark.parametrize('current', [s.value for s in PartOrderStatus])
    @pytest.mark.parametrize('target', [s.value for s in PartOrderStatus])
    def test_only_forward_edges_allowed(self, current, target):
        if (current, target) in PART_ORDER_EDGES:
            assert PART_ORDER_MACHINE.check_transition(current, target) == PartOrderStatus(target)
        else:
            with pytest.raises(InvalidTransitionError) as exc:
                PART_ORDER_MACHINE.check_transition(current, target, entity_id=42)
            assert exc.value.kind == 'invalid_transition'
            assert exc.value.payload['current'] == current
            assert exc.value.payload['target'] == target
            assert exc.value.payload['id'] == 42

    def test_invalid_transition_is_an_invalid_state(self):
        with pytest.raises(InvalidStateError):
            PART_ORDER_MACHINE.check_transition('served', 'draft')

    def test_parse_unknown_status(self):
        with pytest.raises(InvalidInputError) as exc:
            PART_ORDER_MACHINE.parse('cancelled')
        assert exc.value.field == 'status'


class TestOrderMachine:
    """Kept apart from the part order machine."""

    @pytest.mark.parametrize('current', [s.value for s in OrderStatus])
    @pytest.mark.parametrize('target', [s.value for s in OrderStatus])
    def test_edges(self, current, target):
        assert ORDER_MACHINE.can_transition(current, target) == ((current, target) in ORDER_EDGES)

    def test_cancel_only_from_pending(self):
        for status in ('confirmed', 'preparing', 'ready', 'delivered'):
            with pytest.raises(InvalidTransitionError):
                ORDER_MACHINE.check_transition(status, 'cancelled')

    def test_vocabularies_differ(self):
        with pytest.raises(InvalidInputError):
            ORDER_MACHINE.parse('served')
        with pytest.raises(InvalidInputError):
            PART_ORDER_MACHINE.parse('delivered')


class TestSessionMachines:

    def test_table_session_edges(self):
        assert TABLE_SESSION_MACHINE.can_transition('active', 'ready_to_close')
        assert TABLE_SESSION_MACHINE.can_transition('active', 'closed')
        assert TABLE_SESSION_MACHINE.can_transition('ready_to_close', 'closed')
        assert not TABLE_SESSION_MACHINE.can_transition('closed', 'active')
        assert not TABLE_SESSION_MACHINE.can_transition('ready_to_close', 'active')
        assert TABLE_SESSION_MACHINE.is_terminal(TableSessionStatus.CLOSED)

    def test_payment_edges(self):
        assert PAYMENT_STATUS_MACHINE.can_transition('pending', 'paid')
        assert PAYMENT_STATUS_MACHINE.can_transition('failed', 'paid')
        assert PAYMENT_STATUS_MACHINE.can_transition('paid', 'refunded')
        assert not PAYMENT_STATUS_MACHINE.can_transition('paid', 'pending')
        assert PAYMENT_STATUS_MACHINE.is_terminal(PaymentStatus.REFUNDED)

    def test_machine_requires_every_state(self):
        with pytest.raises(ValueError):
            StateMachine('broken', PartOrderStatus, 'draft', {'draft': ['sent_to_kitchen']})


class TestAccessControl:
    """Role x status tables."""

    def test_tables_cover_every_role(self):
        assert set(PART_ORDER_STATUS_PERMISSIONS) == set(UserRole)
        assert set(ORDER_STATUS_PERMISSIONS) == set(UserRole)

    def test_part_order_table(self):
        values = {role.value: sorted(s.value for s in statuses)
                  for role, statuses in PART_ORDER_STATUS_PERMISSIONS.items()}
        assert values['server'] == ['draft', 'sent_to_kitchen']
        assert values['kitchen'] == ['preparing', 'ready', 'sent_to_kitchen']
        assert values['admin'] == sorted(s.value for s in PartOrderStatus)

    def test_order_table(self):
        assert is_allowed('server', 'cancelled', ORDER_STATUS_PERMISSIONS)
        assert not is_allowed('server', 'confirmed', ORDER_STATUS_PERMISSIONS)
        assert is_allowed('kitchen', OrderStatus.PREPARING, ORDER_STATUS_PERMISSIONS)
        assert not is_allowed('kitchen', 'delivered', ORDER_STATUS_PERMISSIONS)
        assert is_allowed('admin', 'delivered', ORDER_STATUS_PERMISSIONS)

    def test_is_allowed(self):
        assert is_allowed('server', 'sent_to_kitchen', PART_ORDER_STATUS_PERMISSIONS)
        assert not is_allowed('server', 'served', PART_ORDER_STATUS_PERMISSIONS)
        assert not is_allowed('kitchen', 'served', PART_ORDER_STATUS_PERMISSIONS)
        assert is_allowed(UserRole.ADMIN, PartOrderStatus.SERVED, PART_ORDER_STATUS_PERMISSIONS)

    def test_unknown_role_is_never_allowed(self):
        assert not is_allowed('owner', 'draft', PART_ORDER_STATUS_PERMISSIONS)

    def test_require_status_permission(self):
        with pytest.raises(ForbiddenError) as exc:
            require_status_permission('server', 'ready', PART_ORDER_STATUS_PERMISSIONS)
        assert exc.value.kind == 'forbidden'
        assert exc.value.payload == {'role': 'server', 'target': 'ready'}
        assert exc.value.status_code == 403

    def test_parse_role(self):
        assert parse_role('kitchen') == UserRole.KITCHEN
        with pytest.raises(InvalidInputError):
            parse_role('chef')
