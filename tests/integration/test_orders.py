"""
Integration tests for whole orders and their status chain.
"""

import pytest
from datetime import datetime
from decimal import Decimal

from tableorders.exceptions import (
    ForbiddenError, InvalidInputError, InvalidStateError, InvalidTransitionError, NotFoundError
)
from tableorders.models import Order
from tableorders.services import order_service as orders

D = Decimal


@pytest.fixture
def order(session, server_user, menu):
    return orders.create_order(session, server_user.id, [
        {'menu_item_id': menu['burger'].id, 'quantity': 2},
        {'menu_item_id': menu['salad'].id, 'quantity': 2},
    ], table_number=4, special_instructions=' window seat ')


class TestCreateOrder:

    def test_totals_from_catalog(self, order):
        assert order.status == 'pending'
        assert order.payment_status == 'pending'
        assert order.subtotal == D('30.00')
        assert order.tax_amount == D('5.00')
        assert order.total_amount == D('35.00')
        assert order.special_instructions == 'window seat'
        assert [i.name for i in order.items] == ['Burger', 'Salad']

    def test_client_prices_ignored(self, session, server_user, menu):
        created = orders.create_order(session, server_user.id, [
            {'menu_item_id': menu['burger'].id, 'quantity': 1, 'unit_price': '0.01'},
        ])
        assert created.total_amount == D('12.00')

    def test_unavailable_item_rolls_back(self, session, server_user, menu):
        with pytest.raises(InvalidStateError):
            orders.create_order(session, server_user.id, [
                {'menu_item_id': menu['burger'].id, 'quantity': 1},
                {'menu_item_id': menu['special'].id, 'quantity': 1},
            ])
        assert session.query(Order).count() == 0

    def test_unknown_item(self, session, server_user, menu):
        with pytest.raises(NotFoundError):
            orders.create_order(session, server_user.id, [{'menu_item_id': 9999, 'quantity': 1}])

    @pytest.mark.parametrize('items', [[], None, [{'quantity': 1}], [{'menu_item_id': 1, 'quantity': 0}]])
    def test_invalid_items(self, session, server_user, menu, items):
        with pytest.raises(InvalidInputError):
            orders.create_order(session, server_user.id, items)

    def test_invalid_table_number(self, session, server_user, menu):
        with pytest.raises(InvalidInputError):
            orders.create_order(session, server_user.id, [{'menu_item_id': menu['salad'].id}], table_number=0)


class TestOrderStatus:

    def test_full_chain(self, session, order):
        for role, status in (('kitchen', 'confirmed'), ('kitchen', 'preparing'),
                             ('kitchen', 'ready'), ('admin', 'delivered')):
            current = orders.update_order_status(session, order.id, status, role)
        assert current.status == 'delivered'

    def test_server_cancels_pending(self, session, order):
        assert orders.update_order_status(session, order.id, 'cancelled', 'server').status == 'cancelled'

    def test_cancel_after_confirm_is_invalid(self, session, order):
        orders.update_order_status(session, order.id, 'confirmed', 'kitchen')
        with pytest.raises(InvalidTransitionError):
            orders.update_order_status(session, order.id, 'cancelled', 'admin')

    def test_server_cannot_confirm(self, session, order):
        with pytest.raises(ForbiddenError):
            orders.update_order_status(session, order.id, 'confirmed', 'server')

    def test_kitchen_cannot_deliver(self, session, order):
        with pytest.raises(ForbiddenError):
            orders.update_order_status(session, order.id, 'delivered', 'kitchen')

    def test_part_order_vocabulary_rejected(self, session, order):
        with pytest.raises(InvalidInputError):
            orders.update_order_status(session, order.id, 'served', 'admin')

    def test_missing_order(self, session):
        with pytest.raises(NotFoundError):
            orders.update_order_status(session, 31337, 'confirmed', 'kitchen')

    def test_loose_mode(self, session, order):
        assert orders.update_order_status(session, order.id, 'ready', 'kitchen', strict=False).status == 'ready'


class TestOrderPayment:

    def test_mark_paid(self, session, order):
        assert orders.update_order_payment_status(session, order.id, 'paid').payment_status == 'paid'

    def test_paid_cannot_go_back(self, session, order):
        orders.update_order_payment_status(session, order.id, 'paid')
        with pytest.raises(InvalidStateError) as exc:
            orders.update_order_payment_status(session, order.id, 'pending')
        assert exc.value.payload['target'] == 'pending'


class TestListAndStats:

    def test_servers_only_see_their_orders(self, session, order, other_server, admin_user, menu):
        theirs = orders.create_order(session, other_server.id, [{'menu_item_id': menu['salad'].id, 'quantity': 1}])

        assert [o.id for o in orders.list_orders(session, other_server.id, 'server')] == [theirs.id]
        assert {o.id for o in orders.list_orders(session, admin_user.id, 'admin')} == {order.id, theirs.id}

    def test_filters(self, session, order, admin_user):
        assert orders.list_orders(session, admin_user.id, 'admin', status='delivered') == []
        assert orders.list_orders(session, admin_user.id, 'admin', start_date=datetime(2100, 1, 1)) == []

    def test_stats(self, session, order, server_user, menu):
        second = orders.create_order(session, server_user.id, [{'menu_item_id': menu['salad'].id, 'quantity': 1}])
        orders.update_order_status(session, order.id, 'delivered', 'admin', strict=False)
        orders.update_order_payment_status(session, second.id, 'paid')

        stats = orders.get_order_stats(session)

        assert stats['total_orders'] == 2
        assert stats['total_revenue'] == D('40.50')
        assert stats['average_order_value'] == D('20.25')
        assert stats['completed_orders'] == 1
        assert stats['paid_orders'] == 1

    def test_stats_empty(self, session):
        stats = orders.get_order_stats(session)
        assert stats['total_orders'] == 0
        assert stats['average_order_value'] == D('0.00')

    def test_serialize(self, order):
        data = orders.serialize_order(order)
        assert data['total_amount'] == '35.00'
        assert data['items'][0]['unit_price'] == '10.00'
