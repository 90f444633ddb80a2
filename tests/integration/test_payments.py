"""
Integration tests for settling table sessions.
"""

import pytest
import requests
from decimal import Decimal

from tableorders.exceptions import InvalidInputError, InvalidStateError, NotFoundError
from tableorders.models import SessionPayment
from tableorders.services import part_order_service as part_orders
from tableorders.services import payment_service as payments
from tableorders.services import table_session_service as sessions
from tableorders.services.payment_service import (
    MockPaymentGateway, PaymentResult, StripePaymentClient, get_payment_gateway
)

D = Decimal


@pytest.fixture
def open_table(session, server_user, menu):
    """Table 8 with two burgers: total 24.00."""
    table_session, _ = sessions.open_session(session, 8, server_user.id)
    part_orders.create_part_order(session, table_session.id, server_user.id,
                                  [{'menu_item_id': menu['burger'].id, 'quantity': 2}])
    return sessions.get_table_session(session, table_session.id)


class FakeResponse:

    def __init__(self, status_code, data):
        self.status_code = status_code
        self._data = data

    def json(self):
        return self._data

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class TestPayTableSession:

    def test_cash_skips_provider(self, session, open_table, gateway, admin_user):
        table_session, payment = payments.pay_table_session(
            session, open_table.id, 'cash', gateway=gateway, actor_id=admin_user.id
        )

        assert table_session.status == 'closed'
        assert table_session.closed_at is not None
        assert table_session.payment_status == 'paid'
        assert table_session.payment_method == 'cash'
        assert payment.amount == D('24.00')
        assert payment.status == 'succeeded'
        assert payment.created_by == admin_user.id
        assert gateway.calls == []

    def test_card_authorizes_minor_units(self, session, open_table, gateway):
        table_session, payment = payments.pay_table_session(session, open_table.id, 'card', gateway=gateway)

        assert gateway.calls == [(open_table.id, 2400, 'gbp')]
        assert table_session.payment_status == 'paid'
        assert payment.provider_reference.startswith('pi_mock_')
        assert table_session.payment_reference == payment.provider_reference
        assert payment.currency == 'GBP'

    def test_decline_then_retry(self, session, open_table):
        declining = MockPaymentGateway(decline_amounts={2400})
        table_session, payment = payments.pay_table_session(session, open_table.id, 'online', gateway=declining)

        assert table_session.status == 'closed'
        assert table_session.payment_status == 'failed'
        assert payment.status == 'failed'
        assert payment.failure_reason == 'card_declined'

        table_session, payment = payments.pay_table_session(session, open_table.id, 'card',
                                                            gateway=MockPaymentGateway())
        assert table_session.payment_status == 'paid'
        assert session.query(SessionPayment).filter_by(table_session_id=open_table.id).count() == 2

    def test_attempts_are_numbered(self, session, open_table):
        gateway = MockPaymentGateway(decline_amounts={2400})
        payments.pay_table_session(session, open_table.id, 'card', gateway=gateway)
        gateway.decline_amounts.clear()
        payments.pay_table_session(session, open_table.id, 'card', gateway=gateway)

        assert gateway.attempts == [1, 2]

    def test_already_paid(self, session, open_table, gateway):
        payments.pay_table_session(session, open_table.id, 'cash')
        with pytest.raises(InvalidStateError):
            payments.pay_table_session(session, open_table.id, 'card', gateway=gateway)
        assert gateway.calls == []

    def test_zero_total_needs_no_provider(self, session, server_user, gateway):
        table_session, _ = sessions.open_session(session, 9, server_user.id)
        table_session, payment = payments.pay_table_session(session, table_session.id, 'card', gateway=gateway)

        assert table_session.payment_status == 'paid'
        assert payment.amount == D('0.00')
        assert gateway.calls == []

    def test_ready_to_close_session_can_be_paid(self, session, open_table, gateway):
        sessions.mark_ready_to_close(session, open_table.id)
        table_session, _ = payments.pay_table_session(session, open_table.id, 'card', gateway=gateway)
        assert table_session.status == 'closed'

    def test_card_without_gateway(self, session, open_table):
        with pytest.raises(InvalidStateError):
            payments.pay_table_session(session, open_table.id, 'card')

    def test_unknown_method(self, session, open_table):
        with pytest.raises(InvalidInputError):
            payments.pay_table_session(session, open_table.id, 'cheque')
        assert sessions.get_table_session(session, open_table.id).status == 'active'

    def test_missing_session(self, session, gateway):
        with pytest.raises(NotFoundError):
            payments.pay_table_session(session, 404, 'cash', gateway=gateway)


class TestStripePaymentClient:

    def test_requires_key(self):
        with pytest.raises(ValueError):
            StripePaymentClient('')

    def test_succeeded(self, app, monkeypatch):
        sent = {}

        def fake_post(url, data=None, headers=None, timeout=None):
            sent.update(url=url, data=data, headers=headers)
            return FakeResponse(200, {'id': 'pi_123', 'status': 'succeeded'})

        monkeypatch.setattr(payments.requests, 'post', fake_post)
        result = StripePaymentClient('sk_test_x', api_base='https://stripe.test/v1/').authorize(5, 2400, 'gbp')

        assert result == PaymentResult.approved('pi_123')
        assert sent['url'] == 'https://stripe.test/v1/payment_intents'
        assert sent['data']['amount'] == 2400
        assert sent['data']['metadata[table_session_id]'] == '5'
        assert sent['headers']['Authorization'] == 'Bearer sk_test_x'
        assert sent['headers']['Idempotency-Key'] == 'table-session-5-attempt-1'

    def test_card_error(self, app, monkeypatch):
        monkeypatch.setattr(payments.requests, 'post', lambda *a, **kw: FakeResponse(
            402, {'error': {'code': 'card_declined', 'decline_code': 'insufficient_funds'}}
        ))
        result = StripePaymentClient('sk_test_x').authorize(5, 2400, 'gbp')

        assert not result.success
        assert result.reason == 'insufficient_funds'

    def test_requires_action_is_declined(self, app, monkeypatch):
        monkeypatch.setattr(payments.requests, 'post', lambda *a, **kw: FakeResponse(
            200, {'id': 'pi_456', 'status': 'requires_action'}
        ))
        result = StripePaymentClient('sk_test_x').authorize(5, 100, 'gbp')

        assert result == PaymentResult.declined('requires_action')

    def test_unreachable(self, app, monkeypatch):
        def fake_post(*args, **kwargs):
            raise requests.ConnectionError('no route to host')

        monkeypatch.setattr(payments.requests, 'post', fake_post)
        result = StripePaymentClient('sk_test_x').authorize(5, 100, 'gbp')

        assert result.reason == 'provider_unreachable'

    def test_retry_after_decline_uses_new_key(self, session, open_table, monkeypatch):
        keys = []
        responses = [
            FakeResponse(402, {'error': {'code': 'card_declined'}}),
            FakeResponse(200, {'id': 'pi_789', 'status': 'succeeded'}),
        ]

        def fake_post(url, data=None, headers=None, timeout=None):
            keys.append(headers['Idempotency-Key'])
            return responses.pop(0)

        monkeypatch.setattr(payments.requests, 'post', fake_post)
        client = StripePaymentClient('sk_test_x')

        table_session, _ = payments.pay_table_session(session, open_table.id, 'card', gateway=client)
        assert table_session.payment_status == 'failed'

        table_session, payment = payments.pay_table_session(session, open_table.id, 'card', gateway=client)
        assert table_session.payment_status == 'paid'
        assert payment.provider_reference == 'pi_789'
        assert keys == [f'table-session-{open_table.id}-attempt-1', f'table-session-{open_table.id}-attempt-2']


class TestGatewaySelection:

    def test_mock(self):
        assert isinstance(get_payment_gateway({'PAYMENT_PROVIDER': 'mock'}), MockPaymentGateway)
        assert isinstance(get_payment_gateway({}), MockPaymentGateway)

    def test_stripe(self):
        gateway = get_payment_gateway({'PAYMENT_PROVIDER': 'Stripe', 'STRIPE_SECRET_KEY': 'sk_test_x'})
        assert isinstance(gateway, StripePaymentClient)

    def test_unknown(self):
        with pytest.raises(ValueError):
            get_payment_gateway({'PAYMENT_PROVIDER': 'paypal'})
