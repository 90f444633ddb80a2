"""
Payment service - settle a table session in person or through a provider.

The provider is only asked "authorize this amount for this session" and
answers with a reference or a failure reason. The call happens between two
transactions so no database transaction is held open across the network.
"""
import logging
import uuid
from datetime import datetime
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

import requests
from flask import current_app
from sqlalchemy.orm import Session

from tableorders.database import transaction
from tableorders.exceptions import InvalidInputError, InvalidStateError
from tableorders.models import PaymentMethod, PaymentStatus, SessionPayment, TableSession, TableSessionStatus
from tableorders.services.pricing_service import to_minor_units
from tableorders.services.status_machine import PAYMENT_STATUS_MACHINE, TABLE_SESSION_MACHINE
from tableorders.services.table_session_service import get_table_session, recalculate_session_totals

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    reference: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def approved(cls, reference):
        return cls(True, reference=reference)

    @classmethod
    def declined(cls, reason):
        return cls(False, reason=reason)


class MockPaymentGateway:
    """Approves every charge except the amounts listed in decline_amounts."""

    def __init__(self, decline_amounts=(), decline_reason='card_declined'):
        self.decline_amounts = set(decline_amounts)
        self.decline_reason = decline_reason
        self.calls = []
        self.attempts = []

    def authorize(self, session_id: int, amount_minor_units: int, currency: str, attempt: int = 1) -> PaymentResult:
        self.attempts.append(attempt)
        self.calls.append((session_id, amount_minor_units, currency))
        if amount_minor_units in self.decline_amounts:
            return PaymentResult.declined(self.decline_reason)
        return PaymentResult.approved(f"pi_mock_{uuid.uuid4().hex[:24]}")


class StripePaymentClient:
    """Confirms a Stripe PaymentIntent synchronously."""

    def __init__(self, secret_key: str, api_base: str = 'https://api.stripe.com/v1',
                 payment_method: str = 'pm_card_visa', timeout: int = 10):
        if not secret_key:
            raise ValueError("STRIPE_SECRET_KEY is required")
        self.api_base = api_base.rstrip('/')
        self.payment_method = payment_method
        self.timeout = timeout
        self.headers = {'Authorization': f'Bearer {secret_key}'}

    def authorize(self, session_id: int, amount_minor_units: int, currency: str, attempt: int = 1) -> PaymentResult:
        """
        Create and confirm a PaymentIntent.

        The idempotency key is per attempt: a network retry of one attempt is
        deduplicated, while paying a failed session again is a new charge.

        Declines and transport errors come back as a failed PaymentResult;
        the reason is Stripe's decline code or error message when present.
        """
        url = f"{self.api_base}/payment_intents"
        payload = {
            'amount': amount_minor_units,
            'currency': currency,
            'payment_method': self.payment_method,
            'confirm': 'true',
            'automatic_payment_methods[enabled]': 'true',
            'automatic_payment_methods[allow_redirects]': 'never',
            'metadata[table_session_id]': str(session_id),
        }
        headers = dict(self.headers, **{'Idempotency-Key': f"table-session-{session_id}-attempt-{attempt}"})

        current_app.logger.info(f"[PAY] Authorizing {amount_minor_units} {currency} for table session {session_id}")

        try:
            response = requests.post(url, data=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.HTTPError as e:
            reason = self._error_reason(e.response)
            current_app.logger.error(f"[PAY] Provider declined table session {session_id}: {reason}")
            return PaymentResult.declined(reason)
        except requests.RequestException as e:
            current_app.logger.error(f"[PAY] Provider unreachable: {str(e)}")
            return PaymentResult.declined('provider_unreachable')

        status = data.get('status')
        current_app.logger.info(f"[PAY] PaymentIntent {data.get('id')} status: {status}")
        if status == 'succeeded':
            return PaymentResult.approved(data.get('id'))
        return PaymentResult.declined(status or 'unknown_status')

    @staticmethod
    def _error_reason(response) -> str:
        try:
            error = response.json().get('error', {})
        except ValueError:
            return f"http_{response.status_code}"
        return error.get('decline_code') or error.get('code') or error.get('message') or f"http_{response.status_code}"


def get_payment_gateway(config):
    """Gateway selected by PAYMENT_PROVIDER ('mock' or 'stripe')."""
    provider = (config.get('PAYMENT_PROVIDER') or 'mock').lower()
    if provider == 'stripe':
        return StripePaymentClient(
            config.get('STRIPE_SECRET_KEY'),
            api_base=config.get('STRIPE_API_BASE', 'https://api.stripe.com/v1'),
            payment_method=config.get('STRIPE_PAYMENT_METHOD', 'pm_card_visa'),
            timeout=config.get('PAYMENT_TIMEOUT_SECONDS', 10),
        )
    if provider == 'mock':
        return MockPaymentGateway()
    raise ValueError(f"Unknown PAYMENT_PROVIDER '{provider}'")


def _close_for_payment(session: Session, table_session_id: int, method: PaymentMethod) -> Tuple[Decimal, int]:
    """First transaction: close the session (if still open), freeze the amount and number the attempt."""
    with transaction(session, 'close_for_payment'):
        table_session = get_table_session(session, table_session_id, for_update=True)
        if not PAYMENT_STATUS_MACHINE.can_transition(table_session.payment_status, PaymentStatus.PAID):
            raise InvalidStateError(
                f"Table session {table_session_id} cannot be paid (payment {table_session.payment_status})",
                entity='table_session', entity_id=table_session_id, current=table_session.payment_status
            )
        if table_session.is_open:
            TABLE_SESSION_MACHINE.check_transition(table_session.status, TableSessionStatus.CLOSED, table_session.id)
            table_session.status = TableSessionStatus.CLOSED.value
            table_session.closed_at = datetime.now()
        table_session.payment_method = method.value
        attempt = len(table_session.payments) + 1
        totals = recalculate_session_totals(session, table_session)
    logger.info(f"Table session {table_session_id} closed for {method.value} payment of {totals.total} (attempt {attempt})")
    return totals.total, attempt


def _record_payment(session: Session, table_session_id: int, method: PaymentMethod, amount: Decimal,
                    currency: str, result: PaymentResult, actor_id: Optional[int]) -> SessionPayment:
    """Second transaction: keep the attempt and set paid or failed."""
    target = PaymentStatus.PAID if result.success else PaymentStatus.FAILED
    with transaction(session, 'record_payment'):
        table_session: TableSession = get_table_session(session, table_session_id, for_update=True)
        if not PAYMENT_STATUS_MACHINE.can_transition(table_session.payment_status, target):
            raise InvalidStateError(
                f"Payment of table session {table_session_id} changed while authorizing "
                f"(now {table_session.payment_status})",
                entity='table_session', entity_id=table_session_id, current=table_session.payment_status
            )
        payment = SessionPayment(
            table_session_id=table_session_id,
            method=method.value,
            amount=amount,
            currency=currency.upper(),
            status='succeeded' if result.success else 'failed',
            provider_reference=result.reference,
            failure_reason=result.reason,
            created_by=actor_id,
        )
        session.add(payment)
        table_session.payment_status = target.value
        if result.reference:
            table_session.payment_reference = result.reference
        session.flush()
        payment_id = payment.id
    return session.get(SessionPayment, payment_id)


def pay_table_session(session: Session, table_session_id: int, method, gateway=None,
                      currency: str = 'gbp', actor_id: Optional[int] = None) -> Tuple[TableSession, SessionPayment]:
    """
    Close the session and settle it.

    Cash and zero totals are recorded as paid without calling the
    provider. Otherwise gateway.authorize() decides between paid and
    failed; a failed session stays closed and can be paid again.
    """
    try:
        method = PaymentMethod(method)
    except ValueError:
        raise InvalidInputError('method', f"Unknown payment method '{method}'")

    amount, attempt = _close_for_payment(session, table_session_id, method)

    if method == PaymentMethod.CASH:
        result = PaymentResult.approved(None)
    elif amount == 0:
        result = PaymentResult.approved(None)
    else:
        if gateway is None:
            raise InvalidStateError('No payment provider configured', entity='table_session',
                                    entity_id=table_session_id)
        result = gateway.authorize(table_session_id, to_minor_units(amount), currency, attempt=attempt)

    payment = _record_payment(session, table_session_id, method, amount, currency, result, actor_id)
    if result.success:
        logger.info(f"Table session {table_session_id} paid: {amount} {currency.upper()} by {method.value}")
    else:
        logger.warning(f"Table session {table_session_id} payment failed: {result.reason}")
    return get_table_session(session, table_session_id), payment
