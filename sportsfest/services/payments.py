"""Payment gateway client and webhook processing."""
from __future__ import annotations

import hashlib
import hmac
from decimal import Decimal
from typing import Any, Dict

import requests
from flask import current_app

from sportsfest.extensions import db
from sportsfest.models import (
    Order,
    OrderPayment,
    OrderStatus,
    PaymentStatus,
    PaymentType,
    User,
    UserRole,
)
from sportsfest.services.email import send_purchase_confirmation_email
from sportsfest.services.invoices import sync_invoices_for_order
from sportsfest.services.orders import (
    ZERO,
    OrderService,
    completed_total,
    ensure_invoice,
    is_fulfilled,
    to_money,
)
from sportsfest.services.timeutils import utcnow

SUCCEEDED = 'payment_intent.succeeded'
FAILED = 'payment_intent.payment_failed'
BANK_ACCOUNT = 'us_bank_account'


class PaymentGatewayError(Exception):
    """Raised when the payment provider rejects or cannot be reached."""
    pass


class PaymentGateway:
    """Thin client for a Stripe-compatible payment intents API."""

    def __init__(self, config=None):
        config = config if config is not None else current_app.config
        self.api_base = (config.get('PAYMENT_API_BASE') or 'https://api.stripe.com/v1').rstrip('/')
        self.secret_key = config.get('PAYMENT_SECRET_KEY')
        self.webhook_secret = config.get('PAYMENT_WEBHOOK_SECRET')
        self.currency = config.get('PAYMENT_CURRENCY', 'usd')
        self.timeout = 30

    def create_payment_intent(
        self,
        order: Order,
        amount: Decimal | float | str | None = None,
        payment_method_types: list[str] | None = None,
    ) -> Dict[str, Any]:
        """
        Create a payment intent for (part of) an order's balance.

        Args:
            order: Order being paid
            amount: Amount to charge; defaults to the full balance owed
            payment_method_types: e.g. ['card'] or ['us_bank_account']

        Returns:
            The provider's payment intent payload
        """
        if not self.secret_key:
            raise PaymentGatewayError("Payment gateway is not configured")

        amount = to_money(order.balance_owed if amount is None else amount)
        if amount <= ZERO:
            raise PaymentGatewayError("Payment amount must be greater than zero")
        if amount > order.balance_owed:
            raise PaymentGatewayError("Payment amount exceeds balance owed")

        data = {
            'amount': int(amount * 100),
            'currency': self.currency,
            'metadata[order_id]': order.id,
            'metadata[org_id]': order.org_id,
            'metadata[order_number]': order.order_number,
        }
        for index, method in enumerate(payment_method_types or ['card']):
            data[f'payment_method_types[{index}]'] = method
        if order.is_sponsorship:
            sponsorship = (order.meta or {}).get('sponsorship', {})
            data['metadata[payment_type]'] = 'sponsorship'
            data['metadata[sponsorship_base_amount]'] = str(sponsorship.get('base_amount', ''))
            data['metadata[sponsorship_payment_method]'] = (payment_method_types or ['card'])[0]

        try:
            response = requests.post(
                f"{self.api_base}/payment_intents",
                data=data,
                headers={
                    'Authorization': f"Bearer {self.secret_key}",
                    'Idempotency-Key': f"{order.id}-{int(amount * 100)}",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise PaymentGatewayError(f"Payment provider unreachable: {e}")

        if not 200 <= response.status_code < 300:
            raise PaymentGatewayError(f"HTTP {response.status_code}: {response.text[:200]}")

        intent = response.json()
        order.payment_intent_id = intent.get('id')
        db.session.commit()
        return intent

    def _generate_signature(self, payload: bytes) -> str:
        return hmac.new(
            (self.webhook_secret or '').encode('utf-8'),
            payload,
            hashlib.sha256
        ).hexdigest()

    def verify_webhook(self, payload: bytes, signature: str | None) -> bool:
        """Check the HMAC-SHA256 signature the provider sent with a webhook."""
        if not self.webhook_secret or not signature:
            return False
        return hmac.compare_digest(self._generate_signature(payload), signature)


def _order_admins(order: Order) -> list[User]:
    return (
        User.query
        .filter(
            User.org_id == order.org_id,
            User.role.in_([UserRole.OWNER, UserRole.ADMIN]),
            User.active.is_(True),
        )
        .all()
    )


def _handle_succeeded(intent: Dict[str, Any]) -> tuple[Dict[str, Any] | None, str | None]:
    metadata = intent.get('metadata') or {}
    order_id = metadata.get('order_id')
    if not order_id:
        return {'skipped': 'no order_id in metadata'}, None

    order = db.session.get(Order, order_id)
    if order is None:
        current_app.logger.error(f"Webhook: order not found: {order_id}")
        return {'skipped': 'order not found'}, None

    if order.status not in (OrderStatus.PAYMENT_PROCESSING, OrderStatus.PENDING):
        return {'skipped': f'order already {order.status.value}'}, None

    if OrderPayment.query.filter_by(payment_intent_id=intent.get('id')).first():
        return {'skipped': 'payment already recorded'}, None

    amount = to_money(Decimal(int(intent.get('amount', 0))) / 100)
    method_types = intent.get('payment_method_types') or ['unknown']

    # Bank payments for sponsorships skip the card processing fee
    order_total = order.total_amount
    fee_waived = False
    if metadata.get('payment_type') == 'sponsorship' and metadata.get('sponsorship_payment_method') == BANK_ACCOUNT:
        base = to_money(metadata.get('sponsorship_base_amount') or 0)
        if base > ZERO:
            order_total = base
            fee_waived = base != order.total_amount

    is_deposit = amount < order_total
    payment = OrderPayment(
        order_id=order.id,
        type=PaymentType.DEPOSIT_PAYMENT if is_deposit else PaymentType.BALANCE_PAYMENT,
        status=PaymentStatus.COMPLETED,
        amount=amount,
        payment_intent_id=intent.get('id'),
        payment_method_type=method_types[0],
        processed_at=utcnow(),
        meta={'source': 'webhook', 'intent_status': intent.get('status'), 'intent_amount': intent.get('amount')},
    )
    db.session.add(payment)
    db.session.flush()

    order.payment_intent_id = intent.get('id')
    order.status = OrderStatus.DEPOSIT_PAID if is_deposit else OrderStatus.FULLY_PAID
    if fee_waived:
        sponsorship = dict((order.meta or {}).get('sponsorship', {}))
        sponsorship.update({
            'payment_method': BANK_ACCOUNT,
            'processing_fee_waived': True,
            'original_total_with_fee': float(order.total_amount),
            'final_total': float(order_total),
        })
        order.meta = {**(order.meta or {}), 'sponsorship': sponsorship}
        order.total_amount = order_total
        for invoice in order.invoices:
            invoice.total_amount = order_total
    if is_deposit:
        order.balance_owed = max(ZERO, order_total - completed_total(order))
    else:
        order.balance_owed = ZERO

    ensure_invoice(order)
    sync_invoices_for_order(order)

    fulfillment = None
    if not is_fulfilled(order):
        fulfillment, fulfillment_error = OrderService._fulfill(order)
        if fulfillment_error:
            current_app.logger.warning(f"Webhook: order {order.order_number} not fulfilled: {fulfillment_error}")

    OrderService._count_coupon_use(order)
    db.session.commit()

    recipients = _order_admins(order)
    if order.user and order.user not in recipients:
        recipients.append(order.user)
    for recipient in recipients:
        send_purchase_confirmation_email(order, recipient.email, recipient.name)

    return {
        'order_id': order.id,
        'status': order.status.value,
        'payment_id': payment.id,
        'fulfillment': fulfillment,
    }, None


def _handle_failed(intent: Dict[str, Any]) -> tuple[Dict[str, Any] | None, str | None]:
    metadata = intent.get('metadata') or {}
    order_id = metadata.get('order_id')
    if not order_id:
        return {'skipped': 'no order_id in metadata'}, None

    order = db.session.get(Order, order_id)
    if order is None:
        current_app.logger.error(f"Webhook: order not found: {order_id}")
        return {'skipped': 'order not found'}, None

    error_message = (intent.get('last_payment_error') or {}).get('message') or 'Unknown error'
    amount = to_money(Decimal(int(intent.get('amount', 0))) / 100)

    # The intent can still succeed on retry, so the failed attempt does not claim its id
    db.session.add(OrderPayment(
        order_id=order.id,
        type=PaymentType.BALANCE_PAYMENT,
        status=PaymentStatus.FAILED,
        amount=amount,
        payment_method_type=(intent.get('payment_method_types') or ['unknown'])[0],
        failure_reason=error_message,
        processed_at=utcnow(),
        meta={'source': 'webhook', 'payment_intent_id': intent.get('id')},
    ))

    reverted = False
    if order.status == OrderStatus.PAYMENT_PROCESSING:
        order.status = OrderStatus.PENDING
        order.meta = {
            **(order.meta or {}),
            'last_payment_failure': {
                'payment_intent_id': intent.get('id'),
                'failed_at': utcnow().isoformat(),
                'error': error_message,
            },
        }
        reverted = True

    db.session.commit()
    return {'order_id': order.id, 'status': order.status.value, 'reverted': reverted}, None


def handle_webhook_event(event: Dict[str, Any]) -> tuple[Dict[str, Any] | None, str | None]:
    """Dispatch a verified gateway event."""
    event_type = event.get('type')
    intent = (event.get('data') or {}).get('object') or {}
    try:
        if event_type == SUCCEEDED:
            return _handle_succeeded(intent)
        if event_type == FAILED:
            return _handle_failed(intent)
        current_app.logger.info(f"Unhandled webhook event type: {event_type}")
        return {'skipped': f'unhandled event {event_type}'}, None

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to handle webhook {event_type}: {e}")
        return None, "Webhook handler failed"


__all__ = [
    'PaymentGateway',
    'PaymentGatewayError',
    'handle_webhook_event',
]
