"""Checkout, payment recording, fulfillment and the payment gateway."""

import hashlib
import hmac
from datetime import timedelta
from decimal import Decimal
from unittest.mock import Mock, patch

import pytest

from sportsfest.extensions import db
from sportsfest.models import (
    CompanyTeam,
    Coupon,
    DiscountType,
    EmailMessage,
    InvoiceStatus,
    Order,
    OrderPayment,
    OrderStatus,
    PaymentStatus,
    PaymentType,
    ProductType,
    TentPurchaseTracking,
    UserRole,
)
from sportsfest.services.orders import OrderService, serialize_order
from sportsfest.services.payments import PaymentGateway, PaymentGatewayError, handle_webhook_event
from sportsfest.services.sponsorships import SponsorshipService
from sportsfest.services.timeutils import utcnow


@pytest.fixture
def shop(ctx, factory):
    org = factory.org()
    event_year = factory.event_year()
    owner = factory.user(org, role=UserRole.OWNER)
    registration = factory.product(event_year)
    tent = factory.product(event_year, name='Tent', type=ProductType.TENT_RENTAL, price='250.00')
    return org, event_year, owner, registration, tent


def _order(shop, quantity=2, **kwargs):
    org, event_year, owner, registration, _ = shop
    order, error = OrderService.create_order(
        org.id, event_year.id, [{'product_id': registration.id, 'quantity': quantity}], user=owner, **kwargs
    )
    assert error is None
    return order


class TestCreateOrder:

    def test_prices_cart(self, shop):
        order = _order(shop)

        assert order.order_number.startswith('ORD-')
        assert order.status == OrderStatus.PENDING
        assert order.total_amount == Decimal('3000.00')
        assert order.balance_owed == Decimal('3000.00')
        assert order.meta == {'subtotal': 3000.0}
        assert [(item.quantity, item.total_price) for item in order.items] == [(2, Decimal('3000.00'))]

        data = serialize_order(order)
        assert data['total_amount'] == 3000.0
        assert data['items'][0]['name'] == 'Team Registration'

    def test_applies_coupon(self, shop):
        db.session.add(Coupon(code='TENOFF', discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('10')))
        db.session.commit()

        order = _order(shop, coupon_code='tenoff')

        assert order.coupon_code == 'TENOFF'
        assert order.discount_amount == Decimal('300.00')
        assert order.total_amount == Decimal('2700.00')
        assert order.meta['applied_coupon']['discount'] == 300.0
        assert order.meta['subtotal'] == 3000.0

    def test_invalid_coupon_blocks_order(self, shop):
        org, event_year, _, registration, _ = shop
        order, error = OrderService.create_order(
            org.id, event_year.id, [{'product_id': registration.id}], coupon_code='NOPE'
        )
        assert order is None
        assert error == "Invalid coupon code"
        assert Order.query.count() == 0

    def test_deposit_amount(self, shop, factory):
        org, event_year, *_ = shop
        product = factory.product(
            event_year, name='Cabana', type=ProductType.SERVICES, price='800.00',
            requires_deposit=True, deposit_amount=Decimal('200.00'),
        )

        order, error = OrderService.create_order(org.id, event_year.id, [{'product_id': product.id, 'quantity': 2}])

        assert error is None
        assert order.meta['deposit_amount'] == 400.0

    def test_item_errors(self, shop):
        org, event_year, _, registration, _ = shop

        assert OrderService.create_order(org.id, event_year.id, []) == (
            None, "Order must contain at least one item"
        )
        assert OrderService.create_order(org.id, event_year.id, [{'product_id': registration.id, 'quantity': 0}]) == (
            None, "Quantity must be at least 1"
        )
        assert OrderService.create_order(org.id, event_year.id, [{'product_id': 'missing'}]) == (
            None, "Product is not available"
        )

    def test_max_quantity_per_org(self, shop, factory):
        org, event_year, *_ = shop
        product = factory.product(event_year, name='VIP Pass', price='100.00', max_quantity_per_org=1)
        OrderService.create_order(org.id, event_year.id, [{'product_id': product.id}])

        assert OrderService.create_order(org.id, event_year.id, [{'product_id': product.id}]) == (
            None, "Maximum of 1 VIP Pass per organization (already ordered: 1)"
        )

    def test_inventory(self, shop, factory):
        org, event_year, *_ = shop
        product = factory.product(event_year, name='Cooler', type=ProductType.EQUIPMENT, price='20.00', total_inventory=3)

        assert OrderService.create_order(org.id, event_year.id, [{'product_id': product.id, 'quantity': 4}]) == (
            None, "Only 3 Cooler remaining"
        )

    def test_tent_limit(self, shop):
        org, event_year, _, _, tent = shop

        assert OrderService.create_order(org.id, event_year.id, [{'product_id': tent.id, 'quantity': 3}]) == (
            None, "Organization would exceed 2-tent limit (current: 0, requested: 3)"
        )


class TestPaymentsAndFulfillment:

    def test_deposit_then_balance(self, shop):
        order = _order(shop)

        payment, error = OrderService.record_payment(order.id, '1000')
        assert error is None
        assert payment.type == PaymentType.DEPOSIT_PAYMENT

        result, error = OrderService.process_payment_completion(order.id)
        assert error is None
        assert result['status'] == 'partial_payment'
        assert result['balance_owed'] == 2000.0
        assert result['order_fulfilled'] is True
        assert result['fulfillment']['created_teams'] == ['Acme Corp Team 1', 'Acme Corp Team 2']
        assert order.invoices[0].status == InvoiceStatus.PARTIAL

        payment, _ = OrderService.record_payment(order.id, '2000')
        assert payment.type == PaymentType.BALANCE_PAYMENT

        result, error = OrderService.process_payment_completion(order.id)
        assert error is None
        assert result['status'] == 'paid'
        assert result['total_paid'] == 3000.0
        assert result['order_fulfilled'] is False
        assert order.invoices[0].status == InvoiceStatus.PAID
        assert CompanyTeam.query.count() == 2

    def test_record_payment_is_idempotent_per_intent(self, shop):
        db.session.add(Coupon(code='TENOFF', discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('10')))
        db.session.commit()
        order = _order(shop, coupon_code='TENOFF')

        first, _ = OrderService.record_payment(order.id, '100', payment_intent_id='pi_1')
        again, _ = OrderService.record_payment(order.id, '100', payment_intent_id='pi_1')
        OrderService.record_payment(order.id, '100', payment_intent_id='pi_2')

        assert first.id == again.id
        assert OrderPayment.query.count() == 2
        assert Coupon.query.filter_by(code='TENOFF').one().current_uses == 1

    def test_record_payment_errors(self, shop):
        order = _order(shop)

        assert OrderService.record_payment(order.id, 'abc') == (None, "Invalid payment amount")
        assert OrderService.record_payment(order.id, '-5') == (None, "Payment amount must be greater than zero")
        assert OrderService.record_payment('missing', '5') == (None, "Order not found")

        order.status = OrderStatus.CANCELLED
        db.session.commit()
        assert OrderService.record_payment(order.id, '5') == (None, "Cannot record a payment on a cancelled order")

    def test_fulfill_order_once(self, shop):
        order = _order(shop, quantity=1)

        assert OrderService.fulfill_order(order.id) == (
            None, "Order must have at least one payment before fulfillment"
        )

        order.status = OrderStatus.CONFIRMED
        db.session.commit()
        result, error = OrderService.fulfill_order(order.id)

        assert error is None
        assert result['created_teams'] == ['Acme Corp Team 1']
        assert order.status == OrderStatus.FULFILLED
        assert OrderService.fulfill_order(order.id) == (None, "Order has already been fulfilled")

    def test_fulfill_tracks_tents(self, shop):
        org, event_year, _, _, tent = shop
        order, _ = OrderService.create_order(org.id, event_year.id, [{'product_id': tent.id, 'quantity': 2}])
        order.status = OrderStatus.CONFIRMED
        db.session.commit()

        result, error = OrderService.fulfill_order(order.id)

        assert error is None
        assert result['tracked_tents'] == 2
        assert TentPurchaseTracking.query.filter_by(org_id=org.id).one().tent_count == 2

        assert OrderService.create_order(org.id, event_year.id, [{'product_id': tent.id}]) == (
            None, "Organization would exceed 2-tent limit (current: 2, requested: 1)"
        )


class TestCleanupAbandonedOrders:

    def test_only_stale_unpaid_orders(self, shop, factory):
        org, *_ = shop
        stale = _order(shop, quantity=1)
        stale.created_at = utcnow() - timedelta(hours=48)
        _order(shop, quantity=1)
        sponsorship, _ = SponsorshipService.create_sponsorship(org.id, '500', None, factory.super_admin())
        sponsorship.created_at = utcnow() - timedelta(hours=48)
        db.session.commit()
        stale_number = stale.order_number

        result, error = OrderService.cleanup_abandoned_orders(older_than_hours=24)
        assert error is None
        assert result['found'] == 1
        assert result['dry_run'] is True
        assert result['orders'] == [stale_number]
        assert Order.query.count() == 3

        result, _ = OrderService.cleanup_abandoned_orders(older_than_hours=24, execute=True)
        assert result['deleted'] == 1
        assert Order.query.filter_by(order_number=stale_number).first() is None
        assert Order.query.count() == 2

    def test_rejects_bad_window(self, shop):
        assert OrderService.cleanup_abandoned_orders(older_than_hours=0) == (
            None, "older_than_hours must be at least 1"
        )


class TestPaymentGateway:

    def test_create_payment_intent(self, shop):
        order = _order(shop)
        response = Mock(status_code=200)
        response.json.return_value = {'id': 'pi_123', 'client_secret': 'pi_123_secret'}

        with patch('sportsfest.services.payments.requests.post', return_value=response) as post:
            intent = PaymentGateway().create_payment_intent(order, amount='1000', payment_method_types=['card'])

        assert intent['id'] == 'pi_123'
        assert order.payment_intent_id == 'pi_123'
        url = post.call_args.args[0]
        kwargs = post.call_args.kwargs
        assert url == 'https://payments.test/v1/payment_intents'
        assert kwargs['data']['amount'] == 100000
        assert kwargs['data']['metadata[order_id]'] == order.id
        assert kwargs['data']['payment_method_types[0]'] == 'card'
        assert kwargs['headers']['Authorization'] == 'Bearer sk_test_123'

    def test_create_payment_intent_errors(self, shop):
        order = _order(shop)

        with pytest.raises(PaymentGatewayError, match="exceeds balance"):
            PaymentGateway().create_payment_intent(order, amount='5000')

        with pytest.raises(PaymentGatewayError, match="not configured"):
            PaymentGateway(config={}).create_payment_intent(order)

        declined = Mock(status_code=402, text='card_declined')
        with patch('sportsfest.services.payments.requests.post', return_value=declined):
            with pytest.raises(PaymentGatewayError, match="HTTP 402"):
                PaymentGateway().create_payment_intent(order)

    def test_verify_webhook(self, ctx):
        payload = b'{"type": "payment_intent.succeeded"}'
        signature = hmac.new(b'whsec_test', payload, hashlib.sha256).hexdigest()
        gateway = PaymentGateway()

        assert gateway.verify_webhook(payload, signature) is True
        assert gateway.verify_webhook(payload, 'bad') is False
        assert gateway.verify_webhook(payload, None) is False


def _event(event_type, order, amount_cents, intent_id='pi_123', **extra):
    intent = {
        'id': intent_id,
        'amount': amount_cents,
        'status': 'succeeded',
        'payment_method_types': ['card'],
        'metadata': {'order_id': order.id},
    }
    intent.update(extra)
    return {'type': event_type, 'data': {'object': intent}}


class TestWebhooks:

    def test_full_payment(self, shop):
        order = _order(shop)

        result, error = handle_webhook_event(_event('payment_intent.succeeded', order, 300000))

        assert error is None
        assert result['status'] == 'fully_paid'
        assert result['fulfillment']['created_teams'] == ['Acme Corp Team 1', 'Acme Corp Team 2']
        assert order.balance_owed == Decimal('0.00')
        payment = db.session.get(OrderPayment, result['payment_id'])
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.amount == Decimal('3000.00')
        assert order.invoices[0].status == InvoiceStatus.PAID
        # Owner is also the order's user
        assert EmailMessage.query.filter_by(template_key='purchase_confirmation').count() == 1

        replay, error = handle_webhook_event(_event('payment_intent.succeeded', order, 300000))
        assert error is None
        assert replay == {'skipped': 'order already fully_paid'}

    def test_deposit_payment(self, shop):
        order = _order(shop)

        result, _ = handle_webhook_event(_event('payment_intent.succeeded', order, 100000))

        assert result['status'] == 'deposit_paid'
        assert order.balance_owed == Decimal('2000.00')
        assert order.invoices[0].status == InvoiceStatus.PARTIAL

    def test_skips_unknown_orders(self, ctx):
        event = {'type': 'payment_intent.succeeded', 'data': {'object': {'id': 'pi_x', 'metadata': {}}}}
        assert handle_webhook_event(event) == ({'skipped': 'no order_id in metadata'}, None)

        event['data']['object']['metadata'] = {'order_id': 'missing'}
        assert handle_webhook_event(event) == ({'skipped': 'order not found'}, None)

        assert handle_webhook_event({'type': 'charge.refunded', 'data': {}}) == (
            {'skipped': 'unhandled event charge.refunded'}, None
        )

    def test_failed_payment_reverts_processing_order(self, shop):
        order = _order(shop)
        order.status = OrderStatus.PAYMENT_PROCESSING
        db.session.commit()

        result, error = handle_webhook_event(_event(
            'payment_intent.payment_failed', order, 300000,
            last_payment_error={'message': 'Your card was declined.'},
        ))

        assert error is None
        assert result == {'order_id': order.id, 'status': 'pending', 'reverted': True}
        failed = OrderPayment.query.filter_by(order_id=order.id).one()
        assert failed.status == PaymentStatus.FAILED
        assert failed.payment_intent_id is None
        assert failed.meta['payment_intent_id'] == 'pi_123'
        assert failed.failure_reason == 'Your card was declined.'
        assert order.meta['last_payment_failure']['error'] == 'Your card was declined.'

        # The same intent can still succeed afterwards
        result, _ = handle_webhook_event(_event('payment_intent.succeeded', order, 300000))
        assert result['status'] == 'fully_paid'

    def test_bank_payment_waives_sponsorship_fee(self, shop, factory):
        org, *_ = shop
        order, _ = SponsorshipService.create_sponsorship(org.id, '1000', None, factory.super_admin())

        result, error = handle_webhook_event(_event(
            'payment_intent.succeeded', order, 100000,
            payment_method_types=['us_bank_account'],
            metadata={
                'order_id': order.id,
                'payment_type': 'sponsorship',
                'sponsorship_payment_method': 'us_bank_account',
                'sponsorship_base_amount': '1000.0',
            },
        ))

        assert error is None
        assert result['status'] == 'fully_paid'
        assert order.total_amount == Decimal('1000.00')
        assert order.meta['sponsorship']['processing_fee_waived'] is True
        assert order.meta['sponsorship']['original_total_with_fee'] == 1029.3
        assert order.invoices[0].status == InvoiceStatus.PAID
