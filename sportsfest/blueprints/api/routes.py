"""Tenant-aware JSON API blueprint: checkout, payments and scheduled jobs."""

from __future__ import annotations

import hmac

from flask import Blueprint, Response, current_app, g, jsonify, request
from flask_login import current_user

from sportsfest.blueprints.common.tenant import tenant_required
from sportsfest.extensions import csrf, db
from sportsfest.models import Order, UserRole
from sportsfest.security import roles_required
from sportsfest.services.analytics import get_daily_digest_stats
from sportsfest.services.coupons import validate_coupon_code
from sportsfest.services.email import send_daily_digest_email
from sportsfest.services.event_years import EventYearService
from sportsfest.services.orders import OrderService, serialize_order, to_money
from sportsfest.services.payments import PaymentGateway, PaymentGatewayError, handle_webhook_event
from sportsfest.services.reports import INVOICE_NOT_FOUND, invoice_pdf

api_bp = Blueprint('api', __name__)

MANAGER_ROLES = (UserRole.OWNER, UserRole.ADMIN)


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _error(message: str, status: int = 400):
    return jsonify({'success': False, 'error': message}), status


@api_bp.route('/orders', methods=['POST'])
@tenant_required
@roles_required(*MANAGER_ROLES)
def checkout():
    """Open a pending order for the current organization."""
    data = _payload()
    event_year_id = data.get('event_year_id')
    if not event_year_id:
        event_year = EventYearService.get_active()
        if event_year is None:
            return _error("No active event year found")
        event_year_id = event_year.id

    items = data.get('items')
    if not isinstance(items, list):
        return _error("items must be a list")

    order, error = OrderService.create_order(
        g.org.id, event_year_id, items, user=current_user, coupon_code=data.get('coupon_code')
    )
    if error:
        return _error(error)
    return jsonify({'success': True, 'order': serialize_order(order)}), 201


@api_bp.route('/coupons/validate', methods=['POST'])
@tenant_required
@roles_required(*MANAGER_ROLES)
def validate_coupon():
    data = _payload()
    if not data.get('code'):
        return _error("Coupon code is required")
    try:
        order_total = to_money(data.get('order_total', 0))
    except ValueError:
        return _error("order_total must be a number")

    result, error = validate_coupon_code(data['code'], g.org.id, order_total)
    if error:
        return jsonify({'valid': False, 'error': error})

    coupon = result['coupon']
    return jsonify({
        'valid': True,
        'coupon': {
            'id': coupon.id,
            'code': coupon.code,
            'discount_type': coupon.discount_type.value,
            'discount_value': float(coupon.discount_value),
        },
        'discount_amount': float(result['discount']),
        'final_total': float(order_total - result['discount']),
    })


@api_bp.route('/payments/intent', methods=['POST'])
@tenant_required
@roles_required(*MANAGER_ROLES)
def create_payment_intent():
    data = _payload()
    order = Order.query.filter_by(id=data.get('order_id'), org_id=g.org.id).first()
    if order is None:
        return _error("Order not found", 404)

    try:
        intent = PaymentGateway().create_payment_intent(
            order,
            amount=data.get('amount'),
            payment_method_types=data.get('payment_method_types'),
        )
    except (PaymentGatewayError, ValueError) as e:
        current_app.logger.error(f"Failed to create payment intent for {order.order_number}: {e}")
        return _error(str(e))

    return jsonify({
        'success': True,
        'payment_intent_id': intent.get('id'),
        'client_secret': intent.get('client_secret'),
    })


@api_bp.route('/invoices/<invoice_id>/invoice.pdf', methods=['GET'])
@tenant_required
@roles_required(*MANAGER_ROLES)
def invoice_report(invoice_id):
    """Download one of the organization's invoices."""
    content, error = invoice_pdf(invoice_id, org_id=g.org.id)
    if error:
        return _error(error, 404 if error == INVOICE_NOT_FOUND else 500)
    return Response(
        content,
        mimetype='application/pdf',
        headers={'Content-Disposition': f'attachment; filename=invoice_{invoice_id}.pdf'},
    )


@api_bp.route('/payments/webhook', methods=['POST'])
@csrf.exempt
def payment_webhook():
    """Gateway callback; authenticated by signature, not session."""
    # Webhooks touch orders of any organization
    g.tenant_bypass = True

    payload = request.get_data()
    signature = request.headers.get('X-Signature')
    gateway = PaymentGateway()
    if not gateway.verify_webhook(payload, signature):
        current_app.logger.warning("Rejected payment webhook with invalid signature")
        return _error("Invalid signature", 400)

    event = request.get_json(silent=True)
    if not isinstance(event, dict):
        return _error("Invalid payload", 400)

    result, error = handle_webhook_event(event)
    if error:
        return _error(error, 500)
    return jsonify({'received': True, 'result': result})


@api_bp.route('/cron/daily-digest', methods=['GET'])
def daily_digest():
    """Send yesterday's activity summary to the digest recipients."""
    secret = current_app.config.get('CRON_SECRET')
    expected = f"Bearer {secret}"
    provided = request.headers.get('Authorization', '')
    if not secret or not hmac.compare_digest(provided, expected):
        return jsonify({'error': 'Unauthorized'}), 401

    try:
        stats = get_daily_digest_stats()
        sent = send_daily_digest_email(stats)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to send daily digest: {e}")
        return jsonify({'error': 'Failed to send daily digest'}), 500

    return jsonify({'success': True, 'recipients': sent, 'stats': stats})
