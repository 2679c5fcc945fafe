"""Platform administration endpoints (super admins only)."""

from __future__ import annotations

from datetime import date

from flask import Blueprint, Response, jsonify, request
from flask_login import current_user

from sportsfest.extensions import limiter
from sportsfest.forms.admin import EventYearForm, SponsorshipForm, SuperAdminForm, form_errors
from sportsfest.models import InvoiceStatus
from sportsfest.security import super_admin_required
from sportsfest.security.config import admin_rate_limit
from sportsfest.services import analytics, super_admins
from sportsfest.services.coupons import CouponService, serialize_coupon
from sportsfest.services.event_years import EventYearService, serialize_event_year
from sportsfest.services.exports import export_invoices_csv, export_payments_csv
from sportsfest.services.invoices import (
    get_invoice_details,
    list_invoices,
    record_invoice_payment,
    serialize_invoice,
)
from sportsfest.services.orders import OrderService, list_payments, serialize_payment
from sportsfest.services.reports import INVOICE_NOT_FOUND, invoice_list_pdf, invoice_pdf, payments_pdf
from sportsfest.services.sponsorships import SponsorshipService, serialize_sponsorship

admin_bp = Blueprint('admin', __name__)

EVENT_YEAR_DATE_FIELDS = (
    'event_start_date', 'event_end_date', 'registration_open_date', 'registration_close_date',
)


limiter.limit(admin_rate_limit)(admin_bp)


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _error(message: str, status: int = 400):
    return jsonify({'success': False, 'error': message}), status


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )


def _pdf_response(content: bytes, filename: str) -> Response:
    return Response(
        content,
        mimetype='application/pdf',
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )


# Coupons --------------------------------------------------------------------

@admin_bp.route('/coupons', methods=['GET'])
@super_admin_required
def list_coupons():
    coupons = CouponService().list_coupons()
    return jsonify({'items': [serialize_coupon(c) for c in coupons]})


@admin_bp.route('/coupons', methods=['POST'])
@super_admin_required
def create_coupon():
    coupon, error = CouponService().create_coupon(_payload(), current_user)
    if error:
        return _error(error)
    return jsonify({'success': True, 'coupon': serialize_coupon(coupon)}), 201


@admin_bp.route('/coupons/<coupon_id>', methods=['PUT', 'PATCH'])
@super_admin_required
def update_coupon(coupon_id):
    service = CouponService()
    ok, error = service.update_coupon(coupon_id, _payload(), current_user)
    if not ok:
        return _error(error, 404 if error == "Coupon not found" else 400)
    return jsonify({'success': True, 'coupon': serialize_coupon(service.get_by_id(coupon_id))})


@admin_bp.route('/coupons/<coupon_id>/toggle', methods=['POST'])
@super_admin_required
def toggle_coupon(coupon_id):
    is_active, error = CouponService().toggle_coupon_status(coupon_id, current_user)
    if error:
        return _error(error, 404 if error == "Coupon not found" else 400)
    return jsonify({'success': True, 'is_active': is_active})


@admin_bp.route('/coupons/<coupon_id>', methods=['DELETE'])
@super_admin_required
def delete_coupon(coupon_id):
    ok, error = CouponService().delete_coupon(coupon_id, current_user)
    if not ok:
        return _error(error, 404 if error == "Coupon not found" else 400)
    return jsonify({'success': True})


# Invoices and payments ------------------------------------------------------

@admin_bp.route('/invoices', methods=['GET'])
@super_admin_required
def invoices():
    status = request.args.get('status')
    if status and status not in {s.value for s in InvoiceStatus}:
        return _error(f"Unknown invoice status: {status}")
    items = list_invoices(request.args.get('event_year_id'), status)
    return jsonify({'items': [serialize_invoice(invoice) for invoice in items]})


@admin_bp.route('/invoices/<invoice_id>', methods=['GET'])
@super_admin_required
def invoice_detail(invoice_id):
    invoice = get_invoice_details(invoice_id)
    if invoice is None:
        return _error("Invoice not found", 404)
    return jsonify(serialize_invoice(invoice, include_items=True))


@admin_bp.route('/invoices/<invoice_id>/invoice.pdf', methods=['GET'])
@super_admin_required
def invoice_report(invoice_id):
    content, error = invoice_pdf(invoice_id)
    if error:
        return _error(error, 404 if error == INVOICE_NOT_FOUND else 500)
    return _pdf_response(content, f'invoice_{invoice_id}.pdf')


@admin_bp.route('/invoices/<invoice_id>/payments', methods=['POST'])
@super_admin_required
def invoice_payment(invoice_id):
    amount = _payload().get('amount')
    if amount is None:
        return _error("amount is required")
    invoice, error = record_invoice_payment(invoice_id, amount)
    if error:
        return _error(error, 404 if error == "Invoice not found" else 400)
    return jsonify({'success': True, 'invoice': serialize_invoice(invoice)})


@admin_bp.route('/payments', methods=['GET'])
@super_admin_required
def payments():
    items = list_payments(request.args.get('event_year_id'), request.args.get('status'))
    return jsonify({'items': [serialize_payment(payment) for payment in items]})


# Sponsorships ---------------------------------------------------------------

@admin_bp.route('/sponsorships', methods=['GET'])
@super_admin_required
def list_sponsorships():
    orders = SponsorshipService.list_sponsorships(request.args.get('event_year_id'))
    return jsonify({'items': [serialize_sponsorship(order) for order in orders]})


@admin_bp.route('/sponsorships', methods=['POST'])
@super_admin_required
def create_sponsorship():
    form = SponsorshipForm()
    if not form.validate_on_submit():
        return _error(form_errors(form))
    if not form.org_id.data:
        return _error("Organization is required")

    order, error = SponsorshipService.create_sponsorship(
        form.org_id.data, form.base_amount.data, form.description.data or None, current_user
    )
    if error:
        return _error(error)
    return jsonify({'success': True, 'sponsorship': serialize_sponsorship(order)}), 201


@admin_bp.route('/sponsorships/<order_id>', methods=['PUT', 'PATCH'])
@super_admin_required
def update_sponsorship(order_id):
    form = SponsorshipForm()
    if not form.validate_on_submit():
        return _error(form_errors(form))

    order, error = SponsorshipService.update_sponsorship(
        order_id, form.base_amount.data, form.description.data or None, current_user
    )
    if error:
        return _error(error, 404 if error == "Sponsorship not found" else 400)
    return jsonify({'success': True, 'sponsorship': serialize_sponsorship(order)})


@admin_bp.route('/sponsorships/<order_id>', methods=['DELETE'])
@super_admin_required
def delete_sponsorship(order_id):
    action, error = SponsorshipService.delete_sponsorship(order_id, current_user, _payload().get('reason'))
    if error:
        return _error(error, 404 if error == "Sponsorship not found" else 400)
    return jsonify({'success': True, 'action': action})


@admin_bp.route('/sponsorships/<order_id>/resend', methods=['POST'])
@super_admin_required
def resend_sponsorship(order_id):
    sent, error = SponsorshipService.resend_sponsorship_email(order_id, current_user)
    if error:
        return _error(error, 404 if error == "Sponsorship not found" else 400)
    return jsonify({'success': True, 'sent': sent})


# Event years ----------------------------------------------------------------

def _event_year_updates(data: dict) -> tuple[dict | None, str | None]:
    """Parse a partial event year payload."""
    updates = {}
    for key in ('year', 'name', 'location', 'description', 'is_active', *EVENT_YEAR_DATE_FIELDS):
        if key not in data:
            continue
        value = data[key]
        if key in EVENT_YEAR_DATE_FIELDS:
            if not value:
                updates[key] = None
                continue
            try:
                value = date.fromisoformat(value)
            except (TypeError, ValueError):
                return None, f"Invalid date for {key.replace('_', ' ')}"
        elif key == 'year':
            try:
                value = int(value)
            except (TypeError, ValueError):
                return None, "Year must be a number"
        elif key == 'is_active':
            value = bool(value)
        updates[key] = value
    return updates, None


@admin_bp.route('/event-years', methods=['GET'])
@super_admin_required
def list_event_years():
    years = EventYearService.list_event_years()
    return jsonify({'items': [serialize_event_year(year) for year in years]})


@admin_bp.route('/event-years', methods=['POST'])
@super_admin_required
def create_event_year():
    form = EventYearForm()
    if not form.validate_on_submit():
        return _error(form_errors(form))

    event_year, error = EventYearService.create_event_year(form.to_data(), current_user)
    if error:
        return _error(error)
    return jsonify({'success': True, 'event_year': serialize_event_year(event_year)}), 201


@admin_bp.route('/event-years/<event_year_id>', methods=['PUT', 'PATCH'])
@super_admin_required
def update_event_year(event_year_id):
    updates, error = _event_year_updates(_payload())
    if error:
        return _error(error)
    event_year, error = EventYearService.update_event_year(event_year_id, updates, current_user)
    if error:
        return _error(error, 404 if error == "Event year not found" else 400)
    return jsonify({'success': True, 'event_year': serialize_event_year(event_year)})


@admin_bp.route('/event-years/<event_year_id>/activate', methods=['POST'])
@super_admin_required
def activate_event_year(event_year_id):
    event_year, error = EventYearService.set_active(event_year_id, current_user)
    if error:
        return _error(error, 404 if error == "Event year not found" else 400)
    return jsonify({'success': True, 'event_year': serialize_event_year(event_year)})


@admin_bp.route('/event-years/<event_year_id>', methods=['DELETE'])
@super_admin_required
def delete_event_year(event_year_id):
    ok, error = EventYearService.soft_delete(event_year_id, current_user)
    if not ok:
        return _error(error, 404 if error == "Event year not found" else 400)
    return jsonify({'success': True})


# Revenue --------------------------------------------------------------------

@admin_bp.route('/revenue/trends', methods=['GET'])
@super_admin_required
def revenue_trends():
    period = request.args.get('period', 'daily')
    if period not in analytics.PERIODS:
        return _error(f"Invalid period: {period}. Use daily, weekly or monthly")
    return jsonify(analytics.get_revenue_trends(period))


@admin_bp.route('/revenue/stats', methods=['GET'])
@super_admin_required
def revenue_stats():
    return jsonify(analytics.get_revenue_stats())


# Super admins ---------------------------------------------------------------

@admin_bp.route('/super-admins', methods=['GET'])
@super_admin_required
def list_super_admins():
    users = super_admins.list_super_admins()
    return jsonify({'items': [super_admins.serialize_super_admin(user) for user in users]})


@admin_bp.route('/super-admins', methods=['POST'])
@super_admin_required
def create_super_admin():
    form = SuperAdminForm()
    if not form.validate_on_submit():
        return _error(form_errors(form))

    user, error = super_admins.create_super_admin(
        form.name.data, form.email.data, current_user, send_invite=form.send_invite.data
    )
    if error:
        return _error(error)
    return jsonify({'success': True, 'user': super_admins.serialize_super_admin(user)}), 201


@admin_bp.route('/super-admins/<user_id>/resend', methods=['POST'])
@super_admin_required
def resend_super_admin_invite(user_id):
    email, error = super_admins.resend_invite(user_id, current_user)
    if error:
        return _error(error, 404 if error == "User not found" else 400)
    return jsonify({'success': True, 'email': email})


@admin_bp.route('/super-admins/<user_id>/revoke', methods=['POST'])
@super_admin_required
def revoke_super_admin(user_id):
    ok, error = super_admins.revoke_super_admin(user_id, current_user, _payload().get('reason'))
    if not ok:
        return _error(error, 404 if error == "User not found" else 400)
    return jsonify({'success': True})


# Orders and exports ---------------------------------------------------------

@admin_bp.route('/orders/cleanup', methods=['POST'])
@super_admin_required
def cleanup_orders():
    data = _payload()
    try:
        hours = int(data.get('older_than_hours', 24))
    except (TypeError, ValueError):
        return _error("older_than_hours must be a number")

    result, error = OrderService.cleanup_abandoned_orders(
        older_than_hours=hours,
        execute=bool(data.get('execute')),
        event_year_id=data.get('event_year_id'),
    )
    if error:
        return _error(error)
    return jsonify({'success': True, **result})


@admin_bp.route('/exports/invoices.csv', methods=['GET'])
@super_admin_required
def export_invoices():
    content = export_invoices_csv(request.args.get('event_year_id'), request.args.get('status'))
    return _csv_response(content, 'invoices.csv')


@admin_bp.route('/exports/payments.csv', methods=['GET'])
@super_admin_required
def export_payments():
    content = export_payments_csv(request.args.get('event_year_id'), request.args.get('status'))
    return _csv_response(content, 'payments.csv')


@admin_bp.route('/exports/invoices.pdf', methods=['GET'])
@super_admin_required
def export_invoices_pdf():
    status = request.args.get('status')
    if status and status not in {s.value for s in InvoiceStatus}:
        return _error(f"Unknown invoice status: {status}")
    content, error = invoice_list_pdf(request.args.get('event_year_id'), status)
    if error:
        return _error(error, 500)
    return _pdf_response(content, 'invoices.pdf')


@admin_bp.route('/exports/payments.pdf', methods=['GET'])
@super_admin_required
def export_payments_pdf():
    content, error = payments_pdf(request.args.get('event_year_id'), request.args.get('status'))
    if error:
        return _error(error, 500)
    return _pdf_response(content, 'payments.pdf')
