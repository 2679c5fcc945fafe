"""Transactional notification emails."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flask import current_app

from sportsfest.services.emailer import EmailerError, send_email

if TYPE_CHECKING:
    from sportsfest.models import Order, User


def dispatch_email(
    to_email: str,
    subject: str,
    template_key: str,
    context: dict[str, Any],
    to_name: str | None = None,
    org_id: str | None = None,
) -> bool:
    """Send now, or hand off to the RQ email queue when it is enabled."""
    try:
        if current_app.config.get('EMAIL_QUEUE_ENABLED'):
            from sportsfest.services.queue import get_queue_service

            get_queue_service().enqueue_email(
                to_email, subject, template_key, context, to_name=to_name, org_id=org_id
            )
            return True

        send_email(to_email, subject, template_key, context, to_name=to_name, org_id=org_id)
        return True

    except EmailerError as e:
        current_app.logger.error(f"Failed to send {template_key} email to {to_email}: {e}")
        return False
    except Exception as e:
        current_app.logger.error(f"Failed to queue {template_key} email to {to_email}: {e}")
        return False


def _money(value) -> str:
    return f"${float(value):,.2f}"


def send_sponsorship_invoice_email(
    recipient: str,
    recipient_name: str | None,
    organization_name: str,
    invoice_number: str,
    base_amount,
    processing_fee,
    total_amount,
    event_year_name: str,
    payment_url: str,
    description: str | None = None,
    org_id: str | None = None,
) -> bool:
    context = {
        'recipient_name': recipient_name or 'Team Admin',
        'organization_name': organization_name,
        'invoice_number': invoice_number,
        'base_amount': _money(base_amount),
        'processing_fee': _money(processing_fee),
        'total_amount': _money(total_amount),
        'description': description or '',
        'event_year_name': event_year_name,
        'payment_url': payment_url,
    }
    return dispatch_email(
        recipient,
        f"Sponsorship Invoice {invoice_number} - {event_year_name}",
        'sponsorship_invoice',
        context,
        to_name=recipient_name,
        org_id=org_id,
    )


def send_super_admin_invite_email(user: User, token: str, invited_by: str | None = None) -> bool:
    """Invite a new super admin to choose a password."""
    base_url = current_app.config.get('BASE_URL', 'http://localhost:5000').rstrip('/')
    context = {
        'name': user.name or user.email,
        'invited_by': invited_by or 'A SportsFest administrator',
        'setup_url': f"{base_url}/auth/setup-password/{token}",
        'expires_in_days': 7,
    }
    return dispatch_email(
        user.email,
        "You've been invited as a SportsFest super admin",
        'super_admin_invite',
        context,
        to_name=user.name,
    )


def send_purchase_confirmation_email(order: Order, recipient: str, recipient_name: str | None = None) -> bool:
    context = {
        'recipient_name': recipient_name or 'Team Admin',
        'organization_name': order.organization.name if order.organization else '',
        'order_number': order.order_number,
        'items': [
            {
                'name': item.product.name if item.product else 'Item',
                'quantity': item.quantity,
                'total': _money(item.total_price),
            }
            for item in order.items
        ],
        'discount_amount': _money(order.discount_amount or 0),
        'total_amount': _money(order.total_amount),
        'amount_paid': _money(order.total_amount - order.balance_owed),
        'balance_owed': _money(order.balance_owed),
    }
    return dispatch_email(
        recipient,
        f"Order Confirmation - {order.order_number}",
        'purchase_confirmation',
        context,
        to_name=recipient_name,
        org_id=order.org_id,
    )


def digest_recipients() -> list[str]:
    """Configured digest recipients, or every active super admin."""
    configured = current_app.config.get('DIGEST_RECIPIENTS') or []
    if configured:
        return list(configured)

    from sportsfest.models import User

    admins = User.query.filter_by(is_super_admin=True, active=True).all()
    return [admin.email for admin in admins if admin.email]


def send_daily_digest_email(stats: dict[str, Any]) -> int:
    """Send the daily digest; returns how many recipients it went to."""
    context = dict(stats)
    context['total_revenue_display'] = _money(stats.get('total_revenue', 0))
    sent = 0
    for recipient in digest_recipients():
        if dispatch_email(recipient, f"SportsFest Daily Digest - {stats.get('date', '')}", 'daily_digest', context):
            sent += 1
    return sent


__all__ = [
    'dispatch_email',
    'send_sponsorship_invoice_email',
    'send_super_admin_invite_email',
    'send_purchase_confirmation_email',
    'send_daily_digest_email',
    'digest_recipients',
]
