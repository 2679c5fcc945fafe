"""Sponsorship invoices created by super admins for an organization."""
from __future__ import annotations

from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from flask import current_app

from sportsfest.extensions import db
from sportsfest.models import (
    InvoiceStatus,
    Order,
    OrderInvoice,
    OrderStatus,
    Organization,
    User,
    UserRole,
)
from sportsfest.security import is_super_admin
from sportsfest.services.audit import log_admin_action
from sportsfest.services.email import send_sponsorship_invoice_email
from sportsfest.services.event_years import EventYearService
from sportsfest.services.orders import generate_reference
from sportsfest.services.timeutils import today, utcnow

CENT = Decimal('0.01')
DEFAULT_FEE_RATE = Decimal('0.029')
DEFAULT_FEE_FLAT = Decimal('0.30')
MIN_SPONSORSHIP_AMOUNT = Decimal('1')
MAX_SPONSORSHIP_AMOUNT = Decimal('1000000')
MAX_DESCRIPTION_LENGTH = 500

HAS_PAYMENTS = "Cannot edit a sponsorship that has received payments"


def round_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_sponsorship_amounts(
    base_amount: Decimal | float | str,
    rate: Decimal | None = None,
    flat: Decimal | None = None,
) -> dict[str, Decimal]:
    """Pass the card processing fee (2.9% + $0.30 by default) on to the sponsor."""
    base = Decimal(str(base_amount))
    rate = DEFAULT_FEE_RATE if rate is None else Decimal(str(rate))
    flat = DEFAULT_FEE_FLAT if flat is None else Decimal(str(flat))
    fee = round_cents(base * rate + flat)
    return {
        'base_amount': round_cents(base),
        'processing_fee': fee,
        'total_amount': round_cents(base + fee),
    }


def _configured_amounts(base_amount: Decimal) -> dict[str, Decimal]:
    return calculate_sponsorship_amounts(
        base_amount,
        rate=current_app.config.get('SPONSORSHIP_FEE_RATE'),
        flat=current_app.config.get('SPONSORSHIP_FEE_FLAT'),
    )


def validate_sponsorship_input(base_amount: Any, description: str | None) -> tuple[Decimal | None, str | None]:
    try:
        base = Decimal(str(base_amount))
    except (InvalidOperation, TypeError, ValueError):
        return None, "Amount must be a number"
    if not base.is_finite():
        return None, "Amount must be a number"
    if base < MIN_SPONSORSHIP_AMOUNT:
        return None, "Amount must be at least $1"
    if base > MAX_SPONSORSHIP_AMOUNT:
        return None, "Amount cannot exceed $1,000,000"
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        return None, "Description must be less than 500 characters"
    return base, None


def _audit_entry(user: User, action: str, **extra: Any) -> dict[str, Any]:
    entry = {
        'action': action,
        'user_id': user.id,
        'user_name': user.name or user.email or 'Unknown',
        'timestamp': utcnow().isoformat(),
    }
    entry.update(extra)
    return entry


def _org_admins(org_id: str) -> list[User]:
    return (
        User.query
        .filter(
            User.org_id == org_id,
            User.role.in_([UserRole.OWNER, UserRole.ADMIN]),
            User.active.is_(True),
        )
        .all()
    )


def _payment_url(organization: Organization, order: Order) -> str:
    base_url = current_app.config.get('BASE_URL', 'http://localhost:5000').rstrip('/')
    return f"{base_url}/orgs/{organization.slug}/orders?openOrder={order.id}"


def _notify_admins(order: Order, invoice: OrderInvoice) -> int:
    """Email every organization admin; returns how many sends succeeded."""
    organization = order.organization
    sponsorship = (order.meta or {}).get('sponsorship', {})
    sent = 0
    for admin in _org_admins(order.org_id):
        if send_sponsorship_invoice_email(
            recipient=admin.email,
            recipient_name=admin.name,
            organization_name=organization.name,
            invoice_number=invoice.invoice_number,
            base_amount=sponsorship.get('base_amount', 0),
            processing_fee=sponsorship.get('processing_fee', 0),
            total_amount=invoice.total_amount,
            event_year_name=order.event_year.name if order.event_year else 'Current Event',
            payment_url=_payment_url(organization, order),
            description=sponsorship.get('description'),
            org_id=order.org_id,
        ):
            sent += 1
    return sent


def _sponsorship_with_invoice(order_id: str) -> tuple[Order | None, OrderInvoice | None, str | None]:
    order = db.session.get(Order, order_id)
    if order is None:
        return None, None, "Sponsorship not found"
    if not order.is_sponsorship:
        return None, None, "This order is not a sponsorship"
    invoice = order.invoices[0] if order.invoices else None
    if invoice is None:
        return None, None, "Invoice not found for this sponsorship"
    return order, invoice, None


class SponsorshipService:
    """Create and maintain sponsorship orders and their invoices."""

    @staticmethod
    def create_sponsorship(
        org_id: str,
        base_amount: Any,
        description: str | None,
        user: User,
    ) -> tuple[Order | None, str | None]:
        try:
            if not is_super_admin(user):
                return None, "Unauthorized: Only super admins can create sponsorship invoices"

            base, error = validate_sponsorship_input(base_amount, description)
            if error:
                return None, error

            event_year = EventYearService.get_active()
            if event_year is None:
                return None, "No active event year found"

            organization = db.session.get(Organization, org_id)
            if organization is None:
                return None, "Organization not found"

            amounts = _configured_amounts(base)
            total = amounts['total_amount']

            order = Order(
                org_id=organization.id,
                event_year_id=event_year.id,
                user_id=user.id,
                order_number=generate_reference('SPO'),
                status=OrderStatus.PENDING,
                total_amount=total,
                balance_owed=total,
                is_sponsorship=True,
                is_manually_created=True,
                meta={
                    'sponsorship': {
                        'base_amount': float(amounts['base_amount']),
                        'processing_fee': float(amounts['processing_fee']),
                        'description': description,
                        'audit_trail': [_audit_entry(user, 'created')],
                    },
                },
            )
            invoice = OrderInvoice(
                order=order,
                invoice_number=generate_reference('SPO-INV'),
                total_amount=total,
                paid_amount=Decimal('0.00'),
                balance_owed=total,
                status=InvoiceStatus.SENT,
                sent_at=utcnow(),
                due_date=today() + timedelta(days=int(current_app.config.get('INVOICE_DUE_DAYS', 30))),
                notes=description,
                invoice_data={
                    'is_sponsorship': True,
                    'base_amount': float(amounts['base_amount']),
                    'processing_fee': float(amounts['processing_fee']),
                },
            )
            db.session.add(order)
            db.session.add(invoice)
            db.session.commit()

            log_admin_action(user, 'sponsorship_created', 'order', order.id,
                             metadata={'total_amount': float(total)}, org_id=organization.id)
            _notify_admins(order, invoice)
            return order, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to create sponsorship invoice: {e}")
            return None, "Failed to create sponsorship invoice"

    @staticmethod
    def update_sponsorship(
        order_id: str,
        base_amount: Any,
        description: str | None,
        user: User,
    ) -> tuple[Order | None, str | None]:
        """Re-price an unpaid sponsorship and re-send the invoice."""
        try:
            if not is_super_admin(user):
                return None, "Unauthorized: Only super admins can update sponsorships"

            base, error = validate_sponsorship_input(base_amount, description)
            if error:
                return None, error

            order, invoice, error = _sponsorship_with_invoice(order_id)
            if error:
                return None, error
            if invoice.paid_amount > 0:
                return None, HAS_PAYMENTS
            if invoice.status in (InvoiceStatus.PAID, InvoiceStatus.PARTIAL):
                return None, "Cannot edit a paid or partially paid sponsorship"

            amounts = _configured_amounts(base)
            total = amounts['total_amount']
            previous = dict((order.meta or {}).get('sponsorship', {}))

            changes = {}
            if Decimal(str(previous.get('base_amount', 0))) != amounts['base_amount']:
                changes['base_amount'] = {'from': previous.get('base_amount', 0), 'to': float(amounts['base_amount'])}
            if (previous.get('description') or None) != (description or None):
                changes['description'] = {'from': previous.get('description'), 'to': description or None}

            audit_trail = list(previous.get('audit_trail', []))
            audit_trail.append(_audit_entry(user, 'updated', changes=changes))

            meta = dict(order.meta or {})
            meta['sponsorship'] = {
                'base_amount': float(amounts['base_amount']),
                'processing_fee': float(amounts['processing_fee']),
                'description': description,
                'audit_trail': audit_trail,
            }
            order.meta = meta
            order.total_amount = total
            order.balance_owed = total

            invoice.total_amount = total
            invoice.balance_owed = total
            invoice.notes = description
            invoice.sent_at = utcnow()
            invoice.invoice_data = {
                **(invoice.invoice_data or {}),
                'base_amount': float(amounts['base_amount']),
                'processing_fee': float(amounts['processing_fee']),
            }
            db.session.commit()

            log_admin_action(user, 'sponsorship_updated', 'order', order.id,
                             metadata={'changes': changes}, org_id=order.org_id)
            _notify_admins(order, invoice)
            return order, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to update sponsorship: {e}")
            return None, "Failed to update sponsorship"

    @staticmethod
    def delete_sponsorship(order_id: str, user: User, reason: str | None = None) -> tuple[str | None, str | None]:
        """Delete an unpaid sponsorship; one that has payments is cancelled instead.

        Returns ``'deleted'`` or ``'cancelled'``.
        """
        try:
            if not is_super_admin(user):
                return None, "Unauthorized: Only super admins can delete sponsorships"
            if reason and len(reason) > MAX_DESCRIPTION_LENGTH:
                return None, "Reason must be less than 500 characters"

            order, invoice, error = _sponsorship_with_invoice(order_id)
            if error:
                return None, error

            org_id = order.org_id
            if invoice.paid_amount > 0:
                reason = reason or 'Cancelled by admin'
                sponsorship = dict((order.meta or {}).get('sponsorship', {}))
                sponsorship['audit_trail'] = list(sponsorship.get('audit_trail', [])) + [
                    _audit_entry(user, 'cancelled', reason=reason)
                ]
                order.meta = {
                    **(order.meta or {}),
                    'sponsorship': sponsorship,
                    'cancelled_at': utcnow().isoformat(),
                    'cancelled_by': user.id,
                    'cancellation_reason': reason,
                }
                order.status = OrderStatus.CANCELLED
                invoice.status = InvoiceStatus.CANCELLED
                action = 'cancelled'
            else:
                db.session.delete(order)
                action = 'deleted'

            db.session.commit()
            log_admin_action(user, f'sponsorship_{action}', 'order', order_id, org_id=org_id)
            return action, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to delete sponsorship: {e}")
            return None, "Failed to delete sponsorship"

    @staticmethod
    def list_sponsorships(event_year_id: str | None = None) -> list[Order]:
        try:
            if event_year_id is None:
                event_year = EventYearService.get_active()
                if event_year is None:
                    return []
                event_year_id = event_year.id

            return (
                Order.query
                .filter_by(is_sponsorship=True, event_year_id=event_year_id)
                .order_by(Order.created_at.desc())
                .all()
            )
        except Exception as e:
            current_app.logger.error(f"Failed to list sponsorships: {e}")
            return []

    @staticmethod
    def resend_sponsorship_email(order_id: str, user: User) -> tuple[int | None, str | None]:
        try:
            if not is_super_admin(user):
                return None, "Unauthorized: Only super admins can resend sponsorship emails"

            order, invoice, error = _sponsorship_with_invoice(order_id)
            if error:
                return None, "Invoice not found" if error.startswith("Invoice") else error
            if not _org_admins(order.org_id):
                return None, "No organization admins found to send email to"

            sent = _notify_admins(order, invoice)
            if sent == 0:
                return None, "Failed to send emails to any admins"

            invoice.sent_at = utcnow()
            db.session.commit()
            return sent, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to resend sponsorship email: {e}")
            return None, "Failed to resend sponsorship email"


def serialize_sponsorship(order: Order) -> dict[str, Any]:
    sponsorship = (order.meta or {}).get('sponsorship', {})
    invoice = order.invoices[0] if order.invoices else None
    return {
        'order_id': order.id,
        'order_number': order.order_number,
        'organization_id': order.org_id,
        'organization_name': order.organization.name if order.organization else None,
        'status': order.status.value,
        'base_amount': sponsorship.get('base_amount'),
        'processing_fee': sponsorship.get('processing_fee'),
        'description': sponsorship.get('description'),
        'total_amount': float(order.total_amount),
        'balance_owed': float(order.balance_owed),
        'invoice_number': invoice.invoice_number if invoice else None,
        'invoice_status': invoice.status.value if invoice else None,
        'audit_trail': sponsorship.get('audit_trail', []),
        'created_at': order.created_at.isoformat() if order.created_at else None,
    }


__all__ = [
    'SponsorshipService',
    'calculate_sponsorship_amounts',
    'validate_sponsorship_input',
    'round_cents',
    'serialize_sponsorship',
]
