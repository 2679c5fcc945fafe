"""Invoice listing and payment bookkeeping."""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from flask import current_app

from sportsfest.extensions import db
from sportsfest.models import InvoiceStatus, Order, OrderInvoice
from sportsfest.services.event_years import EventYearService
from sportsfest.services.timeutils import today

ZERO = Decimal('0.00')


def derive_invoice_status(
    status: InvoiceStatus,
    balance_owed: Decimal,
    paid_amount: Decimal,
    due_date: date | None,
    as_of: date | None = None,
) -> InvoiceStatus:
    """Work out the status an invoice should show from its amounts.

    Cancelled and draft invoices keep their stored status.
    """
    if status in (InvoiceStatus.CANCELLED, InvoiceStatus.DRAFT):
        return status
    if Decimal(balance_owed) <= ZERO:
        return InvoiceStatus.PAID
    if Decimal(paid_amount) > ZERO:
        return InvoiceStatus.PARTIAL
    if due_date and due_date < (as_of or today()):
        return InvoiceStatus.OVERDUE
    return status


def effective_status(invoice: OrderInvoice, as_of: date | None = None) -> InvoiceStatus:
    return derive_invoice_status(
        invoice.status, invoice.balance_owed, invoice.paid_amount, invoice.due_date, as_of
    )


def list_invoices(
    event_year_id: str | None = None,
    status: InvoiceStatus | str | None = None,
) -> list[OrderInvoice]:
    """Invoices of one event year, newest first.

    Defaults to the active event year. ``status`` filters on the derived
    status, so an unpaid invoice past its due date matches ``overdue``.
    """
    try:
        if event_year_id is None:
            event_year = EventYearService.get_active()
            if event_year is None:
                return []
            event_year_id = event_year.id

        if isinstance(status, str):
            status = InvoiceStatus(status)

        invoices = (
            OrderInvoice.query
            .join(Order, Order.id == OrderInvoice.order_id)
            .filter(Order.event_year_id == event_year_id)
            .order_by(OrderInvoice.created_at.desc())
            .all()
        )
        if status is not None:
            invoices = [invoice for invoice in invoices if effective_status(invoice) == status]
        return invoices

    except Exception as e:
        current_app.logger.error(f"Failed to list invoices: {e}")
        return []


def get_invoice_details(invoice_id: str) -> OrderInvoice | None:
    try:
        return db.session.get(OrderInvoice, invoice_id)
    except Exception as e:
        current_app.logger.error(f"Failed to load invoice {invoice_id}: {e}")
        return None


def record_invoice_payment(invoice_id: str, amount: Decimal | float | str) -> tuple[OrderInvoice | None, str | None]:
    """Apply a payment against an invoice and refresh its status."""
    try:
        amount = Decimal(str(amount)).quantize(Decimal('0.01'))
        if amount <= ZERO:
            return None, "Payment amount must be greater than zero"

        invoice = db.session.get(OrderInvoice, invoice_id)
        if invoice is None:
            return None, "Invoice not found"
        if invoice.status == InvoiceStatus.CANCELLED:
            return None, "Cannot record a payment on a cancelled invoice"
        if amount > invoice.balance_owed:
            return None, "Payment exceeds the invoice balance"

        invoice.paid_amount = invoice.paid_amount + amount
        invoice.balance_owed = invoice.balance_owed - amount
        invoice.status = derive_invoice_status(
            InvoiceStatus.SENT if invoice.status == InvoiceStatus.DRAFT else invoice.status,
            invoice.balance_owed,
            invoice.paid_amount,
            invoice.due_date,
        )
        db.session.commit()
        return invoice, None

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to record invoice payment: {e}")
        return None, "Failed to record invoice payment"


def sync_invoices_for_order(order: Order) -> None:
    """Mirror an order's paid amount onto its invoices. Caller commits."""
    paid = order.total_amount - order.balance_owed
    for invoice in order.invoices:
        if invoice.status == InvoiceStatus.CANCELLED:
            continue
        invoice.paid_amount = min(paid, invoice.total_amount)
        invoice.balance_owed = max(ZERO, invoice.total_amount - invoice.paid_amount)
        invoice.status = effective_status(invoice)


def serialize_invoice(invoice: OrderInvoice, include_items: bool = False) -> dict[str, Any]:
    order = invoice.order
    organization = order.organization if order else None
    data = {
        'id': invoice.id,
        'invoice_number': invoice.invoice_number,
        'order_id': invoice.order_id,
        'order_number': order.order_number if order else None,
        'organization_id': order.org_id if order else None,
        'organization_name': organization.name if organization else 'Unknown Organization',
        'total_amount': float(invoice.total_amount),
        'paid_amount': float(invoice.paid_amount),
        'balance_owed': float(invoice.balance_owed),
        'status': effective_status(invoice).value,
        'due_date': invoice.due_date.isoformat() if invoice.due_date else None,
        'sent_at': invoice.sent_at.isoformat() if invoice.sent_at else None,
        'notes': invoice.notes,
        'created_at': invoice.created_at.isoformat() if invoice.created_at else None,
    }
    if include_items and order:
        data['items'] = [
            {
                'id': item.id,
                'description': item.product.name if item.product else 'Unknown Product',
                'unit_price': float(item.unit_price),
                'quantity': item.quantity,
                'total': float(item.total_price),
            }
            for item in order.items
        ]
        data['invoice_data'] = invoice.invoice_data or {}
    return data


__all__ = [
    'derive_invoice_status',
    'effective_status',
    'list_invoices',
    'get_invoice_details',
    'record_invoice_payment',
    'sync_invoices_for_order',
    'serialize_invoice',
]
