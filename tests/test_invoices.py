"""Invoice status derivation and payment bookkeeping."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from sportsfest.extensions import db
from sportsfest.models import InvoiceStatus, Order, OrderInvoice, OrderStatus
from sportsfest.services.invoices import (
    derive_invoice_status,
    list_invoices,
    record_invoice_payment,
    sync_invoices_for_order,
)
from sportsfest.services.timeutils import today


class TestDeriveInvoiceStatus:

    def test_cancelled_and_draft_are_kept(self):
        assert derive_invoice_status(InvoiceStatus.CANCELLED, Decimal('0'), Decimal('10'), None) == InvoiceStatus.CANCELLED
        assert derive_invoice_status(InvoiceStatus.DRAFT, Decimal('50'), Decimal('0'), None) == InvoiceStatus.DRAFT

    def test_zero_balance_is_paid(self):
        assert derive_invoice_status(InvoiceStatus.SENT, Decimal('0'), Decimal('100'), None) == InvoiceStatus.PAID

    def test_partial_payment(self):
        assert derive_invoice_status(InvoiceStatus.SENT, Decimal('40'), Decimal('60'), None) == InvoiceStatus.PARTIAL

    def test_overdue_only_past_due_date(self):
        due = date(2027, 6, 1)
        assert derive_invoice_status(
            InvoiceStatus.SENT, Decimal('100'), Decimal('0'), due, as_of=date(2027, 6, 2)
        ) == InvoiceStatus.OVERDUE
        assert derive_invoice_status(
            InvoiceStatus.SENT, Decimal('100'), Decimal('0'), due, as_of=date(2027, 6, 1)
        ) == InvoiceStatus.SENT


@pytest.fixture
def invoice(ctx, factory):
    org = factory.org()
    event_year = factory.event_year()
    order = Order(
        org_id=org.id,
        event_year_id=event_year.id,
        order_number='ORD-1-AAAAAA',
        status=OrderStatus.PENDING,
        total_amount=Decimal('500.00'),
        balance_owed=Decimal('500.00'),
    )
    invoice = OrderInvoice(
        order=order,
        invoice_number='INV-1-AAAAAA',
        total_amount=Decimal('500.00'),
        paid_amount=Decimal('0.00'),
        balance_owed=Decimal('500.00'),
        status=InvoiceStatus.DRAFT,
        due_date=today() + timedelta(days=30),
    )
    db.session.add_all([order, invoice])
    db.session.commit()
    return invoice


def test_record_partial_then_full_payment(invoice):
    updated, error = record_invoice_payment(invoice.id, '200')

    assert error is None
    assert updated.paid_amount == Decimal('200.00')
    assert updated.balance_owed == Decimal('300.00')
    assert updated.status == InvoiceStatus.PARTIAL

    updated, error = record_invoice_payment(invoice.id, Decimal('300'))
    assert error is None
    assert updated.status == InvoiceStatus.PAID
    assert updated.balance_owed == Decimal('0.00')


def test_record_payment_validation(invoice):
    assert record_invoice_payment(invoice.id, 0) == (None, "Payment amount must be greater than zero")
    assert record_invoice_payment('missing', 10) == (None, "Invoice not found")
    assert record_invoice_payment(invoice.id, '500.01') == (None, "Payment exceeds the invoice balance")

    invoice.status = InvoiceStatus.CANCELLED
    db.session.commit()
    assert record_invoice_payment(invoice.id, 10) == (None, "Cannot record a payment on a cancelled invoice")


def test_list_invoices_filters_on_derived_status(invoice):
    invoice.status = InvoiceStatus.SENT
    invoice.due_date = today() - timedelta(days=1)
    db.session.commit()

    assert [i.id for i in list_invoices(status='overdue')] == [invoice.id]
    assert list_invoices(status=InvoiceStatus.SENT) == []
    assert len(list_invoices()) == 1


def test_sync_mirrors_order_payments(invoice):
    order = invoice.order
    order.balance_owed = Decimal('125.00')
    invoice.status = InvoiceStatus.SENT

    sync_invoices_for_order(order)
    db.session.commit()

    assert invoice.paid_amount == Decimal('375.00')
    assert invoice.balance_owed == Decimal('125.00')
    assert invoice.status == InvoiceStatus.PARTIAL
