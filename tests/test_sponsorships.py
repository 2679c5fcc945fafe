"""Sponsorship invoices created by super admins."""

from decimal import Decimal

import pytest

from sportsfest.extensions import db
from sportsfest.models import AuditLog, EmailMessage, InvoiceStatus, Order, OrderStatus, UserRole
from sportsfest.services.sponsorships import (
    HAS_PAYMENTS,
    SponsorshipService,
    calculate_sponsorship_amounts,
    validate_sponsorship_input,
)


class TestSponsorshipAmounts:

    @pytest.mark.parametrize('base, fee, total', [
        ('1000', '29.30', '1029.30'),
        ('100', '3.20', '103.20'),
        ('1', '0.33', '1.33'),
        ('2500.50', '72.81', '2573.31'),
    ])
    def test_fee_is_passed_on(self, base, fee, total):
        amounts = calculate_sponsorship_amounts(base)
        assert amounts['processing_fee'] == Decimal(fee)
        assert amounts['total_amount'] == Decimal(total)

    def test_input_validation(self):
        assert validate_sponsorship_input('abc', None) == (None, "Amount must be a number")
        assert validate_sponsorship_input('0.99', None) == (None, "Amount must be at least $1")
        assert validate_sponsorship_input('1000000.01', None) == (None, "Amount cannot exceed $1,000,000")
        assert validate_sponsorship_input('50', 'x' * 501) == (None, "Description must be less than 500 characters")
        assert validate_sponsorship_input('50', 'Gold sponsor') == (Decimal('50'), None)


@pytest.fixture
def sponsorship_setup(ctx, factory):
    org = factory.org()
    factory.event_year()
    owner = factory.user(org, role=UserRole.OWNER)
    factory.user(org, role=UserRole.ADMIN)
    factory.user(org, role=UserRole.MEMBER)
    admin = factory.super_admin()
    return org, owner, admin


def test_create_sponsorship(sponsorship_setup):
    org, _, admin = sponsorship_setup

    order, error = SponsorshipService.create_sponsorship(org.id, '1000', 'Gold sponsor', admin)

    assert error is None
    assert order.is_sponsorship is True
    assert order.order_number.startswith('SPO-')
    assert order.total_amount == Decimal('1029.30')
    assert order.balance_owed == Decimal('1029.30')
    assert order.meta['sponsorship']['processing_fee'] == 29.3
    assert order.meta['sponsorship']['audit_trail'][0]['action'] == 'created'

    invoice = order.invoices[0]
    assert invoice.invoice_number.startswith('SPO-INV-')
    assert invoice.status == InvoiceStatus.SENT
    assert invoice.due_date is not None

    # Owner and admin are notified, the member is not
    assert EmailMessage.query.filter_by(template_key='sponsorship_invoice').count() == 2
    assert AuditLog.query.filter_by(action='sponsorship_created').count() == 1


def test_only_super_admins_create_sponsorships(sponsorship_setup):
    org, owner, _ = sponsorship_setup

    order, error = SponsorshipService.create_sponsorship(org.id, '1000', None, owner)

    assert order is None
    assert error == "Unauthorized: Only super admins can create sponsorship invoices"


def test_update_reprices_unpaid_sponsorship(sponsorship_setup):
    org, _, admin = sponsorship_setup
    order, _ = SponsorshipService.create_sponsorship(org.id, '1000', 'Gold', admin)

    updated, error = SponsorshipService.update_sponsorship(order.id, '100', 'Silver', admin)

    assert error is None
    assert updated.total_amount == Decimal('103.20')
    assert updated.invoices[0].total_amount == Decimal('103.20')
    trail = updated.meta['sponsorship']['audit_trail']
    assert [entry['action'] for entry in trail] == ['created', 'updated']
    assert set(trail[-1]['changes']) == {'base_amount', 'description'}


def test_update_rejected_after_payment(sponsorship_setup):
    org, _, admin = sponsorship_setup
    order, _ = SponsorshipService.create_sponsorship(org.id, '1000', None, admin)
    order.invoices[0].paid_amount = Decimal('10.00')
    db.session.commit()

    assert SponsorshipService.update_sponsorship(order.id, '500', None, admin) == (None, HAS_PAYMENTS)


def test_delete_unpaid_sponsorship(sponsorship_setup):
    org, _, admin = sponsorship_setup
    order, _ = SponsorshipService.create_sponsorship(org.id, '1000', None, admin)
    order_id = order.id

    assert SponsorshipService.delete_sponsorship(order_id, admin) == ('deleted', None)
    assert db.session.get(Order, order_id) is None


def test_delete_paid_sponsorship_cancels_it(sponsorship_setup):
    org, _, admin = sponsorship_setup
    order, _ = SponsorshipService.create_sponsorship(org.id, '1000', None, admin)
    order.invoices[0].paid_amount = Decimal('100.00')
    db.session.commit()

    action, error = SponsorshipService.delete_sponsorship(order.id, admin, reason='Sponsor withdrew')

    assert (action, error) == ('cancelled', None)
    assert order.status == OrderStatus.CANCELLED
    assert order.invoices[0].status == InvoiceStatus.CANCELLED
    assert order.meta['cancellation_reason'] == 'Sponsor withdrew'


def test_list_and_resend(sponsorship_setup):
    org, _, admin = sponsorship_setup
    order, _ = SponsorshipService.create_sponsorship(org.id, '250', None, admin)

    assert [o.id for o in SponsorshipService.list_sponsorships()] == [order.id]
    assert SponsorshipService.resend_sponsorship_email(order.id, admin) == (2, None)
    assert SponsorshipService.resend_sponsorship_email('missing', admin) == (None, "Sponsorship not found")
