"""Coupon administration and checkout validation."""

from datetime import timedelta
from decimal import Decimal

import pytest

from sportsfest.extensions import db
from sportsfest.models import AuditLog, Coupon, CouponRestriction, DiscountType
from sportsfest.services.coupons import (
    CouponService,
    apply_coupon,
    calculate_discount,
    validate_coupon_code,
)
from sportsfest.services.timeutils import utcnow


@pytest.fixture
def admin(ctx, factory):
    return factory.super_admin()


@pytest.fixture
def service():
    return CouponService()


def _coupon_data(**overrides):
    data = {
        'code': 'summer-10',
        'description': 'Early bird',
        'discount_type': 'percentage',
        'discount_value': '10',
    }
    data.update(overrides)
    return data


def test_create_coupon_normalizes_code(admin, service):
    coupon, error = service.create_coupon(_coupon_data(), admin)

    assert error is None
    assert coupon.code == 'SUMMER-10'
    assert coupon.discount_type == DiscountType.PERCENTAGE
    assert coupon.discount_value == Decimal('10')
    assert coupon.organization_restriction == CouponRestriction.ANYONE
    assert coupon.current_uses == 0
    assert coupon.created_by == admin.id
    assert AuditLog.query.filter_by(action='coupon_created').count() == 1


@pytest.mark.parametrize('overrides, message', [
    ({'code': 'ab'}, "Coupon code must be at least 3 characters"),
    ({'code': 'X' * 51}, "Coupon code must be less than 50 characters"),
    ({'code': 'BAD CODE'}, "Coupon code can only contain uppercase letters, numbers, hyphens, and underscores"),
    ({'discount_value': '0'}, "Discount value must be greater than 0"),
    ({'discount_value': '101'}, "Percentage discount cannot exceed 100%"),
    ({'organization_restriction': 'specific'}, "Select at least one organization for a restricted coupon"),
    ({'max_uses': 0}, "Max uses must be at least 1"),
    ({'discount_value': 'ten'}, "Invalid value for discount value"),
    ({'expires_at': 'next week'}, "Invalid expiration date"),
])
def test_create_coupon_validation(admin, service, overrides, message):
    assert service.create_coupon(_coupon_data(**overrides), admin) == (None, message)


def test_fixed_discount_may_exceed_100(admin, service):
    coupon, error = service.create_coupon(_coupon_data(discount_type='fixed_amount', discount_value='250'), admin)
    assert error is None
    assert coupon.discount_value == Decimal('250')


def test_duplicate_code_rejected(admin, service):
    service.create_coupon(_coupon_data(), admin)
    assert service.create_coupon(_coupon_data(code='SUMMER-10'), admin) == (None, "Coupon code already exists")


def test_update_and_toggle(admin, service):
    coupon, _ = service.create_coupon(_coupon_data(), admin)

    assert service.update_coupon(coupon.id, {'discount_value': '15', 'max_uses': 5}, admin) == (True, None)
    assert coupon.discount_value == Decimal('15')
    assert coupon.max_uses == 5

    assert service.update_coupon(coupon.id, {'discount_value': '150'}, admin) == (
        False, "Percentage discount cannot exceed 100%"
    )
    assert service.update_coupon(coupon.id, {}, admin) == (False, "No fields to update")

    assert service.toggle_coupon_status(coupon.id, admin) == (False, None)
    assert service.toggle_coupon_status(coupon.id, admin) == (True, None)
    assert service.toggle_coupon_status('missing', admin) == (None, "Coupon not found")


def test_used_coupon_cannot_be_deleted(admin, service):
    coupon, _ = service.create_coupon(_coupon_data(), admin)
    apply_coupon(coupon.id)

    assert service.delete_coupon(coupon.id, admin) == (
        False, "Cannot delete coupon that has been used. Disable it instead."
    )

    unused, _ = service.create_coupon(_coupon_data(code='FALL-5'), admin)
    assert service.delete_coupon(unused.id, admin) == (True, None)
    assert db.session.get(Coupon, unused.id) is None


class TestCalculateDiscount:

    def test_percentage(self):
        coupon = Coupon(code='P', discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('12.5'))
        assert calculate_discount(coupon, Decimal('99.99')) == Decimal('12.50')

    def test_fixed_is_capped_at_total(self):
        coupon = Coupon(code='F', discount_type=DiscountType.FIXED_AMOUNT, discount_value=Decimal('500'))
        assert calculate_discount(coupon, Decimal('320')) == Decimal('320.00')


class TestValidateCouponCode:

    def test_valid_code_returns_discount(self, admin, service):
        service.create_coupon(_coupon_data(), admin)

        result, error = validate_coupon_code(' summer-10 ', 'org-1', '1500')

        assert error is None
        assert result['coupon'].code == 'SUMMER-10'
        assert result['discount'] == Decimal('150.00')

    def test_unknown_and_inactive(self, admin, service):
        coupon, _ = service.create_coupon(_coupon_data(), admin)
        assert validate_coupon_code('NOPE', 'org-1', 100) == (None, "Invalid coupon code")

        service.toggle_coupon_status(coupon.id, admin)
        assert validate_coupon_code('SUMMER-10', 'org-1', 100) == (None, "This coupon is no longer active")

    def test_usage_limit(self, admin, service):
        coupon, _ = service.create_coupon(_coupon_data(max_uses=1), admin)
        apply_coupon(coupon.id)

        assert validate_coupon_code('SUMMER-10', 'org-1', 100) == (None, "This coupon has reached its usage limit")

    def test_expired(self, admin, service):
        service.create_coupon(_coupon_data(expires_at=utcnow() - timedelta(days=1)), admin)

        assert validate_coupon_code('SUMMER-10', 'org-1', 100) == (None, "This coupon has expired")

    def test_minimum_order_amount(self, admin, service):
        service.create_coupon(_coupon_data(minimum_order_amount='500'), admin)

        assert validate_coupon_code('SUMMER-10', 'org-1', '499.99') == (
            None, "Minimum order amount of $500.00 required for this coupon"
        )
        result, error = validate_coupon_code('SUMMER-10', 'org-1', '500')
        assert error is None
        assert result['discount'] == Decimal('50.00')

    def test_organization_restriction(self, admin, service, factory):
        acme = factory.org()
        globex = factory.org('Globex', 'globex')
        service.create_coupon(
            _coupon_data(organization_restriction='specific', restricted_organizations=[acme.id]),
            admin,
        )

        _, error = validate_coupon_code('SUMMER-10', acme.id, 100)
        assert error is None
        assert validate_coupon_code('SUMMER-10', globex.id, 100) == (
            None, "This coupon is not available for your organization"
        )


def test_apply_coupon_counts_use(admin, service):
    coupon, _ = service.create_coupon(_coupon_data(), admin)

    assert apply_coupon(coupon.id) == (True, None)
    assert apply_coupon(coupon.id) == (True, None)
    db.session.refresh(coupon)
    assert coupon.current_uses == 2
    assert apply_coupon('missing') == (False, "Coupon not found")
