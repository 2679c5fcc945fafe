"""Coupon administration and checkout validation."""
from __future__ import annotations

import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from flask import current_app

from sportsfest.extensions import db
from sportsfest.models import Coupon, CouponRestriction, DiscountType
from sportsfest.services.crud import CRUDService
from sportsfest.services.timeutils import ensure_utc, utcnow

CODE_PATTERN = re.compile(r'^[A-Z0-9-_]+$')
MIN_DISCOUNT = Decimal('0.01')
CENT = Decimal('0.01')

UPDATABLE_FIELDS = (
    'code', 'description', 'discount_type', 'discount_value', 'organization_restriction',
    'restricted_organizations', 'max_uses', 'minimum_order_amount', 'expires_at', 'is_active',
)


def _decimal(value: Any) -> Decimal | None:
    if value is None or value == '':
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(value)
    if not result.is_finite():
        raise ValueError(value)
    return result


def normalize_coupon_data(data: dict[str, Any]) -> tuple[dict[str, Any] | None, str | None]:
    """Coerce form/JSON input into column values, rejecting bad types."""
    normalized: dict[str, Any] = {}
    for key in UPDATABLE_FIELDS:
        if key not in data:
            continue
        value = data[key]
        try:
            if key == 'code':
                value = (value or '').strip().upper()
            elif key == 'discount_type' and not isinstance(value, DiscountType):
                value = DiscountType(value)
            elif key == 'organization_restriction' and not isinstance(value, CouponRestriction):
                value = CouponRestriction(value or 'anyone')
            elif key in ('discount_value', 'minimum_order_amount'):
                value = _decimal(value)
            elif key == 'max_uses':
                value = int(value) if value not in (None, '') else None
            elif key == 'restricted_organizations':
                value = [str(org_id) for org_id in (value or [])]
            elif key == 'expires_at' and isinstance(value, str):
                value = datetime.fromisoformat(value) if value else None
            elif key == 'is_active':
                value = bool(value)
        except ValueError:
            if key == 'expires_at':
                return None, "Invalid expiration date"
            return None, f"Invalid value for {key.replace('_', ' ')}"
        normalized[key] = value

    if normalized.get('expires_at') is not None:
        normalized['expires_at'] = ensure_utc(normalized['expires_at'])
    return normalized, None


def validate_coupon_fields(data: dict[str, Any]) -> str | None:
    """Check a full set of coupon values (after normalization)."""
    code = data.get('code') or ''
    if len(code) < 3:
        return "Coupon code must be at least 3 characters"
    if len(code) > 50:
        return "Coupon code must be less than 50 characters"
    if not CODE_PATTERN.match(code):
        return "Coupon code can only contain uppercase letters, numbers, hyphens, and underscores"

    if data.get('discount_type') is None:
        return "Discount type is required"
    value = data.get('discount_value')
    if value is None or value < MIN_DISCOUNT:
        return "Discount value must be greater than 0"
    if data['discount_type'] == DiscountType.PERCENTAGE and value > 100:
        return "Percentage discount cannot exceed 100%"

    if (data.get('organization_restriction') == CouponRestriction.SPECIFIC
            and not data.get('restricted_organizations')):
        return "Select at least one organization for a restricted coupon"

    max_uses = data.get('max_uses')
    if max_uses is not None and max_uses < 1:
        return "Max uses must be at least 1"
    minimum = data.get('minimum_order_amount')
    if minimum is not None and minimum < 0:
        return "Minimum order amount must be 0 or greater"

    return None


def calculate_discount(coupon: Coupon, order_total: Decimal) -> Decimal:
    """Percentage of the total, or the fixed amount capped at the total."""
    order_total = Decimal(str(order_total))
    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = order_total * coupon.discount_value / 100
    else:
        discount = min(coupon.discount_value, order_total)
    return discount.quantize(CENT, rounding=ROUND_HALF_UP)


class CouponService(CRUDService):
    """Super-admin coupon management."""

    def __init__(self):
        super().__init__(Coupon)

    def _validate_create(self, data: dict[str, Any]) -> str | None:
        error = validate_coupon_fields(data)
        if error:
            return error
        if Coupon.query.filter_by(code=data['code']).first():
            return "Coupon code already exists"
        return None

    def _validate_update(self, instance: Coupon, data: dict[str, Any]) -> str | None:
        if not data:
            return "No fields to update"
        merged = {key: getattr(instance, key) for key in UPDATABLE_FIELDS}
        merged.update(data)
        error = validate_coupon_fields(merged)
        if error:
            return error
        if 'code' in data and data['code'] != instance.code:
            if Coupon.query.filter(Coupon.code == data['code'], Coupon.id != instance.id).first():
                return "Coupon code already exists"
        return None

    def _validate_delete(self, instance: Coupon) -> str | None:
        if instance.current_uses > 0:
            return "Cannot delete coupon that has been used. Disable it instead."
        return None

    def _handle_integrity_error(self, error) -> str:
        if 'code' in str(error).lower():
            return "Coupon code already exists"
        return super()._handle_integrity_error(error)

    def create_coupon(self, data: dict[str, Any], user: Any) -> tuple[Coupon | None, str | None]:
        normalized, error = normalize_coupon_data(data)
        if error:
            return None, error
        normalized.setdefault('organization_restriction', CouponRestriction.ANYONE)
        normalized.setdefault('is_active', True)
        normalized['current_uses'] = 0
        normalized['created_by'] = getattr(user, 'id', None)
        return self.create(normalized, user=user)

    def update_coupon(self, coupon_id: str, data: dict[str, Any], user: Any) -> tuple[bool, str | None]:
        normalized, error = normalize_coupon_data(data)
        if error:
            return False, error
        return self.update(coupon_id, normalized, user=user)

    def toggle_coupon_status(self, coupon_id: str, user: Any = None) -> tuple[bool | None, str | None]:
        coupon = self.get_by_id(coupon_id)
        if coupon is None:
            return None, "Coupon not found"
        ok, error = self.update(coupon_id, {'is_active': not coupon.is_active}, user=user)
        if not ok:
            return None, error
        return coupon.is_active, None

    def delete_coupon(self, coupon_id: str, user: Any = None) -> tuple[bool, str | None]:
        return self.delete(coupon_id, user=user)

    def list_coupons(self) -> list[Coupon]:
        try:
            return self.list_all(order_by=Coupon.created_at.desc())
        except Exception as e:
            current_app.logger.error(f"Failed to list coupons: {e}")
            return []


def validate_coupon_code(
    code: str,
    org_id: str,
    order_total: Decimal | float | str,
) -> tuple[dict[str, Any] | None, str | None]:
    """Check a coupon at checkout and compute its discount.

    Returns ``({'coupon': Coupon, 'discount': Decimal}, None)`` on success.
    """
    try:
        order_total = Decimal(str(order_total))
        coupon = Coupon.query.filter_by(code=(code or '').strip().upper()).first()
        if coupon is None:
            return None, "Invalid coupon code"
        if not coupon.is_active:
            return None, "This coupon is no longer active"
        if coupon.max_uses is not None and coupon.current_uses >= coupon.max_uses:
            return None, "This coupon has reached its usage limit"
        if coupon.expires_at and ensure_utc(coupon.expires_at) <= utcnow():
            return None, "This coupon has expired"
        minimum = coupon.minimum_order_amount or Decimal('0')
        if order_total < minimum:
            return None, f"Minimum order amount of ${minimum:.2f} required for this coupon"
        if coupon.organization_restriction == CouponRestriction.SPECIFIC:
            if org_id not in (coupon.restricted_organizations or []):
                return None, "This coupon is not available for your organization"

        return {'coupon': coupon, 'discount': calculate_discount(coupon, order_total)}, None

    except Exception as e:
        current_app.logger.error(f"Failed to validate coupon: {e}")
        return None, "Failed to validate coupon. Please try again."


def apply_coupon(coupon_id: str, commit: bool = True) -> tuple[bool, str | None]:
    """Count one use of a coupon."""
    try:
        coupon = db.session.get(Coupon, coupon_id)
        if coupon is None:
            return False, "Coupon not found"
        coupon.current_uses = Coupon.current_uses + 1
        if commit:
            db.session.commit()
        return True, None
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to apply coupon to order: {e}")
        return False, "Failed to apply coupon to order"


def serialize_coupon(coupon: Coupon) -> dict[str, Any]:
    return {
        'id': coupon.id,
        'code': coupon.code,
        'description': coupon.description,
        'discount_type': coupon.discount_type.value,
        'discount_value': float(coupon.discount_value),
        'organization_restriction': coupon.organization_restriction.value,
        'restricted_organizations': coupon.restricted_organizations or [],
        'max_uses': coupon.max_uses,
        'current_uses': coupon.current_uses,
        'minimum_order_amount': float(coupon.minimum_order_amount) if coupon.minimum_order_amount is not None else None,
        'expires_at': coupon.expires_at.isoformat() if coupon.expires_at else None,
        'is_active': coupon.is_active,
    }


__all__ = [
    'CouponService',
    'normalize_coupon_data',
    'validate_coupon_fields',
    'calculate_discount',
    'validate_coupon_code',
    'apply_coupon',
    'serialize_coupon',
]
