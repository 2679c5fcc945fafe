"""Revenue reporting and the admin daily digest."""
from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Iterable

from flask import current_app

from sportsfest.extensions import db
from sportsfest.models import (
    EventYear,
    Order,
    OrderPayment,
    OrderStatus,
    Organization,
    PaymentStatus,
    User,
)
from sportsfest.services.event_years import EventYearService
from sportsfest.services.timeutils import ensure_utc, today, utcnow

PERIODS = ('daily', 'weekly', 'monthly')
SPONSORSHIP_BUCKET = 'sponsorship'
ALWAYS_REPORTED_STATUSES = (OrderStatus.PENDING, OrderStatus.PAYMENT_PROCESSING)


def bucket_key(day: date, period: str) -> str:
    """``YYYY-MM-DD`` per day, the Monday of the week, or ``YYYY-MM``."""
    if period == 'weekly':
        return (day - timedelta(days=day.weekday())).isoformat()
    if period == 'monthly':
        return f"{day.year}-{day.month:02d}"
    return day.isoformat()


def iter_bucket_keys(start: date, end: date, period: str) -> list[str]:
    """Every bucket key from ``start`` to ``end`` inclusive, in order."""
    keys: list[str] = []
    current = start
    while current <= end:
        key = bucket_key(current, period)
        if not keys or keys[-1] != key:
            keys.append(key)
        if period == 'monthly':
            current = (current.replace(day=1) + timedelta(days=32)).replace(day=1)
        elif period == 'weekly':
            current = current - timedelta(days=current.weekday()) + timedelta(days=7)
        else:
            current += timedelta(days=1)
    return keys


def build_series(
    records: Iterable[tuple[date, str, Decimal]],
    period: str,
    start: date | None,
    end: date,
) -> tuple[list[dict[str, Any]], list[str]]:
    """Group ``(day, category, amount)`` records into zero-filled buckets.

    Without a ``start`` the timeline begins at the earliest record.
    """
    grouped: dict[str, dict[str, Decimal]] = defaultdict(lambda: defaultdict(Decimal))
    categories: list[str] = []
    days: list[date] = []
    for day, category, amount in records:
        grouped[bucket_key(day, period)][category] += Decimal(amount)
        if category not in categories:
            categories.append(category)
        days.append(day)

    if start is None:
        if not days:
            return [], categories
        start = min(days)

    keys = iter_bucket_keys(min(start, end), end, period)
    # Payments outside the window still get their own bucket
    keys = sorted(set(keys) | set(grouped))

    series = []
    for key in keys:
        row: dict[str, Any] = {'date': key}
        for category in categories:
            row[category] = float(grouped.get(key, {}).get(category, Decimal('0')))
        series.append(row)
    return series, categories


def _split_by_product_type(payment: OrderPayment) -> list[tuple[str, Decimal]]:
    """Attribute a payment to product types in proportion to the order's lines."""
    order = payment.order
    if order.is_sponsorship or not order.items:
        return [(SPONSORSHIP_BUCKET if order.is_sponsorship else 'unknown', payment.amount)]

    subtotal = sum((item.total_price for item in order.items), Decimal('0'))
    if subtotal <= 0:
        return [('unknown', payment.amount)]

    shares: dict[str, Decimal] = defaultdict(Decimal)
    for item in order.items:
        product_type = item.product.type.value if item.product else 'unknown'
        shares[product_type] += payment.amount * item.total_price / subtotal
    return list(shares.items())


def _completed_payments(event_year_id: str) -> list[OrderPayment]:
    return (
        OrderPayment.query
        .join(Order, Order.id == OrderPayment.order_id)
        .filter(
            Order.event_year_id == event_year_id,
            OrderPayment.status == PaymentStatus.COMPLETED,
            OrderPayment.processed_at.isnot(None),
        )
        .all()
    )


def _revenue_totals(payments: list[OrderPayment], as_of: date) -> dict[str, float]:
    total = sum((p.amount for p in payments), Decimal('0'))
    this_month = sum(
        (p.amount for p in payments
         if ensure_utc(p.processed_at).date().replace(day=1) == as_of.replace(day=1)),
        Decimal('0'),
    )
    return {'total_revenue': float(total), 'revenue_this_month': float(this_month)}


def get_revenue_trends(period: str = 'daily', as_of: date | None = None) -> dict[str, Any]:
    """Completed-payment revenue of the active event year over time.

    Returns one series split by product type and one by payment type.
    """
    empty = {
        'event_year': None,
        'period': period,
        'trends': [],
        'product_types': [],
        'payment_trends': [],
        'payment_types': [],
        'stats': {'total_revenue': 0.0, 'revenue_this_month': 0.0},
    }
    if period not in PERIODS:
        period = 'daily'
        empty['period'] = period

    try:
        event_year = EventYearService.get_active()
        if event_year is None:
            return empty

        as_of = as_of or today()
        payments = _completed_payments(event_year.id)

        by_product = [
            (ensure_utc(p.processed_at).date(), product_type, amount)
            for p in payments
            for product_type, amount in _split_by_product_type(p)
        ]
        by_payment_type = [
            (ensure_utc(p.processed_at).date(), p.type.value, p.amount)
            for p in payments
        ]

        trends, product_types = build_series(by_product, period, event_year.event_start_date, as_of)
        payment_trends, payment_types = build_series(by_payment_type, period, event_year.event_start_date, as_of)

        return {
            'event_year': {'id': event_year.id, 'year': event_year.year, 'name': event_year.name},
            'period': period,
            'trends': trends,
            'product_types': product_types,
            'payment_trends': payment_trends,
            'payment_types': payment_types,
            'stats': _revenue_totals(payments, as_of),
        }

    except Exception as e:
        current_app.logger.error(f"Failed to build revenue trends: {e}")
        return empty


def get_revenue_stats(as_of: date | None = None) -> dict[str, Any]:
    """Headline revenue for the active event year, with prior-year growth."""
    result: dict[str, Any] = {
        'total_revenue': 0.0,
        'revenue_this_month': 0.0,
        'current_year': None,
        'prior_year': None,
        'prior_year_revenue': None,
        'growth_rate': None,
    }
    try:
        event_year = EventYearService.get_active()
        if event_year is None:
            return result

        as_of = as_of or today()
        result.update(_revenue_totals(_completed_payments(event_year.id), as_of))
        result['current_year'] = event_year.year

        prior = EventYear.query.filter_by(year=event_year.year - 1, is_deleted=False).first()
        if prior is not None:
            prior_revenue = float(sum((p.amount for p in _completed_payments(prior.id)), Decimal('0')))
            result['prior_year'] = prior.year
            result['prior_year_revenue'] = prior_revenue
            if prior_revenue > 0:
                result['growth_rate'] = round((result['total_revenue'] - prior_revenue) / prior_revenue * 100, 2)
            elif result['total_revenue'] > 0:
                result['growth_rate'] = 100.0
        return result

    except Exception as e:
        current_app.logger.error(f"Failed to load revenue stats: {e}")
        return result


def get_daily_digest_stats(now: datetime | None = None) -> dict[str, Any]:
    """Sign-ups, new organizations and orders of the last 24 hours."""
    now = ensure_utc(now) if now else utcnow()
    since = now - timedelta(hours=24)

    users = (
        User.query
        .filter(User.created_at >= since, User.created_at <= now)
        .order_by(User.created_at.desc())
        .all()
    )
    organizations = (
        Organization.query
        .filter(Organization.created_at >= since, Organization.created_at <= now)
        .order_by(Organization.created_at.desc())
        .all()
    )
    orders = (
        Order.query
        .filter(Order.created_at >= since, Order.created_at <= now)
        .all()
    )

    by_status: dict[str, dict[str, Any]] = {
        status.value: {'count': 0, 'total': 0.0} for status in ALWAYS_REPORTED_STATUSES
    }
    for order in orders:
        bucket = by_status.setdefault(order.status.value, {'count': 0, 'total': 0.0})
        bucket['count'] += 1
        bucket['total'] += float(order.total_amount)

    revenue = (
        db.session.query(db.func.coalesce(db.func.sum(OrderPayment.amount), 0))
        .filter(
            OrderPayment.status == PaymentStatus.COMPLETED,
            OrderPayment.processed_at >= since,
            OrderPayment.processed_at <= now,
        )
        .scalar()
    )

    return {
        'date': now.date().isoformat(),
        'period_start': since.isoformat(),
        'period_end': now.isoformat(),
        'new_sign_ups': {
            'count': len(users),
            'users': [{'name': u.name, 'email': u.email} for u in users],
        },
        'new_organizations': {
            'count': len(organizations),
            'organizations': [{'name': o.name, 'slug': o.slug} for o in organizations],
        },
        'orders': {
            'total_count': len(orders),
            'by_status': by_status,
        },
        'total_revenue': float(revenue or 0),
    }


__all__ = [
    'bucket_key',
    'iter_bucket_keys',
    'build_series',
    'get_revenue_trends',
    'get_revenue_stats',
    'get_daily_digest_stats',
]
