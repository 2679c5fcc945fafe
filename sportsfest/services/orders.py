"""Checkout, payment bookkeeping and order fulfillment."""
from __future__ import annotations

import secrets
import time
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from flask import current_app
from sqlalchemy import func

from sportsfest.extensions import db
from sportsfest.models import (
    CompanyTeam,
    InvoiceStatus,
    Order,
    OrderInvoice,
    OrderItem,
    OrderPayment,
    OrderStatus,
    PaymentStatus,
    PaymentType,
    Product,
    ProductStatus,
    ProductType,
    TentPurchaseTracking,
)
from sportsfest.services.coupons import apply_coupon, validate_coupon_code
from sportsfest.services.event_years import EventYearService
from sportsfest.services.invoices import sync_invoices_for_order
from sportsfest.services.timeutils import today, utcnow

ZERO = Decimal('0.00')
CENT = Decimal('0.01')
TENT_LIMIT = 2

# Orders in these states no longer hold inventory
RELEASED_STATUSES = (OrderStatus.CANCELLED, OrderStatus.REFUNDED)


def generate_reference(prefix: str) -> str:
    """``PREFIX-<epoch ms>-<6 hex chars>``, e.g. ``ORD-1718000000000-9F2A1C``."""
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(3).upper()}"


def to_money(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount.quantize(CENT)


def is_fulfilled(order: Order) -> bool:
    return order.status == OrderStatus.FULFILLED or bool((order.meta or {}).get('fulfilled_at'))


def completed_total(order: Order) -> Decimal:
    total = (
        db.session.query(func.coalesce(func.sum(OrderPayment.amount), 0))
        .filter(OrderPayment.order_id == order.id, OrderPayment.status == PaymentStatus.COMPLETED)
        .scalar()
    )
    return to_money(total or 0)


def _quantity_ordered(product_id: str, org_id: str | None = None) -> int:
    query = (
        db.session.query(func.coalesce(func.sum(OrderItem.quantity), 0))
        .join(Order, Order.id == OrderItem.order_id)
        .filter(OrderItem.product_id == product_id, Order.status.notin_(RELEASED_STATUSES))
    )
    if org_id is not None:
        query = query.filter(Order.org_id == org_id)
    return int(query.scalar() or 0)


def _tent_tracking(org_id: str, event_year_id: str) -> TentPurchaseTracking | None:
    return TentPurchaseTracking.query.filter_by(org_id=org_id, event_year_id=event_year_id).first()


def ensure_invoice(order: Order) -> OrderInvoice:
    """The order's invoice, creating a sent one if it has none. Caller commits."""
    if order.invoices:
        return order.invoices[0]
    invoice = OrderInvoice(
        order=order,
        invoice_number=generate_reference('INV'),
        total_amount=order.total_amount,
        paid_amount=ZERO,
        balance_owed=order.total_amount,
        status=InvoiceStatus.SENT,
        sent_at=utcnow(),
        due_date=today() + timedelta(days=int(current_app.config.get('INVOICE_DUE_DAYS', 30))),
    )
    db.session.add(invoice)
    return invoice


class OrderService:
    """Order lifecycle from checkout to fulfillment."""

    @staticmethod
    def create_order(
        org_id: str,
        event_year_id: str,
        items: list[dict[str, Any]],
        user: Any = None,
        coupon_code: str | None = None,
    ) -> tuple[Order | None, str | None]:
        """Price a cart and open a pending order.

        ``items`` is a list of ``{'product_id': str, 'quantity': int}``.
        """
        try:
            if not items:
                return None, "Order must contain at least one item"

            order = Order(
                org_id=org_id,
                event_year_id=event_year_id,
                user_id=getattr(user, 'id', None),
                order_number=generate_reference('ORD'),
                status=OrderStatus.PENDING,
                total_amount=ZERO,
                balance_owed=ZERO,
                discount_amount=ZERO,
            )

            subtotal = ZERO
            deposit = ZERO
            for item in items:
                try:
                    quantity = int(item.get('quantity', 1))
                except (TypeError, ValueError):
                    return None, "Quantity must be a whole number"
                if quantity < 1:
                    return None, "Quantity must be at least 1"

                product = db.session.get(Product, item.get('product_id'))
                if (product is None or product.status != ProductStatus.ACTIVE
                        or product.event_year_id != event_year_id):
                    return None, "Product is not available"

                if product.max_quantity_per_org is not None:
                    already = _quantity_ordered(product.id, org_id)
                    if already + quantity > product.max_quantity_per_org:
                        return None, (
                            f"Maximum of {product.max_quantity_per_org} {product.name} per organization "
                            f"(already ordered: {already})"
                        )

                if product.total_inventory is not None:
                    remaining = product.total_inventory - _quantity_ordered(product.id)
                    if quantity > remaining:
                        return None, f"Only {max(remaining, 0)} {product.name} remaining"

                if product.type == ProductType.TENT_RENTAL:
                    tracking = _tent_tracking(org_id, event_year_id)
                    current = tracking.tent_count if tracking else 0
                    if current + quantity > TENT_LIMIT:
                        return None, (
                            f"Organization would exceed {TENT_LIMIT}-tent limit "
                            f"(current: {current}, requested: {quantity})"
                        )

                line_total = product.price * quantity
                subtotal += line_total
                if product.requires_deposit and product.deposit_amount:
                    deposit += product.deposit_amount * quantity

                order.items.append(OrderItem(
                    product_id=product.id,
                    quantity=quantity,
                    unit_price=product.price,
                    total_price=line_total,
                ))

            meta: dict[str, Any] = {'subtotal': float(subtotal)}
            discount = ZERO
            if coupon_code:
                applied, error = validate_coupon_code(coupon_code, org_id, subtotal)
                if error:
                    return None, error
                coupon = applied['coupon']
                discount = applied['discount']
                order.coupon_code = coupon.code
                meta['applied_coupon'] = {'id': coupon.id, 'code': coupon.code, 'discount': float(discount)}

            total = max(ZERO, subtotal - discount)
            order.discount_amount = discount
            order.total_amount = total
            order.balance_owed = total
            if deposit > ZERO:
                meta['deposit_amount'] = float(min(deposit, total))
            order.meta = meta

            db.session.add(order)
            db.session.commit()
            return order, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to create order: {e}")
            return None, "Failed to create order"

    @staticmethod
    def record_payment(
        order_id: str,
        amount: Any,
        payment_intent_id: str | None = None,
        payment_type: PaymentType | None = None,
        payment_method_type: str | None = None,
        source: str = 'manual',
    ) -> tuple[OrderPayment | None, str | None]:
        """Store a completed payment. Replaying the same intent id is a no-op."""
        try:
            if payment_intent_id:
                existing = OrderPayment.query.filter_by(payment_intent_id=payment_intent_id).first()
                if existing is not None:
                    return existing, None

            try:
                amount = to_money(amount)
            except ValueError:
                return None, "Invalid payment amount"
            if amount <= ZERO:
                return None, "Payment amount must be greater than zero"

            order = db.session.get(Order, order_id)
            if order is None:
                return None, "Order not found"
            if order.status in RELEASED_STATUSES:
                return None, f"Cannot record a payment on a {order.status.value} order"

            if payment_type is None:
                outstanding = order.total_amount - completed_total(order)
                payment_type = PaymentType.DEPOSIT_PAYMENT if amount < outstanding else PaymentType.BALANCE_PAYMENT

            payment = OrderPayment(
                order_id=order.id,
                type=payment_type,
                status=PaymentStatus.COMPLETED,
                amount=amount,
                payment_intent_id=payment_intent_id,
                payment_method_type=payment_method_type,
                processed_at=utcnow(),
                meta={'source': source},
            )
            db.session.add(payment)
            OrderService._count_coupon_use(order)
            db.session.commit()
            return payment, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to record payment: {e}")
            return None, "Failed to record payment"

    @staticmethod
    def _count_coupon_use(order: Order) -> None:
        """Count the applied coupon once, on the order's first payment."""
        meta = dict(order.meta or {})
        applied = meta.get('applied_coupon')
        if not applied or applied.get('counted'):
            return
        ok, _ = apply_coupon(applied['id'], commit=False)
        if ok:
            meta['applied_coupon'] = {**applied, 'counted': True}
            order.meta = meta

    @staticmethod
    def _fulfill(order: Order) -> tuple[dict[str, Any] | None, str | None]:
        """Create teams and track tents for an order. Caller commits."""
        if not order.items:
            return None, "No items found in order"

        tent_quantity = sum(
            item.quantity for item in order.items
            if item.product and item.product.type == ProductType.TENT_RENTAL
        )
        if tent_quantity:
            tracking = _tent_tracking(order.org_id, order.event_year_id)
            current = tracking.tent_count if tracking else 0
            if current + tent_quantity > TENT_LIMIT:
                return None, (
                    f"Cannot fulfill tent order: Organization would exceed {TENT_LIMIT}-tent limit "
                    f"(current: {current}, requested: {tent_quantity})"
                )
            if tracking is None:
                tracking = TentPurchaseTracking(
                    org_id=order.org_id,
                    event_year_id=order.event_year_id,
                    tent_count=0,
                    max_allowed=TENT_LIMIT,
                )
                db.session.add(tracking)
            tracking.tent_count = current + tent_quantity

        team_units = sum(
            item.quantity for item in order.items
            if item.product and item.product.type == ProductType.TEAM_REGISTRATION
        )
        created_teams: list[str] = []
        if team_units:
            last_number = (
                db.session.query(func.coalesce(func.max(CompanyTeam.team_number), 0))
                .filter(CompanyTeam.org_id == order.org_id, CompanyTeam.event_year_id == order.event_year_id)
                .scalar()
            ) or 0
            org_name = order.organization.name if order.organization else 'Team'
            for offset in range(1, team_units + 1):
                team = CompanyTeam(
                    org_id=order.org_id,
                    event_year_id=order.event_year_id,
                    team_number=last_number + offset,
                    name=f"{org_name} Team {last_number + offset}",
                    is_paid=False,
                )
                db.session.add(team)
                created_teams.append(team.name)

        order.meta = {**(order.meta or {}), 'fulfilled_at': utcnow().isoformat()}

        message = 'Order fulfilled successfully'
        if created_teams:
            message += f". Created {len(created_teams)} team(s): {', '.join(created_teams)}"
        if tent_quantity:
            message += f". Tracked {tent_quantity} tent purchase(s)"
        return {'message': message, 'created_teams': created_teams, 'tracked_tents': tent_quantity}, None

    @staticmethod
    def fulfill_order(order_id: str) -> tuple[dict[str, Any] | None, str | None]:
        try:
            order = db.session.get(Order, order_id)
            if order is None:
                return None, "Order not found"
            if is_fulfilled(order):
                return None, "Order has already been fulfilled"
            if order.status == OrderStatus.PENDING:
                return None, "Order must have at least one payment before fulfillment"

            result, error = OrderService._fulfill(order)
            if error:
                db.session.rollback()
                return None, error

            order.status = OrderStatus.FULFILLED
            db.session.commit()
            return result, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to fulfill order: {e}")
            return None, "Failed to fulfill order"

    @staticmethod
    def process_payment_completion(order_id: str) -> tuple[dict[str, Any] | None, str | None]:
        """Settle an order after a payment: fulfill once, then set paid or partial."""
        try:
            order = db.session.get(Order, order_id)
            if order is None:
                return None, "Order not found"

            paid = completed_total(order)
            fulfillment = None
            fulfillment_error = None
            if paid > ZERO and not is_fulfilled(order):
                fulfillment, fulfillment_error = OrderService._fulfill(order)
                if fulfillment_error:
                    current_app.logger.warning(
                        f"Order {order.order_number} paid but not fulfilled: {fulfillment_error}"
                    )

            if paid >= order.total_amount:
                order.status = OrderStatus.PAID
                order.balance_owed = ZERO
                message = 'Payment completed - order fully paid'
            else:
                order.status = OrderStatus.PARTIAL_PAYMENT
                order.balance_owed = order.total_amount - paid
                message = f"Deposit payment received. Balance remaining: ${order.balance_owed:.2f}"

            ensure_invoice(order)
            sync_invoices_for_order(order)
            db.session.commit()

            return {
                'message': message,
                'status': order.status.value,
                'total_paid': float(paid),
                'balance_owed': float(order.balance_owed),
                'order_fulfilled': fulfillment is not None,
                'fulfillment': fulfillment,
                'fulfillment_error': fulfillment_error,
            }, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to process payment completion: {e}")
            return None, "Failed to process payment completion"

    @staticmethod
    def abandoned_orders_query(older_than_hours: int = 24, event_year_id: str | None = None):
        cutoff = utcnow() - timedelta(hours=older_than_hours)
        query = Order.query.filter(
            Order.status == OrderStatus.PENDING,
            Order.balance_owed == Order.total_amount,
            Order.is_manually_created.is_(False),
            Order.created_at < cutoff,
        )
        if event_year_id:
            query = query.filter(Order.event_year_id == event_year_id)
        return query

    @staticmethod
    def cleanup_abandoned_orders(
        older_than_hours: int = 24,
        execute: bool = False,
        event_year_id: str | None = None,
    ) -> tuple[dict[str, Any] | None, str | None]:
        """Find (and with ``execute``, delete) pending orders nobody paid for."""
        try:
            if older_than_hours < 1:
                return None, "older_than_hours must be at least 1"

            orders = (
                OrderService.abandoned_orders_query(older_than_hours, event_year_id)
                .order_by(Order.created_at)
                .all()
            )
            result = {
                'found': len(orders),
                'deleted': 0,
                'dry_run': not execute,
                'older_than_hours': older_than_hours,
                'orders': [order.order_number for order in orders],
            }
            if execute and orders:
                for order in orders:
                    db.session.delete(order)
                db.session.commit()
                result['deleted'] = len(orders)
                current_app.logger.info(f"Deleted {len(orders)} abandoned orders older than {older_than_hours}h")
            return result, None

        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to clean up abandoned orders: {e}")
            return None, "Failed to clean up abandoned orders"


def list_payments(
    event_year_id: str | None = None,
    status: PaymentStatus | str | None = None,
) -> list[OrderPayment]:
    """Payments of one event year (default: the active one), newest first."""
    try:
        if event_year_id is None:
            event_year = EventYearService.get_active()
            if event_year is None:
                return []
            event_year_id = event_year.id

        query = (
            OrderPayment.query
            .join(Order, Order.id == OrderPayment.order_id)
            .filter(Order.event_year_id == event_year_id)
        )
        if status:
            query = query.filter(OrderPayment.status == PaymentStatus(status))
        return query.order_by(OrderPayment.created_at.desc()).all()

    except Exception as e:
        current_app.logger.error(f"Failed to list payments: {e}")
        return []


def serialize_order(order: Order) -> dict[str, Any]:
    return {
        'id': order.id,
        'order_number': order.order_number,
        'org_id': order.org_id,
        'event_year_id': order.event_year_id,
        'status': order.status.value,
        'total_amount': float(order.total_amount),
        'discount_amount': float(order.discount_amount or 0),
        'balance_owed': float(order.balance_owed),
        'coupon_code': order.coupon_code,
        'deposit_amount': (order.meta or {}).get('deposit_amount'),
        'is_sponsorship': order.is_sponsorship,
        'items': [
            {
                'product_id': item.product_id,
                'name': item.product.name if item.product else None,
                'quantity': item.quantity,
                'unit_price': float(item.unit_price),
                'total_price': float(item.total_price),
            }
            for item in order.items
        ],
        'created_at': order.created_at.isoformat() if order.created_at else None,
    }


def serialize_payment(payment: OrderPayment) -> dict[str, Any]:
    return {
        'id': payment.id,
        'order_id': payment.order_id,
        'order_number': payment.order.order_number if payment.order else None,
        'type': payment.type.value,
        'status': payment.status.value,
        'amount': float(payment.amount),
        'payment_intent_id': payment.payment_intent_id,
        'payment_method_type': payment.payment_method_type,
        'failure_reason': payment.failure_reason,
        'processed_at': payment.processed_at.isoformat() if payment.processed_at else None,
    }


__all__ = [
    'OrderService',
    'generate_reference',
    'to_money',
    'is_fulfilled',
    'completed_total',
    'ensure_invoice',
    'list_payments',
    'serialize_order',
    'serialize_payment',
]
