from .models import (
    AuditLog,
    CompanyTeam,
    Coupon,
    CouponRestriction,
    DiscountType,
    EmailMessage,
    EmailStatus,
    EventRoster,
    EventType,
    EventYear,
    Gender,
    InvoiceStatus,
    JSONType,
    Order,
    OrderInvoice,
    OrderItem,
    OrderPayment,
    OrderStatus,
    Organization,
    PaymentStatus,
    PaymentType,
    Player,
    PlayerEventInterest,
    PlayerStatus,
    Product,
    ProductStatus,
    ProductType,
    TeamRoster,
    TentPurchaseTracking,
    TimestampedBase,
    User,
    UserRole,
)

__all__ = [
    "AuditLog",
    "CompanyTeam",
    "Coupon",
    "CouponRestriction",
    "DiscountType",
    "EmailMessage",
    "EmailStatus",
    "EventRoster",
    "EventType",
    "EventYear",
    "Gender",
    "InvoiceStatus",
    "JSONType",
    "Order",
    "OrderInvoice",
    "OrderItem",
    "OrderPayment",
    "OrderStatus",
    "Organization",
    "PaymentStatus",
    "PaymentType",
    "Player",
    "PlayerEventInterest",
    "PlayerStatus",
    "Product",
    "ProductStatus",
    "ProductType",
    "TeamRoster",
    "TentPurchaseTracking",
    "TimestampedBase",
    "User",
    "UserRole",
]
