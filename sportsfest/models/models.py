from __future__ import annotations

import uuid
from datetime import datetime, date
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from sportsfest.extensions import db, bcrypt

JSONType = JSON().with_variant(JSONB, 'postgresql')
Money = Numeric(12, 2)


class TimestampedBase(db.Model):
    """Abstract base providing id/created/updated columns."""

    __abstract__ = True

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class UserRole(Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class Gender(Enum):
    MALE = "male"
    FEMALE = "female"


class PlayerStatus(Enum):
    REGISTERED = "registered"
    INACTIVE = "inactive"


class EventType(Enum):
    BEACH_VOLLEYBALL = "beach_volleyball"
    BEACH_DODGEBALL = "beach_dodgeball"
    BOTE_BEACH_CHALLENGE = "bote_beach_challenge"
    TUG_OF_WAR = "tug_of_war"
    CORN_TOSS = "corn_toss"


class ProductType(Enum):
    TENT_RENTAL = "tent_rental"
    TEAM_REGISTRATION = "team_registration"
    MERCHANDISE = "merchandise"
    EQUIPMENT = "equipment"
    SERVICES = "services"


class ProductStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class OrderStatus(Enum):
    PENDING = "pending"
    PAYMENT_PROCESSING = "payment_processing"
    CONFIRMED = "confirmed"
    DEPOSIT_PAID = "deposit_paid"
    FULLY_PAID = "fully_paid"
    PARTIAL_PAYMENT = "partial_payment"
    PAID = "paid"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentType(Enum):
    TEAM_REGISTRATION = "team_registration"
    TENT_RENTAL = "tent_rental"
    PRODUCT_PURCHASE = "product_purchase"
    DEPOSIT_PAYMENT = "deposit_payment"
    BALANCE_PAYMENT = "balance_payment"


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class InvoiceStatus(Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    PARTIAL = "partial"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class CouponRestriction(Enum):
    ANYONE = "anyone"
    SPECIFIC = "specific"


class EmailStatus(Enum):
    QUEUED = "queued"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


class Organization(TimestampedBase):
    __tablename__ = "organization"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    contact_email: Mapped[str | None] = mapped_column(String(255))
    contact_phone: Mapped[str | None] = mapped_column(String(32))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    users: Mapped[list["User"]] = relationship(
        back_populates="organization",
        cascade="all, delete-orphan",
    )
    teams: Mapped[list["CompanyTeam"]] = relationship(
        back_populates="organization",
        cascade="all, delete-orphan",
    )
    orders: Mapped[list["Order"]] = relationship(back_populates="organization")


class User(TimestampedBase):
    __tablename__ = "user"
    __table_args__ = (
        UniqueConstraint("org_id", "email", name="uq_user_org_email"),
    )

    # Super admins are platform-level and belong to no organization
    org_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("organization.id", ondelete="CASCADE"),
        index=True,
    )
    name: Mapped[str | None] = mapped_column(String(64))
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(
        SqlEnum(UserRole, name="user_role", native_enum=False),
        nullable=False,
        default=UserRole.MEMBER,
    )
    is_super_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    active: Mapped[bool] = mapped_column('is_active', Boolean, nullable=False, default=True)
    password_reset_token: Mapped[str | None] = mapped_column(String(64), index=True)
    password_reset_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_login_ip: Mapped[str | None] = mapped_column(String(45))  # IPv6 max length

    organization: Mapped[Organization | None] = relationship(back_populates="users")
    audit_logs: Mapped[list["AuditLog"]] = relationship(back_populates="user")

    def set_password(self, password: str) -> None:
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        try:
            return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))
        except ValueError:
            return False

    def has_role(self, *roles: UserRole | str) -> bool:
        role_value = self.role.value if isinstance(self.role, UserRole) else str(self.role)
        allowed = {r.value if isinstance(r, UserRole) else str(r) for r in roles}
        return role_value in allowed

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def is_active(self) -> bool:  # Flask-Login compatibility
        return bool(self.active)

    @property
    def is_anonymous(self) -> bool:
        return False

    def get_id(self) -> str:
        return self.id


class EventYear(TimestampedBase):
    __tablename__ = "event_year"
    __table_args__ = (
        CheckConstraint("year >= 2023 AND year <= 2030", name="ck_event_year_range"),
    )

    year: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    event_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    event_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    registration_open_date: Mapped[date | None] = mapped_column(Date)
    registration_close_date: Mapped[date | None] = mapped_column(Date)
    location: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Player(TimestampedBase):
    __tablename__ = "player"
    __table_args__ = (
        UniqueConstraint("event_year_id", "email", name="uq_player_event_year_email"),
        Index("ix_player_org_event_year", "org_id", "event_year_id"),
    )

    org_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organization.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_year_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("event_year.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32))
    date_of_birth: Mapped[date | None] = mapped_column(Date)
    gender: Mapped[Gender] = mapped_column(
        SqlEnum(Gender, name="gender", native_enum=False),
        nullable=False,
    )
    tshirt_size: Mapped[str | None] = mapped_column(String(8))
    status: Mapped[PlayerStatus] = mapped_column(
        SqlEnum(PlayerStatus, name="player_status", native_enum=False),
        nullable=False,
        default=PlayerStatus.REGISTERED,
    )
    waiver_signed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    accuracy_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    event_year: Mapped[EventYear] = relationship()
    roster_entry: Mapped["TeamRoster | None"] = relationship(
        back_populates="player",
        uselist=False,
        cascade="all, delete-orphan",
    )
    event_rosters: Mapped[list["EventRoster"]] = relationship(
        back_populates="player",
        cascade="all, delete-orphan",
    )
    interests: Mapped[list["PlayerEventInterest"]] = relationship(
        back_populates="player",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_inactive(self) -> bool:
        return self.status == PlayerStatus.INACTIVE


class PlayerEventInterest(TimestampedBase):
    __tablename__ = "player_event_interest"
    __table_args__ = (
        UniqueConstraint("player_id", "event_type", name="uq_player_event_interest"),
        CheckConstraint("interest_rating >= 1 AND interest_rating <= 5", name="ck_interest_rating_range"),
    )

    player_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("player.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_type: Mapped[EventType] = mapped_column(
        SqlEnum(EventType, name="event_type", native_enum=False),
        nullable=False,
    )
    # 1 = most interested
    interest_rating: Mapped[int] = mapped_column(Integer, nullable=False)

    player: Mapped[Player] = relationship(back_populates="interests")


class CompanyTeam(TimestampedBase):
    __tablename__ = "company_team"
    __table_args__ = (
        UniqueConstraint("org_id", "event_year_id", "team_number", name="uq_company_team_number"),
    )

    org_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organization.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_year_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("event_year.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    team_number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255))
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    organization: Mapped[Organization] = relationship(back_populates="teams")
    event_year: Mapped[EventYear] = relationship()
    roster: Mapped[list["TeamRoster"]] = relationship(
        back_populates="team",
        cascade="all, delete-orphan",
    )
    event_rosters: Mapped[list["EventRoster"]] = relationship(
        back_populates="team",
        cascade="all, delete-orphan",
    )

    @property
    def display_name(self) -> str:
        return self.name or f"Team {self.team_number}"


class TeamRoster(TimestampedBase):
    __tablename__ = "team_roster"

    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("company_team.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # A player can be on at most one team
    player_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("player.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    is_captain: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    team: Mapped[CompanyTeam] = relationship(back_populates="roster")
    player: Mapped[Player] = relationship(back_populates="roster_entry")


class EventRoster(TimestampedBase):
    __tablename__ = "event_roster"
    __table_args__ = (
        UniqueConstraint("player_id", "team_id", "event_type", name="uq_event_roster_player_team_event"),
        Index("ix_event_roster_team_event", "team_id", "event_type"),
    )

    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("company_team.id", ondelete="CASCADE"),
        nullable=False,
    )
    player_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("player.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_type: Mapped[EventType] = mapped_column(
        SqlEnum(EventType, name="event_type", native_enum=False),
        nullable=False,
    )
    is_starter: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    squad_leader: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    team: Mapped[CompanyTeam] = relationship(back_populates="event_rosters")
    player: Mapped[Player] = relationship(back_populates="event_rosters")


class Product(TimestampedBase):
    __tablename__ = "product"

    event_year_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("event_year.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    type: Mapped[ProductType] = mapped_column(
        SqlEnum(ProductType, name="product_type", native_enum=False),
        nullable=False,
    )
    status: Mapped[ProductStatus] = mapped_column(
        SqlEnum(ProductStatus, name="product_status", native_enum=False),
        nullable=False,
        default=ProductStatus.ACTIVE,
    )
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    requires_deposit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deposit_amount: Mapped[Decimal | None] = mapped_column(Money)
    total_inventory: Mapped[int | None] = mapped_column(Integer)
    max_quantity_per_org: Mapped[int | None] = mapped_column(Integer)

    event_year: Mapped[EventYear] = relationship()


class Order(TimestampedBase):
    __tablename__ = "order"
    __table_args__ = (
        Index("ix_order_org_status", "org_id", "status"),
        Index("ix_order_event_year_created", "event_year_id", "created_at"),
    )

    org_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organization.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_year_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("event_year.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="SET NULL"),
    )
    order_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    status: Mapped[OrderStatus] = mapped_column(
        SqlEnum(OrderStatus, name="order_status", native_enum=False),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    balance_owed: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'))
    coupon_code: Mapped[str | None] = mapped_column(String(50))
    is_sponsorship: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_manually_created: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payment_intent_id: Mapped[str | None] = mapped_column(String(255))
    meta: Mapped[dict | None] = mapped_column('metadata', JSONType, default=dict)

    organization: Mapped[Organization] = relationship(back_populates="orders")
    event_year: Mapped[EventYear] = relationship()
    user: Mapped[User | None] = relationship()
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
    )
    payments: Mapped[list["OrderPayment"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
    )
    invoices: Mapped[list["OrderInvoice"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
    )


class OrderItem(TimestampedBase):
    __tablename__ = "order_item"

    order_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("order.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("product.id", ondelete="RESTRICT"),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Money, nullable=False)

    order: Mapped[Order] = relationship(back_populates="items")
    product: Mapped[Product] = relationship()


class OrderPayment(TimestampedBase):
    __tablename__ = "order_payment"
    __table_args__ = (
        Index("ix_order_payment_status_processed", "status", "processed_at"),
    )

    order_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("order.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[PaymentType] = mapped_column(
        SqlEnum(PaymentType, name="payment_type", native_enum=False),
        nullable=False,
    )
    status: Mapped[PaymentStatus] = mapped_column(
        SqlEnum(PaymentStatus, name="payment_status", native_enum=False),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    payment_intent_id: Mapped[str | None] = mapped_column(String(255), unique=True)
    payment_method_type: Mapped[str | None] = mapped_column(String(64))
    failure_reason: Mapped[str | None] = mapped_column(Text)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    meta: Mapped[dict | None] = mapped_column('metadata', JSONType, default=dict)

    order: Mapped[Order] = relationship(back_populates="payments")


class OrderInvoice(TimestampedBase):
    __tablename__ = "order_invoice"

    order_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("order.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    invoice_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    invoice_data: Mapped[dict | None] = mapped_column(JSONType, default=dict)
    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'))
    balance_owed: Mapped[Decimal] = mapped_column(Money, nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(
        SqlEnum(InvoiceStatus, name="invoice_status", native_enum=False),
        nullable=False,
        default=InvoiceStatus.DRAFT,
    )
    due_date: Mapped[date | None] = mapped_column(Date)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    notes: Mapped[str | None] = mapped_column(Text)

    order: Mapped[Order] = relationship(back_populates="invoices")


class Coupon(TimestampedBase):
    __tablename__ = "coupon"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(String(500))
    discount_type: Mapped[DiscountType] = mapped_column(
        SqlEnum(DiscountType, name="discount_type", native_enum=False),
        nullable=False,
    )
    discount_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    organization_restriction: Mapped[CouponRestriction] = mapped_column(
        SqlEnum(CouponRestriction, name="coupon_restriction", native_enum=False),
        nullable=False,
        default=CouponRestriction.ANYONE,
    )
    restricted_organizations: Mapped[list | None] = mapped_column(JSONType, default=list)
    max_uses: Mapped[int | None] = mapped_column(Integer)
    current_uses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    minimum_order_amount: Mapped[Decimal | None] = mapped_column(Money)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="SET NULL"),
    )


class TentPurchaseTracking(TimestampedBase):
    __tablename__ = "tent_purchase_tracking"
    __table_args__ = (
        UniqueConstraint("org_id", "event_year_id", name="uq_tent_tracking_org_year"),
    )

    org_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organization.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_year_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("event_year.id", ondelete="CASCADE"),
        nullable=False,
    )
    tent_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_allowed: Mapped[int] = mapped_column(Integer, nullable=False, default=2)


class AuditLog(TimestampedBase):
    __tablename__ = "audit_log"

    # Null for platform-level (super admin) actions
    org_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("organization.id", ondelete="CASCADE"),
        index=True,
    )
    user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="SET NULL"),
        index=True,
    )
    action: Mapped[str] = mapped_column(String(128), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(128), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(36))
    meta: Mapped[dict | None] = mapped_column(JSONType, default=dict)

    user: Mapped[User | None] = relationship(back_populates="audit_logs")


class EmailMessage(TimestampedBase):
    __tablename__ = "email_message"
    __table_args__ = (
        Index("ix_email_status_created", "status", "created_at"),
    )

    org_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("organization.id", ondelete="CASCADE"),
        index=True,
    )
    to_email: Mapped[str] = mapped_column(String(255), nullable=False)
    to_name: Mapped[str | None] = mapped_column(String(255))
    from_email: Mapped[str] = mapped_column(String(255), nullable=False)
    from_name: Mapped[str | None] = mapped_column(String(255))
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    template_key: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[EmailStatus] = mapped_column(
        SqlEnum(EmailStatus, name="email_status", native_enum=False),
        nullable=False,
        default=EmailStatus.QUEUED,
    )
    context: Mapped[dict | None] = mapped_column(JSONType, default=dict)
    html_content: Mapped[str | None] = mapped_column(Text)
    error_message: Mapped[str | None] = mapped_column(Text)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_retries: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    organization: Mapped[Organization | None] = relationship()
