"""initial sportsfest schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')
Money = sa.Numeric(precision=12, scale=2)


def _enum(name, *values):
    return sa.Enum(*values, name=name, native_enum=False)


def _timestamps():
    return [
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


EVENT_TYPES = ('BEACH_VOLLEYBALL', 'BEACH_DODGEBALL', 'BOTE_BEACH_CHALLENGE', 'TUG_OF_WAR', 'CORN_TOSS')


def upgrade():
    op.create_table(
        'organization',
        *_timestamps(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        sa.Column('contact_phone', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_organization_slug', 'organization', ['slug'], unique=True)

    op.create_table(
        'event_year',
        *_timestamps(),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('event_start_date', sa.Date(), nullable=False),
        sa.Column('event_end_date', sa.Date(), nullable=False),
        sa.Column('registration_open_date', sa.Date(), nullable=True),
        sa.Column('registration_close_date', sa.Date(), nullable=True),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.CheckConstraint('year >= 2023 AND year <= 2030', name='ck_event_year_range'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('year'),
    )

    op.create_table(
        'user',
        *_timestamps(),
        sa.Column('org_id', sa.String(length=36), nullable=True),
        sa.Column('name', sa.String(length=64), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('role', _enum('user_role', 'OWNER', 'ADMIN', 'MEMBER'), nullable=False),
        sa.Column('is_super_admin', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('password_reset_token', sa.String(length=64), nullable=True),
        sa.Column('password_reset_expires', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_login_ip', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['org_id'], ['organization.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'email', name='uq_user_org_email'),
    )
    op.create_index('ix_user_org_id', 'user', ['org_id'])
    op.create_index('ix_user_email', 'user', ['email'])
    op.create_index('ix_user_password_reset_token', 'user', ['password_reset_token'])

    op.create_table(
        'player',
        *_timestamps(),
        sa.Column('org_id', sa.String(length=36), nullable=False),
        sa.Column('event_year_id', sa.String(length=36), nullable=False),
        sa.Column('first_name', sa.String(length=255), nullable=False),
        sa.Column('last_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('gender', _enum('gender', 'MALE', 'FEMALE'), nullable=False),
        sa.Column('tshirt_size', sa.String(length=8), nullable=True),
        sa.Column('status', _enum('player_status', 'REGISTERED', 'INACTIVE'), nullable=False),
        sa.Column('waiver_signed', sa.Boolean(), nullable=False),
        sa.Column('accuracy_confirmed', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['event_year_id'], ['event_year.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['org_id'], ['organization.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_year_id', 'email', name='uq_player_event_year_email'),
    )
    op.create_index('ix_player_org_id', 'player', ['org_id'])
    op.create_index('ix_player_event_year_id', 'player', ['event_year_id'])
    op.create_index('ix_player_org_event_year', 'player', ['org_id', 'event_year_id'])

    op.create_table(
        'player_event_interest',
        *_timestamps(),
        sa.Column('player_id', sa.String(length=36), nullable=False),
        sa.Column('event_type', _enum('event_type', *EVENT_TYPES), nullable=False),
        sa.Column('interest_rating', sa.Integer(), nullable=False),
        sa.CheckConstraint('interest_rating >= 1 AND interest_rating <= 5', name='ck_interest_rating_range'),
        sa.ForeignKeyConstraint(['player_id'], ['player.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('player_id', 'event_type', name='uq_player_event_interest'),
    )
    op.create_index('ix_player_event_interest_player_id', 'player_event_interest', ['player_id'])

    op.create_table(
        'company_team',
        *_timestamps(),
        sa.Column('org_id', sa.String(length=36), nullable=False),
        sa.Column('event_year_id', sa.String(length=36), nullable=False),
        sa.Column('team_number', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('is_paid', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['event_year_id'], ['event_year.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['org_id'], ['organization.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'event_year_id', 'team_number', name='uq_company_team_number'),
    )
    op.create_index('ix_company_team_org_id', 'company_team', ['org_id'])
    op.create_index('ix_company_team_event_year_id', 'company_team', ['event_year_id'])

    op.create_table(
        'team_roster',
        *_timestamps(),
        sa.Column('team_id', sa.String(length=36), nullable=False),
        sa.Column('player_id', sa.String(length=36), nullable=False),
        sa.Column('is_captain', sa.Boolean(), nullable=False),
        sa.Column('assigned_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['player_id'], ['player.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['team_id'], ['company_team.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('player_id'),
    )
    op.create_index('ix_team_roster_team_id', 'team_roster', ['team_id'])

    op.create_table(
        'event_roster',
        *_timestamps(),
        sa.Column('team_id', sa.String(length=36), nullable=False),
        sa.Column('player_id', sa.String(length=36), nullable=False),
        sa.Column('event_type', _enum('event_type', *EVENT_TYPES), nullable=False),
        sa.Column('is_starter', sa.Boolean(), nullable=False),
        sa.Column('squad_leader', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['player_id'], ['player.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['team_id'], ['company_team.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('player_id', 'team_id', 'event_type', name='uq_event_roster_player_team_event'),
    )
    op.create_index('ix_event_roster_player_id', 'event_roster', ['player_id'])
    op.create_index('ix_event_roster_team_event', 'event_roster', ['team_id', 'event_type'])

    op.create_table(
        'product',
        *_timestamps(),
        sa.Column('event_year_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('type', _enum('product_type', 'TENT_RENTAL', 'TEAM_REGISTRATION', 'MERCHANDISE',
                                'EQUIPMENT', 'SERVICES'), nullable=False),
        sa.Column('status', _enum('product_status', 'ACTIVE', 'INACTIVE', 'ARCHIVED'), nullable=False),
        sa.Column('price', Money, nullable=False),
        sa.Column('requires_deposit', sa.Boolean(), nullable=False),
        sa.Column('deposit_amount', Money, nullable=True),
        sa.Column('total_inventory', sa.Integer(), nullable=True),
        sa.Column('max_quantity_per_org', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['event_year_id'], ['event_year.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_product_event_year_id', 'product', ['event_year_id'])

    op.create_table(
        'order',
        *_timestamps(),
        sa.Column('org_id', sa.String(length=36), nullable=False),
        sa.Column('event_year_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('order_number', sa.String(length=64), nullable=False),
        sa.Column('status', _enum('order_status', 'PENDING', 'PAYMENT_PROCESSING', 'CONFIRMED', 'DEPOSIT_PAID',
                                  'FULLY_PAID', 'PARTIAL_PAYMENT', 'PAID', 'FULFILLED', 'CANCELLED',
                                  'REFUNDED'), nullable=False),
        sa.Column('total_amount', Money, nullable=False),
        sa.Column('balance_owed', Money, nullable=False),
        sa.Column('discount_amount', Money, nullable=False),
        sa.Column('coupon_code', sa.String(length=50), nullable=True),
        sa.Column('is_sponsorship', sa.Boolean(), nullable=False),
        sa.Column('is_manually_created', sa.Boolean(), nullable=False),
        sa.Column('payment_intent_id', sa.String(length=255), nullable=True),
        sa.Column('metadata', JSONType, nullable=True),
        sa.ForeignKeyConstraint(['event_year_id'], ['event_year.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['org_id'], ['organization.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number'),
    )
    op.create_index('ix_order_org_id', 'order', ['org_id'])
    op.create_index('ix_order_org_status', 'order', ['org_id', 'status'])
    op.create_index('ix_order_event_year_created', 'order', ['event_year_id', 'created_at'])

    op.create_table(
        'order_item',
        *_timestamps(),
        sa.Column('order_id', sa.String(length=36), nullable=False),
        sa.Column('product_id', sa.String(length=36), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', Money, nullable=False),
        sa.Column('total_price', Money, nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['order.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['product.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_item_order_id', 'order_item', ['order_id'])

    op.create_table(
        'order_payment',
        *_timestamps(),
        sa.Column('order_id', sa.String(length=36), nullable=False),
        sa.Column('type', _enum('payment_type', 'TEAM_REGISTRATION', 'TENT_RENTAL', 'PRODUCT_PURCHASE',
                                'DEPOSIT_PAYMENT', 'BALANCE_PAYMENT'), nullable=False),
        sa.Column('status', _enum('payment_status', 'PENDING', 'COMPLETED', 'FAILED', 'REFUNDED'), nullable=False),
        sa.Column('amount', Money, nullable=False),
        sa.Column('payment_intent_id', sa.String(length=255), nullable=True),
        sa.Column('payment_method_type', sa.String(length=64), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('metadata', JSONType, nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['order.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_intent_id'),
    )
    op.create_index('ix_order_payment_order_id', 'order_payment', ['order_id'])
    op.create_index('ix_order_payment_status_processed', 'order_payment', ['status', 'processed_at'])

    op.create_table(
        'order_invoice',
        *_timestamps(),
        sa.Column('order_id', sa.String(length=36), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('invoice_data', JSONType, nullable=True),
        sa.Column('total_amount', Money, nullable=False),
        sa.Column('paid_amount', Money, nullable=False),
        sa.Column('balance_owed', Money, nullable=False),
        sa.Column('status', _enum('invoice_status', 'DRAFT', 'SENT', 'PAID', 'PARTIAL', 'OVERDUE',
                                  'CANCELLED'), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['order.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_number'),
    )
    op.create_index('ix_order_invoice_order_id', 'order_invoice', ['order_id'])

    op.create_table(
        'coupon',
        *_timestamps(),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('discount_type', _enum('discount_type', 'PERCENTAGE', 'FIXED_AMOUNT'), nullable=False),
        sa.Column('discount_value', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('organization_restriction', _enum('coupon_restriction', 'ANYONE', 'SPECIFIC'), nullable=False),
        sa.Column('restricted_organizations', JSONType, nullable=True),
        sa.Column('max_uses', sa.Integer(), nullable=True),
        sa.Column('current_uses', sa.Integer(), nullable=False),
        sa.Column('minimum_order_amount', Money, nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        sa.ForeignKeyConstraint(['created_by'], ['user.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_coupon_code', 'coupon', ['code'], unique=True)

    op.create_table(
        'tent_purchase_tracking',
        *_timestamps(),
        sa.Column('org_id', sa.String(length=36), nullable=False),
        sa.Column('event_year_id', sa.String(length=36), nullable=False),
        sa.Column('tent_count', sa.Integer(), nullable=False),
        sa.Column('max_allowed', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['event_year_id'], ['event_year.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['org_id'], ['organization.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'event_year_id', name='uq_tent_tracking_org_year'),
    )
    op.create_index('ix_tent_purchase_tracking_org_id', 'tent_purchase_tracking', ['org_id'])

    op.create_table(
        'audit_log',
        *_timestamps(),
        sa.Column('org_id', sa.String(length=36), nullable=True),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('action', sa.String(length=128), nullable=False),
        sa.Column('entity_type', sa.String(length=128), nullable=False),
        sa.Column('entity_id', sa.String(length=36), nullable=True),
        sa.Column('meta', JSONType, nullable=True),
        sa.ForeignKeyConstraint(['org_id'], ['organization.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_log_org_id', 'audit_log', ['org_id'])
    op.create_index('ix_audit_log_user_id', 'audit_log', ['user_id'])

    op.create_table(
        'email_message',
        *_timestamps(),
        sa.Column('org_id', sa.String(length=36), nullable=True),
        sa.Column('to_email', sa.String(length=255), nullable=False),
        sa.Column('to_name', sa.String(length=255), nullable=True),
        sa.Column('from_email', sa.String(length=255), nullable=False),
        sa.Column('from_name', sa.String(length=255), nullable=True),
        sa.Column('subject', sa.String(length=500), nullable=False),
        sa.Column('template_key', sa.String(length=100), nullable=False),
        sa.Column('status', _enum('email_status', 'QUEUED', 'SENDING', 'SENT', 'FAILED'), nullable=False),
        sa.Column('context', JSONType, nullable=True),
        sa.Column('html_content', sa.Text(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False),
        sa.Column('max_retries', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['organization.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_email_message_org_id', 'email_message', ['org_id'])
    op.create_index('ix_email_status_created', 'email_message', ['status', 'created_at'])


def downgrade():
    for table in (
        'email_message',
        'audit_log',
        'tent_purchase_tracking',
        'coupon',
        'order_invoice',
        'order_payment',
        'order_item',
        'order',
        'product',
        'event_roster',
        'team_roster',
        'company_team',
        'player_event_interest',
        'player',
        'user',
        'event_year',
        'organization',
    ):
        op.drop_table(table)
