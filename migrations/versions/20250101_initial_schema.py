"""
Initial RetailHub schema.

- Profiles, sessions, activation tokens and the deleted-retailer archive
- Wasstrips applications, onboarding, invitations
- Catalog and orders, notifications, email logs, settings
- Commercial prospects, campaigns, email queue and tracking
- Fulfillment orders and tracking events, audit logs
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = 'initial_20250101'
down_revision = None
branch_labels = None
depends_on = None


def _id():
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True)


def _ts(name, nullable=True):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _created():
    return sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()'))


def _updated():
    return sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()'))


def _fk(name, table, ondelete, nullable=False):
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(f'{table}.id', ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    # === Identity ===
    op.create_table(
        'profiles',
        _id(),
        sa.Column('email', sa.String(320), nullable=False, unique=True),
        sa.Column('full_name', sa.String(255)),
        sa.Column('company_name', sa.String(255)),
        sa.Column('phone', sa.String(50)),
        sa.Column('address', sa.Text()),
        sa.Column('city', sa.String(120)),
        sa.Column('postal_code', sa.String(20)),
        sa.Column('country', sa.String(80), server_default='Nederland'),
        sa.Column('website', sa.String(500)),
        sa.Column('chamber_of_commerce', sa.String(50)),
        sa.Column('vat_number', sa.String(50)),
        sa.Column('logo_url', sa.String(500)),
        sa.Column('notes', sa.Text()),
        sa.Column('role', sa.String(20), nullable=False, server_default='retailer'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('password_hash', sa.Text()),
        _ts('last_login_at'),
        _created(),
        _updated(),
    )
    op.create_index('ix_profiles_role_status', 'profiles', ['role', 'status'])
    op.create_index('ix_profiles_created_at', 'profiles', ['created_at'])

    op.create_table(
        'session_tokens',
        _id(),
        _fk('profile_id', 'profiles', 'CASCADE'),
        sa.Column('token_id', sa.String(64), nullable=False, unique=True),
        sa.Column('token_hash', sa.Text(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        _created(),
        _ts('last_used_at'),
        _ts('expires_at', nullable=False),
        _ts('revoked_at'),
    )
    op.create_index('idx_session_tokens_profile', 'session_tokens', ['profile_id', 'created_at'])

    op.create_table(
        'retailer_activation_tokens',
        _id(),
        _fk('profile_id', 'profiles', 'CASCADE'),
        sa.Column('token', sa.String(128), nullable=False, unique=True),
        _ts('expires_at', nullable=False),
        _ts('used_at'),
        _created(),
    )

    op.create_table(
        'deleted_retailers',
        _id(),
        sa.Column('original_profile_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('company_name', sa.String(255)),
        sa.Column('original_data', postgresql.JSONB(), nullable=False),
        sa.Column('deleted_by', postgresql.UUID(as_uuid=True)),
        sa.Column('reason', sa.Text()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )
    op.create_index('ix_deleted_retailers_deleted_at', 'deleted_retailers', ['deleted_at'])

    # === Wasstrips ===
    op.create_table(
        'wasstrips_applications',
        _id(),
        _fk('profile_id', 'profiles', 'CASCADE'),
        sa.Column('order_number', sa.String(40), nullable=False, unique=True),
        sa.Column('status', sa.String(30), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text()),
        sa.Column('metadata', postgresql.JSONB()),
        sa.Column('product_details', postgresql.JSONB()),
        sa.Column('deposit_status', sa.String(20), nullable=False, server_default='not_sent'),
        sa.Column('deposit_amount', sa.Numeric(10, 2), nullable=False, server_default='30'),
        sa.Column('deposit_payment_link', sa.String(255)),
        _ts('deposit_paid_at'),
        sa.Column('remaining_amount', sa.Numeric(10, 2), nullable=False, server_default='270'),
        sa.Column('remaining_payment_status', sa.String(20), nullable=False, server_default='not_sent'),
        sa.Column('remaining_payment_link', sa.String(255)),
        _ts('remaining_paid_at'),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False, server_default='300'),
        sa.Column('payment_options_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('payment_options_sent_at'),
        sa.Column('payment_method_selected', sa.String(20)),
        _ts('payment_method_selected_at'),
        _ts('shipped_at'),
        sa.Column('tracking_code', sa.String(100)),
        _ts('product_delivered_at'),
        sa.Column('stripe_invoice_id', sa.String(255)),
        _created(),
        _updated(),
    )
    op.create_index('ix_wasstrips_applications_profile_id', 'wasstrips_applications', ['profile_id'])
    op.create_index('ix_wasstrips_applications_status', 'wasstrips_applications', ['status'])
    op.create_index('ix_wasstrips_applications_created_at', 'wasstrips_applications', ['created_at'])

    # === Onboarding ===
    op.create_table(
        'onboarding_steps',
        _id(),
        sa.Column('step_number', sa.Integer(), nullable=False),
        sa.Column('step_key', sa.String(50), nullable=False, unique=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('component_name', sa.String(100)),
        sa.Column('is_required', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('estimated_time_minutes', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('reward_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created(),
    )

    op.create_table(
        'onboarding_progress',
        _id(),
        _fk('profile_id', 'profiles', 'CASCADE'),
        sa.Column('current_step', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total_steps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('steps_completed', postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('onboarding_data', postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('total_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        _ts('completed_at'),
        _ts('skipped_at'),
        _updated(),
    )
    op.create_index('ix_onboarding_progress_profile_id', 'onboarding_progress', ['profile_id'], unique=True)

    # === Invitations ===
    op.create_table(
        'business_invitations',
        _id(),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('business_name', sa.String(255)),
        sa.Column('contact_name', sa.String(255)),
        sa.Column('phone', sa.String(50)),
        sa.Column('invitation_token', sa.String(128), nullable=False, unique=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        _fk('invited_by', 'profiles', 'SET NULL', nullable=True),
        _ts('expires_at', nullable=False),
        _ts('used_at'),
        _fk('used_by', 'profiles', 'SET NULL', nullable=True),
        sa.Column('metadata', postgresql.JSONB()),
        sa.Column('tracking_pixel_id', sa.String(64), unique=True),
        sa.Column('click_tracking_id', sa.String(64), unique=True),
        _ts('email_sent_at'),
        _ts('email_opened_at'),
        _ts('email_clicked_at'),
        sa.Column('open_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('click_count', sa.Integer(), nullable=False, server_default='0'),
        _ts('registration_started_at'),
        sa.Column('reminder_count', sa.Integer(), nullable=False, server_default='0'),
        _ts('last_reminder_sent_at'),
        sa.Column('reminder_tracking_pixel_id', sa.String(64), unique=True),
        sa.Column('reminder_click_tracking_id', sa.String(64), unique=True),
        _ts('reminder_opened_at'),
        _ts('reminder_clicked_at'),
        _created(),
    )
    op.create_index('ix_business_invitations_email_status', 'business_invitations', ['email', 'status'])
    op.create_index('ix_business_invitations_created_at', 'business_invitations', ['created_at'])

    # === Catalog ===
    op.create_table(
        'products',
        _id(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('image_url', sa.String(500)),
        sa.Column('category', sa.String(100)),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('stripe_product_id', sa.String(255)),
        sa.Column('stripe_price_id', sa.String(255)),
        _ts('stripe_synced_at'),
        _created(),
        _updated(),
    )

    op.create_table(
        'orders',
        _id(),
        _fk('profile_id', 'profiles', 'SET NULL', nullable=True),
        sa.Column('order_number', sa.String(40), nullable=False, unique=True),
        sa.Column('status', sa.String(30), nullable=False, server_default='pending'),
        sa.Column('payment_status', sa.String(30), nullable=False, server_default='pending'),
        sa.Column('payment_method', sa.String(30), nullable=False, server_default='invoice'),
        sa.Column('items', postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('shipping_cost', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('tax_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('shipping_name', sa.String(255)),
        sa.Column('shipping_address', sa.Text()),
        sa.Column('shipping_city', sa.String(120)),
        sa.Column('shipping_postal_code', sa.String(20)),
        sa.Column('shipping_country', sa.String(80)),
        sa.Column('billing_name', sa.String(255)),
        sa.Column('billing_address', sa.Text()),
        sa.Column('billing_city', sa.String(120)),
        sa.Column('billing_postal_code', sa.String(20)),
        sa.Column('billing_country', sa.String(80)),
        sa.Column('metadata', postgresql.JSONB()),
        sa.Column('stripe_session_id', sa.String(255)),
        sa.Column('stripe_payment_intent_id', sa.String(255)),
        _created(),
        _updated(),
    )
    op.create_index('ix_orders_profile_id_created_at', 'orders', ['profile_id', 'created_at'])
    op.create_index('ix_orders_status', 'orders', ['status'])

    # === Notifications & settings ===
    op.create_table(
        'notification_preferences',
        _id(),
        sa.Column(
            'profile_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('profiles.id', ondelete='CASCADE'),
            nullable=False,
            unique=True,
        ),
        sa.Column('email_order_updates', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('email_promotions', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email_product_updates', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('email_retailer_updates', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('browser_notifications', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('whatsapp_notifications', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('notification_frequency', sa.String(20), nullable=False, server_default='instant'),
        _created(),
        _updated(),
    )

    op.create_table(
        'notifications',
        _id(),
        _fk('profile_id', 'profiles', 'CASCADE'),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('action_url', sa.String(500)),
        sa.Column('metadata', postgresql.JSONB()),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('read_at'),
        _created(),
        _ts('expires_at'),
    )
    op.create_index('idx_notifications_profile_id_created_at', 'notifications', ['profile_id', 'created_at'])
    op.create_index('idx_notifications_profile_id_is_read', 'notifications', ['profile_id', 'is_read'])

    op.create_table(
        'email_logs',
        _id(),
        sa.Column('recipient', sa.String(320), nullable=False),
        sa.Column('subject', sa.String(300), nullable=False),
        sa.Column('template', sa.String(100)),
        sa.Column('provider', sa.String(20)),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('provider_message_id', sa.String(255)),
        sa.Column('error_message', sa.Text()),
        _ts('sent_at'),
        _created(),
    )
    op.create_index('idx_email_logs_status_created_at', 'email_logs', ['status', 'created_at'])

    op.create_table(
        'settings',
        _id(),
        sa.Column('key', sa.String(100), nullable=False, unique=True),
        sa.Column('value', postgresql.JSONB()),
        _updated(),
    )

    # === Commercial ===
    op.create_table(
        'commercial_prospects',
        _id(),
        sa.Column('business_name', sa.String(255), nullable=False),
        sa.Column('contact_name', sa.String(255)),
        sa.Column('email', sa.String(320)),
        sa.Column('phone', sa.String(50)),
        sa.Column('website', sa.String(500)),
        sa.Column('address', sa.Text()),
        sa.Column('city', sa.String(120)),
        sa.Column('postal_code', sa.String(20)),
        sa.Column('business_segment', sa.String(50)),
        sa.Column('status', sa.String(30), nullable=False, server_default='new'),
        sa.Column('discovery_source', sa.String(30), nullable=False, server_default='manual'),
        sa.Column('lead_quality_score', sa.Float()),
        sa.Column('business_quality_score', sa.Float()),
        sa.Column('enrichment_score', sa.Float()),
        sa.Column('kvk_number', sa.String(20)),
        sa.Column('google_place_id', sa.String(255)),
        sa.Column('raw_data', postgresql.JSONB()),
        sa.Column('notes', sa.Text()),
        _ts('initial_outreach_date'),
        _ts('last_contact_date'),
        _created(),
        _updated(),
    )
    op.create_index('ix_commercial_prospects_status', 'commercial_prospects', ['status'])
    op.create_index('ix_commercial_prospects_segment', 'commercial_prospects', ['business_segment'])
    op.create_index('ix_commercial_prospects_name_city', 'commercial_prospects', ['business_name', 'city'])
    op.create_index('ix_commercial_prospects_created_at', 'commercial_prospects', ['created_at'])

    op.create_table(
        'prospect_invitation_codes',
        _id(),
        _fk('prospect_id', 'commercial_prospects', 'CASCADE'),
        sa.Column('code', sa.String(40), nullable=False, unique=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts('expires_at'),
        _ts('used_at'),
        _created(),
    )

    op.create_table(
        'commercial_email_campaigns',
        _id(),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('business_segment', sa.String(50), nullable=False),
        sa.Column('steps', postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('max_emails_per_day', sa.Integer(), nullable=False, server_default='100'),
        sa.Column('min_hours_between_emails', sa.Integer(), nullable=False, server_default='24'),
        sa.Column('respect_business_hours', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('timezone', sa.String(50), nullable=False, server_default='Europe/Amsterdam'),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created(),
        _updated(),
    )

    op.create_table(
        'commercial_email_queue',
        _id(),
        _fk('prospect_id', 'commercial_prospects', 'CASCADE'),
        _fk('campaign_id', 'commercial_email_campaigns', 'SET NULL', nullable=True),
        sa.Column('campaign_step', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('recipient_email', sa.String(320), nullable=False),
        sa.Column('recipient_name', sa.String(255)),
        sa.Column('personalized_subject', sa.String(300), nullable=False),
        sa.Column('personalized_html', sa.Text()),
        sa.Column('personalized_text', sa.Text()),
        _ts('scheduled_at', nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_retries', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('error_message', sa.Text()),
        sa.Column('provider_message_id', sa.String(255)),
        sa.Column('tracking_pixel_id', sa.String(64), unique=True),
        sa.Column('click_tracking_ids', postgresql.JSONB()),
        _ts('sent_at'),
        _ts('opened_at'),
        _ts('clicked_at'),
        _ts('unsubscribed_at'),
        _created(),
        _updated(),
    )
    op.create_index('ix_commercial_email_queue_status_scheduled', 'commercial_email_queue', ['status', 'scheduled_at'])
    op.create_index('ix_commercial_email_queue_prospect_id', 'commercial_email_queue', ['prospect_id'])

    op.create_table(
        'commercial_email_tracking',
        _id(),
        _fk('queue_item_id', 'commercial_email_queue', 'CASCADE'),
        _fk('prospect_id', 'commercial_prospects', 'CASCADE', nullable=True),
        sa.Column('event_type', sa.String(20), nullable=False),
        sa.Column('user_agent', sa.Text()),
        sa.Column('ip_address', sa.String(64)),
        sa.Column('device_type', sa.String(20)),
        sa.Column('email_client', sa.String(50)),
        sa.Column('clicked_url', sa.Text()),
        sa.Column('raw_data', postgresql.JSONB()),
        _created(),
    )
    op.create_index('ix_commercial_email_tracking_item_event', 'commercial_email_tracking', ['queue_item_id', 'event_type'])

    # === Fulfillment ===
    op.create_table(
        'fulfillment_orders',
        _id(),
        _fk('prospect_id', 'commercial_prospects', 'SET NULL', nullable=True),
        sa.Column('package_type', sa.String(50), nullable=False, server_default='proefpakket'),
        sa.Column('recipient_name', sa.String(255), nullable=False),
        sa.Column('recipient_email', sa.String(320)),
        sa.Column('shipping_address', sa.Text()),
        sa.Column('shipping_city', sa.String(120)),
        sa.Column('shipping_postal_code', sa.String(20)),
        sa.Column('shipping_provider', sa.String(20), nullable=False),
        sa.Column('tracking_number', sa.String(100), unique=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        _ts('shipped_at'),
        _ts('delivered_at'),
        _created(),
        _updated(),
    )
    op.create_index('ix_fulfillment_orders_status', 'fulfillment_orders', ['status'])

    op.create_table(
        'fulfillment_tracking_events',
        _id(),
        _fk('order_id', 'fulfillment_orders', 'CASCADE'),
        sa.Column('tracking_number', sa.String(100)),
        sa.Column('event_type', sa.String(20), nullable=False),
        sa.Column('event_description', sa.Text()),
        sa.Column('event_timestamp', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('location', sa.String(255)),
        sa.Column('provider_reference', sa.String(255)),
        sa.Column('metadata', postgresql.JSONB()),
        _created(),
    )
    op.create_index('ix_fulfillment_tracking_events_order', 'fulfillment_tracking_events', ['order_id', 'event_timestamp'])

    # === Audit ===
    op.create_table(
        'audit_logs',
        _id(),
        sa.Column('actor_profile_id', postgresql.UUID(as_uuid=True)),
        sa.Column('action_type', sa.Text(), nullable=False),
        sa.Column('target_type', sa.Text()),
        sa.Column('target_id', postgresql.UUID(as_uuid=True)),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('metadata', postgresql.JSONB()),
        _created(),
    )
    op.create_index('ix_audit_logs_actor_profile_id_created_at', 'audit_logs', ['actor_profile_id', 'created_at'])
    op.create_index('ix_audit_logs_action_type', 'audit_logs', ['action_type'])


def downgrade() -> None:
    # Reverse dependency order
    for table in (
        'audit_logs',
        'fulfillment_tracking_events',
        'fulfillment_orders',
        'commercial_email_tracking',
        'commercial_email_queue',
        'commercial_email_campaigns',
        'prospect_invitation_codes',
        'commercial_prospects',
        'settings',
        'email_logs',
        'notifications',
        'notification_preferences',
        'orders',
        'products',
        'business_invitations',
        'onboarding_progress',
        'onboarding_steps',
        'wasstrips_applications',
        'deleted_retailers',
        'retailer_activation_tokens',
        'session_tokens',
        'profiles',
    ):
        op.drop_table(table)
