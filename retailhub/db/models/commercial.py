import uuid
from sqlalchemy import Column, String, Text, DateTime, Boolean, Integer, Float, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc


class CommercialProspect(Base):
    __tablename__ = 'commercial_prospects'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_name = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=True)
    email = Column(String(320), nullable=True)
    phone = Column(String(50), nullable=True)
    website = Column(String(500), nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(120), nullable=True)
    postal_code = Column(String(20), nullable=True)
    business_segment = Column(String(50), nullable=True)
    # new|qualified|contacted|interested|converted|rejected|unsubscribed
    status = Column(String(30), nullable=False, default='new')
    discovery_source = Column(String(30), nullable=False, default='manual')
    lead_quality_score = Column(Float, nullable=True)
    business_quality_score = Column(Float, nullable=True)
    enrichment_score = Column(Float, nullable=True)
    kvk_number = Column(String(20), nullable=True)
    google_place_id = Column(String(255), nullable=True)
    raw_data = Column(JSONB, nullable=True)
    notes = Column(Text, nullable=True)
    initial_outreach_date = Column(DateTime(timezone=True), nullable=True)
    last_contact_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    queue_items = relationship('CommercialEmailQueueItem', back_populates='prospect', passive_deletes=True)

    __table_args__ = (
        Index('ix_commercial_prospects_status', 'status'),
        Index('ix_commercial_prospects_segment', 'business_segment'),
        Index('ix_commercial_prospects_name_city', 'business_name', 'city'),
        Index('ix_commercial_prospects_created_at', 'created_at'),
    )


class ProspectInvitationCode(Base):
    __tablename__ = 'prospect_invitation_codes'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    prospect_id = Column(UUID(as_uuid=True), ForeignKey('commercial_prospects.id', ondelete='CASCADE'), nullable=False)
    code = Column(String(40), nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    used_at = Column(DateTime(timezone=True), nullable=True)  # first landing-page visit
    visits_count = Column(Integer, nullable=False, default=0)
    last_visited_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    prospect = relationship('CommercialProspect')


class CommercialEmailCampaign(Base):
    __tablename__ = 'commercial_email_campaigns'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    business_segment = Column(String(50), nullable=False)
    steps = Column(JSONB, nullable=False, default=list)
    max_emails_per_day = Column(Integer, nullable=False, default=100)
    min_hours_between_emails = Column(Integer, nullable=False, default=24)
    respect_business_hours = Column(Boolean, nullable=False, default=True)
    timezone = Column(String(50), nullable=False, default='Europe/Amsterdam')
    is_default = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)


class CommercialEmailQueueItem(Base):
    __tablename__ = 'commercial_email_queue'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    prospect_id = Column(UUID(as_uuid=True), ForeignKey('commercial_prospects.id', ondelete='CASCADE'), nullable=False)
    campaign_id = Column(UUID(as_uuid=True), ForeignKey('commercial_email_campaigns.id', ondelete='SET NULL'), nullable=True)
    campaign_step = Column(Integer, nullable=False, default=1)
    recipient_email = Column(String(320), nullable=False)
    recipient_name = Column(String(255), nullable=True)
    personalized_subject = Column(String(300), nullable=False)
    personalized_html = Column(Text, nullable=True)
    personalized_text = Column(Text, nullable=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    # pending|processing|sent|failed|opened|clicked|unsubscribed
    status = Column(String(20), nullable=False, default='pending')
    priority = Column(Integer, nullable=False, default=5)
    attempts = Column(Integer, nullable=False, default=0)
    max_retries = Column(Integer, nullable=False, default=3)
    error_message = Column(Text, nullable=True)
    provider_message_id = Column(String(255), nullable=True)
    tracking_pixel_id = Column(String(64), nullable=True, unique=True)
    click_tracking_ids = Column(JSONB, nullable=True)  # {tracking_id: original_url}
    sent_at = Column(DateTime(timezone=True), nullable=True)
    opened_at = Column(DateTime(timezone=True), nullable=True)
    clicked_at = Column(DateTime(timezone=True), nullable=True)
    unsubscribed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    prospect = relationship('CommercialProspect', back_populates='queue_items')
    click_links = relationship('CommercialEmailClickLink', back_populates='queue_item', cascade='all, delete-orphan')

    __table_args__ = (
        Index('ix_commercial_email_queue_status_scheduled', 'status', 'scheduled_at'),
        Index('ix_commercial_email_queue_prospect_id', 'prospect_id'),
    )


class CommercialEmailClickLink(Base):
    """One rewritten link in a sent outreach email, looked up by its tracking id."""
    __tablename__ = 'commercial_email_click_links'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    queue_item_id = Column(UUID(as_uuid=True), ForeignKey('commercial_email_queue.id', ondelete='CASCADE'), nullable=False)
    tracking_id = Column(String(64), nullable=False)
    original_url = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    queue_item = relationship('CommercialEmailQueueItem', back_populates='click_links')

    __table_args__ = (
        Index('ix_commercial_email_click_links_tracking_id', 'tracking_id', unique=True),
        Index('ix_commercial_email_click_links_queue_item_id', 'queue_item_id'),
    )


class CommercialEmailTrackingEvent(Base):
    __tablename__ = 'commercial_email_tracking'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    queue_item_id = Column(UUID(as_uuid=True), ForeignKey('commercial_email_queue.id', ondelete='CASCADE'), nullable=False)
    prospect_id = Column(UUID(as_uuid=True), ForeignKey('commercial_prospects.id', ondelete='CASCADE'), nullable=True)
    event_type = Column(String(20), nullable=False)  # opened|clicked|unsubscribed
    user_agent = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    device_type = Column(String(20), nullable=True)
    email_client = Column(String(50), nullable=True)
    clicked_url = Column(Text, nullable=True)
    raw_data = Column(JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        Index('ix_commercial_email_tracking_item_event', 'queue_item_id', 'event_type'),
    )
