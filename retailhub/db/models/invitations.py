import uuid
from sqlalchemy import Column, String, Text, DateTime, Integer, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc


class BusinessInvitation(Base):
    __tablename__ = 'business_invitations'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(320), nullable=False)
    business_name = Column(String(255), nullable=True)
    contact_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    invitation_token = Column(String(128), nullable=False, unique=True)
    status = Column(String(20), nullable=False, default='pending')  # pending|used|expired|cancelled
    invited_by = Column(UUID(as_uuid=True), ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    used_by = Column(UUID(as_uuid=True), ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True)
    metadata_json = Column('metadata', JSONB, nullable=True)

    # Delivery tracking
    tracking_pixel_id = Column(String(64), nullable=True, unique=True)
    click_tracking_id = Column(String(64), nullable=True, unique=True)
    email_sent_at = Column(DateTime(timezone=True), nullable=True)
    email_opened_at = Column(DateTime(timezone=True), nullable=True)
    email_clicked_at = Column(DateTime(timezone=True), nullable=True)
    open_count = Column(Integer, nullable=False, default=0)
    click_count = Column(Integer, nullable=False, default=0)
    registration_started_at = Column(DateTime(timezone=True), nullable=True)

    # Reminders
    reminder_count = Column(Integer, nullable=False, default=0)
    last_reminder_sent_at = Column(DateTime(timezone=True), nullable=True)
    reminder_tracking_pixel_id = Column(String(64), nullable=True, unique=True)
    reminder_click_tracking_id = Column(String(64), nullable=True, unique=True)
    reminder_opened_at = Column(DateTime(timezone=True), nullable=True)
    reminder_clicked_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        Index('ix_business_invitations_email_status', 'email', 'status'),
        Index('ix_business_invitations_created_at', 'created_at'),
    )
