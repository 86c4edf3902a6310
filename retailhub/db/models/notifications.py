import uuid
from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc


class NotificationPreference(Base):
    __tablename__ = 'notification_preferences'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    profile_id = Column(UUID(as_uuid=True), ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, unique=True)
    email_order_updates = Column(Boolean, nullable=False, default=True)
    email_promotions = Column(Boolean, nullable=False, default=False)
    email_product_updates = Column(Boolean, nullable=False, default=True)
    email_retailer_updates = Column(Boolean, nullable=False, default=True)
    browser_notifications = Column(Boolean, nullable=False, default=False)
    whatsapp_notifications = Column(Boolean, nullable=False, default=False)
    notification_frequency = Column(String(20), nullable=False, default='instant')
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)


class Notification(Base):
    __tablename__ = 'notifications'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    profile_id = Column(UUID(as_uuid=True), ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    event_type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    action_url = Column(String(500), nullable=True)
    metadata_json = Column('metadata', JSONB, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('idx_notifications_profile_id_created_at', 'profile_id', 'created_at'),
        Index('idx_notifications_profile_id_is_read', 'profile_id', 'is_read'),
    )


class EmailLog(Base):
    __tablename__ = 'email_logs'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    recipient = Column(String(320), nullable=False)
    subject = Column(String(300), nullable=False)
    template = Column(String(100), nullable=True)
    provider = Column(String(20), nullable=True)
    status = Column(String(20), nullable=False, default='pending')  # pending|sent|failed
    provider_message_id = Column(String(255), nullable=True)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_email_logs_status_created_at', 'status', 'created_at'),
    )
