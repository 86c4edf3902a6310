import uuid
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc


class FulfillmentOrder(Base):
    __tablename__ = 'fulfillment_orders'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    prospect_id = Column(UUID(as_uuid=True), ForeignKey('commercial_prospects.id', ondelete='SET NULL'), nullable=True)
    package_type = Column(String(50), nullable=False, default='proefpakket')
    recipient_name = Column(String(255), nullable=False)
    recipient_email = Column(String(320), nullable=True)
    shipping_address = Column(Text, nullable=True)
    shipping_city = Column(String(120), nullable=True)
    shipping_postal_code = Column(String(20), nullable=True)
    shipping_provider = Column(String(20), nullable=False)  # dhl|postnl
    tracking_number = Column(String(100), nullable=True, unique=True)
    # pending|shipped|in_transit|delivered|failed
    status = Column(String(20), nullable=False, default='pending')
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    events = relationship(
        'FulfillmentTrackingEvent',
        back_populates='order',
        cascade='all, delete-orphan',
        passive_deletes=True,
        order_by='FulfillmentTrackingEvent.event_timestamp',
    )

    __table_args__ = (
        Index('ix_fulfillment_orders_status', 'status'),
    )


class FulfillmentTrackingEvent(Base):
    __tablename__ = 'fulfillment_tracking_events'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey('fulfillment_orders.id', ondelete='CASCADE'), nullable=False)
    tracking_number = Column(String(100), nullable=True)
    # shipped|in_transit|delivered|delayed|failed|returned
    event_type = Column(String(20), nullable=False)
    event_description = Column(Text, nullable=True)
    event_timestamp = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    location = Column(String(255), nullable=True)
    provider_reference = Column(String(255), nullable=True)
    metadata_json = Column('metadata', JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    order = relationship('FulfillmentOrder', back_populates='events')

    __table_args__ = (
        Index('ix_fulfillment_tracking_events_order', 'order_id', 'event_timestamp'),
    )
