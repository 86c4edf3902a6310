import uuid
from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, Index, Numeric
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc

DEFAULT_DEPOSIT_AMOUNT = 30
DEFAULT_REMAINING_AMOUNT = 270
DEFAULT_TOTAL_AMOUNT = 300


class WasstripsApplication(Base):
    __tablename__ = 'wasstrips_applications'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    profile_id = Column(UUID(as_uuid=True), ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    order_number = Column(String(40), nullable=False, unique=True)
    # pending|approved|shipped|order_ready|payment_selected|delivered
    status = Column(String(30), nullable=False, default='pending')
    notes = Column(Text, nullable=True)
    metadata_json = Column('metadata', JSONB, nullable=True)
    product_details = Column(JSONB, nullable=True)

    deposit_status = Column(String(20), nullable=False, default='not_sent')  # not_sent|sent|paid
    deposit_amount = Column(Numeric(10, 2), nullable=False, default=DEFAULT_DEPOSIT_AMOUNT)
    deposit_payment_link = Column(String(255), nullable=True)
    deposit_paid_at = Column(DateTime(timezone=True), nullable=True)

    remaining_amount = Column(Numeric(10, 2), nullable=False, default=DEFAULT_REMAINING_AMOUNT)
    remaining_payment_status = Column(String(20), nullable=False, default='not_sent')
    remaining_payment_link = Column(String(255), nullable=True)
    remaining_paid_at = Column(DateTime(timezone=True), nullable=True)

    total_amount = Column(Numeric(10, 2), nullable=False, default=DEFAULT_TOTAL_AMOUNT)

    payment_options_sent = Column(Boolean, nullable=False, default=False)
    payment_options_sent_at = Column(DateTime(timezone=True), nullable=True)
    payment_method_selected = Column(String(20), nullable=True)  # direct|invoice
    payment_method_selected_at = Column(DateTime(timezone=True), nullable=True)

    shipped_at = Column(DateTime(timezone=True), nullable=True)
    tracking_code = Column(String(100), nullable=True)
    product_delivered_at = Column(DateTime(timezone=True), nullable=True)
    stripe_invoice_id = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    profile = relationship('Profile', back_populates='wasstrips_applications')

    __table_args__ = (
        Index('ix_wasstrips_applications_profile_id', 'profile_id'),
        Index('ix_wasstrips_applications_status', 'status'),
        Index('ix_wasstrips_applications_created_at', 'created_at'),
    )
