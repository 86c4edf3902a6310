import uuid
from sqlalchemy import Column, String, Text, DateTime, Boolean, Integer, ForeignKey, Index, Numeric
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc


class Product(Base):
    __tablename__ = 'products'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(500), nullable=True)
    category = Column(String(100), nullable=True)
    stock_quantity = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    stripe_product_id = Column(String(255), nullable=True)
    stripe_price_id = Column(String(255), nullable=True)
    stripe_synced_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)


class Order(Base):
    __tablename__ = 'orders'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    profile_id = Column(UUID(as_uuid=True), ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True)
    order_number = Column(String(40), nullable=False, unique=True)
    status = Column(String(30), nullable=False, default='pending')
    payment_status = Column(String(30), nullable=False, default='pending')
    payment_method = Column(String(30), nullable=False, default='invoice')
    items = Column(JSONB, nullable=False, default=list)
    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    shipping_cost = Column(Numeric(10, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)

    shipping_name = Column(String(255), nullable=True)
    shipping_address = Column(Text, nullable=True)
    shipping_city = Column(String(120), nullable=True)
    shipping_postal_code = Column(String(20), nullable=True)
    shipping_country = Column(String(80), nullable=True)
    billing_name = Column(String(255), nullable=True)
    billing_address = Column(Text, nullable=True)
    billing_city = Column(String(120), nullable=True)
    billing_postal_code = Column(String(20), nullable=True)
    billing_country = Column(String(80), nullable=True)

    metadata_json = Column('metadata', JSONB, nullable=True)
    stripe_session_id = Column(String(255), nullable=True)
    stripe_payment_intent_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    __table_args__ = (
        Index('ix_orders_profile_id_created_at', 'profile_id', 'created_at'),
        Index('ix_orders_status', 'status'),
    )
