import uuid
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc


class Profile(Base):
    __tablename__ = 'profiles'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(320), nullable=False, unique=True)
    full_name = Column(String(255), nullable=True)
    company_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(120), nullable=True)
    postal_code = Column(String(20), nullable=True)
    country = Column(String(80), nullable=True, default='Nederland')
    website = Column(String(500), nullable=True)
    chamber_of_commerce = Column(String(50), nullable=True)
    vat_number = Column(String(50), nullable=True)
    logo_url = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    role = Column(String(20), nullable=False, default='retailer')  # admin|retailer
    status = Column(String(20), nullable=False, default='pending')  # pending|active|suspended
    password_hash = Column(Text, nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    session_tokens = relationship('SessionToken', back_populates='profile', cascade='all, delete-orphan', passive_deletes=True)
    activation_tokens = relationship('RetailerActivationToken', back_populates='profile', cascade='all, delete-orphan', passive_deletes=True)
    wasstrips_applications = relationship('WasstripsApplication', back_populates='profile', cascade='all, delete-orphan', passive_deletes=True)

    __table_args__ = (
        Index('ix_profiles_role_status', 'role', 'status'),
        Index('ix_profiles_created_at', 'created_at'),
    )


class SessionToken(Base):
    __tablename__ = 'session_tokens'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    profile_id = Column(UUID(as_uuid=True), ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    # Token identity and secret hash (never store raw secret)
    token_id = Column(String(64), nullable=False, unique=True)
    token_hash = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default='active')  # active|revoked
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    profile = relationship('Profile', back_populates='session_tokens')

    __table_args__ = (
        Index('idx_session_tokens_profile', 'profile_id', 'created_at'),
    )


class RetailerActivationToken(Base):
    __tablename__ = 'retailer_activation_tokens'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    profile_id = Column(UUID(as_uuid=True), ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    token = Column(String(128), nullable=False, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    profile = relationship('Profile', back_populates='activation_tokens')


class DeletedRetailer(Base):
    __tablename__ = 'deleted_retailers'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    original_profile_id = Column(UUID(as_uuid=True), nullable=False)
    email = Column(String(320), nullable=False)
    company_name = Column(String(255), nullable=True)
    original_data = Column(JSONB, nullable=False)
    deleted_by = Column(UUID(as_uuid=True), nullable=True)
    reason = Column(Text, nullable=True)
    deleted_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        Index('ix_deleted_retailers_deleted_at', 'deleted_at'),
    )
