import uuid
from sqlalchemy import Column, String, Text, DateTime, Boolean, Integer, ForeignKey, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc


class OnboardingStep(Base):
    __tablename__ = 'onboarding_steps'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    step_number = Column(Integer, nullable=False)
    step_key = Column(String(50), nullable=False, unique=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    component_name = Column(String(100), nullable=True)
    is_required = Column(Boolean, nullable=False, default=True)
    estimated_time_minutes = Column(Integer, nullable=False, default=5)
    reward_points = Column(Integer, nullable=False, default=0)
    order_index = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)


class OnboardingProgress(Base):
    __tablename__ = 'onboarding_progress'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    profile_id = Column(UUID(as_uuid=True), ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, unique=True)
    current_step = Column(Integer, nullable=False, default=1)
    total_steps = Column(Integer, nullable=False, default=0)
    steps_completed = Column(JSONB, nullable=False, default=list)
    onboarding_data = Column(JSONB, nullable=False, default=dict)
    total_points = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    started_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    skipped_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    __table_args__ = (
        Index('ix_onboarding_progress_profile_id', 'profile_id', unique=True),
    )


class OnboardingStepCompletion(Base):
    """A step finished by a profile; the unique pair guards reward points."""
    __tablename__ = 'onboarding_step_completions'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    profile_id = Column(UUID(as_uuid=True), ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    step_key = Column(String(50), nullable=False)
    points_awarded = Column(Integer, nullable=False, default=0)
    completed_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        UniqueConstraint('profile_id', 'step_key', name='uq_onboarding_step_completions_profile_step'),
    )
