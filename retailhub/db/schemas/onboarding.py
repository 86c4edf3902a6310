import uuid
from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict

from .base import RequestModel


class OnboardingStep(BaseModel):
    id: uuid.UUID
    step_number: int
    step_key: str
    title: str
    description: Optional[str] = None
    component_name: Optional[str] = None
    is_required: bool
    estimated_time_minutes: int
    reward_points: int
    order_index: int
    model_config = ConfigDict(from_attributes=True)


class CompleteStepRequest(RequestModel):
    profile_id: Optional[uuid.UUID] = None
    step_key: Optional[str] = None
    step_data: Optional[Dict[str, Any]] = None


class SkipOnboardingRequest(RequestModel):
    profile_id: Optional[uuid.UUID] = None
