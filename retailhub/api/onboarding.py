"""
Onboarding API endpoints: active steps, per-profile progress, step
completion and skipping.
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from retailhub.api.deps import get_current_profile_context
from retailhub.api.errors import api_error, parse_uuid, raise_for_result
from retailhub.db import schemas
from retailhub.db.database import get_db
from retailhub.services.onboarding_service import OnboardingService, serialize_progress

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


def _target_profile_id(requested: Optional[uuid.UUID], profile, ctx) -> uuid.UUID:
    if requested is None or requested == profile.id:
        return profile.id
    if not ctx["is_admin"]:
        raise api_error(status.HTTP_403_FORBIDDEN, "Cannot access another profile's onboarding")
    return requested


@router.get("/steps")
def list_steps(db: Session = Depends(get_db)):
    steps = OnboardingService(db).list_steps()
    return {
        "success": True,
        "steps": [schemas.OnboardingStep.model_validate(s).model_dump(mode="json") for s in steps],
    }


@router.get("/progress")
def get_progress(
    profile_id: Optional[str] = None,
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context),
):
    profile, ctx = profile_context
    requested = parse_uuid(profile_id, "profile_id") if profile_id else None
    target = _target_profile_id(requested, profile, ctx)
    progress = OnboardingService(db).get_or_create_progress(target)
    return {"success": True, "progress": serialize_progress(progress)}


@router.post("/complete-step")
def complete_step(
    payload: schemas.CompleteStepRequest,
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context),
):
    profile, ctx = profile_context
    target = _target_profile_id(payload.profile_id, profile, ctx)
    return raise_for_result(OnboardingService(db).complete_step(target, payload.step_key, payload.step_data))


@router.post("/skip")
def skip_onboarding(
    payload: schemas.SkipOnboardingRequest,
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context),
):
    profile, ctx = profile_context
    target = _target_profile_id(payload.profile_id, profile, ctx)
    progress = OnboardingService(db).skip(target)
    return {"success": True, "progress": serialize_progress(progress)}
