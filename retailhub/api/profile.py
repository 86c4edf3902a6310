"""
Profile API endpoints: read and update the caller's own profile.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from retailhub.api.auth import serialize_profile
from retailhub.api.deps import get_current_profile_context
from retailhub.db import schemas
from retailhub.db.database import get_db
from retailhub.db.repositories import profiles as profile_repo

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("")
def get_profile(profile_context=Depends(get_current_profile_context)):
    profile, _ctx = profile_context
    return serialize_profile(profile)


@router.put("")
def update_profile(
    payload: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context),
):
    profile, _ctx = profile_context
    # Role, status and email are not part of ProfileUpdate
    updates = payload.model_dump(exclude_unset=True)
    profile = profile_repo.update_profile(db, profile, updates)
    return {"success": True, "profile": serialize_profile(profile)}
