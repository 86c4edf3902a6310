"""
Authentication endpoints: password login, bearer sessions and the admin
bootstrap.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from retailhub.api.deps import (
    get_current_profile_context,
    get_optional_profile_context,
    get_session_token,
)
from retailhub.api.errors import api_error
from retailhub.audit import AuditAction, log
from retailhub.db import models, schemas
from retailhub.db.database import get_db
from retailhub.db.repositories import profiles as profile_repo
from retailhub.db.repositories import tokens as token_repo
from retailhub.services.retailer_service import MIN_PASSWORD_LENGTH, is_valid_email
from retailhub.utils.token_crypto import hash_secret, verify_secret

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def serialize_profile(profile: models.Profile) -> dict:
    return schemas.Profile.model_validate(profile).model_dump(mode="json")


@router.post("/login")
def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)):
    if not payload.email or not payload.password:
        raise api_error(status.HTTP_400_BAD_REQUEST, "Email and password are required")
    profile = profile_repo.get_profile_by_email(db, payload.email)
    if not profile or not verify_secret(payload.password, profile.password_hash):
        logger.info(f"Failed login for {profile_repo.normalize_email(payload.email)}")
        raise api_error(status.HTTP_401_UNAUTHORIZED, "Invalid email or password")
    if profile.status == "suspended":
        raise api_error(status.HTTP_403_FORBIDDEN, "Account suspended")

    _session, token = token_repo.create_session_token(db, profile_id=profile.id)
    profile = profile_repo.update_profile(db, profile, {"last_login_at": datetime.now(timezone.utc)})
    return {"success": True, "token": token, "profile": serialize_profile(profile)}


@router.post("/logout")
def logout(
    db: Session = Depends(get_db),
    session_token: Optional[models.SessionToken] = Depends(get_session_token),
):
    if not session_token:
        raise api_error(status.HTTP_401_UNAUTHORIZED, "Invalid or expired session")
    token_repo.revoke_session(db, session_token)
    return {"success": True}


@router.get("/check")
def check(profile_context=Depends(get_current_profile_context)):
    profile, ctx = profile_context
    return {"authenticated": True, "isAdmin": ctx["is_admin"], "profile": serialize_profile(profile)}


@router.post("/update-password")
def update_password(
    payload: schemas.UpdatePasswordRequest,
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context),
):
    profile, _ctx = profile_context
    if not payload.new_password or len(payload.new_password) < MIN_PASSWORD_LENGTH:
        raise api_error(
            status.HTTP_400_BAD_REQUEST,
            f"New password must be at least {MIN_PASSWORD_LENGTH} characters",
        )
    if profile.password_hash and not verify_secret(payload.current_password or "", profile.password_hash):
        raise api_error(status.HTTP_400_BAD_REQUEST, "Current password is incorrect")
    profile_repo.update_profile(db, profile, {"password_hash": hash_secret(payload.new_password)})
    return {"success": True, "message": "Password updated"}


@router.post("/create-admin", status_code=status.HTTP_201_CREATED)
def create_admin(
    payload: schemas.CreateAdminRequest,
    db: Session = Depends(get_db),
    profile_context=Depends(get_optional_profile_context),
):
    bootstrap = profile_repo.count_admins(db) == 0
    if not bootstrap:
        if profile_context is None:
            raise api_error(status.HTTP_401_UNAUTHORIZED, "Authentication required")
        if not profile_context[1]["is_admin"]:
            raise api_error(status.HTTP_403_FORBIDDEN, "Admin access required")

    if not is_valid_email(payload.email):
        raise api_error(status.HTTP_400_BAD_REQUEST, "A valid email is required")
    if not payload.password or len(payload.password) < MIN_PASSWORD_LENGTH:
        raise api_error(
            status.HTTP_400_BAD_REQUEST,
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )
    if profile_repo.get_profile_by_email(db, payload.email):
        raise api_error(status.HTTP_409_CONFLICT, "A profile with this email already exists")

    profile = profile_repo.create_profile(
        db,
        email=payload.email,
        full_name=payload.full_name,
        role="admin",
        status="active",
        password_hash=hash_secret(payload.password),
    )
    log(
        db,
        action=AuditAction.ADMIN_CREATE,
        target_type="profile",
        target_id=profile.id,
        actor_profile_id=profile_context[0].id if profile_context else None,
        metadata={"email": profile.email, "bootstrap": bootstrap},
    )
    return {"success": True, "profile": serialize_profile(profile)}
