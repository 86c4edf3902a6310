"""
API dependency helpers.

Resolves the calling profile from a bearer session token and exposes the
admin guard used by the admin routes.
"""
import logging
from typing import Optional, Tuple, Dict, Any

from fastapi import Header, status, Depends
from sqlalchemy.orm import Session

from retailhub.api.errors import api_error
from retailhub.db import models
from retailhub.db.database import get_db
from retailhub.db.repositories import profiles as profile_repo
from retailhub.db.repositories import tokens as token_repo
from retailhub.utils.runtime import dev_mode_active, is_admin_email, DEV_PROFILE_EMAIL

logger = logging.getLogger(__name__)

# Contract:
# Returns (Profile model, current_profile_context_dict)
# Raises 401 if no valid session can be resolved.


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
        return token or None
    return None


def is_admin(profile: models.Profile) -> bool:
    return profile.role == "admin" or is_admin_email(profile.email)


def build_context(profile: models.Profile, session_token: Optional[models.SessionToken] = None) -> Dict[str, Any]:
    return {
        "id": profile.id,
        "email": profile.email,
        "full_name": profile.full_name,
        "role": profile.role,
        "status": profile.status,
        "is_admin": is_admin(profile),
        "session_token_id": session_token.id if session_token else None,
        "dev_mode": session_token is None,
    }


def get_or_create_dev_profile(db: Session) -> models.Profile:
    profile = profile_repo.get_profile_by_email(db, DEV_PROFILE_EMAIL)
    if profile:
        return profile
    return profile_repo.create_profile(
        db,
        email=DEV_PROFILE_EMAIL,
        full_name="Development Admin",
        company_name="RetailHub Development",
        role="admin",
        status="active",
    )


def _resolve(db: Session, authorization: Optional[str], *, required: bool) -> Optional[Tuple[models.Profile, Dict[str, Any]]]:
    token = _bearer_token(authorization)
    if not token:
        if dev_mode_active():
            profile = get_or_create_dev_profile(db)
            return profile, build_context(profile)
        if required:
            raise api_error(status.HTTP_401_UNAUTHORIZED, "Authentication required")
        return None

    session_token = token_repo.resolve_session(db, token)
    if not session_token:
        raise api_error(status.HTTP_401_UNAUTHORIZED, "Invalid or expired session")
    profile = profile_repo.get_profile(db, session_token.profile_id)
    if not profile:
        raise api_error(status.HTTP_401_UNAUTHORIZED, "Invalid session profile")
    if profile.status == "suspended":
        raise api_error(status.HTTP_403_FORBIDDEN, "Account suspended")

    # Update last_used timestamp (best-effort)
    try:
        token_repo.mark_used(db, session_token)
    except Exception as e:
        db.rollback()
        logger.debug(f"Could not record session use for {session_token.token_id}: {e}")
    return profile, build_context(profile, session_token)


def get_current_profile_context(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None),
) -> Tuple[models.Profile, Dict[str, Any]]:
    return _resolve(db, authorization, required=True)


def get_optional_profile_context(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None),
) -> Optional[Tuple[models.Profile, Dict[str, Any]]]:
    """Like `get_current_profile_context`, but anonymous callers get None."""
    return _resolve(db, authorization, required=False)


def require_admin(
    profile_context=Depends(get_current_profile_context),
) -> Tuple[models.Profile, Dict[str, Any]]:
    _profile, ctx = profile_context
    if not ctx.get("is_admin"):
        raise api_error(status.HTTP_403_FORBIDDEN, "Admin access required")
    return profile_context


def get_session_token(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None),
) -> Optional[models.SessionToken]:
    token = _bearer_token(authorization)
    return token_repo.resolve_session(db, token) if token else None


__all__ = [
    "get_current_profile_context",
    "get_optional_profile_context",
    "require_admin",
    "get_session_token",
    "build_context",
    "is_admin",
]
