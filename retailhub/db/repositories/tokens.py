"""
Repositories for session tokens and retailer activation tokens.

Session tokens are stored as (token_id, hash(secret)); the raw token is only
returned once, at creation.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Tuple, Optional

from sqlalchemy.orm import Session

from retailhub.db import models
from retailhub.utils import token_crypto

SESSION_TTL = timedelta(days=7)
ACTIVATION_TTL = timedelta(days=7)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_session_token(db: Session, *, profile_id: uuid.UUID) -> Tuple[models.SessionToken, str]:
    token_id, secret, full_token = token_crypto.generate_token()
    session_token = models.SessionToken(
        profile_id=profile_id,
        token_id=token_id,
        token_hash=token_crypto.hash_secret(secret),
        status="active",
        created_at=_now(),
        expires_at=_now() + SESSION_TTL,
    )
    db.add(session_token)
    db.commit()
    db.refresh(session_token)
    return session_token, full_token


def get_by_token_id(db: Session, token_id: str) -> Optional[models.SessionToken]:
    return db.query(models.SessionToken).filter(models.SessionToken.token_id == token_id).first()


def resolve_session(db: Session, raw_token: str) -> Optional[models.SessionToken]:
    """Return the active, unexpired session for a raw bearer token, else None."""
    parsed = token_crypto.parse_token(raw_token)
    if not parsed:
        return None
    session_token = get_by_token_id(db, parsed.token_id)
    if not session_token or session_token.status != "active":
        return None
    if models.as_utc(session_token.expires_at) <= _now():
        return None
    if not token_crypto.verify_secret(parsed.secret, session_token.token_hash):
        return None
    return session_token


def mark_used(db: Session, session_token: models.SessionToken) -> None:
    session_token.last_used_at = _now()
    db.commit()


def revoke_session(db: Session, session_token: models.SessionToken) -> models.SessionToken:
    session_token.status = "revoked"
    session_token.revoked_at = _now()
    db.commit()
    db.refresh(session_token)
    return session_token


def create_activation_token(db: Session, *, profile_id: uuid.UUID) -> models.RetailerActivationToken:
    activation = models.RetailerActivationToken(
        profile_id=profile_id,
        token=token_crypto.generate_hex_token(32),
        expires_at=_now() + ACTIVATION_TTL,
    )
    db.add(activation)
    db.commit()
    db.refresh(activation)
    return activation


def get_valid_activation_token(db: Session, token: str) -> Optional[models.RetailerActivationToken]:
    """Unused, unexpired activation token or None."""
    if not token:
        return None
    activation = (
        db.query(models.RetailerActivationToken)
        .filter(models.RetailerActivationToken.token == token)
        .first()
    )
    if not activation or activation.used_at is not None:
        return None
    if models.as_utc(activation.expires_at) <= _now():
        return None
    return activation


def mark_activation_used(db: Session, activation: models.RetailerActivationToken) -> None:
    activation.used_at = _now()
    db.commit()
