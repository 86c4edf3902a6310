"""
Business invitation repository functions.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from retailhub.db import models
from retailhub.utils import token_crypto

INVITATION_TTL = timedelta(days=7)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_invitation(db: Session, invitation_id: uuid.UUID) -> Optional[models.BusinessInvitation]:
    return db.query(models.BusinessInvitation).filter(models.BusinessInvitation.id == invitation_id).first()


def get_by_token(db: Session, token: str) -> Optional[models.BusinessInvitation]:
    return (
        db.query(models.BusinessInvitation)
        .filter(models.BusinessInvitation.invitation_token == token)
        .first()
    )


def get_by_tracking_column(db: Session, column: str, tracking_id: str) -> Optional[models.BusinessInvitation]:
    attr = getattr(models.BusinessInvitation, column)
    return db.query(models.BusinessInvitation).filter(attr == tracking_id).first()


def get_pending_for_email(db: Session, email: str) -> Optional[models.BusinessInvitation]:
    return (
        db.query(models.BusinessInvitation)
        .filter(
            func.lower(models.BusinessInvitation.email) == email.strip().lower(),
            models.BusinessInvitation.status == "pending",
        )
        .first()
    )


def list_invitations(db: Session, *, status: Optional[str] = None, limit: int = 500) -> List[models.BusinessInvitation]:
    query = db.query(models.BusinessInvitation)
    if status:
        query = query.filter(models.BusinessInvitation.status == status)
    return query.order_by(models.BusinessInvitation.created_at.desc()).limit(limit).all()


def create_invitation(
    db: Session,
    *,
    email: str,
    business_name: Optional[str] = None,
    contact_name: Optional[str] = None,
    phone: Optional[str] = None,
    invited_by: Optional[uuid.UUID] = None,
    metadata: Optional[Dict[str, Any]] = None,
    commit: bool = True,
) -> models.BusinessInvitation:
    invitation = models.BusinessInvitation(
        email=email.strip().lower(),
        business_name=business_name,
        contact_name=contact_name,
        phone=phone,
        invitation_token=token_crypto.generate_hex_token(32),
        tracking_pixel_id=token_crypto.generate_hex_token(16),
        click_tracking_id=token_crypto.generate_hex_token(16),
        status="pending",
        invited_by=invited_by,
        expires_at=_now() + INVITATION_TTL,
        metadata_json=metadata or {},
    )
    db.add(invitation)
    if commit:
        db.commit()
        db.refresh(invitation)
    else:
        db.flush()
    return invitation


def invitation_counts(db: Session) -> Dict[str, int]:
    Inv = models.BusinessInvitation
    rows = db.query(Inv.status, func.count(Inv.id)).group_by(Inv.status).all()
    counts = {status: count for status, count in rows}
    counts["total"] = sum(counts.values())
    counts["emails_sent"] = db.query(Inv).filter(Inv.email_sent_at.isnot(None)).count()
    counts["opened"] = db.query(Inv).filter(Inv.email_opened_at.isnot(None)).count()
    counts["clicked"] = db.query(Inv).filter(Inv.email_clicked_at.isnot(None)).count()
    counts["reminders_sent"] = int(db.query(func.coalesce(func.sum(Inv.reminder_count), 0)).scalar() or 0)
    return counts
