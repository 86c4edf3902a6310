"""
Profile repository functions.

Lookup, listing, creation and archive/restore of retailer and admin profiles.
"""
from __future__ import annotations

import uuid
from typing import Optional, List, Dict, Any

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from retailhub.db import models

# Columns copied into deleted_retailers.original_data and restored from it.
ARCHIVED_FIELDS = (
    "email",
    "full_name",
    "company_name",
    "phone",
    "address",
    "city",
    "postal_code",
    "country",
    "website",
    "chamber_of_commerce",
    "vat_number",
    "logo_url",
    "notes",
    "status",
)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def get_profile(db: Session, profile_id: uuid.UUID) -> Optional[models.Profile]:
    return db.query(models.Profile).filter(models.Profile.id == profile_id).first()


def get_profile_by_email(db: Session, email: str) -> Optional[models.Profile]:
    return (
        db.query(models.Profile)
        .filter(func.lower(models.Profile.email) == normalize_email(email))
        .first()
    )


def list_retailers(
    db: Session,
    *,
    status: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 200,
) -> List[models.Profile]:
    query = db.query(models.Profile).filter(models.Profile.role == "retailer")
    if status:
        query = query.filter(models.Profile.status == status)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(models.Profile.company_name).like(pattern),
                func.lower(models.Profile.email).like(pattern),
                func.lower(models.Profile.full_name).like(pattern),
                func.lower(models.Profile.city).like(pattern),
            )
        )
    return query.order_by(models.Profile.created_at.desc()).offset(skip).limit(limit).all()


def count_admins(db: Session) -> int:
    return db.query(models.Profile).filter(models.Profile.role == "admin").count()


def create_profile(db: Session, **fields: Any) -> models.Profile:
    fields["email"] = normalize_email(fields["email"])
    profile = models.Profile(**fields)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


def update_profile(db: Session, profile: models.Profile, updates: Dict[str, Any]) -> models.Profile:
    for key, value in updates.items():
        setattr(profile, key, value)
    db.commit()
    db.refresh(profile)
    return profile


def archive_and_delete(
    db: Session,
    profile: models.Profile,
    *,
    deleted_by: Optional[uuid.UUID] = None,
    reason: Optional[str] = None,
) -> models.DeletedRetailer:
    """Copy the profile to deleted_retailers and remove it (cascades to its rows)."""
    original = {field: getattr(profile, field) for field in ARCHIVED_FIELDS}
    original["id"] = str(profile.id)
    original["created_at"] = models.isoformat(profile.created_at)
    archived = models.DeletedRetailer(
        original_profile_id=profile.id,
        email=profile.email,
        company_name=profile.company_name,
        original_data=original,
        deleted_by=deleted_by,
        reason=reason,
    )
    db.add(archived)
    db.delete(profile)
    db.commit()
    db.refresh(archived)
    return archived


def list_deleted_retailers(db: Session, *, limit: int = 200) -> List[models.DeletedRetailer]:
    return (
        db.query(models.DeletedRetailer)
        .order_by(models.DeletedRetailer.deleted_at.desc())
        .limit(limit)
        .all()
    )


def get_deleted_retailer(db: Session, archive_id: uuid.UUID) -> Optional[models.DeletedRetailer]:
    return db.query(models.DeletedRetailer).filter(models.DeletedRetailer.id == archive_id).first()


def restore_deleted_retailer(db: Session, archived: models.DeletedRetailer) -> models.Profile:
    data = dict(archived.original_data or {})
    fields = {field: data.get(field) for field in ARCHIVED_FIELDS if data.get(field) is not None}
    fields["email"] = archived.email
    profile = models.Profile(
        id=archived.original_profile_id,
        role="retailer",
        **fields,
    )
    db.add(profile)
    db.delete(archived)
    db.commit()
    db.refresh(profile)
    return profile
