"""
Wasstrips application repository functions.
"""
from __future__ import annotations

import secrets
import string
import uuid
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session, joinedload

from retailhub.db import models
from retailhub.db.models.wasstrips import DEFAULT_TOTAL_AMOUNT

STARTER_PACKAGE_CONTENTS = (
    "50x Wasstrips assortiment",
    "Display standaard",
    "Marketingmateriaal",
    "Instructiehandleiding",
)


def starter_package() -> Dict[str, Any]:
    """Fresh product_details payload for a new application."""
    return {
        "package_type": "starter_package",
        "items": [
            {
                "id": "wasstrips-starter",
                "name": "Wasstrips Starterpakket",
                "quantity": 1,
                "price": float(DEFAULT_TOTAL_AMOUNT),
            }
        ],
        "package_contents": list(STARTER_PACKAGE_CONTENTS),
    }


def generate_order_number() -> str:
    """Order numbers look like WS-20260314-4F7Q2A."""
    alphabet = string.ascii_uppercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(6))
    return f"WS-{datetime.now(timezone.utc):%Y%m%d}-{suffix}"


def get_application(db: Session, application_id: uuid.UUID) -> Optional[models.WasstripsApplication]:
    return (
        db.query(models.WasstripsApplication)
        .filter(models.WasstripsApplication.id == application_id)
        .first()
    )


def get_by_order_number(db: Session, order_number: str) -> Optional[models.WasstripsApplication]:
    return (
        db.query(models.WasstripsApplication)
        .filter(models.WasstripsApplication.order_number == order_number)
        .first()
    )


def list_applications(db: Session) -> List[models.WasstripsApplication]:
    return (
        db.query(models.WasstripsApplication)
        .options(joinedload(models.WasstripsApplication.profile))
        .order_by(models.WasstripsApplication.created_at.desc())
        .all()
    )


def list_for_profile(db: Session, profile_id: uuid.UUID) -> List[models.WasstripsApplication]:
    return (
        db.query(models.WasstripsApplication)
        .filter(models.WasstripsApplication.profile_id == profile_id)
        .order_by(models.WasstripsApplication.created_at.desc())
        .all()
    )


def create_application(
    db: Session,
    *,
    profile_id: uuid.UUID,
    notes: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> models.WasstripsApplication:
    application = models.WasstripsApplication(
        profile_id=profile_id,
        order_number=generate_order_number(),
        status="pending",
        notes=notes,
        metadata_json=metadata or {},
        product_details=starter_package(),
    )
    db.add(application)
    db.commit()
    db.refresh(application)
    return application


def update_application(
    db: Session, application: models.WasstripsApplication, updates: Dict[str, Any]
) -> models.WasstripsApplication:
    for key, value in updates.items():
        setattr(application, key, value)
    db.commit()
    db.refresh(application)
    return application
