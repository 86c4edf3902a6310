"""
Onboarding step catalogue and per-profile progress.
"""
from __future__ import annotations

import uuid
from typing import Optional, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from retailhub.db import models

DEFAULT_STEPS = [
    {
        "step_number": 1,
        "step_key": "welcome",
        "title": "Welkom",
        "description": "Maak kennis met het platform",
        "component_name": "WelcomeStep",
        "is_required": True,
        "estimated_time_minutes": 2,
        "reward_points": 10,
        "order_index": 1,
    },
    {
        "step_number": 2,
        "step_key": "profile_complete",
        "title": "Profiel compleet",
        "description": "Vul je bedrijfsgegevens aan",
        "component_name": "ProfileStep",
        "is_required": True,
        "estimated_time_minutes": 5,
        "reward_points": 25,
        "order_index": 2,
    },
    {
        "step_number": 3,
        "step_key": "website_analysis",
        "title": "Website analyse",
        "description": "Laat je website analyseren",
        "component_name": "WebsiteAnalysisStep",
        "is_required": False,
        "estimated_time_minutes": 3,
        "reward_points": 25,
        "order_index": 3,
    },
    {
        "step_number": 4,
        "step_key": "first_advice",
        "title": "Eerste advies",
        "description": "Bekijk je eerste verkoopadvies",
        "component_name": "FirstAdviceStep",
        "is_required": False,
        "estimated_time_minutes": 5,
        "reward_points": 20,
        "order_index": 4,
    },
    {
        "step_number": 5,
        "step_key": "explore_features",
        "title": "Ontdek functies",
        "description": "Verken het dashboard",
        "component_name": "ExploreFeaturesStep",
        "is_required": True,
        "estimated_time_minutes": 3,
        "reward_points": 20,
        "order_index": 5,
    },
]


def list_active_steps(db: Session) -> List[models.OnboardingStep]:
    return (
        db.query(models.OnboardingStep)
        .filter(models.OnboardingStep.is_active.is_(True))
        .order_by(models.OnboardingStep.order_index)
        .all()
    )


def get_step_by_key(db: Session, step_key: str) -> Optional[models.OnboardingStep]:
    return db.query(models.OnboardingStep).filter(models.OnboardingStep.step_key == step_key).first()


def seed_default_steps(db: Session) -> int:
    """Insert missing default steps; returns how many were created."""
    created = 0
    for definition in DEFAULT_STEPS:
        if get_step_by_key(db, definition["step_key"]):
            continue
        db.add(models.OnboardingStep(**definition))
        created += 1
    if created:
        db.commit()
    return created


def get_progress(
    db: Session, profile_id: uuid.UUID, *, for_update: bool = False
) -> Optional[models.OnboardingProgress]:
    query = db.query(models.OnboardingProgress).filter(models.OnboardingProgress.profile_id == profile_id)
    if for_update:
        query = query.with_for_update()
    return query.first()


def create_progress(db: Session, profile_id: uuid.UUID, *, total_steps: int) -> models.OnboardingProgress:
    progress = models.OnboardingProgress(
        profile_id=profile_id,
        current_step=1,
        total_steps=total_steps,
        steps_completed=[],
        onboarding_data={},
        total_points=0,
        is_active=True,
    )
    db.add(progress)
    db.commit()
    db.refresh(progress)
    return progress


def completed_step_keys(db: Session, profile_id: uuid.UUID) -> List[str]:
    C = models.OnboardingStepCompletion
    rows = (
        db.query(C.step_key)
        .filter(C.profile_id == profile_id)
        .order_by(C.completed_at.asc(), C.step_key.asc())
        .all()
    )
    return [row[0] for row in rows]


def record_completion(db: Session, profile_id: uuid.UUID, step_key: str, *, points: int) -> bool:
    """Insert the completion row; False when another request recorded it first.

    A conflict rolls back the session's open transaction.
    """
    db.add(models.OnboardingStepCompletion(profile_id=profile_id, step_key=step_key, points_awarded=points))
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        return False
    return True
