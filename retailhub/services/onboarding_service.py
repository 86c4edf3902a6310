"""
Onboarding progress tracking with step rewards.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from retailhub.db import models
from retailhub.db.repositories import onboarding as onboarding_repo
from retailhub.services import ok, failure, INVALID
from retailhub.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def serialize_progress(progress: models.OnboardingProgress) -> Dict[str, Any]:
    return {
        "id": str(progress.id),
        "profile_id": str(progress.profile_id),
        "current_step": progress.current_step,
        "total_steps": progress.total_steps,
        "steps_completed": list(progress.steps_completed or []),
        "onboarding_data": dict(progress.onboarding_data or {}),
        "total_points": progress.total_points or 0,
        "is_active": progress.is_active,
        "started_at": models.isoformat(progress.started_at),
        "completed_at": models.isoformat(progress.completed_at),
        "skipped_at": models.isoformat(progress.skipped_at),
        "needs_onboarding": not progress.completed_at and not progress.skipped_at,
    }


class OnboardingService:
    def __init__(self, db: Session, notification_service: Optional[NotificationService] = None):
        self.db = db
        self._notification_service = notification_service

    @property
    def notification_service(self) -> NotificationService:
        if self._notification_service is None:
            self._notification_service = NotificationService(self.db)
        return self._notification_service

    def list_steps(self) -> List[models.OnboardingStep]:
        return onboarding_repo.list_active_steps(self.db)

    def get_or_create_progress(self, profile_id: uuid.UUID) -> models.OnboardingProgress:
        progress = onboarding_repo.get_progress(self.db, profile_id)
        if progress:
            return progress
        total = len(onboarding_repo.list_active_steps(self.db))
        logger.info(f"Starting onboarding for profile {profile_id} with {total} steps")
        try:
            return onboarding_repo.create_progress(self.db, profile_id, total_steps=total)
        except IntegrityError:
            # Another request created it first
            self.db.rollback()
            return onboarding_repo.get_progress(self.db, profile_id)

    def complete_step(
        self,
        profile_id: uuid.UUID,
        step_key: Optional[str],
        step_data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Mark a step complete. Points are awarded the first time only."""
        if not step_key:
            return failure(INVALID, "step_key is required")
        step = onboarding_repo.get_step_by_key(self.db, step_key)
        if not step or not step.is_active:
            return failure(INVALID, f"Unknown onboarding step: {step_key}")

        self.get_or_create_progress(profile_id)
        # Concurrent completions for one profile queue up on this row lock
        progress = onboarding_repo.get_progress(self.db, profile_id, for_update=True)
        recorded = onboarding_repo.completed_step_keys(self.db, profile_id)
        points_earned = 0
        if step_key not in recorded and step_key not in (progress.steps_completed or []):
            reward = step.reward_points or 0
            if onboarding_repo.record_completion(self.db, profile_id, step_key, points=reward):
                points_earned = reward
            else:
                logger.info(f"Step {step_key} for {profile_id} was completed concurrently; no points awarded")
                progress = onboarding_repo.get_progress(self.db, profile_id, for_update=True)
        completed = list(dict.fromkeys(
            [*(progress.steps_completed or []), *onboarding_repo.completed_step_keys(self.db, profile_id)]
        ))

        active_steps = onboarding_repo.list_active_steps(self.db)
        required = [s.step_key for s in active_steps if s.is_required]
        all_required_complete = all(key in completed for key in required)

        progress.steps_completed = completed
        if step_data:
            progress.onboarding_data = {**(progress.onboarding_data or {}), step_key: step_data}
        progress.total_points = (progress.total_points or 0) + points_earned
        progress.total_steps = len(active_steps)
        progress.current_step = min(len(completed) + 1, max(len(active_steps), 1))
        if all_required_complete and not progress.completed_at:
            progress.completed_at = datetime.now(timezone.utc)
            progress.is_active = False
        self.db.commit()
        self.db.refresh(progress)

        if points_earned > 0:
            try:
                self.notification_service.notify_onboarding_achievement(
                    profile_id, step.title, points_earned, progress.total_points
                )
            except Exception as e:
                self.db.rollback()
                logger.warning(f"Failed to create achievement notification for {profile_id}: {e}")

        return ok(
            step_key=step_key,
            points_earned=points_earned,
            total_points=progress.total_points,
            current_step=progress.current_step,
            completed_steps=completed,
            all_required_complete=all_required_complete,
            onboarding_completed=progress.completed_at is not None,
        )

    def skip(self, profile_id: uuid.UUID) -> models.OnboardingProgress:
        progress = self.get_or_create_progress(profile_id)
        progress.skipped_at = datetime.now(timezone.utc)
        progress.is_active = False
        self.db.commit()
        self.db.refresh(progress)
        return progress
