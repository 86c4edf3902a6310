"""
Notification API Endpoints

Provides REST API for email notification preferences and the in-app
notification inbox of the calling profile.
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from retailhub.api.deps import get_current_profile_context
from retailhub.api.errors import api_error
from retailhub.db import schemas
from retailhub.db.database import get_db
from retailhub.services.notification_service import NotificationService


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def get_preferences(
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context)
):
    """
    Get email notification preferences for the current profile.

    Profiles without stored preferences get the defaults.
    """
    profile, _ctx = profile_context
    preferences = NotificationService(db).get_preferences(profile.id)
    return {"success": True, "preferences": schemas.NotificationPreferences(**preferences).model_dump()}


@router.post("")
def update_preferences(
    payload: schemas.NotificationPreferencesUpdate,
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context)
):
    """
    Create or update email notification preferences.

    Only the fields present in the request are changed.
    """
    profile, _ctx = profile_context
    preferences = NotificationService(db).update_preferences(
        profile.id, payload.model_dump(exclude_unset=True)
    )
    return {"success": True, "preferences": schemas.NotificationPreferences(**preferences).model_dump()}


@router.get("/inbox", response_model=schemas.NotificationListResponse)
def get_notifications(
    unread_only: bool = False,
    limit: int = 50,
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context)
):
    """
    Get in-app notifications for the current profile.

    - **unread_only**: If true, only return unread notifications
    - **limit**: Maximum number of notifications to return (default 50)
    """
    profile, _ctx = profile_context

    service = NotificationService(db)
    notifications = service.get_notifications(
        profile.id,
        unread_only=unread_only,
        limit=limit
    )

    return schemas.NotificationListResponse(
        notifications=notifications,
        unread_count=service.get_unread_count(profile.id),
        total_count=len(notifications)
    )


@router.post("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
def mark_notification_read(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context)
):
    """
    Mark a specific notification as read.
    """
    profile, _ctx = profile_context

    if not NotificationService(db).mark_notification_read(notification_id, profile.id):
        raise api_error(status.HTTP_404_NOT_FOUND, "Notification not found")
