"""
Business invitation API endpoints.

Admin management (create, import, remind, cancel, statistics), public
token validation, and the open/click tracking endpoints embedded in
invitation emails.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse, Response
from sqlalchemy.orm import Session

from retailhub.api.deps import require_admin
from retailhub.api.errors import api_error, parse_uuid, raise_for_result
from retailhub.db import schemas
from retailhub.db.database import get_db
from retailhub.services.invitation_service import InvitationService
from retailhub.services.tracking_service import NO_CACHE_HEADERS, PIXEL_PNG
from retailhub.utils.urls import build_registration_link

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invitations", tags=["invitations"])


def _pixel_response() -> Response:
    return Response(content=PIXEL_PNG, media_type="image/png", headers=NO_CACHE_HEADERS)


def _track_open(db: Session, tracking_id: Optional[str], *, reminder: bool) -> Response:
    if not tracking_id:
        raise api_error(status.HTTP_400_BAD_REQUEST, "Tracking ID is required")
    try:
        InvitationService(db).track_open(tracking_id, reminder=reminder)
    except Exception as e:
        # The pixel must render even when tracking fails
        db.rollback()
        logger.warning(f"Failed to record invitation open for {tracking_id}: {e}")
    return _pixel_response()


def _track_click(db: Session, tracking_id: Optional[str], *, reminder: bool) -> RedirectResponse:
    token = None
    if tracking_id:
        try:
            token = InvitationService(db).track_click(tracking_id, reminder=reminder)
        except Exception as e:
            db.rollback()
            logger.warning(f"Failed to record invitation click for {tracking_id}: {e}")
    return RedirectResponse(build_registration_link(token), status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.get("")
def list_invitations(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    invitations = InvitationService(db).list_invitations(status=status)
    return {"success": True, "invitations": invitations, "total": len(invitations)}


@router.post("")
def create_invitations(
    payload: schemas.CreateInvitationsRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return raise_for_result(
        InvitationService(db).create_invitations(
            [item.model_dump() for item in payload.invitations],
            invited_by=admin.id,
            send_emails=payload.send_emails,
        )
    )


@router.delete("/delete")
def cancel_invitation(
    id: Optional[str] = None,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return raise_for_result(InvitationService(db).cancel(parse_uuid(id, "id"), actor_profile_id=admin.id))


@router.post("/import")
def import_invitations(
    payload: schemas.ImportInvitationsRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return raise_for_result(
        InvitationService(db).import_csv(payload.csv_data, invited_by=admin.id, send_emails=payload.send_emails)
    )


@router.post("/remind")
def remind_invitation(
    payload: schemas.RemindInvitationRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return raise_for_result(InvitationService(db).remind(payload.invitation_id, actor_profile_id=admin.id))


@router.get("/validate")
def validate_invitation(token: Optional[str] = None, db: Session = Depends(get_db)):
    return InvitationService(db).validate(token)


@router.get("/statistics")
def invitation_statistics(db: Session = Depends(get_db), admin_context=Depends(require_admin)):
    return {"success": True, "statistics": InvitationService(db).statistics()}


@router.get("/track/pixel")
def track_pixel(id: Optional[str] = None, db: Session = Depends(get_db)):
    return _track_open(db, id, reminder=False)


@router.get("/track/reminder-pixel")
def track_reminder_pixel(id: Optional[str] = None, db: Session = Depends(get_db)):
    return _track_open(db, id, reminder=True)


@router.get("/track/click")
def track_click(id: Optional[str] = None, db: Session = Depends(get_db)):
    return _track_click(db, id, reminder=False)


@router.get("/track/reminder-click")
def track_reminder_click(id: Optional[str] = None, db: Session = Depends(get_db)):
    return _track_click(db, id, reminder=True)
