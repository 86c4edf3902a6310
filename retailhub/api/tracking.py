"""
Commercial outreach tracking endpoints: open pixel, click redirect and
unsubscribe page.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from sqlalchemy.orm import Session

from retailhub.db.database import get_db
from retailhub.services.tracking_service import NO_CACHE_HEADERS, PIXEL_PNG, TrackingService
from retailhub.utils.urls import get_app_base_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/track", tags=["tracking"])


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


def _client_info(request: Request) -> dict:
    return {
        "user_agent": request.headers.get("user-agent", ""),
        "ip_address": _client_ip(request),
    }


@router.get("/pixel/{tracking_id}")
def track_open(tracking_id: str, request: Request, db: Session = Depends(get_db)):
    try:
        TrackingService(db).record_open(tracking_id, **_client_info(request))
    except Exception as e:
        db.rollback()
        logger.warning(f"Failed to record open for {tracking_id}: {e}")
    return Response(content=PIXEL_PNG, media_type="image/png", headers=NO_CACHE_HEADERS)


@router.get("/click/{tracking_id}")
def track_click(
    tracking_id: str,
    request: Request,
    url: Optional[str] = None,
    db: Session = Depends(get_db),
):
    try:
        target = TrackingService(db).record_click(tracking_id, url, **_client_info(request))
    except Exception as e:
        db.rollback()
        logger.warning(f"Failed to record click for {tracking_id}: {e}")
        target = url or get_app_base_url()
    return RedirectResponse(target, status_code=status.HTTP_302_FOUND)


@router.get("/unsubscribe/{tracking_id}")
def unsubscribe(tracking_id: str, request: Request, db: Session = Depends(get_db)):
    page = TrackingService(db).unsubscribe(tracking_id, **_client_info(request))
    if page is None:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": "Invalid unsubscribe link"})
    return HTMLResponse(page)
