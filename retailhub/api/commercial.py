"""
Commercial outreach API endpoints (admin only).

Prospect management, Google Places discovery, campaign CRUD and statistics,
and the outreach email queue.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from retailhub.api.deps import require_admin
from retailhub.api.errors import api_error, parse_uuid, raise_for_result
from retailhub.db import schemas
from retailhub.db.database import get_db
from retailhub.services.commercial_service import CommercialService
from retailhub.services.discovery_service import DiscoveryService, api_status
from retailhub.services.email_queue_service import EmailQueueService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/commercial", tags=["commercial"])


# === Prospects ===

@router.get("/prospects")
def list_prospects(
    page: int = 1,
    limit: int = 50,
    status: Optional[str] = None,
    source: Optional[str] = None,
    segment: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    return raise_for_result(
        CommercialService(db).list_prospects(
            page=page, limit=limit, status=status, source=source, segment=segment, search=search,
        )
    )


@router.post("/prospects")
def prospect_action(
    payload: schemas.ProspectActionRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return raise_for_result(CommercialService(db).prospect_action(payload, actor_profile_id=admin.id))


@router.get("/prospects/stats")
def prospect_stats(db: Session = Depends(get_db), admin_context=Depends(require_admin)):
    return {"success": True, "statistics": CommercialService(db).statistics()}


# === Discovery ===

@router.get("/discovery")
def discovery(
    action: str = "discover",
    segment: Optional[str] = None,
    region: Optional[str] = None,
    limit: int = 10,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    """
    Run prospect discovery.

    - **action=discover**: search Google Places, enrich, score and save
    - **action=test**: report provider connectivity only
    """
    admin, _ctx = admin_context
    service = DiscoveryService(db)
    if action == "test":
        return {"success": True, "providers": service.test_providers()}
    if action != "discover":
        raise api_error(status.HTTP_400_BAD_REQUEST, "Invalid action. Use 'discover' or 'test'")
    return raise_for_result(service.discover(segment, region, limit, actor_profile_id=admin.id))


@router.get("/api-status")
def get_api_status(admin_context=Depends(require_admin)):
    return {"success": True, **api_status()}


# === Campaigns ===

@router.get("/campaigns")
def list_campaigns(
    segment: Optional[str] = None,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    campaigns = CommercialService(db).list_campaigns(segment=segment)
    return {"success": True, "campaigns": campaigns, "total": len(campaigns)}


@router.post("/campaigns", status_code=status.HTTP_201_CREATED)
def create_campaign(
    payload: schemas.CampaignCreate,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return raise_for_result(CommercialService(db).create_campaign(payload, actor_profile_id=admin.id))


@router.get("/campaigns/{campaign_id}")
def get_campaign(campaign_id: str, db: Session = Depends(get_db), admin_context=Depends(require_admin)):
    return raise_for_result(CommercialService(db).get_campaign(parse_uuid(campaign_id, "id")))


@router.put("/campaigns/{campaign_id}")
def update_campaign(
    campaign_id: str,
    payload: schemas.CampaignUpdate,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return raise_for_result(
        CommercialService(db).update_campaign(parse_uuid(campaign_id, "id"), payload, actor_profile_id=admin.id)
    )


@router.delete("/campaigns/{campaign_id}")
def delete_campaign(campaign_id: str, db: Session = Depends(get_db), admin_context=Depends(require_admin)):
    admin, _ctx = admin_context
    return raise_for_result(
        CommercialService(db).delete_campaign(parse_uuid(campaign_id, "id"), actor_profile_id=admin.id)
    )


@router.post("/campaigns/{campaign_id}/toggle")
def toggle_campaign(campaign_id: str, db: Session = Depends(get_db), admin_context=Depends(require_admin)):
    admin, _ctx = admin_context
    return raise_for_result(
        CommercialService(db).toggle_campaign(parse_uuid(campaign_id, "id"), actor_profile_id=admin.id)
    )


@router.get("/campaigns/{campaign_id}/stats")
def campaign_stats(
    campaign_id: str,
    period: str = "7d",
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    """Campaign performance for `period` (1d, 7d, 30d or all)."""
    return raise_for_result(CommercialService(db).campaign_stats(parse_uuid(campaign_id, "id"), period))


# === Email queue ===

@router.get("/email-queue")
def list_email_queue(
    limit: int = 20,
    status: Optional[str] = None,
    prospect_id: Optional[str] = Query(default=None, alias="prospectId"),
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    items = EmailQueueService(db).list_queue(
        limit=limit,
        status=status,
        prospect_id=parse_uuid(prospect_id, "prospectId") if prospect_id else None,
    )
    return {"success": True, "emails": items, "total": len(items)}


@router.post("/email-queue")
def queue_prospects(
    payload: schemas.QueueProspectsRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return raise_for_result(
        EmailQueueService(db).queue_prospects(
            payload.prospect_ids,
            campaign_id=payload.campaign_id,
            schedule_delay=payload.schedule_delay,
            actor_profile_id=admin.id,
        )
    )


@router.post("/email-queue/process")
def process_email_queue(
    payload: Optional[schemas.ProcessQueueRequest] = None,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    limit = payload.limit if payload else 20
    return raise_for_result(EmailQueueService(db).process_queue(limit=limit))


@router.delete("/email-queue")
def delete_queued_emails(
    email_id: Optional[str] = Query(default=None, alias="id"),
    payload: Optional[schemas.DeleteQueueItemsRequest] = None,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    """Remove unsent emails: one via `?id=`, several via `{"emailIds": [...]}`."""
    admin, _ctx = admin_context
    if email_id:
        item_ids = [parse_uuid(email_id, "id")]
    else:
        item_ids = payload.email_ids if payload else None
    return raise_for_result(EmailQueueService(db).delete_queue_items(item_ids, actor_profile_id=admin.id))
