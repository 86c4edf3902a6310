"""
Admin operations on commercial prospects and outreach campaigns.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List

from sqlalchemy.orm import Session

from retailhub.audit import AuditAction, log
from retailhub.db import models, schemas
from retailhub.db.repositories import commercial as commercial_repo
from retailhub.services import ok, failure, NOT_FOUND, INVALID

logger = logging.getLogger(__name__)

PROSPECT_STATUSES = (
    "new",
    "qualified",
    "contacted",
    "responded",
    "converted",
    "rejected",
    "unsubscribed",
)
MAX_PAGE_SIZE = 200
STATS_PERIODS = {"1d": timedelta(days=1), "7d": timedelta(days=7), "30d": timedelta(days=30)}


def serialize_prospect(prospect: models.CommercialProspect) -> Dict[str, Any]:
    return {
        "id": str(prospect.id),
        "business_name": prospect.business_name,
        "contact_name": prospect.contact_name,
        "email": prospect.email,
        "phone": prospect.phone,
        "website": prospect.website,
        "address": prospect.address,
        "city": prospect.city,
        "postal_code": prospect.postal_code,
        "business_segment": prospect.business_segment,
        "status": prospect.status,
        "discovery_source": prospect.discovery_source,
        "lead_quality_score": prospect.lead_quality_score,
        "business_quality_score": prospect.business_quality_score,
        "enrichment_score": prospect.enrichment_score,
        "kvk_number": prospect.kvk_number,
        "google_place_id": prospect.google_place_id,
        "raw_data": prospect.raw_data or {},
        "notes": prospect.notes,
        "initial_outreach_date": models.isoformat(prospect.initial_outreach_date),
        "last_contact_date": models.isoformat(prospect.last_contact_date),
        "created_at": models.isoformat(prospect.created_at),
        "updated_at": models.isoformat(prospect.updated_at),
    }


def serialize_campaign(campaign: models.CommercialEmailCampaign) -> Dict[str, Any]:
    return schemas.Campaign.model_validate(campaign).model_dump(mode="json")


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0


class CommercialService:
    def __init__(self, db: Session):
        self.db = db

    # === Prospects ===

    def list_prospects(
        self,
        *,
        page: int = 1,
        limit: int = 50,
        status: Optional[str] = None,
        source: Optional[str] = None,
        segment: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        page = max(page or 1, 1)
        limit = max(1, min(limit or 50, MAX_PAGE_SIZE))
        rows, total = commercial_repo.search_prospects(
            self.db, page=page, limit=limit, status=status, source=source, segment=segment, search=search,
        )
        return ok(
            prospects=[serialize_prospect(p) for p in rows],
            pagination={
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": (total + limit - 1) // limit,
            },
            statistics=self.statistics(),
        )

    def statistics(self) -> Dict[str, Any]:
        return commercial_repo.prospect_statistics(self.db)

    def prospect_action(self, payload: schemas.ProspectActionRequest, *, actor_profile_id=None) -> Dict[str, Any]:
        if payload.action != "bulk_update_status":
            return failure(INVALID, "Unknown action" if payload.action else "action is required")
        if not payload.prospect_ids or not payload.new_status:
            return failure(INVALID, "prospect_ids and new_status are required")
        if payload.new_status not in PROSPECT_STATUSES:
            return failure(INVALID, f"new_status must be one of: {', '.join(PROSPECT_STATUSES)}")
        updated = commercial_repo.bulk_update_status(self.db, payload.prospect_ids, payload.new_status)
        log(
            self.db,
            action=AuditAction.PROSPECT_STATUS_CHANGE,
            target_type="commercial_prospect",
            actor_profile_id=actor_profile_id,
            metadata={
                "prospect_ids": [str(pid) for pid in payload.prospect_ids],
                "new_status": payload.new_status,
                "updated": updated,
            },
        )
        return ok(updated=updated, message=f"Updated {updated} prospect(s)")

    # === Campaigns ===

    def list_campaigns(self, segment: Optional[str] = None) -> List[Dict[str, Any]]:
        return [serialize_campaign(c) for c in commercial_repo.list_campaigns(self.db, segment=segment)]

    def get_campaign(self, campaign_id: uuid.UUID) -> Dict[str, Any]:
        campaign = commercial_repo.get_campaign(self.db, campaign_id)
        if not campaign:
            return failure(NOT_FOUND, "Campaign not found")
        return ok(campaign=serialize_campaign(campaign))

    def create_campaign(self, payload: schemas.CampaignCreate, *, actor_profile_id=None) -> Dict[str, Any]:
        missing = [
            field for field, value in (
                ("name", payload.name),
                ("business_segment", payload.business_segment),
                ("steps", payload.steps),
            )
            if not value
        ]
        if missing:
            return failure(INVALID, "name, business_segment and a non-empty steps list are required", {"missing": missing})
        campaign = commercial_repo.create_campaign(self.db, **payload.model_dump())
        log(
            self.db,
            action=AuditAction.CAMPAIGN_CREATE,
            target_type="commercial_email_campaign",
            target_id=campaign.id,
            actor_profile_id=actor_profile_id,
            metadata={"name": campaign.name, "segment": campaign.business_segment},
        )
        return ok(campaign=serialize_campaign(campaign))

    def update_campaign(self, campaign_id: uuid.UUID, payload: schemas.CampaignUpdate, *, actor_profile_id=None) -> Dict[str, Any]:
        campaign = commercial_repo.get_campaign(self.db, campaign_id)
        if not campaign:
            return failure(NOT_FOUND, "Campaign not found")
        updates = payload.model_dump(exclude_unset=True)
        if "steps" in updates and not updates["steps"]:
            return failure(INVALID, "steps must not be empty")
        if "name" in updates and not updates["name"]:
            return failure(INVALID, "name must not be empty")
        campaign = commercial_repo.update_campaign(self.db, campaign, updates)
        log(
            self.db,
            action=AuditAction.CAMPAIGN_UPDATE,
            target_type="commercial_email_campaign",
            target_id=campaign.id,
            actor_profile_id=actor_profile_id,
            metadata={"fields": sorted(updates)},
        )
        return ok(campaign=serialize_campaign(campaign))

    def toggle_campaign(self, campaign_id: uuid.UUID, *, actor_profile_id=None) -> Dict[str, Any]:
        campaign = commercial_repo.get_campaign(self.db, campaign_id)
        if not campaign:
            return failure(NOT_FOUND, "Campaign not found")
        campaign = commercial_repo.update_campaign(self.db, campaign, {"active": not campaign.active})
        log(
            self.db,
            action=AuditAction.CAMPAIGN_UPDATE,
            target_type="commercial_email_campaign",
            target_id=campaign.id,
            actor_profile_id=actor_profile_id,
            metadata={"active": campaign.active},
        )
        return ok(campaign=serialize_campaign(campaign))

    def delete_campaign(self, campaign_id: uuid.UUID, *, actor_profile_id=None) -> Dict[str, Any]:
        campaign = commercial_repo.get_campaign(self.db, campaign_id)
        if not campaign:
            return failure(NOT_FOUND, "Campaign not found")
        name = campaign.name
        commercial_repo.delete_campaign(self.db, campaign)
        log(
            self.db,
            action=AuditAction.CAMPAIGN_DELETE,
            target_type="commercial_email_campaign",
            target_id=campaign_id,
            actor_profile_id=actor_profile_id,
            metadata={"name": name},
        )
        return ok(message="Campaign deleted")

    def campaign_stats(self, campaign_id: uuid.UUID, period: Optional[str] = "7d") -> Dict[str, Any]:
        """Delivery and engagement figures for one campaign.

        ``period`` is ``1d``, ``7d`` or ``30d``; anything else covers all time.
        Emails are counted by queue date, events by event date.
        """
        campaign = commercial_repo.get_campaign(self.db, campaign_id)
        if not campaign:
            return failure(NOT_FOUND, "Campaign not found")
        period = period if period in STATS_PERIODS else "all"
        since = datetime.now(timezone.utc) - STATS_PERIODS[period] if period in STATS_PERIODS else None

        overview = commercial_repo.campaign_queue_counts(self.db, campaign.id, since)
        overview["conversions"] = commercial_repo.campaign_conversions(self.db, campaign.id, since)
        sent = overview["sent_emails"]
        T = models.CommercialEmailTrackingEvent
        breakdown = {
            name: commercial_repo.campaign_event_breakdown(self.db, campaign.id, since, column)
            for name, column in (
                ("by_event_type", T.event_type),
                ("by_device", T.device_type),
                ("by_email_client", T.email_client),
            )
        }
        recent = commercial_repo.recent_campaign_events(self.db, campaign.id, since)
        return ok(
            campaign={
                "id": str(campaign.id),
                "name": campaign.name,
                "business_segment": campaign.business_segment,
                "active": campaign.active,
                "created_at": models.isoformat(campaign.created_at),
            },
            period=period,
            overview=overview,
            rates={
                "delivery_rate": _rate(sent, overview["total_emails"]),
                "open_rate": _rate(overview["opened_emails"], sent),
                "click_rate": _rate(overview["clicked_emails"], sent),
                "unsubscribe_rate": _rate(overview["unsubscribed_emails"], sent),
                "conversion_rate": _rate(overview["conversions"], sent),
            },
            breakdown=breakdown,
            daily_performance=commercial_repo.campaign_daily_sends(self.db, campaign.id, since),
            recent_events=[
                {
                    "event_type": event.event_type,
                    "device_type": event.device_type,
                    "email_client": event.email_client,
                    "created_at": models.isoformat(event.created_at),
                }
                for event in recent
            ],
        )
