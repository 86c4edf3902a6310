"""
Commercial outreach email queue.

Queues segment-personalised invitation emails for prospects and sends the
due ones with open/click tracking and an unsubscribe link.
"""

import logging
import random
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List

from sqlalchemy.orm import Session

from retailhub.audit import AuditAction, log
from retailhub.db import models
from retailhub.db.repositories import commercial as commercial_repo
from retailhub.services import ok, failure, NOT_FOUND, INVALID
from retailhub.services.notification_service import NotificationService
from retailhub.utils import feature_flags, urls
from retailhub.utils.token_crypto import generate_hex_token

logger = logging.getLogger(__name__)

OUTREACH_TEMPLATE = "prospect-outreach"
DEFAULT_CAMPAIGN_NAME = "Re-added Prospects Campaign"
DEFAULT_PRIORITY = 5
SCHEDULE_JITTER_MINUTES = 30

SEGMENT_COPY: Dict[str, Dict[str, Any]] = {
    "beauty_salon": {
        "subject_prefix": "Exclusief gratis proefpakket",
        "opening_line": "We hebben een exclusief gratis proefpakket voor",
        "benefits": [
            "Premium wasproducten speciaal voor salon gebruik",
            "Verhoog uw service kwaliteit",
            "Tevreden klanten = meer omzet",
        ],
        "urgency": "Beperkte tijd beschikbaar - claim nu!",
        "testimonial": "Salons rapporteren 40% meer klanttevredenheid",
    },
    "nail_salon": {
        "subject_prefix": "Gratis proefpakket voor nagelstudio's",
        "opening_line": "Speciaal voor professionele nagelstudio's hebben wij",
        "benefits": [
            "Professionele wasoplossingen",
            "Perfect voor tussen behandelingen",
            "Hygiënische en efficiënte service",
        ],
        "urgency": "Exclusief aanbod - slechts beperkt beschikbaar",
        "testimonial": "Nagelstudio's zien 35% snellere service doorlooptijd",
    },
    "restaurant": {
        "subject_prefix": "Gratis proefpakket voor restaurants",
        "opening_line": "Voor restaurants die kwaliteit en service serieus nemen",
        "benefits": [
            "Professionele handwas oplossingen",
            "Verhoog hygiëne standaarden",
            "Indruk maken op uw gasten",
        ],
        "urgency": "Beperkte tijd - claim uw gratis pakket nu",
        "testimonial": "Restaurants rapporteren betere gastevaluaties",
    },
    "hair_salon": {
        "subject_prefix": "Exclusief voor kappers - gratis proefpakket",
        "opening_line": "Speciaal ontwikkeld voor professionele kapperszaken",
        "benefits": [
            "Premium kwaliteit wasproducten",
            "Verbeter uw salon ervaring",
            "Klanten komen sneller terug",
        ],
        "urgency": "Laatste kans - claim nu uw gratis pakket",
        "testimonial": "Kappers zien 45% meer repeat klanten",
    },
    "fashion_retail": {
        "subject_prefix": "Gratis proefpakket voor kledingwinkels",
        "opening_line": "Voor kledingwinkels die hun klanten de beste service willen bieden",
        "benefits": [
            "Professionele handwas service",
            "Verbeter klantervaring in uw winkel",
            "Onderscheid uzelf van concurrentie",
        ],
        "urgency": "Exclusief voor retailers - beperkt beschikbaar",
        "testimonial": "Kledingwinkels zien langere winkelbezoeken",
    },
    "gym": {
        "subject_prefix": "Gratis proefpakket voor sportscholen",
        "opening_line": "Voor sportscholen die hygiëne en service voorop stellen",
        "benefits": [
            "Hygiënische oplossingen voor uw gym",
            "Betere member experience",
            "Professionele uitstraling",
        ],
        "urgency": "Beperkt aanbod - claim snel uw pakket",
        "testimonial": "Sportscholen rapporteren hogere member satisfaction",
    },
}
SEGMENT_ALIASES = {"hairdresser": "hair_salon", "retail_clothing": "fashion_retail"}
FALLBACK_SEGMENT = "beauty_salon"

LINK_PATTERN = re.compile(r'href="(https?://[^"]+)"')


def segment_copy(segment: Optional[str]) -> Dict[str, Any]:
    key = SEGMENT_ALIASES.get(segment or "", segment or "")
    return SEGMENT_COPY.get(key) or SEGMENT_COPY[FALLBACK_SEGMENT]


def outreach_subject(prospect: models.CommercialProspect) -> str:
    copy = segment_copy(prospect.business_segment)
    business = prospect.business_name or "uw zaak"
    location = f" in {prospect.city}" if prospect.city else ""
    return f"{copy['subject_prefix']} voor {business}{location}!"


def serialize_queue_item(item: models.CommercialEmailQueueItem) -> Dict[str, Any]:
    prospect = item.prospect
    return {
        "id": str(item.id),
        "prospect_id": str(item.prospect_id),
        "campaign_id": str(item.campaign_id) if item.campaign_id else None,
        "campaign_step": item.campaign_step,
        "recipient_email": item.recipient_email,
        "recipient_name": item.recipient_name,
        "personalized_subject": item.personalized_subject,
        "personalized_html": item.personalized_html,
        "personalized_text": item.personalized_text,
        "scheduled_at": models.isoformat(item.scheduled_at),
        "status": item.status,
        "priority": item.priority,
        "attempts": item.attempts,
        "max_retries": item.max_retries,
        "error_message": item.error_message,
        "sent_at": models.isoformat(item.sent_at),
        "opened_at": models.isoformat(item.opened_at),
        "clicked_at": models.isoformat(item.clicked_at),
        "created_at": models.isoformat(item.created_at),
        "business_name": prospect.business_name if prospect else None,
        "city": prospect.city if prospect else None,
        "business_segment": prospect.business_segment if prospect else None,
    }


def add_tracking(html: str, pixel_id: str, track: bool = True) -> tuple[str, Dict[str, str]]:
    """Rewrite outbound links through the click tracker and append the pixel
    and unsubscribe link. Returns the new HTML and ``{tracking_id: url}``.

    With ``track=False`` only the unsubscribe link is added.
    """
    click_ids: Dict[str, str] = {}

    def _rewrite(match: re.Match) -> str:
        url = match.group(1)
        tracking_id = generate_hex_token(8)
        click_ids[tracking_id] = url
        tracked = urls.build_api_url(f"/api/track/click/{tracking_id}", url=url)
        return f'href="{tracked}"'

    tracked_html = LINK_PATTERN.sub(_rewrite, html) if track else html
    unsubscribe_url = urls.build_api_url(f"/api/track/unsubscribe/{pixel_id}")
    pixel_url = urls.build_api_url(f"/api/track/pixel/{pixel_id}")
    footer = (
        f'<p style="font-size:12px;color:#718096;text-align:center;">'
        f'<a href="{unsubscribe_url}" style="color:#718096;">Uitschrijven</a></p>'
    )
    if track:
        footer += f'<img src="{pixel_url}" width="1" height="1" alt="" style="display:none;" />'
    if "</body>" in tracked_html:
        tracked_html = tracked_html.replace("</body>", f"{footer}</body>", 1)
    else:
        tracked_html += footer
    return tracked_html, click_ids


class EmailQueueService:
    def __init__(self, db: Session, notification_service: Optional[NotificationService] = None):
        self.db = db
        self._notification_service = notification_service

    @property
    def notification_service(self) -> NotificationService:
        if self._notification_service is None:
            self._notification_service = NotificationService(self.db)
        return self._notification_service

    def list_queue(self, *, limit: int = 20, status: Optional[str] = None, prospect_id: Optional[uuid.UUID] = None) -> List[Dict[str, Any]]:
        items = commercial_repo.list_queue(self.db, limit=limit, status=status, prospect_id=prospect_id)
        return [serialize_queue_item(item) for item in items]

    def delete_queue_items(self, item_ids: Optional[List[uuid.UUID]], *, actor_profile_id=None) -> Dict[str, Any]:
        """Remove unsent emails from the queue; all-or-nothing."""
        if not item_ids:
            return failure(INVALID, "No email IDs provided")
        items = commercial_repo.get_queue_items(self.db, item_ids)
        if not items:
            return failure(NOT_FOUND, "No emails found with the provided IDs")
        found = {item.id for item in items}
        not_found = [str(item_id) for item_id in dict.fromkeys(item_ids) if item_id not in found]

        blocked = [
            item for item in items
            if item.status not in commercial_repo.DELETABLE_QUEUE_STATUSES or item.sent_at is not None
        ]
        if blocked:
            return failure(
                INVALID,
                f"Cannot delete {len(blocked)} email(s). Only pending, failed, or cancelled emails "
                "that haven't been sent can be deleted.",
                {
                    "non_deletable_emails": [
                        {
                            "id": str(item.id),
                            "recipient_email": item.recipient_email,
                            "status": item.status,
                            "sent_at": models.isoformat(item.sent_at),
                        }
                        for item in blocked
                    ]
                },
            )

        deleted = [
            {
                "id": str(item.id),
                "recipient_email": item.recipient_email,
                "subject": item.personalized_subject,
                "status": item.status,
            }
            for item in items
        ]
        commercial_repo.delete_queue_items(self.db, items)
        log(
            self.db,
            action=AuditAction.EMAIL_QUEUE_DELETE,
            target_type="commercial_email_queue",
            actor_profile_id=actor_profile_id,
            metadata={"deleted": [entry["id"] for entry in deleted], "not_found": not_found},
        )
        logger.info(f"Removed {len(deleted)} email(s) from the outreach queue")
        return ok(
            message=f"Successfully removed {len(deleted)} email(s) from queue",
            deleted_count=len(deleted),
            deleted_emails=deleted,
            not_found_count=len(not_found),
            not_found_ids=not_found,
        )

    def _default_campaign(self) -> models.CommercialEmailCampaign:
        campaign = commercial_repo.get_default_campaign(self.db)
        if campaign:
            return campaign
        logger.info("No active campaign found; creating the default re-add campaign")
        return commercial_repo.create_campaign(
            self.db,
            name=DEFAULT_CAMPAIGN_NAME,
            business_segment="mixed",
            steps=[{"step": 1, "template": OUTREACH_TEMPLATE, "delay_days": 0}],
            is_default=True,
            active=True,
        )

    def personalize(self, prospect: models.CommercialProspect, invitation_code: str) -> Dict[str, str]:
        copy = segment_copy(prospect.business_segment)
        business = prospect.business_name or "uw zaak"
        context = {
            **self.notification_service.branding_context(),
            **copy,
            "prospectBusiness": business,
            "locationText": f" in {prospect.city}" if prospect.city else "",
            "contactName": prospect.contact_name,
            "registrationUrl": urls.app_url("/register", invite=invitation_code, ref="email"),
            "invitationCode": invitation_code,
        }
        subject = outreach_subject(prospect)
        email_service = self.notification_service.email_service
        try:
            html, text = email_service.render_template(OUTREACH_TEMPLATE, {**context, "subject": subject})
        except RuntimeError as e:
            logger.warning(f"Outreach template failed, using fallback: {e}")
            html, text = email_service.render_fallback(subject, context)
        return {"subject": subject, "html": html, "text": text}

    def queue_prospects(
        self,
        prospect_ids: Optional[List[uuid.UUID]],
        *,
        campaign_id: Optional[uuid.UUID] = None,
        schedule_delay: int = 5,
        actor_profile_id=None,
    ) -> Dict[str, Any]:
        if not prospect_ids:
            return failure(INVALID, "Prospect IDs array is required")
        prospects = commercial_repo.get_prospects(self.db, prospect_ids)
        if not prospects:
            return failure(NOT_FOUND, "No prospects found with provided IDs")

        busy = commercial_repo.prospect_ids_with_active_email(self.db, [p.id for p in prospects])
        available = [p for p in prospects if p.id not in busy]
        if not available:
            return failure(INVALID, "All selected prospects already have emails in queue")

        if campaign_id:
            campaign = commercial_repo.get_campaign(self.db, campaign_id)
            if not campaign:
                return failure(NOT_FOUND, "Campaign not found")
        else:
            campaign = self._default_campaign()

        now = datetime.now(timezone.utc)
        results = []
        queued_ids = []
        for prospect in available:
            if not prospect.email:
                results.append({
                    "prospect_id": str(prospect.id),
                    "business_name": prospect.business_name,
                    "email": None,
                    "status": "failed",
                    "error": "Prospect has no email address",
                })
                continue
            code = commercial_repo.get_or_create_invitation_code(self.db, prospect.id)
            content = self.personalize(prospect, code.code)
            scheduled_at = now + timedelta(minutes=schedule_delay + random.randrange(SCHEDULE_JITTER_MINUTES))
            self.db.add(models.CommercialEmailQueueItem(
                prospect_id=prospect.id,
                campaign_id=campaign.id,
                campaign_step=1,
                recipient_email=prospect.email,
                recipient_name=prospect.contact_name or prospect.business_name,
                personalized_subject=content["subject"][:300],
                personalized_html=content["html"],
                personalized_text=content["text"],
                scheduled_at=scheduled_at,
                status="pending",
                priority=DEFAULT_PRIORITY,
                attempts=0,
            ))
            prospect.status = "contacted"
            prospect.initial_outreach_date = prospect.initial_outreach_date or now
            prospect.last_contact_date = now
            queued_ids.append(prospect.id)
            results.append({
                "prospect_id": str(prospect.id),
                "business_name": prospect.business_name,
                "email": prospect.email,
                "status": "queued",
                "scheduled_at": scheduled_at.isoformat(),
            })
        self.db.commit()

        log(
            self.db,
            action=AuditAction.EMAIL_QUEUE_ADD,
            target_type="commercial_email_campaign",
            target_id=campaign.id,
            actor_profile_id=actor_profile_id,
            metadata={"queued": len(queued_ids), "skipped": len(busy)},
        )
        return ok(
            message=f"Successfully added {len(queued_ids)} prospect(s) to email queue",
            queued_count=len(queued_ids),
            skipped_count=len(busy),
            total_requested=len(prospect_ids),
            campaign_id=str(campaign.id),
            results=results,
            skipped_prospects=[
                {"prospect_id": str(p.id), "business_name": p.business_name, "reason": "Already has email in queue"}
                for p in prospects
                if p.id in busy
            ],
        )

    def process_queue(self, limit: int = 20) -> Dict[str, Any]:
        if not feature_flags.enabled("outreach_sending"):
            logger.info("Commercial automation disabled; queue not processed")
            return ok(processed=0, sent=0, failed=0, retried=0, disabled=True)
        items = commercial_repo.due_queue_items(self.db, limit=limit)
        sent = failed = retried = 0
        for item in items:
            item.status = "processing"
            item.attempts = (item.attempts or 0) + 1
            pixel_id = item.tracking_pixel_id or generate_hex_token(16)
            html, click_ids = add_tracking(
                item.personalized_html or "", pixel_id, track=feature_flags.enabled("email_tracking")
            )
            item.tracking_pixel_id = pixel_id
            item.click_tracking_ids = click_ids
            commercial_repo.replace_click_links(item, click_ids)
            self.db.commit()

            result = self.notification_service.send_email(
                item.recipient_email,
                item.personalized_subject,
                html,
                item.personalized_text,
                template=OUTREACH_TEMPLATE,
                tags=["commercial-outreach"],
            )
            if result.get("success"):
                item.status = "sent"
                item.sent_at = datetime.now(timezone.utc)
                item.provider_message_id = result.get("message_id")
                item.error_message = None
                sent += 1
            else:
                item.error_message = result.get("error")
                if item.attempts >= (item.max_retries or 3):
                    item.status = "failed"
                    failed += 1
                else:
                    item.status = "pending"
                    retried += 1
                logger.warning(f"Outreach email {item.id} failed (attempt {item.attempts}): {item.error_message}")
            self.db.commit()

        return ok(processed=len(items), sent=sent, failed=failed, retried=retried)
