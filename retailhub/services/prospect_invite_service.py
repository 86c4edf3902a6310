"""
Landing-page lookup for outreach invitation codes.

A prospect who follows the registration link in an outreach email arrives
with ``?invite=<code>``; the page resolves the code into the prospect's
details and segment-specific copy.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from retailhub.db import models
from retailhub.db.repositories import commercial as commercial_repo
from retailhub.services import ok, failure, NOT_FOUND, INVALID
from retailhub.services.email_queue_service import segment_copy

logger = logging.getLogger(__name__)

INVALID_CODE_MESSAGE = "Invalid or expired invitation code"


def welcome_message(prospect: models.CommercialProspect) -> str:
    business = prospect.business_name or "uw zaak"
    location = f" in {prospect.city}" if prospect.city else ""
    first_name = (prospect.contact_name or "").split()[0] if (prospect.contact_name or "").strip() else ""
    greeting = f"Welkom {first_name}!" if first_name else "Welkom!"
    return (
        f"{greeting} We zijn verheugd dat {business}{location} "
        "interesse heeft in ons exclusieve partnership programma."
    )


class ProspectInviteService:
    def __init__(self, db: Session):
        self.db = db

    def resolve(self, code: Optional[str]) -> Dict[str, Any]:
        """Look up an active, unexpired code and count the visit.

        The first visit sets ``used_at``; an expired code is deactivated.
        """
        code = (code or "").strip().upper()
        if not code:
            return failure(INVALID, "Invitation code is required")
        invitation = commercial_repo.get_invitation_code(self.db, code)
        if not invitation or not invitation.is_active or not invitation.prospect:
            return failure(NOT_FOUND, INVALID_CODE_MESSAGE)

        now = datetime.now(timezone.utc)
        expires_at = models.as_utc(invitation.expires_at)
        if expires_at is not None and expires_at <= now:
            invitation.is_active = False
            self.db.commit()
            logger.info(f"Invitation code {code} expired at {expires_at.isoformat()}")
            return failure(NOT_FOUND, INVALID_CODE_MESSAGE)

        previous_visits = invitation.visits_count or 0
        invitation.visits_count = previous_visits + 1
        invitation.last_visited_at = now
        if invitation.used_at is None:
            invitation.used_at = now
        self.db.commit()

        prospect = invitation.prospect
        copy = segment_copy(prospect.business_segment)
        return ok(
            prospect={
                "id": str(prospect.id),
                "business_name": prospect.business_name,
                "contact_name": prospect.contact_name,
                "business_segment": prospect.business_segment,
                "city": prospect.city,
                "email": prospect.email,
                "invitation_code": invitation.code,
                "visits_count": invitation.visits_count,
                "is_return_visitor": previous_visits > 0,
                "already_registered": prospect.status == "converted",
                "expires_at": models.isoformat(invitation.expires_at),
            },
            personalization={
                "headline": copy["subject_prefix"],
                "welcome_message": welcome_message(prospect),
                "benefits": list(copy["benefits"]),
                "testimonial": copy["testimonial"],
                "urgency": copy["urgency"],
            },
        )
