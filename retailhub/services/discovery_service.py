"""
Prospect discovery: Google Places search, optional KvK enrichment and
AI scoring, then persistence with duplicate detection.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

import requests
from sqlalchemy.orm import Session

from retailhub.audit import AuditAction, log
from retailhub.db.repositories import commercial as commercial_repo
from retailhub.services import ok, failure, CONFIGURATION, UPSTREAM
from retailhub.services.kvk_service import KvKClient
from retailhub.services.places_service import GooglePlacesClient, PlacesAPIError
from retailhub.services.prospect_scoring_service import ProspectScoringService
from retailhub.utils import feature_flags

logger = logging.getLogger(__name__)

DEFAULT_SEGMENT = "beauty_salon"
DEFAULT_REGION = "Amsterdam"
MAX_DISCOVERY_LIMIT = 50

PROSPECT_FIELDS = (
    "business_name",
    "email",
    "phone",
    "website",
    "address",
    "city",
    "postal_code",
    "business_segment",
    "discovery_source",
    "google_place_id",
    "kvk_number",
    "business_quality_score",
    "lead_quality_score",
    "enrichment_score",
    "raw_data",
)

API_STATUS_SOURCES = {
    "openai": ("OPENAI_API_KEY", "OpenAI API", "AI lead scoring"),
    "google": ("GOOGLE_PLACES_API_KEY", "Google Places API", "Business discovery"),
    "kvk": ("KVK_API_KEY", "KvK API", "Nederlandse bedrijfsdata"),
    "mandrill": ("MANDRILL_API_KEY", "Mandrill API", "Email delivery service"),
}


def enrichment_score(prospect: Dict[str, Any]) -> float:
    """Share of contact fields present (email, phone, website, address)."""
    present = sum(1 for field in ("email", "phone", "website", "address") if prospect.get(field))
    return round(present / 4, 3)


def api_status() -> Dict[str, Any]:
    apis = {}
    for key, (env_var, name, description) in API_STATUS_SOURCES.items():
        value = os.getenv(env_var) or ""
        apis[key] = {
            "configured": bool(value),
            "name": name,
            "description": description,
            "keyLength": len(value),
        }
    configured = sum(1 for api in apis.values() if api["configured"])
    return {
        "apis": apis,
        "switches": feature_flags.describe(),
        "summary": {
            "configuredCount": configured,
            "totalApis": len(apis),
            "systemReadiness": f"{round(configured / len(apis) * 100)}%",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    }


class DiscoveryService:
    def __init__(
        self,
        db: Session,
        places: Optional[GooglePlacesClient] = None,
        kvk: Optional[KvKClient] = None,
        scorer: Optional[ProspectScoringService] = None,
    ):
        self.db = db
        self.places = places or GooglePlacesClient()
        self.kvk = kvk or KvKClient()
        self.scorer = scorer or ProspectScoringService()

    def _score(self, prospect: Dict[str, Any]) -> Dict[str, Any]:
        prospect["enrichment_score"] = enrichment_score(prospect)
        places_score = prospect.get("business_quality_score") or 0.5
        if feature_flags.enabled("prospect_scoring") and self.scorer.configured:
            result = self.scorer.score(prospect)
            if result:
                prospect["lead_quality_score"] = result["score"]
                prospect["raw_data"] = {**(prospect.get("raw_data") or {}), "ai_reasoning": result["reasoning"]}
                return prospect
        prospect["lead_quality_score"] = places_score
        return prospect

    def save_prospects(self, prospects: List[Dict[str, Any]]) -> Dict[str, Any]:
        saved, duplicates = [], 0
        for prospect in prospects:
            if commercial_repo.find_duplicate(self.db, prospect["business_name"], prospect.get("city")):
                duplicates += 1
                continue
            fields = {k: prospect.get(k) for k in PROSPECT_FIELDS if prospect.get(k) is not None}
            row = commercial_repo.create_prospect(self.db, status="new", **fields)
            saved.append(row)
        return {"saved": saved, "duplicates_skipped": duplicates}

    def discover(
        self,
        segment: Optional[str] = None,
        region: Optional[str] = None,
        limit: int = 10,
        *,
        actor_profile_id=None,
    ) -> Dict[str, Any]:
        segment = segment or DEFAULT_SEGMENT
        region = region or DEFAULT_REGION
        limit = max(1, min(limit or 10, MAX_DISCOVERY_LIMIT))
        if not self.places.configured:
            return failure(CONFIGURATION, "Google Places API key is not configured")

        try:
            prospects = self.places.search_businesses(segment, region, limit=limit)
        except (requests.RequestException, PlacesAPIError) as e:
            logger.error(f"Discovery for {segment} in {region} failed: {e}")
            return failure(UPSTREAM, "Prospect discovery failed", str(e))

        if feature_flags.enabled("kvk_enrichment") and self.kvk.configured:
            prospects = [self.kvk.enrich(p) for p in prospects]
        prospects = [self._score(p) for p in prospects]
        prospects.sort(key=lambda p: p.get("lead_quality_score") or 0, reverse=True)

        result = self.save_prospects(prospects)
        log(
            self.db,
            action=AuditAction.PROSPECT_DISCOVERY,
            target_type="commercial_prospect",
            actor_profile_id=actor_profile_id,
            metadata={"segment": segment, "region": region, "saved": len(result["saved"])},
        )
        return ok(
            prospects=prospects,
            metadata={
                "total_discovered": len(prospects),
                "saved_to_database": len(result["saved"]),
                "duplicates_skipped": result["duplicates_skipped"],
                "segment": segment,
                "region": region,
            },
        )

    def test_providers(self) -> Dict[str, Any]:
        return {
            "google_places": self.places.test_connection(),
            "kvk": self.kvk.test_connection(),
            "openai": self.scorer.test_connection(),
        }
