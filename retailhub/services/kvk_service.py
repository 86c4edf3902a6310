"""
KvK (Dutch Chamber of Commerce) client used to enrich discovered prospects.
"""

import logging
import os
import re
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

import requests

from retailhub.utils.rate_limit import MinIntervalLimiter

logger = logging.getLogger(__name__)

DEFAULT_KVK_BASE_URL = "https://api.kvk.nl/api/v1"
REQUEST_TIMEOUT = 15
MATCH_THRESHOLD = 0.5

LEGAL_SUFFIX_PATTERN = re.compile(r"\b(b\.?v\.?|n\.?v\.?|v\.?o\.?f\.?|ltd\.?|inc\.?|corp\.?|limited|bv|nv|vof)(?=\W|$)")


def clean_business_name(name: str) -> str:
    cleaned = LEGAL_SUFFIX_PATTERN.sub("", name.lower())
    cleaned = re.sub(r"[^\w\s]", " ", cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


def name_similarity(first: str, second: str) -> float:
    """1.0 exact, 0.8 containment, else 0.6 scaled by shared-word ratio."""
    a = clean_business_name(first)
    b = clean_business_name(second)
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    if a in b or b in a:
        return 0.8
    words_a = a.split()
    words_b = b.split()
    common = [w for w in words_a if w in words_b]
    if common:
        return len(common) / max(len(words_a), len(words_b)) * 0.6
    return 0.0


def match_score(prospect: Dict[str, Any], business: Dict[str, Any]) -> float:
    score = name_similarity(prospect.get("business_name") or "", business.get("businessName") or "") * 0.4
    addresses = business.get("addresses") or []
    city = (prospect.get("city") or "").lower()
    if city and any((addr.get("city") or "").lower() == city for addr in addresses):
        score += 0.3
    postal = prospect.get("postal_code")
    if postal and any(
        (addr.get("postalCode") or "").replace(" ", "").upper() == postal.replace(" ", "").upper()
        for addr in addresses
    ):
        score += 0.2
    if business.get("isMainBranch", True):
        score += 0.1
    return score


def find_best_match(prospect: Dict[str, Any], businesses: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    best, best_score = None, 0.0
    for business in businesses:
        score = match_score(prospect, business)
        if score > best_score:
            best, best_score = business, score
    return best if best_score > MATCH_THRESHOLD else None


def apply_enrichment(prospect: Dict[str, Any], business: Dict[str, Any]) -> Dict[str, Any]:
    enriched = dict(prospect)
    raw = dict(enriched.get("raw_data") or {})
    activities = business.get("businessActivities") or []
    raw.update({
        "kvk_number": business.get("kvkNumber"),
        "branch_number": business.get("branchNumber"),
        "trade_names": business.get("currentTradeNames") or [],
        "sbi_codes": [a.get("sbiCode") for a in activities if a.get("sbiCode")],
        "kvk_enriched": True,
        "kvk_enriched_at": datetime.now(timezone.utc).isoformat(),
    })
    enriched["raw_data"] = raw
    enriched["kvk_number"] = business.get("kvkNumber")

    addresses = business.get("addresses") or []
    main = next((a for a in addresses if a.get("type") == "hoofdvestigingadres"), addresses[0] if addresses else None)
    if main and main.get("street"):
        enriched["address"] = (
            f"{main.get('street')} {main.get('houseNumber', '')}{main.get('houseNumberAddition') or ''}, "
            f"{main.get('postalCode', '')} {main.get('city', '')}"
        ).strip()
        enriched["city"] = main.get("city") or enriched.get("city")
        enriched["postal_code"] = main.get("postalCode") or enriched.get("postal_code")

    profile = business.get("companyProfile") or {}
    for source, target in (("website", "website"), ("phoneNumber", "phone"), ("emailAddress", "email")):
        if profile.get(source) and not enriched.get(target):
            enriched[target] = profile[source]
    return enriched


class KvKClient:
    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None, *, min_interval: float = 1.0):
        self.api_key = api_key or os.getenv("KVK_API_KEY")
        self.base_url = (base_url or os.getenv("KVK_API_BASE_URL") or DEFAULT_KVK_BASE_URL).rstrip("/")
        self.limiter = MinIntervalLimiter(min_interval)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def search(self, *, name: str, city: Optional[str] = None, postal_code: Optional[str] = None, result_size: int = 5) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"name": name, "startPage": 1, "resultSize": result_size}
        if city:
            params["city"] = city
        if postal_code:
            params["postalCode"] = postal_code.replace(" ", "")
        self.limiter.wait()
        response = requests.get(
            f"{self.base_url}/search/companies",
            params=params,
            headers={"apikey": self.api_key, "Accept": "application/json"},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        return response.json().get("results") or []

    def enrich(self, prospect: Dict[str, Any]) -> Dict[str, Any]:
        """Return the prospect enriched with the best KvK match, or unchanged."""
        if not self.configured or not prospect.get("business_name"):
            return prospect
        try:
            businesses = self.search(
                name=prospect["business_name"],
                city=prospect.get("city"),
                postal_code=prospect.get("postal_code"),
            )
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"KvK lookup failed for {prospect['business_name']}: {e}")
            return prospect
        match = find_best_match(prospect, businesses)
        if not match:
            return prospect
        return apply_enrichment(prospect, match)

    def test_connection(self) -> Dict[str, Any]:
        if not self.configured:
            return {"success": False, "error": "KVK_API_KEY is not configured"}
        try:
            self.search(name="Test", result_size=1)
            return {"success": True}
        except (requests.RequestException, ValueError) as e:
            return {"success": False, "error": str(e)}
