"""
AI lead scoring for discovered prospects via OpenAI chat completions.
"""

import json
import logging
import os
from typing import Optional, Dict, Any

from openai import OpenAI, OpenAIError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"

SYSTEM_PROMPT = (
    "You qualify Dutch small businesses as resellers of laundry strips (wasstrips). "
    "Answer with a JSON object: {\"score\": <number 0-1>, \"reasoning\": <short string>}."
)


def _prospect_summary(prospect: Dict[str, Any]) -> str:
    raw = prospect.get("raw_data") or {}
    fields = {
        "business_name": prospect.get("business_name"),
        "segment": prospect.get("business_segment"),
        "city": prospect.get("city"),
        "website": prospect.get("website"),
        "has_phone": bool(prospect.get("phone")),
        "google_rating": raw.get("rating"),
        "google_reviews": raw.get("user_ratings_total"),
        "kvk_registered": bool(raw.get("kvk_number")),
    }
    return json.dumps(fields, ensure_ascii=False)


class ProspectScoringService:
    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, client: Optional[OpenAI] = None):
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.model = model or os.getenv("OPENAI_MODEL", DEFAULT_MODEL)
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self._client or self.api_key)

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    def score(self, prospect: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Return ``{"score", "reasoning"}`` or None when scoring is unavailable."""
        if not self.configured:
            return None
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": _prospect_summary(prospect)},
                ],
                temperature=0.2,
                response_format={"type": "json_object"},
            )
            payload = json.loads(response.choices[0].message.content or "{}")
            score = float(payload["score"])
        except (OpenAIError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"AI scoring failed for {prospect.get('business_name')}: {e}")
            return None
        return {"score": max(0.0, min(1.0, score)), "reasoning": payload.get("reasoning")}

    def test_connection(self) -> Dict[str, Any]:
        if not self.configured:
            return {"success": False, "error": "OPENAI_API_KEY is not configured"}
        try:
            self.client.models.list()
            return {"success": True}
        except OpenAIError as e:
            return {"success": False, "error": str(e)}
