"""
Open/click/unsubscribe tracking for commercial outreach emails.
"""

import base64
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any

from jinja2 import Environment, FileSystemLoader, select_autoescape
from sqlalchemy.orm import Session

from retailhub.db.repositories import commercial as commercial_repo
from retailhub.utils import urls

logger = logging.getLogger(__name__)

# 1x1 transparent PNG
PIXEL_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)
NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

PAGE_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "pages"
_page_env = Environment(
    loader=FileSystemLoader(str(PAGE_TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


def device_type(user_agent: str) -> str:
    ua = (user_agent or "").lower()
    if any(token in ua for token in ("mobile", "android", "iphone")):
        return "mobile"
    if "tablet" in ua or "ipad" in ua:
        return "tablet"
    return "desktop"


def email_client(user_agent: str) -> str:
    ua = (user_agent or "").lower()
    if "outlook" in ua:
        return "Outlook"
    if "thunderbird" in ua:
        return "Thunderbird"
    if "apple mail" in ua or "mail/" in ua:
        return "Apple Mail"
    if "gmail" in ua:
        return "Gmail"
    if "yahoo" in ua:
        return "Yahoo Mail"
    # Webmail: fall back to the browser
    if "chrome" in ua:
        return "Gmail (Chrome)"
    if "firefox" in ua:
        return "Thunderbird (Firefox)"
    if "safari" in ua:
        return "Apple Mail (Safari)"
    return "Unknown"


def render_unsubscribed_page(context: Dict[str, Any]) -> str:
    return _page_env.get_template("unsubscribed.html").render(**context)


class TrackingService:
    def __init__(self, db: Session):
        self.db = db

    def _event_fields(self, item, user_agent: str, ip_address: Optional[str]) -> Dict[str, Any]:
        return {
            "queue_item_id": item.id,
            "prospect_id": item.prospect_id,
            "user_agent": user_agent or None,
            "ip_address": ip_address,
            "device_type": device_type(user_agent),
            "email_client": email_client(user_agent),
        }

    def record_open(self, tracking_id: str, *, user_agent: str = "", ip_address: Optional[str] = None) -> bool:
        """Record the first open of a queue item. Returns True when a new event was stored."""
        item = commercial_repo.get_queue_item_by_pixel(self.db, tracking_id)
        if not item:
            logger.info(f"Pixel hit for unknown tracking id {tracking_id}")
            return False
        if commercial_repo.has_tracking_event(self.db, item.id, "opened"):
            return False
        commercial_repo.add_tracking_event(
            self.db,
            event_type="opened",
            raw_data={"tracking_id": tracking_id},
            **self._event_fields(item, user_agent, ip_address),
        )
        item.opened_at = datetime.now(timezone.utc)
        if item.status == "sent":
            item.status = "opened"
        self.db.commit()
        return True

    def record_click(
        self,
        tracking_id: str,
        url: Optional[str] = None,
        *,
        user_agent: str = "",
        ip_address: Optional[str] = None,
    ) -> str:
        """Record a click and return the URL to redirect to."""
        link = commercial_repo.get_click_link(self.db, tracking_id)
        if not link:
            return url or urls.get_app_base_url()
        item = link.queue_item
        # Stored URL wins over the query string
        target = link.original_url or url or urls.get_app_base_url()
        commercial_repo.add_tracking_event(
            self.db,
            event_type="clicked",
            clicked_url=target,
            raw_data={"tracking_id": tracking_id},
            **self._event_fields(item, user_agent, ip_address),
        )
        if not item.clicked_at:
            item.clicked_at = datetime.now(timezone.utc)
            if item.status in ("sent", "opened"):
                item.status = "clicked"
        self.db.commit()
        return target

    def unsubscribe(self, tracking_id: str, *, user_agent: str = "", ip_address: Optional[str] = None) -> Optional[str]:
        """Unsubscribe the prospect behind ``tracking_id``; returns the confirmation page or None."""
        item = commercial_repo.get_queue_item_by_pixel(self.db, tracking_id)
        if not item:
            return None
        now = datetime.now(timezone.utc)
        commercial_repo.add_tracking_event(
            self.db,
            event_type="unsubscribed",
            raw_data={"tracking_id": tracking_id},
            **self._event_fields(item, user_agent, ip_address),
        )
        item.unsubscribed_at = now
        item.status = "unsubscribed"
        prospect = item.prospect
        if prospect:
            prospect.status = "unsubscribed"
            prospect.notes = "Unsubscribed from commercial emails"
            prospect.last_contact_date = now
        self.db.commit()
        logger.info(f"Prospect {item.prospect_id} unsubscribed via {tracking_id}")
        return render_unsubscribed_page({
            "email": item.recipient_email,
            "businessName": prospect.business_name if prospect else None,
            "appUrl": urls.get_app_base_url(),
        })
