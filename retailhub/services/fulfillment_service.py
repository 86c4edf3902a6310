"""
Sample-package fulfillment: shipment orders, carrier webhooks (DHL, PostNL)
and tracking history/metrics.
"""

import hashlib
import hmac
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from retailhub.db import models
from retailhub.db.repositories import fulfillment as fulfillment_repo
from retailhub.services import ok, failure, NOT_FOUND, INVALID
from retailhub.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

PROVIDERS = ("dhl", "postnl")
EVENT_TYPES = ("shipped", "in_transit", "delivered", "delayed", "failed", "returned")

DHL_STATUS_MAP = {
    "transit": "in_transit",
    "delivered": "delivered",
    "failure": "failed",
    "returned-to-sender": "returned",
}
POSTNL_STATUS_MAP = {
    "3S": "shipped",
    "7S": "in_transit",
    "11S": "delivered",
    "8S": "failed",
    "9S": "returned",
}
DEFAULT_EVENT_TYPE = "in_transit"

WEBHOOK_SECRET_ENV = {"dhl": "DHL_WEBHOOK_SECRET", "postnl": "POSTNL_WEBHOOK_SECRET"}


def map_dhl_status(status: str) -> str:
    return DHL_STATUS_MAP.get(status, DEFAULT_EVENT_TYPE)


def map_postnl_status(status: str) -> str:
    return POSTNL_STATUS_MAP.get(status, DEFAULT_EVENT_TYPE)


def verify_signature(provider: str, body: bytes, signature: Optional[str]) -> bool:
    """A signature header is always required; its HMAC is only checked when a secret is configured."""
    if not signature:
        return False
    secret = os.getenv(WEBHOOK_SECRET_ENV[provider])
    if not secret:
        return True
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature.strip().lower())


def webhook_city(provider: str, location: Any) -> Optional[str]:
    """City from a carrier location block; carriers sometimes send plain strings."""
    if isinstance(location, str):
        return location.strip() or None
    if not isinstance(location, dict):
        return None
    if provider == "dhl":
        address = location.get("address")
        if isinstance(address, dict):
            return address.get("addressLocality")
        return address if isinstance(address, str) and address.strip() else None
    city = location.get("city")
    return city if isinstance(city, str) else None


def parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable carrier timestamp {value!r}; using now")
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def serialize_order(order: models.FulfillmentOrder) -> Dict[str, Any]:
    return {
        "id": str(order.id),
        "prospect_id": str(order.prospect_id) if order.prospect_id else None,
        "package_type": order.package_type,
        "recipient_name": order.recipient_name,
        "recipient_email": order.recipient_email,
        "shipping_address": order.shipping_address,
        "shipping_city": order.shipping_city,
        "shipping_postal_code": order.shipping_postal_code,
        "shipping_provider": order.shipping_provider,
        "tracking_number": order.tracking_number,
        "status": order.status,
        "shipped_at": models.isoformat(order.shipped_at),
        "delivered_at": models.isoformat(order.delivered_at),
        "created_at": models.isoformat(order.created_at),
    }


def serialize_event(event: models.FulfillmentTrackingEvent) -> Dict[str, Any]:
    return {
        "id": str(event.id),
        "order_id": str(event.order_id),
        "tracking_number": event.tracking_number,
        "event_type": event.event_type,
        "event_description": event.event_description,
        "event_timestamp": models.isoformat(event.event_timestamp),
        "location": event.location,
        "provider_reference": event.provider_reference,
        "metadata": event.metadata_json,
    }


class FulfillmentService:
    def __init__(self, db: Session, notification_service: Optional[NotificationService] = None):
        self.db = db
        self._notification_service = notification_service

    @property
    def notification_service(self) -> NotificationService:
        if self._notification_service is None:
            self._notification_service = NotificationService(self.db)
        return self._notification_service

    def list_orders(self, status: Optional[str] = None):
        return [serialize_order(o) for o in fulfillment_repo.list_orders(self.db, status=status)]

    def create_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        provider = (payload.get("shipping_provider") or "").lower()
        if provider not in PROVIDERS:
            return failure(INVALID, "shipping_provider must be one of: dhl, postnl")
        if not payload.get("recipient_name"):
            return failure(INVALID, "recipient_name is required")
        prospect_id = payload.get("prospect_id")
        if prospect_id:
            try:
                prospect_id = uuid.UUID(str(prospect_id))
            except ValueError:
                return failure(INVALID, "Invalid prospect_id")
        tracking_number = payload.get("tracking_number")
        if tracking_number and fulfillment_repo.get_order_by_tracking(self.db, tracking_number):
            return failure(INVALID, "Tracking number already in use")
        order = fulfillment_repo.create_order(
            self.db,
            prospect_id=prospect_id or None,
            package_type=payload.get("package_type") or "proefpakket",
            recipient_name=payload["recipient_name"],
            recipient_email=payload.get("recipient_email"),
            shipping_address=payload.get("shipping_address"),
            shipping_city=payload.get("shipping_city"),
            shipping_postal_code=payload.get("shipping_postal_code"),
            shipping_provider=provider,
            tracking_number=tracking_number,
            status="shipped" if tracking_number else "pending",
            shipped_at=datetime.now(timezone.utc) if tracking_number else None,
        )
        return ok(order=serialize_order(order))

    def record_event(
        self,
        order: models.FulfillmentOrder,
        *,
        event_type: str,
        description: Optional[str] = None,
        timestamp: Optional[datetime] = None,
        location: Optional[str] = None,
        provider_reference: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> models.FulfillmentTrackingEvent:
        timestamp = timestamp or datetime.now(timezone.utc)
        event = fulfillment_repo.add_event(
            self.db,
            order,
            tracking_number=order.tracking_number,
            event_type=event_type,
            event_description=description,
            event_timestamp=timestamp,
            location=location,
            provider_reference=provider_reference,
            metadata_json=metadata,
        )
        delivered = False
        if event_type == "shipped":
            order.status = "shipped"
            order.shipped_at = timestamp
        elif event_type == "delivered":
            delivered = order.status != "delivered"
            order.status = "delivered"
            order.delivered_at = timestamp
        elif event_type in ("failed", "returned"):
            order.status = "failed"
        elif event_type == "in_transit" and order.status in ("pending", "shipped"):
            order.status = "in_transit"
        self.db.commit()
        logger.info(f"Fulfillment order {order.id}: {event_type} ({order.status})")

        if delivered:
            try:
                self.notification_service.notify_sample_delivered(order)
            except Exception as e:
                logger.warning(f"Delivery email for order {order.id} failed: {e}")
        return event

    def process_webhook(self, provider: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if provider == "dhl":
            tracking_number = data.get("trackingNumber")
            status = data.get("status")
        else:
            tracking_number = data.get("barcode")
            status = data.get("status")
        if not tracking_number or not status:
            return failure(INVALID, "Missing required fields")

        order = fulfillment_repo.get_order_by_tracking(self.db, str(tracking_number))
        if not order:
            return failure(NOT_FOUND, f"Order not found for tracking number: {tracking_number}")

        city = webhook_city(provider, data.get("location"))
        if provider == "dhl":
            event_type = map_dhl_status(status)
            description = data.get("description") or data.get("statusDescription")
            timestamp = parse_timestamp(data.get("timestamp"))
        else:
            event_type = map_postnl_status(status)
            description = data.get("description") or status
            timestamp = parse_timestamp(data.get("timeStamp"))

        self.record_event(
            order,
            event_type=event_type,
            description=description,
            timestamp=timestamp,
            location=city,
            provider_reference=data.get("reference"),
            metadata=data,
        )
        return ok(message="Webhook processed successfully", tracking_number=tracking_number)

    def history(self, *, order_id: Optional[uuid.UUID] = None, tracking_number: Optional[str] = None) -> Dict[str, Any]:
        if not order_id and not tracking_number:
            return failure(INVALID, "Either order_id or tracking_number is required")
        if order_id:
            order = fulfillment_repo.get_order(self.db, order_id)
        else:
            order = fulfillment_repo.get_order_by_tracking(self.db, tracking_number)
        if not order:
            return failure(NOT_FOUND, "Order not found")
        return ok(order=serialize_order(order), events=[serialize_event(e) for e in order.events])

    def delivery_metrics(self) -> Dict[str, Any]:
        counts = fulfillment_repo.status_counts(self.db)
        durations = []
        for order in fulfillment_repo.delivered_orders(self.db):
            delta = models.as_utc(order.delivered_at) - models.as_utc(order.shipped_at)
            durations.append(delta.total_seconds() / 3600)
        average = round(sum(durations) / len(durations), 1) if durations else None
        total = sum(counts.values())
        delivered = counts.get("delivered", 0)
        return ok(data={
            "total_orders": total,
            "by_status": counts,
            "delivered": delivered,
            "delivery_rate": round(delivered / total * 100, 1) if total else 0.0,
            "average_delivery_hours": average,
        })

    def record_manual_event(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        order_id = payload.get("order_id")
        event_type = payload.get("event_type")
        description = payload.get("event_description")
        if not order_id or not event_type or not description:
            return failure(INVALID, "order_id, event_type and event_description are required")
        if event_type not in EVENT_TYPES:
            return failure(INVALID, f"event_type must be one of: {', '.join(EVENT_TYPES)}")
        try:
            order_uuid = uuid.UUID(str(order_id))
        except ValueError:
            return failure(INVALID, "Invalid order_id")
        order = fulfillment_repo.get_order(self.db, order_uuid)
        if not order:
            return failure(NOT_FOUND, "Order not found")
        event = self.record_event(
            order,
            event_type=event_type,
            description=description,
            location=payload.get("location"),
            metadata=payload.get("metadata"),
        )
        return ok(event=serialize_event(event))
