"""
Fulfillment API endpoints.

Admin management of sample-package shipments, carrier webhooks (DHL and
PostNL) and tracking history/metrics.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from retailhub.api.deps import require_admin
from retailhub.api.errors import api_error, parse_uuid, raise_for_result
from retailhub.db import schemas
from retailhub.db.database import get_db
from retailhub.services.fulfillment_service import FulfillmentService, PROVIDERS, verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/fulfillment", tags=["fulfillment"])

SIGNATURE_HEADERS = {
    "dhl": "x-dhl-signature",
    "postnl": "x-postnl-signature",
}


@router.get("/orders")
def list_fulfillment_orders(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    orders = FulfillmentService(db).list_orders(status=status)
    return {"success": True, "orders": orders, "total": len(orders)}


@router.post("/orders", status_code=status.HTTP_201_CREATED)
def create_fulfillment_order(
    payload: schemas.FulfillmentOrderCreate,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    return raise_for_result(FulfillmentService(db).create_order(payload.model_dump()))


@router.post("/webhook/{provider}")
async def carrier_webhook(provider: str, request: Request, db: Session = Depends(get_db)):
    if provider not in PROVIDERS:
        raise api_error(status.HTTP_404_NOT_FOUND, f"Unknown provider: {provider}")
    body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADERS[provider])
    if not verify_signature(provider, body, signature):
        logger.warning(f"Rejected {provider} webhook: missing or invalid signature")
        raise api_error(status.HTTP_401_UNAUTHORIZED, "Missing signature" if not signature else "Invalid signature")
    try:
        data = json.loads(body or b"{}")
    except ValueError:
        raise api_error(status.HTTP_400_BAD_REQUEST, "Invalid JSON body")
    if not isinstance(data, dict):
        raise api_error(status.HTTP_400_BAD_REQUEST, "Invalid JSON body")
    result = await run_in_threadpool(FulfillmentService(db).process_webhook, provider, data)
    return raise_for_result(result)


@router.get("/webhook/{provider}")
def carrier_webhook_liveness(provider: str):
    if provider not in PROVIDERS:
        raise api_error(status.HTTP_404_NOT_FOUND, f"Unknown provider: {provider}")
    return {
        "message": f"{provider.upper()} webhook endpoint is active",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/tracking")
def tracking_query(
    action: Optional[str] = None,
    order_id: Optional[str] = None,
    tracking_number: Optional[str] = None,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    """
    Tracking lookups.

    - **action=history**: one order and its events, by **order_id** or **tracking_number**
    - **action=delivery_metrics**: status counts and average delivery time
    """
    service = FulfillmentService(db)
    if action == "history":
        return raise_for_result(
            service.history(
                order_id=parse_uuid(order_id, "order_id") if order_id else None,
                tracking_number=tracking_number,
            )
        )
    if action == "delivery_metrics":
        return raise_for_result(service.delivery_metrics())
    raise api_error(status.HTTP_400_BAD_REQUEST, "Invalid action. Use 'history' or 'delivery_metrics'")


@router.post("/tracking")
def tracking_action(
    payload: schemas.TrackingActionRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    if payload.action != "record_event":
        raise api_error(status.HTTP_400_BAD_REQUEST, "Invalid action. Use 'record_event'")
    return raise_for_result(FulfillmentService(db).record_manual_event(payload.model_dump()))
