"""
Stripe payment endpoints: product sync, Checkout sessions, payment
intents and the webhook receiver.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from retailhub.api.deps import get_current_profile_context, is_admin, require_admin
from retailhub.api.errors import raise_for_result
from retailhub.db import schemas
from retailhub.db.database import get_db
from retailhub.services.stripe_service import StripeService, publishable_config

router = APIRouter(prefix="/stripe", tags=["stripe"])


@router.post("/sync-product")
def sync_product(
    payload: schemas.SyncProductRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return raise_for_result(StripeService(db).sync_product(payload.product_id, actor_profile_id=admin.id))


@router.get("/config")
def stripe_config():
    return publishable_config()


@router.post("/checkout")
def create_checkout(
    payload: schemas.CheckoutRequest,
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context),
):
    profile, _ctx = profile_context
    items = [item.model_dump() for item in payload.items or []]
    return raise_for_result(
        StripeService(db).create_checkout(
            items,
            order_id=payload.order_id,
            application_id=payload.application_id,
            customer_email=payload.customer_email or profile.email,
        )
    )


@router.post("/wasstrips-payment")
def create_wasstrips_payment(
    payload: schemas.WasstripsPaymentRequest,
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context),
):
    profile, _ctx = profile_context
    owner_id = None if is_admin(profile) else profile.id
    return raise_for_result(
        StripeService(db).create_wasstrips_checkout(payload.application_id, payload.payment_type, owner_id=owner_id)
    )


@router.post("/payment-intent")
def create_payment_intent(
    payload: schemas.PaymentIntentRequest,
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context),
):
    return raise_for_result(
        StripeService(db).create_payment_intent(payload.amount, payload.currency, payload.metadata)
    )


@router.get("/payment-intent")
def get_payment_intent(
    id: Optional[str] = None,
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context),
):
    return raise_for_result(StripeService(db).get_payment_intent(id))


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="stripe-signature"),
    db: Session = Depends(get_db),
):
    # Signature verification needs the untouched body
    payload = await request.body()
    # Handlers send email synchronously; keep them off the event loop
    result = await run_in_threadpool(StripeService(db).handle_webhook, payload, stripe_signature)
    return raise_for_result(result)
