"""
Wasstrips application API endpoints.

Drives the application payment state machine: deposit, order-ready and
payment-method selection, shipping, delivery, remaining payment, invoices.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from retailhub.api.deps import get_current_profile_context, require_admin
from retailhub.api.errors import parse_uuid, raise_for_result
from retailhub.db import schemas
from retailhub.db.database import get_db
from retailhub.services.wasstrips_service import WasstripsService

router = APIRouter(prefix="/wasstrips-applications", tags=["wasstrips"])


@router.get("")
def list_applications(db: Session = Depends(get_db), admin_context=Depends(require_admin)):
    applications = WasstripsService(db).list_applications()
    return {"success": True, "applications": applications, "total": len(applications)}


@router.post("", status_code=201)
def create_application(
    payload: schemas.CreateApplicationRequest,
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context),
):
    profile, ctx = profile_context
    return raise_for_result(
        WasstripsService(db).create_application(
            profile, ctx["is_admin"], profile_id=payload.profile_id, notes=payload.notes
        )
    )


@router.put("")
def update_payment_status(
    payload: schemas.PaymentStatusUpdate,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return raise_for_result(
        WasstripsService(db).update_payment_status(
            payload.order_number,
            payload.payment_status,
            payload.session_id,
            actor_profile_id=admin.id,
        )
    )


@router.post("/select-payment-method")
def select_payment_method(
    payload: schemas.SelectPaymentMethodRequest,
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context),
):
    profile, ctx = profile_context
    return raise_for_result(
        WasstripsService(db).select_payment_method(
            payload.application_id, payload.payment_method, profile, ctx["is_admin"]
        )
    )


@router.post("/send-deposit-payment")
def send_deposit_payment(
    payload: schemas.ApplicationActionRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return raise_for_result(WasstripsService(db).send_deposit_payment(payload.application_id, actor_profile_id=admin.id))


@router.post("/send-remaining-payment")
def send_remaining_payment(
    payload: schemas.ApplicationActionRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return raise_for_result(WasstripsService(db).send_remaining_payment(payload.application_id, actor_profile_id=admin.id))


@router.post("/send-order-ready")
def send_order_ready(
    payload: schemas.ApplicationActionRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return raise_for_result(WasstripsService(db).send_order_ready(payload.application_id, actor_profile_id=admin.id))


@router.post("/mark-shipped")
def mark_shipped(
    payload: schemas.MarkShippedRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return raise_for_result(
        WasstripsService(db).mark_shipped(payload.application_id, payload.tracking_code, actor_profile_id=admin.id)
    )


@router.post("/mark-delivered")
def mark_delivered(
    payload: schemas.ApplicationActionRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return raise_for_result(WasstripsService(db).mark_delivered(payload.application_id, actor_profile_id=admin.id))


@router.post("/invoice")
def create_invoice(
    payload: schemas.InvoiceRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return raise_for_result(
        WasstripsService(db).create_invoice(payload.application_id, payload.payment_type, actor_profile_id=admin.id)
    )


@router.get("/{application_id}")
def get_application(
    application_id: str,
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context),
):
    profile, ctx = profile_context
    return raise_for_result(
        WasstripsService(db).get_application(parse_uuid(application_id, "id"), profile, ctx["is_admin"])
    )
