"""
Retailer API endpoints.

Public registration and account activation, plus the admin approval,
deletion and restore flows.
"""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from retailhub.api.auth import serialize_profile
from retailhub.api.deps import require_admin
from retailhub.api.errors import api_error, parse_uuid, raise_for_result
from retailhub.db import models, schemas
from retailhub.db.database import get_db
from retailhub.db.repositories import profiles as profile_repo
from retailhub.services.retailer_service import RetailerService
from retailhub.services.wasstrips_service import serialize_application

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/retailers", tags=["retailers"])


def serialize_archive(archived: models.DeletedRetailer) -> dict:
    return {
        "id": str(archived.id),
        "original_profile_id": str(archived.original_profile_id),
        "email": archived.email,
        "company_name": archived.company_name,
        "original_data": archived.original_data or {},
        "deleted_by": str(archived.deleted_by) if archived.deleted_by else None,
        "deleted_at": models.isoformat(archived.deleted_at),
        "reason": archived.reason,
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register_retailer(payload: schemas.RetailerRegistration, db: Session = Depends(get_db)):
    result = raise_for_result(RetailerService(db).register(payload))
    application = result["application"]
    return {
        "success": True,
        "message": "Registratie ontvangen. We nemen zo snel mogelijk contact met je op.",
        "profile": serialize_profile(result["profile"]),
        "application": serialize_application(application) if application else None,
        "emailSent": result["email_sent"],
    }


@router.get("")
def list_retailers(
    status: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 200,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    retailers = profile_repo.list_retailers(db, status=status, search=search, skip=skip, limit=limit)
    return {"success": True, "retailers": [serialize_profile(p) for p in retailers], "total": len(retailers)}


@router.post("/activate")
def set_retailer_approval(
    payload: schemas.RetailerActivationRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    if not payload.retailer_id or not payload.status:
        raise api_error(status.HTTP_400_BAD_REQUEST, "retailerId and status are required")
    result = raise_for_result(
        RetailerService(db).set_approval(
            payload.retailer_id,
            payload.status,
            actor_profile_id=admin.id,
            rejection_reason=payload.rejection_reason,
        )
    )
    return {
        "success": True,
        "profile": serialize_profile(result["profile"]),
        "emailSent": result["email_sent"],
    }


@router.post("/notify")
def notify_retailer(
    payload: schemas.RetailerNotifyRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    """Resend the approval or rejection email without changing the retailer's status."""
    admin, _ctx = admin_context
    result = raise_for_result(
        RetailerService(db).notify_decision(
            payload.retailer_id, payload.action, reason=payload.reason, actor_profile_id=admin.id
        )
    )
    return {"success": True, "message": result["message"], "emailSent": result["email_sent"]}


@router.post("/resend-activation")
def resend_activation(
    payload: schemas.ResendActivationRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    if not payload.retailer_id:
        raise api_error(status.HTTP_400_BAD_REQUEST, "retailerId is required")
    result = raise_for_result(RetailerService(db).resend_activation(payload.retailer_id, actor_profile_id=admin.id))
    return {"success": True, "emailSent": result["email_sent"]}


@router.get("/verify-token")
def verify_activation_token(token: Optional[str] = None, db: Session = Depends(get_db)):
    if not token:
        raise api_error(status.HTTP_400_BAD_REQUEST, "token is required")
    result = raise_for_result(RetailerService(db).verify_activation_token(token))
    profile = result["profile"]
    return {
        "valid": True,
        "expiresAt": models.isoformat(result["expires_at"]),
        "profile": {
            "id": str(profile.id),
            "email": profile.email,
            "fullName": profile.full_name,
            "companyName": profile.company_name,
        },
    }


@router.post("/activate-account")
def activate_account(payload: schemas.ActivateAccountRequest, db: Session = Depends(get_db)):
    result = raise_for_result(RetailerService(db).activate_account(payload.token, payload.password))
    return {"success": True, "token": result["token"], "profile": serialize_profile(result["profile"])}


@router.get("/deleted")
def list_deleted_retailers(db: Session = Depends(get_db), admin_context=Depends(require_admin)):
    return {"success": True, "deleted": [serialize_archive(a) for a in profile_repo.list_deleted_retailers(db)]}


@router.post("/restore/{archive_id}")
def restore_retailer(archive_id: str, db: Session = Depends(get_db), admin_context=Depends(require_admin)):
    admin, _ctx = admin_context
    result = raise_for_result(
        RetailerService(db).restore_retailer(parse_uuid(archive_id, "id"), actor_profile_id=admin.id)
    )
    return {"success": True, "profile": serialize_profile(result["profile"])}


def _delete(db: Session, retailer_id: uuid.UUID, admin: models.Profile, reason: Optional[str]):
    result = raise_for_result(RetailerService(db).delete_retailer(retailer_id, actor_profile_id=admin.id, reason=reason))
    return {
        "success": True,
        "message": "Retailer deleted",
        "archived": serialize_archive(result["archived"]),
        "emailSent": result["email_sent"],
    }


@router.delete("")
def delete_retailer_by_query(
    id: Optional[str] = None,
    reason: Optional[str] = None,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return _delete(db, parse_uuid(id, "id"), admin, reason)


@router.get("/{retailer_id}")
def get_retailer(retailer_id: str, db: Session = Depends(get_db), admin_context=Depends(require_admin)):
    profile = profile_repo.get_profile(db, parse_uuid(retailer_id, "id"))
    if not profile:
        raise api_error(status.HTTP_404_NOT_FOUND, "Retailer not found")
    return {"success": True, "retailer": serialize_profile(profile)}


@router.delete("/{retailer_id}")
def delete_retailer(
    retailer_id: str,
    reason: Optional[str] = None,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return _delete(db, parse_uuid(retailer_id, "id"), admin, reason)
