"""
Wasstrips application service.

Applications move pending -> approved -> shipped -> delivered, with a
side branch approved -> order_ready -> payment_selected. Deposit and
remaining payments each move not_sent -> sent -> paid.
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

from sqlalchemy.orm import Session

from retailhub.audit import AuditAction, log_application
from retailhub.db import models
from retailhub.db.models.wasstrips import DEFAULT_TOTAL_AMOUNT
from retailhub.db.repositories import profiles as profile_repo
from retailhub.db.repositories import wasstrips as wasstrips_repo
from retailhub.services import ok, failure, NOT_FOUND, INVALID, FORBIDDEN
from retailhub.services.notification_service import NotificationService
from retailhub.services.stripe_service import StripeService
from retailhub.utils import urls

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("direct", "invoice")
INVOICE_TYPES = ("deposit", "remaining", "full")

STATUS_INDICATORS = {
    "active": "approved",
    "pending": "pending",
    "suspended": "rejected",
}


def _payment_link(prefix: str, application_id: uuid.UUID) -> str:
    return f"{prefix}-{application_id}-{int(time.time() * 1000)}"


def _amount(value, fallback=None) -> Optional[float]:
    if value is None:
        return float(fallback) if fallback is not None else None
    return float(value)


def serialize_application(application: models.WasstripsApplication) -> Dict[str, Any]:
    return {
        "id": str(application.id),
        "profile_id": str(application.profile_id),
        "order_number": application.order_number,
        "status": application.status,
        "notes": application.notes,
        "metadata": application.metadata_json or {},
        "product_details": application.product_details or {},
        "deposit_status": application.deposit_status or "not_sent",
        "deposit_amount": _amount(application.deposit_amount),
        "deposit_payment_link": application.deposit_payment_link,
        "deposit_paid_at": models.isoformat(application.deposit_paid_at),
        "remaining_amount": _amount(application.remaining_amount),
        "remaining_payment_status": application.remaining_payment_status or "not_sent",
        "remaining_payment_link": application.remaining_payment_link,
        "remaining_paid_at": models.isoformat(application.remaining_paid_at),
        "total_amount": _amount(application.total_amount, DEFAULT_TOTAL_AMOUNT),
        "payment_options_sent": bool(application.payment_options_sent),
        "payment_options_sent_at": models.isoformat(application.payment_options_sent_at),
        "payment_method_selected": application.payment_method_selected,
        "payment_method_selected_at": models.isoformat(application.payment_method_selected_at),
        "shipped_at": models.isoformat(application.shipped_at),
        "tracking_code": application.tracking_code,
        "product_delivered_at": models.isoformat(application.product_delivered_at),
        "stripe_invoice_id": application.stripe_invoice_id,
        "created_at": models.isoformat(application.created_at),
        "updated_at": models.isoformat(application.updated_at),
    }


def enrich_application(application: models.WasstripsApplication) -> Dict[str, Any]:
    """Admin list row: the application plus flattened retailer details."""
    data = serialize_application(application)
    profile = application.profile
    if profile is None:
        data.update({
            "businessName": None,
            "contactName": None,
            "email": None,
            "phone": None,
            "address": None,
            "city": None,
            "postalCode": None,
            "country": None,
            "retailerStatus": "unknown",
            "retailerApproved": False,
            "retailerPending": False,
            "retailerRejected": False,
            "canEdit": False,
            "statusIndicator": "unknown",
            "_profileMissing": True,
        })
        return data

    data.update({
        "businessName": profile.company_name,
        "contactName": profile.full_name,
        "email": profile.email,
        "phone": profile.phone,
        "address": profile.address,
        "city": profile.city,
        "postalCode": profile.postal_code,
        "country": profile.country,
        "retailerStatus": profile.status,
        "retailerApproved": profile.status == "active",
        "retailerPending": profile.status == "pending",
        "retailerRejected": profile.status == "suspended",
        "canEdit": profile.status == "active",
        "statusIndicator": STATUS_INDICATORS.get(profile.status, "unknown"),
        "_profileMissing": False,
    })
    return data


class WasstripsService:
    """State transitions for wasstrips applications."""

    def __init__(self, db: Session, notification_service: Optional[NotificationService] = None):
        self.db = db
        self.notification_service = notification_service or NotificationService(db)

    def _load(self, application_id: Optional[uuid.UUID]):
        if not application_id:
            return None, failure(INVALID, "Application ID is required")
        application = wasstrips_repo.get_application(self.db, application_id)
        if not application:
            return None, failure(NOT_FOUND, "Application not found")
        return application, None

    def _audit(self, application, action: AuditAction, actor_profile_id, metadata=None) -> None:
        log_application(
            self.db,
            actor_profile_id=actor_profile_id,
            application_id=application.id,
            action=action,
            metadata=metadata,
        )

    @staticmethod
    def _email_sent(result: Optional[Dict[str, Any]]) -> bool:
        return bool(result and result.get("success"))

    # === Reads ===

    def list_applications(self) -> List[Dict[str, Any]]:
        return [enrich_application(a) for a in wasstrips_repo.list_applications(self.db)]

    def get_application(self, application_id: uuid.UUID, profile: models.Profile, is_admin: bool) -> Dict[str, Any]:
        application = wasstrips_repo.get_application(self.db, application_id)
        if not application:
            return failure(NOT_FOUND, "Application not found")
        if not is_admin and application.profile_id != profile.id:
            return failure(FORBIDDEN, "You do not have access to this application")
        return ok(application=serialize_application(application))

    # === Creation / direct updates ===

    def create_application(
        self,
        profile: models.Profile,
        is_admin: bool,
        *,
        profile_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        target_id = profile_id or profile.id
        if not is_admin and target_id != profile.id:
            return failure(FORBIDDEN, "Retailers can only create applications for themselves")
        if not profile_repo.get_profile(self.db, target_id):
            return failure(NOT_FOUND, "Profile not found")
        application = wasstrips_repo.create_application(
            self.db, profile_id=target_id, notes=notes, metadata={"source": "admin" if is_admin else "retailer"}
        )
        self._audit(application, AuditAction.WASSTRIPS_CREATE, profile.id)
        return ok(application=serialize_application(application))

    def update_payment_status(
        self,
        order_number: Optional[str],
        payment_status: str = "paid",
        session_id: Optional[str] = None,
        *,
        actor_profile_id=None,
    ) -> Dict[str, Any]:
        if not order_number:
            return failure(INVALID, "Order number is required")
        application = wasstrips_repo.get_by_order_number(self.db, order_number)
        if not application:
            return failure(NOT_FOUND, "Application not found")
        updates: Dict[str, Any] = {"remaining_payment_status": payment_status or "paid"}
        if updates["remaining_payment_status"] == "paid":
            updates["remaining_paid_at"] = datetime.now(timezone.utc)
        if session_id:
            updates["metadata_json"] = {**(application.metadata_json or {}), "stripe_session_id": session_id}
        wasstrips_repo.update_application(self.db, application, updates)
        self._audit(application, AuditAction.WASSTRIPS_REMAINING_PAID, actor_profile_id, {"payment_status": updates["remaining_payment_status"]})
        return ok(application=serialize_application(application))

    # === Payment flow ===

    def select_payment_method(
        self,
        application_id: Optional[uuid.UUID],
        payment_method: Optional[str],
        profile: models.Profile,
        is_admin: bool,
    ) -> Dict[str, Any]:
        if not application_id or not payment_method:
            return failure(INVALID, "Application ID and payment method are required")
        if payment_method not in PAYMENT_METHODS:
            return failure(INVALID, "Payment method must be 'direct' or 'invoice'")
        application, error = self._load(application_id)
        if error:
            return error
        if not is_admin and application.profile_id != profile.id:
            return failure(FORBIDDEN, "You do not have access to this application")
        if not application.payment_options_sent:
            return failure(INVALID, "Payment options have not been sent yet")

        wasstrips_repo.update_application(self.db, application, {
            "payment_method_selected": payment_method,
            "payment_method_selected_at": datetime.now(timezone.utc),
            "status": "payment_selected",
        })
        self._audit(application, AuditAction.WASSTRIPS_PAYMENT_METHOD, profile.id, {"payment_method": payment_method})
        return ok(application=serialize_application(application))

    def send_deposit_payment(self, application_id: Optional[uuid.UUID], *, actor_profile_id=None) -> Dict[str, Any]:
        application, error = self._load(application_id)
        if error:
            return error
        profile = application.profile
        if not profile:
            return failure(NOT_FOUND, "Retailer profile not found")
        if profile.status != "active":
            return failure(INVALID, "Retailer must be approved before requesting the deposit")
        if application.deposit_status == "paid":
            return failure(INVALID, "Deposit has already been paid")

        link = _payment_link("deposit", application.id)
        wasstrips_repo.update_application(self.db, application, {
            "deposit_status": "sent",
            "deposit_payment_link": link,
        })
        result = self.notification_service.notify_deposit_payment(
            application, profile, urls.app_url(f"/payment/deposit/{link}")
        )
        self._audit(application, AuditAction.WASSTRIPS_DEPOSIT_SENT, actor_profile_id)
        return ok(application=serialize_application(application), paymentLink=link, emailSent=self._email_sent(result))

    def send_remaining_payment(self, application_id: Optional[uuid.UUID], *, actor_profile_id=None) -> Dict[str, Any]:
        application, error = self._load(application_id)
        if error:
            return error
        profile = application.profile
        if not profile:
            return failure(NOT_FOUND, "Retailer profile not found")
        if not application.product_delivered_at:
            return failure(INVALID, "Product has not been delivered yet")
        if application.deposit_status != "paid":
            return failure(INVALID, "Deposit has not been paid yet")
        if application.remaining_payment_status == "paid":
            return failure(INVALID, "Remaining payment has already been paid")

        link = _payment_link("remaining", application.id)
        wasstrips_repo.update_application(self.db, application, {
            "remaining_payment_status": "sent",
            "remaining_payment_link": link,
        })
        result = self.notification_service.notify_remaining_payment(
            application, profile, urls.app_url(f"/payment/remaining/{link}")
        )
        self._audit(application, AuditAction.WASSTRIPS_REMAINING_SENT, actor_profile_id)
        return ok(application=serialize_application(application), paymentLink=link, emailSent=self._email_sent(result))

    def send_order_ready(self, application_id: Optional[uuid.UUID], *, actor_profile_id=None) -> Dict[str, Any]:
        application, error = self._load(application_id)
        if error:
            return error
        profile = application.profile
        if not profile:
            return failure(NOT_FOUND, "Retailer profile not found")
        if application.deposit_status != "paid":
            return failure(INVALID, "Deposit has not been paid yet")
        if application.status == "order_ready" or application.payment_options_sent:
            return failure(INVALID, "Payment options have already been sent")

        wasstrips_repo.update_application(self.db, application, {
            "status": "order_ready",
            "payment_options_sent": True,
            "payment_options_sent_at": datetime.now(timezone.utc),
        })
        result = self.notification_service.notify_order_ready(
            application, profile, urls.app_url(f"/retailer-dashboard/payment-options/{application.id}")
        )
        self._audit(application, AuditAction.WASSTRIPS_ORDER_READY, actor_profile_id)
        return ok(application=serialize_application(application), emailSent=self._email_sent(result))

    # === Shipping ===

    def mark_shipped(self, application_id: Optional[uuid.UUID], tracking_code: Optional[str] = None, *, actor_profile_id=None) -> Dict[str, Any]:
        application, error = self._load(application_id)
        if error:
            return error
        if application.shipped_at or application.status == "shipped":
            return failure(INVALID, "Application has already been shipped")
        if application.status != "approved":
            return failure(INVALID, "Only approved applications can be shipped")

        wasstrips_repo.update_application(self.db, application, {
            "status": "shipped",
            "shipped_at": datetime.now(timezone.utc),
            "tracking_code": tracking_code,
        })
        result = None
        if application.profile:
            result = self.notification_service.notify_shipped(application, application.profile)
        self._audit(application, AuditAction.WASSTRIPS_SHIPPED, actor_profile_id, {"tracking_code": tracking_code})
        return ok(application=serialize_application(application), emailSent=self._email_sent(result))

    def mark_delivered(self, application_id: Optional[uuid.UUID], *, actor_profile_id=None) -> Dict[str, Any]:
        application, error = self._load(application_id)
        if error:
            return error
        if application.deposit_status != "paid":
            return failure(INVALID, "Deposit has not been paid yet")
        if application.product_delivered_at:
            return failure(INVALID, "Product has already been marked as delivered")

        wasstrips_repo.update_application(self.db, application, {
            "product_delivered_at": datetime.now(timezone.utc),
            "status": "delivered",
        })
        self._audit(application, AuditAction.WASSTRIPS_DELIVERED, actor_profile_id)
        return ok(application=serialize_application(application))

    # === Invoicing ===

    def create_invoice(
        self,
        application_id: Optional[uuid.UUID],
        payment_type: Optional[str],
        *,
        actor_profile_id=None,
        stripe_service: Optional[StripeService] = None,
    ) -> Dict[str, Any]:
        if payment_type not in INVOICE_TYPES:
            return failure(INVALID, "paymentType must be one of: deposit, remaining, full")
        application, error = self._load(application_id)
        if error:
            return error
        profile = application.profile
        if not profile:
            return failure(NOT_FOUND, "Retailer profile not found")

        amounts = {
            "deposit": application.deposit_amount,
            "remaining": application.remaining_amount,
            "full": application.total_amount or DEFAULT_TOTAL_AMOUNT,
        }
        descriptions = {
            "deposit": "Aanbetaling",
            "remaining": "Restbetaling",
            "full": "Volledige betaling",
        }
        stripe_service = stripe_service or StripeService(self.db, self.notification_service)
        result = stripe_service.create_invoice(
            profile,
            amounts[payment_type],
            f"Wasstrips {descriptions[payment_type]} - {application.order_number}",
            {"applicationId": str(application.id), "paymentType": payment_type},
        )
        if not result["success"]:
            return result

        wasstrips_repo.update_application(self.db, application, {"stripe_invoice_id": result["invoiceId"]})
        self._audit(application, AuditAction.WASSTRIPS_INVOICE, actor_profile_id, {"payment_type": payment_type, "invoice_id": result["invoiceId"]})
        return ok(
            application=serialize_application(application),
            invoiceId=result["invoiceId"],
            invoiceUrl=result.get("invoiceUrl"),
            amount=float(amounts[payment_type]),
        )
