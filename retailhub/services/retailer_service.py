"""
Retailer service: registration, approval/activation, archival and restore.
"""

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from retailhub.audit import AuditAction, log_retailer
from retailhub.db import models, schemas
from retailhub.db.repositories import profiles as profile_repo
from retailhub.db.repositories import tokens as token_repo
from retailhub.db.repositories import wasstrips as wasstrips_repo
from retailhub.db.repositories import invitations as invitation_repo
from retailhub.services import ok, failure, NOT_FOUND, INVALID, CONFLICT
from retailhub.services.notification_service import NotificationService
from retailhub.utils import urls
from retailhub.utils.token_crypto import hash_secret

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8


def is_valid_email(value: Optional[str]) -> bool:
    return bool(value) and bool(EMAIL_PATTERN.match(value.strip()))


class RetailerService:
    """Retailer lifecycle operations."""

    def __init__(self, db: Session, notification_service: Optional[NotificationService] = None):
        self.db = db
        self.notification_service = notification_service or NotificationService(db)

    def register(self, payload: schemas.RetailerRegistration) -> Dict[str, Any]:
        missing = [
            name
            for name, value in (
                ("businessName", payload.business_name),
                ("contactName", payload.contact_name),
                ("email", payload.email),
                ("phone", payload.phone),
            )
            if not (value and value.strip())
        ]
        if missing:
            return failure(INVALID, "Missing required fields", {"missing": missing})
        if not is_valid_email(payload.email):
            return failure(INVALID, "Invalid email address")
        if payload.password and len(payload.password) < MIN_PASSWORD_LENGTH:
            return failure(INVALID, f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if profile_repo.get_profile_by_email(self.db, payload.email):
            return failure(CONFLICT, "A retailer with this email address already exists")

        profile = profile_repo.create_profile(
            self.db,
            email=payload.email,
            full_name=payload.contact_name.strip(),
            company_name=payload.business_name.strip(),
            phone=payload.phone.strip(),
            address=payload.address,
            city=payload.city,
            postal_code=payload.postal_code,
            country=payload.country or "Nederland",
            website=payload.website,
            chamber_of_commerce=payload.chamber_of_commerce,
            vat_number=payload.vat_number,
            notes=payload.notes,
            role="retailer",
            status="pending",
            password_hash=hash_secret(payload.password) if payload.password else None,
        )

        application = None
        if payload.wasstrips_optin:
            application = wasstrips_repo.create_application(
                self.db,
                profile_id=profile.id,
                metadata={"source": "registration"},
            )

        if payload.invitation_token:
            self._consume_invitation(payload.invitation_token, profile)

        log_retailer(self.db, actor_profile_id=profile.id, profile_id=profile.id, action=AuditAction.RETAILER_REGISTER)

        confirmation = self.notification_service.notify_registration_received(profile)
        self.notification_service.notify_admin_new_registration(profile, wasstrips_optin=payload.wasstrips_optin)

        return ok(
            profile=profile,
            application=application,
            email_sent=bool(confirmation and confirmation.get("success")),
        )

    def _consume_invitation(self, token: str, profile: models.Profile) -> None:
        invitation = invitation_repo.get_by_token(self.db, token)
        if not invitation or invitation.status != "pending":
            logger.info(f"Registration for {profile.email} used an unknown or spent invitation token")
            return
        if models.as_utc(invitation.expires_at) <= datetime.now(timezone.utc):
            invitation.status = "expired"
            self.db.commit()
            return
        invitation.status = "used"
        invitation.used_at = datetime.now(timezone.utc)
        invitation.used_by = profile.id
        self.db.commit()

    def set_approval(
        self,
        retailer_id: uuid.UUID,
        decision: str,
        *,
        actor_profile_id: Optional[uuid.UUID] = None,
        rejection_reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Approve (activate + send activation link) or reject a retailer."""
        if decision not in ("approved", "rejected"):
            return failure(INVALID, "Status must be 'approved' or 'rejected'")
        profile = profile_repo.get_profile(self.db, retailer_id)
        if not profile:
            return failure(NOT_FOUND, "Retailer not found")

        if decision == "approved":
            profile_repo.update_profile(self.db, profile, {"status": "active"})
            activation = token_repo.create_activation_token(self.db, profile_id=profile.id)
            result = self.notification_service.notify_retailer_approved(
                profile, urls.build_activation_link(activation.token)
            )
            log_retailer(self.db, actor_profile_id=actor_profile_id, profile_id=profile.id, action=AuditAction.RETAILER_APPROVE)
        else:
            profile_repo.update_profile(self.db, profile, {"status": "suspended"})
            result = self.notification_service.notify_retailer_rejected(profile, rejection_reason)
            log_retailer(
                self.db,
                actor_profile_id=actor_profile_id,
                profile_id=profile.id,
                action=AuditAction.RETAILER_REJECT,
                metadata={"reason": rejection_reason} if rejection_reason else None,
            )

        return ok(profile=profile, email_sent=bool(result.get("success")))

    def notify_decision(
        self,
        retailer_id: Optional[uuid.UUID],
        action: Optional[str],
        *,
        reason: Optional[str] = None,
        actor_profile_id: Optional[uuid.UUID] = None,
    ) -> Dict[str, Any]:
        """Email the retailer about an approval decision; the profile status is left alone."""
        if not retailer_id or not action:
            return failure(INVALID, "retailerId and action are required")
        if action not in ("approve", "reject"):
            return failure(INVALID, "Invalid action. Use 'approve' or 'reject'")
        profile = profile_repo.get_profile(self.db, retailer_id)
        if not profile:
            return failure(NOT_FOUND, "Retailer not found")
        if not profile.email:
            return failure(INVALID, "Retailer has no email address")

        if action == "approve":
            result = self.notification_service.notify_retailer_status_approved(profile)
        else:
            result = self.notification_service.notify_retailer_rejected(profile, reason)
        email_sent = bool(result.get("success"))
        if not email_sent:
            logger.warning(f"Decision email for retailer {profile.id} not sent: {result.get('error')}")
        log_retailer(
            self.db,
            actor_profile_id=actor_profile_id,
            profile_id=profile.id,
            action=AuditAction.RETAILER_NOTIFY,
            metadata={"action": action, "email_sent": email_sent, "reason": reason},
        )
        label = "Approval" if action == "approve" else "Rejection"
        return ok(
            message=f"{label} notification {'sent' if email_sent else 'NOT sent'} to {profile.email}",
            email_sent=email_sent,
        )

    def resend_activation(self, retailer_id: uuid.UUID, *, actor_profile_id: Optional[uuid.UUID] = None) -> Dict[str, Any]:
        profile = profile_repo.get_profile(self.db, retailer_id)
        if not profile:
            return failure(NOT_FOUND, "Retailer not found")
        if profile.status != "active":
            return failure(INVALID, "Retailer must be approved before an activation email can be sent")
        activation = token_repo.create_activation_token(self.db, profile_id=profile.id)
        result = self.notification_service.notify_retailer_approved(profile, urls.build_activation_link(activation.token))
        log_retailer(self.db, actor_profile_id=actor_profile_id, profile_id=profile.id, action=AuditAction.RETAILER_ACTIVATION_RESEND)
        return ok(profile=profile, email_sent=bool(result.get("success")))

    def verify_activation_token(self, token: str) -> Dict[str, Any]:
        activation = token_repo.get_valid_activation_token(self.db, token)
        if not activation:
            return failure(NOT_FOUND, "Invalid or expired activation token")
        return ok(profile=activation.profile, expires_at=activation.expires_at)

    def activate_account(self, token: Optional[str], password: Optional[str]) -> Dict[str, Any]:
        if not token or not password:
            return failure(INVALID, "Token and password are required")
        if len(password) < MIN_PASSWORD_LENGTH:
            return failure(INVALID, f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        activation = token_repo.get_valid_activation_token(self.db, token)
        if not activation:
            return failure(NOT_FOUND, "Invalid or expired activation token")

        profile = activation.profile
        profile_repo.update_profile(
            self.db,
            profile,
            {"password_hash": hash_secret(password), "status": "active", "last_login_at": datetime.now(timezone.utc)},
        )
        token_repo.mark_activation_used(self.db, activation)
        _session, session_token = token_repo.create_session_token(self.db, profile_id=profile.id)
        log_retailer(self.db, actor_profile_id=profile.id, profile_id=profile.id, action=AuditAction.RETAILER_ACCOUNT_ACTIVATE)
        return ok(profile=profile, token=session_token)

    def delete_retailer(
        self,
        retailer_id: uuid.UUID,
        *,
        actor_profile_id: Optional[uuid.UUID] = None,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        profile = profile_repo.get_profile(self.db, retailer_id)
        if not profile:
            return failure(NOT_FOUND, "Retailer not found")
        if profile.role == "admin":
            return failure(INVALID, "Admin profiles cannot be deleted here")

        # Send before deleting; the profile row is gone afterwards
        email_result = self.notification_service.notify_retailer_removed(profile)
        email = profile.email
        archived = profile_repo.archive_and_delete(self.db, profile, deleted_by=actor_profile_id, reason=reason)
        log_retailer(
            self.db,
            actor_profile_id=actor_profile_id,
            profile_id=archived.original_profile_id,
            action=AuditAction.RETAILER_DELETE,
            metadata={"email": email, "archive_id": str(archived.id)},
        )
        return ok(archived=archived, email_sent=bool(email_result.get("success")))

    def restore_retailer(self, archive_id: uuid.UUID, *, actor_profile_id: Optional[uuid.UUID] = None) -> Dict[str, Any]:
        archived = profile_repo.get_deleted_retailer(self.db, archive_id)
        if not archived:
            return failure(NOT_FOUND, "Deleted retailer not found")
        if profile_repo.get_profile_by_email(self.db, archived.email):
            return failure(CONFLICT, "A profile with this email address already exists")
        profile = profile_repo.restore_deleted_retailer(self.db, archived)
        log_retailer(self.db, actor_profile_id=actor_profile_id, profile_id=profile.id, action=AuditAction.RETAILER_RESTORE)
        return ok(profile=profile)
