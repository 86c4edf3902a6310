"""
Business invitations: creation, CSV import, reminders, validation and
email open/click tracking.
"""

import csv
import io
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List, Tuple

from sqlalchemy.orm import Session

from retailhub.audit import AuditAction, log
from retailhub.db import models
from retailhub.db.repositories import invitations as invitation_repo
from retailhub.services import ok, failure, NOT_FOUND, INVALID
from retailhub.services.notification_service import NotificationService
from retailhub.services.retailer_service import is_valid_email
from retailhub.utils import token_crypto

logger = logging.getLogger(__name__)

# Header keywords, matched case-insensitively against CSV column names
EMAIL_HEADERS = ("email", "e-mail", "mail")
BUSINESS_HEADERS = ("bedrijf", "business", "company", "winkel", "organisatie")
CONTACT_HEADERS = ("contact",)
NAME_HEADERS = ("naam", "name")
PHONE_HEADERS = ("telefoon", "phone", "tel", "mobiel")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def serialize_invitation(invitation: models.BusinessInvitation) -> Dict[str, Any]:
    return {
        "id": str(invitation.id),
        "email": invitation.email,
        "business_name": invitation.business_name,
        "contact_name": invitation.contact_name,
        "phone": invitation.phone,
        "status": invitation.status,
        "invitation_token": invitation.invitation_token,
        "invited_by": str(invitation.invited_by) if invitation.invited_by else None,
        "expires_at": models.isoformat(invitation.expires_at),
        "used_at": models.isoformat(invitation.used_at),
        "email_sent_at": models.isoformat(invitation.email_sent_at),
        "email_opened_at": models.isoformat(invitation.email_opened_at),
        "email_clicked_at": models.isoformat(invitation.email_clicked_at),
        "open_count": invitation.open_count or 0,
        "click_count": invitation.click_count or 0,
        "reminder_count": invitation.reminder_count or 0,
        "last_reminder_sent_at": models.isoformat(invitation.last_reminder_sent_at),
        "metadata": invitation.metadata_json or {},
        "created_at": models.isoformat(invitation.created_at),
    }


def _find_column(headers: List[str], keywords, exclude: Tuple[int, ...] = ()) -> Optional[int]:
    for index, header in enumerate(headers):
        if index in exclude:
            continue
        if any(keyword in header for keyword in keywords):
            return index
    return None


def parse_invitation_csv(csv_data: str) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Parse CSV text with a header row into invitation rows.

    Returns ``(rows, errors)``; each error names the 1-based line number.
    """
    reader = csv.reader(io.StringIO(csv_data.strip()))
    lines = [line for line in reader if any(cell.strip() for cell in line)]
    if not lines:
        return [], [{"row": 0, "error": "CSV is empty"}]

    headers = [h.strip().lower() for h in lines[0]]
    email_col = _find_column(headers, EMAIL_HEADERS)
    if email_col is None:
        return [], [{"row": 1, "error": "No email column found in header"}]
    business_col = _find_column(headers, BUSINESS_HEADERS, exclude=(email_col,))
    taken = tuple(i for i in (email_col, business_col) if i is not None)
    contact_col = _find_column(headers, CONTACT_HEADERS, exclude=taken)
    if contact_col is None:
        contact_col = _find_column(headers, NAME_HEADERS, exclude=taken)
    phone_col = _find_column(headers, PHONE_HEADERS, exclude=taken + ((contact_col,) if contact_col is not None else ()))

    def cell(line: List[str], index: Optional[int]) -> Optional[str]:
        if index is None or index >= len(line):
            return None
        return line[index].strip() or None

    rows: List[Dict[str, Any]] = []
    errors: List[Dict[str, Any]] = []
    for line_number, line in enumerate(lines[1:], start=2):
        email = cell(line, email_col)
        if not is_valid_email(email):
            errors.append({"row": line_number, "email": email, "error": "Invalid or missing email address"})
            continue
        rows.append({
            "row": line_number,
            "email": email.lower(),
            "business_name": cell(line, business_col),
            "contact_name": cell(line, contact_col),
            "phone": cell(line, phone_col),
        })
    return rows, errors


class InvitationService:
    def __init__(self, db: Session, notification_service: Optional[NotificationService] = None):
        self.db = db
        self._notification_service = notification_service

    @property
    def notification_service(self) -> NotificationService:
        if self._notification_service is None:
            self._notification_service = NotificationService(self.db)
        return self._notification_service

    def list_invitations(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        return [serialize_invitation(i) for i in invitation_repo.list_invitations(self.db, status=status)]

    def _send_invitation(self, invitation: models.BusinessInvitation) -> bool:
        result = self.notification_service.notify_invitation(invitation)
        if result.get("success"):
            invitation.email_sent_at = _now()
            self.db.commit()
            return True
        logger.warning(f"Invitation email to {invitation.email} failed: {result.get('error')}")
        return False

    def _create_one(
        self,
        item: Dict[str, Any],
        *,
        invited_by: Optional[uuid.UUID],
        send_email: bool,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Optional[models.BusinessInvitation], Optional[str]]:
        email = (item.get("email") or "").strip()
        if not is_valid_email(email):
            return None, "Invalid email address"
        if invitation_repo.get_pending_for_email(self.db, email):
            return None, "A pending invitation already exists for this email"
        invitation = invitation_repo.create_invitation(
            self.db,
            email=email,
            business_name=item.get("business_name"),
            contact_name=item.get("contact_name"),
            phone=item.get("phone"),
            invited_by=invited_by,
            metadata=metadata,
        )
        if send_email:
            self._send_invitation(invitation)
        return invitation, None

    def create_invitations(
        self,
        items: List[Dict[str, Any]],
        *,
        invited_by: Optional[uuid.UUID] = None,
        send_emails: bool = True,
    ) -> Dict[str, Any]:
        if not items:
            return failure(INVALID, "At least one invitation is required")
        created, errors = [], []
        for item in items:
            invitation, error = self._create_one(item, invited_by=invited_by, send_email=send_emails)
            if error:
                errors.append({"email": item.get("email"), "error": error})
                continue
            created.append(serialize_invitation(invitation))
        log(
            self.db,
            action=AuditAction.INVITATION_CREATE,
            target_type="business_invitation",
            actor_profile_id=invited_by,
            metadata={"created": len(created), "errors": len(errors)},
        )
        return ok(created=created, errors=errors)

    def cancel(self, invitation_id: Optional[uuid.UUID], *, actor_profile_id=None) -> Dict[str, Any]:
        if not invitation_id:
            return failure(INVALID, "Invitation ID is required")
        invitation = invitation_repo.get_invitation(self.db, invitation_id)
        if not invitation:
            return failure(NOT_FOUND, "Invitation not found")
        invitation.status = "cancelled"
        self.db.commit()
        log(
            self.db,
            action=AuditAction.INVITATION_CANCEL,
            target_type="business_invitation",
            target_id=invitation.id,
            actor_profile_id=actor_profile_id,
        )
        return ok(invitation=serialize_invitation(invitation))

    def import_csv(
        self,
        csv_data: Optional[str],
        *,
        invited_by: Optional[uuid.UUID] = None,
        send_emails: bool = True,
    ) -> Dict[str, Any]:
        if not csv_data or not csv_data.strip():
            return failure(INVALID, "CSV data is required")
        rows, parse_errors = parse_invitation_csv(csv_data)
        batch_id = str(uuid.uuid4())
        created, processing_errors = [], []
        for row in rows:
            invitation, error = self._create_one(
                row,
                invited_by=invited_by,
                send_email=send_emails,
                metadata={"import_batch_id": batch_id, "csv_row": row["row"]},
            )
            if error:
                processing_errors.append({"row": row["row"], "email": row["email"], "error": error})
                continue
            created.append(serialize_invitation(invitation))

        total_rows = len(rows) + len([e for e in parse_errors if e.get("row", 0) > 1])
        log(
            self.db,
            action=AuditAction.INVITATION_IMPORT,
            target_type="business_invitation",
            actor_profile_id=invited_by,
            metadata={"batch_id": batch_id, "created": len(created)},
        )
        return ok(
            batchId=batch_id,
            summary={
                "totalRows": total_rows,
                "validRows": len(rows),
                "created": len(created),
                "errors": len(parse_errors) + len(processing_errors),
            },
            parseErrors=parse_errors,
            processingErrors=processing_errors,
            invitations=created,
        )

    def remind(self, invitation_id: Optional[uuid.UUID], *, actor_profile_id=None) -> Dict[str, Any]:
        if not invitation_id:
            return failure(INVALID, "Invitation ID is required")
        invitation = invitation_repo.get_invitation(self.db, invitation_id)
        if not invitation:
            return failure(NOT_FOUND, "Invitation not found")
        if invitation.status != "pending":
            return failure(INVALID, "Only pending invitations can be reminded")
        if models.as_utc(invitation.expires_at) <= _now():
            return failure(INVALID, "Invitation has expired")

        invitation.reminder_tracking_pixel_id = token_crypto.generate_hex_token(16)
        invitation.reminder_click_tracking_id = token_crypto.generate_hex_token(16)
        invitation.reminder_count = (invitation.reminder_count or 0) + 1
        invitation.last_reminder_sent_at = _now()
        self.db.commit()
        self.db.refresh(invitation)

        result = self.notification_service.notify_invitation_reminder(invitation)
        log(
            self.db,
            action=AuditAction.INVITATION_REMIND,
            target_type="business_invitation",
            target_id=invitation.id,
            actor_profile_id=actor_profile_id,
            metadata={"reminder_count": invitation.reminder_count},
        )
        return ok(invitation=serialize_invitation(invitation), emailSent=bool(result.get("success")))

    def validate(self, token: Optional[str]) -> Dict[str, Any]:
        if not token:
            return {"valid": False, "error": "Token is required"}
        invitation = invitation_repo.get_by_token(self.db, token)
        if not invitation:
            return {"valid": False, "error": "Invitation not found"}
        if invitation.status != "pending":
            return {"valid": False, "error": f"Invitation is {invitation.status}"}
        if models.as_utc(invitation.expires_at) <= _now():
            invitation.status = "expired"
            self.db.commit()
            return {"valid": False, "error": "Invitation has expired"}
        return {
            "valid": True,
            "invitation": {
                "email": invitation.email,
                "business_name": invitation.business_name,
                "contact_name": invitation.contact_name,
                "phone": invitation.phone,
                "expires_at": models.isoformat(invitation.expires_at),
            },
        }

    def statistics(self) -> Dict[str, Any]:
        counts = invitation_repo.invitation_counts(self.db)
        total = counts.get("total", 0)
        sent = counts.get("emails_sent", 0)
        return {
            "total": total,
            "pending": counts.get("pending", 0),
            "used": counts.get("used", 0),
            "expired": counts.get("expired", 0),
            "cancelled": counts.get("cancelled", 0),
            "emailsSent": sent,
            "opened": counts.get("opened", 0),
            "clicked": counts.get("clicked", 0),
            "remindersSent": counts.get("reminders_sent", 0),
            "openRate": _rate(counts.get("opened", 0), sent),
            "clickRate": _rate(counts.get("clicked", 0), sent),
            "conversionRate": _rate(counts.get("used", 0), total),
        }

    # === Tracking ===

    def track_open(self, tracking_id: str, *, reminder: bool = False) -> bool:
        column = "reminder_tracking_pixel_id" if reminder else "tracking_pixel_id"
        invitation = invitation_repo.get_by_tracking_column(self.db, column, tracking_id)
        if not invitation:
            return False
        now = _now()
        if reminder:
            if not invitation.reminder_opened_at:
                invitation.reminder_opened_at = now
        elif not invitation.email_opened_at:
            invitation.email_opened_at = now
        invitation.open_count = (invitation.open_count or 0) + 1
        self.db.commit()
        return True

    def track_click(self, tracking_id: str, *, reminder: bool = False) -> Optional[str]:
        """Record a click and return the invitation token to register with."""
        column = "reminder_click_tracking_id" if reminder else "click_tracking_id"
        invitation = invitation_repo.get_by_tracking_column(self.db, column, tracking_id)
        if not invitation:
            return None
        now = _now()
        if reminder:
            if not invitation.reminder_clicked_at:
                invitation.reminder_clicked_at = now
        elif not invitation.email_clicked_at:
            invitation.email_clicked_at = now
        if not invitation.registration_started_at:
            invitation.registration_started_at = now
        invitation.click_count = (invitation.click_count or 0) + 1
        self.db.commit()
        return invitation.invitation_token
