"""
Audit logging helpers and enums.

Persists normalized audit records for admin-side state changes.
"""
from __future__ import annotations
import logging
import uuid
from enum import Enum
from typing import Any, Optional, Dict
from sqlalchemy.orm import Session

from retailhub.db import schemas
from retailhub.db.repositories import audits as audit_repo

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    # Retailers
    RETAILER_REGISTER = "retailer_register"
    RETAILER_APPROVE = "retailer_approve"
    RETAILER_REJECT = "retailer_reject"
    RETAILER_ACTIVATION_RESEND = "retailer_activation_resend"
    RETAILER_ACCOUNT_ACTIVATE = "retailer_account_activate"
    RETAILER_DELETE = "retailer_delete"
    RETAILER_RESTORE = "retailer_restore"
    RETAILER_NOTIFY = "retailer_notify"
    # Wasstrips applications
    WASSTRIPS_CREATE = "wasstrips_create"
    WASSTRIPS_DEPOSIT_SENT = "wasstrips_deposit_sent"
    WASSTRIPS_DEPOSIT_PAID = "wasstrips_deposit_paid"
    WASSTRIPS_ORDER_READY = "wasstrips_order_ready"
    WASSTRIPS_PAYMENT_METHOD = "wasstrips_payment_method"
    WASSTRIPS_SHIPPED = "wasstrips_shipped"
    WASSTRIPS_DELIVERED = "wasstrips_delivered"
    WASSTRIPS_REMAINING_SENT = "wasstrips_remaining_sent"
    WASSTRIPS_REMAINING_PAID = "wasstrips_remaining_paid"
    WASSTRIPS_INVOICE = "wasstrips_invoice"
    # Catalog / orders
    PRODUCT_CREATE = "product_create"
    PRODUCT_UPDATE = "product_update"
    PRODUCT_STRIPE_SYNC = "product_stripe_sync"
    ORDER_STATUS_CHANGE = "order_status_change"
    # Invitations
    INVITATION_CREATE = "invitation_create"
    INVITATION_IMPORT = "invitation_import"
    INVITATION_REMIND = "invitation_remind"
    INVITATION_CANCEL = "invitation_cancel"
    # Admin / settings
    ADMIN_CREATE = "admin_create"
    SETTING_UPDATE = "setting_update"
    # Commercial
    PROSPECT_STATUS_CHANGE = "prospect_status_change"
    PROSPECT_DISCOVERY = "prospect_discovery"
    CAMPAIGN_CREATE = "campaign_create"
    CAMPAIGN_UPDATE = "campaign_update"
    CAMPAIGN_DELETE = "campaign_delete"
    EMAIL_QUEUE_ADD = "email_queue_add"
    EMAIL_QUEUE_DELETE = "email_queue_delete"


class AuditStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


def log(
    db: Session,
    *,
    action: AuditAction | str,
    status: AuditStatus | str = AuditStatus.SUCCESS,
    target_type: str,
    target_id: Optional[uuid.UUID] = None,
    actor_profile_id: Optional[uuid.UUID] = None,
    metadata: Optional[Dict[str, Any]] = None,
):
    """Central audit logging helper.

    Never raises: a failed audit write is logged and the request carries on.
    """
    # Persist plain string values, not Enum reprs
    action_value = action.value if isinstance(action, AuditAction) else str(action)
    status_value = status.value if isinstance(status, AuditStatus) else str(status)
    audit_log = schemas.AuditLogCreate(
        action_type=action_value,
        status=status_value,
        target_type=target_type,
        target_id=target_id,
        metadata=metadata or {},
    )
    try:
        return audit_repo.create_audit_log(db, audit_log, actor_profile_id=actor_profile_id)
    except Exception as e:
        db.rollback()
        logger.warning(f"Failed to write audit log {action_value} for {target_type}:{target_id}: {e}")
        return None


def log_retailer(db: Session, *, actor_profile_id: Optional[uuid.UUID], profile_id: uuid.UUID, action: AuditAction, metadata: Optional[Dict[str, Any]] = None):
    return log(
        db,
        action=action,
        target_type="profile",
        target_id=profile_id,
        actor_profile_id=actor_profile_id,
        metadata=metadata,
    )


def log_application(db: Session, *, actor_profile_id: Optional[uuid.UUID], application_id: uuid.UUID, action: AuditAction, metadata: Optional[Dict[str, Any]] = None):
    return log(
        db,
        action=action,
        target_type="wasstrips_application",
        target_id=application_id,
        actor_profile_id=actor_profile_id,
        metadata=metadata,
    )


__all__ = ["AuditAction", "AuditStatus", "log", "log_retailer", "log_application"]
