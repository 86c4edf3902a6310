"""
Email API endpoints.

Admin-only access to the transactional mail service: ad-hoc sends,
configuration, provider diagnostics and template previews.
"""
import html as html_lib
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from retailhub.api.deps import require_admin
from retailhub.api.errors import api_error
from retailhub.db import schemas
from retailhub.db.database import get_db
from retailhub.services.notification_service import NotificationService, TEMPLATE_TEST

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/email", tags=["email"])


def _require_recipient(to):
    if not to:
        raise api_error(status.HTTP_400_BAD_REQUEST, "Recipient (to) is required")


@router.post("/send")
def send_email(
    payload: schemas.SendEmailRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    if not payload.to or not payload.subject:
        raise api_error(status.HTTP_400_BAD_REQUEST, "Missing required fields: to, subject")
    if not payload.text and not payload.html:
        raise api_error(status.HTTP_400_BAD_REQUEST, "Either text or html content is required")

    notifications = NotificationService(db)
    html = payload.html or f"<html><body><pre>{html_lib.escape(payload.text)}</pre></body></html>"
    result = notifications.send_email(
        payload.to,
        payload.subject,
        html,
        payload.text,
        from_email=payload.from_email,
        from_name=payload.from_name,
        reply_to=payload.reply_to,
        attachments=payload.attachments,
    )
    if not result.get("success"):
        raise api_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to send email",
            details=result.get("error"),
        )
    return {
        "success": True,
        "message": "Email sent",
        "development": bool(result.get("development")),
        "messageId": result.get("message_id"),
    }


@router.get("/config")
def get_email_config(db: Session = Depends(get_db), admin_context=Depends(require_admin)):
    email_service = NotificationService(db).email_service
    return {
        "success": True,
        "config": email_service.config.summary(),
        "developmentMode": email_service.development_mode,
    }


@router.post("/config/test")
def send_test_email(
    payload: schemas.TestEmailRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    _require_recipient(payload.to)
    notifications = NotificationService(db)
    result = notifications.send_template_email(
        payload.to,
        TEMPLATE_TEST,
        "RetailHub test email",
        {"provider": notifications.email_service.config.provider.value},
    )
    if not result.get("success"):
        raise api_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to send test email",
            details=result.get("error"),
        )
    return {"success": True, "message": f"Test email sent to {payload.to}", "development": bool(result.get("development"))}


@router.get("/diagnostics")
def email_diagnostics(db: Session = Depends(get_db), admin_context=Depends(require_admin)):
    email_service = NotificationService(db).email_service
    validation_errors = email_service.config.validate()
    connectivity = email_service.test_connection() if not email_service.development_mode else None
    return {
        "success": True,
        "config": email_service.config.summary(),
        "developmentMode": email_service.development_mode,
        "validationErrors": validation_errors,
        "connectivity": connectivity,
        "templates": email_service.list_templates(),
    }


@router.get("/templates")
def list_email_templates(db: Session = Depends(get_db), admin_context=Depends(require_admin)):
    return {"success": True, "templates": NotificationService(db).email_service.list_templates()}


@router.post("/test-template")
def send_template_preview(
    payload: schemas.TestTemplateRequest,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    if not payload.template:
        raise api_error(status.HTTP_400_BAD_REQUEST, "Template name is required")
    _require_recipient(payload.to)
    notifications = NotificationService(db)
    if payload.template not in notifications.email_service.list_templates():
        raise api_error(status.HTTP_404_NOT_FOUND, f"Unknown template: {payload.template}")
    result = notifications.send_template_email(
        payload.to,
        payload.template,
        f"[Test] {payload.template}",
        payload.context,
    )
    if not result.get("success"):
        raise api_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to send template email",
            details=result.get("error"),
        )
    return {"success": True, "message": f"Template {payload.template} sent to {payload.to}"}
