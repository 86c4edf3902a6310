"""
Notification service: in-app notifications, email preferences, and
branded template emails for retailer and admin events.
Centralizes email dispatch so every send is logged to email_logs.
"""

import logging
import uuid
from datetime import datetime, timedelta, UTC
from typing import Optional, List, Dict, Any

from sqlalchemy import and_, desc, or_
from sqlalchemy.orm import Session

from retailhub.db import models
from retailhub.db.repositories import settings as settings_repo
from retailhub.utils import urls
from retailhub.utils.runtime import admin_notification_email

logger = logging.getLogger(__name__)

# Event type constants
EVENT_ONBOARDING_ACHIEVEMENT = 'onboarding_achievement'
EVENT_APPLICATION_UPDATE = 'application_update'
EVENT_ORDER_UPDATE = 'order_update'

# Template name constants (match template file names)
TEMPLATE_REGISTRATION_CONFIRMATION = 'retailer-registration-confirmation'
TEMPLATE_ADMIN_NEW_REGISTRATION = 'admin-new-registration'
TEMPLATE_RETAILER_APPROVED = 'retailer-approved'
TEMPLATE_RETAILER_REJECTED = 'retailer-rejected'
TEMPLATE_RETAILER_STATUS_APPROVED = 'retailer-status-approved'
TEMPLATE_RETAILER_REMOVED = 'retailer-removed'
TEMPLATE_DEPOSIT_PAYMENT = 'wasstrips-deposit-payment'
TEMPLATE_DEPOSIT_PAID = 'wasstrips-deposit-paid'
TEMPLATE_REMAINING_PAYMENT = 'wasstrips-remaining-payment'
TEMPLATE_ORDER_READY = 'wasstrips-order-ready'
TEMPLATE_SHIPPED = 'wasstrips-shipped'
TEMPLATE_INVITATION = 'business-invitation'
TEMPLATE_INVITATION_REMINDER = 'business-invitation-reminder'
TEMPLATE_SAMPLE_DELIVERED = 'sample-package-delivered'
TEMPLATE_TEST = 'test-email'

DEFAULT_BUSINESS_NAME = 'RetailHub'

PREFERENCE_FIELDS = (
    'email_order_updates',
    'email_promotions',
    'email_product_updates',
    'email_retailer_updates',
    'browser_notifications',
    'whatsapp_notifications',
    'notification_frequency',
)

DEFAULT_PREFERENCES: Dict[str, Any] = {
    'email_order_updates': True,
    'email_promotions': False,
    'email_product_updates': True,
    'email_retailer_updates': True,
    'browser_notifications': False,
    'whatsapp_notifications': False,
    'notification_frequency': 'instant',
}


def _money(value) -> str:
    return f"€{float(value or 0):.2f}".replace('.', ',')


class NotificationService:
    """Service class for handling all notification operations."""

    def __init__(self, db: Session, email_service=None):
        self.db = db
        if email_service is not None:
            self.email_service = email_service
        else:
            # Resolved through the module so tests can patch the factory
            from retailhub.services import transactional_email_service
            self.email_service = transactional_email_service.get_transactional_email_service()

    # === Preferences ===

    def get_preferences(self, profile_id: uuid.UUID) -> Dict[str, Any]:
        """Return the profile's email preferences, falling back to defaults."""
        row = self.db.query(models.NotificationPreference).filter(
            models.NotificationPreference.profile_id == profile_id
        ).first()
        if not row:
            return dict(DEFAULT_PREFERENCES)
        return {field: getattr(row, field) for field in PREFERENCE_FIELDS}

    def update_preferences(self, profile_id: uuid.UUID, updates: Dict[str, Any]) -> Dict[str, Any]:
        row = self.db.query(models.NotificationPreference).filter(
            models.NotificationPreference.profile_id == profile_id
        ).first()
        if not row:
            row = models.NotificationPreference(profile_id=profile_id, **DEFAULT_PREFERENCES)
            self.db.add(row)
        for field, value in updates.items():
            if field in PREFERENCE_FIELDS and value is not None:
                setattr(row, field, value)
        self.db.commit()
        self.db.refresh(row)
        return {field: getattr(row, field) for field in PREFERENCE_FIELDS}

    # === In-App Notification Management ===

    def create_notification(
        self,
        profile_id: uuid.UUID,
        event_type: str,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        expires_days: int = 30
    ) -> models.Notification:
        notification = models.Notification(
            profile_id=profile_id,
            event_type=event_type,
            title=title,
            message=message,
            action_url=action_url,
            metadata_json=metadata or None,
            expires_at=datetime.now(UTC) + timedelta(days=expires_days),
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def _visible_notifications(self, profile_id: uuid.UUID):
        return self.db.query(models.Notification).filter(
            models.Notification.profile_id == profile_id,
            or_(
                models.Notification.expires_at.is_(None),
                models.Notification.expires_at > datetime.now(UTC),
            ),
        )

    def get_notifications(self, profile_id: uuid.UUID, unread_only: bool = False, limit: int = 50) -> List[models.Notification]:
        """Non-expired notifications for a profile, most recent first."""
        query = self._visible_notifications(profile_id)
        if unread_only:
            query = query.filter(models.Notification.is_read.is_(False))
        return query.order_by(desc(models.Notification.created_at)).limit(limit).all()

    def get_unread_count(self, profile_id: uuid.UUID) -> int:
        return self._visible_notifications(profile_id).filter(models.Notification.is_read.is_(False)).count()

    def mark_notification_read(self, notification_id: uuid.UUID, profile_id: uuid.UUID) -> bool:
        """
        Mark a notification as read.
        Returns False if the notification does not exist or belongs to someone else.
        """
        notification = self.db.query(models.Notification).filter(
            and_(
                models.Notification.id == notification_id,
                models.Notification.profile_id == profile_id
            )
        ).first()
        if not notification:
            return False
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(UTC)
            self.db.commit()
        return True

    # === Email dispatch ===

    def branding_context(self) -> Dict[str, Any]:
        """Shared template variables sourced from the settings store."""
        return {
            'businessName': settings_repo.get_value(self.db, 'business_name', DEFAULT_BUSINESS_NAME),
            'logoUrl': settings_repo.get_value(self.db, 'logo_url'),
            'currentYear': datetime.now(UTC).year,
            'appUrl': urls.get_app_base_url(),
        }

    def _log_email(self, recipient: str, subject: str, template: Optional[str], result: Dict[str, Any]) -> None:
        try:
            self.db.add(models.EmailLog(
                recipient=recipient,
                subject=subject[:300],
                template=template,
                provider=result.get('provider'),
                status='sent' if result.get('success') else 'failed',
                provider_message_id=result.get('message_id') or None,
                error_message=result.get('error'),
                sent_at=datetime.now(UTC) if result.get('success') else None,
            ))
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Failed to record email log for {recipient}: {e}")

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        template: Optional[str] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """Send a prepared email and record the outcome."""
        result = self.email_service.send_email_sync(
            to_email=to_email,
            subject=subject,
            html_content=html_content,
            text_content=text_content,
            **kwargs
        )
        self._log_email(to_email, subject, template, result)
        return result

    def send_template_email(
        self,
        to_email: str,
        template_name: str,
        subject: str,
        context: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """Render a branded template and send it.

        A missing or broken template falls back to a key/value email so the
        recipient still gets the information.
        """
        full_context = {**self.branding_context(), **(context or {}), 'subject': subject}
        try:
            html_content, text_content = self.email_service.render_template(template_name, full_context)
        except Exception as e:
            logger.warning(f"Template {template_name} failed, using fallback: {e}")
            html_content, text_content = self.email_service.render_fallback(subject, context or {})
        try:
            return self.send_email(to_email, subject, html_content, text_content, template=template_name, **kwargs)
        except Exception as e:
            logger.error(f"Failed to send {template_name} email to {to_email}: {e}", exc_info=True)
            return {'success': False, 'error': str(e)}

    # === Retailer lifecycle ===

    def notify_registration_received(self, profile: models.Profile) -> Dict[str, Any]:
        return self.send_template_email(
            profile.email,
            TEMPLATE_REGISTRATION_CONFIRMATION,
            'Bedankt voor je registratie',
            {'contactName': profile.full_name, 'companyName': profile.company_name},
        )

    def notify_admin_new_registration(self, profile: models.Profile, wasstrips_optin: bool = False) -> Optional[Dict[str, Any]]:
        admin_email = admin_notification_email()
        if not admin_email:
            logger.info("No ADMIN_EMAIL configured; skipping registration notification")
            return None
        return self.send_template_email(
            admin_email,
            TEMPLATE_ADMIN_NEW_REGISTRATION,
            f"Nieuwe retailer registratie: {profile.company_name}",
            {
                'companyName': profile.company_name,
                'contactName': profile.full_name,
                'email': profile.email,
                'phone': profile.phone,
                'city': profile.city,
                'wasstripsOptin': wasstrips_optin,
                'dashboardUrl': urls.app_url('/admin/retailers'),
            },
        )

    def notify_retailer_approved(self, profile: models.Profile, activation_link: str) -> Dict[str, Any]:
        return self.send_template_email(
            profile.email,
            TEMPLATE_RETAILER_APPROVED,
            'Je retailer account is goedgekeurd',
            {
                'contactName': profile.full_name,
                'companyName': profile.company_name,
                'activationLink': activation_link,
            },
        )

    def notify_retailer_status_approved(self, profile: models.Profile) -> Dict[str, Any]:
        """Approval notice without an activation link, for retailers already approved."""
        return self.send_template_email(
            profile.email,
            TEMPLATE_RETAILER_STATUS_APPROVED,
            'Je retailer aanvraag is goedgekeurd',
            {
                'contactName': profile.full_name,
                'companyName': profile.company_name,
                'loginLink': urls.app_url('/login'),
            },
        )

    def notify_retailer_rejected(self, profile: models.Profile, reason: Optional[str] = None) -> Dict[str, Any]:
        return self.send_template_email(
            profile.email,
            TEMPLATE_RETAILER_REJECTED,
            'Update over je retailer aanvraag',
            {'contactName': profile.full_name, 'companyName': profile.company_name, 'reason': reason},
        )

    def notify_retailer_removed(self, profile: models.Profile) -> Dict[str, Any]:
        return self.send_template_email(
            profile.email,
            TEMPLATE_RETAILER_REMOVED,
            'Je retailer account is verwijderd',
            {'contactName': profile.full_name, 'companyName': profile.company_name},
        )

    # === Wasstrips applications ===

    def _application_context(self, application: models.WasstripsApplication, profile: models.Profile) -> Dict[str, Any]:
        return {
            'contactName': profile.full_name,
            'companyName': profile.company_name,
            'orderNumber': application.order_number,
            'depositAmount': _money(application.deposit_amount),
            'remainingAmount': _money(application.remaining_amount),
            'totalAmount': _money(application.total_amount),
        }

    def notify_deposit_payment(self, application, profile, payment_url: str) -> Dict[str, Any]:
        context = self._application_context(application, profile)
        context['paymentUrl'] = payment_url
        return self.send_template_email(
            profile.email, TEMPLATE_DEPOSIT_PAYMENT, 'Aanbetaling voor je Wasstrips bestelling', context,
        )

    def notify_deposit_paid(self, application, profile) -> Dict[str, Any]:
        context = self._application_context(application, profile)
        context['dashboardUrl'] = urls.app_url('/retailer-dashboard/wasstrips')
        return self.send_template_email(
            profile.email, TEMPLATE_DEPOSIT_PAID, 'Aanbetaling ontvangen', context,
        )

    def notify_remaining_payment(self, application, profile, payment_url: str) -> Dict[str, Any]:
        context = self._application_context(application, profile)
        context['paymentUrl'] = payment_url
        return self.send_template_email(
            profile.email, TEMPLATE_REMAINING_PAYMENT, 'Restbetaling voor je Wasstrips bestelling', context,
        )

    def notify_order_ready(self, application, profile, options_url: str) -> Dict[str, Any]:
        context = self._application_context(application, profile)
        context['optionsUrl'] = options_url
        return self.send_template_email(
            profile.email, TEMPLATE_ORDER_READY, 'Je Wasstrips bestelling is klaar', context,
        )

    def notify_shipped(self, application, profile) -> Dict[str, Any]:
        context = self._application_context(application, profile)
        context['trackingCode'] = application.tracking_code
        return self.send_template_email(
            profile.email, TEMPLATE_SHIPPED, 'Je Wasstrips bestelling is verzonden', context,
        )

    # === Invitations ===

    def notify_invitation(self, invitation: models.BusinessInvitation) -> Dict[str, Any]:
        click_url = urls.build_api_url('/api/invitations/track/click', id=invitation.click_tracking_id)
        pixel_url = urls.build_api_url('/api/invitations/track/pixel', id=invitation.tracking_pixel_id)
        return self.send_template_email(
            invitation.email,
            TEMPLATE_INVITATION,
            'Uitnodiging om retailer te worden',
            {
                'contactName': invitation.contact_name,
                'inviteeBusiness': invitation.business_name,
                'registrationUrl': click_url,
                'trackingPixelUrl': pixel_url,
                'expiresAt': models.as_utc(invitation.expires_at).strftime('%d-%m-%Y'),
            },
            tags=['business-invitation'],
        )

    def notify_invitation_reminder(self, invitation: models.BusinessInvitation) -> Dict[str, Any]:
        click_url = urls.build_api_url('/api/invitations/track/reminder-click', id=invitation.reminder_click_tracking_id)
        pixel_url = urls.build_api_url('/api/invitations/track/reminder-pixel', id=invitation.reminder_tracking_pixel_id)
        return self.send_template_email(
            invitation.email,
            TEMPLATE_INVITATION_REMINDER,
            'Herinnering: je uitnodiging verloopt binnenkort',
            {
                'contactName': invitation.contact_name,
                'inviteeBusiness': invitation.business_name,
                'registrationUrl': click_url,
                'trackingPixelUrl': pixel_url,
                'reminderCount': invitation.reminder_count,
                'expiresAt': models.as_utc(invitation.expires_at).strftime('%d-%m-%Y'),
            },
            tags=['business-invitation-reminder'],
        )

    # === Onboarding / fulfillment ===

    def notify_onboarding_achievement(self, profile_id: uuid.UUID, step_title: str, points: int, total_points: int) -> models.Notification:
        return self.create_notification(
            profile_id=profile_id,
            event_type=EVENT_ONBOARDING_ACHIEVEMENT,
            title=f"+{points} punten verdiend!",
            message=f"Je hebt '{step_title}' afgerond. Totaal: {total_points} punten.",
            action_url='/retailer-dashboard',
            metadata={'points_earned': points, 'total_points': total_points},
        )

    def notify_sample_delivered(self, order: models.FulfillmentOrder) -> Optional[Dict[str, Any]]:
        if not order.recipient_email:
            return None
        return self.send_template_email(
            order.recipient_email,
            TEMPLATE_SAMPLE_DELIVERED,
            'Je proefpakket is bezorgd',
            {
                'recipientName': order.recipient_name,
                'trackingNumber': order.tracking_number,
                'registrationUrl': urls.build_registration_link(),
            },
        )
