"""
Domain-split SQLAlchemy models.

Exposes `Base`, the timestamp helpers, and all ORM classes.
"""

from .base import Base, now_utc, as_utc, isoformat  # re-export

# Domain models
from .profiles import Profile, SessionToken, RetailerActivationToken, DeletedRetailer
from .wasstrips import WasstripsApplication
from .onboarding import OnboardingStep, OnboardingProgress, OnboardingStepCompletion
from .invitations import BusinessInvitation
from .catalog import Product, Order
from .notifications import NotificationPreference, Notification, EmailLog
from .settings import Setting
from .commercial import (
    CommercialProspect,
    ProspectInvitationCode,
    CommercialEmailCampaign,
    CommercialEmailQueueItem,
    CommercialEmailClickLink,
    CommercialEmailTrackingEvent,
)
from .fulfillment import FulfillmentOrder, FulfillmentTrackingEvent
from .audit import AuditLog

__all__ = [
    # base
    "Base",
    "now_utc",
    "as_utc",
    "isoformat",
    # retailers
    "Profile",
    "SessionToken",
    "RetailerActivationToken",
    "DeletedRetailer",
    "WasstripsApplication",
    "OnboardingStep",
    "OnboardingProgress",
    "OnboardingStepCompletion",
    "BusinessInvitation",
    # catalog
    "Product",
    "Order",
    # notifications
    "NotificationPreference",
    "Notification",
    "EmailLog",
    "Setting",
    # commercial
    "CommercialProspect",
    "ProspectInvitationCode",
    "CommercialEmailCampaign",
    "CommercialEmailQueueItem",
    "CommercialEmailClickLink",
    "CommercialEmailTrackingEvent",
    "FulfillmentOrder",
    "FulfillmentTrackingEvent",
    # audit
    "AuditLog",
]
