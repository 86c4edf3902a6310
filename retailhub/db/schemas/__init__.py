"""
Domain-split Pydantic schemas.

Request payloads derive from `RequestModel` so they accept the frontend's
camelCase keys as well as snake_case.
"""

from .base import RequestModel
from .profiles import (
    LoginRequest,
    UpdatePasswordRequest,
    CreateAdminRequest,
    Profile,
    ProfileUpdate,
    RetailerRegistration,
    RetailerActivationRequest,
    RetailerNotifyRequest,
    ResendActivationRequest,
    ActivateAccountRequest,
)
from .wasstrips import (
    CreateApplicationRequest,
    ApplicationActionRequest,
    SelectPaymentMethodRequest,
    MarkShippedRequest,
    PaymentStatusUpdate,
    InvoiceRequest,
)
from .onboarding import OnboardingStep, CompleteStepRequest, SkipOnboardingRequest
from .email import SendEmailRequest, TestEmailRequest, TestTemplateRequest
from .invitations import (
    InvitationItem,
    CreateInvitationsRequest,
    ImportInvitationsRequest,
    RemindInvitationRequest,
)
from .catalog import (
    ProductCreate,
    ProductUpdate,
    Product,
    SyncProductRequest,
    CheckoutItem,
    CheckoutRequest,
    WasstripsPaymentRequest,
    PaymentIntentRequest,
    OrderCreate,
    OrderStatusUpdate,
)
from .notifications import (
    NotificationPreferences,
    NotificationPreferencesUpdate,
    Notification,
    NotificationListResponse,
    SettingUpsert,
)
from .commercial import (
    ProspectActionRequest,
    CampaignCreate,
    CampaignUpdate,
    Campaign,
    QueueProspectsRequest,
    ProcessQueueRequest,
    DeleteQueueItemsRequest,
    FulfillmentOrderCreate,
    TrackingActionRequest,
)
from .audits import AuditLogBase, AuditLogCreate, AuditLog
