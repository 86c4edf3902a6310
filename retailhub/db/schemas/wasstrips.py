import uuid
from typing import Optional

from .base import RequestModel


class CreateApplicationRequest(RequestModel):
    profile_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None


class ApplicationActionRequest(RequestModel):
    application_id: Optional[uuid.UUID] = None


class SelectPaymentMethodRequest(RequestModel):
    application_id: Optional[uuid.UUID] = None
    payment_method: Optional[str] = None


class MarkShippedRequest(RequestModel):
    application_id: Optional[uuid.UUID] = None
    tracking_code: Optional[str] = None


class PaymentStatusUpdate(RequestModel):
    order_number: Optional[str] = None
    payment_status: str = "paid"
    session_id: Optional[str] = None


class InvoiceRequest(RequestModel):
    application_id: Optional[uuid.UUID] = None
    payment_type: Optional[str] = None
