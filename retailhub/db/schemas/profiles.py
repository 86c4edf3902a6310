import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict

from .base import RequestModel


class LoginRequest(RequestModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UpdatePasswordRequest(RequestModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class CreateAdminRequest(RequestModel):
    email: Optional[str] = None
    password: Optional[str] = None
    full_name: Optional[str] = None


class Profile(BaseModel):
    id: uuid.UUID
    email: str
    full_name: Optional[str] = None
    company_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    website: Optional[str] = None
    chamber_of_commerce: Optional[str] = None
    vat_number: Optional[str] = None
    logo_url: Optional[str] = None
    role: str
    status: str
    last_login_at: Optional[datetime] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ProfileUpdate(RequestModel):
    full_name: Optional[str] = None
    company_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    website: Optional[str] = None
    chamber_of_commerce: Optional[str] = None
    vat_number: Optional[str] = None
    logo_url: Optional[str] = None


class RetailerRegistration(RequestModel):
    business_name: Optional[str] = None
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    website: Optional[str] = None
    chamber_of_commerce: Optional[str] = None
    vat_number: Optional[str] = None
    password: Optional[str] = None
    wasstrips_optin: bool = False
    invitation_token: Optional[str] = None
    notes: Optional[str] = None


class RetailerActivationRequest(RequestModel):
    retailer_id: Optional[uuid.UUID] = None
    status: Optional[str] = None
    rejection_reason: Optional[str] = None


class RetailerNotifyRequest(RequestModel):
    retailer_id: Optional[uuid.UUID] = None
    action: Optional[str] = None  # approve|reject
    reason: Optional[str] = None


class ResendActivationRequest(RequestModel):
    retailer_id: Optional[uuid.UUID] = None


class ActivateAccountRequest(RequestModel):
    token: Optional[str] = None
    password: Optional[str] = None
