import uuid
from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict

from .base import RequestModel


class ProspectActionRequest(RequestModel):
    action: Optional[str] = None
    prospect_ids: Optional[List[uuid.UUID]] = None
    new_status: Optional[str] = None


class CampaignCreate(RequestModel):
    name: Optional[str] = None
    description: Optional[str] = None
    business_segment: Optional[str] = None
    steps: Optional[List[Dict[str, Any]]] = None
    max_emails_per_day: int = 100
    min_hours_between_emails: int = 24
    respect_business_hours: bool = True
    timezone: str = 'Europe/Amsterdam'
    is_default: bool = False
    active: bool = True


class CampaignUpdate(RequestModel):
    name: Optional[str] = None
    description: Optional[str] = None
    business_segment: Optional[str] = None
    steps: Optional[List[Dict[str, Any]]] = None
    max_emails_per_day: Optional[int] = None
    min_hours_between_emails: Optional[int] = None
    respect_business_hours: Optional[bool] = None
    timezone: Optional[str] = None
    is_default: Optional[bool] = None
    active: Optional[bool] = None


class Campaign(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    business_segment: str
    steps: List[Dict[str, Any]]
    max_emails_per_day: int
    min_hours_between_emails: int
    respect_business_hours: bool
    timezone: str
    is_default: bool
    active: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class QueueProspectsRequest(RequestModel):
    prospect_ids: Optional[List[uuid.UUID]] = None
    campaign_id: Optional[uuid.UUID] = None
    schedule_delay: int = 5


class ProcessQueueRequest(RequestModel):
    limit: int = 20


class DeleteQueueItemsRequest(RequestModel):
    email_ids: Optional[List[uuid.UUID]] = None


class FulfillmentOrderCreate(RequestModel):
    prospect_id: Optional[uuid.UUID] = None
    shipping_provider: Optional[str] = None
    tracking_number: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_email: Optional[str] = None
    shipping_address: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_postal_code: Optional[str] = None
    package_type: str = 'proefpakket'


class TrackingActionRequest(RequestModel):
    action: Optional[str] = None
    order_id: Optional[uuid.UUID] = None
    tracking_number: Optional[str] = None
    event_type: Optional[str] = None
    event_description: Optional[str] = None
    location: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
