import uuid
from datetime import datetime
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, ConfigDict, Field

from .base import RequestModel


class NotificationPreferences(BaseModel):
    email_order_updates: bool = True
    email_promotions: bool = False
    email_product_updates: bool = True
    email_retailer_updates: bool = True
    browser_notifications: bool = False
    whatsapp_notifications: bool = False
    notification_frequency: str = 'instant'
    model_config = ConfigDict(from_attributes=True)


class NotificationPreferencesUpdate(RequestModel):
    email_order_updates: Optional[bool] = None
    email_promotions: Optional[bool] = None
    email_product_updates: Optional[bool] = None
    email_retailer_updates: Optional[bool] = None
    browser_notifications: Optional[bool] = None
    whatsapp_notifications: Optional[bool] = None
    notification_frequency: Optional[str] = None


class Notification(BaseModel):
    id: uuid.UUID
    event_type: str
    title: str
    message: str
    action_url: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="metadata_json")
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class NotificationListResponse(BaseModel):
    notifications: List[Notification]
    unread_count: int
    total_count: int


class SettingUpsert(RequestModel):
    key: Optional[str] = None
    value: Any = None
