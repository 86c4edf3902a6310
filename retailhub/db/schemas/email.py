from typing import Optional, List, Dict, Any
from pydantic import Field

from .base import RequestModel


class SendEmailRequest(RequestModel):
    to: Optional[str] = None
    subject: Optional[str] = None
    text: Optional[str] = None
    html: Optional[str] = None
    from_email: Optional[str] = Field(default=None, alias="from")
    from_name: Optional[str] = None
    reply_to: Optional[str] = None
    attachments: Optional[List[Dict[str, Any]]] = None


class TestEmailRequest(RequestModel):
    to: Optional[str] = None


class TestTemplateRequest(RequestModel):
    template: Optional[str] = None
    to: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)
