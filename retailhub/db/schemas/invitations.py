import uuid
from typing import Optional, List

from .base import RequestModel


class InvitationItem(RequestModel):
    email: Optional[str] = None
    business_name: Optional[str] = None
    contact_name: Optional[str] = None
    phone: Optional[str] = None


class CreateInvitationsRequest(RequestModel):
    invitations: List[InvitationItem] = []
    send_emails: bool = True


class ImportInvitationsRequest(RequestModel):
    csv_data: Optional[str] = None
    send_emails: bool = True


class RemindInvitationRequest(RequestModel):
    invitation_id: Optional[uuid.UUID] = None
