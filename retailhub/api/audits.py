"""
Audit log API endpoints.

Admins browse the latest audit entries, optionally narrowed to one actor,
action, target or time window.
"""
from datetime import datetime
from typing import Optional, List
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from retailhub.api.deps import require_admin
from retailhub.db import schemas
from retailhub.db.database import get_db
from retailhub.db.repositories import audits as audit_repo

router = APIRouter(prefix="/audits", tags=["audits"])

MAX_PAGE_SIZE = 500


@router.get("", response_model=List[schemas.AuditLog])
def list_audit_logs(
    action: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[uuid.UUID] = None,
    actor_profile_id: Optional[uuid.UUID] = None,
    since: Optional[datetime] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    return audit_repo.list_audit_logs(
        db,
        actor_profile_id=actor_profile_id,
        action_type=action,
        target_type=target_type,
        target_id=target_id,
        since=since,
        skip=max(skip, 0),
        limit=min(max(limit, 1), MAX_PAGE_SIZE),
    )
