"""
Audit log repository functions.

Entries are append-only; listing is newest first.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session

from retailhub.db import schemas, models


def create_audit_log(db: Session, entry: schemas.AuditLogCreate, actor_profile_id: Optional[uuid.UUID] = None) -> models.AuditLog:
    payload = entry.model_dump()
    row = models.AuditLog(
        actor_profile_id=actor_profile_id,
        action_type=payload['action_type'],
        status=payload['status'],
        target_type=payload.get('target_type'),
        target_id=payload.get('target_id'),
        metadata_json=payload.get('metadata'),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def list_audit_logs(
    db: Session,
    *,
    actor_profile_id: Optional[uuid.UUID] = None,
    action_type: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[uuid.UUID] = None,
    since: Optional[datetime] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.AuditLog]:
    AuditLog = models.AuditLog
    filters = []
    if actor_profile_id:
        filters.append(AuditLog.actor_profile_id == actor_profile_id)
    if action_type:
        filters.append(AuditLog.action_type == action_type)
    if target_type:
        filters.append(AuditLog.target_type == target_type)
    if target_id:
        filters.append(AuditLog.target_id == target_id)
    if since:
        filters.append(AuditLog.created_at >= since)
    return (
        db.query(AuditLog)
        .filter(*filters)
        .order_by(AuditLog.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
