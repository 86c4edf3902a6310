"""
Commercial outreach repositories: prospects, campaigns, invitation codes,
the email queue and its tracking events.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from retailhub.db import models
from retailhub.utils import token_crypto

ACTIVE_QUEUE_STATUSES = ("pending", "processing")
DELETABLE_QUEUE_STATUSES = ("pending", "failed", "cancelled")
INVITATION_CODE_TTL = timedelta(days=30)


def _now() -> datetime:
    return datetime.now(timezone.utc)


# === Prospects ===

def get_prospect(db: Session, prospect_id: uuid.UUID) -> Optional[models.CommercialProspect]:
    return db.query(models.CommercialProspect).filter(models.CommercialProspect.id == prospect_id).first()


def get_prospects(db: Session, prospect_ids: List[uuid.UUID]) -> List[models.CommercialProspect]:
    if not prospect_ids:
        return []
    return db.query(models.CommercialProspect).filter(models.CommercialProspect.id.in_(prospect_ids)).all()


def find_duplicate(db: Session, business_name: str, city: Optional[str]) -> Optional[models.CommercialProspect]:
    P = models.CommercialProspect
    query = db.query(P).filter(func.lower(P.business_name) == business_name.strip().lower())
    if city:
        query = query.filter(func.lower(P.city) == city.strip().lower())
    return query.first()


def search_prospects(
    db: Session,
    *,
    page: int = 1,
    limit: int = 50,
    status: Optional[str] = None,
    source: Optional[str] = None,
    segment: Optional[str] = None,
    search: Optional[str] = None,
) -> Tuple[List[models.CommercialProspect], int]:
    P = models.CommercialProspect
    query = db.query(P)
    if status:
        query = query.filter(P.status == status)
    if source:
        query = query.filter(P.discovery_source == source)
    if segment:
        query = query.filter(P.business_segment == segment)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(P.business_name).like(pattern),
                func.lower(P.email).like(pattern),
                func.lower(P.city).like(pattern),
            )
        )
    total = query.count()
    rows = query.order_by(P.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return rows, total


def create_prospect(db: Session, **fields: Any) -> models.CommercialProspect:
    prospect = models.CommercialProspect(**fields)
    db.add(prospect)
    db.commit()
    db.refresh(prospect)
    return prospect


def bulk_update_status(db: Session, prospect_ids: List[uuid.UUID], new_status: str) -> int:
    P = models.CommercialProspect
    updated = (
        db.query(P)
        .filter(P.id.in_(prospect_ids))
        .update({P.status: new_status, P.updated_at: _now()}, synchronize_session=False)
    )
    db.commit()
    return updated


def _grouped_counts(db: Session, column) -> Dict[str, int]:
    rows = db.query(column, func.count()).group_by(column).all()
    return {(key or "unknown"): count for key, count in rows}


def prospect_statistics(db: Session) -> Dict[str, Any]:
    P = models.CommercialProspect
    today = _now().replace(hour=0, minute=0, second=0, microsecond=0)
    return {
        "total": db.query(P).count(),
        "added_today": db.query(P).filter(P.created_at >= today).count(),
        "by_status": _grouped_counts(db, P.status),
        "by_source": _grouped_counts(db, P.discovery_source),
        "by_segment": _grouped_counts(db, P.business_segment),
        "email_queue": _grouped_counts(db, models.CommercialEmailQueueItem.status),
    }


# === Invitation codes ===

def expire_invitation_codes(db: Session, prospect_id: uuid.UUID) -> int:
    """Deactivate the prospect's codes whose expiry has passed."""
    C = models.ProspectInvitationCode
    return (
        db.query(C)
        .filter(
            C.prospect_id == prospect_id,
            C.is_active.is_(True),
            C.expires_at.isnot(None),
            C.expires_at <= _now(),
        )
        .update({C.is_active: False}, synchronize_session="fetch")
    )


def get_or_create_invitation_code(db: Session, prospect_id: uuid.UUID) -> models.ProspectInvitationCode:
    """Reuse the prospect's current code or issue a new one valid for 30 days."""
    C = models.ProspectInvitationCode
    expire_invitation_codes(db, prospect_id)
    code = (
        db.query(C)
        .filter(C.prospect_id == prospect_id, C.is_active.is_(True))
        .order_by(C.created_at.desc())
        .first()
    )
    if code:
        return code
    code = C(
        prospect_id=prospect_id,
        code=token_crypto.generate_hex_token(6).upper(),
        is_active=True,
        expires_at=_now() + INVITATION_CODE_TTL,
    )
    db.add(code)
    db.flush()
    return code


def get_invitation_code(db: Session, code: str) -> Optional[models.ProspectInvitationCode]:
    C = models.ProspectInvitationCode
    return db.query(C).options(joinedload(C.prospect)).filter(C.code == code).first()


# === Campaigns ===

def get_campaign(db: Session, campaign_id: uuid.UUID) -> Optional[models.CommercialEmailCampaign]:
    return db.query(models.CommercialEmailCampaign).filter(models.CommercialEmailCampaign.id == campaign_id).first()


def list_campaigns(db: Session, *, segment: Optional[str] = None) -> List[models.CommercialEmailCampaign]:
    query = db.query(models.CommercialEmailCampaign)
    if segment:
        query = query.filter(models.CommercialEmailCampaign.business_segment == segment)
    return query.order_by(models.CommercialEmailCampaign.created_at.desc()).all()


def get_default_campaign(db: Session) -> Optional[models.CommercialEmailCampaign]:
    C = models.CommercialEmailCampaign
    return (
        db.query(C)
        .filter(C.active.is_(True))
        .order_by(C.is_default.desc(), C.created_at.asc())
        .first()
    )


def create_campaign(db: Session, **fields: Any) -> models.CommercialEmailCampaign:
    campaign = models.CommercialEmailCampaign(**fields)
    db.add(campaign)
    db.commit()
    db.refresh(campaign)
    return campaign


def update_campaign(
    db: Session, campaign: models.CommercialEmailCampaign, updates: Dict[str, Any]
) -> models.CommercialEmailCampaign:
    for key, value in updates.items():
        setattr(campaign, key, value)
    db.commit()
    db.refresh(campaign)
    return campaign


def delete_campaign(db: Session, campaign: models.CommercialEmailCampaign) -> None:
    db.delete(campaign)
    db.commit()


# === Queue ===

def prospect_ids_with_active_email(db: Session, prospect_ids: List[uuid.UUID]) -> set:
    Q = models.CommercialEmailQueueItem
    rows = (
        db.query(Q.prospect_id)
        .filter(Q.prospect_id.in_(prospect_ids), Q.status.in_(ACTIVE_QUEUE_STATUSES))
        .distinct()
        .all()
    )
    return {row[0] for row in rows}


def list_queue(
    db: Session,
    *,
    limit: int = 50,
    status: Optional[str] = None,
    prospect_id: Optional[uuid.UUID] = None,
) -> List[models.CommercialEmailQueueItem]:
    Q = models.CommercialEmailQueueItem
    query = db.query(Q).options(joinedload(Q.prospect))
    if status:
        query = query.filter(Q.status == status)
    if prospect_id:
        query = query.filter(Q.prospect_id == prospect_id)
    return query.order_by(Q.scheduled_at.asc()).limit(limit).all()


def due_queue_items(db: Session, *, limit: int = 20) -> List[models.CommercialEmailQueueItem]:
    Q = models.CommercialEmailQueueItem
    return (
        db.query(Q)
        .filter(Q.status == "pending", Q.scheduled_at <= _now())
        .order_by(Q.priority.asc(), Q.scheduled_at.asc())
        .limit(limit)
        .all()
    )


def get_queue_items(db: Session, item_ids: List[uuid.UUID]) -> List[models.CommercialEmailQueueItem]:
    Q = models.CommercialEmailQueueItem
    return db.query(Q).filter(Q.id.in_(item_ids)).all()


def delete_queue_items(db: Session, items: List[models.CommercialEmailQueueItem]) -> None:
    for item in items:
        db.delete(item)
    db.commit()


def get_queue_item_by_pixel(db: Session, tracking_id: str) -> Optional[models.CommercialEmailQueueItem]:
    Q = models.CommercialEmailQueueItem
    return db.query(Q).filter(Q.tracking_pixel_id == tracking_id).first()


def replace_click_links(item: models.CommercialEmailQueueItem, click_ids: Dict[str, str]) -> None:
    """Swap the item's link rows for ``click_ids``; retried sends get fresh ids."""
    item.click_links = [
        models.CommercialEmailClickLink(tracking_id=tracking_id, original_url=url)
        for tracking_id, url in click_ids.items()
    ]


def get_click_link(db: Session, tracking_id: str) -> Optional[models.CommercialEmailClickLink]:
    L = models.CommercialEmailClickLink
    return (
        db.query(L)
        .options(joinedload(L.queue_item))
        .filter(L.tracking_id == tracking_id)
        .first()
    )


def add_tracking_event(db: Session, **fields: Any) -> models.CommercialEmailTrackingEvent:
    event = models.CommercialEmailTrackingEvent(**fields)
    db.add(event)
    db.flush()
    return event


def has_tracking_event(db: Session, queue_item_id: uuid.UUID, event_type: str) -> bool:
    T = models.CommercialEmailTrackingEvent
    return (
        db.query(T.id)
        .filter(T.queue_item_id == queue_item_id, T.event_type == event_type)
        .first()
        is not None
    )


# === Campaign statistics ===

def campaign_queue_counts(db: Session, campaign_id: uuid.UUID, since: Optional[datetime]) -> Dict[str, int]:
    Q = models.CommercialEmailQueueItem
    query = db.query(
        func.count(Q.id),
        func.count(Q.sent_at),
        func.count(Q.opened_at),
        func.count(Q.clicked_at),
        func.count(Q.unsubscribed_at),
    ).filter(Q.campaign_id == campaign_id)
    if since is not None:
        query = query.filter(Q.created_at >= since)
    total, sent, opened, clicked, unsubscribed = query.one()
    return {
        "total_emails": total,
        "sent_emails": sent,
        "opened_emails": opened,
        "clicked_emails": clicked,
        "unsubscribed_emails": unsubscribed,
    }


def campaign_conversions(db: Session, campaign_id: uuid.UUID, since: Optional[datetime]) -> int:
    """Distinct prospects emailed by the campaign that have since converted."""
    P = models.CommercialProspect
    Q = models.CommercialEmailQueueItem
    query = (
        db.query(func.count(func.distinct(P.id)))
        .join(Q, Q.prospect_id == P.id)
        .filter(Q.campaign_id == campaign_id, P.status == "converted")
    )
    if since is not None:
        query = query.filter(Q.created_at >= since)
    return query.scalar() or 0


def _campaign_events(db: Session, campaign_id: uuid.UUID, since: Optional[datetime]):
    T = models.CommercialEmailTrackingEvent
    Q = models.CommercialEmailQueueItem
    query = db.query(T).join(Q, T.queue_item_id == Q.id).filter(Q.campaign_id == campaign_id)
    if since is not None:
        query = query.filter(Q.created_at >= since, T.created_at >= since)
    return query


def campaign_event_breakdown(db: Session, campaign_id: uuid.UUID, since: Optional[datetime], column) -> Dict[str, int]:
    T = models.CommercialEmailTrackingEvent
    rows = (
        _campaign_events(db, campaign_id, since)
        .filter(column.isnot(None))
        .with_entities(column, func.count(T.id))
        .group_by(column)
        .all()
    )
    return {key: count for key, count in rows}


def recent_campaign_events(
    db: Session, campaign_id: uuid.UUID, since: Optional[datetime], *, limit: int = 20
) -> List[models.CommercialEmailTrackingEvent]:
    T = models.CommercialEmailTrackingEvent
    return _campaign_events(db, campaign_id, since).order_by(T.created_at.desc()).limit(limit).all()


def campaign_daily_sends(db: Session, campaign_id: uuid.UUID, since: Optional[datetime]) -> List[Dict[str, Any]]:
    Q = models.CommercialEmailQueueItem
    day = func.date(Q.sent_at)
    query = db.query(day, func.count(Q.id), func.count(Q.opened_at), func.count(Q.clicked_at)).filter(
        Q.campaign_id == campaign_id, Q.sent_at.isnot(None)
    )
    if since is not None:
        query = query.filter(Q.created_at >= since)
    rows = query.group_by(day).order_by(day).all()
    return [
        {"date": str(date), "sent": sent, "opened": opened, "clicked": clicked}
        for date, sent, opened, clicked in rows
    ]
