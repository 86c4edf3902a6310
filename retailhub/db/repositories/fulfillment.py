"""
Fulfillment order and tracking event repository functions.
"""
from __future__ import annotations

import uuid
from typing import Optional, List, Dict, Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from retailhub.db import models


def get_order(db: Session, order_id: uuid.UUID) -> Optional[models.FulfillmentOrder]:
    return db.query(models.FulfillmentOrder).filter(models.FulfillmentOrder.id == order_id).first()


def get_order_by_tracking(db: Session, tracking_number: str) -> Optional[models.FulfillmentOrder]:
    return (
        db.query(models.FulfillmentOrder)
        .filter(models.FulfillmentOrder.tracking_number == tracking_number)
        .first()
    )


def list_orders(db: Session, *, status: Optional[str] = None, limit: int = 200) -> List[models.FulfillmentOrder]:
    query = db.query(models.FulfillmentOrder)
    if status:
        query = query.filter(models.FulfillmentOrder.status == status)
    return query.order_by(models.FulfillmentOrder.created_at.desc()).limit(limit).all()


def create_order(db: Session, **fields: Any) -> models.FulfillmentOrder:
    order = models.FulfillmentOrder(**fields)
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def add_event(db: Session, order: models.FulfillmentOrder, **fields: Any) -> models.FulfillmentTrackingEvent:
    event = models.FulfillmentTrackingEvent(order_id=order.id, **fields)
    db.add(event)
    db.flush()
    return event


def status_counts(db: Session) -> Dict[str, int]:
    F = models.FulfillmentOrder
    rows = db.query(F.status, func.count(F.id)).group_by(F.status).all()
    return {status: count for status, count in rows}


def delivered_orders(db: Session) -> List[models.FulfillmentOrder]:
    F = models.FulfillmentOrder
    return (
        db.query(F)
        .filter(F.delivered_at.isnot(None), F.shipped_at.isnot(None))
        .all()
    )
