"""
Product and order repository functions.
"""
from __future__ import annotations

import random
import string
import time
import uuid
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from retailhub.db import models, schemas


def get_product(db: Session, product_id: uuid.UUID) -> Optional[models.Product]:
    return db.query(models.Product).filter(models.Product.id == product_id).first()


def list_products(db: Session, *, include_inactive: bool = False) -> List[models.Product]:
    query = db.query(models.Product)
    if not include_inactive:
        query = query.filter(models.Product.is_active.is_(True))
    return query.order_by(models.Product.name).all()


def create_product(db: Session, payload: schemas.ProductCreate) -> models.Product:
    product = models.Product(**payload.model_dump())
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def update_product(db: Session, product: models.Product, payload: schemas.ProductUpdate) -> models.Product:
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(product, key, value)
    db.commit()
    db.refresh(product)
    return product


def generate_order_number() -> str:
    """ORD-<epoch ms><5 uppercase letters/digits>."""
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=5))
    return f"ORD-{int(time.time() * 1000)}{suffix}"


def create_order(db: Session, **fields: Any) -> models.Order:
    order = models.Order(order_number=generate_order_number(), **fields)
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def get_order(db: Session, order_id: uuid.UUID) -> Optional[models.Order]:
    return db.query(models.Order).filter(models.Order.id == order_id).first()


def list_orders(db: Session, *, profile_id: Optional[uuid.UUID] = None, limit: int = 200) -> List[models.Order]:
    query = db.query(models.Order)
    if profile_id:
        query = query.filter(models.Order.profile_id == profile_id)
    return query.order_by(models.Order.created_at.desc()).limit(limit).all()


def update_order(db: Session, order: models.Order, updates: Dict[str, Any]) -> models.Order:
    for key, value in updates.items():
        setattr(order, key, value)
    db.commit()
    db.refresh(order)
    return order
