"""
Retail order API endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from retailhub.api.deps import get_current_profile_context, require_admin
from retailhub.api.errors import parse_uuid, raise_for_result
from retailhub.db import schemas
from retailhub.db.database import get_db
from retailhub.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_order(
    payload: schemas.OrderCreate,
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context),
):
    profile, ctx = profile_context
    return raise_for_result(OrderService(db).create_order(payload, profile, ctx["is_admin"]))


@router.get("")
def list_orders(
    email: Optional[str] = None,
    db: Session = Depends(get_db),
    profile_context=Depends(get_current_profile_context),
):
    """
    List orders.

    - Retailers always get their own orders
    - Admins get every order, or one retailer's with **email**
    """
    profile, ctx = profile_context
    return raise_for_result(OrderService(db).list_orders(profile, ctx["is_admin"], email=email))


@router.patch("/{order_id}/status")
def update_order_status(
    order_id: str,
    payload: schemas.OrderStatusUpdate,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    return raise_for_result(
        OrderService(db).update_status(parse_uuid(order_id, "id"), payload, actor_profile_id=admin.id)
    )
