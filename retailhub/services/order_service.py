"""
Catalog orders placed by retailers.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from retailhub.audit import AuditAction, log
from retailhub.db import models, schemas
from retailhub.db.repositories import catalog as catalog_repo
from retailhub.db.repositories import profiles as profile_repo
from retailhub.services import ok, failure, NOT_FOUND, INVALID, FORBIDDEN

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_METHOD = "invoice"
DEFAULT_COUNTRY = "Nederland"
ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")


def _amount(value) -> float:
    return float(value) if value is not None else 0.0


def serialize_order(order: models.Order) -> Dict[str, Any]:
    return {
        "id": str(order.id),
        "profile_id": str(order.profile_id) if order.profile_id else None,
        "order_number": order.order_number,
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "items": order.items or [],
        "subtotal": _amount(order.subtotal),
        "shipping_cost": _amount(order.shipping_cost),
        "tax_amount": _amount(order.tax_amount),
        "total_amount": _amount(order.total_amount),
        "shipping_name": order.shipping_name,
        "shipping_address": order.shipping_address,
        "shipping_city": order.shipping_city,
        "shipping_postal_code": order.shipping_postal_code,
        "shipping_country": order.shipping_country,
        "billing_name": order.billing_name,
        "billing_address": order.billing_address,
        "billing_city": order.billing_city,
        "billing_postal_code": order.billing_postal_code,
        "billing_country": order.billing_country,
        "metadata": order.metadata_json or {},
        "stripe_session_id": order.stripe_session_id,
        "created_at": models.isoformat(order.created_at),
        "updated_at": models.isoformat(order.updated_at),
    }


def profile_snapshot(profile: models.Profile) -> Dict[str, Any]:
    return {
        "company_name": profile.company_name,
        "full_name": profile.full_name,
        "email": profile.email,
        "phone": profile.phone,
        "address": profile.address,
        "city": profile.city,
        "postal_code": profile.postal_code,
        "country": profile.country or DEFAULT_COUNTRY,
        "chamber_of_commerce": profile.chamber_of_commerce,
        "vat_number": profile.vat_number,
        "website": profile.website,
        "captured_at": datetime.now(timezone.utc).isoformat(),
    }


def _order_item(item: Dict[str, Any]) -> Dict[str, Any]:
    product_id = item.get("product_id") or item.get("id")
    return {
        "id": product_id,
        "product_id": product_id,
        "product_name": item.get("product_name") or item.get("name"),
        "quantity": int(item.get("quantity") or 1),
        "price": float(item.get("price") or 0),
    }


class OrderService:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, payload: schemas.OrderCreate, caller: models.Profile, is_admin: bool) -> Dict[str, Any]:
        if not payload.items or payload.total_amount is None:
            return failure(INVALID, "Missing required fields: items, total_amount")

        if payload.retailer_email and (is_admin or profile_repo.normalize_email(payload.retailer_email) == profile_repo.normalize_email(caller.email)):
            profile = profile_repo.get_profile_by_email(self.db, payload.retailer_email)
            if not profile:
                return failure(NOT_FOUND, "Retailer profile not found")
        elif payload.retailer_email:
            return failure(FORBIDDEN, "Cannot place orders for another retailer")
        else:
            profile = caller

        try:
            items = [_order_item(item) for item in payload.items]
        except (TypeError, ValueError):
            return failure(INVALID, "Invalid order items")
        subtotal = payload.subtotal if payload.subtotal is not None else sum(i["price"] * i["quantity"] for i in items)
        snapshot = profile_snapshot(profile)

        order = catalog_repo.create_order(
            self.db,
            profile_id=profile.id,
            items=items,
            subtotal=subtotal,
            shipping_cost=payload.shipping_cost,
            tax_amount=payload.tax_amount,
            total_amount=payload.total_amount,
            payment_method=payload.payment_method or DEFAULT_PAYMENT_METHOD,
            shipping_name=payload.shipping_name or profile.company_name,
            shipping_address=payload.shipping_address or profile.address,
            shipping_city=payload.shipping_city or profile.city,
            shipping_postal_code=payload.shipping_postal_code or profile.postal_code,
            shipping_country=payload.shipping_country or DEFAULT_COUNTRY,
            billing_name=profile.company_name,
            billing_address=profile.address,
            billing_city=profile.city,
            billing_postal_code=profile.postal_code,
            billing_country=profile.country or DEFAULT_COUNTRY,
            metadata_json={
                "created_from": "catalog",
                "retailer_email": profile.email,
                "notes": payload.notes,
                "billing_company_name": profile.company_name,
                "billing_contact_name": profile.full_name,
                "billing_phone": profile.phone,
                "billing_email": profile.email,
                "billing_kvk_number": profile.chamber_of_commerce,
                "billing_vat_number": profile.vat_number,
                "profile_snapshot": snapshot,
            },
        )
        logger.info(f"Order {order.order_number} created for {profile.email}")
        return ok(order={
            **serialize_order(order),
            "billing_info": {
                "company_name": profile.company_name,
                "contact_name": profile.full_name,
                "address": order.billing_address,
                "city": order.billing_city,
                "postal_code": order.billing_postal_code,
                "kvk_number": profile.chamber_of_commerce,
                "vat_number": profile.vat_number,
            },
        })

    def list_orders(self, caller: models.Profile, is_admin: bool, email: Optional[str] = None) -> Dict[str, Any]:
        if not is_admin:
            orders = catalog_repo.list_orders(self.db, profile_id=caller.id)
        elif email:
            profile = profile_repo.get_profile_by_email(self.db, email)
            if not profile:
                return failure(NOT_FOUND, "Retailer profile not found")
            orders = catalog_repo.list_orders(self.db, profile_id=profile.id)
        else:
            orders = catalog_repo.list_orders(self.db)
        return ok(orders=[serialize_order(o) for o in orders])

    def update_status(self, order_id, payload: schemas.OrderStatusUpdate, *, actor_profile_id=None) -> Dict[str, Any]:
        updates = {}
        if payload.status:
            if payload.status not in ORDER_STATUSES:
                return failure(INVALID, f"status must be one of: {', '.join(ORDER_STATUSES)}")
            updates["status"] = payload.status
        if payload.payment_status:
            if payload.payment_status not in PAYMENT_STATUSES:
                return failure(INVALID, f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}")
            updates["payment_status"] = payload.payment_status
        if not updates:
            return failure(INVALID, "Nothing to update")
        order = catalog_repo.get_order(self.db, order_id)
        if not order:
            return failure(NOT_FOUND, "Order not found")
        previous = {key: getattr(order, key) for key in updates}
        order = catalog_repo.update_order(self.db, order, updates)
        log(
            self.db,
            action=AuditAction.ORDER_STATUS_CHANGE,
            target_type="order",
            target_id=order.id,
            actor_profile_id=actor_profile_id,
            metadata={"previous": previous, "updates": updates},
        )
        return ok(order=serialize_order(order))
