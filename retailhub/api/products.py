"""
Product catalog API endpoints.

Anyone may browse active products; admins manage the catalog. Deleting a
product only deactivates it so existing orders keep their references.
"""
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from retailhub.api.deps import get_optional_profile_context, require_admin
from retailhub.api.errors import api_error, parse_uuid
from retailhub.audit import AuditAction, log
from retailhub.db import models, schemas
from retailhub.db.database import get_db
from retailhub.db.repositories import catalog as catalog_repo

router = APIRouter(prefix="/products", tags=["products"])


def serialize_product(product: models.Product) -> dict:
    return schemas.Product.model_validate(product).model_dump(mode="json")


def _get_or_404(db: Session, product_id: str) -> models.Product:
    product = catalog_repo.get_product(db, parse_uuid(product_id, "id"))
    if not product:
        raise api_error(status.HTTP_404_NOT_FOUND, "Product not found")
    return product


@router.get("")
def list_products(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    profile_context=Depends(get_optional_profile_context),
):
    """
    List the product catalog.

    - **include_inactive**: admins only; ignored for everyone else
    """
    is_admin = bool(profile_context and profile_context[1]["is_admin"])
    products = catalog_repo.list_products(db, include_inactive=include_inactive and is_admin)
    return {"success": True, "products": [serialize_product(p) for p in products]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_product(
    payload: schemas.ProductCreate,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    product = catalog_repo.create_product(db, payload)
    log(
        db,
        action=AuditAction.PRODUCT_CREATE,
        target_type="product",
        target_id=product.id,
        actor_profile_id=admin.id,
        metadata={"name": product.name},
    )
    return {"success": True, "product": serialize_product(product)}


@router.put("/{product_id}")
def update_product(
    product_id: str,
    payload: schemas.ProductUpdate,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    product = catalog_repo.update_product(db, _get_or_404(db, product_id), payload)
    log(
        db,
        action=AuditAction.PRODUCT_UPDATE,
        target_type="product",
        target_id=product.id,
        actor_profile_id=admin.id,
        metadata={"fields": sorted(payload.model_dump(exclude_unset=True))},
    )
    return {"success": True, "product": serialize_product(product)}


@router.delete("/{product_id}")
def deactivate_product(
    product_id: str,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    product = catalog_repo.update_product(db, _get_or_404(db, product_id), schemas.ProductUpdate(is_active=False))
    log(
        db,
        action=AuditAction.PRODUCT_UPDATE,
        target_type="product",
        target_id=product.id,
        actor_profile_id=admin.id,
        metadata={"is_active": False},
    )
    return {"success": True, "product": serialize_product(product)}
