import uuid
from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field

from .base import RequestModel


class ProductBase(BaseModel):
    name: str
    description: Optional[str] = None
    price: float = Field(ge=0)
    image_url: Optional[str] = None
    category: Optional[str] = None
    stock_quantity: int = 0
    is_active: bool = True


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    image_url: Optional[str] = None
    category: Optional[str] = None
    stock_quantity: Optional[int] = None
    is_active: Optional[bool] = None


class Product(ProductBase):
    id: uuid.UUID
    stripe_product_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    stripe_synced_at: Optional[datetime] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class SyncProductRequest(RequestModel):
    product_id: Optional[uuid.UUID] = None


class CheckoutItem(RequestModel):
    name: str
    price: float
    quantity: int = 1
    description: Optional[str] = None
    image: Optional[str] = None


class CheckoutRequest(RequestModel):
    items: Optional[List[CheckoutItem]] = None
    order_id: Optional[str] = None
    application_id: Optional[str] = None
    customer_email: Optional[str] = None


class WasstripsPaymentRequest(RequestModel):
    application_id: Optional[uuid.UUID] = None
    payment_type: Optional[str] = None


class PaymentIntentRequest(RequestModel):
    amount: Optional[float] = None
    currency: str = "eur"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class OrderCreate(RequestModel):
    retailer_email: Optional[str] = None
    items: Optional[List[Dict[str, Any]]] = None
    subtotal: Optional[float] = None
    shipping_cost: float = 0
    tax_amount: float = 0
    total_amount: Optional[float] = None
    shipping_name: Optional[str] = None
    shipping_address: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_postal_code: Optional[str] = None
    shipping_country: Optional[str] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None


class OrderStatusUpdate(RequestModel):
    status: Optional[str] = None
    payment_status: Optional[str] = None
