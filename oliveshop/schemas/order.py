import html
from datetime import datetime
from typing import List, Optional

import bleach
from pydantic import BaseModel, Field, field_validator

from oliveshop.models.order import FulfillmentStatus, OrderStatus, PaymentStatus


def _sanitize(value: Optional[str]) -> Optional[str]:
    """Strip markup; the result is stored and mailed as plain text, so entities are decoded."""
    if value is None:
        return value
    return html.unescape(bleach.clean(value, tags=[], attributes={}, strip=True)).strip()


class CheckoutRequest(BaseModel):
    """Structured checkout payload; required-field rules live in CheckoutService."""
    full_name: str = Field(default="", max_length=255)
    email: str = Field(default="", max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    street1: str = Field(default="", max_length=255)
    street2: Optional[str] = Field(default=None, max_length=255)
    city: str = Field(default="", max_length=100)
    region: str = Field(default="", max_length=100)
    postal_code: str = Field(default="", max_length=20)
    country: str = Field(default="", max_length=100)

    @field_validator(
        "full_name", "email", "phone", "street1", "street2", "city", "region", "postal_code", "country"
    )
    @classmethod
    def sanitize_text(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize(value)


class LegacyCheckoutRequest(BaseModel):
    email: str = Field(default="", max_length=255)
    address: str = Field(default="", max_length=1000)

    @field_validator("email", "address")
    @classmethod
    def sanitize_text(cls, value: str) -> str:
        return _sanitize(value)


class ShipOrderRequest(BaseModel):
    tracking_url: Optional[str] = Field(default=None, max_length=500)


class CancelOrderRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)

    @field_validator("reason")
    @classmethod
    def sanitize_reason(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize(value)


class OrderItemResponse(BaseModel):
    id: int
    variant_id: int
    title_snapshot: str
    qty: int
    price_snapshot: float
    line_total: float

    class Config:
        from_attributes = True


class AdminOrderItemResponse(OrderItemResponse):
    sku: Optional[str] = None
    product_title: Optional[str] = None

    @classmethod
    def from_item(cls, item) -> "AdminOrderItemResponse":
        response = cls.model_validate(item)
        if item.variant is not None:
            response.sku = item.variant.sku
            response.product_title = item.variant.product.title if item.variant.product else None
        return response


class OrderResponse(BaseModel):
    id: int
    number: str
    email: str
    address: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    street1: Optional[str] = None
    street2: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    subtotal: float
    tax: float
    shipping: float
    total: float
    status: OrderStatus
    payment_status: PaymentStatus
    fulfillment_status: FulfillmentStatus
    tracking_url: Optional[str] = None
    items: List[OrderItemResponse]
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminOrderResponse(OrderResponse):
    version: int
    items: List[AdminOrderItemResponse]

    @classmethod
    def from_order(cls, order) -> "AdminOrderResponse":
        data = OrderResponse.model_validate(order).model_dump(exclude={"items"})
        return cls(
            **data,
            version=order.version,
            items=[AdminOrderItemResponse.from_item(item) for item in order.items],
        )


class OrderSummaryResponse(BaseModel):
    id: int
    number: str
    email: str
    total: float
    status: OrderStatus
    payment_status: PaymentStatus
    fulfillment_status: FulfillmentStatus
    created_at: datetime
    item_count: int
