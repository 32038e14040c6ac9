from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional


class CartItemAdd(BaseModel):
    variant_id: int = Field(..., gt=0)
    quantity: int = Field(default=1, gt=0, le=999)


class CartItemQuantity(BaseModel):
    # Negative values are rejected by the cart service with a domain message
    quantity: int = Field(..., le=999)


class CartItemResponse(BaseModel):
    id: int
    variant_id: int
    sku: str
    title: str
    qty: int
    price_snapshot: float
    line_total: float

    @classmethod
    def from_item(cls, item) -> "CartItemResponse":
        return cls(
            id=item.id,
            variant_id=item.variant_id,
            sku=item.variant.sku,
            title=item.variant.title,
            qty=item.qty,
            price_snapshot=item.price_snapshot,
            line_total=item.line_total,
        )


class CartResponse(BaseModel):
    id: int
    items: List[CartItemResponse]
    item_count: int
    subtotal: float
    vat_amount: float
    shipping_cost: float
    total: float
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_cart(cls, cart) -> "CartResponse":
        items = [CartItemResponse.from_item(item) for item in cart.items]
        return cls(
            id=cart.id,
            items=items,
            item_count=sum(item.qty for item in items),
            subtotal=cart.subtotal,
            vat_amount=cart.vat_amount,
            shipping_cost=cart.shipping_cost,
            total=cart.total,
            created_at=cart.created_at,
            updated_at=cart.updated_at,
        )
