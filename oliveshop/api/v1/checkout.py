from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from oliveshop.api.deps import get_cart_id, get_checkout_service
from oliveshop.core.exceptions import CartNotFound
from oliveshop.core.rate_limiter import limiter
from oliveshop.db.session import get_db
from oliveshop.schemas.order import CheckoutRequest, LegacyCheckoutRequest, OrderResponse
from oliveshop.services.checkout_service import CheckoutService
from oliveshop.utils.response import success

router = APIRouter()


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Place an order from the current cart",
    description="""
Creates a PENDING order from the cart referenced by the cart cookie.

Behavior:
1. Validates contact and address fields
2. Rejects empty carts and lines exceeding available stock
3. Reserves stock for every line (all-or-nothing)
4. Snapshots cart totals and line prices into the order
5. Clears the cart
""",
    responses={
        201: {"description": "Order created"},
        400: {"description": "Invalid contact or address details"},
        404: {"description": "Cart not found"},
        409: {"description": "Empty cart or insufficient stock"},
    },
)
@limiter.limit("10/minute")
def checkout(
    request: Request,
    payload: CheckoutRequest,
    cart_id: Optional[int] = Depends(get_cart_id),
    checkout_service: CheckoutService = Depends(get_checkout_service),
    db: Session = Depends(get_db),
):
    if cart_id is None:
        raise CartNotFound()
    order = checkout_service.checkout(db, cart_id, payload)
    return success(data=OrderResponse.model_validate(order), message="Order placed successfully")


@router.post("/legacy", status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def legacy_checkout(
    request: Request,
    payload: LegacyCheckoutRequest,
    cart_id: Optional[int] = Depends(get_cart_id),
    checkout_service: CheckoutService = Depends(get_checkout_service),
    db: Session = Depends(get_db),
):
    """Checkout with an email and a single address line"""
    if cart_id is None:
        raise CartNotFound()
    order = checkout_service.legacy_checkout(db, cart_id, payload.email, payload.address)
    return success(data=OrderResponse.model_validate(order), message="Order placed successfully")
