from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from oliveshop.api.deps import get_cart_id, get_cart_service
from oliveshop.core.config import settings
from oliveshop.core.exceptions import CartNotFound, ValidationFailed
from oliveshop.core.rate_limiter import limiter
from oliveshop.db.session import get_db
from oliveshop.models.cart import Cart
from oliveshop.schemas.cart import CartItemAdd, CartItemQuantity, CartResponse
from oliveshop.services.cart_service import CartService
from oliveshop.utils.response import success

router = APIRouter()


def set_cart_cookie(response: Response, cart_id: int) -> None:
    response.set_cookie(
        key=settings.CART_COOKIE_NAME,
        value=str(cart_id),
        max_age=settings.cart_cookie_max_age_seconds,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="lax",
        path="/",
    )


def _existing_cart(db: Session, cart_service: CartService, cart_id: Optional[int]) -> Cart:
    if cart_id is None:
        raise CartNotFound()
    return cart_service.get_cart_with_items(db, cart_id)


def _resolve_or_create_cart(
    db: Session,
    cart_service: CartService,
    cart_id: Optional[int],
    response: Response,
) -> Cart:
    cart = cart_service.find_cart(db, cart_id) if cart_id is not None else None
    if cart is None:
        cart = cart_service.create_cart(db)
        set_cart_cookie(response, cart.id)
    return cart


@router.get("")
def get_cart(
    cart_id: Optional[int] = Depends(get_cart_id),
    cart_service: CartService = Depends(get_cart_service),
    db: Session = Depends(get_db),
):
    """Current cart from the cart cookie"""
    cart = _existing_cart(db, cart_service, cart_id)
    return success(data=CartResponse.from_cart(cart), message="Cart retrieved successfully")


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_cart(
    request: Request,
    response: Response,
    cart_id: Optional[int] = Depends(get_cart_id),
    cart_service: CartService = Depends(get_cart_service),
    db: Session = Depends(get_db),
):
    """Create a cart, or return the one already referenced by the cookie"""
    cart = _resolve_or_create_cart(db, cart_service, cart_id, response)
    return success(data=CartResponse.from_cart(cart), message="Cart ready")


@router.post("/items")
@limiter.limit("60/minute")
def add_cart_item(
    request: Request,
    response: Response,
    payload: CartItemAdd,
    cart_id: Optional[int] = Depends(get_cart_id),
    cart_service: CartService = Depends(get_cart_service),
    db: Session = Depends(get_db),
):
    cart = _resolve_or_create_cart(db, cart_service, cart_id, response)
    cart = cart_service.add_item(db, cart.id, payload.variant_id, payload.quantity)
    return success(data=CartResponse.from_cart(cart), message="Item added to cart")


@router.patch("/items/{variant_id}")
@limiter.limit("60/minute")
def set_cart_item_quantity(
    request: Request,
    response: Response,
    variant_id: int,
    payload: CartItemQuantity,
    cart_id: Optional[int] = Depends(get_cart_id),
    cart_service: CartService = Depends(get_cart_service),
    db: Session = Depends(get_db),
):
    """Set quantity: 0 removes, an existing line is updated, a new line is added"""
    if payload.quantity < 0:
        raise ValidationFailed("Quantity cannot be negative")

    cart = _resolve_or_create_cart(db, cart_service, cart_id, response)
    if payload.quantity == 0:
        cart = cart_service.remove_item(db, cart.id, variant_id)
        message = "Item removed from cart"
    elif any(item.variant_id == variant_id for item in cart.items):
        cart = cart_service.update_item_quantity(db, cart.id, variant_id, payload.quantity)
        message = "Cart item updated"
    else:
        cart = cart_service.add_item(db, cart.id, variant_id, payload.quantity)
        message = "Item added to cart"

    return success(data=CartResponse.from_cart(cart), message=message)


@router.delete("/items/{variant_id}")
def remove_cart_item(
    variant_id: int,
    cart_id: Optional[int] = Depends(get_cart_id),
    cart_service: CartService = Depends(get_cart_service),
    db: Session = Depends(get_db),
):
    cart = _existing_cart(db, cart_service, cart_id)
    cart = cart_service.remove_item(db, cart.id, variant_id)
    return success(data=CartResponse.from_cart(cart), message="Item removed from cart")


@router.delete("")
def clear_cart(
    cart_id: Optional[int] = Depends(get_cart_id),
    cart_service: CartService = Depends(get_cart_service),
    db: Session = Depends(get_db),
):
    cart = _existing_cart(db, cart_service, cart_id)
    cart = cart_service.clear_cart(db, cart.id)
    return success(data=CartResponse.from_cart(cart), message="Cart cleared")
