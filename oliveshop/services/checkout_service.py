import random
import re
from datetime import datetime
from typing import Callable, Optional

import structlog
from sqlalchemy.orm import Session, joinedload, selectinload

from oliveshop.core.exceptions import (
    CartNotFound,
    ConflictError,
    ConsistencyError,
    InsufficientStock,
    OrderNotFound,
    ValidationFailed,
)
from oliveshop.models.cart import Cart, CartItem
from oliveshop.models.order import FulfillmentStatus, Order, OrderItem, OrderStatus, PaymentStatus
from oliveshop.models.product import Variant
from oliveshop.schemas.order import CheckoutRequest
from oliveshop.services.cart_service import CartService
from oliveshop.services.notification_service import NotificationService
from oliveshop.services.stock_ledger import StockLedger

logger = structlog.get_logger()

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9+_.-]+@([A-Za-z0-9.-]+\.[A-Za-z]{2,})$")
MIN_ADDRESS_LENGTH = 10


def generate_order_number(db: Session, max_attempts: int = 10, now: Optional[Callable[[], datetime]] = None) -> str:
    """ORD-<yyyyMMddHHmmss>-<4 digits>, retried until unused."""
    now = now or datetime.now

    for _ in range(max_attempts):
        order_number = f"ORD-{now().strftime('%Y%m%d%H%M%S')}-{random.randint(1000, 9999)}"
        existing = db.query(Order.id).filter(Order.number == order_number).first()
        if not existing:
            return order_number

    raise ConflictError("Failed to generate unique order number")


def build_address_summary(request: CheckoutRequest) -> str:
    street = request.street1
    if request.street2:
        street = f"{street}, {request.street2}"
    return f"{street}, {request.city}, {request.region} {request.postal_code}, {request.country}"


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class CheckoutService:
    """
    Turns a cart into a PENDING order.

    Stock is reserved (not deducted) for every line; the whole checkout is
    one transaction so a failure on any line leaves no reservation behind.
    """

    def __init__(
        self,
        cart_service: CartService,
        notification_service: NotificationService,
        stock_ledger: StockLedger,
        order_number_attempts: int = 10,
    ):
        self.cart_service = cart_service
        self.notification_service = notification_service
        self.stock_ledger = stock_ledger
        self.order_number_attempts = order_number_attempts

    def checkout(self, db: Session, cart_id: int, request: CheckoutRequest) -> Order:
        self._validate_request(request)
        contact = {
            "email": request.email.strip(),
            "address": build_address_summary(request),
            "full_name": request.full_name.strip(),
            "phone": request.phone.strip() if request.phone else None,
            "street1": request.street1.strip(),
            "street2": request.street2.strip() if request.street2 else None,
            "city": request.city.strip(),
            "region": request.region.strip(),
            "postal_code": request.postal_code.strip(),
            "country": request.country.strip(),
        }
        return self._place_order(db, cart_id, contact)

    def legacy_checkout(self, db: Session, cart_id: int, email: str, address: str) -> Order:
        """Email plus a single free-form address line."""
        self._validate_email(email)
        if _is_blank(address):
            raise ValidationFailed("Address is required")
        if len(address.strip()) < MIN_ADDRESS_LENGTH:
            raise ValidationFailed(f"Address must be at least {MIN_ADDRESS_LENGTH} characters long")

        return self._place_order(db, cart_id, {"email": email.strip(), "address": address.strip()})

    def get_order_by_number(self, db: Session, number: str) -> Order:
        order = (
            db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.number == number)
            .first()
        )
        if not order:
            raise OrderNotFound(number=number)
        return order

    def _place_order(self, db: Session, cart_id: int, contact: dict) -> Order:
        try:
            cart = db.get(Cart, cart_id)
            if not cart:
                raise CartNotFound(cart_id)

            cart_items = (
                db.query(CartItem)
                .options(joinedload(CartItem.variant))
                .filter(CartItem.cart_id == cart.id)
                .order_by(CartItem.id)
                .all()
            )
            if not cart_items:
                raise ConflictError("Cannot checkout with empty cart")

            self._check_availability(cart_items)

            for item in cart_items:
                self.stock_ledger.reserve(db, item.variant_id, item.qty)

            order = Order(
                number=generate_order_number(db, self.order_number_attempts),
                subtotal=cart.subtotal,
                tax=cart.vat_amount,
                shipping=cart.shipping_cost,
                total=cart.total,
                status=OrderStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                fulfillment_status=FulfillmentStatus.UNFULFILLED,
                **contact,
            )
            for item in cart_items:
                order.items.append(
                    OrderItem(
                        variant_id=item.variant_id,
                        title_snapshot=item.variant.title,
                        qty=item.qty,
                        price_snapshot=item.price_snapshot,
                        line_total=item.line_total,
                    )
                )
            db.add(order)

            self.cart_service.clear_items(db, cart)
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(order)
        logger.info(
            "order_created",
            order_id=order.id,
            order_number=order.number,
            cart_id=cart_id,
            total=str(order.total),
            item_count=len(order.items),
        )

        self.notification_service.order_received(order)
        return order

    @staticmethod
    def _check_availability(cart_items) -> None:
        """Fail before reserving anything if any line is short."""
        for item in cart_items:
            variant: Variant = item.variant
            if variant is None:
                raise ConsistencyError(f"Variant {item.variant_id} referenced by cart no longer exists")
            available = variant.available_qty
            if item.qty > available:
                raise InsufficientStock(
                    f"Insufficient stock for {variant.title}. Available: {available}, requested: {item.qty}",
                    variant_id=variant.id,
                    available=available,
                    requested=item.qty,
                )

    def _validate_request(self, request: CheckoutRequest) -> None:
        self._validate_email(request.email)

        required = (
            (request.full_name, "Full name is required"),
            (request.street1, "Street address is required"),
            (request.city, "City is required"),
            (request.region, "Region/State is required"),
            (request.postal_code, "Postal code is required"),
            (request.country, "Country is required"),
        )
        for value, message in required:
            if _is_blank(value):
                raise ValidationFailed(message)

    @staticmethod
    def _validate_email(email: Optional[str]) -> None:
        if _is_blank(email):
            raise ValidationFailed("Email is required")
        if not EMAIL_PATTERN.match(email.strip()):
            raise ValidationFailed("Invalid email format")
