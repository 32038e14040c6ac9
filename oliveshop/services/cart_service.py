from datetime import datetime
from decimal import Decimal
from typing import List

import structlog
from sqlalchemy.orm import Session, joinedload, selectinload

from oliveshop.core.exceptions import (
    CartItemNotFound,
    CartNotFound,
    InsufficientStock,
    ValidationFailed,
    VariantNotFound,
)
from oliveshop.models.cart import Cart, CartItem
from oliveshop.models.product import Variant
from oliveshop.services.shipping_calculator import ShippingCalculator
from oliveshop.services.vat_calculator import VatCalculator

logger = structlog.get_logger()

ZERO = Decimal("0.00")


class CartService:
    """
    Anonymous shopping carts.

    Totals are never adjusted incrementally: every mutation re-reads the
    persisted items and recomputes subtotal, VAT (informational, already
    included in prices), shipping for the default zone and total.
    """

    def __init__(
        self,
        vat_calculator: VatCalculator,
        shipping_calculator: ShippingCalculator,
        shipping_zone: str = "domestic",
    ):
        self.vat_calculator = vat_calculator
        self.shipping_calculator = shipping_calculator
        self.shipping_zone = shipping_zone

    def create_cart(self, db: Session) -> Cart:
        cart = Cart(subtotal=ZERO, vat_amount=ZERO, shipping_cost=ZERO, total=ZERO)
        db.add(cart)
        db.commit()
        db.refresh(cart)
        logger.info("cart_created", cart_id=cart.id)
        return cart

    def get_cart_with_items(self, db: Session, cart_id: int) -> Cart:
        cart = (
            db.query(Cart)
            .options(selectinload(Cart.items).joinedload(CartItem.variant))
            .filter(Cart.id == cart_id)
            .first()
        )
        if not cart:
            raise CartNotFound(cart_id)
        return cart

    def find_cart(self, db: Session, cart_id: int):
        """Like ``get_cart_with_items`` but returns None for an unknown id."""
        try:
            return self.get_cart_with_items(db, cart_id)
        except CartNotFound:
            return None

    def add_item(self, db: Session, cart_id: int, variant_id: int, qty: int) -> Cart:
        if qty is None or qty <= 0:
            raise ValidationFailed("Quantity must be greater than 0")

        try:
            cart = self._get_cart(db, cart_id)
            variant = db.get(Variant, variant_id)
            if not variant:
                raise VariantNotFound(variant_id)

            available = variant.available_qty
            item = self._find_item(db, cart.id, variant_id)
            if item:
                combined = item.qty + qty
                if combined > available:
                    raise InsufficientStock(
                        f"Insufficient stock. Available: {available}, requested: {qty}, "
                        f"total requested: {combined}",
                        variant_id=variant_id,
                        available=available,
                        requested=combined,
                    )
                item.qty = combined
            else:
                if qty > available:
                    raise InsufficientStock(
                        f"Insufficient stock. Available: {available}, requested: {qty}",
                        variant_id=variant_id,
                        available=available,
                        requested=qty,
                    )
                db.add(
                    CartItem(
                        cart_id=cart.id,
                        variant_id=variant.id,
                        qty=qty,
                        price_snapshot=variant.price,
                    )
                )

            self.recalculate_totals(db, cart)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("cart_item_added", cart_id=cart_id, variant_id=variant_id, qty=qty)
        return self.get_cart_with_items(db, cart_id)

    def update_item_quantity(self, db: Session, cart_id: int, variant_id: int, qty: int) -> Cart:
        """Set a line's quantity; zero removes the line."""
        try:
            cart = self._get_cart(db, cart_id)
            if qty < 0:
                raise ValidationFailed("Quantity cannot be negative")

            item = self._find_item(db, cart.id, variant_id)
            if not item:
                raise CartItemNotFound()

            if qty == 0:
                db.delete(item)
            else:
                variant = db.get(Variant, variant_id)
                if not variant:
                    raise VariantNotFound(variant_id)
                available = variant.available_qty
                if qty > available:
                    raise InsufficientStock(
                        f"Insufficient stock. Available: {available}, requested: {qty}",
                        variant_id=variant_id,
                        available=available,
                        requested=qty,
                    )
                item.qty = qty

            self.recalculate_totals(db, cart)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("cart_item_updated", cart_id=cart_id, variant_id=variant_id, qty=qty)
        return self.get_cart_with_items(db, cart_id)

    def remove_item(self, db: Session, cart_id: int, variant_id: int) -> Cart:
        try:
            cart = self._get_cart(db, cart_id)
            db.query(CartItem).filter(
                CartItem.cart_id == cart.id,
                CartItem.variant_id == variant_id,
            ).delete()
            self.recalculate_totals(db, cart)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("cart_item_removed", cart_id=cart_id, variant_id=variant_id)
        return self.get_cart_with_items(db, cart_id)

    def clear_cart(self, db: Session, cart_id: int) -> Cart:
        try:
            cart = self._get_cart(db, cart_id)
            self.clear_items(db, cart)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("cart_cleared", cart_id=cart_id)
        return self.get_cart_with_items(db, cart_id)

    def clear_items(self, db: Session, cart: Cart) -> None:
        """Drop all lines and zero the totals without committing."""
        db.query(CartItem).filter(CartItem.cart_id == cart.id).delete()
        db.expire(cart, ["items"])
        cart.subtotal = ZERO
        cart.vat_amount = ZERO
        cart.shipping_cost = ZERO
        cart.total = ZERO
        cart.updated_at = datetime.utcnow()

    def recalculate_totals(self, db: Session, cart: Cart) -> Cart:
        db.flush()
        items: List[CartItem] = (
            db.query(CartItem)
            .options(joinedload(CartItem.variant))
            .filter(CartItem.cart_id == cart.id)
            .all()
        )

        subtotal = sum((item.line_total for item in items), ZERO)
        weight_grams = sum(self._line_weight_grams(item) for item in items)
        shipping = self.shipping_calculator.calculate_shipping_cost(self.shipping_zone, weight_grams)

        cart.subtotal = subtotal
        cart.vat_amount = self.vat_calculator.extract_vat_amount(subtotal)
        cart.shipping_cost = shipping if shipping is not None else ZERO
        cart.total = cart.subtotal + cart.shipping_cost
        cart.updated_at = datetime.utcnow()
        db.expire(cart, ["items"])
        return cart

    def purge_stale_carts(self, db: Session, older_than: datetime) -> int:
        """Delete carts without items created before ``older_than``."""
        stale_ids = [
            cart_id
            for (cart_id,) in (
                db.query(Cart.id)
                .outerjoin(CartItem, CartItem.cart_id == Cart.id)
                .filter(Cart.created_at < older_than, CartItem.id.is_(None))
                .all()
            )
        ]
        if not stale_ids:
            return 0

        try:
            db.query(Cart).filter(Cart.id.in_(stale_ids)).delete()
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("cart_cleanup_completed", deleted=len(stale_ids), cutoff=older_than.isoformat())
        return len(stale_ids)

    @staticmethod
    def _line_weight_grams(item: CartItem) -> int:
        variant = item.variant
        if variant is None or variant.shipping_weight is None:
            return 0
        # Truncate toward zero per line
        return int(Decimal(variant.shipping_weight) * item.qty)

    @staticmethod
    def _get_cart(db: Session, cart_id: int) -> Cart:
        cart = db.get(Cart, cart_id)
        if not cart:
            raise CartNotFound(cart_id)
        return cart

    @staticmethod
    def _find_item(db: Session, cart_id: int, variant_id: int):
        return (
            db.query(CartItem)
            .filter(CartItem.cart_id == cart_id, CartItem.variant_id == variant_id)
            .first()
        )
