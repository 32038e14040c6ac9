"""
Variant stock mutations.

Every write to ``stock_qty``/``reserved_qty`` goes through ``StockLedger`` as a
compare-and-swap on ``variants.version``::

    UPDATE variants SET stock_qty=?, reserved_qty=?, version=version+1
    WHERE id=? AND version=?

A lost race re-reads the row and tries again, up to ``max_attempts``. The
ledger never commits; callers own the transaction so multi-variant effects
(checkout, mark-paid, cancel) are all-or-nothing.
"""
from datetime import datetime
from typing import Callable, Tuple

import structlog
from sqlalchemy import update
from sqlalchemy.orm import Session

from oliveshop.core.exceptions import (
    ConcurrentUpdateConflict,
    ConsistencyError,
    InsufficientStock,
    StockInconsistency,
    ValidationFailed,
)
from oliveshop.models.product import Variant

logger = structlog.get_logger()

StockChange = Callable[[Variant], Tuple[int, int]]


class StockLedger:
    def __init__(self, max_attempts: int = 3):
        self.max_attempts = max(1, max_attempts)

    def reserve(self, db: Session, variant_id: int, qty: int) -> Variant:
        def change(variant: Variant) -> Tuple[int, int]:
            available = variant.available_qty
            if qty > available:
                raise InsufficientStock(
                    f"Insufficient stock for {variant.title}. Available: {available}, requested: {qty}",
                    variant_id=variant.id,
                    available=available,
                    requested=qty,
                )
            return variant.stock_qty, variant.reserved_qty + qty

        return self._apply(db, variant_id, change, event="stock_reserved", qty=qty)

    def commit_sale(self, db: Session, variant_id: int, qty: int) -> Variant:
        """Consume reserved stock for a paid line."""

        def change(variant: Variant) -> Tuple[int, int]:
            if variant.reserved_qty < qty:
                raise StockInconsistency(
                    f"Insufficient reserved stock for variant {variant.sku}. "
                    f"Required: {qty}, Reserved: {variant.reserved_qty}"
                )
            return variant.stock_qty - qty, variant.reserved_qty - qty

        return self._apply(db, variant_id, change, event="stock_committed", qty=qty)

    def release(self, db: Session, variant_id: int, qty: int) -> Variant:
        def change(variant: Variant) -> Tuple[int, int]:
            if variant.reserved_qty < qty:
                logger.warning(
                    "reserved_stock_inconsistent",
                    variant_id=variant.id,
                    sku=variant.sku,
                    reserved_qty=variant.reserved_qty,
                    release_qty=qty,
                )
            return variant.stock_qty, max(0, variant.reserved_qty - qty)

        return self._apply(db, variant_id, change, event="stock_released", qty=qty)

    def set_stock(self, db: Session, variant_id: int, stock_qty: int) -> Variant:
        if stock_qty < 0:
            raise ValidationFailed("Stock quantity cannot be negative")

        def change(variant: Variant) -> Tuple[int, int]:
            if stock_qty < variant.reserved_qty:
                raise StockInconsistency(
                    f"Cannot set stock below reserved quantity ({variant.reserved_qty} reserved)"
                )
            return stock_qty, variant.reserved_qty

        return self._apply(db, variant_id, change, event="stock_set", qty=stock_qty)

    def _apply(self, db: Session, variant_id: int, change: StockChange, *, event: str, qty: int) -> Variant:
        for attempt in range(1, self.max_attempts + 1):
            variant = db.get(Variant, variant_id, populate_existing=True)
            if variant is None:
                raise ConsistencyError(f"Variant {variant_id} no longer exists")

            expected_version = variant.version
            new_stock, new_reserved = change(variant)
            if new_stock < 0 or new_reserved < 0 or new_reserved > new_stock:
                raise StockInconsistency(
                    f"Stock update for variant {variant.sku} would break stock invariants "
                    f"(stock={new_stock}, reserved={new_reserved})"
                )

            result = db.execute(
                update(Variant)
                .where(Variant.id == variant_id, Variant.version == expected_version)
                .values(
                    stock_qty=new_stock,
                    reserved_qty=new_reserved,
                    version=Variant.version + 1,
                    updated_at=datetime.utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                db.refresh(variant)
                logger.info(
                    event,
                    variant_id=variant_id,
                    qty=qty,
                    stock_qty=new_stock,
                    reserved_qty=new_reserved,
                    version=variant.version,
                )
                return variant

            logger.warning(
                "variant_version_conflict",
                variant_id=variant_id,
                expected_version=expected_version,
                attempt=attempt,
            )

        raise ConcurrentUpdateConflict(
            f"Variant {variant_id} was modified concurrently; please retry"
        )
