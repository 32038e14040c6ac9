from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple, Type

import structlog
from sqlalchemy import func, update
from sqlalchemy.orm import Session, joinedload, selectinload

from oliveshop.core.exceptions import (
    ConcurrentUpdateConflict,
    InvalidOrderTransition,
    OrderNotFound,
    ValidationFailed,
)
from oliveshop.models.order import FulfillmentStatus, Order, OrderItem, OrderStatus, PaymentStatus
from oliveshop.models.product import Variant
from oliveshop.services.notification_service import NotificationService
from oliveshop.services.stock_ledger import StockLedger

logger = structlog.get_logger()


def parse_status_filter(value: Optional[str], enum_cls: Type[Enum], label: str):
    """Map a case-insensitive filter string onto ``enum_cls``; blank means no filter."""
    if value is None or not value.strip():
        return None
    try:
        return enum_cls[value.strip().upper()]
    except KeyError:
        raise ValidationFailed(f"Invalid {label} status: {value}")


class AdminOrderService:
    """
    Admin-driven order transitions.

    Payment commits reserved stock, cancellation releases it. Order rows are
    written with a version compare-and-swap; precondition failures are
    reported as conflicts and never retried.
    """

    def __init__(self, notification_service: NotificationService, stock_ledger: StockLedger):
        self.notification_service = notification_service
        self.stock_ledger = stock_ledger

    def list_orders(
        self,
        db: Session,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        fulfillment_status: Optional[str] = None,
    ) -> Tuple[List[dict], int]:
        order_status = parse_status_filter(status, OrderStatus, "order")
        payment = parse_status_filter(payment_status, PaymentStatus, "payment")
        fulfillment = parse_status_filter(fulfillment_status, FulfillmentStatus, "fulfillment")

        query = db.query(Order)
        if order_status is not None:
            query = query.filter(Order.status == order_status)
        if payment is not None:
            query = query.filter(Order.payment_status == payment)
        if fulfillment is not None:
            query = query.filter(Order.fulfillment_status == fulfillment)

        total = query.count()
        orders = (
            query.order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        item_counts = {}
        if orders:
            item_counts = dict(
                db.query(OrderItem.order_id, func.count(OrderItem.id))
                .filter(OrderItem.order_id.in_([order.id for order in orders]))
                .group_by(OrderItem.order_id)
                .all()
            )

        summaries = [
            {
                "id": order.id,
                "number": order.number,
                "email": order.email,
                "total": order.total,
                "status": order.status,
                "payment_status": order.payment_status,
                "fulfillment_status": order.fulfillment_status,
                "created_at": order.created_at,
                "item_count": int(item_counts.get(order.id, 0)),
            }
            for order in orders
        ]
        return summaries, total

    def get_order(self, db: Session, order_id: int) -> Order:
        order = (
            db.query(Order)
            .options(
                selectinload(Order.items).joinedload(OrderItem.variant).joinedload(Variant.product)
            )
            .filter(Order.id == order_id)
            .first()
        )
        if not order:
            raise OrderNotFound(order_id)
        return order

    def mark_paid(self, db: Session, order_id: int) -> Order:
        try:
            order = self._load_for_update(db, order_id)
            if order.payment_status == PaymentStatus.PAID:
                raise InvalidOrderTransition(f"Order {order.number} is already marked as paid")
            if order.status == OrderStatus.CANCELLED:
                raise InvalidOrderTransition(f"Cannot mark cancelled order {order.number} as paid")

            for item in order.items:
                self.stock_ledger.commit_sale(db, item.variant_id, item.qty)

            self._write_order(
                db,
                order,
                payment_status=PaymentStatus.PAID,
                status=OrderStatus.CONFIRMED,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("order_marked_paid", order_id=order_id, order_number=order.number)
        order = self.get_order(db, order_id)
        self.notification_service.payment_received(order)
        return order

    def ship_order(self, db: Session, order_id: int, tracking_url: Optional[str] = None) -> Order:
        try:
            order = self._load_for_update(db, order_id)
            if order.payment_status != PaymentStatus.PAID:
                raise InvalidOrderTransition(f"Cannot ship unpaid order {order.number}")
            if order.fulfillment_status == FulfillmentStatus.FULFILLED:
                raise InvalidOrderTransition(f"Order {order.number} is already shipped")
            if order.status == OrderStatus.CANCELLED:
                raise InvalidOrderTransition(f"Cannot ship cancelled order {order.number}")

            self._write_order(
                db,
                order,
                fulfillment_status=FulfillmentStatus.FULFILLED,
                tracking_url=tracking_url.strip() if tracking_url and tracking_url.strip() else None,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("order_shipped", order_id=order_id, order_number=order.number)
        order = self.get_order(db, order_id)
        self.notification_service.order_shipped(order)
        return order

    def cancel_order(self, db: Session, order_id: int) -> Order:
        try:
            order = self._load_for_update(db, order_id)
            if order.status == OrderStatus.CANCELLED:
                raise InvalidOrderTransition(f"Order {order.number} is already cancelled")
            if order.payment_status == PaymentStatus.PAID:
                raise InvalidOrderTransition(f"Cannot cancel paid order {order.number}; a refund is required")
            if order.fulfillment_status == FulfillmentStatus.FULFILLED:
                raise InvalidOrderTransition(f"Cannot cancel a fulfilled order {order.number}")

            for item in order.items:
                self.stock_ledger.release(db, item.variant_id, item.qty)

            self._write_order(db, order, status=OrderStatus.CANCELLED)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("order_cancelled", order_id=order_id, order_number=order.number)
        return self.get_order(db, order_id)

    @staticmethod
    def _load_for_update(db: Session, order_id: int) -> Order:
        order = db.get(
            Order,
            order_id,
            options=[selectinload(Order.items)],
            populate_existing=True,
        )
        if not order:
            raise OrderNotFound(order_id)
        return order

    @staticmethod
    def _write_order(db: Session, order: Order, **values) -> None:
        """Conditional UPDATE on ``orders.version``; a concurrent writer wins."""
        result = db.execute(
            update(Order)
            .where(Order.id == order.id, Order.version == order.version)
            .values(version=Order.version + 1, updated_at=datetime.utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning("order_version_conflict", order_id=order.id, expected_version=order.version)
            raise ConcurrentUpdateConflict(
                f"Order {order.number} was modified concurrently; reload and retry"
            )
        db.refresh(order)
