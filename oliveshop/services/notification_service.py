import structlog

from oliveshop.core.config import settings
from oliveshop.models.order import Order

logger = structlog.get_logger()


class NotificationService:
    """
    Customer-facing order notifications.

    Every method is best-effort: failures are logged and swallowed so they
    never undo the order operation that triggered them.
    """

    def __init__(self, emails_enabled: bool = None):
        self.emails_enabled = settings.ORDER_EMAILS_ENABLED if emails_enabled is None else emails_enabled

    def order_received(self, order: Order) -> None:
        self._notify("order_received_notification", order, "send_order_received_email")

    def payment_received(self, order: Order) -> None:
        self._notify("payment_received_notification", order, "send_payment_received_email")

    def order_shipped(self, order: Order) -> None:
        self._notify(
            "order_shipped_notification",
            order,
            "send_order_shipped_email",
            tracking_url=order.tracking_url,
        )

    def _notify(self, event: str, order: Order, task_name: str, **extra) -> None:
        try:
            logger.info(
                event,
                order_id=order.id,
                order_number=order.number,
                email=order.email,
                total=str(order.total),
                **extra,
            )
            if self.emails_enabled:
                from oliveshop.tasks import email_tasks

                result = getattr(email_tasks, task_name).delay(order.id)
                logger.info("order_email_queued", order_id=order.id, task=task_name, task_id=result.id)
        except Exception as exc:
            logger.error(
                "notification_failed",
                notification=event,
                order_id=getattr(order, "id", None),
                error=str(exc),
            )
