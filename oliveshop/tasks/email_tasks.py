from celery import Task
from celery.utils.log import get_task_logger
from email.message import EmailMessage
from typing import Optional

from oliveshop.core.celery_app import celery_app
from oliveshop.core.config import settings
from oliveshop.utils.email import _send_email_smtp, order_lines_text

logger = get_task_logger(__name__)


# -------------------------------
# Base Task (Retry-safe)
# -------------------------------
class EmailTask(Task):
    """
    Base email task with retries and backoff.
    Prevents email loss on temporary SMTP failures.
    """
    autoretry_for = (Exception,)
    retry_kwargs = {"max_retries": 3}
    retry_backoff = True
    retry_backoff_max = 600  # 10 minutes
    retry_jitter = True
    acks_late = True  # retry if worker crashes


# -------------------------------
# Helper: Build Email
# -------------------------------
def build_email(
    *,
    to: str,
    subject: str,
    text: str,
    from_email: Optional[str] = None,
) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = from_email or f"{settings.EMAILS_FROM_NAME} <{settings.EMAILS_FROM_EMAIL}>"
    msg["To"] = to
    msg.set_content(text)
    return msg


def _send_order_email(task: Task, order_id: int, subject: str, intro: str, event: str) -> None:
    from oliveshop.db.session import SessionLocal
    from oliveshop.models.order import Order

    db = SessionLocal()
    try:
        order = db.get(Order, order_id)
        if not order:
            logger.error("%s_failed: order %s not found", event, order_id)
            return

        text = "\n".join(
            [
                f"Hello {order.full_name or order.email},",
                "",
                intro.format(number=order.number, tracking_url=order.tracking_url or ""),
                "",
                order_lines_text(order),
            ]
        )
        msg = build_email(to=order.email, subject=subject.format(number=order.number), text=text)

        _send_email_smtp(msg)
        logger.info("%s_sent: order %s", event, order.number)

    except Exception as exc:
        logger.exception("%s_error: order %s", event, order_id)
        raise task.retry(exc=exc)
    finally:
        db.close()


# -------------------------------
# Order Received
# -------------------------------
@celery_app.task(base=EmailTask, bind=True)
def send_order_received_email(self, order_id: int):
    _send_order_email(
        self,
        order_id,
        subject="Order Received - {number}",
        intro="We have received your order {number}. It will be dispatched once payment is confirmed.",
        event="order_received_email",
    )


# -------------------------------
# Payment Received
# -------------------------------
@celery_app.task(base=EmailTask, bind=True)
def send_payment_received_email(self, order_id: int):
    _send_order_email(
        self,
        order_id,
        subject="Payment Received - {number}",
        intro="Payment for order {number} has been received. We are preparing it for shipment.",
        event="payment_received_email",
    )


# -------------------------------
# Order Shipped
# -------------------------------
@celery_app.task(base=EmailTask, bind=True)
def send_order_shipped_email(self, order_id: int):
    _send_order_email(
        self,
        order_id,
        subject="Order Shipped - {number}",
        intro="Your order {number} has been shipped. Tracking: {tracking_url}",
        event="order_shipped_email",
    )
