import smtplib
from email.message import EmailMessage

from oliveshop.core.config import settings


def _send_email_smtp(msg: EmailMessage) -> None:
    """
    Send an email message over SMTP.
    This is intended to be called from Celery workers, not request handlers.
    """
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
        server.ehlo()
        server.starttls()
        server.ehlo()
        if settings.SMTP_USER and settings.SMTP_PASSWORD:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.send_message(msg)


def order_lines_text(order) -> str:
    lines = [
        f"  {item.qty} x {item.title_snapshot} @ {item.price_snapshot} = {item.line_total}"
        for item in order.items
    ]
    lines.append("")
    lines.append(f"  Subtotal: {order.subtotal}")
    lines.append(f"  VAT included: {order.tax}")
    lines.append(f"  Shipping: {order.shipping}")
    lines.append(f"  Total: {order.total}")
    return "\n".join(lines)
