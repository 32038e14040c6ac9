from datetime import datetime, timedelta

from celery import shared_task

from oliveshop.core.config import settings
from oliveshop.db.session import SessionLocal


@shared_task(bind=True, max_retries=3)
def cleanup_stale_carts(self):
    """
    Delete empty carts older than CART_RETENTION_DAYS.
    Runs periodically via Celery Beat.
    """
    from oliveshop.api.deps import get_cart_service, get_shipping_calculator, get_vat_calculator

    cart_service = get_cart_service(get_vat_calculator(), get_shipping_calculator())
    cutoff = datetime.utcnow() - timedelta(days=settings.CART_RETENTION_DAYS)

    db = SessionLocal()
    try:
        return cart_service.purge_stale_carts(db, cutoff)
    except Exception as exc:
        raise self.retry(exc=exc, countdown=60)
    finally:
        db.close()
