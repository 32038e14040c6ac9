from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging
from oliveshop.core.config import settings
from oliveshop.core.logging import configure_logging

celery_app = Celery(
    "oliveshop",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["oliveshop.tasks.email_tasks", "oliveshop.tasks.cart_tasks"]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    task_track_started=True,

    task_time_limit=300,        # Hard limit (5 min)
    task_soft_time_limit=240,   # Soft limit (4 min)

    worker_prefetch_multiplier=4,
    worker_max_tasks_per_child=1000,

    task_acks_late=True,
    task_reject_on_worker_lost=True,

    result_expires=3600,
)

celery_app.conf.task_routes = {
    "oliveshop.tasks.email_tasks.*": {"queue": "emails"},
}

celery_app.conf.beat_schedule = {
    "cleanup-stale-carts-hourly": {
        "task": "oliveshop.tasks.cart_tasks.cleanup_stale_carts",
        "schedule": crontab(minute=15),
    },
}


@setup_logging.connect
def setup_worker_logging(**kwargs):
    configure_logging()
