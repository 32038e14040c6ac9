import logging
import structlog
from oliveshop.core.config import settings

CORRELATION_ID_KEY = "correlation_id"
AUDIT_LOGGER_NAME = "audit"

# Request logging middleware already covers what these emit per request
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")


def configure_logging():
    """Structured logging for the API process and the Celery worker.

    Events are rendered as JSON outside DEBUG. Anything bound with
    ``bind_correlation_id`` is merged into every event of the current request.
    The ``audit`` logger stays at INFO even when the root level is raised.
    """
    renderer = structlog.dev.ConsoleRenderer() if settings.DEBUG else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
    )
    logging.getLogger(AUDIT_LOGGER_NAME).setLevel(logging.INFO)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(**{CORRELATION_ID_KEY: correlation_id})


def clear_correlation_id() -> None:
    structlog.contextvars.unbind_contextvars(CORRELATION_ID_KEY)
