import logging

import structlog

from oliveshop.core.logging import bind_correlation_id, clear_correlation_id, configure_logging


def test_audit_logger_stays_at_info():
    configure_logging()

    assert logging.getLogger("audit").level == logging.INFO
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_correlation_id_is_bound_and_cleared():
    bind_correlation_id("corr-42")
    try:
        assert structlog.contextvars.get_contextvars()["correlation_id"] == "corr-42"
    finally:
        clear_correlation_id()

    assert "correlation_id" not in structlog.contextvars.get_contextvars()
