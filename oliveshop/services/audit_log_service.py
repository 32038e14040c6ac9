from typing import Optional

import structlog
from sqlalchemy.orm import Session

from oliveshop.models.audit_log import AuditLog

audit_logger = structlog.get_logger("audit")

UNKNOWN_CORRELATION_ID = "UNKNOWN"


class AuditLogService:
    @staticmethod
    def log_admin_action(
        db: Session,
        *,
        actor: str,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        details: str = "",
        correlation_id: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """
        Persist and emit one audit record for an admin state change.

        Runs after the audited operation has committed; a failure here is
        logged and never raised to the caller.
        """
        correlation_id = correlation_id or UNKNOWN_CORRELATION_ID
        try:
            entry = AuditLog(
                actor=actor,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                details=details,
                correlation_id=correlation_id,
            )
            db.add(entry)
            db.commit()
        except Exception as exc:
            db.rollback()
            audit_logger.error(
                "audit_log_failed",
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                correlation_id=correlation_id,
                error=str(exc),
            )
            return None

        audit_logger.info(
            "audit",
            actor=actor,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            correlation_id=correlation_id,
        )
        return entry
