from sqlalchemy.orm import Session
import logging
from oliveshop.models.user import User, UserRole
from oliveshop.core.config import settings
from oliveshop.core.security import hash_password

logger = logging.getLogger(__name__)


def init_db(db: Session) -> None:
    """Initialize database with the bootstrap admin account"""

    admin_email = settings.DEFAULT_ADMIN_EMAIL.strip().lower()
    admin = db.query(User).filter(User.email == admin_email).first()
    if admin:
        logger.info("admin_user_exists email=%s", admin_email)
        return

    seed_password = (settings.DEFAULT_ADMIN_PASSWORD or "").strip()
    if not seed_password:
        message = (
            "Missing admin bootstrap credentials: set DEFAULT_ADMIN_PASSWORD "
            "or create an admin user manually before launch."
        )
        if settings.ENVIRONMENT == "production":
            logger.error("%s env=%s", message, settings.ENVIRONMENT)
            raise RuntimeError(message)
        logger.warning("%s env=%s", message, settings.ENVIRONMENT)
        return

    admin = User(
        email=admin_email,
        password_hash=hash_password(seed_password),
        full_name=f"{settings.EMAILS_FROM_NAME} Admin",
        role=UserRole.ADMIN,
        is_active=True,
    )
    db.add(admin)
    db.commit()
    logger.info("admin_user_created email=%s", admin_email)


if __name__ == "__main__":
    from oliveshop.db.session import SessionLocal
    db = SessionLocal()
    try:
        init_db(db)
    finally:
        db.close()
