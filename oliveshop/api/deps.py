from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import structlog
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from oliveshop.core.config import settings
from oliveshop.core.security import ACCESS_TOKEN_TYPE, decode_token
from oliveshop.db.session import get_db
from oliveshop.models.user import User, UserRole
from oliveshop.services.admin_catalog_service import AdminCatalogService
from oliveshop.services.admin_order_service import AdminOrderService
from oliveshop.services.audit_log_service import UNKNOWN_CORRELATION_ID, AuditLogService
from oliveshop.services.cart_service import CartService
from oliveshop.services.checkout_service import CheckoutService
from oliveshop.services.notification_service import NotificationService
from oliveshop.services.product_service import ProductService
from oliveshop.services.shipping_calculator import ShippingCalculator
from oliveshop.services.stock_ledger import StockLedger
from oliveshop.services.vat_calculator import VatCalculator

logger = structlog.get_logger()


# --------------------------------------------------
# SERVICES
# --------------------------------------------------
@lru_cache
def get_vat_calculator() -> VatCalculator:
    return VatCalculator(settings.VAT_RATE)


@lru_cache
def get_shipping_calculator() -> ShippingCalculator:
    return ShippingCalculator(settings.SHIPPING_ZONES)


@lru_cache
def get_stock_ledger() -> StockLedger:
    return StockLedger(max_attempts=settings.STOCK_UPDATE_MAX_ATTEMPTS)


@lru_cache
def get_notification_service() -> NotificationService:
    return NotificationService()


def get_cart_service(
    vat_calculator: VatCalculator = Depends(get_vat_calculator),
    shipping_calculator: ShippingCalculator = Depends(get_shipping_calculator),
) -> CartService:
    return CartService(vat_calculator, shipping_calculator, settings.DEFAULT_SHIPPING_ZONE)


def get_checkout_service(
    cart_service: CartService = Depends(get_cart_service),
    notification_service: NotificationService = Depends(get_notification_service),
    stock_ledger: StockLedger = Depends(get_stock_ledger),
) -> CheckoutService:
    return CheckoutService(
        cart_service,
        notification_service,
        stock_ledger,
        order_number_attempts=settings.ORDER_NUMBER_MAX_ATTEMPTS,
    )


def get_admin_order_service(
    notification_service: NotificationService = Depends(get_notification_service),
    stock_ledger: StockLedger = Depends(get_stock_ledger),
) -> AdminOrderService:
    return AdminOrderService(notification_service, stock_ledger)


def get_admin_catalog_service(
    stock_ledger: StockLedger = Depends(get_stock_ledger),
    cart_service: CartService = Depends(get_cart_service),
) -> AdminCatalogService:
    return AdminCatalogService(stock_ledger, cart_service, settings.LOW_STOCK_THRESHOLD)


def get_product_service() -> ProductService:
    return ProductService(settings.LOW_STOCK_THRESHOLD)


# --------------------------------------------------
# REQUEST CONTEXT
# --------------------------------------------------
def get_correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or UNKNOWN_CORRELATION_ID


def get_cart_id(request: Request) -> Optional[int]:
    """Cart id from the cart cookie; None when absent or malformed."""
    raw = request.cookies.get(settings.CART_COOKIE_NAME)
    if not raw:
        return None
    try:
        cart_id = int(raw)
    except ValueError:
        logger.warning("cart_cookie_invalid", value=raw)
        return None
    return cart_id if cart_id > 0 else None


# --------------------------------------------------
# AUTH
# --------------------------------------------------
def _extract_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip()
    return request.cookies.get("access_token")


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """Get current authenticated user from cookie or bearer token."""
    token = _extract_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(token)
    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
        )

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )

    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return user


def require_admin(
    request: Request,
    current_user: User = Depends(get_current_user),
) -> User:
    if current_user.role != UserRole.ADMIN:
        logger.warning(
            "admin_access_denied",
            user_id=current_user.id,
            path=request.url.path,
            method=request.method,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )

    logger.info(
        "admin_action",
        admin_id=current_user.id,
        path=request.url.path,
        method=request.method,
    )
    return current_user


# --------------------------------------------------
# AUDIT
# --------------------------------------------------
@dataclass
class AuditContext:
    """Actor and correlation id of the inbound admin call."""
    actor: str
    correlation_id: str

    def record(
        self,
        db: Session,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        details: str = "",
    ) -> None:
        AuditLogService.log_admin_action(
            db,
            actor=self.actor,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            correlation_id=self.correlation_id,
        )


def get_audit_context(
    admin: User = Depends(require_admin),
    correlation_id: str = Depends(get_correlation_id),
) -> AuditContext:
    return AuditContext(actor=admin.email, correlation_id=correlation_id)
