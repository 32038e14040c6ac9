from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from oliveshop.api.deps import get_checkout_service
from oliveshop.core.rate_limiter import limiter
from oliveshop.db.session import get_db
from oliveshop.schemas.order import OrderResponse
from oliveshop.services.checkout_service import CheckoutService
from oliveshop.utils.response import success

router = APIRouter()


@router.get("/{order_number}")
@limiter.limit("30/minute")
def get_order_by_number(
    request: Request,
    order_number: str,
    checkout_service: CheckoutService = Depends(get_checkout_service),
    db: Session = Depends(get_db),
):
    """Order confirmation lookup by order number"""
    order = checkout_service.get_order_by_number(db, order_number)
    return success(data=OrderResponse.model_validate(order), message="Order retrieved successfully")
