from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from oliveshop.api.deps import get_product_service
from oliveshop.core.rate_limiter import limiter
from oliveshop.db.session import get_db
from oliveshop.services.product_service import ProductService
from oliveshop.utils.response import success

router = APIRouter()


@router.get("")
@limiter.limit("120/minute")
def list_products(
    request: Request,
    type: Optional[str] = Query(None, max_length=100),
    harvest_year: Optional[int] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    in_stock: Optional[bool] = None,
    product_service: ProductService = Depends(get_product_service),
    db: Session = Depends(get_db),
):
    """Active products, optionally filtered"""
    products = product_service.find_products(
        db,
        type=type,
        harvest_year=harvest_year,
        min_price=min_price,
        max_price=max_price,
        in_stock=in_stock,
    )
    return success(data=products, message="Products retrieved successfully")


@router.get("/{slug}")
@limiter.limit("120/minute")
def get_product(
    request: Request,
    slug: str,
    product_service: ProductService = Depends(get_product_service),
    db: Session = Depends(get_db),
):
    product = product_service.find_product_by_slug(db, slug)
    return success(data=product, message="Product retrieved successfully")
