from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status
from sqlalchemy.orm import Session

from oliveshop.api.deps import (
    AuditContext,
    get_admin_catalog_service,
    get_admin_order_service,
    get_audit_context,
    get_cart_service,
    require_admin,
)
from oliveshop.core.config import settings
from oliveshop.core.rate_limiter import limiter
from oliveshop.db.session import get_db
from oliveshop.models.user import User
from oliveshop.schemas.order import AdminOrderResponse, CancelOrderRequest, OrderSummaryResponse, ShipOrderRequest
from oliveshop.schemas.product import (
    LotCreate,
    LotUpdate,
    ProductCreate,
    ProductUpdate,
    VariantCreate,
    VariantUpdate,
)
from oliveshop.services.admin_catalog_service import AdminCatalogService
from oliveshop.services.admin_order_service import AdminOrderService
from oliveshop.services.cart_service import CartService
from oliveshop.utils.response import paginated_response, success

router = APIRouter()


# ============= DASHBOARD & MAINTENANCE =============

@router.get("/dashboard")
@limiter.limit("60/minute")
def dashboard(
    request: Request,
    current_admin: User = Depends(require_admin),
    catalog_service: AdminCatalogService = Depends(get_admin_catalog_service),
    db: Session = Depends(get_db),
):
    return success(data=catalog_service.dashboard_stats(db), message="Dashboard stats retrieved")


@router.post("/maintenance/cleanup-stale-carts")
@limiter.limit("10/minute")
def cleanup_stale_carts_admin(
    request: Request,
    audit: AuditContext = Depends(get_audit_context),
    cart_service: CartService = Depends(get_cart_service),
    db: Session = Depends(get_db),
):
    cutoff = datetime.utcnow() - timedelta(days=settings.CART_RETENTION_DAYS)
    deleted = cart_service.purge_stale_carts(db, cutoff)
    audit.record(db, "CART_CLEANUP", "Cart", None, f"Deleted {deleted} empty cart(s) created before {cutoff.isoformat()}")
    return success(data={"deleted_carts": deleted}, message="Stale carts cleaned")


# ============= PRODUCT MANAGEMENT =============

@router.get("/products")
@limiter.limit("60/minute")
def list_products(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_admin: User = Depends(require_admin),
    catalog_service: AdminCatalogService = Depends(get_admin_catalog_service),
    db: Session = Depends(get_db),
):
    products, total = catalog_service.list_products(db, page, limit)
    return paginated_response(products, total, page, limit, message="Products retrieved successfully")


@router.post("/products", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_product(
    request: Request,
    payload: ProductCreate,
    audit: AuditContext = Depends(get_audit_context),
    catalog_service: AdminCatalogService = Depends(get_admin_catalog_service),
    db: Session = Depends(get_db),
):
    product = catalog_service.create_product(db, payload)
    audit.record(db, "PRODUCT_CREATE", "Product", product.id, f"Created product '{product.slug}'")
    return success(data=catalog_service.product_response(db, product), message="Product created successfully")


@router.get("/products/{product_id}")
@limiter.limit("60/minute")
def get_product(
    request: Request,
    product_id: int,
    current_admin: User = Depends(require_admin),
    catalog_service: AdminCatalogService = Depends(get_admin_catalog_service),
    db: Session = Depends(get_db),
):
    product = catalog_service.get_product(db, product_id)
    return success(data=catalog_service.product_response(db, product), message="Product retrieved successfully")


@router.patch("/products/{product_id}")
@limiter.limit("30/minute")
def update_product(
    request: Request,
    product_id: int,
    payload: ProductUpdate,
    audit: AuditContext = Depends(get_audit_context),
    catalog_service: AdminCatalogService = Depends(get_admin_catalog_service),
    db: Session = Depends(get_db),
):
    product = catalog_service.update_product(db, product_id, payload)
    audit.record(
        db, "PRODUCT_UPDATE", "Product", product.id,
        f"Updated fields: {', '.join(sorted(payload.model_fields_set)) or 'none'}",
    )
    return success(data=catalog_service.product_response(db, product), message="Product updated successfully")


@router.delete("/products/{product_id}")
@limiter.limit("20/minute")
def delete_product(
    request: Request,
    product_id: int,
    audit: AuditContext = Depends(get_audit_context),
    catalog_service: AdminCatalogService = Depends(get_admin_catalog_service),
    db: Session = Depends(get_db),
):
    catalog_service.delete_product(db, product_id)
    audit.record(db, "PRODUCT_DELETE", "Product", product_id, "Deleted product")
    return success(message="Product deleted successfully")


# ============= VARIANT MANAGEMENT =============

@router.get("/products/{product_id}/variants")
@limiter.limit("60/minute")
def list_variants(
    request: Request,
    product_id: int,
    current_admin: User = Depends(require_admin),
    catalog_service: AdminCatalogService = Depends(get_admin_catalog_service),
    db: Session = Depends(get_db),
):
    variants = catalog_service.list_variants(db, product_id)
    return success(
        data=[catalog_service.variant_response(variant) for variant in variants],
        message="Variants retrieved successfully",
    )


@router.post("/products/{product_id}/variants", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_variant(
    request: Request,
    product_id: int,
    payload: VariantCreate,
    audit: AuditContext = Depends(get_audit_context),
    catalog_service: AdminCatalogService = Depends(get_admin_catalog_service),
    db: Session = Depends(get_db),
):
    variant = catalog_service.create_variant(db, product_id, payload)
    audit.record(
        db, "VARIANT_CREATE", "Variant", variant.id,
        f"Created variant {variant.sku} for product {product_id} with stock {variant.stock_qty}",
    )
    return success(data=catalog_service.variant_response(variant), message="Variant created successfully")


@router.get("/variants/{variant_id}")
@limiter.limit("60/minute")
def get_variant(
    request: Request,
    variant_id: int,
    current_admin: User = Depends(require_admin),
    catalog_service: AdminCatalogService = Depends(get_admin_catalog_service),
    db: Session = Depends(get_db),
):
    variant = catalog_service.get_variant(db, variant_id)
    return success(data=catalog_service.variant_response(variant), message="Variant retrieved successfully")


@router.patch("/variants/{variant_id}")
@limiter.limit("30/minute")
def update_variant(
    request: Request,
    variant_id: int,
    payload: VariantUpdate,
    audit: AuditContext = Depends(get_audit_context),
    catalog_service: AdminCatalogService = Depends(get_admin_catalog_service),
    db: Session = Depends(get_db),
):
    variant = catalog_service.update_variant(db, variant_id, payload)
    audit.record(
        db, "VARIANT_UPDATE", "Variant", variant.id,
        f"Updated fields: {', '.join(sorted(payload.model_fields_set)) or 'none'}",
    )
    return success(data=catalog_service.variant_response(variant), message="Variant updated successfully")


@router.delete("/variants/{variant_id}")
@limiter.limit("20/minute")
def delete_variant(
    request: Request,
    variant_id: int,
    audit: AuditContext = Depends(get_audit_context),
    catalog_service: AdminCatalogService = Depends(get_admin_catalog_service),
    db: Session = Depends(get_db),
):
    catalog_service.delete_variant(db, variant_id)
    audit.record(db, "VARIANT_DELETE", "Variant", variant_id, "Deleted variant")
    return success(message="Variant deleted successfully")


# ============= LOT MANAGEMENT =============

@router.get("/products/{product_id}/lots")
@limiter.limit("60/minute")
def list_lots(
    request: Request,
    product_id: int,
    current_admin: User = Depends(require_admin),
    catalog_service: AdminCatalogService = Depends(get_admin_catalog_service),
    db: Session = Depends(get_db),
):
    lots = catalog_service.list_lots(db, product_id)
    return success(
        data=[catalog_service.lot_response(db, lot) for lot in lots],
        message="Lots retrieved successfully",
    )


@router.post("/products/{product_id}/lots", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_lot(
    request: Request,
    product_id: int,
    payload: LotCreate,
    audit: AuditContext = Depends(get_audit_context),
    catalog_service: AdminCatalogService = Depends(get_admin_catalog_service),
    db: Session = Depends(get_db),
):
    lot = catalog_service.create_lot(db, product_id, payload)
    audit.record(
        db, "LOT_CREATE", "Lot", lot.id,
        f"Created {lot.season.value} {lot.harvest_year} lot for product {product_id}",
    )
    return success(data=catalog_service.lot_response(db, lot), message="Lot created successfully")


@router.get("/lots/{lot_id}")
@limiter.limit("60/minute")
def get_lot(
    request: Request,
    lot_id: int,
    current_admin: User = Depends(require_admin),
    catalog_service: AdminCatalogService = Depends(get_admin_catalog_service),
    db: Session = Depends(get_db),
):
    lot = catalog_service.get_lot(db, lot_id)
    return success(data=catalog_service.lot_response(db, lot), message="Lot retrieved successfully")


@router.patch("/lots/{lot_id}")
@limiter.limit("30/minute")
def update_lot(
    request: Request,
    lot_id: int,
    payload: LotUpdate,
    audit: AuditContext = Depends(get_audit_context),
    catalog_service: AdminCatalogService = Depends(get_admin_catalog_service),
    db: Session = Depends(get_db),
):
    lot = catalog_service.update_lot(db, lot_id, payload)
    audit.record(
        db, "LOT_UPDATE", "Lot", lot.id,
        f"Updated fields: {', '.join(sorted(payload.model_fields_set)) or 'none'}",
    )
    return success(data=catalog_service.lot_response(db, lot), message="Lot updated successfully")


@router.delete("/lots/{lot_id}")
@limiter.limit("20/minute")
def delete_lot(
    request: Request,
    lot_id: int,
    audit: AuditContext = Depends(get_audit_context),
    catalog_service: AdminCatalogService = Depends(get_admin_catalog_service),
    db: Session = Depends(get_db),
):
    catalog_service.delete_lot(db, lot_id)
    audit.record(db, "LOT_DELETE", "Lot", lot_id, "Deleted lot")
    return success(message="Lot deleted successfully")


# ============= ORDER MANAGEMENT =============

@router.get("/orders")
@limiter.limit("60/minute")
def list_orders(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
    fulfillment_status: Optional[str] = None,
    current_admin: User = Depends(require_admin),
    order_service: AdminOrderService = Depends(get_admin_order_service),
    db: Session = Depends(get_db),
):
    """Admin: orders, newest first, with optional status filters"""
    orders, total = order_service.list_orders(
        db,
        page=page,
        limit=limit,
        status=status,
        payment_status=payment_status,
        fulfillment_status=fulfillment_status,
    )
    return paginated_response(
        [OrderSummaryResponse(**order) for order in orders], total, page, limit, message="Orders retrieved successfully"
    )


@router.get("/orders/{order_id}")
@limiter.limit("60/minute")
def get_order(
    request: Request,
    order_id: int,
    current_admin: User = Depends(require_admin),
    order_service: AdminOrderService = Depends(get_admin_order_service),
    db: Session = Depends(get_db),
):
    order = order_service.get_order(db, order_id)
    return success(data=AdminOrderResponse.from_order(order), message="Order details retrieved successfully")


@router.post("/orders/{order_id}/mark-paid")
@limiter.limit("30/minute")
def mark_order_paid(
    request: Request,
    order_id: int,
    audit: AuditContext = Depends(get_audit_context),
    order_service: AdminOrderService = Depends(get_admin_order_service),
    db: Session = Depends(get_db),
):
    order = order_service.mark_paid(db, order_id)
    audit.record(
        db, "ORDER_MARK_PAID", "Order", order.id,
        f"Marked order {order.number} as paid; committed {sum(item.qty for item in order.items)} unit(s)",
    )
    return success(data=AdminOrderResponse.from_order(order), message="Order marked as paid")


@router.post("/orders/{order_id}/ship")
@limiter.limit("30/minute")
def ship_order(
    request: Request,
    order_id: int,
    payload: Optional[ShipOrderRequest] = Body(None),
    audit: AuditContext = Depends(get_audit_context),
    order_service: AdminOrderService = Depends(get_admin_order_service),
    db: Session = Depends(get_db),
):
    tracking_url = payload.tracking_url if payload else None
    order = order_service.ship_order(db, order_id, tracking_url)
    audit.record(
        db, "ORDER_SHIP", "Order", order.id,
        f"Shipped order {order.number}" + (f" with tracking {order.tracking_url}" if order.tracking_url else ""),
    )
    return success(data=AdminOrderResponse.from_order(order), message="Order marked as shipped")


@router.post("/orders/{order_id}/cancel")
@limiter.limit("30/minute")
def cancel_order(
    request: Request,
    order_id: int,
    payload: Optional[CancelOrderRequest] = Body(None),
    audit: AuditContext = Depends(get_audit_context),
    order_service: AdminOrderService = Depends(get_admin_order_service),
    db: Session = Depends(get_db),
):
    order = order_service.cancel_order(db, order_id)
    reason = payload.reason if payload and payload.reason else "no reason given"
    audit.record(db, "ORDER_CANCEL", "Order", order.id, f"Cancelled order {order.number}: {reason}")
    return success(data=AdminOrderResponse.from_order(order), message="Order cancelled")
