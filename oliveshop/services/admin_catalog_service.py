from typing import List, Tuple

import structlog
from slugify import slugify
from sqlalchemy import func
from sqlalchemy.orm import Session

from oliveshop.core.exceptions import (
    DuplicateResource,
    LotNotFound,
    ProductNotFound,
    ResourceInUse,
    ValidationFailed,
    VariantNotFound,
)
from oliveshop.models.cart import Cart, CartItem
from oliveshop.models.order import Order, OrderItem, OrderStatus
from oliveshop.models.product import Lot, Product, Variant
from oliveshop.schemas.product import (
    AdminLotResponse,
    AdminProductResponse,
    AdminVariantResponse,
    LotCreate,
    LotUpdate,
    ProductCreate,
    ProductUpdate,
    VariantCreate,
    VariantUpdate,
)
from oliveshop.services.cart_service import CartService
from oliveshop.services.stock_ledger import StockLedger

logger = structlog.get_logger()


class AdminCatalogService:
    """
    CRUD over products, variants and lots.

    Nothing cascades: a product cannot be deleted while it has variants or
    lots, a lot while variants reference it, a variant while stock is
    reserved against it or orders reference it.
    """

    def __init__(self, stock_ledger: StockLedger, cart_service: CartService, low_stock_threshold: int = 5):
        self.stock_ledger = stock_ledger
        self.cart_service = cart_service
        self.low_stock_threshold = low_stock_threshold

    # --------------------------------------------------
    # PRODUCTS
    # --------------------------------------------------
    def list_products(self, db: Session, page: int = 1, limit: int = 20) -> Tuple[List[AdminProductResponse], int]:
        query = db.query(Product)
        total = query.count()
        products = query.order_by(Product.id).offset((page - 1) * limit).limit(limit).all()
        return [self.product_response(db, product) for product in products], total

    def get_product(self, db: Session, product_id: int) -> Product:
        product = db.get(Product, product_id)
        if not product:
            raise ProductNotFound(product_id)
        return product

    def create_product(self, db: Session, data: ProductCreate) -> Product:
        slug = data.slug or slugify(data.title)
        if not slug:
            raise ValidationFailed("Slug could not be derived from title")
        self._ensure_slug_available(db, slug)

        product = Product(
            slug=slug,
            title=data.title.strip(),
            type=data.type.strip(),
            description=data.description,
            status=data.status,
        )
        try:
            db.add(product)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(product)
        logger.info("product_created", product_id=product.id, slug=product.slug)
        return product

    def update_product(self, db: Session, product_id: int, data: ProductUpdate) -> Product:
        product = self.get_product(db, product_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "slug" in changes and changes["slug"] != product.slug:
            self._ensure_slug_available(db, changes["slug"])

        for field, value in changes.items():
            setattr(product, field, value.strip() if field in ("title", "type") else value)
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(product)
        logger.info("product_updated", product_id=product.id, fields=sorted(changes))
        return product

    def delete_product(self, db: Session, product_id: int) -> None:
        product = self.get_product(db, product_id)
        if db.query(Variant.id).filter(Variant.product_id == product.id).first():
            raise ResourceInUse("Cannot delete product with existing variants. Delete variants first.")
        if db.query(Lot.id).filter(Lot.product_id == product.id).first():
            raise ResourceInUse("Cannot delete product with existing lots. Delete lots first.")

        try:
            db.delete(product)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("product_deleted", product_id=product_id)

    def product_response(self, db: Session, product: Product) -> AdminProductResponse:
        variant_count = db.query(func.count(Variant.id)).filter(Variant.product_id == product.id).scalar()
        lot_count = db.query(func.count(Lot.id)).filter(Lot.product_id == product.id).scalar()
        return AdminProductResponse(
            id=product.id,
            slug=product.slug,
            title=product.title,
            type=product.type,
            description=product.description,
            status=product.status,
            variant_count=variant_count or 0,
            lot_count=lot_count or 0,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )

    # --------------------------------------------------
    # VARIANTS
    # --------------------------------------------------
    def list_variants(self, db: Session, product_id: int) -> List[Variant]:
        product = self.get_product(db, product_id)
        return db.query(Variant).filter(Variant.product_id == product.id).order_by(Variant.id).all()

    def get_variant(self, db: Session, variant_id: int) -> Variant:
        variant = db.get(Variant, variant_id)
        if not variant:
            raise VariantNotFound(variant_id)
        return variant

    def create_variant(self, db: Session, product_id: int, data: VariantCreate) -> Variant:
        product = self.get_product(db, product_id)
        self._ensure_sku_available(db, data.sku)
        if data.lot_id is not None:
            self._ensure_lot_belongs_to(db, data.lot_id, product.id)

        variant = Variant(
            product_id=product.id,
            lot_id=data.lot_id,
            sku=data.sku,
            title=data.title.strip(),
            price=data.price,
            weight=data.weight,
            shipping_weight=data.shipping_weight,
            stock_qty=data.stock_qty,
            reserved_qty=0,
            version=1,
        )
        try:
            db.add(variant)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(variant)
        logger.info("variant_created", variant_id=variant.id, product_id=product.id, sku=variant.sku)
        return variant

    def update_variant(self, db: Session, variant_id: int, data: VariantUpdate) -> Variant:
        variant = self.get_variant(db, variant_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "sku" in changes and changes["sku"] != variant.sku:
            self._ensure_sku_available(db, changes["sku"])
        if "lot_id" in changes:
            self._ensure_lot_belongs_to(db, changes["lot_id"], variant.product_id)

        try:
            # Stock goes through the ledger first; it reloads the row.
            stock_qty = changes.pop("stock_qty", None)
            if stock_qty is not None:
                variant = self.stock_ledger.set_stock(db, variant.id, stock_qty)

            for field, value in changes.items():
                setattr(variant, field, value.strip() if field == "title" else value)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(variant)
        logger.info("variant_updated", variant_id=variant.id, fields=sorted(data.model_fields_set))
        return variant

    def delete_variant(self, db: Session, variant_id: int) -> None:
        variant = self.get_variant(db, variant_id)
        if variant.reserved_qty > 0:
            raise ResourceInUse(f"Cannot delete variant with reserved stock ({variant.reserved_qty} reserved)")
        order_refs = db.query(func.count(OrderItem.id)).filter(OrderItem.variant_id == variant.id).scalar()
        if order_refs:
            raise ResourceInUse(f"Cannot delete variant referenced by {order_refs} order item(s)")

        try:
            cart_ids = [
                cart_id
                for (cart_id,) in db.query(CartItem.cart_id).filter(CartItem.variant_id == variant.id).distinct()
            ]
            db.query(CartItem).filter(CartItem.variant_id == variant.id).delete()
            db.delete(variant)
            db.flush()
            for cart in db.query(Cart).filter(Cart.id.in_(cart_ids)).all():
                self.cart_service.recalculate_totals(db, cart)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("variant_deleted", variant_id=variant_id, carts_updated=len(cart_ids))

    # --------------------------------------------------
    # LOTS
    # --------------------------------------------------
    def list_lots(self, db: Session, product_id: int) -> List[Lot]:
        product = self.get_product(db, product_id)
        return db.query(Lot).filter(Lot.product_id == product.id).order_by(Lot.id).all()

    def get_lot(self, db: Session, lot_id: int) -> Lot:
        lot = db.get(Lot, lot_id)
        if not lot:
            raise LotNotFound(lot_id)
        return lot

    def create_lot(self, db: Session, product_id: int, data: LotCreate) -> Lot:
        product = self.get_product(db, product_id)
        lot = Lot(product_id=product.id, **data.model_dump())
        try:
            db.add(lot)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(lot)
        logger.info("lot_created", lot_id=lot.id, product_id=product.id, harvest_year=lot.harvest_year)
        return lot

    def update_lot(self, db: Session, lot_id: int, data: LotUpdate) -> Lot:
        lot = self.get_lot(db, lot_id)
        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if value is None and field != "press_date":
                continue
            setattr(lot, field, value)
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(lot)
        logger.info("lot_updated", lot_id=lot.id, fields=sorted(changes))
        return lot

    def delete_lot(self, db: Session, lot_id: int) -> None:
        lot = self.get_lot(db, lot_id)
        referenced = db.query(func.count(Variant.id)).filter(Variant.lot_id == lot.id).scalar()
        if referenced:
            raise ResourceInUse(f"Cannot delete lot referenced by {referenced} variant(s)")

        try:
            db.delete(lot)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("lot_deleted", lot_id=lot_id)

    def lot_response(self, db: Session, lot: Lot) -> AdminLotResponse:
        variant_count = db.query(func.count(Variant.id)).filter(Variant.lot_id == lot.id).scalar()
        return AdminLotResponse(
            id=lot.id,
            product_id=lot.product_id,
            harvest_year=lot.harvest_year,
            season=lot.season,
            storage_type=lot.storage_type,
            press_date=lot.press_date,
            variant_count=variant_count or 0,
            created_at=lot.created_at,
            updated_at=lot.updated_at,
        )

    @staticmethod
    def variant_response(variant: Variant) -> AdminVariantResponse:
        return AdminVariantResponse.model_validate(variant)

    # --------------------------------------------------
    # DASHBOARD
    # --------------------------------------------------
    def dashboard_stats(self, db: Session) -> dict:
        return {
            "total_products": db.query(func.count(Product.id)).scalar() or 0,
            "total_orders": db.query(func.count(Order.id)).scalar() or 0,
            "pending_orders": (
                db.query(func.count(Order.id)).filter(Order.status == OrderStatus.PENDING).scalar() or 0
            ),
            "low_stock_items": (
                db.query(func.count(Variant.id))
                .filter(Variant.stock_qty - Variant.reserved_qty <= self.low_stock_threshold)
                .scalar()
                or 0
            ),
        }

    # --------------------------------------------------
    # HELPERS
    # --------------------------------------------------
    @staticmethod
    def _ensure_slug_available(db: Session, slug: str) -> None:
        if db.query(Product.id).filter(Product.slug == slug).first():
            raise DuplicateResource(f"Product with slug '{slug}' already exists")

    @staticmethod
    def _ensure_sku_available(db: Session, sku: str) -> None:
        if db.query(Variant.id).filter(Variant.sku == sku).first():
            raise DuplicateResource(f"Variant with SKU '{sku}' already exists")

    def _ensure_lot_belongs_to(self, db: Session, lot_id: int, product_id: int) -> Lot:
        lot = self.get_lot(db, lot_id)
        if lot.product_id != product_id:
            raise ValidationFailed(f"Lot {lot_id} does not belong to product {product_id}")
        return lot
