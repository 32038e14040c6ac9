from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session, selectinload

from oliveshop.core.exceptions import ProductNotFound, ValidationFailed
from oliveshop.models.product import Lot, Product, ProductStatus, StockStatus, Variant
from oliveshop.schemas.product import (
    HARVEST_YEAR_MAX,
    HARVEST_YEAR_MIN,
    CatalogVariantResponse,
    LotSummary,
    ProductDetailResponse,
    ProductSummaryResponse,
)


def stock_status_for(available: int, low_stock_threshold: int) -> StockStatus:
    if available <= 0:
        return StockStatus.OUT_OF_STOCK
    if available <= low_stock_threshold:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


class ProductService:
    """Read-only storefront catalog; only ACTIVE products are visible."""

    def __init__(self, low_stock_threshold: int = 5):
        self.low_stock_threshold = low_stock_threshold

    def find_products(
        self,
        db: Session,
        type: Optional[str] = None,
        harvest_year: Optional[int] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        in_stock: Optional[bool] = None,
    ) -> List[ProductSummaryResponse]:
        self._validate_filters(harvest_year, min_price, max_price)

        query = (
            db.query(Product)
            .options(selectinload(Product.variants), selectinload(Product.lots))
            .filter(Product.status == ProductStatus.ACTIVE)
        )
        if type:
            query = query.filter(Product.type == type)

        # all variant-level filters must hold for the same variant
        variant_conditions = []
        if harvest_year is not None:
            variant_conditions.append(Variant.lot.has(Lot.harvest_year == harvest_year))
        if min_price is not None:
            variant_conditions.append(Variant.price >= min_price)
        if max_price is not None:
            variant_conditions.append(Variant.price <= max_price)
        if in_stock:
            variant_conditions.append(Variant.stock_qty - Variant.reserved_qty > 0)
        if variant_conditions:
            query = query.filter(Product.variants.any(and_(*variant_conditions)))

        return [self._to_summary(product) for product in query.order_by(Product.title, Product.id).all()]

    def find_product_by_slug(self, db: Session, slug: str) -> ProductDetailResponse:
        product = (
            db.query(Product)
            .options(
                selectinload(Product.variants).joinedload(Variant.lot),
                selectinload(Product.lots),
            )
            .filter(Product.slug == slug, Product.status == ProductStatus.ACTIVE)
            .first()
        )
        if not product:
            raise ProductNotFound(slug=slug)

        return ProductDetailResponse(
            id=product.id,
            slug=product.slug,
            title=product.title,
            type=product.type,
            description=product.description,
            variants=[self._to_catalog_variant(variant) for variant in product.variants],
            lots=[LotSummary.model_validate(lot) for lot in product.lots],
        )

    def _to_catalog_variant(self, variant: Variant) -> CatalogVariantResponse:
        available = variant.available_qty
        return CatalogVariantResponse(
            id=variant.id,
            sku=variant.sku,
            title=variant.title,
            price=variant.price,
            weight=variant.weight,
            available_qty=available,
            in_stock=available > 0,
            stock_status=stock_status_for(available, self.low_stock_threshold),
            lot=LotSummary.model_validate(variant.lot) if variant.lot else None,
        )

    def _to_summary(self, product: Product) -> ProductSummaryResponse:
        prices = [variant.price for variant in product.variants]
        total_available = sum(max(variant.available_qty, 0) for variant in product.variants)
        return ProductSummaryResponse(
            id=product.id,
            slug=product.slug,
            title=product.title,
            type=product.type,
            min_price=min(prices) if prices else None,
            max_price=max(prices) if prices else None,
            stock_status=stock_status_for(total_available, self.low_stock_threshold),
            harvest_year=product.lots[0].harvest_year if product.lots else None,
        )

    @staticmethod
    def _validate_filters(
        harvest_year: Optional[int],
        min_price: Optional[Decimal],
        max_price: Optional[Decimal],
    ) -> None:
        if min_price is not None and min_price < 0:
            raise ValidationFailed("Minimum price cannot be negative")
        if max_price is not None and max_price < 0:
            raise ValidationFailed("Maximum price cannot be negative")
        if min_price is not None and max_price is not None and min_price > max_price:
            raise ValidationFailed("Minimum price cannot be greater than maximum price")
        if harvest_year is not None and not HARVEST_YEAR_MIN <= harvest_year <= HARVEST_YEAR_MAX:
            raise ValidationFailed(
                f"Harvest year must be between {HARVEST_YEAR_MIN} and {HARVEST_YEAR_MAX}"
            )
