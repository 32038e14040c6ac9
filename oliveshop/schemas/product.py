from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from oliveshop.models.product import ProductStatus, Season, StockStatus, StorageType

SLUG_PATTERN = r"^[a-z0-9-]+$"
SKU_PATTERN = r"^[A-Z0-9-]+$"

PRICE_MIN = Decimal("0.01")
PRICE_MAX = Decimal("99999.99")
WEIGHT_MIN = Decimal("0.001")
WEIGHT_MAX = Decimal("99999.999")
HARVEST_YEAR_MIN = 1900
HARVEST_YEAR_MAX = 2030


# --------------------------------------------------
# Admin: products
# --------------------------------------------------
class ProductCreate(BaseModel):
    slug: Optional[str] = Field(default=None, max_length=255, pattern=SLUG_PATTERN)
    title: str = Field(..., min_length=1, max_length=255)
    type: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=5000)
    status: ProductStatus = ProductStatus.ACTIVE


class ProductUpdate(BaseModel):
    slug: Optional[str] = Field(default=None, max_length=255, pattern=SLUG_PATTERN)
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    type: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=5000)
    status: Optional[ProductStatus] = None


class AdminProductResponse(BaseModel):
    id: int
    slug: str
    title: str
    type: str
    description: Optional[str] = None
    status: ProductStatus
    variant_count: int
    lot_count: int
    created_at: datetime
    updated_at: Optional[datetime] = None


# --------------------------------------------------
# Admin: variants
# --------------------------------------------------
class VariantCreate(BaseModel):
    sku: str = Field(..., min_length=1, max_length=100, pattern=SKU_PATTERN)
    title: str = Field(..., min_length=1, max_length=255)
    price: Decimal = Field(..., ge=PRICE_MIN, le=PRICE_MAX, decimal_places=2)
    weight: Decimal = Field(..., ge=WEIGHT_MIN, le=WEIGHT_MAX, decimal_places=3)
    shipping_weight: Decimal = Field(..., ge=WEIGHT_MIN, le=WEIGHT_MAX, decimal_places=3)
    stock_qty: int = Field(default=0, ge=0)
    lot_id: Optional[int] = Field(default=None, gt=0)


class VariantUpdate(BaseModel):
    sku: Optional[str] = Field(default=None, min_length=1, max_length=100, pattern=SKU_PATTERN)
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    price: Optional[Decimal] = Field(default=None, ge=PRICE_MIN, le=PRICE_MAX, decimal_places=2)
    weight: Optional[Decimal] = Field(default=None, ge=WEIGHT_MIN, le=WEIGHT_MAX, decimal_places=3)
    shipping_weight: Optional[Decimal] = Field(default=None, ge=WEIGHT_MIN, le=WEIGHT_MAX, decimal_places=3)
    stock_qty: Optional[int] = Field(default=None, ge=0)
    lot_id: Optional[int] = Field(default=None, gt=0)


class AdminVariantResponse(BaseModel):
    id: int
    product_id: int
    lot_id: Optional[int] = None
    sku: str
    title: str
    price: float
    weight: float
    shipping_weight: float
    stock_qty: int
    reserved_qty: int
    available_qty: int
    version: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# --------------------------------------------------
# Admin: lots
# --------------------------------------------------
class LotCreate(BaseModel):
    harvest_year: int = Field(..., ge=HARVEST_YEAR_MIN, le=HARVEST_YEAR_MAX)
    season: Season
    storage_type: StorageType
    press_date: Optional[date] = None


class LotUpdate(BaseModel):
    harvest_year: Optional[int] = Field(default=None, ge=HARVEST_YEAR_MIN, le=HARVEST_YEAR_MAX)
    season: Optional[Season] = None
    storage_type: Optional[StorageType] = None
    press_date: Optional[date] = None


class AdminLotResponse(BaseModel):
    id: int
    product_id: int
    harvest_year: int
    season: Season
    storage_type: StorageType
    press_date: Optional[date] = None
    variant_count: int
    created_at: datetime
    updated_at: Optional[datetime] = None


# --------------------------------------------------
# Storefront catalog
# --------------------------------------------------
class LotSummary(BaseModel):
    id: int
    harvest_year: int
    season: Season
    storage_type: StorageType
    press_date: Optional[date] = None

    class Config:
        from_attributes = True


class CatalogVariantResponse(BaseModel):
    id: int
    sku: str
    title: str
    price: float
    weight: float
    available_qty: int
    in_stock: bool
    stock_status: StockStatus
    lot: Optional[LotSummary] = None


class ProductSummaryResponse(BaseModel):
    id: int
    slug: str
    title: str
    type: str
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    stock_status: StockStatus
    harvest_year: Optional[int] = None


class ProductDetailResponse(BaseModel):
    id: int
    slug: str
    title: str
    type: str
    description: Optional[str] = None
    variants: List[CatalogVariantResponse]
    lots: List[LotSummary]
