from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Date, Text, Enum, Index, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from oliveshop.db.base_class import Base


class ProductStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    DRAFT = "DRAFT"


class Season(str, enum.Enum):
    SPRING = "SPRING"
    SUMMER = "SUMMER"
    AUTUMN = "AUTUMN"
    WINTER = "WINTER"


class StorageType(str, enum.Enum):
    DRY = "DRY"
    WET = "WET"
    TRADITIONAL = "TRADITIONAL"
    NATURAL = "NATURAL"


class StockStatus(str, enum.Enum):
    IN_STOCK = "IN_STOCK"
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    type = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)
    status = Column(Enum(ProductStatus), default=ProductStatus.ACTIVE, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    variants = relationship("Variant", back_populates="product", order_by="Variant.id")
    lots = relationship("Lot", back_populates="product", order_by="Lot.id")


class Lot(Base):
    """A harvest batch of one product"""
    __tablename__ = "lots"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    harvest_year = Column(Integer, nullable=False)
    season = Column(Enum(Season), nullable=False)
    storage_type = Column(Enum(StorageType), nullable=False)
    press_date = Column(Date, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    product = relationship("Product", back_populates="lots")
    variants = relationship("Variant", back_populates="lot")


class Variant(Base):
    """Sellable SKU with its own stock and reservation counters"""
    __tablename__ = "variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    lot_id = Column(Integer, ForeignKey("lots.id"), nullable=True, index=True)

    sku = Column(String(100), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    weight = Column(Numeric(8, 3), nullable=False)
    shipping_weight = Column(Numeric(8, 3), nullable=False)

    stock_qty = Column(Integer, default=0, nullable=False)
    reserved_qty = Column(Integer, default=0, nullable=False)
    # Bumped on every stock write; see services/stock_ledger.py
    version = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    product = relationship("Product", back_populates="variants")
    lot = relationship("Lot", back_populates="variants")

    __table_args__ = (
        CheckConstraint("stock_qty >= 0", name="ck_variants_stock_non_negative"),
        CheckConstraint("reserved_qty >= 0", name="ck_variants_reserved_non_negative"),
        CheckConstraint("reserved_qty <= stock_qty", name="ck_variants_reserved_within_stock"),
    )

    @property
    def available_qty(self) -> int:
        return (self.stock_qty or 0) - (self.reserved_qty or 0)


Index("idx_variant_product_price", Variant.product_id, Variant.price)
