from decimal import Decimal
from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from oliveshop.db.base_class import Base

ZERO = Decimal("0.00")


class Cart(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True, index=True)

    # Recomputed from items on every mutation
    subtotal = Column(Numeric(10, 2), default=ZERO, nullable=False)
    vat_amount = Column(Numeric(10, 2), default=ZERO, nullable=False)
    shipping_cost = Column(Numeric(10, 2), default=ZERO, nullable=False)
    total = Column(Numeric(10, 2), default=ZERO, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.id",
    )


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("variants.id"), nullable=False)

    qty = Column(Integer, nullable=False)
    price_snapshot = Column(Numeric(10, 2), nullable=False)  # Lock price when added

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    cart = relationship("Cart", back_populates="items")
    variant = relationship("Variant")

    __table_args__ = (
        UniqueConstraint("cart_id", "variant_id", name="uq_cart_items_cart_variant"),
    )

    @property
    def line_total(self) -> Decimal:
        return (Decimal(self.price_snapshot) * self.qty).quantize(Decimal("0.01"))
