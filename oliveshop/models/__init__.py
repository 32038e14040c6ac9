from oliveshop.models.user import User, UserRole
from oliveshop.models.product import Product, Lot, Variant, ProductStatus, Season, StorageType, StockStatus
from oliveshop.models.cart import Cart, CartItem
from oliveshop.models.order import Order, OrderItem, OrderStatus, PaymentStatus, FulfillmentStatus
from oliveshop.models.audit_log import AuditLog
