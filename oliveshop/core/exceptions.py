from fastapi import HTTPException, status
from typing import Any, List, Optional


class InvalidCredentials(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )


class APIError(Exception):
    def __init__(self, status_code: int, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.errors = errors or []


# --------------------------------------------------
# VALIDATION (400)
# --------------------------------------------------
class ValidationFailed(APIError):
    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, errors)


# --------------------------------------------------
# NOT FOUND (404)
# --------------------------------------------------
class ResourceNotFound(APIError):
    def __init__(self, message: str):
        super().__init__(status.HTTP_404_NOT_FOUND, message)


class ProductNotFound(ResourceNotFound):
    def __init__(self, product_id=None, slug: Optional[str] = None):
        if slug is not None:
            message = f"Product not found with slug: {slug}"
        else:
            message = f"Product with id {product_id} not found"
        super().__init__(message)


class VariantNotFound(ResourceNotFound):
    def __init__(self, variant_id):
        super().__init__(f"Variant with id {variant_id} not found")


class LotNotFound(ResourceNotFound):
    def __init__(self, lot_id):
        super().__init__(f"Lot with id {lot_id} not found")


class CartNotFound(ResourceNotFound):
    def __init__(self, cart_id=None):
        if cart_id is None:
            super().__init__("Cart not found")
        else:
            super().__init__(f"Cart not found with id: {cart_id}")


class CartItemNotFound(ResourceNotFound):
    def __init__(self):
        super().__init__("Item not found in cart")


class OrderNotFound(ResourceNotFound):
    def __init__(self, order_id=None, number: Optional[str] = None):
        if number is not None:
            message = f"Order not found with number: {number}"
        else:
            message = f"Order with id {order_id} not found"
        super().__init__(message)


# --------------------------------------------------
# CONFLICT / STATE (409)
# --------------------------------------------------
class ConflictError(APIError):
    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(status.HTTP_409_CONFLICT, message, errors)


class InsufficientStock(ConflictError):
    def __init__(self, message: str, variant_id: int, available: int, requested: int):
        super().__init__(
            message,
            errors=[
                {
                    "variant_id": variant_id,
                    "available_quantity": available,
                    "requested_quantity": requested,
                }
            ],
        )
        self.variant_id = variant_id
        self.available = available
        self.requested = requested


class InvalidOrderTransition(ConflictError):
    pass


class DuplicateResource(ConflictError):
    pass


class ResourceInUse(ConflictError):
    pass


class StockInconsistency(ConflictError):
    pass


class ConcurrentUpdateConflict(ConflictError):
    pass


# --------------------------------------------------
# CONSISTENCY (500)
# --------------------------------------------------
class ConsistencyError(APIError):
    def __init__(self, message: str):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, message)
