"""Storefront error taxonomy.

Every error carries a short, user-presentable message; store-specific detail
is logged where the error is raised and never placed in the message.
``main.py`` maps each class to an HTTP status code.
"""


class ShopError(Exception):
    """Base exception for all storefront errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthenticationRequired(ShopError):
    """Raised when a request carries no bearer token."""

    def __init__(self):
        super().__init__("Authorization required")


class AuthenticationInvalid(ShopError):
    """Raised when the bearer token cannot be validated."""

    def __init__(self):
        super().__init__("Invalid authentication")


class AuthorizationDenied(ShopError):
    """Raised when the caller's role or ownership does not permit the action."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class ValidationFailed(ShopError):
    """Malformed or semantically invalid input."""


class EmptyOrderError(ValidationFailed):
    def __init__(self):
        super().__init__("No items in order")


class OrderValidationError(ValidationFailed):
    """Raised when an order's monetary breakdown or items are inconsistent."""


class InvalidStatusError(ValidationFailed):
    def __init__(self, status: str, valid):
        self.status = status
        super().__init__(f"Invalid status. Valid statuses: {', '.join(valid)}")


class StatusTransitionError(ValidationFailed):
    """Raised when a customer action is not allowed from the order's status."""


class NotFoundError(ShopError):
    """Base class for missing resources."""


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id=None):
        self.order_id = order_id
        super().__init__("Order not found")


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class ReviewNotFoundError(NotFoundError):
    def __init__(self, review_id=None):
        self.review_id = review_id
        super().__init__("Review not found")


class CartItemNotFoundError(NotFoundError):
    def __init__(self, item_id=None):
        self.item_id = item_id
        super().__init__("Cart item not found")


class ResourceConflict(ShopError):
    """The request conflicts with the current state of a resource."""


class InsufficientStockError(ResourceConflict):
    def __init__(self, product_id, product_name: str, available: int):
        self.product_id = product_id
        self.available = available
        super().__init__(f"Insufficient stock for {product_name}. Available: {available}")


class PersistenceError(ShopError):
    """Raised when a write to the database fails."""


class ExternalServiceError(ShopError):
    """Raised by outbound integrations (email). Never surfaced to customers."""
