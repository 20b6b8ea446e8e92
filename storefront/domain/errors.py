# storefront/domain/errors.py
from typing import Any, List


class AppError(Exception):
    """Base for errors that map onto an HTTP response."""

    status_code = 500
    default_message = "Internal server error"
    error_code: str | None = None

    def __init__(self, message: str | None = None, errors: List[Any] | None = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid data"


class Unauthorized(AppError):
    status_code = 401
    default_message = "Authentication required"


class Forbidden(AppError):
    status_code = 403
    default_message = "Access denied"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class Conflict(AppError):
    status_code = 409
    default_message = "Conflict"


class RateLimited(AppError):
    status_code = 429
    default_message = "Too many attempts, try again later"


class DomainError(AppError):
    """Business rule violation."""

    status_code = 400
    default_message = "Operation not allowed"


class InsufficientStock(DomainError):
    default_message = "Insufficient stock"


class ProductUnavailable(DomainError):
    default_message = "Product is no longer available"


class EmptyCart(DomainError):
    default_message = "Cart is empty"


class OrderAlreadyProcessed(DomainError):
    default_message = "This order has already been processed"


class InvalidTransition(DomainError):
    default_message = "Invalid status transition"


class PaymentDeclined(DomainError):
    default_message = "Payment declined by the bank"
    error_code = "PAYMENT_FAILED"


class InvalidIdentity(AppError):
    """Raised when a cart/order operation is invoked without an owner."""

    default_message = "user_id or session_id is required"
