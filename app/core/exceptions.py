"""
Domain errors for the order lifecycle and catalog.

Services raise these; the exception handlers in app.main turn them into
JSON error responses using ``status_code``.
"""

from typing import Iterable, Optional

from fastapi import status


class StorefrontError(Exception):
    """Base class for all domain errors."""
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingFields(StorefrontError):
    """Raised when required input fields are absent."""

    def __init__(self, fields: Iterable[str], message: Optional[str] = None):
        self.fields = list(fields)
        super().__init__(message or f"Missing required fields: {', '.join(self.fields)}")


class InvalidOrder(StorefrontError):
    """Raised when an order payload is present but inconsistent."""
    pass


class NotFound(StorefrontError):
    """Raised when the target entity does not exist."""
    status_code = status.HTTP_404_NOT_FOUND


class InvalidTransition(StorefrontError):
    """Raised when a status change is not allowed from the current status."""

    def __init__(self, current_status: str, requested_status: str, allowed: Iterable[str]):
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed = list(allowed)
        allowed_text = ", ".join(self.allowed) if self.allowed else "none"
        super().__init__(
            f"Invalid status transition from '{current_status}' to '{requested_status}'. "
            f"Valid transitions: {allowed_text}"
        )


class DuplicateCategory(StorefrontError):
    """Raised when a category with the same canonical name already exists."""
    status_code = status.HTTP_409_CONFLICT


class InvalidCategory(StorefrontError):
    """Raised when a category name cannot be mapped to a partition."""
    pass


class InvalidDiscount(StorefrontError):
    """Raised when a discount percentage is not a number in [0, 100]."""
    pass


class IdentifierExhausted(StorefrontError):
    """Raised when no unique order identifier could be minted. Safe to retry."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class InvalidProduct(StorefrontError):
    """Raised when product fields are present but unusable (e.g. a non-numeric price)."""
    pass


class PushDeliveryError(StorefrontError):
    """Raised when the push gateway rejects or cannot be reached for a notification."""
    status_code = status.HTTP_502_BAD_GATEWAY
