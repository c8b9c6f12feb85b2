"""
Custom domain exceptions for consistent error handling.

Services raise these; the HTTPException handler in main.py renders them as
{"success": false, "error": {"code", "message", "details"}} using each
class's `code`.
"""
from fastapi import HTTPException, status


class DomainError(HTTPException):
    """Base class for all domain-specific errors."""
    code = "domain_error"

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST, details: dict | None = None):
        super().__init__(status_code=status_code, detail=message)
        self.message = message
        self.details = details or {}


class NotFoundError(DomainError):
    """Subscription, order or menu item not found (404)."""
    code = "not_found"

    def __init__(self, resource_type: str, identifier: str, details: dict | None = None):
        message = f"{resource_type} not found: {identifier}"
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND, details=details)


class ValidationError(DomainError):
    """Business-rule validation failure (400)."""
    code = "validation_error"

    def __init__(self, message: str, field: str | None = None, details: dict | None = None):
        if field:
            details = {**(details or {}), "field": field}
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class ConflictError(DomainError):
    """State conflict, e.g. an illegal order status transition (409)."""
    code = "conflict"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_409_CONFLICT, details=details)


class ProviderError(DomainError):
    """Hosted provider (payments, object storage) call failed (502)."""
    code = "provider_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_502_BAD_GATEWAY, details=details)


class PaymentProviderError(ProviderError):
    """Stripe rejected or failed a checkout or refund call (502)."""
    code = "payment_provider_error"


class StorageError(ProviderError):
    """Object storage upload failed (502)."""
    code = "storage_error"
