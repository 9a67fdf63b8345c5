"""
Error taxonomy shared by the services and the HTTP boundary.

Every failure the services can report is a ``ShopError`` subclass carrying a
stable machine-readable ``kind`` and the HTTP status it maps to. Services raise
them; ``sweetshop.main`` renders them in a single exception handler, so no
router translates errors on its own.
"""
from typing import List, Optional


class ShopError(Exception):
    """Base class for expected, client-visible failures."""
    kind = "error"
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None, details: Optional[List[dict]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class Unauthorized(ShopError):
    """No credential, or a malformed, tampered or expired one."""
    kind = "unauthorized"
    status_code = 401
    default_message = "Authentication required"


class Forbidden(ShopError):
    """Valid credential without the privilege the operation needs."""
    kind = "forbidden"
    status_code = 403
    default_message = "Admin privileges required"


class NotFound(ShopError):
    kind = "not_found"
    status_code = 404
    default_message = "Resource not found"


class Conflict(ShopError):
    kind = "conflict"
    status_code = 409
    default_message = "Resource already exists"


class InsufficientStock(ShopError):
    """Expected business outcome: not enough quantity left to fill a purchase."""
    kind = "insufficient_stock"
    status_code = 400
    default_message = "Insufficient stock"


class InvalidQuery(ShopError):
    kind = "invalid_query"
    status_code = 400
    default_message = "Invalid search parameters"


class ValidationFailed(ShopError):
    kind = "validation_failed"
    status_code = 400
    default_message = "Request validation failed"
