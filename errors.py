"""Error types raised by the storefront and mapped to HTTP responses in main.py."""
from typing import Optional


class StoreError(Exception):
    """Base exception for all storefront errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(StoreError):
    """Missing or malformed input."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class NotFoundError(StoreError):
    pass


class AuthError(StoreError):
    """Missing or invalid credential."""

    def __init__(self, message: str = "No token provided"):
        super().__init__(message)


class ForbiddenError(AuthError):
    """Valid credential without the required rights."""

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class InternalError(StoreError):
    """Persistence or unexpected failure. The message is never shown to the caller."""

    def __init__(self, message: str = "Internal server error", retryable: bool = False):
        self.retryable = retryable
        super().__init__(message)
