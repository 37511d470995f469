"""Custom exceptions for InvoiceChain

Every error carries a ``code`` tag that callers can branch on without
parsing messages: UNAUTHENTICATED, FORBIDDEN, NOT_FOUND, CONFLICT,
BAD_REQUEST.
"""

from typing import Any


class AppException(Exception):
    """Base exception for application errors."""

    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(AppException):
    code = "UNAUTHENTICATED"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message=message, status_code=401)


class AuthorizationError(AppException):
    code = "FORBIDDEN"

    def __init__(self, message: str = "Access denied"):
        super().__init__(message=message, status_code=403)


class NotFoundError(AppException):
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: str | None = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(message=message, status_code=404)


class ConflictError(AppException):
    code = "CONFLICT"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, status_code=409, details=details)


class BadRequestError(AppException):
    code = "BAD_REQUEST"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, status_code=400, details=details)


class ValidationError(BadRequestError):
    """Input failed validation before reaching the ledgers."""
