"""
Custom exceptions for the telestack service.

Provides structured error handling with appropriate HTTP status codes
and error details for API responses.
"""

from typing import Any, Dict, Optional


class TelestackException(Exception):
    """Base exception for the telestack service."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class ValidationError(TelestackException):
    """Raised when product data or request parameters are invalid."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            status_code=400,
            error_code="validation_error",
            details=details,
        )


class NotFoundError(TelestackException):
    """Raised when a product does not exist."""

    def __init__(self, message: str = "Product not found", entity_id: Optional[int] = None) -> None:
        details = {}
        if entity_id is not None:
            details["entity_id"] = entity_id

        super().__init__(
            message=message,
            status_code=404,
            error_code="not_found",
            details=details,
        )


class ConflictError(TelestackException):
    """Raised when a product with the same name already exists."""

    def __init__(self, message: str = "Product with this name already exists", name: Optional[str] = None) -> None:
        details = {}
        if name is not None:
            details["name"] = name

        super().__init__(
            message=message,
            status_code=409,
            error_code="conflict",
            details=details,
        )
