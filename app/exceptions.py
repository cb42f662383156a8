"""
Custom Exception Classes for the list engagement core

This module defines the error taxonomy raised by the services. Idempotent
operations (toggles, item adds, view recording) never raise conflicts; they
report what happened through their result objects instead.
"""

import enum
from typing import Any

from fastapi import status


class ErrorCode(str, enum.Enum):
    """Machine-readable error codes returned to the routing layer."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    VALIDATION_INVALID_RATING = "VALIDATION_INVALID_RATING"
    VALIDATION_INVALID_TITLE = "VALIDATION_INVALID_TITLE"
    VALIDATION_UNSUPPORTED_KIND = "VALIDATION_UNSUPPORTED_KIND"
    VALIDATION_DUPLICATE_RESOURCE = "VALIDATION_DUPLICATE_RESOURCE"
    AUTH_FAILED = "AUTH_FAILED"
    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_LIST_NOT_FOUND = "RESOURCE_LIST_NOT_FOUND"
    RESOURCE_REVIEW_NOT_FOUND = "RESOURCE_REVIEW_NOT_FOUND"
    STORAGE_TRANSIENT = "STORAGE_TRANSIENT"
    SLUG_EXHAUSTED = "SLUG_EXHAUSTED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class CatalogError(Exception):
    """Base exception class for all catalog errors"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# ============================================================================
# Validation
# ============================================================================


class ValidationError(CatalogError):
    """Raised when input validation fails"""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: dict[str, Any] | None = None,
    ):
        error_details = dict(details or {})
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=error_code,
            details=error_details,
        )


class ConflictError(CatalogError):
    """Raised when a non-idempotent write collides with an existing row"""

    def __init__(self, resource_type: str, field: str, value: Any):
        super().__init__(
            message=f"{resource_type} with {field} '{value}' already exists",
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.VALIDATION_DUPLICATE_RESOURCE,
            details={"resource_type": resource_type, "field": field, "value": value},
        )


# ============================================================================
# Resource Not Found / Ownership
# ============================================================================


class ResourceNotFoundError(CatalogError):
    """Base class for resource not found errors"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Any | None = None,
        error_code: ErrorCode = ErrorCode.RESOURCE_NOT_FOUND,
    ):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=error_code,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class ListNotFoundError(ResourceNotFoundError):
    """Raised when a list is missing or not owned by the caller.

    Both cases produce the same error so that non-owners cannot probe for
    the existence of other users' lists.
    """

    def __init__(self, list_id: Any | None = None):
        super().__init__(resource_type="List", resource_id=list_id, error_code=ErrorCode.RESOURCE_LIST_NOT_FOUND)


class ReviewNotFoundError(ResourceNotFoundError):
    """Raised when a review does not exist"""

    def __init__(self, media_id: Any | None = None):
        super().__init__(resource_type="Review", resource_id=media_id, error_code=ErrorCode.RESOURCE_REVIEW_NOT_FOUND)


class ForbiddenError(CatalogError):
    """Raised when the resource exists but belongs to someone else"""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code=ErrorCode.AUTH_PERMISSION_DENIED,
        )


# ============================================================================
# Storage & Service Exceptions
# ============================================================================


class TransientStorageError(CatalogError):
    """Raised when a transaction keeps failing with a retryable database error"""

    retryable = True

    def __init__(self, message: str = "The database is busy, please retry", operation: str | None = None):
        details = {"operation": operation} if operation else {}
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code=ErrorCode.STORAGE_TRANSIENT,
            details=details,
        )


class ServiceError(CatalogError):
    """Raised when a service layer operation fails"""

    def __init__(self, message: str, service: str | None = None, error_code: ErrorCode = ErrorCode.INTERNAL_ERROR):
        details = {"service": service} if service else {}
        super().__init__(message=message, error_code=error_code, details=details)


class SlugAllocationError(ServiceError):
    """Raised when no free slug was found within the attempt limit"""

    def __init__(self, base_slug: str, attempts: int):
        super().__init__(
            message=f"Could not allocate a unique slug for '{base_slug}' after {attempts} attempts",
            service="slug",
            error_code=ErrorCode.SLUG_EXHAUSTED,
        )
        self.details["base_slug"] = base_slug
        self.details["attempts"] = attempts
