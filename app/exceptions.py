"""
Custom exception classes for the MailToSocial API.

This module provides a hierarchy of custom exceptions that map to specific
HTTP status codes and error scenarios. All exceptions inherit from
MailToSocialException to enable consistent error handling across the API.

Exception Hierarchy:
    MailToSocialException (base)
    ├── ValidationError (400)
    ├── ResourceNotFoundError (404)
    ├── DatabaseError (500)
    └── RelayError (status set per instance, plain {error} body)
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """
    Standardized error codes for API responses.

    These codes provide machine-readable identifiers for error conditions,
    enabling clients to programmatically handle specific error scenarios.
    """

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    INVALID_STATUS = "INVALID_STATUS"
    UNSUPPORTED_PLATFORM = "UNSUPPORTED_PLATFORM"

    # Authentication errors (401/403)
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    PERMISSION_DENIED = "PERMISSION_DENIED"

    # Resource errors (404)
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    POST_NOT_FOUND = "POST_NOT_FOUND"

    # External service errors (502)
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"

    # Database errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"


class MailToSocialException(Exception):
    """
    Base exception class for all MailToSocial API errors.

    Attributes:
        message: Human-readable error message (sanitized for external display).
        error_code: Machine-readable error code from ErrorCode enum.
        status_code: HTTP status code to return.
        details: Additional context about the error (optional).
        internal_message: Detailed message for logging (not exposed to clients).
    """

    status_code: int = 500
    default_error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        self.internal_message = internal_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to a dictionary for API response.

        Returns:
            Dictionary with error information suitable for JSON serialization.
        """
        response = {
            "success": False,
            "error": self.message,
            "error_code": self.error_code.value,
        }
        if self.details:
            response["details"] = self.details
        return response

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code.value!r}, "
            f"status_code={self.status_code})"
        )


# =============================================================================
# Validation Errors (400 Bad Request)
# =============================================================================

class ValidationError(MailToSocialException):
    """
    Raised when request data fails validation.

    Use this for:
    - Missing required fields
    - Unknown platform or status values
    """

    status_code = 400
    default_error_code = ErrorCode.VALIDATION_ERROR
    default_message = "Invalid request data"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            # Truncate long values to avoid exposing sensitive data
            str_value = str(value)
            details["value"] = str_value[:100] + "..." if len(str_value) > 100 else str_value

        super().__init__(
            message=message,
            error_code=error_code or self.default_error_code,
            details=details,
            internal_message=internal_message,
        )


# =============================================================================
# Resource Not Found Errors (404 Not Found)
# =============================================================================

class ResourceNotFoundError(MailToSocialException):
    """Raised when a requested resource does not exist or is not the caller's."""

    status_code = 404
    default_error_code = ErrorCode.RESOURCE_NOT_FOUND
    default_message = "Resource not found"

    def __init__(
        self,
        message: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        details = details or {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id[:36] if len(resource_id) > 36 else resource_id

        super().__init__(
            message=message,
            error_code=error_code or self.default_error_code,
            details=details,
            internal_message=internal_message,
        )


# =============================================================================
# Database Errors (500 Internal Server Error)
# =============================================================================

class DatabaseError(MailToSocialException):
    """
    Raised when a store operation fails.

    Note: Database errors should never expose internal details to clients.
    """

    status_code = 500
    default_error_code = ErrorCode.DATABASE_ERROR
    default_message = "A database error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        operation: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        internal_message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.original_error = original_error

        super().__init__(
            message=message or self.default_message,
            error_code=error_code or self.default_error_code,
            internal_message=internal_message or (
                f"Database operation '{operation}' failed: {original_error}"
                if operation and original_error
                else None
            ),
        )


# =============================================================================
# Relay Errors
# =============================================================================

class RelayError(MailToSocialException):
    """
    Raised by the relay and tick endpoints.

    Their callers (the pipeline and the cron trigger) read a flat
    ``{"error": ..., "details": ...}`` body, so this renders without the
    ``success``/``error_code`` envelope and without message sanitizing.
    """

    default_error_code = ErrorCode.EXTERNAL_SERVICE_ERROR

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Any] = None,
        include_success_flag: bool = False,
        internal_message: Optional[str] = None,
    ):
        super().__init__(message=message, internal_message=internal_message)
        self.status_code = status_code
        self.relay_details = details
        self.include_success_flag = include_success_flag

    def to_dict(self) -> Dict[str, Any]:
        response: Dict[str, Any] = {}
        if self.include_success_flag:
            response["success"] = False
        response["error"] = self.message
        if self.relay_details is not None:
            response["details"] = self.relay_details
        return response
