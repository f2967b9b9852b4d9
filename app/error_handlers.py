"""
FastAPI exception handlers for the MailToSocial API.

This module provides centralized exception handling that:
- Maps custom exceptions to appropriate HTTP responses
- Handles Pydantic validation errors with clean messages
- Reports unexpected exceptions to Sentry
- Prevents sensitive information leakage

User-facing error responses follow the format:
{
    "success": false,
    "error": "Human-readable message",
    "error_code": "MACHINE_READABLE_CODE",
    "details": {}  # Optional additional context
}

Relay and tick endpoints answer with a flat {"error": ...} body instead.
"""

import logging
import os
import re
import uuid
from typing import Any, Dict, List, Optional

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .exceptions import ErrorCode, MailToSocialException, RelayError

logger = logging.getLogger(__name__)

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT.lower() == "production"

# Anything that could carry relay, OAuth or Supabase secrets
SENSITIVE_PATTERNS = [
    r"api[_-]?key",
    r"secret",
    r"token",
    r"bearer",
    r"service[_-]?role",
    r"postgres(ql)?://",
    r"\.supabase\.co",
]

SENSITIVE_REGEX = re.compile("|".join(SENSITIVE_PATTERNS), re.IGNORECASE)


def sanitize_error_message(message: str) -> str:
    """
    Remove potentially sensitive information from error messages.

    Args:
        message: The error message to sanitize.

    Returns:
        Sanitized message with sensitive data redacted.
    """
    if not message:
        return message

    if SENSITIVE_REGEX.search(message):
        return "An error occurred while processing your request"

    # Remove file paths and IP addresses
    message = re.sub(r'[/\\][\w./\\-]+\.\w+', '[path]', message)
    message = re.sub(r'\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b', '[ip]', message)

    if len(message) > 500:
        message = message[:500] + "..."

    return message


def sanitize_details(details: Dict[str, Any]) -> Dict[str, Any]:
    """
    Keep only known-safe keys from error details.

    Args:
        details: Dictionary of error details.

    Returns:
        Sanitized details dictionary.
    """
    if not details:
        return {}

    sanitized = {}
    safe_keys = {
        "field", "value", "resource_type", "resource_id",
        "errors", "error_reference", "sentry_event_id",
    }

    for key, value in details.items():
        if key not in safe_keys:
            continue

        if isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        elif isinstance(value, (int, float, bool)):
            sanitized[key] = value
        elif isinstance(value, list):
            sanitized[key] = [
                v for v in value
                if isinstance(v, (str, int, float, bool, dict))
            ][:10]

    return sanitized


def format_pydantic_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """
    Format Pydantic validation errors into field/message pairs.

    Args:
        errors: List of Pydantic error dictionaries.

    Returns:
        List of formatted error dictionaries with field and message.
    """
    formatted = []
    for error in errors:
        loc = error.get("loc", [])
        field_parts = [str(p) for p in loc if p != "body"]
        field = ".".join(field_parts) if field_parts else "request"

        error_type = error.get("type", "")
        msg = error.get("msg", "Invalid value")

        if error_type == "missing":
            msg = f"Field '{field}' is required"
        elif error_type.startswith("datetime"):
            msg = f"Field '{field}' must be an ISO 8601 timestamp"
        elif error_type == "string_type":
            msg = f"Field '{field}' must be a string"
        else:
            msg = sanitize_error_message(msg)

        formatted.append({"field": field, "message": msg})

    return formatted[:10]


def create_error_response(
    status_code: int,
    error: str,
    error_code: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """
    Create a standardized error response.

    Args:
        status_code: HTTP status code.
        error: Human-readable error message.
        error_code: Machine-readable error code.
        details: Optional additional details.
        headers: Optional response headers.

    Returns:
        JSONResponse with consistent error format.
    """
    content = {
        "success": False,
        "error": sanitize_error_message(error),
        "error_code": error_code,
    }

    if details:
        sanitized_details = sanitize_details(details)
        if sanitized_details:
            content["details"] = sanitized_details

    return JSONResponse(
        status_code=status_code,
        content=content,
        headers=headers,
    )


def report_to_sentry(
    exc: Exception,
    request: Optional[Request] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """
    Report an exception to Sentry with request context.

    Returns:
        Sentry event ID if reported, None otherwise.
    """
    client = sentry_sdk.get_client()
    if not client.is_active():
        return None

    with sentry_sdk.new_scope() as scope:
        if request:
            scope.set_context("request", {
                "method": request.method,
                "path": request.url.path,
            })
            if hasattr(request.state, "user_id"):
                scope.set_user({"id": request.state.user_id})
            request_id = request.headers.get("X-Request-ID")
            if request_id:
                scope.set_tag("request_id", request_id)

        if extra_context:
            scope.set_context("extra", extra_context)

        return sentry_sdk.capture_exception(exc)


# =============================================================================
# Exception Handlers
# =============================================================================

async def mailtosocial_exception_handler(
    request: Request,
    exc: MailToSocialException,
) -> JSONResponse:
    """Handle MailToSocialException and subclasses."""
    log_message = f"{exc.__class__.__name__}: {exc.message}"
    if exc.internal_message:
        log_message += f" | Internal: {exc.internal_message}"

    if exc.status_code >= 500:
        logger.error(log_message)
        report_to_sentry(exc, request)
    else:
        logger.warning(log_message)

    return create_error_response(
        status_code=exc.status_code,
        error=exc.message,
        error_code=exc.error_code.value,
        details=exc.details,
    )


async def relay_exception_handler(
    request: Request,
    exc: RelayError,
) -> JSONResponse:
    """
    Handle relay and tick errors.

    The body is passed through unsanitized: the pipeline records it on the
    failed row so users can see what the platform said.
    """
    log_message = f"Relay error {exc.status_code} on {request.url.path}: {exc.message}"
    if exc.internal_message:
        log_message += f" | Internal: {exc.internal_message}"

    if exc.status_code >= 500:
        logger.error(log_message)
        report_to_sentry(exc, request)
    else:
        logger.warning(log_message)

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle FastAPI request validation errors."""
    errors = format_pydantic_errors(exc.errors())

    logger.warning(
        f"Validation error on {request.method} {request.url.path}: "
        f"{len(errors)} error(s)"
    )

    if len(errors) == 1:
        error_message = errors[0]["message"]
    else:
        error_message = f"Validation failed with {len(errors)} error(s)"

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        error=error_message,
        error_code=ErrorCode.VALIDATION_ERROR.value,
        details={"errors": errors},
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Convert HTTPException to the standard error format."""
    status_code_mapping = {
        400: ErrorCode.VALIDATION_ERROR,
        401: ErrorCode.AUTHENTICATION_REQUIRED,
        403: ErrorCode.PERMISSION_DENIED,
        404: ErrorCode.RESOURCE_NOT_FOUND,
        405: ErrorCode.VALIDATION_ERROR,
        422: ErrorCode.VALIDATION_ERROR,
        500: ErrorCode.INTERNAL_ERROR,
        502: ErrorCode.EXTERNAL_SERVICE_ERROR,
        503: ErrorCode.EXTERNAL_SERVICE_ERROR,
    }

    error_code = status_code_mapping.get(exc.status_code, ErrorCode.UNKNOWN_ERROR)
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {detail}")
    elif exc.status_code >= 400:
        logger.warning(f"HTTP {exc.status_code}: {detail}")

    headers = None
    if exc.headers:
        safe_headers = {"WWW-Authenticate"}
        headers = {k: v for k, v in exc.headers.items() if k in safe_headers} or None

    return create_error_response(
        status_code=exc.status_code,
        error=detail,
        error_code=error_code.value,
        headers=headers,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for unexpected errors.

    Logs the traceback, reports to Sentry and returns a generic message
    with a short reference id.
    """
    error_reference = str(uuid.uuid4())[:8]

    logger.error(
        f"Unhandled exception [ref:{error_reference}] on "
        f"{request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )

    event_id = report_to_sentry(
        exc,
        request,
        extra_context={"error_reference": error_reference},
    )

    if not IS_PRODUCTION:
        details = {"error_reference": error_reference}
        if event_id:
            details["sentry_event_id"] = event_id
        return create_error_response(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error=f"Internal server error: {type(exc).__name__}",
            error_code=ErrorCode.INTERNAL_ERROR.value,
            details=details,
        )

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error="An unexpected error occurred. Please try again later.",
        error_code=ErrorCode.INTERNAL_ERROR.value,
        details={"error_reference": error_reference},
    )


# =============================================================================
# Handler Registration
# =============================================================================

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance.
    """
    app.add_exception_handler(RelayError, relay_exception_handler)
    app.add_exception_handler(MailToSocialException, mailtosocial_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    logger.info("Exception handlers registered successfully")
