"""Utility modules for MailToSocial."""

from .logging import (
    setup_logging,
    set_request_context,
    clear_request_context,
    get_request_id,
    Timer,
    JSONFormatter,
    DevelopmentFormatter,
    RequestContextFilter,
    SensitiveDataFilter,
    redact_sensitive_data,
)

__all__ = [
    "setup_logging",
    "set_request_context",
    "clear_request_context",
    "get_request_id",
    "Timer",
    "JSONFormatter",
    "DevelopmentFormatter",
    "RequestContextFilter",
    "SensitiveDataFilter",
    "redact_sensitive_data",
]
