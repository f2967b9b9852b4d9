"""Authentication components for the MailToSocial API."""

from .api_key import (
    API_KEY_HEADER,
    APIKeyStore,
    get_api_key_store,
    verify_api_key,
)
from .relay import require_relay_token

__all__ = [
    "APIKeyStore",
    "API_KEY_HEADER",
    "get_api_key_store",
    "verify_api_key",
    "require_relay_token",
]
