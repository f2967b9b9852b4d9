"""
Bearer token check for the relay and tick endpoints.

Callers send ``Authorization: Bearer <token>`` where the token is the hourly
hash of the shared SCHEDULED_POSTS_API_SECRET.
"""

import logging
from typing import Optional

from fastapi import Header

from app.exceptions import RelayError
from src.config import get_settings
from src.social.relay_auth import verify_relay_token

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


async def require_relay_token(authorization: Optional[str] = Header(default=None)) -> None:
    """
    Reject requests without a valid hourly bearer token.

    Raises:
        RelayError: 401 for a missing or non-Bearer header, 403 for a
            token that does not match the current hour
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise RelayError("Unauthorized access", status_code=401)

    secret = get_settings().relay.scheduled_posts_api_secret
    if secret is None:
        raise RelayError(
            "Relay is not configured",
            status_code=500,
            internal_message="SCHEDULED_POSTS_API_SECRET is not set",
        )

    token = authorization[len(BEARER_PREFIX):].strip()
    if not verify_relay_token(token, secret.get_secret_value()):
        logger.warning("Rejected relay request with a stale or invalid token")
        raise RelayError("Invalid API token", status_code=403)
