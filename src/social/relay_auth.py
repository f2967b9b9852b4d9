"""
Hourly bearer token shared by the publishing pipeline and the relay endpoints.

Both sides know the same secret and hash it together with the current UTC
hour bucket, so a token is valid until the hour rolls over. There is no
replay protection inside the hour.
"""

import hashlib
import hmac
import math
import time
from typing import Optional

HOUR_SECONDS = 3600


def hour_bucket(now: Optional[float] = None) -> int:
    """Index of the UTC hour containing ``now`` (unix seconds)."""
    timestamp = time.time() if now is None else now
    return math.floor(timestamp / HOUR_SECONDS)


def derive_relay_token(secret: str, bucket: Optional[int] = None) -> str:
    """
    Compute ``hex(sha256(secret + ":" + bucket))``.

    Args:
        secret: Shared relay secret
        bucket: Hour bucket, defaults to the current one

    Returns:
        Lower-case hex digest
    """
    if bucket is None:
        bucket = hour_bucket()
    return hashlib.sha256(f"{secret}:{bucket}".encode("utf-8")).hexdigest()


def verify_relay_token(token: str, secret: str, now: Optional[float] = None) -> bool:
    """Check a presented token against the current hour in constant time."""
    expected = derive_relay_token(secret, hour_bucket(now))
    return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))
