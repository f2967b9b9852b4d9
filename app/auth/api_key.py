"""
API key authentication for the scheduled post API.

Keys map to the web app's user ids. They are stored as SHA-256 hashes; the
plain-text key is only returned once, when created.
"""

import hashlib
import json
import logging
import os
import secrets
from pathlib import Path
from typing import Dict, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from src.config import get_settings

logger = logging.getLogger(__name__)

API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)


class APIKeyStore:
    """File-based API key storage with hashed keys."""

    def __init__(self, storage_path: Optional[str] = None):
        """
        Initialize the API key store.

        Args:
            storage_path: Path to the JSON key file. Defaults to the
                API_KEY_STORAGE_PATH env var or ./data/api_keys.json
        """
        self.storage_path = Path(
            storage_path
            or os.environ.get("API_KEY_STORAGE_PATH", "./data/api_keys.json")
        )
        self._cache: Dict[str, str] = {}  # user_id -> hashed_key
        self._load()

    def _hash_key(self, api_key: str) -> str:
        return hashlib.sha256(api_key.encode()).hexdigest()

    def _load(self) -> None:
        if not self.storage_path.exists():
            self._cache = {}
            return
        try:
            with open(self.storage_path, "r") as f:
                self._cache = json.load(f)
            logger.info(f"Loaded {len(self._cache)} API keys from storage")
        except (json.JSONDecodeError, IOError) as e:
            logger.error(f"Error loading API keys: {e}")
            self._cache = {}

    def _save(self) -> None:
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.storage_path, "w") as f:
            json.dump(self._cache, f, indent=2)

    def create_key(self, user_id: str) -> str:
        """
        Create (or replace) the API key for a user.

        Returns:
            The plain-text key. It cannot be retrieved later.
        """
        plain_key = secrets.token_urlsafe(32)
        self._cache[user_id] = self._hash_key(plain_key)
        self._save()
        logger.info(f"Created new API key for user: {user_id}")
        return plain_key

    def verify_key(self, api_key: str) -> Optional[str]:
        """Return the user_id owning ``api_key``, or None. Constant-time per entry."""
        hashed_input = self._hash_key(api_key)
        for user_id, stored_hash in self._cache.items():
            if secrets.compare_digest(stored_hash, hashed_input):
                return user_id
        return None

    def revoke_key(self, user_id: str) -> bool:
        """Revoke a user's API key. Returns False if the user had none."""
        if user_id in self._cache:
            del self._cache[user_id]
            self._save()
            logger.info(f"Revoked API key for user: {user_id}")
            return True
        return False


_api_key_store: Optional[APIKeyStore] = None


def get_api_key_store() -> APIKeyStore:
    """Get the shared API key store, loading it on first use."""
    global _api_key_store
    if _api_key_store is None:
        _api_key_store = APIKeyStore()
    return _api_key_store


async def verify_api_key(
    request: Request,
    api_key: Optional[str] = Depends(API_KEY_HEADER),
) -> str:
    """
    Verify the X-API-Key header and return the owning user_id.

    In dev mode (DEV_MODE=true) every request is treated as ``dev_user``.

    Raises:
        HTTPException: If the key is missing or invalid (unless in dev mode).
    """
    # SECURITY: Default is FALSE - must explicitly enable dev mode
    if get_settings().is_dev_mode:
        request.state.user_id = "dev_user"
        return "dev_user"

    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key"
        )

    user_id = get_api_key_store().verify_key(api_key)
    if user_id:
        request.state.user_id = user_id
        return user_id

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key"
    )
