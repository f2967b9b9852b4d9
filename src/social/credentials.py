"""
Lookup of stored OAuth credentials for scheduled posts.

Account rows are written by the web app's auth layer (one row per user and
provider). Field names for the Twitter token pair vary between provider
adapters, so each value is taken from the first candidate column that is set.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from src.config import get_settings
from src.storage.supabase_client import StoreError, execute_with_table_fallback, get_supabase_client
from src.types.social import (
    Credential,
    LinkedInCredential,
    SocialPlatform,
    TwitterCredential,
)

logger = logging.getLogger(__name__)

TWITTER_TOKEN_FIELDS = ("oauth_token", "access_token", "token")
TWITTER_SECRET_FIELDS = ("oauth_token_secret", "access_secret", "token_secret")


class CredentialError(Exception):
    """Base exception for credential lookups."""

    def __init__(self, message: str, user_id: Optional[str] = None, platform: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.platform = platform


class CredentialNotFound(CredentialError):
    """No account row exists for the user and provider."""

    pass


class CredentialIncomplete(CredentialError):
    """An account row exists but lacks the fields needed to authenticate."""

    pass


def _first_present(account: Dict[str, Any], fields: Sequence[str]) -> Optional[str]:
    for name in fields:
        value = account.get(name)
        if value:
            return str(value)
    return None


def extract_credential(account: Dict[str, Any], platform: SocialPlatform) -> Credential:
    """
    Pull the token material for ``platform`` out of an account row.

    Raises:
        CredentialIncomplete: If a required field is missing or empty
    """
    if platform == SocialPlatform.LINKEDIN:
        access_token = account.get("access_token")
        if not access_token:
            raise CredentialIncomplete(
                "LinkedIn account does not have a valid access token",
                platform=platform.value,
            )
        return LinkedInCredential(access_token=str(access_token))

    token = _first_present(account, TWITTER_TOKEN_FIELDS)
    token_secret = _first_present(account, TWITTER_SECRET_FIELDS)
    if not token or not token_secret:
        raise CredentialIncomplete(
            "Missing token fields in account. Need both token and secret.",
            platform=platform.value,
        )
    return TwitterCredential(oauth_token=token, oauth_token_secret=token_secret)


class CredentialResolver:
    """
    Resolves per-user platform credentials from Supabase.

    Read-only: nothing here mutates an account or user row.
    """

    def __init__(
        self,
        client: Any = None,
        account_tables: Optional[List[str]] = None,
        user_tables: Optional[List[str]] = None,
    ) -> None:
        """
        Initialize the resolver.

        Args:
            client: Supabase client (defaults to the shared one, created lazily)
            account_tables: Account table aliases, tried in order
            user_tables: User table aliases, tried in order
        """
        settings = get_settings()
        self._client = client
        self._account_tables = account_tables or settings.database.account_table_list
        self._user_tables = user_tables or settings.database.user_table_list

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    async def resolve(self, user_id: str, platform: SocialPlatform) -> Credential:
        """
        Get the credential ``user_id`` connected for ``platform``.

        Raises:
            CredentialNotFound: If no account table has a matching row
            CredentialIncomplete: If the row lacks required token fields
        """
        if not user_id:
            raise CredentialNotFound("Scheduled post has no owning user", platform=platform.value)

        try:
            table, response = await execute_with_table_fallback(
                self.client,
                self._account_tables,
                lambda query: query.select("*").eq("userId", user_id).eq("provider", platform.value).limit(1),
                require_rows=True,
            )
        except StoreError as e:
            logger.warning(f"No {platform.value} account for user {user_id}: {'; '.join(e.errors)}")
            raise CredentialNotFound(
                f"Could not find {platform.value} credentials for user {user_id}. Tried multiple table names.",
                user_id=user_id,
                platform=platform.value,
            ) from e

        logger.debug(f"Found {platform.value} account for user {user_id} in table '{table}'")

        try:
            return extract_credential(response.data[0], platform)
        except CredentialIncomplete as e:
            e.user_id = user_id
            raise

    async def get_linkedin_profile_id(self, user_id: str) -> Optional[str]:
        """
        Look up the LinkedIn person id stored on the user row.

        Returns:
            The profile id, or None if the user or the field is missing
        """
        try:
            _, response = await execute_with_table_fallback(
                self.client,
                self._user_tables,
                lambda query: query.select("id, linkedinProfileId").eq("id", user_id).limit(1),
                require_rows=True,
            )
        except StoreError:
            logger.warning(f"User {user_id} not found in any user table")
            return None

        profile_id = response.data[0].get("linkedinProfileId")
        return str(profile_id) if profile_id else None


# Global resolver instance
_credential_resolver: Optional[CredentialResolver] = None


def get_credential_resolver() -> CredentialResolver:
    """Get the shared credential resolver."""
    global _credential_resolver
    if _credential_resolver is None:
        _credential_resolver = CredentialResolver()
    return _credential_resolver
