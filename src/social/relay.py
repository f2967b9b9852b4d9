"""
Relay-backed publishers used by the publishing pipeline.

The pipeline does not talk to Twitter or LinkedIn itself. It POSTs each
post to the web app's relay endpoints, authenticated with the hourly bearer
token, and the relay performs the signed platform calls.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from src.config import Settings
from src.types.social import (
    Credential,
    LinkedInCredential,
    LinkedInRelayResponse,
    PublishResult,
    ScheduledPost,
    SocialPlatform,
    TwitterCredential,
    TwitterRelayResponse,
)

from .platforms.base import PlatformError, PublishError, RelayUnreachableError
from .relay_auth import derive_relay_token

logger = logging.getLogger(__name__)


class RelayClient:
    """HTTP client for the relay endpoints."""

    TWITTER_PATH = "/api/scheduled-posts/twitter"
    LINKEDIN_PATH = "/api/scheduled-posts/linkedin"

    def __init__(
        self,
        base_url: str,
        api_secret: Optional[str],
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the relay client.

        Args:
            base_url: Base URL of the app hosting the relay endpoints
            api_secret: Shared secret for the hourly bearer token
            timeout: Seconds allowed per relay call
            transport: Optional httpx transport (tests route this to the app)
        """
        self._base_url = base_url.rstrip("/")
        self._api_secret = api_secret
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "RelayClient":
        secret = settings.relay.scheduled_posts_api_secret
        return cls(
            base_url=settings.relay_base_url,
            api_secret=secret.get_secret_value() if secret else None,
            timeout=settings.relay.http_timeout_seconds,
        )

    async def post(self, path: str, payload: Dict[str, Any], platform: SocialPlatform) -> Dict[str, Any]:
        """
        POST a payload to a relay endpoint and return its JSON body.

        Raises:
            RelayUnreachableError: On a transport failure or timeout
            PublishError: On a non-2xx relay response
        """
        if not self._api_secret:
            raise PlatformError(
                "SCHEDULED_POSTS_API_SECRET is not configured",
                platform=platform,
            )

        headers = {
            "Authorization": f"Bearer {derive_relay_token(self._api_secret)}",
            "Content-Type": "application/json",
        }

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    f"{self._base_url}{path}",
                    headers=headers,
                    json=payload,
                )
            except httpx.HTTPError as e:
                raise RelayUnreachableError(
                    f"Network error calling {platform.value} relay: {str(e) or type(e).__name__}",
                    platform=platform,
                ) from e

        if not response.is_success:
            body = response.text
            raise PublishError(
                f"API error: {body}",
                platform=platform,
                status_code=response.status_code,
                raw_error={"body": body},
            )

        try:
            return response.json()
        except ValueError as e:
            raise PublishError(
                f"Relay returned a non-JSON response: {response.text[:200]}",
                platform=platform,
                status_code=response.status_code,
            ) from e


# -----------------------------------------------------------------------------
# Publishers
# -----------------------------------------------------------------------------


class ScheduledPublisher(ABC):
    """A publisher the pipeline dispatches a due row to."""

    platform: SocialPlatform

    @abstractmethod
    async def publish(self, post: ScheduledPost, credential: Credential) -> PublishResult:
        """Publish the row's content and return the platform post id."""
        pass


class RelayTwitterPublisher(ScheduledPublisher):
    """Publishes tweets through the Twitter relay endpoint."""

    platform = SocialPlatform.TWITTER

    def __init__(self, relay: RelayClient) -> None:
        self._relay = relay

    async def publish(self, post: ScheduledPost, credential: Credential) -> PublishResult:
        if not isinstance(credential, TwitterCredential):
            raise PlatformError("Twitter publish requires a Twitter credential", platform=self.platform)

        payload: Dict[str, Any] = {
            "content": post.content,
            "oauthToken": credential.oauth_token,
            "oauthTokenSecret": credential.oauth_token_secret,
        }
        if post.media_url:
            payload["mediaUrl"] = post.media_url

        body = await self._relay.post(RelayClient.TWITTER_PATH, payload, self.platform)
        try:
            result = TwitterRelayResponse.model_validate(body)
        except ValidationError as e:
            raise PublishError(
                "Twitter relay response did not include a tweet id",
                platform=self.platform,
                raw_error={"body": body},
            ) from e

        return PublishResult(id=result.tweet_id, has_media=result.has_media)


class RelayLinkedInPublisher(ScheduledPublisher):
    """Publishes LinkedIn posts through the LinkedIn relay endpoint."""

    platform = SocialPlatform.LINKEDIN

    def __init__(self, relay: RelayClient) -> None:
        self._relay = relay

    async def publish(self, post: ScheduledPost, credential: Credential) -> PublishResult:
        if not isinstance(credential, LinkedInCredential):
            raise PlatformError("LinkedIn publish requires a LinkedIn credential", platform=self.platform)

        payload: Dict[str, Any] = {
            "content": post.content,
            "accessToken": credential.access_token,
            "userId": post.user_id,
        }
        if post.media_url:
            payload["mediaUrl"] = post.media_url

        body = await self._relay.post(RelayClient.LINKEDIN_PATH, payload, self.platform)
        try:
            result = LinkedInRelayResponse.model_validate(body)
        except ValidationError as e:
            raise PublishError(
                "LinkedIn relay response did not include a post id",
                platform=self.platform,
                raw_error={"body": body},
            ) from e

        return PublishResult(id=result.post_id, has_media=result.has_media)


def build_relay_publishers(relay: RelayClient) -> Dict[SocialPlatform, ScheduledPublisher]:
    """Publisher registry the pipeline dispatches on."""
    return {
        SocialPlatform.TWITTER: RelayTwitterPublisher(relay),
        SocialPlatform.LINKEDIN: RelayLinkedInPublisher(relay),
    }
