"""
Twitter/X publisher.

Signs every call with OAuth1 (app consumer pair plus the user's token pair)
through authlib's httpx client. Media goes through the v1.1 upload endpoint
and the tweet itself through the v2 create-tweet endpoint. This runs inside
the relay endpoint, never inside the pipeline process.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from authlib.integrations.httpx_client import AsyncOAuth1Client

from src.config import Settings, get_settings
from src.types.social import MediaFile, PublishResult, SocialPlatform, TwitterCredential

from .base import (
    BasePlatform,
    MediaUploadError,
    PlatformError,
    PublishError,
    RelayUnreachableError,
)

logger = logging.getLogger(__name__)


def _error_detail(response: httpx.Response) -> str:
    """Best human-readable message from a Twitter error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:500]

    if isinstance(body, dict):
        if body.get("detail"):
            return str(body["detail"])
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return str(errors[0].get("message") or errors[0])
    return response.text[:500]


class TwitterPlatform(BasePlatform):
    """Twitter publisher using OAuth 1.0a user context."""

    platform = SocialPlatform.TWITTER

    UPLOAD_URL = "https://upload.twitter.com/1.1/media/upload.json"
    TWEETS_URL = "https://api.twitter.com/2/tweets"

    def __init__(
        self,
        consumer_key: Optional[str] = None,
        consumer_secret: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        self._consumer_key = consumer_key
        self._consumer_secret = consumer_secret

        if self.is_configured:
            logger.info("Twitter platform initialized successfully")
        else:
            logger.warning("Twitter app credentials not configured")

    @classmethod
    def from_settings(cls, settings: Settings) -> "TwitterPlatform":
        secret = settings.twitter.twitter_client_secret
        return cls(
            consumer_key=settings.twitter.twitter_client_id,
            consumer_secret=secret.get_secret_value() if secret else None,
            timeout=settings.relay.http_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        """Check if the app consumer key and secret are set."""
        return bool(self._consumer_key and self._consumer_secret)

    def _ensure_configured(self) -> None:
        if not self.is_configured:
            raise PlatformError(
                "twitter is not configured. Check TWITTER_CLIENT_ID and TWITTER_CLIENT_SECRET.",
                platform=self.platform,
            )

    def _oauth_client(self, credential: TwitterCredential) -> AsyncOAuth1Client:
        # Without force_include_body the signer drops JSON and multipart bodies
        return AsyncOAuth1Client(
            client_id=self._consumer_key,
            client_secret=self._consumer_secret,
            token=credential.oauth_token,
            token_secret=credential.oauth_token_secret,
            force_include_body=True,
            timeout=self._timeout,
            transport=self._transport,
        )

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    async def upload_media(self, client: httpx.AsyncClient, media: MediaFile) -> str:
        """
        Upload an image and return its media id.

        Args:
            client: OAuth1-signed client for the posting user
            media: The downloaded image

        Raises:
            MediaUploadError: If the upload fails for any reason
        """
        try:
            response = await client.post(
                self.UPLOAD_URL,
                files={"media": (media.filename, media.content, media.content_type)},
            )
        except httpx.HTTPError as e:
            raise MediaUploadError(
                f"Failed to upload media to Twitter: {str(e) or type(e).__name__}",
                platform=self.platform,
            ) from e

        if not response.is_success:
            raise MediaUploadError(
                f"Failed to upload media to Twitter: {response.status_code} {_error_detail(response)}",
                platform=self.platform,
                status_code=response.status_code,
                raw_error={"body": response.text},
            )

        try:
            body = response.json()
            return str(body.get("media_id_string") or body["media_id"])
        except (ValueError, KeyError, AttributeError) as e:
            raise MediaUploadError(
                "Unexpected response from Twitter media upload",
                platform=self.platform,
                raw_error={"body": response.text},
            ) from e

    async def publish(
        self,
        content: str,
        credential: TwitterCredential,
        media_url: Optional[str] = None,
    ) -> PublishResult:
        """
        Publish a tweet, attaching an image when one can be fetched and uploaded.

        Args:
            content: Tweet text
            credential: The user's OAuth1 token pair
            media_url: Optional image URL

        Returns:
            PublishResult with the tweet id

        Raises:
            PublishError: If Twitter rejects the tweet
            RelayUnreachableError: On a transport failure or timeout
        """
        self._ensure_configured()

        media = await self.fetch_media_or_none(media_url) if media_url else None

        async with self._oauth_client(credential) as client:
            media_ids: Optional[List[str]] = None
            if media is not None:
                try:
                    media_ids = [await self.upload_media(client, media)]
                except MediaUploadError as e:
                    logger.warning(f"Posting tweet without media: {e.message}")

            payload: Dict[str, Any] = {"text": content}
            if media_ids:
                payload["media"] = {"media_ids": media_ids}

            try:
                response = await client.post(self.TWEETS_URL, json=payload)
            except httpx.HTTPError as e:
                raise RelayUnreachableError(
                    f"Network error posting tweet: {str(e) or type(e).__name__}",
                    platform=self.platform,
                ) from e

        if not response.is_success:
            raise PublishError(
                f"Twitter API error: {response.status_code} {_error_detail(response)}",
                platform=self.platform,
                status_code=response.status_code,
                raw_error={"body": response.text},
            )

        try:
            tweet_id = str(response.json()["data"]["id"])
        except (ValueError, KeyError, TypeError) as e:
            raise PublishError(
                "Twitter accepted the tweet but returned no id",
                platform=self.platform,
                status_code=response.status_code,
                raw_error={"body": response.text},
            ) from e

        logger.info(f"Published tweet {tweet_id} (media={bool(media_ids)})")

        return PublishResult(id=tweet_id, has_media=bool(media_ids))


# Global platform instance, built lazily from settings by the relay routes
_twitter_platform: Optional[TwitterPlatform] = None


def get_twitter_platform() -> TwitterPlatform:
    """Get the shared Twitter publisher."""
    global _twitter_platform
    if _twitter_platform is None:
        _twitter_platform = TwitterPlatform.from_settings(get_settings())
    return _twitter_platform
