"""
Base class for social media platform publishers.

Defines the error hierarchy shared by the publishers and the media download
step both of them run before composing a post.
"""

import logging
from abc import ABC
from typing import Any, Dict, Optional
from urllib.parse import unquote, urlparse

import httpx

from src.types.social import MediaFile, SocialPlatform

logger = logging.getLogger(__name__)

# Media URLs point at storage objects that may be overwritten in place.
MEDIA_REQUEST_HEADERS = {
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}
DEFAULT_MEDIA_TYPE = "image/jpeg"
DEFAULT_MEDIA_FILENAME = "image.jpg"


class PlatformError(Exception):
    """Base exception for platform errors."""

    def __init__(
        self,
        message: str,
        platform: Optional[SocialPlatform] = None,
        status_code: Optional[int] = None,
        raw_error: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize platform error.

        Args:
            message: Human-readable error message
            platform: The platform that raised the error
            status_code: HTTP status returned by the platform, if any
            raw_error: Raw response bodies kept for diagnostics
        """
        super().__init__(message)
        self.message = message
        self.platform = platform
        self.status_code = status_code
        self.raw_error = raw_error


class PublishError(PlatformError):
    """Exception raised when the platform rejects the compose call."""

    pass


class RelayUnreachableError(PlatformError):
    """Exception raised on a transport failure talking to the relay or a platform."""

    pass


class MediaError(PlatformError):
    """Base for media failures. Publishers recover from these by posting text only."""

    pass


class MediaDownloadError(MediaError):
    """Exception raised when the media URL cannot be fetched."""

    pass


class MediaValidationError(MediaError):
    """Exception raised when the fetched media is not an image."""

    pass


class MediaUploadError(MediaError):
    """Exception raised when the platform-side media upload fails."""

    pass


def media_filename(media_url: str) -> str:
    """Last path segment of the media URL, used as the attachment title."""
    name = unquote(urlparse(media_url).path.rsplit("/", 1)[-1])
    return name or DEFAULT_MEDIA_FILENAME


class BasePlatform(ABC):
    """
    Abstract base class for platform publishers.

    Subclasses set ``platform`` and implement a ``publish`` coroutine that
    returns a PublishResult.
    """

    platform: SocialPlatform

    def __init__(
        self,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the publisher.

        Args:
            timeout: Seconds allowed for each outbound HTTP call
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self._timeout = timeout
        self._transport = transport
        self._logger = logging.getLogger(f"{__name__}.{self.platform.value}")

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    # -------------------------------------------------------------------------
    # Media
    # -------------------------------------------------------------------------

    async def fetch_media(self, media_url: str) -> MediaFile:
        """
        Download an image to attach to a post.

        Args:
            media_url: Public URL of a previously uploaded image

        Returns:
            The downloaded image

        Raises:
            MediaDownloadError: On transport failure or a non-2xx response
            MediaValidationError: If the response is not an image
        """
        async with self._http_client() as client:
            try:
                response = await client.get(
                    media_url,
                    headers=MEDIA_REQUEST_HEADERS,
                    follow_redirects=True,
                )
            except httpx.HTTPError as e:
                raise MediaDownloadError(
                    f"Failed to fetch media: {e}",
                    platform=self.platform,
                ) from e

        if not response.is_success:
            raise MediaDownloadError(
                f"Failed to fetch media: {response.status_code} {response.reason_phrase}",
                platform=self.platform,
                status_code=response.status_code,
            )

        content_type = response.headers.get("content-type") or DEFAULT_MEDIA_TYPE
        media_type = content_type.split(";")[0].strip().lower()
        if not media_type.startswith("image/"):
            raise MediaValidationError(
                f"Invalid content type: {content_type}. Expected an image.",
                platform=self.platform,
            )

        return MediaFile(
            content=response.content,
            content_type=media_type,
            filename=media_filename(media_url),
        )

    async def fetch_media_or_none(self, media_url: str) -> Optional[MediaFile]:
        """Download media, returning None so the caller falls back to text only."""
        try:
            media = await self.fetch_media(media_url)
        except MediaError as e:
            self._logger.warning(f"Continuing without media: {e.message}")
            return None

        self._logger.info(
            f"Fetched media ({media.content_type}, {len(media.content)} bytes)"
        )
        return media
