"""
LinkedIn publisher.

Posts through the UGC Posts API with the member's OAuth 2.0 bearer token.
Images go through the two-step asset upload (register, then PUT the bytes).
"""

import logging
from typing import Any, Dict, Optional

import httpx

from src.config import Settings, get_settings
from src.types.social import LinkedInCredential, MediaFile, PublishResult, SocialPlatform

from .base import (
    BasePlatform,
    MediaUploadError,
    PublishError,
    RelayUnreachableError,
)

logger = logging.getLogger(__name__)


class LinkedInPlatform(BasePlatform):
    """
    LinkedIn API integration.

    Uses the member's bearer token for every call and the UGC Posts API for
    publishing.
    """

    platform = SocialPlatform.LINKEDIN

    API_BASE = "https://api.linkedin.com/v2"
    SHARE_CONTENT_KEY = "com.linkedin.ugc.ShareContent"
    VISIBILITY_KEY = "com.linkedin.ugc.MemberNetworkVisibility"
    UPLOAD_MECHANISM_KEY = "com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest"
    IMAGE_RECIPE = "urn:li:digitalmediaRecipe:feedshare-image"

    @classmethod
    def from_settings(cls, settings: Settings) -> "LinkedInPlatform":
        return cls(timeout=settings.relay.http_timeout_seconds)

    def _headers(self, credential: LinkedInCredential) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {credential.access_token}",
            "Content-Type": "application/json",
            "X-Restli-Protocol-Version": "2.0.0",
        }

    # -------------------------------------------------------------------------
    # Post Body
    # -------------------------------------------------------------------------

    def build_share(
        self,
        content: str,
        person_urn: str,
        media_entry: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Compose a UGC post body, text only unless a media entry is given."""
        share_content: Dict[str, Any] = {
            "shareCommentary": {
                "text": content,
            },
            "shareMediaCategory": "NONE",
        }
        if media_entry is not None:
            share_content["shareMediaCategory"] = "IMAGE"
            share_content["media"] = [media_entry]

        return {
            "author": person_urn,
            "lifecycleState": "PUBLISHED",
            "specificContent": {
                self.SHARE_CONTENT_KEY: share_content,
            },
            "visibility": {
                self.VISIBILITY_KEY: "PUBLIC",
            },
        }

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    async def publish(
        self,
        content: str,
        credential: LinkedInCredential,
        author_profile_id: str,
        media_url: Optional[str] = None,
    ) -> PublishResult:
        """
        Publish a post to LinkedIn.

        If the first submission is rejected with a body mentioning the author,
        it is retried once with the ``author`` field removed. Some token
        configurations refuse an explicit author URN.

        Args:
            content: Post text
            credential: Member bearer token
            author_profile_id: LinkedIn person id of the poster
            media_url: Optional image URL

        Returns:
            PublishResult with the LinkedIn post id

        Raises:
            PublishError: If LinkedIn rejects the post (after the fallback)
            RelayUnreachableError: On a transport failure
        """
        person_urn = f"urn:li:person:{author_profile_id}"

        media_entry = None
        if media_url:
            media = await self.fetch_media_or_none(media_url)
            if media is not None:
                try:
                    asset_urn = await self.upload_image(credential, person_urn, media)
                except MediaUploadError as e:
                    logger.warning(f"Posting to LinkedIn without media: {e.message}")
                else:
                    media_entry = {
                        "status": "READY",
                        "description": {"text": "Image shared with post"},
                        "media": asset_urn,
                        "title": {"text": media.filename},
                    }

        share = self.build_share(content, person_urn, media_entry)

        async with self._http_client() as client:
            response = await self._submit(client, credential, share)

            if not response.is_success:
                first_error = response.text
                if "author" not in first_error.lower():
                    raise PublishError(
                        f"Failed to post to LinkedIn: {response.status_code}",
                        platform=self.platform,
                        status_code=response.status_code,
                        raw_error={"original": first_error},
                    )

                logger.warning(
                    f"LinkedIn rejected the author field ({response.status_code}), retrying without it"
                )
                fallback = {key: value for key, value in share.items() if key != "author"}
                response = await self._submit(client, credential, fallback)

                if not response.is_success:
                    raise PublishError(
                        f"Failed to post to LinkedIn: {response.status_code} (after author fallback)",
                        platform=self.platform,
                        status_code=response.status_code,
                        raw_error={"original": first_error, "fallback": response.text},
                    )

        post_id = self._extract_post_id(response)
        logger.info(f"Published LinkedIn post {post_id} (media={media_entry is not None})")

        return PublishResult(id=post_id, has_media=media_entry is not None)

    async def _submit(
        self,
        client: httpx.AsyncClient,
        credential: LinkedInCredential,
        share: Dict[str, Any],
    ) -> httpx.Response:
        try:
            return await client.post(
                f"{self.API_BASE}/ugcPosts",
                headers=self._headers(credential),
                json=share,
            )
        except httpx.HTTPError as e:
            raise RelayUnreachableError(
                f"Network error posting to LinkedIn: {str(e) or type(e).__name__}",
                platform=self.platform,
            ) from e

    def _extract_post_id(self, response: httpx.Response) -> str:
        """Post id from the JSON body, falling back to the x-restli-id header."""
        post_id = None
        if response.content:
            try:
                post_id = response.json().get("id")
            except (ValueError, AttributeError):
                post_id = None
        post_id = post_id or response.headers.get("x-restli-id")
        if not post_id:
            logger.warning("LinkedIn accepted the post but returned no id")
            return ""
        return str(post_id)

    async def upload_image(
        self,
        credential: LinkedInCredential,
        person_urn: str,
        media: MediaFile,
    ) -> str:
        """
        Upload an image to LinkedIn.

        LinkedIn image upload is a two-step process:
        1. Register the upload to get an upload URL and asset URN
        2. PUT the image bytes to that URL

        Returns:
            The asset URN for the uploaded image

        Raises:
            MediaUploadError: If either step fails
        """
        register_request = {
            "registerUploadRequest": {
                "recipes": [self.IMAGE_RECIPE],
                "owner": person_urn,
                "serviceRelationships": [
                    {
                        "relationshipType": "OWNER",
                        "identifier": "urn:li:userGeneratedContent",
                    }
                ],
            }
        }

        async with self._http_client() as client:
            try:
                response = await client.post(
                    f"{self.API_BASE}/assets?action=registerUpload",
                    headers=self._headers(credential),
                    json=register_request,
                )
            except httpx.HTTPError as e:
                raise MediaUploadError(
                    f"Failed to register image upload: {e}",
                    platform=self.platform,
                ) from e

            if not response.is_success:
                raise MediaUploadError(
                    f"Failed to register image upload: {response.status_code}",
                    platform=self.platform,
                    status_code=response.status_code,
                    raw_error={"body": response.text},
                )

            try:
                value = response.json()["value"]
                upload_url = value["uploadMechanism"][self.UPLOAD_MECHANISM_KEY]["uploadUrl"]
                asset_urn = value["asset"]
            except (ValueError, KeyError, TypeError) as e:
                raise MediaUploadError(
                    "Unexpected response registering image upload",
                    platform=self.platform,
                    raw_error={"body": response.text},
                ) from e

            try:
                upload_response = await client.put(
                    upload_url,
                    content=media.content,
                    headers={
                        "Authorization": f"Bearer {credential.access_token}",
                        "Content-Type": "application/octet-stream",
                    },
                )
            except httpx.HTTPError as e:
                raise MediaUploadError(
                    f"Failed to upload image to LinkedIn: {e}",
                    platform=self.platform,
                ) from e

            if not upload_response.is_success:
                raise MediaUploadError(
                    f"Failed to upload image to LinkedIn: {upload_response.status_code}",
                    platform=self.platform,
                    status_code=upload_response.status_code,
                    raw_error={"body": upload_response.text},
                )

        logger.info(f"Uploaded LinkedIn image asset {asset_urn}")
        return asset_urn


# Global platform instance, built lazily from settings by the relay routes
_linkedin_platform: Optional[LinkedInPlatform] = None


def get_linkedin_platform() -> LinkedInPlatform:
    """Get the shared LinkedIn publisher."""
    global _linkedin_platform
    if _linkedin_platform is None:
        _linkedin_platform = LinkedInPlatform.from_settings(get_settings())
    return _linkedin_platform
