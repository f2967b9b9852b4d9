"""
Relay endpoints that perform the signed platform calls for scheduled posts.

The publishing pipeline never holds app-level platform secrets. It sends the
post and the user's token material here, authenticated with the hourly
bearer token, and these routes call Twitter or LinkedIn on its behalf.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status

from src.social.credentials import CredentialResolver, get_credential_resolver
from src.social.platforms.base import PlatformError
from src.social.platforms.linkedin import LinkedInPlatform, get_linkedin_platform
from src.social.platforms.twitter import TwitterPlatform, get_twitter_platform
from src.types.social import (
    LinkedInCredential,
    LinkedInRelayRequest,
    LinkedInRelayResponse,
    TwitterCredential,
    TwitterRelayRequest,
    TwitterRelayResponse,
)

from ..auth import require_relay_token
from ..exceptions import RelayError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/scheduled-posts",
    tags=["relay"],
    dependencies=[Depends(require_relay_token)],
)

MISSING_PARAMETERS = "Missing required parameters"


# =============================================================================
# Twitter
# =============================================================================


@router.post(
    "/twitter",
    response_model=TwitterRelayResponse,
    responses={
        400: {"description": "Missing required parameters"},
        401: {"description": "Missing or malformed bearer token"},
        403: {"description": "Invalid API token"},
        500: {"description": "Twitter rejected the tweet or could not be reached"},
    },
)
async def relay_twitter(
    request: Optional[TwitterRelayRequest] = None,
    platform: TwitterPlatform = Depends(get_twitter_platform),
) -> TwitterRelayResponse:
    """
    Publish a tweet with the caller-supplied OAuth1 token pair.

    An image at ``mediaUrl`` is attached when it can be downloaded and
    uploaded; otherwise the tweet goes out as text only.
    """
    if request is None or not (request.content and request.oauth_token and request.oauth_token_secret):
        raise RelayError(MISSING_PARAMETERS, status_code=status.HTTP_400_BAD_REQUEST)

    credential = TwitterCredential(
        oauth_token=request.oauth_token,
        oauth_token_secret=request.oauth_token_secret,
    )

    try:
        result = await platform.publish(
            request.content,
            credential,
            media_url=request.media_url or None,
        )
    except PlatformError as e:
        raise RelayError(
            e.message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            internal_message=str(e.raw_error) if e.raw_error else None,
        ) from e

    return TwitterRelayResponse(tweet_id=result.id, has_media=result.has_media)


# =============================================================================
# LinkedIn
# =============================================================================


@router.post(
    "/linkedin",
    response_model=LinkedInRelayResponse,
    responses={
        400: {"description": "Missing required parameters"},
        401: {"description": "Missing or malformed bearer token"},
        403: {"description": "Invalid API token"},
        404: {"description": "LinkedIn profile ID not found"},
        500: {"description": "LinkedIn rejected the post"},
    },
)
async def relay_linkedin(
    request: Optional[LinkedInRelayRequest] = None,
    platform: LinkedInPlatform = Depends(get_linkedin_platform),
    resolver: CredentialResolver = Depends(get_credential_resolver),
) -> LinkedInRelayResponse:
    """
    Publish a LinkedIn post as the given user.

    The author URN is built from the ``linkedinProfileId`` stored on the
    user row.
    """
    if request is None or not (request.content and request.access_token and request.user_id):
        raise RelayError(MISSING_PARAMETERS, status_code=status.HTTP_400_BAD_REQUEST)

    profile_id = await resolver.get_linkedin_profile_id(request.user_id)
    if not profile_id:
        raise RelayError("LinkedIn profile ID not found", status_code=status.HTTP_404_NOT_FOUND)

    try:
        result = await platform.publish(
            request.content,
            LinkedInCredential(access_token=request.access_token),
            author_profile_id=profile_id,
            media_url=request.media_url or None,
        )
    except PlatformError as e:
        raise RelayError(
            "LinkedIn API error: Failed to post to LinkedIn",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=e.raw_error or {"message": e.message},
            internal_message=e.message,
        ) from e

    return LinkedInRelayResponse(post_id=result.id, has_media=result.has_media)
