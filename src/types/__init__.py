"""
Type definitions for the MailToSocial publishing service.
"""

from .social import (
    CreateScheduledPostRequest,
    Credential,
    DeleteResponse,
    LinkedInCredential,
    LinkedInRelayRequest,
    LinkedInRelayResponse,
    MediaFile,
    PostStatus,
    PublishResult,
    ScheduledPost,
    SocialPlatform,
    TickSummary,
    TwitterCredential,
    TwitterRelayRequest,
    TwitterRelayResponse,
    UpdateScheduledPostRequest,
)

__all__ = [
    "CreateScheduledPostRequest",
    "Credential",
    "DeleteResponse",
    "LinkedInCredential",
    "LinkedInRelayRequest",
    "LinkedInRelayResponse",
    "MediaFile",
    "PostStatus",
    "PublishResult",
    "ScheduledPost",
    "SocialPlatform",
    "TickSummary",
    "TwitterCredential",
    "TwitterRelayRequest",
    "TwitterRelayResponse",
    "UpdateScheduledPostRequest",
]
