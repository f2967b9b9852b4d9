"""
Type definitions for scheduled social media publishing.

Provides models for:
- Scheduled post rows as stored in Supabase
- Per-platform OAuth credentials
- Publish results and tick summaries
- Relay and CRUD request/response payloads
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SocialPlatform(str, Enum):
    """Platforms a scheduled post can be published to."""

    TWITTER = "twitter"
    LINKEDIN = "linkedin"


class PostStatus(str, Enum):
    """Status of a scheduled post. Posted and failed are terminal."""

    PENDING = "pending"
    POSTED = "posted"
    FAILED = "failed"


def ensure_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# -----------------------------------------------------------------------------
# Stored Rows
# -----------------------------------------------------------------------------


class ScheduledPost(BaseModel):
    """
    A persisted intent to publish content to one platform at or after a time.

    Field aliases follow the camelCase column names of the scheduled post
    table. ``platform`` is kept as a plain string so rows carrying a value
    outside SocialPlatform can still be loaded and marked failed.
    """

    id: str
    user_id: str = Field(alias="userId")
    content: str
    platform: str
    scheduled_for: datetime = Field(alias="scheduledFor")
    media_url: Optional[str] = Field(default=None, alias="mediaUrl")
    status: PostStatus = PostStatus.PENDING
    post_id: Optional[str] = Field(default=None, alias="postId")
    error: Optional[str] = None
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def accept_error_message_column(cls, data: Any) -> Any:
        """Some deployments store the diagnostic in ``error_message``."""
        if isinstance(data, dict) and not data.get("error") and data.get("error_message"):
            data = {**data, "error": data["error_message"]}
        return data

    @field_validator("scheduled_for", "created_at", "updated_at")
    @classmethod
    def normalise_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Store timestamps are compared as UTC instants."""
        return ensure_utc(v) if v is not None else None

    def is_due(self, now: datetime) -> bool:
        """Check whether this row should be picked up by a tick at ``now``."""
        return self.status == PostStatus.PENDING and self.scheduled_for <= ensure_utc(now)


# -----------------------------------------------------------------------------
# Credentials
# -----------------------------------------------------------------------------


class TwitterCredential(BaseModel):
    """OAuth1 user token pair for Twitter."""

    oauth_token: str
    oauth_token_secret: str


class LinkedInCredential(BaseModel):
    """OAuth2 bearer token for LinkedIn."""

    access_token: str


Credential = Union[TwitterCredential, LinkedInCredential]


# -----------------------------------------------------------------------------
# Publishing Results
# -----------------------------------------------------------------------------


@dataclass
class MediaFile:
    """Image bytes downloaded for attachment to a post."""

    content: bytes
    content_type: str
    filename: str


class PublishResult(BaseModel):
    """Outcome of a successful publish call."""

    id: str
    has_media: bool = False


class TickSummary(BaseModel):
    """Summary returned to the scheduler after one pipeline tick."""

    success: bool = True
    message: str
    processed: int = 0
    posted: int = 0
    failed: int = 0


# -----------------------------------------------------------------------------
# Relay Payloads
# -----------------------------------------------------------------------------


class TwitterRelayRequest(BaseModel):
    """Body accepted by the Twitter relay endpoint."""

    content: Optional[str] = None
    oauth_token: Optional[str] = Field(default=None, alias="oauthToken")
    oauth_token_secret: Optional[str] = Field(default=None, alias="oauthTokenSecret")
    media_url: Optional[str] = Field(default=None, alias="mediaUrl")

    model_config = ConfigDict(populate_by_name=True)


class TwitterRelayResponse(BaseModel):
    """Successful Twitter relay response."""

    success: bool = True
    tweet_id: str = Field(alias="tweetId")
    has_media: bool = Field(default=False, alias="hasMedia")

    model_config = ConfigDict(populate_by_name=True)


class LinkedInRelayRequest(BaseModel):
    """Body accepted by the LinkedIn relay endpoint."""

    content: Optional[str] = None
    access_token: Optional[str] = Field(default=None, alias="accessToken")
    user_id: Optional[str] = Field(default=None, alias="userId")
    media_url: Optional[str] = Field(default=None, alias="mediaUrl")

    model_config = ConfigDict(populate_by_name=True)


class LinkedInRelayResponse(BaseModel):
    """Successful LinkedIn relay response."""

    success: bool = True
    post_id: str = Field(alias="postId")
    has_media: bool = Field(default=False, alias="hasMedia")

    model_config = ConfigDict(populate_by_name=True)


# -----------------------------------------------------------------------------
# CRUD Request/Response Models
# -----------------------------------------------------------------------------


class CreateScheduledPostRequest(BaseModel):
    """Request to schedule a new post. Required fields are checked by the route."""

    content: Optional[str] = None
    platform: Optional[str] = None
    scheduled_for: Optional[datetime] = Field(default=None, alias="scheduledFor")
    media_url: Optional[str] = Field(default=None, alias="mediaUrl")

    model_config = ConfigDict(populate_by_name=True)


class UpdateScheduledPostRequest(BaseModel):
    """Request to edit a scheduled post."""

    content: Optional[str] = None
    scheduled_for: Optional[datetime] = Field(default=None, alias="scheduledFor")
    status: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    def to_columns(self) -> Dict[str, Any]:
        """Map the provided fields onto store column names."""
        columns: Dict[str, Any] = {}
        if self.content is not None:
            columns["content"] = self.content
        if self.scheduled_for is not None:
            columns["scheduledFor"] = ensure_utc(self.scheduled_for).isoformat()
        if self.status is not None:
            columns["status"] = self.status
        return columns


class DeleteResponse(BaseModel):
    """Response after deleting a scheduled post."""

    message: str = "Scheduled post deleted successfully"
