"""
Scheduled post publishing pipeline.

One tick reads the due rows, publishes them one at a time and writes each
row's terminal status back. Row failures are recorded on the row and never
abort the tick; only a failure to read the due rows surfaces to the caller.

Overlapping ticks can both read the same pending row and publish it twice.
There is no claim step or lock. Write-backs only apply to rows that are
still pending, so the first terminal status written wins.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from src.config import Settings, get_settings
from src.types.social import PostStatus, PublishResult, ScheduledPost, SocialPlatform, TickSummary
from src.utils.logging import Timer, post_id_var, user_id_var

from .credentials import CredentialError, CredentialResolver, get_credential_resolver
from .platforms.base import PlatformError
from .relay import RelayClient, ScheduledPublisher, build_relay_publishers
from .store import ScheduledPostStore, StoreError, get_post_store

logger = logging.getLogger(__name__)


class UnsupportedPlatformError(Exception):
    """A row names a platform no publisher is registered for."""

    def __init__(self, platform: str) -> None:
        self.message = f"Unsupported platform: {platform}"
        self.platform = platform
        super().__init__(self.message)


@dataclass
class PostOutcome:
    """What happened to one row during a tick."""

    post_id: str
    status: PostStatus
    result: Optional[PublishResult] = None
    error: Optional[str] = None


class PublishingPipeline:
    """
    Orchestrates one publishing tick.

    Dispatch goes through the ``publishers`` registry keyed by platform, so
    adding a platform means registering a publisher, not adding a branch.
    """

    def __init__(
        self,
        store: ScheduledPostStore,
        resolver: CredentialResolver,
        publishers: Dict[SocialPlatform, ScheduledPublisher],
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._publishers = publishers
        self.last_outcomes: List[PostOutcome] = []

    @classmethod
    def from_settings(cls, settings: Settings) -> "PublishingPipeline":
        """Wire the pipeline to Supabase and the relay endpoints."""
        return cls(
            store=get_post_store(),
            resolver=get_credential_resolver(),
            publishers=build_relay_publishers(RelayClient.from_settings(settings)),
        )

    async def run_tick(self, now: Optional[datetime] = None) -> TickSummary:
        """
        Publish every pending row scheduled at or before ``now``.

        Args:
            now: Tick time, defaults to the current UTC time

        Returns:
            TickSummary with processed/posted/failed counts

        Raises:
            StoreError: If the due rows cannot be read
        """
        now = now or datetime.now(timezone.utc)

        with Timer("publish_tick", logger, logging.INFO):
            due_posts = await self._store.list_due(now)

            if not due_posts:
                logger.info("No pending posts to process")
                self.last_outcomes = []
                return TickSummary(message="No pending posts to process")

            logger.info(f"Found {len(due_posts)} posts due for publishing")

            outcomes = []
            for post in due_posts:
                outcomes.append(await self._process(post))

        self.last_outcomes = outcomes
        posted = sum(1 for outcome in outcomes if outcome.status == PostStatus.POSTED)

        return TickSummary(
            message=f"Processed {len(outcomes)} posts",
            processed=len(outcomes),
            posted=posted,
            failed=len(outcomes) - posted,
        )

    async def _process(self, post: ScheduledPost) -> PostOutcome:
        post_token = post_id_var.set(post.id)
        user_token = user_id_var.set(post.user_id)
        try:
            try:
                result = await self._publish(post)
            except (CredentialError, PlatformError, UnsupportedPlatformError) as e:
                logger.error(f"Failed to publish post {post.id}: {e.message}")
                return await self._record_failure(post, e.message)
            except Exception as e:
                logger.exception(f"Unexpected error publishing post {post.id}")
                return await self._record_failure(post, str(e) or "Unknown error")

            logger.info(f"Published post {post.id} to {post.platform} as {result.id}")
            try:
                await self._store.mark_posted(post.id, result.id)
            except StoreError as e:
                logger.error(
                    f"Post {post.id} was published as {result.id} but the status update failed: "
                    f"{'; '.join(e.errors) or e.message}"
                )
            return PostOutcome(post_id=post.id, status=PostStatus.POSTED, result=result)
        finally:
            post_id_var.reset(post_token)
            user_id_var.reset(user_token)

    async def _publish(self, post: ScheduledPost) -> PublishResult:
        try:
            platform = SocialPlatform(post.platform)
        except ValueError:
            raise UnsupportedPlatformError(post.platform)

        publisher = self._publishers.get(platform)
        if publisher is None:
            raise UnsupportedPlatformError(post.platform)

        credential = await self._resolver.resolve(post.user_id, platform)
        return await publisher.publish(post, credential)

    async def _record_failure(self, post: ScheduledPost, message: str) -> PostOutcome:
        try:
            await self._store.mark_failed(post.id, message)
        except StoreError as e:
            logger.error(
                f"Could not record failure for post {post.id}: {'; '.join(e.errors) or e.message}"
            )
        return PostOutcome(post_id=post.id, status=PostStatus.FAILED, error=message)


# Global pipeline instance
_pipeline: Optional[PublishingPipeline] = None


def get_pipeline() -> PublishingPipeline:
    """Get the shared pipeline wired from settings."""
    global _pipeline
    if _pipeline is None:
        _pipeline = PublishingPipeline.from_settings(get_settings())
    return _pipeline
