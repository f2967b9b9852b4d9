"""
Scheduled post storage backed by Supabase.

Rows use the camelCase columns of the web app's schema. The table is
looked up under each configured alias (``scheduled_post`` then
``ScheduledPost`` by default).
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from src.config import get_settings
from src.storage.supabase_client import StoreError, execute_with_table_fallback, get_supabase_client
from src.types.social import PostStatus, ScheduledPost, ensure_utc

logger = logging.getLogger(__name__)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ScheduledPostStore:
    """
    Data access for scheduled posts.

    The pipeline only reads due rows and writes terminal statuses; the user
    CRUD routes use the owner-scoped methods.
    """

    def __init__(self, client: Any = None, tables: Optional[List[str]] = None) -> None:
        """
        Initialize the store.

        Args:
            client: Supabase client (defaults to the shared one, created lazily)
            tables: Scheduled post table aliases, tried in order
        """
        self._client = client
        self._tables = tables or get_settings().database.scheduled_post_table_list

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    async def _execute(self, build, require_rows: bool = False) -> Any:
        _, response = await execute_with_table_fallback(
            self.client, self._tables, build, require_rows=require_rows
        )
        return response

    # -------------------------------------------------------------------------
    # Pipeline Operations
    # -------------------------------------------------------------------------

    async def list_due(self, now: datetime) -> List[ScheduledPost]:
        """
        Get pending rows whose scheduled time is at or before ``now``.

        Rows that do not parse are marked failed and left out, so one bad
        row cannot stop the rest of the tick.

        Raises:
            StoreError: If the query fails against every table alias
        """
        cutoff = ensure_utc(now).isoformat()
        response = await self._execute(
            lambda query: query.select("*")
            .eq("status", PostStatus.PENDING.value)
            .lte("scheduledFor", cutoff)
        )

        due = []
        for row in response.data or []:
            try:
                post = ScheduledPost.model_validate(row)
            except ValidationError as e:
                await self._reject_row(row, e)
                continue
            if post.is_due(now):
                due.append(post)
        return due

    async def _reject_row(self, row: Dict[str, Any], error: ValidationError) -> None:
        post_id = row.get("id") if isinstance(row, dict) else None
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'row'}: {err['msg']}"
            for err in error.errors()
        )
        logger.error(f"Skipping malformed scheduled post {post_id or '<no id>'}: {problems}")
        if not post_id:
            return
        try:
            await self.mark_failed(str(post_id), f"Invalid scheduled post: {problems}")
        except StoreError as e:
            logger.error(f"Failed to mark malformed post {post_id} as failed: {e.message}")

    async def mark_posted(self, post_id: str, platform_post_id: str) -> None:
        """Record a successful publish. No-op if the row already left pending."""
        await self._set_terminal(
            post_id,
            {
                "status": PostStatus.POSTED.value,
                "postId": platform_post_id,
            },
        )

    async def mark_failed(self, post_id: str, message: str) -> None:
        """Record a failed publish. No-op if the row already left pending."""
        await self._set_terminal(
            post_id,
            {
                "status": PostStatus.FAILED.value,
                "error": message,
            },
        )

    async def _set_terminal(self, post_id: str, columns: Dict[str, Any]) -> None:
        # Gate on pending so a slower overlapping tick cannot overwrite a
        # status another tick already wrote.
        values = {**columns, "updatedAt": _utcnow_iso()}
        await self._execute(
            lambda query: query.update(values)
            .eq("id", post_id)
            .eq("status", PostStatus.PENDING.value)
        )

    # -------------------------------------------------------------------------
    # Owner-Scoped CRUD
    # -------------------------------------------------------------------------

    async def create(
        self,
        user_id: str,
        content: str,
        platform: str,
        scheduled_for: datetime,
        media_url: Optional[str] = None,
    ) -> ScheduledPost:
        """Insert a new pending row."""
        now = _utcnow_iso()
        row = {
            "id": str(uuid.uuid4()),
            "userId": user_id,
            "content": content,
            "platform": platform,
            "scheduledFor": ensure_utc(scheduled_for).isoformat(),
            "mediaUrl": media_url,
            "status": PostStatus.PENDING.value,
            "createdAt": now,
            "updatedAt": now,
        }
        response = await self._execute(lambda query: query.insert(row))
        created = response.data[0] if response.data else row
        logger.info(f"Scheduled {platform} post {created['id']} for {row['scheduledFor']}")
        return ScheduledPost.model_validate(created)

    async def get(self, post_id: str, user_id: str) -> Optional[ScheduledPost]:
        """Get one of the user's posts, or None."""
        response = await self._execute(
            lambda query: query.select("*").eq("id", post_id).eq("userId", user_id).limit(1)
        )
        if not response.data:
            return None
        return ScheduledPost.model_validate(response.data[0])

    async def list_for_user(
        self,
        user_id: str,
        platform: Optional[str] = None,
        status: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[ScheduledPost]:
        """
        List the user's posts ordered by scheduled time.

        The date range applies only when both bounds are given.
        """

        def build(query):
            query = query.select("*").eq("userId", user_id)
            if platform:
                query = query.eq("platform", platform)
            if status:
                query = query.eq("status", status)
            if start_date and end_date:
                query = query.gte("scheduledFor", ensure_utc(start_date).isoformat())
                query = query.lte("scheduledFor", ensure_utc(end_date).isoformat())
            return query.order("scheduledFor")

        response = await self._execute(build)
        return [ScheduledPost.model_validate(row) for row in response.data or []]

    async def update(
        self,
        post_id: str,
        user_id: str,
        columns: Dict[str, Any],
    ) -> Optional[ScheduledPost]:
        """Apply column updates to one of the user's posts; None if absent."""
        values = {**columns, "updatedAt": _utcnow_iso()}
        response = await self._execute(
            lambda query: query.update(values).eq("id", post_id).eq("userId", user_id)
        )
        if not response.data:
            return None
        return ScheduledPost.model_validate(response.data[0])

    async def delete(self, post_id: str, user_id: str) -> bool:
        """Delete one of the user's posts. Returns False if nothing matched."""
        response = await self._execute(
            lambda query: query.delete().eq("id", post_id).eq("userId", user_id)
        )
        return bool(response.data)


# Global store instance
_post_store: Optional[ScheduledPostStore] = None


def get_post_store() -> ScheduledPostStore:
    """Get the shared scheduled post store."""
    global _post_store
    if _post_store is None:
        _post_store = ScheduledPostStore()
    return _post_store


__all__ = ["ScheduledPostStore", "StoreError", "get_post_store"]
