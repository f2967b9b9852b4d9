"""
Scheduled post management endpoints.

Users schedule, list, edit and delete their own posts here. Publishing is
done by the pipeline; these routes only read and write rows.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from src.social.store import ScheduledPostStore, StoreError, get_post_store
from src.types.social import (
    CreateScheduledPostRequest,
    DeleteResponse,
    PostStatus,
    ScheduledPost,
    SocialPlatform,
    UpdateScheduledPostRequest,
)

from ..auth import verify_api_key
from ..exceptions import DatabaseError, ErrorCode, ResourceNotFoundError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scheduled-posts", tags=["scheduled-posts"])

VALID_STATUSES = [s.value for s in PostStatus]


def _not_found(post_id: str) -> ResourceNotFoundError:
    return ResourceNotFoundError(
        "Post not found",
        resource_type="scheduled_post",
        resource_id=post_id,
        error_code=ErrorCode.POST_NOT_FOUND,
    )


def _database_error(operation: str, error: StoreError, subject: str = "scheduled post") -> DatabaseError:
    return DatabaseError(
        f"Failed to {operation} {subject}",
        operation=operation,
        original_error=error,
        internal_message="; ".join(error.errors) or error.message,
    )


# =============================================================================
# Collection Endpoints
# =============================================================================


@router.get(
    "",
    response_model=List[ScheduledPost],
    responses={
        401: {"description": "Missing or invalid API key"},
        500: {"description": "Failed to list scheduled posts"},
    },
)
async def list_scheduled_posts(
    platform: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    user_id: str = Depends(verify_api_key),
    store: ScheduledPostStore = Depends(get_post_store),
) -> List[ScheduledPost]:
    """
    List the caller's scheduled posts, earliest first.

    The date range is applied only when both ``startDate`` and ``endDate``
    are given.
    """
    try:
        return await store.list_for_user(
            user_id,
            platform=platform,
            status=status_filter,
            start_date=start_date,
            end_date=end_date,
        )
    except StoreError as e:
        raise _database_error("list", e, subject="scheduled posts") from e


@router.post(
    "",
    response_model=ScheduledPost,
    responses={
        400: {"description": "Missing required fields or unsupported platform"},
        401: {"description": "Missing or invalid API key"},
        500: {"description": "Failed to create scheduled post"},
    },
)
async def create_scheduled_post(
    request: CreateScheduledPostRequest,
    user_id: str = Depends(verify_api_key),
    store: ScheduledPostStore = Depends(get_post_store),
) -> ScheduledPost:
    """Schedule a post. New posts always start out pending."""
    if not request.content or not request.platform or request.scheduled_for is None:
        raise ValidationError(
            "Missing required fields",
            error_code=ErrorCode.MISSING_REQUIRED_FIELD,
        )

    try:
        platform = SocialPlatform(request.platform)
    except ValueError:
        raise ValidationError(
            "Unsupported platform",
            field="platform",
            value=request.platform,
            error_code=ErrorCode.UNSUPPORTED_PLATFORM,
        )

    try:
        post = await store.create(
            user_id=user_id,
            content=request.content,
            platform=platform.value,
            scheduled_for=request.scheduled_for,
            media_url=request.media_url,
        )
    except StoreError as e:
        raise _database_error("create", e) from e

    logger.info(f"User {user_id} scheduled {platform.value} post {post.id}")
    return post


# =============================================================================
# Item Endpoints
# =============================================================================


@router.get(
    "/{post_id}",
    response_model=ScheduledPost,
    responses={
        401: {"description": "Missing or invalid API key"},
        404: {"description": "Post not found"},
    },
)
async def get_scheduled_post(
    post_id: str,
    user_id: str = Depends(verify_api_key),
    store: ScheduledPostStore = Depends(get_post_store),
) -> ScheduledPost:
    try:
        post = await store.get(post_id, user_id)
    except StoreError as e:
        raise _database_error("fetch", e) from e

    if post is None:
        raise _not_found(post_id)
    return post


@router.patch(
    "/{post_id}",
    response_model=ScheduledPost,
    responses={
        400: {"description": "Invalid status"},
        401: {"description": "Missing or invalid API key"},
        404: {"description": "Post not found"},
    },
)
async def update_scheduled_post(
    post_id: str,
    request: UpdateScheduledPostRequest,
    user_id: str = Depends(verify_api_key),
    store: ScheduledPostStore = Depends(get_post_store),
) -> ScheduledPost:
    """
    Edit a scheduled post.

    Setting ``status`` back to ``pending`` is how a failed post gets
    rescheduled; the pipeline never retries on its own.
    """
    if request.status is not None and request.status not in VALID_STATUSES:
        raise ValidationError(
            "Invalid status",
            field="status",
            value=request.status,
            error_code=ErrorCode.INVALID_STATUS,
        )

    try:
        if await store.get(post_id, user_id) is None:
            raise _not_found(post_id)
        updated = await store.update(post_id, user_id, request.to_columns())
    except StoreError as e:
        raise _database_error("update", e) from e

    if updated is None:
        raise _not_found(post_id)

    logger.info(f"User {user_id} updated scheduled post {post_id}")
    return updated


@router.delete(
    "/{post_id}",
    response_model=DeleteResponse,
    responses={
        401: {"description": "Missing or invalid API key"},
        404: {"description": "Post not found"},
    },
)
async def delete_scheduled_post(
    post_id: str,
    user_id: str = Depends(verify_api_key),
    store: ScheduledPostStore = Depends(get_post_store),
) -> DeleteResponse:
    try:
        if await store.get(post_id, user_id) is None:
            raise _not_found(post_id)
        await store.delete(post_id, user_id)
    except StoreError as e:
        raise _database_error("delete", e) from e

    logger.info(f"User {user_id} deleted scheduled post {post_id}")
    return DeleteResponse()
