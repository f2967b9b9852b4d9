"""
Tick trigger for the publishing pipeline.

Lets an external scheduler (cron, a platform job runner) run one tick over
HTTP instead of keeping the polling worker alive.
"""

import logging

from fastapi import APIRouter, Depends, status

from src.social.pipeline import PublishingPipeline, get_pipeline
from src.social.store import StoreError
from src.types.social import TickSummary

from ..auth import require_relay_token
from ..exceptions import RelayError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scheduled-posts", tags=["publishing"])


@router.post(
    "/publish",
    response_model=TickSummary,
    dependencies=[Depends(require_relay_token)],
    responses={
        401: {"description": "Missing or malformed bearer token"},
        403: {"description": "Invalid API token"},
        500: {"description": "Due posts could not be read"},
    },
)
async def publish_due_posts(
    pipeline: PublishingPipeline = Depends(get_pipeline),
) -> TickSummary:
    """
    Publish every pending post whose scheduled time has passed.

    Row-level failures are recorded on the rows and counted in the summary.
    Only a failure to read the due rows fails the request.
    """
    try:
        return await pipeline.run_tick()
    except StoreError as e:
        raise RelayError(
            "Failed to fetch scheduled posts",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            include_success_flag=True,
            internal_message="; ".join(e.errors) or e.message,
        ) from e
