"""
Health check and root endpoints.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

import sentry_sdk
from fastapi import APIRouter

from src.config import get_settings
from src.storage.supabase_client import StoreError, execute_with_table_fallback, get_supabase_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def get_database_status() -> Dict[str, Any]:
    """
    Check Supabase connectivity.

    Reads one row from the scheduled post table (trying each alias) to
    verify the table the pipeline depends on is reachable.
    """
    settings = get_settings()
    if not settings.is_supabase_configured:
        return {
            "configured": False,
            "connected": False,
            "error": "SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY not set",
        }

    start_time = datetime.now()
    try:
        table, _ = await execute_with_table_fallback(
            get_supabase_client(),
            settings.database.scheduled_post_table_list,
            lambda query: query.select("id").limit(1),
        )
    except StoreError as e:
        logger.warning(f"Database health check failed: {'; '.join(e.errors) or e.message}")
        return {
            "configured": True,
            "connected": False,
            "error": e.message[:100],
        }
    latency_ms = (datetime.now() - start_time).total_seconds() * 1000

    return {
        "configured": True,
        "connected": True,
        "table": table,
        "latency_ms": round(latency_ms, 2),
    }


def get_relay_status() -> Dict[str, Any]:
    """Report whether the relay endpoints and the Twitter app pair are configured."""
    settings = get_settings()
    return {
        "configured": settings.is_relay_configured,
        "base_url": settings.relay_base_url,
        "twitter_app_configured": settings.is_twitter_configured,
    }


def get_sentry_status() -> Dict[str, Any]:
    """
    Get the current Sentry configuration status.

    Returns information about whether Sentry is configured and active.
    """
    settings = get_settings()
    configured = settings.is_sentry_configured
    return {
        "configured": configured,
        "active": sentry_sdk.get_client().is_active() if configured else False,
        "environment": settings.sentry.sentry_environment if configured else None,
    }


def _service_state(status: Dict[str, Any], up_key: str = "connected") -> str:
    if not status.get("configured"):
        return "unconfigured"
    return "up" if status.get(up_key) else "down"


@router.get(
    "/health",
    summary="System health check",
    description="""
Health check endpoint for monitoring and load balancers.

Returns overall system health including:
- Supabase connectivity status
- Relay configuration
- Sentry error tracking status

**Authentication**: Not required. This endpoint is public for load balancer health checks.
    """,
    responses={
        200: {
            "description": "Health status retrieved",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "timestamp": "2024-01-24T12:00:00Z",
                        "version": "1.0.0",
                        "environment": "production",
                        "services": {
                            "database": {"status": "up", "latency_ms": 5.2},
                            "relay": {"status": "up"},
                            "sentry": {"status": "up"},
                        },
                    }
                }
            },
        }
    },
)
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint for monitoring and load balancers.

    The service is degraded when Supabase is configured but unreachable.
    A missing relay secret or Sentry DSN does not affect overall health.
    """
    settings = get_settings()
    db_status = await get_database_status()
    relay_status = get_relay_status()
    sentry_status = get_sentry_status()

    is_healthy = db_status.get("connected", False) or not db_status.get("configured", False)

    return {
        "status": "healthy" if is_healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.sentry.sentry_release or "1.0.0",
        "environment": settings.security.environment,
        "services": {
            "database": {
                "status": _service_state(db_status),
                "latency_ms": db_status.get("latency_ms"),
            },
            "relay": {
                "status": "up" if relay_status["configured"] else "unconfigured",
                "twitter_app_configured": relay_status["twitter_app_configured"],
            },
            "sentry": {
                "status": _service_state(sentry_status, up_key="active"),
            },
        },
    }


@router.get(
    "/",
    summary="API information",
    description="Root endpoint providing API information and documentation links.",
)
async def root() -> Dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "message": "Welcome to the MailToSocial API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "api_base": "/api/scheduled-posts",
    }
