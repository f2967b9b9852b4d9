"""API routes for the MailToSocial API."""

from .health import router as health_router
from .publish import router as publish_router
from .relay import router as relay_router
from .scheduled_posts import router as scheduled_posts_router

__all__ = [
    "health_router",
    "publish_router",
    "relay_router",
    "scheduled_posts_router",
]
