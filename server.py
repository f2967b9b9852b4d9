"""
API server for MailToSocial scheduled publishing.

Serves the scheduled post API, the relay endpoints that perform the signed
Twitter and LinkedIn calls, and the HTTP tick trigger for the publishing
pipeline. This is the main entry point that assembles the modular
components from the app package.
"""

import os
import re

import sentry_sdk
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

# Configure structured logging FIRST, before other imports that use logging
from src.utils.logging import setup_logging

logger = setup_logging(service_name="mailtosocial-api")

from src.config import Settings, get_settings

from app.error_handlers import register_exception_handlers
from app.middleware import RequestLoggingMiddleware
from app.routes import (
    health_router,
    publish_router,
    relay_router,
    scheduled_posts_router,
)

settings: Settings = get_settings()
logger.info("Configuration loaded", extra=settings.get_config_summary())

if not settings.is_relay_configured:
    logger.warning("SCHEDULED_POSTS_API_SECRET is not set; relay and publish endpoints will reject requests")

# =============================================================================
# Sentry Error Tracking Configuration
# =============================================================================

SENSITIVE_KEYS = [
    "password", "api_key", "apikey", "api-key", "secret", "token",
    "authorization", "auth", "bearer", "credential", "private",
]


def filter_sensitive_breadcrumbs(crumb, hint):
    """
    Filter sensitive data from Sentry breadcrumbs.

    Relay requests carry user OAuth tokens in the body and a bearer token
    in the headers, so both header values and query parameters are scrubbed.
    """
    if crumb.get("category") == "http":
        data = crumb.get("data")
        if isinstance(data, dict):
            headers = data.get("headers")
            if isinstance(headers, dict):
                for key in list(headers.keys()):
                    if any(s in key.lower() for s in SENSITIVE_KEYS):
                        headers[key] = "[FILTERED]"
            if "url" in data:
                for key in SENSITIVE_KEYS:
                    if f"{key}=" in data["url"].lower():
                        pattern = re.compile(f"({key}=)[^&]*", re.IGNORECASE)
                        data["url"] = pattern.sub(r"\1[FILTERED]", data["url"])

    if crumb.get("category") in ("console", "log") and "message" in crumb:
        message = str(crumb["message"]).lower()
        if any(key in message for key in SENSITIVE_KEYS):
            crumb["message"] = "[FILTERED - may contain sensitive data]"

    return crumb


if settings.is_sentry_configured:
    sentry_settings = settings.sentry
    sentry_sdk.init(
        dsn=sentry_settings.sentry_dsn,
        environment=sentry_settings.sentry_environment,
        sample_rate=1.0,
        traces_sample_rate=sentry_settings.sentry_traces_sample_rate,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        before_breadcrumb=filter_sensitive_breadcrumbs,
        send_default_pii=False,
        attach_stacktrace=True,
        server_name=sentry_settings.server_name,
        release=sentry_settings.sentry_release,
    )
    logger.info(f"Sentry initialized for environment: {sentry_settings.sentry_environment}")
else:
    logger.info("Sentry DSN not configured, error tracking disabled")


# =============================================================================
# Initialize FastAPI App
# =============================================================================

app = FastAPI(
    title="MailToSocial API",
    description="""
## Scheduled Social Publishing

Schedules posts for Twitter/X and LinkedIn and publishes them when they
come due.

### Authentication

- **Scheduled post API:** API key via `X-API-Key: <key>`
- **Relay and publish endpoints:** hourly token via `Authorization: Bearer <token>`,
  derived from the shared `SCHEDULED_POSTS_API_SECRET`
""",
    version="1.0.0",
    openapi_tags=[
        {"name": "health", "description": "Health checks and system status"},
        {"name": "scheduled-posts", "description": "Schedule, list, edit and delete posts"},
        {"name": "relay", "description": "Signed platform calls on behalf of the pipeline"},
        {"name": "publishing", "description": "Run a publishing tick"},
    ],
)

# =============================================================================
# Exception Handlers
# =============================================================================

register_exception_handlers(app)

# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.security.origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Authorization",
        "Content-Type",
        "X-API-Key",
        "X-Request-ID",
        "Accept",
        "Origin",
    ],
    expose_headers=["X-Request-ID", "X-Response-Time"],
    max_age=600,
)

# Added last so it wraps everything else and times the full request
if settings.logging.request_logging_enabled:
    app.add_middleware(RequestLoggingMiddleware)
    logger.info("Request logging middleware enabled")

# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router)
# Fixed paths before the /{post_id} routes
app.include_router(publish_router)
app.include_router(relay_router)
app.include_router(scheduled_posts_router)


if __name__ == "__main__":
    reload_enabled = os.environ.get("UVICORN_RELOAD", "false").lower() == "true"
    port = int(os.environ.get("PORT") or os.environ.get("BACKEND_PORT", "8000"))
    uvicorn.run("server:app", host="0.0.0.0", port=port, reload=reload_enabled)
