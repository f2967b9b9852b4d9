"""
Scheduled social media publishing.

This package provides:
- Platform publishers (Twitter, LinkedIn) run behind the relay endpoints
- Credential lookup for scheduled posts
- Supabase-backed scheduled post storage
- The publishing pipeline and its polling worker
"""

from .credentials import (
    CredentialError,
    CredentialIncomplete,
    CredentialNotFound,
    CredentialResolver,
    get_credential_resolver,
)
from .pipeline import PublishingPipeline, UnsupportedPlatformError, get_pipeline
from .relay import RelayClient, ScheduledPublisher, build_relay_publishers
from .store import ScheduledPostStore, StoreError, get_post_store

__all__ = [
    "CredentialError",
    "CredentialIncomplete",
    "CredentialNotFound",
    "CredentialResolver",
    "get_credential_resolver",
    "PublishingPipeline",
    "UnsupportedPlatformError",
    "get_pipeline",
    "RelayClient",
    "ScheduledPublisher",
    "build_relay_publishers",
    "ScheduledPostStore",
    "StoreError",
    "get_post_store",
]
