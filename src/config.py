"""
Centralized configuration management for MailToSocial.

This module provides a Pydantic Settings-based configuration system that:
- Validates environment variables at startup
- Provides type coercion (strings to ints, bools, etc.)
- Groups related settings for better organization
- Exposes methods to check if features are enabled
- Supports .env file loading

Usage:
    from src.config import get_settings, Settings

    settings = get_settings()
    if settings.is_supabase_configured:
        # Enable the scheduled post store
        ...
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


# =============================================================================
# Database Settings (Supabase)
# =============================================================================


class DatabaseSettings(BaseSettings):
    """Configuration for the Supabase database holding posts and accounts."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL",
    )
    supabase_service_role_key: Optional[SecretStr] = Field(
        default=None,
        description="Supabase service role key (the pipeline reads every user's rows)",
    )

    # Table names differ between the ORM that writes rows and the runtime
    # that reads them, so each logical table has an ordered alias list.
    scheduled_post_tables: str = Field(
        default="scheduled_post,ScheduledPost",
        description="Comma-separated scheduled post table names, tried in order",
    )
    account_tables: str = Field(
        default="Account,account,accounts",
        description="Comma-separated OAuth account table names, tried in order",
    )
    user_tables: str = Field(
        default="User,user,users",
        description="Comma-separated user table names, tried in order",
    )

    @property
    def is_configured(self) -> bool:
        """Check if Supabase is properly configured."""
        return bool(self.supabase_url and self.supabase_service_role_key)

    @property
    def scheduled_post_table_list(self) -> List[str]:
        return _split_csv(self.scheduled_post_tables)

    @property
    def account_table_list(self) -> List[str]:
        return _split_csv(self.account_tables)

    @property
    def user_table_list(self) -> List[str]:
        return _split_csv(self.user_tables)


# =============================================================================
# Platform Settings (Twitter)
# =============================================================================


class TwitterSettings(BaseSettings):
    """App-level OAuth1 consumer credentials used by the Twitter relay."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    twitter_client_id: Optional[str] = Field(
        default=None,
        description="Twitter app consumer key",
    )
    twitter_client_secret: Optional[SecretStr] = Field(
        default=None,
        description="Twitter app consumer secret",
    )

    @property
    def is_configured(self) -> bool:
        """Check if the Twitter app credentials are available."""
        return bool(self.twitter_client_id and self.twitter_client_secret)


# =============================================================================
# Relay Settings
# =============================================================================


class RelaySettings(BaseSettings):
    """Configuration for the pipeline-to-relay hop."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    scheduled_posts_api_secret: Optional[SecretStr] = Field(
        default=None,
        description="Shared secret both ends hash into the hourly bearer token",
    )
    nextauth_url: Optional[str] = Field(
        default=None,
        description="Public base URL of the web app hosting the relay endpoints",
    )
    app_url: Optional[str] = Field(
        default=None,
        description="Fallback base URL when NEXTAUTH_URL is not set",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout applied to every outbound HTTP call",
    )

    @property
    def is_configured(self) -> bool:
        """Check if the relay shared secret is set."""
        return self.scheduled_posts_api_secret is not None


# =============================================================================
# Worker Settings
# =============================================================================


class WorkerSettings(BaseSettings):
    """Configuration for the in-process polling worker."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    social_scheduler_enabled: bool = Field(
        default=True,
        description="Allow the polling worker to run ticks",
    )
    social_worker_poll_interval: int = Field(
        default=60,
        ge=1,
        description="Seconds between worker ticks",
    )


# =============================================================================
# Security Settings
# =============================================================================


class SecuritySettings(BaseSettings):
    """Configuration for security features."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    dev_mode: bool = Field(
        default=False,
        description="Enable development mode (disables API key checks)",
    )
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    @field_validator("environment", mode="before")
    @classmethod
    def normalise_environment(cls, v: str) -> str:
        return v.lower() if isinstance(v, str) else v

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def origins_list(self) -> List[str]:
        """Get parsed list of allowed origins."""
        return _split_csv(self.allowed_origins)


# =============================================================================
# Logging Settings
# =============================================================================


class LoggingSettings(BaseSettings):
    """Configuration for logging."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format_json: bool = Field(
        default=False,
        description="Force JSON log format in development",
    )
    request_logging_enabled: bool = Field(
        default=True,
        description="Enable request logging middleware",
    )


# =============================================================================
# Monitoring Settings (Sentry)
# =============================================================================


class SentrySettings(BaseSettings):
    """Configuration for Sentry error tracking."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    sentry_dsn: Optional[str] = Field(
        default=None,
        description="Sentry DSN for error tracking",
    )
    sentry_environment: str = Field(
        default="development",
        description="Sentry environment name",
    )
    sentry_traces_sample_rate: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry transaction sample rate (0.0 to 1.0)",
    )
    sentry_release: Optional[str] = Field(
        default="mailtosocial@1.0.0",
        description="Sentry release version",
    )
    server_name: str = Field(
        default="mailtosocial-api",
        description="Server name for Sentry",
    )

    @property
    def is_configured(self) -> bool:
        """Check if Sentry is configured."""
        return bool(self.sentry_dsn)


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration groups.

    This class provides a single entry point for all application configuration
    with validation, type coercion, and feature detection.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    twitter: TwitterSettings = Field(default_factory=TwitterSettings)
    relay: RelaySettings = Field(default_factory=RelaySettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)

    # ==========================================================================
    # Feature Detection Properties
    # ==========================================================================

    @property
    def is_supabase_configured(self) -> bool:
        """Check if Supabase database is available."""
        return self.database.is_configured

    @property
    def is_twitter_configured(self) -> bool:
        """Check if the Twitter relay can sign requests."""
        return self.twitter.is_configured

    @property
    def is_relay_configured(self) -> bool:
        """Check if the relay shared secret is available."""
        return self.relay.is_configured

    @property
    def is_sentry_configured(self) -> bool:
        """Check if Sentry error tracking is available."""
        return self.sentry.is_configured

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.security.is_production

    @property
    def is_dev_mode(self) -> bool:
        """Check if development mode is enabled."""
        return self.security.dev_mode

    @property
    def relay_base_url(self) -> str:
        """
        Base URL the pipeline uses to reach the relay endpoints.

        NEXTAUTH_URL wins over APP_URL; without either, production talks to
        the public site and everything else to a local dev server.
        """
        url = self.relay.nextauth_url or self.relay.app_url
        if not url:
            url = "https://mailtosocial.com" if self.is_production else "http://localhost:3000"
        return url.rstrip("/")

    # ==========================================================================
    # Configuration Summary
    # ==========================================================================

    def get_config_summary(self) -> dict:
        """
        Get a summary of configuration status for logging.

        This method returns a dictionary with configuration status
        WITHOUT exposing any secrets.
        """
        return {
            "environment": self.security.environment,
            "dev_mode": self.is_dev_mode,
            "supabase_configured": self.is_supabase_configured,
            "twitter_configured": self.is_twitter_configured,
            "relay_configured": self.is_relay_configured,
            "relay_base_url": self.relay_base_url,
            "sentry_configured": self.is_sentry_configured,
            "scheduler_enabled": self.worker.social_scheduler_enabled,
            "poll_interval_seconds": self.worker.social_worker_poll_interval,
            "allowed_origins": self.security.origins_list,
            "log_level": self.logging.log_level,
        }


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload settings.

    Returns:
        Validated Settings instance

    Raises:
        ValidationError: If required configuration is missing or invalid
    """
    return Settings()


def reload_settings() -> Settings:
    """
    Reload settings from environment.

    This clears the cache and returns fresh settings.
    Useful for testing or after environment changes.
    """
    get_settings.cache_clear()
    return get_settings()
