"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

The API-key constants (rate caps, inactivity threshold, challenge lifetime,
key shape) live in ApiKeySettings so deployments can tune them without code
changes; the defaults are the published limits of the public data API.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "measurements"
    credentials_collection: str = "API"
    data_collection: str = "Data"
    users_collection: str = "Users"

    # Connection attempts made by MongoConnection before giving up
    connect_retry_attempts: int = 3


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional; without Redis the per-IP request limiter keeps its counters in memory
    redis_uri: Optional[str] = None


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    resend_api_key: str = ""
    from_email: str = "noreply@example.org"
    from_name: str = "Meetdata API"
    base_url: str = ""
    email_timeout_seconds: float = 5.0


class ApiKeySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    minute_limit: int = 20
    day_limit: int = 250
    minute_window_seconds: int = 60
    day_window_seconds: int = 86_400

    inactivity_days: int = 365

    challenge_ttl_seconds: int = 600
    challenge_code_length: int = 6
    api_key_length: int = 30

    # "key_only" or "session_or_key" for the public data endpoint; the latter
    # also admits signed-in admin users (session user_id found in Users)
    gate_strategy: Literal["key_only", "session_or_key"] = "key_only"

    # Per-IP limit on POST /api-key/request
    request_limit: str = "2 per 15 minutes"

    # Bounded retries for store-level conflicts
    admission_max_attempts: int = 5
    upsert_max_attempts: int = 3


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1
    sentry_profile_sample_rate: float = 0.05


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_name: str = "Meetdata API"

    # Signs the session cookie holding the pending-verification email.
    # Empty means a random per-process secret is generated at startup.
    secret_key: str = ""
    session_cookie: str = "meetdata_session"
    session_max_age_seconds: int = 3600

    cors_origins: list[str] = ["*"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    email: Optional[EmailSettings] = None
    api_keys: Optional[ApiKeySettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.api_keys is None:
            self.api_keys = ApiKeySettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
