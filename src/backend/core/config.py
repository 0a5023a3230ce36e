"""
Application configuration using Pydantic Settings.

Static configuration is loaded from environment variables (or ``.env``).
Runtime flags that the local store may override are folded into an explicit
``RuntimeConfig`` object that is built once at startup and handed to the
services that need it.
"""

import re
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from services.local_store import LocalStore


def normalize_platform_url(url: str) -> str:
    """
    Normalize a platform URL to ``https://<host>`` form.

    Accepts a full URL, a bare ``<project>.supabase.co`` host or just the
    project id.
    """
    if not url:
        return ""

    url = url.strip().rstrip("/")

    if url.startswith("https://"):
        return url

    if re.fullmatch(r"[a-z0-9-]+\.supabase\.co", url, re.IGNORECASE):
        return f"https://{url}"

    if re.fullmatch(r"[a-z0-9]+", url, re.IGNORECASE):
        return f"https://{url}.supabase.co"

    return f"https://{url}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "DJ Vote"
    APP_ENV: str = "development"
    DEBUG: bool = False

    # Hosted platform (auth, rows, realtime)
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    PLATFORM_TIMEOUT_SECONDS: float = 10.0

    @field_validator("SUPABASE_URL")
    @classmethod
    def validate_platform_url(cls, v: str) -> str:
        """Normalize the platform URL."""
        return normalize_platform_url(v)

    # CORS - stored as comma-separated string to avoid pydantic-settings JSON parsing issues
    CORS_ORIGINS: str = "http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # Vote aggregation
    VOTE_PAGE_SIZE: int = 1000
    PROFILE_SYNC_ATTEMPTS: int = 3
    PROFILE_SYNC_BACKOFF_SECONDS: float = 0.5

    # Session lookup retry (transient failures only)
    SESSION_RETRY_ATTEMPTS: int = 3
    SESSION_RETRY_BACKOFF_SECONDS: float = 1.0

    # Public IP lookup
    IP_LOOKUP_URL: str = "https://api.ipify.org?format=json"
    IP_LOOKUP_TIMEOUT_SECONDS: float = 5.0

    # Local key-value store (banner URLs, voting_ended, last known IP)
    LOCAL_STORE_PATH: str = ".djvote-store.json"

    # AI score
    SCORE_JITTER_ENABLED: bool = True

    # Banners
    USE_DEFAULT_BANNERS: bool = False

    # Emails always treated as administrators, comma-separated
    ADMIN_EMAILS: str = ""

    @property
    def admin_emails_list(self) -> list[str]:
        """Get admin emails as a lower-cased list."""
        return [email.strip().lower() for email in self.ADMIN_EMAILS.split(",") if email.strip()]

    # Realtime change feed
    REALTIME_ENABLED: bool = True
    REALTIME_HEARTBEAT_SECONDS: float = 30.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


class RuntimeConfig(BaseModel):
    """
    Configuration passed into the aggregation and scoring services.

    Built once with ``load()`` and replaced wholesale on reload; services never
    read settings or the local store directly for these values.
    """

    model_config = ConfigDict(frozen=True)

    page_size: int = 1000
    profile_sync_attempts: int = 3
    profile_sync_backoff_seconds: float = 0.5
    score_jitter_enabled: bool = True
    use_default_banners: bool = False
    voting_ended: bool = False
    admin_emails: tuple[str, ...] = ()

    @classmethod
    def load(cls, app_settings: Settings, store: "LocalStore | None" = None) -> "RuntimeConfig":
        """Build the runtime configuration from settings and the local store."""
        values: dict[str, Any] = {
            "page_size": app_settings.VOTE_PAGE_SIZE,
            "profile_sync_attempts": app_settings.PROFILE_SYNC_ATTEMPTS,
            "profile_sync_backoff_seconds": app_settings.PROFILE_SYNC_BACKOFF_SECONDS,
            "score_jitter_enabled": app_settings.SCORE_JITTER_ENABLED,
            "use_default_banners": app_settings.USE_DEFAULT_BANNERS,
            "admin_emails": tuple(app_settings.admin_emails_list),
        }
        if store is not None:
            values["voting_ended"] = store.get("voting_ended") == "true"
            override = store.get("use_default_banners")
            if override is not None:
                values["use_default_banners"] = override == "true"
        return cls(**values)
