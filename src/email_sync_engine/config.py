"""Configuration management for the Email Sync Engine.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


CACHE_TTL_MIN_SECONDS = 20 * 60
CACHE_TTL_MAX_SECONDS = 30 * 60


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the EMAIL_SYNC_ prefix (e.g., EMAIL_SYNC_CACHE_TTL_SECONDS).
    """

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Gmail Configuration
    gmail_credentials_path: Path = Field(
        default=Path("credentials.json"),
        description="Path to Gmail API credentials file",
    )
    gmail_token_path: Path = Field(
        default=Path("token.json"),
        description="Path to Gmail API token file",
    )
    gmail_scope: str = Field(
        default="https://www.googleapis.com/auth/gmail.modify",
        description=(
            "OAuth scope used for Gmail access. Label changes, trash and send "
            "require gmail.modify."
        ),
    )
    gmail_user_id: str = Field(default="me", description="Gmail user id for API calls")
    list_max_results: int = Field(
        default=50,
        description="Default page size for message list requests",
    )
    inbox_query: str = Field(
        default="in:inbox category:primary",
        description="Query whose fresh fetches trigger auto-reply processing",
    )

    # Cache Configuration
    cache_ttl_seconds: int = Field(
        default=30 * 60,
        description="Time-to-live of cached lists and messages in seconds (20 to 30 minutes)",
    )
    cache_key_prefix: str = Field(
        default="dnd_email_cache",
        description="Prefix of every persisted cache key",
    )
    cache_db_path: Path = Field(
        default=Path("email_cache.sqlite3"),
        description="Path to the SQLite key/value store backing the persistent cache tier",
    )
    cache_max_bytes: int | None = Field(
        default=5 * 1024 * 1024,
        description="Storage quota of the persistent tier in bytes (None disables the quota)",
    )

    # Label tree
    label_top_n: int = Field(default=12, description="Root label nodes returned by default")
    label_scan_limit: int = Field(
        default=1000,
        description="Maximum number of unread messages scanned for label counts",
    )
    label_scan_days: int = Field(
        default=7,
        description="Only unread messages newer than this many days are counted",
    )

    # Thread reconstruction
    html_parser: str = Field(default="lxml", description="BeautifulSoup parser name")
    quote_dom_max_length: int = Field(
        default=50_000,
        description="Bodies longer than this are quote-stripped with regexes instead of the DOM",
    )
    quote_min_length: int = Field(
        default=20,
        description="Stripped bodies shorter than this fall back to the original body",
    )
    preview_max_length: int = Field(default=120, description="Maximum preview length")
    attachment_min_size: int = Field(
        default=500,
        description="Attachments smaller than this many bytes are hidden from listings",
    )
    attachment_ignore_patterns: list[str] = Field(
        default_factory=lambda: [
            "logo",
            "icon",
            "signature",
            "facebook",
            "twitter",
            "instagram",
            "linkedin",
            "youtube",
            "spacer",
            "pixel",
            "tracking",
            "beacon",
        ],
        description="Attachment name fragments treated as decoration rather than content",
    )
    inline_image_url_template: str = Field(
        default="attachment://{message_id}/{attachment_id}",
        description="URL substituted for resolved cid: image references",
    )
    attachment_ref_ttl_seconds: float = Field(
        default=60.0,
        description="Lifetime of downloaded attachment references",
    )

    # Auto-reply
    auto_reply_internal_addresses: list[str] = Field(
        default_factory=list,
        description="Own/internal addresses that never receive auto-replies",
    )
    auto_reply_internal_markers: list[str] = Field(
        default_factory=list,
        description="Substrings identifying internal senders (e.g. team member names)",
    )
    auto_reply_automated_indicators: list[str] = Field(
        default_factory=lambda: [
            "noreply",
            "no-reply",
            "donotreply",
            "notifications",
            "newsletter",
            "support",
            "automated",
            "system",
            "admin",
            "info@",
            "help@",
        ],
        description="Substrings identifying automated senders",
    )

    # Profile
    active_profile_id: str | None = Field(default=None, description="Active profile id")
    active_profile_name: str | None = Field(default=None, description="Active profile name")
    out_of_office_profiles: list[str] = Field(
        default_factory=list,
        description="Names of profiles currently out of office",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    max_retries: int = Field(
        default=3,
        description="Maximum number of retries for transient Gmail API failures",
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        description="Initial delay between retries in seconds",
    )

    @field_validator("cache_ttl_seconds")
    @classmethod
    def _bounded_ttl(cls, v: int) -> int:
        if not CACHE_TTL_MIN_SECONDS <= v <= CACHE_TTL_MAX_SECONDS:
            raise ValueError(
                f"cache_ttl_seconds must be between {CACHE_TTL_MIN_SECONDS} "
                f"and {CACHE_TTL_MAX_SECONDS}"
            )
        return v

    @field_validator("auto_reply_internal_addresses", "auto_reply_internal_markers")
    @classmethod
    def _lowercase(cls, v: list[str]) -> list[str]:
        return [item.strip().lower() for item in v if item.strip()]

    @property
    def cache_ttl_ms(self) -> int:
        return self.cache_ttl_seconds * 1000


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
