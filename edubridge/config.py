"""Configuration management for Edubridge.

This module provides centralized configuration using Pydantic Settings,
loaded from environment variables or a local ``.env`` file.

Environment Profiles:
    - DEVELOPMENT: Verbose logging, human-readable output
    - PRODUCTION: JSON logs, no debug noise
    - TESTING: Minimal logging, no files written, no persisted session
    - STAGING: Production-like with INFO logging

Example:
    >>> from edubridge.config import settings
    >>> print(settings.supabase_url)
    https://abc.supabase.co
    >>> if settings.is_production:
    ...     print("Running in production mode")
"""

from enum import StrEnum
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PostFilter(StrEnum):
    """Feed filter options."""

    ALL = "all"
    WISDOM = "wisdom"
    DONATION = "donation"
    SEEKING = "seeking"


class PostSort(StrEnum):
    """Feed sorting options."""

    CREATED_AT = "created_at"
    LIKES = "likes"
    COMMENTS = "comments"


class Environment(StrEnum):
    """Runtime environment with specific behavior profiles.

    Attributes:
        DEVELOPMENT: Verbose logging, human-readable output
        PRODUCTION: Structured JSON logs
        TESTING: Quiet, nothing written to disk
        STAGING: Pre-production validation environment
    """

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"
    STAGING = "staging"


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Attributes:
        supabase_url: Base URL of the hosted backend project
        supabase_anon_key: Public (anon) API key of the backend project
        site_url: Public URL of the web client, used for redirects and share links
        data_dir: Directory for the log file and the persisted session
        session_path: Where the signed-in session is stored between runs
        post_images_bucket: Storage bucket for post images
        verification_bucket: Storage bucket for student ID uploads
        request_timeout: Data and storage request timeout in seconds
        min_password_length: Minimum password length accepted at sign-up
        report_email: Address that receives post reports
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment Configuration
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Runtime environment (development, production, testing, staging)",
    )

    # Backend Configuration
    supabase_url: str = Field(
        ...,
        alias="SUPABASE_URL",
        description="Backend project URL (e.g., https://abc.supabase.co)",
    )
    supabase_anon_key: str = Field(
        ...,
        alias="SUPABASE_ANON_KEY",
        description="Backend public anon key",
    )
    site_url: str = Field(
        "http://localhost:3000",
        description="Public URL of the web client (redirects, share links)",
    )

    # Storage Buckets
    post_images_bucket: str = Field("post-images", description="Bucket for post images")
    verification_bucket: str = Field(
        "verification-uploads",
        description="Bucket for verification documents",
    )

    # Data Directory Configuration
    data_dir: Path = Field(
        Path("./data"),
        description="Base directory for local files (log, session)",
    )
    session_path: Path = Field(
        Path("session.json"),  # Will be updated to data_dir/session.json by validator
        description="Path of the persisted auth session",
    )
    persist_session: bool = Field(
        default=True,
        description="Keep the signed-in session between CLI invocations",
    )

    # Operational Parameters
    request_timeout: float = Field(
        30.0,
        ge=1.0,
        le=120.0,
        description="Overall HTTP request timeout (seconds)",
    )
    min_password_length: int = Field(
        6,
        ge=6,
        le=72,
        description="Minimum password length for sign-up",
    )
    report_email: str = Field(
        "info@edubridgepeople.com",
        description="Address that receives post reports",
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_to_file: bool = Field(
        default=True,
        description="Enable file logging in addition to console",
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (recommended for production)",
    )

    @field_validator("supabase_url", "site_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an http(s) URL and strip the trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("supabase_anon_key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        """Validate anon key format."""
        if not v or len(v) < 20:
            raise ValueError("Backend anon key must be at least 20 characters")
        return v

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_data_dir(cls, v: str | Path) -> Path:
        """Expand and resolve data directory path."""
        path = Path(v).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    @model_validator(mode="after")
    def set_session_path_default(self) -> "Settings":
        """Set session_path to data_dir/session.json if not explicitly provided."""
        if self.session_path == Path("session.json"):
            self.session_path = self.data_dir / "session.json"
        return self

    @model_validator(mode="after")
    def apply_environment_profile(self) -> "Settings":
        """Apply environment-specific defaults.

        Profiles:
            - PRODUCTION: INFO logging unless stricter, JSON logs
            - DEVELOPMENT: DEBUG logging, human-readable logs
            - TESTING: ERROR logging, no log file, no persisted session
            - STAGING: INFO logging, JSON logs

        Returns:
            Modified settings instance with environment-specific adjustments
        """
        if self.environment == Environment.PRODUCTION:
            if self.log_level == "DEBUG":
                self.log_level = "INFO"
            self.log_json = True

        elif self.environment == Environment.DEVELOPMENT:
            self.log_level = "DEBUG"
            self.log_json = False

        elif self.environment == Environment.TESTING:
            self.log_level = "ERROR"
            self.log_to_file = False
            self.log_json = False
            self.persist_session = False

        elif self.environment == Environment.STAGING:
            self.log_level = "INFO"
            self.log_json = True

        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    def redact_key(self, key: Optional[str] = None) -> str:
        """Redact a key or token for logging.

        Args:
            key: Key to redact (defaults to supabase_anon_key)

        Returns:
            Redacted key string
        """
        key = key or self.supabase_anon_key
        if not key:
            return "None"
        return f"{key[:8]}...{key[-4:]}" if len(key) > 12 else "***"


def get_settings() -> Settings:
    """Get a settings instance built from the environment.

    Returns:
        Configured Settings instance
    """
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()
