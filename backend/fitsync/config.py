"""
Application Configuration

Uses Pydantic Settings for type-safe configuration.
"""

from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import AliasChoices, Field, field_validator, ConfigDict


class Settings(BaseSettings):
    """Application settings with validation."""

    # === Core ===
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # === Database ===
    database_url: str = Field(
        default="sqlite:///./fitsync.db",
        description="Database connection URL"
    )

    # === CORS ===
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"],
        description="Allowed CORS origins"
    )

    # === Strava ===
    strava_client_id: Optional[str] = Field(default=None)
    strava_client_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("strava_client_secret", "strava_secret")
    )
    strava_webhook_verify_token: Optional[str] = Field(default=None)
    strava_webhook_callback_url: Optional[str] = Field(
        default=None,
        description="Public URL Strava posts webhook events to"
    )
    strava_webhook_auto_subscribe: bool = Field(
        default=False,
        description="Create the push subscription on startup if none exists"
    )
    strava_request_timeout_seconds: float = Field(default=30.0)

    # === Token encryption ===
    integration_encryption_key: Optional[str] = Field(
        default=None,
        description="64-character hex key (32 bytes) for AES-256-GCM token encryption"
    )

    # === Admin ===
    admin_api_key: Optional[str] = Field(
        default=None,
        description="Shared secret for subscription management endpoints"
    )

    # === Webhook event processor ===
    webhook_processor_enabled: bool = Field(default=True)
    webhook_processor_interval_seconds: int = Field(default=30, ge=1)

    @field_validator('database_url')
    @classmethod
    def fix_postgres_url(cls, v: str) -> str:
        """Fix Render/Railway postgres:// URL to postgresql://"""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator('cors_origins', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from comma-separated string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',')]
        return v

    @property
    def strava_configured(self) -> bool:
        """Client credentials are present."""
        return bool(self.strava_client_id and self.strava_client_secret)

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
