"""
Configuration management for Draft Sync.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = Field(default="Draft Sync")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_workers: int = Field(default=1)

    # Database
    database_url: str = Field(default="sqlite:///./draft_sync.db")

    # Security
    secret_key: str = Field(default="your-secret-key-here")
    access_token_expire_minutes: int = Field(default=60 * 24)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    # Write-rate limiting (no-op saves never count)
    rate_limiting_enabled: bool = Field(default=True)
    draft_writes_per_minute: int = Field(default=20, ge=1)
    draft_writes_per_day: int = Field(default=1000, ge=1)
    draft_archives_per_minute: int = Field(default=3, ge=1)

    # Drafts
    max_draft_payload_bytes: int = Field(
        default=500 * 1024,
        description="Serialized payload size limit, checked before reconciliation.",
    )
    draft_ttl_days: int = Field(
        default=30,
        description="Written to expires_at; the external reaper archives stale drafts.",
    )
    draft_list_limit: int = Field(default=50)

    # Autosave client
    autosave_debounce_seconds: float = Field(default=1.5, gt=0)
    autosave_min_interval_seconds: float = Field(default=1.0, ge=0)
    client_base_url: str = Field(default="http://localhost:8000")
    client_timeout_seconds: float = Field(default=30.0)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
