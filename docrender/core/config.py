"""
Application Configuration

Settings class using pydantic-settings for environment variable loading.
Defines lock, retry and rendering limits for the document service.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For example, MAX_RETRIES can be set via the MAX_RETRIES env var.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="DocRender API", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")
    version: str = Field(default="0.1.0", description="API version")
    environment: Literal["development", "production"] = Field(
        default="development",
        description="Selects the log format (human-readable or JSON lines)",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_dir: str = Field(
        default="logs",
        description="Directory for error.log/combined.log in development",
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, description="Bind port")
    workers: int = Field(default=1, ge=1, description="Number of uvicorn worker processes")

    # Redis (lock store)
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    redis_socket_timeout: float = Field(
        default=5.0,
        description="Socket and connect timeout for Redis calls in seconds",
    )

    # Deduplication lock
    lock_ttl_seconds: int = Field(
        default=30,
        gt=0,
        description="Lock expiry so a crashed holder cannot wedge a fingerprint",
    )
    lock_key_prefix: str = Field(default="lock:", description="Prefix for lock keys")
    conflict_retry_after_seconds: int = Field(
        default=5,
        ge=0,
        description="Retry hint returned with 429 responses",
    )

    # Templates
    templates_dir: str = Field(default="templates", description="Directory of page templates")
    partials_dir: str = Field(default="partials", description="Root of the fragment tree")
    fragment_collision_policy: Literal["error", "last_wins"] = Field(
        default="error",
        description="What to do when two fragments share a file name",
    )

    # Rendering
    max_retries: int = Field(
        default=3,
        ge=1,
        description="Total render attempts per request",
    )
    retry_min_backoff_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Fixed wait between render attempts in seconds",
    )
    render_timeout_ms: int = Field(
        default=30000,
        description="Page load timeout for the browser in milliseconds",
    )
    render_headless: bool = Field(default=True, description="Run Chromium headless")
    page_format: str = Field(default="A4", description="PDF page size")

    # Enrichment
    chart_width: int = Field(default=800, description="Chart image width in pixels")
    chart_height: int = Field(default=400, description="Chart image height in pixels")
    qr_width: int = Field(default=200, description="Target QR code width in pixels")


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings instance.

    Uses lru_cache to ensure settings are only loaded once per process.

    Returns:
        Settings: Application settings instance

    Example:
        >>> settings = get_settings()
        >>> print(settings.lock_ttl_seconds)
        30
    """
    return Settings()
