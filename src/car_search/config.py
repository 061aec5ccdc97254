"""Application configuration using Pydantic Settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="CAR_SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", gt=0, le=65535)
    reload: bool = Field(default=True, description="Enable auto-reload in development")

    # Availability backend settings
    backend_url: str = Field(
        default="http://localhost:8080",
        description="Base URL of the availability backend",
    )
    call_timeout_ms: int = Field(
        default=10000,
        description="Timeout for a single backend call (milliseconds)",
        gt=0,
        le=120000,
    )

    # QueryPoller settings
    poll_interval_ms: int = Field(
        default=2000,
        description="Fixed delay between two polls (milliseconds)",
        gt=0,
        le=60000,
    )
    poll_wait_ms: int = Field(
        default=1500,
        description="Long-poll wait requested from the backend (milliseconds)",
        ge=0,
        le=60000,
    )
    search_budget_ms: int = Field(
        default=120000,
        description="Overall time budget of one search (milliseconds)",
        gt=0,
        le=3600000,
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )

    # Session settings
    session_ttl: int = Field(
        default=3600,
        description="How long a search stays addressable (seconds)",
        gt=0,
        le=86400,
    )
    session_cache_size: int = Field(
        default=1000,
        description="Maximum number of tracked searches",
        gt=0,
        le=100000,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get application settings (singleton).

    Returns:
        Settings instance
    """
    return Settings()
