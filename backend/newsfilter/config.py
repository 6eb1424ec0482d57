"""
Application configuration using Pydantic Settings.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=("settings_",),
    )

    # Application
    app_name: str = "newsfilter"
    app_version: str = "0.1.0"
    debug: bool = Field(default=False)
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = Field(default="INFO")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001)
    stream_idle_timeout_seconds: int = Field(
        default=120,
        description="Keep-alive timeout for the fetch-all event stream",
    )
    stream_heartbeat_seconds: float = Field(default=15.0, gt=0)

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./news.db",
        description="Async database URL (SQLAlchemy format)",
    )
    sources_file: str = Field(
        default="sources.json",
        description="JSON file of sources synced into the database at startup",
    )

    # Model
    anthropic_api_key: str | None = Field(default=None)
    claude_model: str = Field(default="claude-sonnet-4-5")
    model_timeout_seconds: float = Field(default=120.0, gt=0)
    model_max_tokens: int = Field(default=4096, ge=1)

    # Fetching
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    board_api_url: str = Field(default="https://hacker-news.firebaseio.com/v0")
    board_batch_size: int = Field(default=10, ge=1)

    # Classification
    filter_batch_size: int = Field(default=20, ge=1)
    filter_max_articles: int = Field(default=200, ge=1)

    # Scheduler
    scheduled_fetch_enabled: bool = Field(default=False)
    fetch_cron_hour: int = Field(default=6, ge=0, le=23)
    fetch_cron_minute: int = Field(default=0, ge=0, le=59)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
