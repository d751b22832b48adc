"""Configuration models for the ingestion pipeline."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import (
    Field,
    NonNegativeFloat,
    PositiveInt,
    SecretStr,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from ingestion.errors import ConfigurationError

LINE_MAX_MESSAGES_PER_CALL = 5


class Settings(BaseSettings):
    """Environment-driven settings for feeds, storage, notification and scheduling."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    database_url: str = Field(..., alias="DATABASE_URL", description="SQLAlchemy DSN for articles/feed sources.")
    broker_url: str = Field(
        "redis://localhost:6379/0",
        alias="CELERY_BROKER_URL",
        description="Celery broker/backend URL.",
    )

    feed_timeout_seconds: PositiveInt = Field(15, alias="FEED_TIMEOUT_SECONDS", description="Feed/page HTTP timeout (s).")
    feed_max_redirects: int = Field(3, ge=0, alias="FEED_MAX_REDIRECTS", description="Redirects followed per fetch.")
    feed_max_attempts: PositiveInt = Field(1, alias="FEED_MAX_ATTEMPTS", description="Attempts per feed on transport errors.")
    feed_user_agent: str = Field(
        "regwatch/0.1 (RSS Reader)",
        alias="FEED_USER_AGENT",
        description="User-Agent header sent to feed and page hosts.",
    )
    page_max_chars: PositiveInt = Field(8000, alias="PAGE_MAX_CHARS", description="Maximum detail page text length (chars).")

    line_channel_token: Optional[SecretStr] = Field(
        None,
        alias="LINE_CHANNEL_TOKEN",
        description="LINE Messaging API channel access token.",
    )
    line_api_base: str = Field("https://api.line.me/v2/bot", alias="LINE_API_BASE", description="LINE API base URL.")
    line_timeout_seconds: PositiveInt = Field(15, alias="LINE_TIMEOUT_SECONDS", description="LINE API timeout (s).")
    notify_batch_size: PositiveInt = Field(
        LINE_MAX_MESSAGES_PER_CALL,
        alias="NOTIFY_BATCH_SIZE",
        description="Messages per broadcast call.",
    )
    notify_pause_seconds: NonNegativeFloat = Field(
        0.5,
        alias="NOTIFY_PAUSE_SECONDS",
        description="Pause between broadcast batches (s).",
    )

    pipeline_enabled: bool = Field(True, alias="PIPELINE_ENABLED", description="Register the periodic beat entry.")
    pipeline_interval_minutes: PositiveInt = Field(60, alias="PIPELINE_INTERVAL_MINUTES", description="Run period (min).")
    celery_task_soft_time_limit: PositiveInt = Field(
        900,
        alias="CELERY_TASK_SOFT_TIME_LIMIT",
        description="Celery task soft timeout (s).",
    )

    log_level: str = Field("INFO", alias="LOG_LEVEL", description="Root log level.")
    log_json: bool = Field(False, alias="LOG_JSON", description="Emit JSON log lines.")

    @field_validator("database_url")
    @classmethod
    def _validate_database_url(cls, value: str) -> str:
        dsn = value.strip()
        if "://" not in dsn:
            raise ValueError("DATABASE_URL must be a valid DSN string.")
        return dsn

    @field_validator("feed_timeout_seconds", "line_timeout_seconds")
    @classmethod
    def _bounded_timeout(cls, value: int) -> int:
        if value > 30:
            raise ValueError("HTTP timeouts must not exceed 30 seconds.")
        return value

    @field_validator("notify_batch_size")
    @classmethod
    def _validate_batch_size(cls, value: int) -> int:
        if value > LINE_MAX_MESSAGES_PER_CALL:
            raise ValueError(f"NOTIFY_BATCH_SIZE must be <= {LINE_MAX_MESSAGES_PER_CALL}.")
        return value

    @field_validator("feed_user_agent")
    @classmethod
    def _non_blank_user_agent(cls, value: str) -> str:
        ua = value.strip()
        if not ua:
            raise ValueError("FEED_USER_AGENT must not be blank.")
        return ua


@lru_cache()
def get_settings() -> Settings:
    """Return settings loaded from the environment."""
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid environment configuration: {exc}") from exc


def reset_settings_cache() -> None:
    """Clear the Settings LRU cache (tests)."""
    get_settings.cache_clear()  # type: ignore[attr-defined]
