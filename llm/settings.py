"""Settings for the generative-text backend (OpenAI-compatible)."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, NonNegativeInt, PositiveFloat, PositiveInt, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ingestion.errors import ConfigurationError


class AnalysisSettings(BaseSettings):
    """Environment-driven configuration for classification and impact analysis."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    openai_api_key: str = Field(..., alias="OPENAI_API_KEY", description="OpenAI API key")
    openai_base_url: Optional[str] = Field(None, alias="OPENAI_BASE_URL", description="OpenAI-compatible endpoint")
    analysis_model: str = Field("gpt-4o-mini", alias="ANALYSIS_MODEL", description="Model name")
    analysis_max_tokens: PositiveInt = Field(2048, alias="ANALYSIS_MAX_TOKENS", description="Max completion tokens")
    analysis_temperature: float = Field(0.1, ge=0.0, le=2.0, alias="ANALYSIS_TEMPERATURE", description="Sampling temperature")
    analysis_cost_limit_usd: PositiveFloat = Field(0.05, alias="ANALYSIS_COST_LIMIT_USD", description="Per-request cost cap (USD)")
    analysis_request_timeout_seconds: PositiveInt = Field(
        30,
        alias="ANALYSIS_REQUEST_TIMEOUT_SECONDS",
        description="HTTP request timeout in seconds",
    )
    analysis_retry_max_attempts: NonNegativeInt = Field(
        1,
        alias="ANALYSIS_RETRY_MAX_ATTEMPTS",
        description="Retries after a transient error or unparsable JSON",
    )

    @field_validator("openai_api_key")
    @classmethod
    def _non_empty_api_key(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("OPENAI_API_KEY must not be blank.")
        return s

    @field_validator("analysis_request_timeout_seconds")
    @classmethod
    def _bounded_timeout(cls, v: int) -> int:
        if v > 30:
            raise ValueError("ANALYSIS_REQUEST_TIMEOUT_SECONDS must not exceed 30.")
        return v


@lru_cache()
def get_analysis_settings() -> AnalysisSettings:
    try:
        return AnalysisSettings()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid analysis configuration: {exc}") from exc


def reset_analysis_settings_cache() -> None:
    get_analysis_settings.cache_clear()  # type: ignore[attr-defined]
