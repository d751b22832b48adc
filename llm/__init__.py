"""LLM module - OpenAI-compatible JSON client and settings."""

from llm.client.openai_client import (
    LLMError,
    MalformedResponseError,
    OpenAIClient,
    PermanentLLMError,
    ProviderFn,
    TransientLLMError,
)
from llm.settings import AnalysisSettings, get_analysis_settings

__all__ = [
    "LLMError",
    "MalformedResponseError",
    "OpenAIClient",
    "PermanentLLMError",
    "ProviderFn",
    "TransientLLMError",
    "AnalysisSettings",
    "get_analysis_settings",
]
