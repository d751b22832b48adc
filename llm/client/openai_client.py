"""OpenAI-compatible JSON completion client.

- JSON-mode completions parsed into Python objects; parse failures surface
  as ``MalformedResponseError`` and are never coerced into a default
- Retries on transient errors and unparsable output, per-request cost cap
- Provider injection removes network/SDK dependencies in tests
"""

from __future__ import annotations

import json
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

from ingestion.errors import ParseError, PipelineError, TransportError
from llm.settings import AnalysisSettings, get_analysis_settings


class LLMError(PipelineError):
    """Base error for generative-backend calls."""


class TransientLLMError(LLMError, TransportError):
    """Network/timeout/5xx/rate-limit failure (retryable)."""


class PermanentLLMError(LLMError):
    """Non-retryable failure (4xx, cost cap, missing SDK)."""


class MalformedResponseError(PermanentLLMError, ParseError):
    """Response text could not be parsed as JSON."""


ProviderFn = Callable[[Dict[str, Any]], Dict[str, Any]]


class JsonCompletionClient(Protocol):
    def complete_json(self, system: str, user: str) -> Any: ...  # noqa: D401


_PRICE_PER_1K_TOKENS_USD: Dict[str, Dict[str, float]] = {
    "gpt-4o-mini": {"prompt": 0.00015, "completion": 0.0006},
    "gpt-4o": {"prompt": 0.0025, "completion": 0.0100},
    "gpt-4.1-mini": {"prompt": 0.0004, "completion": 0.0016},
}


def _estimate_cost_usd(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    price = _PRICE_PER_1K_TOKENS_USD.get(model, _PRICE_PER_1K_TOKENS_USD["gpt-4o-mini"])
    return (
        (prompt_tokens / 1000.0) * price["prompt"]
        + (completion_tokens / 1000.0) * price["completion"]
    )


def _estimate_tokens_from_messages(messages: List[dict]) -> int:
    """Conservative length-based token estimate."""
    total_chars = sum(len(str(m.get("content", ""))) for m in messages)
    return max(1, math.ceil(total_chars / 4))


def _strip_code_fence(content: str) -> str:
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_json_content(content: str) -> Any:
    text = _strip_code_fence(content or "")
    if not text:
        raise MalformedResponseError("empty LLM response")
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"LLM response is not valid JSON: {exc.msg}") from exc


@dataclass(frozen=True)
class OpenAIClient:
    settings: AnalysisSettings
    provider: Optional[ProviderFn] = None

    @classmethod
    def from_env(cls, provider: Optional[ProviderFn] = None) -> "OpenAIClient":
        return cls(get_analysis_settings(), provider=provider)

    def _get_provider(self) -> ProviderFn:
        if self.provider is not None:
            return self.provider
        try:
            import openai
        except ImportError as exc:  # pragma: no cover - tests inject a provider
            raise PermanentLLMError("openai library is not installed") from exc

        client = openai.OpenAI(
            api_key=self.settings.openai_api_key,
            base_url=self.settings.openai_base_url,
            timeout=float(self.settings.analysis_request_timeout_seconds),
            max_retries=0,
        )

        def _call(payload: Dict[str, Any]) -> Dict[str, Any]:  # pragma: no cover - network
            try:
                resp = client.chat.completions.create(**payload)
            except (openai.APITimeoutError, openai.APIConnectionError, openai.RateLimitError) as exc:
                raise TransientLLMError(f"LLM transport error: {exc}") from exc
            except openai.InternalServerError as exc:
                raise TransientLLMError(f"LLM server error: {exc.status_code}") from exc
            except openai.APIStatusError as exc:
                raise PermanentLLMError(f"LLM API error: {exc.status_code}") from exc
            return {
                "choices": [{"message": {"content": resp.choices[0].message.content}}],
                "usage": {
                    "prompt_tokens": getattr(resp.usage, "prompt_tokens", 0),
                    "completion_tokens": getattr(resp.usage, "completion_tokens", 0),
                },
                "model": resp.model,
            }

        return _call

    def _build_payload(self, system: str, user: str) -> Dict[str, Any]:
        return {
            "model": self.settings.analysis_model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": float(self.settings.analysis_temperature),
            "max_tokens": int(self.settings.analysis_max_tokens),
            "response_format": {"type": "json_object"},
        }

    def complete_json(self, system: str, user: str) -> Any:
        """Send one system+user instruction pair and return the parsed JSON."""
        payload = self._build_payload(system, user)
        estimated = _estimate_cost_usd(
            payload["model"],
            _estimate_tokens_from_messages(payload["messages"]),
            int(self.settings.analysis_max_tokens),
        )
        if estimated > float(self.settings.analysis_cost_limit_usd):
            raise PermanentLLMError("estimated LLM cost exceeds limit")

        provider = self._get_provider()
        max_attempts = int(self.settings.analysis_retry_max_attempts) + 1
        deadline = time.monotonic() + float(self.settings.analysis_request_timeout_seconds) * max_attempts
        last_exc: Optional[LLMError] = None
        for _ in range(max_attempts):
            if last_exc is not None and time.monotonic() > deadline:
                break
            try:
                resp = provider(payload)
            except TransientLLMError as exc:
                last_exc = exc
                continue

            model = resp.get("model") or self.settings.analysis_model
            usage = resp.get("usage") or {}
            cost = _estimate_cost_usd(
                model,
                int(usage.get("prompt_tokens", 0)),
                int(usage.get("completion_tokens", 0)),
            )
            if cost > float(self.settings.analysis_cost_limit_usd):
                raise PermanentLLMError("LLM cost limit exceeded")

            content = (resp.get("choices") or [{}])[0].get("message", {}).get("content") or ""
            try:
                return parse_json_content(content)
            except MalformedResponseError as exc:
                last_exc = exc
                continue

        assert last_exc is not None
        raise last_exc
