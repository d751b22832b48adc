from __future__ import annotations

import json
from typing import Any, Dict

import pytest

from ingestion.errors import ParseError, TransportError
from llm.client.openai_client import (
    MalformedResponseError,
    OpenAIClient,
    PermanentLLMError,
    TransientLLMError,
    parse_json_content,
)
from llm.settings import AnalysisSettings, get_analysis_settings


def _response(content: str, prompt_tokens: int = 300, completion_tokens: int = 150) -> Dict[str, Any]:
    return {
        "choices": [{"message": {"content": content}}],
        "usage": {"prompt_tokens": prompt_tokens, "completion_tokens": completion_tokens},
        "model": "gpt-4o-mini",
    }


def _settings(**overrides) -> AnalysisSettings:
    values = {"openai_api_key": "sk-test-123", "analysis_retry_max_attempts": 1}
    values.update(overrides)
    return AnalysisSettings(**values)


def test_complete_json_success_builds_json_mode_payload():
    seen: Dict[str, Any] = {}

    def provider(payload: Dict[str, Any]) -> Dict[str, Any]:
        seen.update(payload)
        return _response(json.dumps({"results": []}))

    client = OpenAIClient(_settings(), provider=provider)

    assert client.complete_json("system text", "user text") == {"results": []}
    assert seen["response_format"] == {"type": "json_object"}
    assert seen["messages"][0] == {"role": "system", "content": "system text"}
    assert seen["messages"][1] == {"role": "user", "content": "user text"}


def test_retry_after_malformed_json_then_success():
    calls = {"n": 0}

    def provider(_: Dict[str, Any]) -> Dict[str, Any]:
        calls["n"] += 1
        if calls["n"] == 1:
            return _response("not-json")
        return _response('{"ok": true}')

    client = OpenAIClient(_settings(), provider=provider)

    assert client.complete_json("s", "u") == {"ok": True}
    assert calls["n"] == 2


def test_malformed_json_after_retries_is_parse_error():
    client = OpenAIClient(_settings(analysis_retry_max_attempts=0), provider=lambda _: _response("{broken"))

    with pytest.raises(MalformedResponseError) as exc:
        client.complete_json("s", "u")

    assert isinstance(exc.value, ParseError)


def test_transient_errors_exhaust_retries():
    calls = {"n": 0}

    def provider(_: Dict[str, Any]) -> Dict[str, Any]:
        calls["n"] += 1
        raise TransientLLMError("503")

    client = OpenAIClient(_settings(analysis_retry_max_attempts=2), provider=provider)

    with pytest.raises(TransientLLMError) as exc:
        client.complete_json("s", "u")

    assert calls["n"] == 3
    assert isinstance(exc.value, TransportError)


def test_permanent_error_is_not_retried():
    calls = {"n": 0}

    def provider(_: Dict[str, Any]) -> Dict[str, Any]:
        calls["n"] += 1
        raise PermanentLLMError("401")

    client = OpenAIClient(_settings(), provider=provider)

    with pytest.raises(PermanentLLMError):
        client.complete_json("s", "u")
    assert calls["n"] == 1


def test_cost_limit_exceeded():
    client = OpenAIClient(
        _settings(),
        provider=lambda _: _response("{}", prompt_tokens=500_000, completion_tokens=500_000),
    )

    with pytest.raises(PermanentLLMError):
        client.complete_json("s", "u")


def test_code_fenced_json_is_accepted():
    assert parse_json_content('```json\n[{"index": 1}]\n```') == [{"index": 1}]


def test_empty_content_is_malformed():
    with pytest.raises(MalformedResponseError):
        parse_json_content("   ")


def test_from_env_reads_settings(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("ANALYSIS_MODEL", "gpt-4o")

    client = OpenAIClient.from_env(provider=lambda _: _response("{}"))

    assert client.settings is get_analysis_settings()
    assert client.settings.analysis_model == "gpt-4o"
    assert client.complete_json("s", "u") == {}
