"""Two-stage triage, step 2: structured impact analysis of one article."""

from __future__ import annotations

from pydantic import ValidationError

from analysis.models.domain import AnalysisResult
from analysis.prompts.templates import build_impact_prompts
from llm.client.openai_client import JsonCompletionClient, MalformedResponseError


class ImpactAnalyzer:
    """One backend call per relevant article; ``content`` arrives pre-truncated."""

    def __init__(self, client: JsonCompletionClient) -> None:
        self._client = client

    def analyze(self, source_name: str, title: str, content: str) -> AnalysisResult:
        system, user = build_impact_prompts(source_name, title, content)
        data = self._client.complete_json(system, user)
        if not isinstance(data, dict):
            raise MalformedResponseError("impact response is not a JSON object")
        try:
            return AnalysisResult.model_validate(data)
        except ValidationError as exc:
            raise MalformedResponseError(f"impact response missing fields: {exc.error_count()} error(s)") from exc
