from __future__ import annotations

import pytest
from pydantic import ValidationError

from analysis.models.domain import AnalysisResult, ClassificationResult, RelevanceJudgment


def test_general_and_not_relevant_constructors():
    assert ClassificationResult.general() == ClassificationResult(relevant=True, category="general")
    assert ClassificationResult.not_relevant() == ClassificationResult(relevant=False, category=None)


def test_judgment_coerces_loose_values():
    judgment = RelevanceJudgment.model_validate({"index": "2", "relevant": "true", "category": "  "})

    assert judgment.index == 2
    assert judgment.relevant is True
    assert judgment.category is None


def test_judgment_rejects_zero_index():
    with pytest.raises(ValidationError):
        RelevanceJudgment.model_validate({"index": 0, "relevant": True})


def test_analysis_result_coerces_lists_and_numbers():
    result = AnalysisResult.model_validate(
        {
            "summary": ["line one", "line two"],
            "what_changes": " w ",
            "who_affected": "who",
            "effective_date": 2025,
            "action_required": "none",
        }
    )

    assert result.summary == "line one\nline two"
    assert result.what_changes == "w"
    assert result.effective_date == "2025"
