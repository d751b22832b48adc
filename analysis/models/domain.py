"""DTOs for classification and impact-analysis results.

Pydantic v2 models normalize what the generative backend returns before it
is folded into an Article.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

GENERAL_CATEGORY = "general"


class ClassificationResult(BaseModel):
    """Relevance verdict for one article."""

    model_config = ConfigDict(frozen=True)

    relevant: bool
    category: Optional[str] = None

    @classmethod
    def general(cls) -> "ClassificationResult":
        return cls(relevant=True, category=GENERAL_CATEGORY)

    @classmethod
    def not_relevant(cls) -> "ClassificationResult":
        return cls(relevant=False, category=None)


class RelevanceJudgment(BaseModel):
    """One entry of the batched relevance response."""

    index: int = Field(..., ge=1)
    relevant: bool
    category: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v


class AnalysisResult(BaseModel):
    """Structured impact summary of one publication."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    summary: str
    what_changes: str
    who_affected: str
    effective_date: str = Field(..., validation_alias=AliasChoices("effective_date", "when"))
    action_required: str

    @field_validator("summary", "what_changes", "who_affected", "effective_date", "action_required", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        if isinstance(v, list):
            return "\n".join(str(item) for item in v)
        return v.strip() if isinstance(v, str) else v
