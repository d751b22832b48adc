"""Domain DTOs for the ingestion pipeline."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FeedEntry(BaseModel):
    """One parsed syndication entry."""

    model_config = ConfigDict(frozen=True)

    title: str
    url: str
    published_at: Optional[datetime] = None

    @field_validator("title", "url")
    @classmethod
    def _strip_nonempty(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("title/url must not be blank")
        return s


class FeedSourceDTO(BaseModel):
    """Read-only view of a monitored source."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    key: str
    name: str
    rss_url: str
    interest: Optional[str] = Field(None, description="Comma-separated keywords; None accepts everything")
    is_active: bool = True
    last_fetched_at: Optional[datetime] = None

    @property
    def interests(self) -> list[str]:
        if self.interest is None:
            return []
        return [kw.strip() for kw in self.interest.split(",") if kw.strip()]


class ArticleRecord(BaseModel):
    """In-memory working copy of an Article row.

    Updates produce new instances (``model_copy``) so a reader never sees a
    half-merged set of analysis fields.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: uuid.UUID
    source: str
    source_name: str
    title: str
    url: str
    published_at: Optional[datetime] = None

    is_relevant: Optional[bool] = None
    category: Optional[str] = None

    summary: Optional[str] = None
    what_changes: Optional[str] = None
    who_affected: Optional[str] = None
    effective_date: Optional[str] = None
    action_required: Optional[str] = None

    notified_at: Optional[datetime] = None

    @property
    def has_analysis(self) -> bool:
        # what_changes is the completion marker for impact analysis
        return self.what_changes is not None

    @property
    def is_notifiable(self) -> bool:
        return bool(self.is_relevant) and self.has_analysis
