"""Repositories for feed sources, articles and pipeline runs."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Collection, List

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from analysis.models.domain import AnalysisResult, ClassificationResult
from ingestion.db.models import Article, FeedSource, JobRun, JobStatus
from ingestion.errors import PipelineError
from ingestion.models.domain import ArticleRecord, FeedEntry, FeedSourceDTO


def _insert_ignoring_duplicates(dialect_name: str):
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        return None
    return insert


class ArticleStore:
    """Store interface consumed by the pipeline.

    Every write commits immediately so that per-article state survives a
    failure later in the same run.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    def active_feed_sources(self) -> List[FeedSourceDTO]:
        stmt = select(FeedSource).where(FeedSource.is_active.is_(True)).order_by(FeedSource.key)
        return [FeedSourceDTO.model_validate(row) for row in self._session.scalars(stmt)]

    def insert_if_new(self, entry: FeedEntry, source: FeedSourceDTO) -> tuple[ArticleRecord, bool]:
        """Insert an article keyed by URL; a duplicate URL is a no-op.

        Returns the stored record and whether this call created it.
        """
        values: dict[str, Any] = {
            "id": uuid.uuid4(),
            "source": source.key,
            "source_name": source.name,
            "title": entry.title,
            "url": entry.url,
            "published_at": entry.published_at,
        }
        insert = _insert_ignoring_duplicates(self._session.get_bind().dialect.name)
        if insert is not None:
            stmt = (
                insert(Article)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["url"])
                .returning(Article.id)
            )
            new_id = self._session.execute(stmt).scalar_one_or_none()
            self._session.commit()
        else:
            new_id = self._insert_or_none(values)

        if new_id is None:
            return self._by_url(entry.url), False
        row = self._session.get(Article, new_id)
        if row is None:
            raise PipelineError(f"inserted article {new_id} is not readable")
        return ArticleRecord.model_validate(row), True

    def _insert_or_none(self, values: dict[str, Any]) -> uuid.UUID | None:
        try:
            self._session.add(Article(**values))
            self._session.commit()
        except IntegrityError:
            self._session.rollback()
            return None
        return values["id"]

    def _by_url(self, url: str) -> ArticleRecord:
        row = self._session.scalars(select(Article).where(Article.url == url)).one()
        return ArticleRecord.model_validate(row)

    def get(self, article_id: uuid.UUID) -> ArticleRecord | None:
        row = self._session.get(Article, article_id)
        if row is None:
            return None
        self._session.refresh(row)
        return ArticleRecord.model_validate(row)

    def record_classification(self, article_id: uuid.UUID, result: ClassificationResult) -> None:
        self._session.execute(
            update(Article)
            .where(Article.id == article_id)
            .values(is_relevant=result.relevant, category=result.category)
        )
        self._session.commit()

    def record_analysis(self, article_id: uuid.UUID, result: AnalysisResult) -> None:
        self._session.execute(
            update(Article)
            .where(Article.id == article_id)
            .values(
                summary=result.summary,
                what_changes=result.what_changes,
                who_affected=result.who_affected,
                effective_date=result.effective_date,
                action_required=result.action_required,
            )
        )
        self._session.commit()

    def mark_notified(self, article_id: uuid.UUID, at: datetime | None = None) -> None:
        self._session.execute(
            update(Article)
            .where(Article.id == article_id)
            .values(notified_at=at or datetime.now(timezone.utc))
        )
        self._session.commit()

    def touch_last_fetched(self, source_key: str, at: datetime | None = None) -> None:
        self._session.execute(
            update(FeedSource)
            .where(FeedSource.key == source_key)
            .values(last_fetched_at=at or datetime.now(timezone.utc))
        )
        self._session.commit()

    def pending_notifications(self, exclude_ids: Collection[uuid.UUID] = ()) -> List[ArticleRecord]:
        """Relevant, analyzed articles whose broadcast never succeeded."""
        stmt = (
            select(Article)
            .where(
                Article.is_relevant.is_(True),
                Article.what_changes.is_not(None),
                Article.notified_at.is_(None),
            )
            .order_by(Article.created_at, Article.url)
        )
        if exclude_ids:
            stmt = stmt.where(Article.id.not_in(list(exclude_ids)))
        return [ArticleRecord.model_validate(row) for row in self._session.scalars(stmt)]


class JobRunRecorder:
    """Context manager to record a pipeline run lifecycle."""

    def __init__(self, session: Session, *, task_name: str, trace_id: str | None = None) -> None:
        self._session = session
        self._job = JobRun(
            status=JobStatus.RUNNING,
            task_name=task_name,
            trace_id=trace_id,
            started_at=datetime.now(timezone.utc),
        )

    def __enter__(self) -> JobRun:
        self._session.add(self._job)
        # Commit initial RUNNING state so we have a durable record even if later work fails
        self._session.commit()
        return self._job

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        if exc is None:
            self._job.status = JobStatus.SUCCEEDED
        else:
            self._job.status = JobStatus.FAILED
            self._job.error_message = str(exc)[:512]
        self._job.finished_at = datetime.now(timezone.utc)
        self._session.add(self._job)
        # Commit final state before outer transaction may roll back
        try:
            self._session.commit()
        except Exception:  # pragma: no cover - do not mask original error
            self._session.rollback()
