"""Pipeline orchestrator: fetch → dedupe-insert → classify → analyze → notify."""

from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from typing import Any, Callable, Collection, ContextManager, Dict, Iterator, List, Mapping, Optional, Sequence

from celery import shared_task

from analysis.models.domain import AnalysisResult, ClassificationResult
from analysis.services.impact import ImpactAnalyzer
from analysis.services.relevance import RelevanceClassifier
from ingestion.connectors.page import PageContentFetcher
from ingestion.connectors.rss import RSSConnector
from ingestion.db.session import session_scope
from ingestion.errors import ContractViolation, ParseError, TransportError
from ingestion.models.domain import ArticleRecord, FeedSourceDTO
from ingestion.repositories.articles import ArticleStore, JobRunRecorder
from ingestion.settings import Settings, get_settings
from ingestion.utils.logging import get_logger
from llm.client.openai_client import LLMError, OpenAIClient, ProviderFn
from llm.settings import AnalysisSettings, get_analysis_settings
from publish.notifier import Notifier, PosterFn

# Errors recovered at the smallest unit of work (one source, article or batch).
RECOVERABLE_ERRORS = (TransportError, ParseError, LLMError)

StoreFactory = Callable[[], ContextManager[ArticleStore]]

logger = get_logger(__name__)


@dataclass
class RunSummary:
    new_count: int = 0
    relevant_count: int = 0
    notified_count: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class RunResult:
    status: str
    summary: RunSummary
    trace_id: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "succeeded"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "trace_id": self.trace_id,
            "error": self.error,
            **self.summary.to_dict(),
        }


def _with_classification(article: ArticleRecord, result: ClassificationResult) -> ArticleRecord:
    return article.model_copy(update={"is_relevant": result.relevant, "category": result.category})


def _with_analysis(article: ArticleRecord, result: AnalysisResult) -> ArticleRecord:
    return article.model_copy(update=result.model_dump())


class Pipeline:
    """One periodic ingestion-and-triage run.

    Only acquiring the store and a classifier result that does not line up
    with its input are fatal. Per-source, per-article and per-batch errors
    are logged with the failing identifier and skipped.
    """

    def __init__(
        self,
        *,
        store_factory: StoreFactory,
        connector: RSSConnector,
        page_fetcher: PageContentFetcher,
        classifier: RelevanceClassifier,
        analyzer: ImpactAnalyzer,
        notifier: Notifier,
        feed_max_attempts: int = 1,
        retry_pending_notifications: bool = True,
    ) -> None:
        self._store_factory = store_factory
        self._connector = connector
        self._page_fetcher = page_fetcher
        self._classifier = classifier
        self._analyzer = analyzer
        self._notifier = notifier
        self._feed_max_attempts = feed_max_attempts
        self._retry_pending = retry_pending_notifications

    def run(self, *, trace_id: Optional[str] = None, summary: Optional[RunSummary] = None) -> RunSummary:
        trace_id = trace_id or str(uuid.uuid4())
        summary = summary if summary is not None else RunSummary()
        with self._store_factory() as store, JobRunRecorder(
            store.session, task_name="pipeline.run", trace_id=trace_id
        ) as job:
            try:
                self._run(store, summary, trace_id)
            finally:
                job.new_count = summary.new_count
                job.relevant_count = summary.relevant_count
                job.notified_count = summary.notified_count
        return summary

    def _run(self, store: ArticleStore, summary: RunSummary, trace_id: str) -> None:
        extra = {"trace_id": trace_id}
        sources = store.active_feed_sources()
        logger.info("pipeline.start", extra={**extra, "sources": len(sources)})

        new_articles: List[ArticleRecord] = []
        for source in sources:
            new_articles.extend(self._ingest_source(store, source, trace_id))
        summary.new_count = len(new_articles)
        logger.info("pipeline.ingested", extra={**extra, "new": summary.new_count})
        if not new_articles:
            logger.info("pipeline.no_new_articles", extra=extra)
            summary.notified_count = self._notify(store, self._pending(store, ()), trace_id)
            return

        relevant = self._classify(store, new_articles, {s.key: s for s in sources}, trace_id)
        summary.relevant_count = len(relevant)
        logger.info(
            "pipeline.classified",
            extra={**extra, "relevant": summary.relevant_count, "new": summary.new_count},
        )
        if not relevant:
            logger.info("pipeline.no_relevant_articles", extra=extra)
            current = {article.id for article in new_articles}
            summary.notified_count = self._notify(store, self._pending(store, current), trace_id)
            return

        analyzed = [self._analyze(store, article, trace_id) for article in relevant]
        to_notify = [article for article in analyzed if article.is_notifiable]
        to_notify.extend(self._pending(store, {article.id for article in new_articles}))

        summary.notified_count = self._notify(store, to_notify, trace_id)
        logger.info("pipeline.done", extra={**extra, **summary.to_dict()})

    def _pending(self, store: ArticleStore, exclude_ids: Collection[uuid.UUID]) -> List[ArticleRecord]:
        """Analyzed articles from earlier runs whose broadcast never succeeded."""
        if not self._retry_pending:
            return []
        return store.pending_notifications(exclude_ids=exclude_ids)

    def _ingest_source(self, store: ArticleStore, source: FeedSourceDTO, trace_id: str) -> List[ArticleRecord]:
        extra = {"trace_id": trace_id, "source": source.key}
        created: List[ArticleRecord] = []
        try:
            entries = self._connector.fetch(source.rss_url, max_attempts=self._feed_max_attempts)
            for entry in entries:
                record, was_new = store.insert_if_new(entry, source)
                if was_new:
                    created.append(record)
            logger.info("pipeline.source_fetched", extra={**extra, "fetched": len(entries), "new": len(created)})
        except RECOVERABLE_ERRORS as exc:
            logger.warning("pipeline.source_failed", extra={**extra, "error": str(exc)})
        finally:
            # "attempted", not "succeeded"
            store.touch_last_fetched(source.key)
        return created

    def _classify(
        self,
        store: ArticleStore,
        articles: Sequence[ArticleRecord],
        sources: Mapping[str, FeedSourceDTO],
        trace_id: str,
    ) -> List[ArticleRecord]:
        results: Sequence[Optional[ClassificationResult]]
        try:
            results = self._classifier.judge(articles, sources)
        except RECOVERABLE_ERRORS as exc:
            # API-judged articles stay unclassified rather than guessed
            logger.warning(
                "pipeline.classify_failed",
                extra={"trace_id": trace_id, "articles": len(articles), "error": str(exc)},
            )
            results = self._classifier.resolve_unfiltered(articles, sources)
            unjudged = [article.url for article, result in zip(articles, results) if result is None]
            if unjudged:
                logger.warning(
                    "pipeline.articles_unclassified",
                    extra={"trace_id": trace_id, "count": len(unjudged), "urls": unjudged},
                )

        if len(results) != len(articles):
            raise ContractViolation(
                f"classifier returned {len(results)} results for {len(articles)} articles"
            )

        relevant: List[ArticleRecord] = []
        for article, result in zip(articles, results):
            if result is None:
                continue
            store.record_classification(article.id, result)
            if result.relevant:
                relevant.append(_with_classification(article, result))
        return relevant

    def _analyze(self, store: ArticleStore, article: ArticleRecord, trace_id: str) -> ArticleRecord:
        try:
            content = self._page_fetcher.fetch(article.url)
            result = self._analyzer.analyze(article.source_name, article.title, content)
        except RECOVERABLE_ERRORS as exc:
            logger.warning(
                "pipeline.analysis_failed",
                extra={"trace_id": trace_id, "url": article.url, "error": str(exc)},
            )
            return article
        store.record_analysis(article.id, result)
        return _with_analysis(article, result)

    def _notify(self, store: ArticleStore, articles: Sequence[ArticleRecord], trace_id: str) -> int:
        notified = 0
        for index, batch in enumerate(self._notifier.iter_batches(articles)):
            if not self._notifier.notify(batch):
                logger.warning(
                    "pipeline.notify_failed",
                    extra={"trace_id": trace_id, "batch": index, "urls": [a.url for a in batch]},
                )
                continue
            for article in batch:
                store.mark_notified(article.id)
            notified += len(batch)
        return notified


def _store_scope(settings: Settings) -> StoreFactory:
    @contextmanager
    def _scope() -> Iterator[ArticleStore]:
        with session_scope(settings) as session:
            yield ArticleStore(session)

    return _scope


def build_pipeline(
    settings: Optional[Settings] = None,
    analysis_settings: Optional[AnalysisSettings] = None,
    *,
    provider: Optional[ProviderFn] = None,
    feed_fetcher: Optional[Callable[[str], bytes]] = None,
    page_fetcher: Optional[Callable[[str], bytes]] = None,
    poster: Optional[PosterFn] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Pipeline:
    """Wire collaborators from explicit settings; injection points serve tests."""
    config = settings or get_settings()
    llm_config = analysis_settings or get_analysis_settings()
    client = OpenAIClient(llm_config, provider=provider)
    return Pipeline(
        store_factory=_store_scope(config),
        connector=RSSConnector.from_settings(config, fetcher=feed_fetcher),
        page_fetcher=PageContentFetcher.from_settings(config, fetcher=page_fetcher),
        classifier=RelevanceClassifier(client),
        analyzer=ImpactAnalyzer(client),
        notifier=Notifier.from_settings(config, poster=poster, sleep=sleep),
        feed_max_attempts=config.feed_max_attempts,
    )


def run_safely(factory: Optional[Callable[[], Pipeline]] = None) -> RunResult:
    """Top-level boundary: any unhandled error becomes a failed RunResult."""
    trace_id = str(uuid.uuid4())
    summary = RunSummary()
    try:
        pipeline = factory() if factory is not None else build_pipeline()
        pipeline.run(trace_id=trace_id, summary=summary)
    except Exception as exc:
        logger.exception(
            "pipeline.fatal",
            extra={"trace_id": trace_id, "error_type": type(exc).__name__, **summary.to_dict()},
        )
        return RunResult(status="failed", summary=summary, trace_id=trace_id, error=str(exc))
    return RunResult(status="succeeded", summary=summary, trace_id=trace_id)


@shared_task(name="ingestion.tasks.pipeline.run_pipeline")
def run_pipeline_task() -> Dict[str, Any]:  # pragma: no cover - thin Celery wrapper
    return run_safely().to_dict()
