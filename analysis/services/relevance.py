"""Two-stage triage, step 1: title-only relevance classification."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from analysis.models.domain import ClassificationResult, RelevanceJudgment
from analysis.prompts.templates import build_relevance_prompts
from ingestion.models.domain import ArticleRecord, FeedSourceDTO
from ingestion.utils.logging import get_logger
from llm.client.openai_client import JsonCompletionClient, MalformedResponseError

logger = get_logger(__name__)


def _interest_of(source: Optional[FeedSourceDTO]) -> Optional[str]:
    if source is None or source.interest is None:
        return None
    interest = source.interest.strip()
    return interest or None


def _response_items(data: Any) -> List[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("results", "judgments", "items"):
            if isinstance(data.get(key), list):
                return data[key]
        lists = [value for value in data.values() if isinstance(value, list)]
        if len(lists) == 1:
            return lists[0]
    raise MalformedResponseError("relevance response is not a JSON array of judgments")


def _index_judgments(items: Sequence[Any]) -> Dict[int, RelevanceJudgment]:
    by_index: Dict[int, RelevanceJudgment] = {}
    for raw in items:
        try:
            judgment = RelevanceJudgment.model_validate(raw)
        except ValidationError:
            logger.warning("classify.judgment_invalid", extra={"judgment": str(raw)[:200]})
            continue
        by_index.setdefault(judgment.index, judgment)
    return by_index


class RelevanceClassifier:
    """Label articles relevant/not relevant with a category.

    Articles whose source has no interest filter resolve to
    ``{relevant: true, category: "general"}`` without a backend call. The rest
    go to the backend in one batch, numbered from 1; each number is looked up
    in the response independently and a missing one resolves to not relevant.
    """

    def __init__(self, client: JsonCompletionClient) -> None:
        self._client = client

    def resolve_unfiltered(
        self,
        articles: Sequence[ArticleRecord],
        sources: Mapping[str, FeedSourceDTO],
    ) -> List[Optional[ClassificationResult]]:
        """Results for articles that need no backend call; ``None`` elsewhere."""
        return [
            ClassificationResult.general() if _interest_of(sources.get(a.source)) is None else None
            for a in articles
        ]

    def judge(
        self,
        articles: Sequence[ArticleRecord],
        sources: Mapping[str, FeedSourceDTO],
    ) -> List[ClassificationResult]:
        """Return one result per article, in input order.

        Backend failures (transport, unparsable JSON) propagate to the caller.
        """
        results = self.resolve_unfiltered(articles, sources)
        pending = [pos for pos, result in enumerate(results) if result is None]
        if pending:
            interests = {
                key: interest
                for key, interest in ((k, _interest_of(s)) for k, s in sources.items())
                if interest is not None
            }
            items = [(articles[pos].source_name, articles[pos].title) for pos in pending]
            system, user = build_relevance_prompts(interests, items)
            logger.info("classify.batch", extra={"submitted": len(items), "short_circuited": len(articles) - len(items)})
            judgments = _index_judgments(_response_items(self._client.complete_json(system, user)))

            for batch_index, pos in enumerate(pending, start=1):
                judgment = judgments.get(batch_index)
                if judgment is None:
                    logger.info(
                        "classify.index_missing",
                        extra={"index": batch_index, "url": articles[pos].url},
                    )
                    results[pos] = ClassificationResult.not_relevant()
                else:
                    results[pos] = ClassificationResult(relevant=judgment.relevant, category=judgment.category)

        return [r for r in results if r is not None]
