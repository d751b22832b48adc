"""Message formatting and batched LINE broadcast."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

import httpx

from ingestion.errors import ConfigurationError, TransportError
from ingestion.models.domain import ArticleRecord
from ingestion.settings import LINE_MAX_MESSAGES_PER_CALL, Settings
from ingestion.utils.logging import get_logger

MAX_MESSAGE_CHARS = 5000
TRUNCATED_LENGTH = 4990
TRUNCATION_MARKER = "..."
NO_INFORMATION = "no information"
DEFAULT_CATEGORY = "general"
DIVIDER = "━" * 19

PosterFn = Callable[[str, Dict[str, str], Dict[str, Any]], int]

logger = get_logger(__name__)


def truncate_message(text: str) -> str:
    """Enforce the LINE text payload ceiling."""
    if len(text) > MAX_MESSAGE_CHARS:
        return text[:TRUNCATED_LENGTH] + TRUNCATION_MARKER
    return text


def format_message(article: ArticleRecord) -> str:
    published = article.published_at.strftime("%Y-%m-%d %H:%M") if article.published_at else ""
    text = "\n".join(
        [
            f"📋 [{article.source_name}] {article.category or DEFAULT_CATEGORY}",
            DIVIDER,
            article.title,
            "",
            "■ What changes",
            article.what_changes or NO_INFORMATION,
            "",
            "■ Who is affected",
            article.who_affected or NO_INFORMATION,
            "",
            "■ Effective from",
            article.effective_date or NO_INFORMATION,
            "",
            "■ Required action",
            article.action_required or NO_INFORMATION,
            "",
            f"🔗 {article.url}",
            f"📅 {published}",
        ]
    ).strip()
    return truncate_message(text)


def build_text_message(article: ArticleRecord) -> Dict[str, str]:
    return {"type": "text", "text": format_message(article)}


class LineBroadcaster:
    """Messaging-backend collaborator: POST /message/broadcast.

    Returns ``True`` on a 2xx response. Transport errors and non-2xx
    responses are logged and reported as ``False``.
    """

    def __init__(
        self,
        token: str,
        *,
        api_base: str = "https://api.line.me/v2/bot",
        timeout_seconds: float = 15,
        poster: Optional[PosterFn] = None,
    ) -> None:
        if not token:
            raise ConfigurationError("LINE_CHANNEL_TOKEN is not set")
        self._token = token
        self._url = f"{api_base.rstrip('/')}/message/broadcast"
        self._timeout = timeout_seconds
        self._poster = poster

    @classmethod
    def from_settings(cls, settings: Settings, poster: Optional[PosterFn] = None) -> "LineBroadcaster":
        if settings.line_channel_token is None:
            raise ConfigurationError("LINE_CHANNEL_TOKEN is not set")
        return cls(
            settings.line_channel_token.get_secret_value(),
            api_base=settings.line_api_base,
            timeout_seconds=float(settings.line_timeout_seconds),
            poster=poster,
        )

    def _post(self, headers: Dict[str, str], body: Dict[str, Any]) -> int:
        if self._poster is not None:
            return self._poster(self._url, headers, body)
        resp = httpx.post(self._url, headers=headers, json=body, timeout=self._timeout)
        if not resp.is_success:
            logger.debug("notify.broadcast_response", extra={"status": resp.status_code, "body": resp.text[:500]})
        return resp.status_code

    def broadcast(self, messages: Sequence[Dict[str, str]]) -> bool:
        if len(messages) > LINE_MAX_MESSAGES_PER_CALL:
            raise ValueError(f"at most {LINE_MAX_MESSAGES_PER_CALL} messages per broadcast")
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._token}",
        }
        try:
            status = self._post(headers, {"messages": list(messages)})
        except (httpx.HTTPError, TransportError) as exc:
            logger.warning("notify.broadcast_error", extra={"error": str(exc)})
            return False
        if not 200 <= status < 300:
            logger.warning("notify.broadcast_rejected", extra={"status": status})
            return False
        return True


@dataclass
class Notifier:
    """Format articles and submit them in batches of at most five.

    Consecutive broadcast calls are spaced by ``pause_seconds`` across all
    callers sharing this instance.
    """

    broadcaster: LineBroadcaster
    batch_size: int = LINE_MAX_MESSAGES_PER_CALL
    pause_seconds: float = 0.5
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.monotonic
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _last_call: Optional[float] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if not 1 <= self.batch_size <= LINE_MAX_MESSAGES_PER_CALL:
            raise ValueError(f"batch_size must be between 1 and {LINE_MAX_MESSAGES_PER_CALL}")

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        poster: Optional[PosterFn] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "Notifier":
        return cls(
            LineBroadcaster.from_settings(settings, poster=poster),
            batch_size=settings.notify_batch_size,
            pause_seconds=float(settings.notify_pause_seconds),
            sleep=sleep,
        )

    def iter_batches(self, articles: Sequence[ArticleRecord]) -> Iterator[List[ArticleRecord]]:
        for start in range(0, len(articles), self.batch_size):
            yield list(articles[start : start + self.batch_size])

    def notify(self, batch: Sequence[ArticleRecord]) -> bool:
        if not batch:
            return True
        if len(batch) > self.batch_size:
            raise ValueError(f"batch exceeds {self.batch_size} messages")
        messages = [build_text_message(article) for article in batch]
        with self._lock:
            self._throttle()
            try:
                return self.broadcaster.broadcast(messages)
            finally:
                self._last_call = self.clock()

    def _throttle(self) -> None:
        if self._last_call is None or self.pause_seconds <= 0:
            return
        remaining = self.pause_seconds - (self.clock() - self._last_call)
        if remaining > 0:
            self.sleep(remaining)
