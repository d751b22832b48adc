"""RSS/RDF/Atom connector (fetcher-injected for tests/offline)."""

from __future__ import annotations

import calendar
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

import feedparser
from pydantic import ValidationError

from ingestion.models.domain import FeedEntry
from ingestion.settings import Settings
from ingestion.utils.logging import get_logger

from .base import BaseConnector, http_get


FetcherFn = Callable[[str], bytes]

logger = get_logger(__name__)


def _entry_link(item: Any) -> str:
    link = item.get("link")
    if link:
        return str(link)
    for candidate in item.get("links") or []:
        href = candidate.get("href")
        if href:
            return str(href)
    return ""


def _entry_published_at(item: Any) -> Optional[datetime]:
    # feedparser maps pubDate/published to published_parsed and dc:date/updated to updated_parsed
    for key in ("published_parsed", "updated_parsed", "created_parsed"):
        parsed = item.get(key)
        if parsed:
            return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
    return None


def parse_feed(raw: bytes) -> List[FeedEntry]:
    """Parse a syndication document into entries.

    Documents feedparser cannot recognize yield an empty list.
    """
    parsed = feedparser.parse(raw)
    if not parsed.get("version") and not parsed.entries:
        return []

    entries: List[FeedEntry] = []
    for item in parsed.entries:
        title = str(item.get("title") or "").strip()
        url = _entry_link(item).strip()
        if not title or not url:
            continue
        try:
            entries.append(FeedEntry(title=title, url=url, published_at=_entry_published_at(item)))
        except ValidationError:
            logger.debug("rss.entry_skipped", extra={"url": url})
    return entries


class RSSConnector(BaseConnector):
    """Connector for RSS 1.0 (RDF), RSS 2.0 and Atom feeds.

    Without an injected fetcher, documents are retrieved over HTTP with the
    configured User-Agent, timeout and redirect limit.
    """

    def __init__(
        self,
        *,
        user_agent: str,
        timeout_seconds: float = 15,
        max_redirects: int = 3,
        fetcher: Optional[FetcherFn] = None,
    ) -> None:
        self._user_agent = user_agent
        self._timeout = timeout_seconds
        self._max_redirects = max_redirects
        self._fetcher = fetcher

    @classmethod
    def from_settings(cls, settings: Settings, fetcher: Optional[FetcherFn] = None) -> "RSSConnector":
        return cls(
            user_agent=settings.feed_user_agent,
            timeout_seconds=float(settings.feed_timeout_seconds),
            max_redirects=settings.feed_max_redirects,
            fetcher=fetcher,
        )

    def _fetch_raw(self, url: str) -> bytes:
        if self._fetcher is not None:
            return self._fetcher(url)
        return http_get(
            url,
            user_agent=self._user_agent,
            timeout_seconds=self._timeout,
            max_redirects=self._max_redirects,
        )

    def _parse(self, raw: bytes) -> List[FeedEntry]:
        return parse_feed(raw)
