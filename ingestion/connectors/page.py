"""Detail page fetcher: plain text, bounded length."""

from __future__ import annotations

import re
from typing import Callable, Optional

from bs4 import BeautifulSoup

from ingestion.settings import Settings

from .base import http_get

TRUNCATION_MARKER = "..."
PAGE_ACCEPT = "text/html, application/xhtml+xml, */*;q=0.8"

_WHITESPACE = re.compile(r"\s+")

PageFetcherFn = Callable[[str], bytes]


def html_to_text(html: bytes | str) -> str:
    """Strip markup, drop script/style blocks and collapse whitespace."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text = soup.get_text(" ", strip=True)
    return _WHITESPACE.sub(" ", text).strip()


def truncate_text(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


class PageContentFetcher:
    """Fetch an article page and return its text, cut to ``max_chars``."""

    def __init__(
        self,
        *,
        user_agent: str,
        timeout_seconds: float = 15,
        max_redirects: int = 3,
        max_chars: int = 8000,
        fetcher: Optional[PageFetcherFn] = None,
    ) -> None:
        self._user_agent = user_agent
        self._timeout = timeout_seconds
        self._max_redirects = max_redirects
        self._max_chars = max_chars
        self._fetcher = fetcher

    @classmethod
    def from_settings(cls, settings: Settings, fetcher: Optional[PageFetcherFn] = None) -> "PageContentFetcher":
        return cls(
            user_agent=settings.feed_user_agent,
            timeout_seconds=float(settings.feed_timeout_seconds),
            max_redirects=settings.feed_max_redirects,
            max_chars=settings.page_max_chars,
            fetcher=fetcher,
        )

    def fetch(self, url: str) -> str:
        if self._fetcher is not None:
            raw = self._fetcher(url)
        else:
            raw = http_get(
                url,
                user_agent=self._user_agent,
                timeout_seconds=self._timeout,
                max_redirects=self._max_redirects,
                accept=PAGE_ACCEPT,
            )
        return truncate_text(html_to_text(raw), self._max_chars)
