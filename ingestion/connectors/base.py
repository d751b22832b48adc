"""Connector abstraction and shared HTTP helper."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

import httpx

from ingestion.errors import TransportError
from ingestion.models.domain import FeedEntry

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml, text/html"


def http_get(
    url: str,
    *,
    user_agent: str,
    timeout_seconds: float,
    max_redirects: int = 3,
    accept: str = FEED_ACCEPT,
) -> bytes:
    """GET ``url`` following up to ``max_redirects`` redirects.

    Any transport failure or non-2xx status raises ``TransportError``.
    """
    headers = {"User-Agent": user_agent, "Accept": accept}
    try:
        with httpx.Client(
            follow_redirects=True,
            max_redirects=max_redirects,
            timeout=timeout_seconds,
            headers=headers,
        ) as client:
            resp = client.get(url)
    except httpx.TimeoutException as exc:
        raise TransportError(f"timeout fetching {url}") from exc
    except httpx.HTTPError as exc:
        raise TransportError(f"error fetching {url}: {exc}") from exc
    except httpx.InvalidURL as exc:
        raise TransportError(f"invalid URL {url!r}: {exc}") from exc

    if not resp.is_success:
        raise TransportError(f"HTTP {resp.status_code} fetching {url}")
    return resp.content


class BaseConnector(ABC):
    """Fetch-then-parse connector with retry on transport errors."""

    def fetch(self, url: str, *, max_attempts: int = 1) -> List[FeedEntry]:
        attempts = 0
        last_error: Optional[Exception] = None
        while attempts < max_attempts:
            attempts += 1
            try:
                raw = self._fetch_raw(url)
            except TransportError as exc:  # retry
                last_error = exc
                if attempts >= max_attempts:
                    raise
                continue
            return self._dedupe(self._parse(raw))
        assert last_error is not None
        raise last_error

    @abstractmethod
    def _fetch_raw(self, url: str) -> bytes:
        """Return the raw document bytes."""

    @abstractmethod
    def _parse(self, raw: bytes) -> List[FeedEntry]:
        """Return entries in document order."""

    def _dedupe(self, entries: Iterable[FeedEntry]) -> List[FeedEntry]:
        seen: set[str] = set()
        unique: List[FeedEntry] = []
        for entry in entries:
            if entry.url in seen:
                continue
            seen.add(entry.url)
            unique.append(entry)
        return unique
