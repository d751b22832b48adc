from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator

import pytest

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ingestion.db.models import FeedSource  # noqa: E402
from ingestion.db.migrate import SCHEMA_REVISION, upgrade_database  # noqa: E402
from ingestion.db.session import session_scope  # noqa: E402
from ingestion.repositories.articles import ArticleStore  # noqa: E402
from ingestion.settings import Settings, reset_settings_cache  # noqa: E402
from llm.settings import AnalysisSettings, reset_analysis_settings_cache  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_caches():
    reset_settings_cache()
    reset_analysis_settings_cache()
    yield
    reset_settings_cache()
    reset_analysis_settings_cache()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'regwatch.db'}",
        line_channel_token="line-token",
        notify_pause_seconds=0.5,
    )


@pytest.fixture()
def analysis_settings() -> AnalysisSettings:
    return AnalysisSettings(
        openai_api_key="sk-test-123",
        analysis_model="gpt-4o-mini",
        analysis_retry_max_attempts=0,
    )


@pytest.fixture()
def migrated(settings: Settings) -> Settings:
    """Settings whose database carries the schema but no seeded sources."""
    upgrade_database(settings, SCHEMA_REVISION)
    return settings


@pytest.fixture()
def store(migrated: Settings) -> Iterator[ArticleStore]:
    with session_scope(migrated) as session:
        yield ArticleStore(session)


@pytest.fixture()
def make_source(migrated: Settings):
    def _make(key: str, name: str, url: str, interest: str | None = None, active: bool = True) -> None:
        with session_scope(migrated) as session:
            session.add(FeedSource(key=key, name=name, rss_url=url, interest=interest, is_active=active))

    return _make


def _rss_document(*items: tuple[str, str]) -> bytes:
    """Minimal RSS 2.0 document with (title, link) items."""
    body = "".join(
        f"<item><title>{title}</title><link>{link}</link>"
        "<pubDate>Mon, 06 Jan 2025 09:00:00 +0900</pubDate></item>"
        for title, link in items
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0"><channel><title>Feed</title>'
        "<link>https://feeds.example.go.jp/</link><description>d</description>"
        f"{body}</channel></rss>"
    ).encode("utf-8")


@pytest.fixture()
def rss_document():
    return _rss_document
