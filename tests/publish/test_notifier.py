from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List

import httpx
import pytest

from ingestion.errors import ConfigurationError, TransportError
from ingestion.models.domain import ArticleRecord
from ingestion.settings import Settings
from publish.notifier import (
    MAX_MESSAGE_CHARS,
    NO_INFORMATION,
    LineBroadcaster,
    Notifier,
    format_message,
    truncate_message,
)


def _article(**overrides: Any) -> ArticleRecord:
    values: Dict[str, Any] = {
        "id": uuid.uuid4(),
        "source": "fsa",
        "source_name": "FSA",
        "title": "Guideline revision",
        "url": f"https://fsa.example/{uuid.uuid4().hex}",
        "published_at": datetime(2025, 1, 6, 9, 0),
        "is_relevant": True,
        "category": "crypto",
        "summary": "s",
        "what_changes": "Threshold lowered",
        "who_affected": "Exchanges",
        "effective_date": "2025-04-01",
        "action_required": "Update procedures",
    }
    values.update(overrides)
    return ArticleRecord(**values)


class RecordingPoster:
    def __init__(self, statuses: List[int] | None = None) -> None:
        self.statuses = list(statuses or [])
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, url: str, headers: Dict[str, str], body: Dict[str, Any]) -> int:
        self.calls.append({"url": url, "headers": headers, "body": body})
        return self.statuses.pop(0) if self.statuses else 200


def test_format_message_layout():
    text = format_message(_article())

    assert text.startswith("📋 [FSA] crypto")
    assert "■ What changes\nThreshold lowered" in text
    assert "■ Effective from\n2025-04-01" in text
    assert "📅 2025-01-06 09:00" in text


def test_format_message_placeholders_for_missing_fields():
    text = format_message(_article(category=None, who_affected=None, published_at=None))

    assert text.startswith("📋 [FSA] general")
    assert f"■ Who is affected\n{NO_INFORMATION}" in text
    assert text.endswith("📅")


def test_truncate_message_caps_length():
    long = "x" * 6000

    truncated = truncate_message(long)

    assert len(truncated) <= MAX_MESSAGE_CHARS
    assert truncated == "x" * 4990 + "..."
    assert truncate_message("short") == "short"


def test_long_article_message_is_truncated():
    text = format_message(_article(what_changes="y" * 7000))

    assert len(text) == 4993
    assert text.endswith("...")


def test_broadcast_posts_bearer_token_and_messages():
    poster = RecordingPoster()
    broadcaster = LineBroadcaster("tok", api_base="https://line.example/v2/bot/", poster=poster)

    assert broadcaster.broadcast([{"type": "text", "text": "hi"}]) is True
    call = poster.calls[0]
    assert call["url"] == "https://line.example/v2/bot/message/broadcast"
    assert call["headers"]["Authorization"] == "Bearer tok"
    assert call["body"] == {"messages": [{"type": "text", "text": "hi"}]}


def test_broadcast_rejects_more_than_five_messages():
    broadcaster = LineBroadcaster("tok", poster=RecordingPoster())

    with pytest.raises(ValueError):
        broadcaster.broadcast([{"type": "text", "text": str(i)} for i in range(6)])


def test_broadcast_non_2xx_returns_false():
    broadcaster = LineBroadcaster("tok", poster=RecordingPoster([429]))

    assert broadcaster.broadcast([{"type": "text", "text": "hi"}]) is False


@pytest.mark.parametrize("error", [httpx.ConnectError("down"), TransportError("down")])
def test_broadcast_transport_error_returns_false(error):
    def poster(url, headers, body):
        raise error

    assert LineBroadcaster("tok", poster=poster).broadcast([{"type": "text", "text": "hi"}]) is False


def test_missing_token_is_configuration_error(tmp_path):
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'x.db'}", line_channel_token=None)

    with pytest.raises(ConfigurationError):
        LineBroadcaster.from_settings(settings)
    with pytest.raises(ConfigurationError):
        LineBroadcaster("")


def test_iter_batches_groups_by_five():
    notifier = Notifier(LineBroadcaster("tok", poster=RecordingPoster()))

    batches = list(notifier.iter_batches([_article() for _ in range(12)]))

    assert [len(b) for b in batches] == [5, 5, 2]


def test_notify_paces_consecutive_calls():
    sleeps: List[float] = []
    poster = RecordingPoster()
    notifier = Notifier(
        LineBroadcaster("tok", poster=poster),
        pause_seconds=0.5,
        sleep=sleeps.append,
        clock=lambda: 100.0,
    )

    assert notifier.notify([_article()]) is True
    assert notifier.notify([_article(), _article()]) is True

    assert sleeps == [0.5]
    assert len(poster.calls) == 2
    assert len(poster.calls[1]["body"]["messages"]) == 2


def test_notify_empty_batch_does_not_call_backend():
    poster = RecordingPoster()
    notifier = Notifier(LineBroadcaster("tok", poster=poster))

    assert notifier.notify([]) is True
    assert poster.calls == []


def test_notify_oversize_batch_raises():
    notifier = Notifier(LineBroadcaster("tok", poster=RecordingPoster()))

    with pytest.raises(ValueError):
        notifier.notify([_article() for _ in range(6)])


def test_batch_size_above_line_limit_is_rejected():
    with pytest.raises(ValueError):
        Notifier(LineBroadcaster("tok", poster=RecordingPoster()), batch_size=6)
