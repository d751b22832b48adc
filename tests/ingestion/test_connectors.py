from __future__ import annotations

from datetime import datetime, timezone

import pytest

from ingestion.connectors.base import http_get
from ingestion.connectors.page import PageContentFetcher
from ingestion.connectors.rss import RSSConnector, parse_feed
from ingestion.errors import TransportError

RDF_DOC = b"""<?xml version="1.0" encoding="UTF-8"?>
<rdf:RDF xmlns="http://purl.org/rss/1.0/"
         xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#"
         xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel rdf:about="https://www.mhlw.go.jp/">
    <title>MHLW</title>
    <link>https://www.mhlw.go.jp/</link>
    <description>news</description>
  </channel>
  <item rdf:about="https://www.mhlw.go.jp/stf/newpage_001.html">
    <title> Revision of employment insurance </title>
    <link>https://www.mhlw.go.jp/stf/newpage_001.html</link>
    <dc:date>2025-02-03T10:00:00+09:00</dc:date>
  </item>
</rdf:RDF>
"""

ATOM_DOC = b"""<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>METI</title>
  <id>urn:meti</id>
  <updated>2025-03-01T00:00:00Z</updated>
  <entry>
    <title>New subsidy programme</title>
    <id>urn:meti:1</id>
    <link rel="alternate" href="https://www.meti.go.jp/press/1.html"/>
    <published>2025-03-01T09:00:00+09:00</published>
    <updated>2025-03-02T09:00:00+09:00</updated>
  </entry>
  <entry>
    <title></title>
    <id>urn:meti:2</id>
    <link rel="alternate" href="https://www.meti.go.jp/press/2.html"/>
  </entry>
</feed>
"""


def test_parse_rss2(rss_document):
    entries = parse_feed(rss_document(("X", "https://a.example/u1"), ("Y", "https://a.example/u2")))

    assert [e.title for e in entries] == ["X", "Y"]
    assert entries[0].url == "https://a.example/u1"
    assert entries[0].published_at == datetime(2025, 1, 6, 0, 0, tzinfo=timezone.utc)


def test_parse_rdf_uses_dc_date():
    entries = parse_feed(RDF_DOC)

    assert len(entries) == 1
    assert entries[0].title == "Revision of employment insurance"
    assert entries[0].published_at == datetime(2025, 2, 3, 1, 0, tzinfo=timezone.utc)


def test_parse_atom_prefers_published_and_skips_untitled():
    entries = parse_feed(ATOM_DOC)

    assert len(entries) == 1
    assert entries[0].url == "https://www.meti.go.jp/press/1.html"
    assert entries[0].published_at == datetime(2025, 3, 1, 0, 0, tzinfo=timezone.utc)


def test_parse_missing_date_is_none():
    doc = (
        b'<?xml version="1.0"?><rss version="2.0"><channel><title>t</title>'
        b"<item><title>No date</title><link>https://a.example/nd</link></item>"
        b"</channel></rss>"
    )
    entries = parse_feed(doc)

    assert entries[0].published_at is None


@pytest.mark.parametrize("raw", [b"", b"not xml at all", b"<html><body>hello</body></html>"])
def test_unknown_documents_yield_empty(raw):
    assert parse_feed(raw) == []


def test_connector_dedupes_by_url_within_feed(rss_document):
    doc = rss_document(("X", "https://a.example/u1"), ("X again", "https://a.example/u1"))
    connector = RSSConnector(user_agent="test", fetcher=lambda _url: doc)

    entries = connector.fetch("https://a.example/feed")

    assert [e.title for e in entries] == ["X"]


def test_connector_retries_on_transport_error(rss_document):
    calls = {"n": 0}

    def _flaky(_url: str) -> bytes:
        calls["n"] += 1
        if calls["n"] < 3:
            raise TransportError("temp outage")
        return rss_document(("X", "https://a.example/u1"))

    connector = RSSConnector(user_agent="test", fetcher=_flaky)
    entries = connector.fetch("https://a.example/feed", max_attempts=3)

    assert calls["n"] == 3
    assert len(entries) == 1


def test_connector_raises_after_last_attempt():
    def _down(_url: str) -> bytes:
        raise TransportError("down")

    connector = RSSConnector(user_agent="test", fetcher=_down)
    with pytest.raises(TransportError):
        connector.fetch("https://a.example/feed", max_attempts=2)


def test_http_get_invalid_url_is_transport_error():
    with pytest.raises(TransportError):
        http_get("https://www.example.go.jp/a\x00b", user_agent="test", timeout_seconds=5)


def test_page_fetcher_invalid_link_is_transport_error():
    fetcher = PageContentFetcher(user_agent="test", timeout_seconds=5, max_chars=100)

    with pytest.raises(TransportError):
        fetcher.fetch("https://www.example.go.jp/press\x07/1.html")
