"""Feed reachability smoke test.

Usage:
  python scripts/check_feeds.py                 # every active source in the DB
  python scripts/check_feeds.py -u URL [-u URL]  # ad-hoc URLs, no DB needed
  python scripts/check_feeds.py -n 3            # print the first 3 titles per feed

Exit code is the number of feeds that failed (capped at 100).
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Tuple

from ingestion.connectors.rss import RSSConnector
from ingestion.db.session import session_scope
from ingestion.errors import ConfigurationError, TransportError
from ingestion.repositories.articles import ArticleStore
from ingestion.settings import get_settings


def _targets(urls: List[str]) -> List[Tuple[str, str]]:
    if urls:
        return [(url, url) for url in urls]
    with session_scope() as session:
        return [(s.key, s.rss_url) for s in ArticleStore(session).active_feed_sources()]


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Check RSS/Atom feeds")
    parser.add_argument("-u", "--url", action="append", default=[], help="Feed URL to check (repeatable)")
    parser.add_argument("-n", "--top", type=int, default=0, help="Print top N titles per feed (default: 0)")
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}")
        return 100

    connector = RSSConnector.from_settings(settings)
    failures = 0
    for label, url in _targets(args.url):
        try:
            entries = connector.fetch(url, max_attempts=settings.feed_max_attempts)
        except TransportError as exc:
            failures += 1
            print(f"NG  {label}: {exc}")
            continue
        status = "OK " if entries else "EMPTY"
        print(f"{status} {label}: {len(entries)} entries ({url})")
        for entry in entries[: args.top]:
            print(f"     - {entry.title[:100]}")
    return min(failures, 100)


if __name__ == "__main__":
    sys.exit(main())
