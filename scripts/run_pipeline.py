"""Run the ingestion-and-triage pipeline once and print the summary.

Usage:
  python scripts/run_pipeline.py [--no-pause]

The database must be migrated first (scripts/init_db.py).
Exit code 0 on success, 1 when the run failed as a whole.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import List

from ingestion.settings import get_settings
from ingestion.tasks.pipeline import build_pipeline, run_safely
from ingestion.utils.logging import configure_logging


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the pipeline once")
    parser.add_argument("--no-pause", action="store_true", help="Skip the pause between notification batches")
    args = parser.parse_args(argv)

    def _factory():
        settings = get_settings()
        configure_logging(settings.log_level, json_enabled=settings.log_json)
        if args.no_pause:
            return build_pipeline(settings, sleep=lambda _seconds: None)
        return build_pipeline(settings)

    result = run_safely(_factory)
    print(json.dumps(result.to_dict(), ensure_ascii=False))
    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
