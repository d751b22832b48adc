"""Apply database migrations (schema and default feed sources).

Usage:
  python scripts/init_db.py
  python scripts/init_db.py --revision 20250106_0001   # schema only

Reads DATABASE_URL from the environment/.env via pydantic settings.
Equivalent to ``alembic upgrade head`` from the repository root.
"""

from __future__ import annotations

import argparse
import sys

from ingestion.db.migrate import upgrade_database
from ingestion.errors import ConfigurationError
from ingestion.settings import get_settings


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Migrate the regwatch database")
    parser.add_argument("-r", "--revision", default="head", help="Target revision (default: head)")
    args = parser.parse_args(argv)
    try:
        settings = get_settings()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}")
        return 2
    upgrade_database(settings, args.revision)
    print(f"Database migrated to {args.revision}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
