"""Programmatic alembic entry points."""

from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config

from ingestion.settings import Settings, get_settings

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"
SCHEMA_REVISION = "20250106_0001"


def alembic_config(settings: Settings | None = None) -> Config:
    config = settings or get_settings()
    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # ConfigParser interpolation treats "%" as a directive
    alembic_cfg.set_main_option("sqlalchemy.url", config.database_url.replace("%", "%%"))
    return alembic_cfg


def upgrade_database(settings: Settings | None = None, revision: str = "head") -> None:
    """Apply migrations up to ``revision`` (schema plus default feed sources at head)."""
    command.upgrade(alembic_config(settings), revision)


def downgrade_database(settings: Settings | None = None, revision: str = "base") -> None:
    command.downgrade(alembic_config(settings), revision)
