"""Database utilities for the ingestion pipeline."""

from .migrate import downgrade_database, upgrade_database  # noqa: F401
from .models import Article, Base, FeedSource, JobRun, JobStatus  # noqa: F401
from .session import get_engine, get_sessionmaker, session_scope  # noqa: F401

__all__ = [
    "Article",
    "Base",
    "FeedSource",
    "JobRun",
    "JobStatus",
    "downgrade_database",
    "get_engine",
    "get_sessionmaker",
    "session_scope",
    "upgrade_database",
]
