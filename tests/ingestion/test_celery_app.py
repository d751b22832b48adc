import pytest

celery = pytest.importorskip("celery")  # noqa: F841

from ingestion.celery_app import PIPELINE_TASK_NAME, create_celery_app
from ingestion.settings import Settings


def _make_settings(**overrides) -> Settings:
    values = {
        "database_url": "sqlite:///./var/dev.db",
        "broker_url": "redis://localhost:6379/0",
        "pipeline_interval_minutes": 30,
        "log_level": "DEBUG",
    }
    values.update(overrides)
    return Settings(**values)


def test_create_celery_app_builds_pipeline_schedule():
    app = create_celery_app(_make_settings())

    entry = app.conf.beat_schedule["pipeline.run"]
    assert entry["task"] == PIPELINE_TASK_NAME
    assert entry["schedule"].run_every.total_seconds() == 30 * 60
    assert app.conf.worker_concurrency == 1


def test_disabled_pipeline_has_no_schedule():
    app = create_celery_app(_make_settings(pipeline_enabled=False))

    assert app.conf.beat_schedule == {}
