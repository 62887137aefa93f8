"""
Pytest configuration and shared fixtures.
"""

import os
from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

import pytest
from prometheus_client import CollectorRegistry
from sqlalchemy import Engine, select, text

from sqlqueue.config import QueueConfig, Settings
from sqlqueue.db.connection import get_test_engine
from sqlqueue.observability.metrics import MetricsCollector
from sqlqueue.queue import SQLQueue
from sqlqueue.types.item import ItemRow

# Set to run against a server database instead of a per-test SQLite file
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def database_url(tmp_path) -> str:
    """Get the test database URL."""
    return TEST_DATABASE_URL or f"sqlite:///{tmp_path / 'queue.db'}"


@pytest.fixture
def engine(database_url: str) -> Generator[Engine]:
    """Create a database engine for tests."""
    engine = get_test_engine(database_url)

    yield engine

    engine.dispose()


@pytest.fixture
def table_name() -> str:
    """Generate a table name unique to the test."""
    return f"queue_{uuid4().hex[:12]}"


@pytest.fixture
def metrics_registry() -> CollectorRegistry:
    """Create an isolated Prometheus registry."""
    return CollectorRegistry()


@pytest.fixture
def metrics(metrics_registry: CollectorRegistry) -> MetricsCollector:
    """Create a metrics collector bound to the isolated registry."""
    return MetricsCollector(registry=metrics_registry)


@pytest.fixture
def clock() -> FakeClock:
    """Create a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def make_queue(
    engine: Engine,
    table_name: str,
    metrics: MetricsCollector,
) -> Generator[Callable[..., SQLQueue]]:
    """
    Factory for queues over the test table.

    Keyword arguments are QueueConfig fields, plus an optional clock.
    Queues created by one test share a table, like separate processes.
    """

    def factory(clock: Callable[[], datetime] | None = None, **overrides: Any) -> SQLQueue:
        overrides.setdefault("table_name", table_name)
        kwargs: dict[str, Any] = {"metrics": metrics}
        if clock is not None:
            kwargs["clock"] = clock
        return SQLQueue(QueueConfig(**overrides), engine.connect, **kwargs)

    yield factory

    with engine.begin() as conn:
        conn.execute(text(f"DROP TABLE IF EXISTS {table_name}"))


@pytest.fixture
def read_rows(engine: Engine) -> Callable[[SQLQueue], list[ItemRow]]:
    """Read every row of a queue table directly."""

    def reader(queue: SQLQueue) -> list[ItemRow]:
        with engine.connect() as conn:
            rows = conn.execute(select(queue.table)).all()
            conn.commit()
        return [
            ItemRow(
                id=row.id,
                ref_id=row.ref_id,
                version=row.version,
                last_grabbed_at=row.last_grabbed_at,
                grabbed=bool(row.grabbed),
                retried=row.retried,
            )
            for row in rows
        ]

    return reader


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        database_url=TEST_DATABASE_URL or "sqlite:///:memory:",
        log_level="DEBUG",
        log_format="console",
        queue_table_name="settings_queue",
        queue_max_retries=2,
        queue_timeout_seconds=5,
        queue_look_ahead=4,
        worker_poll_interval_seconds=0.05,
        reaper_interval_seconds=0.05,
    )
