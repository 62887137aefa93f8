"""
Unit tests for error reporting.
"""

import pytest
from sqlalchemy import Engine, text

from sqlqueue import InvalidInput, Outcome, QueueConfig, SQLQueue, StorageFailure
from sqlqueue.db.connection import get_test_engine


class TestStorageFailure:
    """Tests for storage errors surfacing as StorageFailure."""

    @pytest.fixture
    def unreachable_engine(self) -> Engine:
        """Engine pointing at a database file that cannot be opened."""
        engine = get_test_engine("sqlite:////nonexistent/directory/queue.db")
        yield engine
        engine.dispose()

    def test_unreachable_database(self, unreachable_engine: Engine, metrics):
        """Test that construction fails when no connection can be made."""
        with pytest.raises(StorageFailure) as exc_info:
            SQLQueue(QueueConfig(table_name="queue"), unreachable_engine.connect, metrics=metrics)

        assert exc_info.value.__cause__ is not None

    def test_invalid_table_name(self, make_queue):
        """Test that a name the database rejects fails at construction."""
        with pytest.raises(StorageFailure):
            make_queue(table_name="bad name for queue")

    def test_table_dropped_under_queue(self, make_queue, engine: Engine):
        """Test that every operation reports a missing table."""
        queue = make_queue()
        with engine.begin() as conn:
            conn.execute(text(f"DROP TABLE {queue.name}"))

        with pytest.raises(StorageFailure):
            queue.enqueue("a")
        with pytest.raises(StorageFailure):
            queue.take()
        with pytest.raises(StorageFailure):
            queue.take_execute_commit(lambda ref: Outcome.SUCCESS)
        with pytest.raises(StorageFailure):
            queue.outstanding_count()

    def test_recovers_after_table_restored(self, make_queue, engine: Engine):
        """Test that a failure does not poison later calls."""
        queue = make_queue()
        with engine.begin() as conn:
            conn.execute(text(f"DROP TABLE {queue.name}"))
        with pytest.raises(StorageFailure):
            queue.outstanding_count()

        queue.initialize()
        queue.enqueue("back")

        assert queue.take() == "back"


class TestInvalidInput:
    """Tests for argument validation."""

    def test_rejected_before_storage(self, make_queue):
        """Test that None is rejected without borrowing a connection."""
        queue = make_queue()
        calls = []

        def provider():
            calls.append(1)
            raise AssertionError("connection should not be requested")

        queue._provider = provider

        with pytest.raises(InvalidInput, match="must not be None"):
            queue.enqueue(None)

        assert calls == []
