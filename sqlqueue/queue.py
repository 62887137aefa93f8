"""
Competing-consumers queue stored in a single SQL table.

The queue holds small reference strings (up to 50 characters), not payloads.
Consumers in any number of processes coordinate only through the table:
a row is claimed with a conditional update on (id, version, grabbed), and
the update's row count tells the caller whether it won.

Usage:
    config = QueueConfig(table_name="my_queue", look_ahead=10)
    queue = SQLQueue(config, engine.connect)

    queue.enqueue("item-1")
    reference = queue.take()

    queue.take_execute_commit(lambda ref: Outcome.SUCCESS)

Delivery is at-least-once: a claim that outlives the timeout is released
and may be delivered again while the first holder is still working on it.
Claims are stamped and expired with the database's clock, read once per
consuming call, so consumer hosts need not agree on the time.
"""

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from opentelemetry import trace
from sqlalchemy import Engine, MetaData, Table
from sqlalchemy.exc import SQLAlchemyError

from sqlqueue.config import QueueConfig, Settings, get_settings
from sqlqueue.constants import (
    SPAN_ENQUEUE,
    SPAN_PROCESS_ITEM,
    SPAN_TAKE,
    SPAN_TAKE_EXECUTE_COMMIT,
    Outcome,
)
from sqlqueue.db.connection import ConnectionProvider, get_connection_provider
from sqlqueue.db.models import build_queue_table
from sqlqueue.db.repository import QueueRepository
from sqlqueue.exceptions import InvalidInput, StorageFailure
from sqlqueue.observability.logging import item_context
from sqlqueue.observability.metrics import MetricsCollector, get_metrics
from sqlqueue.types.item import Candidate, ItemRow, Processor, QueueStats

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

Clock = Callable[[], datetime]


class SQLQueue:
    """
    Work queue backed by one SQL table.

    Each public call borrows one connection from the provider and returns
    it before exiting. Nothing is shared in memory between calls or between
    instances; two SQLQueue objects over the same table behave like two
    processes.

    Raises:
        StorageFailure: From the constructor if the table cannot be created.
    """

    def __init__(
        self,
        config: QueueConfig,
        connection_provider: ConnectionProvider,
        *,
        metrics: MetricsCollector | None = None,
        clock: Clock | None = None,
    ):
        """
        Initialize the queue and create its table if absent.

        Args:
            config: Queue table name, retry limit, timeout and look-ahead.
            connection_provider: Callable returning a new SQLAlchemy connection.
            metrics: Metrics collector. Uses the process-wide one if not provided.
            clock: Overrides the database clock for claims and timeouts.
                Every consumer of a table must share one time source, so this
                is meant for tests only.
        """
        self._config = config
        self._provider = connection_provider
        self._metrics = metrics or get_metrics()
        self._clock = clock
        self._table = build_queue_table(MetaData(), config.table_name)

        self.initialize()

    @classmethod
    def from_engine(cls, config: QueueConfig, engine: Engine, **kwargs: Any) -> "SQLQueue":
        """Create a queue drawing connections from an engine."""
        return cls(config, engine.connect, **kwargs)

    @property
    def config(self) -> QueueConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._config.table_name

    @property
    def table(self) -> Table:
        return self._table

    @contextmanager
    def _repository(self) -> Iterator[QueueRepository]:
        try:
            with self._provider() as connection:
                yield QueueRepository(connection, self._table)
        except SQLAlchemyError as e:
            logger.error(
                f"Queue storage error: {e}",
                extra={"queue": self.name}
            )
            raise StorageFailure(str(e)) from e

    def initialize(self) -> None:
        """Create the queue table if it does not exist."""
        with self._repository() as repo:
            repo.create_table()

        logger.info(
            "Queue initialized",
            extra={
                "queue": self.name,
                "max_retries": self._config.max_retries,
                "timeout_seconds": self._config.timeout.total_seconds(),
                "look_ahead": self._config.look_ahead,
            }
        )

    def enqueue(self, reference: str | None) -> None:
        """
        Add a reference to the queue.

        Identical references are stored as separate items.

        Args:
            reference: The reference to enqueue.

        Raises:
            InvalidInput: If reference is None.
            StorageFailure: If the insert fails.
        """
        if reference is None:
            raise InvalidInput()

        with tracer.start_as_current_span(SPAN_ENQUEUE) as span:
            span.set_attribute("queue", self.name)
            with self._repository() as repo:
                item_id = repo.insert(reference)

        self._metrics.record_enqueued(self.name)
        logger.debug(
            "Enqueued item",
            extra={"queue": self.name, "item_id": item_id}
        )

    def take(self) -> str | None:
        """
        Claim one item, delete it, and return its reference.

        The caller owns any redelivery policy. Retry pruning never runs on
        this path.

        Returns:
            The reference, or None if nothing could be claimed.
        """
        with tracer.start_as_current_span(SPAN_TAKE) as span:
            span.set_attribute("queue", self.name)
            with self._repository() as repo:
                now = self._now(repo)
                self._reclaim(repo, now)

                candidate = self._claim_next(repo, now)
                if candidate is None:
                    return None

                repo.delete(candidate.id)

            span.set_attribute("item_id", candidate.id)

        self._metrics.record_taken(self.name)
        return candidate.ref_id

    def take_execute_commit(self, processor: Processor) -> Outcome | None:
        """
        Claim one item and hand its reference to a processor.

        On Outcome.SUCCESS the item is deleted. Any other result releases
        the claim so the item can be claimed again. Afterwards, whether or
        not anything was claimed, every item over the retry limit is
        deleted from the table.

        Args:
            processor: Called with the reference; returns an Outcome.

        Returns:
            The outcome, or None if nothing could be claimed.
        """
        with tracer.start_as_current_span(SPAN_TAKE_EXECUTE_COMMIT) as span:
            span.set_attribute("queue", self.name)
            with self._repository() as repo:
                try:
                    now = self._now(repo)
                    self._reclaim(repo, now)

                    candidate = self._claim_next(repo, now)
                    if candidate is None:
                        return None

                    span.set_attribute("item_id", candidate.id)
                    outcome = self._process(processor, candidate)

                    if outcome == Outcome.SUCCESS:
                        repo.delete(candidate.id)
                    else:
                        repo.release(candidate.id)

                    span.set_attribute("outcome", outcome.value)
                    return outcome
                finally:
                    self._prune(repo)

    def outstanding_count(self) -> int:
        """
        Count every item still in the table.

        Claimed items that are not yet finalized are included.
        """
        with self._repository() as repo:
            count = repo.count()

        self._metrics.update_outstanding(self.name, count)
        return count

    def reclaim_timed_out(self) -> int:
        """
        Release every claim older than the timeout.

        Returns:
            Number of released items.
        """
        with self._repository() as repo:
            return self._reclaim(repo, self._now(repo))

    def prune_retried(self) -> int:
        """
        Delete every item claimed more than max_retries times.

        Returns:
            Number of deleted items.
        """
        with self._repository() as repo:
            return self._prune(repo)

    def stats(self) -> QueueStats:
        """Get total, claimed and available item counts."""
        with self._repository() as repo:
            stats = repo.stats()

        self._metrics.update_outstanding(self.name, stats.outstanding)
        return stats

    def get_item(self, item_id: str) -> ItemRow | None:
        """Get the stored state of an item, or None if it is gone."""
        with self._repository() as repo:
            return repo.get_item(item_id)

    def _now(self, repo: QueueRepository) -> datetime:
        if self._clock is not None:
            return self._clock()
        return repo.current_time()

    def _reclaim(self, repo: QueueRepository, now: datetime) -> int:
        cutoff = now - self._config.timeout
        reclaimed = repo.reclaim_timed_out(cutoff)
        self._metrics.record_reclaimed(self.name, reclaimed)
        return reclaimed

    def _prune(self, repo: QueueRepository) -> int:
        pruned = repo.prune_retried(self._config.max_retries)
        self._metrics.record_pruned(self.name, pruned)
        return pruned

    def _claim_next(self, repo: QueueRepository, now: datetime) -> Candidate | None:
        """
        Walk the look-ahead window until one claim succeeds.

        A candidate lost to another consumer is skipped, not retried. If
        the whole window is lost the queue reports empty even when more
        unclaimed rows exist past it.
        """
        candidates = repo.scan_available(self._config.look_ahead)

        for candidate in candidates:
            if repo.claim(candidate, now):
                logger.debug(
                    "Claimed item",
                    extra={
                        "queue": self.name,
                        "item_id": candidate.id,
                        "version": candidate.version + 1,
                    }
                )
                return candidate

            self._metrics.record_collision(self.name)
            logger.debug(
                "Lost claim to another consumer",
                extra={"queue": self.name, "item_id": candidate.id}
            )

        self._metrics.record_empty_poll(self.name)
        return None

    def _process(self, processor: Processor, candidate: Candidate) -> Outcome:
        start_time = time.monotonic()

        with tracer.start_as_current_span(SPAN_PROCESS_ITEM), item_context(self.name, candidate.id):
            try:
                result = processor(candidate.ref_id)
            except Exception as e:
                logger.exception(
                    "Processor raised an exception",
                    extra={"queue": self.name, "item_id": candidate.id, "error": str(e)}
                )
                result = Outcome.FAILURE

        outcome = Outcome.SUCCESS if result == Outcome.SUCCESS else Outcome.FAILURE
        duration = time.monotonic() - start_time

        self._metrics.record_processed(self.name, outcome.value, duration)
        if outcome == Outcome.FAILURE:
            logger.warning(
                "Processing failed, releasing item",
                extra={"queue": self.name, "item_id": candidate.id}
            )

        return outcome


def create_queue(settings: Settings | None = None, **kwargs: Any) -> SQLQueue:
    """
    Create a queue from settings, using the global engine.

    Args:
        settings: Settings to read queue_* values from. Defaults to the
            cached process settings.
        **kwargs: Passed through to SQLQueue.

    Returns:
        SQLQueue: The initialized queue.
    """
    settings = settings or get_settings()
    return SQLQueue(settings.queue_config(), get_connection_provider(), **kwargs)
