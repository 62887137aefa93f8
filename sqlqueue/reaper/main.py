"""
Out-of-band maintenance for a queue table.

Consumption calls already release timed out claims, and take-execute-commit
prunes exhausted items. The reaper does the same work on a fixed interval,
for queues that sit idle or are consumed only through take().
"""

import logging
import signal
import threading
from typing import Any

from sqlqueue.config import get_settings
from sqlqueue.db import close_db, init_db
from sqlqueue.exceptions import StorageFailure
from sqlqueue.observability.logging import bind_context, setup_logging
from sqlqueue.observability.metrics import start_metrics_server
from sqlqueue.observability.tracing import setup_tracing
from sqlqueue.queue import SQLQueue, create_queue

logger = logging.getLogger(__name__)


class Reaper:
    """
    Periodic claim reclaimer and retry pruner.

    Runs periodically to:
    1. Release claims older than the queue timeout
    2. Delete items over the retry limit, if pruning is enabled
    """

    def __init__(
        self,
        queue: SQLQueue,
        interval_seconds: float | None = None,
        prune: bool | None = None,
    ):
        """
        Initialize the reaper.

        Args:
            queue: The queue to maintain.
            interval_seconds: Seconds between reaper runs.
            prune: Whether to delete items over the retry limit.
        """
        settings = get_settings()
        self.queue = queue
        self.interval = interval_seconds if interval_seconds is not None else settings.reaper_interval_seconds
        self.prune = prune if prune is not None else settings.reaper_prune
        self._stopped = threading.Event()

    def start(self) -> None:
        """Start the reaper loop."""
        logger.info(
            f"Reaper starting with interval {self.interval}s",
            extra={"queue": self.queue.name, "prune": self.prune}
        )
        self._stopped.clear()

        while not self._stopped.is_set():
            try:
                reclaimed, pruned = self.run_once()

                if reclaimed or pruned:
                    logger.info(
                        f"Reaped queue: {reclaimed} reclaimed, {pruned} pruned",
                        extra={"queue": self.queue.name}
                    )

            except StorageFailure as e:
                logger.error(f"Storage error in reaper loop: {e}")

            self._stopped.wait(self.interval)

        logger.info("Reaper stopped")

    def stop(self) -> None:
        """Stop the reaper."""
        logger.info("Reaper stopping")
        self._stopped.set()

    def run_once(self) -> tuple[int, int]:
        """
        Run the reaper once (for testing or cron-style execution).

        Returns:
            Tuple of (released claims, pruned items).
        """
        reclaimed = self.queue.reclaim_timed_out()
        pruned = self.queue.prune_retried() if self.prune else 0
        return reclaimed, pruned


def run() -> None:
    """Run a reaper process configured from settings."""
    settings = get_settings()
    setup_logging(settings)

    engine = init_db()
    if settings.otel_enabled:
        setup_tracing(engine, settings)
    start_metrics_server(settings.prometheus_port)

    reaper = Reaper(create_queue(settings))
    bind_context(queue=reaper.queue.name)

    def _handle_signal(signum: int, frame: Any) -> None:
        reaper.stop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(sig, _handle_signal)

    try:
        reaper.start()
    finally:
        close_db()


if __name__ == "__main__":
    run()
