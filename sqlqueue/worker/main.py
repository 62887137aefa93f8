"""
Worker process for consuming a queue.

The worker repeatedly runs take-execute-commit with one processor. When the
queue reports empty it waits for the poll interval before trying again.
"""

import logging
import os
import signal
import threading
from typing import Any

from sqlqueue.config import get_settings
from sqlqueue.constants import Outcome
from sqlqueue.db import close_db, init_db
from sqlqueue.exceptions import StorageFailure
from sqlqueue.observability.logging import bind_context, setup_logging
from sqlqueue.observability.metrics import start_metrics_server
from sqlqueue.observability.tracing import setup_tracing
from sqlqueue.queue import SQLQueue, create_queue
from sqlqueue.types.item import Processor
from sqlqueue.worker.handlers import get_handler, list_handlers

logger = logging.getLogger(__name__)


class Worker:
    """
    Queue consumer running in the calling thread.

    Features:
    - Polls with take-execute-commit, so retry pruning runs every iteration
    - Idles for the poll interval when nothing could be claimed
    - Survives storage errors, backing off for one poll interval
    - Graceful shutdown on SIGTERM/SIGINT via stop()
    """

    def __init__(
        self,
        queue: SQLQueue,
        processor: Processor,
        worker_id: str | None = None,
        poll_interval: float | None = None,
    ):
        """
        Initialize the worker.

        Args:
            queue: The queue to consume.
            processor: Called with each claimed reference.
            worker_id: Unique worker identifier. Defaults to hostname + PID.
            poll_interval: Seconds to wait when the queue is empty.
        """
        settings = get_settings()

        self.queue = queue
        self.processor = processor
        self.worker_id = worker_id or settings.worker_id or f"{os.uname().nodename}-{os.getpid()}"
        self.poll_interval = poll_interval if poll_interval is not None else settings.worker_poll_interval_seconds

        self._stopped = threading.Event()
        self.processed = 0
        self.failed = 0

    @property
    def running(self) -> bool:
        return not self._stopped.is_set()

    def start(self) -> None:
        """Run until stop() is called."""
        logger.info(
            "Worker starting",
            extra={"worker_id": self.worker_id, "queue": self.queue.name}
        )

        self._stopped.clear()

        while not self._stopped.is_set():
            try:
                outcome = self.run_once()
            except StorageFailure as e:
                logger.error(
                    f"Storage error in worker loop: {e}",
                    extra={"worker_id": self.worker_id}
                )
                outcome = None

            if outcome is None:
                self._stopped.wait(self.poll_interval)

        logger.info(
            "Worker stopped",
            extra={
                "worker_id": self.worker_id,
                "processed": self.processed,
                "failed": self.failed,
            }
        )

    def stop(self) -> None:
        """Stop the worker after the current item. Safe to call from a signal handler."""
        logger.info("Worker stopping", extra={"worker_id": self.worker_id})
        self._stopped.set()

    def run_once(self) -> Outcome | None:
        """
        Make one consumption attempt.

        Returns:
            The processor outcome, or None if the queue reported empty.
        """
        outcome = self.queue.take_execute_commit(self.processor)

        if outcome == Outcome.SUCCESS:
            self.processed += 1
        elif outcome == Outcome.FAILURE:
            self.failed += 1

        return outcome

    def drain(self) -> int:
        """
        Consume until the queue reports empty.

        Returns:
            Number of attempts that claimed an item.
        """
        attempts = 0
        while self.run_once() is not None:
            attempts += 1
        return attempts


def run() -> None:
    """Run a worker process configured from settings."""
    settings = get_settings()
    setup_logging(settings)

    processor = get_handler(settings.worker_handler)
    if processor is None:
        raise SystemExit(
            f"Unknown handler '{settings.worker_handler}', "
            f"available: {', '.join(sorted(list_handlers()))}"
        )

    engine = init_db()
    if settings.otel_enabled:
        setup_tracing(engine, settings)
    start_metrics_server(settings.prometheus_port)

    worker = Worker(create_queue(settings), processor)
    bind_context(worker_id=worker.worker_id, queue=worker.queue.name)

    def _handle_signal(signum: int, frame: Any) -> None:
        worker.stop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(sig, _handle_signal)

    try:
        worker.start()
    finally:
        close_db()


if __name__ == "__main__":
    run()
