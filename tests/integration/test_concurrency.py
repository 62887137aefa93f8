"""
Integration tests for competing consumers on one table.
"""

import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor

from sqlqueue import Outcome

CONSUMERS = 4
ITEMS = 200


def fill(queue, count: int = ITEMS) -> list[str]:
    pushed = [f"ref-{i}" for i in range(count)]
    for reference in pushed:
        queue.enqueue(reference)
    return pushed


class TestConcurrentTake:
    """Tests for take from several threads."""

    def test_every_item_delivered_once(self, make_queue):
        """Test that concurrent takes neither lose nor duplicate items."""
        producer = make_queue()
        pushed = fill(producer)

        def consume() -> list[str]:
            queue = make_queue(look_ahead=CONSUMERS + 2)
            taken = []
            while True:
                reference = queue.take()
                if reference is not None:
                    taken.append(reference)
                elif queue.outstanding_count() == 0:
                    return taken

        with ThreadPoolExecutor(max_workers=CONSUMERS) as pool:
            results = [pool.submit(consume) for _ in range(CONSUMERS)]
            taken = [ref for future in results for ref in future.result()]

        assert len(taken) == len(pushed)
        assert Counter(taken) == Counter(pushed)
        assert producer.outstanding_count() == 0

    def test_producers_and_consumers(self, make_queue):
        """Test consumers draining while producers are still enqueueing."""
        per_producer = 50
        done_producing = threading.Event()

        def produce(n: int) -> list[str]:
            queue = make_queue()
            pushed = [f"p{n}-{i}" for i in range(per_producer)]
            for reference in pushed:
                queue.enqueue(reference)
            return pushed

        def consume() -> list[str]:
            queue = make_queue(look_ahead=CONSUMERS + 2)
            taken = []
            while True:
                reference = queue.take()
                if reference is not None:
                    taken.append(reference)
                elif done_producing.is_set() and queue.outstanding_count() == 0:
                    return taken

        make_queue()
        with ThreadPoolExecutor(max_workers=CONSUMERS + 2) as pool:
            consumers = [pool.submit(consume) for _ in range(CONSUMERS)]
            producers = [pool.submit(produce, n) for n in range(2)]
            pushed = [ref for future in producers for ref in future.result()]
            done_producing.set()
            taken = [ref for future in consumers for ref in future.result()]

        assert Counter(taken) == Counter(pushed)


class TestConcurrentTakeExecuteCommit:
    """Tests for take_execute_commit from several threads."""

    def test_each_item_processed_once(self, make_queue):
        """Test that no item reaches two processors when nothing times out."""
        producer = make_queue()
        pushed = fill(producer)
        processed: list[str] = []

        def processor(reference: str) -> Outcome:
            processed.append(reference)
            return Outcome.SUCCESS

        def consume() -> None:
            queue = make_queue(look_ahead=CONSUMERS + 2)
            while queue.take_execute_commit(processor) is not None or queue.outstanding_count() > 0:
                pass

        with ThreadPoolExecutor(max_workers=CONSUMERS) as pool:
            for future in [pool.submit(consume) for _ in range(CONSUMERS)]:
                future.result()

        assert Counter(processed) == Counter(pushed)
        assert producer.outstanding_count() == 0

    def test_failures_are_retried(self, make_queue):
        """Test that items failing once are redelivered and finished."""
        producer = make_queue(max_retries=3)
        pushed = fill(producer, 60)
        lock = threading.Lock()
        attempts: Counter[str] = Counter()
        succeeded: list[str] = []

        def processor(reference: str) -> Outcome:
            with lock:
                attempts[reference] += 1
                first = attempts[reference] == 1
            if first:
                return Outcome.FAILURE
            succeeded.append(reference)
            return Outcome.SUCCESS

        def consume() -> None:
            queue = make_queue(max_retries=3, look_ahead=CONSUMERS + 2)
            while queue.take_execute_commit(processor) is not None or queue.outstanding_count() > 0:
                pass

        with ThreadPoolExecutor(max_workers=CONSUMERS) as pool:
            for future in [pool.submit(consume) for _ in range(CONSUMERS)]:
                future.result()

        assert Counter(succeeded) == Counter(pushed)
        assert all(count == 2 for count in attempts.values())
