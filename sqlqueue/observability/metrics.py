"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    start_http_server,
)

from sqlqueue.constants import (
    METRIC_CLAIM_COLLISIONS,
    METRIC_CLAIMS_RECLAIMED,
    METRIC_EMPTY_POLLS,
    METRIC_ITEMS_ENQUEUED,
    METRIC_ITEMS_PROCESSED,
    METRIC_ITEMS_PRUNED,
    METRIC_ITEMS_TAKEN,
    METRIC_OUTSTANDING,
    METRIC_PROCESSING_DURATION,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for queue tables.

    Every metric is labelled with the queue table name. Collects:
    - Outstanding items
    - Enqueued, taken and processed items
    - Processing duration
    - Claim collisions and empty polls
    - Reclaimed claims and pruned items
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.outstanding = Gauge(
            METRIC_OUTSTANDING,
            "Rows present in the queue table, claimed or not",
            ["queue"],
            registry=self._registry,
        )

        self.items_enqueued = Counter(
            METRIC_ITEMS_ENQUEUED,
            "Total number of items enqueued",
            ["queue"],
            registry=self._registry,
        )

        self.items_taken = Counter(
            METRIC_ITEMS_TAKEN,
            "Total number of items claimed and deleted by take",
            ["queue"],
            registry=self._registry,
        )

        self.items_processed = Counter(
            METRIC_ITEMS_PROCESSED,
            "Total number of items handed to a processor",
            ["queue", "outcome"],
            registry=self._registry,
        )

        self.processing_duration = Histogram(
            METRIC_PROCESSING_DURATION,
            "Processor execution duration in seconds",
            ["queue", "outcome"],
            buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )

        self.claim_collisions = Counter(
            METRIC_CLAIM_COLLISIONS,
            "Candidates lost to a concurrent claimant",
            ["queue"],
            registry=self._registry,
        )

        self.empty_polls = Counter(
            METRIC_EMPTY_POLLS,
            "Consumption calls that found nothing to claim",
            ["queue"],
            registry=self._registry,
        )

        self.claims_reclaimed = Counter(
            METRIC_CLAIMS_RECLAIMED,
            "Claims released after exceeding the timeout",
            ["queue"],
            registry=self._registry,
        )

        self.items_pruned = Counter(
            METRIC_ITEMS_PRUNED,
            "Items deleted after exceeding the retry limit",
            ["queue"],
            registry=self._registry,
        )

    def record_enqueued(self, queue: str) -> None:
        """Record an enqueued item."""
        self.items_enqueued.labels(queue=queue).inc()

    def record_taken(self, queue: str) -> None:
        """Record an item removed by take."""
        self.items_taken.labels(queue=queue).inc()

    def record_processed(
        self,
        queue: str,
        outcome: str,
        duration_seconds: float,
    ) -> None:
        """Record a processor run."""
        self.items_processed.labels(queue=queue, outcome=outcome).inc()
        self.processing_duration.labels(queue=queue, outcome=outcome).observe(
            duration_seconds
        )

    def record_collision(self, queue: str) -> None:
        """Record a lost claim attempt."""
        self.claim_collisions.labels(queue=queue).inc()

    def record_empty_poll(self, queue: str) -> None:
        """Record a consumption call that claimed nothing."""
        self.empty_polls.labels(queue=queue).inc()

    def record_reclaimed(self, queue: str, count: int) -> None:
        """Record released timed out claims."""
        if count > 0:
            self.claims_reclaimed.labels(queue=queue).inc(count)

    def record_pruned(self, queue: str, count: int) -> None:
        """Record pruned items."""
        if count > 0:
            self.items_pruned.labels(queue=queue).inc(count)

    def update_outstanding(self, queue: str, count: int) -> None:
        """Update the outstanding gauge for a queue."""
        self.outstanding.labels(queue=queue).set(count)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics


def start_metrics_server(port: int) -> None:
    """
    Expose the default registry over HTTP.

    Args:
        port: Port to listen on. 0 leaves the exporter off.
    """
    if port > 0:
        start_http_server(port)
