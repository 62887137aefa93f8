"""
Observability module.
Contains logging, metrics, and tracing setup.
"""

from sqlqueue.observability.logging import bind_context, item_context, setup_logging
from sqlqueue.observability.metrics import (
    MetricsCollector,
    get_metrics,
    setup_metrics,
    start_metrics_server,
)
from sqlqueue.observability.tracing import build_tracer_provider, setup_tracing

__all__ = [
    "setup_logging",
    "bind_context",
    "item_context",
    "setup_metrics",
    "get_metrics",
    "start_metrics_server",
    "MetricsCollector",
    "setup_tracing",
    "build_tracer_provider",
]
