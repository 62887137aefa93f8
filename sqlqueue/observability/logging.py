"""
Structured log output for worker and reaper processes.

Library modules log through the standard library and attach their fields
with ``extra`` (queue, item_id, worker_id, ...). setup_logging() renders
those records through structlog so every field becomes a top-level key,
merged with any context bound for the process or for the item in hand.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from opentelemetry import trace

from sqlqueue.config import Settings, get_settings

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("sqlalchemy.engine", "opentelemetry")


def add_span_ids(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Tag a record with the ids of the enclosing queue span, if any."""
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def build_formatter(log_format: str) -> structlog.stdlib.ProcessorFormatter:
    """
    Build the formatter that turns stdlib records into structured lines.

    Args:
        log_format: "json" for one JSON object per line, anything else for
            human-readable console output.
    """
    if log_format == "json":
        render: list[Any] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        render = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.contextvars.merge_contextvars,
            add_span_ids,
            structlog.processors.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.ExtraAdder(),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *render,
        ],
    )


def setup_logging(settings: Settings | None = None) -> None:
    """Route all logging to stdout as structured records."""
    settings = settings or get_settings()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(settings.log_format))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs: Any) -> None:
    """Add fields to every record logged from here on, e.g. the worker id."""
    structlog.contextvars.bind_contextvars(**kwargs)


@contextmanager
def item_context(queue: str, item_id: str) -> Iterator[None]:
    """
    Tag records logged inside the block with the item being processed.

    Processors log through their own loggers; this is how their lines
    carry the queue and item they were called for.
    """
    with structlog.contextvars.bound_contextvars(queue=queue, item_id=item_id):
        yield
