"""
OpenTelemetry setup for worker and reaper processes.

Queue modules take their tracer once at import with
``trace.get_tracer(__name__)``. That tracer is a proxy until a provider is
installed here, so spans cost nothing in processes that never call
setup_tracing().
"""

import logging

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from sqlalchemy import Engine

from sqlqueue import __version__
from sqlqueue.config import Settings, get_settings

logger = logging.getLogger(__name__)


def build_tracer_provider(
    settings: Settings,
    enable_console_export: bool = False,
) -> TracerProvider:
    """
    Build a provider exporting queue spans over OTLP.

    A missing or misconfigured exporter leaves the provider without one
    instead of failing the process.
    """
    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.otel_service_name,
                "service.version": __version__,
            }
        )
    )

    try:
        exporter = OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint, insecure=True)
    except Exception as e:
        logger.warning(
            f"OTLP exporter unavailable, spans are not exported: {e}",
            extra={"endpoint": settings.otel_exporter_otlp_endpoint}
        )
    else:
        provider.add_span_processor(BatchSpanProcessor(exporter))

    if enable_console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    return provider


def setup_tracing(
    engine: Engine | None = None,
    settings: Settings | None = None,
    enable_console_export: bool = False,
) -> TracerProvider:
    """
    Install the global tracer provider.

    Args:
        engine: Engine whose statements should appear as child spans.
        settings: Process settings. Defaults to the cached ones.
        enable_console_export: Also print spans to stdout.

    Returns:
        The installed provider.
    """
    settings = settings or get_settings()
    provider = build_tracer_provider(settings, enable_console_export)
    trace.set_tracer_provider(provider)

    if engine is not None:
        SQLAlchemyInstrumentor().instrument(engine=engine)

    logger.info(
        "Tracing enabled",
        extra={
            "service": settings.otel_service_name,
            "endpoint": settings.otel_exporter_otlp_endpoint,
        }
    )
    return provider
