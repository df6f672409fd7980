"""OpenTelemetry tracing for record service operations.

Until setup_tracing() installs an SDK provider, spans go to the
OpenTelemetry API's no-op tracer, so instrumented code runs unchanged in
tests and library use.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator, Mapping

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

if TYPE_CHECKING:
    from crm_store.infrastructure.config import ObservabilityConfig

TRACER_NAME = "crm_store"

_tracer: trace.Tracer | None = None


def _build_provider(
    service_name: str,
    otlp_endpoint: str | None,
    console_export: bool,
) -> TracerProvider:
    from crm_store import __version__

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": service_name,
                "service.version": __version__,
            }
        )
    )
    if otlp_endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
        )
    if console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    return provider


def setup_tracing(
    service_name: str = TRACER_NAME,
    otlp_endpoint: str | None = None,
    console_export: bool = False,
) -> trace.Tracer:
    """
    Install a global tracer provider.

    Args:
        service_name: Value of the ``service.name`` resource attribute
        otlp_endpoint: OTLP gRPC collector endpoint, e.g. "http://localhost:4317"
        console_export: Also print finished spans to stdout

    Returns:
        The tracer used by trace_span()
    """
    global _tracer

    trace.set_tracer_provider(_build_provider(service_name, otlp_endpoint, console_export))
    _tracer = trace.get_tracer(TRACER_NAME)
    return _tracer


def setup_tracing_from_config(config: ObservabilityConfig) -> trace.Tracer:
    """Install tracing from the observability section of the config."""
    return setup_tracing(
        service_name=config.otel_service_name,
        otlp_endpoint=config.otel_endpoint,
    )


def get_tracer() -> trace.Tracer:
    """Return the tracer set up by setup_tracing(), or the API default."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(TRACER_NAME)
    return _tracer


@contextmanager
def trace_span(
    name: str,
    attributes: Mapping[str, Any] | None = None,
) -> Iterator[trace.Span]:
    """
    Run a block inside a new span.

    Attributes whose value is None are skipped. An exception escaping the
    block is recorded on the span and marks it as failed before it
    propagates.

    Args:
        name: Span name, e.g. "crm.add_customer"
        attributes: Span attributes
    """
    with get_tracer().start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        yield span
