"""Infrastructure layer - cross-cutting concerns."""

from crm_store.infrastructure.config import Config, get_config
from crm_store.infrastructure.logging import (
    get_logger,
    operation_context,
    setup_logging,
    setup_logging_from_config,
)
from crm_store.infrastructure.metrics import MetricsRegistry, get_metrics, setup_metrics
from crm_store.infrastructure.tracing import (
    get_tracer,
    setup_tracing,
    setup_tracing_from_config,
    trace_span,
)

__all__ = [
    "Config",
    "get_config",
    "setup_logging",
    "setup_logging_from_config",
    "get_logger",
    "operation_context",
    "setup_metrics",
    "get_metrics",
    "MetricsRegistry",
    "setup_tracing",
    "setup_tracing_from_config",
    "get_tracer",
    "trace_span",
]
