"""Prometheus metrics for the record store.

Metric names:
    crm_operations_total{operation,status}    outcome of each service call
    crm_operation_latency_seconds{operation}  service call latency
    crm_records{kind}                         stored customers / interactions
    crm_last_id                               most recently minted id
    crm_backing_pages                         size of the backing memory
    crm_store_info                            version information
"""

from __future__ import annotations

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
)

OPERATION_STATUSES = ("success", "not_found", "invalid_input", "error")
RECORD_KINDS = ("customer", "interaction")


class MetricsRegistry:
    """Registry of all record store metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Create the metrics on ``registry`` (the process default if None)."""
        self._registry = registry or REGISTRY

        self.operations_total = Counter(
            "crm_operations_total",
            "Record service calls by outcome",
            ["operation", "status"],
            registry=self._registry,
        )
        self.operation_latency_seconds = Histogram(
            "crm_operation_latency_seconds",
            "Record service call latency in seconds",
            ["operation"],
            buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.5, 1.0),
            registry=self._registry,
        )

        self.records = Gauge(
            "crm_records",
            "Stored records by kind",
            ["kind"],
            registry=self._registry,
        )
        self.last_id = Gauge(
            "crm_last_id",
            "Most recently minted record id",
            registry=self._registry,
        )
        self.backing_pages = Gauge(
            "crm_backing_pages",
            "Size of the backing memory in pages",
            registry=self._registry,
        )

        self.info = Info(
            "crm_store",
            "Record store build information",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the collector registry the metrics live on."""
        return self._registry

    def record_operation(self, operation: str, status: str, seconds: float) -> None:
        """Count one service call and observe its latency."""
        if status not in OPERATION_STATUSES:
            raise ValueError(f"Unknown operation status: {status}")
        self.operations_total.labels(operation=operation, status=status).inc()
        self.operation_latency_seconds.labels(operation=operation).observe(seconds)

    def set_record_count(self, kind: str, count: int) -> None:
        """Publish the number of stored records of one kind."""
        if kind not in RECORD_KINDS:
            raise ValueError(f"Unknown record kind: {kind}")
        self.records.labels(kind=kind).set(count)


# Global metrics registry
_metrics: MetricsRegistry | None = None
_http_port: int | None = None


def setup_metrics(port: int = 8001, registry: CollectorRegistry | None = None) -> MetricsRegistry:
    """
    Create the global registry and serve it for Prometheus scraping.

    A registry already created by an earlier call or by get_metrics() is
    reused when ``registry`` is None or the one it lives on. The HTTP
    server is started only once per process.

    Args:
        port: Port for the metrics HTTP server
        registry: Optional custom collector registry

    Returns:
        The metrics registry
    """
    global _metrics, _http_port
    from crm_store import __version__

    if _metrics is None or (registry is not None and registry is not _metrics.registry):
        _metrics = MetricsRegistry(registry)
    _metrics.info.info({"version": __version__})
    if _http_port is None:
        start_http_server(port, registry=_metrics.registry)
        _http_port = port
    return _metrics


def get_metrics() -> MetricsRegistry:
    """Return the global registry, creating it on first use."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsRegistry()
    return _metrics
