"""Unit tests for the metrics registry."""

from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from crm_store import __version__
from crm_store.infrastructure import metrics as metrics_module
from crm_store.infrastructure.metrics import MetricsRegistry, get_metrics, setup_metrics


@pytest.fixture
def served_ports(monkeypatch: pytest.MonkeyPatch) -> list[int]:
    """Reset the module globals and record metrics server starts instead of binding."""
    ports: list[int] = []
    monkeypatch.setattr(metrics_module, "_metrics", None)
    monkeypatch.setattr(metrics_module, "_http_port", None)
    monkeypatch.setattr(
        metrics_module,
        "start_http_server",
        lambda port, registry=None: ports.append(port),
    )
    return ports


@pytest.mark.unit
class TestMetricsRegistry:
    """Tests for MetricsRegistry."""

    def test_record_operation(self, metrics_registry: MetricsRegistry) -> None:
        metrics_registry.record_operation("get_customer", "not_found", 0.002)

        registry = metrics_registry.registry
        labels = {"operation": "get_customer", "status": "not_found"}
        assert registry.get_sample_value("crm_operations_total", labels) == 1.0
        assert (
            registry.get_sample_value(
                "crm_operation_latency_seconds_count", {"operation": "get_customer"}
            )
            == 1.0
        )

    def test_unknown_labels_rejected(self, metrics_registry: MetricsRegistry) -> None:
        with pytest.raises(ValueError, match="status"):
            metrics_registry.record_operation("get_customer", "timeout", 0.1)
        with pytest.raises(ValueError, match="kind"):
            metrics_registry.set_record_count("order", 1)


@pytest.mark.unit
class TestSetupMetrics:
    """Tests for the global metrics registry."""

    def test_repeated_setup_reuses_registry(self, served_ports: list[int]) -> None:
        """A second setup call returns the same metrics and serves them once."""
        registry = CollectorRegistry()

        first = setup_metrics(port=9100, registry=registry)
        second = setup_metrics(port=9100, registry=registry)

        assert second is first
        assert served_ports == [9100]
        assert registry.get_sample_value("crm_store_info", {"version": __version__}) == 1.0

    def test_setup_after_get_metrics(
        self, served_ports: list[int], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """setup_metrics() adopts the registry get_metrics() already created."""
        existing = MetricsRegistry(CollectorRegistry())
        monkeypatch.setattr(metrics_module, "_metrics", existing)

        assert get_metrics() is existing
        assert setup_metrics(port=9101) is existing
        assert served_ports == [9101]
