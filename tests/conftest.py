"""Pytest configuration and fixtures for crm_store tests."""

from __future__ import annotations

import itertools
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest
from prometheus_client import CollectorRegistry

from crm_store.adapters.outbound import InMemoryMemory
from crm_store.application import CrmBackend, RecordStore
from crm_store.infrastructure.config import Config, StorageConfig
from crm_store.infrastructure.container import Container, reset_container
from crm_store.infrastructure.metrics import MetricsRegistry


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config(temp_dir: Path) -> Config:
    """Provide a test configuration with temporary directories."""
    return Config(
        storage=StorageConfig(
            data_dir=temp_dir / "data",
            page_size=4096,
            bucket_size_in_pages=4,
            max_pages=16384,  # 64MB for tests
        ),
    )


@pytest.fixture
def container() -> Generator[Container, None, None]:
    """Provide a fresh DI container for each test."""
    reset_container()
    c = Container()
    yield c
    c.clear()


@pytest.fixture
def metrics_registry() -> MetricsRegistry:
    """Provide a fresh metrics registry for each test."""
    # Use a separate registry to avoid conflicts between tests
    registry = CollectorRegistry(auto_describe=True)
    return MetricsRegistry(registry=registry)


@pytest.fixture
def clock() -> Callable[[], int]:
    """Provide a strictly increasing fake nanosecond clock."""
    ticks = itertools.count(1_000_000_000, 1_000)
    return lambda: next(ticks)


@pytest.fixture
def memory() -> InMemoryMemory:
    """Provide an empty volatile backing memory."""
    return InMemoryMemory(page_size=4096)


@pytest.fixture
def store(memory: InMemoryMemory) -> RecordStore:
    """Provide a record store over volatile memory."""
    return RecordStore.open(memory, bucket_size_in_pages=4)


@pytest.fixture
def backend(
    clock: Callable[[], int],
    metrics_registry: MetricsRegistry,
) -> Generator[CrmBackend, None, None]:
    """Provide a started memory-backed CrmBackend."""
    db = CrmBackend.in_memory(clock=clock, metrics=metrics_registry, bucket_size_in_pages=4)
    db.start()
    yield db
    if db.is_started:
        db.stop()


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
