"""CRM Backend - Unified entry point for the record store.

This module provides the CrmBackend class that opens the backing memory,
recovers the durable structures on it and exposes the record service
operations.

Usage:
    from crm_store.application import CrmBackend

    backend = CrmBackend(data_dir="/path/to/data")
    backend.start()

    customer = backend.add_customer("Ada", "ada@example.com", "555-0100")
    backend.search_customers(name="Ada")

    backend.stop()
"""

from __future__ import annotations

import tempfile
import time
from pathlib import Path
from typing import Any

from crm_store.adapters.outbound.file_memory import DEFAULT_MAX_PAGES, FileMemory
from crm_store.adapters.outbound.in_memory_memory import InMemoryMemory
from crm_store.application.customer_service import Clock, CustomerService
from crm_store.application.interaction_service import InteractionService
from crm_store.application.record_store import RecordStore
from crm_store.domain.entities import Customer, Interaction, InteractionPayload
from crm_store.domain.services import (
    DEFAULT_BUCKET_SIZE_IN_PAGES,
    DEFAULT_MAX_KEYS,
    DEFAULT_MAX_RECORD_SIZE,
)
from crm_store.domain.value_objects import SearchResult
from crm_store.infrastructure.config import Config
from crm_store.infrastructure.logging import get_logger
from crm_store.infrastructure.metrics import MetricsRegistry
from crm_store.ports.outbound import Memory

DATA_FILE_NAME = "crm_store.db"

logger = get_logger(__name__)


class CrmBackend:
    """Record store backend that orchestrates all components.

    Features:
        - Customers and interactions in durable ordered maps
        - One id sequence shared by both record kinds
        - Recovery of all data on start
        - fsync of the backing file on stop

    Thread Safety:
        Operations may be called from several threads; the id sequence,
        the maps and the backing file each serialize their own state.
    """

    def __init__(
        self,
        data_dir: str | Path | None = None,
        page_size: int = 4096,
        bucket_size_in_pages: int = DEFAULT_BUCKET_SIZE_IN_PAGES,
        max_pages: int = DEFAULT_MAX_PAGES,
        max_record_size: int = DEFAULT_MAX_RECORD_SIZE,
        max_keys: int = DEFAULT_MAX_KEYS,
        data_file: str = DATA_FILE_NAME,
        memory: Memory | None = None,
        metrics: MetricsRegistry | None = None,
        clock: Clock = time.time_ns,
    ) -> None:
        """Initialize the backend.

        Args:
            data_dir: Directory for the data file. Uses a temp dir if None.
            page_size: Size of pages in bytes (default 4096).
            bucket_size_in_pages: Pages handed to a region per growth step.
            max_pages: Upper bound on the data file size in pages.
            max_record_size: Maximum encoded size of one record.
            max_keys: Maximum keys per map node.
            data_file: Name of the data file inside ``data_dir``.
            memory: Pre-built backing memory. When given, no file is opened
                and ``data_dir`` is ignored.
            metrics: Optional metrics registry.
            clock: Source of nanosecond timestamps.
        """
        self._memory_override = memory
        if memory is None:
            if data_dir is None:
                data_dir = tempfile.mkdtemp(prefix="crm_store_")
            self._data_dir: Path | None = Path(data_dir)
            self._data_dir.mkdir(parents=True, exist_ok=True)
        else:
            self._data_dir = None

        self._page_size = page_size
        self._bucket_size_in_pages = bucket_size_in_pages
        self._max_pages = max_pages
        self._max_record_size = max_record_size
        self._max_keys = max_keys
        self._data_file = data_file
        self._metrics = metrics
        self._clock = clock

        # Components (initialized on start)
        self._memory: Memory | None = None
        self._store: RecordStore | None = None
        self._customers: CustomerService | None = None
        self._interactions: InteractionService | None = None

        self._started = False

    @classmethod
    def from_config(cls, config: Config, metrics: MetricsRegistry | None = None) -> CrmBackend:
        """Create a backend from the storage section of ``config``."""
        storage = config.storage
        return cls(
            data_dir=storage.data_dir,
            page_size=storage.page_size,
            bucket_size_in_pages=storage.bucket_size_in_pages,
            max_pages=storage.max_pages,
            max_record_size=storage.max_record_size,
            max_keys=storage.btree_max_keys,
            data_file=storage.data_file,
            metrics=metrics,
        )

    @classmethod
    def in_memory(
        cls,
        memory: InMemoryMemory | None = None,
        **kwargs: Any,
    ) -> CrmBackend:
        """Create a backend over volatile memory.

        Passing the same ``memory`` to a second backend after the first has
        stopped recovers its data, the way reopening a data file would.
        """
        page_size = kwargs.get("page_size", 4096)
        return cls(memory=memory or InMemoryMemory(page_size=page_size), **kwargs)

    @property
    def data_dir(self) -> Path | None:
        """Get the data directory path (None for a memory-backed backend)."""
        return self._data_dir

    @property
    def is_started(self) -> bool:
        """Check if the backend is started."""
        return self._started

    def start(self) -> None:
        """Open the backing memory and recover every structure on it.

        Raises:
            RuntimeError: If already started.
            StorageError: If the memory holds an incompatible layout.
        """
        if self._started:
            raise RuntimeError("CRM backend already started")

        if self._memory_override is not None:
            memory = self._memory_override
        else:
            assert self._data_dir is not None
            memory = FileMemory(
                file_path=self._data_dir / self._data_file,
                page_size=self._page_size,
                max_pages=self._max_pages,
            )

        try:
            store = RecordStore.open(
                memory,
                bucket_size_in_pages=self._bucket_size_in_pages,
                max_record_size=self._max_record_size,
                max_keys=self._max_keys,
            )
        except Exception:
            if self._memory_override is None:
                memory.close()
            raise

        self._memory = memory
        self._store = store
        self._customers = CustomerService(
            store.customers, store.ids, clock=self._clock, metrics=self._metrics
        )
        self._interactions = InteractionService(
            store.interactions, store.ids, clock=self._clock, metrics=self._metrics
        )
        self._started = True

        self._refresh_gauges()
        logger.info("crm_backend_started", data_dir=str(self._data_dir))

    def stop(self) -> None:
        """Sync and close the backing memory.

        Raises:
            RuntimeError: If not started.
        """
        if not self._started:
            raise RuntimeError("CRM backend not started")

        assert self._memory is not None
        self._memory.sync()
        if self._memory_override is None:
            self._memory.close()

        self._memory = None
        self._store = None
        self._customers = None
        self._interactions = None
        self._started = False

        logger.info("crm_backend_stopped")

    def _require_customers(self) -> CustomerService:
        if not self._started or self._customers is None:
            raise RuntimeError("CRM backend not started")
        return self._customers

    def _require_interactions(self) -> InteractionService:
        if not self._started or self._interactions is None:
            raise RuntimeError("CRM backend not started")
        return self._interactions

    # Customers

    def add_customer(self, name: str, email: str, phone: str) -> Customer:
        return self._require_customers().add_customer(name, email, phone)

    def get_customer(self, customer_id: int) -> Customer:
        return self._require_customers().get_customer(customer_id)

    def update_customer(self, customer_id: int, name: str, email: str, phone: str) -> Customer:
        return self._require_customers().update_customer(customer_id, name, email, phone)

    def delete_customer(self, customer_id: int) -> Customer:
        return self._require_customers().delete_customer(customer_id)

    def search_customers(
        self,
        name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        page_size: int = 10,
        page_number: int = 1,
    ) -> SearchResult[Customer]:
        return self._require_customers().search_customers(
            name=name,
            email=email,
            phone=phone,
            page_size=page_size,
            page_number=page_number,
        )

    # Interactions

    def add_interaction(self, payload: InteractionPayload) -> Interaction:
        return self._require_interactions().add_interaction(payload)

    def get_interaction(self, interaction_id: int) -> Interaction:
        return self._require_interactions().get_interaction(interaction_id)

    def update_interaction(self, interaction_id: int, payload: InteractionPayload) -> Interaction:
        return self._require_interactions().update_interaction(interaction_id, payload)

    def delete_interaction(self, interaction_id: int) -> Interaction:
        return self._require_interactions().delete_interaction(interaction_id)

    def _refresh_gauges(self) -> None:
        if self._metrics is None or self._store is None:
            return
        self._metrics.set_record_count("customer", len(self._store.customers))
        self._metrics.set_record_count("interaction", len(self._store.interactions))
        self._metrics.last_id.set(self._store.ids.current())
        self._metrics.backing_pages.set(self._store.memory.size())

    def get_stats(self) -> dict:
        """Get backend statistics.

        Returns:
            Dictionary with various statistics.
        """
        stats: dict[str, Any] = {
            "started": self._started,
            "data_dir": str(self._data_dir) if self._data_dir is not None else None,
            "page_size": self._page_size,
        }

        if self._store is not None:
            stats["customers"] = len(self._store.customers)
            stats["interactions"] = len(self._store.interactions)
            stats["last_id"] = self._store.ids.current()
            stats["backing_pages"] = self._store.memory.size()
            self._refresh_gauges()

        return stats

    def __enter__(self) -> CrmBackend:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.stop()
