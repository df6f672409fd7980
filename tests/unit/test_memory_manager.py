"""Unit tests for MemoryManager and its regions."""

from __future__ import annotations

from pathlib import Path

import pytest

from crm_store.adapters.outbound import FileMemory, InMemoryMemory
from crm_store.domain.errors import StorageError
from crm_store.domain.services import MemoryManager, ensure_capacity
from crm_store.domain.value_objects import RegionId


@pytest.mark.unit
class TestMemoryManager:
    """Tests for MemoryManager."""

    @pytest.fixture
    def manager(self) -> MemoryManager:
        """Create a manager with small buckets so tests cross bucket boundaries."""
        return MemoryManager.init(InMemoryMemory(page_size=4096), bucket_size_in_pages=1)

    def test_fresh_layout(self, manager: MemoryManager) -> None:
        """A fresh manager has no buckets and empty regions."""
        assert manager.allocated_buckets == 0
        assert manager.bucket_size_in_pages == 1
        assert manager.get(0).size() == 0
        assert manager.get(2).size() == 0

    def test_get_returns_same_handle(self, manager: MemoryManager) -> None:
        """Repeated get() calls return the same region object."""
        assert manager.get(1) is manager.get(1)

    def test_invalid_region_id(self, manager: MemoryManager) -> None:
        """Region ids outside the addressable range are rejected."""
        with pytest.raises(ValueError):
            manager.get(255)
        with pytest.raises(ValueError):
            manager.get(-1)

    def test_region_grow_returns_previous_size(self, manager: MemoryManager) -> None:
        """Region growth follows the backing memory convention."""
        region = manager.get(0)
        assert region.grow(2) == 0
        assert region.grow(1) == 2
        assert region.size() == 3
        assert manager.allocated_buckets == 3

    def test_regions_are_isolated(self, manager: MemoryManager) -> None:
        """Writes through one region never show up in another."""
        a = manager.get(0)
        b = manager.get(1)
        a.grow(1)
        b.grow(1)

        a.write(0, b"A" * 4096)
        b.write(0, b"B" * 4096)

        assert a.read(0, 4096) == b"A" * 4096
        assert b.read(0, 4096) == b"B" * 4096

    def test_isolation_across_interleaved_growth(self, manager: MemoryManager) -> None:
        """Regions that grow in turns keep their own bytes past bucket boundaries."""
        a = manager.get(0)
        b = manager.get(2)
        for _ in range(3):
            a.grow(1)
            b.grow(1)

        pattern_a = bytes(i % 251 for i in range(3 * 4096))
        pattern_b = bytes((i * 7) % 253 for i in range(3 * 4096))
        a.write(0, pattern_a)
        b.write(0, pattern_b)

        assert a.read(0, len(pattern_a)) == pattern_a
        assert b.read(0, len(pattern_b)) == pattern_b

    def test_spanning_write(self, manager: MemoryManager) -> None:
        """A single write may straddle two non-adjacent buckets."""
        a = manager.get(0)
        b = manager.get(1)
        a.grow(1)
        b.grow(1)
        a.grow(1)  # a's second bucket follows b's first

        a.write(4000, b"z" * 200)
        assert a.read(4000, 200) == b"z" * 200
        assert b.read(0, 4096) == b"\x00" * 4096

    def test_out_of_bounds(self, manager: MemoryManager) -> None:
        """Access past a region's size is rejected."""
        region = manager.get(0)
        region.grow(1)
        with pytest.raises(ValueError):
            region.read(4096, 1)

    def test_grow_fails_when_backing_is_full(self) -> None:
        """Region growth reports -1 when the backing memory cannot grow."""
        backing = InMemoryMemory(page_size=4096, max_pages=11)
        manager = MemoryManager.init(backing, bucket_size_in_pages=1)
        region = manager.get(0)

        # 9 layout pages, then room for two buckets
        assert region.grow(2) == 0
        assert region.grow(1) == -1
        assert region.size() == 2

    def test_reload_preserves_layout(self) -> None:
        """A manager re-initialized over the same memory sees the same regions."""
        backing = InMemoryMemory(page_size=4096)
        manager = MemoryManager.init(backing, bucket_size_in_pages=1)
        manager.get(0).grow(1)
        manager.get(1).grow(2)
        manager.get(0).grow(1)
        manager.get(0).write(4096, b"second")
        manager.get(1).write(0, b"first")

        reloaded = MemoryManager.init(backing, bucket_size_in_pages=8)

        # An existing layout keeps its bucket size
        assert reloaded.bucket_size_in_pages == 1
        assert reloaded.allocated_buckets == 4
        assert reloaded.get(0).size() == 2
        assert reloaded.get(1).size() == 2
        assert reloaded.get(0).read(4096, 6) == b"second"
        assert reloaded.get(1).read(0, 5) == b"first"

    def test_reload_from_file(self, temp_dir: Path) -> None:
        """The layout survives closing and reopening a data file."""
        path = temp_dir / "regions.db"
        with FileMemory(path) as backing:
            manager = MemoryManager.init(backing, bucket_size_in_pages=2)
            manager.get(RegionId(2)).grow(3)
            manager.get(RegionId(2)).write(3 * 4096 - 4, b"tail")

        with FileMemory(path) as backing:
            manager = MemoryManager.init(backing)
            assert manager.get(2).size() == 3
            assert manager.get(2).read(3 * 4096 - 4, 4) == b"tail"

    def test_foreign_memory_rejected(self) -> None:
        """Memory that holds something else is not treated as a layout."""
        backing = InMemoryMemory(page_size=4096)
        backing.grow(1)
        backing.write(0, b"XYZ")

        with pytest.raises(StorageError):
            MemoryManager.init(backing)

    def test_invalid_bucket_size(self) -> None:
        """Bucket size must be at least one page."""
        with pytest.raises(ValueError):
            MemoryManager.init(InMemoryMemory(), bucket_size_in_pages=0)


@pytest.mark.unit
class TestEnsureCapacity:
    """Tests for ensure_capacity."""

    def test_grows_to_fit(self) -> None:
        """Memory grows by whole pages until the bytes fit."""
        mem = InMemoryMemory(page_size=4096)
        ensure_capacity(mem, 5000)
        assert mem.size() == 2

    def test_no_growth_when_large_enough(self) -> None:
        """Nothing happens when the memory already fits."""
        mem = InMemoryMemory(page_size=4096)
        mem.grow(1)
        ensure_capacity(mem, 4096)
        assert mem.size() == 1

    def test_raises_when_exhausted(self) -> None:
        """A memory that cannot grow raises StorageError."""
        mem = InMemoryMemory(page_size=4096, max_pages=1)
        with pytest.raises(StorageError):
            ensure_capacity(mem, 8192)
