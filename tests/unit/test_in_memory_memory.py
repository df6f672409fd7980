"""Unit tests for InMemoryMemory."""

from __future__ import annotations

import pytest

from crm_store.adapters.outbound import InMemoryMemory


class TestInMemoryMemory:
    """Tests for InMemoryMemory."""

    def test_starts_empty(self) -> None:
        """A new memory has no pages."""
        mem = InMemoryMemory(page_size=4096)
        assert mem.size() == 0
        assert mem.page_size == 4096

    def test_grow_and_access(self) -> None:
        """Memory grows by whole pages and supports byte access."""
        mem = InMemoryMemory(page_size=4096)
        assert mem.grow(2) == 0
        mem.write(100, b"abc")

        assert mem.size() == 2
        assert mem.read(100, 3) == b"abc"
        assert mem.read(0, 4) == b"\x00" * 4

    def test_max_pages(self) -> None:
        """grow() returns -1 past max_pages."""
        mem = InMemoryMemory(page_size=4096, max_pages=2)
        assert mem.grow(2) == 0
        assert mem.grow(1) == -1
        assert mem.size() == 2

    def test_negative_grow(self) -> None:
        """Growing by a negative count is an error."""
        with pytest.raises(ValueError):
            InMemoryMemory().grow(-1)

    def test_out_of_bounds(self) -> None:
        """Access outside the memory is rejected."""
        mem = InMemoryMemory(page_size=4096)
        mem.grow(1)
        with pytest.raises(ValueError):
            mem.read(4095, 2)
        with pytest.raises(ValueError):
            mem.write(-1, b"a")

    def test_contents_survive_close(self) -> None:
        """close() keeps the contents readable."""
        mem = InMemoryMemory()
        mem.grow(1)
        mem.write(0, b"keep")
        mem.sync()
        mem.close()

        assert mem.read(0, 4) == b"keep"
