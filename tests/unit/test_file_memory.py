"""Unit tests for FileMemory."""

from __future__ import annotations

import struct
from pathlib import Path

import pytest

from crm_store.adapters.outbound import FileMemory
from crm_store.adapters.outbound.file_memory import HEADER_FORMAT, HEADER_SIZE


class TestFileMemory:
    """Tests for FileMemory."""

    @pytest.fixture
    def memory(self, temp_dir: Path) -> FileMemory:
        """Create a file memory for testing."""
        mem = FileMemory(temp_dir / "test.db", page_size=4096)
        yield mem
        mem.close()

    def test_creation_new_file(self, temp_dir: Path) -> None:
        """New file is created with only the header page."""
        path = temp_dir / "new.db"
        mem = FileMemory(path, page_size=4096)

        assert mem.page_size == 4096
        assert mem.size() == 0
        assert path.exists()
        assert path.stat().st_size == 4096

        mem.close()

    def test_missing_file_without_create(self, temp_dir: Path) -> None:
        """Opening a missing file with create=False fails."""
        with pytest.raises(FileNotFoundError):
            FileMemory(temp_dir / "missing.db", create=False)

    def test_grow_returns_previous_size(self, memory: FileMemory) -> None:
        """grow() returns the size before growing."""
        assert memory.grow(2) == 0
        assert memory.grow(3) == 2
        assert memory.size() == 5

    def test_grown_pages_are_zeroed(self, memory: FileMemory) -> None:
        """New pages read back as zeros."""
        memory.grow(1)
        assert memory.read(0, 4096) == b"\x00" * 4096

    def test_grow_past_limit(self, temp_dir: Path) -> None:
        """grow() returns -1 beyond max_pages and leaves the size alone."""
        mem = FileMemory(temp_dir / "small.db", max_pages=4)
        assert mem.grow(4) == 0
        assert mem.grow(1) == -1
        assert mem.size() == 4
        mem.close()

    def test_write_and_read(self, memory: FileMemory) -> None:
        """Written bytes can be read back, including across pages."""
        memory.grow(2)
        data = b"x" * 100
        memory.write(4050, data)

        assert memory.read(4050, 100) == data

    def test_out_of_bounds_access(self, memory: FileMemory) -> None:
        """Reads and writes past the end are rejected."""
        memory.grow(1)
        with pytest.raises(ValueError):
            memory.read(4090, 10)
        with pytest.raises(ValueError):
            memory.write(4096, b"a")

    def test_persistence_across_reopen(self, temp_dir: Path) -> None:
        """Size and contents survive close and reopen."""
        path = temp_dir / "persist.db"
        mem = FileMemory(path)
        mem.grow(3)
        mem.write(8192, b"hello")
        mem.close()

        reopened = FileMemory(path)
        assert reopened.size() == 3
        assert reopened.read(8192, 5) == b"hello"
        reopened.close()

    def test_writes_visible_to_other_readers_before_sync(self, memory: FileMemory) -> None:
        """grow() and write() hand their bytes to the OS before returning."""
        memory.grow(2)
        memory.write(4100, b"durable")

        raw = memory.file_path.read_bytes()
        assert len(raw) == 3 * 4096
        assert raw[4096 + 4100 : 4096 + 4107] == b"durable"

        _, _, _, page_count = struct.unpack(HEADER_FORMAT, raw[:HEADER_SIZE])
        assert page_count == 2

    def test_page_size_mismatch_on_reopen(self, temp_dir: Path) -> None:
        """Reopening with a different page size is rejected."""
        path = temp_dir / "mismatch.db"
        FileMemory(path, page_size=4096).close()

        with pytest.raises(ValueError, match="Page size mismatch"):
            FileMemory(path, page_size=8192)

    def test_bad_magic(self, temp_dir: Path) -> None:
        """A file that is not a data file is rejected."""
        path = temp_dir / "garbage.db"
        path.write_bytes(b"\x01" * 4096)

        with pytest.raises(ValueError, match="bad magic"):
            FileMemory(path)

    def test_closed_memory_rejects_operations(self, temp_dir: Path) -> None:
        """Operations after close raise."""
        mem = FileMemory(temp_dir / "closed.db")
        mem.grow(1)
        mem.close()

        with pytest.raises(IOError):
            mem.read(0, 1)
        with pytest.raises(IOError):
            mem.grow(1)

    def test_context_manager(self, temp_dir: Path) -> None:
        """FileMemory closes itself on context exit."""
        path = temp_dir / "ctx.db"
        with FileMemory(path) as mem:
            mem.grow(1)
            mem.write(0, b"ok")

        with FileMemory(path) as mem:
            assert mem.read(0, 2) == b"ok"
