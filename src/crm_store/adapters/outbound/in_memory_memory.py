"""In-memory Memory adapter.

A simple bytearray-backed implementation of the Memory protocol for
testing and development purposes. Data is not persisted across process
restarts, but survives re-initializing the structures on top of the same
instance, which is how restart behaviour is exercised in tests.

Usage:
    memory = InMemoryMemory(page_size=4096)
    memory.grow(1)
    memory.write(0, b"hello")
"""

from __future__ import annotations

import threading


class InMemoryMemory:
    """Volatile implementation of the Memory protocol."""

    def __init__(self, page_size: int = 4096, max_pages: int | None = None) -> None:
        """Initialize an empty memory.

        Args:
            page_size: Size of each page in bytes.
            max_pages: Optional growth limit; grow() returns -1 past it.
        """
        self._page_size = page_size
        self._max_pages = max_pages
        self._data = bytearray()
        self._lock = threading.Lock()

    @property
    def page_size(self) -> int:
        """Return the page size in bytes."""
        return self._page_size

    def size(self) -> int:
        """Return the current size in pages."""
        return len(self._data) // self._page_size

    def grow(self, pages: int) -> int:
        """Append zero-filled pages, returning the previous size or -1."""
        if pages < 0:
            raise ValueError(f"Cannot grow by a negative page count: {pages}")

        with self._lock:
            previous = self.size()
            if self._max_pages is not None and previous + pages > self._max_pages:
                return -1
            self._data.extend(b"\x00" * (pages * self._page_size))
            return previous

    def read(self, offset: int, length: int) -> bytes:
        """Read bytes from memory."""
        with self._lock:
            self._check_range(offset, length)
            return bytes(self._data[offset : offset + length])

    def write(self, offset: int, data: bytes) -> None:
        """Write bytes into memory."""
        with self._lock:
            self._check_range(offset, len(data))
            self._data[offset : offset + len(data)] = data

    def _check_range(self, offset: int, length: int) -> None:
        if offset < 0 or length < 0 or offset + length > len(self._data):
            raise ValueError(
                f"Access out of bounds: offset={offset} length={length} size={len(self._data)}"
            )

    def sync(self) -> None:
        """Nothing to flush."""

    def close(self) -> None:
        """Nothing to release; the contents stay readable."""
