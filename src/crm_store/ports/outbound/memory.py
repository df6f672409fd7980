"""Memory port for page-granular durable storage.

This outbound port defines the contract for the single backing store that
all durable structures live in. The memory behaves like a growable linear
address space: it starts empty, grows in whole pages, and supports random
reads and writes anywhere below its current size.

Implementations may be backed by a file, an mmap, or plain process memory.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol


class Memory(Protocol):
    """Protocol for a growable, byte-addressable memory.

    Offsets are relative to the start of the usable space; any metadata an
    implementation keeps for itself (headers, page tables) is invisible to
    callers.

    Thread Safety:
        Implementations must serialize concurrent writes internally.
    """

    @property
    @abstractmethod
    def page_size(self) -> int:
        """Return the page size in bytes. Growth happens in whole pages."""
        ...

    @abstractmethod
    def size(self) -> int:
        """Return the current size in pages."""
        ...

    @abstractmethod
    def grow(self, pages: int) -> int:
        """Extend the memory by ``pages`` zero-filled pages.

        Args:
            pages: Number of pages to add.

        Returns:
            The previous size in pages, or -1 if the memory cannot grow
            that far.
        """
        ...

    @abstractmethod
    def read(self, offset: int, length: int) -> bytes:
        """Read ``length`` bytes starting at ``offset``.

        Raises:
            ValueError: If the range lies outside the current size.
        """
        ...

    @abstractmethod
    def write(self, offset: int, data: bytes) -> None:
        """Write ``data`` starting at ``offset``.

        Raises:
            ValueError: If the range lies outside the current size.
        """
        ...

    @abstractmethod
    def sync(self) -> None:
        """Flush writes to stable storage (no-op for volatile memories)."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release resources. The memory must not be used afterwards."""
        ...
