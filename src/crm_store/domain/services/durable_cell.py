"""Durable single-value cell.

A DurableCell keeps one unsigned 64-bit value in its own region. The value
is read once at initialization and written through on every set(), so it
survives restarts without any explicit flush at this layer.

Region Layout:
    magic "CEL" (3B) | version (1B) | value (8B, big-endian)
"""

from __future__ import annotations

import struct
import threading

from crm_store.domain.errors import StorageError
from crm_store.domain.services.memory_manager import ensure_capacity
from crm_store.ports.outbound import Memory


CELL_MAGIC = b"CEL"
CELL_VERSION = 1
CELL_FORMAT = ">3sBQ"
CELL_SIZE = struct.calcsize(CELL_FORMAT)

MAX_CELL_VALUE = 2**64 - 1


class DurableCell:
    """A persisted u64 bound to one memory region.

    Example:
        >>> cell = DurableCell.init(region, default=0)
        >>> cell.set(cell.get() + 1)
        0
        >>> cell.get()
        1
    """

    def __init__(self, memory: Memory, value: int) -> None:
        """Use DurableCell.init() instead of calling this directly."""
        self._memory = memory
        self._value = value
        self._lock = threading.Lock()

    @classmethod
    def init(cls, memory: Memory, default: int = 0) -> DurableCell:
        """Load the cell from ``memory``, or write ``default`` if it is empty.

        Raises:
            StorageError: If the region holds something other than a cell,
                or cannot grow to hold one.
        """
        if memory.size() == 0:
            cell = cls(memory, default)
            cell._persist(default)
            return cell

        magic, version, value = struct.unpack(CELL_FORMAT, memory.read(0, CELL_SIZE))
        if magic != CELL_MAGIC:
            raise StorageError(f"Region does not hold a cell (magic {magic!r})")
        if version != CELL_VERSION:
            raise StorageError(f"Unsupported cell version: {version}")
        return cls(memory, value)

    def _persist(self, value: int) -> None:
        ensure_capacity(self._memory, CELL_SIZE)
        self._memory.write(0, struct.pack(CELL_FORMAT, CELL_MAGIC, CELL_VERSION, value))

    def get(self) -> int:
        """Return the current value."""
        return self._value

    def set(self, value: int) -> int:
        """Persist a new value.

        Args:
            value: The new value (unsigned 64-bit).

        Returns:
            The previous value.

        Raises:
            ValueError: If the value does not fit in 64 unsigned bits.
            StorageError: If the region cannot be written.
        """
        if value < 0 or value > MAX_CELL_VALUE:
            raise ValueError(f"Cell value out of range: {value}")

        with self._lock:
            self._persist(value)
            previous, self._value = self._value, value
            return previous
