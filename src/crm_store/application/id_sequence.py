"""Shared identifier sequence.

Customers and interactions draw their ids from one sequence, so ids of the
two kinds interleave and are unique across both. The sequence is a durable
counter advanced with increment-and-fetch: read the current value, persist
current + 1, hand out current + 1.
"""

from __future__ import annotations

import threading

from crm_store.domain.services import DurableCell


class IdSequence:
    """Mints strictly increasing ids from a DurableCell.

    Thread Safety:
        The read-increment-write step runs under a lock, so concurrent
        callers never receive the same id.
    """

    def __init__(self, cell: DurableCell) -> None:
        self._cell = cell
        self._lock = threading.Lock()

    def next_id(self) -> int:
        """Advance the counter and return the new value.

        Raises:
            StorageError: If the counter cannot be persisted.
        """
        with self._lock:
            new_id = self._cell.get() + 1
            self._cell.set(new_id)
            return new_id

    def current(self) -> int:
        """Return the most recently minted id (0 before the first)."""
        return self._cell.get()
