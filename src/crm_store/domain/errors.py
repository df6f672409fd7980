"""Error taxonomy for the record store.

Two error kinds are part of the public contract and are meant to be handled
by callers:

    - NotFoundError: the requested id is absent from its store.
    - InvalidInputError: a payload failed validation.

Everything under StorageError signals misconfiguration, corruption or
resource exhaustion. Callers are not expected to recover from those.
"""

from __future__ import annotations


class CrmError(Exception):
    """Base class for caller-facing record service errors."""

    kind = "Error"

    def __init__(self, msg: str) -> None:
        super().__init__(msg)
        self.msg = msg


class NotFoundError(CrmError):
    """The requested record does not exist."""

    kind = "NotFound"


class InvalidInputError(CrmError):
    """The request payload failed validation."""

    kind = "InvalidInput"


class StorageError(RuntimeError):
    """Durable storage failed or holds an incompatible layout."""
    pass


class RecordTooLargeError(StorageError):
    """An encoded record exceeds its declared maximum size."""

    def __init__(self, size: int, max_size: int) -> None:
        super().__init__(f"Encoded record is {size} bytes, maximum is {max_size}")
        self.size = size
        self.max_size = max_size
