"""Bounded-size record codec.

Durable maps reserve a fixed amount of space for every value, so each
stored type declares the largest encoding it may produce. The codec enforces
that ceiling at encode time. Exceeding it is a programming or data error,
reported as RecordTooLargeError rather than as invalid user input.
"""

from __future__ import annotations

from typing import Generic, Protocol, TypeVar

from crm_store.domain.errors import RecordTooLargeError

# Reference sizing for customer and interaction records
DEFAULT_MAX_RECORD_SIZE = 1024


class Storable(Protocol):
    """A type that can serialize itself to bytes and back."""

    def to_bytes(self) -> bytes: ...

    @classmethod
    def from_bytes(cls, data: bytes) -> Storable: ...


S = TypeVar("S", bound=Storable)


class BoundedCodec(Generic[S]):
    """Encodes and decodes one storable type under a size ceiling.

    Example:
        >>> codec = BoundedCodec(Customer, max_size=1024)
        >>> data = codec.encode(customer)
        >>> codec.decode(data) == customer
        True
    """

    def __init__(self, record_type: type[S], max_size: int = DEFAULT_MAX_RECORD_SIZE) -> None:
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self._record_type = record_type
        self._max_size = max_size

    @property
    def max_size(self) -> int:
        """Return the largest encoding this codec accepts."""
        return self._max_size

    @property
    def record_type(self) -> type[S]:
        """Return the type this codec handles."""
        return self._record_type

    def encode(self, record: S) -> bytes:
        """Serialize a record.

        Raises:
            RecordTooLargeError: If the encoding is longer than max_size.
        """
        data = record.to_bytes()
        if len(data) > self._max_size:
            raise RecordTooLargeError(len(data), self._max_size)
        return data

    def decode(self, data: bytes) -> S:
        """Deserialize a record."""
        return self._record_type.from_bytes(data)  # type: ignore[return-value]

    def __repr__(self) -> str:
        return f"BoundedCodec({self._record_type.__name__}, max_size={self._max_size})"
