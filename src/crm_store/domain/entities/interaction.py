"""Interaction entity and its create/update payload.

An interaction records a contact with a customer (an email, a call, a
meeting). ``customer_id`` is a logical reference only: nothing checks that
the customer exists, and deleting a customer leaves its interactions alone.

Binary Format:
    version (1B) | id (8B) | customer_id (8B) | created_at (8B)
    | updated_at (1B flag + 8B) | interaction_type | content
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import ClassVar

from crm_store.domain.entities.encoding import (
    pack_optional_u64,
    pack_string,
    unpack_optional_u64,
    unpack_string,
)
from crm_store.domain.value_objects.identifiers import MAX_RECORD_KEY


@dataclass(frozen=True)
class InteractionPayload:
    """Caller-supplied fields for creating or updating an interaction."""

    customer_id: int
    interaction_type: str
    content: str

    def is_valid(self) -> bool:
        """customer_id must fit in a u64; interaction_type and content must be non-empty."""
        return (
            0 <= self.customer_id <= MAX_RECORD_KEY
            and bool(self.interaction_type)
            and bool(self.content)
        )


@dataclass
class Interaction:
    """A stored interaction record.

    Attributes:
        id: Durable identifier, shared sequence with customers.
        customer_id: Customer this interaction refers to (unchecked).
        interaction_type: Free-form kind, e.g. "Email", "Call", "Meeting".
        content: Body or notes.
        created_at: Creation time in nanoseconds since the Unix epoch.
        updated_at: Time of the last update, None until the first update.
    """

    id: int
    customer_id: int
    interaction_type: str
    content: str
    created_at: int
    updated_at: int | None = None

    FORMAT_VERSION: ClassVar[int] = 1
    FIXED_FORMAT: ClassVar[str] = ">BQQQ"  # version, id, customer_id, created_at
    FIXED_SIZE: ClassVar[int] = struct.calcsize(">BQQQ")

    def to_bytes(self) -> bytes:
        """Serialize the interaction to bytes."""
        return (
            struct.pack(
                self.FIXED_FORMAT,
                self.FORMAT_VERSION,
                self.id,
                self.customer_id,
                self.created_at,
            )
            + pack_optional_u64(self.updated_at)
            + pack_string(self.interaction_type)
            + pack_string(self.content)
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> Interaction:
        """Deserialize an interaction from bytes.

        Raises:
            ValueError: If the data is truncated or has an unknown version.
        """
        if len(data) < cls.FIXED_SIZE:
            raise ValueError(
                f"Interaction requires at least {cls.FIXED_SIZE} bytes, got {len(data)}"
            )

        version, id_, customer_id, created_at = struct.unpack_from(cls.FIXED_FORMAT, data, 0)
        if version != cls.FORMAT_VERSION:
            raise ValueError(f"Unsupported interaction format version: {version}")

        offset = cls.FIXED_SIZE
        updated_at, offset = unpack_optional_u64(data, offset)
        interaction_type, offset = unpack_string(data, offset)
        content, offset = unpack_string(data, offset)

        return cls(
            id=id_,
            customer_id=customer_id,
            interaction_type=interaction_type,
            content=content,
            created_at=created_at,
            updated_at=updated_at,
        )

    @classmethod
    def new(cls, id: int, payload: InteractionPayload, created_at: int) -> Interaction:
        """Create a fresh interaction from a payload."""
        return cls(
            id=id,
            customer_id=payload.customer_id,
            interaction_type=payload.interaction_type,
            content=payload.content,
            created_at=created_at,
            updated_at=None,
        )
