"""Customer entity.

A customer is identified by an id drawn from the shared id sequence. Only
name, email and phone change over its lifetime; created_at is stamped once.

Binary Format:
    version (1B) | id (8B) | created_at (8B) | name | email | phone
    (strings are u32 length + UTF-8, see ``encoding``)
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import ClassVar

from crm_store.domain.entities.encoding import pack_string, unpack_string


@dataclass
class Customer:
    """A stored customer record.

    Attributes:
        id: Durable identifier, equal to the record's key in the store.
        name: Display name.
        email: Contact email.
        phone: Contact phone number.
        created_at: Creation time in nanoseconds since the Unix epoch.
    """

    id: int
    name: str
    email: str
    phone: str
    created_at: int

    FORMAT_VERSION: ClassVar[int] = 1
    FIXED_FORMAT: ClassVar[str] = ">BQQ"  # version, id, created_at
    FIXED_SIZE: ClassVar[int] = struct.calcsize(">BQQ")

    def to_bytes(self) -> bytes:
        """Serialize the customer to bytes."""
        return (
            struct.pack(self.FIXED_FORMAT, self.FORMAT_VERSION, self.id, self.created_at)
            + pack_string(self.name)
            + pack_string(self.email)
            + pack_string(self.phone)
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> Customer:
        """Deserialize a customer from bytes.

        Raises:
            ValueError: If the data is truncated or has an unknown version.
        """
        if len(data) < cls.FIXED_SIZE:
            raise ValueError(f"Customer requires at least {cls.FIXED_SIZE} bytes, got {len(data)}")

        version, id_, created_at = struct.unpack_from(cls.FIXED_FORMAT, data, 0)
        if version != cls.FORMAT_VERSION:
            raise ValueError(f"Unsupported customer format version: {version}")

        offset = cls.FIXED_SIZE
        name, offset = unpack_string(data, offset)
        email, offset = unpack_string(data, offset)
        phone, offset = unpack_string(data, offset)

        return cls(id=id_, name=name, email=email, phone=phone, created_at=created_at)

    def matches(
        self,
        name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
    ) -> bool:
        """Check the customer against optional exact-match filters.

        A filter left as None matches every customer.
        """
        return (
            (name is None or self.name == name)
            and (email is None or self.email == email)
            and (phone is None or self.phone == phone)
        )
