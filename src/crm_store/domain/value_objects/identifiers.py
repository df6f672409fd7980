"""Core identifiers and type-safe primitives for the record store.

These value objects provide type-safe identifiers that are used throughout
the system to ensure correctness and prevent accidental misuse of raw integers.
"""

from __future__ import annotations

from typing import NewType


# Type-safe identifiers using NewType for zero-cost runtime abstraction

RegionId = NewType("RegionId", int)
"""Logical index of a memory region inside the shared backing memory."""

RecordKey = NewType("RecordKey", int)
"""Durable identifier of a customer or interaction (unsigned 64-bit)."""

Address = NewType("Address", int)
"""Byte offset inside a single region."""

# Special sentinel values
NULL_ADDRESS = Address(0)

MAX_RECORD_KEY = 2**64 - 1

# Fixed region assignment. Never reuse an index for a different structure:
# doing so would interpret one structure's bytes as another's.
COUNTER_REGION = RegionId(0)
INTERACTION_REGION = RegionId(1)
CUSTOMER_REGION = RegionId(2)

# Region ids are stored in one byte; 0xFF marks an unowned bucket.
MAX_REGIONS = 255
UNALLOCATED_REGION = RegionId(0xFF)


def validate_record_key(key: int) -> RecordKey:
    """Check that a key fits the unsigned 64-bit key space.

    Args:
        key: Raw integer key.

    Returns:
        The key as a RecordKey.

    Raises:
        ValueError: If the key is negative or wider than 64 bits.
    """
    if key < 0 or key > MAX_RECORD_KEY:
        raise ValueError(f"Record key out of range: {key}")
    return RecordKey(key)


def validate_region_id(region_id: int) -> RegionId:
    """Check that a region id is addressable by the memory manager."""
    if region_id < 0 or region_id >= MAX_REGIONS:
        raise ValueError(f"Region id must be in [0, {MAX_REGIONS}), got {region_id}")
    return RegionId(region_id)
