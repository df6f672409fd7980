"""Binary field encoding shared by the entity serializers.

Layout conventions (all big-endian):
    - integers: u64
    - strings: u32 byte length + UTF-8 bytes
    - optional u64: 1 flag byte (0 = absent, 1 = present) + u64
"""

from __future__ import annotations

import struct

U64_FORMAT = ">Q"
U64_SIZE = 8
STR_LEN_FORMAT = ">I"
STR_LEN_SIZE = 4
OPTIONAL_U64_FORMAT = ">BQ"
OPTIONAL_U64_SIZE = 9


def pack_string(value: str) -> bytes:
    """Encode a string as length-prefixed UTF-8."""
    raw = value.encode("utf-8")
    return struct.pack(STR_LEN_FORMAT, len(raw)) + raw


def unpack_string(data: bytes, offset: int) -> tuple[str, int]:
    """Decode a length-prefixed string.

    Returns:
        The string and the offset just past it.

    Raises:
        ValueError: If the data is truncated.
    """
    if offset + STR_LEN_SIZE > len(data):
        raise ValueError("Truncated string length")
    (length,) = struct.unpack_from(STR_LEN_FORMAT, data, offset)
    start = offset + STR_LEN_SIZE
    end = start + length
    if end > len(data):
        raise ValueError(f"Truncated string: need {length} bytes, have {len(data) - start}")
    return data[start:end].decode("utf-8"), end


def pack_optional_u64(value: int | None) -> bytes:
    """Encode an optional unsigned integer."""
    if value is None:
        return struct.pack(OPTIONAL_U64_FORMAT, 0, 0)
    return struct.pack(OPTIONAL_U64_FORMAT, 1, value)


def unpack_optional_u64(data: bytes, offset: int) -> tuple[int | None, int]:
    """Decode an optional unsigned integer."""
    if offset + OPTIONAL_U64_SIZE > len(data):
        raise ValueError("Truncated optional integer")
    flag, value = struct.unpack_from(OPTIONAL_U64_FORMAT, data, offset)
    return (value if flag else None), offset + OPTIONAL_U64_SIZE
