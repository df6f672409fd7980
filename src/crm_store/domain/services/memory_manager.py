"""Memory manager that partitions one backing memory into isolated regions.

Every durable structure (the id counter and each record map) gets its own
region. A region behaves like an independent growable memory, even though
all regions share a single backing store. Space is handed out in fixed-size
buckets of pages; a region owns an ordered list of buckets, and its virtual
offsets are mapped onto them in order.

Backing Memory Layout:
    ┌─────────────────────────────────────────────────────────────┐
    │ Header (32 bytes)                                            │
    │   magic "MGR" (3B) | version (1B) | allocated buckets (2B)   │
    │   bucket size in pages (2B) | reserved (24B)                 │
    ├─────────────────────────────────────────────────────────────┤
    │ Region sizes: MAX_REGIONS x u64 (pages per region)           │
    ├─────────────────────────────────────────────────────────────┤
    │ Bucket table: MAX_BUCKETS x u8 (owning region, 0xFF = free)  │
    ├─────────────────────────────────────────────────────────────┤
    │ (padding to a page boundary)                                 │
    ├─────────────────────────────────────────────────────────────┤
    │ Bucket 0 │ Bucket 1 │ Bucket 2 │ ...                         │
    └─────────────────────────────────────────────────────────────┘

Buckets are never freed or reassigned, so a region index that has been
used must never be handed to a different structure.
"""

from __future__ import annotations

import struct
import threading

from crm_store.domain.errors import StorageError
from crm_store.domain.value_objects import (
    MAX_REGIONS,
    UNALLOCATED_REGION,
    RegionId,
    validate_region_id,
)
from crm_store.infrastructure.logging import get_logger
from crm_store.ports.outbound import Memory


MANAGER_MAGIC = b"MGR"
MANAGER_VERSION = 1
MANAGER_HEADER_FORMAT = ">3sBHH"  # magic, version, allocated buckets, bucket size
MANAGER_HEADER_RESERVED = 32

MAX_BUCKETS = 32768
DEFAULT_BUCKET_SIZE_IN_PAGES = 16

REGION_SIZES_OFFSET = MANAGER_HEADER_RESERVED
REGION_SIZE_FORMAT = ">Q"
BUCKET_TABLE_OFFSET = REGION_SIZES_OFFSET + MAX_REGIONS * 8
LAYOUT_BYTES = BUCKET_TABLE_OFFSET + MAX_BUCKETS

logger = get_logger(__name__)


def _ceil_div(a: int, b: int) -> int:
    return -(-a // b)


class MemoryManager:
    """Hands out isolated VirtualMemory regions over a shared Memory.

    Thread Safety:
        Growth and address translation are serialized by a re-entrant lock.

    Example:
        >>> manager = MemoryManager.init(InMemoryMemory())
        >>> region = manager.get(RegionId(0))
        >>> region.grow(1)
        0
    """

    def __init__(
        self,
        memory: Memory,
        bucket_size_in_pages: int,
        region_sizes: list[int],
        region_buckets: list[list[int]],
        allocated_buckets: int,
    ) -> None:
        """Use MemoryManager.init() instead of calling this directly."""
        self._memory = memory
        self._bucket_size_in_pages = bucket_size_in_pages
        self._bucket_bytes = bucket_size_in_pages * memory.page_size
        self._layout_pages = _ceil_div(LAYOUT_BYTES, memory.page_size)
        self._region_sizes = region_sizes
        self._region_buckets = region_buckets
        self._allocated_buckets = allocated_buckets
        self._lock = threading.RLock()
        self._regions: dict[RegionId, VirtualMemory] = {}

    @classmethod
    def init(
        cls,
        memory: Memory,
        bucket_size_in_pages: int = DEFAULT_BUCKET_SIZE_IN_PAGES,
    ) -> MemoryManager:
        """Load the region layout from ``memory`` or create a fresh one.

        Args:
            memory: The shared backing memory.
            bucket_size_in_pages: Bucket size for a fresh layout. An existing
                layout keeps the bucket size it was created with.

        Returns:
            A ready MemoryManager.

        Raises:
            StorageError: If the memory holds something that is not a
                compatible layout, or cannot grow to hold the header.
        """
        if not 1 <= bucket_size_in_pages <= 0xFFFF:
            raise ValueError(f"Invalid bucket size: {bucket_size_in_pages}")

        if memory.size() == 0:
            return cls._create(memory, bucket_size_in_pages)

        header = memory.read(0, struct.calcsize(MANAGER_HEADER_FORMAT))
        if header[:3] != MANAGER_MAGIC:
            raise StorageError(f"Backing memory has no region layout (magic {header[:3]!r})")
        return cls._load(memory)

    @classmethod
    def _create(cls, memory: Memory, bucket_size_in_pages: int) -> MemoryManager:
        layout_pages = _ceil_div(LAYOUT_BYTES, memory.page_size)
        if memory.grow(layout_pages) == -1:
            raise StorageError("Backing memory cannot hold the region layout")

        memory.write(BUCKET_TABLE_OFFSET, bytes([UNALLOCATED_REGION]) * MAX_BUCKETS)
        memory.write(
            0,
            struct.pack(
                MANAGER_HEADER_FORMAT,
                MANAGER_MAGIC,
                MANAGER_VERSION,
                0,
                bucket_size_in_pages,
            ),
        )

        logger.info(
            "memory_manager_initialized",
            bucket_size_in_pages=bucket_size_in_pages,
            layout_pages=layout_pages,
        )
        return cls(
            memory,
            bucket_size_in_pages,
            region_sizes=[0] * MAX_REGIONS,
            region_buckets=[[] for _ in range(MAX_REGIONS)],
            allocated_buckets=0,
        )

    @classmethod
    def _load(cls, memory: Memory) -> MemoryManager:
        magic, version, allocated, bucket_size_in_pages = struct.unpack(
            MANAGER_HEADER_FORMAT,
            memory.read(0, struct.calcsize(MANAGER_HEADER_FORMAT)),
        )
        if version != MANAGER_VERSION:
            raise StorageError(f"Unsupported region layout version: {version}")
        if bucket_size_in_pages == 0 or allocated > MAX_BUCKETS:
            raise StorageError("Corrupted region layout header")

        raw_sizes = memory.read(REGION_SIZES_OFFSET, MAX_REGIONS * 8)
        region_sizes = [
            struct.unpack_from(REGION_SIZE_FORMAT, raw_sizes, i * 8)[0]
            for i in range(MAX_REGIONS)
        ]

        table = memory.read(BUCKET_TABLE_OFFSET, allocated)
        region_buckets: list[list[int]] = [[] for _ in range(MAX_REGIONS)]
        for bucket, owner in enumerate(table):
            if owner == UNALLOCATED_REGION:
                raise StorageError(f"Bucket {bucket} is counted as allocated but has no owner")
            region_buckets[owner].append(bucket)

        for region_id, size in enumerate(region_sizes):
            needed = _ceil_div(size, bucket_size_in_pages)
            if needed > len(region_buckets[region_id]):
                raise StorageError(
                    f"Region {region_id} claims {size} pages but owns "
                    f"{len(region_buckets[region_id])} buckets"
                )

        logger.info(
            "memory_manager_loaded",
            bucket_size_in_pages=bucket_size_in_pages,
            allocated_buckets=allocated,
        )
        return cls(memory, bucket_size_in_pages, region_sizes, region_buckets, allocated)

    @property
    def page_size(self) -> int:
        """Return the page size of the backing memory."""
        return self._memory.page_size

    @property
    def bucket_size_in_pages(self) -> int:
        """Return the number of pages per bucket."""
        return self._bucket_size_in_pages

    @property
    def allocated_buckets(self) -> int:
        """Return the number of buckets handed out so far."""
        return self._allocated_buckets

    def get(self, region_id: int) -> VirtualMemory:
        """Return the handle for a region, creating it on first use.

        Args:
            region_id: Fixed region index.

        Returns:
            The region's VirtualMemory. Repeated calls return the same object.
        """
        rid = validate_region_id(region_id)
        with self._lock:
            region = self._regions.get(rid)
            if region is None:
                region = VirtualMemory(self, rid)
                self._regions[rid] = region
            return region

    def region_size(self, region_id: RegionId) -> int:
        """Return the size of a region in pages."""
        return self._region_sizes[region_id]

    def grow_region(self, region_id: RegionId, pages: int) -> int:
        """Grow a region by ``pages`` pages.

        Returns:
            The previous region size in pages, or -1 when there are not
            enough free buckets or the backing memory cannot grow.
        """
        if pages < 0:
            raise ValueError(f"Cannot grow by a negative page count: {pages}")

        with self._lock:
            previous = self._region_sizes[region_id]
            new_size = previous + pages
            owned = self._region_buckets[region_id]
            missing = _ceil_div(new_size, self._bucket_size_in_pages) - len(owned)

            if missing > 0:
                if self._allocated_buckets + missing > MAX_BUCKETS:
                    return -1

                needed_pages = (
                    self._layout_pages
                    + (self._allocated_buckets + missing) * self._bucket_size_in_pages
                )
                shortfall = needed_pages - self._memory.size()
                if shortfall > 0 and self._memory.grow(shortfall) == -1:
                    return -1

                first = self._allocated_buckets
                new_buckets = list(range(first, first + missing))
                self._memory.write(BUCKET_TABLE_OFFSET + first, bytes([region_id]) * missing)
                self._allocated_buckets += missing
                self._write_allocated_count()
                owned.extend(new_buckets)

            self._region_sizes[region_id] = new_size
            self._memory.write(
                REGION_SIZES_OFFSET + region_id * 8,
                struct.pack(REGION_SIZE_FORMAT, new_size),
            )

            logger.debug(
                "region_grown",
                region_id=region_id,
                previous_pages=previous,
                pages=new_size,
                new_buckets=max(missing, 0),
            )
            return previous

    def _write_allocated_count(self) -> None:
        self._memory.write(4, struct.pack(">H", self._allocated_buckets))

    def _translate(self, region_id: RegionId, offset: int, length: int) -> list[tuple[int, int]]:
        """Map a region range to (physical offset, length) spans."""
        limit = self._region_sizes[region_id] * self._memory.page_size
        if offset < 0 or length < 0 or offset + length > limit:
            raise ValueError(
                f"Region {region_id} access out of bounds: "
                f"offset={offset} length={length} size={limit}"
            )

        base = self._layout_pages * self._memory.page_size
        buckets = self._region_buckets[region_id]
        spans: list[tuple[int, int]] = []
        while length > 0:
            index, within = divmod(offset, self._bucket_bytes)
            chunk = min(length, self._bucket_bytes - within)
            spans.append((base + buckets[index] * self._bucket_bytes + within, chunk))
            offset += chunk
            length -= chunk
        return spans

    def read_region(self, region_id: RegionId, offset: int, length: int) -> bytes:
        """Read bytes from a region."""
        with self._lock:
            return b"".join(
                self._memory.read(phys, chunk)
                for phys, chunk in self._translate(region_id, offset, length)
            )

    def write_region(self, region_id: RegionId, offset: int, data: bytes) -> None:
        """Write bytes into a region."""
        with self._lock:
            position = 0
            for phys, chunk in self._translate(region_id, offset, len(data)):
                self._memory.write(phys, data[position : position + chunk])
                position += chunk


class VirtualMemory:
    """A region of the backing memory that behaves like its own Memory.

    Offsets start at zero for every region, and growing one region never
    moves or overlaps another.
    """

    def __init__(self, manager: MemoryManager, region_id: RegionId) -> None:
        self._manager = manager
        self._region_id = region_id

    @property
    def region_id(self) -> RegionId:
        """Return the region index."""
        return self._region_id

    @property
    def page_size(self) -> int:
        """Return the page size in bytes."""
        return self._manager.page_size

    def size(self) -> int:
        """Return the region size in pages."""
        return self._manager.region_size(self._region_id)

    def grow(self, pages: int) -> int:
        """Grow the region, returning the previous size or -1."""
        return self._manager.grow_region(self._region_id, pages)

    def read(self, offset: int, length: int) -> bytes:
        """Read bytes from the region."""
        return self._manager.read_region(self._region_id, offset, length)

    def write(self, offset: int, data: bytes) -> None:
        """Write bytes into the region."""
        self._manager.write_region(self._region_id, offset, data)

    def sync(self) -> None:
        """Regions are flushed together with the backing memory."""

    def close(self) -> None:
        """Regions are closed together with the backing memory."""

    def __repr__(self) -> str:
        return f"VirtualMemory(region={self._region_id}, pages={self.size()})"


def ensure_capacity(memory: Memory, required_bytes: int) -> None:
    """Grow ``memory`` until it holds at least ``required_bytes`` bytes.

    Raises:
        StorageError: If the memory cannot grow far enough.
    """
    have = memory.size() * memory.page_size
    if have >= required_bytes:
        return
    pages = _ceil_div(required_bytes - have, memory.page_size)
    if memory.grow(pages) == -1:
        raise StorageError(
            f"Out of storage: cannot grow by {pages} pages to hold {required_bytes} bytes"
        )
