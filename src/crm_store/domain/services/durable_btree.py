"""Durable ordered map backed by a B+Tree in one memory region.

The map stores u64 keys and bounded-size encoded values. Every node lives
in a fixed-size chunk of the region, so nodes can be rewritten in place and
freed chunks can be reused without fragmentation.

Key features:
    - O(log n) get, insert (upsert) and remove
    - Deletion rebalances by borrowing from or merging with a sibling
    - Ordered full scans over linked leaves, returned as a snapshot
    - Survives restarts: the header and every node are written through

Region Layout:
    ┌─────────────────────────────────────────────────────────────┐
    │ Header (64 bytes)                                            │
    │   magic "BTR" | version | max value size | max keys          │
    │   root address | length | chunk count | free list head       │
    ├─────────────────────────────────────────────────────────────┤
    │ Chunk 0 │ Chunk 1 │ Chunk 2 │ ...  (one node per chunk)      │
    └─────────────────────────────────────────────────────────────┘

Freed chunks form a singly linked list: the first 8 bytes of a free chunk
hold the address of the next free chunk.

References:
    - Bayer & McCreight, "B+Trees" (1972)
    - Cormen et al., "Introduction to Algorithms", Chapter 18
"""

from __future__ import annotations

import bisect
import struct
import threading
from typing import Generic, Iterator, TypeVar

from crm_store.domain.entities.btree_node import (
    BTreeInternalNode,
    BTreeLeafNode,
    BTreeNode,
    node_chunk_size,
    node_from_bytes,
)
from crm_store.domain.errors import StorageError
from crm_store.domain.services.codec import BoundedCodec, Storable
from crm_store.domain.services.memory_manager import ensure_capacity
from crm_store.domain.value_objects import (
    NULL_ADDRESS,
    Address,
    validate_record_key,
)
from crm_store.ports.outbound import Memory


MAP_MAGIC = b"BTR"
MAP_VERSION = 1
# magic, version, max_value_size, max_keys, root, length, chunk_count, free_head
MAP_HEADER_FORMAT = ">3sBIHQQQQ"
MAP_HEADER_RESERVED = 64

DEFAULT_MAX_KEYS = 11
MIN_MAX_KEYS = 3
MAX_MAX_KEYS = 255

V = TypeVar("V", bound=Storable)


class DurableBTreeMap(Generic[V]):
    """A persistent key -> record map with ordered iteration.

    Thread Safety:
        All public methods are serialized by a re-entrant lock. Iteration
        works on a snapshot, so mutating the map while consuming an
        iterator is safe.

    Example:
        >>> customers = DurableBTreeMap.init(region, BoundedCodec(Customer))
        >>> customers.insert(1, customer)
        >>> customers.get(1) == customer
        True
    """

    def __init__(
        self,
        memory: Memory,
        codec: BoundedCodec[V],
        max_keys: int,
        root: Address,
        length: int,
        chunk_count: int,
        free_head: Address,
    ) -> None:
        """Use DurableBTreeMap.init() instead of calling this directly."""
        self._memory = memory
        self._codec = codec
        self._max_keys = max_keys
        self._min_keys = max_keys // 2
        self._chunk_size = node_chunk_size(max_keys, codec.max_size)
        self._root = root
        self._length = length
        self._chunk_count = chunk_count
        self._free_head = free_head
        self._lock = threading.RLock()

    @classmethod
    def init(
        cls,
        memory: Memory,
        codec: BoundedCodec[V],
        max_keys: int = DEFAULT_MAX_KEYS,
    ) -> DurableBTreeMap[V]:
        """Load the map stored in ``memory`` or create an empty one.

        Args:
            memory: The region this map owns.
            codec: Codec for the value type; its max_size fixes chunk size.
            max_keys: Maximum keys per node.

        Raises:
            StorageError: If the region holds something else, or a map
                created with a different max_keys or value size.
        """
        if not MIN_MAX_KEYS <= max_keys <= MAX_MAX_KEYS:
            raise ValueError(f"max_keys must be in [{MIN_MAX_KEYS}, {MAX_MAX_KEYS}], got {max_keys}")

        if memory.size() == 0:
            tree = cls(memory, codec, max_keys, NULL_ADDRESS, 0, 0, NULL_ADDRESS)
            tree._save_header()
            return tree

        header = memory.read(0, struct.calcsize(MAP_HEADER_FORMAT))
        (
            magic,
            version,
            max_value_size,
            stored_max_keys,
            root,
            length,
            chunk_count,
            free_head,
        ) = struct.unpack(MAP_HEADER_FORMAT, header)

        if magic != MAP_MAGIC:
            raise StorageError(f"Region does not hold an ordered map (magic {magic!r})")
        if version != MAP_VERSION:
            raise StorageError(f"Unsupported ordered map version: {version}")
        if max_value_size != codec.max_size:
            raise StorageError(
                f"Value size mismatch: map has {max_value_size}, codec allows {codec.max_size}"
            )
        if stored_max_keys != max_keys:
            raise StorageError(
                f"Node capacity mismatch: map has {stored_max_keys}, expected {max_keys}"
            )

        return cls(
            memory,
            codec,
            max_keys,
            Address(root),
            length,
            chunk_count,
            Address(free_head),
        )

    # ------------------------------------------------------------------
    # Header and chunk management
    # ------------------------------------------------------------------

    def _save_header(self) -> None:
        ensure_capacity(self._memory, MAP_HEADER_RESERVED)
        self._memory.write(
            0,
            struct.pack(
                MAP_HEADER_FORMAT,
                MAP_MAGIC,
                MAP_VERSION,
                self._codec.max_size,
                self._max_keys,
                self._root,
                self._length,
                self._chunk_count,
                self._free_head,
            ),
        )

    def _allocate_chunk(self) -> Address:
        """Take a chunk from the free list or append a new one."""
        if self._free_head != NULL_ADDRESS:
            address = self._free_head
            (next_free,) = struct.unpack(">Q", self._memory.read(address, 8))
            self._free_head = Address(next_free)
            return address

        address = Address(MAP_HEADER_RESERVED + self._chunk_count * self._chunk_size)
        ensure_capacity(self._memory, address + self._chunk_size)
        self._chunk_count += 1
        return address

    def _split_chunk_count(self, path: list[tuple[BTreeInternalNode, int]]) -> int:
        """Chunks a leaf split under ``path`` uses: one per full ancestor plus a new root."""
        count = 1
        for parent, _ in reversed(path):
            if parent.num_keys < self._max_keys:
                return count
            count += 1
        return count + 1

    def _reserve_chunks(self, count: int) -> list[Address]:
        """Allocate ``count`` chunks up front, or none at all.

        Raises:
            StorageError: If the memory cannot hold them. Chunks taken before
                the failure go back on the free list.
        """
        reserved: list[Address] = []
        try:
            for _ in range(count):
                reserved.append(self._allocate_chunk())
        except StorageError:
            for address in reversed(reserved):
                self._free_chunk(address)
            raise
        return reserved

    def _free_chunk(self, address: Address) -> None:
        """Push a chunk onto the free list."""
        self._memory.write(address, struct.pack(">Q", self._free_head))
        self._free_head = address

    def _load(self, address: Address) -> BTreeNode:
        try:
            return node_from_bytes(address, self._memory.read(address, self._chunk_size))
        except ValueError as e:
            raise StorageError(f"Corrupted node at {address}: {e}") from e

    def _store(self, node: BTreeNode) -> None:
        self._memory.write(node.address, node.to_bytes())

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _find_leaf(self, key: int) -> tuple[list[tuple[BTreeInternalNode, int]], BTreeLeafNode]:
        """Descend from the root to the leaf that should contain ``key``.

        Returns:
            The path of (internal node, child index taken) pairs from the
            root down, and the leaf.
        """
        path: list[tuple[BTreeInternalNode, int]] = []
        node = self._load(self._root)
        while not node.is_leaf:
            assert isinstance(node, BTreeInternalNode)
            index = bisect.bisect_right(node.keys, key)
            path.append((node, index))
            node = self._load(node.children[index])
        assert isinstance(node, BTreeLeafNode)
        return path, node

    def get(self, key: int) -> V | None:
        """Return the record stored under ``key``, or None."""
        validate_record_key(key)
        with self._lock:
            if self._root == NULL_ADDRESS:
                return None
            _, leaf = self._find_leaf(key)
            index = bisect.bisect_left(leaf.keys, key)
            if index < len(leaf.keys) and leaf.keys[index] == key:
                return self._codec.decode(leaf.values[index])
            return None

    def __contains__(self, key: object) -> bool:
        return isinstance(key, int) and self.get(key) is not None

    def __len__(self) -> int:
        return self._length

    # ------------------------------------------------------------------
    # Insert
    # ------------------------------------------------------------------

    def insert(self, key: int, record: V) -> V | None:
        """Insert or replace the record under ``key``.

        Returns:
            The previous record, or None if the key was absent.

        Raises:
            RecordTooLargeError: If the record encodes past the codec limit.
            StorageError: If the region cannot grow.
        """
        validate_record_key(key)
        value = self._codec.encode(record)

        with self._lock:
            if self._root == NULL_ADDRESS:
                leaf = BTreeLeafNode(address=self._allocate_chunk(), keys=[key], values=[value])
                self._store(leaf)
                self._root = leaf.address
                self._length = 1
                self._save_header()
                return None

            path, leaf = self._find_leaf(key)
            index = bisect.bisect_left(leaf.keys, key)

            if index < len(leaf.keys) and leaf.keys[index] == key:
                previous = leaf.values[index]
                leaf.values[index] = value
                self._store(leaf)
                return self._codec.decode(previous)

            leaf.keys.insert(index, key)
            leaf.values.insert(index, value)

            if leaf.num_keys > self._max_keys:
                spare = self._reserve_chunks(self._split_chunk_count(path))
                self._split_leaf(path, leaf, spare)
            else:
                self._store(leaf)

            self._length += 1
            self._save_header()
            return None

    def _split_leaf(
        self,
        path: list[tuple[BTreeInternalNode, int]],
        leaf: BTreeLeafNode,
        spare: list[Address],
    ) -> None:
        """Split an overfull leaf and push the separator up the path."""
        mid = len(leaf.keys) // 2
        new_leaf = BTreeLeafNode(
            address=spare.pop(),
            keys=leaf.keys[mid:],
            values=leaf.values[mid:],
            next_address=leaf.next_address,
        )
        leaf.keys = leaf.keys[:mid]
        leaf.values = leaf.values[:mid]
        leaf.next_address = new_leaf.address

        self._store(leaf)
        self._store(new_leaf)
        self._insert_into_parent(path, leaf.address, new_leaf.keys[0], new_leaf.address, spare)

    def _insert_into_parent(
        self,
        path: list[tuple[BTreeInternalNode, int]],
        left: Address,
        separator: int,
        right: Address,
        spare: list[Address],
    ) -> None:
        """Insert a separator after a split, splitting ancestors as needed."""
        while path:
            parent, index = path.pop()
            parent.keys.insert(index, separator)
            parent.children.insert(index + 1, right)

            if parent.num_keys <= self._max_keys:
                self._store(parent)
                return

            # Split the internal node; the middle key moves up
            mid = len(parent.keys) // 2
            separator = parent.keys[mid]
            new_node = BTreeInternalNode(
                address=spare.pop(),
                keys=parent.keys[mid + 1 :],
                children=parent.children[mid + 1 :],
            )
            parent.keys = parent.keys[:mid]
            parent.children = parent.children[: mid + 1]
            self._store(parent)
            self._store(new_node)
            left, right = parent.address, new_node.address

        new_root = BTreeInternalNode(
            address=spare.pop(),
            keys=[separator],
            children=[left, right],
        )
        self._store(new_root)
        self._root = new_root.address

    # ------------------------------------------------------------------
    # Remove
    # ------------------------------------------------------------------

    def remove(self, key: int) -> V | None:
        """Remove the record under ``key``.

        Returns:
            The removed record, or None if the key was absent.
        """
        validate_record_key(key)
        with self._lock:
            if self._root == NULL_ADDRESS:
                return None

            path, leaf = self._find_leaf(key)
            index = bisect.bisect_left(leaf.keys, key)
            if index >= len(leaf.keys) or leaf.keys[index] != key:
                return None

            leaf.keys.pop(index)
            previous = leaf.values.pop(index)
            self._length -= 1

            self._rebalance(path, leaf)
            self._save_header()
            return self._codec.decode(previous)

    def _rebalance(
        self,
        path: list[tuple[BTreeInternalNode, int]],
        node: BTreeNode,
    ) -> None:
        """Restore minimum occupancy from ``node`` upwards after a removal."""
        while True:
            if not path:
                self._shrink_root(node)
                return

            if node.num_keys >= self._min_keys:
                self._store(node)
                return

            parent, index = path.pop()

            if index > 0:
                left = self._load(parent.children[index - 1])
                if left.num_keys > self._min_keys:
                    self._borrow_from_left(parent, index, left, node)
                    return

            if index < len(parent.children) - 1:
                right = self._load(parent.children[index + 1])
                if right.num_keys > self._min_keys:
                    self._borrow_from_right(parent, index, node, right)
                    return

            if index > 0:
                self._merge(parent, index - 1, left, node)
            else:
                self._merge(parent, index, node, right)
            node = parent

    def _shrink_root(self, root: BTreeNode) -> None:
        """Drop an empty root, promoting its only child if it has one."""
        if root.num_keys > 0:
            self._store(root)
            return

        if isinstance(root, BTreeLeafNode):
            self._free_chunk(root.address)
            self._root = NULL_ADDRESS
            return

        self._root = root.children[0]
        self._free_chunk(root.address)

    def _borrow_from_left(
        self,
        parent: BTreeInternalNode,
        index: int,
        left: BTreeNode,
        node: BTreeNode,
    ) -> None:
        if isinstance(node, BTreeLeafNode):
            assert isinstance(left, BTreeLeafNode)
            node.keys.insert(0, left.keys.pop())
            node.values.insert(0, left.values.pop())
            parent.keys[index - 1] = node.keys[0]
        else:
            assert isinstance(left, BTreeInternalNode)
            node.keys.insert(0, parent.keys[index - 1])
            node.children.insert(0, left.children.pop())
            parent.keys[index - 1] = left.keys.pop()

        self._store(left)
        self._store(node)
        self._store(parent)

    def _borrow_from_right(
        self,
        parent: BTreeInternalNode,
        index: int,
        node: BTreeNode,
        right: BTreeNode,
    ) -> None:
        if isinstance(node, BTreeLeafNode):
            assert isinstance(right, BTreeLeafNode)
            node.keys.append(right.keys.pop(0))
            node.values.append(right.values.pop(0))
            parent.keys[index] = right.keys[0]
        else:
            assert isinstance(right, BTreeInternalNode)
            node.keys.append(parent.keys[index])
            node.children.append(right.children.pop(0))
            parent.keys[index] = right.keys.pop(0)

        self._store(node)
        self._store(right)
        self._store(parent)

    def _merge(
        self,
        parent: BTreeInternalNode,
        separator_index: int,
        left: BTreeNode,
        right: BTreeNode,
    ) -> None:
        """Fold ``right`` into ``left`` and drop their separator from ``parent``."""
        if isinstance(left, BTreeLeafNode):
            assert isinstance(right, BTreeLeafNode)
            left.keys.extend(right.keys)
            left.values.extend(right.values)
            left.next_address = right.next_address
        else:
            assert isinstance(right, BTreeInternalNode)
            left.keys.append(parent.keys[separator_index])
            left.keys.extend(right.keys)
            left.children.extend(right.children)

        parent.keys.pop(separator_index)
        parent.children.pop(separator_index + 1)

        self._store(left)
        self._free_chunk(right.address)

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def _leftmost_leaf(self) -> BTreeLeafNode:
        node = self._load(self._root)
        while not node.is_leaf:
            assert isinstance(node, BTreeInternalNode)
            node = self._load(node.children[0])
        assert isinstance(node, BTreeLeafNode)
        return node

    def items(self) -> list[tuple[int, V]]:
        """Return every (key, record) pair in ascending key order.

        The list is a snapshot taken under the lock; later mutations do not
        affect it.
        """
        with self._lock:
            if self._root == NULL_ADDRESS:
                return []

            entries: list[tuple[int, V]] = []
            leaf: BTreeLeafNode | None = self._leftmost_leaf()
            while leaf is not None:
                entries.extend(
                    (key, self._codec.decode(value))
                    for key, value in zip(leaf.keys, leaf.values)
                )
                if leaf.next_address == NULL_ADDRESS:
                    break
                next_node = self._load(leaf.next_address)
                leaf = next_node if isinstance(next_node, BTreeLeafNode) else None
            return entries

    def iter(self) -> Iterator[tuple[int, V]]:
        """Iterate over a snapshot of the map in ascending key order."""
        return iter(self.items())

    def __iter__(self) -> Iterator[tuple[int, V]]:
        return self.iter()

    def keys(self) -> list[int]:
        """Return all keys in ascending order."""
        return [key for key, _ in self.items()]

    @property
    def chunk_count(self) -> int:
        """Return the number of node chunks ever carved from the region."""
        return self._chunk_count

    @property
    def height(self) -> int:
        """Return the number of levels (0 for an empty map)."""
        with self._lock:
            if self._root == NULL_ADDRESS:
                return 0
            height = 1
            node = self._load(self._root)
            while not node.is_leaf:
                assert isinstance(node, BTreeInternalNode)
                node = self._load(node.children[0])
                height += 1
            return height

    def __repr__(self) -> str:
        return (
            f"DurableBTreeMap(len={self._length}, max_keys={self._max_keys}, "
            f"chunks={self._chunk_count})"
        )
