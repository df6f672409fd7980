"""B+Tree node structures for the durable ordered map.

Key properties:
    - All values stored in leaf nodes
    - Internal nodes only contain separator keys and child addresses
    - Leaf nodes are linked left to right for ordered scans
    - Every node occupies one fixed-size chunk in its region

References:
    - Bayer & McCreight, "B+Trees" (1972)
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum

from crm_store.domain.value_objects import NULL_ADDRESS, Address


class NodeType(IntEnum):
    """Type of B+Tree node."""

    INTERNAL = 0
    LEAF = 1


# B+Tree node header format (16 bytes):
# - node_type: 1 byte
# - num_keys: 2 bytes
# - next_address: 8 bytes (leaf sibling, NULL_ADDRESS if last)
# - reserved: 5 bytes
NODE_HEADER_SIZE = 16
NODE_HEADER_FORMAT = ">BHQ5x"

KEY_FORMAT = ">Q"
KEY_SIZE = 8
ADDRESS_FORMAT = ">Q"
ADDRESS_SIZE = 8
VALUE_LEN_FORMAT = ">I"
VALUE_LEN_SIZE = 4


def node_chunk_size(max_keys: int, max_value_size: int) -> int:
    """Return the chunk size that fits the largest leaf or internal node."""
    leaf = max_keys * (KEY_SIZE + VALUE_LEN_SIZE + max_value_size)
    internal = max_keys * KEY_SIZE + (max_keys + 1) * ADDRESS_SIZE
    return NODE_HEADER_SIZE + max(leaf, internal)


@dataclass
class BTreeLeafNode:
    """A leaf node holding sorted keys and their encoded values.

    Layout after header:
        [key1][len1][value1][key2][len2][value2]...

    Attributes:
        address: Chunk address of this node in its region.
        keys: Sorted keys.
        values: Encoded values, parallel to keys.
        next_address: Address of the right sibling leaf.
    """

    address: Address
    keys: list[int] = field(default_factory=list)
    values: list[bytes] = field(default_factory=list)
    next_address: Address = NULL_ADDRESS

    @property
    def is_leaf(self) -> bool:
        """Return True since this is a leaf node."""
        return True

    @property
    def num_keys(self) -> int:
        """Return the number of keys in this node."""
        return len(self.keys)

    def to_bytes(self) -> bytes:
        """Serialize the node (header + entries)."""
        parts = [struct.pack(NODE_HEADER_FORMAT, NodeType.LEAF, len(self.keys), self.next_address)]
        for key, value in zip(self.keys, self.values):
            parts.append(struct.pack(KEY_FORMAT, key))
            parts.append(struct.pack(VALUE_LEN_FORMAT, len(value)))
            parts.append(value)
        return b"".join(parts)


@dataclass
class BTreeInternalNode:
    """An internal node holding separator keys and child addresses.

    A node with N keys has N+1 children. All keys in children[i] are less
    than keys[i], and all keys in children[i+1] are >= keys[i].

    Layout after header:
        [key1]...[keyN][child0]...[childN]
    """

    address: Address
    keys: list[int] = field(default_factory=list)
    children: list[Address] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        """Return False since this is an internal node."""
        return False

    @property
    def num_keys(self) -> int:
        """Return the number of keys in this node."""
        return len(self.keys)

    def to_bytes(self) -> bytes:
        """Serialize the node (header + keys + children)."""
        parts = [struct.pack(NODE_HEADER_FORMAT, NodeType.INTERNAL, len(self.keys), NULL_ADDRESS)]
        parts.extend(struct.pack(KEY_FORMAT, key) for key in self.keys)
        parts.extend(struct.pack(ADDRESS_FORMAT, child) for child in self.children)
        return b"".join(parts)


# Union type for B+Tree nodes
BTreeNode = BTreeLeafNode | BTreeInternalNode


def node_from_bytes(address: Address, data: bytes) -> BTreeNode:
    """Deserialize a node read from ``address``.

    Raises:
        ValueError: If the chunk holds an unknown node type or is truncated.
    """
    node_type, num_keys, next_address = struct.unpack_from(NODE_HEADER_FORMAT, data, 0)
    offset = NODE_HEADER_SIZE

    if node_type == NodeType.LEAF:
        leaf = BTreeLeafNode(address=address, next_address=Address(next_address))
        for _ in range(num_keys):
            (key,) = struct.unpack_from(KEY_FORMAT, data, offset)
            (length,) = struct.unpack_from(VALUE_LEN_FORMAT, data, offset + KEY_SIZE)
            start = offset + KEY_SIZE + VALUE_LEN_SIZE
            if start + length > len(data):
                raise ValueError(f"Truncated value in leaf node at {address}")
            leaf.keys.append(key)
            leaf.values.append(bytes(data[start : start + length]))
            offset = start + length
        return leaf

    if node_type == NodeType.INTERNAL:
        node = BTreeInternalNode(address=address)
        for _ in range(num_keys):
            node.keys.append(struct.unpack_from(KEY_FORMAT, data, offset)[0])
            offset += KEY_SIZE
        for _ in range(num_keys + 1):
            node.children.append(Address(struct.unpack_from(ADDRESS_FORMAT, data, offset)[0]))
            offset += ADDRESS_SIZE
        return node

    raise ValueError(f"Unknown node type {node_type} at address {address}")
