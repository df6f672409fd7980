"""Domain entities for the record store.

Exports:
    Records:
        - Customer: A stored customer
        - Interaction: A stored interaction with a customer
        - InteractionPayload: Fields supplied when creating/updating one

    B+Tree Nodes:
        - BTreeLeafNode: Leaf node storing key/value pairs
        - BTreeInternalNode: Internal node with separator keys
        - NodeType: Enum for node types
"""

from crm_store.domain.entities.btree_node import (
    BTreeInternalNode,
    BTreeLeafNode,
    BTreeNode,
    NodeType,
    node_chunk_size,
    node_from_bytes,
)
from crm_store.domain.entities.customer import Customer
from crm_store.domain.entities.interaction import Interaction, InteractionPayload

__all__ = [
    # Records
    "Customer",
    "Interaction",
    "InteractionPayload",
    # B+Tree Nodes
    "BTreeLeafNode",
    "BTreeInternalNode",
    "BTreeNode",
    "NodeType",
    "node_chunk_size",
    "node_from_bytes",
]
