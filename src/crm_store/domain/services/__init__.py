"""Domain services for the record store.

Exports:
    Regions:
        - MemoryManager: Partitions the backing memory into regions
        - VirtualMemory: One isolated, growable region
    Durable structures:
        - DurableCell: Persisted u64 value
        - DurableBTreeMap: Persisted ordered map of bounded-size records
    Encoding:
        - BoundedCodec: Size-checked record serialization
    Validation:
        - is_valid_email, is_valid_phone, is_valid_contact
"""

from crm_store.domain.services.codec import DEFAULT_MAX_RECORD_SIZE, BoundedCodec
from crm_store.domain.services.durable_btree import DEFAULT_MAX_KEYS, DurableBTreeMap
from crm_store.domain.services.durable_cell import DurableCell
from crm_store.domain.services.memory_manager import (
    DEFAULT_BUCKET_SIZE_IN_PAGES,
    MemoryManager,
    VirtualMemory,
    ensure_capacity,
)
from crm_store.domain.services.validation import (
    is_valid_contact,
    is_valid_email,
    is_valid_phone,
)

__all__ = [
    "MemoryManager",
    "VirtualMemory",
    "ensure_capacity",
    "DEFAULT_BUCKET_SIZE_IN_PAGES",
    "DurableCell",
    "DurableBTreeMap",
    "DEFAULT_MAX_KEYS",
    "BoundedCodec",
    "DEFAULT_MAX_RECORD_SIZE",
    "is_valid_email",
    "is_valid_phone",
    "is_valid_contact",
]
