"""Value objects for the record store domain.

Value objects are immutable types that represent domain concepts.

Exports:
    Identifiers:
        - RegionId: Index of a memory region in the backing store
        - RecordKey: Durable customer/interaction identifier
        - Address: Byte offset within a region
        - COUNTER_REGION, INTERACTION_REGION, CUSTOMER_REGION: Fixed layout

    Search:
        - SearchResult: One page of matches plus the total match count
"""

from crm_store.domain.value_objects.identifiers import (
    COUNTER_REGION,
    CUSTOMER_REGION,
    INTERACTION_REGION,
    MAX_RECORD_KEY,
    MAX_REGIONS,
    NULL_ADDRESS,
    UNALLOCATED_REGION,
    Address,
    RecordKey,
    RegionId,
    validate_record_key,
    validate_region_id,
)
from crm_store.domain.value_objects.search_result import SearchResult

__all__ = [
    "RegionId",
    "RecordKey",
    "Address",
    "NULL_ADDRESS",
    "MAX_RECORD_KEY",
    "MAX_REGIONS",
    "UNALLOCATED_REGION",
    "COUNTER_REGION",
    "INTERACTION_REGION",
    "CUSTOMER_REGION",
    "validate_record_key",
    "validate_region_id",
    # Search
    "SearchResult",
]
