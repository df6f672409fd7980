"""The set of durable structures behind the record service.

RecordStore owns the region layout: region 0 holds the id counter, region 1
the interaction map and region 2 the customer map. Opening a store on a
memory that already holds these structures recovers them unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass

from crm_store.application.id_sequence import IdSequence
from crm_store.domain.entities import Customer, Interaction
from crm_store.domain.services import (
    DEFAULT_BUCKET_SIZE_IN_PAGES,
    DEFAULT_MAX_KEYS,
    DEFAULT_MAX_RECORD_SIZE,
    BoundedCodec,
    DurableBTreeMap,
    DurableCell,
    MemoryManager,
)
from crm_store.domain.value_objects import (
    COUNTER_REGION,
    CUSTOMER_REGION,
    INTERACTION_REGION,
)
from crm_store.infrastructure.logging import get_logger
from crm_store.ports.outbound import Memory

logger = get_logger(__name__)


@dataclass
class RecordStore:
    """Durable counter plus one ordered map per entity kind.

    Attributes:
        memory: The shared backing memory.
        regions: The memory manager partitioning ``memory``.
        ids: Shared id sequence over the counter region.
        customers: Customer map, keyed by customer id.
        interactions: Interaction map, keyed by interaction id.
    """

    memory: Memory
    regions: MemoryManager
    ids: IdSequence
    customers: DurableBTreeMap[Customer]
    interactions: DurableBTreeMap[Interaction]

    @classmethod
    def open(
        cls,
        memory: Memory,
        *,
        bucket_size_in_pages: int = DEFAULT_BUCKET_SIZE_IN_PAGES,
        max_record_size: int = DEFAULT_MAX_RECORD_SIZE,
        max_keys: int = DEFAULT_MAX_KEYS,
    ) -> RecordStore:
        """Initialize or recover every structure on ``memory``.

        Raises:
            StorageError: If the memory holds an incompatible layout.
        """
        regions = MemoryManager.init(memory, bucket_size_in_pages)

        counter = DurableCell.init(regions.get(COUNTER_REGION), default=0)
        interactions = DurableBTreeMap.init(
            regions.get(INTERACTION_REGION),
            BoundedCodec(Interaction, max_record_size),
            max_keys,
        )
        customers = DurableBTreeMap.init(
            regions.get(CUSTOMER_REGION),
            BoundedCodec(Customer, max_record_size),
            max_keys,
        )

        logger.info(
            "record_store_opened",
            last_id=counter.get(),
            customers=len(customers),
            interactions=len(interactions),
        )
        return cls(
            memory=memory,
            regions=regions,
            ids=IdSequence(counter),
            customers=customers,
            interactions=interactions,
        )
