"""Application layer for the record store.

The application layer turns the durable structures of the domain into the
record service use cases.

Exports:
    CrmBackend:
        - CrmBackend: Main entry point, owns the backing memory
    Services:
        - CustomerService: Customer CRUD and search
        - InteractionService: Interaction CRUD
    Storage:
        - RecordStore: Counter plus one ordered map per record kind
        - IdSequence: Id minting shared by both record kinds
"""

from crm_store.application.crm_backend import CrmBackend
from crm_store.application.customer_service import CustomerService
from crm_store.application.id_sequence import IdSequence
from crm_store.application.instrumentation import observed
from crm_store.application.interaction_service import InteractionService
from crm_store.application.record_store import RecordStore

__all__ = [
    "CrmBackend",
    "CustomerService",
    "InteractionService",
    "RecordStore",
    "IdSequence",
    "observed",
]
