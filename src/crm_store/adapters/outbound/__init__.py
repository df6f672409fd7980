"""Outbound adapters (driven side) for the record store.

Exports:
    - FileMemory: File-backed Memory with a validated header page
    - InMemoryMemory: Volatile Memory for tests and development
"""

from crm_store.adapters.outbound.file_memory import FileMemory
from crm_store.adapters.outbound.in_memory_memory import InMemoryMemory

__all__ = ["FileMemory", "InMemoryMemory"]
