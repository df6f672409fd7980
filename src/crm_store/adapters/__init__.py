"""Adapters layer - concrete implementations of port interfaces.

Adapters provide the actual implementations:
- Inbound adapters: Handle incoming requests (REST)
- Outbound adapters: Implement backing memory (file, in-process)
"""

from crm_store.adapters.outbound import FileMemory, InMemoryMemory

__all__ = [
    # Outbound adapters
    "FileMemory",
    "InMemoryMemory",
]
