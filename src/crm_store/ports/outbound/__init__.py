"""Outbound ports (driven side) for the record store.

Exports:
    - Memory: Growable page-granular byte storage
"""

from crm_store.ports.outbound.memory import Memory

__all__ = ["Memory"]
