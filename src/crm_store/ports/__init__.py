"""Ports layer - protocols the domain depends on.

Outbound ports describe the infrastructure the domain needs (backing
memory). Adapters in ``crm_store.adapters`` implement them.
"""

from crm_store.ports.outbound import Memory

__all__ = ["Memory"]
