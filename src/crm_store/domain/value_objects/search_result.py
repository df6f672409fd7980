"""Paginated search result."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class SearchResult(Generic[T]):
    """One page of matches plus the total number of matches.

    Attributes:
        total_items: Count of every match, not just this page.
        items: The matches on the requested page, in ascending id order.
    """

    total_items: int
    items: list[T] = field(default_factory=list)
