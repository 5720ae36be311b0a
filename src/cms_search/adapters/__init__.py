"""Adapters layer - item repository implementations.

Following Cosmic Python Chapter 2: Repository Pattern.
Abstracts where parsed items come from.
"""

from .item_repository import (
    AbstractItemRepository,
    CollectionNotFoundError,
    InMemoryItemRepository,
)


__all__ = [
    "AbstractItemRepository",
    "CollectionNotFoundError",
    "InMemoryItemRepository",
]
