"""Domain layer - items, search results and options.

Pure value objects with no infrastructure dependencies:
- Item and its enriched tag/category/author records
- SearchResult, ScoredItem and PageInfo returned by the engine
- SearchOptions accepted by every search entry point
"""

from cms_search.domain.model import EnrichedRecord, Item, ItemStatus, label_of
from cms_search.domain.search import (
    PageInfo,
    QueryMode,
    ScoredItem,
    SearchEvent,
    SearchEventKind,
    SearchOptions,
    SearchResult,
)


__all__ = [
    "EnrichedRecord",
    "Item",
    "ItemStatus",
    "PageInfo",
    "QueryMode",
    "ScoredItem",
    "SearchEvent",
    "SearchEventKind",
    "SearchOptions",
    "SearchResult",
    "label_of",
]
