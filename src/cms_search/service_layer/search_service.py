"""Search service orchestration layer.

Keeps one `SearchEngine` per collection, loads items through the item
repository and runs the CPU-bound search work on worker threads so async
callers never block their event loop. Clearing the repository cache drops
the affected engines' index snapshots.
"""

import asyncio
from collections.abc import Sequence
import logging
import threading
from typing import Any

from cms_search.adapters.item_repository import AbstractItemRepository
from cms_search.config import SearchConfig, Settings
from cms_search.domain.model import Item
from cms_search.domain.search import SearchEvent, SearchOptions, SearchResult
from cms_search.observability.context import bind_collection
from cms_search.observability.logging import configure_logging
from cms_search.search.engine import SearchEngine


logger = logging.getLogger(__name__)

ALL_COLLECTIONS = "*"


class SearchService:
    """High-level search orchestration service."""

    def __init__(
        self,
        repository: AbstractItemRepository,
        config: SearchConfig | None = None,
    ):
        """Initialize search service with dependencies.

        Args:
            repository: Source of items, also notifies on cache clears
            config: Ranking configuration shared by every collection engine
        """
        self.repository = repository
        self.config = config or SearchConfig()
        self._engines: dict[str, SearchEngine] = {}
        self._engines_lock = threading.Lock()
        repository.add_cache_listener(self._on_cache_cleared)

    @classmethod
    def from_settings(cls, repository: AbstractItemRepository, settings: Settings | None = None) -> "SearchService":
        """Configure logging from ``settings`` and build a service with their ranking config."""

        settings = settings or Settings()
        configure_logging(level=settings.log_level, json_output=settings.log_json)
        logger.info("Search service configured (log level %s)", settings.log_level)
        return cls(repository, settings.to_search_config())

    def engine(self, collection: str | None = None) -> SearchEngine:
        """Return the engine for a collection, creating it on first use."""

        key = collection or ALL_COLLECTIONS
        with self._engines_lock:
            engine = self._engines.get(key)
            if engine is None:
                engine = SearchEngine(self.config, name=key)
                self._engines[key] = engine
            return engine

    def _items(self, collection: str | None) -> list[Item]:
        return self.repository.load_all_items(collection)

    def _query_sync(
        self,
        query: str,
        collection: str | None,
        options: SearchOptions | dict[str, Any] | None,
        fuzzy_distance: int | None = None,
    ) -> SearchResult:
        bind_collection(collection)
        items = self._items(collection)
        engine = self.engine(collection)
        if fuzzy_distance is not None:
            return engine.fuzzy_query(query, items, fuzzy_distance, options)
        return engine.query(query, items, options)

    async def search(
        self,
        query: str,
        collection: str | None = None,
        options: SearchOptions | dict[str, Any] | None = None,
    ) -> SearchResult:
        """Search one collection, or every collection when ``collection`` is None."""

        result = await asyncio.to_thread(self._query_sync, query, collection, options)
        logger.debug(
            "Search completed: %d of %d results for %r in %s",
            result.count(),
            result.total,
            result.query,
            collection or "all collections",
        )
        return result

    async def fuzzy_search(
        self,
        query: str,
        collection: str | None = None,
        max_distance: int = 2,
    ) -> SearchResult:
        return await asyncio.to_thread(self._query_sync, query, collection, None, max_distance)

    async def faceted_search(
        self,
        query: str,
        facets: dict[str, Any],
        collection: str | None = None,
    ) -> SearchResult:
        return await self.search(query, collection, SearchOptions(filters=dict(facets)))

    async def suggestions(self, partial: str, collection: str | None = None, limit: int = 5) -> list[str]:
        def _suggest() -> list[str]:
            return self.engine(collection).get_suggestions(partial, self._items(collection), limit)

        return await asyncio.to_thread(_suggest)

    async def related_items(
        self,
        collection: str,
        slug: str,
        criteria: Sequence[str] = ("tags",),
        limit: int = 5,
    ) -> list[Item]:
        """Return items related to ``slug``; unknown slugs yield an empty list."""

        def _related() -> list[Item]:
            items = self._items(collection)
            item = next((candidate for candidate in items if candidate.slug == slug), None)
            if item is None:
                logger.debug("Related items requested for unknown slug %s/%s", collection, slug)
                return []
            return self.engine(collection).find_related(item, items, criteria, limit)

        return await asyncio.to_thread(_related)

    async def warm_index(self, collection: str | None = None) -> None:
        """Build the collection's index ahead of the first search."""

        def _warm() -> None:
            self.engine(collection).build_index(self._items(collection))

        await asyncio.to_thread(_warm)

    def invalidate_cache(self, collection: str | None = None) -> None:
        """Drop index snapshots for one collection or all of them."""

        with self._engines_lock:
            if collection is None:
                engines = list(self._engines.values())
            else:
                engines = [
                    engine
                    for key in (collection, ALL_COLLECTIONS)
                    if (engine := self._engines.get(key)) is not None
                ]
        for engine in engines:
            engine.invalidate()
        logger.info("Invalidated search indexes for %s", collection or "all collections")

    def _on_cache_cleared(self, collection: str | None) -> None:
        self.invalidate_cache(collection)

    def analytics(self, collection: str | None = None) -> list[SearchEvent]:
        if collection is not None:
            return self.engine(collection).analytics()
        with self._engines_lock:
            engines = list(self._engines.values())
        events = [event for engine in engines for event in engine.analytics()]
        return sorted(events, key=lambda event: event.timestamp)

    def get_cache_metrics(self) -> dict[str, dict[str, float | int]]:
        with self._engines_lock:
            return {name: engine.cache_metrics() for name, engine in self._engines.items()}
