"""Item repository abstractions and the in-memory implementation.

The repository is the search core's only source of items. Parsing markdown
and front matter happens behind it; the search layer just reads `Item`
records per collection and listens for cache invalidation.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
import logging
import threading

from cms_search.domain.model import Item


logger = logging.getLogger(__name__)

CacheListener = Callable[[str | None], None]


class CollectionNotFoundError(KeyError):
    """Raised when a collection name is unknown to the repository."""

    def __init__(self, collection: str) -> None:
        super().__init__(collection)
        self.collection = collection

    def __str__(self) -> str:
        return f"Unknown collection: {self.collection}"


class AbstractItemRepository(ABC):
    """Abstract repository for parsed CMS items."""

    def __init__(self) -> None:
        self._listeners: list[CacheListener] = []
        self._listeners_lock = threading.Lock()

    @abstractmethod
    def list_collections(self) -> list[str]:
        """Return the names of every known collection."""
        raise NotImplementedError

    @abstractmethod
    def load_items(self, collection: str) -> list[Item]:
        """Return the items of one collection.

        Raises:
            CollectionNotFoundError: if the collection does not exist
        """
        raise NotImplementedError

    def load_all_items(self, collection: str | None = None) -> list[Item]:
        """Return one collection's items, or every collection's when None."""

        if collection is not None:
            return self.load_items(collection)
        items: list[Item] = []
        for name in self.list_collections():
            items.extend(self.load_items(name))
        return items

    def get_item(self, collection: str, slug: str) -> Item | None:
        for item in self.load_items(collection):
            if item.slug == slug:
                return item
        return None

    def add_cache_listener(self, callback: CacheListener) -> None:
        """Register a callback invoked with the collection name on `clear_cache`."""

        with self._listeners_lock:
            if callback not in self._listeners:
                self._listeners.append(callback)

    def remove_cache_listener(self, callback: CacheListener) -> None:
        with self._listeners_lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def clear_cache(self, collection: str | None = None) -> None:
        """Drop cached content and notify listeners.

        ``collection=None`` means every collection.
        """

        with self._listeners_lock:
            listeners = list(self._listeners)
        logger.debug("Clearing item cache for %s", collection or "all collections")
        for listener in listeners:
            listener(collection)


class InMemoryItemRepository(AbstractItemRepository):
    """Repository holding items in memory, keyed by collection."""

    def __init__(self, collections: Mapping[str, Iterable[Item]] | None = None) -> None:
        super().__init__()
        self._collections: dict[str, list[Item]] = {
            name: list(items) for name, items in (collections or {}).items()
        }
        self._lock = threading.Lock()

    def list_collections(self) -> list[str]:
        with self._lock:
            return list(self._collections)

    def load_items(self, collection: str) -> list[Item]:
        with self._lock:
            items = self._collections.get(collection)
            if items is None:
                raise CollectionNotFoundError(collection)
            return list(items)

    def set_items(self, collection: str, items: Iterable[Item]) -> None:
        """Replace a collection's items and invalidate dependent caches."""

        with self._lock:
            self._collections[collection] = list(items)
        self.clear_cache(collection)

    def add_item(self, collection: str, item: Item) -> None:
        with self._lock:
            self._collections.setdefault(collection, []).append(item)
        self.clear_cache(collection)
