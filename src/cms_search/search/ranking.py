"""Ranking, facet filtering, sorting and pagination.

Matches are ordered by score, highest first. Equal scores fall back to the
item slug and then to the position the item was indexed at, so the same
corpus and query always produce the same order.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
import logging
import math
from typing import Any, TypeVar

from cms_search.domain.model import Item, label_of
from cms_search.domain.search import PageInfo
from cms_search.search.index import IndexedItem


logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off", ""})


@dataclass(frozen=True)
class RankedMatch:
    """A scored index entry waiting to be ordered."""

    entry: IndexedItem
    score: float
    matched_terms: tuple[str, ...] = ()

    @property
    def item(self) -> Item:
        return self.entry.item


def rank(matches: Iterable[RankedMatch]) -> list[RankedMatch]:
    """Sort by score descending, then slug, then index position."""

    return sorted(matches, key=lambda match: (-match.score, match.entry.slug, match.entry.position))


# Facets


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return bool(value)


def parse_datetime(value: Any, *, end_of_day: bool = False) -> datetime | None:
    """Parse a facet bound into an aware datetime.

    Bare dates cover the whole day: as an upper bound they resolve to the
    last instant of that day. Returns None when the value cannot be parsed.
    """

    date_only = False
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
        date_only = True
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug("Ignoring unparseable date bound %r", value)
            return None
        date_only = len(text) <= 10
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    if date_only and end_of_day:
        parsed = parsed + timedelta(days=1) - timedelta(microseconds=1)
    return parsed


def _match_author(item: Item, value: Any) -> bool:
    author = item.author_name.lower()
    wanted = [str(label_of(candidate)).lower() for candidate in _as_list(value)]
    if not wanted:
        return True
    return any(candidate in author for candidate in wanted)


def _match_labels(labels: Sequence[str], value: Any) -> bool:
    wanted = {label_of(candidate).lower() for candidate in _as_list(value)}
    if not wanted:
        return True
    return any(label.lower() in wanted for label in labels)


def _match_date_bound(item: Item, value: Any, *, upper: bool) -> bool:
    bound = parse_datetime(value, end_of_day=upper)
    if bound is None or item.date is None:
        return True
    return item.date <= bound if upper else item.date >= bound


def _match_date_range(item: Item, value: Any) -> bool:
    if not isinstance(value, Mapping):
        return True
    if item.date is None:
        return False
    start = parse_datetime(value.get("start"))
    end = parse_datetime(value.get("end"), end_of_day=True)
    if start is not None and item.date < start:
        return False
    return not (end is not None and item.date > end)


def _match_status(item: Item, value: Any) -> bool:
    wanted = {str(getattr(candidate, "value", candidate)).lower() for candidate in _as_list(value)}
    return item.status.value in wanted


def _match_meta(item: Item, key: str, value: Any) -> bool:
    actual = item.meta(key)
    if isinstance(value, bool):
        return _as_bool(actual) is value
    return actual == value


FacetMatcher = Callable[[Item, Any], bool]

FACET_MATCHERS: dict[str, FacetMatcher] = {
    "author": _match_author,
    "tags": lambda item, value: _match_labels(item.tag_names, value),
    "categories": lambda item, value: _match_labels(item.category_names, value),
    "status": _match_status,
    "featured": lambda item, value: item.featured is _as_bool(value),
    "collection": lambda item, value: item.meta("collection") == value,
    "date_range": _match_date_range,
    "date_from": lambda item, value: _match_date_bound(item, value, upper=False),
    "date_after": lambda item, value: _match_date_bound(item, value, upper=False),
    "date_to": lambda item, value: _match_date_bound(item, value, upper=True),
    "date_before": lambda item, value: _match_date_bound(item, value, upper=True),
}


def matches_facets(item: Item, facets: Mapping[str, Any] | None) -> bool:
    """Return True when the item satisfies every supplied facet."""

    if not facets:
        return True
    for key, value in facets.items():
        matcher = FACET_MATCHERS.get(key)
        if matcher is None:
            if not _match_meta(item, key, value):
                return False
        elif not matcher(item, value):
            return False
    return True


def apply_facets(items: Iterable[T], facets: Mapping[str, Any] | None, key: Callable[[T], Item]) -> list[T]:
    return [entry for entry in items if matches_facets(key(entry), facets)]


# Sorting and pagination


_ITEM_ATTRIBUTES = frozenset({"slug", "title", "excerpt", "date", "featured", "status"})


def _sort_value(item: Item, field_name: str) -> Any:
    if field_name == "author":
        return item.author_name.lower() or None
    if field_name in _ITEM_ATTRIBUTES:
        value = getattr(item, field_name)
        if field_name == "status":
            return value.value
        if isinstance(value, str):
            return value.lower() or None
        return value
    return item.meta(field_name)


def sort_items(items: Iterable[Item], field_name: str = "date", direction: str = "desc") -> list[Item]:
    """Sort items by an attribute or custom metadata key.

    Items missing the value always sort last, whatever the direction.
    """

    reverse = direction.lower() == "desc"
    present: list[tuple[Any, Item]] = []
    missing: list[Item] = []
    for item in items:
        value = _sort_value(item, field_name)
        if value is None:
            missing.append(item)
        else:
            present.append((value, item))
    try:
        present.sort(key=lambda pair: pair[0], reverse=reverse)
    except TypeError:
        present.sort(key=lambda pair: str(pair[0]), reverse=reverse)
    return [item for _, item in present] + missing


def paginate(items: Sequence[T], page: int = 1, per_page: int = 10) -> tuple[list[T], PageInfo]:
    """Slice one page out of ``items``.

    Raises:
        ValueError: when ``page`` or ``per_page`` is below 1.
    """

    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if per_page < 1:
        raise ValueError(f"per_page must be >= 1, got {per_page}")
    total = len(items)
    offset = (page - 1) * per_page
    info = PageInfo(
        current_page=page,
        per_page=per_page,
        total_items=total,
        last_page=max(1, math.ceil(total / per_page)),
    )
    return list(items[offset : offset + per_page]), info
