"""In-memory inverted index over CMS items.

The index maps every term to the items containing it, with per-field
occurrence counts, plus a reverse map from item id to the indexed entry.
An index is an immutable snapshot: it is built in one pass and never
updated in place. Rebuilding from the same items yields the same postings.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
import logging
from types import MappingProxyType

from cms_search.config import DEFAULT_FIELD_WEIGHTS, INDEXED_FIELDS
from cms_search.domain.model import Item
from cms_search.search.analyzers import TermAnalyzer, normalize_text


logger = logging.getLogger(__name__)

FIELD_ORDER: tuple[str, ...] = INDEXED_FIELDS


@dataclass(frozen=True)
class Posting:
    """Occurrences of one term in one item, keyed by field."""

    item_id: str
    fields: Mapping[str, int]

    @property
    def frequency(self) -> int:
        return sum(self.fields.values())

    def count(self, field_name: str) -> int:
        return self.fields.get(field_name, 0)


_EMPTY_POSTINGS: Mapping[str, Posting] = MappingProxyType({})


@dataclass(frozen=True)
class IndexedItem:
    """Reverse-map entry for an indexed item."""

    doc_id: str
    item: Item
    position: int
    terms: frozenset[str]
    term_weights: Mapping[str, float]
    field_text: Mapping[str, str]

    @property
    def slug(self) -> str:
        return self.item.slug


@dataclass(frozen=True)
class IndexStats:
    total_terms: int
    total_items: int
    avg_terms_per_item: float

    def as_dict(self) -> dict[str, float]:
        return {
            "total_terms": self.total_terms,
            "total_items": self.total_items,
            "avg_terms_per_item": self.avg_terms_per_item,
        }


def field_values(item: Item) -> dict[str, list[str]]:
    """Return the raw text of every indexed field, in field order."""

    return {
        "title": [item.title],
        "author": [item.author_name],
        "tags": item.tag_names,
        "categories": item.category_names,
        "excerpt": [item.excerpt],
        "body": [item.body],
    }


class SearchIndex:
    """Immutable term -> item -> per-field count index."""

    __slots__ = ("_entries", "_postings", "field_weights")

    def __init__(
        self,
        postings: Mapping[str, Mapping[str, Posting]],
        entries: Mapping[str, IndexedItem],
        field_weights: Mapping[str, float],
    ) -> None:
        self._postings = postings
        self._entries = entries
        self.field_weights = field_weights

    @classmethod
    def empty(cls) -> SearchIndex:
        return cls(MappingProxyType({}), MappingProxyType({}), MappingProxyType(dict(DEFAULT_FIELD_WEIGHTS)))

    @classmethod
    def build(
        cls,
        items: Iterable[Item],
        analyzer: TermAnalyzer | None = None,
        field_weights: Mapping[str, float] | None = None,
    ) -> SearchIndex:
        """Scan items once and return a frozen index."""

        analyzer = analyzer or TermAnalyzer()
        weights = dict(field_weights if field_weights is not None else DEFAULT_FIELD_WEIGHTS)

        raw_postings: dict[str, dict[str, dict[str, int]]] = defaultdict(dict)
        entries: dict[str, IndexedItem] = {}
        seen_slugs: dict[str, int] = {}

        for position, item in enumerate(items):
            doc_id = _disambiguate(item.slug, seen_slugs)
            term_weights: dict[str, float] = defaultdict(float)
            field_text: dict[str, str] = {}

            for field_name, values in field_values(item).items():
                field_text[field_name] = " ".join(normalize_text(value) for value in values if value).strip()
                weight = weights.get(field_name, 0.0)
                for value in values:
                    for term in analyzer.terms(value):
                        per_field = raw_postings[term].setdefault(doc_id, {})
                        per_field[field_name] = per_field.get(field_name, 0) + 1
                        term_weights[term] += weight

            entries[doc_id] = IndexedItem(
                doc_id=doc_id,
                item=item,
                position=position,
                terms=frozenset(term_weights),
                term_weights=MappingProxyType(dict(term_weights)),
                field_text=MappingProxyType(field_text),
            )

        postings = {
            term: MappingProxyType(
                {
                    doc_id: Posting(item_id=doc_id, fields=MappingProxyType(per_field))
                    for doc_id, per_field in by_doc.items()
                }
            )
            for term, by_doc in raw_postings.items()
        }

        index = cls(MappingProxyType(postings), MappingProxyType(entries), MappingProxyType(weights))
        logger.debug(
            "Built search index: %d items, %d terms",
            len(entries),
            len(postings),
        )
        return index

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._entries

    @property
    def total_items(self) -> int:
        return len(self._entries)

    @property
    def postings(self) -> Mapping[str, Mapping[str, Posting]]:
        return self._postings

    @property
    def entries(self) -> Mapping[str, IndexedItem]:
        return self._entries

    def iter_entries(self) -> Iterator[IndexedItem]:
        """Yield entries in insertion order."""
        return iter(self._entries.values())

    def entry(self, doc_id: str) -> IndexedItem | None:
        return self._entries.get(doc_id)

    def postings_for(self, term: str) -> Mapping[str, Posting]:
        return self._postings.get(term, _EMPTY_POSTINGS)

    def posting(self, term: str, doc_id: str) -> Posting | None:
        return self._postings.get(term, _EMPTY_POSTINGS).get(doc_id)

    def document_frequency(self, term: str) -> int:
        return len(self._postings.get(term, _EMPTY_POSTINGS))

    def vocabulary(self) -> tuple[str, ...]:
        return tuple(sorted(self._postings))

    def stats(self) -> IndexStats:
        total_items = len(self._entries)
        avg = sum(len(entry.terms) for entry in self._entries.values()) / total_items if total_items else 0.0
        return IndexStats(total_terms=len(self._postings), total_items=total_items, avg_terms_per_item=avg)

    def suggest(self, partial: str, limit: int = 10, *, min_length: int = 2) -> list[str]:
        """Return vocabulary terms starting with ``partial``, most common first."""

        prefix = partial.strip().lower()
        if len(prefix) < max(min_length, 1) or limit <= 0:
            return []
        matches = [term for term in self._postings if term.startswith(prefix)]
        matches.sort(key=lambda term: (-self.document_frequency(term), term))
        return matches[:limit]


def _disambiguate(slug: str, seen: dict[str, int]) -> str:
    count = seen.get(slug, 0) + 1
    seen[slug] = count
    if count == 1:
        return slug
    return f"{slug}#{count}"


def build_index(
    items: Iterable[Item],
    analyzer: TermAnalyzer | None = None,
    field_weights: Mapping[str, float] | None = None,
) -> SearchIndex:
    """Build a `SearchIndex` for ``items``."""
    return SearchIndex.build(items, analyzer, field_weights)
