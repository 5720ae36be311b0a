"""Relevance scoring for indexed items.

Score of an item for the distinct query terms ``Q``::

    (sum_t tf*idf + field occurrences + presence bonus
     + recency boost + featured boost) * (1 + matched / |Q|)

Every constant comes from `SearchConfig`.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from cms_search.config import INDEXED_FIELDS, SearchConfig
from cms_search.search.index import IndexedItem, Posting, SearchIndex
from cms_search.search.stats import calculate_idf, coverage_multiplier, recency_boost


@dataclass(frozen=True)
class ScoreBreakdown:
    """Individual score components for one item, kept for debugging and tests."""

    tfidf: float
    field: float
    presence: float
    recency: float
    featured: float
    coverage: float
    matched_terms: tuple[str, ...]

    @property
    def base(self) -> float:
        return self.tfidf + self.field + self.presence + self.recency + self.featured

    @property
    def total(self) -> float:
        return self.base * self.coverage


class Scorer:
    """Compute relevance scores against a fixed index snapshot."""

    def __init__(self, index: SearchIndex, config: SearchConfig, now: datetime | None = None) -> None:
        self.index = index
        self.config = config
        self.now = now or datetime.now(timezone.utc)
        self._idf_cache: dict[str, float] = {}

    def idf(self, term: str) -> float:
        cached = self._idf_cache.get(term)
        if cached is None:
            cached = calculate_idf(self.index.document_frequency(term), self.index.total_items)
            self._idf_cache[term] = cached
        return cached

    def field_score(self, posting: Posting) -> float:
        return sum(
            count * self.config.field_weight(field_name) * self.config.field_boost(field_name)
            for field_name, count in posting.fields.items()
        )

    def presence_bonus(self, term: str, entry: IndexedItem) -> float:
        """Per-field bonus: whole-word matches earn more than substring matches."""

        posting = self.index.posting(term, entry.doc_id)
        bonus = 0.0
        for field_name in INDEXED_FIELDS:
            partial = self.config.partial_match_scores.get(field_name, 0.0)
            if not partial:
                continue
            if posting is not None and posting.count(field_name):
                bonus += partial * self.config.boost_exact_match
            elif term in entry.field_text.get(field_name, ""):
                bonus += partial
        return bonus

    def is_matched(self, term: str, entry: IndexedItem) -> bool:
        if term in entry.terms:
            return True
        return any(term in text for text in entry.field_text.values())

    def item_boosts(self, entry: IndexedItem) -> tuple[float, float]:
        """Return the (recency, featured) boosts for an item."""

        recency = recency_boost(entry.item.date, self.now, self.config.recency_thresholds)
        featured = self.config.featured_boost if entry.item.featured else 0.0
        return recency, featured

    def breakdown(
        self,
        entry: IndexedItem,
        terms: Sequence[str],
        *,
        require_match: bool = True,
    ) -> ScoreBreakdown | None:
        """Score ``entry`` for ``terms``.

        Returns None when ``require_match`` is set and no term matches.
        """

        distinct = list(dict.fromkeys(terms))
        tfidf = field = presence = 0.0
        matched: list[str] = []
        for term in distinct:
            if not self.is_matched(term, entry):
                continue
            matched.append(term)
            posting = self.index.posting(term, entry.doc_id)
            if posting is not None:
                tfidf += posting.frequency * self.idf(term)
                field += self.field_score(posting)
            presence += self.presence_bonus(term, entry)

        if require_match and not matched:
            return None

        recency, featured = self.item_boosts(entry)
        return ScoreBreakdown(
            tfidf=tfidf,
            field=field,
            presence=presence,
            recency=recency,
            featured=featured,
            coverage=coverage_multiplier(len(matched), len(distinct)),
            matched_terms=tuple(matched),
        )

    def score(self, entry: IndexedItem, terms: Sequence[str]) -> float:
        result = self.breakdown(entry, terms)
        return result.total if result is not None else 0.0
