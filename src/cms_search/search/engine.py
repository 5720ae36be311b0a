"""Search engine facade.

`SearchEngine` owns one corpus at a time: an immutable index snapshot, a
bounded result cache and a small analytics log. Every public entry point
accepts the item collection; when the collection differs from the one the
current snapshot was built from, a new snapshot is built and swapped in.
Readers always work on a complete snapshot, never a half-built one.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone
import logging
import threading
import time
from typing import Any

import orjson

from cms_search.config import SearchConfig
from cms_search.domain.model import Item
from cms_search.domain.search import (
    PageInfo,
    QueryMode,
    ScoredItem,
    SearchEvent,
    SearchEventKind,
    SearchOptions,
    SearchResult,
)
from cms_search.observability.metrics import (
    INDEX_BUILDS,
    INDEXED_ITEMS,
    RESULT_CACHE,
    SEARCH_LATENCY,
    SEARCH_REQUESTS,
    track_latency,
)
from cms_search.observability.tracing import create_span
from cms_search.search.analyzers import TermAnalyzer
from cms_search.search.cache import IndexSnapshot, ResultCache
from cms_search.search.fuzzy import fuzzy_scores, validate_max_distance
from cms_search.search.index import SearchIndex
from cms_search.search.query import (
    classify_query,
    evaluate,
    normalize_query,
    parse_boolean,
    phrase_score,
    positive_terms,
    strip_phrase_quotes,
)
from cms_search.search.ranking import RankedMatch, matches_facets, paginate, rank
from cms_search.search.scoring import Scorer
from cms_search.search.similarity import find_related
from cms_search.search.snippet import build_item_snippet
from cms_search.search.stats import recency_edges
from cms_search.search.suggestions import get_suggestions


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SearchEngine:
    """Tokenize, index, score and rank CMS items."""

    def __init__(
        self,
        config: SearchConfig | None = None,
        *,
        name: str = "default",
        clock: Clock | None = None,
    ) -> None:
        self.config = config or SearchConfig()
        self.name = name
        self._clock = clock or _utcnow
        self.analyzer = TermAnalyzer(
            min_word_length=self.config.min_word_length,
            max_word_length=self.config.max_word_length,
            stopwords=self.config.stop_words,
        )
        self._snapshot: IndexSnapshot | None = None
        self._build_lock = threading.Lock()
        self._version = 0
        self._results: ResultCache[SearchResult] = ResultCache(self.config.result_cache_size)
        self._analytics: deque[SearchEvent] = deque(maxlen=self.config.analytics_limit)
        self._analytics_lock = threading.Lock()

    # Index lifecycle

    def build_index(self, items: Iterable[Item]) -> SearchIndex:
        """Build a snapshot for ``items`` and make it current."""

        with self._build_lock:
            return self._build_locked(tuple(items)).index

    def _build_locked(self, items: tuple[Item, ...]) -> IndexSnapshot:
        start = time.perf_counter()
        index = SearchIndex.build(items, self.analyzer, self.config.field_weights)
        self._version += 1
        snapshot = IndexSnapshot(
            index=index,
            items=items,
            version=self._version,
            recency_edges=recency_edges((item.date for item in items), self.config.recency_thresholds),
        )
        self._snapshot = snapshot
        self._results.clear()

        INDEX_BUILDS.labels(engine=self.name).inc()
        INDEXED_ITEMS.labels(engine=self.name).set(len(index))
        logger.info(
            "Built search index %s v%d: %d items, %d terms in %.1fms",
            self.name,
            snapshot.version,
            len(index),
            len(index.postings),
            (time.perf_counter() - start) * 1000,
        )
        return snapshot

    def _snapshot_for(self, items: Iterable[Item] | None) -> IndexSnapshot:
        snapshot = self._snapshot
        if items is None:
            if snapshot is not None:
                return snapshot
            with self._build_lock:
                return self._snapshot or self._build_locked(())

        corpus = tuple(items)
        if snapshot is not None and snapshot.matches(corpus):
            return snapshot
        with self._build_lock:
            snapshot = self._snapshot
            if snapshot is not None and snapshot.matches(corpus):
                return snapshot
            return self._build_locked(corpus)

    def invalidate(self) -> None:
        """Drop the index snapshot and every cached result."""

        with self._build_lock:
            self._snapshot = None
            self._results.clear()
        INDEXED_ITEMS.labels(engine=self.name).set(0)
        logger.debug("Invalidated search index %s", self.name)

    def clear_cache(self) -> None:
        self.invalidate()

    @property
    def snapshot(self) -> IndexSnapshot | None:
        return self._snapshot

    # Searching

    def query(
        self,
        query: str,
        items: Iterable[Item] | None = None,
        options: SearchOptions | dict[str, Any] | None = None,
    ) -> SearchResult:
        """Run a search and return the full `SearchResult`."""

        return self._run(query, items, SearchOptions.coerce(options))

    def search(
        self,
        query: str,
        items: Iterable[Item] | None = None,
        options: SearchOptions | dict[str, Any] | None = None,
    ) -> list[Item]:
        return self.query(query, items, options).items

    def fuzzy_query(
        self,
        query: str,
        items: Iterable[Item] | None = None,
        max_distance: int | None = None,
        options: SearchOptions | dict[str, Any] | None = None,
    ) -> SearchResult:
        distance = validate_max_distance(self.config.fuzzy_max_distance if max_distance is None else max_distance)
        return self._run(query, items, SearchOptions.coerce(options), forced_mode=QueryMode.FUZZY, max_distance=distance)

    def fuzzy_search(
        self,
        query: str,
        items: Iterable[Item] | None = None,
        max_distance: int = 2,
    ) -> list[Item]:
        """Match the whole query against index terms by edit distance.

        Raises:
            InvalidDistanceError: when ``max_distance`` is negative.
        """
        return self.fuzzy_query(query, items, max_distance).items

    def faceted_search(
        self,
        query: str,
        items: Iterable[Item] | None = None,
        facets: dict[str, Any] | None = None,
    ) -> list[Item]:
        return self.search(query, items, SearchOptions(filters=dict(facets or {})))

    def _run(
        self,
        raw_query: str,
        items: Iterable[Item] | None,
        options: SearchOptions,
        *,
        forced_mode: QueryMode | None = None,
        max_distance: int | None = None,
    ) -> SearchResult:
        start = time.perf_counter()
        normalized = normalize_query(raw_query)
        mode = forced_mode or classify_query(normalized)
        self._record(SearchEvent(kind=SearchEventKind.STARTED, query=normalized, mode=mode))

        if not normalized:
            result = SearchResult(query=normalized, mode=mode, filters=dict(options.filters))
            self._complete(result)
            return result

        snapshot = self._snapshot_for(items)
        now = self._clock()
        cache_key = (
            snapshot.version,
            snapshot.recency_epoch(now),
            mode.value,
            max_distance,
            normalized,
            self._options_key(options),
        )
        if self._results.capacity:
            cached = self._results.get(cache_key)
            RESULT_CACHE.labels(engine=self.name, result="hit" if cached is not None else "miss").inc()
            if cached is not None:
                self._complete(cached)
                return cached

        attributes = {"search.engine": self.name, "search.mode": mode.value, "search.items": len(snapshot.index)}
        try:
            with (
                create_span("cms_search.query", attributes=attributes),
                track_latency(SEARCH_LATENCY, engine=self.name, mode=mode.value),
            ):
                result = self._execute(snapshot.index, normalized, mode, options, start, max_distance, now)
        except Exception:
            SEARCH_REQUESTS.labels(engine=self.name, mode=mode.value, status="error").inc()
            logger.exception("Search failed for %r on %s", normalized, self.name)
            raise

        SEARCH_REQUESTS.labels(engine=self.name, mode=result.mode.value, status="ok").inc()
        self._results.put(cache_key, result)
        self._complete(result)
        return result

    def _execute(
        self,
        index: SearchIndex,
        query: str,
        mode: QueryMode,
        options: SearchOptions,
        start: float,
        max_distance: int | None,
        now: datetime,
    ) -> SearchResult:
        scorer = Scorer(index, self.config, now=now)
        matches: list[RankedMatch]
        highlight: list[str]

        if mode is QueryMode.PHRASE:
            phrase = strip_phrase_quotes(query)
            highlight = [phrase] if phrase else []
            matches = self._phrase_matches(index, phrase)
        elif mode is QueryMode.BOOLEAN:
            node = parse_boolean(query, self.analyzer)
            highlight = positive_terms(node)
            matches = []
            for entry in index.iter_entries():
                if not evaluate(node, entry.terms):
                    continue
                breakdown = scorer.breakdown(entry, highlight, require_match=False)
                if breakdown is not None:
                    matches.append(RankedMatch(entry, breakdown.total, breakdown.matched_terms))
        elif mode is QueryMode.FUZZY:
            highlight = []
            matches = self._fuzzy_matches(index, query, max_distance)
        else:
            highlight = self.analyzer.unique_terms(query)
            matches = []
            if highlight:
                for entry in index.iter_entries():
                    breakdown = scorer.breakdown(entry, highlight)
                    if breakdown is not None:
                        matches.append(RankedMatch(entry, breakdown.total, breakdown.matched_terms))
            if not matches and options.fuzzy:
                logger.debug("No plain matches for %r, falling back to fuzzy", query)
                mode = QueryMode.FUZZY
                highlight = []
                matches = self._fuzzy_matches(index, query, self.config.fuzzy_max_distance)

        if options.filters:
            matches = [match for match in matches if matches_facets(match.item, options.filters)]

        ranked = rank(matches)
        total = len(ranked)
        page: PageInfo | None = None
        if options.paginated:
            per_page = min(options.per_page or self.config.default_per_page, self.config.max_per_page)
            ranked, page = paginate(ranked, options.page or 1, per_page)
        elif options.limit is not None:
            ranked = ranked[: options.limit]

        hits = tuple(
            ScoredItem(
                item=match.item,
                score=match.score,
                snippet=build_item_snippet(match.item, highlight or list(match.matched_terms), self.config.snippet_length),
                matched_terms=match.matched_terms,
            )
            for match in ranked
        )
        return SearchResult(
            hits=hits,
            total=total,
            query=query,
            mode=mode,
            duration=time.perf_counter() - start,
            filters=dict(options.filters),
            page=page,
        )

    def _phrase_matches(self, index: SearchIndex, phrase: str) -> list[RankedMatch]:
        matches: list[RankedMatch] = []
        if not phrase:
            return matches
        for entry in index.iter_entries():
            score = phrase_score(entry, phrase, self.config.phrase_scores)
            if score > 0:
                matches.append(RankedMatch(entry, score, (phrase,)))
        return matches

    def _fuzzy_matches(self, index: SearchIndex, query: str, max_distance: int | None) -> list[RankedMatch]:
        distance = self.config.fuzzy_max_distance if max_distance is None else max_distance
        matches: list[RankedMatch] = []
        for doc_id, fuzzy in fuzzy_scores(index, query, distance).items():
            entry = index.entry(doc_id)
            if entry is not None and fuzzy.score > 0:
                matches.append(RankedMatch(entry, fuzzy.score, tuple(fuzzy.terms)))
        return matches

    @staticmethod
    def _options_key(options: SearchOptions) -> bytes:
        return orjson.dumps(
            options.model_dump(),
            default=repr,
            option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS,
        )

    # Suggestions and related items

    def get_suggestions(self, partial: str, items: Iterable[Item] | None = None, limit: int = 5) -> list[str]:
        corpus: Sequence[Item] = tuple(items) if items is not None else self._snapshot_for(None).items
        return get_suggestions(partial, corpus, limit, min_length=self.config.suggestion_min_length)

    def suggest_terms(self, partial: str, limit: int = 10) -> list[str]:
        """Suggest index vocabulary terms by document frequency."""
        return self._snapshot_for(None).index.suggest(partial, limit, min_length=self.config.suggestion_min_length)

    def find_related(
        self,
        item: Item,
        items: Iterable[Item],
        criteria: Sequence[str] = ("tags",),
        limit: int = 5,
    ) -> list[Item]:
        return find_related(item, items, criteria, limit)

    # Introspection

    def stats(self) -> dict[str, Any]:
        snapshot = self._snapshot
        if snapshot is None:
            return {"total_terms": 0, "total_items": 0, "avg_terms_per_item": 0.0, "index_built": False, "version": 0}
        return {**snapshot.index.stats().as_dict(), "index_built": True, "version": snapshot.version}

    def cache_metrics(self) -> dict[str, float | int]:
        return self._results.metrics()

    def analytics(self) -> list[SearchEvent]:
        with self._analytics_lock:
            return list(self._analytics)

    def _record(self, event: SearchEvent) -> None:
        with self._analytics_lock:
            self._analytics.append(event)

    def _complete(self, result: SearchResult) -> None:
        self._record(
            SearchEvent(
                kind=SearchEventKind.COMPLETED,
                query=result.query,
                mode=result.mode,
                results=result.total,
                duration=result.duration,
            )
        )
        logger.debug("Search complete", extra={"search": result.metrics()})
