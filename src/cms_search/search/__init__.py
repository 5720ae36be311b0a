"""
Search indexing and ranking package.

This package provides a pure-Python search core for CMS items:
- analyzers: HTML stripping, tokenizer and filters (lowercase, length, stop words)
- index: in-memory inverted index with per-field counts
- stats / scoring: TF-IDF, field weights, presence, recency and coverage scoring
- query / fuzzy: phrase, boolean and plain queries; edit-distance matching
- ranking: ordering, facets, sorting and pagination
- similarity / suggestions / snippet: related items, autocomplete, highlighting
- cache: index snapshots and the bounded result cache
- engine: the SearchEngine facade
"""
