"""Unit tests for the immutable inverted index."""

import pytest

from cms_search.search.analyzers import TermAnalyzer
from cms_search.search.index import SearchIndex, build_index, field_values


@pytest.mark.unit
class TestIndexBuild:
    def test_postings_count_occurrences_per_field(self, go_item, python_item):
        index = build_index([go_item, python_item])

        posting = index.posting("go", "a")
        assert posting is not None
        assert dict(posting.fields) == {"title": 1, "tags": 1}
        assert posting.frequency == 2
        assert posting.count("body") == 0

    def test_reverse_map_keeps_insertion_positions(self, go_item, python_item):
        index = build_index([go_item, python_item])

        assert [entry.slug for entry in index.iter_entries()] == ["a", "b"]
        assert index.entry("b").position == 1
        assert "python" in index.entry("b").terms

    def test_term_weights_aggregate_field_weights(self, go_item):
        index = build_index([go_item])

        # title (10) + tags (6)
        assert index.entry("a").term_weights["go"] == 16.0
        assert index.entry("a").term_weights["patterns"] == 10.0

    def test_enriched_tags_are_indexed_by_label(self, blog_items):
        index = build_index(blog_items)

        assert index.posting("async", "async-python").count("tags") == 1
        assert index.posting("grace", "rust-ownership").count("author") == 1

    def test_body_html_is_stripped_before_indexing(self, blog_items):
        index = build_index(blog_items)

        assert "strong" not in index.postings
        assert index.posting("asyncio", "async-python").count("body") == 1

    def test_duplicate_slugs_get_distinct_ids(self, make_item):
        index = build_index([make_item("dup", title="first"), make_item("dup", title="second")])

        assert len(index) == 2
        assert "dup" in index
        assert "dup#2" in index
        assert index.entry("dup#2").item.title == "second"

    def test_rebuild_is_deterministic(self, blog_items):
        first = build_index(blog_items)
        second = build_index(blog_items)

        assert first.vocabulary() == second.vocabulary()
        for term in first.vocabulary():
            assert dict(first.postings_for(term)) == dict(second.postings_for(term))

    def test_index_is_read_only(self, go_item):
        index = build_index([go_item])

        with pytest.raises(TypeError):
            index.postings["new"] = {}  # type: ignore[index]

    def test_custom_analyzer_is_used(self, go_item):
        index = SearchIndex.build([go_item], analyzer=TermAnalyzer(min_word_length=3))

        assert "go" not in index.postings
        assert "concurrency" in index.postings

    def test_field_values_flatten_labels(self, blog_items):
        values = field_values(blog_items[0])

        assert values["tags"] == ["python", "Async"]
        assert values["author"] == ["Ada Lovelace"]


@pytest.mark.unit
class TestIndexQueries:
    def test_unknown_term_has_no_postings(self, go_item):
        index = build_index([go_item])

        assert dict(index.postings_for("missing")) == {}
        assert index.posting("missing", "a") is None
        assert index.document_frequency("missing") == 0

    def test_document_frequency(self, blog_items):
        index = build_index(blog_items)

        assert index.document_frequency("python") == 2
        assert index.document_frequency("rust") == 1

    def test_stats(self, go_item, python_item):
        stats = build_index([go_item, python_item]).stats()

        # a: go, concurrency, patterns / b: python, basics
        assert stats.total_items == 2
        assert stats.total_terms == 5
        assert stats.avg_terms_per_item == 2.5

    def test_empty_index(self):
        index = SearchIndex.empty()

        assert len(index) == 0
        assert index.stats().as_dict() == {"total_terms": 0, "total_items": 0, "avg_terms_per_item": 0.0}
        assert index.suggest("py") == []

    def test_suggest_orders_by_document_frequency(self, blog_items):
        index = build_index(blog_items)

        suggestions = index.suggest("p")
        assert suggestions == []

        suggestions = index.suggest("pa")
        assert suggestions == ["packaging"]

        assert index.suggest("py")[0] == "python"

    def test_suggest_respects_limit(self, blog_items):
        index = build_index(blog_items)

        assert len(index.suggest("bo", limit=1)) == 1
