"""Unit tests for ranking, facet filtering, sorting and pagination."""

from datetime import date, datetime, timezone

import pytest

from cms_search.search.index import build_index
from cms_search.search.ranking import (
    RankedMatch,
    apply_facets,
    matches_facets,
    paginate,
    parse_datetime,
    rank,
    sort_items,
)


@pytest.mark.unit
class TestRank:
    def test_score_then_slug_then_position(self, make_item):
        index = build_index([make_item("b"), make_item("a"), make_item("c"), make_item("a")])
        entries = list(index.iter_entries())

        ranked = rank(
            [
                RankedMatch(entries[0], 1.0),
                RankedMatch(entries[3], 2.0),
                RankedMatch(entries[1], 2.0),
                RankedMatch(entries[2], 5.0),
            ]
        )

        assert [match.entry.doc_id for match in ranked] == ["c", "a", "a#2", "b"]


@pytest.mark.unit
class TestFacets:
    def test_author_is_substring_any_of(self, blog_items):
        assert [item.slug for item in apply_facets(blog_items, {"author": "lovelace"}, key=lambda i: i)] == [
            "async-python",
            "python-packaging",
        ]
        assert len(apply_facets(blog_items, {"author": ["grace", "nobody"]}, key=lambda i: i)) == 1

    def test_tags_match_enriched_labels_case_insensitively(self, blog_items):
        matched = apply_facets(blog_items, {"tags": "ASYNC"}, key=lambda i: i)

        assert [item.slug for item in matched] == ["async-python"]

    def test_comma_separated_values_are_any_of(self, blog_items):
        matched = apply_facets(blog_items, {"tags": "rust, packaging"}, key=lambda i: i)

        assert [item.slug for item in matched] == ["rust-ownership", "python-packaging"]

    def test_categories(self, blog_items):
        matched = apply_facets(blog_items, {"categories": ["tooling"]}, key=lambda i: i)

        assert [item.slug for item in matched] == ["python-packaging"]

    def test_status_and_featured(self, blog_items):
        drafts = apply_facets(blog_items, {"status": "draft"}, key=lambda i: i)
        featured = apply_facets(blog_items, {"featured": "true"}, key=lambda i: i)
        not_featured = apply_facets(blog_items, {"featured": False}, key=lambda i: i)

        assert [item.slug for item in drafts] == ["python-packaging"]
        assert [item.slug for item in featured] == ["python-packaging"]
        assert len(not_featured) == 2

    def test_collection_and_unknown_keys_compare_metadata(self, blog_items):
        assert len(apply_facets(blog_items, {"collection": "blog"}, key=lambda i: i)) == 2
        assert len(apply_facets(blog_items, {"series": "python"}, key=lambda i: i)) == 2
        assert apply_facets(blog_items, {"series": "rust"}, key=lambda i: i) == []

    def test_all_facets_must_hold(self, blog_items):
        matched = apply_facets(blog_items, {"series": "python", "collection": "blog"}, key=lambda i: i)

        assert [item.slug for item in matched] == ["async-python"]

    def test_date_bounds(self, blog_items):
        # NOW is 2024-06-15; items are 3, 45 and 120 days old
        recent = apply_facets(blog_items, {"date_from": "2024-05-01"}, key=lambda i: i)
        older = apply_facets(blog_items, {"date_before": date(2024, 4, 30)}, key=lambda i: i)

        assert [item.slug for item in recent] == ["async-python", "rust-ownership"]
        assert [item.slug for item in older] == ["python-packaging"]

    def test_upper_date_bound_covers_the_whole_day(self, make_item):
        item = make_item("late", date=datetime(2024, 1, 31, 23, 30, tzinfo=timezone.utc))

        assert matches_facets(item, {"date_to": "2024-01-31"})
        assert not matches_facets(item, {"date_to": "2024-01-30"})

    def test_undated_items_pass_open_bounds_but_fail_ranges(self, make_item):
        item = make_item("undated")

        assert matches_facets(item, {"date_from": "2024-01-01", "date_to": "2024-12-31"})
        assert not matches_facets(item, {"date_range": {"start": "2024-01-01", "end": "2024-12-31"}})

    def test_date_range(self, blog_items):
        matched = apply_facets(
            blog_items,
            {"date_range": {"start": "2024-04-01", "end": "2024-06-01"}},
            key=lambda i: i,
        )

        assert [item.slug for item in matched] == ["rust-ownership"]

    def test_invalid_date_bound_is_ignored(self, blog_items):
        assert len(apply_facets(blog_items, {"date_from": "not a date"}, key=lambda i: i)) == 3

    def test_empty_facets_match_everything(self, go_item):
        assert matches_facets(go_item, None)
        assert matches_facets(go_item, {})


@pytest.mark.unit
class TestParseDatetime:
    def test_naive_values_are_utc(self):
        assert parse_datetime("2024-03-01T10:00:00") == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)

    def test_bare_date_as_upper_bound_is_end_of_day(self):
        parsed = parse_datetime("2024-03-01", end_of_day=True)

        assert parsed == datetime(2024, 3, 1, 23, 59, 59, 999999, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "yesterday", 42])
    def test_unparseable(self, value):
        assert parse_datetime(value) is None


@pytest.mark.unit
class TestSortItems:
    def test_sort_by_date_desc_with_missing_last(self, make_item):
        items = [make_item("old", days_old=10), make_item("none"), make_item("new", days_old=1)]

        assert [item.slug for item in sort_items(items)] == ["new", "old", "none"]
        assert [item.slug for item in sort_items(items, "date", "asc")] == ["old", "new", "none"]

    def test_sort_by_title_is_case_insensitive(self, make_item):
        items = [make_item("1", title="beta"), make_item("2", title="Alpha"), make_item("3", title="")]

        assert [item.slug for item in sort_items(items, "title", "asc")] == ["2", "1", "3"]

    def test_sort_by_custom_key_with_mixed_types(self, make_item):
        items = [
            make_item("1", custom={"order": 2}),
            make_item("2", custom={"order": "10"}),
            make_item("3"),
        ]

        assert [item.slug for item in sort_items(items, "order", "asc")] == ["2", "1", "3"]


@pytest.mark.unit
class TestPaginate:
    def test_slices_and_reports_pages(self):
        page, info = paginate(list(range(25)), page=3, per_page=10)

        assert page == [20, 21, 22, 23, 24]
        assert info.total_items == 25
        assert info.last_page == 3
        assert not info.has_more

    def test_page_past_the_end_is_empty(self):
        page, info = paginate([1, 2], page=5, per_page=10)

        assert page == []
        assert info.last_page == 1

    def test_empty_input_still_has_one_page(self):
        _, info = paginate([], page=1, per_page=10)

        assert info.last_page == 1

    @pytest.mark.parametrize(("page", "per_page"), [(0, 10), (1, 0)])
    def test_rejects_non_positive_values(self, page, per_page):
        with pytest.raises(ValueError):
            paginate([1], page=page, per_page=per_page)
