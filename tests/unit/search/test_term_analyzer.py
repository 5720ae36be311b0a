"""Unit tests for the term analyzer pipeline."""

import pytest

from cms_search.search.analyzers import (
    BASIC_STOPWORDS,
    EXTENDED_STOPWORDS,
    AnalyzerPipeline,
    LengthFilter,
    LowercaseFilter,
    RegexTokenizer,
    StopFilter,
    TermAnalyzer,
    normalize_text,
    strip_html,
)


pytestmark = pytest.mark.unit


class TestTermAnalyzer:
    def test_lowercases_and_splits_on_punctuation(self):
        analyzer = TermAnalyzer()

        assert analyzer.terms("Hello, World! Go-Routines") == ["hello", "world", "go", "routines"]

    def test_drops_stop_words_and_short_tokens(self):
        analyzer = TermAnalyzer()

        assert analyzer.terms("The cat and a dog x") == ["cat", "dog"]

    def test_strips_html_tags(self):
        analyzer = TermAnalyzer()

        assert analyzer.terms("<p>Event <strong>loops</strong></p>") == ["event", "loops"]

    def test_underscore_is_a_separator(self):
        assert TermAnalyzer().terms("snake_case_name") == ["snake", "case", "name"]

    def test_keeps_every_occurrence_for_indexing(self):
        assert TermAnalyzer().terms("go go gopher") == ["go", "go", "gopher"]

    def test_unique_terms_preserve_first_seen_order(self):
        assert TermAnalyzer().unique_terms("beta alpha beta gamma alpha") == ["beta", "alpha", "gamma"]

    @pytest.mark.parametrize("text", ["", None, "   ", "<br/>"])
    def test_empty_text_yields_nothing(self, text):
        assert TermAnalyzer().terms(text) == []

    def test_respects_configured_lengths(self):
        analyzer = TermAnalyzer(min_word_length=3, max_word_length=5)

        assert analyzer.terms("go rust python elixir") == ["rust"]

    def test_custom_stop_words_replace_defaults(self):
        analyzer = TermAnalyzer(stopwords=["python"])

        assert analyzer.terms("the python guide") == ["the", "guide"]

    def test_unicode_words_are_kept(self):
        assert TermAnalyzer().terms("Café Zürich") == ["café", "zürich"]

    def test_token_positions_are_renumbered_after_filtering(self):
        tokens = TermAnalyzer()("the quick fox")

        assert [(token.text, token.position) for token in tokens] == [("quick", 0), ("fox", 1)]


class TestStopWordLists:
    def test_basic_list_is_the_closed_set(self):
        assert len(BASIC_STOPWORDS) == 18
        assert {"the", "and", "or", "an"} <= set(BASIC_STOPWORDS)

    def test_extended_list_adds_auxiliary_verbs(self):
        assert set(BASIC_STOPWORDS) < set(EXTENDED_STOPWORDS)
        assert {"been", "would", "should"} <= set(EXTENDED_STOPWORDS) - set(BASIC_STOPWORDS)


class TestPipelineParts:
    def test_pipeline_applies_filters_in_order(self):
        pipeline = AnalyzerPipeline(
            RegexTokenizer(),
            [LowercaseFilter(), LengthFilter(min_length=4), StopFilter(["rust"])],
        )

        assert [token.text for token in pipeline("Rust Gophers Run")] == ["gophers"]

    def test_tokenizer_reports_character_offsets(self):
        tokens = list(RegexTokenizer()("ab cd"))

        assert [(token.start_char, token.end_char) for token in tokens] == [(0, 2), (3, 5)]

    def test_strip_html_leaves_separating_space(self):
        assert strip_html("one<br>two") == "one two"

    def test_normalize_text_collapses_whitespace(self):
        assert normalize_text("  <b>Hello</b>\n\tWORLD ") == "hello world"
