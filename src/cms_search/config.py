"""Centralized configuration for cms-search using Pydantic.

`SearchConfig` holds every ranking constant the engine uses so callers can
tune scoring without touching code. `Settings` loads the commonly tuned
knobs from environment variables (or a `.env` file) and turns them into a
`SearchConfig`.
"""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cms_search.search.analyzers import BASIC_STOPWORDS


INDEXED_FIELDS: tuple[str, ...] = ("title", "author", "tags", "categories", "excerpt", "body")

DEFAULT_FIELD_WEIGHTS: dict[str, float] = {
    "title": 10.0,
    "author": 8.0,
    "tags": 6.0,
    "categories": 6.0,
    "excerpt": 4.0,
    "body": 1.0,
}

DEFAULT_PARTIAL_MATCH_SCORES: dict[str, float] = {
    "title": 10.0,
    "author": 8.0,
    "tags": 4.0,
    "categories": 4.0,
    "excerpt": 6.0,
    "body": 2.0,
}

DEFAULT_PHRASE_SCORES: dict[str, float] = {
    "title": 20.0,
    "excerpt": 10.0,
    "body": 5.0,
}


class RecencyBracket(BaseModel):
    """Boost granted to items younger than `max_age_days`."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_age_days: Annotated[float, Field(gt=0, description="Exclusive upper bound on item age in days")]
    boost: Annotated[float, Field(ge=0, description="Score added when the item falls in this bracket")]


def _default_recency() -> tuple[RecencyBracket, ...]:
    return (
        RecencyBracket(max_age_days=7, boost=3),
        RecencyBracket(max_age_days=30, boost=2),
        RecencyBracket(max_age_days=90, boost=1),
    )


class SearchConfig(BaseModel):
    """Ranking, tokenization and caching parameters with safe defaults."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    min_word_length: Annotated[
        int,
        Field(ge=1, le=20, description="Tokens shorter than this are dropped"),
    ] = 2

    max_word_length: Annotated[
        int,
        Field(ge=1, le=500, description="Tokens longer than this are dropped"),
    ] = 50

    stop_words: Annotated[
        tuple[str, ...],
        Field(description="Closed list of words never indexed or queried"),
    ] = BASIC_STOPWORDS

    boost_title: Annotated[
        float,
        Field(ge=0.0, le=10.0, description="Multiplier for title occurrences"),
    ] = 2.0

    boost_tags: Annotated[
        float,
        Field(ge=0.0, le=10.0, description="Multiplier for tag and category occurrences"),
    ] = 1.5

    boost_exact_match: Annotated[
        float,
        Field(ge=1.0, le=10.0, description="Whole-word field matches score partial x this factor"),
    ] = 1.5

    field_weights: Annotated[
        dict[str, float],
        Field(description="Per-field weight of a single term occurrence"),
    ] = Field(default_factory=lambda: dict(DEFAULT_FIELD_WEIGHTS))

    partial_match_scores: Annotated[
        dict[str, float],
        Field(description="Per-field bonus when a query term appears as a substring"),
    ] = Field(default_factory=lambda: dict(DEFAULT_PARTIAL_MATCH_SCORES))

    phrase_scores: Annotated[
        dict[str, float],
        Field(description="Per-field score for a literal phrase hit"),
    ] = Field(default_factory=lambda: dict(DEFAULT_PHRASE_SCORES))

    recency_thresholds: Annotated[
        tuple[RecencyBracket, ...],
        Field(description="Age brackets, youngest first"),
    ] = Field(default_factory=_default_recency)

    featured_boost: Annotated[
        float,
        Field(ge=0.0, description="Flat score added for featured items"),
    ] = 5.0

    fuzzy_max_distance: Annotated[
        int,
        Field(ge=0, le=10, description="Default edit distance for fuzzy matching"),
    ] = 2

    snippet_length: Annotated[
        int,
        Field(ge=20, le=2000, description="Characters per highlighted snippet"),
    ] = 200

    suggestion_min_length: Annotated[
        int,
        Field(ge=1, le=10, description="Shortest partial query that produces suggestions"),
    ] = 2

    result_cache_size: Annotated[
        int,
        Field(ge=0, description="Maximum cached query results; 0 disables result caching"),
    ] = 1000

    default_per_page: Annotated[int, Field(ge=1, description="Page size when only a page is requested")] = 10

    max_per_page: Annotated[int, Field(ge=1, description="Upper bound on requested page sizes")] = 100

    analytics_limit: Annotated[
        int,
        Field(ge=0, description="Number of search analytics events kept in memory"),
    ] = 1000

    @field_validator("stop_words", mode="before")
    @classmethod
    def _lowercase_stop_words(cls, value: object) -> object:
        if isinstance(value, str):
            value = [word for word in value.split(",")]
        if isinstance(value, (list, tuple, set, frozenset)):
            return tuple(str(word).strip().lower() for word in value if str(word).strip())
        return value

    @field_validator("field_weights", "partial_match_scores", "phrase_scores")
    @classmethod
    def _known_fields(cls, value: dict[str, float]) -> dict[str, float]:
        unknown = sorted(set(value) - set(INDEXED_FIELDS))
        if unknown:
            raise ValueError(f"Unknown fields {unknown}. Available: {list(INDEXED_FIELDS)}")
        return value

    @model_validator(mode="after")
    def _check_bounds(self) -> "SearchConfig":
        if self.min_word_length > self.max_word_length:
            raise ValueError("min_word_length must not exceed max_word_length")
        if self.default_per_page > self.max_per_page:
            raise ValueError("default_per_page must not exceed max_per_page")
        ages = [bracket.max_age_days for bracket in self.recency_thresholds]
        if ages != sorted(ages):
            raise ValueError("recency_thresholds must be ordered by ascending max_age_days")
        return self

    def field_weight(self, field_name: str) -> float:
        return self.field_weights.get(field_name, 0.0)

    def field_boost(self, field_name: str) -> float:
        """Return the occurrence multiplier applied on top of the field weight."""
        if field_name == "title":
            return self.boost_title
        if field_name in ("tags", "categories"):
            return self.boost_tags
        return 1.0


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    Only scalar knobs are exposed here; structured values (field weight
    tables, recency brackets) keep their `SearchConfig` defaults unless a
    caller builds a `SearchConfig` directly.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    # Tokenization
    min_word_length: int = Field(default=2, ge=1, le=20, description="Minimum term length")
    max_word_length: int = Field(default=50, ge=1, le=500, description="Maximum term length")
    stop_words: str = Field(default="", description="Comma-separated stop words replacing the default list")

    # Ranking
    boost_title: float = Field(default=2.0, ge=0.0, le=10.0, description="Title occurrence multiplier")
    boost_tags: float = Field(default=1.5, ge=0.0, le=10.0, description="Tag/category occurrence multiplier")
    boost_exact_match: float = Field(default=1.5, ge=1.0, le=10.0, description="Whole-word match factor")
    featured_boost: float = Field(default=5.0, ge=0.0, description="Score added for featured items")
    fuzzy_max_distance: int = Field(default=2, ge=0, le=10, description="Default fuzzy edit distance")

    # Results
    snippet_length: int = Field(default=200, ge=20, le=2000, description="Snippet length in characters")
    result_cache_size: int = Field(default=1000, ge=0, description="Cached query results (0 disables)")
    default_per_page: int = Field(default=10, ge=1, description="Default page size")
    max_per_page: int = Field(default=100, ge=1, description="Maximum page size")

    def get_stop_words(self) -> tuple[str, ...]:
        """Get the configured stop words, falling back to the default list."""
        if not self.stop_words:
            return BASIC_STOPWORDS
        return tuple(word.strip().lower() for word in self.stop_words.split(",") if word.strip())

    def to_search_config(self) -> SearchConfig:
        """Build the engine configuration from these settings."""
        return SearchConfig(
            min_word_length=self.min_word_length,
            max_word_length=self.max_word_length,
            stop_words=self.get_stop_words(),
            boost_title=self.boost_title,
            boost_tags=self.boost_tags,
            boost_exact_match=self.boost_exact_match,
            featured_boost=self.featured_boost,
            fuzzy_max_distance=self.fuzzy_max_distance,
            snippet_length=self.snippet_length,
            result_cache_size=self.result_cache_size,
            default_per_page=self.default_per_page,
            max_per_page=self.max_per_page,
        )
