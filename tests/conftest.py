"""Shared test fixtures and configuration."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from cms_search.config import SearchConfig
from cms_search.domain.model import Item
from cms_search.search.engine import SearchEngine


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

# Settings fields that must not leak in from the developer's shell
SETTINGS_ENV_KEYS = (
    "LOG_LEVEL",
    "LOG_JSON",
    "MIN_WORD_LENGTH",
    "MAX_WORD_LENGTH",
    "STOP_WORDS",
    "BOOST_TITLE",
    "BOOST_TAGS",
    "BOOST_EXACT_MATCH",
    "FEATURED_BOOST",
    "FUZZY_MAX_DISTANCE",
    "SNIPPET_LENGTH",
    "RESULT_CACHE_SIZE",
    "DEFAULT_PER_PAGE",
    "MAX_PER_PAGE",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Remove search settings from the environment before each test."""
    for key in SETTINGS_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
        monkeypatch.delenv(key.lower(), raising=False)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_item() -> Callable[..., Item]:
    """Factory building items dated relative to NOW."""

    def _make(slug: str, *, days_old: float | None = None, **fields: Any) -> Item:
        if days_old is not None:
            fields["date"] = NOW - timedelta(days=days_old)
        return Item(slug=slug, **fields)

    return _make


@pytest.fixture
def go_item(make_item) -> Item:
    return make_item(
        "a",
        title="Go Concurrency Patterns",
        tags=["go", "concurrency"],
        featured=True,
        days_old=8,
    )


@pytest.fixture
def python_item(make_item) -> Item:
    return make_item(
        "b",
        title="Python Basics",
        tags=["python"],
        featured=False,
        days_old=2,
    )


@pytest.fixture
def blog_items(make_item) -> list[Item]:
    """A small blog corpus with mixed tag representations."""
    return [
        make_item(
            "async-python",
            title="Async Python in Practice",
            author="Ada Lovelace",
            tags=["python", {"name": "Async", "slug": "async"}],
            categories=["engineering"],
            excerpt="Event loops, tasks and structured concurrency.",
            body="<p>Python's <strong>asyncio</strong> library runs tasks on an event loop.</p>",
            days_old=3,
            custom={"collection": "blog", "series": "python"},
        ),
        make_item(
            "rust-ownership",
            title="Rust Ownership Explained",
            author={"name": "Grace Hopper", "slug": "grace"},
            tags=["rust"],
            categories=["engineering"],
            excerpt="Borrowing rules without tears.",
            body="Ownership and borrowing keep memory safe without a garbage collector.",
            days_old=45,
            custom={"collection": "blog"},
        ),
        make_item(
            "python-packaging",
            title="Packaging Python Projects",
            author="Ada Lovelace",
            tags=["python", "packaging"],
            categories=["tooling"],
            excerpt="From pyproject to wheel.",
            body="Build a wheel with a pyproject file and publish it.",
            featured=True,
            days_old=120,
            status="draft",
            custom={"collection": "docs", "series": "python"},
        ),
    ]


@pytest.fixture
def config() -> SearchConfig:
    return SearchConfig()


@pytest.fixture
def engine(config) -> SearchEngine:
    return SearchEngine(config, name="test", clock=lambda: NOW)
