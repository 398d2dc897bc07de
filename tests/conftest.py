"""
Shared fixtures: in-memory store, sources and article factories.
"""

from datetime import datetime, timezone

import pytest

from newsdesk.processors.normalizer import article_id_for
from newsdesk.storage.store import article_to_record, get_test_store
from newsdesk.utils.models import Article, Source, SourceKind


@pytest.fixture
def store():
    """Fresh in-memory SQLite store with all tables created"""
    return get_test_store()


@pytest.fixture
def feed_source():
    return Source(
        id="city-feed",
        name="City Feed",
        kind=SourceKind.FEED,
        url="https://news.example.com/rss",
    )


@pytest.fixture
def make_article():
    """Factory for normalized articles with stable ids"""

    def _make(url="https://news.example.com/story", **overrides) -> Article:
        data = {
            "id": article_id_for(url),
            "title": "City opens new library downtown",
            "description": "The new library opened on Monday.",
            "content": None,
            "url": url,
            "source_id": "city-feed",
            "source_name": "City Feed",
            "published_at": datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc),
            "category": "general",
        }
        data.update(overrides)
        return Article(**data)

    return _make


@pytest.fixture
def stored_article(store, make_article):
    """An article already persisted in the store"""
    article = make_article()
    store.insert("articles", article_to_record(article))
    return article
