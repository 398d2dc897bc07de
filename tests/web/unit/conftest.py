"""
Pytest configuration for web unit tests.

Provides a NewsFeed over an in-memory store and a TestClient around it.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from newsdesk.feed import NewsFeed
from newsdesk.storage.store import article_to_record, get_test_store
from newsdesk.utils.config import Config
from newsdesk.web.app import create_app


@pytest.fixture
def web_config():
    config = Config()
    config.scheduler.enabled = False
    config.processing.lazy_summaries = True
    return config


@pytest.fixture
def http_client():
    client = Mock()
    client.get = AsyncMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def feed(web_config, http_client):
    """Feed without AI providers, so summaries come from the rule-based fallback"""
    return NewsFeed(config=web_config, store=get_test_store(), providers=[], http_client=http_client)


@pytest.fixture
def client(feed):
    # Don't raise server exceptions - we want to test error responses
    with TestClient(create_app(feed), raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def seed(feed):
    """Insert articles straight into the feed's store"""

    def _seed(*articles):
        for article in articles:
            feed.store.insert("articles", article_to_record(article))
        return articles

    return _seed
