"""
Tests for the REST news API fetcher
"""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from newsdesk.aggregators.api_fetcher import APIFetcher, parse_datetime
from newsdesk.utils.errors import FetchError, RateLimited
from newsdesk.utils.models import Source, SourceKind
from newsdesk.utils.rate_limiter import SlidingWindowRateLimiter


def _json_response(payload):
    response = Mock()
    response.json = Mock(return_value=payload)
    return response


def _items(count, start=0):
    return [
        {
            "title": f"Story {i}",
            "description": f"Description {i}",
            "url": f"https://api.example.com/story/{i}",
            "publishedAt": "2025-01-06T10:00:00Z",
            "source": {"name": "Wire"},
        }
        for i in range(start, start + count)
    ]


@pytest.fixture
def http_client():
    client = Mock()
    client.get = AsyncMock()
    return client


@pytest.fixture
def newsapi_source():
    return Source(
        id="newsapi-top",
        name="NewsAPI Top",
        kind=SourceKind.API,
        url="https://newsapi.org/v2/top-headlines",
        api_key="secret",
        provider="newsapi",
        metadata={"params": {"country": "us"}},
    )


@pytest.fixture
def generic_source():
    return Source(
        id="wire",
        name="Wire",
        kind=SourceKind.API,
        url="https://api.example.com/articles",
        api_key="token",
        metadata={"paginate": True},
    )


def _limiter(max_requests=100):
    return SlidingWindowRateLimiter(max_requests=max_requests, window_seconds=3600)


class TestAPIFetcher:
    @pytest.mark.asyncio
    async def test_newsapi_request_and_mapping(self, http_client, newsapi_source):
        http_client.get.return_value = _json_response(
            {"status": "ok", "totalResults": 2, "articles": _items(2)}
        )
        fetcher = APIFetcher(http_client, rate_limiter=_limiter())

        articles = await fetcher.fetch(newsapi_source)

        assert len(articles) == 2
        assert articles[0].title == "Story 0"
        assert articles[0].source_name == "Wire"
        assert articles[0].published_at == datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc)

        _, kwargs = http_client.get.call_args
        assert kwargs["params"] == {"country": "us", "page": 1, "pageSize": 50, "apiKey": "secret"}
        assert "Authorization" not in kwargs["headers"]

    @pytest.mark.asyncio
    async def test_generic_source_uses_bearer(self, http_client):
        source = Source(
            id="plain", name="Plain", kind=SourceKind.API,
            url="https://api.example.com/latest", api_key="token",
        )
        http_client.get.return_value = _json_response(_items(1))

        articles = await APIFetcher(http_client, rate_limiter=_limiter()).fetch(source)

        assert len(articles) == 1
        _, kwargs = http_client.get.call_args
        assert kwargs["headers"]["Authorization"] == "Bearer token"
        assert "page" not in kwargs["params"]

    @pytest.mark.asyncio
    async def test_paginates_until_short_page(self, http_client, generic_source):
        http_client.get.side_effect = [
            _json_response({"items": _items(2, 0)}),
            _json_response({"items": _items(2, 2)}),
            _json_response({"items": _items(1, 4)}),
        ]
        fetcher = APIFetcher(http_client, rate_limiter=_limiter(), page_size=2, max_pages=5)

        articles = await fetcher.fetch(generic_source)

        assert len(articles) == 5
        assert http_client.get.await_count == 3
        pages = [call.kwargs["params"]["page"] for call in http_client.get.call_args_list]
        assert pages == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_stops_at_max_pages(self, http_client, generic_source):
        http_client.get.side_effect = [_json_response({"data": _items(2, i * 2)}) for i in range(5)]
        fetcher = APIFetcher(http_client, rate_limiter=_limiter(), page_size=2, max_pages=2)

        articles = await fetcher.fetch(generic_source)

        assert len(articles) == 4
        assert http_client.get.await_count == 2

    @pytest.mark.asyncio
    async def test_stops_when_total_results_reached(self, http_client, newsapi_source):
        http_client.get.return_value = _json_response(
            {"status": "ok", "totalResults": 2, "articles": _items(2)}
        )
        fetcher = APIFetcher(http_client, rate_limiter=_limiter(), page_size=2, max_pages=3)

        articles = await fetcher.fetch(newsapi_source)

        assert len(articles) == 2
        assert http_client.get.await_count == 1

    @pytest.mark.asyncio
    async def test_rate_limit_enforced_without_network_call(self, http_client, newsapi_source):
        http_client.get.return_value = _json_response({"status": "ok", "articles": _items(1)})
        fetcher = APIFetcher(http_client, rate_limiter=_limiter(max_requests=1))

        await fetcher.fetch(newsapi_source)
        with pytest.raises(RateLimited) as exc_info:
            await fetcher.fetch(newsapi_source)

        assert exc_info.value.provider == "newsapi"
        assert http_client.get.await_count == 1

    @pytest.mark.asyncio
    async def test_budget_exhausted_mid_pagination_keeps_pages(self, http_client, generic_source):
        http_client.get.return_value = _json_response({"items": _items(1)})
        fetcher = APIFetcher(http_client, rate_limiter=_limiter(max_requests=1), page_size=1, max_pages=3)

        articles = await fetcher.fetch(generic_source)

        assert len(articles) == 1
        assert http_client.get.await_count == 1

    @pytest.mark.asyncio
    async def test_error_status_is_permanent(self, http_client, newsapi_source):
        http_client.get.return_value = _json_response(
            {"status": "error", "code": "apiKeyInvalid", "message": "Your API key is invalid."}
        )

        with pytest.raises(FetchError) as exc_info:
            await APIFetcher(http_client, rate_limiter=_limiter()).fetch(newsapi_source)

        assert exc_info.value.is_permanent

    @pytest.mark.asyncio
    async def test_invalid_json_is_permanent(self, http_client, newsapi_source):
        response = Mock()
        response.json = Mock(side_effect=ValueError("Expecting value"))
        http_client.get.return_value = response

        with pytest.raises(FetchError) as exc_info:
            await APIFetcher(http_client, rate_limiter=_limiter()).fetch(newsapi_source)

        assert exc_info.value.is_permanent


class TestPayloadMapping:
    def test_extract_items_shapes(self):
        assert APIFetcher.extract_items(_items(2))[0][0]["title"] == "Story 0"
        assert APIFetcher.extract_items({"articles": _items(1), "totalResults": 9})[1] == 9
        assert APIFetcher.extract_items({"items": _items(1)})[1] is None
        assert APIFetcher.extract_items({"unexpected": True}) == ([], None)

    def test_map_item_field_fallbacks(self, generic_source):
        raw = APIFetcher.map_item(
            {
                "title": "Fallbacks",
                "summary": "From summary",
                "link": "https://api.example.com/f",
                "image": "https://api.example.com/f.jpg",
                "pubDate": "Mon, 06 Jan 2025 10:00:00 GMT",
                "tags": ["city", None, "parks"],
            },
            generic_source,
        )

        assert raw.description == "From summary"
        assert raw.url == "https://api.example.com/f"
        assert raw.image_url == "https://api.example.com/f.jpg"
        assert raw.published_at == datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc)
        assert raw.source_name == "Wire"
        assert raw.tags == ["city", "parks"]


class TestParseDatetime:
    @pytest.mark.parametrize("value", [
        "2025-01-06T10:00:00Z",
        "2025-01-06T10:00:00+00:00",
        "Mon, 06 Jan 2025 10:00:00 GMT",
        1736157600,
    ])
    def test_formats(self, value):
        assert parse_datetime(value) == datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc)

    def test_unrecognised(self):
        assert parse_datetime("yesterday") is None
        assert parse_datetime(None) is None
