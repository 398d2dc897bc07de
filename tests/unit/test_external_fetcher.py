"""
Tests for scraped external sources
"""
from unittest.mock import AsyncMock, Mock

import pytest

from newsdesk.aggregators.external_fetcher import ExternalFetcher, ListingPageScraper, Scraper
from newsdesk.utils.errors import FetchError
from newsdesk.utils.models import RawArticle, Source, SourceKind

LISTING_HTML = """
<html><body>
  <div class="story">
    <a href="/news/park">Park reopens after renovation</a>
    <p class="teaser">The riverside park is open again.</p>
    <img src="/img/park.jpg">
    <span class="byline">Sam Lee</span>
  </div>
  <div class="story">
    <a href="https://other.example.com/market">Market day returns</a>
  </div>
  <div class="story"><span>No link here</span></div>
</body></html>
"""


@pytest.fixture
def http_client():
    client = Mock()
    client.get = AsyncMock(return_value=Mock(text=LISTING_HTML))
    return client


def _external(**metadata) -> Source:
    return Source(
        id="town-hall",
        name="Town Hall",
        kind=SourceKind.EXTERNAL,
        url="https://town.example.com/news/",
        metadata=metadata,
    )


class TestExternalFetcher:
    @pytest.mark.asyncio
    async def test_no_scraper_returns_empty(self, http_client):
        fetcher = ExternalFetcher(http_client)

        assert await fetcher.fetch(_external()) == []
        http_client.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_scraper_registered_by_source_id(self, http_client):
        scraper = Mock(spec=Scraper)
        scraper.scrape = AsyncMock(return_value=[RawArticle(title="Custom", url="https://x.example.com/1")])
        fetcher = ExternalFetcher(http_client)
        fetcher.register("town-hall", scraper)

        articles = await fetcher.fetch(_external())

        assert [a.title for a in articles] == ["Custom"]
        scraper.scrape.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_listing_scraper_by_name(self, http_client):
        source = _external(
            scraper="listing",
            item_selector=".story",
            summary_selector=".teaser",
            image_selector="img",
            author_selector=".byline",
        )

        articles = await ExternalFetcher(http_client).fetch(source)

        assert len(articles) == 2
        park = articles[0]
        assert park.title == "Park reopens after renovation"
        assert park.url == "https://town.example.com/news/park"
        assert park.description == "The riverside park is open again."
        assert park.image_url == "https://town.example.com/img/park.jpg"
        assert park.author == "Sam Lee"
        assert articles[1].url == "https://other.example.com/market"
        assert articles[1].description is None

    @pytest.mark.asyncio
    async def test_listing_scraper_requires_item_selector(self, http_client):
        with pytest.raises(FetchError) as exc_info:
            await ListingPageScraper().scrape(_external(), http_client)

        assert exc_info.value.is_permanent
        http_client.get.assert_not_called()
