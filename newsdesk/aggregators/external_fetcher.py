"""
External (scraped) sources.

Scrapers are registered per source id or by name; a source picks a named
scraper through ``metadata["scraper"]``. Sources without a scraper yield
nothing.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from newsdesk.aggregators.base import BaseFetcher
from newsdesk.processors.content_processor import clean_text
from newsdesk.utils.errors import FetchError
from newsdesk.utils.logger import logger
from newsdesk.utils.models import RawArticle, Source


class Scraper(ABC):
    """Extracts raw articles from an external page"""

    @abstractmethod
    async def scrape(self, source: Source, http_client) -> List[RawArticle]:
        pass


class ListingPageScraper(Scraper):
    """Scrapes a listing page with CSS selectors taken from ``source.metadata``.

    Keys: ``item_selector`` (required), ``link_selector`` (default ``a``),
    ``title_selector`` (default: the link text), ``summary_selector``,
    ``image_selector``, ``author_selector``.
    """

    async def scrape(self, source: Source, http_client) -> List[RawArticle]:
        selectors = source.metadata
        item_selector = selectors.get("item_selector")
        if not item_selector:
            raise FetchError(
                f"No item_selector configured for {source.name}",
                kind=FetchError.PERMANENT,
                source_id=source.id,
            )

        response = await http_client.get(source.url)
        soup = BeautifulSoup(response.text, "html.parser")

        articles = []
        for item in soup.select(item_selector):
            link = item.select_one(selectors.get("link_selector", "a"))
            if link is None or not link.get("href"):
                continue

            title_node = item.select_one(selectors["title_selector"]) if selectors.get("title_selector") else link
            summary_node = item.select_one(selectors["summary_selector"]) if selectors.get("summary_selector") else None
            author_node = item.select_one(selectors["author_selector"]) if selectors.get("author_selector") else None

            image_url = None
            if selectors.get("image_selector"):
                image = item.select_one(selectors["image_selector"])
                if image is not None and image.get("src"):
                    image_url = urljoin(source.url, image["src"])

            articles.append(RawArticle(
                title=clean_text(title_node.get_text(" ")) if title_node else None,
                description=clean_text(summary_node.get_text(" ")) if summary_node else None,
                url=urljoin(source.url, link["href"]),
                image_url=image_url,
                author=clean_text(author_node.get_text(" ")) if author_node else None,
                source_name=source.name,
            ))

        logger.debug(f"Scraped {len(articles)} items from {source.name}")
        return articles


class ExternalFetcher(BaseFetcher):
    """Pluggable scraper slot keyed by source"""

    def __init__(self, http_client, scrapers: Optional[Dict[str, Scraper]] = None):
        super().__init__(http_client)
        self.scrapers: Dict[str, Scraper] = {"listing": ListingPageScraper()}
        self.scrapers.update(scrapers or {})

    def register(self, key: str, scraper: Scraper) -> None:
        """Register a scraper under a source id or a scraper name"""
        self.scrapers[key] = scraper

    def scraper_for(self, source: Source) -> Optional[Scraper]:
        if source.id in self.scrapers:
            return self.scrapers[source.id]
        name = source.metadata.get("scraper")
        return self.scrapers.get(name) if name else None

    async def fetch(self, source: Source) -> List[RawArticle]:
        scraper = self.scraper_for(source)
        if scraper is None:
            logger.debug(f"No scraper registered for external source {source.name}")
            return []
        return await scraper.scrape(source, self.http_client)
