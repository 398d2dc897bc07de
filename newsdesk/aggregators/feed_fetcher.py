"""
RSS/Atom feed fetcher
"""
from datetime import datetime, timezone
from typing import List, Optional

import feedparser

from newsdesk.aggregators.base import BaseFetcher
from newsdesk.processors.content_processor import clean_text
from newsdesk.utils.constants import ProcessingConstants
from newsdesk.utils.errors import FetchError
from newsdesk.utils.logger import logger
from newsdesk.utils.models import RawArticle, Source
from newsdesk.utils.security import URLValidator


class FeedFetcher(BaseFetcher):
    """Downloads a feed through the shared HTTP client and parses it with feedparser"""

    def __init__(self, http_client, max_entries: int = ProcessingConstants.MAX_ARTICLES_PER_FEED):
        super().__init__(http_client)
        self.max_entries = max_entries

    async def fetch(self, source: Source) -> List[RawArticle]:
        response = await self.http_client.get(source.url)
        feed = self.parse(response.content)

        if not feed.entries:
            if feed.bozo:
                raise FetchError(
                    f"Unparseable feed for {source.name}: {feed.get('bozo_exception')}",
                    kind=FetchError.PERMANENT,
                    source_id=source.id,
                )
            logger.warning(f"No entries found in feed: {source.name}")
            return []

        if feed.bozo:
            logger.warning(f"Feed parsing warning for {source.name}: {feed.get('bozo_exception')}")

        articles = []
        for entry in feed.entries[:self.max_entries]:
            articles.append(self._parse_entry(entry, source))

        logger.debug(f"Parsed {len(articles)} entries from {source.name}")
        return articles

    @staticmethod
    def parse(document):
        return feedparser.parse(document)

    def _parse_entry(self, entry, source: Source) -> RawArticle:
        """Map a feedparser entry to a RawArticle; validation happens downstream"""
        content = None
        if entry.get('content'):
            content = entry.content[0].get('value')

        description = entry.get('summary') or entry.get('description')

        return RawArticle(
            title=clean_text(entry.get('title')),
            description=clean_text(description) or None,
            content=clean_text(content) or None,
            url=entry.get('link'),
            image_url=self._extract_image(entry),
            author=entry.get('author'),
            published_at=self._published_at(entry),
            source_name=source.name,
            tags=[tag.get('term') for tag in entry.get('tags', []) if tag.get('term')],
        )

    @staticmethod
    def _published_at(entry) -> Optional[datetime]:
        for field in ('published_parsed', 'updated_parsed'):
            parsed = entry.get(field)
            if parsed:
                try:
                    # feedparser normalizes to UTC struct_time
                    return datetime(*parsed[:6], tzinfo=timezone.utc)
                except (ValueError, TypeError) as e:
                    logger.warning(f"Invalid {field} in feed entry: {e}")
        return None

    @staticmethod
    def _extract_image(entry) -> Optional[str]:
        """Image enclosure first, then media:content, then media:thumbnail"""
        for enclosure in entry.get('enclosures', []):
            if enclosure.get('type', '').startswith('image/') and enclosure.get('href'):
                if URLValidator.is_valid_url(enclosure['href']):
                    return enclosure['href']

        for media in entry.get('media_content', []):
            url = media.get('url')
            medium, mime = media.get('medium'), media.get('type', '')
            is_image = medium == 'image' or mime.startswith('image/') or (not medium and not mime)
            if url and is_image and URLValidator.is_valid_url(url):
                return url

        for thumbnail in entry.get('media_thumbnail', []):
            url = thumbnail.get('url')
            if url and URLValidator.is_valid_url(url):
                return url

        return None
