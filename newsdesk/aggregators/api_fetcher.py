"""
REST news API fetcher (NewsAPI and generic JSON endpoints)
"""
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional, Tuple

from newsdesk.aggregators.base import BaseFetcher
from newsdesk.utils.constants import HTTPConstants, RateLimitConstants
from newsdesk.utils.errors import FetchError, RateLimited
from newsdesk.utils.logger import logger
from newsdesk.utils.models import RawArticle, Source
from newsdesk.utils.rate_limiter import SlidingWindowRateLimiter

NEWSAPI = "newsapi"


def parse_datetime(value: Any) -> Optional[datetime]:
    """Accept ISO 8601, RFC 822 or epoch seconds; anything else is None"""
    if value is None or value == "":
        return None

    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)

    text = str(value).strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError):
            logger.debug(f"Unrecognised date format: {text!r}")
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class APIFetcher(BaseFetcher):
    """Paginated GETs against a news API with a per-provider request budget"""

    def __init__(
        self,
        http_client,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        page_size: int = HTTPConstants.DEFAULT_PAGE_SIZE,
        max_pages: int = HTTPConstants.DEFAULT_MAX_PAGES,
    ):
        super().__init__(http_client)
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter(
            max_requests=RateLimitConstants.NEWS_API_REQUESTS_PER_HOUR,
            window_seconds=RateLimitConstants.WINDOW_SECONDS_HOUR,
        )
        self.page_size = page_size
        self.max_pages = max_pages

    @staticmethod
    def rate_limit_key(source: Source) -> str:
        return NEWSAPI if source.provider == NEWSAPI else f"api:{source.id}"

    def _paginates(self, source: Source) -> bool:
        return source.provider == NEWSAPI or bool(source.metadata.get("paginate"))

    def _build_request(self, source: Source, page: int) -> Tuple[Dict[str, Any], Dict[str, str]]:
        params: Dict[str, Any] = dict(source.metadata.get("params", {}))
        headers: Dict[str, str] = {"Accept": "application/json"}

        if self._paginates(source):
            params["page"] = page
            params["pageSize"] = self.page_size

        if source.api_key:
            if source.provider == NEWSAPI:
                params["apiKey"] = source.api_key
            else:
                headers["Authorization"] = f"Bearer {source.api_key}"

        return params, headers

    async def fetch(self, source: Source) -> List[RawArticle]:
        articles: List[RawArticle] = []
        key = self.rate_limit_key(source)
        pages = self.max_pages if self._paginates(source) else 1

        for page in range(1, pages + 1):
            try:
                self.rate_limiter.check(key)
            except RateLimited:
                if not articles:
                    raise
                logger.warning(f"Request budget for {key} exhausted after {page - 1} pages of {source.name}")
                break

            params, headers = self._build_request(source, page)
            response = await self.http_client.get(source.url, params=params, headers=headers)

            try:
                data = response.json()
            except ValueError as e:
                raise FetchError(
                    f"Invalid JSON from {source.name}: {e}",
                    kind=FetchError.PERMANENT,
                    source_id=source.id,
                ) from e

            if isinstance(data, dict) and data.get("status") == "error":
                raise FetchError(
                    f"{source.name} returned error: {data.get('message', data.get('code'))}",
                    kind=FetchError.PERMANENT,
                    source_id=source.id,
                )

            items, total = self.extract_items(data)
            articles.extend(self.map_item(item, source) for item in items)

            if len(items) < self.page_size:
                break
            if total is not None and len(articles) >= total:
                break

        return articles

    @staticmethod
    def extract_items(data: Any) -> Tuple[List[Dict[str, Any]], Optional[int]]:
        """Pull the article list (and totalResults when present) out of a payload"""
        if isinstance(data, list):
            return [item for item in data if isinstance(item, dict)], None

        if isinstance(data, dict):
            total = data.get("totalResults")
            for field in ("articles", "items", "data"):
                if isinstance(data.get(field), list):
                    items = [item for item in data[field] if isinstance(item, dict)]
                    return items, int(total) if total is not None else None

        return [], None

    @staticmethod
    def map_item(item: Dict[str, Any], source: Source) -> RawArticle:
        item_source = item.get("source")
        source_name = item_source.get("name") if isinstance(item_source, dict) else None

        return RawArticle(
            title=item.get("title"),
            description=item.get("description") or item.get("summary"),
            content=item.get("content"),
            url=item.get("url") or item.get("link"),
            image_url=item.get("urlToImage") or item.get("image") or item.get("thumbnail"),
            author=item.get("author"),
            published_at=parse_datetime(
                item.get("publishedAt") or item.get("pubDate") or item.get("created_at")
            ),
            source_name=source_name or source.name,
            tags=[str(tag) for tag in item.get("tags", []) if tag] if isinstance(item.get("tags"), list) else [],
        )
