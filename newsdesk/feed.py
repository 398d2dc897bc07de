"""
NewsFeed: wires the pipeline together and exposes the consumer-facing operations
"""
from typing import Any, Dict, List, Optional

from newsdesk.aggregation import AggregationService
from newsdesk.aggregators.api_fetcher import APIFetcher
from newsdesk.aggregators.external_fetcher import ExternalFetcher
from newsdesk.aggregators.feed_fetcher import FeedFetcher
from newsdesk.engagement.tracker import EngagementTracker
from newsdesk.processors.normalizer import ArticleNormalizer
from newsdesk.realtime.distributor import Distributor, FeedCallback, OverflowCallback
from newsdesk.sources.registry import SourceRegistry
from newsdesk.storage.store import INSERT, UPDATE, SQLAlchemyStore, Store, record_to_article
from newsdesk.summarizers.llm_summarizer import SUMMARIES_TABLE, SummarizationEngine
from newsdesk.summarizers.providers import Provider, build_providers
from newsdesk.utils.config import Config
from newsdesk.utils.constants import RateLimitConstants
from newsdesk.utils.logger import logger
from newsdesk.utils.models import (
    AggregationResult,
    Article,
    EngagementAnalytics,
    FeedArticle,
    NewsTrends,
    SourceKind,
    SummarizationOptions,
    Summary,
)
from newsdesk.utils.rate_limiter import SlidingWindowRateLimiter
from newsdesk.utils.scheduler import AggregationScheduler
from newsdesk.utils.security import SecureHTTPClient

ARTICLES_TABLE = "articles"
SEARCH_COLUMNS = (
    "title",
    "description",
    "source_name",
    "location_city",
    "location_region",
    "location_country",
)


class NewsFeed:
    """Facade over the aggregation pipeline.

    Every collaborator is built here from ``Config`` unless passed in, so tests
    can swap the store, the HTTP client or the provider chain.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        store: Optional[Store] = None,
        providers: Optional[List[Provider]] = None,
        http_client=None,
    ):
        self.config = config or Config()
        self.store = store or SQLAlchemyStore.from_url(self.config.database.url)

        self.registry = SourceRegistry(self.store)
        if self.config.sources:
            loaded = self.registry.load_sources(self.config.sources)
            logger.info(f"Loaded {loaded} sources from configuration")

        fetch_config = self.config.fetch
        self.http_client = http_client or SecureHTTPClient(timeout=fetch_config.timeout)
        self.api_rate_limiter = SlidingWindowRateLimiter(
            max_requests=fetch_config.api_requests_per_hour,
            window_seconds=RateLimitConstants.WINDOW_SECONDS_HOUR,
        )
        self.fetchers = {
            SourceKind.FEED: FeedFetcher(self.http_client, max_entries=fetch_config.max_articles_per_feed),
            SourceKind.API: APIFetcher(
                self.http_client,
                rate_limiter=self.api_rate_limiter,
                page_size=fetch_config.page_size,
                max_pages=fetch_config.max_pages,
            ),
            SourceKind.EXTERNAL: ExternalFetcher(self.http_client),
        }

        processing = self.config.processing
        self.normalizer = ArticleNormalizer(self.store, processing)
        if providers is None:
            providers = build_providers(self.config.llm.provider_order, self.config.llm.providers)
        self.engine = SummarizationEngine(
            self.store,
            providers,
            freshness_hours=processing.summary_freshness_hours,
            concurrency=processing.summary_concurrency,
        )
        self.summary_options = SummarizationOptions(
            max_length=processing.max_summary_length,
            language=processing.summary_language,
        )

        self.tracker = EngagementTracker(self.store, weights=self.config.engagement.weights)
        self.distributor = Distributor()

        self.aggregation = AggregationService(
            self.registry,
            self.fetchers,
            self.normalizer,
            self.store,
            summarizer=self.engine,
            summarize_on_ingest=processing.summarize_on_ingest,
            summary_options=self.summary_options,
            concurrency=fetch_config.concurrency,
            source_timeout=fetch_config.source_timeout,
            run_budget_seconds=self.config.scheduler.run_budget_seconds,
        )
        self.scheduler = AggregationScheduler(
            self.config.scheduler,
            self.run_aggregation,
            housekeeping=[self.api_rate_limiter.cleanup_old_entries],
        )

        self.store.on_change(ARTICLES_TABLE, self._on_article_change)
        self.store.on_change(SUMMARIES_TABLE, self._on_summary_change)

        logger.info(f"NewsFeed ready with {len(providers)} AI providers: {[p.name for p in providers]}")

    # Reads

    async def get_latest_articles(self, limit: int = 20) -> List[FeedArticle]:
        rows = self.store.query(ARTICLES_TABLE, order_by="published_at", limit=limit)
        return await self._with_summaries([record_to_article(row) for row in rows])

    async def get_trending_articles(self, limit: int = 10) -> List[FeedArticle]:
        rows = self.store.query(ARTICLES_TABLE, order_by="engagement_score", limit=limit)
        return await self._with_summaries([record_to_article(row) for row in rows])

    async def search_articles(self, query: str, limit: int = 50) -> List[FeedArticle]:
        """Case-insensitive substring match over title, description, source and location"""
        term = (query or "").strip()
        if not term:
            return []
        rows = self.store.query(
            ARTICLES_TABLE,
            search=(term, SEARCH_COLUMNS),
            order_by="published_at",
            limit=limit,
        )
        return await self._with_summaries([record_to_article(row) for row in rows])

    def get_article(self, article_id: str) -> Optional[Article]:
        row = self.store.get(ARTICLES_TABLE, id=article_id)
        return record_to_article(row) if row else None

    # Real-time

    def subscribe_to_feed(self, callback: FeedCallback, on_overflow: Optional[OverflowCallback] = None) -> str:
        return self.distributor.subscribe(callback, on_overflow=on_overflow)

    def unsubscribe(self, subscription_id: str) -> bool:
        return self.distributor.unsubscribe(subscription_id)

    # Engagement

    def record_interaction(
        self,
        user_id: str,
        article_id: str,
        kind: str,
        payload: Optional[Dict[str, Any]] = None,
        active: bool = True,
    ) -> EngagementAnalytics:
        return self.tracker.record(user_id, article_id, kind, payload=payload, active=active)

    def get_engagement(self, article_id: str, user_id: Optional[str] = None) -> EngagementAnalytics:
        return self.tracker.score(article_id, user_id)

    def get_trends(self, window: str = "24h") -> NewsTrends:
        return self.tracker.trends(window)

    # Aggregation

    async def run_aggregation(self, force: bool = False) -> AggregationResult:
        return await self.aggregation.run(force=force)

    def start_scheduler(self, run_immediately: bool = False) -> None:
        self.scheduler.start(run_immediately=run_immediately)

    def stop_scheduler(self) -> None:
        self.scheduler.shutdown()

    async def close(self) -> None:
        self.stop_scheduler()
        await self.distributor.close()
        await self.http_client.close()

    # Internals

    async def _with_summaries(self, articles: List[Article]) -> List[FeedArticle]:
        """Attach summaries; with lazy summaries on, generate missing or stale ones.

        A summarization failure never hides the article: it is served with
        whatever summary (possibly none) the store already had.
        """
        summaries: Dict[str, Optional[Summary]] = {
            article.id: self.engine.get_summary(article.id) for article in articles
        }

        if self.config.processing.lazy_summaries:
            pending = [
                article for article in articles
                if summaries[article.id] is None or not self.engine.is_fresh(summaries[article.id])
            ]
            if pending:
                for summary in await self.engine.summarize_batch(pending, self.summary_options):
                    summaries[summary.article_id] = summary

        return [FeedArticle(article=article, summary=summaries[article.id]) for article in articles]

    def _on_article_change(self, operation: str, record: Dict[str, Any]) -> None:
        if operation in (INSERT, UPDATE):
            self.distributor.publish([record_to_article(record)])

    def _on_summary_change(self, operation: str, record: Dict[str, Any]) -> None:
        if operation not in (INSERT, UPDATE):
            return
        article = self.get_article(record["article_id"])
        if article is not None:
            self.distributor.publish([article])
