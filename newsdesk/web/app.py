"""FastAPI application exposing the news feed over HTTP and WebSocket."""

import asyncio
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from newsdesk.feed import NewsFeed
from newsdesk.utils.errors import ArticleNotFoundError, NewsdeskError
from newsdesk.utils.logger import logger
from newsdesk.utils.models import (
    AggregationResult,
    Article,
    EngagementAnalytics,
    FeedArticle,
    NewsTrends,
)
from newsdesk.utils.rate_limiter import SlidingWindowRateLimiter
from newsdesk.web.error_handlers import (
    global_exception_handler,
    newsdesk_exception_handler,
    validation_exception_handler,
)
from newsdesk.web.schemas import HealthResponse, InteractionCreate


def get_feed(request: Request) -> NewsFeed:
    return request.app.state.feed


def create_app(feed: Optional[NewsFeed] = None, run_scheduler: bool = False) -> FastAPI:
    """
    Build the API around a NewsFeed.

    Args:
        feed: Feed to serve; built from the default Config when omitted
        run_scheduler: Start the aggregation scheduler for the app's lifetime
    """
    feed = feed or NewsFeed()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Newsdesk API")
        if run_scheduler:
            feed.start_scheduler(run_immediately=True)

        yield

        logger.info("Shutting down Newsdesk API")
        await feed.close()

    app = FastAPI(title="Newsdesk", lifespan=lifespan)
    app.state.feed = feed
    app.state.interaction_limiter = SlidingWindowRateLimiter(
        max_requests=feed.config.web.interactions_per_minute,
        window_seconds=60,
    )

    # Register exception handlers
    app.add_exception_handler(NewsdeskError, newsdesk_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.get("/api/articles/latest", response_model=List[FeedArticle])
    async def latest_articles(
        limit: int = Query(20, ge=1, le=100),
        feed: NewsFeed = Depends(get_feed),
    ):
        return await feed.get_latest_articles(limit)

    @app.get("/api/articles/trending", response_model=List[FeedArticle])
    async def trending_articles(
        limit: int = Query(10, ge=1, le=100),
        feed: NewsFeed = Depends(get_feed),
    ):
        return await feed.get_trending_articles(limit)

    @app.get("/api/articles/search", response_model=List[FeedArticle])
    async def search_articles(
        q: str = Query(..., min_length=1, max_length=200),
        limit: int = Query(50, ge=1, le=100),
        feed: NewsFeed = Depends(get_feed),
    ):
        return await feed.search_articles(q, limit=limit)

    @app.get("/api/articles/{article_id}/engagement", response_model=EngagementAnalytics)
    async def article_engagement(
        article_id: str,
        user_id: Optional[str] = None,
        feed: NewsFeed = Depends(get_feed),
    ):
        if feed.get_article(article_id) is None:
            raise ArticleNotFoundError(f"Article not found: {article_id}")
        return feed.get_engagement(article_id, user_id)

    @app.post("/api/articles/{article_id}/interactions", response_model=EngagementAnalytics)
    async def record_interaction(
        article_id: str,
        interaction: InteractionCreate,
        request: Request,
        feed: NewsFeed = Depends(get_feed),
    ):
        """Record an interaction, rate limited per user."""
        is_allowed, _ = request.app.state.interaction_limiter.is_allowed(interaction.user_id)
        if not is_allowed:
            raise HTTPException(
                status_code=429,
                detail="Rate limit exceeded. Please wait before making another request.",
            )

        return feed.record_interaction(
            interaction.user_id,
            article_id,
            interaction.kind,
            payload=interaction.payload,
            active=interaction.active,
        )

    @app.get("/api/trends", response_model=NewsTrends)
    async def trends(
        window: str = Query("24h"),
        feed: NewsFeed = Depends(get_feed),
    ):
        try:
            return feed.get_trends(window)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @app.post("/api/aggregation/run", response_model=AggregationResult)
    async def run_aggregation(
        force: bool = Query(False),
        feed: NewsFeed = Depends(get_feed),
    ):
        result = await feed.run_aggregation(force=force)
        if result.skipped_overlap:
            return JSONResponse(status_code=409, content=result.model_dump(mode="json"))
        return result

    @app.get("/health", response_model=HealthResponse)
    async def health(feed: NewsFeed = Depends(get_feed)):
        return HealthResponse(
            scheduler_running=feed.scheduler.running,
            subscribers=feed.distributor.subscriber_count,
            aggregation_running=feed.aggregation.is_running,
            last_run=feed.aggregation.last_result,
        )

    @app.websocket("/ws/feed")
    async def feed_socket(websocket: WebSocket):
        """Push every new or updated article to the client as a JSON list."""
        await websocket.accept()

        async def push(articles: List[Article]) -> None:
            await websocket.send_json([article.model_dump(mode="json") for article in articles])

        def fell_behind() -> None:
            asyncio.get_running_loop().create_task(websocket.close(code=status.WS_1013_TRY_AGAIN_LATER))

        subscription_id = feed.subscribe_to_feed(push, on_overflow=fell_behind)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.debug(f"WebSocket subscriber {subscription_id} disconnected")
        finally:
            feed.unsubscribe(subscription_id)

    return app
