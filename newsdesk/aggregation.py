"""
Aggregation runs: fetch due sources, normalize, persist, optionally summarize
"""
import asyncio
import time
from typing import Dict, List, Optional

from newsdesk.aggregators.base import BaseFetcher
from newsdesk.processors.normalizer import ArticleNormalizer
from newsdesk.sources.registry import SourceRegistry
from newsdesk.storage.store import Store, article_to_record
from newsdesk.summarizers.llm_summarizer import SummarizationEngine
from newsdesk.utils.constants import ProcessingConstants
from newsdesk.utils.errors import (
    ArticleValidationError,
    DuplicateArticle,
    DuplicateKeyError,
    FetchError,
    RateLimited,
    StoreError,
)
from newsdesk.utils.logger import logger
from newsdesk.utils.models import AggregationResult, Article, Source, SourceKind, SummarizationOptions, utcnow

RATE_LIMITED = "rate_limited"
TIMEOUT = "timeout"
UNEXPECTED = "error"


class AggregationService:
    """Runs one aggregation tick at a time.

    A tick that arrives while another is running is skipped and reported
    with ``skipped_overlap=True``; it is never queued.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        fetchers: Dict[SourceKind, BaseFetcher],
        normalizer: ArticleNormalizer,
        store: Store,
        summarizer: Optional[SummarizationEngine] = None,
        summarize_on_ingest: bool = False,
        summary_options: Optional[SummarizationOptions] = None,
        concurrency: int = ProcessingConstants.DEFAULT_FETCH_CONCURRENCY,
        source_timeout: float = 60.0,
        run_budget_seconds: float = 600.0,
    ):
        self.registry = registry
        self.fetchers = fetchers
        self.normalizer = normalizer
        self.store = store
        self.summarizer = summarizer
        self.summarize_on_ingest = summarize_on_ingest
        self.summary_options = summary_options or SummarizationOptions()
        self.concurrency = concurrency
        self.source_timeout = source_timeout
        self.run_budget_seconds = run_budget_seconds
        self._running = False
        self.last_result: Optional[AggregationResult] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(self, force: bool = False) -> AggregationResult:
        """Run one tick; ``force`` ignores per-source intervals but not the overlap guard"""
        if self._running:
            logger.warning("Aggregation already in progress, skipping this tick")
            return AggregationResult(skipped_overlap=True)

        self._running = True
        try:
            result = await self._run(force)
        finally:
            self._running = False

        self.last_result = result
        return result

    async def force_run(self) -> AggregationResult:
        return await self.run(force=True)

    async def _run(self, force: bool) -> AggregationResult:
        started = time.perf_counter()
        result = AggregationResult()
        loop = asyncio.get_running_loop()
        budget_timer = loop.call_later(
            self.run_budget_seconds,
            lambda: logger.warning(
                f"Aggregation run exceeded its {self.run_budget_seconds:.0f}s budget, letting in-flight fetches finish"
            ),
        )

        try:
            now = utcnow()
            try:
                sources = self.registry.list_active_sources()
            except StoreError as e:
                logger.error(f"Could not list active sources: {e}")
                result.errors += 1
                sources = []
            due = [s for s in sources if force or self.registry.is_due(s, now)]
            result.sources_skipped = len(sources) - len(due)

            stored: List[Article] = []
            semaphore = asyncio.Semaphore(self.concurrency)

            async def run_source(source: Source) -> None:
                async with semaphore:
                    await self._process_source(source, result, stored)

            outcomes = await asyncio.gather(*(run_source(s) for s in due), return_exceptions=True)
            for source, outcome in zip(due, outcomes):
                if isinstance(outcome, Exception):
                    logger.opt(exception=outcome).debug(f"Traceback for {source.name}")
                    self._source_failed(source, result, UNEXPECTED, outcome)

            if self.summarize_on_ingest and self.summarizer and stored:
                summaries = await self.summarizer.summarize_batch(stored, self.summary_options)
                result.summaries_generated = len(summaries)
        finally:
            budget_timer.cancel()

        result.elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            f"Aggregation complete: {result.sources_processed} sources processed, "
            f"{result.sources_skipped} skipped, {len(result.sources_failed)} failed; "
            f"{result.fetched} fetched, {result.stored} stored, {result.duplicates} duplicates, "
            f"{result.rejected} rejected, {result.errors} errors in {result.elapsed_ms}ms"
        )
        return result

    async def _fetch(self, source: Source):
        fetcher = self.fetchers.get(source.kind)
        if fetcher is None:
            raise FetchError(f"No fetcher for source kind {source.kind.value}", kind=FetchError.PERMANENT)
        return await asyncio.wait_for(fetcher.fetch(source), timeout=self.source_timeout)

    async def _process_source(self, source: Source, result: AggregationResult, stored: List[Article]) -> None:
        """Fetch one source and persist what it yields; failures stay with this source"""
        try:
            raw_articles = await self._fetch(source)
        except FetchError as e:
            self._source_failed(source, result, e.kind, e, permanent=e.is_permanent)
            return
        except RateLimited as e:
            self._source_failed(source, result, RATE_LIMITED, e)
            return
        except asyncio.TimeoutError:
            self._source_failed(source, result, TIMEOUT, f"timed out after {self.source_timeout}s")
            return
        except Exception as e:
            logger.exception(f"Unexpected error fetching {source.name}: {e}")
            self._source_failed(source, result, UNEXPECTED, e)
            return

        for raw in raw_articles:
            result.fetched += 1
            try:
                article = self.normalizer.normalize(raw, source)
            except DuplicateArticle:
                result.duplicates += 1
                continue
            except ArticleValidationError as e:
                logger.debug(f"Rejected article from {source.name}: {e.reason}")
                result.rejected += 1
                continue
            except StoreError as e:
                logger.error(f"Duplicate check failed for {raw.url} from {source.name}: {e}")
                result.errors += 1
                continue

            result.processed += 1
            try:
                self.store.insert("articles", article_to_record(article))
            except DuplicateKeyError:
                result.duplicates += 1
                continue
            except StoreError as e:
                logger.error(f"Failed to store article {article.url}: {e}")
                result.errors += 1
                continue

            result.stored += 1
            stored.append(article)

        try:
            self.registry.mark_fetched(source.id, utcnow())
        except StoreError as e:
            logger.error(f"Could not record fetch time for {source.name}: {e}")
            result.errors += 1
        result.sources_processed += 1
        logger.debug(f"Processed {len(raw_articles)} items from {source.name}")

    def _source_failed(self, source: Source, result: AggregationResult, kind: str, error, permanent: bool = False) -> None:
        logger.error(f"Source {source.name} failed ({kind}): {error}")
        result.errors += 1
        result.sources_failed[source.id] = kind
        try:
            self.registry.record_failure(source.id, error if isinstance(error, Exception) else Exception(error), permanent)
        except StoreError as e:
            logger.error(f"Could not record failure for {source.name}: {e}")
