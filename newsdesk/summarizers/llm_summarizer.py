"""
Summarization engine: cache, ordered AI provider chain, rule-based fallback
"""

import asyncio
import json
import re
import time
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from newsdesk.processors.content_processor import (
    extract_entities,
    extract_topics,
    reading_time,
    word_count,
)
from newsdesk.storage.store import Store, record_to_summary, summary_to_record
from newsdesk.summarizers.providers import Provider
from newsdesk.summarizers.rule_based import RuleBasedSummarizer, truncate
from newsdesk.utils.constants import ProcessingConstants, RateLimitConstants, SummaryConstants
from newsdesk.utils.errors import ProviderError, RateLimited, SummarizationError
from newsdesk.utils.llm_prompts import LLMPrompts
from newsdesk.utils.logger import logger
from newsdesk.utils.models import Article, Sentiment, SummarizationOptions, Summary, utcnow

SUMMARIES_TABLE = "article_summaries"

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


def parse_ai_response(text: str) -> Dict[str, Any]:
    """Parse a provider completion.

    Accepts a bare JSON object, one wrapped in a code fence, or one embedded
    in prose. Anything else is free text: the whole text becomes the summary
    with confidence 0.7 and no key points or tags.
    """
    raw_text = (text or "").strip()
    candidate = _FENCE_PATTERN.sub("", raw_text).strip()

    data = None
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        match = _JSON_OBJECT_PATTERN.search(candidate)
        if match:
            try:
                data = json.loads(match.group(0))
            except json.JSONDecodeError:
                data = None

    if isinstance(data, dict):
        return {
            "structured": True,
            "summary": data.get("summary") or "",
            "key_points": data.get("keyPoints") or data.get("key_points") or [],
            "sentiment": data.get("sentiment"),
            "confidence": data.get("confidence"),
            "tags": data.get("tags") or [],
            "reading_time": data.get("readingTime") or data.get("reading_time"),
        }

    return {
        "structured": False,
        "summary": raw_text,
        "key_points": [],
        "sentiment": None,
        "confidence": SummaryConstants.FREE_TEXT_CONFIDENCE,
        "tags": [],
        "reading_time": None,
    }


def _as_sentiment(value: Any) -> Sentiment:
    try:
        return Sentiment(str(value).strip().lower())
    except ValueError:
        return Sentiment.NEUTRAL


def _as_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return SummaryConstants.STRUCTURED_DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, confidence))


class SummarizationEngine:
    """Produces one summary per article with AI providers and a deterministic fallback"""

    def __init__(
        self,
        store: Store,
        providers: List[Provider],
        fallback: Optional[RuleBasedSummarizer] = None,
        freshness_hours: int = SummaryConstants.FRESHNESS_HOURS,
        concurrency: int = ProcessingConstants.DEFAULT_SUMMARY_CONCURRENCY,
        time_func: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.providers = list(providers)
        self.fallback = fallback or RuleBasedSummarizer()
        self.freshness = timedelta(hours=freshness_hours)
        self.concurrency = concurrency
        self._cache: Dict[Tuple[str, int, str], Summary] = {}
        self._hits = 0
        self._misses = 0
        self._time = time_func
        # Provider name to monotonic deadline after a rate limit
        self._blocked_until: Dict[str, float] = {}

    def is_fresh(self, summary: Summary) -> bool:
        return utcnow() - summary.created_at < self.freshness

    async def summarize(self, article: Article, options: Optional[SummarizationOptions] = None) -> Summary:
        options = options or SummarizationOptions()
        key = (article.id, options.max_length, options.language)

        if not options.force:
            cached = self._lookup(key)
            if cached is not None:
                self._hits += 1
                return cached
        self._misses += 1

        summary = await self._generate(article, options)

        self.store.upsert(SUMMARIES_TABLE, summary_to_record(summary), key=("article_id",))
        self._cache[key] = summary
        return summary

    async def summarize_batch(
        self, articles: List[Article], options: Optional[SummarizationOptions] = None
    ) -> List[Summary]:
        """Summarize articles concurrently; providers stay sequential per article"""
        if not articles:
            return []

        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(article: Article) -> Summary:
            async with semaphore:
                return await self.summarize(article, options)

        results = await asyncio.gather(*(run(a) for a in articles), return_exceptions=True)

        summaries = []
        for article, result in zip(articles, results):
            if isinstance(result, BaseException):
                logger.error(f"Summarization failed for article {article.id}: {result}")
            else:
                summaries.append(result)

        logger.info(f"Generated summaries for {len(summaries)}/{len(articles)} articles")
        return summaries

    def get_summary(self, article_id: str) -> Optional[Summary]:
        """Latest persisted summary for the article, fresh or not"""
        record = self.store.get(SUMMARIES_TABLE, article_id=article_id)
        return record_to_summary(record) if record else None

    def clear_cache(self) -> None:
        self._cache.clear()
        self._hits = 0
        self._misses = 0

    def cache_stats(self) -> Dict[str, int]:
        return {"entries": len(self._cache), "hits": self._hits, "misses": self._misses}

    def _lookup(self, key: Tuple[str, int, str]) -> Optional[Summary]:
        cached = self._cache.get(key)
        if cached is not None:
            if self.is_fresh(cached):
                return cached
            del self._cache[key]

        article_id, max_length, language = key
        persisted = self.get_summary(article_id)
        if (
            persisted is not None
            and persisted.max_length == max_length
            and persisted.language == language
            and self.is_fresh(persisted)
        ):
            self._cache[key] = persisted
            return persisted

        return None

    async def _generate(self, article: Article, options: SummarizationOptions) -> Summary:
        system_prompt = LLMPrompts.get_article_summary_system_prompt()

        for provider in self.providers:
            if self._is_blocked(provider.name):
                logger.debug(f"Skipping rate limited provider {provider.name} for {article.id}")
                continue

            started = time.perf_counter()
            try:
                prompt = provider.build_prompt(article, options)
                text = await provider.complete(prompt, system_prompt=system_prompt)
                parsed = parse_ai_response(text)
                if not parsed["summary"]:
                    raise ProviderError(provider.name, "response has no summary")
                summary = self._build_summary(article, options, provider.name, parsed, started)
                logger.debug(f"Summarized {article.id} with {provider.name}")
                return summary
            except RateLimited as e:
                self._block(provider.name, e.retry_after)
                logger.warning(f"Provider {provider.name} rate limited for {article.id}: {e}")
            except ProviderError as e:
                logger.warning(f"Provider {provider.name} failed for {article.id}: {e}")
            except Exception as e:
                logger.exception(f"Unexpected error from provider {provider.name} for {article.id}: {e}")

        logger.warning(f"All AI providers failed for {article.id}, using rule-based summary")
        try:
            return self.fallback.summarize(article, options)
        except Exception as e:
            raise SummarizationError(f"Rule-based summary failed for {article.id}: {e}") from e

    def _is_blocked(self, name: str) -> bool:
        deadline = self._blocked_until.get(name)
        if deadline is None:
            return False
        if self._time() >= deadline:
            del self._blocked_until[name]
            return False
        return True

    def _block(self, name: str, retry_after: float) -> None:
        seconds = retry_after if retry_after > 0 else RateLimitConstants.PROVIDER_COOLDOWN_SECONDS
        self._blocked_until[name] = self._time() + seconds

    @staticmethod
    def _build_summary(
        article: Article,
        options: SummarizationOptions,
        provider_name: str,
        parsed: Dict[str, Any],
        started: float,
    ) -> Summary:
        body = article.content or article.description or ""
        full_text = f"{article.title} {body}"

        confidence = (
            _as_confidence(parsed["confidence"]) if parsed["structured"]
            else SummaryConstants.FREE_TEXT_CONFIDENCE
        )

        try:
            minutes = max(1, int(parsed["reading_time"])) if parsed["reading_time"] else reading_time(body)
        except (TypeError, ValueError):
            minutes = reading_time(body)

        key_points = [str(p) for p in parsed["key_points"] if p] if options.include_key_points else []
        tags = [str(t).lower() for t in parsed["tags"] if t] if options.include_tags else []

        return Summary(
            article_id=article.id,
            summary=truncate(str(parsed["summary"]).strip(), options.max_length),
            key_points=key_points,
            sentiment=_as_sentiment(parsed["sentiment"]) if options.include_sentiment else Sentiment.NEUTRAL,
            confidence=confidence,
            reading_time=minutes,
            tags=tags,
            provider=provider_name,
            ai_generated=True,
            processing_time_ms=int((time.perf_counter() - started) * 1000),
            word_count=word_count(body),
            language=options.language,
            max_length=options.max_length,
            entities=extract_entities(full_text),
            topics=extract_topics(full_text),
        )
