"""
Tests for the summarization engine: provider chain, freshness and fallback
"""
import asyncio
import json
from datetime import timedelta
from unittest.mock import AsyncMock, Mock

import pytest

from newsdesk.storage.store import article_to_record, summary_to_record
from newsdesk.summarizers.llm_summarizer import (
    SUMMARIES_TABLE,
    SummarizationEngine,
    parse_ai_response,
)
from newsdesk.summarizers.providers import Provider
from newsdesk.utils.config import ProviderConfig
from newsdesk.utils.errors import ProviderError, RateLimited, SummarizationError
from newsdesk.utils.models import Sentiment, SummarizationOptions, Summary, utcnow

AI_RESPONSE = json.dumps({
    "summary": "A new library opened downtown.",
    "keyPoints": ["Opened Monday", "Downtown location"],
    "sentiment": "positive",
    "confidence": 0.92,
    "tags": ["Community", "Culture"],
    "readingTime": 2,
})


def _provider(name="openai", response=AI_RESPONSE, error=None):
    provider = Mock()
    provider.name = name
    provider.build_prompt.return_value = f"prompt for {name}"
    provider.complete = AsyncMock(return_value=response, side_effect=error)
    return provider


class SlowProvider(Provider):
    """Provider whose completions never arrive within its timeout"""

    name = "slow"

    async def _complete(self, prompt, max_tokens, temperature, system_prompt):
        await asyncio.sleep(1)
        return AI_RESPONSE


def _slow(name):
    return SlowProvider(ProviderConfig(
        name=name, api_key="key", model="model", base_url="https://llm.example.com", timeout=0.01,
    ))


class TestParseAIResponse:
    def test_bare_json(self):
        parsed = parse_ai_response(AI_RESPONSE)

        assert parsed["structured"] is True
        assert parsed["summary"] == "A new library opened downtown."
        assert parsed["key_points"] == ["Opened Monday", "Downtown location"]
        assert parsed["reading_time"] == 2

    def test_code_fence(self):
        parsed = parse_ai_response(f"```json\n{AI_RESPONSE}\n```")

        assert parsed["structured"] is True
        assert parsed["confidence"] == 0.92

    def test_embedded_in_prose(self):
        parsed = parse_ai_response(f"Here is the summary you asked for: {AI_RESPONSE} Hope it helps.")

        assert parsed["structured"] is True
        assert parsed["sentiment"] == "positive"

    def test_free_text(self):
        parsed = parse_ai_response("  The library opened on Monday.  ")

        assert parsed["structured"] is False
        assert parsed["summary"] == "The library opened on Monday."
        assert parsed["confidence"] == 0.7
        assert parsed["key_points"] == []


class TestProviderChain:
    @pytest.mark.asyncio
    async def test_first_provider_wins(self, store, stored_article):
        first, second = _provider("openai"), _provider("anthropic")
        engine = SummarizationEngine(store, [first, second])

        summary = await engine.summarize(stored_article)

        assert summary.provider == "openai"
        assert summary.ai_generated is True
        assert summary.confidence == 0.92
        assert summary.sentiment == Sentiment.POSITIVE
        assert summary.tags == ["community", "culture"]
        assert summary.reading_time == 2
        second.complete.assert_not_called()
        first.complete.assert_awaited_once()
        assert "system_prompt" in first.complete.call_args.kwargs

    @pytest.mark.asyncio
    async def test_failed_provider_is_not_retried(self, store, stored_article):
        first = _provider("openai", error=ProviderError("openai", "HTTP 500"))
        second = _provider("anthropic")
        engine = SummarizationEngine(store, [first, second])

        summary = await engine.summarize(stored_article)

        assert summary.provider == "anthropic"
        assert first.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_rate_limited_provider_is_skipped(self, store, stored_article):
        first = _provider("openai", error=RateLimited("openai", 30))
        second = _provider("gemini")

        summary = await SummarizationEngine(store, [first, second]).summarize(stored_article)

        assert summary.provider == "gemini"

    @pytest.mark.asyncio
    async def test_rate_limited_provider_skipped_until_window_passes(self, store, make_article):
        now = [1000.0]
        limited = _provider("openai", error=RateLimited("openai", 3600))
        engine = SummarizationEngine(store, [limited], time_func=lambda: now[0])
        articles = [make_article(url=f"https://news.example.com/story-{i}") for i in range(3)]
        for article in articles:
            store.insert("articles", article_to_record(article))

        first = await engine.summarize(articles[0])
        second = await engine.summarize(articles[1])

        assert first.provider == "rule-based"
        assert second.provider == "rule-based"
        assert limited.complete.await_count == 1

        now[0] += 3601
        limited.complete.side_effect = None
        third = await engine.summarize(articles[2])

        assert third.provider == "openai"
        assert limited.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_rate_limit_without_retry_after_uses_cooldown(self, store, make_article):
        now = [0.0]
        limited = _provider("openai", error=RateLimited("openai", 0))
        engine = SummarizationEngine(store, [limited], time_func=lambda: now[0])
        articles = [make_article(url=f"https://news.example.com/cooldown-{i}") for i in range(3)]
        for article in articles:
            store.insert("articles", article_to_record(article))

        await engine.summarize(articles[0])
        now[0] += 30
        await engine.summarize(articles[1])
        assert limited.complete.await_count == 1

        now[0] += 31
        await engine.summarize(articles[2])
        assert limited.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_empty_summary_moves_on(self, store, stored_article):
        first = _provider("openai", response=json.dumps({"summary": "", "confidence": 0.9}))
        second = _provider("anthropic")

        summary = await SummarizationEngine(store, [first, second]).summarize(stored_article)

        assert summary.provider == "anthropic"

    @pytest.mark.asyncio
    async def test_free_text_completion(self, store, stored_article):
        provider = _provider("huggingface", response="Library opens downtown.")

        summary = await SummarizationEngine(store, [provider]).summarize(stored_article)

        assert summary.summary == "Library opens downtown."
        assert summary.confidence == 0.7
        assert summary.key_points == []

    @pytest.mark.asyncio
    async def test_ai_summary_truncated_to_max_length(self, store, stored_article):
        long_text = json.dumps({"summary": "word " * 100, "confidence": 0.9})
        provider = _provider(response=long_text)

        summary = await SummarizationEngine(store, [provider]).summarize(
            stored_article, SummarizationOptions(max_length=40)
        )

        assert len(summary.summary) <= 40
        assert summary.summary.endswith("...")

    @pytest.mark.asyncio
    async def test_all_providers_time_out_falls_back(self, store, stored_article):
        engine = SummarizationEngine(store, [_slow("openai"), _slow("anthropic")])

        summary = await engine.summarize(stored_article)

        assert summary.provider == "rule-based"
        assert summary.ai_generated is False
        assert summary.confidence <= 0.75
        assert summary.summary == stored_article.description

    @pytest.mark.asyncio
    async def test_no_providers_uses_fallback(self, store, stored_article):
        summary = await SummarizationEngine(store, []).summarize(stored_article)

        assert summary.provider == "rule-based"

    @pytest.mark.asyncio
    async def test_fallback_failure_raises(self, store, stored_article):
        fallback = Mock()
        fallback.summarize.side_effect = RuntimeError("broken")

        with pytest.raises(SummarizationError):
            await SummarizationEngine(store, [], fallback=fallback).summarize(stored_article)


class TestCaching:
    @pytest.mark.asyncio
    async def test_summary_persisted_and_announced(self, store, stored_article):
        events = []
        store.on_change(SUMMARIES_TABLE, lambda operation, record: events.append(record["article_id"]))
        engine = SummarizationEngine(store, [_provider()])

        await engine.summarize(stored_article)

        assert engine.get_summary(stored_article.id).summary == "A new library opened downtown."
        assert events == [stored_article.id]

    @pytest.mark.asyncio
    async def test_cache_hit_skips_providers(self, store, stored_article):
        provider = _provider()
        engine = SummarizationEngine(store, [provider])

        first = await engine.summarize(stored_article)
        second = await engine.summarize(stored_article)

        assert first.summary == second.summary
        assert provider.complete.await_count == 1
        assert engine.cache_stats() == {"entries": 1, "hits": 1, "misses": 1}

    @pytest.mark.asyncio
    async def test_force_regenerates(self, store, stored_article):
        provider = _provider()
        engine = SummarizationEngine(store, [provider])

        await engine.summarize(stored_article)
        await engine.summarize(stored_article, SummarizationOptions(force=True))

        assert provider.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_different_length_regenerates(self, store, stored_article):
        provider = _provider()
        engine = SummarizationEngine(store, [provider])

        await engine.summarize(stored_article, SummarizationOptions(max_length=150))
        await engine.summarize(stored_article, SummarizationOptions(max_length=80))

        assert provider.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_fresh_persisted_summary_served(self, store, stored_article):
        store.upsert(SUMMARIES_TABLE, summary_to_record(Summary(
            article_id=stored_article.id,
            summary="Stored summary",
            provider="openai",
            created_at=utcnow() - timedelta(hours=1),
        )), key=("article_id",))
        provider = _provider()

        summary = await SummarizationEngine(store, [provider]).summarize(stored_article)

        assert summary.summary == "Stored summary"
        provider.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_stale_summary_regenerated(self, store, stored_article):
        store.upsert(SUMMARIES_TABLE, summary_to_record(Summary(
            article_id=stored_article.id,
            summary="Old summary",
            provider="openai",
            created_at=utcnow() - timedelta(hours=25),
        )), key=("article_id",))
        provider = _provider()
        engine = SummarizationEngine(store, [provider])

        summary = await engine.summarize(stored_article)

        assert summary.summary == "A new library opened downtown."
        assert engine.get_summary(stored_article.id).summary == "A new library opened downtown."
        assert len(store.query(SUMMARIES_TABLE)) == 1

    @pytest.mark.asyncio
    async def test_clear_cache(self, store, stored_article):
        engine = SummarizationEngine(store, [_provider()])
        await engine.summarize(stored_article)

        engine.clear_cache()

        assert engine.cache_stats() == {"entries": 0, "hits": 0, "misses": 0}


class TestBatch:
    @pytest.mark.asyncio
    async def test_batch_returns_successes(self, store, make_article):
        articles = [make_article(url=f"https://news.example.com/{i}") for i in range(3)]
        for article in articles:
            store.insert("articles", article_to_record(article))
        engine = SummarizationEngine(store, [_provider()], concurrency=2)

        summaries = await engine.summarize_batch(articles)

        assert sorted(s.article_id for s in summaries) == sorted(a.id for a in articles)

    @pytest.mark.asyncio
    async def test_batch_empty(self, store):
        assert await SummarizationEngine(store, []).summarize_batch([]) == []
