"""
Tests for the AI provider adapters
"""
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest
from open_agent import TextBlock  # type: ignore

from newsdesk.summarizers.providers import (
    AnthropicProvider,
    GeminiProvider,
    HuggingFaceProvider,
    LocalLLMProvider,
    OpenAIProvider,
    build_providers,
)
from newsdesk.utils.config import ProviderConfig
from newsdesk.utils.errors import ProviderError, RateLimited
from newsdesk.utils.models import SummarizationOptions
from newsdesk.utils.rate_limiter import SlidingWindowRateLimiter


def _config(name, api_key="secret", **overrides):
    data = {
        "name": name,
        "api_key": api_key,
        "model": f"{name}-model",
        "base_url": f"https://{name}.example.com/v1",
    }
    data.update(overrides)
    return ProviderConfig(**data)


class TestOpenAIProvider:
    @pytest.mark.asyncio
    async def test_request_shape(self):
        provider = OpenAIProvider(_config("openai"))
        response = {"choices": [{"message": {"content": "Summary text"}}]}

        with patch.object(provider, "_post_json", AsyncMock(return_value=response)) as post:
            text = await provider.complete("Summarize this", system_prompt="Be brief")

        assert text == "Summary text"
        url, payload = post.call_args.args
        assert url == "https://openai.example.com/v1/chat/completions"
        assert payload["model"] == "openai-model"
        assert payload["messages"][0] == {"role": "system", "content": "Be brief"}
        assert payload["messages"][1] == {"role": "user", "content": "Summarize this"}
        assert post.call_args.kwargs["headers"] == {"Authorization": "Bearer secret"}

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        provider = OpenAIProvider(_config("openai", api_key=None))

        with patch.object(provider, "_post_json", AsyncMock()) as post:
            with pytest.raises(ProviderError):
                await provider.complete("prompt")

        post.assert_not_called()

    @pytest.mark.asyncio
    async def test_rate_limit_checked_before_request(self):
        limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=3600)
        provider = OpenAIProvider(_config("openai"), rate_limiter=limiter)
        response = {"choices": [{"message": {"content": "ok"}}]}

        with patch.object(provider, "_post_json", AsyncMock(return_value=response)) as post:
            await provider.complete("one")
            with pytest.raises(RateLimited):
                await provider.complete("two")

        assert post.await_count == 1

    @pytest.mark.asyncio
    async def test_malformed_payload(self):
        provider = OpenAIProvider(_config("openai"))

        with patch.object(provider, "_post_json", AsyncMock(return_value={"error": "nope"})):
            with pytest.raises(ProviderError):
                await provider.complete("prompt")

    @pytest.mark.asyncio
    async def test_empty_completion(self):
        provider = OpenAIProvider(_config("openai"))
        response = {"choices": [{"message": {"content": "   "}}]}

        with patch.object(provider, "_post_json", AsyncMock(return_value=response)):
            with pytest.raises(ProviderError):
                await provider.complete("prompt")

    @pytest.mark.asyncio
    async def test_network_error_becomes_provider_error(self):
        provider = OpenAIProvider(_config("openai"))

        with patch.object(provider, "_post_json", AsyncMock(side_effect=aiohttp.ClientConnectionError("down"))):
            with pytest.raises(ProviderError) as exc_info:
                await provider.complete("prompt")

        assert exc_info.value.provider == "openai"


class TestOtherProviders:
    @pytest.mark.asyncio
    async def test_anthropic(self):
        provider = AnthropicProvider(_config("anthropic"))
        response = {"content": [{"type": "text", "text": "Part one. "}, {"type": "text", "text": "Part two."}]}

        with patch.object(provider, "_post_json", AsyncMock(return_value=response)) as post:
            text = await provider.complete("prompt", system_prompt="system")

        assert text == "Part one. Part two."
        url, payload = post.call_args.args
        assert url == "https://anthropic.example.com/v1/messages"
        assert payload["system"] == "system"
        assert post.call_args.kwargs["headers"]["x-api-key"] == "secret"

    @pytest.mark.asyncio
    async def test_gemini_passes_key_as_param(self):
        provider = GeminiProvider(_config("gemini"))
        response = {"candidates": [{"content": {"parts": [{"text": "Gemini summary"}]}}]}

        with patch.object(provider, "_post_json", AsyncMock(return_value=response)) as post:
            text = await provider.complete("prompt")

        assert text == "Gemini summary"
        assert post.call_args.args[0] == "https://gemini.example.com/v1/models/gemini-model:generateContent"
        assert post.call_args.kwargs["params"] == {"key": "secret"}

    @pytest.mark.asyncio
    async def test_huggingface_summarizes_article_text(self, make_article):
        provider = HuggingFaceProvider(_config("huggingface"))
        article = make_article(content="Full article body about the library.")

        prompt = provider.build_prompt(article, SummarizationOptions())
        with patch.object(provider, "_post_json", AsyncMock(return_value=[{"summary_text": "Library opens."}])) as post:
            text = await provider.complete(prompt)

        assert prompt == "Full article body about the library."
        assert text == "Library opens."
        assert post.call_args.args[1]["inputs"] == prompt

    @pytest.mark.asyncio
    async def test_local_provider_collects_text_blocks(self):
        provider = LocalLLMProvider(_config("local", api_key=None, base_url="http://localhost:8080/v1"))

        class Message:
            content = [TextBlock(text="Local "), TextBlock(text="summary")]

        async def fake_query(prompt, options):
            yield Message()

        with patch("newsdesk.summarizers.providers.oa_client.query", side_effect=fake_query):
            text = await provider.complete("prompt")

        assert text == "Local summary"

    @pytest.mark.asyncio
    async def test_local_provider_failure(self):
        provider = LocalLLMProvider(_config("local", api_key=None, base_url="http://localhost:8080/v1"))

        async def broken_query(prompt, options):
            raise OSError("connection refused")
            yield

        with patch("newsdesk.summarizers.providers.oa_client.query", side_effect=broken_query):
            with pytest.raises(ProviderError):
                await provider.complete("prompt")


class TestBuildProviders:
    def test_order_preserved_and_unknown_skipped(self):
        configs = {name: _config(name) for name in ("openai", "anthropic", "gemini")}

        providers = build_providers(["gemini", "mystery", "openai"], configs)

        assert [p.name for p in providers] == ["gemini", "openai"]
        assert isinstance(providers[0], GeminiProvider)
