"""
AI provider adapters behind one contract.

Every adapter checks its own sliding-window budget before sending anything,
runs under an explicit timeout and reports failures as ``ProviderError`` or
``RateLimited`` so the summarization engine can move on to the next one.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import aiohttp
from open_agent import TextBlock  # type: ignore
from open_agent.types import AgentOptions  # type: ignore
from open_agent import client as oa_client  # type: ignore

from newsdesk.utils.config import ProviderConfig
from newsdesk.utils.constants import RateLimitConstants
from newsdesk.utils.errors import ProviderError, RateLimited
from newsdesk.utils.llm_prompts import LLMPrompts
from newsdesk.utils.logger import logger
from newsdesk.utils.models import Article, SummarizationOptions
from newsdesk.utils.rate_limiter import SlidingWindowRateLimiter


def _retry_after(value: Optional[str]) -> float:
    try:
        return float(value) if value else 0.0
    except ValueError:
        return 0.0


class Provider(ABC):
    """Base class for AI completion providers"""

    name = "provider"

    def __init__(self, config: ProviderConfig, rate_limiter: Optional[SlidingWindowRateLimiter] = None):
        self.config = config
        self.name = config.name or self.name
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter(
            max_requests=config.requests_per_hour,
            window_seconds=RateLimitConstants.WINDOW_SECONDS_HOUR,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.config.api_key)

    def build_prompt(self, article: Article, options: SummarizationOptions) -> str:
        return LLMPrompts.get_article_summary_user_prompt(article, options)

    async def complete(
        self,
        prompt: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        system_prompt: Optional[str] = None,
    ) -> str:
        """Return the raw completion text for ``prompt``"""
        if not self.is_configured:
            raise ProviderError(self.name, "missing credentials")

        self.rate_limiter.check(self.name)

        max_tokens = max_tokens or self.config.max_tokens
        temperature = self.config.temperature if temperature is None else temperature

        try:
            async with asyncio.timeout(self.config.timeout):
                text = await self._complete(prompt, max_tokens, temperature, system_prompt)
        except TimeoutError as e:
            raise ProviderError(self.name, f"timed out after {self.config.timeout}s") from e
        except aiohttp.ClientError as e:
            raise ProviderError(self.name, f"request failed: {e}") from e

        if not text or not text.strip():
            raise ProviderError(self.name, "empty completion")
        return text

    @abstractmethod
    async def _complete(
        self, prompt: str, max_tokens: int, temperature: float, system_prompt: Optional[str]
    ) -> str:
        pass

    async def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=payload, headers=headers, params=params) as response:
                if response.status == 429:
                    raise RateLimited(self.name, _retry_after(response.headers.get("Retry-After")))
                if response.status >= 400:
                    body = await response.text()
                    raise ProviderError(self.name, f"HTTP {response.status}: {body[:200]}")
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise ProviderError(self.name, f"invalid JSON response: {e}") from e

    def _malformed(self, data: Any) -> ProviderError:
        logger.debug(f"Unexpected {self.name} payload: {str(data)[:200]}")
        return ProviderError(self.name, "malformed payload")


class OpenAIProvider(Provider):
    """Chat completions API with bearer authentication"""

    name = "openai"

    async def _complete(self, prompt, max_tokens, temperature, system_prompt):
        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        data = await self._post_json(
            f"{self.config.base_url.rstrip('/')}/chat/completions",
            {
                "model": self.config.model,
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": temperature,
            },
            headers={"Authorization": f"Bearer {self.config.api_key}"},
        )
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise self._malformed(data)


class AnthropicProvider(Provider):
    """Messages API with x-api-key authentication"""

    name = "anthropic"
    API_VERSION = "2023-06-01"

    async def _complete(self, prompt, max_tokens, temperature, system_prompt):
        payload: Dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            payload["system"] = system_prompt

        data = await self._post_json(
            f"{self.config.base_url.rstrip('/')}/messages",
            payload,
            headers={"x-api-key": self.config.api_key, "anthropic-version": self.API_VERSION},
        )
        try:
            return "".join(block["text"] for block in data["content"] if block.get("type", "text") == "text")
        except (KeyError, TypeError):
            raise self._malformed(data)


class GeminiProvider(Provider):
    """generateContent API with the key passed as a query parameter"""

    name = "gemini"

    async def _complete(self, prompt, max_tokens, temperature, system_prompt):
        payload: Dict[str, Any] = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"maxOutputTokens": max_tokens, "temperature": temperature},
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        data = await self._post_json(
            f"{self.config.base_url.rstrip('/')}/models/{self.config.model}:generateContent",
            payload,
            params={"key": self.config.api_key},
        )
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise self._malformed(data)


class HuggingFaceProvider(Provider):
    """Inference API summarization model; returns plain summary text"""

    name = "huggingface"

    def build_prompt(self, article: Article, options: SummarizationOptions) -> str:
        # Summarization models take the article text, not instructions
        return article.content or article.description or article.title

    async def _complete(self, prompt, max_tokens, temperature, system_prompt):
        data = await self._post_json(
            f"{self.config.base_url.rstrip('/')}/{self.config.model}",
            {
                "inputs": prompt,
                "parameters": {
                    "max_length": max_tokens,
                    "min_length": min(50, max_tokens),
                    "do_sample": False,
                },
            },
            headers={"Authorization": f"Bearer {self.config.api_key}"},
        )
        try:
            return data[0]["summary_text"]
        except (KeyError, IndexError, TypeError):
            raise self._malformed(data)


class LocalLLMProvider(Provider):
    """OpenAI-compatible local server (llama.cpp and friends) through open-agent-sdk"""

    name = "local"

    @property
    def is_configured(self) -> bool:
        return bool(self.config.base_url and self.config.model)

    async def _complete(self, prompt, max_tokens, temperature, system_prompt):
        options = AgentOptions(
            system_prompt=system_prompt or LLMPrompts.get_article_summary_system_prompt(),
            model=self.config.model,
            base_url=self.config.base_url,
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=self.config.api_key or "not-needed",
            timeout=self.config.timeout,
        )

        text_parts: List[str] = []
        try:
            async for msg in oa_client.query(prompt, options):
                for block in msg.content:
                    if isinstance(block, TextBlock):
                        text_parts.append(block.text)
        except (OSError, ValueError, RuntimeError) as e:
            raise ProviderError(self.name, f"local model call failed: {e}") from e

        return "".join(text_parts).strip()


PROVIDER_CLASSES = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
    "huggingface": HuggingFaceProvider,
    "local": LocalLLMProvider,
}


def build_providers(order: List[str], configs: Dict[str, ProviderConfig]) -> List[Provider]:
    """Instantiate the provider chain in configured order"""
    providers: List[Provider] = []
    for name in order:
        config = configs.get(name)
        provider_class = PROVIDER_CLASSES.get(name)
        if config is None or provider_class is None:
            logger.warning(f"Unknown AI provider '{name}' in provider order, skipping")
            continue
        providers.append(provider_class(config))
    return providers
