"""
Exception hierarchy shared by the aggregation, summarization and engagement services
"""
from typing import Optional


# Custom Exceptions
class NewsdeskError(Exception):
    """Base exception for all newsdesk errors."""
    pass


class FetchError(NewsdeskError):
    """Raised when a source cannot be fetched.

    ``kind`` is ``transient`` (network, timeout, 5xx; retried on a later tick)
    or ``permanent`` (4xx, unparseable document; flagged for an operator).
    """

    TRANSIENT = "transient"
    PERMANENT = "permanent"

    def __init__(self, message: str, kind: str = TRANSIENT, source_id: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.source_id = source_id

    @property
    def is_permanent(self) -> bool:
        return self.kind == self.PERMANENT


class RateLimited(NewsdeskError):
    """Raised before a request when a provider's sliding window is full."""

    def __init__(self, provider: str, retry_after: float = 0.0):
        super().__init__(f"Rate limit exceeded for {provider}, retry after {retry_after:.0f}s")
        self.provider = provider
        self.retry_after = retry_after


class ProviderError(NewsdeskError):
    """Raised when an AI provider call fails (network, HTTP status, payload, credentials)."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class DuplicateArticle(NewsdeskError):
    """Raised when an article's canonical URL is already stored."""

    def __init__(self, url: str):
        super().__init__(f"Duplicate article: {url}")
        self.url = url


class ArticleValidationError(NewsdeskError):
    """Raised when a raw article is missing a title or has an invalid URL."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class SummarizationError(NewsdeskError):
    """Raised when even the rule-based fallback could not produce a summary."""
    pass


class StoreError(NewsdeskError):
    """Raised when the persistent store rejects an operation."""
    pass


class DuplicateKeyError(StoreError):
    """Raised when an insert violates a unique constraint."""
    pass


class SourceNotFoundError(NewsdeskError):
    """Raised when a source id is not registered."""
    pass


class ArticleNotFoundError(NewsdeskError):
    """Raised when an article id is not stored."""
    pass


__all__ = [
    "NewsdeskError",
    "FetchError",
    "RateLimited",
    "ProviderError",
    "DuplicateArticle",
    "ArticleValidationError",
    "SummarizationError",
    "StoreError",
    "DuplicateKeyError",
    "SourceNotFoundError",
    "ArticleNotFoundError",
]
