"""
Process-local sliding window rate limiting.

Used by the API fetcher (requests per provider per hour), each AI provider
adapter, and the web layer (interactions per user per minute). Checks happen
before a request is issued and fail fast; nothing waits inline.
"""

import time
from collections import defaultdict, deque
from typing import Callable, Dict, Deque, Tuple

from newsdesk.utils.errors import RateLimited


class SlidingWindowRateLimiter:
    """
    In-memory rate limiter using a sliding window.

    Tracks requests per identifier and enforces at most ``max_requests``
    within the last ``window_seconds``.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60,
        time_func: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limiter.

        Args:
            max_requests: Maximum requests allowed in window
            window_seconds: Time window in seconds
            time_func: Clock used for timestamps (injectable for tests)
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._time = time_func
        # Store deques of timestamps per identifier
        self._requests: Dict[str, Deque[float]] = defaultdict(deque)

    def _prune(self, identifier: str, now: float) -> Deque[float]:
        window_start = now - self.window_seconds
        request_queue = self._requests[identifier]
        while request_queue and request_queue[0] <= window_start:
            request_queue.popleft()
        return request_queue

    def is_allowed(self, identifier: str) -> Tuple[bool, int]:
        """
        Check if request is allowed for identifier and record it if so.

        Args:
            identifier: Unique identifier (provider name, user id)

        Returns:
            Tuple of (is_allowed, remaining_requests)
        """
        now = self._time()
        request_queue = self._prune(identifier, now)

        current_count = len(request_queue)
        remaining = max(0, self.max_requests - current_count)

        if current_count < self.max_requests:
            request_queue.append(now)
            return True, remaining - 1

        return False, 0

    def retry_after(self, identifier: str) -> float:
        """Seconds until the oldest request in the window expires"""
        now = self._time()
        request_queue = self._prune(identifier, now)
        if len(request_queue) < self.max_requests or not request_queue:
            return 0.0
        return max(0.0, request_queue[0] + self.window_seconds - now)

    def check(self, identifier: str) -> None:
        """Record a request or raise ``RateLimited`` without recording it"""
        allowed, _ = self.is_allowed(identifier)
        if not allowed:
            raise RateLimited(identifier, self.retry_after(identifier))

    def reset(self, identifier: str) -> None:
        """
        Reset rate limit for identifier.

        Args:
            identifier: Unique identifier to reset
        """
        if identifier in self._requests:
            del self._requests[identifier]

    def cleanup_old_entries(self) -> None:
        """
        Clean up expired entries to prevent memory growth.

        Called periodically by the scheduler.
        """
        now = self._time()
        identifiers_to_remove = [
            identifier for identifier in list(self._requests)
            if not self._prune(identifier, now)
        ]

        for identifier in identifiers_to_remove:
            del self._requests[identifier]
