"""
URL validation and the shared HTTP client used by the fetchers
"""
import asyncio
from typing import Optional, Dict, Any
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from newsdesk.utils.constants import (
    ValidationConstants,
    SecurityConstants,
    HTTPConstants,
)
from newsdesk.utils.errors import FetchError
from newsdesk.utils.logger import logger


class URLValidator:
    """Validates and canonicalises URLs"""

    @staticmethod
    def is_valid_url(url: Optional[str]) -> bool:
        """
        Validate that a URL is http(s) with a host

        Args:
            url: URL to validate

        Returns:
            True if URL is well formed, False otherwise
        """
        if not url or not isinstance(url, str):
            return False

        if not ValidationConstants.URL_PATTERN.match(url.strip()):
            return False

        try:
            parsed = urlsplit(url.strip())
        except ValueError:
            return False

        return parsed.scheme in ('http', 'https') and bool(parsed.netloc)

    @staticmethod
    def sanitize_url(url: Optional[str]) -> Optional[str]:
        """
        Canonicalise a URL: lowercase scheme and host, drop the fragment and
        tracking/redirect query parameters.

        Args:
            url: URL to sanitize

        Returns:
            Canonical URL or None if invalid
        """
        if not URLValidator.is_valid_url(url):
            return None

        parsed = urlsplit(url.strip())
        stripped = set(SecurityConstants.STRIPPED_QUERY_PARAMS)
        query_params = [
            (key, value)
            for key, value in parse_qsl(parsed.query, keep_blank_values=True)
            if key.lower() not in stripped
        ]

        return urlunsplit((
            parsed.scheme.lower(),
            parsed.netloc.lower(),
            parsed.path,
            urlencode(query_params),
            '',
        ))


class SecureHTTPClient:
    """HTTP client for source downloads with retries and explicit timeouts.

    requests is blocking, so every call runs in a worker thread through
    ``asyncio.to_thread``. Failures are raised as ``FetchError`` classified as
    transient (network, timeout, 429, 5xx) or permanent (invalid URL, 4xx).
    """

    def __init__(self, timeout: float = HTTPConstants.DEFAULT_TIMEOUT, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

        # Configure retry strategy
        retry_strategy = Retry(
            total=HTTPConstants.MAX_RETRIES,
            backoff_factor=HTTPConstants.RETRY_BACKOFF_FACTOR,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"]
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        self.session.headers.update({
            'User-Agent': HTTPConstants.USER_AGENT,
            'Accept': 'application/rss+xml,application/atom+xml,application/json,text/html;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.5',
            'Accept-Encoding': 'gzip, deflate',
        })

    async def get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        """
        Make an HTTP GET request off the event loop

        Args:
            url: URL to request
            params: Query parameters
            headers: Extra request headers
            timeout: Per-request timeout, defaults to the client timeout

        Returns:
            Response object with a 2xx status
        """
        if not URLValidator.is_valid_url(url):
            raise FetchError(f"Invalid URL: {url}", kind=FetchError.PERMANENT)

        logger.debug(f"GET {url}")
        return await asyncio.to_thread(
            self._get_sync, url, params, headers, timeout or self.timeout
        )

    def _get_sync(self, url, params, headers, timeout) -> requests.Response:
        try:
            response = self.session.get(
                url, params=params, headers=headers, timeout=timeout, allow_redirects=True
            )
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise FetchError(f"Request timeout for {url}", kind=FetchError.TRANSIENT) from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else 0
            kind = FetchError.PERMANENT if 400 <= status < 500 and status != 429 else FetchError.TRANSIENT
            raise FetchError(f"HTTP {status} for {url}", kind=kind) from e
        except requests.exceptions.RequestException as e:
            # ConnectionError, RetryError, SSLError, ...
            raise FetchError(f"Request failed for {url}: {e}", kind=FetchError.TRANSIENT) from e

        content_type = response.headers.get('content-type', '').lower()
        if content_type and not any(allowed in content_type for allowed in SecurityConstants.ALLOWED_MIME_TYPES):
            logger.warning(f"Unexpected content type '{content_type}' from {url}")

        return response

    async def close(self):
        """Close the HTTP session"""
        self.session.close()
