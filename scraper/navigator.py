"""
navigator.py - Bounded-retry page navigation and HTTP fetching.

This module provides:
- fetch_page: drive the single browser page to a URL and snapshot its HTML
- fetch_http: GET through the shared async HTTP client
- Exponential backoff between attempts, capped
- A session lock that serialises everything done on the browser page

Non-2xx responses, timeouts and transport errors are transient and
retried. When attempts run out a NavigationFailure is raised and the
call site decides whether that is fatal or degrades to a default.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Callable, Awaitable

import httpx
from playwright.async_api import Page, Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from .exceptions import TransientNetworkError, NavigationFailure

logger = logging.getLogger(__name__)


@dataclass
class PageResult:
    """Snapshot of a page after navigation."""
    url: str
    status: int
    content: str


@dataclass
class HttpResult:
    url: str
    status: int
    content: bytes

    @property
    def text(self) -> str:
        return self.content.decode('utf-8', errors='replace')


class ResilientNavigator:
    """
    Retrying wrapper around the browser page and the HTTP client.

    Only one orchestration may drive the page at a time: hold
    `exclusive()` for the whole unit of work. HTTP fetches never need it.
    """

    DEFAULT_PAGE_ATTEMPTS = 5
    DEFAULT_HTTP_ATTEMPTS = 3
    BACKOFF_CAP = 30.0

    def __init__(
        self,
        page: Page,
        http_client: httpx.AsyncClient,
        max_page_attempts: int = DEFAULT_PAGE_ATTEMPTS,
        max_http_attempts: int = DEFAULT_HTTP_ATTEMPTS,
        backoff_cap: float = BACKOFF_CAP,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.page = page
        self.http_client = http_client
        self.max_page_attempts = max_page_attempts
        self.max_http_attempts = max_http_attempts
        self.backoff_cap = backoff_cap
        self._sleep = sleep
        self._session_lock = asyncio.Lock()

    def exclusive(self) -> asyncio.Lock:
        """Lock guarding the browser session."""
        return self._session_lock

    def backoff_delay(self, retry_count: int) -> float:
        return min(2 ** retry_count, self.backoff_cap)

    async def fetch_page(self, url: str, max_attempts: Optional[int] = None) -> PageResult:
        """
        Navigate the browser page and return its rendered HTML.

        Args:
            url: Absolute URL, or a path relative to the browser context base URL
            max_attempts: Overrides the default attempt bound

        Returns:
            PageResult with the final status and page content

        Raises:
            NavigationFailure: If every attempt was transient-failed
        """
        async def attempt() -> PageResult:
            try:
                response = await self.page.goto(url, wait_until='domcontentloaded')
            except PlaywrightTimeoutError as e:
                raise TransientNetworkError(f"Navigation timed out: {e}", url=url, context='page.goto')
            except PlaywrightError as e:
                raise TransientNetworkError(f"Navigation failed: {e}", url=url, context='page.goto')

            if response is None:
                raise TransientNetworkError("Navigation returned no response", url=url, context='page.goto')
            if not 200 <= response.status < 300:
                raise TransientNetworkError(
                    f"Navigation returned status {response.status}",
                    url=url, context='page.goto', status=response.status,
                )
            return PageResult(url=self.page.url or url, status=response.status, content=await self.page.content())

        return await self._retry(attempt, url, max_attempts or self.max_page_attempts)

    async def fetch_http(self, uri: str, params: Optional[Dict[str, str]] = None,
                         max_attempts: Optional[int] = None) -> HttpResult:
        """
        GET a URI relative to the HTTP client's base address.

        Raises:
            NavigationFailure: If every attempt was transient-failed
        """
        async def attempt() -> HttpResult:
            try:
                response = await self.http_client.get(uri, params=params)
            except httpx.TimeoutException as e:
                raise TransientNetworkError(f"Request timed out: {e}", url=uri, context='http.get')
            except httpx.TransportError as e:
                raise TransientNetworkError(f"Request failed: {e}", url=uri, context='http.get')

            if not response.is_success:
                raise TransientNetworkError(
                    f"Request returned status {response.status_code}",
                    url=str(response.url), context='http.get', status=response.status_code,
                )
            return HttpResult(url=str(response.url), status=response.status_code, content=response.content)

        return await self._retry(attempt, uri, max_attempts or self.max_http_attempts)

    async def _retry(self, operation, url: str, max_attempts: int):
        last_error: Optional[TransientNetworkError] = None

        for retry_count in range(max_attempts):
            try:
                return await operation()
            except TransientNetworkError as e:
                last_error = e
                logger.warning(f"Attempt {retry_count + 1}/{max_attempts} failed: {e}")
                if retry_count + 1 < max_attempts:
                    await self._sleep(self.backoff_delay(retry_count))  # Exponential backoff

        message = f"Giving up after {max_attempts} attempts"
        logger.error(f"{message}: {url}")
        raise NavigationFailure(
            message,
            url=url,
            context=last_error.message if last_error else None,
        ) from last_error
