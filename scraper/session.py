"""
session.py - The single browser session and HTTP client shared by every service.

One Chromium page and one httpx client live for the whole run. The page
is not safe for concurrent use; services take the navigator's session
lock around anything that drives it.
"""

import re
import logging
from typing import Optional

import httpx
from playwright.async_api import async_playwright, Playwright, Browser, BrowserContext, Page, Route

from .config_loader import ScraperSettings, get_scraper_settings
from .navigator import ResilientNavigator

logger = logging.getLogger(__name__)

# Consent/notice scripts only get in the way of the selectors
BLOCKED_SCRIPTS = re.compile(r"Notice\..+\.js")


async def _abort(route: Route):
    await route.abort()


class ScraperSession:
    """
    Async context manager owning Playwright, the browser page and the HTTP client.

    Usage:
        async with ScraperSession(settings) as session:
            await session.navigator.fetch_page("/")
    """

    def __init__(self, settings: Optional[ScraperSettings] = None):
        self.settings = settings or get_scraper_settings()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self.http_client: Optional[httpx.AsyncClient] = None
        self.navigator: Optional[ResilientNavigator] = None

    @property
    def is_open(self) -> bool:
        return self.navigator is not None

    async def open(self) -> 'ScraperSession':
        settings = self.settings
        logger.info(f"Opening browser session (headless={settings.headless})")

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=settings.headless)
        self._context = await self._browser.new_context(
            base_url=settings.base_url,
            user_agent=settings.user_agent,
        )
        self._context.set_default_timeout(settings.default_timeout_ms)
        self.page = await self._context.new_page()

        await self.page.route(BLOCKED_SCRIPTS, _abort)

        self.http_client = httpx.AsyncClient(
            base_url=settings.base_url,
            headers={'User-Agent': settings.user_agent},
            timeout=settings.http_timeout_s,
            follow_redirects=True,
        )

        self.navigator = ResilientNavigator(
            self.page,
            self.http_client,
            max_page_attempts=settings.page_max_attempts,
            max_http_attempts=settings.http_max_attempts,
            backoff_cap=settings.backoff_cap_s,
        )
        return self

    async def close(self):
        if self.http_client is not None:
            await self.http_client.aclose()
        if self._context is not None:
            await self._context.close()
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()

        self.navigator = None
        self.page = self.http_client = None
        self._context = self._browser = self._playwright = None
        logger.info("Browser session closed")

    async def __aenter__(self) -> 'ScraperSession':
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
