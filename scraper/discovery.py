"""
discovery.py - Resumable batch discovery of countries and their competitions.

This module provides:
- CountrySelector: Playwright helpers for the home page country dropdown
- CountryDiscoveryService: grows the persisted country catalog toward a target size

The persisted country count is the checkpoint. Each batch skips that many
selector items, clicks at most `batch_size` more, pairs every click with
its intercepted quick-select payload and upserts the batch. A crash only
loses the batch in flight; the next run resumes at the stored count.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Callable, Any

from playwright.async_api import Page, Locator, TimeoutError as PlaywrightTimeoutError

from backend.app import schemas
from backend.app.repositories import CountryRepository
from .config_loader import ScraperSettings
from .exceptions import InterceptorCorrelationFailure, ExtractionError
from .interceptor import QuickSelectCorrelator, CountryQuickSelectResult, reconcile_captures
from .navigator import ResilientNavigator
from .parsing import absolute_url, clean_text

logger = logging.getLogger(__name__)


# =============================================================================
# COUNTRY SELECTOR
# =============================================================================

class CountrySelector:
    """The "Countries" quick-select dropdown on the home page."""

    SELECTOR_IMAGE = "img[alt='Countries']"
    BUTTON = "div[role='button']"
    DROPDOWN = ".selector-dropdown"
    ITEM = "li"

    MAX_ATTEMPTS = 5
    DROPDOWN_TIMEOUT_MS = 200
    ITEM_TIMEOUT_MS = 500

    def __init__(self, page: Page):
        self.page = page

    def _container(self) -> Locator:
        return self.page.locator(self.SELECTOR_IMAGE).locator('..')

    async def open(self):
        """Click the selector button until its dropdown is visible."""
        try:
            await self.page.wait_for_selector(self.SELECTOR_IMAGE)
        except PlaywrightTimeoutError as e:
            raise ExtractionError("Country selector not found", url=self.page.url, context=self.SELECTOR_IMAGE) from e

        button = self._container().locator(self.BUTTON)
        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            try:
                await button.click()
                await self.page.wait_for_selector(self.DROPDOWN, state='visible', timeout=self.DROPDOWN_TIMEOUT_MS)
                return
            except PlaywrightTimeoutError:
                logger.debug(f"Country dropdown did not appear at attempt {attempt}")

        raise ExtractionError("Country dropdown never opened", url=self.page.url, context=self.DROPDOWN)

    async def items(self) -> List[Locator]:
        return await self._container().locator(self.DROPDOWN).locator(self.ITEM).all()

    async def read_label(self, item: Locator) -> str:
        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            try:
                label = clean_text(await item.text_content(timeout=self.ITEM_TIMEOUT_MS))
                if label:
                    return label
            except PlaywrightTimeoutError:
                logger.debug(f"Country item not visible at attempt {attempt}, reloading")
                await self.page.reload()
                await self.open()

        raise ExtractionError(
            f"Reading the country label failed after {self.MAX_ATTEMPTS} attempts",
            url=self.page.url, context=f"{self.DROPDOWN} {self.ITEM}",
        )

    async def click(self, item: Locator):
        """Select the item; this fires the quick-select request."""
        await item.click(timeout=self.ITEM_TIMEOUT_MS)


# =============================================================================
# DISCOVERY ORCHESTRATOR
# =============================================================================

@dataclass
class CountryPlaceholder:
    """A clicked selector item waiting for its intercepted payload."""
    name: str


class CountryDiscoveryService:
    """Grow the persisted country catalog toward a target size."""

    def __init__(
        self,
        navigator: ResilientNavigator,
        repository: CountryRepository,
        settings: ScraperSettings,
        selector_factory: Callable[[Page], Any] = CountrySelector,
    ):
        self._navigator = navigator
        self._repository = repository
        self._settings = settings
        self._selector_factory = selector_factory

    async def discover_countries(self, target_count: Optional[int] = None) -> List[schemas.Country]:
        """
        Make sure at least `target_count` selector countries are persisted.

        Countries stored by a competition search do not count toward the
        target or the selector offset until the selector reaches them.

        Args:
            target_count: Countries wanted in the catalog; 0 means every
                country in the selector. Defaults to scraper.country_limit.

        Returns:
            Every persisted country, sorted by name

        Raises:
            NavigationFailure: The entry page could not be loaded
            InterceptorCorrelationFailure: A batch kept losing captures after its restarts
        """
        target = self._settings.country_limit if target_count is None else target_count
        persisted = self._repository.count_discovered()

        logger.info(f"Discovering countries: target={target or 'all'}, persisted={persisted}")

        if target > 0 and persisted >= target:
            return self._sorted(self._repository.get_all())

        async with self._navigator.exclusive():
            while target == 0 or persisted < target:
                remaining = self._settings.batch_size if target == 0 else target - persisted
                batch_size = min(self._settings.batch_size, remaining)

                countries = await self._scrape_batch_with_restarts(batch_size)
                if countries:
                    self._repository.upsert_many(countries, discovered=True)
                    persisted = self._repository.count_discovered()
                    logger.info(f"Persisted batch of {len(countries)} countries ({persisted} total)")

                if len(countries) < batch_size:
                    # The selector has no further items
                    break

        return self._sorted(self._repository.get_all())

    async def _scrape_batch_with_restarts(self, batch_size: int) -> List[schemas.Country]:
        restarts = 0
        while True:
            offset = self._repository.count_discovered()
            try:
                return await self._scrape_batch(offset, batch_size)
            except InterceptorCorrelationFailure as e:
                restarts += 1
                if restarts > self._settings.batch_restarts:
                    logger.error(f"Batch at offset {offset} failed after {restarts - 1} restarts: {e}")
                    raise
                logger.warning(f"Restarting batch at offset {offset} ({restarts}/{self._settings.batch_restarts}): {e}")

    async def _scrape_batch(self, offset: int, batch_size: int) -> List[schemas.Country]:
        entry_url = f"{self._settings.base_url}/"
        await self._navigator.fetch_page(entry_url)

        page = self._navigator.page
        correlator = QuickSelectCorrelator(page, capture_timeout=self._settings.capture_timeout_s)
        await correlator.install(self._settings.quick_select_pattern)

        placeholders: List[CountryPlaceholder] = []
        captures: List[Optional[CountryQuickSelectResult]] = []
        try:
            selector = self._selector_factory(page)
            await selector.open()
            items = (await selector.items())[offset:offset + batch_size]

            for item in items:
                name = await selector.read_label(item)
                logger.info(f"Adding country: {name}")
                capture = await correlator.correlate_click(lambda: selector.click(item))
                placeholders.append(CountryPlaceholder(name=name))
                captures.append(capture)
                # The click navigates and closes the dropdown
                await selector.open()
        finally:
            await correlator.uninstall()

        pairs = reconcile_captures(placeholders, captures, url=entry_url)
        return [self._build_country(placeholder, capture) for placeholder, capture in pairs]

    def _build_country(self, placeholder: CountryPlaceholder, capture: CountryQuickSelectResult) -> schemas.Country:
        competitions = [
            schemas.Competition(
                transfermarkt_id=competition.transfermarkt_id,
                name=competition.name,
                link=absolute_url(self._settings.base_url, competition.link),
            )
            for competition in capture.competitions
        ]
        return schemas.Country(
            transfermarkt_id=capture.transfermarkt_id,
            name=placeholder.name,
            flag=f"{self._settings.flag_url}/{capture.transfermarkt_id}.png",
            competitions=competitions,
        )

    @staticmethod
    def _sorted(countries: List[schemas.Country]) -> List[schemas.Country]:
        return sorted(countries, key=lambda country: country.name)
