"""
interceptor.py - Correlate quick-select UI clicks with their background requests.

Choosing a country in the selector makes the site fetch that country's
competitions as JSON. The route handler installed here fetches the
response itself, parses it, hands the record over through an ordered
queue and aborts the original request so the page never re-renders on it.

Callers click one item at a time and pull exactly one capture per click.
A failed fetch or parse still yields a slot (None), and a click whose
request never shows up yields None after a bounded wait; the batch-level
reconciliation then reports the gap.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, List, Callable, Awaitable, Any, Tuple, Sequence

from playwright.async_api import Page, Route, Error as PlaywrightError

from .exceptions import InterceptorCorrelationFailure
from .parsing import last_path_segment, clean_text

logger = logging.getLogger(__name__)


@dataclass
class CompetitionQuickSelectResult:
    transfermarkt_id: str
    name: str
    link: str


@dataclass
class CountryQuickSelectResult:
    """Structured payload of one quick-select request."""
    transfermarkt_id: str
    url: str
    competitions: List[CompetitionQuickSelectResult] = field(default_factory=list)


def parse_quick_select_payload(url: str, payload: Any) -> CountryQuickSelectResult:
    """
    Build a capture record from the quick-select JSON.

    The country id is the last path segment of the request URL; the body
    is a list of {id, name, link} competition entries.

    Raises:
        ValueError: If the payload is not a list of competition entries
    """
    country_id = last_path_segment(url)
    if not country_id:
        raise ValueError(f"No country id in quick-select url {url}")
    if not isinstance(payload, list):
        raise ValueError(f"Quick-select payload is {type(payload).__name__}, expected list")

    competitions = []
    for entry in payload:
        if not isinstance(entry, dict) or not entry.get('id'):
            raise ValueError(f"Malformed quick-select entry: {entry!r}")
        competitions.append(CompetitionQuickSelectResult(
            transfermarkt_id=str(entry['id']),
            name=clean_text(str(entry.get('name', ''))),
            link=str(entry.get('link', '')),
        ))
    return CountryQuickSelectResult(transfermarkt_id=country_id, url=url, competitions=competitions)


class QuickSelectCorrelator:
    """Route interceptor plus FIFO channel of captured quick-select records."""

    def __init__(self, page: Page, capture_timeout: float = 10.0):
        self.page = page
        self.capture_timeout = capture_timeout
        self._captures: asyncio.Queue = asyncio.Queue()
        self._pattern: Optional[str] = None
        self._on_captured: Optional[Callable[[CountryQuickSelectResult], Any]] = None

    async def install(self, url_pattern: str,
                      on_captured: Optional[Callable[[CountryQuickSelectResult], Any]] = None):
        self._pattern = url_pattern
        self._on_captured = on_captured
        await self.page.route(url_pattern, self._handle_route)
        logger.debug(f"Quick-select interceptor installed for {url_pattern}")

    async def uninstall(self):
        if self._pattern is not None:
            await self.page.unroute(self._pattern, self._handle_route)
            self._pattern = None

    async def _handle_route(self, route: Route):
        url = route.request.url
        record: Optional[CountryQuickSelectResult] = None
        try:
            response = await route.fetch()
            if not response.ok:
                raise ValueError(f"status {response.status}")
            record = parse_quick_select_payload(url, await response.json())
            if self._on_captured is not None:
                result = self._on_captured(record)
                if asyncio.iscoroutine(result):
                    await result
        except (PlaywrightError, ValueError) as e:
            logger.warning(f"Quick-select capture failed for {url}: {e}")
            record = None
        finally:
            await self._captures.put(record)
            await route.abort()

    async def correlate_click(self, ui_action: Callable[[], Awaitable[Any]]) -> Optional[CountryQuickSelectResult]:
        """
        Run one UI action and wait for the capture it triggers.

        Returns:
            The capture, or None when it failed or did not arrive in time
        """
        self._drain_stale()
        await ui_action()
        try:
            return await asyncio.wait_for(self._captures.get(), timeout=self.capture_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"No quick-select capture within {self.capture_timeout}s")
            return None

    def _drain_stale(self):
        # A capture that arrives after its wait timed out must not be paired with the next click
        while not self._captures.empty():
            stale = self._captures.get_nowait()
            logger.warning(f"Discarding late quick-select capture: {stale.url if stale else None}")


def reconcile_captures(placeholders: Sequence[Any],
                       captures: Sequence[Optional[CountryQuickSelectResult]],
                       url: Optional[str] = None) -> List[Tuple[Any, CountryQuickSelectResult]]:
    """
    Pair placeholders with captures by index.

    Raises:
        InterceptorCorrelationFailure: If any slot is empty or the counts differ
    """
    received = [capture for capture in captures if capture is not None]
    if len(received) != len(placeholders) or len(captures) != len(placeholders):
        missing = next((i for i, capture in enumerate(captures) if capture is None), len(received))
        raise InterceptorCorrelationFailure(
            f"Expected {len(placeholders)} quick-select captures, received {len(received)}",
            url=url,
            context=f"first missing capture at index {missing}",
            index=missing,
        )
    return list(zip(placeholders, received))
