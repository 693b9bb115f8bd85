import asyncio
from types import SimpleNamespace

import httpx
import pytest
from playwright.async_api import Error as PlaywrightError

from scraper.exceptions import NavigationFailure
from scraper.navigator import ResilientNavigator

BASE_URL = "https://www.transfermarkt.com"


class FakeBrowserPage:
    """Answers goto() from a scripted list of statuses or exceptions."""

    def __init__(self, outcomes, html="<html><body>ok</body></html>"):
        self.outcomes = list(outcomes)
        self.html = html
        self.url = None
        self.visits = []

    async def goto(self, url, wait_until=None):
        self.visits.append((url, wait_until))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        self.url = url
        return SimpleNamespace(status=outcome)

    async def content(self):
        return self.html


def make_navigator(page=None, handler=None, **kwargs):
    sleeps = []

    async def record_sleep(delay):
        sleeps.append(delay)

    transport = httpx.MockTransport(handler or (lambda request: httpx.Response(200, text="{}")))
    client = httpx.AsyncClient(base_url=BASE_URL, transport=transport)
    navigator = ResilientNavigator(page, client, sleep=record_sleep, **kwargs)
    return navigator, sleeps


def test_backoff_delay_is_capped():
    navigator, _ = make_navigator(backoff_cap=10.0)
    assert [navigator.backoff_delay(n) for n in range(5)] == [1, 2, 4, 8, 10.0]


def test_fetch_page_returns_content():
    page = FakeBrowserPage([200])
    navigator, sleeps = make_navigator(page)

    result = asyncio.run(navigator.fetch_page(BASE_URL + "/"))

    assert result.status == 200
    assert result.content == "<html><body>ok</body></html>"
    assert page.visits == [(BASE_URL + "/", 'domcontentloaded')]
    assert sleeps == []


def test_fetch_page_retries_transient_failures():
    page = FakeBrowserPage([503, PlaywrightError("net::ERR_CONNECTION_RESET"), 200])
    navigator, sleeps = make_navigator(page)

    result = asyncio.run(navigator.fetch_page(BASE_URL + "/"))

    assert result.status == 200
    assert len(page.visits) == 3
    assert sleeps == [1, 2]


def test_fetch_page_gives_up_after_max_attempts():
    page = FakeBrowserPage([500, 500, 500])
    navigator, sleeps = make_navigator(page, max_page_attempts=3)

    with pytest.raises(NavigationFailure) as excinfo:
        asyncio.run(navigator.fetch_page(BASE_URL + "/missing"))

    assert excinfo.value.url == BASE_URL + "/missing"
    assert "status 500" in excinfo.value.context
    assert len(page.visits) == 3
    # No sleep after the last attempt
    assert sleeps == [1, 2]


def test_fetch_http_retries_then_succeeds():
    statuses = [502, 200]
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(statuses.pop(0), text='{"list": []}')

    navigator, sleeps = make_navigator(handler=handler)
    result = asyncio.run(navigator.fetch_http("/ceapi/marketValueDevelopment/graph/8198"))

    assert result.status == 200
    assert result.text == '{"list": []}'
    assert len(requests) == 2
    assert sleeps == [1]


def test_fetch_http_sends_query_params():
    seen = []

    def handler(request):
        seen.append(request.url)
        return httpx.Response(200, text="<html></html>")

    navigator, _ = make_navigator(handler=handler)
    asyncio.run(navigator.fetch_http("/schnellsuche/ergebnis/schnellsuche",
                                     params={'Wettbewerb_page': '2', 'query': 'Premier League'}))

    assert seen[0].params['Wettbewerb_page'] == '2'
    assert seen[0].params['query'] == 'Premier League'


def test_fetch_http_transport_errors_exhaust_attempts():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    navigator, sleeps = make_navigator(handler=handler, max_http_attempts=2)

    with pytest.raises(NavigationFailure):
        asyncio.run(navigator.fetch_http("/anything"))
    assert sleeps == [1]
