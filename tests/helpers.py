"""
helpers.py - Fakes and HTML builders shared by the test modules.

The fakes stand in for the browser page, the navigator and the country
selector; the builders render the page fragments the scrapers parse.
"""

import asyncio
from types import SimpleNamespace
from urllib.parse import urlencode

from playwright.async_api import Error as PlaywrightError

from scraper.config_loader import ScraperSettings
from scraper.exceptions import NavigationFailure
from scraper.navigator import PageResult, HttpResult

BASE_URL = "https://www.transfermarkt.com"
SEARCH_PATH = "/schnellsuche/ergebnis/schnellsuche"
STATS_PATH = "/-/leistungsdatendetails/spieler"
MARKET_VALUE_PATH = "/ceapi/marketValueDevelopment/graph"

# =============================================================================
# SETTINGS
# =============================================================================

def make_settings(**overrides) -> ScraperSettings:
    values = dict(
        base_url=BASE_URL,
        flag_url="https://tmssl.akamaized.net/images/flagge/head",
        search_path=SEARCH_PATH,
        player_stats_path=STATS_PATH,
        detailed_view_path="/plus/1",
        market_value_path=MARKET_VALUE_PATH,
        quick_select_pattern="**/quickselect/competitions/**",
        country_limit=0,
        headless=True,
        force_scraping=False,
        default_timeout_ms=1000,
        user_agent="pytest",
        page_max_attempts=2,
        http_max_attempts=2,
        backoff_cap_s=0.0,
        http_timeout_s=1.0,
        http_concurrency=2,
        batch_size=10,
        batch_restarts=2,
        capture_timeout_s=0.5,
        max_search_pages=5,
    )
    values.update(overrides)
    return ScraperSettings(**values)

async def wait_until(predicate, timeout=5.0):
    """Yield to the event loop until `predicate()` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition never held")
        await asyncio.sleep(0.01)

# =============================================================================
# FAKE NAVIGATOR
# =============================================================================

def http_key(uri, params=None):
    return f"{uri}?{urlencode(params)}" if params else uri

class FakeNavigator:
    """Serves canned HTML/JSON by url and records every call."""

    def __init__(self, pages=None, http=None, page=None, hang=()):
        self.pages = pages or {}
        self.hang = set(hang)
        self.http = http or {}
        self.page = page
        self.page_calls = []
        self.http_calls = []
        self._lock = None

    def exclusive(self):
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def fetch_page(self, url, max_attempts=None):
        self.page_calls.append(url)
        if url in self.hang:
            # Stalls until the caller is cancelled
            await asyncio.sleep(3600)
        content = self.pages.get(url)
        if content is None:
            raise NavigationFailure("Giving up after 2 attempts", url=url)
        return PageResult(url=url, status=200, content=content)

    async def fetch_http(self, uri, params=None, max_attempts=None):
        key = http_key(uri, params)
        self.http_calls.append(key)
        content = self.http.get(key)
        if content is None:
            raise NavigationFailure("Giving up after 2 attempts", url=key)
        return HttpResult(url=key, status=200, content=content.encode('utf-8'))

# =============================================================================
# FAKE BROWSER PAGE (route interception)
# =============================================================================

class FakeAPIResponse:
    def __init__(self, status, payload):
        self.status = status
        self._payload = payload

    @property
    def ok(self):
        return 200 <= self.status < 300

    async def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

class FakeRoute:
    def __init__(self, url, payload, status=200, fail=False):
        self.request = SimpleNamespace(url=url)
        self._payload = payload
        self._status = status
        self._fail = fail
        self.aborted = False

    async def fetch(self):
        if self._fail:
            raise PlaywrightError("net::ERR_FAILED")
        return FakeAPIResponse(self._status, self._payload)

    async def abort(self):
        self.aborted = True

class FakePage:
    url = BASE_URL + "/"

    def __init__(self):
        self.handlers = {}
        self.routes = []

    async def route(self, pattern, handler):
        self.handlers[pattern] = handler

    async def unroute(self, pattern, handler=None):
        self.handlers.pop(pattern, None)

    async def fire(self, url, payload, status=200, fail=False):
        route = FakeRoute(url, payload, status=status, fail=fail)
        self.routes.append(route)
        for handler in list(self.handlers.values()):
            await handler(route)

def quick_select_url(country_id):
    return f"{BASE_URL}/quickselect/competitions/{country_id}"

def quick_select_payload(country_id):
    return [
        {'id': f"{country_id}A", 'name': f"League {country_id}", 'link': f"/league-{country_id}/startseite/wettbewerb/{country_id}A"},
        {'id': f"{country_id}C", 'name': f"Cup {country_id}", 'link': f"/cup-{country_id}/startseite/pokalwettbewerb/{country_id}C"},
    ]

class FakeCountrySite:
    """
    The home page country selector.

    Labels are "Country 01", "Country 02", ...; the quick-select id of
    "Country NN" is "NN". Labels in `fail_once` lose their capture on the
    first click only, labels in `fail_always` on every click. A click on
    `hang_on` never completes.
    """

    def __init__(self, count, fail_once=None, fail_always=None, hang_on=None):
        self.labels = [f"Country {index:02d}" for index in range(1, count + 1)]
        self.fail_once = set(fail_once or [])
        self.fail_always = set(fail_always or [])
        self.hang_on = hang_on
        self.clicked = []

    @staticmethod
    def country_id(label):
        return label.split(' ')[-1]

    def selector_factory(self, page):
        return FakeSelector(page, self)

class FakeSelector:
    def __init__(self, page, site):
        self.page = page
        self.site = site

    async def open(self):
        pass

    async def items(self):
        return list(self.site.labels)

    async def read_label(self, item):
        return item

    async def click(self, item):
        self.site.clicked.append(item)
        if item == self.site.hang_on:
            await asyncio.sleep(3600)
        fail = item in self.site.fail_always or item in self.site.fail_once
        self.site.fail_once.discard(item)
        country_id = self.site.country_id(item)
        await self.page.fire(quick_select_url(country_id), quick_select_payload(country_id), fail=fail)

# =============================================================================
# HTML BUILDERS
# =============================================================================

def search_row(competition_id, name, classification="First Tier", country=None,
               clubs="20", players="500", total="€1.20bn", mean="€2.50m"):
    if country:
        country_id, country_name = country
        country_cell = (
            f'<td class="zentriert"><img class="flaggenrahmen" title="{country_name}" '
            f'src="https://tmssl.akamaized.net/images/flagge/verysmall/{country_id}.png?lm=1520611569"></td>'
        )
    else:
        country_cell = '<td class="zentriert"></td>'
    return (
        '<tr>'
        '<td><table class="inline-table"><tr>'
        f'<td rowspan="2"><img src="https://tmssl.akamaized.net/images/logo/small/{competition_id.lower()}.png"></td>'
        f'<td class="hauptlink"><a title="{name}" href="/competition/startseite/wettbewerb/{competition_id}">{name}</a></td>'
        f'</tr><tr><td>{classification}</td></tr></table></td>'
        f'{country_cell}'
        f'<td class="zentriert">{clubs}</td><td class="zentriert">{players}</td>'
        f'<td class="rechts hauptlink">{total}</td><td class="rechts">{mean}</td>'
        '<td class="zentriert">Europe</td>'
        '</tr>'
    )

def search_page(rows, total):
    return (
        '<html><body>'
        '<div class="box"><h2 class="content-box-headline">Search results for players</h2></div>'
        f'<div class="box"><h2 class="content-box-headline">Search results: Competitions - {total} hits</h2>'
        '<table class="items"><thead><tr><th>Competition</th></tr></thead>'
        f'<tbody>{"".join(rows)}</tbody></table></div>'
        '</body></html>'
    )

def search_key(query, page=1):
    params = {'query': query} if page == 1 else {'Wettbewerb_page': str(page), 'query': query}
    return http_key(SEARCH_PATH, params)

def aggregate_row(name, competition_id, values, footer=False):
    """A competition row (or the totals footer) of the season table."""
    if footer:
        head = '<td></td><td>Total :</td>'
    else:
        head = (
            f'<td><img src="https://tmssl.akamaized.net/images/logo/tiny/{competition_id.lower()}.png"></td>'
            f'<td><a href="/{name.lower().replace(" ", "-")}/leistungsdatendetails/spieler/8198/wettbewerb/{competition_id}">{name}</a></td>'
        )
    return f"<tr>{head}{''.join(f'<td>{value}</td>' for value in values)}</tr>"

def match_row(match_day, date_text, home, away, score="2:1", result_class="greentext", addition=None,
              position="Centre-Forward", captain=False, numbers=None, not_playing=None):
    """
    One match row; `home`/`away` are (club_id, name) pairs.

    `numbers` are the nine cells after the position: goals, assists, own
    goals, yellow, second yellow, red, subbed on, subbed off, minutes.
    """
    def club_cells(club):
        club_id, club_name = club
        return (
            f'<td><a title="{club_name}" href="/club/spielplan/verein/{club_id}/saison_id/2023">'
            f'<img src="https://tmssl.akamaized.net/images/wappen/tiny/{club_id}.png"></a></td>'
            f'<td><a href="/club/spielplan/verein/{club_id}/saison_id/2023">{club_name}</a></td>'
        )

    class_attr = f' class="{result_class}"' if result_class else ''
    addition_html = f' <span>{addition}</span>' if addition else ''
    cells = (
        f'<td><a href="/spieltag/{match_day}">{match_day}</a></td>'
        f'<td>{date_text}</td>'
        f'{club_cells(home)}{club_cells(away)}'
        f'<td><a href="/spielbericht/index/spielbericht/{match_day}0000"><span{class_attr}>{score}{addition_html}</span></a></td>'
    )
    if not_playing is not None:
        cells += f'<td colspan="10">{not_playing}</td>'
    else:
        captain_html = '<span class="kapitaenicon-table"></span>' if captain else ''
        cells += f'<td><a title="{position}" href="#">X</a>{captain_html}</td>'
        cells += ''.join(f'<td>{value}</td>' for value in (numbers or [''] * 9))
    return f'<tr>{cells}</tr>'

def competition_box(competition_id, name, rows, footer_text):
    return (
        '<div class="box">'
        f'<div class="table-header"><a name="{competition_id}"></a>{name}</div>'
        '<div class="responsive-table"><table><thead><tr><th>Matchday</th></tr></thead>'
        f'<tbody>{"".join(rows)}</tbody>'
        f'<tfoot><tr><td colspan="17">{footer_text}</td></tr></tfoot>'
        '</table></div></div>'
    )

def stats_page(competition_rows, footer_values, boxes=(), seasons=("2024", "2023")):
    options = '<option value="ges">All seasons</option>' + ''.join(
        f'<option value="{season}">{season}</option>' for season in seasons
    )
    return (
        '<html><body>'
        f'<select name="saison">{options}</select>'
        '<div id="yw1"><table class="items"><thead><tr><th>Competition</th></tr></thead>'
        f'<tbody>{"".join(competition_rows)}</tbody>'
        f'<tfoot>{aggregate_row("", "", footer_values, footer=True)}</tfoot>'
        '</table></div>'
        f'{"".join(boxes)}'
        '</body></html>'
    )


def stats_url(player_id, season):
    return f"{STATS_PATH}/{player_id}/plus/1?saison={season}"


# Club and roster pages

def club_row(club_id, name, slug, players="28", age="26.4", foreigners="17", mean="€27.41m", total="€767.45m"):
    return (
        '<tr>'
        f'<td><img src="https://tmssl.akamaized.net/images/wappen/tiny/{club_id}.png"></td>'
        f'<td class="hauptlink"><a title="{name}" href="/{slug}/startseite/verein/{club_id}/saison_id/2023">{name}</a></td>'
        f'<td><a href="/{slug}/kader/verein/{club_id}/saison_id/2023">{players}</a></td>'
        f'<td>{age}</td><td>{foreigners}</td><td>{mean}</td><td>{total}</td>'
        '</tr>'
    )


def player_row(player_id, name, position, number="7", birth="Oct 31, 1997 (25)", nationalities=("England",),
               height="1,85 m", foot="right", joined="Jul 1, 2016", contract="Jun 30, 2028", value="€55.00m"):
    flags = ''.join(f'<img title="{nationality}" src="flag.png">' for nationality in nationalities)
    return (
        '<tr>'
        f'<td>{number}</td>'
        '<td><table class="inline-table"><tr>'
        f'<td rowspan="2"><img data-src="https://img.a.transfermarkt.technology/portrait/medium/{player_id}.jpg" src="data:image/gif"></td>'
        f'<td class="hauptlink"><a href="/{name.lower().replace(" ", "-")}/profil/spieler/{player_id}">{name}</a></td>'
        f'</tr><tr><td>{position}</td></tr></table></td>'
        f'<td>{birth}</td><td>{flags}</td><td>{height}</td><td>{foot}</td><td>{joined}</td>'
        '<td><img title="Academy" src="crest.png"></td>'
        f'<td>{contract}</td><td>{value}</td>'
        '</tr>'
    )


def items_table(rows):
    return ('<html><body><div id="yw1"><table class="items"><thead><tr><th>#</th></tr></thead>'
            f'<tbody>{"".join(rows)}</tbody></table></div></body></html>')



# =============================================================================
# API CLIENT
# =============================================================================

class FakeSession:
    """Stands in for ScraperSession so the lifespan never launches a browser."""

    def __init__(self, settings=None):
        self.settings = settings

    async def open(self):
        raise PlaywrightError("Executable doesn't exist")

    async def close(self):
        pass
