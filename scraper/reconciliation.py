"""
reconciliation.py - Resolve a competition id the catalog does not know yet.

Stat tables reference competitions that country discovery may never have
produced (international cups, youth leagues, renamed competitions). The
reconciler pages through the site's quick-search results for the
competition name, matches rows strictly by id, infers the owning country
from the row's flag and persists the pairing.
"""

import re
import logging
from dataclasses import dataclass
from typing import Optional, List, Tuple, Dict

import httpx
from bs4 import BeautifulSoup, Tag

from backend.app import schemas
from backend.app.repositories import CountryRepository
from .config_loader import ScraperSettings
from .enums import Cup, Tier
from .exceptions import ReconciliationNotFound, ExtractionError
from .navigator import ResilientNavigator
from .parsing import (
    clean_text,
    strip_parenthetical,
    parse_int,
    parse_market_value,
    absolute_url,
    last_path_segment,
    flag_head_url,
    id_from_image_url,
)

logger = logging.getLogger(__name__)

COMPETITION_BOX_KEYWORD = 'competition'
RESULT_ROWS = 'table.items > tbody > tr'
ROW_LINK = 'td.hauptlink a'

# Top-level cells of a competition search row
NAME_CELL = 0
COUNTRY_CELL = 1
CLUBS_CELL = 2
PLAYERS_CELL = 3
MARKET_VALUE_CELL = 4
MARKET_VALUE_AVERAGE_CELL = 5


@dataclass
class SearchState:
    """Cursor of a paged search: next page, rows seen so far, declared total."""
    page: int = 1
    scanned: int = 0
    total: Optional[int] = None

    def is_exhausted(self, page_rows: int, max_pages: int) -> bool:
        if page_rows == 0:
            return True
        if self.total is not None and self.scanned >= self.total:
            return True
        return self.page >= max_pages


@dataclass
class SearchPage:
    rows: List[Tag]
    total: Optional[int]


def parse_search_page(html: str) -> SearchPage:
    """
    Locate the competitions box of a quick-search result page.

    Returns:
        SearchPage with the box's result rows and the total declared in
        its headline (None when the headline carries no number)
    """
    soup = BeautifulSoup(html, 'html.parser')
    for box in soup.select('div.box'):
        headline = box.select_one('.content-box-headline') or box.find('h2')
        if headline is None:
            continue
        headline_text = clean_text(headline.get_text(' '))
        if COMPETITION_BOX_KEYWORD not in headline_text.lower():
            continue

        numbers = re.findall(r'\d+', headline_text)
        total = int(numbers[-1]) if numbers else None
        return SearchPage(rows=box.select(RESULT_ROWS), total=total)

    return SearchPage(rows=[], total=None)


def row_competition_id(row: Tag) -> str:
    anchor = row.select_one(ROW_LINK)
    return last_path_segment(anchor.get('href')) if anchor else ''


def find_competition_row(rows: List[Tag], competition_id: str) -> Optional[Tag]:
    for row in rows:
        if row_competition_id(row) == competition_id:
            return row
    return None


class CompetitionReconciler:
    """Search-driven resolution of unknown competitions."""

    def __init__(self, navigator: ResilientNavigator, repository: CountryRepository, settings: ScraperSettings):
        self._navigator = navigator
        self._repository = repository
        self._settings = settings

    def search_params(self, query: str, page: int) -> Dict[str, str]:
        if page <= 1:
            return {'query': query}
        return {'Wettbewerb_page': str(page), 'query': query}

    def search_url(self, query: str, page: int) -> str:
        return str(httpx.URL(self._settings.search_path, params=self.search_params(query, page)))

    async def reconcile_competition(self, competition_id: str, name: str,
                                    link: Optional[str] = None) -> Tuple[schemas.Country, schemas.Competition]:
        """
        Find or resolve the country owning a competition.

        Args:
            competition_id: Site id of the competition (e.g. "GB1")
            name: Display name; parenthesised qualifiers are dropped for the search
            link: Canonical link, preferred over the search row's link

        Returns:
            (country, competition) as stored after the call

        Raises:
            ReconciliationNotFound: No search page lists the id
            NavigationFailure: A search page could not be fetched
            ExtractionError: The matching row has no usable country
        """
        stored = self._repository.get_competition_by_id(competition_id)
        if stored is not None:
            country = self._repository.get_country_for_competition(competition_id)
            if country is not None:
                logger.debug(f"Competition {competition_id} already in the catalog ({country.name})")
                return country, stored

        query = strip_parenthetical(name)
        state = SearchState()
        logger.info(f"Reconciling competition {competition_id} by searching for '{query}'")

        while True:
            url = self.search_url(query, state.page)
            result = await self._navigator.fetch_http(
                self._settings.search_path, params=self.search_params(query, state.page),
            )
            search_page = parse_search_page(result.text)
            if state.total is None:
                state.total = search_page.total

            row = find_competition_row(search_page.rows, competition_id)
            if row is not None:
                competition = self._extract_competition(row, competition_id, link, url)
                country = self._extract_country(row, competition, url)
                return self._persist(country, competition)

            state.scanned += len(search_page.rows)
            if state.is_exhausted(len(search_page.rows), self._settings.max_search_pages):
                message = (
                    f"Competition {competition_id} not found after {state.page} pages "
                    f"({state.scanned}/{state.total if state.total is not None else '?'} results)"
                )
                logger.error(message)
                raise ReconciliationNotFound(message, url=url, context=RESULT_ROWS, competition_id=competition_id)

            state.page += 1

    # =========================================================================
    # ROW EXTRACTION
    # =========================================================================

    def _extract_competition(self, row: Tag, competition_id: str,
                             link: Optional[str], url: str) -> schemas.Competition:
        cells = row.find_all('td', recursive=False)
        anchor = row.select_one(ROW_LINK)
        name = clean_text(anchor.get('title') or anchor.get_text(' '))

        name_cell = cells[NAME_CELL] if cells else row
        logo_img = name_cell.find('img')
        logo = (logo_img.get('src') or logo_img.get('data-src')) if logo_img else None
        if not logo:
            logger.warning(f"No logo for competition {competition_id} at {url}")

        classification = self._classification(name_cell)
        tier = Tier.from_label(classification)
        cup = Cup.from_label(classification) if tier is Tier.NONE else Cup.NONE

        return schemas.Competition(
            transfermarkt_id=competition_id,
            name=name,
            link=link or absolute_url(self._settings.base_url, anchor.get('href')),
            logo=logo,
            cup=cup,
            tier=tier,
            clubs_count=self._cell_value(cells, CLUBS_CELL, parse_int),
            players_count=self._cell_value(cells, PLAYERS_CELL, parse_int),
            market_value=self._cell_value(cells, MARKET_VALUE_CELL, parse_market_value),
            market_value_average=self._cell_value(cells, MARKET_VALUE_AVERAGE_CELL, parse_market_value),
        )

    @staticmethod
    def _classification(name_cell: Tag) -> str:
        inline = name_cell.select_one('table.inline-table')
        if inline is None:
            return ''
        rows = inline.find_all('tr')
        return clean_text(rows[-1].get_text(' ')) if len(rows) > 1 else ''

    @staticmethod
    def _cell_value(cells: List[Tag], index: int, parser):
        if index >= len(cells):
            return None
        return parser(cells[index].get_text(' '))

    def _extract_country(self, row: Tag, competition: schemas.Competition, url: str) -> schemas.Country:
        cells = row.find_all('td', recursive=False)
        country_cell = cells[COUNTRY_CELL] if len(cells) > COUNTRY_CELL else None
        flag_img = country_cell.find('img') if country_cell is not None else None

        if flag_img is None or competition.cup is Cup.INTERNATIONAL:
            return schemas.international_country()

        flag = flag_head_url(flag_img.get('src'))
        country_id = id_from_image_url(flag)
        country_name = clean_text(flag_img.get('title'))
        if not country_id or not country_name:
            message = f"Could not infer the country of competition {competition.transfermarkt_id}"
            logger.error(message)
            raise ExtractionError(message, url=url, context=f"td:nth-of-type({COUNTRY_CELL + 1}) img")

        return schemas.Country(transfermarkt_id=country_id, name=country_name, flag=flag)

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _persist(self, country: schemas.Country,
                 competition: schemas.Competition) -> Tuple[schemas.Country, schemas.Competition]:
        stored = self._repository.get_by_id(country.transfermarkt_id)

        if stored is None:
            country.competitions = [competition]
            self._repository.upsert_many([country])
            logger.info(f"Added country {country.name} with competition {competition.name}")
        else:
            competitions = list(stored.competitions)
            ids = [existing.transfermarkt_id for existing in competitions]
            if competition.transfermarkt_id in ids:
                competitions[ids.index(competition.transfermarkt_id)] = competition
            else:
                competitions.append(competition)
            self._repository.update_competitions_for_country(stored.transfermarkt_id, competitions)
            logger.info(f"Added competition {competition.name} to {stored.name}")

        return (
            self._repository.get_by_id(country.transfermarkt_id),
            self._repository.get_competition_by_id(competition.transfermarkt_id),
        )
