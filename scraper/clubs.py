"""
clubs.py - Clubs of a competition and club rosters.

This module provides:
- ClubService: the club table of a competition page
- RosterService: a club's detailed squad view plus each player's market value history

Both read from storage first and only drive the browser when nothing is
stored yet or a rescrape is forced.
"""

import asyncio
import logging
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from backend.app import schemas
from backend.app.repositories import CountryRepository, ClubRepository
from .config_loader import ScraperSettings
from .enums import Position, Foot
from .market_value import MarketValueService
from .navigator import ResilientNavigator
from .parsing import (
    clean_text,
    is_empty_cell,
    parse_int,
    parse_float,
    parse_market_value,
    parse_height,
    parse_date,
    parse_age_suffix,
    absolute_url,
    club_id_from_link,
    player_id_from_link,
)

logger = logging.getLogger(__name__)

TABLE_ROWS = '#yw1 table.items > tbody > tr'


def _cells(row: Tag) -> List[Tag]:
    return row.find_all('td', recursive=False)


def _text(cells: List[Tag], index: int) -> Optional[str]:
    if index >= len(cells):
        return None
    return clean_text(cells[index].get_text(' '))


# =============================================================================
# CLUBS
# =============================================================================

class ClubService:
    """Club table of a competition page."""

    def __init__(self, navigator: ResilientNavigator, country_repository: CountryRepository,
                 club_repository: ClubRepository, settings: ScraperSettings):
        self._navigator = navigator
        self._country_repository = country_repository
        self._club_repository = club_repository
        self._settings = settings

    async def get_clubs(self, competition_id: str, force_rescrape: Optional[bool] = None) -> List[schemas.Club]:
        """
        Clubs playing in a competition.

        Raises:
            LookupError: The competition is not in the catalog or has no link
            NavigationFailure: The competition page could not be loaded
        """
        force = self._settings.force_scraping if force_rescrape is None else force_rescrape

        competition = self._country_repository.get_competition_by_id(competition_id)
        if competition is None or not competition.link:
            raise LookupError(f"Competition {competition_id} not found")

        stored = self._club_repository.get_by_competition(competition_id)
        if stored and not force:
            return stored

        logger.info(f"Scraping clubs of {competition.name} ({competition_id})")
        async with self._navigator.exclusive():
            result = await self._navigator.fetch_page(competition.link)

        soup = BeautifulSoup(result.content, 'html.parser')
        clubs = []
        for row in soup.select(TABLE_ROWS):
            club = self.parse_club_row(row, competition_id)
            if club is not None:
                clubs.append(club)

        if not clubs:
            logger.warning(f"No clubs found at {result.url} ({TABLE_ROWS})")
            return []

        stored = self._club_repository.upsert_many(clubs)
        self._country_repository.update_competition_clubs(competition_id, [club.transfermarkt_id for club in clubs])
        logger.info(f"Stored {len(stored)} clubs of {competition_id}")
        return stored

    def parse_club_row(self, row: Tag, competition_id: str) -> Optional[schemas.Club]:
        cells = _cells(row)
        anchor = cells[1].select_one('a[title]') if len(cells) > 1 else None
        if anchor is None:
            return None

        link = absolute_url(self._settings.base_url, anchor.get('href'))
        club_id = club_id_from_link(link)
        if not club_id:
            logger.warning(f"Club row without an id: {link}")
            return None

        crest = cells[0].find('img')
        crest_src = crest.get('src') if crest is not None else None
        players_link = cells[2].find('a') if len(cells) > 2 else None

        return schemas.Club(
            transfermarkt_id=club_id,
            name=clean_text(anchor.get('title')),
            link=link,
            crest=crest_src.replace('tiny', 'head') if crest_src else None,
            competition_ids=[competition_id],
            players_count=parse_int(players_link.get_text()) if players_link is not None else None,
            age_average=parse_float(_text(cells, 3)),
            foreigners_count=parse_int(_text(cells, 4)),
            market_value_average=parse_market_value(_text(cells, 5)),
            market_value=parse_market_value(_text(cells, 6)),
        )


# =============================================================================
# ROSTERS
# =============================================================================

class RosterService:
    """Players of a club, with their market value histories."""

    def __init__(self, navigator: ResilientNavigator, club_repository: ClubRepository,
                 market_value_service: MarketValueService, settings: ScraperSettings):
        self._navigator = navigator
        self._club_repository = club_repository
        self._market_value_service = market_value_service
        self._settings = settings

    async def get_players(self, club_id: str, force_rescrape: Optional[bool] = None) -> List[schemas.Player]:
        """
        Players of a stored club.

        Raises:
            LookupError: The club is not in storage
            NavigationFailure: The squad page could not be loaded
        """
        force = self._settings.force_scraping if force_rescrape is None else force_rescrape

        club = self._club_repository.get_by_id(club_id)
        if club is None:
            raise LookupError(f"Club {club_id} not found")
        if club.players is not None and not force:
            return club.players

        logger.info(f"Scraping players of {club.name} ({club_id})")
        async with self._navigator.exclusive():
            result = await self._navigator.fetch_page(f"{club.link}{self._settings.detailed_view_path}")

        soup = BeautifulSoup(result.content, 'html.parser')
        players = []
        for row in soup.select(TABLE_ROWS):
            player = self.parse_player_row(row)
            if player is not None:
                players.append(player)

        await self._attach_market_values(players)

        self._club_repository.update_players(club_id, players)
        logger.info(f"Stored {len(players)} players of {club.name}")
        return players

    async def _attach_market_values(self, players: List[schemas.Player]):
        semaphore = asyncio.Semaphore(max(1, self._settings.http_concurrency))

        async def fetch(player: schemas.Player):
            async with semaphore:
                player.market_values = await self._market_value_service.get_market_values(player.transfermarkt_id)

        await asyncio.gather(*(fetch(player) for player in players))

    def parse_player_row(self, row: Tag) -> Optional[schemas.Player]:
        cells = _cells(row)
        if len(cells) < 2:
            return None

        profile = cells[1]
        anchor = profile.select_one('.hauptlink a')
        player_id = player_id_from_link(anchor.get('href')) if anchor is not None else None
        if not player_id:
            logger.warning(f"Roster row without a player link: '{clean_text(row.get_text(' '))[:60]}'")
            return None

        portrait = profile.select_one('table.inline-table img')
        position_row = profile.select_one('table tr:nth-child(2)')
        number = _text(cells, 0)
        birth = _text(cells, 2)

        nationalities = []
        if len(cells) > 3:
            nationalities = [clean_text(img.get('title')) for img in cells[3].find_all('img') if img.get('title')]

        return schemas.Player(
            transfermarkt_id=player_id,
            name=clean_text(anchor.get_text(' ')),
            link=absolute_url(self._settings.base_url, anchor.get('href')),
            portrait=(portrait.get('data-src') or portrait.get('src')) if portrait is not None else None,
            number=None if is_empty_cell(number) else number,
            position=Position.from_label(clean_text(position_row.get_text(' ')) if position_row else ''),
            date_of_birth=parse_date(birth),
            age=parse_age_suffix(birth),
            nationalities=nationalities,
            height=parse_height(_text(cells, 4)),
            foot=Foot.from_label(_text(cells, 5)),
            contract_start=parse_date(_text(cells, 6)),
            contract_end=parse_date(_text(cells, 8)),
            market_value=parse_market_value(_text(cells, 9)),
        )
