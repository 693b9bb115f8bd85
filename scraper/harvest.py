"""
harvest.py - Incremental player stat harvesting.

This module provides:
- PlayerStatHarvester: builds and updates a player's stat document season by season
- Season discovery from the performance page's season selector
- Competition and match extraction from the season detail page

A season moves UNSCRAPED -> SCRAPING -> SCRAPED and only seasons that are
not SCRAPED (or every selected season when forced) cost a navigation. The
merged document is written back in one upsert at the end.
"""

import re
import logging
from enum import Enum
from typing import Optional, List, Union, Dict, Any

from bs4 import BeautifulSoup, Tag

from backend.app import schemas
from backend.app.repositories import PlayerStatRepository, ClubRepository
from .config_loader import ScraperSettings
from .enums import Position, MatchResult, NotPlayingReason
from .exceptions import ReconciliationNotFound, ExtractionError
from .navigator import ResilientNavigator
from .reconciliation import CompetitionReconciler
from .stat_columns import ColumnLayout, MATCH_COLUMNS, read_match_numbers, cell_text
from .parsing import (
    clean_text,
    parse_date,
    parse_footer_summary,
    absolute_url,
    last_path_segment,
    club_id_from_link,
)

logger = logging.getLogger(__name__)

ALL_SEASONS = 'all'
AGGREGATE_SEASON = 'ges'

SEASON_OPTIONS = "select[name='saison'] option"
TOTALS_CELLS = '#yw1 > table.items > tfoot tr > td'
COMPETITION_ROWS = '#yw1 > table.items > tbody > tr'
MATCH_ROWS = 'div.responsive-table > table > tbody > tr'
MATCH_FOOTER = 'div.responsive-table > table > tfoot'

NOT_AVAILABLE_MARKER = 'information not yet available'
COMPETITION_ID_PATTERN = re.compile(r'/wettbewerb/([^/?#]+)')


class SeasonState(Enum):
    UNSCRAPED = "unscraped"
    SCRAPING = "scraping"
    SCRAPED = "scraped"


class PlayerStatHarvester:
    """Season-incremental harvest of one player's performance data."""

    def __init__(
        self,
        navigator: ResilientNavigator,
        reconciler: CompetitionReconciler,
        stat_repository: PlayerStatRepository,
        club_repository: ClubRepository,
        settings: ScraperSettings,
    ):
        self._navigator = navigator
        self._reconciler = reconciler
        self._stat_repository = stat_repository
        self._club_repository = club_repository
        self._settings = settings

    def stats_url(self, player_id: str, season_id: str) -> str:
        return (f"{self._settings.player_stats_path}/{player_id}"
                f"{self._settings.detailed_view_path}?saison={season_id}")

    async def harvest_player_stats(
        self,
        player_id: str,
        season_selector: str = ALL_SEASONS,
        force_rescrape: Optional[bool] = None,
        position: Union[Position, str, None] = None,
    ) -> schemas.PlayerStat:
        """
        Harvest the selected seasons of a player and persist the document.

        Args:
            player_id: Site id of the player
            season_selector: "all" or one season id (e.g. "2023")
            force_rescrape: Re-harvest seasons already scraped; defaults to
                scraper.force_scraping
            position: Overrides the stored player's position

        Returns:
            The stored PlayerStat after the merge

        Raises:
            LookupError: The selected season is not listed for the player
            NavigationFailure: A stat page could not be loaded
        """
        force = self._settings.force_scraping if force_rescrape is None else force_rescrape
        resolved_position = self._resolve_position(player_id, position)
        layout = ColumnLayout.for_position(resolved_position)

        async with self._navigator.exclusive():
            player_stat = self._stat_repository.get(player_id)
            if player_stat is None:
                player_stat = await self._discover_seasons(player_id)

            if season_selector != ALL_SEASONS and player_stat.get_season(season_selector) is None:
                raise LookupError(f"Season {season_selector} is not listed for player {player_id}")

            seasons: List[schemas.PlayerSeasonStat] = []
            for season in player_stat.seasons:
                selected = season_selector == ALL_SEASONS or season.season_transfermarkt_id == season_selector
                if selected and (force or not season.is_scraped):
                    seasons.append(await self._harvest_season(player_id, season.season_transfermarkt_id, layout))
                else:
                    seasons.append(season)

        player_stat.seasons = seasons
        stored = self._stat_repository.upsert(player_stat)
        logger.info(f"Stored stats of player {player_id}: {sum(s.is_scraped for s in seasons)}/{len(seasons)} seasons scraped")
        return stored

    def _resolve_position(self, player_id: str, position: Union[Position, str, None]) -> Position:
        if isinstance(position, Position):
            return position
        if position:
            return Position.from_label(position)

        player = self._club_repository.find_player(player_id)
        if player is not None:
            return player.position

        logger.warning(f"Position of player {player_id} unknown, using the outfield layout")
        return Position.UNKNOWN

    async def _discover_seasons(self, player_id: str) -> schemas.PlayerStat:
        result = await self._navigator.fetch_page(self.stats_url(player_id, AGGREGATE_SEASON))
        soup = BeautifulSoup(result.content, 'html.parser')

        season_ids = []
        for option in soup.select(SEASON_OPTIONS):
            value = clean_text(option.get('value'))
            if value and value != AGGREGATE_SEASON and value not in season_ids:
                season_ids.append(value)

        if not season_ids:
            logger.warning(f"No seasons listed for player {player_id} at {result.url} ({SEASON_OPTIONS})")

        return schemas.PlayerStat(
            player_transfermarkt_id=player_id,
            seasons=[
                schemas.PlayerSeasonStat(player_transfermarkt_id=player_id, season_transfermarkt_id=season_id)
                for season_id in season_ids
            ],
        )

    # =========================================================================
    # SEASON
    # =========================================================================

    async def _harvest_season(self, player_id: str, season_id: str, layout: ColumnLayout) -> schemas.PlayerSeasonStat:
        state = SeasonState.SCRAPING
        logger.info(f"Player {player_id} season {season_id}: {state.value}")

        result = await self._navigator.fetch_page(self.stats_url(player_id, season_id))
        soup = BeautifulSoup(result.content, 'html.parser')

        totals_cells = soup.select(TOTALS_CELLS)
        if not totals_cells:
            logger.warning(f"No season totals at {result.url} ({TOTALS_CELLS})")
        season = schemas.PlayerSeasonStat(
            player_transfermarkt_id=player_id,
            season_transfermarkt_id=season_id,
            **layout.read_aggregate(totals_cells),
        )

        complete = True
        for row in soup.select(COMPETITION_ROWS):
            competition = self._read_competition_row(row, player_id, season_id, layout, result.url)
            if competition is None:
                continue

            try:
                await self._reconciler.reconcile_competition(
                    competition.competition_transfermarkt_id,
                    competition.competition_name or competition.competition_transfermarkt_id,
                    competition.competition_link,
                )
            except ReconciliationNotFound as e:
                # Dropped for now; the season stays unscraped so a later run retries it
                logger.error(f"Dropping competition stats of player {player_id} season {season_id}: {e}")
                complete = False
                continue

            self._read_competition_box(soup, competition, result.url)
            season.competitions.append(competition)

        season.is_scraped = complete
        state = SeasonState.SCRAPED if complete else SeasonState.UNSCRAPED
        logger.info(f"Player {player_id} season {season_id}: {state.value} ({len(season.competitions)} competitions)")
        return season

    def _read_competition_row(self, row: Tag, player_id: str, season_id: str,
                              layout: ColumnLayout, url: str) -> Optional[schemas.PlayerSeasonCompetitionStat]:
        cells = row.find_all('td', recursive=False)
        anchor = cells[1].find('a') if len(cells) > 1 else None
        if anchor is None or not anchor.get('href'):
            logger.warning(f"Competition row without a link at {url}")
            return None

        href = anchor.get('href')
        match = COMPETITION_ID_PATTERN.search(href)
        competition_id = match.group(1) if match else last_path_segment(href)

        logo = cells[0].find('img')
        return schemas.PlayerSeasonCompetitionStat(
            player_transfermarkt_id=player_id,
            season_transfermarkt_id=season_id,
            competition_transfermarkt_id=competition_id,
            competition_name=clean_text(anchor.get_text(' ')) or clean_text(anchor.get('title')),
            competition_link=absolute_url(self._settings.base_url, href),
            competition_logo=logo.get('src') if logo else None,
            **layout.read_aggregate(cells),
        )

    def _read_competition_box(self, soup: BeautifulSoup, competition: schemas.PlayerSeasonCompetitionStat, url: str):
        competition_id = competition.competition_transfermarkt_id
        header = soup.select_one(f"a[name='{competition_id}']")
        if header is None or header.parent is None or header.parent.parent is None:
            logger.warning(f"No match table for competition {competition_id} at {url}")
            return
        box = header.parent.parent

        footer = box.select_one(MATCH_FOOTER)
        if footer is not None:
            for key, value in parse_footer_summary(footer.get_text(' ')).items():
                setattr(competition, key, value)

        for row in box.select(MATCH_ROWS):
            match_stat = self.parse_match_row(row, competition.player_transfermarkt_id, url)
            if match_stat is not None:
                competition.matches.append(match_stat)

    # =========================================================================
    # MATCH ROWS
    # =========================================================================

    def parse_match_row(self, row: Tag, player_id: str,
                        url: Optional[str] = None) -> Optional[schemas.PlayerSeasonCompetitionMatchStat]:
        """
        Parse one match row of a competition box.

        Returns:
            The match line, or None for rows without match information

        Raises:
            ExtractionError: The date or a club id cannot be read
        """
        row_text = clean_text(row.get_text(' '))
        if not row_text or NOT_AVAILABLE_MARKER in row_text.lower():
            return None

        cells = row.find_all('td', recursive=False)

        match_day_cell = cells[MATCH_COLUMNS['match_day']]
        match_day_link = match_day_cell.find('a')
        match_date = parse_date(cell_text(cells, MATCH_COLUMNS['date']))
        if match_date is None:
            raise ExtractionError(
                f"Unreadable match date '{cell_text(cells, MATCH_COLUMNS['date'])}'",
                url=url, context=f"td:nth-of-type({MATCH_COLUMNS['date'] + 1})",
            )

        home = self._read_club(cells, MATCH_COLUMNS['home_club'], url)
        away = self._read_club(cells, MATCH_COLUMNS['away_club'], url)
        result = self._read_result(cells[MATCH_COLUMNS['result']], url) if len(cells) > MATCH_COLUMNS['result'] else {}

        values: Dict[str, Any] = dict(
            player_transfermarkt_id=player_id,
            home_club_transfermarkt_id=home['id'],
            away_club_transfermarkt_id=away['id'],
            date=match_date,
            match_day=clean_text(match_day_cell.get_text(' ')) or None,
            link=absolute_url(self._settings.base_url, match_day_link.get('href')) if match_day_link else None,
            home_club_name=home['name'],
            home_club_logo=home['logo'],
            home_club_link=home['link'],
            away_club_name=away['name'],
            away_club_logo=away['logo'],
            away_club_link=away['link'],
            **result,
        )

        if row.select_one('td[colspan]') is not None:
            values['not_playing_reason'] = NotPlayingReason.from_label(cell_text(cells, MATCH_COLUMNS['position']))
            return schemas.PlayerSeasonCompetitionMatchStat(**values)

        position_cell = cells[MATCH_COLUMNS['position']] if len(cells) > MATCH_COLUMNS['position'] else None
        position_link = position_cell.find('a') if position_cell is not None else None
        if position_link is not None:
            values['position'] = Position.from_label(position_link.get('title'))
            values['is_captain'] = position_cell.select_one('a + span') is not None

        values.update(read_match_numbers(cells))
        return schemas.PlayerSeasonCompetitionMatchStat(**values)

    def _read_club(self, cells: List[Tag], index: int, url: Optional[str]) -> Dict[str, Optional[str]]:
        anchor = cells[index].find('a') if len(cells) > index else None
        club_id = club_id_from_link(anchor.get('href')) if anchor else None
        if not club_id:
            raise ExtractionError("Match row without a club link", url=url, context=f"td:nth-of-type({index + 1}) a")

        logo = anchor.find('img')
        logo_src = logo.get('src') if logo is not None else None
        return {
            'id': club_id,
            'name': clean_text(anchor.get('title')) or None,
            'link': absolute_url(self._settings.base_url, anchor.get('href')),
            'logo': logo_src.replace('tiny', 'head') if logo_src else None,
        }

    def _read_result(self, cell: Tag, url: Optional[str]) -> Dict[str, Any]:
        anchor = cell.find('a')
        if anchor is None:
            logger.warning(f"Match result without a link at {url}")
            return {}

        values: Dict[str, Any] = {
            'match_result_link': absolute_url(self._settings.base_url, anchor.get('href')) or None,
        }
        score = anchor.find('span', recursive=False)
        if score is None:
            logger.warning(f"Match result without a score at {url}")
            return values

        goals = clean_text(score.get_text(' ')).split(' ')[0].split(':')
        if len(goals) == 2 and goals[0].isdigit() and goals[1].isdigit():
            values['home_club_goals'] = int(goals[0])
            values['away_club_goals'] = int(goals[1])
        else:
            logger.warning(f"Unreadable score '{score.get_text()}' at {url}")

        values['match_result'] = MatchResult.from_css_class(' '.join(score.get('class') or []))

        addition = score.find('span', recursive=False)
        if addition is not None:
            addition_text = addition.get_text(' ').lower()
            values['is_result_addition'] = 'aet' in addition_text
            values['is_result_penalties'] = 'on pens' in addition_text
        return values
