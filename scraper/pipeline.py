"""
pipeline.py - Wiring of the scraping services and the full catalog walk.

This module provides:
- CatalogPipeline: every service built on one ScraperSession
- scrape_all: countries -> competitions -> clubs -> rosters -> player stats
- clean_database: remove every stored record

Each level is resumable on its own (stored countries, clubs, rosters and
scraped seasons are not fetched again), so the walk can be restarted
after a crash and picks up where storage ends.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import sessionmaker

from backend.app.database import SessionLocal
from backend.app.repositories import CountryRepository, ClubRepository, PlayerStatRepository
from .clubs import ClubService, RosterService
from .discovery import CountryDiscoveryService
from .exceptions import ScraperError
from .harvest import PlayerStatHarvester
from .market_value import MarketValueService
from .reconciliation import CompetitionReconciler
from .session import ScraperSession

logger = logging.getLogger(__name__)


@dataclass
class WalkSummary:
    countries: int = 0
    competitions: int = 0
    clubs: int = 0
    players: int = 0
    player_stats: int = 0
    failures: int = 0


class CatalogPipeline:
    """All scraping services sharing one browser session and one database."""

    def __init__(self, session: ScraperSession, session_factory: sessionmaker = SessionLocal):
        settings = session.settings
        navigator = session.navigator

        self.settings = settings
        self.country_repository = CountryRepository(session_factory)
        self.club_repository = ClubRepository(session_factory)
        self.stat_repository = PlayerStatRepository(session_factory)

        self.discovery = CountryDiscoveryService(navigator, self.country_repository, settings)
        self.reconciler = CompetitionReconciler(navigator, self.country_repository, settings)
        self.market_values = MarketValueService(navigator, settings.market_value_path)
        self.clubs = ClubService(navigator, self.country_repository, self.club_repository, settings)
        self.rosters = RosterService(navigator, self.club_repository, self.market_values, settings)
        self.harvester = PlayerStatHarvester(
            navigator, self.reconciler, self.stat_repository, self.club_repository, settings,
        )

    async def scrape_all(self, target_count: Optional[int] = None) -> WalkSummary:
        """
        Walk the whole catalog.

        Country discovery failures abort the walk; a failing competition,
        club or player is logged and skipped.
        """
        summary = WalkSummary()
        countries = await self.discovery.discover_countries(target_count)
        summary.countries = len(countries)

        for country in countries:
            for competition in country.competitions:
                summary.competitions += 1
                try:
                    clubs = await self.clubs.get_clubs(competition.transfermarkt_id)
                except (ScraperError, LookupError) as e:
                    logger.error(f"Skipping competition {competition.transfermarkt_id}: {e}")
                    summary.failures += 1
                    continue

                for club in clubs:
                    summary.clubs += 1
                    await self._walk_club(club.transfermarkt_id, summary)

        logger.info(f"Catalog walk finished: {summary}")
        return summary

    async def _walk_club(self, club_id: str, summary: WalkSummary):
        try:
            players = await self.rosters.get_players(club_id)
        except (ScraperError, LookupError) as e:
            logger.error(f"Skipping club {club_id}: {e}")
            summary.failures += 1
            return

        for player in players:
            summary.players += 1
            try:
                await self.harvester.harvest_player_stats(player.transfermarkt_id, position=player.position)
                summary.player_stats += 1
            except (ScraperError, LookupError) as e:
                logger.error(f"Skipping stats of player {player.transfermarkt_id}: {e}")
                summary.failures += 1

    def clean_database(self):
        clean_database(self.country_repository, self.club_repository, self.stat_repository)


def clean_database(country_repository: CountryRepository, club_repository: ClubRepository,
                   stat_repository: PlayerStatRepository):
    """Remove every stored country, competition, club and player stat."""
    logger.info("Removing all catalog data")
    stat_repository.remove_all()
    club_repository.remove_all()
    country_repository.remove_all()
    logger.info("Catalog data removed")
