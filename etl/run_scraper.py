"""
run_scraper.py - Command-line runner for the catalog scraper.

Sub-commands:
- countries: discover countries until the target count is stored
- reconcile: resolve the country of one competition id
- clubs: scrape the clubs of a competition
- players: scrape the roster of a club
- stats: harvest a player's stats (all seasons or one)
- all: walk the whole catalog
- clean: remove every stored record

Logs go to the console and to a rotating file (logging.* in config.yaml).
"""

import sys
import os
import asyncio
import argparse
import logging
from logging.handlers import RotatingFileHandler

# Add project root to path for imports
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from backend.app.database import engine, SessionLocal
from backend.app.models import Base
from backend.app.repositories import CountryRepository, ClubRepository, PlayerStatRepository
from scraper.config_loader import get_config, get_scraper_settings
from scraper.exceptions import ScraperError
from scraper.pipeline import CatalogPipeline, clean_database
from scraper.session import ScraperSession


def setup_logging():
    """Configure logging to both file and console."""
    logging_config = get_config().get_logging_config()

    log_file = logging_config.get('file', 'etl/logs/scraper.log')
    if not os.path.isabs(log_file):
        log_file = os.path.join(project_root, log_file)
    os.makedirs(os.path.dirname(log_file), exist_ok=True)

    # Create handlers
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=logging_config.get('max_bytes', 5 * 1024 * 1024),
        backupCount=logging_config.get('backup_count', 3),
    )
    console_handler = logging.StreamHandler()

    # Formatters
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    # Root logger
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, str(logging_config.get('level', 'INFO')).upper(), logging.INFO))
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Transfermarkt catalog scraper")
    parser.add_argument('--headed', action='store_true', help="Show the browser window")
    parser.add_argument('--force', action='store_true', help="Re-scrape data that is already stored")
    subparsers = parser.add_subparsers(dest='command', required=True)

    countries = subparsers.add_parser('countries', help="Discover countries and their competitions")
    countries.add_argument('--target', type=int, default=None, help="Countries to hold in the catalog (0 = all)")

    reconcile = subparsers.add_parser('reconcile', help="Resolve the country of a competition")
    reconcile.add_argument('competition_id')
    reconcile.add_argument('name')
    reconcile.add_argument('--link', default=None)

    clubs = subparsers.add_parser('clubs', help="Scrape the clubs of a competition")
    clubs.add_argument('competition_id')

    players = subparsers.add_parser('players', help="Scrape the roster of a club")
    players.add_argument('club_id')

    stats = subparsers.add_parser('stats', help="Harvest a player's stats")
    stats.add_argument('player_id')
    stats.add_argument('--season', default='all', help="'all' or one season id")
    stats.add_argument('--position', default=None, help="Position label when the player is not stored")

    walk = subparsers.add_parser('all', help="Walk the whole catalog")
    walk.add_argument('--target', type=int, default=None, help="Countries to hold in the catalog (0 = all)")

    subparsers.add_parser('clean', help="Remove every stored record")
    return parser


async def run_command(args, logger: logging.Logger):
    settings = get_scraper_settings()
    if args.headed:
        settings.headless = False
    if args.force:
        settings.force_scraping = True

    async with ScraperSession(settings) as session:
        pipeline = CatalogPipeline(session, SessionLocal)

        if args.command == 'countries':
            countries = await pipeline.discovery.discover_countries(args.target)
            logger.info(f"{len(countries)} countries in the catalog")
        elif args.command == 'reconcile':
            country, competition = await pipeline.reconciler.reconcile_competition(
                args.competition_id, args.name, args.link,
            )
            logger.info(f"{competition.name} ({competition.transfermarkt_id}) belongs to {country.name}")
        elif args.command == 'clubs':
            clubs = await pipeline.clubs.get_clubs(args.competition_id)
            logger.info(f"{len(clubs)} clubs in {args.competition_id}")
        elif args.command == 'players':
            players = await pipeline.rosters.get_players(args.club_id)
            logger.info(f"{len(players)} players in club {args.club_id}")
        elif args.command == 'stats':
            player_stat = await pipeline.harvester.harvest_player_stats(
                args.player_id, season_selector=args.season, position=args.position,
            )
            scraped = sum(season.is_scraped for season in player_stat.seasons)
            logger.info(f"Player {args.player_id}: {scraped}/{len(player_stat.seasons)} seasons scraped")
        elif args.command == 'all':
            summary = await pipeline.scrape_all(args.target)
            logger.info(f"Walk summary: {summary}")


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logger = setup_logging()

    logger.info("=" * 80)
    logger.info(f"Running '{args.command}'")
    logger.info("=" * 80)

    Base.metadata.create_all(bind=engine)

    if args.command == 'clean':
        clean_database(
            CountryRepository(SessionLocal),
            ClubRepository(SessionLocal),
            PlayerStatRepository(SessionLocal),
        )
        return 0

    try:
        asyncio.run(run_command(args, logger))
    except (ScraperError, LookupError) as e:
        logger.error(f"'{args.command}' failed: {e}")
        return 1

    logger.info(f"'{args.command}' finished")
    return 0


if __name__ == "__main__":
    sys.exit(main())
