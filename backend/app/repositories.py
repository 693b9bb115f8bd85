"""
repositories.py - Persistence collaborators for the scraping services.

Every write is an upsert keyed by the site's natural id (SQLite
ON CONFLICT DO UPDATE), so replaying a batch never duplicates a row.
Competition upserts keep already-enriched columns when the incoming
record only carries a partial quick-select capture.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional, Iterable

from sqlalchemy import func, or_
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, sessionmaker

from . import models, schemas
from .database import SessionLocal
from scraper.enums import Cup, Tier

logger = logging.getLogger(__name__)


@contextmanager
def session_scope(session_factory: sessionmaker):
    """Commit on success, roll back and re-raise on failure."""
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _enum_or_none(member, none_member):
    return None if member is none_member else member.value


# =============================================================================
# COUNTRIES & COMPETITIONS
# =============================================================================

class CountryRepository:
    """Countries and the competitions they own."""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory

    def count(self) -> int:
        with session_scope(self._session_factory) as session:
            return session.query(models.Country).count()

    def count_discovered(self) -> int:
        """Countries that came from the country selector, i.e. the discovery offset."""
        with session_scope(self._session_factory) as session:
            return session.query(models.Country).filter(models.Country.discovered.is_(True)).count()

    def get_all(self) -> List[schemas.Country]:
        with session_scope(self._session_factory) as session:
            rows = session.query(models.Country).order_by(models.Country.name).all()
            return [schemas.Country.model_validate(row) for row in rows]

    def get_by_id(self, country_id: str) -> Optional[schemas.Country]:
        with session_scope(self._session_factory) as session:
            row = session.get(models.Country, country_id)
            return schemas.Country.model_validate(row) if row else None

    def get_competition_by_id(self, competition_id: str) -> Optional[schemas.Competition]:
        with session_scope(self._session_factory) as session:
            row = session.get(models.Competition, competition_id)
            return schemas.Competition.model_validate(row) if row else None

    def get_country_for_competition(self, competition_id: str) -> Optional[schemas.Country]:
        with session_scope(self._session_factory) as session:
            row = session.get(models.Competition, competition_id)
            if row is None or row.country is None:
                return None
            return schemas.Country.model_validate(row.country)

    def upsert_many(self, countries: Iterable[schemas.Country],
                    discovered: bool = False) -> List[schemas.Country]:
        """
        Insert or replace countries and their competitions.

        Args:
            countries: Country records; each one's competitions keep their list order
            discovered: Mark the countries as read from the country selector.
                A country once marked stays marked.

        Returns:
            The stored countries, re-read after the write
        """
        countries = list(countries)
        if not countries:
            return []

        with session_scope(self._session_factory) as session:
            for country in countries:
                self._upsert_country(session, country, discovered)
                self._upsert_competitions(session, country.transfermarkt_id, country.competitions)

        logger.info(f"Upserted {len(countries)} countries")
        return [self.get_by_id(country.transfermarkt_id) for country in countries]

    def update_competitions_for_country(self, country_id: str,
                                        competitions: List[schemas.Competition]) -> schemas.Country:
        """Write a country's full competition list back; the country must exist."""
        with session_scope(self._session_factory) as session:
            if session.get(models.Country, country_id) is None:
                raise LookupError(f"Country {country_id} not found")
            self._upsert_competitions(session, country_id, competitions)

        return self.get_by_id(country_id)

    def update_competition_clubs(self, competition_id: str, club_ids: List[str]):
        with session_scope(self._session_factory) as session:
            row = session.get(models.Competition, competition_id)
            if row is None:
                raise LookupError(f"Competition {competition_id} not found")
            row.club_ids = list(club_ids)
            row.clubs_count = len(club_ids)

    def remove_all(self):
        with session_scope(self._session_factory) as session:
            session.query(models.Competition).delete()
            session.query(models.Country).delete()
        logger.info("Removed all countries and competitions")

    @staticmethod
    def _upsert_country(session: Session, country: schemas.Country, discovered: bool):
        stmt = sqlite_insert(models.Country).values(
            transfermarkt_id=country.transfermarkt_id,
            name=country.name,
            flag=country.flag,
            discovered=discovered,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['transfermarkt_id'],
            set_={
                'name': stmt.excluded.name,
                'flag': func.coalesce(stmt.excluded.flag, models.Country.flag),
                'discovered': or_(stmt.excluded.discovered, models.Country.discovered),
                'updated_at': datetime.utcnow(),
            }
        )
        session.execute(stmt)

    @staticmethod
    def _upsert_competitions(session: Session, country_id: str, competitions: List[schemas.Competition]):
        table = models.Competition
        for position, competition in enumerate(competitions):
            stmt = sqlite_insert(table).values(
                transfermarkt_id=competition.transfermarkt_id,
                country_id=country_id,
                position=position,
                name=competition.name,
                link=competition.link,
                logo=competition.logo,
                cup=_enum_or_none(competition.cup, Cup.NONE),
                tier=_enum_or_none(competition.tier, Tier.NONE),
                clubs_count=competition.clubs_count,
                players_count=competition.players_count,
                market_value=competition.market_value,
                market_value_average=competition.market_value_average,
                club_ids=competition.club_ids or None,
            )
            # Capture first, enrich later: never blank a column that is already known
            keep = lambda column: func.coalesce(getattr(stmt.excluded, column), getattr(table, column))
            stmt = stmt.on_conflict_do_update(
                index_elements=['transfermarkt_id'],
                set_={
                    'country_id': stmt.excluded.country_id,
                    'position': stmt.excluded.position,
                    'name': keep('name'),
                    'link': keep('link'),
                    'logo': keep('logo'),
                    'cup': keep('cup'),
                    'tier': keep('tier'),
                    'clubs_count': keep('clubs_count'),
                    'players_count': keep('players_count'),
                    'market_value': keep('market_value'),
                    'market_value_average': keep('market_value_average'),
                    'club_ids': keep('club_ids'),
                    'updated_at': datetime.utcnow(),
                }
            )
            session.execute(stmt)


# =============================================================================
# CLUBS
# =============================================================================

class ClubRepository:
    """Clubs and their roster documents."""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory

    def get_by_id(self, club_id: str) -> Optional[schemas.Club]:
        with session_scope(self._session_factory) as session:
            row = session.get(models.Club, club_id)
            return self._to_schema(row) if row else None

    def get_by_competition(self, competition_id: str) -> List[schemas.Club]:
        with session_scope(self._session_factory) as session:
            rows = session.query(models.Club).order_by(models.Club.name).all()
            return [self._to_schema(row) for row in rows if competition_id in (row.competition_ids or [])]

    def find_player(self, player_id: str) -> Optional[schemas.Player]:
        """Look a player up across every stored roster."""
        with session_scope(self._session_factory) as session:
            for row in session.query(models.Club).filter(models.Club.players.isnot(None)).all():
                for player in row.players or []:
                    if player.get('transfermarkt_id') == player_id:
                        return schemas.Player.model_validate(player)
        return None

    def upsert_many(self, clubs: Iterable[schemas.Club]) -> List[schemas.Club]:
        clubs = list(clubs)
        with session_scope(self._session_factory) as session:
            for club in clubs:
                existing = session.get(models.Club, club.transfermarkt_id)
                competition_ids = list(club.competition_ids)
                if existing is not None:
                    # A club plays in several competitions; merge the references
                    competition_ids = list(dict.fromkeys((existing.competition_ids or []) + competition_ids))

                values = club.model_dump(mode='json', exclude={'players'})
                values['competition_ids'] = competition_ids
                stmt = sqlite_insert(models.Club).values(**values)
                update = {key: stmt.excluded[key] for key in values if key != 'transfermarkt_id'}
                update['updated_at'] = datetime.utcnow()
                stmt = stmt.on_conflict_do_update(index_elements=['transfermarkt_id'], set_=update)
                session.execute(stmt)

        logger.info(f"Upserted {len(clubs)} clubs")
        return [self.get_by_id(club.transfermarkt_id) for club in clubs]

    def update_players(self, club_id: str, players: List[schemas.Player]) -> schemas.Club:
        with session_scope(self._session_factory) as session:
            row = session.get(models.Club, club_id)
            if row is None:
                raise LookupError(f"Club {club_id} not found")
            row.players = [player.model_dump(mode='json') for player in players]
            row.players_count = len(players)

        return self.get_by_id(club_id)

    def remove_all(self):
        with session_scope(self._session_factory) as session:
            session.query(models.Club).delete()

    @staticmethod
    def _to_schema(row: models.Club) -> schemas.Club:
        club = schemas.Club.model_validate(row)
        if row.players is not None:
            club.players = [schemas.Player.model_validate(player) for player in row.players]
        return club


# =============================================================================
# PLAYER STATS
# =============================================================================

class PlayerStatRepository:
    """Player stat documents, one row per player."""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory

    def get(self, player_id: str) -> Optional[schemas.PlayerStat]:
        with session_scope(self._session_factory) as session:
            row = session.query(models.PlayerStat).filter(
                models.PlayerStat.player_transfermarkt_id == player_id
            ).first()
            if row is None:
                return None
            return schemas.PlayerStat(
                transfermarkt_id=row.transfermarkt_id,
                player_transfermarkt_id=row.player_transfermarkt_id,
                seasons=row.seasons or [],
            )

    def upsert(self, player_stat: schemas.PlayerStat) -> schemas.PlayerStat:
        """Write the whole document in one statement."""
        seasons = [season.model_dump(mode='json') for season in player_stat.seasons]
        with session_scope(self._session_factory) as session:
            stmt = sqlite_insert(models.PlayerStat).values(
                transfermarkt_id=player_stat.transfermarkt_id,
                player_transfermarkt_id=player_stat.player_transfermarkt_id,
                seasons=seasons,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=['transfermarkt_id'],
                set_={
                    'seasons': stmt.excluded.seasons,
                    'updated_at': datetime.utcnow(),
                }
            )
            session.execute(stmt)

        return self.get(player_stat.player_transfermarkt_id)

    def remove_all(self):
        with session_scope(self._session_factory) as session:
            session.query(models.PlayerStat).delete()
