"""
schemas.py - Pydantic schemas for catalog records and API request/response validation.

Domain records (Country, Competition, Club, Player, PlayerStat and the
nested season/competition/match stat lines) are what the scraping
services produce and the repositories persist. Composite stat ids are
derived from parent keys on construction.
"""

from datetime import date, datetime
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field, field_validator, model_validator

from scraper.enums import Cup, Tier, MatchResult, NotPlayingReason, Position, Foot
from scraper.identity import (
    player_stat_id,
    season_stat_id,
    competition_stat_id,
    match_stat_id,
)

INTERNATIONAL_COUNTRY_ID = "international"
INTERNATIONAL_COUNTRY_NAME = "International"


# =============================================================================
# CATALOG SCHEMAS
# =============================================================================

class Competition(BaseModel):
    """
    A competition as stored in the catalog.

    Quick-select captures only carry id, name and link; a reconciliation
    search fills in the rest. Fields left as None are "not known yet".
    """
    transfermarkt_id: str
    name: Optional[str] = None
    link: Optional[str] = None
    logo: Optional[str] = None
    cup: Cup = Cup.NONE
    tier: Tier = Tier.NONE
    clubs_count: Optional[int] = None
    players_count: Optional[int] = None
    market_value: Optional[float] = None
    market_value_average: Optional[float] = None
    club_ids: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True

    @field_validator('cup', 'tier', 'club_ids', mode='before')
    @classmethod
    def _missing_to_default(cls, value, info):
        if value is None:
            return {'cup': Cup.NONE, 'tier': Tier.NONE, 'club_ids': []}[info.field_name]
        return value


class Country(BaseModel):
    """A country and its ordered competitions."""
    transfermarkt_id: str
    name: str
    flag: Optional[str] = None
    competitions: List[Competition] = Field(default_factory=list)

    class Config:
        from_attributes = True


def international_country(competitions: Optional[List[Competition]] = None) -> Country:
    """Sentinel owner of competitions that belong to no single country."""
    return Country(
        transfermarkt_id=INTERNATIONAL_COUNTRY_ID,
        name=INTERNATIONAL_COUNTRY_NAME,
        flag=None,
        competitions=competitions or [],
    )


class MarketValue(BaseModel):
    """One point of a player's market value history."""
    date: date
    value: float
    age: Optional[int] = None
    club_name: Optional[str] = None
    club_transfermarkt_id: Optional[str] = None
    club_crest: Optional[str] = None


class Player(BaseModel):
    transfermarkt_id: str
    name: str
    link: str
    portrait: Optional[str] = None
    number: Optional[str] = None
    position: Position = Position.UNKNOWN
    date_of_birth: Optional[date] = None
    age: Optional[int] = None
    nationalities: List[str] = Field(default_factory=list)
    height: Optional[int] = None
    foot: Foot = Foot.UNKNOWN
    contract_start: Optional[date] = None
    contract_end: Optional[date] = None
    market_value: Optional[float] = None
    market_values: List[MarketValue] = Field(default_factory=list)
    player_stat_id: str = ''

    @model_validator(mode='after')
    def _link_stat_document(self):
        # Pre-link to the stat document without a lookup
        if not self.player_stat_id:
            self.player_stat_id = player_stat_id(self.transfermarkt_id)
        return self


class Club(BaseModel):
    """A club; `players` stays None until its roster has been scraped."""
    transfermarkt_id: str
    name: str
    link: str
    crest: Optional[str] = None
    competition_ids: List[str] = Field(default_factory=list)
    players_count: Optional[int] = None
    age_average: Optional[float] = None
    foreigners_count: Optional[int] = None
    market_value: Optional[float] = None
    market_value_average: Optional[float] = None
    players: Optional[List[Player]] = None

    class Config:
        from_attributes = True


# =============================================================================
# STAT SCHEMAS
# =============================================================================

class StatLine(BaseModel):
    """Aggregate columns shared by season totals and competition rows."""
    appearances: int = 0
    goals: int = 0
    assists: int = 0
    own_goals: int = 0
    substitutions_on: int = 0
    substitutions_off: int = 0
    yellow_cards: int = 0
    second_yellow_cards: int = 0
    red_cards: int = 0
    goals_conceded: int = 0
    clean_sheets: int = 0
    penalty_goals: int = 0
    minutes_per_goal: int = 0
    minutes_played: int = 0


class PlayerSeasonCompetitionMatchStat(BaseModel):
    """One match line. The id is unique per player, club pair and day."""
    transfermarkt_id: str = ''
    player_transfermarkt_id: str
    home_club_transfermarkt_id: str
    away_club_transfermarkt_id: str
    date: date
    match_day: Optional[str] = None
    link: Optional[str] = None
    home_club_name: Optional[str] = None
    home_club_logo: Optional[str] = None
    home_club_link: Optional[str] = None
    away_club_name: Optional[str] = None
    away_club_logo: Optional[str] = None
    away_club_link: Optional[str] = None
    home_club_goals: int = 0
    away_club_goals: int = 0
    match_result: MatchResult = MatchResult.UNKNOWN
    match_result_link: Optional[str] = None
    is_result_addition: bool = False
    is_result_penalties: bool = False
    position: Position = Position.UNKNOWN
    is_captain: bool = False
    goals: int = 0
    assists: int = 0
    own_goals: int = 0
    yellow_card: int = 0
    second_yellow_card: int = 0
    red_card: int = 0
    substituted_on: int = 0
    substituted_off: int = 0
    minutes_played: int = 0
    not_playing_reason: NotPlayingReason = NotPlayingReason.NONE

    @model_validator(mode='after')
    def _derive_id(self):
        if not self.transfermarkt_id:
            self.transfermarkt_id = match_stat_id(
                self.player_transfermarkt_id,
                self.home_club_transfermarkt_id,
                self.away_club_transfermarkt_id,
                self.date,
            )
        return self


class PlayerSeasonCompetitionStat(StatLine):
    transfermarkt_id: str = ''
    player_transfermarkt_id: str
    season_transfermarkt_id: str
    competition_transfermarkt_id: str
    competition_name: Optional[str] = None
    competition_link: Optional[str] = None
    competition_logo: Optional[str] = None
    squad: int = 0
    starting_eleven: int = 0
    substituted_in: int = 0
    substituted_off: int = 0
    on_the_bench: int = 0
    suspended: int = 0
    injured: int = 0
    matches: List[PlayerSeasonCompetitionMatchStat] = Field(default_factory=list)

    @model_validator(mode='after')
    def _derive_id(self):
        if not self.transfermarkt_id:
            self.transfermarkt_id = competition_stat_id(
                self.player_transfermarkt_id,
                self.season_transfermarkt_id,
                self.competition_transfermarkt_id,
            )
        return self


class PlayerSeasonStat(StatLine):
    """
    Season totals plus per-competition lines.

    `is_scraped` is the unit of incremental completion: only seasons with
    is_scraped == False are harvested again unless a rescrape is forced.
    """
    transfermarkt_id: str = ''
    player_transfermarkt_id: str
    season_transfermarkt_id: str
    is_scraped: bool = False
    competitions: List[PlayerSeasonCompetitionStat] = Field(default_factory=list)

    @model_validator(mode='after')
    def _derive_id(self):
        if not self.transfermarkt_id:
            self.transfermarkt_id = season_stat_id(self.player_transfermarkt_id, self.season_transfermarkt_id)
        return self


class PlayerStat(BaseModel):
    transfermarkt_id: str = ''
    player_transfermarkt_id: str
    seasons: List[PlayerSeasonStat] = Field(default_factory=list)

    @model_validator(mode='after')
    def _derive_id(self):
        if not self.transfermarkt_id:
            self.transfermarkt_id = player_stat_id(self.player_transfermarkt_id)
        return self

    def get_season(self, season_id: str) -> Optional[PlayerSeasonStat]:
        for season in self.seasons:
            if season.season_transfermarkt_id == season_id:
                return season
        return None


# =============================================================================
# HEALTH CHECK
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response schema."""
    status: str
    database: str
    country_count: int
    session_open: bool = False


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class DiscoverRequest(BaseModel):
    """Request body for country discovery."""
    target_count: Optional[int] = Field(None, ge=0, description="Countries to hold in the catalog (0 = all)")


class ReconcileRequest(BaseModel):
    """Request body for resolving an unknown competition."""
    competition_id: str = Field(..., min_length=1, description="Site id of the competition")
    name: str = Field(..., min_length=1, description="Display name used to scope the search")
    link: Optional[str] = Field(None, description="Canonical competition link")


class ReconcileResponse(BaseModel):
    country: Country
    competition: Competition


class PlayerStatRequest(BaseModel):
    """Request body for harvesting one player's stats."""
    player_id: str = Field(..., min_length=1, description="Site id of the player")
    season: str = Field("all", description="'all' or a single season id (e.g. '2023')")
    force_rescrape: Optional[bool] = Field(None, description="Re-harvest seasons already scraped")
    position: Optional[str] = Field(None, description="Position label when the player is not in the catalog")


class ErrorDetail(BaseModel):
    message: str
    url: Optional[str] = None
    context: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)


class CatalogResetResponse(BaseModel):
    removed_at: datetime
