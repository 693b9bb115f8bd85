"""
scraper/__init__.py - Package initialization for the scraping engine

Exports the configuration, error and enum types for easy importing:
    from scraper import get_scraper_settings, NavigationFailure, Position

Service modules (discovery, reconciliation, harvest, clubs, pipeline)
depend on the persistence layer and are imported from their modules.
"""

from .config_loader import (
    ConfigLoader,
    ScraperSettings,
    get_config,
    get_scraper_settings,
)

from .exceptions import (
    ScraperError,
    TransientNetworkError,
    NavigationFailure,
    ExtractionError,
    InterceptorCorrelationFailure,
    ReconciliationNotFound,
)

from .enums import (
    Cup,
    Tier,
    MatchResult,
    NotPlayingReason,
    PositionCategory,
    Position,
    Foot,
)

from .identity import (
    get_hash,
    player_stat_id,
    season_stat_id,
    competition_stat_id,
    match_stat_id,
)

__all__ = [
    # Configuration
    'ConfigLoader',
    'ScraperSettings',
    'get_config',
    'get_scraper_settings',
    # Errors
    'ScraperError',
    'TransientNetworkError',
    'NavigationFailure',
    'ExtractionError',
    'InterceptorCorrelationFailure',
    'ReconciliationNotFound',
    # Enums
    'Cup',
    'Tier',
    'MatchResult',
    'NotPlayingReason',
    'PositionCategory',
    'Position',
    'Foot',
    # Identity
    'get_hash',
    'player_stat_id',
    'season_stat_id',
    'competition_stat_id',
    'match_stat_id',
]
