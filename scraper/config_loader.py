"""
config_loader.py - Load and manage scraper configuration from YAML file.

Settings live in config.yaml at the project root so crawl limits, retry
bounds and site paths can be tuned without touching Python code.
SCRAPER_CONFIG points at another file; a .env file is honoured.
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()


class ConfigLoader:
    """Load and cache configuration from config.yaml."""

    _instance = None
    _config = None

    def __new__(cls):
        """Singleton pattern - return same instance."""
        if cls._instance is None:
            cls._instance = super(ConfigLoader, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if self._config is None:
            self.reload()

    def reload(self):
        """Load config from YAML file."""
        config_path = Path(os.getenv('SCRAPER_CONFIG', Path(__file__).parent.parent / 'config.yaml'))

        if not config_path.exists():
            logger.warning(f"Config file not found at {config_path}, using defaults")
            self._config = self._get_default_config()
            return

        try:
            with open(config_path, 'r') as f:
                loaded = yaml.safe_load(f) or {}
            self._config = _merge(self._get_default_config(), loaded)
            logger.info(f"Configuration loaded from {config_path}")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading config: {e}. Using defaults.")
            self._config = self._get_default_config()

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get config value by dot-notation path.

        Args:
            key: Path to config value (e.g., 'navigation.page_max_attempts')
            default: Default value if key not found

        Returns:
            Config value or default
        """
        parts = key.split('.')
        value = self._config

        for part in parts:
            if isinstance(value, dict):
                value = value.get(part)
                if value is None:
                    return default
            else:
                return default

        return value if value is not None else default

    def get_database_url(self) -> str:
        return os.getenv('DATABASE_URL') or self.get('database.url', 'sqlite:///./catalog.db')

    def get_logging_config(self) -> Dict[str, Any]:
        """Get log file location and rotation settings."""
        return self.get('logging', {})

    @staticmethod
    def _get_default_config() -> Dict[str, Any]:
        """
        Return default configuration if YAML file not found.
        This should match config.yaml defaults.
        """
        return {
            'scraper': {
                'base_url': 'https://www.transfermarkt.com',
                'flag_url': 'https://tmssl.akamaized.net/images/flagge/head',
                'search_path': '/schnellsuche/ergebnis/schnellsuche',
                'player_stats_path': '/-/leistungsdatendetails/spieler',
                'detailed_view_path': '/plus/1',
                'market_value_path': '/ceapi/marketValueDevelopment/graph',
                'quick_select_pattern': '**/quickselect/competitions/**',
                'country_limit': 0,
                'headless': True,
                'force_scraping': False,
                'default_timeout_ms': 8000,
                'user_agent': (
                    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
                    '(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36'
                ),
            },
            'navigation': {
                'page_max_attempts': 5,
                'http_max_attempts': 3,
                'backoff_cap_s': 30,
                'http_timeout_s': 10,
                'http_concurrency': 4,
            },
            'discovery': {
                'batch_size': 10,
                'batch_restarts': 3,
                'capture_timeout_s': 10,
            },
            'reconciliation': {
                'max_pages': 50,
            },
            'database': {
                'url': 'sqlite:///./catalog.db',
            },
            'logging': {
                'level': 'INFO',
                'file': 'etl/logs/scraper.log',
                'max_bytes': 5 * 1024 * 1024,
                'backup_count': 3,
            },
        }


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# =============================================================================
# TYPED SETTINGS
# =============================================================================

@dataclass
class ScraperSettings:
    """Flat, typed view of the settings the scraping services read."""
    base_url: str
    flag_url: str
    search_path: str
    player_stats_path: str
    detailed_view_path: str
    market_value_path: str
    quick_select_pattern: str
    country_limit: int
    headless: bool
    force_scraping: bool
    default_timeout_ms: int
    user_agent: str
    page_max_attempts: int
    http_max_attempts: int
    backoff_cap_s: float
    http_timeout_s: float
    http_concurrency: int
    batch_size: int
    batch_restarts: int
    capture_timeout_s: float
    max_search_pages: int


def get_config() -> ConfigLoader:
    """Get global config instance (singleton)."""
    return ConfigLoader()


def get_scraper_settings(config: ConfigLoader = None) -> ScraperSettings:
    config = config or get_config()
    return ScraperSettings(
        base_url=config.get('scraper.base_url').rstrip('/'),
        flag_url=config.get('scraper.flag_url').rstrip('/'),
        search_path=config.get('scraper.search_path'),
        player_stats_path=config.get('scraper.player_stats_path'),
        detailed_view_path=config.get('scraper.detailed_view_path'),
        market_value_path=config.get('scraper.market_value_path'),
        quick_select_pattern=config.get('scraper.quick_select_pattern'),
        country_limit=int(config.get('scraper.country_limit', 0)),
        headless=bool(config.get('scraper.headless', True)),
        force_scraping=bool(config.get('scraper.force_scraping', False)),
        default_timeout_ms=int(config.get('scraper.default_timeout_ms', 8000)),
        user_agent=config.get('scraper.user_agent'),
        page_max_attempts=int(config.get('navigation.page_max_attempts', 5)),
        http_max_attempts=int(config.get('navigation.http_max_attempts', 3)),
        backoff_cap_s=float(config.get('navigation.backoff_cap_s', 30)),
        http_timeout_s=float(config.get('navigation.http_timeout_s', 10)),
        http_concurrency=int(config.get('navigation.http_concurrency', 4)),
        batch_size=int(config.get('discovery.batch_size', 10)),
        batch_restarts=int(config.get('discovery.batch_restarts', 3)),
        capture_timeout_s=float(config.get('discovery.capture_timeout_s', 10)),
        max_search_pages=int(config.get('reconciliation.max_pages', 50)),
    )
