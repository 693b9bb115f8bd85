"""
parsing.py - Cell-value parsing helpers.

This module provides:
- Integer, minute and market value parsing with site-specific formatting
- Date normalisation across the formats the site renders
- Id extraction from links and image urls
- Footer summary ("Squad: 34, Starting eleven: 28, ...") parsing

Parsers return None for an absent or unparseable value; callers pick the
documented default. Nothing here raises for bad cell content.
"""

import re
import logging
from datetime import date, datetime
from typing import Optional, Dict, List
from urllib.parse import urljoin

logger = logging.getLogger(__name__)

EMPTY_CELL_MARKERS = {'', '-', '--', '?'}

DATE_FORMATS = ["%b %d, %Y", "%B %d, %Y", "%m/%d/%y", "%m/%d/%Y", "%d.%m.%Y", "%Y-%m-%d"]

FOOTER_KEYS = {
    'squad': 'squad',
    'starting eleven': 'starting_eleven',
    'substituted in': 'substituted_in',
    'substituted off': 'substituted_off',
    'on the bench': 'on_the_bench',
    'suspended': 'suspended',
    'injured': 'injured',
}

CLUB_ID_PATTERN = re.compile(r'/verein/(\d+)')
PLAYER_ID_PATTERN = re.compile(r'/spieler/(\d+)')
ORDINAL_SUFFIX_PATTERN = re.compile(r'\s*\(\d+\)')
PARENTHETICAL_PATTERN = re.compile(r'\s*\(.*?\)')


# =============================================================================
# TEXT
# =============================================================================

def clean_text(text: Optional[str]) -> str:
    """Collapse whitespace (including non-breaking spaces) and strip."""
    if not text:
        return ''
    return ' '.join(text.replace('\xa0', ' ').split())


def is_empty_cell(text: Optional[str]) -> bool:
    return clean_text(text) in EMPTY_CELL_MARKERS


def strip_parenthetical(text: str) -> str:
    """'Copa Libertadores (U20)' -> 'Copa Libertadores'"""
    return PARENTHETICAL_PATTERN.sub('', text or '').strip()


# =============================================================================
# NUMBERS
# =============================================================================

def parse_int(text: Optional[str]) -> Optional[int]:
    """
    Parse an integer cell.

    Thousands separators and minute marks are dropped ("1.234'" -> 1234).

    Returns:
        The integer, or None when the cell is empty or not numeric
    """
    if is_empty_cell(text):
        return None
    value = clean_text(text).replace("'", '').replace('.', '').replace(',', '').strip()
    try:
        return int(value)
    except ValueError:
        return None


def parse_minute(text: Optional[str]) -> Optional[int]:
    """Parse a match minute, folding stoppage time in ("45+2'" -> 47)."""
    if is_empty_cell(text):
        return None
    value = clean_text(text).replace("'", '').strip()
    if '+' in value:
        regular, _, added = value.partition('+')
        regular_minute, added_minutes = parse_int(regular), parse_int(added)
        if regular_minute is None or added_minutes is None:
            return None
        return regular_minute + added_minutes
    return parse_int(value)


def parse_float(text: Optional[str]) -> Optional[float]:
    if is_empty_cell(text):
        return None
    try:
        return float(clean_text(text).replace(',', '.'))
    except ValueError:
        return None


def parse_market_value(value_str: Optional[str]) -> Optional[float]:
    """
    Parse market value string to a float in euros.

    Args:
        value_str: Value string (e.g., "€5.00m", "€500k", "€1.20bn", "€350Th.")

    Returns:
        Value in euros or None if parsing fails
    """
    if is_empty_cell(value_str):
        return None

    value_str = clean_text(value_str).replace('€', '').replace('£', '').replace('$', '').strip().lower()

    multipliers = [('bn', 1_000_000_000), ('m', 1_000_000), ('th.', 1_000), ('k', 1_000)]
    for suffix, multiplier in multipliers:
        if value_str.endswith(suffix):
            number = value_str[:-len(suffix)].strip()
            try:
                return float(number) * multiplier
            except ValueError:
                logger.warning(f"Could not parse market value '{value_str}'")
                return None

    try:
        return float(value_str)
    except ValueError:
        logger.warning(f"Could not parse market value '{value_str}'")
        return None


def parse_height(text: Optional[str]) -> Optional[int]:
    """'1,87 m' -> 187 (centimetres)"""
    if is_empty_cell(text):
        return None
    value = clean_text(text).lower().replace('m', '').replace(',', '.').strip()
    try:
        return int(round(float(value) * 100))
    except ValueError:
        return None


# =============================================================================
# DATES
# =============================================================================

def parse_date(text: Optional[str]) -> Optional[date]:
    """
    Parse a date cell, dropping a trailing "(age)" marker.

    Returns:
        date or None if no known format matches
    """
    if is_empty_cell(text):
        return None
    value = ORDINAL_SUFFIX_PATTERN.sub('', clean_text(text)).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def parse_age_suffix(text: Optional[str]) -> Optional[int]:
    """'Jun 24, 1987 (36)' -> 36"""
    match = re.search(r'\((\d+)\)', text or '')
    return int(match.group(1)) if match else None


# =============================================================================
# LINKS & IDS
# =============================================================================

def absolute_url(base_url: str, href: Optional[str]) -> str:
    if not href:
        return ''
    return urljoin(base_url + '/', href)


def last_path_segment(link: Optional[str]) -> str:
    """'/premier-league/startseite/wettbewerb/GB1' -> 'GB1'"""
    if not link:
        return ''
    return link.split('?')[0].rstrip('/').rsplit('/', 1)[-1]


def club_id_from_link(link: Optional[str]) -> Optional[str]:
    match = CLUB_ID_PATTERN.search(link or '')
    return match.group(1) if match else None


def player_id_from_link(link: Optional[str]) -> Optional[str]:
    match = PLAYER_ID_PATTERN.search(link or '')
    return match.group(1) if match else None


def id_from_image_url(url: Optional[str]) -> str:
    """'https://.../flagge/head/40.png?lm=1' -> '40'"""
    file_name = last_path_segment(url)
    return file_name.rsplit('.', 1)[0] if file_name else ''


def flag_head_url(src: Optional[str]) -> str:
    """Swap the tiny flag rendition for the large one and drop the cache buster."""
    return (src or '').replace('verysmall', 'head').replace('tiny', 'head').split('?')[0]


# =============================================================================
# FOOTER SUMMARY
# =============================================================================

def parse_footer_summary(text: Optional[str]) -> Dict[str, int]:
    """
    Parse a comma-separated "key: value" footer block.

    Args:
        text: e.g. "Squad: 34, Starting eleven: 28, On the bench: 3"

    Returns:
        Dict keyed by FOOTER_KEYS values; unknown keys and non-numeric
        values are ignored
    """
    summary: Dict[str, int] = {}
    if not text:
        return summary

    entries: List[str] = [entry.strip() for entry in clean_text(text).split(',')]
    for entry in entries:
        if ':' not in entry:
            continue
        key, _, value = entry.partition(':')
        field = FOOTER_KEYS.get(key.strip().lower())
        number = parse_int(value)
        if field and number is not None:
            summary[field] = number
    return summary
