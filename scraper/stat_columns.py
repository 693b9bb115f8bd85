"""
stat_columns.py - Column layouts of the player performance tables.

Goalkeeper tables swap assists, penalty goals and minutes per goal for
goals conceded and clean sheets, which shifts every column after goals.
All of that lives in one (PositionCategory, field) -> index table; the
readers below never branch on position themselves.
"""

import logging
from typing import Dict, List, Tuple, Optional

from bs4 import Tag

from .enums import PositionCategory, Position
from .parsing import clean_text, parse_int, parse_minute, is_empty_cell

logger = logging.getLogger(__name__)

GK = PositionCategory.GOALKEEPER
OUTFIELD = PositionCategory.OUTFIELD

# Season totals (tfoot) and competition rows (tbody) share these indexes
AGGREGATE_COLUMNS: Dict[Tuple[PositionCategory, str], int] = {
    (GK, 'appearances'): 2,
    (GK, 'goals'): 3,
    (GK, 'own_goals'): 4,
    (GK, 'substitutions_on'): 5,
    (GK, 'substitutions_off'): 6,
    (GK, 'yellow_cards'): 7,
    (GK, 'second_yellow_cards'): 8,
    (GK, 'red_cards'): 9,
    (GK, 'goals_conceded'): 10,
    (GK, 'clean_sheets'): 11,
    (GK, 'minutes_played'): 12,

    (OUTFIELD, 'appearances'): 2,
    (OUTFIELD, 'goals'): 3,
    (OUTFIELD, 'assists'): 4,
    (OUTFIELD, 'own_goals'): 5,
    (OUTFIELD, 'substitutions_on'): 6,
    (OUTFIELD, 'substitutions_off'): 7,
    (OUTFIELD, 'yellow_cards'): 8,
    (OUTFIELD, 'second_yellow_cards'): 9,
    (OUTFIELD, 'red_cards'): 10,
    (OUTFIELD, 'penalty_goals'): 11,
    (OUTFIELD, 'minutes_per_goal'): 12,
    (OUTFIELD, 'minutes_played'): 13,
}

# Match rows look the same for every position
MATCH_COLUMNS: Dict[str, int] = {
    'match_day': 0,
    'date': 1,
    'home_club': 2,
    'away_club': 4,
    'result': 6,
    'position': 7,
    'goals': 8,
    'assists': 9,
    'own_goals': 10,
    'yellow_card': 11,
    'second_yellow_card': 12,
    'red_card': 13,
    'substituted_on': 14,
    'substituted_off': 15,
    'minutes_played': 16,
}

# Cells holding the minute of the event rather than a count
MINUTE_FIELDS = {'yellow_card', 'second_yellow_card', 'red_card', 'substituted_on', 'substituted_off'}
COUNT_FIELDS = {'goals', 'assists', 'own_goals', 'minutes_played'}

FULL_MATCH_MARK = '✔'
FULL_MATCH_MINUTES = 90


def cell_text(cells: List[Tag], index: int) -> Optional[str]:
    """Text of the cell at `index`, or None when the row is shorter."""
    if index >= len(cells):
        return None
    return clean_text(cells[index].get_text(' '))


class ColumnLayout:
    """Aggregate column reader for one position category."""

    def __init__(self, category: PositionCategory):
        self.category = category
        self.columns: Dict[str, int] = {
            field: index
            for (column_category, field), index in AGGREGATE_COLUMNS.items()
            if column_category is category
        }

    @classmethod
    def for_position(cls, position: Position) -> 'ColumnLayout':
        return cls(position.category)

    def read_aggregate(self, cells: List[Tag]) -> Dict[str, int]:
        """
        Read one aggregate row.

        Only the fields this layout owns are returned; a missing or
        unparseable cell yields 0 with a warning.
        """
        values: Dict[str, int] = {}
        for field, index in self.columns.items():
            text = cell_text(cells, index)
            if text is None:
                logger.warning(f"Aggregate row has no column {index} for '{field}' ({self.category.value})")
                values[field] = 0
                continue
            number = parse_int(text)
            if number is None and not is_empty_cell(text):
                logger.warning(f"Could not parse '{field}' from '{text}'")
            values[field] = number or 0
        return values


def read_match_numbers(cells: List[Tag]) -> Dict[str, int]:
    """Numeric columns of a match the player took part in."""
    values: Dict[str, int] = {}
    for field in COUNT_FIELDS | MINUTE_FIELDS:
        text = cell_text(cells, MATCH_COLUMNS[field])
        if text is None or is_empty_cell(text):
            values[field] = 0
        elif field in MINUTE_FIELDS:
            values[field] = FULL_MATCH_MINUTES if text == FULL_MATCH_MARK else (parse_minute(text) or 0)
        else:
            values[field] = parse_int(text) or 0
    return values
