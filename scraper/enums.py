"""
enums.py - Enumerations shared by the scraper and the persistence layer.

String parsing follows the labels the site renders. Unknown labels never
raise: they log a warning and fall back to a sentinel member.
"""

import logging
from enum import Enum

logger = logging.getLogger(__name__)


# ============================================================================
# COMPETITION CLASSIFICATION
# ============================================================================

class Cup(Enum):
    """Cup classification of a competition."""
    NONE = "None"
    DOMESTIC = "Domestic Cup"
    SUPERCUP = "Domestic Super Cup"
    INTERNATIONAL = "International Cup"
    UNKNOWN = "Unknown Cup"

    @classmethod
    def from_label(cls, label: str) -> 'Cup':
        text = (label or '').lower().strip()
        if 'domestic' in text or 'national' in text.split(' '):
            # "Domestic super cup" is still a super cup
            return cls.SUPERCUP if 'super cup' in text else cls.DOMESTIC
        if 'international' in text:
            return cls.INTERNATIONAL
        if 'super cup' in text:
            return cls.SUPERCUP
        if text:
            return cls.UNKNOWN
        return cls.NONE


class Tier(Enum):
    """League tier of a competition."""
    NONE = "None"
    FIRST_TIER = "First Tier"
    SECOND_TIER = "Second Tier"
    THIRD_TIER = "Third Tier"
    YOUTH_LEAGUE = "Youth League"

    @classmethod
    def from_label(cls, label: str) -> 'Tier':
        text = (label or '').lower().strip()
        for member in cls:
            if member is not cls.NONE and member.value.lower() == text:
                return member
        return cls.NONE


# ============================================================================
# MATCH ENUMERATIONS
# ============================================================================

class MatchResult(Enum):
    """Outcome of a match from the player's side."""
    UNKNOWN = "Unknown"
    WIN = "Win"
    LOSS = "Loss"
    DRAW = "Draw"

    @classmethod
    def from_css_class(cls, css_class: str) -> 'MatchResult':
        # A score without a colour marker is a draw
        if not css_class:
            return cls.DRAW
        return {
            'greentext': cls.WIN,
            'redtext': cls.LOSS,
            'bluetext': cls.DRAW,
        }.get(css_class.strip(), cls.UNKNOWN)


class NotPlayingReason(Enum):
    """Coded reason a player did not appear in a match."""
    NONE = "None"
    ON_THE_BENCH = "On the Bench"
    NOT_IN_SQUAD = "Not in Squad"
    INJURED = "Injured"
    RED_CARD_SUSPENSION = "Red Card Suspension"
    SUSPENDED = "Suspended"
    OTHER = "Other"

    @classmethod
    def from_label(cls, label: str) -> 'NotPlayingReason':
        text = (label or '').lower().strip()
        if not text:
            return cls.NONE
        for member in cls:
            if member.value.lower() == text:
                return member
        if 'injur' in text or 'knock' in text or 'ill' in text.split(' '):
            return cls.INJURED
        if 'red card' in text:
            return cls.RED_CARD_SUSPENSION
        if 'suspen' in text:
            return cls.SUSPENDED
        logger.warning(f"Unsupported not-playing reason: '{label}'")
        return cls.OTHER


# ============================================================================
# PLAYER ENUMERATIONS
# ============================================================================

class PositionCategory(Enum):
    """Column layout family of a player's stat tables."""
    GOALKEEPER = "Goalkeeper"
    OUTFIELD = "Outfield"


class Position(Enum):
    """Player positions as labelled on the site."""
    UNKNOWN = "Unknown"
    GOALKEEPER = "Goalkeeper"
    CENTRE_BACK = "Centre-Back"
    LEFT_BACK = "Left-Back"
    RIGHT_BACK = "Right-Back"
    DEFENSIVE_MIDFIELD = "Defensive Midfield"
    CENTRAL_MIDFIELD = "Central Midfield"
    RIGHT_MIDFIELD = "Right Midfield"
    LEFT_MIDFIELD = "Left Midfield"
    ATTACKING_MIDFIELD = "Attacking Midfield"
    LEFT_WINGER = "Left Winger"
    RIGHT_WINGER = "Right Winger"
    SECOND_STRIKER = "Second Striker"
    CENTRE_FORWARD = "Centre-Forward"

    @classmethod
    def from_label(cls, label: str) -> 'Position':
        text = (label or '').lower().strip()
        for member in cls:
            if member.value.lower() == text:
                return member
        if text:
            logger.warning(f"Unsupported position: '{label}'")
        return cls.UNKNOWN

    @property
    def category(self) -> PositionCategory:
        if self is Position.GOALKEEPER:
            return PositionCategory.GOALKEEPER
        return PositionCategory.OUTFIELD


class Foot(Enum):
    """Preferred foot."""
    UNKNOWN = "unknown"
    RIGHT = "right"
    LEFT = "left"
    BOTH = "both"

    @classmethod
    def from_label(cls, label: str) -> 'Foot':
        text = (label or '').lower().strip()
        for member in cls:
            if member.value == text:
                return member
        return cls.UNKNOWN
