"""
identity.py - Deterministic ids for nested stat records.

Composite ids are SHA-256 digests (base64) of the parent keys, so
re-harvesting the same season, competition or match always lands on the
same record.
"""

import base64
import hashlib
from datetime import date


def get_hash(raw_id: str) -> str:
    """
    Hash a raw composite key.

    Args:
        raw_id: Pipe-joined parent keys (e.g., '8198|2023|GB1')

    Returns:
        Base64 encoded SHA-256 digest

    Raises:
        ValueError: If raw_id is empty
    """
    if not raw_id:
        raise ValueError("Composite id source cannot be empty")
    digest = hashlib.sha256(raw_id.encode('utf-8')).digest()
    return base64.b64encode(digest).decode('ascii')


def _require(**keys):
    for name, value in keys.items():
        if not value:
            raise ValueError(f"{name} cannot be empty")


def player_stat_id(player_id: str) -> str:
    _require(player_id=player_id)
    return get_hash(f"{player_id}|stat")


def season_stat_id(player_id: str, season_id: str) -> str:
    _require(player_id=player_id, season_id=season_id)
    return get_hash(f"{player_id}|{season_id}")


def competition_stat_id(player_id: str, season_id: str, competition_id: str) -> str:
    _require(player_id=player_id, season_id=season_id, competition_id=competition_id)
    return get_hash(f"{player_id}|{season_id}|{competition_id}")


def match_stat_id(player_id: str, home_club_id: str, away_club_id: str, match_date: date) -> str:
    """One stat line per player, opponent pair and day."""
    _require(player_id=player_id, home_club_id=home_club_id, away_club_id=away_club_id)
    if match_date is None:
        raise ValueError("match_date cannot be empty")
    return get_hash(f"{player_id}|{home_club_id}|{away_club_id}|{match_date:%Y%m%d}")
