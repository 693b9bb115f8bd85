import base64
import hashlib
from datetime import date

import pytest

from scraper.identity import get_hash, player_stat_id, season_stat_id, competition_stat_id, match_stat_id


def test_get_hash_is_base64_sha256():
    expected = base64.b64encode(hashlib.sha256(b"8198|2023").digest()).decode('ascii')
    assert get_hash("8198|2023") == expected


def test_get_hash_rejects_empty_source():
    with pytest.raises(ValueError):
        get_hash("")


def test_ids_are_deterministic():
    assert season_stat_id("8198", "2023") == season_stat_id("8198", "2023")
    assert competition_stat_id("8198", "2023", "GB1") == competition_stat_id("8198", "2023", "GB1")


def test_ids_differ_by_parent_key():
    assert season_stat_id("8198", "2023") != season_stat_id("8198", "2022")
    assert competition_stat_id("8198", "2023", "GB1") != competition_stat_id("8198", "2023", "FAC")
    assert player_stat_id("8198") != season_stat_id("8198", "stat")


def test_match_stat_id_uses_the_day():
    first = match_stat_id("8198", "985", "631", date(2023, 8, 12))
    assert first == get_hash("8198|985|631|20230812")
    assert first != match_stat_id("8198", "631", "985", date(2023, 8, 12))


def test_match_stat_id_requires_every_key():
    with pytest.raises(ValueError):
        match_stat_id("8198", "", "631", date(2023, 8, 12))
    with pytest.raises(ValueError):
        match_stat_id("8198", "985", "631", None)
