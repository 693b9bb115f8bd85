from datetime import date

import pytest

from scraper.parsing import (
    clean_text,
    strip_parenthetical,
    parse_int,
    parse_minute,
    parse_market_value,
    parse_height,
    parse_date,
    parse_age_suffix,
    absolute_url,
    last_path_segment,
    club_id_from_link,
    player_id_from_link,
    id_from_image_url,
    flag_head_url,
    parse_footer_summary,
)


def test_clean_text_collapses_whitespace():
    assert clean_text("  Premier\xa0League \n ") == "Premier League"
    assert clean_text(None) == ''


def test_strip_parenthetical():
    assert strip_parenthetical("Copa Libertadores (U20)") == "Copa Libertadores"
    assert strip_parenthetical("Premier League") == "Premier League"


@pytest.mark.parametrize("text, expected", [
    ("34", 34),
    ("1.234'", 1234),
    ("-", None),
    ("", None),
    ("abc", None),
])
def test_parse_int(text, expected):
    assert parse_int(text) == expected


def test_parse_minute_folds_stoppage_time():
    assert parse_minute("45+2'") == 47
    assert parse_minute("78'") == 78
    assert parse_minute("-") is None


@pytest.mark.parametrize("text, expected", [
    ("€5.00m", 5_000_000.0),
    ("€500k", 500_000.0),
    ("€350Th.", 350_000.0),
    ("€1.20bn", 1_200_000_000.0),
])
def test_parse_market_value(text, expected):
    assert parse_market_value(text) == pytest.approx(expected)


def test_parse_market_value_empty():
    assert parse_market_value("-") is None
    assert parse_market_value("€?m") is None


def test_parse_height():
    assert parse_height("1,87 m") == 187
    assert parse_height("-") is None


def test_parse_date_formats():
    assert parse_date("Aug 12, 2023") == date(2023, 8, 12)
    assert parse_date("Jun 24, 1987 (36)") == date(1987, 6, 24)
    assert parse_date("12.08.2023") == date(2023, 8, 12)
    assert parse_date("not a date") is None


def test_parse_age_suffix():
    assert parse_age_suffix("Jun 24, 1987 (36)") == 36
    assert parse_age_suffix("Jun 24, 1987") is None


def test_links_and_ids():
    assert absolute_url("https://www.transfermarkt.com", "/a/b") == "https://www.transfermarkt.com/a/b"
    assert absolute_url("https://www.transfermarkt.com", None) == ''
    assert last_path_segment("/premier-league/startseite/wettbewerb/GB1?saison=2023") == "GB1"
    assert club_id_from_link("/fc-arsenal/startseite/verein/11/saison_id/2023") == "11"
    assert player_id_from_link("/lionel-messi/profil/spieler/28003") == "28003"
    assert id_from_image_url("https://tmssl.akamaized.net/images/flagge/head/40.png?lm=1") == "40"


def test_flag_head_url():
    src = "https://tmssl.akamaized.net/images/flagge/verysmall/189.png?lm=1520611569"
    assert flag_head_url(src) == "https://tmssl.akamaized.net/images/flagge/head/189.png"


def test_parse_footer_summary():
    summary = parse_footer_summary("Squad: 34, Starting eleven: 28, On the bench: 3, Unknown: 9, Injured: -")
    assert summary == {'squad': 34, 'starting_eleven': 28, 'on_the_bench': 3}
    assert parse_footer_summary(None) == {}
