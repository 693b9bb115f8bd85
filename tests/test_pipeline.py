import asyncio
from types import SimpleNamespace

from scraper.discovery import CountryDiscoveryService
from scraper.pipeline import CatalogPipeline
from helpers import (
    BASE_URL,
    FakeNavigator,
    FakePage,
    FakeCountrySite,
    make_settings,
    club_row,
    player_row,
    items_table,
    aggregate_row,
    match_row,
    competition_box,
    stats_page,
    stats_url,
)

CLUB_LINK = BASE_URL + "/club-one/startseite/verein/100/saison_id/2023"
LEAGUE_LINK = BASE_URL + "/league-01/startseite/wettbewerb/01A"
SEASON_ROW = ["30", "10", "5", "-", "2", "8", "3", "-", "-", "2", "243'", "2.430'"]


def catalog_pages():
    season = stats_page(
        [aggregate_row("League 01", "01A", SEASON_ROW)],
        SEASON_ROW,
        boxes=[competition_box("01A", "League 01", [
            match_row("1", "Aug 12, 2023", ("100", "Club One"), ("200", "Club Two"),
                      numbers=["1", "", "", "", "", "", "", "", "90'"]),
        ], "Squad: 30")],
        seasons=("2024",),
    )
    return {
        BASE_URL + "/": "<html><body></body></html>",
        LEAGUE_LINK: items_table([club_row("100", "Club One", "club-one")]),
        CLUB_LINK + "/plus/1": items_table([player_row("500", "Some Striker", "Centre-Forward")]),
        stats_url("500", "ges"): stats_page([], SEASON_ROW, seasons=("2024",)),
        stats_url("500", "2024"): season,
    }


def make_pipeline(session_factory, site, pages):
    settings = make_settings()
    navigator = FakeNavigator(pages=pages, page=FakePage())
    pipeline = CatalogPipeline(SimpleNamespace(settings=settings, navigator=navigator), session_factory)
    pipeline.discovery = CountryDiscoveryService(navigator, pipeline.country_repository, settings,
                                                 selector_factory=site.selector_factory)
    return pipeline, navigator


def test_scrape_all_walks_the_catalog(session_factory):
    pipeline, _ = make_pipeline(session_factory, FakeCountrySite(1), catalog_pages())

    summary = asyncio.run(pipeline.scrape_all(1))

    assert summary.countries == 1
    assert summary.competitions == 2
    assert summary.clubs == 1
    assert summary.players == 1
    assert summary.player_stats == 1
    # The cup page is not served: logged and skipped
    assert summary.failures == 1

    player_stat = pipeline.stat_repository.get("500")
    season = player_stat.get_season("2024")
    assert season.is_scraped
    assert season.competitions[0].competition_transfermarkt_id == "01A"
    assert season.competitions[0].matches[0].minutes_played == 90


def test_scrape_all_resumes_from_storage(session_factory):
    pipeline, _ = make_pipeline(session_factory, FakeCountrySite(1), catalog_pages())
    asyncio.run(pipeline.scrape_all(1))

    pipeline, navigator = make_pipeline(session_factory, FakeCountrySite(1), catalog_pages())
    summary = asyncio.run(pipeline.scrape_all(1))

    assert summary.player_stats == 1
    # Only the cup, which never stored any clubs, is fetched again
    assert navigator.page_calls == [BASE_URL + "/cup-01/startseite/pokalwettbewerb/01C"]


def test_clean_database(session_factory):
    pipeline, _ = make_pipeline(session_factory, FakeCountrySite(1), catalog_pages())
    asyncio.run(pipeline.scrape_all(1))

    pipeline.clean_database()

    assert pipeline.country_repository.count() == 0
    assert pipeline.club_repository.get_by_id("100") is None
    assert pipeline.stat_repository.get("500") is None
