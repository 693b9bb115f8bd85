from scraper.enums import Cup, Tier, MatchResult, NotPlayingReason, Position, PositionCategory, Foot


def test_cup_from_label():
    assert Cup.from_label("Domestic Cup") is Cup.DOMESTIC
    assert Cup.from_label("Domestic Super Cup") is Cup.SUPERCUP
    assert Cup.from_label("International Cup") is Cup.INTERNATIONAL
    assert Cup.from_label("Friendly Tournament") is Cup.UNKNOWN
    assert Cup.from_label("") is Cup.NONE


def test_tier_from_label_requires_exact_label():
    assert Tier.from_label("First Tier") is Tier.FIRST_TIER
    assert Tier.from_label("youth league") is Tier.YOUTH_LEAGUE
    assert Tier.from_label("Domestic Cup") is Tier.NONE


def test_match_result_from_css_class():
    assert MatchResult.from_css_class("greentext") is MatchResult.WIN
    assert MatchResult.from_css_class("redtext") is MatchResult.LOSS
    assert MatchResult.from_css_class("") is MatchResult.DRAW
    assert MatchResult.from_css_class("purple") is MatchResult.UNKNOWN


def test_not_playing_reason_from_label():
    assert NotPlayingReason.from_label("On the bench") is NotPlayingReason.ON_THE_BENCH
    assert NotPlayingReason.from_label("Not in squad") is NotPlayingReason.NOT_IN_SQUAD
    assert NotPlayingReason.from_label("Knee injury") is NotPlayingReason.INJURED
    assert NotPlayingReason.from_label("Red card suspension") is NotPlayingReason.RED_CARD_SUSPENSION
    assert NotPlayingReason.from_label("Personal reasons") is NotPlayingReason.OTHER


def test_position_category():
    assert Position.from_label("Goalkeeper").category is PositionCategory.GOALKEEPER
    assert Position.from_label("Centre-Forward").category is PositionCategory.OUTFIELD
    assert Position.from_label("Libero") is Position.UNKNOWN


def test_foot_from_label():
    assert Foot.from_label("Left") is Foot.LEFT
    assert Foot.from_label(None) is Foot.UNKNOWN
