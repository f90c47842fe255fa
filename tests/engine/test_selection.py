from __future__ import annotations

import pytest

from matchsignal.engine.configuration import SelectionConfig
from matchsignal.engine.models import MarketType, MatchOdds
from matchsignal.engine.selection import SIGNALS, SignalSelector, value_edge


def test_thresholds_per_label() -> None:
    selector = SignalSelector()
    assert selector.min_probability("12") == 90
    assert selector.min_probability("1x") == 85
    assert selector.min_probability("+2.5") == 82
    assert selector.min_probability("Gol") == 75
    assert selector.min_probability("-3.5") == 75


def test_odds_band_rejects_expensive_prices() -> None:
    selector = SignalSelector()
    assert not selector.qualifies("+1.5", 78, 1.45)
    assert not selector.qualifies("+1.5", 99, 1.41)
    assert not selector.qualifies("+1.5", 99, 1.0)
    assert selector.qualifies("+1.5", 78, 1.28)


def test_premium_odds_need_higher_probability() -> None:
    selector = SignalSelector()
    assert not selector.qualifies("+1.5", 78, 1.32)
    assert selector.qualifies("+1.5", 81, 1.32)


def test_over_line_in_strict_leagues() -> None:
    selector = SignalSelector()
    assert not selector.qualifies("+1.5", 90, 1.15, "EU-ITA Serie B")
    assert not selector.qualifies("+1.5", 90, 1.20, "Serie C - Girone A")
    assert selector.qualifies("+1.5", 90, 1.25, "EU-ITA Serie B")
    assert selector.qualifies("+1.5", 90, 1.15, "EU-ITA Serie A")
    assert selector.qualifies("1X", 90, 1.11, "EU-ITA Serie B")


def test_candidates_use_real_or_estimated_odds(make_result) -> None:
    result = make_result(home_or_draw=88.0)
    candidates = SignalSelector().candidates(result, MatchOdds(home=1.9))
    by_label = {item.label: item for item in candidates}
    assert [item.label for item in candidates] == [label for label, _ in SIGNALS]
    assert by_label["1"].odds == 1.9
    assert by_label["1"].real_odds
    assert by_label["1X"].odds == pytest.approx(1.14)
    assert not by_label["1X"].real_odds
    assert by_label["1X"].qualified
    assert by_label["1X"].market_type is MarketType.DOUBLE_CHANCE


def test_select_prefers_highest_probability(make_result) -> None:
    result = make_result(home_or_draw=86.0, over_15=91.0, under_15=9.0)
    best = SignalSelector().select(result)
    assert best.label == "+1.5"
    assert best.qualified


def test_ties_are_broken_by_market_priority(make_result) -> None:
    result = make_result(home_or_draw=88.0, over_15=88.0, under_15=12.0)
    best = SignalSelector().select(result)
    assert best.label == "1X"
    assert best.market_type is MarketType.DOUBLE_CHANCE


def test_real_odds_can_disqualify(make_result) -> None:
    result = make_result(home_or_draw=88.0)
    best = SignalSelector().select(result, MatchOdds(home_or_draw=1.50))
    assert best.label == "1X"
    assert not best.qualified


def test_fallback_when_nothing_qualifies(make_result) -> None:
    best = SignalSelector().select(make_result())
    # 1X, 12 and -3.5 share the top probability; double chance wins,
    # and 1X comes first in signal order.
    assert best.label == "1X"
    assert best.probability == 75.0
    assert not best.qualified


def test_rank_puts_qualified_first(make_result) -> None:
    result = make_result(home_or_draw=86.0, home_or_away=95.0, win_home=70.0)
    selector = SignalSelector(SelectionConfig(min_probability={"12": 99.0}))
    ranked = selector.rank(selector.candidates(result))
    qualified = [item.label for item in ranked if item.qualified]
    assert ranked[0].label == qualified[0] == "1X"
    assert ranked[len(qualified)].label == "12"


def test_value_edge() -> None:
    edge = value_edge(60.0, 2.0)
    assert edge.edge == pytest.approx(10.0)
    assert edge.implied_probability == pytest.approx(50.0)
    assert edge.roi == pytest.approx(20.0)
    assert edge.profitable
    assert not value_edge(51.0, 2.0).profitable
    assert not value_edge(90.0, None).profitable
    assert not value_edge(90.0, 1.0).profitable
