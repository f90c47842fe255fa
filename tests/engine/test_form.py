from __future__ import annotations

import datetime as dt
import math

import pytest

from matchsignal.engine.configuration import FormConfig
from matchsignal.engine.form import (
    ALL_MARKETS,
    TeamFormAnalyzer,
    is_goals_market,
    market_success,
)
from matchsignal.engine.models import Score, TeamRef

AS_OF = dt.date(2024, 3, 1)


def _days_before(days: int) -> dt.date:
    return AS_OF - dt.timedelta(days=days)


def test_time_weight_decays_to_floor() -> None:
    analyzer = TeamFormAnalyzer()
    assert analyzer.time_weight(AS_OF, AS_OF) == pytest.approx(1.0)
    assert analyzer.time_weight(_days_before(100), AS_OF) == pytest.approx(math.exp(-1.27))
    assert analyzer.time_weight(_days_before(1000), AS_OF) == pytest.approx(0.1)
    # Future matches never weigh more than today's.
    assert analyzer.time_weight(AS_OF + dt.timedelta(days=3), AS_OF) == pytest.approx(1.0)


def test_goals_market_detection() -> None:
    assert is_goals_market("+2.5")
    assert is_goals_market("-3.5")
    assert is_goals_market("Gol")
    assert is_goals_market("NO GOL")
    assert not is_goals_market("1X")


@pytest.mark.parametrize(
    ("market", "query_home", "team_at_home", "score", "expected"),
    [
        ("1", True, True, Score(2, 0), True),
        ("1", True, False, Score(0, 2), False),
        # The away side of a "1" tip succeeds when it lost away.
        ("1", False, False, Score(2, 0), True),
        ("1", False, True, Score(2, 0), False),
        ("2", False, False, Score(0, 1), True),
        ("1X", True, True, Score(1, 1), True),
        ("X2", False, False, Score(2, 2), True),
        ("X", True, False, Score(1, 1), True),
        ("12", True, True, Score(1, 1), False),
        ("12", False, False, Score(0, 3), True),
        ("+2.5", True, False, Score(2, 1), True),
        ("+2.5", True, True, Score(1, 1), False),
        ("-2.5", False, True, Score(1, 1), True),
        ("GOL", True, True, Score(1, 1), True),
        ("NO GOL", True, True, Score(1, 0), True),
        ("unknown", True, True, Score(1, 0), False),
    ],
)
def test_market_success_truth_table(
    market: str, query_home: bool, team_at_home: bool, score: Score, expected: bool
) -> None:
    assert market_success(market, query_home, team_at_home, score) is expected


def test_appearances_use_ids_when_rows_carry_them(match_factory) -> None:
    history = [
        match_factory(_days_before(10), "Inter", "Milan", 1, 0, home_id="1", away_id="2"),
        match_factory(_days_before(5), "INTER ", "Roma", 2, 2),
    ]
    analyzer = TeamFormAnalyzer()

    by_name = analyzer.appearances("Inter", history, as_of=AS_OF)
    assert [match.away.name for match, _ in by_name] == ["Roma"]

    by_id = analyzer.appearances(TeamRef("Internazionale", "1"), history, as_of=AS_OF)
    assert [match.away.name for match, _ in by_id] == ["Milan"]


def test_appearances_fall_back_to_name_per_side(match_factory) -> None:
    # Only the home side of each row carries an id.
    history = [
        match_factory(_days_before(10), "Inter", "Milan", 1, 0, home_id="1"),
        match_factory(_days_before(5), "Roma", "Milan", 2, 2, home_id="3"),
        match_factory(_days_before(3), "Lazio", "Inter", 0, 1, home_id="4"),
    ]
    analyzer = TeamFormAnalyzer()

    milan = analyzer.appearances("Milan", history, as_of=AS_OF)
    assert [(match.home.name, at_home) for match, at_home in milan] == [
        ("Roma", False),
        ("Inter", False),
    ]
    # An id-keyed side is never matched by name.
    inter = analyzer.appearances("Inter", history, as_of=AS_OF)
    assert [(match.home.name, at_home) for match, at_home in inter] == [("Lazio", False)]
    inter_by_id = analyzer.appearances(TeamRef("Inter", "1"), history, as_of=AS_OF)
    assert [(match.home.name, at_home) for match, at_home in inter_by_id] == [
        ("Lazio", False),
        ("Inter", True),
    ]


def test_appearances_exclude_as_of_and_unplayed(match_factory) -> None:
    history = [
        match_factory(_days_before(3), "Inter", "Milan", 1, 0),
        match_factory(_days_before(2), "Roma", "Inter", None, None),
        match_factory(AS_OF, "Inter", "Lazio", 5, 0),
        match_factory(_days_before(1), "Lazio", "Inter", 0, 2),
    ]
    found = TeamFormAnalyzer().appearances("Inter", history, as_of=AS_OF)
    assert [(match.date, at_home) for match, at_home in found] == [
        (_days_before(1), False),
        (_days_before(3), True),
    ]


def test_compute_stats_defaults_without_history() -> None:
    report = TeamFormAnalyzer().compute_stats("Nobody", True, ALL_MARKETS, [], as_of=AS_OF)
    assert report.season.avg_scored == pytest.approx(1.3)
    assert report.season.avg_conceded == pytest.approx(1.2)
    assert report.season.matches == 0
    assert report.current_form.avg_scored == pytest.approx(1.3)
    assert report.current_form.outcomes == ()
    assert report.score is None


def test_compute_stats_weighted_averages(match_factory) -> None:
    day = _days_before(7)
    history = [
        match_factory(day, "Inter", "Milan", 2, 0),
        match_factory(day, "Roma", "Inter", 1, 1),
        match_factory(day, "Inter", "Lazio", 0, 3),
    ]
    report = TeamFormAnalyzer().compute_stats("Inter", True, ALL_MARKETS, history, as_of=AS_OF)
    assert report.season.avg_scored == pytest.approx(1.0)
    assert report.season.avg_conceded == pytest.approx(4 / 3)
    assert (report.season.wins, report.season.draws, report.season.losses) == (1, 1, 1)
    assert report.current_form.matches == 3
    assert sorted(report.current_form.outcomes) == ["D", "L", "W"]


def test_recent_matches_weigh_more(match_factory) -> None:
    history = [
        match_factory(_days_before(300), "Inter", "Milan", 0, 0),
        match_factory(_days_before(2), "Inter", "Roma", 4, 0),
    ]
    report = TeamFormAnalyzer().compute_stats("Inter", True, ALL_MARKETS, history, as_of=AS_OF)
    assert report.season.avg_scored > 3.0


def test_goals_market_score_applies_penalties(match_factory) -> None:
    scores = [(2, 1), (3, 0), (0, 0), (1, 1), (2, 2)]
    history = [
        match_factory(_days_before(10 * (index + 1)), "Inter", f"Team {index}", home, away)
        for index, (home, away) in enumerate(scores)
    ]
    score = TeamFormAnalyzer().score_market("Inter", True, "+1.5", history, as_of=AS_OF)
    assert score.sample_size == 5
    assert score.success_rate == pytest.approx(80.0)
    assert score.penalty == pytest.approx(5.0)
    assert score.score_value == 75
    assert not score.insufficient_data


def test_result_market_uses_venue_sample(match_factory) -> None:
    history = [
        match_factory(_days_before(5), "Inter", "Milan", 2, 0),
        match_factory(_days_before(10), "Inter", "Roma", 1, 0),
        match_factory(_days_before(15), "Inter", "Lazio", 3, 1),
        # Away defeats are not part of the home sample.
        match_factory(_days_before(20), "Napoli", "Inter", 4, 0),
        match_factory(_days_before(25), "Juventus", "Inter", 2, 0),
    ]
    score = TeamFormAnalyzer().score_market("Inter", True, "1", history, as_of=AS_OF)
    assert score.sample_size == 3
    assert score.score_value == 100


def test_insufficient_sample_returns_sentinel(match_factory) -> None:
    history = [match_factory(_days_before(5), "Inter", "Milan", 2, 0)]
    score = TeamFormAnalyzer().score_market("Inter", True, "+2.5", history, as_of=AS_OF)
    assert score.insufficient_data
    assert score.score_value == 0
    assert score.color == "gray"


def test_market_window_excludes_old_matches(match_factory) -> None:
    history = [
        match_factory(_days_before(400 + index), "Inter", "Milan", 3, 3) for index in range(6)
    ]
    analyzer = TeamFormAnalyzer(FormConfig(season_window_months=6))
    assert analyzer.score_market("Inter", True, "+2.5", history, as_of=AS_OF).insufficient_data
    report = analyzer.compute_stats("Inter", True, ALL_MARKETS, history, as_of=AS_OF)
    assert report.season.matches == 6


def test_draw_rate_over_recent_matches(match_factory) -> None:
    history = [
        match_factory(_days_before(1), "Inter", "Milan", 1, 1),
        match_factory(_days_before(2), "Roma", "Inter", 0, 2),
        match_factory(_days_before(3), "Inter", "Lazio", 2, 0),
        match_factory(_days_before(4), "Napoli", "Inter", 3, 1),
    ]
    rate = TeamFormAnalyzer().draw_rate("Inter", history, as_of=AS_OF)
    assert (rate.rate, rate.total, rate.draws) == (25, 4, 1)
    empty = TeamFormAnalyzer().draw_rate("Nobody", history, as_of=AS_OF)
    assert (empty.rate, empty.total) == (0, 0)


def test_draw_rate_limit(match_factory) -> None:
    history = [
        match_factory(_days_before(index + 1), "Inter", "Milan", 0, 0 if index < 2 else 1)
        for index in range(10)
    ]
    analyzer = TeamFormAnalyzer(FormConfig(draw_rate_limit=4))
    rate = analyzer.draw_rate("Inter", history, as_of=AS_OF)
    assert (rate.rate, rate.total, rate.draws) == (50, 4, 2)


def test_match_score_first_half_adjustments() -> None:
    analyzer = TeamFormAnalyzer()
    home, away = TeamRef("Inter"), TeamRef("Milan")
    # Without history both teams have the insufficient sentinel (0).
    assert analyzer.match_score(home, away, "+1.5", [], as_of=AS_OF, ht_probability=80) == 15
    assert analyzer.match_score(home, away, "+1.5", [], as_of=AS_OF, ht_probability=66) == 10
    assert analyzer.match_score(home, away, "+1.5", [], as_of=AS_OF, ht_probability=50) == 0
    assert analyzer.match_score(home, away, "-3.5", [], as_of=AS_OF, ht_probability=80) == 0
    assert analyzer.match_score(home, away, "1X", [], as_of=AS_OF, ht_probability=80) == 0


def test_match_score_averages_both_sides(match_factory) -> None:
    history = [
        match_factory(_days_before(5 + index), "Inter", f"Team {index}", 2, 1)
        for index in range(5)
    ] + [
        match_factory(_days_before(5 + index), f"Club {index}", "Milan", 0, 0)
        for index in range(5)
    ]
    analyzer = TeamFormAnalyzer()
    value = analyzer.match_score(TeamRef("Inter"), TeamRef("Milan"), "+2.5", history, as_of=AS_OF)
    # Inter: 100 on over 2.5; Milan: 0 minus penalties, floored at 0.
    assert value == 50
