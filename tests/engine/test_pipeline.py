from __future__ import annotations

import dataclasses
import datetime as dt
import json

import pytest

from matchsignal.engine.configuration import EngineConfig
from matchsignal.engine.models import (
    CurrentForm,
    Fixture,
    LeagueProfile,
    SeasonStats,
    TeamFormReport,
    TeamMotivation,
    TeamRef,
)
from matchsignal.engine.pipeline import MatchPredictor, compose_lambdas, predict_day
from matchsignal.engine.profile import build_engine_profile
from matchsignal.engine.selection import SIGNALS


def _report(scored: float, conceded: float, season_scored: float, season_conceded: float):
    return TeamFormReport(
        team=TeamRef("Team"),
        season=SeasonStats(avg_scored=season_scored, avg_conceded=season_conceded),
        current_form=CurrentForm(avg_scored=scored, avg_conceded=conceded),
    )


def test_compose_lambdas_blends_form_and_season() -> None:
    home = _report(2.0, 1.0, 1.0, 1.0)
    away = _report(1.0, 1.0, 1.0, 1.0)
    lambda_home, lambda_away = compose_lambdas(home, away, LeagueProfile("League"))
    # Attack 0.6 * 2 + 0.4 * 1 = 1.6 against an average defence of 1.0.
    assert lambda_home == pytest.approx(1.3)
    assert lambda_away == pytest.approx(1.0)


def test_compose_lambdas_applies_factors() -> None:
    home = _report(2.0, 1.0, 1.0, 1.0)
    away = _report(1.0, 1.0, 1.0, 1.0)
    league = LeagueProfile(
        "League",
        goal_factor=1.2,
        home=TeamMotivation(multiplier=1.15),
    )
    lambda_home, lambda_away = compose_lambdas(home, away, league, (1.1, 0.9), form_weight=0.5)
    # Attack 0.5 * 2 + 0.5 * 1 = 1.5; (1.5 + 1.0) / 2 = 1.25.
    assert lambda_home == pytest.approx(1.25 * 1.2 * 1.15 * 1.1)
    assert lambda_away == pytest.approx(1.0 * 1.2 * 0.9)


def test_build_engine_profile(sample_history, sample_standings) -> None:
    profile = build_engine_profile(sample_history, sample_standings)
    assert len(profile.history) == len(sample_history)
    assert len(profile.ratings) == 6
    # Too few matches to fit rho; the configured default is used.
    assert profile.rho == pytest.approx(EngineConfig().simulation.default_rho)
    assert profile.standings_for("EU-ITA Serie A")[0].team.name == "Inter"
    assert profile.standings_for("Serie A") == profile.standings_for("EU-ITA Serie A")
    assert profile.standings_for("Unknown League") == ()


def test_build_engine_profile_accepts_raw_rows() -> None:
    rows = [
        {"date": "2024-01-02", "match": "A - B", "score": "2-0", "league": "Liga"},
        {"date": "2024-01-01", "match": "B - A", "score": "1-1", "league": "Liga"},
        {"match": "C - D"},
    ]
    profile = build_engine_profile(rows)
    assert [match.home.name for match in profile.history] == ["B", "A"]
    assert profile.ratings.rating(TeamRef("A")) > profile.ratings.rating(TeamRef("B"))


def test_predict_fixture(sample_history, sample_standings, sample_fixtures) -> None:
    profile = build_engine_profile(sample_history, sample_standings)
    predictor = MatchPredictor(profile)
    prediction = predictor.predict(sample_fixtures[0], iterations=2000)

    assert prediction.lambda_home > 0
    assert prediction.lambda_away > 0
    assert prediction.simulation.iterations == 2000
    assert prediction.simulation.seed == "Inter - Lazio 2024-01-15"
    assert MatchPredictor.default_seed(sample_fixtures[0]) == prediction.simulation.seed
    assert prediction.best_pick.label in {label for label, _ in SIGNALS}
    assert len(prediction.strategies) <= 3
    assert 0 <= prediction.match_score <= 100
    assert prediction.elo_difference == pytest.approx(
        prediction.home_rating - prediction.away_rating
    )
    assert not prediction.is_cup

    again = predictor.predict(sample_fixtures[0], iterations=2000)
    assert again.simulation == prediction.simulation
    assert again.best_pick == prediction.best_pick


def test_prediction_serialisation(sample_history, sample_standings, sample_fixtures) -> None:
    profile = build_engine_profile(sample_history, sample_standings)
    prediction = MatchPredictor(profile).predict(sample_fixtures[0], iterations=1000)
    payload = prediction.to_dict()
    decoded = json.loads(json.dumps(payload))
    assert decoded["fixture_id"] == "f1"
    assert decoded["date"] == "2024-01-15"
    assert decoded["match"] == "Inter - Lazio"
    assert set(decoded["elo"]) == {"home", "away", "difference"}


def test_bucket_entry_uses_feed_tip(sample_history, sample_fixtures) -> None:
    profile = build_engine_profile(sample_history)
    predictor = MatchPredictor(profile)

    tipped = predictor.predict(sample_fixtures[1], iterations=1000)
    entry = tipped.to_bucket_entry()
    assert entry.tip == "1X"
    assert entry.ai_tip == tipped.best_pick.label
    assert entry.probability == tipped.simulation.home_or_draw
    assert entry.odds is None

    untipped = predictor.predict(sample_fixtures[2], iterations=1000)
    entry = untipped.to_bucket_entry()
    assert entry.tip == untipped.best_pick.label
    assert entry.odds == untipped.best_pick.odds
    assert entry.fixture_id == "f3"


def test_first_half_probability_feeds_strategies(sample_history, sample_fixtures) -> None:
    profile = build_engine_profile(sample_history)
    fixture = sample_fixtures[2]
    predictor = MatchPredictor(profile)
    with_feed = predictor.predict(fixture, iterations=1000)
    without_feed = predictor.predict(
        dataclasses.replace(fixture, ht_probability=None), iterations=1000
    )
    # The feed value only reaches scoring and strategies, never the simulation.
    assert with_feed.simulation == without_feed.simulation
    assert with_feed.best_pick == without_feed.best_pick


def test_predict_day_serial_and_parallel_agree(
    sample_history, sample_standings, sample_fixtures
) -> None:
    profile = build_engine_profile(sample_history, sample_standings)
    serial = predict_day(sample_fixtures, profile, workers=1, iterations=500)
    parallel = predict_day(sample_fixtures, profile, workers=2, iterations=500)
    assert [item.fixture.fixture_id for item in serial] == ["f1", "f2", "f3"]
    assert [item.fixture.fixture_id for item in parallel] == ["f1", "f2", "f3"]
    for left, right in zip(serial, parallel):
        assert left.simulation == right.simulation
        assert left.best_pick == right.best_pick
        assert left.strategies == right.strategies


def test_predict_day_without_fixtures(sample_history) -> None:
    profile = build_engine_profile(sample_history)
    assert predict_day([], profile) == []


def test_ratings_ignore_results_after_the_fixture(match_factory) -> None:
    history = [
        match_factory(dt.date(2024, 3, 1), "Alpha", "Beta", 5, 0, league="Liga"),
        match_factory(dt.date(2024, 3, 8), "Alpha", "Beta", 4, 0, league="Liga"),
    ]
    predictor = MatchPredictor(build_engine_profile(history))

    def fixture(day: dt.date) -> Fixture:
        return Fixture(date=day, home=TeamRef("Alpha"), away=TeamRef("Beta"), league="Liga")

    early = predictor.predict(fixture(dt.date(2024, 1, 1)), iterations=200)
    assert early.home_form.season.matches == 0
    assert early.home_rating == pytest.approx(1500.0)
    assert early.away_rating == pytest.approx(1500.0)

    # Only the first result is known on the day of the second meeting.
    between = predictor.predict(fixture(dt.date(2024, 3, 8)), iterations=200)
    assert between.home_rating == pytest.approx(1516.0)
    assert between.away_rating == pytest.approx(1484.0)
