import datetime as dt
import itertools
from typing import Any, Callable, Dict, List

import pytest

from matchsignal.engine.models import (
    ExactScore,
    Fixture,
    HistoricalMatch,
    MatchOdds,
    Score,
    SimulationResult,
    Stability,
    StandingRow,
    StandingSplit,
    TeamRef,
)

TEAMS = ("Inter", "Milan", "Juventus", "Napoli", "Roma", "Lazio")
LEAGUE = "EU-ITA Serie A"


def make_match(
    day: dt.date,
    home: str,
    away: str,
    home_goals: int | None,
    away_goals: int | None,
    *,
    league: str = LEAGUE,
    **fields: Any,
) -> HistoricalMatch:
    score = None
    if home_goals is not None and away_goals is not None:
        score = Score(home_goals, away_goals)
    return HistoricalMatch(
        date=day,
        home=TeamRef(home, fields.pop("home_id", None)),
        away=TeamRef(away, fields.pop("away_id", None)),
        league=league,
        score=score,
        **fields,
    )


_BASE_RESULT: Dict[str, Any] = {
    "win_home": 50.0,
    "draw": 25.0,
    "win_away": 25.0,
    "home_or_draw": 75.0,
    "draw_or_away": 50.0,
    "home_or_away": 75.0,
    "over_15": 70.0,
    "under_15": 30.0,
    "over_25": 45.0,
    "under_25": 55.0,
    "over_35": 25.0,
    "under_35": 75.0,
    "ht_goal": 60.0,
    "btts": 50.0,
    "no_goal": 50.0,
    "clean_sheet_home": 30.0,
    "clean_sheet_away": 30.0,
    "exact_scores": (ExactScore(1, 1, 12.0), ExactScore(1, 0, 11.0)),
    "stability": Stability.MEDIUM,
    "volatility_index": 4,
    "iterations": 1000,
    "seed": "fixture",
    "lambda_home": 1.5,
    "lambda_away": 1.2,
}


@pytest.fixture()
def make_result() -> Callable[..., SimulationResult]:
    def _build(**overrides: Any) -> SimulationResult:
        return SimulationResult(**{**_BASE_RESULT, **overrides})

    return _build


@pytest.fixture()
def as_of() -> dt.date:
    return dt.date(2024, 1, 15)


@pytest.fixture()
def sample_history() -> List[HistoricalMatch]:
    """Two double round robins of a six-team league, one match per day."""

    start = dt.date(2023, 9, 1)
    matches: List[HistoricalMatch] = []
    pairs = list(itertools.permutations(range(len(TEAMS)), 2))
    for cycle in range(2):
        for offset, (i, j) in enumerate(pairs):
            index = cycle * len(pairs) + offset
            matches.append(
                make_match(
                    start + dt.timedelta(days=index),
                    TEAMS[i],
                    TEAMS[j],
                    (i * 7 + j * 3 + cycle) % 4,
                    (i * 3 + j * 5 + cycle) % 3,
                    fixture_id=f"h{index}",
                )
            )
    return matches


@pytest.fixture()
def sample_standings() -> Dict[str, List[StandingRow]]:
    rows = []
    for rank, (team, points) in enumerate(zip(TEAMS, (40, 38, 30, 22, 15, 14)), start=1):
        rows.append(
            StandingRow(
                team=TeamRef(team),
                rank=rank,
                points=points,
                overall=StandingSplit(played=20, goals_for=30 - rank * 2),
                home=StandingSplit(played=10, goals_for=18 - rank),
                away=StandingSplit(played=10, goals_for=12 - rank),
            )
        )
    return {LEAGUE: rows}


@pytest.fixture()
def sample_fixtures(as_of: dt.date) -> List[Fixture]:
    return [
        Fixture(
            date=as_of,
            home=TeamRef("Inter"),
            away=TeamRef("Lazio"),
            league=LEAGUE,
            fixture_id="f1",
            odds=MatchOdds(home=1.55, draw=4.10, away=6.00, home_or_draw=1.12),
        ),
        Fixture(
            date=as_of,
            home=TeamRef("Napoli"),
            away=TeamRef("Milan"),
            league=LEAGUE,
            fixture_id="f2",
            tip="1X",
        ),
        Fixture(
            date=as_of,
            home=TeamRef("Roma"),
            away=TeamRef("Juventus"),
            league=LEAGUE,
            fixture_id="f3",
            ht_probability=78.0,
        ),
    ]


@pytest.fixture()
def match_factory() -> Callable[..., HistoricalMatch]:
    return make_match
