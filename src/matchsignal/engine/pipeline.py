"""Per-fixture prediction pipeline and the parallel batch runner."""

from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Sequence
from concurrent.futures import Future, ProcessPoolExecutor
from typing import Any, Dict, List, Tuple

from .configuration import EngineConfig
from .form import ALL_MARKETS, TeamFormAnalyzer
from .league import LeagueProfileResolver
from .models import (
    BucketEntry,
    DrawRate,
    Fixture,
    LeagueProfile,
    SignalCandidate,
    SimulationResult,
    StrategyCandidate,
    TeamFormReport,
)
from .profile import EngineProfile
from .ratings import TeamRatingStore
from .selection import SignalSelector
from .simulation import MatchSimulator, refine_draw
from .strategies import StrategyContext, TradingStrategyGenerator

__all__ = ["MatchPrediction", "MatchPredictor", "compose_lambdas", "predict_day"]

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class MatchPrediction:
    fixture: Fixture
    lambda_home: float
    lambda_away: float
    league: LeagueProfile
    home_rating: float
    away_rating: float
    simulation: SimulationResult
    best_pick: SignalCandidate
    strategies: Tuple[StrategyCandidate, ...]
    home_form: TeamFormReport
    away_form: TeamFormReport
    home_draw_rate: DrawRate
    away_draw_rate: DrawRate
    match_score: int
    is_cup: bool = False
    category_gap: bool = False

    @property
    def elo_difference(self) -> float:
        return self.home_rating - self.away_rating

    @property
    def best_strategy(self) -> StrategyCandidate | None:
        return self.strategies[0] if self.strategies else None

    def to_bucket_entry(self) -> BucketEntry:
        fixture = self.fixture
        tip = fixture.tip or self.best_pick.label
        if fixture.tip:
            odds = fixture.odds.for_label(fixture.tip)
            probability = self.simulation.probability_for(fixture.tip)
        else:
            odds = self.best_pick.odds
            probability = self.best_pick.probability
        return BucketEntry(
            fixture_id=fixture.fixture_id,
            date=fixture.date,
            label=fixture.label,
            league=fixture.league,
            league_id=fixture.league_id,
            tip=tip,
            ai_tip=self.best_pick.label,
            odds=odds,
            probability=probability,
        )

    def to_dict(self) -> Dict[str, Any]:
        fixture = self.fixture
        return {
            "fixture_id": fixture.fixture_id,
            "date": fixture.date.isoformat(),
            "match": fixture.label,
            "league": fixture.league,
            "lambda_home": round(self.lambda_home, 3),
            "lambda_away": round(self.lambda_away, 3),
            "goal_factor": round(self.league.goal_factor, 3),
            "entropy": self.league.entropy,
            "badges": [badge.value for badge in self.league.badges()],
            "elo": {
                "home": round(self.home_rating, 1),
                "away": round(self.away_rating, 1),
                "difference": round(self.elo_difference, 1),
            },
            "simulation": self.simulation.to_dict(),
            "best_pick": self.best_pick.to_dict(),
            "strategies": [strategy.to_dict() for strategy in self.strategies],
            "match_score": self.match_score,
            "is_cup": self.is_cup,
            "category_gap": self.category_gap,
        }


def compose_lambdas(
    home: TeamFormReport,
    away: TeamFormReport,
    league: LeagueProfile,
    elo_factors: Tuple[float, float] = (1.0, 1.0),
    form_weight: float = 0.6,
) -> Tuple[float, float]:
    """Expected goals for each side.

    Attack blends the side's recent and season scoring, defence the
    opponent's recent and season conceding; the mean of the two is scaled by
    the league goal factor, the side's motivation and its ELO factor.
    """

    season_weight = 1.0 - form_weight

    def blend(form: float, season: float) -> float:
        return form * form_weight + season * season_weight

    attack_home = blend(home.current_form.avg_scored, home.season.avg_scored)
    defence_away = blend(away.current_form.avg_conceded, away.season.avg_conceded)
    attack_away = blend(away.current_form.avg_scored, away.season.avg_scored)
    defence_home = blend(home.current_form.avg_conceded, home.season.avg_conceded)

    lambda_home = (attack_home + defence_away) / 2.0
    lambda_away = (attack_away + defence_home) / 2.0
    lambda_home *= league.goal_factor * league.home.multiplier * elo_factors[0]
    lambda_away *= league.goal_factor * league.away.multiplier * elo_factors[1]
    return lambda_home, lambda_away


class MatchPredictor:
    """Run the full analysis of one fixture against an :class:`EngineProfile`."""

    def __init__(self, profile: EngineProfile, config: EngineConfig | None = None) -> None:
        self.profile = profile
        self.config = config or EngineConfig()
        self.form = TeamFormAnalyzer(self.config.form)
        self.ratings = TeamRatingStore(self.config.ratings)
        self.leagues = LeagueProfileResolver(self.config.league, profile.goal_factors)
        self.simulator = MatchSimulator(self.config.simulation)
        self.selector = SignalSelector(self.config.selection)
        self.strategies = TradingStrategyGenerator(self.config.trading)

    @staticmethod
    def default_seed(fixture: Fixture) -> str:
        return f"{fixture.label} {fixture.date.isoformat()}"

    def predict(
        self,
        fixture: Fixture,
        *,
        iterations: int | None = None,
        seed: str | None = None,
    ) -> MatchPrediction:
        profile = self.profile
        history = profile.history
        as_of = fixture.date

        home_form = self.form.compute_stats(fixture.home, True, ALL_MARKETS, history, as_of=as_of)
        away_form = self.form.compute_stats(fixture.away, False, ALL_MARKETS, history, as_of=as_of)
        standings = profile.standings_for(fixture.league, fixture.league_id)
        league = self.leagues.resolve(fixture.league, fixture.home, fixture.away, standings)

        home_rating = profile.ratings.rating(fixture.home, as_of=as_of)
        away_rating = profile.ratings.rating(fixture.away, as_of=as_of)
        elo_difference = home_rating - away_rating
        lambda_home, lambda_away = compose_lambdas(
            home_form,
            away_form,
            league,
            self.ratings.lambda_factors(elo_difference),
            self.config.form.form_weight,
        )

        raw = self.simulator.simulate(
            lambda_home,
            lambda_away,
            iterations=iterations,
            seed=seed or self.default_seed(fixture),
            entropy=league.entropy,
            rho=profile.rho,
        )
        simulation = refine_draw(
            raw,
            home_form.season.draw_rate,
            away_form.season.draw_rate,
            fixture.tip,
            self.config.refinement,
        )
        best_pick = self.selector.select(simulation, fixture.odds, fixture.league)

        ht_probability = max(fixture.ht_probability or 0.0, simulation.ht_goal)
        match_score = self.form.match_score(
            fixture.home,
            fixture.away,
            best_pick.label,
            history,
            as_of=as_of,
            ht_probability=ht_probability,
        )
        home_draws = self.form.draw_rate(fixture.home, history, as_of=as_of)
        away_draws = self.form.draw_rate(fixture.away, history, as_of=as_of)
        context = StrategyContext(
            simulation=simulation,
            score=match_score,
            probability=best_pick.probability,
            ht_probability=ht_probability,
            elo_difference=elo_difference,
            badges=league.badges(),
            home_draw_rate=home_draws.rate if home_draws.total else None,
            away_draw_rate=away_draws.rate if away_draws.total else None,
            draw_odds=fixture.odds.draw,
        )
        strategies = tuple(self.strategies.generate(context))

        is_cup = self.leagues.is_cup(fixture.league)
        category_gap = is_cup and abs(elo_difference) > self.config.league.category_gap_elo
        logger.debug(
            "%s: lambdas %.2f/%.2f, pick %s (%.0f%%), %d strategies",
            fixture.label,
            lambda_home,
            lambda_away,
            best_pick.label,
            best_pick.probability,
            len(strategies),
        )
        return MatchPrediction(
            fixture=fixture,
            lambda_home=lambda_home,
            lambda_away=lambda_away,
            league=league,
            home_rating=home_rating,
            away_rating=away_rating,
            simulation=simulation,
            best_pick=best_pick,
            strategies=strategies,
            home_form=home_form,
            away_form=away_form,
            home_draw_rate=home_draws,
            away_draw_rate=away_draws,
            match_score=match_score,
            is_cup=is_cup,
            category_gap=category_gap,
        )


# ---------------------------------------------------------------------------
# Batch execution
# ---------------------------------------------------------------------------

# Each worker process builds its predictor once from the shared profile.
_worker_predictor: MatchPredictor | None = None
_worker_iterations: int | None = None


def _init_worker(profile: EngineProfile, config: EngineConfig, iterations: int | None) -> None:
    global _worker_predictor, _worker_iterations
    _worker_predictor = MatchPredictor(profile, config)
    _worker_iterations = iterations


def _predict_in_worker(fixture: Fixture) -> MatchPrediction:
    if _worker_predictor is None:
        raise RuntimeError("Worker process was not initialised with an engine profile")
    return _worker_predictor.predict(fixture, iterations=_worker_iterations)


def _resolve_workers(requested: int, jobs: int) -> int:
    if requested <= 0:
        requested = os.cpu_count() or 1
    return max(1, min(requested, jobs))


def predict_day(
    fixtures: Sequence[Fixture],
    profile: EngineProfile,
    config: EngineConfig | None = None,
    *,
    workers: int | None = None,
    iterations: int | None = None,
) -> List[MatchPrediction]:
    """Predict every fixture, in input order.

    Matches are independent, so they are spread over a process pool bounded
    by ``workers`` (``runtime.workers`` by default, ``0`` meaning one per
    core). A single worker runs in-process. If any fixture fails, fixtures
    not yet started are cancelled and the error propagates.
    """

    config = config or EngineConfig()
    if not fixtures:
        return []
    requested = config.runtime.workers if workers is None else workers
    pool_size = _resolve_workers(requested, len(fixtures))

    if pool_size == 1:
        predictor = MatchPredictor(profile, config)
        return [predictor.predict(fixture, iterations=iterations) for fixture in fixtures]

    logger.info("Predicting %d fixtures with %d workers", len(fixtures), pool_size)
    executor = ProcessPoolExecutor(
        max_workers=pool_size,
        initializer=_init_worker,
        initargs=(profile, config, iterations),
    )
    try:
        futures: List[Future[MatchPrediction]] = [
            executor.submit(_predict_in_worker, fixture) for fixture in fixtures
        ]
        return [future.result() for future in futures]
    except BaseException:
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    finally:
        executor.shutdown(wait=True)
