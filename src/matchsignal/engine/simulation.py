"""Seeded Monte Carlo match simulation with a Dixon-Coles correction."""

from __future__ import annotations

import dataclasses
import logging
import math
import random
from collections import Counter
from typing import Dict, Protocol, Sequence, Tuple

from .configuration import RefinementConfig, SimulationConfig
from .models import ExactScore, SimulationResult, Stability
from .utils import round_half_up

__all__ = [
    "MatchSimulator",
    "Mulberry32",
    "RandomSource",
    "classify_stability",
    "dixon_coles_weight",
    "fnv1a_32",
    "poisson_knuth",
    "refine_draw",
    "volatility_index",
]

logger = logging.getLogger(__name__)

_MASK32 = 0xFFFFFFFF


# ---------------------------------------------------------------------------
# Random sources
# ---------------------------------------------------------------------------


class RandomSource(Protocol):
    """Uniform generator on ``[0, 1)``; the simulator's only source of noise."""

    def next(self) -> float:  # pragma: no cover - protocol
        ...


def fnv1a_32(text: str) -> int:
    """32-bit FNV-1a hash over the UTF-16 code units of ``text``."""

    value = 0x811C9DC5
    encoded = text.encode("utf-16-le")
    for index in range(0, len(encoded), 2):
        value ^= encoded[index] | (encoded[index + 1] << 8)
        value = (value * 0x01000193) & _MASK32
    return value


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK32


class Mulberry32:
    """Mulberry32 generator: 32-bit state, fast, reproducible across runs."""

    def __init__(self, seed: int | str) -> None:
        if isinstance(seed, str):
            seed = fnv1a_32(seed)
        self.state = seed & _MASK32

    def next(self) -> float:
        self.state = (self.state + 0x6D2B79F5) & _MASK32
        t = self.state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK32
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296.0


def poisson_knuth(rate: float, rng: RandomSource) -> int:
    """Draw a Poisson variate with Knuth's multiplication method."""

    if rate <= 0:
        return 0
    limit = math.exp(-rate)
    k = 0
    p = 1.0
    while True:
        k += 1
        p *= rng.next()
        if p <= limit:
            return k - 1


def dixon_coles_weight(
    home_goals: int, away_goals: int, lambda_home: float, lambda_away: float, rho: float
) -> float:
    """Dixon-Coles adjustment for the four low-score cells (1.0 elsewhere)."""

    if home_goals == 0 and away_goals == 0:
        weight = 1.0 - lambda_home * lambda_away * rho
    elif home_goals == 0 and away_goals == 1:
        weight = 1.0 + lambda_home * rho
    elif home_goals == 1 and away_goals == 0:
        weight = 1.0 + lambda_away * rho
    elif home_goals == 1 and away_goals == 1:
        weight = 1.0 - rho
    else:
        return 1.0
    return max(0.0, weight)


def classify_stability(exact_scores: Sequence[ExactScore]) -> Stability:
    top = [item.probability for item in exact_scores[:3]]
    top_one = top[0] if top else 0.0
    top_three = sum(top)
    if top_one >= 14 or top_three >= 35:
        return Stability.HIGH
    if top_one >= 10 or top_three >= 25:
        return Stability.MEDIUM
    return Stability.LOW


def volatility_index(entropy: float) -> int:
    return min(10, round_half_up((max(entropy, 1.0) - 0.8) * 20))


# ---------------------------------------------------------------------------
# Simulator
# ---------------------------------------------------------------------------


def _percent(weight: float, total: float) -> int:
    if total <= 0:
        return 50
    return round_half_up(weight / total * 100)


class MatchSimulator:
    """Weighted Monte Carlo over independent Poisson goal draws.

    Each iteration optionally jitters the expected goals by the league
    entropy, draws full-time and first-half goals, and weights the outcome by
    the Dixon-Coles factor of the unjittered rates. All noise comes from the
    supplied (or seed-derived) :class:`RandomSource`, so a given seed always
    reproduces the same result.
    """

    def __init__(self, config: SimulationConfig | None = None) -> None:
        self.config = config or SimulationConfig()

    def simulate(
        self,
        lambda_home: float,
        lambda_away: float,
        iterations: int | None = None,
        seed: str | None = None,
        entropy: float = 1.0,
        rho: float | None = None,
        rng: RandomSource | None = None,
    ) -> SimulationResult:
        config = self.config
        iterations = config.iterations if iterations is None else iterations
        if iterations <= 0:
            raise ValueError("iterations must be greater than zero")
        if lambda_home < 0 or lambda_away < 0:
            raise ValueError("expected goals must be non-negative")
        rho = config.default_rho if rho is None else rho
        if seed is None:
            seed = f"{random.SystemRandom().getrandbits(32):08x}"
        generator: RandomSource = rng if rng is not None else Mulberry32(seed)

        jitter_range = (entropy - 1.0) * config.jitter_scale if entropy != 1.0 else 0.0
        floor = config.lambda_floor
        ht_share = config.ht_lambda_share

        total_weight = 0.0
        buckets: Dict[str, float] = dict.fromkeys(
            (
                "home",
                "draw",
                "away",
                "over_15",
                "over_25",
                "over_35",
                "ht_goal",
                "btts",
                "clean_home",
                "clean_away",
            ),
            0.0,
        )
        scores: Counter[Tuple[int, int]] = Counter()

        for _ in range(iterations):
            rate_home = lambda_home
            rate_away = lambda_away
            if jitter_range:
                rate_home = max(floor, rate_home + generator.next() * jitter_range * 2 - jitter_range)
                rate_away = max(floor, rate_away + generator.next() * jitter_range * 2 - jitter_range)

            home_goals = poisson_knuth(rate_home, generator)
            away_goals = poisson_knuth(rate_away, generator)
            ht_home = poisson_knuth(rate_home * ht_share, generator)
            ht_away = poisson_knuth(rate_away * ht_share, generator)

            weight = dixon_coles_weight(home_goals, away_goals, lambda_home, lambda_away, rho)
            total_weight += weight
            goals = home_goals + away_goals
            if home_goals > away_goals:
                buckets["home"] += weight
            elif home_goals == away_goals:
                buckets["draw"] += weight
            else:
                buckets["away"] += weight
            if goals > 1.5:
                buckets["over_15"] += weight
            if goals > 2.5:
                buckets["over_25"] += weight
            if goals > 3.5:
                buckets["over_35"] += weight
            if ht_home + ht_away > 0:
                buckets["ht_goal"] += weight
            if home_goals > 0 and away_goals > 0:
                buckets["btts"] += weight
            if away_goals == 0:
                buckets["clean_home"] += weight
            if home_goals == 0:
                buckets["clean_away"] += weight
            scores[(home_goals, away_goals)] += weight

        pct = {name: _percent(value, total_weight) for name, value in buckets.items()}
        exact_scores = tuple(
            ExactScore(
                home=home,
                away=away,
                probability=round(weight / total_weight * 100, 2) if total_weight > 0 else 0.0,
            )
            # most_common keeps first-seen order among equal weights
            for (home, away), weight in scores.most_common()
        )
        result = SimulationResult(
            win_home=pct["home"],
            draw=pct["draw"],
            win_away=pct["away"],
            home_or_draw=_percent(buckets["home"] + buckets["draw"], total_weight),
            draw_or_away=_percent(buckets["draw"] + buckets["away"], total_weight),
            home_or_away=_percent(buckets["home"] + buckets["away"], total_weight),
            over_15=pct["over_15"],
            under_15=_percent(total_weight - buckets["over_15"], total_weight),
            over_25=pct["over_25"],
            under_25=_percent(total_weight - buckets["over_25"], total_weight),
            over_35=pct["over_35"],
            under_35=_percent(total_weight - buckets["over_35"], total_weight),
            ht_goal=pct["ht_goal"],
            btts=pct["btts"],
            no_goal=_percent(total_weight - buckets["btts"], total_weight),
            clean_sheet_home=pct["clean_home"],
            clean_sheet_away=pct["clean_away"],
            exact_scores=exact_scores,
            stability=classify_stability(exact_scores),
            volatility_index=volatility_index(entropy),
            iterations=iterations,
            seed=seed,
            lambda_home=lambda_home,
            lambda_away=lambda_away,
            entropy=entropy,
            rho=rho,
        )
        logger.debug(
            "Simulated %.2f vs %.2f (seed %s) -> %s/%s/%s",
            lambda_home,
            lambda_away,
            seed,
            result.win_home,
            result.draw,
            result.win_away,
        )
        return result


# ---------------------------------------------------------------------------
# Hybrid draw refinement
# ---------------------------------------------------------------------------


def refine_draw(
    result: SimulationResult,
    home_draw_rate: float | None,
    away_draw_rate: float | None,
    external_tip: str | None = None,
    config: RefinementConfig | None = None,
) -> SimulationResult:
    """Blend the simulated draw with the teams' historical draw rates.

    Draw rates are percentages; ``None`` means the team has no history and
    the configured default is used. A decisive external tip (``"1"`` or
    ``"2"``) shrinks the draw. Home and away wins are rescaled so that the
    three outcomes still sum to 100.
    """

    config = config or RefinementConfig()
    rates = [
        config.default_draw_rate if rate is None else rate
        for rate in (home_draw_rate, away_draw_rate)
    ]
    historical = sum(rates) / 2.0
    weight_total = config.simulation_weight + config.history_weight
    if weight_total <= 0:
        return result
    draw = (
        config.simulation_weight * result.draw + config.history_weight * historical
    ) / weight_total
    if external_tip is not None and external_tip.strip() in {"1", "2"}:
        draw *= config.decisive_tip_shrink

    remaining = 100.0 - draw
    decisive = result.win_home + result.win_away
    if decisive > 0:
        ratio = remaining / decisive
        win_home = result.win_home * ratio
        win_away = result.win_away * ratio
    else:
        win_home = win_away = remaining / 2.0
    # Double chance follows the refined outcomes so the markets reconcile.
    return dataclasses.replace(
        result,
        win_home=round(win_home, 2),
        draw=round(draw, 2),
        win_away=round(win_away, 2),
        home_or_draw=round(win_home + draw, 2),
        draw_or_away=round(draw + win_away, 2),
        home_or_away=round(win_home + win_away, 2),
    )
