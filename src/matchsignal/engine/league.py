"""League context: goal and entropy factors, motivation and rho fitting."""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from typing import Dict, List, Tuple

import polars as pl

from .configuration import LeagueConfig, LeagueDNA, SimulationConfig
from .evaluation import Outcome, settle_signal
from .models import (
    HistoricalMatch,
    LeagueProfile,
    MotivationBadge,
    StandingRow,
    StandingSplit,
    TeamMotivation,
    TeamRef,
)
from .utils import clamp, clean_league_name

__all__ = [
    "LeagueProfileResolver",
    "dynamic_goal_factors",
    "find_standing",
    "fit_rho",
    "is_cup_competition",
    "league_performance",
]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Dataset level fits
# ---------------------------------------------------------------------------


def dynamic_goal_factors(
    history: Iterable[HistoricalMatch], config: LeagueConfig | None = None
) -> Dict[str, float]:
    """Per-league goal factor relative to the global goals-per-match average.

    Keys are cleaned league names. Nothing is returned until the dataset holds
    enough matches overall, and leagues with a thin sample are left out.
    """

    config = config or LeagueConfig()
    goals: Dict[str, int] = defaultdict(int)
    counts: Dict[str, int] = defaultdict(int)
    total_goals = total_matches = 0
    for match in history:
        if match.score is None:
            continue
        league = clean_league_name(match.league)
        goals[league] += match.score.total
        counts[league] += 1
        total_goals += match.score.total
        total_matches += 1

    if total_matches < config.min_total_matches:
        logger.debug(
            "Skipping dynamic goal factors: %d matches (min %d)",
            total_matches,
            config.min_total_matches,
        )
        return {}
    global_average = total_goals / total_matches if total_matches else config.global_average_default
    if global_average <= 0:
        global_average = config.global_average_default

    factors: Dict[str, float] = {}
    for league, count in counts.items():
        if not league or count < config.min_league_matches:
            continue
        factors[league] = round(goals[league] / count / global_average, 2)
    return factors


def fit_rho(history: Iterable[HistoricalMatch], config: SimulationConfig | None = None) -> float:
    """Estimate the Dixon-Coles rho from the low-score frequency.

    The observed share of 0-0, 1-0, 0-1 and 1-1 results is compared with the
    share an independent Poisson model predicts at the dataset's mean home
    and away goals; an excess of low scores pushes rho further below zero.
    """

    config = config or SimulationConfig()
    played = [match.score for match in history if match.score is not None]
    if len(played) < config.rho_min_matches:
        return config.default_rho

    lambda_home = sum(score.home for score in played) / len(played)
    lambda_away = sum(score.away for score in played) / len(played)
    expected = math.exp(-(lambda_home + lambda_away)) * (
        1.0 + lambda_home + lambda_away + lambda_home * lambda_away
    )
    observed = sum(1 for score in played if score.home <= 1 and score.away <= 1) / len(played)
    rho = config.default_rho + (expected - observed) * config.rho_sensitivity
    rho = round(clamp(rho, config.rho_min, config.rho_max), 3)
    logger.debug(
        "Fitted rho %.3f from %d matches (observed %.3f, expected %.3f)",
        rho,
        len(played),
        observed,
        expected,
    )
    return rho


def league_performance(history: Iterable[HistoricalMatch]) -> pl.DataFrame:
    """Per-league scoring profile and success rate of recorded tips."""

    rows: List[Tuple[str, int, bool, str | None, bool | None]] = []
    for match in history:
        if match.score is None:
            continue
        tip_won: bool | None = None
        if match.tip:
            settlement = settle_signal(match.tip, match.score)
            if settlement is not None and settlement.outcome in {Outcome.WON, Outcome.LOST}:
                tip_won = settlement.outcome is Outcome.WON
        rows.append(
            (match.league, match.score.total, match.score.total > 2.5, match.tip, tip_won)
        )

    frame = pl.DataFrame(
        rows,
        schema={
            "league": pl.Utf8,
            "total_goals": pl.Int64,
            "over_25": pl.Boolean,
            "tip": pl.Utf8,
            "tip_won": pl.Boolean,
        },
        orient="row",
    )
    summary = frame.group_by("league", maintain_order=True).agg(
        pl.col("total_goals").count().alias("matches"),
        pl.col("total_goals").mean().alias("avg_goals"),
        (pl.col("over_25").cast(pl.Float64).mean() * 100).alias("over_25_rate"),
        pl.col("tip_won").is_not_null().sum().alias("tips_settled"),
        (pl.col("tip_won").cast(pl.Float64).mean() * 100).alias("tip_success_rate"),
    )
    return summary.with_columns(
        (100 - pl.col("over_25_rate")).alias("under_25_rate")
    ).sort("matches", descending=True, maintain_order=True)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def is_cup_competition(league: str, keywords: Sequence[str]) -> bool:
    name = league.lower()
    if "league" in name:
        return False
    return any(keyword in name for keyword in keywords)


def find_standing(team: TeamRef, standings: Sequence[StandingRow]) -> StandingRow | None:
    """Locate ``team`` by stable id first, then by exact normalised name."""

    if team.team_id:
        for row in standings:
            if row.team.team_id == team.team_id:
                return row
    name_key = team.normalized_name
    for row in standings:
        if row.team.normalized_name == name_key:
            return row
    return None


def _league_matches(cleaned: str, key: str) -> bool:
    return bool(cleaned) and (key in cleaned or cleaned in key)


class LeagueProfileResolver:
    """Resolve the league and motivation context of a fixture."""

    def __init__(
        self,
        config: LeagueConfig | None = None,
        dynamic_factors: Mapping[str, float] | None = None,
    ) -> None:
        self.config = config or LeagueConfig()
        self.dynamic_factors: Mapping[str, float] = dict(dynamic_factors or {})

    def dna_for(self, league: str) -> LeagueDNA | None:
        cleaned = clean_league_name(league)
        for key, dna in self.config.dna.items():
            if _league_matches(cleaned, key):
                return dna
        return None

    def goal_factor(self, league: str) -> float:
        dna = self.dna_for(league)
        if dna is not None:
            return dna.average_goals / self.config.baseline_goals
        dynamic = self.dynamic_factors.get(clean_league_name(league))
        if dynamic is not None:
            return dynamic
        return 1.0

    def entropy(self, league: str) -> Tuple[float, str]:
        """Entropy factor and volatility label for ``league``."""

        dna = self.dna_for(league)
        if dna is not None:
            return dna.entropy, dna.volatility
        cleaned = clean_league_name(league)
        for key, factor in self.config.entropy_factors.items():
            if _league_matches(cleaned, key):
                return factor, "STABILE"
        return 1.0, "STABILE"

    def is_cup(self, league: str) -> bool:
        return is_cup_competition(league, self.config.cup_keywords)

    def motivation(
        self,
        home: TeamRef,
        away: TeamRef,
        standings: Sequence[StandingRow],
    ) -> Tuple[TeamMotivation, TeamMotivation]:
        if not standings:
            return TeamMotivation(), TeamMotivation()
        config = self.config
        total = len(standings)
        rows = (find_standing(home, standings), find_standing(away, standings))
        multipliers = [1.0, 1.0]
        badges: List[List[MotivationBadge]] = [[], []]

        for index, row in enumerate(rows):
            if row is None:
                continue
            if row.rank > total - config.relegation_zone:
                multipliers[index] += config.relegation_bonus
                badges[index].append(MotivationBadge.RELEGATION_FIGHT)
            elif row.rank <= config.title_zone:
                multipliers[index] += config.title_bonus
                badges[index].append(MotivationBadge.TITLE_RACE)

        home_row, away_row = rows
        if (
            home_row is not None
            and away_row is not None
            and abs(home_row.points - away_row.points) <= config.direct_clash_gap
        ):
            for index in (0, 1):
                multipliers[index] += config.direct_clash_bonus
                badges[index].append(MotivationBadge.DIRECT_CLASH)

        for index, row in enumerate(rows):
            if row is None:
                continue
            venue = row.home if index == 0 else row.away
            multipliers[index] *= self._venue_correction(row, venue)

        return (
            TeamMotivation(
                multiplier=multipliers[0],
                rank=home_row.rank if home_row else None,
                badges=tuple(badges[0]),
            ),
            TeamMotivation(
                multiplier=multipliers[1],
                rank=away_row.rank if away_row else None,
                badges=tuple(badges[1]),
            ),
        )

    def _venue_correction(self, row: StandingRow, venue: StandingSplit) -> float:
        config = self.config
        overall = row.overall
        if overall.played <= 0:
            overall = StandingSplit(
                played=row.home.played + row.away.played,
                goals_for=row.home.goals_for + row.away.goals_for,
            )
        season_average = overall.goals_for_average
        if venue.played < config.venue_min_matches or season_average <= 0:
            return 1.0
        ratio = clamp(
            venue.goals_for_average / season_average,
            config.venue_ratio_min,
            config.venue_ratio_max,
        )
        return (1.0 - config.venue_weight) + ratio * config.venue_weight

    def resolve(
        self,
        league: str,
        home: TeamRef,
        away: TeamRef,
        standings: Sequence[StandingRow] = (),
    ) -> LeagueProfile:
        entropy, volatility = self.entropy(league)
        home_motivation, away_motivation = self.motivation(home, away, standings)
        return LeagueProfile(
            league=league,
            goal_factor=self.goal_factor(league),
            entropy=entropy,
            volatility_label=volatility,
            home=home_motivation,
            away=away_motivation,
        )
