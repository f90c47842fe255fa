"""Immutable per-dataset snapshot shared by every fixture of a batch."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Dict, Tuple

from .configuration import EngineConfig
from .ingestion import build_history
from .league import dynamic_goal_factors, fit_rho
from .models import HistoricalMatch, StandingRow
from .ratings import EloRatings, TeamRatingStore
from .utils import clean_league_name

__all__ = ["EngineProfile", "build_engine_profile"]

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class EngineProfile:
    """Dataset-wide facts computed once: ratings, goal factors, rho, tables.

    The profile is passed explicitly to every consumer and never updated in
    place; a new dataset means a new profile.
    """

    history: Tuple[HistoricalMatch, ...]
    ratings: EloRatings
    goal_factors: Mapping[str, float]
    rho: float
    standings: Mapping[str, Tuple[StandingRow, ...]] = dataclasses.field(default_factory=dict)

    def standings_for(self, league: str, league_id: str | None = None) -> Tuple[StandingRow, ...]:
        if league_id and league_id in self.standings:
            return self.standings[league_id]
        return self.standings.get(clean_league_name(league), ())


def build_engine_profile(
    history: Iterable[HistoricalMatch | Mapping[str, Any]],
    standings: Mapping[str, Iterable[StandingRow]] | None = None,
    config: EngineConfig | None = None,
) -> EngineProfile:
    """Build the snapshot for ``history``.

    ``standings`` maps a league id or league name to its table; names are
    stored under their cleaned form so lookups ignore country prefixes.
    """

    config = config or EngineConfig()
    matches = build_history(history)
    ratings = TeamRatingStore(config.ratings).ingest_history(matches)
    factors = dynamic_goal_factors(matches, config.league)
    rho = fit_rho(matches, config.simulation)

    tables: Dict[str, Tuple[StandingRow, ...]] = {}
    for key, rows in (standings or {}).items():
        table = tuple(rows)
        tables[str(key)] = table
        cleaned = clean_league_name(str(key))
        if cleaned:
            tables.setdefault(cleaned, table)

    logger.info(
        "Built engine profile: %d matches, %d rated teams, %d league factors, rho %.3f",
        len(matches),
        len(ratings),
        len(factors),
        rho,
    )
    return EngineProfile(
        history=matches,
        ratings=ratings,
        goal_factors=factors,
        rho=rho,
        standings=tables,
    )
