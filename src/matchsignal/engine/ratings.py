"""ELO team ratings replayed from match history."""

from __future__ import annotations

import bisect
import dataclasses
import datetime as dt
import logging
import types
from collections.abc import Iterable, Mapping
from typing import Any, Dict, List, Tuple

from .configuration import RatingsConfig
from .models import HistoricalMatch, TeamRef
from .utils import clamp

__all__ = ["EloRatings", "TeamRatingStore", "expected_score"]

logger = logging.getLogger(__name__)

# Per team key: the dates a rating changed and the rating after that day.
Timeline = Tuple[Tuple[dt.date, ...], Tuple[float, ...]]


def expected_score(rating: float, opponent: float) -> float:
    """Probability-like expectation of ``rating`` against ``opponent``."""

    return 1.0 / (1.0 + 10.0 ** ((opponent - rating) / 400.0))


@dataclasses.dataclass(frozen=True, slots=True)
class EloRatings:
    """Read-only team key to rating map produced by a full history replay.

    Every rating change is kept in a dated timeline, so ``as_of`` lookups see
    only matches played strictly before the given date.
    """

    ratings: Mapping[str, float]
    default: float = 1500.0
    matches: int = 0
    timelines: Mapping[str, Timeline] = dataclasses.field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "ratings", types.MappingProxyType(dict(self.ratings)))
        object.__setattr__(self, "timelines", types.MappingProxyType(dict(self.timelines)))

    def __reduce__(self) -> Tuple[Any, ...]:
        # mappingproxy does not pickle; rebuild from plain dicts.
        return (
            EloRatings,
            (dict(self.ratings), self.default, self.matches, dict(self.timelines)),
        )

    def _value(self, key: str, as_of: dt.date | None) -> float | None:
        if as_of is None:
            return self.ratings.get(key)
        timeline = self.timelines.get(key)
        if timeline is None:
            return None
        dates, values = timeline
        index = bisect.bisect_left(dates, as_of)
        if index == 0:
            return None
        return values[index - 1]

    def rating(self, team: TeamRef, as_of: dt.date | None = None) -> float:
        for key in team.lookup_keys():
            value = self._value(key, as_of)
            if value is not None:
                return value
        return self.default

    def difference(self, home: TeamRef, away: TeamRef, as_of: dt.date | None = None) -> float:
        return self.rating(home, as_of) - self.rating(away, as_of)

    def as_of(self, date: dt.date) -> EloRatings:
        """Snapshot of the ratings before any match played on or after ``date``."""

        ratings: Dict[str, float] = {}
        timelines: Dict[str, Timeline] = {}
        replayed = 0
        for key, (dates, values) in self.timelines.items():
            index = bisect.bisect_left(dates, date)
            if index == 0:
                continue
            ratings[key] = values[index - 1]
            timelines[key] = (dates[:index], values[:index])
            replayed += index
        # Each match moves two teams.
        return EloRatings(ratings, self.default, replayed // 2, timelines)

    def __len__(self) -> int:
        return len(self.ratings)


class TeamRatingStore:
    """Replays results chronologically with a fixed K factor."""

    def __init__(self, config: RatingsConfig | None = None) -> None:
        self.config = config or RatingsConfig()

    def ingest_history(self, matches: Iterable[HistoricalMatch]) -> EloRatings:
        # sorted() is stable, so same-day fixtures keep feed order and a
        # pre-sorted history replays identically.
        ordered = sorted(matches, key=lambda match: match.date)
        k_factor = self.config.k_factor
        initial = self.config.initial_rating
        ratings: dict[str, float] = {}
        dates: Dict[str, List[dt.date]] = {}
        values: Dict[str, List[float]] = {}
        replayed = 0
        for match in ordered:
            if match.score is None:
                continue
            home_key = match.home.key
            away_key = match.away.key
            home_rating = ratings.get(home_key, initial)
            away_rating = ratings.get(away_key, initial)
            expected_home = expected_score(home_rating, away_rating)
            if match.score.home > match.score.away:
                actual_home = 1.0
            elif match.score.home == match.score.away:
                actual_home = 0.5
            else:
                actual_home = 0.0
            delta = k_factor * (actual_home - expected_home)
            ratings[home_key] = home_rating + delta
            ratings[away_key] = away_rating - delta
            for key in (home_key, away_key):
                dates.setdefault(key, []).append(match.date)
                values.setdefault(key, []).append(ratings[key])
            replayed += 1
        logger.debug("Replayed %d matches into %d ratings", replayed, len(ratings))
        timelines = {key: (tuple(dates[key]), tuple(values[key])) for key in ratings}
        return EloRatings(
            ratings=dict(ratings), default=initial, matches=replayed, timelines=timelines
        )

    def lambda_factors(self, elo_difference: float) -> tuple[float, float]:
        """Expected-goal multipliers for the home and away side."""

        cap = self.config.lambda_cap
        shift = clamp(elo_difference / self.config.lambda_divisor, -cap, cap)
        return 1.0 + shift, 1.0 - shift
