"""Typed records shared by every stage of the prediction engine."""

from __future__ import annotations

import dataclasses
import datetime as dt
import enum
from typing import Any, Dict, Mapping, Tuple

from .utils import normalize_team_name

__all__ = [
    "BucketEntry",
    "CurrentForm",
    "DrawRate",
    "ExactScore",
    "Fixture",
    "HistoricalMatch",
    "LeagueProfile",
    "MarketScore",
    "MarketType",
    "MatchOdds",
    "MotivationBadge",
    "PROFESSIONAL_STRATEGIES",
    "Score",
    "SeasonStats",
    "SignalCandidate",
    "SimulationResult",
    "Stability",
    "StandingRow",
    "StandingSplit",
    "StrategyBucket",
    "StrategyCandidate",
    "StrategyType",
    "TeamFormReport",
    "TeamMotivation",
    "TeamRef",
    "TradeInstruction",
    "TradeLeg",
]


# ---------------------------------------------------------------------------
# Teams, scores and odds
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True, slots=True)
class TeamRef:
    """A team as it appears in a data feed: display name plus optional id."""

    name: str
    team_id: str | None = None

    @property
    def normalized_name(self) -> str:
        return normalize_team_name(self.name)

    @property
    def key(self) -> str:
        if self.team_id:
            return f"id:{self.team_id}"
        return f"name:{self.normalized_name}"

    def lookup_keys(self) -> Tuple[str, ...]:
        """Keys to try, most specific first, when resolving this team."""

        name_key = f"name:{self.normalized_name}"
        if self.team_id:
            return (f"id:{self.team_id}", name_key)
        return (name_key,)


@dataclasses.dataclass(frozen=True, slots=True)
class Score:
    home: int
    away: int

    @property
    def total(self) -> int:
        return self.home + self.away

    @property
    def outcome(self) -> str:
        if self.home > self.away:
            return "1"
        if self.home < self.away:
            return "2"
        return "X"

    def __str__(self) -> str:
        return f"{self.home}-{self.away}"


_ODDS_LABELS: Mapping[str, str] = {
    "1": "home",
    "X": "draw",
    "2": "away",
    "1X": "home_or_draw",
    "X2": "draw_or_away",
    "12": "home_or_away",
    "+1.5": "over_15",
    "+2.5": "over_25",
    "+3.5": "over_35",
    "-1.5": "under_15",
    "-2.5": "under_25",
    "-3.5": "under_35",
    "+0.5 HT": "over_05_ht",
    "GOL": "btts_yes",
    "NO GOL": "btts_no",
}


@dataclasses.dataclass(frozen=True, slots=True)
class MatchOdds:
    """Decimal bookmaker odds for the markets the engine understands."""

    home: float | None = None
    draw: float | None = None
    away: float | None = None
    home_or_draw: float | None = None
    draw_or_away: float | None = None
    home_or_away: float | None = None
    over_15: float | None = None
    over_25: float | None = None
    over_35: float | None = None
    under_15: float | None = None
    under_25: float | None = None
    under_35: float | None = None
    over_05_ht: float | None = None
    btts_yes: float | None = None
    btts_no: float | None = None

    def for_label(self, label: str) -> float | None:
        attribute = _ODDS_LABELS.get(label.strip().upper())
        if attribute is None:
            return None
        return getattr(self, attribute)

    def with_label(self, label: str, odds: float) -> MatchOdds:
        """Return a copy pricing ``label`` at ``odds``; unknown labels are ignored."""

        attribute = _ODDS_LABELS.get(label.strip().upper())
        if attribute is None:
            return self
        return dataclasses.replace(self, **{attribute: odds})


# ---------------------------------------------------------------------------
# Matches and standings
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True, slots=True)
class HistoricalMatch:
    """A past (or scheduled) match row after ingestion.

    ``score`` is ``None`` when the result is missing or unparseable; such rows
    are kept for listings but ignored by every statistical component.
    """

    date: dt.date
    home: TeamRef
    away: TeamRef
    league: str = ""
    score: Score | None = None
    odds: MatchOdds = dataclasses.field(default_factory=MatchOdds)
    fixture_id: str | None = None
    league_id: str | None = None
    tip: str | None = None

    @property
    def has_team_ids(self) -> bool:
        return bool(self.home.team_id or self.away.team_id)

    @property
    def label(self) -> str:
        return f"{self.home.name} - {self.away.name}"


@dataclasses.dataclass(frozen=True, slots=True)
class Fixture:
    """An upcoming match to be analysed."""

    date: dt.date
    home: TeamRef
    away: TeamRef
    league: str = ""
    fixture_id: str | None = None
    league_id: str | None = None
    odds: MatchOdds = dataclasses.field(default_factory=MatchOdds)
    tip: str | None = None
    ht_probability: float | None = None

    @property
    def label(self) -> str:
        return f"{self.home.name} - {self.away.name}"


@dataclasses.dataclass(frozen=True, slots=True)
class StandingSplit:
    played: int = 0
    goals_for: int = 0

    @property
    def goals_for_average(self) -> float:
        if self.played <= 0:
            return 0.0
        return self.goals_for / self.played


@dataclasses.dataclass(frozen=True, slots=True)
class StandingRow:
    team: TeamRef
    rank: int
    points: int
    overall: StandingSplit = dataclasses.field(default_factory=StandingSplit)
    home: StandingSplit = dataclasses.field(default_factory=StandingSplit)
    away: StandingSplit = dataclasses.field(default_factory=StandingSplit)


# ---------------------------------------------------------------------------
# Form statistics
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True, slots=True)
class SeasonStats:
    avg_scored: float
    avg_conceded: float
    wins: int = 0
    draws: int = 0
    losses: int = 0
    matches: int = 0
    total_weight: float = 0.0

    @property
    def draw_rate(self) -> float | None:
        if self.matches <= 0:
            return None
        return self.draws / self.matches * 100.0


@dataclasses.dataclass(frozen=True, slots=True)
class CurrentForm:
    avg_scored: float
    avg_conceded: float
    outcomes: Tuple[str, ...] = ()
    matches: int = 0


@dataclasses.dataclass(frozen=True, slots=True)
class MarketScore:
    """Success rate of a team on a market, net of penalties.

    ``insufficient_data`` marks the sentinel returned when the sample is too
    small; ``score_value`` is then ``0`` and must not be read as a real rate.
    """

    market: str
    score_value: int
    success_rate: float = 0.0
    sample_size: int = 0
    penalty: float = 0.0
    insufficient_data: bool = False

    @property
    def color(self) -> str:
        if self.insufficient_data:
            return "gray"
        if self.score_value >= 70:
            return "green"
        if self.score_value >= 50:
            return "yellow"
        return "red"


@dataclasses.dataclass(frozen=True, slots=True)
class TeamFormReport:
    team: TeamRef
    season: SeasonStats
    current_form: CurrentForm
    score: MarketScore | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class DrawRate:
    rate: int
    total: int
    draws: int


# ---------------------------------------------------------------------------
# League context
# ---------------------------------------------------------------------------


class MotivationBadge(str, enum.Enum):
    RELEGATION_FIGHT = "relegation_fight"
    TITLE_RACE = "title_race"
    DIRECT_CLASH = "direct_clash"


@dataclasses.dataclass(frozen=True, slots=True)
class TeamMotivation:
    multiplier: float = 1.0
    rank: int | None = None
    badges: Tuple[MotivationBadge, ...] = ()

    @property
    def motivated(self) -> bool:
        return bool(self.badges)


@dataclasses.dataclass(frozen=True, slots=True)
class LeagueProfile:
    league: str
    goal_factor: float = 1.0
    entropy: float = 1.0
    volatility_label: str = "MEDIA"
    home: TeamMotivation = dataclasses.field(default_factory=TeamMotivation)
    away: TeamMotivation = dataclasses.field(default_factory=TeamMotivation)

    def badges(self) -> Tuple[MotivationBadge, ...]:
        seen: Dict[MotivationBadge, None] = {}
        for badge in (*self.home.badges, *self.away.badges):
            seen.setdefault(badge, None)
        return tuple(seen)

    @property
    def has_motivation(self) -> bool:
        return bool(self.home.badges or self.away.badges)

    @property
    def direct_clash(self) -> bool:
        return MotivationBadge.DIRECT_CLASH in self.badges()


# ---------------------------------------------------------------------------
# Simulation output
# ---------------------------------------------------------------------------


class Stability(str, enum.Enum):
    HIGH = "ALTA"
    MEDIUM = "MEDIA"
    LOW = "BASSA"


@dataclasses.dataclass(frozen=True, slots=True)
class ExactScore:
    home: int
    away: int
    probability: float

    @property
    def label(self) -> str:
        return f"{self.home}-{self.away}"


@dataclasses.dataclass(frozen=True, slots=True)
class SimulationResult:
    """Weighted Monte Carlo market probabilities, in whole percent."""

    win_home: float
    draw: float
    win_away: float
    home_or_draw: float
    draw_or_away: float
    home_or_away: float
    over_15: float
    under_15: float
    over_25: float
    under_25: float
    over_35: float
    under_35: float
    ht_goal: float
    btts: float
    no_goal: float
    clean_sheet_home: float
    clean_sheet_away: float
    exact_scores: Tuple[ExactScore, ...]
    stability: Stability
    volatility_index: int
    iterations: int
    seed: str
    lambda_home: float
    lambda_away: float
    entropy: float = 1.0
    rho: float = 0.0

    @property
    def most_likely_score(self) -> ExactScore | None:
        return self.exact_scores[0] if self.exact_scores else None

    def probability_for(self, label: str) -> float | None:
        attribute = _PROBABILITY_LABELS.get(label.strip().upper())
        if attribute is None:
            return None
        return getattr(self, attribute)

    def to_dict(self) -> Dict[str, Any]:
        payload = dataclasses.asdict(self)
        payload["stability"] = self.stability.value
        payload["exact_scores"] = [
            {"score": item.label, "probability": item.probability}
            for item in self.exact_scores
        ]
        return payload


_PROBABILITY_LABELS: Mapping[str, str] = {
    "1": "win_home",
    "X": "draw",
    "2": "win_away",
    "1X": "home_or_draw",
    "X2": "draw_or_away",
    "12": "home_or_away",
    "+1.5": "over_15",
    "-1.5": "under_15",
    "+2.5": "over_25",
    "-2.5": "under_25",
    "+3.5": "over_35",
    "-3.5": "under_35",
    "+0.5 HT": "ht_goal",
    "GOL": "btts",
    "NO GOL": "no_goal",
}


# ---------------------------------------------------------------------------
# Signals and strategies
# ---------------------------------------------------------------------------


class MarketType(str, enum.Enum):
    DOUBLE_CHANCE = "DC"
    RESULT = "1X2"
    GOALS = "GOALS"

    @property
    def priority(self) -> int:
        return {"DC": 3, "1X2": 2, "GOALS": 1}[self.value]


@dataclasses.dataclass(frozen=True, slots=True)
class SignalCandidate:
    label: str
    probability: float
    odds: float
    market_type: MarketType
    real_odds: bool = False
    qualified: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "probability": self.probability,
            "odds": self.odds,
            "market_type": self.market_type.value,
            "real_odds": self.real_odds,
            "qualified": self.qualified,
        }


class StrategyType(str, enum.Enum):
    BACK_OVER_25 = "BACK_OVER_25"
    LAY_THE_DRAW = "LAY_THE_DRAW"
    SECOND_HALF_SURGE = "SECOND_HALF_SURGE"
    UNDER_35_SCALPING = "UNDER_35_SCALPING"
    HT_SNIPER = "HT_SNIPER"
    ELITE_SURGE = "ELITE_SURGE"


PROFESSIONAL_STRATEGIES = frozenset(
    {
        StrategyType.BACK_OVER_25,
        StrategyType.LAY_THE_DRAW,
        StrategyType.ELITE_SURGE,
        StrategyType.SECOND_HALF_SURGE,
    }
)


@dataclasses.dataclass(frozen=True, slots=True)
class TradeLeg:
    """One advisory leg of a trade: an odds level (or range) and its timing."""

    timing: str
    odds_min: float | None = None
    odds_max: float | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class TradeInstruction:
    entry: TradeLeg
    exit: TradeLeg
    stop_loss: TradeLeg


@dataclasses.dataclass(frozen=True, slots=True)
class StrategyCandidate:
    type: StrategyType
    action: str
    confidence: int
    instruction: TradeInstruction
    reasoning: str = ""

    @property
    def professional(self) -> bool:
        return self.type in PROFESSIONAL_STRATEGIES

    def to_dict(self) -> Dict[str, Any]:
        payload = dataclasses.asdict(self)
        payload["type"] = self.type.value
        payload["professional"] = self.professional
        return payload


# ---------------------------------------------------------------------------
# Distribution
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True, slots=True)
class BucketEntry:
    """A match as seen by the daily distributor."""

    fixture_id: str | None
    date: dt.date | None
    label: str
    league: str
    league_id: str | None = None
    tip: str | None = None
    ai_tip: str | None = None
    odds: float | None = None
    probability: float | None = None

    def to_dict(self) -> Dict[str, Any]:
        payload = dataclasses.asdict(self)
        payload["date"] = self.date.isoformat() if self.date else None
        return payload


@dataclasses.dataclass(frozen=True, slots=True)
class StrategyBucket:
    id: str
    name: str
    kind: str
    entries: Tuple[BucketEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind,
            "entries": [entry.to_dict() for entry in self.entries],
        }
