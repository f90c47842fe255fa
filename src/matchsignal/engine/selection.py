"""Best-pick selection over the simulated markets."""

from __future__ import annotations

import dataclasses
import logging
from typing import List, Sequence, Tuple

from .configuration import SelectionConfig
from .models import MarketType, MatchOdds, SignalCandidate, SimulationResult
from .utils import clean_league_name, probability_to_odds

__all__ = ["SIGNALS", "SignalSelector", "ValueEdge", "value_edge"]

logger = logging.getLogger(__name__)

SIGNALS: Tuple[Tuple[str, MarketType], ...] = (
    ("1X", MarketType.DOUBLE_CHANCE),
    ("X2", MarketType.DOUBLE_CHANCE),
    ("12", MarketType.DOUBLE_CHANCE),
    ("1", MarketType.RESULT),
    ("X", MarketType.RESULT),
    ("2", MarketType.RESULT),
    ("+1.5", MarketType.GOALS),
    ("+2.5", MarketType.GOALS),
    ("-3.5", MarketType.GOALS),
    ("+0.5 HT", MarketType.GOALS),
    ("Gol", MarketType.GOALS),
    ("No Gol", MarketType.GOALS),
)


@dataclasses.dataclass(frozen=True, slots=True)
class ValueEdge:
    edge: float
    roi: float
    implied_probability: float
    profitable: bool


def value_edge(probability: float, odds: float | None, min_edge: float = 3.0) -> ValueEdge:
    """Edge of a ``probability`` (percent) over the bookmaker's implied one."""

    if odds is None or odds <= 1:
        return ValueEdge(edge=0.0, roi=0.0, implied_probability=100.0, profitable=False)
    implied = 100.0 / odds
    edge = probability - implied
    roi = edge / implied * 100.0
    return ValueEdge(
        edge=round(edge, 1),
        roi=round(roi, 1),
        implied_probability=round(implied, 1),
        profitable=edge >= min_edge,
    )


def _ranking_key(candidate: SignalCandidate) -> Tuple[float, int]:
    return (-candidate.probability, -candidate.market_type.priority)


class SignalSelector:
    """Pick one signal per match: the most probable candidate that qualifies.

    A candidate qualifies when its probability clears the per-label minimum
    and its odds sit inside the accepted band. Odds from ``1.30`` up to the
    hard ceiling need a higher probability, and the over 1.5 line in the
    configured strict leagues needs odds above a floor. Equal probabilities
    are broken by market priority (double chance, then 1X2, then goals).
    When nothing qualifies the most probable candidate overall is returned.
    """

    def __init__(self, config: SelectionConfig | None = None) -> None:
        self.config = config or SelectionConfig()

    def min_probability(self, label: str) -> float:
        return self.config.min_probability.get(
            label.strip().upper(), self.config.default_min_probability
        )

    def qualifies(self, label: str, probability: float, odds: float, league: str = "") -> bool:
        config = self.config
        if probability < self.min_probability(label):
            return False
        if odds < config.min_odds or odds > config.max_odds:
            return False
        if odds >= config.premium_odds and probability < config.premium_min_probability:
            return False
        if label == "+1.5" and odds <= config.strict_over_min_odds:
            cleaned = clean_league_name(league)
            if any(name in cleaned for name in config.strict_leagues):
                return False
        return True

    def candidates(
        self,
        result: SimulationResult,
        odds: MatchOdds | None = None,
        league: str = "",
    ) -> List[SignalCandidate]:
        odds = odds or MatchOdds()
        built: List[SignalCandidate] = []
        for label, market_type in SIGNALS:
            probability = result.probability_for(label)
            if probability is None:
                continue
            real = odds.for_label(label)
            price = real if real is not None else probability_to_odds(probability)
            built.append(
                SignalCandidate(
                    label=label,
                    probability=probability,
                    odds=price,
                    market_type=market_type,
                    real_odds=real is not None,
                    qualified=self.qualifies(label, probability, price, league),
                )
            )
        return built

    def rank(self, candidates: Sequence[SignalCandidate]) -> List[SignalCandidate]:
        qualified = sorted((item for item in candidates if item.qualified), key=_ranking_key)
        rejected = sorted((item for item in candidates if not item.qualified), key=_ranking_key)
        return qualified + rejected

    def select(
        self,
        result: SimulationResult,
        odds: MatchOdds | None = None,
        league: str = "",
    ) -> SignalCandidate:
        ranked = self.rank(self.candidates(result, odds, league))
        best = ranked[0]
        if not best.qualified:
            logger.debug(
                "No qualifying signal; falling back to %s at %.1f%%", best.label, best.probability
            )
        return best

    def value(self, candidate: SignalCandidate) -> ValueEdge:
        return value_edge(candidate.probability, candidate.odds, self.config.min_value_edge)
