"""In-play trading strategy templates and their professional-first ranking."""

from __future__ import annotations

import dataclasses
import functools
import logging
from typing import Callable, List, Sequence, Tuple

from .configuration import TradingConfig
from .models import (
    MotivationBadge,
    SimulationResult,
    StrategyCandidate,
    StrategyType,
    TradeInstruction,
    TradeLeg,
)
from .utils import round_half_up

__all__ = ["StrategyContext", "TradingStrategyGenerator"]

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class StrategyContext:
    """Everything the templates look at for one match.

    ``score`` is the fixture-level form score of the primary signal,
    ``probability`` the primary signal's probability and ``ht_probability``
    the first-half goal probability, all in percent.
    """

    simulation: SimulationResult
    score: float = 0.0
    probability: float = 0.0
    ht_probability: float = 0.0
    elo_difference: float = 0.0
    badges: Tuple[MotivationBadge, ...] = ()
    home_draw_rate: float | None = None
    away_draw_rate: float | None = None
    draw_odds: float | None = None

    @property
    def motivated(self) -> bool:
        return bool(self.badges)

    @property
    def historical_draw(self) -> float:
        rates = [rate for rate in (self.home_draw_rate, self.away_draw_rate) if rate is not None]
        if not rates:
            return 25.0
        return sum(rates) / len(rates)


_INSTRUCTIONS = {
    StrategyType.BACK_OVER_25: TradeInstruction(
        entry=TradeLeg("first 15-20 minutes", 1.80, 2.30),
        exit=TradeLeg("cash out after the first goal", 1.15),
        stop_loss=TradeLeg("still 0-0 at minute 70", 1.20),
    ),
    StrategyType.LAY_THE_DRAW: TradeInstruction(
        entry=TradeLeg("live, minutes 15-20", 3.40, 4.50),
        exit=TradeLeg("after the favourite scores", 2.00),
        stop_loss=TradeLeg("still 0-0 at minute 70", 2.00),
    ),
    StrategyType.SECOND_HALF_SURGE: TradeInstruction(
        entry=TradeLeg("minutes 55-65", 1.60, 2.00),
        exit=TradeLeg("cash out after a second-half goal", 1.10),
        stop_loss=TradeLeg("minute 85", 1.01),
    ),
    StrategyType.UNDER_35_SCALPING: TradeInstruction(
        entry=TradeLeg("live, first 5-10 minutes", 1.30, 1.60),
        exit=TradeLeg("after 15-20 minutes without a goal", 1.15),
        stop_loss=TradeLeg("after the first goal conceded", 2.50),
    ),
    StrategyType.HT_SNIPER: TradeInstruction(
        entry=TradeLeg("minutes 15-20", 1.50, 2.00),
        exit=TradeLeg("cash out after a first-half goal", 1.10),
        stop_loss=TradeLeg("end of the first half", 1.01),
    ),
    StrategyType.ELITE_SURGE: TradeInstruction(
        entry=TradeLeg("in-play, minutes 0-15", 1.80, None),
        exit=TradeLeg("minute 60 or first goal"),
        stop_loss=TradeLeg("underdog scores first"),
    ),
}


class TradingStrategyGenerator:
    """Evaluate every strategy template and rank the qualifying ones.

    Ranking is "professional first": a professional strategy at or above the
    professional threshold beats a non-professional one unless the latter is
    exceptional (at or above the override level); otherwise confidence
    decides.
    """

    def __init__(self, config: TradingConfig | None = None) -> None:
        self.config = config or TradingConfig()

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def _candidate(
        self, kind: StrategyType, action: str, confidence: float, reasoning: str
    ) -> StrategyCandidate:
        return StrategyCandidate(
            type=kind,
            action=action,
            confidence=int(max(0, min(100, confidence))),
            instruction=_INSTRUCTIONS[kind],
            reasoning=reasoning,
        )

    def _back_over_25(self, ctx: StrategyContext) -> StrategyCandidate | None:
        config = self.config
        over = ctx.simulation.over_25
        if over < config.over25_min_probability and ctx.score < config.over25_min_score:
            return None
        confidence = round_half_up(over * 0.6 + ctx.score * 0.4) + 15
        if ctx.motivated:
            confidence += 5
        return self._candidate(
            StrategyType.BACK_OVER_25,
            "Back Over 2.5",
            min(98, confidence),
            f"Over 2.5 at {over:.0f}% with form score {ctx.score:.0f}.",
        )

    def _lay_the_draw(self, ctx: StrategyContext) -> StrategyCandidate | None:
        config = self.config
        draw = ctx.simulation.draw
        historical = ctx.historical_draw
        odds = ctx.draw_odds if ctx.draw_odds is not None else config.default_draw_odds
        # A tight table clash with a likely draw suits both sides.
        agreed_draw = MotivationBadge.DIRECT_CLASH in ctx.badges and draw > config.biscotto_draw
        if agreed_draw:
            return None
        if not config.ltd_draw_min <= draw <= config.ltd_draw_max:
            return None
        if odds < config.ltd_min_odds or historical >= config.ltd_max_history_draw:
            return None
        confidence = round_half_up(100 - (draw * 0.7 + historical * 0.3)) + 15
        if MotivationBadge.RELEGATION_FIGHT in ctx.badges:
            confidence += 5
        return self._candidate(
            StrategyType.LAY_THE_DRAW,
            "Lay The Draw",
            min(95, confidence),
            f"Draw at {draw:.0f}% (history {historical:.0f}%), draw odds {odds:.2f}.",
        )

    def _second_half_surge(self, ctx: StrategyContext) -> StrategyCandidate | None:
        config = self.config
        if ctx.score < config.surge_min_score or ctx.probability < config.surge_min_probability:
            return None
        confidence = round_half_up(ctx.score * 0.5 + ctx.probability * 0.3 + 15) + 10
        if ctx.motivated:
            confidence += 5
        return self._candidate(
            StrategyType.SECOND_HALF_SURGE,
            "Back Over 0.5 2H",
            min(95, confidence),
            f"Form score {ctx.score:.0f} and signal at {ctx.probability:.0f}% favour a late goal.",
        )

    def _under_35_scalping(self, ctx: StrategyContext) -> StrategyCandidate | None:
        under = ctx.simulation.under_35
        if under < self.config.under_min_probability or ctx.motivated:
            return None
        return self._candidate(
            StrategyType.UNDER_35_SCALPING,
            "Under 3.5 Scalping",
            min(90, round_half_up(under * 0.7 + 15)),
            f"Under 3.5 at {under:.0f}% with nothing at stake.",
        )

    def _ht_sniper(self, ctx: StrategyContext) -> StrategyCandidate | None:
        config = self.config
        ht = ctx.ht_probability
        if not (
            ht >= config.ht_min_probability
            or (ht >= config.ht_motivated_min_probability and ctx.motivated)
        ):
            return None
        confidence = round_half_up(ht)
        if MotivationBadge.TITLE_RACE in ctx.badges:
            confidence += 5
        return self._candidate(
            StrategyType.HT_SNIPER,
            "Back Over 0.5 HT",
            min(95, confidence) - 25,
            f"First-half goal at {ht:.0f}%.",
        )

    def _elite_surge(self, ctx: StrategyContext) -> StrategyCandidate | None:
        gap = abs(ctx.elo_difference)
        if gap <= self.config.elite_min_gap:
            return None
        return self._candidate(
            StrategyType.ELITE_SURGE,
            "BACK 1" if ctx.elo_difference > 0 else "BACK 2",
            min(97, round_half_up(85 + gap / 50)),
            f"ELO gap of {round_half_up(gap)} points.",
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def evaluate(self, ctx: StrategyContext) -> List[StrategyCandidate]:
        """Every qualifying strategy, unranked."""

        templates: Sequence[Callable[[StrategyContext], StrategyCandidate | None]] = (
            self._back_over_25,
            self._lay_the_draw,
            self._second_half_surge,
            self._under_35_scalping,
            self._elite_surge,
        )
        strategies = [item for item in (template(ctx) for template in templates) if item]
        sniper = self._ht_sniper(ctx)
        if sniper is not None:
            # The first-half sniper is only offered without a solid professional play.
            solid = any(
                item.professional and item.confidence > self.config.ht_suppression_threshold
                for item in strategies
            )
            if not solid:
                strategies.append(sniper)
        return strategies

    def _compare(self, a: StrategyCandidate, b: StrategyCandidate) -> int:
        threshold = self.config.professional_threshold
        override = self.config.professional_override
        if a.professional and not b.professional and a.confidence >= threshold and b.confidence < override:
            return -1
        if b.professional and not a.professional and b.confidence >= threshold and a.confidence < override:
            return 1
        return b.confidence - a.confidence

    def rank(self, strategies: Sequence[StrategyCandidate]) -> List[StrategyCandidate]:
        return sorted(strategies, key=functools.cmp_to_key(self._compare))

    def generate(self, ctx: StrategyContext) -> List[StrategyCandidate]:
        """Ranked top strategies (at most ``top_n``)."""

        ranked = self.rank(self.evaluate(ctx))[: self.config.top_n]
        if ranked:
            logger.debug(
                "Ranked strategies: %s",
                ", ".join(f"{item.type.value}={item.confidence}" for item in ranked),
            )
        return ranked

    def best(self, ctx: StrategyContext) -> StrategyCandidate | None:
        ranked = self.generate(ctx)
        return ranked[0] if ranked else None
