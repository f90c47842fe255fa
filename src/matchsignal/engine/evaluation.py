"""Settle signals and trading labels against a (partial or final) score."""

from __future__ import annotations

import dataclasses
import enum
import re

from .models import Score
from .utils import parse_score

__all__ = ["Outcome", "Settlement", "settle_signal"]


class Outcome(str, enum.Enum):
    WON = "won"
    LOST = "lost"
    CASH_OUT = "cash_out"
    LIVE_GREEN = "live_green"


@dataclasses.dataclass(frozen=True, slots=True)
class Settlement:
    label: str
    score: Score
    outcome: Outcome
    finished: bool = True


_TRADE_UNDER = re.compile(r"\b(?:back under|lay over)\s*(\d(?:\.5)?)")
_TRADE_OVER = re.compile(r"\b(?:back over|lay under)\s*(\d(?:\.5)?)")
_LAY_DRAW = re.compile(r"\blay\s*(?:the\s*)?draw\b")
_OVER = re.compile(r"(?:\+|\bover\s*|\bo\s?)(\d\.5)")
_UNDER = re.compile(r"(?:-|\bunder\s*|\bu\s?)(\d\.5)")
_RESULT_LABELS = {
    "1": lambda s: s.home > s.away,
    "2": lambda s: s.away > s.home,
    "x": lambda s: s.home == s.away,
    "1x": lambda s: s.home >= s.away,
    "x1": lambda s: s.home >= s.away,
    "x2": lambda s: s.away >= s.home,
    "2x": lambda s: s.away >= s.home,
    "12": lambda s: s.home != s.away,
    "21": lambda s: s.home != s.away,
}


def _hold_until_end(lost: bool, finished: bool) -> Outcome | None:
    """Outcome of a bet that is won by *not* seeing goals."""

    if lost:
        return Outcome.LOST
    return Outcome.WON if finished else Outcome.LIVE_GREEN


def _reach_line(reached: bool, finished: bool) -> Outcome | None:
    """Outcome of a bet that is won as soon as a goal line is passed."""

    if reached:
        return Outcome.WON
    return Outcome.LOST if finished else None


def _evaluate(text: str, score: Score, finished: bool) -> Outcome | None:
    total = score.total

    trade = _TRADE_UNDER.search(text)
    if trade:
        return _hold_until_end(total > float(trade.group(1)), finished)
    trade = _TRADE_OVER.search(text)
    if trade:
        if total > float(trade.group(1)):
            return Outcome.WON
        if not finished:
            return None
        return Outcome.CASH_OUT if total > 0 else Outcome.LOST
    if _LAY_DRAW.search(text):
        if score.home != score.away:
            return Outcome.WON if finished else Outcome.LIVE_GREEN
        if not finished:
            return None
        return Outcome.CASH_OUT if total >= 2 else Outcome.LOST

    if "ht" in text or "1t" in text:
        # First-half markets cannot be read from a full-time score, except
        # that a goalless full-time result rules every first-half goal out.
        if _OVER.search(text) and finished and total == 0:
            return Outcome.LOST
        return None

    over = _OVER.search(text)
    if over:
        return _reach_line(total > float(over.group(1)), finished)
    under = _UNDER.search(text)
    if under:
        return _hold_until_end(total > float(under.group(1)), finished)

    both_scored = score.home > 0 and score.away > 0
    if text in {"no gol", "no goal", "ng"}:
        return _hold_until_end(both_scored, finished)
    if text in {"gol", "goal", "gg"} or "btts" in text:
        return _reach_line(both_scored, finished)

    compact = re.sub(r"[^a-z0-9]", "", text)
    rule = _RESULT_LABELS.get(compact)
    if rule is None or not finished:
        return None
    return Outcome.WON if rule(score) else Outcome.LOST


def settle_signal(
    label: str,
    score: Score | str,
    finished: bool = True,
) -> Settlement | None:
    """Settle ``label`` (``"+2.5"``, ``"1X"``, ``"Lay The Draw"``...) on ``score``.

    Returns ``None`` when the label is unknown, the score unparseable, or the
    outcome still open on an unfinished match.
    """

    if not label:
        return None
    if not isinstance(score, Score):
        parsed = parse_score(score)
        if parsed is None:
            return None
        score = Score(*parsed)
    outcome = _evaluate(label.strip().lower(), score, finished)
    if outcome is None:
        return None
    return Settlement(label=label, score=score, outcome=outcome, finished=finished)
