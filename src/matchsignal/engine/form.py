"""Time-decayed team form statistics and per-market success scoring."""

from __future__ import annotations

import calendar
import datetime as dt
import logging
import math
import re
from collections.abc import Sequence
from typing import List, Tuple

from .configuration import FormConfig, PenaltyRules
from .models import (
    CurrentForm,
    DrawRate,
    HistoricalMatch,
    MarketScore,
    Score,
    SeasonStats,
    TeamFormReport,
    TeamRef,
)
from .utils import clamp, normalize_team_name, round_half_up

__all__ = ["ALL_MARKETS", "TeamFormAnalyzer", "is_goals_market", "market_success"]

logger = logging.getLogger(__name__)

ALL_MARKETS = "ALL"

_LINE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)")

# A team's appearance in a match: the match and whether it played at home.
_Appearance = Tuple[HistoricalMatch, bool]


def is_goals_market(market: str) -> bool:
    market = market.strip().upper()
    return market.startswith(("+", "-")) or market in {"GOL", "NO GOL"}


def _line(market: str) -> float:
    match = _LINE_PATTERN.search(market)
    if match is None:
        raise ValueError(f"Market {market!r} has no goal line")
    return float(match.group(1))


def market_success(market: str, query_home: bool, team_at_home: bool, score: Score) -> bool:
    """Whether ``score`` counts as a success for ``market``.

    ``query_home`` is the role being analysed (home side of the upcoming
    fixture) and ``team_at_home`` the venue of the team in the past match.
    For result markets the home role looks at the team's home matches and
    the away role at its away matches, always read from the fixture's
    perspective: for tip ``1`` an away side "succeeds" when it lost away.
    """

    market = market.strip().upper()
    home, away = score.home, score.away
    if market.startswith("+"):
        return score.total > _line(market)
    if market.startswith("-"):
        return score.total < _line(market)
    if market == "GOL":
        return home > 0 and away > 0
    if market == "NO GOL":
        return home == 0 or away == 0
    if market == "X":
        return home == away

    as_home = query_home and team_at_home
    as_away = not query_home and not team_at_home
    if market == "1":
        return (as_home or as_away) and home > away
    if market == "2":
        return (as_home or as_away) and away > home
    if market == "1X":
        return (as_home or as_away) and home >= away
    if market == "X2":
        return (as_home or as_away) and away >= home
    if market == "12":
        return (as_home and home > away) or (as_away and away > home)
    return False


def _penalty(market: str, score: Score, rules: PenaltyRules) -> float:
    market = market.strip().upper()
    if market.startswith("+") and score.total == 0:
        return rules.over_nil_nil
    if (
        market.startswith("-")
        and _line(market) <= rules.under_max_line
        and score.total >= rules.under_heavy_goals
    ):
        return rules.under_heavy_score
    if market == "12" and score.home == score.away:
        return rules.twelve_draw
    return 0.0


def _months_before(day: dt.date, months: int) -> dt.date:
    index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return dt.date(year, month, min(day.day, last_day))


def _same_team(side: TeamRef, team_id: str | None, name_key: str) -> bool:
    if side.team_id:
        return bool(team_id) and side.team_id == team_id
    return side.normalized_name == name_key


class TeamFormAnalyzer:
    """Form queries over an immutable, date-sorted history.

    Every query takes an ``as_of`` date: only matches played strictly before
    it are considered and match ages are measured from it, so back-testing a
    past fixture never sees its own result. ``as_of`` defaults to today.
    """

    def __init__(self, config: FormConfig | None = None) -> None:
        self.config = config or FormConfig()

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    def time_weight(self, match_date: dt.date, as_of: dt.date) -> float:
        age_days = max(0, (as_of - match_date).days)
        return max(self.config.min_weight, math.exp(-self.config.decay_rate * age_days))

    def appearances(
        self,
        team: str | TeamRef,
        history: Sequence[HistoricalMatch],
        *,
        team_id: str | None = None,
        as_of: dt.date | None = None,
        since: dt.date | None = None,
    ) -> List[_Appearance]:
        """Played matches of ``team`` before ``as_of``, newest first.

        A side carrying a team id is matched on the id only; a side without
        one on the exact normalised name.
        """

        if isinstance(team, TeamRef):
            team_id = team_id or team.team_id
            team = team.name
        name_key = normalize_team_name(team)
        as_of = as_of or dt.date.today()
        found: List[_Appearance] = []
        for match in history:
            if match.score is None or match.date >= as_of:
                continue
            if since is not None and match.date < since:
                continue
            if _same_team(match.home, team_id, name_key):
                found.append((match, True))
            elif _same_team(match.away, team_id, name_key):
                found.append((match, False))
        found.sort(key=lambda item: item[0].date, reverse=True)
        return found

    # ------------------------------------------------------------------
    # Public queries
    # ------------------------------------------------------------------

    def compute_stats(
        self,
        team: str | TeamRef,
        is_home: bool,
        market: str,
        history: Sequence[HistoricalMatch],
        team_id: str | None = None,
        as_of: dt.date | None = None,
    ) -> TeamFormReport:
        """Season and current form for ``team`` plus a market score.

        With ``market == "ALL"`` the whole history is used and no market score
        is attached; otherwise the season is limited to the configured window
        and ``score`` holds the team's success rate on ``market``.
        """

        ref = team if isinstance(team, TeamRef) else TeamRef(team, team_id)
        if team_id and not ref.team_id:
            ref = TeamRef(ref.name, team_id)
        as_of = as_of or dt.date.today()
        since = None
        if market.strip().upper() != ALL_MARKETS:
            since = _months_before(as_of, self.config.season_window_months)
        appearances = self.appearances(ref, history, as_of=as_of, since=since)

        season = self._season(appearances, as_of)
        current = self._current_form(appearances, season, as_of)
        score = None
        if since is not None:
            score = self._market_score(market, is_home, appearances)
        return TeamFormReport(team=ref, season=season, current_form=current, score=score)

    def score_market(
        self,
        team: str | TeamRef,
        is_home: bool,
        market: str,
        history: Sequence[HistoricalMatch],
        team_id: str | None = None,
        as_of: dt.date | None = None,
    ) -> MarketScore:
        report = self.compute_stats(team, is_home, market, history, team_id, as_of)
        assert report.score is not None
        return report.score

    def draw_rate(
        self,
        team: str | TeamRef,
        history: Sequence[HistoricalMatch],
        team_id: str | None = None,
        as_of: dt.date | None = None,
    ) -> DrawRate:
        """Share of draws, in whole percent, over the most recent matches."""

        recent = self.appearances(team, history, team_id=team_id, as_of=as_of)
        recent = recent[: self.config.draw_rate_limit]
        if not recent:
            return DrawRate(rate=0, total=0, draws=0)
        draws = sum(1 for match, _ in recent if match.score and match.score.outcome == "X")
        return DrawRate(rate=round_half_up(draws / len(recent) * 100), total=len(recent), draws=draws)

    def match_score(
        self,
        home: TeamRef,
        away: TeamRef,
        market: str,
        history: Sequence[HistoricalMatch],
        *,
        as_of: dt.date | None = None,
        ht_probability: float | None = None,
    ) -> int:
        """Fixture-level score: mean of both teams' market scores.

        Over markets get a boost and under markets a penalty when the
        first-half goal probability is high. Insufficient samples count as 0.
        """

        home_score = self.score_market(home, True, market, history, as_of=as_of)
        away_score = self.score_market(away, False, market, history, as_of=as_of)
        value = (home_score.score_value + away_score.score_value) / 2.0
        if ht_probability is not None:
            market_key = market.strip().upper()
            if market_key.startswith("+"):
                value += self._threshold_points(ht_probability, self.config.ht_over_boosts)
            elif market_key.startswith("-"):
                value -= self._threshold_points(ht_probability, self.config.ht_under_penalties)
        return int(clamp(round_half_up(value), 0, 100))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _threshold_points(probability: float, table: Sequence[Sequence[float]]) -> float:
        for threshold, points in sorted(table, key=lambda row: row[0], reverse=True):
            if probability >= threshold:
                return points
        return 0.0

    def _season(self, appearances: Sequence[_Appearance], as_of: dt.date) -> SeasonStats:
        weighted_scored = weighted_conceded = total_weight = 0.0
        wins = draws = losses = 0
        for match, at_home in appearances:
            assert match.score is not None
            scored, conceded = (
                (match.score.home, match.score.away)
                if at_home
                else (match.score.away, match.score.home)
            )
            weight = self.time_weight(match.date, as_of)
            weighted_scored += scored * weight
            weighted_conceded += conceded * weight
            total_weight += weight
            if scored > conceded:
                wins += 1
            elif scored == conceded:
                draws += 1
            else:
                losses += 1
        if total_weight > 0:
            avg_scored = weighted_scored / total_weight
            avg_conceded = weighted_conceded / total_weight
        else:
            avg_scored = self.config.default_scored
            avg_conceded = self.config.default_conceded
        return SeasonStats(
            avg_scored=avg_scored,
            avg_conceded=avg_conceded,
            wins=wins,
            draws=draws,
            losses=losses,
            matches=len(appearances),
            total_weight=total_weight,
        )

    def _current_form(
        self,
        appearances: Sequence[_Appearance],
        season: SeasonStats,
        as_of: dt.date,
    ) -> CurrentForm:
        recent = appearances[: self.config.form_matches]
        weighted_scored = weighted_conceded = total_weight = 0.0
        outcomes: List[str] = []
        for match, at_home in recent:
            assert match.score is not None
            scored, conceded = (
                (match.score.home, match.score.away)
                if at_home
                else (match.score.away, match.score.home)
            )
            weight = self.time_weight(match.date, as_of)
            weighted_scored += scored * weight
            weighted_conceded += conceded * weight
            total_weight += weight
            if scored > conceded:
                outcomes.append("W")
            elif scored == conceded:
                outcomes.append("D")
            else:
                outcomes.append("L")
        if total_weight > 0:
            return CurrentForm(
                avg_scored=weighted_scored / total_weight,
                avg_conceded=weighted_conceded / total_weight,
                outcomes=tuple(outcomes),
                matches=len(recent),
            )
        return CurrentForm(
            avg_scored=season.avg_scored,
            avg_conceded=season.avg_conceded,
            outcomes=(),
            matches=0,
        )

    def _market_score(
        self, market: str, is_home: bool, appearances: Sequence[_Appearance]
    ) -> MarketScore:
        config = self.config
        if is_goals_market(market):
            sample = list(appearances[: config.goals_sample])
            minimum = config.min_goals_sample
        else:
            venue = [item for item in appearances if item[1] == is_home]
            sample = venue[: config.result_sample]
            minimum = config.min_result_sample
        if len(sample) < minimum:
            logger.debug(
                "Insufficient sample for %s: %d matches (min %d)", market, len(sample), minimum
            )
            return MarketScore(
                market=market,
                score_value=0,
                sample_size=len(sample),
                insufficient_data=True,
            )

        successes = 0
        penalty = 0.0
        for match, at_home in sample:
            assert match.score is not None
            if market_success(market, is_home, at_home, match.score):
                successes += 1
            penalty += _penalty(market, match.score, config.penalties)
        success_rate = successes / len(sample) * 100.0
        return MarketScore(
            market=market,
            score_value=max(0, round_half_up(success_rate - penalty)),
            success_rate=success_rate,
            sample_size=len(sample),
            penalty=penalty,
        )
