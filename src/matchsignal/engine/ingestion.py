"""Ingestion boundary turning loosely shaped feed rows into engine records.

Feeds disagree on column names (``date`` vs ``data``, ``home`` vs a single
``"Home - Away"`` label, several spellings for odds). Everything is resolved
here so that the statistical components only ever see strict, typed records.
Rows lacking a usable date or two teams are dropped; unparseable scores are
kept as ``score=None``.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any, Dict, List, Tuple

import polars as pl

from .models import (
    Fixture,
    HistoricalMatch,
    MatchOdds,
    Score,
    StandingRow,
    StandingSplit,
    TeamRef,
)
from .utils import parse_decimal_odds, parse_score, parse_teams

__all__ = [
    "build_fixtures",
    "build_history",
    "build_standings",
    "load_fixtures",
    "load_match_history",
    "load_standings",
    "load_table",
    "normalize_fixture",
    "normalize_match",
    "normalize_standing",
    "parse_date",
]

logger = logging.getLogger(__name__)

_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y", "%Y/%m/%d")
_PERCENT_PATTERN = re.compile(r"(\d+(?:[.,]\d+)?)\s*%")

_DATE_KEYS = ("date", "data", "match_date", "kickoff")
_HOME_KEYS = ("home", "home_team", "squadra_casa")
_AWAY_KEYS = ("away", "away_team", "squadra_ospite")
_LABEL_KEYS = ("match", "partita", "teams")
_HOME_ID_KEYS = ("home_id", "home_team_id", "team_id_home", "teamIdHome", "homeId")
_AWAY_ID_KEYS = ("away_id", "away_team_id", "team_id_away", "teamIdAway", "awayId")
_LEAGUE_KEYS = ("league", "lega", "competition")
_LEAGUE_ID_KEYS = ("league_id", "leagueId")
_SCORE_KEYS = ("score", "result", "risultato", "ft_score")
_HOME_GOALS_KEYS = ("home_goals", "home_score", "goals_home")
_AWAY_GOALS_KEYS = ("away_goals", "away_score", "goals_away")
_FIXTURE_ID_KEYS = ("fixture_id", "fixtureId", "id")
_TIP_KEYS = ("tip",)
_TIP_ODDS_KEYS = ("odds", "quota")
_HT_KEYS = ("ht_probability", "info_ht")

_ODDS_KEYS: Mapping[str, Tuple[str, ...]] = {
    "home": ("odds_home", "home_odds", "quota_1", "q1"),
    "draw": ("odds_draw", "draw_odds", "quota_x", "qx"),
    "away": ("odds_away", "away_odds", "quota_2", "q2"),
    "home_or_draw": ("odds_1x", "quota_1x", "q1x"),
    "draw_or_away": ("odds_x2", "quota_x2", "qx2"),
    "home_or_away": ("odds_12", "quota_12", "q12"),
    "over_15": ("odds_over_15", "quota_over_15", "over_1_5"),
    "over_25": ("odds_over_25", "quota_over_25", "over_2_5"),
    "over_35": ("odds_over_35", "quota_over_35", "over_3_5"),
    "under_15": ("odds_under_15", "quota_under_15", "under_1_5"),
    "under_25": ("odds_under_25", "quota_under_25", "under_2_5"),
    "under_35": ("odds_under_35", "quota_under_35", "under_3_5"),
    "over_05_ht": ("odds_over_05_ht", "quota_over_05_ht", "over_0_5_ht"),
    "btts_yes": ("odds_btts_yes", "odds_gg", "quota_gg"),
    "btts_no": ("odds_btts_no", "odds_ng", "quota_ng"),
}


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _first(row: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = row.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def parse_date(value: Any) -> dt.date | None:
    """Parse a feed date; datetimes are truncated to their calendar day."""

    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return dt.date.fromisoformat(text[:10])
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return dt.datetime.strptime(text[:10], fmt).date()
        except ValueError:
            continue
    return None


def _parse_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(str(value).strip()))
    except ValueError:
        return None


def _parse_percent(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    match = _PERCENT_PATTERN.search(str(value))
    if match is None:
        return parse_decimal_odds(value)
    return float(match.group(1).replace(",", "."))


def _resolve_teams(row: Mapping[str, Any]) -> Tuple[TeamRef, TeamRef] | None:
    home_name = _optional_str(_first(row, _HOME_KEYS))
    away_name = _optional_str(_first(row, _AWAY_KEYS))
    if not (home_name and away_name):
        parsed = parse_teams(_first(row, _LABEL_KEYS))
        if parsed is None:
            return None
        home_name, away_name = parsed
    home = TeamRef(home_name, _optional_str(_first(row, _HOME_ID_KEYS)))
    away = TeamRef(away_name, _optional_str(_first(row, _AWAY_ID_KEYS)))
    return home, away


def _resolve_score(row: Mapping[str, Any]) -> Score | None:
    home_goals = _parse_int(_first(row, _HOME_GOALS_KEYS))
    away_goals = _parse_int(_first(row, _AWAY_GOALS_KEYS))
    if home_goals is not None and away_goals is not None:
        if home_goals < 0 or away_goals < 0:
            return None
        return Score(home_goals, away_goals)
    parsed = parse_score(_first(row, _SCORE_KEYS))
    if parsed is None:
        return None
    return Score(*parsed)


def _resolve_odds(row: Mapping[str, Any], tip: str | None) -> MatchOdds:
    values: Dict[str, float | None] = {
        attribute: parse_decimal_odds(_first(row, keys))
        for attribute, keys in _ODDS_KEYS.items()
    }
    odds = MatchOdds(**values)
    # A bare ``odds`` column prices the row's own tip.
    tip_odds = parse_decimal_odds(_first(row, _TIP_ODDS_KEYS))
    if tip and tip_odds is not None and odds.for_label(tip) is None:
        return odds.with_label(tip, tip_odds)
    return odds


# ---------------------------------------------------------------------------
# Row normalisation
# ---------------------------------------------------------------------------


def normalize_match(row: Mapping[str, Any] | HistoricalMatch) -> HistoricalMatch | None:
    """Return a :class:`HistoricalMatch` or ``None`` when the row is unusable."""

    if isinstance(row, HistoricalMatch):
        return row
    date = parse_date(_first(row, _DATE_KEYS))
    teams = _resolve_teams(row)
    if date is None or teams is None:
        return None
    tip = _optional_str(_first(row, _TIP_KEYS))
    return HistoricalMatch(
        date=date,
        home=teams[0],
        away=teams[1],
        league=_optional_str(_first(row, _LEAGUE_KEYS)) or "",
        score=_resolve_score(row),
        odds=_resolve_odds(row, tip),
        fixture_id=_optional_str(_first(row, _FIXTURE_ID_KEYS)),
        league_id=_optional_str(_first(row, _LEAGUE_ID_KEYS)),
        tip=tip,
    )


def normalize_fixture(row: Mapping[str, Any] | Fixture) -> Fixture | None:
    if isinstance(row, Fixture):
        return row
    date = parse_date(_first(row, _DATE_KEYS))
    teams = _resolve_teams(row)
    if date is None or teams is None:
        return None
    tip = _optional_str(_first(row, _TIP_KEYS))
    return Fixture(
        date=date,
        home=teams[0],
        away=teams[1],
        league=_optional_str(_first(row, _LEAGUE_KEYS)) or "",
        fixture_id=_optional_str(_first(row, _FIXTURE_ID_KEYS)),
        league_id=_optional_str(_first(row, _LEAGUE_ID_KEYS)),
        odds=_resolve_odds(row, tip),
        tip=tip,
        ht_probability=_parse_percent(_first(row, _HT_KEYS)),
    )


def _split(row: Mapping[str, Any], prefix: str) -> StandingSplit:
    played = _parse_int(row.get(f"{prefix}played")) or 0
    goals_for = _parse_int(row.get(f"{prefix}goals_for")) or 0
    return StandingSplit(played=played, goals_for=goals_for)


def normalize_standing(row: Mapping[str, Any] | StandingRow) -> StandingRow | None:
    """Normalise a standings row.

    Expected columns are ``team``/``team_id``, ``rank``, ``points`` and the
    optional ``played``/``goals_for`` totals with ``home_`` and ``away_``
    prefixed splits.
    """

    if isinstance(row, StandingRow):
        return row
    name = _optional_str(_first(row, ("team", "team_name", "name")))
    rank = _parse_int(_first(row, ("rank", "position")))
    if not name or rank is None:
        return None
    return StandingRow(
        team=TeamRef(name, _optional_str(_first(row, ("team_id", "teamId")))),
        rank=rank,
        points=_parse_int(_first(row, ("points", "pts"))) or 0,
        overall=_split(row, ""),
        home=_split(row, "home_"),
        away=_split(row, "away_"),
    )


def build_history(
    rows: Iterable[Mapping[str, Any] | HistoricalMatch],
) -> Tuple[HistoricalMatch, ...]:
    """Normalise ``rows`` and return them sorted by date (stable)."""

    matches: List[HistoricalMatch] = []
    dropped = 0
    for row in rows:
        match = normalize_match(row)
        if match is None:
            dropped += 1
            continue
        matches.append(match)
    if dropped:
        logger.debug("Dropped %d history rows without a date or two teams", dropped)
    matches.sort(key=lambda match: match.date)
    return tuple(matches)


def build_fixtures(rows: Iterable[Mapping[str, Any] | Fixture]) -> List[Fixture]:
    fixtures: List[Fixture] = []
    for row in rows:
        fixture = normalize_fixture(row)
        if fixture is None:
            logger.debug("Skipping fixture row without a date or two teams: %s", row)
            continue
        fixtures.append(fixture)
    return fixtures


def build_standings(
    rows: Iterable[Mapping[str, Any]],
) -> Dict[str, Tuple[StandingRow, ...]]:
    """Group standings rows by their ``league_id`` (or ``league``) column."""

    grouped: Dict[str, List[StandingRow]] = {}
    for row in rows:
        standing = normalize_standing(row)
        if standing is None:
            continue
        league = _optional_str(_first(row, _LEAGUE_ID_KEYS)) or _optional_str(
            _first(row, _LEAGUE_KEYS)
        )
        if league is None:
            continue
        grouped.setdefault(league, []).append(standing)
    return {
        league: tuple(sorted(table, key=lambda item: item.rank))
        for league, table in grouped.items()
    }


# ---------------------------------------------------------------------------
# File loading
# ---------------------------------------------------------------------------


def load_table(path: str | Path) -> pl.DataFrame:
    """Load CSV or Parquet rows from a file or a directory of files.

    CSV columns are read as strings so that identifiers keep leading zeros and
    mixed score formats survive untouched.
    """

    target = Path(path)
    if not target.exists():
        raise FileNotFoundError(f"Data path does not exist: {target}")

    files: list[Path]
    if target.is_file():
        files = [target]
    else:
        files = sorted(
            [
                candidate
                for candidate in target.rglob("*")
                if candidate.suffix.lower() in {".csv", ".parquet"}
            ]
        )
    if not files:
        raise ValueError(f"No data files found under {target}")

    frames: list[pl.DataFrame] = []
    for file in files:
        if file.suffix.lower() == ".csv":
            frames.append(pl.read_csv(file, infer_schema_length=0))
        elif file.suffix.lower() == ".parquet":
            frames.append(pl.read_parquet(file))
        else:
            raise ValueError(f"Unsupported data format: {file.suffix}")

    if len(frames) == 1:
        return frames[0]
    return pl.concat(frames, how="diagonal_relaxed")


def load_match_history(path: str | Path) -> Tuple[HistoricalMatch, ...]:
    frame = load_table(path)
    history = build_history(frame.iter_rows(named=True))
    logger.info("Loaded %d history rows from %s", len(history), path)
    return history


def load_fixtures(path: str | Path) -> List[Fixture]:
    return build_fixtures(load_table(path).iter_rows(named=True))


def load_standings(path: str | Path) -> Dict[str, Tuple[StandingRow, ...]]:
    return build_standings(load_table(path).iter_rows(named=True))
