"""Shared helpers for odds, probabilities and name normalisation."""

from __future__ import annotations

import math
import re
import unicodedata

__all__ = [
    "clamp",
    "clean_league_name",
    "normalize_league_name",
    "normalize_team_name",
    "parse_decimal_odds",
    "parse_score",
    "parse_teams",
    "probability_to_odds",
    "round_half_up",
]

_SCORE_PATTERN = re.compile(r"(\d+)\s*[-–:]\s*(\d+)")
_TEAMS_PATTERN = re.compile(r"\s+[-–]\s+|\s*[–]\s*")
_LEAGUE_PREFIX = re.compile(r"^eu-[a-z]{3}\s*")
_BRACKETS = re.compile(r"\[.*?\]")
_WHITESPACE = re.compile(r"\s+")

# Characters that NFD decomposition does not fold into ASCII.
_TRANSLITERATIONS = str.maketrans(
    {
        "ß": "ss",
        "ø": "o",
        "Ø": "o",
        "æ": "ae",
        "Æ": "ae",
        "œ": "oe",
        "Œ": "oe",
        "ł": "l",
        "Ł": "l",
        "đ": "d",
        "Đ": "d",
        "ı": "i",
    }
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded towards +inf."""

    return int(math.floor(value + 0.5))


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def normalize_team_name(name: str) -> str:
    """Return a case and accent insensitive key for ``name``."""

    folded = name.translate(_TRANSLITERATIONS)
    decomposed = unicodedata.normalize("NFD", folded)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", stripped).strip().casefold()


def normalize_league_name(league: str) -> str:
    return _WHITESPACE.sub(" ", league).strip().lower()


def clean_league_name(league: str) -> str:
    """Strip country prefixes (``EU-ITA``) and bracketed notes from a league."""

    cleaned = _LEAGUE_PREFIX.sub("", normalize_league_name(league))
    cleaned = _BRACKETS.sub("", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


def parse_decimal_odds(value: object | None) -> float | None:
    """Parse bookmaker odds, accepting comma decimal separators.

    Returns ``None`` for missing, unparseable or non-positive values.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", ".")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or number <= 0:
        return None
    return number


def probability_to_odds(probability: float) -> float:
    """Convert a percentage probability to fair decimal odds."""

    if probability <= 0:
        return 100.0
    return round(100.0 / probability, 2)


def parse_score(value: object | None) -> tuple[int, int] | None:
    """Parse ``"2-1"`` style results; anything else yields ``None``."""

    if value is None:
        return None
    match = _SCORE_PATTERN.search(str(value))
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def parse_teams(value: object | None) -> tuple[str, str] | None:
    """Split a ``"Home - Away"`` match label into its two team names."""

    if value is None:
        return None
    parts = [part.strip() for part in _TEAMS_PATTERN.split(str(value)) if part.strip()]
    if len(parts) != 2:
        return None
    return parts[0], parts[1]
