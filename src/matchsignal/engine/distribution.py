"""Daily distribution of analysed matches into strategy buckets."""

from __future__ import annotations

import dataclasses
import datetime as dt
import logging
from collections.abc import Iterable, Mapping
from typing import Callable, Dict, List

from .configuration import BucketConfig, DistributionConfig
from .models import BucketEntry, StrategyBucket
from .utils import normalize_league_name

__all__ = ["StrategyDistributor"]

logger = logging.getLogger(__name__)

_Filter = Callable[[BucketEntry], bool]


class StrategyDistributor:
    """Pure function from a day's entries to named buckets.

    Entries are keyed by fixture id: rows without one never reach a bucket,
    and a repeated id keeps its first position but the latest values.
    """

    def __init__(self, config: DistributionConfig | None = None) -> None:
        self.config = config or DistributionConfig()
        self._blacklist = frozenset(
            normalize_league_name(league) for league in self.config.blacklist if league
        )
        self._registry: Mapping[str, str] = {
            normalize_league_name(league): league_id
            for league, league_id in self.config.league_registry.items()
        }

    def pool(
        self, entries: Iterable[BucketEntry], date: dt.date | None = None
    ) -> List[BucketEntry]:
        unique: Dict[str, BucketEntry] = {}
        discarded = 0
        for entry in entries:
            if date is not None and entry.date != date:
                continue
            if not entry.fixture_id:
                discarded += 1
                continue
            if not entry.league_id:
                league_id = self._registry.get(normalize_league_name(entry.league))
                if league_id:
                    entry = dataclasses.replace(entry, league_id=league_id)
            unique[str(entry.fixture_id)] = entry
        if discarded:
            logger.debug("Discarded %d entries without a fixture id", discarded)
        return [entry for entry in unique.values() if not self.blacklisted(entry.league)]

    def blacklisted(self, league: str) -> bool:
        raw = league.lower().strip()
        return raw in self._blacklist or normalize_league_name(league) in self._blacklist

    def _filter(self, bucket: BucketConfig) -> _Filter:
        kind = bucket.kind
        if kind == "all":
            return lambda entry: bool((entry.tip or "").strip() or entry.ai_tip)
        if kind == "domestic":
            prefix = normalize_league_name(bucket.league_prefix or "")
            return lambda entry: bool(prefix) and normalize_league_name(entry.league).startswith(prefix)
        if kind == "top_leagues":
            leagues = {normalize_league_name(name) for name in bucket.leagues}
            return lambda entry: normalize_league_name(entry.league) in leagues
        if kind == "cup":
            keywords = [keyword.lower() for keyword in bucket.keywords]
            return lambda entry: any(
                keyword in normalize_league_name(entry.league) for keyword in keywords
            )
        if kind == "preset":
            return _preset_filter(bucket)
        raise ValueError(f"Unknown bucket kind: {kind}")

    def distribute(
        self, entries: Iterable[BucketEntry], date: dt.date | None = None
    ) -> Dict[str, StrategyBucket]:
        pool = self.pool(entries, date)
        buckets: Dict[str, StrategyBucket] = {}
        for bucket in self.config.buckets:
            if not bucket.enabled:
                continue
            accept = self._filter(bucket)
            buckets[bucket.id] = StrategyBucket(
                id=bucket.id,
                name=bucket.name,
                kind=bucket.kind,
                entries=tuple(entry for entry in pool if accept(entry)),
            )
        logger.info(
            "Distributed %d matches into %d buckets", len(pool), len(buckets)
        )
        return buckets


def _preset_filter(bucket: BucketConfig) -> _Filter:
    league_ids = {str(value) for value in bucket.league_ids}
    tips = {tip.strip().upper() for tip in bucket.tips}

    def accept(entry: BucketEntry) -> bool:
        if league_ids and str(entry.league_id or "") not in league_ids:
            return False
        if tips and (entry.tip or "").strip().upper() not in tips:
            return False
        if bucket.min_odds is not None or bucket.max_odds is not None:
            if entry.odds is None:
                return False
            if bucket.min_odds is not None and entry.odds < bucket.min_odds:
                return False
            if bucket.max_odds is not None and entry.odds > bucket.max_odds:
                return False
        if bucket.min_probability is not None or bucket.max_probability is not None:
            if entry.probability is None:
                return False
            if bucket.min_probability is not None and entry.probability < bucket.min_probability:
                return False
            if bucket.max_probability is not None and entry.probability > bucket.max_probability:
                return False
        return True

    return accept
