"""Football match prediction and signal-ranking engine.

The engine turns a table of past results into per-fixture predictions:
ELO ratings and time-decayed form feed expected goals, a seeded Monte Carlo
simulator with a Dixon-Coles correction prices every market, and the
selection, trading and distribution layers turn those prices into a best
pick, ranked in-play strategies and daily buckets.

Components are plain classes configured from :mod:`.configuration`; the only
shared state is the immutable :class:`EngineProfile` built once per dataset.
"""

from .configuration import (
    ConfigurationError,
    EngineConfig,
    load_engine_config,
    validate_engine_config,
)
from .distribution import StrategyDistributor
from .evaluation import Outcome, Settlement, settle_signal
from .form import TeamFormAnalyzer
from .ingestion import (
    build_fixtures,
    build_history,
    build_standings,
    load_fixtures,
    load_match_history,
    load_standings,
)
from .league import LeagueProfileResolver, dynamic_goal_factors, fit_rho, league_performance
from .logging import configure_logging
from .models import (
    BucketEntry,
    Fixture,
    HistoricalMatch,
    LeagueProfile,
    MarketScore,
    MarketType,
    MatchOdds,
    MotivationBadge,
    Score,
    SignalCandidate,
    SimulationResult,
    Stability,
    StandingRow,
    StandingSplit,
    StrategyBucket,
    StrategyCandidate,
    StrategyType,
    TeamFormReport,
    TeamRef,
)
from .pipeline import MatchPrediction, MatchPredictor, compose_lambdas, predict_day
from .profile import EngineProfile, build_engine_profile
from .ratings import EloRatings, TeamRatingStore
from .selection import SignalSelector, ValueEdge, value_edge
from .simulation import MatchSimulator, Mulberry32, RandomSource, refine_draw
from .strategies import StrategyContext, TradingStrategyGenerator

__all__ = [
    "BucketEntry",
    "ConfigurationError",
    "EloRatings",
    "EngineConfig",
    "EngineProfile",
    "Fixture",
    "HistoricalMatch",
    "LeagueProfile",
    "LeagueProfileResolver",
    "MarketScore",
    "MarketType",
    "MatchOdds",
    "MatchPrediction",
    "MatchPredictor",
    "MatchSimulator",
    "MotivationBadge",
    "Mulberry32",
    "Outcome",
    "RandomSource",
    "Score",
    "Settlement",
    "SignalCandidate",
    "SignalSelector",
    "SimulationResult",
    "Stability",
    "StandingRow",
    "StandingSplit",
    "StrategyBucket",
    "StrategyCandidate",
    "StrategyContext",
    "StrategyDistributor",
    "StrategyType",
    "TeamFormAnalyzer",
    "TeamFormReport",
    "TeamRatingStore",
    "TeamRef",
    "TradingStrategyGenerator",
    "ValueEdge",
    "build_engine_profile",
    "build_fixtures",
    "build_history",
    "build_standings",
    "compose_lambdas",
    "configure_logging",
    "dynamic_goal_factors",
    "fit_rho",
    "league_performance",
    "load_engine_config",
    "load_fixtures",
    "load_match_history",
    "load_standings",
    "predict_day",
    "refine_draw",
    "settle_signal",
    "validate_engine_config",
    "value_edge",
]
