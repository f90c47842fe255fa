"""
matchsignal: football match prediction and betting signal ranking.

This package rates teams from historical results, simulates fixtures with a
seeded Monte Carlo engine and ranks the resulting betting and in-play trading
signals. The engine lives in :mod:`matchsignal.engine`.
"""

from importlib.metadata import PackageNotFoundError, version

try:  # pragma: no cover - exercised in packaging workflows
    __version__ = version("matchsignal")
except PackageNotFoundError:  # pragma: no cover - local editable installs
    __version__ = "0.0.0"

_EXPORTS = {
    # Engine entry points
    "build_engine_profile": ".engine.profile",
    "predict_day": ".engine.pipeline",
    "MatchPredictor": ".engine.pipeline",
    "MatchSimulator": ".engine.simulation",
    "StrategyDistributor": ".engine.distribution",
    "load_engine_config": ".engine.configuration",
    "load_match_history": ".engine.ingestion",
    # Settings
    "get_config": ".config",
    "update_config": ".config",
    "reset_config": ".config",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> object:  # pragma: no cover - thin lazy importer
    from importlib import import_module

    target_module = _EXPORTS.get(name)
    if not target_module:
        raise AttributeError(f"module {__name__} has no attribute {name}")
    module = import_module(target_module, __name__)
    attr = getattr(module, name)
    globals()[name] = attr
    return attr
