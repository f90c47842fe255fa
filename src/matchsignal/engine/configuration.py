from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Sequence

import yaml
from pydantic import BaseModel, Field

ENVIRONMENT_VARIABLE = "MATCHSIGNAL_ENGINE_ENV"
EXTRA_CONFIG_VARIABLE = "MATCHSIGNAL_ENGINE_CONFIG"
ENV_OVERRIDE_PREFIX = "MATCHSIGNAL_ENGINE__"

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[3] / "config" / "engine.yaml"


class SimulationConfig(BaseModel):
    """Monte Carlo controls and Dixon-Coles fitting bounds."""

    iterations: int = 10_000
    default_rho: float = -0.11
    rho_min_matches: int = 500
    rho_min: float = -0.20
    rho_max: float = 0.0
    rho_sensitivity: float = 1.5
    ht_lambda_share: float = 0.45
    jitter_scale: float = 0.3
    lambda_floor: float = 0.1


class RatingsConfig(BaseModel):
    """ELO replay parameters and the ELO contribution to expected goals."""

    k_factor: float = 32.0
    initial_rating: float = 1500.0
    lambda_divisor: float = 1500.0
    lambda_cap: float = 0.20


class PenaltyRules(BaseModel):
    """Points subtracted from a market success rate per offending match."""

    over_nil_nil: float = 5.0
    under_heavy_score: float = 5.0
    under_heavy_goals: int = 4
    under_max_line: float = 3.5
    twelve_draw: float = 5.0


class FormConfig(BaseModel):
    decay_rate: float = 0.0127
    min_weight: float = 0.1
    season_window_months: int = 6
    form_matches: int = 5
    goals_sample: int = 9
    result_sample: int = 5
    min_goals_sample: int = 5
    min_result_sample: int = 3
    draw_rate_limit: int = 30
    form_weight: float = 0.6
    default_scored: float = 1.3
    default_conceded: float = 1.2
    penalties: PenaltyRules = Field(default_factory=PenaltyRules)
    # (first-half goal probability threshold, score adjustment), highest first
    ht_over_boosts: List[List[float]] = Field(
        default_factory=lambda: [[75.0, 15.0], [65.0, 10.0], [55.0, 5.0]]
    )
    ht_under_penalties: List[List[float]] = Field(
        default_factory=lambda: [[75.0, 15.0], [65.0, 10.0]]
    )


class LeagueDNA(BaseModel):
    """Static scoring profile of a league."""

    average_goals: float
    home_advantage: float = 0.0
    entropy: float = 1.0
    volatility: str = "MEDIA"


def _default_league_dna() -> Dict[str, LeagueDNA]:
    table = {
        "eredivisie": (3.27, 0.14, 1.25, "BALLERINA"),
        "bundesliga": (3.27, 0.28, 1.15, "ALTA"),
        "3. liga": (3.27, 0.28, 1.15, "ALTA"),
        "premier league": (2.77, 0.40, 1.10, "MEDIA"),
        "la liga": (2.56, 0.31, 1.00, "STABILE"),
        "serie a": (2.39, 0.05, 0.85, "SOLIDA"),
        "serie b": (2.50, 0.35, 0.80, "SOLIDA"),
        "championship": (2.60, 0.29, 1.10, "MEDIA"),
        "portugal": (2.88, 0.26, 1.05, "MEDIA"),
        "ligat ha'al": (3.01, 0.25, 1.00, "MEDIA"),
        "k league 2": (2.30, 0.41, 0.90, "STABILE"),
    }
    return {
        name: LeagueDNA(
            average_goals=avg, home_advantage=adv, entropy=entropy, volatility=level
        )
        for name, (avg, adv, entropy, level) in table.items()
    }


def _default_entropy_factors() -> Dict[str, float]:
    return {
        "eredivisie": 1.25,
        "bundesliga": 1.15,
        "premier league": 1.10,
        "ligue 1": 1.00,
        "la liga": 0.95,
        "serie a": 0.85,
        "serie b": 0.80,
        "portugal": 1.05,
        "championship": 1.10,
    }


class LeagueConfig(BaseModel):
    baseline_goals: float = 2.72
    global_average_default: float = 2.5
    min_league_matches: int = 20
    min_total_matches: int = 100
    relegation_zone: int = 4
    title_zone: int = 4
    relegation_bonus: float = 0.15
    title_bonus: float = 0.10
    direct_clash_gap: int = 3
    direct_clash_bonus: float = 0.05
    venue_min_matches: int = 3
    venue_ratio_min: float = 1.0
    venue_ratio_max: float = 1.2
    venue_weight: float = 0.05
    dna: Dict[str, LeagueDNA] = Field(default_factory=_default_league_dna)
    entropy_factors: Dict[str, float] = Field(default_factory=_default_entropy_factors)
    cup_keywords: List[str] = Field(
        default_factory=lambda: [
            "cup",
            "coppa",
            "trofeo",
            "copa",
            "final",
            "supercup",
            "supercoppa",
            "super cup",
            "qualifiers",
            "play-off",
            "friendlies",
            "friendly",
            "international",
            "spareggio",
        ]
    )
    category_gap_elo: float = 250.0


class RefinementConfig(BaseModel):
    """Blend of simulated and historical draw rates."""

    simulation_weight: float = 0.7
    history_weight: float = 0.3
    default_draw_rate: float = 25.0
    decisive_tip_shrink: float = 0.9


def _default_min_probability() -> Dict[str, float]:
    return {
        "12": 90.0,
        "1X": 85.0,
        "X2": 85.0,
        "1": 65.0,
        "X": 65.0,
        "2": 65.0,
        "+1.5": 75.0,
        "+2.5": 82.0,
        "GOL": 75.0,
    }


class SelectionConfig(BaseModel):
    min_probability: Dict[str, float] = Field(default_factory=_default_min_probability)
    default_min_probability: float = 75.0
    min_odds: float = 1.01
    max_odds: float = 1.40
    premium_odds: float = 1.30
    premium_min_probability: float = 80.0
    strict_leagues: List[str] = Field(default_factory=lambda: ["serie b", "serie c"])
    strict_over_min_odds: float = 1.20
    min_value_edge: float = 3.0


class TradingConfig(BaseModel):
    top_n: int = 3
    professional_threshold: float = 70.0
    professional_override: float = 90.0
    ht_suppression_threshold: float = 65.0
    default_draw_odds: float = 3.50
    over25_min_probability: float = 45.0
    over25_min_score: float = 60.0
    ltd_draw_min: float = 22.0
    ltd_draw_max: float = 38.0
    ltd_min_odds: float = 3.40
    ltd_max_history_draw: float = 35.0
    biscotto_draw: float = 33.0
    surge_min_score: float = 55.0
    surge_min_probability: float = 50.0
    under_min_probability: float = 60.0
    ht_min_probability: float = 72.0
    ht_motivated_min_probability: float = 65.0
    elite_min_gap: float = 250.0


class BucketConfig(BaseModel):
    """A daily bucket and the filter that fills it.

    ``kind`` is one of ``all``, ``domestic``, ``top_leagues``, ``cup`` or
    ``preset``.
    """

    id: str
    name: str
    kind: str
    enabled: bool = True
    league_prefix: str | None = None
    leagues: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    league_ids: List[str] = Field(default_factory=list)
    tips: List[str] = Field(default_factory=list)
    min_odds: float | None = None
    max_odds: float | None = None
    min_probability: float | None = None
    max_probability: float | None = None


def _default_buckets() -> List[BucketConfig]:
    return [
        BucketConfig(id="all", name="All", kind="all"),
        BucketConfig(
            id="domestic", name="Italia", kind="domestic", league_prefix="eu-ita"
        ),
        BucketConfig(
            id="continental-top",
            name="Top EU",
            kind="top_leagues",
            leagues=[
                "EU-ENG Premier League",
                "EU-ESP La Liga",
                "EU-DEU Bundesliga",
                "EU-FRA Ligue 1",
                "EU-NED Eredivisie",
                "EU-CHE Super League",
                "EU-PRT Primeira Liga",
                "EU-BEL Pro League",
            ],
        ),
        BucketConfig(
            id="cup",
            name="Cups",
            kind="cup",
            keywords=["champions league", "europa league", "conference league"],
        ),
        BucketConfig(
            id="high-winrate",
            name="Winrate 80%",
            kind="preset",
            min_probability=80.0,
        ),
        BucketConfig(
            id="ai-special",
            name="Special AI",
            kind="preset",
            tips=["1X", "X2", "+1.5"],
            min_odds=1.20,
            max_odds=1.60,
            min_probability=75.0,
        ),
    ]


class DistributionConfig(BaseModel):
    blacklist: List[str] = Field(default_factory=list)
    buckets: List[BucketConfig] = Field(default_factory=_default_buckets)
    league_registry: Dict[str, str] = Field(default_factory=dict)


class RuntimeConfig(BaseModel):
    """Batch execution settings; ``workers`` 0 means one per CPU core."""

    workers: int = 1


class EngineConfig(BaseModel):
    """Top level configuration for the prediction engine."""

    environment: str | None = None
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    ratings: RatingsConfig = Field(default_factory=RatingsConfig)
    form: FormConfig = Field(default_factory=FormConfig)
    league: LeagueConfig = Field(default_factory=LeagueConfig)
    refinement: RefinementConfig = Field(default_factory=RefinementConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    trading: TradingConfig = Field(default_factory=TradingConfig)
    distribution: DistributionConfig = Field(default_factory=DistributionConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)


class ConfigurationError(ValueError):
    """Raised when engine configuration validation fails."""


_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise TypeError(f"Configuration at {path} must be a mapping")
    return dict(data)


def _merge_layers(base: Dict[str, Any], layer: Mapping[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = dict(base)
    for key, value in layer.items():
        if (
            key in merged
            and isinstance(merged[key], Mapping)
            and isinstance(value, Mapping)
        ):
            merged[key] = _merge_layers(dict(merged[key]), value)
        else:
            merged[key] = value
    return merged


def _resolve_env_tokens(value: Any) -> Any:
    if isinstance(value, str):
        return _ENV_PATTERN.sub(lambda match: os.getenv(match.group(1), ""), value)
    if isinstance(value, Mapping):
        return {k: _resolve_env_tokens(v) for k, v in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [_resolve_env_tokens(item) for item in value]
    return value


def _coerce_env_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        lowered = raw.lower()
        if lowered in {"true", "false"}:
            return lowered == "true"
        return raw


def _set_nested(mapping: MutableMapping[str, Any], path: Iterable[str], value: Any) -> None:
    segments = list(path)
    if not segments:
        return
    head, *tail = segments
    key = head.lower().replace("-", "_")
    if not tail:
        mapping[key] = value
        return
    child = mapping.get(key)
    if not isinstance(child, MutableMapping):
        child = {}
    else:
        child = dict(child)
    mapping[key] = child
    _set_nested(child, tail, value)


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    updated = dict(data)
    for key, raw_value in os.environ.items():
        if not key.startswith(ENV_OVERRIDE_PREFIX):
            continue
        suffix = key[len(ENV_OVERRIDE_PREFIX) :]
        path = [segment for segment in suffix.split("__") if segment]
        if not path:
            continue
        _set_nested(updated, path, _coerce_env_value(raw_value))
    return updated


def load_engine_config(
    *,
    base_path: str | os.PathLike[str] | None = None,
    environment: str | None = None,
    extra_paths: Sequence[str | os.PathLike[str]] | None = None,
) -> EngineConfig:
    """Load layered configuration for the prediction engine.

    The loader merges ``config/engine.yaml`` with an optional
    environment-specific layer (``config/engine.<env>.yaml``), additional
    override files and ``MATCHSIGNAL_ENGINE__`` environment variables. When no
    ``base_path`` is given and the bundled file is absent (for example in a
    wheel install) the built-in defaults are used as the base layer.
    """

    if base_path is None:
        config_path = DEFAULT_CONFIG_PATH
        data = _load_yaml(config_path) if config_path.exists() else {}
    else:
        config_path = Path(base_path)
        data = _load_yaml(config_path)

    env_name = environment or os.getenv(ENVIRONMENT_VARIABLE) or data.get("environment")
    if isinstance(env_name, str):
        env_path = config_path.with_name(f"{config_path.stem}.{env_name}{config_path.suffix}")
        if env_path.exists():
            data = _merge_layers(data, _load_yaml(env_path))
        data["environment"] = env_name

    merged = dict(data)
    override_sources: list[Path] = []
    if extra_paths:
        override_sources.extend(Path(path) for path in extra_paths)
    env_overrides = os.getenv(EXTRA_CONFIG_VARIABLE)
    if env_overrides:
        override_sources.extend(Path(token) for token in env_overrides.split(os.pathsep) if token)

    for override in override_sources:
        if override.exists():
            merged = _merge_layers(merged, _load_yaml(override))

    merged = _apply_env_overrides(merged)
    merged = _resolve_env_tokens(merged)

    return EngineConfig.model_validate(merged)


def validate_engine_config(config: EngineConfig) -> list[str]:
    """Validate ``config`` and return non-fatal warnings.

    Every hard error is collected before raising so that a broken file can be
    fixed in one pass.
    """

    errors: list[str] = []
    warnings: list[str] = []

    simulation = config.simulation
    if simulation.iterations <= 0:
        errors.append("simulation.iterations must be greater than zero")
    elif simulation.iterations < 1_000:
        warnings.append(
            "simulation.iterations is below 1000; market probabilities will be noisy"
        )
    if simulation.rho_min > simulation.rho_max:
        errors.append("simulation.rho_min must not exceed simulation.rho_max")
    if not simulation.rho_min <= simulation.default_rho <= simulation.rho_max:
        errors.append("simulation.default_rho must lie within [rho_min, rho_max]")
    if simulation.rho_min_matches < 0:
        errors.append("simulation.rho_min_matches must be non-negative")
    if not 0 < simulation.ht_lambda_share <= 1:
        errors.append("simulation.ht_lambda_share must be within (0, 1]")
    if simulation.jitter_scale < 0:
        errors.append("simulation.jitter_scale must be non-negative")
    if simulation.lambda_floor <= 0:
        errors.append("simulation.lambda_floor must be greater than zero")

    ratings = config.ratings
    if ratings.k_factor <= 0:
        errors.append("ratings.k_factor must be greater than zero")
    if ratings.lambda_divisor <= 0:
        errors.append("ratings.lambda_divisor must be greater than zero")
    if not 0 <= ratings.lambda_cap < 1:
        errors.append("ratings.lambda_cap must be within [0, 1)")

    form = config.form
    if form.decay_rate < 0:
        errors.append("form.decay_rate must be non-negative")
    if not 0 < form.min_weight <= 1:
        errors.append("form.min_weight must be within (0, 1]")
    if form.season_window_months <= 0:
        errors.append("form.season_window_months must be greater than zero")
    for name in (
        "form_matches",
        "goals_sample",
        "result_sample",
        "min_goals_sample",
        "min_result_sample",
        "draw_rate_limit",
    ):
        if getattr(form, name) <= 0:
            errors.append(f"form.{name} must be greater than zero")
    if form.min_goals_sample > form.goals_sample:
        errors.append("form.min_goals_sample cannot exceed form.goals_sample")
    if form.min_result_sample > form.result_sample:
        errors.append("form.min_result_sample cannot exceed form.result_sample")
    if not 0 <= form.form_weight <= 1:
        errors.append("form.form_weight must be within [0, 1]")
    for label, table in (
        ("form.ht_over_boosts", form.ht_over_boosts),
        ("form.ht_under_penalties", form.ht_under_penalties),
    ):
        if any(len(row) != 2 for row in table):
            errors.append(f"{label} entries must be [threshold, points] pairs")

    league = config.league
    if league.baseline_goals <= 0:
        errors.append("league.baseline_goals must be greater than zero")
    if league.venue_ratio_min > league.venue_ratio_max:
        errors.append("league.venue_ratio_min must not exceed league.venue_ratio_max")
    for name, dna in league.dna.items():
        if dna.average_goals <= 0:
            errors.append(f"league.dna.{name}.average_goals must be greater than zero")
        if dna.entropy <= 0:
            errors.append(f"league.dna.{name}.entropy must be greater than zero")

    refinement = config.refinement
    weight_total = refinement.simulation_weight + refinement.history_weight
    if refinement.simulation_weight < 0 or refinement.history_weight < 0:
        errors.append("refinement weights must be non-negative")
    elif abs(weight_total - 1.0) > 1e-9:
        warnings.append(
            f"refinement weights sum to {weight_total:.2f}; draw probabilities will be rescaled"
        )

    selection = config.selection
    if selection.min_odds < 1:
        errors.append("selection.min_odds must be at least 1.0")
    if selection.max_odds < selection.min_odds:
        errors.append("selection.max_odds must not be below selection.min_odds")
    for label, threshold in selection.min_probability.items():
        if not 0 <= threshold <= 100:
            errors.append(f"selection.min_probability.{label} must be between 0 and 100")

    trading = config.trading
    if trading.top_n <= 0:
        errors.append("trading.top_n must be greater than zero")
    if trading.ltd_draw_min > trading.ltd_draw_max:
        errors.append("trading.ltd_draw_min must not exceed trading.ltd_draw_max")

    seen_ids: set[str] = set()
    valid_kinds = {"all", "domestic", "top_leagues", "cup", "preset"}
    for bucket in config.distribution.buckets:
        if bucket.id in seen_ids:
            errors.append(f"distribution.buckets has duplicate id {bucket.id!r}")
        seen_ids.add(bucket.id)
        if bucket.kind not in valid_kinds:
            errors.append(
                f"distribution.buckets.{bucket.id}.kind must be one of {sorted(valid_kinds)}"
            )
        if bucket.kind == "domestic" and not bucket.league_prefix:
            errors.append(f"distribution.buckets.{bucket.id} requires league_prefix")
        if bucket.kind == "top_leagues" and not bucket.leagues:
            warnings.append(f"distribution bucket {bucket.id} has no leagues and will be empty")
    if not config.distribution.buckets:
        warnings.append("distribution.buckets is empty; no buckets will be produced")

    if config.runtime.workers < 0:
        errors.append("runtime.workers must be non-negative")

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise ConfigurationError(f"Configuration validation failed:\n{bullet_list}")

    return warnings


__all__ = [
    "BucketConfig",
    "ConfigurationError",
    "DEFAULT_CONFIG_PATH",
    "DistributionConfig",
    "EngineConfig",
    "FormConfig",
    "LeagueConfig",
    "LeagueDNA",
    "PenaltyRules",
    "RatingsConfig",
    "RefinementConfig",
    "RuntimeConfig",
    "SelectionConfig",
    "SimulationConfig",
    "TradingConfig",
    "load_engine_config",
    "validate_engine_config",
]
