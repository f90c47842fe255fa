from __future__ import annotations

from pathlib import Path

import pytest

from matchsignal.engine.configuration import (
    DEFAULT_CONFIG_PATH,
    BucketConfig,
    ConfigurationError,
    DistributionConfig,
    EngineConfig,
    FormConfig,
    RuntimeConfig,
    SimulationConfig,
    load_engine_config,
    validate_engine_config,
)


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MATCHSIGNAL_ENGINE_ENV", raising=False)
    monkeypatch.delenv("MATCHSIGNAL_ENGINE_CONFIG", raising=False)


def test_default_configuration_loads() -> None:
    assert DEFAULT_CONFIG_PATH.exists()
    config = load_engine_config()
    assert isinstance(config, EngineConfig)
    assert config.simulation.iterations == 10_000
    assert config.ratings.k_factor == pytest.approx(32.0)
    assert "Friendlies" in config.distribution.blacklist
    # Sections missing from the file keep their built-in defaults.
    assert [bucket.id for bucket in config.distribution.buckets][0] == "all"
    assert validate_engine_config(config) == []


def test_built_in_defaults_are_valid() -> None:
    assert validate_engine_config(EngineConfig()) == []


def test_configuration_layers_and_env_overrides(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    base = tmp_path / "engine.yaml"
    base.write_text(
        """
simulation:
  iterations: 2000
  ht_lambda_share: 0.4
trading:
  top_n: 3
runtime:
  workers: 1
"""
    )
    env_override = tmp_path / "engine.production.yaml"
    env_override.write_text(
        """
simulation:
  iterations: 3000
"""
    )
    extra_override = tmp_path / "override.yaml"
    extra_override.write_text(
        """
trading:
  top_n: 2
"""
    )

    monkeypatch.setenv("MATCHSIGNAL_ENGINE_ENV", "production")
    monkeypatch.setenv("MATCHSIGNAL_ENGINE_CONFIG", str(extra_override))
    monkeypatch.setenv("MATCHSIGNAL_ENGINE__runtime__workers", "4")
    monkeypatch.setenv("MATCHSIGNAL_ENGINE__selection__strict_leagues", '["serie c"]')

    config = load_engine_config(base_path=base)

    assert config.environment == "production"
    assert config.simulation.iterations == 3000
    assert config.trading.top_n == 2
    assert config.runtime.workers == 4
    assert config.selection.strict_leagues == ["serie c"]
    # Values only present in the base layer survive the merge.
    assert config.simulation.ht_lambda_share == pytest.approx(0.4)


def test_explicit_environment_and_extra_paths(tmp_path: Path) -> None:
    base = tmp_path / "engine.yaml"
    base.write_text("form:\n  form_weight: 0.5\n")
    (tmp_path / "engine.staging.yaml").write_text("form:\n  draw_rate_limit: 20\n")
    extra = tmp_path / "extra.yaml"
    extra.write_text("form:\n  form_weight: 0.7\n")

    config = load_engine_config(base_path=base, environment="staging", extra_paths=[extra])

    assert config.form.draw_rate_limit == 20
    assert config.form.form_weight == pytest.approx(0.7)


def test_environment_token_substitution(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLOCKED_LEAGUE", "Friendlies")
    base = tmp_path / "engine.yaml"
    base.write_text(
        """
distribution:
  blacklist:
    - "${BLOCKED_LEAGUE}"
"""
    )
    config = load_engine_config(base_path=base)
    assert config.distribution.blacklist == ["Friendlies"]


def test_missing_explicit_base_path(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_engine_config(base_path=tmp_path / "missing.yaml")


def test_non_mapping_file_is_rejected(tmp_path: Path) -> None:
    base = tmp_path / "engine.yaml"
    base.write_text("- just\n- a list\n")
    with pytest.raises(TypeError):
        load_engine_config(base_path=base)


def test_validation_collects_every_error() -> None:
    config = EngineConfig(
        simulation=SimulationConfig(iterations=0, rho_min=0.1, rho_max=0.0),
        form=FormConfig(min_goals_sample=12),
        runtime=RuntimeConfig(workers=-1),
    )
    with pytest.raises(ConfigurationError) as excinfo:
        validate_engine_config(config)
    message = str(excinfo.value)
    assert "simulation.iterations must be greater than zero" in message
    assert "simulation.rho_min must not exceed simulation.rho_max" in message
    assert "form.min_goals_sample cannot exceed form.goals_sample" in message
    assert "runtime.workers must be non-negative" in message


def test_validation_warnings() -> None:
    config = EngineConfig(simulation=SimulationConfig(iterations=500))
    warnings = validate_engine_config(config)
    assert any("iterations is below 1000" in message for message in warnings)


def test_bucket_validation() -> None:
    config = EngineConfig(
        distribution=DistributionConfig(
            buckets=[
                BucketConfig(id="a", name="A", kind="all"),
                BucketConfig(id="a", name="Again", kind="all"),
                BucketConfig(id="b", name="B", kind="domestic"),
                BucketConfig(id="c", name="C", kind="unknown"),
            ]
        )
    )
    with pytest.raises(ConfigurationError) as excinfo:
        validate_engine_config(config)
    message = str(excinfo.value)
    assert "duplicate id 'a'" in message
    assert "distribution.buckets.b requires league_prefix" in message
    assert "distribution.buckets.c.kind" in message
