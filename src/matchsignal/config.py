"""Configuration management for matchsignal."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MatchsignalConfig(BaseSettings):
    """Process-level settings for matchsignal."""

    # Engine configuration
    engine_config_path: Path | None = Field(
        default=None,
        description="Base YAML file for the engine (defaults to config/engine.yaml)",
        alias="MATCHSIGNAL_ENGINE_CONFIG_PATH",
    )

    environment: str | None = Field(
        default=None,
        description="Configuration layer to merge, e.g. 'production'",
        alias="MATCHSIGNAL_ENVIRONMENT",
    )

    # Execution
    workers: int | None = Field(
        default=None,
        description="Worker processes for batch runs; overrides runtime.workers",
        alias="MATCHSIGNAL_WORKERS",
    )

    # Progress and logging
    log_level: str = Field(
        default="INFO",
        description="Logging level name",
        alias="MATCHSIGNAL_LOG_LEVEL",
    )

    verbose: bool = Field(
        default=True,
        description="Show progress messages",
        alias="MATCHSIGNAL_VERBOSE",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


# Global configuration instance
config = MatchsignalConfig()


def get_config() -> MatchsignalConfig:
    """Get the current configuration."""
    return config


def update_config(**kwargs) -> None:
    """Update configuration settings."""
    global config
    for key, value in kwargs.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            raise ValueError(f"Unknown configuration option: {key}")


def reset_config() -> None:
    """Reset configuration to defaults."""
    global config
    config = MatchsignalConfig()
