"""Command line interface for the match prediction engine."""

from __future__ import annotations

import argparse
import dataclasses
import datetime as dt
import json
import logging
from typing import Any, Callable, Dict, Sequence

from ..config import get_config
from .configuration import (
    ConfigurationError,
    EngineConfig,
    load_engine_config,
    validate_engine_config,
)
from .distribution import StrategyDistributor
from .ingestion import load_fixtures, load_match_history, load_standings, parse_date
from .league import league_performance
from .logging import configure_logging
from .pipeline import predict_day
from .profile import build_engine_profile
from .simulation import MatchSimulator

logger = logging.getLogger(__name__)

CommandHandler = Callable[[EngineConfig, argparse.Namespace], int]


@dataclasses.dataclass(slots=True)
class Subcommand:
    """Container describing a CLI sub-command."""

    name: str
    help: str
    configure: Callable[[argparse.ArgumentParser], None]
    handler: CommandHandler

    def add_to_parser(
        self,
        subparsers,
        parent: argparse.ArgumentParser,
    ) -> argparse.ArgumentParser:
        parser = subparsers.add_parser(self.name, parents=[parent], help=self.help)
        self.configure(parser)
        parser.set_defaults(handler=self.handler, command=self.name)
        return parser


class SubcommandApp:
    """Registry that wires handlers into an :class:`argparse` parser."""

    def __init__(self, description: str | None = None) -> None:
        self._commands: list[Subcommand] = []
        self._description = description

    def command(
        self,
        name: str,
        *,
        help: str,
        configure: Callable[[argparse.ArgumentParser], None],
    ) -> Callable[[CommandHandler], CommandHandler]:
        def _decorator(handler: CommandHandler) -> CommandHandler:
            self._commands.append(
                Subcommand(name=name, help=help, configure=configure, handler=handler)
            )
            return handler

        return _decorator

    @property
    def commands(self) -> Sequence[Subcommand]:
        return tuple(self._commands)

    def build_parser(self) -> argparse.ArgumentParser:
        parent = argparse.ArgumentParser(add_help=False)
        parent.add_argument("--config", dest="config_file")
        parent.add_argument("--environment", dest="config_environment")
        parent.add_argument("--log-level")

        parser = argparse.ArgumentParser(description=self._description)
        subparsers = parser.add_subparsers(dest="command", required=True)
        for command in self._commands:
            command.add_to_parser(subparsers, parent)
        return parser


APP = SubcommandApp(description=__doc__)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _progress(message: str, *args: Any) -> None:
    if get_config().verbose:
        logger.info(message, *args)


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


def _configure_validate_parser(parser: argparse.ArgumentParser) -> None:
    del parser


def _configure_simulate_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--home-lambda", type=float, required=True)
    parser.add_argument("--away-lambda", type=float, required=True)
    parser.add_argument("--seed")
    parser.add_argument("--iterations", type=int)
    parser.add_argument("--entropy", type=float, default=1.0)
    parser.add_argument("--rho", type=float)
    parser.add_argument("--top-scores", type=int, default=5)


def _configure_predict_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--history", required=True)
    parser.add_argument("--fixtures", required=True)
    parser.add_argument("--standings")
    parser.add_argument("--date", help="Only predict fixtures on this ISO date")
    parser.add_argument("--workers", type=int)
    parser.add_argument("--iterations", type=int)
    parser.add_argument("--buckets", action="store_true", default=False)


def _configure_league_report_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--history", required=True)
    parser.add_argument("--limit", type=int, default=20)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@APP.command(
    "validate-config",
    help="Validate engine configuration",
    configure=_configure_validate_parser,
)
def _cmd_validate_config(config: EngineConfig, args: argparse.Namespace) -> int:
    try:
        warnings = validate_engine_config(config)
    except ConfigurationError as exc:
        print("Configuration invalid:")
        print(str(exc))
        return 1
    print("Configuration valid.")
    for message in warnings:
        print(f"[config-warning] {message}")
    return 0


@APP.command(
    "simulate",
    help="Simulate a single match from expected goals",
    configure=_configure_simulate_parser,
)
def _cmd_simulate(config: EngineConfig, args: argparse.Namespace) -> int:
    simulator = MatchSimulator(config.simulation)
    result = simulator.simulate(
        args.home_lambda,
        args.away_lambda,
        iterations=args.iterations,
        seed=args.seed,
        entropy=args.entropy,
        rho=args.rho,
    )
    payload = result.to_dict()
    payload["exact_scores"] = payload["exact_scores"][: max(0, args.top_scores)]
    _print_json(payload)
    return 0


@APP.command(
    "predict",
    help="Predict fixtures from a history file and rank signals",
    configure=_configure_predict_parser,
)
def _cmd_predict(config: EngineConfig, args: argparse.Namespace) -> int:
    history = load_match_history(args.history)
    standings = load_standings(args.standings) if args.standings else None
    fixtures = load_fixtures(args.fixtures)
    day: dt.date | None = None
    if args.date:
        day = parse_date(args.date)
        if day is None:
            raise SystemExit(f"Invalid --date value: {args.date}")
        fixtures = [fixture for fixture in fixtures if fixture.date == day]

    _progress("Loaded %d history rows and %d fixtures", len(history), len(fixtures))
    workers = args.workers if args.workers is not None else get_config().workers
    profile = build_engine_profile(history, standings, config)
    predictions = predict_day(
        fixtures, profile, config, workers=workers, iterations=args.iterations
    )
    _progress("Predicted %d fixtures", len(predictions))
    payload: Dict[str, Any] = {
        "profile": {
            "matches": len(profile.history),
            "rated_teams": len(profile.ratings),
            "rho": profile.rho,
        },
        "predictions": [prediction.to_dict() for prediction in predictions],
    }
    if args.buckets:
        distributor = StrategyDistributor(config.distribution)
        buckets = distributor.distribute(
            [prediction.to_bucket_entry() for prediction in predictions], day
        )
        payload["buckets"] = {key: bucket.to_dict() for key, bucket in buckets.items()}
    _print_json(payload)
    return 0


@APP.command(
    "league-report",
    help="Summarise scoring and tip success per league",
    configure=_configure_league_report_parser,
)
def _cmd_league_report(config: EngineConfig, args: argparse.Namespace) -> int:
    del config
    table = league_performance(load_match_history(args.history))
    _print_json(table.head(args.limit).to_dicts())
    return 0


def _build_parser() -> argparse.ArgumentParser:
    return APP.build_parser()


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    settings = get_config()
    configure_logging(args.log_level or settings.log_level)

    config = load_engine_config(
        base_path=args.config_file or settings.engine_config_path,
        environment=args.config_environment or settings.environment,
    )
    handler: CommandHandler = args.handler
    if args.command != "validate-config":
        try:
            for message in validate_engine_config(config):
                logger.warning("Configuration: %s", message)
        except ConfigurationError as exc:
            raise SystemExit(str(exc)) from exc
    return handler(config, args)


__all__ = ["APP", "main"]


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
