from __future__ import annotations

import argparse
import logging
import sys
import threading
from dataclasses import replace
from datetime import timedelta
from signal import SIGINT, SIGTERM, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from rulekeeper.app import load_evaluator, load_object, reconcile_once, run_controller
from rulekeeper.common.logging import configure_logging
from rulekeeper.config import get_reconcile_config
from rulekeeper.domain.model import ObjectKey

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)

_stop = threading.Event()


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile RuleSet policies")
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Root log level (default: %(default)s)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    reconcile = subparsers.add_parser("reconcile", help="Run one reconcile pass for a RuleSet")
    reconcile.add_argument("key", type=str, help="RuleSet as NAMESPACE/NAME")
    _add_evaluation_args(reconcile)

    run = subparsers.add_parser("run", help="Run the controller until interrupted")
    run.add_argument(
        "--namespace",
        dest="namespaces",
        action="append",
        required=True,
        help="Namespace to watch; repeat for several namespaces",
    )
    run.add_argument(
        "--workers",
        type=int,
        help="Maximum concurrent reconcile passes (defaults to config)",
    )
    run.add_argument(
        "--resync-seconds",
        type=float,
        default=30.0,
        help="Seconds between full resyncs (default: %(default)s)",
    )
    _add_evaluation_args(run)

    return parser.parse_args(list(argv))


def _add_evaluation_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--stages",
        type=str,
        required=True,
        help="Comma-separated stage names, or module:attribute of a stage sequence",
    )
    parser.add_argument(
        "--evaluator",
        type=str,
        required=True,
        help="module:attribute of the rule evaluator (a callable or a class)",
    )


def _parse_stages(value: str) -> tuple[str, ...]:
    if ":" in value:
        loaded = load_object(value)
        stages = loaded.get_stages() if hasattr(loaded, "get_stages") else loaded
        return tuple(str(stage) for stage in stages)
    stages = tuple(stage.strip() for stage in value.split(",") if stage.strip())
    if not stages:
        raise ValueError("At least one stage is required")
    return stages


def _parse_log_level(value: str) -> int:
    level = logging.getLevelNamesMapping().get(value.upper())
    if level is None:
        raise ValueError(f"Invalid log level: {value}")
    return level


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    try:
        configure_logging(level=_parse_log_level(parsed_args.log_level))
        stages = _parse_stages(parsed_args.stages)
        key = ObjectKey.parse(parsed_args.key) if parsed_args.command == "reconcile" else None
        if parsed_args.command == "run":
            if parsed_args.resync_seconds <= 0:
                raise ValueError("Resync period must be positive")  # noqa: TRY301
            if parsed_args.workers is not None and parsed_args.workers < 1:
                raise ValueError("Workers must be at least 1")  # noqa: TRY301
    except (ValueError, ImportError, AttributeError):
        configure_logging()
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        evaluator = load_evaluator(parsed_args.evaluator)
        config = get_reconcile_config()
        if parsed_args.command == "reconcile" and key is not None:
            result = reconcile_once(key, stages=stages, evaluator=evaluator, config=config)
            if result.requeue or result.requeue_after is not None:
                log.info("RuleSet %s asked to be reconciled again", key)
        elif parsed_args.command == "run":
            if parsed_args.workers is not None:
                config = replace(config, max_concurrent_reconciles=parsed_args.workers)
            run_controller(
                parsed_args.namespaces,
                stages=stages,
                evaluator=evaluator,
                config=config,
                resync_period=timedelta(seconds=parsed_args.resync_seconds),
                stop=_stop,
            )
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during reconcile")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Stop the controller gracefully on SIGINT/SIGTERM."""
    log.info("Shutting down (signal received)")
    _stop.set()


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    signal(SIGTERM, sigint_handler)
    main()


if __name__ == "__main__":
    run()
