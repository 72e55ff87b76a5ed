"""Command line entry point for the console."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Sequence

from .backend import BackendUnavailableError
from .config import DEFAULT_CONFIG_PATH, load_configuration
from .diagnostics import configure_logging, format_meters

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="EduMixer console engine")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to configuration file")
    parser.add_argument(
        "--no-audio",
        action="store_true",
        help="Skip opening the sounddevice output stream (useful in CI)",
    )
    parser.add_argument(
        "--ticks",
        type=int,
        help="Stop after this many frames (default: run until interrupted)",
    )
    parser.add_argument("--rate", type=float, help="Override the frame rate in Hz")
    parser.add_argument(
        "--muted",
        action="store_true",
        help="Leave the console powered off; meters stay at zero",
    )
    parser.add_argument(
        "--dump",
        action="store_true",
        help="Print the last level snapshot as JSON when the loop ends",
    )
    parser.add_argument("--log-level", type=_log_level, help="Logging level (overrides the configuration)")
    return parser


def _log_level(value: str) -> str:
    level = value.upper()
    if not isinstance(logging.getLevelName(level), int):
        raise argparse.ArgumentTypeError(f"unknown log level: {value}")
    return level


def _setup_logging(parser: argparse.ArgumentParser, level: str | None) -> None:
    try:
        configure_logging(level)
    except ValueError as exc:
        parser.error(str(exc))


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_configuration(args.config)
    except (OSError, ValueError) as exc:
        _setup_logging(parser, args.log_level)
        logger.error("Could not load configuration %s: %s", args.config, exc)
        return 1
    _setup_logging(parser, args.log_level or config.logging.level)

    from .application import MixerApplication, demo_console

    app = MixerApplication.from_config(config, console=demo_console(), no_audio=args.no_audio)
    logger.info("Console summary:\n%s", app.summary())
    try:
        try:
            ticks = app.run(args.ticks, powered=not args.muted, rate_hz=args.rate)
        except BackendUnavailableError as exc:
            logger.warning("Audio output failed, continuing without sound: %s", exc)
            app = MixerApplication.from_config(config, console=app.store.snapshot(), no_audio=True)
            app.backend_error = str(exc)
            ticks = app.run(args.ticks, powered=not args.muted, rate_hz=args.rate)
    except KeyboardInterrupt:
        ticks = app.scheduler.ticks
        logger.info("Interrupted")
    snapshot = app.scheduler.last_snapshot
    logger.info("Ran %d frames; last meters: %s", ticks, format_meters(snapshot))
    if args.dump:
        print(json.dumps(snapshot.to_dict(), indent=2))
    return 0


__all__ = ["main", "build_parser"]
