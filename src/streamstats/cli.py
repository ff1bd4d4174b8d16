"""Command line entry point for streamstats."""
from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Iterable

from rich.console import Console

from .config import CONFIG_PATH, MonitorConfig, load_config
from .logging_utils import configure_logging, get_logger
from .monitor import StatsMonitorApp
from .render import json_safe, snapshot_table
from .replay import ReplaySession, load_events

log = get_logger(__name__)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Replay recorded streaming pipeline events and report playback stats"
    )
    parser.add_argument(
        "events",
        type=Path,
        help="JSON-lines recording of pipeline events",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=CONFIG_PATH,
        help="Path to configuration file (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override STREAMSTATS_LOG_LEVEL for this invocation",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Write logs to this file instead of STREAMSTATS_LOG_FILE",
    )
    parser.add_argument(
        "--technology",
        default=None,
        help="Label reported in the technology field (overrides the configuration)",
    )
    parser.add_argument(
        "--no-position",
        dest="attach_position",
        action="store_false",
        default=None,
        help="Do not report the playback position",
    )
    output = parser.add_mutually_exclusive_group()
    output.add_argument(
        "--json",
        action="store_true",
        help=(
            "Print the final snapshot as JSON instead of a table;"
            " non-finite numbers are written as \"inf\", \"-inf\" or \"nan\""
        ),
    )
    output.add_argument(
        "--tui",
        action="store_true",
        help="Open the interactive monitor instead of printing the final snapshot",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between automatic steps in the monitor (0 steps manually)",
    )
    return parser.parse_args(argv)


def _merge_options(args: argparse.Namespace, config: MonitorConfig) -> MonitorConfig:
    """Return *config* with command line overrides applied."""

    return MonitorConfig(
        technology=args.technology or config.technology,
        refresh_interval=(
            args.interval if args.interval is not None else config.refresh_interval
        ),
        attach_position=(
            args.attach_position if args.attach_position is not None else config.attach_position
        ),
        log_level=args.log_level or config.log_level,
        log_file=str(args.log_file) if args.log_file is not None else config.log_file,
    )


def main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(argv)
    settings = _merge_options(args, load_config(args.config))
    configure_logging(level=settings.log_level, log_file=settings.log_file)
    log.info("CLI invoked with events=%s", args.events)

    try:
        recording = load_events(args.events)
    except FileNotFoundError:
        log.error("Recording not found at %s", args.events)
        Console(stderr=True).print(f"[red]No recording found at {args.events}[/red]")
        return 1

    if args.tui:
        app = StatsMonitorApp(
            recording,
            technology=settings.technology,
            attach_position=settings.attach_position,
            interval=settings.refresh_interval,
        )
        log.info("Launching Textual monitor")
        try:
            app.run()
        except KeyboardInterrupt:
            log.info("Keyboard interrupt received; exiting monitor")
            return 130
        return 0

    session = ReplaySession(
        technology=settings.technology,
        attach_position=settings.attach_position,
    )
    try:
        snapshot = session.run(recording)
    finally:
        session.close()

    if args.json:
        print(json.dumps(json_safe(snapshot), indent=2, allow_nan=False))
    else:
        Console().print(snapshot_table(snapshot, title=f"Playback stats: {args.events.name}"))
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
