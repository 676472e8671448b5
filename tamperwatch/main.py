#!/usr/bin/env python3
"""
TamperWatch - CLI entry point.

Exposed as the 'tamperwatch' console command via pyproject.toml.
"""

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from tamperwatch import __version__

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging to stderr (no print-based logging)."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        stream=sys.stderr,
    )


def add_file_logging(log_path: Optional[Path]) -> None:
    """Mirror the root logger into the configured log file."""
    if log_path is None:
        return
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
    except OSError as e:
        logging.getLogger(__name__).warning("Cannot open log file %s: %s", log_path, e)
        return
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    logging.getLogger().addHandler(handler)


def get_config(args: argparse.Namespace):
    """Load config from file; extra directories from the command line are appended."""
    from tamperwatch.core.config_loader import load_config

    config_path = Path(args.config)
    if not config_path.is_absolute():
        config_path = Path.cwd() / config_path
    return load_config(config_path, extra_directories=args.directories)


def log_banner(config) -> None:
    log = logging.getLogger(__name__)
    log.info("TamperWatch %s - file integrity monitor", __version__)
    log.info("Monitored directories: %s", ", ".join(str(d) for d in config.directories))
    log.info("Scan interval: %.0fs", config.interval)
    log.info("Fingerprint store: %s", config.store_path)
    log.info("Log file: %s", config.log_path)


def cmd_init_baseline(config, dry_run: bool) -> None:
    """Create or overwrite the baseline from the current directory state."""
    from tamperwatch.core.monitor import IntegrityMonitor

    log = logging.getLogger(__name__)
    log.info("Building baseline...")
    monitor = IntegrityMonitor(config, dry_run=dry_run)
    count = monitor.establish_baseline()
    if dry_run:
        log.info("Dry run: would write %d entries to %s", count, config.store_path)
        return
    log.info("Baseline saved: %s (%d files)", config.store_path, count)


def cmd_scan(config, dry_run: bool) -> None:
    """Run a single scan cycle and exit."""
    from tamperwatch.core.monitor import IntegrityMonitor

    monitor = IntegrityMonitor(config, dry_run=dry_run)
    try:
        monitor.run_once()
    finally:
        monitor.shutdown()


def cmd_monitor(config, dry_run: bool) -> None:
    """Run the monitoring loop with graceful shutdown."""
    from tamperwatch.core.monitor import IntegrityMonitor
    from tamperwatch.core.scheduler import Scheduler

    scheduler = Scheduler(config.interval)

    def on_signal(signum, _frame) -> None:
        logging.getLogger(__name__).info("Received signal %d, finishing current scan", signum)
        scheduler.stop()

    signal.signal(signal.SIGINT, on_signal)
    signal.signal(signal.SIGTERM, on_signal)

    monitor = IntegrityMonitor(config, dry_run=dry_run)
    monitor.run(scheduler)


def _add_common_args(parser: argparse.ArgumentParser, default_config: Optional[str]) -> None:
    """Add --config and --dry-run so they work before or after the subcommand."""
    suppress = default_config is None
    parser.add_argument(
        "--config",
        type=str,
        default=argparse.SUPPRESS if suppress else default_config,
        help="Path to config.yaml (default: package config; use CWD-relative or absolute)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        dest="dry_run",
        default=argparse.SUPPRESS if suppress else False,
        help="Do not write the fingerprint store or alerts; only scan/compare.",
    )


def main(argv: Optional[list[str]] = None) -> int:
    """CLI logic."""
    default_config = str(Path(__file__).resolve().parent / "config" / "config.yaml")
    parser = argparse.ArgumentParser(
        prog="tamperwatch",
        description="File integrity monitoring - detect unauthorized modification of server files.",
    )
    _add_common_args(parser, default_config)
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("init-baseline", "Record the current state of monitored directories as the baseline"),
        ("scan", "Run one integrity scan and exit"),
        ("monitor", "Start continuous integrity monitoring"),
    ):
        p = sub.add_parser(name, help=help_text)
        _add_common_args(p, None)
        p.add_argument("directories", nargs="*", help="Additional directories to monitor")

    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose)

    from tamperwatch.core.errors import ConfigError

    try:
        config = get_config(args)
    except (FileNotFoundError, ConfigError) as e:
        logging.getLogger(__name__).error("%s", e)
        return 1
    except Exception as e:
        logging.getLogger(__name__).exception("Failed to load config: %s", e)
        return 1

    add_file_logging(config.log_path)
    log_banner(config)

    if args.command == "init-baseline":
        cmd_init_baseline(config, args.dry_run)
    elif args.command == "scan":
        cmd_scan(config, args.dry_run)
    elif args.command == "monitor":
        cmd_monitor(config, args.dry_run)
    else:
        parser.print_help()
    return 0


def cli() -> None:
    """Entry point for the tamperwatch console command."""
    sys.exit(main())


if __name__ == "__main__":
    cli()
