#!/usr/bin/env python
r"""Command-line entry point for harvesting exchange trade history.

Usage:
    tradeharvester [--config PATH] [--symbols SYMBOL ...] \
        [--output-dir DIR] [--log-level LEVEL]

Example:
    tradeharvester --symbols ETHUSDT BTCUSDT --output-dir data
"""

import argparse
import asyncio
import sys
from collections.abc import Sequence
from pathlib import Path

from loguru import logger

from tradeharvester import __version__
from tradeharvester.config import CONFIG_FILE, Settings, load_config
from tradeharvester.logging_config import setup_logging
from tradeharvester.orchestrator import run_from_settings

EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tradeharvester",
        description="Download aggregated trade history into per-day CSV files.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=CONFIG_FILE,
        help=f"TOML configuration file (default: ./{CONFIG_FILE})",
    )
    parser.add_argument(
        "--symbols",
        nargs="+",
        metavar="SYMBOL",
        help="Symbols to harvest, overriding the configuration.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Root directory for <symbol>/<YYYY-MM-DD>.csv files.",
    )
    parser.add_argument(
        "--log-level",
        help="Console log level, overriding the configuration.",
    )
    parser.add_argument("--version", action="version", version=__version__)
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Applies command-line flags on top of loaded settings."""
    if args.symbols:
        settings.harvest.symbols = [s.upper() for s in args.symbols]
    if args.output_dir is not None:
        settings.persistence.output_directory = str(args.output_dir)
    if args.log_level:
        settings.general.log_level_console = args.log_level
    return settings


def main(argv: Sequence[str] | None = None) -> int:
    """Parses arguments, configures logging and runs the harvest.

    Returns:
        0 once every worker has finished, 130 if interrupted.
    """
    args = build_parser().parse_args(argv)
    settings = apply_overrides(load_config(args.config), args)

    log_dir = settings.general.log_directory
    setup_logging(
        console_level=settings.general.log_level_console,
        file_level=settings.general.log_level_file,
        log_dir=Path(log_dir) if log_dir else None,
    )

    try:
        asyncio.run(run_from_settings(settings))
    except KeyboardInterrupt:
        logger.warning("Interrupted. Partition files hold everything written so far.")
        return EXIT_INTERRUPTED
    return 0


if __name__ == "__main__":
    sys.exit(main())
