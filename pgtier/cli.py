# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Command line entry point.

Usage:
    pgtier -l                 # list backups
    pgtier -b                 # back up now (typically from cron)
    pgtier -r 1707000000000   # restore a backup by timestamp
    pgtier -l -b              # operations run in the order list, backup, restore

Configuration is read from the environment and from a .env file in the
working directory.
"""

import argparse
import asyncio
import logging
import sys
from typing import List

import structlog
from dotenv import load_dotenv

from pgtier import __version__
from pgtier.core import BackupOrchestrator, create_orchestrator
from pgtier.env import create_config_from_env
from pgtier.exceptions import ConfigurationError

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure structlog for console output on stderr.

    stdout is left for reports so that `pgtier -l` can be piped.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pgtier",
        description="Tiered PostgreSQL backups with daily, weekly and monthly retention",
    )
    parser.add_argument(
        "-l", "--list",
        action="store_true",
        help="List all backups by tier",
    )
    parser.add_argument(
        "-b", "--backup",
        action="store_true",
        help="Dump the database, store it and apply retention",
    )
    parser.add_argument(
        "-r", "--restore",
        metavar="TIMESTAMP",
        help="Restore the backup with this timestamp",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Minimum log level (default: INFO)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


async def run_operations(orchestrator: BackupOrchestrator, args: argparse.Namespace) -> int:
    """
    Run the requested operations in the order list, backup, restore.

    Every requested operation runs even if an earlier one failed.

    Returns:
        Process exit code
    """
    failed = False

    if args.list:
        result = await orchestrator.list_backups()
        if result.success:
            print(result.report, end="")
        else:
            print(f"Could not list backups: {result.errors[0]}", file=sys.stderr)
            failed = True

    if args.backup:
        result = await orchestrator.run_backup()
        if result.success:
            print(f"Backup {result.timestamp} stored")
        else:
            print("Backup failed:", file=sys.stderr)
            for error in result.errors:
                print(f"  - {error}", file=sys.stderr)
            failed = True

    if args.restore is not None:
        result = await orchestrator.restore(args.restore)
        if result.success:
            print(result.message)
        else:
            print(result.message, file=sys.stderr)
            failed = True

    return EXIT_FAILURE if failed else EXIT_OK


def main(argv: List[str] | None = None) -> int:
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if not (args.list or args.backup or args.restore is not None):
        parser.print_help(sys.stderr)
        return EXIT_USAGE

    try:
        config = create_config_from_env()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    orchestrator = create_orchestrator(config)
    return asyncio.run(run_operations(orchestrator, args))


if __name__ == "__main__":
    sys.exit(main())
