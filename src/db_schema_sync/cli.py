"""Command line entry point: synchronize exported schema directories.

The schema export itself is done by an external scripting engine; this
command takes the directories it produced and brings the version-controlled
working trees up to date.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml
from dotenv import find_dotenv, load_dotenv

from . import __version__
from .config import load_settings
from .config_loader import ensure_config, load_hierarchical_config
from .config_schema import UnifiedConfig, build_config
from .errors import ConfigurationError, format_error
from .logger import setup_logging
from .sync.engine import SyncOrchestrator
from .sync.planner import CommitPlanner
from .sync.progress import ProgressReporter
from .sync.reporter import format_sync_report, report_to_json

logger = logging.getLogger(__name__)


def parse_database_directories(pairs: list[str]) -> dict[str, Path]:
    """Turn ``NAME=DIR`` arguments into an ordered name -> directory map.

    Raises:
        ConfigurationError: A pair is malformed or a name is repeated.
    """
    result: dict[str, Path] = {}
    for pair in pairs:
        name, sep, directory = pair.partition("=")
        name = name.strip()
        directory = directory.strip()
        if not sep or not name or not directory:
            raise ConfigurationError(
                f"Expected NAME=DIR, got '{pair}'"
            )
        if name.lower() in (existing.lower() for existing in result):
            raise ConfigurationError(f"Database listed twice: {name}")
        result[name] = Path(directory)
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="db-schema-sync",
        description="Copy changed schema files into SVN, Hg or Git working "
        "trees and commit them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview what would be committed to Git (dry run)
  db-schema-sync DMS5=exports/DBSchema__DMS5 --sync-dir repos/schema --git

  # Two databases, commit and push
  db-schema-sync DMS5=exports/DBSchema__DMS5 MTS=exports/DBSchema__MTS \\
      --sync-dir repos/schema --git --commit

  # Settings from environment / .env instead of flags
  SCHEMA_SYNC_DIR=repos/schema SCHEMA_SYNC_GIT=true db-schema-sync DMS5=exports/DMS5

  # Write a starter config file
  db-schema-sync --init-config

Note: the report is written to stdout, log messages to stderr.
        """,
    )

    parser.add_argument(
        "databases",
        nargs="*",
        metavar="NAME=DIR",
        help="Database name and the directory its schema was exported to",
    )
    parser.add_argument(
        "--sync-dir",
        help="Root of the version-controlled working trees "
        "(takes precedence over SCHEMA_SYNC_DIR env var and config files)",
    )
    parser.add_argument(
        "--config",
        help="Config file to load in addition to the discovered ones",
    )
    for kind in ("svn", "hg", "git"):
        parser.add_argument(
            f"--{kind}",
            action="store_true",
            default=None,
            help=f"Update {kind} working trees",
        )
    parser.add_argument(
        "--commit",
        action="store_true",
        default=None,
        help="Commit and push changes (default is a dry run)",
    )
    parser.add_argument(
        "--flat",
        action="store_true",
        help="Do not nest a single database in its own subdirectory",
    )
    parser.add_argument(
        "--show-stats",
        action="store_true",
        default=None,
        help="Log the elapsed time of the sync pass",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        help="Also append log messages to this file",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the sync report as JSON",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Create a starter config file if none exists, then exit",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"db-schema-sync version {__version__}",
    )
    return parser


def build_orchestrator(config: UnifiedConfig) -> SyncOrchestrator:
    """Wire the orchestrator and commit planner from *config*."""
    progress = ProgressReporter()
    planner = CommitPlanner(
        config.repos,
        commit_enabled=config.sync.commit,
        progress=progress,
    )
    return SyncOrchestrator(config.sync, planner=planner, progress=progress)


def main(argv: list[str] | None = None) -> int:
    """Run the command; returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # .env is looked up from the working directory, not the install location.
    load_dotenv(find_dotenv(usecwd=True))

    if args.init_config:
        setup_logging(debug=args.debug, log_file=args.log_file)
        path = ensure_config()
        print(f"Config file: {path}")
        return 0

    try:
        unified = build_config(load_hierarchical_config(args.config))
    except (OSError, ValueError, yaml.YAMLError) as exc:
        setup_logging(debug=args.debug, log_file=args.log_file)
        logger.error(format_error("configuration", str(exc)))
        return 1

    setup_logging(
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        level=unified.logging.level,
    )

    try:
        databases = parse_database_directories(args.databases)
        if not databases:
            raise ConfigurationError("No databases given (expected NAME=DIR)")
        unified = load_settings(
            destination=args.sync_dir,
            commit=args.commit,
            svn=args.svn,
            hg=args.hg,
            git=args.git,
            create_directory_for_each_db=False if args.flat else None,
            show_stats=args.show_stats,
            unified=unified,
        )
    except ConfigurationError as exc:
        logger.error(
            format_error(
                "configuration",
                str(exc),
                "Run 'db-schema-sync --help' for usage.",
            )
        )
        return 1

    orchestrator = build_orchestrator(unified)
    try:
        report = orchestrator.synchronize(databases, unified.sync.destination)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130

    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    else:
        print(format_sync_report(report))

    if not report.success or report.failed or report.repo_failures:
        return 1
    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
