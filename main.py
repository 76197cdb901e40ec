"""
main.py
-------
Command-line entry point: export a MySQL database into a SQLite file.

Usage::

    python main.py [OUTPUT_PATH] [--ignore PATTERN ...] [--env-file PATH]

Connection settings come from DB_* environment variables or a ``.env``
file in the working directory.  The output file is overwritten if it exists.

Exit status is 0 on success (including a schema without tables) and 1 on
configuration, connection or transfer failure.
"""
from __future__ import annotations

import argparse
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Sequence

from config import (
    ConfigError,
    ExportConfig,
    get_log_level,
    load_config,
    prepare_output_path,
    read_environment,
)
from core.database import DatabaseError, MySQLSource, SQLiteDestination
from core.exporter import ExportEngine, ExportError, ProgressSink
from logger import configure_logging, get_logger

log = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1

_DEFAULT_ENV_FILE = Path(".env")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mysql-sqlite-export",
        description="Export a MySQL database (schema and data) into a SQLite file.",
    )
    parser.add_argument(
        "output_path",
        nargs="?",
        help="SQLite file to write (default: database/database-export.sqlite)",
    )
    parser.add_argument(
        "--ignore",
        metavar="PATTERN",
        action="append",
        help="Table pattern whose rows are not exported ('%%' is a wildcard). "
             "Repeatable; replaces the default patterns.",
    )
    parser.add_argument(
        "--env-file",
        default=str(_DEFAULT_ENV_FILE),
        help="Path of the .env file to read, relative to the current working "
             "directory (default: %(default)s)",
    )
    parser.add_argument("--log-level", help="Logging level (default: LOG_LEVEL or WARNING)")
    return parser


def run_export(config: ExportConfig, progress: ProgressSink) -> int:
    """
    Prepare the destination, connect both sides and run the export.

    Returns:
        Process exit status.
    """
    try:
        output_path = prepare_output_path(config.output_path)
    except ConfigError as exc:
        progress.error(str(exc))
        return EXIT_FAILURE

    with ExitStack() as stack:
        try:
            source = stack.enter_context(MySQLSource.from_config(config.source))
            destination = stack.enter_context(SQLiteDestination(output_path))
        except DatabaseError as exc:
            progress.error(str(exc))
            return EXIT_FAILURE

        try:
            results = ExportEngine(source, destination, config, progress).run()
        except (DatabaseError, ExportError) as exc:
            log.error("Export aborted: %s", exc, exc_info=True)
            progress.error(f"Export aborted: {exc}")
            return EXIT_FAILURE

    if results:
        progress.info(f"Export completed. SQLite file: {output_path}")
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    progress = ProgressSink()

    env = read_environment(args.env_file)
    if args.log_level:
        env["LOG_LEVEL"] = args.log_level
    try:
        config = load_config(env, output_path=args.output_path, ignore_patterns=args.ignore)
    except ConfigError as exc:
        progress.error(str(exc))
        return EXIT_FAILURE

    configure_logging(get_log_level(config), config.log_file)
    return run_export(config, progress)


if __name__ == "__main__":
    sys.exit(main())
