"""
core/exporter.py
----------------
Export engine: recreates every source table in SQLite and copies its rows.

Design Decisions:
    * The engine is a plain class with injected dependencies (source,
      destination, config, progress sink).  No global state.
    * Tables are processed strictly one at a time:
      drop → create → (optionally) copy.  Schema is always recreated;
      ignore patterns only decide whether rows are copied.
    * Rows are streamed from an unbuffered source cursor and written inside
      one destination transaction per table.  A failed insert or commit
      aborts the whole run; tables already exported stay as they are.
    * Operator-facing lines go through a :class:`ProgressSink` so the CLI
      can print them while tests capture them.
"""
from __future__ import annotations

import itertools
import sys
import time
from dataclasses import dataclass
from typing import Iterator, Protocol, TextIO

from config import ExportConfig
from core.database import RowStream, SQLiteDestination
from core.schema_builder import TableDefinition, build_create_statement
from core.table_selector import IgnoreMatcher, list_tables
from core.values import SQLiteValue, normalize_row
from logger import get_logger

log = get_logger(__name__)

SKIP_NO_COLUMNS = "no columns"
SKIP_DATA_IGNORED = "data ignored"
SKIP_EMPTY_TABLE = "empty table"


class ExportError(Exception):
    """Raised when the export cannot continue."""


class SchemaMismatchError(ExportError):
    """Raised when fetched rows do not carry the introspected columns."""


class Source(Protocol):
    def list_base_tables(self, schema: str) -> list[str]: ...
    def describe_table(self, table_name: str) -> TableDefinition: ...
    def count_rows(self, table_name: str) -> int: ...
    def stream_rows(self, table_name: str): ...


# ---------------------------------------------------------------------------
# Progress reporting
# ---------------------------------------------------------------------------

class ProgressSink:
    """Writes progress lines to *out* and skip/error lines to *err*."""

    def __init__(self, out: TextIO | None = None, err: TextIO | None = None) -> None:
        self._out = out or sys.stdout
        self._err = err or sys.stderr

    def table_started(self, index: int, total: int, table_name: str) -> None:
        self._out.write(f"[{index}/{total}] Exporting {table_name}\n")

    def info(self, message: str) -> None:
        self._out.write(message + "\n")

    def error(self, message: str) -> None:
        self._err.write(message + "\n")


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class TransferResult:
    """Outcome of exporting a single table."""
    table_name: str
    schema_created: bool = False
    rows_copied: int = 0
    skipped_reason: str | None = None
    elapsed_seconds: float = 0.0

    def __str__(self) -> str:
        status = "OK" if self.schema_created else "SKIPPED"
        text = f"[{status}] {self.table_name}: {self.rows_copied} rows"
        if self.skipped_reason:
            text += f" ({self.skipped_reason})"
        return text


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class ExportEngine:
    """
    Orchestrates the export of a whole MySQL schema into SQLite.

    Args:
        source:      Connected source (normally :class:`MySQLSource`).
        destination: Connected :class:`SQLiteDestination`.
        config:      Export configuration; supplies the schema name and
                     ignore patterns.
        progress:    Sink for operator-facing lines.

    Example::

        engine = ExportEngine(source, destination, cfg)
        results = engine.run()
    """

    def __init__(
        self,
        source: Source,
        destination: SQLiteDestination,
        config: ExportConfig,
        progress: ProgressSink | None = None,
    ) -> None:
        self._source = source
        self._destination = destination
        self._config = config
        self._ignore = IgnoreMatcher(config.ignore_patterns)
        self._progress = progress or ProgressSink()

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    def run(self) -> list[TransferResult]:
        """
        Export every base table of the configured schema.

        Returns:
            One :class:`TransferResult` per table, in processing order.
            Empty if the schema has no tables.

        Raises:
            DatabaseError: On a failed insert/commit or source query.
            SchemaMismatchError: If a row stream disagrees with DESCRIBE.
        """
        self._destination.configure_bulk_load()

        tables = list_tables(self._source, self._config.source.database)
        if not tables:
            self._progress.info("No tables found to export.")
            return []

        results: list[TransferResult] = []
        total = len(tables)
        for index, table_name in enumerate(tables, start=1):
            self._progress.table_started(index, total, table_name)
            result = self.export_table(table_name)
            log.debug("%s", result)
            results.append(result)

        self._destination.enable_foreign_keys()

        copied = sum(r.rows_copied for r in results)
        log.info("Exported %d table(s), %d row(s) in total.", total, copied)
        return results

    def export_table(self, table_name: str) -> TransferResult:
        """Drop, recreate and (unless ignored) fill one destination table."""
        start = time.monotonic()
        result = TransferResult(table_name=table_name)

        self._destination.drop_table(table_name)

        definition = self._source.describe_table(table_name)
        create_sql = build_create_statement(definition)
        if create_sql is None:
            self._progress.error(f"  Skipping {table_name} (unable to build SQLite schema)")
            result.skipped_reason = SKIP_NO_COLUMNS
            return result

        log.debug("Creating table '%s':\n%s", table_name, create_sql)
        self._destination.execute(create_sql)
        result.schema_created = True

        if self._ignore.matches(table_name):
            log.info("Skipping data for '%s' (matches ignore pattern).", table_name)
            result.skipped_reason = SKIP_DATA_IGNORED
            return result

        if self._source.count_rows(table_name) == 0:
            result.skipped_reason = SKIP_EMPTY_TABLE
            return result

        with self._source.stream_rows(table_name) as stream:
            result.rows_copied = self._copy_rows(definition, stream)
        if result.rows_copied == 0:
            result.skipped_reason = SKIP_EMPTY_TABLE

        result.elapsed_seconds = time.monotonic() - start
        log.info(
            "Export of '%s' finished: %d rows, %.2fs",
            table_name, result.rows_copied, result.elapsed_seconds,
        )
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _copy_rows(self, definition: TableDefinition, stream: RowStream) -> int:
        first_row = next(stream.rows, None)
        if first_row is None:
            return 0

        _check_columns(definition, stream.columns)

        rows: Iterator[tuple[SQLiteValue, ...]] = (
            normalize_row(row) for row in itertools.chain([first_row], stream.rows)
        )
        with self._destination.transaction():
            return self._destination.insert_rows(definition.name, stream.columns, rows)


def _check_columns(definition: TableDefinition, columns: list[str]) -> None:
    expected = set(definition.column_names)
    actual = set(columns)
    if expected != actual:
        raise SchemaMismatchError(
            f"Columns of '{definition.name}' differ between DESCRIBE and SELECT *: "
            f"missing {sorted(expected - actual)}, unexpected {sorted(actual - expected)}"
        )
