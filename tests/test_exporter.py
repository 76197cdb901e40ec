"""
tests/test_exporter.py
-----------------------
Tests for core/exporter.py using an in-memory fake source and a real
SQLite destination file (no real MySQL).
Run with: python -m pytest tests/
"""
from __future__ import annotations

import io
from contextlib import contextmanager
from pathlib import Path
from unittest.mock import patch

import pytest

from config import DatabaseConfig, ExportConfig
from core.database import DatabaseError, RowStream, SQLiteDestination
from core.exporter import (
    SKIP_DATA_IGNORED,
    SKIP_EMPTY_TABLE,
    SKIP_NO_COLUMNS,
    ExportEngine,
    ProgressSink,
    SchemaMismatchError,
    TransferResult,
)
from core.schema_builder import ColumnDescriptor, TableDefinition


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class FakeSource:
    """Minimal stand-in for MySQLSource backed by Python lists."""

    def __init__(self) -> None:
        self.tables: dict[str, TableDefinition] = {}
        self.rows: dict[str, list[tuple]] = {}
        self.row_columns: dict[str, list[str]] = {}
        self.streamed: list[str] = []

    def add(self, name: str, columns: list[ColumnDescriptor], rows: list[tuple]) -> None:
        self.tables[name] = TableDefinition(name, tuple(columns))
        self.rows[name] = rows

    def list_base_tables(self, schema: str) -> list[str]:
        # MySQLSource orders by TABLE_NAME in SQL
        return sorted(self.tables)

    def describe_table(self, table_name: str) -> TableDefinition:
        return self.tables[table_name]

    def count_rows(self, table_name: str) -> int:
        return len(self.rows[table_name])

    @contextmanager
    def stream_rows(self, table_name: str):
        self.streamed.append(table_name)
        columns = self.row_columns.get(table_name) or self.tables[table_name].column_names
        yield RowStream(columns=list(columns), rows=iter(self.rows[table_name]))


def _id() -> ColumnDescriptor:
    return ColumnDescriptor("id", "bigint unsigned", False, None, True, True)


def _text(name: str, nullable: bool = True) -> ColumnDescriptor:
    return ColumnDescriptor(name, "varchar(255)", nullable, None, False, False)


def _config(patterns: tuple[str, ...] = ("%telescope%", "audits")) -> ExportConfig:
    return ExportConfig(source=DatabaseConfig(database="app"), ignore_patterns=patterns)


@pytest.fixture
def fake_source() -> FakeSource:
    src = FakeSource()
    src.add(
        "users",
        [_id(), _text("name", nullable=False), _text("email")],
        [(1, "Ann", "ann@example.com"), (2, "Bob", None), (3, "Cy", "cy@example.com")],
    )
    src.add(
        "telescope_entries",
        [_id(), _text("content")],
        [(i, f"entry {i}") for i in range(1, 6)],
    )
    src.add("audits", [_id(), _text("event")], [(1, "created"), (2, "updated")])
    return src


@pytest.fixture
def out() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def err() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def destination(tmp_path: Path):
    dest = SQLiteDestination(tmp_path / "export.sqlite")
    dest.connect()
    yield dest
    dest.close()


def _engine(source, destination, out, err, patterns=("%telescope%", "audits")) -> ExportEngine:
    return ExportEngine(source, destination, _config(patterns), ProgressSink(out, err))


def _tables(destination: SQLiteDestination) -> list[str]:
    rows = destination.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' "
        "AND name NOT LIKE 'sqlite_%' ORDER BY name"
    ).fetchall()
    return [r[0] for r in rows]


def _count(destination: SQLiteDestination, table_name: str) -> int:
    return destination.execute(f'SELECT COUNT(*) FROM "{table_name}"').fetchone()[0]


# ---------------------------------------------------------------------------
# End-to-end scenarios
# ---------------------------------------------------------------------------

class TestRun:
    def test_ignored_tables_keep_schema_only(self, fake_source, destination, out, err) -> None:
        results = _engine(fake_source, destination, out, err).run()

        assert _tables(destination) == ["audits", "telescope_entries", "users"]
        assert _count(destination, "users") == 3
        assert _count(destination, "telescope_entries") == 0
        assert _count(destination, "audits") == 0
        assert fake_source.streamed == ["users"]

        by_name = {r.table_name: r for r in results}
        assert by_name["users"].rows_copied == 3
        assert by_name["users"].skipped_reason is None
        assert by_name["audits"].skipped_reason == SKIP_DATA_IGNORED
        assert all(r.schema_created for r in results)

    def test_tables_processed_alphabetically_with_progress(
        self, fake_source, destination, out, err
    ) -> None:
        _engine(fake_source, destination, out, err).run()
        assert out.getvalue().splitlines() == [
            "[1/3] Exporting audits",
            "[2/3] Exporting telescope_entries",
            "[3/3] Exporting users",
        ]
        assert err.getvalue() == ""

    def test_no_tables(self, destination, out, err) -> None:
        results = _engine(FakeSource(), destination, out, err).run()
        assert results == []
        assert out.getvalue() == "No tables found to export.\n"

    def test_rerun_does_not_duplicate_rows(self, fake_source, destination, out, err) -> None:
        _engine(fake_source, destination, out, err).run()
        _engine(fake_source, destination, out, err).run()
        assert _count(destination, "users") == 3

    def test_foreign_keys_re_enabled(self, fake_source, destination, out, err) -> None:
        _engine(fake_source, destination, out, err).run()
        assert destination.execute("PRAGMA foreign_keys").fetchone()[0] == 1

    def test_row_values_copied_and_normalized(self, destination, out, err) -> None:
        src = FakeSource()
        src.add(
            "flags",
            [_id(), ColumnDescriptor("active", "tinyint(1)", True, None, False, False),
             _text("note")],
            [(1, True, "yes"), (2, False, None)],
        )
        _engine(src, destination, out, err, patterns=()).run()
        rows = destination.execute('SELECT * FROM "flags" ORDER BY "id"').fetchall()
        assert rows == [(1, 1, "yes"), (2, 0, None)]

    def test_bigint_unsigned_max_is_copied(self, destination, out, err) -> None:
        src = FakeSource()
        src.add(
            "counters",
            [_id(), ColumnDescriptor("hits", "bigint(20) unsigned", False, None, False, False)],
            [(1, 18446744073709551615), (2, 7)],
        )
        results = _engine(src, destination, out, err, patterns=()).run()

        assert results[0].rows_copied == 2
        assert err.getvalue() == ""
        assert _count(destination, "counters") == 2
        hits = destination.execute('SELECT "hits" FROM "counters" WHERE "id" = 2').fetchone()[0]
        assert hits == 7

    def test_schema_matches_source_description(self, fake_source, destination, out, err) -> None:
        _engine(fake_source, destination, out, err).run()
        info = destination.execute('PRAGMA table_info("users")').fetchall()
        assert [r[1] for r in info] == ["id", "name", "email"]
        # notnull flags: the autoincrement id is implicitly non-null in SQLite
        assert [r[3] for r in info] == [0, 1, 0]


# ---------------------------------------------------------------------------
# Per-table edge cases
# ---------------------------------------------------------------------------

class TestExportTable:
    def test_table_without_columns_is_skipped(self, destination, out, err) -> None:
        src = FakeSource()
        src.add("broken", [], [])
        src.add("users", [_id()], [(1,)])
        results = _engine(src, destination, out, err, patterns=()).run()

        assert results[0] == TransferResult(
            table_name="broken", schema_created=False, skipped_reason=SKIP_NO_COLUMNS
        )
        assert "Skipping broken (unable to build SQLite schema)" in err.getvalue()
        assert _tables(destination) == ["users"]
        assert _count(destination, "users") == 1

    def test_empty_table_opens_no_transaction(self, destination, out, err) -> None:
        src = FakeSource()
        src.add("empty", [_id(), _text("name")], [])
        engine = _engine(src, destination, out, err, patterns=())

        with patch.object(destination, "transaction", wraps=destination.transaction) as tx:
            result = engine.export_table("empty")

        tx.assert_not_called()
        assert src.streamed == []
        assert result.schema_created
        assert result.skipped_reason == SKIP_EMPTY_TABLE
        assert _tables(destination) == ["empty"]

    def test_empty_first_fetch_is_not_an_error(self, destination, out, err) -> None:
        src = FakeSource()
        src.add("racy", [_id()], [])
        src.count_rows = lambda table_name: 1  # rows vanished after counting
        engine = _engine(src, destination, out, err, patterns=())

        with patch.object(destination, "transaction", wraps=destination.transaction) as tx:
            result = engine.export_table("racy")

        tx.assert_not_called()
        assert result.rows_copied == 0
        assert result.skipped_reason == SKIP_EMPTY_TABLE

    def test_insert_uses_result_column_order(self, destination, out, err) -> None:
        src = FakeSource()
        src.add("people", [_id(), _text("first"), _text("last")], [(1, "Doe", "Jane")])
        src.row_columns["people"] = ["id", "last", "first"]
        _engine(src, destination, out, err, patterns=()).run()
        row = destination.execute('SELECT "first", "last" FROM "people"').fetchone()
        assert row == ("Jane", "Doe")

    def test_column_mismatch_aborts(self, destination, out, err) -> None:
        src = FakeSource()
        src.add("users", [_id(), _text("name")], [(1, "Ann")])
        src.row_columns["users"] = ["id", "full_name"]
        with pytest.raises(SchemaMismatchError, match="full_name"):
            _engine(src, destination, out, err, patterns=()).run()

    def test_write_failure_propagates(self, destination, out, err) -> None:
        src = FakeSource()
        src.add("users", [_id(), _text("name", nullable=False)], [(1, "Ann"), (2, None)])
        with pytest.raises(DatabaseError):
            _engine(src, destination, out, err, patterns=()).run()
        # the failed table's transaction was rolled back
        assert _count(destination, "users") == 0

    def test_composite_key_table(self, destination, out, err) -> None:
        src = FakeSource()
        src.add(
            "role_user",
            [ColumnDescriptor("role_id", "int", False, None, True, False),
             ColumnDescriptor("user_id", "int", False, None, True, False)],
            [(1, 1), (1, 2)],
        )
        _engine(src, destination, out, err, patterns=()).run()
        sql = destination.execute(
            "SELECT sql FROM sqlite_master WHERE name = 'role_user'"
        ).fetchone()[0]
        assert 'PRIMARY KEY ("role_id", "user_id")' in sql
        assert "AUTOINCREMENT" not in sql
        assert _count(destination, "role_user") == 2


class TestTransferResult:
    def test_defaults(self) -> None:
        result = TransferResult(table_name="t")
        assert not result.schema_created
        assert result.rows_copied == 0
        assert result.skipped_reason is None

    def test_str(self) -> None:
        result = TransferResult("audits", schema_created=True, skipped_reason=SKIP_DATA_IGNORED)
        assert str(result) == "[OK] audits: 0 rows (data ignored)"
