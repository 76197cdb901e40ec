"""
core/schema_builder.py
----------------------
Translates MySQL column descriptions into SQLite ``CREATE TABLE`` statements.

A MySQL ``DESCRIBE`` row looks like::

    Field   Type              Null  Key  Default            Extra
    id      bigint unsigned   NO    PRI  NULL               auto_increment
    email   varchar(255)      NO    UNI  NULL
    status  varchar(20)       YES        draft
    created timestamp         YES        CURRENT_TIMESTAMP  DEFAULT_GENERATED

Design Decisions:
    * Builders are pure functions (no side effects) to simplify testing.
    * An auto-increment column becomes ``INTEGER PRIMARY KEY AUTOINCREMENT``
      inline, because SQLite only supports AUTOINCREMENT on such a column.
      Once one exists no table-level PRIMARY KEY clause is emitted.
    * Otherwise primary key columns are collected and emitted as one
      trailing ``PRIMARY KEY (…)`` clause in source column order, which
      covers composite keys.
"""
from __future__ import annotations

from typing import Any, Mapping, NamedTuple

from core.type_converter import build_default_clause, map_type
from logger import get_logger

log = get_logger(__name__)


class ColumnDescriptor(NamedTuple):
    """One source column as reported by introspection."""
    name: str
    raw_type: str
    nullable: bool
    raw_default: str | None
    is_primary_key: bool
    is_auto_increment: bool


class TableDefinition(NamedTuple):
    """A source table and its columns in declaration order."""
    name: str
    columns: tuple[ColumnDescriptor, ...]

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]


def quote_identifier(name: str) -> str:
    """Double-quote a SQLite identifier, doubling embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return str(value)


def column_from_describe_row(row: Mapping[str, Any]) -> ColumnDescriptor | None:
    """
    Build a :class:`ColumnDescriptor` from one ``DESCRIBE`` result row.

    Returns:
        The descriptor, or None if the row lacks a Field or Type value.
    """
    name = _as_text(row.get("Field"))
    raw_type = _as_text(row.get("Type"))
    if not name or not raw_type:
        log.debug("Ignoring DESCRIBE row without Field/Type: %r", row)
        return None

    extra = (_as_text(row.get("Extra")) or "").lower()
    return ColumnDescriptor(
        name=name,
        raw_type=raw_type,
        nullable=(_as_text(row.get("Null")) or "").upper() == "YES",
        raw_default=_as_text(row.get("Default")),
        is_primary_key=(_as_text(row.get("Key")) or "").upper() == "PRI",
        is_auto_increment="auto_increment" in extra,
    )


def build_column_definition(column: ColumnDescriptor) -> str:
    """Return the SQLite column definition for a non auto-increment column."""
    storage_class = map_type(column.raw_type)
    definition = f"{quote_identifier(column.name)} {storage_class.value}"

    if not column.nullable:
        definition += " NOT NULL"

    default_clause = build_default_clause(column.raw_default, storage_class)
    if default_clause:
        definition += " " + default_clause
    return definition


def build_create_statement(table: TableDefinition) -> str | None:
    """
    Generate a ``CREATE TABLE IF NOT EXISTS`` statement for *table*.

    Args:
        table: The introspected source table.

    Returns:
        The SQL statement, or None if the table has no usable columns.

    Example::

        build_create_statement(TableDefinition("users", (id_col, name_col)))
        # CREATE TABLE IF NOT EXISTS "users" (
        #   "id" INTEGER PRIMARY KEY AUTOINCREMENT,
        #   "name" TEXT NOT NULL
        # );
    """
    definitions: list[str] = []
    primary_keys: list[str] = []
    auto_increment_handled = False

    for column in table.columns:
        if column.is_auto_increment:
            definitions.append(
                f"{quote_identifier(column.name)} INTEGER PRIMARY KEY AUTOINCREMENT"
            )
            auto_increment_handled = True
            continue

        definitions.append(build_column_definition(column))
        if column.is_primary_key:
            primary_keys.append(column.name)

    if not definitions:
        return None

    if not auto_increment_handled and primary_keys:
        quoted = ", ".join(quote_identifier(name) for name in primary_keys)
        definitions.append(f"PRIMARY KEY ({quoted})")

    body = ",\n  ".join(definitions)
    return f"CREATE TABLE IF NOT EXISTS {quote_identifier(table.name)} (\n  {body}\n);"
