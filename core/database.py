"""
core/database.py
----------------
Source (MySQL) and destination (SQLite) connection wrappers.

Design Decisions:
    * Both wrappers are context managers so callers can use them with
      ``with`` statements and be guaranteed the connection is closed on exit.
    * MySQL identifiers use backtick quoting, SQLite identifiers double
      quotes; embedded quote characters are doubled in both.
    * Queries never use Python string interpolation for values; only quoted
      structural identifiers (table/column names) are inserted into SQL
      strings. Parameterised execution is used for all data values.
    * Row streaming uses an unbuffered MySQL cursor so a table is never
      held in memory at once.
    * Connection failures are not retried; the export aborts instead.
    * Driver exceptions are re-raised as :class:`DatabaseError`.
"""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Iterable, Iterator, NamedTuple, Sequence

import mysql.connector
from mysql.connector.abstracts import MySQLConnectionAbstract

from config import DatabaseConfig
from core.schema_builder import (
    TableDefinition,
    column_from_describe_row,
    quote_identifier,
)
from logger import get_logger

log = get_logger(__name__)


class DatabaseError(Exception):
    """Raised for database-level failures reported by this module."""


class ConnectionLostError(DatabaseError):
    """Raised when an operation needs a connection that is not open."""


class RowStream(NamedTuple):
    """Column names of a result set plus a lazy iterator over its rows."""
    columns: list[str]
    rows: Iterator[tuple]


def quote_mysql_identifier(name: str) -> str:
    return "`" + name.replace("`", "``") + "`"


class MySQLSource:
    """
    Read-only MySQL connection used as the export source.

    Example::

        with MySQLSource.from_config(cfg.source) as source:
            for table in source.list_base_tables(cfg.source.database):
                definition = source.describe_table(table)
    """

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        database: str,
        charset: str = "utf8mb4",
        connect_timeout: int = 10,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self.database = database
        self._charset = charset
        self._connect_timeout = connect_timeout

        self._conn: MySQLConnectionAbstract | None = None

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "MySQLSource":
        return cls(
            host=config.host,
            port=config.port,
            user=config.user,
            password=config.password,
            database=config.database,
            charset=config.charset,
            connect_timeout=config.connect_timeout,
        )

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> "MySQLSource":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False  # Never suppress exceptions

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """
        Open the MySQL connection.

        Raises:
            DatabaseError: If the server cannot be reached or rejects the login.
        """
        log.info(
            "Connecting to MySQL at %s:%s/%s",
            self._host, self._port, self.database,
        )
        try:
            self._conn = mysql.connector.connect(
                host=self._host,
                port=self._port,
                user=self._user,
                password=self._password,
                database=self.database,
                charset=self._charset,
                connection_timeout=self._connect_timeout,
                use_unicode=True,
                consume_results=True,
            )
        except mysql.connector.Error as exc:
            raise DatabaseError(f"Failed to connect to MySQL: {exc}") from exc
        log.info("Connected to MySQL successfully.")

    def close(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.close()
            log.info("MySQL connection closed.")
        except mysql.connector.Error as exc:
            log.debug("Ignoring error while closing MySQL connection: %s", exc)
        self._conn = None

    def _connection(self) -> MySQLConnectionAbstract:
        if self._conn is None:
            raise ConnectionLostError(
                "MySQL connection is not open. Call connect() first."
            )
        return self._conn

    def _fetchall(
        self, sql: str, params: Sequence[Any] | None = None, dictionary: bool = False
    ) -> list[Any]:
        cursor = self._connection().cursor(buffered=True, dictionary=dictionary)
        try:
            cursor.execute(sql, params)
            return cursor.fetchall()
        except mysql.connector.Error as exc:
            log.error("SQL execution error: %s | SQL: %.500s", exc, sql)
            raise DatabaseError(str(exc)) from exc
        finally:
            cursor.close()

    # ------------------------------------------------------------------
    # Introspection and data access
    # ------------------------------------------------------------------

    def list_base_tables(self, schema: str) -> list[str]:
        """Return the names of all base tables (no views) in *schema*."""
        rows = self._fetchall(
            "SELECT TABLE_NAME FROM information_schema.TABLES "
            "WHERE TABLE_SCHEMA = %s AND TABLE_TYPE = 'BASE TABLE' "
            "ORDER BY TABLE_NAME",
            (schema,),
        )
        return [
            row[0].decode("utf-8") if isinstance(row[0], (bytes, bytearray)) else row[0]
            for row in rows
        ]

    def describe_table(self, table_name: str) -> TableDefinition:
        """
        Fetch the column layout of *table_name* using DESCRIBE.

        Returns:
            The table definition; it has no columns if the table cannot
            be described.
        """
        try:
            rows = self._fetchall(
                f"DESCRIBE {quote_mysql_identifier(table_name)}", dictionary=True
            )
        except DatabaseError as exc:
            log.warning("Could not describe table '%s': %s", table_name, exc)
            rows = []

        columns = []
        for row in rows:
            column = column_from_describe_row(row)
            if column is not None:
                columns.append(column)
        return TableDefinition(name=table_name, columns=tuple(columns))

    def count_rows(self, table_name: str) -> int:
        rows = self._fetchall(f"SELECT COUNT(*) FROM {quote_mysql_identifier(table_name)}")
        return int(rows[0][0]) if rows else 0

    @contextmanager
    def stream_rows(self, table_name: str) -> Generator[RowStream, None, None]:
        """
        Stream every row of *table_name* through an unbuffered cursor.

        The yielded iterator must be consumed or abandoned before any other
        query is issued on this connection.
        """
        sql = f"SELECT * FROM {quote_mysql_identifier(table_name)}"
        cursor = self._connection().cursor(buffered=False)
        try:
            try:
                cursor.execute(sql)
            except mysql.connector.Error as exc:
                log.error("SQL execution error: %s | SQL: %.500s", exc, sql)
                raise DatabaseError(str(exc)) from exc
            yield RowStream(columns=list(cursor.column_names), rows=self._iterate(cursor))
        finally:
            try:
                cursor.close()
            except mysql.connector.Error as exc:
                log.debug("Ignoring error while closing row cursor: %s", exc)

    @staticmethod
    def _iterate(cursor) -> Iterator[tuple]:
        try:
            for row in cursor:
                yield tuple(row)
        except mysql.connector.Error as exc:
            raise DatabaseError(f"Row fetch failed: {exc}") from exc


class SQLiteDestination:
    """
    SQLite file the export writes into.

    The connection runs in autocommit mode; bulk inserts are grouped with
    :meth:`transaction`.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._conn: sqlite3.Connection | None = None

    def __enter__(self) -> "SQLiteDestination":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def connect(self) -> None:
        try:
            self._conn = sqlite3.connect(str(self.path), isolation_level=None)
        except sqlite3.Error as exc:
            raise DatabaseError(f"Failed to initialise SQLite database: {exc}") from exc
        log.info("Opened SQLite database '%s'.", self.path)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise ConnectionLostError(
                "SQLite connection is not open. Call connect() first."
            )
        return self._conn

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            return self._connection().execute(sql, params)
        except sqlite3.Error as exc:
            log.error("SQLite execution error: %s | SQL: %.500s", exc, sql)
            raise DatabaseError(str(exc)) from exc

    def configure_bulk_load(self) -> None:
        """Trade durability for speed while the export runs."""
        self.execute("PRAGMA foreign_keys = OFF")
        self.execute("PRAGMA synchronous = OFF")
        self.execute("PRAGMA journal_mode = MEMORY")

    def enable_foreign_keys(self) -> None:
        self.execute("PRAGMA foreign_keys = ON")

    def drop_table(self, table_name: str) -> None:
        self.execute(f"DROP TABLE IF EXISTS {quote_identifier(table_name)}")

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """
        Explicit transaction: commits on clean exit, rolls back on any
        exception.

        Example::

            with destination.transaction():
                destination.insert_rows("users", ["id", "name"], rows)
        """
        self.execute("BEGIN")
        try:
            yield
        except BaseException:
            try:
                self._connection().rollback()
                log.debug("Transaction rolled back.")
            except sqlite3.Error as exc:
                log.warning("Rollback failed: %s", exc)
            raise
        self.execute("COMMIT")
        log.debug("Transaction committed.")

    def insert_rows(
        self, table_name: str, columns: Sequence[str], rows: Iterable[Sequence[Any]]
    ) -> int:
        """
        Insert *rows* positionally into *columns* of *table_name*.

        *rows* is consumed lazily. Returns the number of rows inserted.
        """
        column_list = ", ".join(quote_identifier(c) for c in columns)
        placeholders = ", ".join("?" for _ in columns)
        sql = (
            f"INSERT INTO {quote_identifier(table_name)} ({column_list}) "
            f"VALUES ({placeholders})"
        )
        try:
            cursor = self._connection().executemany(sql, rows)
        except (sqlite3.Error, OverflowError) as exc:
            log.error("SQLite insert into '%s' failed: %s", table_name, exc)
            raise DatabaseError(str(exc)) from exc
        return cursor.rowcount
