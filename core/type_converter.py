"""
core/type_converter.py
----------------------
MySQL column type and default value translation for SQLite.

SQLite only knows a handful of storage classes, so every MySQL type
collapses onto one of:
    INTEGER  – tinyint … bigint, including ``tinyint(1)`` booleans.
    NUMERIC  – decimal, numeric, double, float.
    BLOB     – blob family and (var)binary.
    TEXT     – everything else, dates and times included.

Design Decision:
    Pure functions with no side effects make this module trivially testable.
    The mapping is total: an unknown type must never abort an export, so
    anything unrecognised falls through to TEXT.
"""
from __future__ import annotations

import re
from enum import Enum


class StorageClass(str, Enum):
    INTEGER = "INTEGER"
    NUMERIC = "NUMERIC"
    BLOB = "BLOB"
    TEXT = "TEXT"


# Checked in order; the first matching pattern wins.
_TYPE_RULES: tuple[tuple[re.Pattern[str], StorageClass], ...] = (
    (re.compile(r"int"), StorageClass.INTEGER),
    (re.compile(r"decimal|numeric|double|float"), StorageClass.NUMERIC),
    (re.compile(r"blob|binary"), StorageClass.BLOB),
    (re.compile(r"datetime|timestamp|date|time"), StorageClass.TEXT),
)

# Defaults emitted as bare SQL keywords rather than string literals.
_DEFAULT_KEYWORDS = frozenset({"CURRENT_TIMESTAMP", "CURRENT_DATE", "CURRENT_TIME"})

# Same shape PHP's is_numeric() accepts: optional sign, decimals, exponent.
_NUMERIC_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")


def map_type(mysql_type: str) -> StorageClass:
    """
    Map a MySQL column type string onto a SQLite storage class.

    Examples::

        map_type("int(11) unsigned")   →  StorageClass.INTEGER
        map_type("DECIMAL(10,2)")      →  StorageClass.NUMERIC
        map_type("varbinary(16)")      →  StorageClass.BLOB
        map_type("enum('a','b')")      →  StorageClass.TEXT
    """
    normalized = (mysql_type or "").lower()
    for pattern, storage_class in _TYPE_RULES:
        if pattern.search(normalized):
            return storage_class
    return StorageClass.TEXT


def is_numeric(value: str) -> bool:
    return bool(_NUMERIC_RE.match(value))


def _default_keyword(value: str) -> str | None:
    upper = value.strip().upper()
    # MariaDB reports "current_timestamp()"
    if upper.endswith("()"):
        upper = upper[:-2]
    return upper if upper in _DEFAULT_KEYWORDS else None


def build_default_clause(default_value: str | None, storage_class: StorageClass) -> str:
    """
    Build the ``DEFAULT …`` clause for a column, or ``""`` for none.

    Numeric defaults on INTEGER columns stay unquoted, timestamp keywords
    stay bare, and everything else becomes a quoted string literal.  A
    non-numeric default on an INTEGER column is quoted as well.

    Examples::

        build_default_clause(None, StorageClass.TEXT)        →  ""
        build_default_clause("0", StorageClass.INTEGER)      →  "DEFAULT 0"
        build_default_clause("O'Brien", StorageClass.TEXT)   →  "DEFAULT 'O''Brien'"
    """
    if default_value is None:
        return ""

    if storage_class is StorageClass.INTEGER and is_numeric(default_value):
        return f"DEFAULT {default_value}"

    keyword = _default_keyword(default_value)
    if keyword is not None:
        return f"DEFAULT {keyword}"

    escaped = default_value.replace("'", "''")
    return f"DEFAULT '{escaped}'"
