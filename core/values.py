"""
core/values.py
--------------
Folds MySQL driver values into the five value kinds SQLite stores:
NULL, INTEGER, REAL, TEXT and BLOB.

mysql-connector hands back Python objects such as ``Decimal``,
``datetime`` or ``timedelta`` that ``sqlite3`` either cannot bind or
binds through deprecated default adapters.  They are converted to the
text MySQL itself would print, so values survive the trip unchanged.
"""
from __future__ import annotations

import datetime
from decimal import Decimal
from typing import Any, Iterable, Union

SQLiteValue = Union[None, int, float, str, bytes]

# SQLite INTEGER is a signed 64-bit value.
_SQLITE_INT_MIN = -(2**63)
_SQLITE_INT_MAX = 2**63 - 1


def _format_timedelta(value: datetime.timedelta) -> str:
    # MySQL TIME columns arrive as timedelta and may be negative or > 24h.
    total = abs(value)
    hours, remainder = divmod(total.days * 86400 + total.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    text = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    if total.microseconds:
        text += f".{total.microseconds:06d}"
    return f"-{text}" if value < datetime.timedelta(0) else text


def normalize_value(value: Any) -> SQLiteValue:
    """
    Convert one fetched value into something ``sqlite3`` binds natively.

    Examples::

        normalize_value(True)                  →  1
        normalize_value(Decimal("1.50"))       →  "1.50"
        normalize_value(datetime(2024, 1, 2))  →  "2024-01-02 00:00:00"
    """
    if value is None:
        return None
    # bool first: it is a subclass of int
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, int):
        # BIGINT UNSIGNED can exceed the SQLite range
        if _SQLITE_INT_MIN <= value <= _SQLITE_INT_MAX:
            return value
        return str(value)
    if isinstance(value, (float, str, bytes)):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime.datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return _format_timedelta(value)
    if isinstance(value, (set, frozenset)):
        return ",".join(sorted(str(v) for v in value))
    return str(value)


def normalize_row(row: Iterable[Any]) -> tuple[SQLiteValue, ...]:
    return tuple(normalize_value(v) for v in row)
