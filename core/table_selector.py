"""
core/table_selector.py
----------------------
Chooses which tables to export and which of them get schema only.

Ignore patterns use SQL ``LIKE`` syntax: ``%`` matches any run of
characters (including none), everything else is literal.  Matching is
case-insensitive and anchored at both ends, so ``audits`` matches the
``audits`` table but not ``user_audits``.
"""
from __future__ import annotations

import re
from typing import Iterable, Protocol

from logger import get_logger

log = get_logger(__name__)


class TableLister(Protocol):
    def list_base_tables(self, schema: str) -> list[str]: ...


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile one ``%``-wildcard pattern into an anchored regex."""
    regex = ".*".join(re.escape(part) for part in pattern.split("%"))
    return re.compile(rf"^{regex}$", re.IGNORECASE | re.DOTALL)


class IgnoreMatcher:
    """
    Compiled set of ignore patterns, built once per run.

    Example::

        matcher = IgnoreMatcher(["%telescope%", "audits"])
        matcher.matches("telescope_entries")  # True
        matcher.matches("user_audits")        # False
    """

    def __init__(self, patterns: Iterable[str]) -> None:
        self.patterns = tuple(patterns)
        self._compiled = [compile_pattern(p) for p in self.patterns]

    def matches(self, table_name: str) -> bool:
        for pattern, regex in zip(self.patterns, self._compiled):
            if regex.match(table_name):
                log.debug("Table '%s' matches ignore pattern '%s'.", table_name, pattern)
                return True
        return False


def should_skip_data(table_name: str, patterns: Iterable[str] | IgnoreMatcher) -> bool:
    """Return True if the rows of *table_name* must not be copied."""
    matcher = patterns if isinstance(patterns, IgnoreMatcher) else IgnoreMatcher(patterns)
    return matcher.matches(table_name)


def list_tables(source: TableLister, schema: str) -> list[str]:
    """Return the base tables of *schema* in the order the source lists them."""
    return list(source.list_base_tables(schema))
