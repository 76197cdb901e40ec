"""
config.py
---------
Configuration for the MySQL → SQLite export tool.

Settings come from environment variables, optionally supplemented by a
``.env`` file read with python-dotenv. The result is a frozen dataclass
that the entry point builds once and passes down explicitly, so nothing
in ``core`` looks up configuration on its own.

Design Decision:
    ``load_config`` takes the environment as a plain mapping instead of
    reading ``os.environ`` itself.  Tests can build any configuration
    without touching the process environment.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

from dotenv import dotenv_values

DEFAULT_OUTPUT_PATH = Path("database") / "database-export.sqlite"

# Tables whose schema is exported but whose rows are not.
DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = ("%telescope%", "audits")


class ConfigError(Exception):
    """Raised for configuration problems detected before any table work starts."""


@dataclass(frozen=True)
class DatabaseConfig:
    """Source (MySQL) connection settings."""
    database: str
    host: str = "127.0.0.1"
    port: int = 3306
    user: str = ""
    password: str = field(default="", repr=False)
    charset: str = "utf8mb4"
    connect_timeout: int = 10


@dataclass(frozen=True)
class ExportConfig:
    """Root configuration for one export run."""
    source: DatabaseConfig
    output_path: Path = DEFAULT_OUTPUT_PATH
    ignore_patterns: tuple[str, ...] = DEFAULT_IGNORE_PATTERNS
    log_level: str = "WARNING"
    log_file: str | None = None


def read_environment(env_file: str | Path | None = None) -> dict[str, str]:
    """
    Return the process environment merged with the contents of *env_file*.

    Real environment variables take precedence over ``.env`` entries.
    A missing ``.env`` file is not an error.
    """
    values: dict[str, str] = {}
    if env_file is not None and Path(env_file).is_file():
        values.update(
            {k: v for k, v in dotenv_values(env_file).items() if v is not None}
        )
    values.update(os.environ)
    return values


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, current value: {raw}") from exc


def _split_patterns(raw: str) -> tuple[str, ...]:
    return tuple(p.strip() for p in raw.split(",") if p.strip())


def load_config(
    env: Mapping[str, str],
    output_path: str | Path | None = None,
    ignore_patterns: Iterable[str] | None = None,
) -> ExportConfig:
    """
    Build and validate the export configuration.

    Args:
        env:             Environment mapping (see :func:`read_environment`).
        output_path:     Destination SQLite file; defaults to
                         ``database/database-export.sqlite``.
        ignore_patterns: Explicit ignore patterns. When omitted,
                         ``EXPORT_IGNORE_PATTERNS`` (comma-separated) or the
                         built-in defaults are used.

    Returns:
        ExportConfig: Fully populated, frozen configuration.

    Raises:
        ConfigError: If the connection is not MySQL, the database name is
                     missing, or a numeric setting is malformed.
    """
    connection = env.get("DB_CONNECTION", "mysql") or "mysql"
    if connection != "mysql":
        raise ConfigError(
            f"DB_CONNECTION must be 'mysql', current value: {connection}"
        )

    database = env.get("DB_DATABASE", "")
    if not database:
        raise ConfigError("DB_DATABASE is missing in .env")

    source = DatabaseConfig(
        database=database,
        host=env.get("DB_HOST") or "127.0.0.1",
        port=_int_setting(env, "DB_PORT", 3306),
        user=env.get("DB_USERNAME", ""),
        password=env.get("DB_PASSWORD", ""),
        charset=env.get("DB_CHARSET") or "utf8mb4",
        connect_timeout=_int_setting(env, "DB_CONNECT_TIMEOUT", 10),
    )

    if ignore_patterns is not None:
        patterns = tuple(ignore_patterns)
    elif env.get("EXPORT_IGNORE_PATTERNS"):
        patterns = _split_patterns(env["EXPORT_IGNORE_PATTERNS"])
    else:
        patterns = DEFAULT_IGNORE_PATTERNS

    return ExportConfig(
        source=source,
        output_path=Path(output_path) if output_path else DEFAULT_OUTPUT_PATH,
        ignore_patterns=patterns,
        log_level=(env.get("LOG_LEVEL") or "WARNING").upper(),
        log_file=env.get("LOG_FILE") or None,
    )


def prepare_output_path(path: Path) -> Path:
    """
    Make *path* ready to receive a fresh SQLite database.

    Creates the parent directory, refuses a non-writable existing file,
    then replaces whatever was there with an empty file.

    Raises:
        ConfigError: If the directory cannot be created or the file is
                     not writable.
    """
    output_dir = path.parent
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigError(
            f"Failed to create destination directory: {output_dir}"
        ) from exc

    if path.exists() and not os.access(path, os.W_OK):
        raise ConfigError(f"Destination file is not writable: {path}")

    try:
        path.unlink(missing_ok=True)
        path.touch()
    except OSError as exc:
        raise ConfigError(f"Destination file is not writable: {path}") from exc
    return path


def get_log_level(config: ExportConfig) -> int:
    """Convert the configured level name to a logging module constant."""
    level = getattr(logging, config.log_level, None)
    if not isinstance(level, int):
        return logging.WARNING
    return level
