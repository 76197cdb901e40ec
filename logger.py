"""
logger.py
---------
Logging setup for the exporter.

Every module logs through a child of the "exporter" logger obtained with
``get_logger(__name__)``.  ``main`` calls :func:`configure_logging` once,
before any work starts.  Diagnostics go to stderr; when LOG_FILE is set,
a DEBUG-level copy is appended to that file as well.

Per-table progress lines are not log records.  They are written by
``core.exporter.ProgressSink``.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

_ROOT_LOGGER_NAME = "exporter"
_STDERR_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_LOG_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(module)s:%(lineno)d] %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured = False


def _file_handler(log_file: str) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_LOG_FILE_FORMAT, _DATE_FORMAT))
    return handler


def configure_logging(level: int = logging.WARNING, log_file: str | None = None) -> None:
    """Attach the stderr handler (and the LOG_FILE handler, if any). Idempotent."""
    global _configured
    if _configured:
        return
    _configured = True

    root = logging.getLogger(_ROOT_LOGGER_NAME)
    # the file receives DEBUG even when stderr is quieter
    root.setLevel(min(level, logging.DEBUG) if log_file else level)

    stderr = logging.StreamHandler(sys.stderr)
    stderr.setLevel(level)
    stderr.setFormatter(logging.Formatter(_STDERR_FORMAT, _DATE_FORMAT))
    root.addHandler(stderr)

    if log_file:
        try:
            root.addHandler(_file_handler(log_file))
        except OSError as exc:
            root.warning("Cannot write log file '%s': %s", log_file, exc)


def get_logger(name: str) -> logging.Logger:
    """Return the ``exporter.<name>`` logger."""
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{name}")
