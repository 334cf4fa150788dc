"""Logging for ``ledger_ingest``.

Library modules log through ``get_logger(__name__)`` and never attach
handlers. Entry points call :func:`configure_logging`, which owns one named
stream handler on the ``ledger_ingest`` logger. Calling it again (every CLI
invocation does) swaps that handler for a fresh one bound to the current
stream instead of stacking another.

SQLAlchemy's engine logger is held at WARNING unless
``LEDGER_INGEST_SQL_ECHO`` is set, so per-message store queries do not drown
the pipeline and backlog progress lines.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "ledger_ingest"
_HANDLER_NAME = "ledger_ingest.console"
_LEVEL_ENV_VAR = "LEDGER_INGEST_LOG_LEVEL"
_SQL_ECHO_ENV_VAR = "LEDGER_INGEST_SQL_ECHO"
_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def _parse_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(_LEVEL_ENV_VAR) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    resolved = logging.getLevelNamesMapping().get(name)
    return resolved if resolved is not None else logging.INFO


def _console_handler(logger: logging.Logger) -> logging.StreamHandler | None:
    for h in logger.handlers:
        if h.get_name() == _HANDLER_NAME and isinstance(h, logging.StreamHandler):
            return h
    return None


def configure_logging(level: int | str | None = None, *, stream: IO[str] | None = None) -> None:
    """Route ``ledger_ingest`` records to ``stream`` (stderr by default) at ``level``.

    ``level`` falls back to ``LEDGER_INGEST_LOG_LEVEL``, then INFO.
    """

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    resolved = _parse_level(level)
    target = stream if stream is not None else sys.stderr

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    previous = _console_handler(logger)
    if previous is not None:
        # The previous stream may already be closed; replace without flushing it.
        logger.removeHandler(previous)
    handler = logging.StreamHandler(target)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    handler.setLevel(resolved)
    logger.setLevel(resolved)
    logger.propagate = False

    sql_level = logging.INFO if os.getenv(_SQL_ECHO_ENV_VAR) else logging.WARNING
    logging.getLogger("sqlalchemy.engine").setLevel(sql_level)


def get_logger(name: str) -> logging.Logger:
    """Return ``name``'s logger; stays silent until :func:`configure_logging` runs."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
