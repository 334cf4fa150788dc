"""Runtime settings resolved from the environment.

Entrypoints load ``.env`` (via ``python-dotenv``) before calling
:meth:`Settings.from_env`; library code receives a ``Settings`` instance (or
explicit keyword arguments) and never reads the environment itself.

Recognized variables
--------------------
- ``DATABASE_URL``: SQLAlchemy URL of the ledger database.
- ``LEDGER_USER_ID``: optional owner id stamped on written rows.
- ``LEDGER_DUPLICATE_WINDOW_SECONDS``: duplicate window (default 180).
- ``LEDGER_RECENT_CAPACITY``: in-memory duplicate cache size (default 50).
- ``LEDGER_BACKLOG_MAX_MESSAGES``: SMS history fetch cap (default 1000).
- ``LEDGER_BACKLOG_DAYS``: SMS history age limit in days (default 90).
- ``LEDGER_PROGRESS_EVERY``: backlog progress granularity (default 100).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta

from .logging_setup import get_logger

logger = get_logger(__name__)


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %d", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r; using %d", name, raw, default)
        return default
    return value


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str | None = None
    user_id: str | None = None
    duplicate_window_seconds: int = 180
    recent_capacity: int = 50
    backlog_max_messages: int = 1000
    backlog_days: int = 90
    progress_every: int = 100

    @property
    def duplicate_window(self) -> timedelta:
        return timedelta(seconds=self.duplicate_window_seconds)

    @property
    def backlog_max_age(self) -> timedelta:
        return timedelta(days=self.backlog_days)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if env is None else env
        user_id = (env.get("LEDGER_USER_ID") or "").strip() or None
        return cls(
            database_url=(env.get("DATABASE_URL") or "").strip() or None,
            user_id=user_id,
            duplicate_window_seconds=_env_int(env, "LEDGER_DUPLICATE_WINDOW_SECONDS", 180),
            recent_capacity=_env_int(env, "LEDGER_RECENT_CAPACITY", 50),
            backlog_max_messages=_env_int(env, "LEDGER_BACKLOG_MAX_MESSAGES", 1000),
            backlog_days=_env_int(env, "LEDGER_BACKLOG_DAYS", 90),
            progress_every=_env_int(env, "LEDGER_PROGRESS_EVERY", 100),
        )


__all__ = ["Settings"]
