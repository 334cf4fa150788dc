"""Pytest configuration for test isolation.

Settings are read from ``LEDGER_*`` / ``DATABASE_URL`` environment variables
and the CLI loads ``.env`` from the working directory. A developer's shell or
``.env`` must not leak into the suite, so every test starts from a clean
environment and runs inside its own temporary directory.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

# Make `packages/`, `libs/db/src` and the repo root (for `tests.helpers`) importable.
_ROOT = Path(__file__).resolve().parents[1]
sys.path[:0] = [
    p
    for p in (str(_ROOT / "packages"), str(_ROOT / "libs" / "db" / "src"), str(_ROOT))
    if p not in sys.path
]

_ENV_VARS = (
    "DATABASE_URL",
    "LEDGER_USER_ID",
    "LEDGER_DUPLICATE_WINDOW_SECONDS",
    "LEDGER_RECENT_CAPACITY",
    "LEDGER_BACKLOG_MAX_MESSAGES",
    "LEDGER_BACKLOG_DAYS",
    "LEDGER_PROGRESS_EVERY",
    "LEDGER_INGEST_LOG_LEVEL",
    "LEDGER_INGEST_SQL_ECHO",
)


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Clear ledger settings and chdir into the test's temporary directory.

    CLI runs attach a console handler bound to the runner's captured stream;
    it is dropped afterwards so later tests do not write to a closed stream.
    """

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    pkg_logger = logging.getLogger("ledger_ingest")
    for h in list(pkg_logger.handlers):
        pkg_logger.removeHandler(h)
    pkg_logger.setLevel(logging.NOTSET)
    pkg_logger.propagate = True


@pytest.fixture
def database_url(tmp_path: Path):
    from tests.helpers.db import bootstrap_sqlite_db, teardown_sqlite_db

    url = bootstrap_sqlite_db(tmp_path / "ledger.sqlite3")
    yield url
    teardown_sqlite_db()


@pytest.fixture
def store(database_url: str):
    from ledger_ingest.store import LedgerStore

    return LedgerStore(database_url)
