"""Pytest configuration for test isolation.

Import settings and logging read ``STATEMENT_IMPORT_*`` environment variables,
and the database client reads ``DATABASE_URL``. A developer's shell (or a
local ``.env`` loaded by an earlier CLI test) must not leak into assertions,
so every test starts with those variables cleared.

Database tests get a fresh file-backed SQLite database per test through the
``db_url`` fixture and a session bound to it through ``session``.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from ledger_db.client import dispose_engines, get_session
from sqlalchemy.orm import Session

from tests.helpers.db import bootstrap_sqlite_db

_ENV_VARS = (
    "DATABASE_URL",
    "STATEMENT_IMPORT_DEFAULT_CURRENCY",
    "STATEMENT_IMPORT_DEFAULT_ROW_NAME",
    "STATEMENT_IMPORT_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db_url(tmp_path: Path) -> Iterator[str]:
    url = bootstrap_sqlite_db(tmp_path / "ledger.db")
    yield url
    dispose_engines()


@pytest.fixture
def session(db_url: str) -> Iterator[Session]:
    s = get_session(database_url=db_url)
    try:
        yield s
    finally:
        s.rollback()
        s.close()
