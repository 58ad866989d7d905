"""Pytest configuration for test isolation.

Settings are read from the environment at call time (``FINFLOW_*``,
``DATABASE_URL``), and ``db.client`` caches one engine per database URL. A
developer's shell or ``.env`` must not leak into tests, and every test gets
its own file-backed SQLite database, so both are reset by autouse fixtures.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Make the workspace packages importable without an editable install.
_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
_DB_DIR = _ROOT / "libs" / "db" / "src"
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_DB_DIR), str(_ROOT)] if p not in sys.path]

from db.client import dispose_engines, get_session  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from finflow.repository import UserRepository  # noqa: E402
from tests.helpers.db import (  # noqa: E402
    bootstrap_sqlite_db,
    make_account,
    make_user,
    seed_default_taxonomy,
)

_ENV_VARS = (
    "DATABASE_URL",
    "FINFLOW_LOG_LEVEL",
    "FINFLOW_EXTRACTION_TIMEOUT_SEC",
    "FINFLOW_OCR_DPI",
    "FINFLOW_OCR_LANG",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Drop settings inherited from the developer's environment."""

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    dispose_engines()


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return bootstrap_sqlite_db(tmp_path / "finflow.sqlite3")


@pytest.fixture
def session(database_url: str) -> Iterator[Session]:
    s = get_session(database_url=database_url)
    seed_default_taxonomy(s)
    try:
        yield s
    finally:
        s.rollback()
        s.close()


@pytest.fixture
def user_id(session: Session) -> int:
    return make_user(session, "alex@example.com").id


@pytest.fixture
def repo(session: Session, user_id: int) -> UserRepository:
    return UserRepository(session, user_id)


@pytest.fixture
def checking(session: Session, user_id: int):
    return make_account(session, user_id, name="Checking", institution="Chase")


@pytest.fixture
def savings(session: Session, user_id: int):
    return make_account(session, user_id, name="Savings", institution="Zolve")
