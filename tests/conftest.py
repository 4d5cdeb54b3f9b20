"""Pytest configuration for test isolation.

Each test that needs a database gets its own file-backed SQLite database under
``tmp_path``; cached engines are disposed afterwards so no state leaks across
tests. The extraction backoff sleep is disabled globally to keep retry tests
fast.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from db.client import dispose_engines

import invoice_ingest.extraction as extraction_mod
from tests.helpers.db import bootstrap_sqlite_db, seed_household


@pytest.fixture(autouse=True)
def _no_backoff_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(extraction_mod, "_sleep_backoff", lambda attempt_no: None)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host settings (``.env`` or shell) from leaking into tests."""

    for name in (
        "DATABASE_URL",
        "INVOICE_INGEST_MODEL",
        "INVOICE_INGEST_TIMEOUT_SEC",
        "INVOICE_INGEST_MAX_ATTEMPTS",
        "INVOICE_INGEST_USER_ID",
        "INVOICE_INGEST_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db_url(tmp_path: Path) -> Iterator[str]:
    """A seeded database: one owner, one member and card ``card-1`` (closing day 20)."""

    url = bootstrap_sqlite_db(tmp_path / "ingest.sqlite3")
    seed_household(url)
    yield url
    dispose_engines()
