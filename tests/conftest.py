from __future__ import annotations

from datetime import datetime, timezone

import pytest

from grant_curator.context import RunContext
from grant_curator.models import FunderSource, FunderType
from grant_curator.store.sqlite_store import SQLiteStore

FIXED_NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path) -> SQLiteStore:
    sqlite_store = SQLiteStore(str(tmp_path / "grants.sqlite"))
    sqlite_store.init_db()
    return sqlite_store


@pytest.fixture
def funder(store: SQLiteStore) -> FunderSource:
    return store.upsert_funder(
        FunderSource(
            slug="hope-foundation",
            name="Hope Foundation",
            funder_type=FunderType.PRIVATE_FOUNDATION,
            scrape_url="https://hope.example.org/grants",
            scrape_config={"type": "html", "hints": {}},
        )
    )


@pytest.fixture
def context() -> RunContext:
    return RunContext(now=FIXED_NOW)


class DummyResponse:
    def __init__(self, status_code: int = 200, text: str = "", payload: object = None) -> None:
        self.status_code = status_code
        self.text = text
        self._payload = payload

    def json(self) -> object:
        return self._payload

    def close(self) -> None:
        return None
