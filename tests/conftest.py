from __future__ import annotations

from datetime import date

import pytest

import config
import db
from store import SubscriptionStore

TODAY = date(2025, 3, 10)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def store() -> SubscriptionStore:
    return SubscriptionStore(clock=lambda: TODAY)


@pytest.fixture
def sqlite_db(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "DB_FILE", tmp_path / "test.db")
    db.init_db()
    return tmp_path / "test.db"


@pytest.fixture
def owner_id(sqlite_db) -> int:
    return db.execute(
        "INSERT INTO users(email, password_hash, created_at) VALUES(?,?,?)",
        ("owner@example.com", "x", "2025-01-01T00:00:00"),
    )
