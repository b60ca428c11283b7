"""
db.py
SQLite helpers + initialization, and the subscription storage backend used by the store.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone

import config
from models import NotFoundError, PersistenceError

LOGGER = logging.getLogger(__name__)

SUBSCRIPTION_COLUMNS = (
    "client_name", "plan_type", "duration", "custom_duration", "custom_date",
    "start_date", "expiration_date", "notes", "cost", "status",
)


@contextmanager
def get_conn():
    conn = sqlite3.connect(config.DB_FILE, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def execute_count(sql: str, params: tuple = ()) -> int:
    """Like execute(), but returns the number of rows touched."""
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.rowcount


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


def _create_tables() -> None:
    execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS subscriptions (
            id TEXT PRIMARY KEY,
            user_id INTEGER NOT NULL,
            client_name TEXT NOT NULL,
            plan_type TEXT NOT NULL,
            duration TEXT NOT NULL,
            custom_duration INTEGER,
            custom_date TEXT,
            start_date TEXT NOT NULL,
            expiration_date TEXT NOT NULL,
            notes TEXT,
            cost TEXT,
            status TEXT NOT NULL CHECK(status IN ('active','expiring-soon','expired')),
            created_at TEXT NOT NULL,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        )
        """
    )


def init_db() -> None:
    """
    Initialize the database (create tables if missing).
    """
    _create_tables()
    LOGGER.debug("Database ready at %s", config.DB_FILE)


class SqliteSubscriptionBackend:
    """
    Subscription CRUD scoped to one owner (users.id).
    Every sqlite failure surfaces as PersistenceError.
    """

    def list_by_owner(self, owner_id) -> list[dict]:
        rows = self._run(
            fetch_all,
            "SELECT * FROM subscriptions WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
            (owner_id,),
        )
        return [dict(r) for r in rows]

    def insert(self, owner_id, fields: dict) -> dict:
        record_id = uuid.uuid4().hex
        now = datetime.now(timezone.utc).isoformat(timespec="seconds")
        values = [fields.get(c) for c in SUBSCRIPTION_COLUMNS]
        columns = ", ".join(SUBSCRIPTION_COLUMNS)
        placeholders = ",".join("?" * len(SUBSCRIPTION_COLUMNS))
        self._run(
            execute,
            f"""
            INSERT INTO subscriptions(id, user_id, {columns}, created_at)
            VALUES(?,?,{placeholders},?)
            """,
            (record_id, owner_id, *values, now),
        )
        return dict(self._run(fetch_one, "SELECT * FROM subscriptions WHERE id = ?", (record_id,)))

    def update(self, record_id: str, owner_id, fields: dict) -> None:
        assignments = ", ".join(f"{c}=?" for c in SUBSCRIPTION_COLUMNS)
        values = [fields.get(c) for c in SUBSCRIPTION_COLUMNS]
        count = self._run(
            execute_count,
            f"UPDATE subscriptions SET {assignments} WHERE id=? AND user_id=?",
            (*values, record_id, owner_id),
        )
        if not count:
            raise NotFoundError(f"Subscription not found: {record_id}")

    def delete(self, record_id: str, owner_id) -> None:
        count = self._run(
            execute_count,
            "DELETE FROM subscriptions WHERE id=? AND user_id=?",
            (record_id, owner_id),
        )
        if not count:
            raise NotFoundError(f"Subscription not found: {record_id}")

    @staticmethod
    def _run(fn, sql: str, params: tuple):
        try:
            return fn(sql, params)
        except sqlite3.Error as exc:
            raise PersistenceError(str(exc)) from exc
