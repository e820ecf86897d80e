"""SQLite account store.

Interface consumed by the ledger, router and scheduler: get / upsert /
delete by username, accounts by status ordered by weekly bytes, and the
top daily uploaders.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import astuple, fields
from typing import Protocol

from .accounts import Account


class StoreError(RuntimeError):
    pass


class AccountStore(Protocol):
    def get(self, username: str) -> Account | None: ...

    def upsert(self, account: Account) -> None: ...

    def delete(self, username: str) -> bool: ...

    def by_status(self, status: int, limit: int | None = None) -> list[Account]: ...

    def top_daily(self, limit: int) -> list[Account]: ...


_SCHEMA = """
CREATE TABLE IF NOT EXISTS accounts (
    username TEXT PRIMARY KEY,
    group_name TEXT NOT NULL DEFAULT 'Unknown',
    ratio INTEGER NOT NULL DEFAULT 0,
    flags TEXT NOT NULL DEFAULT '',
    week_bytes INTEGER NOT NULL DEFAULT 0,
    day_bytes INTEGER NOT NULL DEFAULT 0,
    week_files INTEGER NOT NULL DEFAULT 0,
    day_files INTEGER NOT NULL DEFAULT 0,
    status INTEGER NOT NULL DEFAULT 2,
    passed_trial INTEGER NOT NULL DEFAULT 0,
    days_remaining INTEGER DEFAULT NULL,
    trial_start INTEGER DEFAULT NULL,
    trial_days INTEGER DEFAULT NULL,
    added INTEGER DEFAULT NULL,
    last_updated INTEGER DEFAULT NULL
);
CREATE INDEX IF NOT EXISTS accounts_status_week ON accounts (status, week_bytes);
"""

# Column order matches the Account dataclass field order.
_COLUMNS = [f.name if f.name != "group" else "group_name" for f in fields(Account)]
_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM accounts"


def _row_to_account(row: tuple) -> Account:
    acct = Account(*row)
    acct.passed_trial = bool(acct.passed_trial)
    return acct


class SqliteAccountStore:
    """Thread-safe wrapper around one sqlite3 connection."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.log = logging.getLogger("quotad.store")
        self._lock = threading.Lock()
        try:
            self._db = sqlite3.connect(path, check_same_thread=False)
            self._db.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise StoreError(f"cannot open account store {path}: {e}") from e
        self.log.info("Account store ready at %s", path)

    def _query(self, sql: str, params: tuple = ()) -> list[tuple]:
        try:
            with self._lock:
                return self._db.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    def _write(self, sql: str, params: tuple = ()) -> int:
        try:
            with self._lock, self._db:
                return self._db.execute(sql, params).rowcount
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    def get(self, username: str) -> Account | None:
        rows = self._query(f"{_SELECT} WHERE username = ?", (username,))
        return _row_to_account(rows[0]) if rows else None

    def upsert(self, account: Account) -> None:
        values = list(astuple(account))
        values[_COLUMNS.index("passed_trial")] = int(bool(account.passed_trial))
        placeholders = ", ".join("?" for _ in _COLUMNS)
        updates = ", ".join(f"{c} = excluded.{c}" for c in _COLUMNS[1:])
        self._write(
            f"INSERT INTO accounts ({', '.join(_COLUMNS)}) VALUES ({placeholders}) "
            f"ON CONFLICT(username) DO UPDATE SET {updates}",
            tuple(values),
        )

    def delete(self, username: str) -> bool:
        return self._write("DELETE FROM accounts WHERE username = ?", (username,)) > 0

    def by_status(self, status: int, limit: int | None = None) -> list[Account]:
        sql = f"{_SELECT} WHERE status = ? ORDER BY week_bytes DESC, username"
        params: tuple = (int(status),)
        if limit is not None:
            sql += " LIMIT ?"
            params += (int(limit),)
        return [_row_to_account(r) for r in self._query(sql, params)]

    def top_daily(self, limit: int) -> list[Account]:
        rows = self._query(
            f"{_SELECT} WHERE day_bytes > 0 ORDER BY day_bytes DESC, username LIMIT ?",
            (int(limit),),
        )
        return [_row_to_account(r) for r in rows]

    def close(self) -> None:
        with self._lock:
            self._db.close()
