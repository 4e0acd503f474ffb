"""SQLite storage adapter.

Implements the core KeyValueStorePort (plain keys plus string sets) on top of
a small SQLite database.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from core.errors import StoreError


class _Operations:
    """Store operations bound to one open connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_schema(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS set_members (
                set_key TEXT NOT NULL,
                member TEXT NOT NULL,
                PRIMARY KEY (set_key, member)
            )
            """
        )

    def get(self, key: str) -> Optional[str]:
        row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        self._conn.execute(
            """
            INSERT INTO kv (key, value)
            VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, value),
        )

    def delete(self, key: str) -> None:
        self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def set_add(self, set_key: str, member: str) -> None:
        self._conn.execute(
            "INSERT OR IGNORE INTO set_members (set_key, member) VALUES (?, ?)",
            (set_key, member),
        )

    def set_remove(self, set_key: str, member: str) -> None:
        self._conn.execute(
            "DELETE FROM set_members WHERE set_key = ? AND member = ?",
            (set_key, member),
        )

    def set_members(self, set_key: str) -> list[str]:
        rows = self._conn.execute(
            "SELECT member FROM set_members WHERE set_key = ?",
            (set_key,),
        ).fetchall()
        return [row["member"] for row in rows]

    def set_contains(self, set_key: str, member: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM set_members WHERE set_key = ? AND member = ?",
            (set_key, member),
        ).fetchone()
        return row is not None


class SQLiteStore:
    """Thin SQLite wrapper that satisfies the KeyValueStorePort contract.

    Every call opens its own connection, so the store is the single source of
    truth and several processes can share one database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=5)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - kv: plain string values (associations, watermarks)
        - set_members: string sets (registered usernames)
        """

        with self.transaction() as tx:
            tx.create_schema()

    @contextmanager
    def transaction(self) -> Iterator[_Operations]:
        """Group several operations into one commit; rolled back on error."""

        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open store {self._db_path}: {exc}") from exc
        try:
            with conn:
                yield _Operations(conn)
        except sqlite3.Error as exc:
            raise StoreError(f"Store operation failed: {exc}") from exc
        finally:
            conn.close()

    def get(self, key: str) -> Optional[str]:
        with self.transaction() as tx:
            return tx.get(key)

    def set(self, key: str, value: str) -> None:
        with self.transaction() as tx:
            tx.set(key, value)

    def delete(self, key: str) -> None:
        with self.transaction() as tx:
            tx.delete(key)

    def set_add(self, set_key: str, member: str) -> None:
        with self.transaction() as tx:
            tx.set_add(set_key, member)

    def set_remove(self, set_key: str, member: str) -> None:
        with self.transaction() as tx:
            tx.set_remove(set_key, member)

    def set_members(self, set_key: str) -> list[str]:
        with self.transaction() as tx:
            return tx.set_members(set_key)

    def set_contains(self, set_key: str, member: str) -> bool:
        with self.transaction() as tx:
            return tx.set_contains(set_key, member)
