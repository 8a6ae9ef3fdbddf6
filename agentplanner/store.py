"""Workspace-scoped state and credential storage with SQLite backend."""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DB_PATH_ENV = "AGENTPLANNER_DB"
DEFAULT_DB_PATH = Path.home() / ".agentplanner" / "state.db"


def _default_db_path() -> Path:
    override = os.environ.get(DB_PATH_ENV)
    return Path(override) if override else DEFAULT_DB_PATH


class StateStore:
    """Key-value store where every key lives inside an explicit scope.

    The scope is the resolved workspace path; nothing is global.
    """

    def __init__(self, db_path: Path | str | None = None):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path) if db_path else _default_db_path()
        self._lock = threading.Lock()

        # Ensure parent directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS workspace_state (
                    scope TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value_json TEXT NOT NULL,
                    updated_at INTEGER NOT NULL,
                    PRIMARY KEY (scope, key)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS secrets (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at INTEGER NOT NULL
                )
            """)
            conn.commit()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(str(self.db_path), timeout=10.0)
        conn.row_factory = sqlite3.Row
        return conn

    def get(self, scope: str, key: str) -> Any | None:
        """Read a value, or None when the key has never been set."""
        with self._lock:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT value_json FROM workspace_state WHERE scope = ? AND key = ?",
                    (scope, key),
                ).fetchone()

        if row is None:
            return None
        return json.loads(row["value_json"])

    def set(self, scope: str, key: str, value: Any) -> None:
        """Write a value, replacing any previous one (last write wins)."""
        value_json = json.dumps(value)
        now = int(time.time() * 1000000)

        with self._lock:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO workspace_state (scope, key, value_json, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(scope, key) DO UPDATE SET
                        value_json = excluded.value_json,
                        updated_at = excluded.updated_at
                    """,
                    (scope, key, value_json, now),
                )
                conn.commit()

        logger.debug(f"Stored {key} for {scope}")

    def delete(self, scope: str, key: str) -> None:
        """Remove a value if present."""
        with self._lock:
            with self._get_connection() as conn:
                conn.execute(
                    "DELETE FROM workspace_state WHERE scope = ? AND key = ?",
                    (scope, key),
                )
                conn.commit()

    def get_secret(self, key: str) -> str | None:
        with self._lock:
            with self._get_connection() as conn:
                row = conn.execute("SELECT value FROM secrets WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set_secret(self, key: str, value: str) -> None:
        now = int(time.time() * 1000000)
        with self._lock:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO secrets (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, value, now),
                )
                conn.commit()

    def delete_secret(self, key: str) -> None:
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("DELETE FROM secrets WHERE key = ?", (key,))
                conn.commit()


class SecretStore:
    """Credential source: get/set by a fixed key. Absence is not an error."""

    def __init__(self, store: StateStore):
        self._store = store

    def get(self, key: str) -> str | None:
        return self._store.get_secret(key)

    def set(self, key: str, value: str) -> None:
        self._store.set_secret(key, value)
        logger.info(f"Saved credential {key}")

    def delete(self, key: str) -> None:
        self._store.delete_secret(key)


def workspace_scope(workspace: Path | str) -> str:
    """Scope key for a workspace: its resolved absolute path."""
    return str(Path(workspace).expanduser().resolve())


# Global store instance
_store_instance: StateStore | None = None


def get_store(db_path: Path | str | None = None) -> StateStore:
    """Get or create the global store instance.

    Args:
        db_path: Optional path to database file

    Returns:
        StateStore instance
    """
    global _store_instance
    if _store_instance is None:
        _store_instance = StateStore(db_path=db_path)
    return _store_instance
