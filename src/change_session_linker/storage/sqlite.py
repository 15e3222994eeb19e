"""SQLite session-record store.

Stores records in a single SQLite database file using the standard library
``sqlite3`` module.  Besides the JSON payload each row keeps the record's
root node and head node, so lookups by node are indexed queries instead of
full scans.

Classes
-------
- SQLiteSessionStore  — SQLite-backed record store
"""
from __future__ import annotations

import sqlite3
from contextlib import closing
from pathlib import Path

from change_session_linker.session.serializer import SessionSerializer
from change_session_linker.session.state import Session
from change_session_linker.storage.base import SessionStore

_DEFAULT_DB_PATH: Path = Path.home() / ".agent-sessions" / "sessions.db"
_CREATE_SQL = """
CREATE TABLE IF NOT EXISTS sessions (
    session_id   TEXT PRIMARY KEY,
    root_node_id TEXT NOT NULL,
    head_node_id TEXT,
    resumable    INTEGER NOT NULL,
    payload      TEXT NOT NULL,
    saved_at     TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS sessions_root ON sessions (root_node_id);
"""
_UPSERT_SQL = """
INSERT INTO sessions (session_id, root_node_id, head_node_id, resumable, payload, saved_at)
VALUES (?, ?, ?, ?, ?, datetime('now'))
ON CONFLICT(session_id) DO UPDATE SET
    head_node_id = excluded.head_node_id,
    resumable    = excluded.resumable,
    payload      = excluded.payload,
    saved_at     = excluded.saved_at
"""


class SQLiteSessionStore(SessionStore):
    """Persists session records in a local SQLite database.

    Parameters
    ----------
    db_path:
        Path to the SQLite file.  The parent directory and schema are
        created automatically on first use.
    serializer:
        Optional custom serializer.
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        serializer: SessionSerializer | None = None,
    ) -> None:
        super().__init__(serializer)
        self._db_path: Path = Path(db_path) if db_path is not None else _DEFAULT_DB_PATH

    def _get_connection(self) -> sqlite3.Connection:
        """Open a connection and ensure the schema exists."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.executescript(_CREATE_SQL)
        return conn

    # ------------------------------------------------------------------
    # SessionStore interface
    # ------------------------------------------------------------------

    def list(self) -> list[str]:
        with closing(self._get_connection()) as conn:
            rows = conn.execute("SELECT session_id FROM sessions ORDER BY session_id").fetchall()
        return [str(row["session_id"]) for row in rows]

    def exists(self, session_id: str) -> bool:
        with closing(self._get_connection()) as conn:
            row = conn.execute(
                "SELECT 1 FROM sessions WHERE session_id = ?", (session_id,)
            ).fetchone()
        return row is not None

    def sessions_rooted_at(self, node_id: str) -> list[Session]:
        with closing(self._get_connection()) as conn:
            rows = conn.execute(
                "SELECT payload FROM sessions WHERE root_node_id = ? ORDER BY session_id",
                (node_id,),
            ).fetchall()
        return [self._serializer.from_json(str(row["payload"])) for row in rows]

    def _write(self, session: Session, payload: str) -> None:
        with closing(self._get_connection()) as conn, conn:
            conn.execute(
                _UPSERT_SQL,
                (
                    session.session_id,
                    session.root_node_id,
                    session.head_node_id,
                    int(session.resumable),
                    payload,
                ),
            )

    def _read(self, session_id: str) -> str | None:
        with closing(self._get_connection()) as conn:
            row = conn.execute(
                "SELECT payload FROM sessions WHERE session_id = ?", (session_id,)
            ).fetchone()
        return None if row is None else str(row["payload"])

    def __repr__(self) -> str:
        return f"SQLiteSessionStore(db_path={str(self._db_path)!r})"
