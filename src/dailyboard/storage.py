"""LocalStore: durable key/value storage and error log backed by DuckDB.

Plays the role browser ``localStorage`` plays for the web client: it holds
the last full document backup, the offline queue, saved credentials and a
rolling error log.  Pointing ``db_path`` at a file makes all of it survive a
process restart; ``":memory:"`` is handy for tests.

Usage::

    with LocalStore("board.duckdb") as store:
        store.save_backup(doc)
        store.log_error("remote_unavailable", "GitHub timed out")
        df = store.error_frame()   # polars DataFrame, oldest first
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import duckdb
import polars as pl

from dailyboard.document import Document

BACKUP_KEY = "dailyBoard_backup"
QUEUE_KEY = "dailyBoard_pendingOps"
CREDENTIALS_KEY = "dailyBoard_credentials"
CONFLICT_COPY_KEY = "dailyBoard_conflictCopy"

_ERROR_COLUMNS = ["id", "logged_at", "kind", "message", "context"]


class LocalStore:
    """Key/value store plus a bounded error log in a single DuckDB database."""

    def __init__(self, db_path: Path | str = ":memory:", *, error_log_limit: int = 50) -> None:
        self._db_path = str(db_path)
        self.error_log_limit = error_log_limit
        self.conn: duckdb.DuckDBPyConnection = duckdb.connect(self._db_path)
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key   VARCHAR PRIMARY KEY,
                value VARCHAR NOT NULL
            )
        """)
        self.conn.execute("CREATE SEQUENCE IF NOT EXISTS error_log_seq")
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS error_log (
                id        BIGINT PRIMARY KEY DEFAULT nextval('error_log_seq'),
                logged_at VARCHAR NOT NULL,
                kind      VARCHAR NOT NULL,
                message   VARCHAR NOT NULL,
                context   VARCHAR NOT NULL
            )
        """)

    # ------------------------------------------------------------------
    # Key/value
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        row = self.conn.execute("SELECT value FROM kv WHERE key = ?", [key]).fetchone()
        if row is None:
            return default
        return json.loads(row[0])

    def set(self, key: str, value: Any) -> None:
        self.conn.execute(
            "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
            [key, json.dumps(value)],
        )

    def delete(self, key: str) -> None:
        self.conn.execute("DELETE FROM kv WHERE key = ?", [key])

    def save_backup(self, doc: Document) -> None:
        self.set(BACKUP_KEY, doc)

    def load_backup(self) -> Document | None:
        return self.get(BACKUP_KEY)

    # ------------------------------------------------------------------
    # Error log
    # ------------------------------------------------------------------

    def log_error(self, kind: str, message: str, context: str = "") -> None:
        """Append an entry, evicting the oldest ones past ``error_log_limit``."""
        self.conn.execute(
            "INSERT INTO error_log (logged_at, kind, message, context) VALUES (?, ?, ?, ?)",
            [datetime.now(timezone.utc).isoformat(), kind, message, context],
        )
        limit = int(self.error_log_limit)
        self.conn.execute(f"""
            DELETE FROM error_log
            WHERE id NOT IN (SELECT id FROM error_log ORDER BY id DESC LIMIT {limit})
        """)

    def errors(self) -> list[dict[str, Any]]:
        rows = self.conn.execute(
            f"SELECT {', '.join(_ERROR_COLUMNS)} FROM error_log ORDER BY id"
        ).fetchall()
        return [dict(zip(_ERROR_COLUMNS, row)) for row in rows]

    def error_frame(self) -> pl.DataFrame:
        """Return the error log as a Polars DataFrame (oldest first)."""
        rows = self.conn.execute(
            f"SELECT {', '.join(_ERROR_COLUMNS)} FROM error_log ORDER BY id"
        ).fetchall()
        return pl.DataFrame(
            rows,
            schema={"id": pl.Int64, "logged_at": pl.Utf8, "kind": pl.Utf8,
                    "message": pl.Utf8, "context": pl.Utf8},
            orient="row",
        )

    def clear_errors(self) -> None:
        self.conn.execute("DELETE FROM error_log")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "LocalStore":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
