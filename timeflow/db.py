from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

STATE_KEY = "timeflow_data"


class Database:
    """Thin SQLite key-value store holding the serialized application state."""

    def __init__(self, db_path: str | Path) -> None:
        self._conn = sqlite3.connect(str(db_path))
        self._conn.row_factory = sqlite3.Row
        self._closed = False

    def close(self) -> None:
        if self._closed:
            return
        self._conn.close()
        self._closed = True

    def initialize(self) -> None:
        # One row per key, each holding a whole-record JSON document.
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS blobs (
              key TEXT PRIMARY KEY,
              value TEXT NOT NULL
            );
            """
        )
        self._conn.commit()

    def load_state(self, key: str = STATE_KEY) -> dict[str, Any] | None:
        row = self._conn.execute("SELECT value FROM blobs WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return json.loads(row["value"])

    def save_state(self, document: dict[str, Any], key: str = STATE_KEY) -> None:
        payload = json.dumps(document, ensure_ascii=False)
        self._conn.execute(
            """
            INSERT INTO blobs (key, value)
            VALUES (?, ?)
            ON CONFLICT(key)
            DO UPDATE SET value=excluded.value
            """,
            (key, payload),
        )
        self._conn.commit()
