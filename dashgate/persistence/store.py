"""
Draft Store — durable key/value storage for the two persisted blobs.

Layout: one row per fixed key.
- `draft`:    DraftEnvelope JSON (full draft + ancillary fields + saved_at)
- `versions`: JSON array of Versions, most recent first, at most five

Each blob is written and restored independently. All storage and decode
failures surface as PersistenceError.
"""

import json
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from dashgate.core.errors import PersistenceError
from dashgate.models.persistence import DraftEnvelope
from dashgate.models.version import Version

DRAFT_KEY = "draft"
VERSIONS_KEY = "versions"

_versions_adapter = TypeAdapter(List[Version])


class DraftStore:
    """
    SQLite-backed blob store.
    Defaults to an in-memory database; pass a file path for durability.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._init_schema()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open draft store at {db_path}: {e}") from e

    def _init_schema(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS blobs (
                key TEXT PRIMARY KEY,
                value_json TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._conn.commit()

    def _write(self, key: str, value_json: str) -> None:
        try:
            self._conn.execute(
                """
                INSERT INTO blobs (key, value_json, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value_json = excluded.value_json,
                    updated_at = excluded.updated_at
                """,
                (key, value_json, datetime.now(timezone.utc).isoformat()),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to write '{key}': {e}", key=key) from e

    def _read(self, key: str) -> Optional[str]:
        try:
            row = self._conn.execute(
                "SELECT value_json FROM blobs WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read '{key}': {e}", key=key) from e
        return row["value_json"] if row else None

    def save_draft(self, envelope: DraftEnvelope) -> None:
        self._write(DRAFT_KEY, envelope.model_dump_json())

    def load_draft(self) -> Optional[DraftEnvelope]:
        raw = self._read(DRAFT_KEY)
        if raw is None:
            return None
        try:
            return DraftEnvelope.model_validate_json(raw)
        except ValidationError as e:
            raise PersistenceError(f"Corrupt draft blob: {e}", key=DRAFT_KEY) from e

    def save_versions(self, versions: List[Version]) -> None:
        payload = [v.model_dump(mode="json") for v in versions]
        self._write(VERSIONS_KEY, json.dumps(payload))

    def load_versions(self) -> List[Version]:
        raw = self._read(VERSIONS_KEY)
        if raw is None:
            return []
        try:
            return _versions_adapter.validate_json(raw)
        except ValidationError as e:
            raise PersistenceError(f"Corrupt versions blob: {e}", key=VERSIONS_KEY) from e

    def clear(self) -> None:
        """Drop both blobs (the 'reset local state' recovery action)."""
        try:
            self._conn.execute("DELETE FROM blobs")
            self._conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to clear draft store: {e}") from e

    def close(self) -> None:
        self._conn.close()
