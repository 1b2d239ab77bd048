from __future__ import annotations

import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Protocol

from src.schemas import ExtractedContact

DDL_STATEMENTS = [
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    """
    CREATE TABLE IF NOT EXISTS records (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      email TEXT NOT NULL,
      first_name TEXT NOT NULL,
      last_name TEXT NOT NULL,
      phone TEXT NOT NULL,
      source_profile_url TEXT NOT NULL,
      source_contact_url TEXT NOT NULL,
      captured_at TEXT NOT NULL
    )
    """.strip(),
    """
    CREATE INDEX IF NOT EXISTS idx_records_email ON records (lower(email))
    """.strip(),
]

INSERT_SQL = (
    """
    INSERT INTO records (
      email, first_name, last_name, phone,
      source_profile_url, source_contact_url, captured_at
    ) VALUES (
      :email, :first_name, :last_name, :phone,
      :source_profile_url, :source_contact_url, :captured_at
    )
    """
).strip()


class RecordSink(Protocol):
    def append(self, contact: ExtractedContact) -> None: ...

    def records(self) -> List[ExtractedContact]: ...

    def count(self) -> int: ...

    def close(self) -> None: ...


class MemoryRecordSink:
    """Append-only in-memory sink (used with --db none and in tests)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: List[ExtractedContact] = []

    def append(self, contact: ExtractedContact) -> None:
        with self._lock:
            self._items.append(contact)

    def records(self) -> List[ExtractedContact]:
        with self._lock:
            return list(self._items)

    def count(self) -> int:
        with self._lock:
            return len(self._items)

    def close(self) -> None:
        return None


class SqliteRecordSink:
    """Append-only SQLite sink shared by all worker threads.

    Rows are never updated or deleted; records() returns them in insertion
    order (AUTOINCREMENT id), which is the emission order the exporter's
    first-seen dedupe relies on.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        with self._lock:
            ensure_schema(self._conn)

    def append(self, contact: ExtractedContact) -> None:
        row = contact.model_dump()
        row["captured_at"] = datetime.now(timezone.utc).isoformat()
        with self._lock:
            with self._conn:
                self._conn.execute(INSERT_SQL, row)

    def records(self) -> List[ExtractedContact]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT email, first_name, last_name, phone, source_profile_url, source_contact_url "
                "FROM records ORDER BY id"
            )
            rows = cur.fetchall()
        return [
            ExtractedContact(
                email=r[0],
                first_name=r[1],
                last_name=r[2],
                phone=r[3],
                source_profile_url=r[4],
                source_contact_url=r[5],
            )
            for r in rows
        ]

    def count(self) -> int:
        with self._lock:
            return int(self._conn.execute("SELECT COUNT(*) FROM records").fetchone()[0])

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def ensure_schema(conn: sqlite3.Connection) -> None:
    for stmt in DDL_STATEMENTS:
        conn.execute(stmt)
