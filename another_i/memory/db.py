# another_i/memory/db.py
#
# Key-value storage primitive. The application state is a handful of JSON
# documents under fixed keys; this module only knows about strings.

import sqlite3
from pathlib import Path
from typing import Optional

from another_i.config.settings import load_settings
from another_i.core.models import to_iso, utcnow

_settings = load_settings()


def get_db_path() -> Path:
    return Path(_settings.db_path)


def get_connection(db_path: Optional[str] = None) -> sqlite3.Connection:
    """
    Return a SQLite connection.
    Uses Row factory to allow dict-like access.
    Caller is responsible for closing.
    """
    conn = sqlite3.connect(db_path or get_db_path())
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: Optional[str] = None) -> None:
    """
    Initialize the schema if it does not exist.
    Safe to call multiple times.
    """
    conn = get_connection(db_path)
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS kv (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    conn.commit()
    conn.close()


def kv_get(key: str, db_path: Optional[str] = None) -> Optional[str]:
    conn = get_connection(db_path)
    cur = conn.cursor()
    cur.execute("SELECT value FROM kv WHERE key = ?", (key,))
    row = cur.fetchone()
    conn.close()
    return row["value"] if row else None


def kv_set(key: str, value: str, db_path: Optional[str] = None) -> None:
    conn = get_connection(db_path)
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO kv (key, value, updated_at)
        VALUES (?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
        """,
        (key, value, to_iso(utcnow())),
    )
    conn.commit()
    conn.close()


def kv_remove(key: str, db_path: Optional[str] = None) -> None:
    conn = get_connection(db_path)
    cur = conn.cursor()
    cur.execute("DELETE FROM kv WHERE key = ?", (key,))
    conn.commit()
    conn.close()
