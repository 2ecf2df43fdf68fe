"""SQLite database connection and schema management.

Provides get_db_connection() context manager and init_db() for schema creation.
Stores the feed_documents table written by upstream analysis services and the
append-only results table written by the analysis cycle.
"""

import re
import sqlite3
from contextlib import contextmanager
from typing import Optional

from ..config import get_settings

_TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def checked_table_name(name: str) -> str:
    if not _TABLE_NAME_RE.match(name):
        raise ValueError(f"Invalid table name: {name!r}")
    return name


@contextmanager
def get_db_connection(db_path: Optional[str] = None):
    conn = sqlite3.connect(db_path or get_settings().DB_PATH, timeout=10.0)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Optional[str] = None, results_table: Optional[str] = None):
    table = checked_table_name(results_table or get_settings().RESULTS_TABLE)
    schema = f"""
    CREATE TABLE IF NOT EXISTS feed_documents (
        collection TEXT NOT NULL,
        doc_id TEXT NOT NULL,
        data TEXT NOT NULL,
        revision INTEGER NOT NULL DEFAULT 1,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY(collection, doc_id)
    );

    CREATE TABLE IF NOT EXISTS {table} (
        id TEXT PRIMARY KEY,
        timestamp TEXT NOT NULL,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        service TEXT,
        service_version TEXT,
        document TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_{table}_timestamp ON {table} (timestamp DESC);
    """
    with get_db_connection(db_path) as conn:
        conn.executescript(schema)
        conn.commit()
