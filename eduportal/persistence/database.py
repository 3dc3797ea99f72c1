"""SQLite database primitives shared by the scalar and record stores."""

import logging
import sqlite3
from pathlib import Path

from eduportal.config import RECORD_DB_FILE, SCALAR_DB_FILE

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

MEMORY_PATH = ":memory:"


def get_scalar_db_path(data_dir: Path) -> Path:
    """Return the path to the scalar (key/value) database."""
    return data_dir / SCALAR_DB_FILE


def get_record_db_path(data_dir: Path) -> Path:
    """Return the path to the video record database."""
    return data_dir / RECORD_DB_FILE


def get_connection(db_path: Path | str, schema_sql: str) -> sqlite3.Connection:
    """Open (or create) a database file and ensure *schema_sql* exists.

    Connections run in autocommit mode (``isolation_level=None``): stores
    open their own ``BEGIN``/``COMMIT`` blocks where several statements must
    land together. ``check_same_thread`` is off because the record store
    hands its connection to worker threads, one call at a time.
    The caller is responsible for closing the connection.
    """
    target = str(db_path)
    if target != MEMORY_PATH:
        Path(target).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(target, isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    if target != MEMORY_PATH:
        conn.execute("PRAGMA journal_mode=WAL")
    init_db(conn, schema_sql)
    return conn


def init_db(conn: sqlite3.Connection, schema_sql: str) -> None:
    """Create tables if they don't exist and stamp the schema version."""
    conn.executescript(_VERSION_SQL + schema_sql)

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0
    if current < SCHEMA_VERSION:
        logger.info("Initialising database schema v%d", SCHEMA_VERSION)
        conn.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )


def is_disk_full(exc: sqlite3.Error) -> bool:
    """Return True when SQLite rejected a write for capacity reasons."""
    name = getattr(exc, "sqlite_errorname", "")
    if name == "SQLITE_FULL":
        return True
    return "database or disk is full" in str(exc).lower()


_VERSION_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);
"""

SCALAR_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

RECORD_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS videos (
    id TEXT PRIMARY KEY,
    uploaded_at TEXT NOT NULL DEFAULT '',
    data TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_videos_uploaded_at ON videos(uploaded_at);

CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


__all__ = [
    "SCHEMA_VERSION",
    "MEMORY_PATH",
    "SCALAR_SCHEMA_SQL",
    "RECORD_SCHEMA_SQL",
    "get_scalar_db_path",
    "get_record_db_path",
    "get_connection",
    "init_db",
    "is_disk_full",
]
