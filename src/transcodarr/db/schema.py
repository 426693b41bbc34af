"""Database schema creation and migration."""

import logging
import sqlite3

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS jobs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    filename TEXT NOT NULL,
    input_path TEXT NOT NULL,
    output_path TEXT NOT NULL,
    codec TEXT NOT NULL CHECK (codec IN ('x264', 'x265', 'av1')),
    quality INTEGER NOT NULL,
    requested_hardware INTEGER NOT NULL DEFAULT 0,
    resolved_hardware_kind TEXT,
    auto_delete_source INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'queued'
        CHECK (status IN ('queued', 'running', 'completed', 'failed', 'cancelled')),
    progress REAL NOT NULL DEFAULT 0.0,
    input_size INTEGER,
    output_size INTEGER,
    error_message TEXT,
    created_at TEXT NOT NULL,
    started_at TEXT,
    completed_at TEXT,
    CHECK (output_path != input_path)
);

CREATE INDEX IF NOT EXISTS idx_jobs_status_created
    ON jobs(status, created_at);

CREATE TABLE IF NOT EXISTS _meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

# Columns added after the first release, with their DDL
_ADDED_COLUMNS: dict[str, str] = {
    "auto_delete_source": "INTEGER NOT NULL DEFAULT 0",
    "resolved_hardware_kind": "TEXT",
}


def _existing_columns(conn: sqlite3.Connection, table: str) -> set[str]:
    cursor = conn.execute(f"PRAGMA table_info({table})")
    return {row[1] for row in cursor.fetchall()}


def _migrate_jobs_columns(conn: sqlite3.Connection) -> None:
    """Add columns missing from databases created by older versions."""
    columns = _existing_columns(conn, "jobs")
    for name, ddl in _ADDED_COLUMNS.items():
        if name not in columns:
            logger.info("Migrating database: adding '%s' column to jobs", name)
            conn.execute(f"ALTER TABLE jobs ADD COLUMN {name} {ddl}")


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Return the stored schema version, or 0 for an uninitialized database."""
    try:
        row = conn.execute(
            "SELECT value FROM _meta WHERE key = 'schema_version'"
        ).fetchone()
    except sqlite3.OperationalError:
        return 0
    return int(row[0]) if row else 0


def create_schema(conn: sqlite3.Connection) -> None:
    """Create or upgrade the database schema. Safe to call repeatedly.

    Args:
        conn: Database connection.
    """
    conn.executescript(SCHEMA_SQL)
    _migrate_jobs_columns(conn)
    conn.execute(
        "INSERT OR REPLACE INTO _meta (key, value) VALUES ('schema_version', ?)",
        (str(SCHEMA_VERSION),),
    )
    conn.commit()
