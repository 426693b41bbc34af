"""Database connection management for transcodarr."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

DB_FILENAME = "transcodarr.db"


def ensure_db_directory(db_path: Path) -> None:
    """Ensure the database directory exists, creating it if necessary."""
    db_path.parent.mkdir(parents=True, exist_ok=True)


def connect(db_path: Path, timeout: float = 30.0) -> sqlite3.Connection:
    """Open a database connection with the project's standard PRAGMAs.

    The connection may be shared across threads; callers are responsible
    for serializing access (see ``transcodarr.jobs.store.JobStore``).

    Args:
        db_path: Path to the database file, or ``:memory:``.
        timeout: How long to wait for locks (seconds).

    Returns:
        An sqlite3 Connection with ``sqlite3.Row`` rows.
    """
    if str(db_path) != ":memory:":
        ensure_db_directory(Path(db_path))

    conn = sqlite3.connect(str(db_path), timeout=timeout, check_same_thread=False)

    # WAL lets the CLI read while the daemon writes
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute("PRAGMA busy_timeout = 10000")
    conn.execute("PRAGMA temp_store = MEMORY")

    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_connection(
    db_path: Path, timeout: float = 30.0
) -> Iterator[sqlite3.Connection]:
    """Context-managed variant of :func:`connect`.

    Args:
        db_path: Path to the database file.
        timeout: How long to wait for locks (seconds).

    Yields:
        An sqlite3 Connection object.
    """
    conn = connect(db_path, timeout=timeout)
    try:
        yield conn
    finally:
        conn.close()
