"""Async job store used by the scheduler and the HTTP handlers.

Wraps a single SQLite connection behind a lock and runs every query in a
worker thread so the event loop never blocks on disk I/O.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from transcodarr.db import queries
from transcodarr.db.connection import connect
from transcodarr.db.schema import create_schema
from transcodarr.db.types import Job, JobStatus
from transcodarr.jobs.exceptions import StoreError
from transcodarr.jobs.states import sources_for, validate_transition

logger = logging.getLogger(__name__)

T = TypeVar("T")


class JobStore:
    """Durable CRUD over job records.

    Usage:
        store = JobStore.open(db_path)
        job_id = await store.create_job(job)
        ...
        store.close()
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize the store around an open connection.

        Args:
            conn: Connection with ``sqlite3.Row`` row factory and schema.
        """
        self._conn = conn
        self._lock = threading.Lock()

    @classmethod
    def open(cls, db_path: Path | str) -> JobStore:
        """Open (creating if needed) the database at ``db_path``."""
        conn = connect(Path(db_path))
        create_schema(conn)
        return cls(conn)

    @property
    def connection(self) -> sqlite3.Connection:
        """The underlying connection (for synchronous callers like the CLI)."""
        return self._conn

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            self._conn.close()

    def _call(self, func: Callable[..., T], *args: Any) -> T:
        with self._lock:
            try:
                return func(self._conn, *args)
            except sqlite3.Error as e:
                raise StoreError(f"{func.__name__} failed: {e}") from e

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(self._call, func, *args)

    async def create_job(self, job: Job) -> int:
        """Insert a job and return its new ID."""
        return await self._run(queries.insert_job, job)

    async def get_job(self, job_id: int) -> Job | None:
        """Get a job by ID, or None."""
        return await self._run(queries.get_job, job_id)

    async def get_all_jobs(self) -> list[Job]:
        """Get all jobs ordered by id descending."""
        return await self._run(queries.get_all_jobs)

    async def update_job(self, job_id: int, fields: dict[str, Any]) -> bool:
        """Update only the given fields. Returns False if the job is gone."""
        return await self._run(queries.update_job, job_id, fields)

    async def transition(
        self,
        job_id: int,
        target: JobStatus,
        fields: dict[str, Any] | None = None,
        expected: tuple[JobStatus, ...] | None = None,
    ) -> bool:
        """Move a job to ``target`` if its current status allows it.

        Args:
            job_id: Job ID.
            target: New status.
            fields: Extra columns written in the same statement.
            expected: Narrow the accepted source statuses. Must be legal
                sources of ``target``.

        Returns:
            True if the job existed and was in an accepted source status.

        Raises:
            InvalidTransitionError: If ``expected`` names an illegal source.
        """
        sources = sources_for(target)
        if expected is not None:
            for status in expected:
                validate_transition(status, target, job_id)
            sources = expected
        values = dict(fields or {})
        values["status"] = target
        return await self._run(queries.update_job_if_status, job_id, sources, values)

    async def delete_job(self, job_id: int) -> bool:
        """Delete a job record unconditionally."""
        return await self._run(queries.delete_job, job_id)

    async def get_next_queued_job(self) -> Job | None:
        """Get the oldest queued job, or None."""
        return await self._run(queries.get_next_queued_job)

    async def get_running_jobs(self) -> list[Job]:
        """Get every job whose status is running."""
        return await self._run(queries.get_running_jobs)

    async def count_jobs_by_status(self) -> dict[str, int]:
        """Get job counts keyed by status value."""
        return await self._run(queries.count_jobs_by_status)
