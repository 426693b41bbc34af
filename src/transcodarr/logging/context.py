"""Job context for structured logging.

Scheduler and supervisor code runs many jobs on one event loop. Each
asyncio task gets its own copy of the context, so setting the job id at
the top of a task tags every log line that task emits.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_job_id: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "job_id", default=None
)


def set_job_context(job_id: int | None) -> None:
    """Set the job id for the current context (task or thread)."""
    _job_id.set(job_id)


def get_job_context() -> int | None:
    """Get the job id for the current context, if any."""
    return _job_id.get()


@contextmanager
def job_context(job_id: int) -> Generator[None, None, None]:
    """Tag log records emitted inside the block with ``job_id``.

    Example:
        with job_context(42):
            logger.info("Starting encode")  # "[J42] Starting encode"
    """
    token = _job_id.set(job_id)
    try:
        yield
    finally:
        _job_id.reset(token)


class JobContextFilter(logging.Filter):
    """Logging filter that injects the current job id into log records.

    Adds ``job_id`` for JSON output and a compact ``job_tag`` such as
    ``[J42] `` for text output.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        job_id = _job_id.get()
        record.job_id = job_id
        record.job_tag = f"[J{job_id}] " if job_id is not None else ""
        return True  # Never filter out records
