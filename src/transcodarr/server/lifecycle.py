"""Server lifecycle state.

Holds the mutable state the HTTP app shares with its background
scheduler task: start time, shutdown progress and the task handle.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone


@dataclass
class ShutdownState:
    """Tracks shutdown progress for graceful termination."""

    initiated: datetime | None = None
    """UTC timestamp when shutdown was initiated, None if not shutting down."""

    timeout_deadline: datetime | None = None
    """UTC timestamp after which running encodes are killed."""

    @property
    def is_shutting_down(self) -> bool:
        return self.initiated is not None


@dataclass
class ServerLifecycle:
    """Startup and shutdown state for one ``transcodarr serve`` process."""

    shutdown_timeout: float = 30.0
    """Seconds running encodes get to stop before they are killed."""

    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    shutdown_state: ShutdownState = field(default_factory=ShutdownState)

    scheduler_task: asyncio.Task | None = field(default=None, repr=False)

    @property
    def uptime_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.start_time).total_seconds()

    @property
    def is_shutting_down(self) -> bool:
        return self.shutdown_state.is_shutting_down

    def initiate_shutdown(self) -> None:
        """Begin graceful shutdown. Calling it again has no effect."""
        if self.shutdown_state.initiated is not None:
            return

        now = datetime.now(timezone.utc)
        self.shutdown_state.initiated = now
        self.shutdown_state.timeout_deadline = now + timedelta(
            seconds=self.shutdown_timeout
        )
