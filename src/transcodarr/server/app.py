"""HTTP application hosting the job scheduler.

The scheduler runs as a background task for the lifetime of the app and
is shut down during app cleanup.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field

from aiohttp import web

from transcodarr import __version__
from transcodarr.config.models import TranscodarrConfig
from transcodarr.executor.supervisor import ProcessSupervisor
from transcodarr.jobs.exceptions import StoreError
from transcodarr.jobs.scheduler import Scheduler
from transcodarr.jobs.store import JobStore
from transcodarr.server.api import setup_job_routes
from transcodarr.server.lifecycle import ServerLifecycle
from transcodarr.tools.capabilities import CapabilityResolver

logger = logging.getLogger(__name__)


@dataclass
class HealthStatus:
    """Health check response payload."""

    status: str
    """Overall status: 'healthy', 'degraded', or 'unhealthy'."""

    database: str
    """Database connectivity: 'connected' or 'disconnected'."""

    uptime_seconds: float
    version: str
    shutting_down: bool = False
    jobs: dict[str, int] = field(default_factory=dict)
    scheduler: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


def create_app(
    config: TranscodarrConfig,
    *,
    store: JobStore | None = None,
    capabilities: CapabilityResolver | None = None,
    scheduler: Scheduler | None = None,
    start_scheduler: bool = True,
) -> web.Application:
    """Create and configure the aiohttp Application.

    Args:
        config: Loaded configuration.
        store: Job store (opened from ``config.database_path`` if None).
        capabilities: Capability resolver (built from config if None).
        scheduler: Scheduler (built from config if None).
        start_scheduler: Run the scheduler loop while the app is up.

    Returns:
        Configured aiohttp Application instance.
    """
    app = web.Application()

    owns_store = store is None
    if store is None:
        assert config.database_path is not None
        store = JobStore.open(config.database_path)

    capabilities = capabilities or CapabilityResolver(
        ffmpeg_path=config.tools.ffmpeg,
        nvidia_smi_path=config.tools.nvidia_smi,
    )
    scheduler = scheduler or Scheduler(
        store,
        ProcessSupervisor(config.tools.ffmpeg),
        capabilities,
        max_concurrent_jobs=config.scheduler.max_concurrent_jobs,
        poll_interval=config.scheduler.poll_interval_seconds,
        target_width=config.scheduler.target_width,
        hardware_fallback=config.scheduler.hardware_fallback,
    )

    app["config"] = config
    app["store"] = store
    app["owns_store"] = owns_store
    app["capabilities"] = capabilities
    app["scheduler"] = scheduler
    app["start_scheduler"] = start_scheduler
    app["lifecycle"] = ServerLifecycle(shutdown_timeout=config.server.shutdown_timeout)

    app.router.add_get("/health", health_handler)
    setup_job_routes(app)

    app.on_startup.append(_start_scheduler)
    app.on_cleanup.append(_stop_scheduler)
    app.on_cleanup.append(_close_store)

    return app


async def _start_scheduler(app: web.Application) -> None:
    """Start the scheduler loop as a background task."""
    if not app["start_scheduler"]:
        return
    scheduler: Scheduler = app["scheduler"]
    lifecycle: ServerLifecycle = app["lifecycle"]
    lifecycle.scheduler_task = asyncio.create_task(scheduler.run(), name="scheduler")
    logger.debug("Started scheduler task")


async def _stop_scheduler(app: web.Application) -> None:
    """Stop the scheduler and the encodes it is running."""
    lifecycle: ServerLifecycle = app["lifecycle"]
    lifecycle.initiate_shutdown()
    scheduler: Scheduler = app["scheduler"]
    await scheduler.shutdown(timeout=lifecycle.shutdown_timeout)

    task = lifecycle.scheduler_task
    if task is not None and not task.done():
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
    logger.debug("Stopped scheduler task")


async def _close_store(app: web.Application) -> None:
    if app["owns_store"]:
        logger.debug("Closing job store")
        app["store"].close()


async def health_handler(request: web.Request) -> web.Response:
    """Handle GET /health requests.

    Returns 200 when healthy, 503 when the database is unreachable, the
    scheduler is unhealthy, or the server is shutting down.
    """
    store: JobStore = request.app["store"]
    scheduler: Scheduler = request.app["scheduler"]
    lifecycle: ServerLifecycle = request.app["lifecycle"]
    shutting_down = lifecycle.is_shutting_down

    try:
        counts = await store.count_jobs_by_status()
        db_connected = True
    except StoreError as e:
        logger.warning("Health check could not read jobs: %s", e)
        counts = {}
        db_connected = False

    if shutting_down:
        status = "unhealthy"
    elif not db_connected or not scheduler.is_healthy:
        status = "degraded"
    else:
        status = "healthy"

    health = HealthStatus(
        status=status,
        database="connected" if db_connected else "disconnected",
        uptime_seconds=round(lifecycle.uptime_seconds, 1),
        version=__version__,
        shutting_down=shutting_down,
        jobs=counts,
        scheduler=scheduler.status(),
    )
    http_status = 200 if status == "healthy" else 503
    return web.json_response(health.to_dict(), status=http_status)
