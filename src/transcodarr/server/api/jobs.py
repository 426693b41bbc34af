"""API handlers for job and encode endpoints.

Endpoints:
    GET /api/jobs - List all jobs, newest first
    GET /api/jobs/{job_id} - Get one job
    DELETE /api/jobs/{job_id} - Delete a job that is not running
    POST /api/jobs/{job_id}/stop - Gracefully stop or cancel a job
    POST /api/jobs/{job_id}/force-stop - Kill a job and remove its record
    POST /api/encode - Queue encodes for one or more files
    GET /api/gpu-status - Hardware encoder capabilities
"""

from __future__ import annotations

import asyncio
import json
import logging

from aiohttp import web
from pydantic import ValidationError

from transcodarr.config.models import TranscodarrConfig
from transcodarr.jobs.exceptions import (
    InvalidTransitionError,
    JobBusyError,
    JobNotFoundError,
    JobValidationError,
    PathSecurityError,
    StoreError,
)
from transcodarr.jobs.scheduler import Scheduler
from transcodarr.jobs.store import JobStore
from transcodarr.jobs.submission import EncodeRequest, submit_encode_request
from transcodarr.server.api.errors import (
    DATABASE_UNAVAILABLE,
    INVALID_ID_FORMAT,
    INVALID_JSON,
    NOT_FOUND,
    PATH_NOT_ALLOWED,
    RESOURCE_CONFLICT,
    SHUTTING_DOWN,
    VALIDATION_FAILED,
    api_error,
)
from transcodarr.tools.capabilities import CapabilityResolver

logger = logging.getLogger(__name__)


class _BadJobId(Exception):
    pass


def _job_id(request: web.Request) -> int:
    try:
        job_id = int(request.match_info["job_id"])
    except ValueError as e:
        raise _BadJobId(request.match_info["job_id"]) from e
    if job_id < 1:
        raise _BadJobId(str(job_id))
    return job_id


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Map domain exceptions raised by handlers to JSON error responses."""
    try:
        return await handler(request)
    except _BadJobId as e:
        return api_error(f"Invalid job ID: {e}", code=INVALID_ID_FORMAT)
    except JobNotFoundError as e:
        return api_error(str(e), code=NOT_FOUND, status=404)
    except (JobBusyError, InvalidTransitionError) as e:
        return api_error(str(e), code=RESOURCE_CONFLICT, status=409)
    except PathSecurityError as e:
        return api_error(str(e), code=PATH_NOT_ALLOWED, status=403)
    except JobValidationError as e:
        return api_error(str(e), code=VALIDATION_FAILED)
    except StoreError as e:
        logger.error("Database error handling %s %s: %s", request.method, request.path, e)
        return api_error("Database unavailable", code=DATABASE_UNAVAILABLE, status=503)


async def list_jobs_handler(request: web.Request) -> web.Response:
    """Handle GET /api/jobs."""
    store: JobStore = request.app["store"]
    jobs = await store.get_all_jobs()
    return web.json_response({"jobs": [job.to_dict() for job in jobs]})


async def get_job_handler(request: web.Request) -> web.Response:
    """Handle GET /api/jobs/{job_id}."""
    store: JobStore = request.app["store"]
    job_id = _job_id(request)
    job = await store.get_job(job_id)
    if job is None:
        raise JobNotFoundError(job_id, "get")
    return web.json_response(job.to_dict())


async def delete_job_handler(request: web.Request) -> web.Response:
    """Handle DELETE /api/jobs/{job_id}. Refused (409) while running."""
    scheduler: Scheduler = request.app["scheduler"]
    job_id = _job_id(request)
    await scheduler.delete_job(job_id)
    return web.json_response({"success": True})


async def stop_job_handler(request: web.Request) -> web.Response:
    """Handle POST /api/jobs/{job_id}/stop.

    Running jobs are signalled and become ``cancelled`` when the encoder
    exits; queued jobs are cancelled immediately.
    """
    scheduler: Scheduler = request.app["scheduler"]
    job_id = _job_id(request)
    stopped = await scheduler.stop_job(job_id)
    return web.json_response({"success": True, "stopped": stopped})


async def force_stop_handler(request: web.Request) -> web.Response:
    """Handle POST /api/jobs/{job_id}/force-stop."""
    scheduler: Scheduler = request.app["scheduler"]
    job_id = _job_id(request)
    await scheduler.force_stop_and_remove(job_id)
    return web.json_response({"success": True})


async def encode_handler(request: web.Request) -> web.Response:
    """Handle POST /api/encode.

    Body: ``{"files": [...], "codec": "x265", "quality": 22,
    "use_hardware": true, "auto_delete": false}``. Files that fail
    validation are reported under ``rejected``; the request fails only
    if no job was created.
    """
    if request.app["lifecycle"].is_shutting_down:
        return api_error("Server is shutting down", code=SHUTTING_DOWN, status=503)

    try:
        body = await request.json()
    except json.JSONDecodeError:
        return api_error("Request body must be valid JSON", code=INVALID_JSON)

    try:
        encode_request = EncodeRequest.model_validate(body)
    except ValidationError as e:
        details = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        return api_error("Invalid encode request", code=VALIDATION_FAILED, details=details)

    config: TranscodarrConfig = request.app["config"]
    result = await submit_encode_request(
        request.app["store"],
        encode_request,
        config.media.media_dirs,
        config.media.quality_range,
    )
    return web.json_response(result.to_dict())


async def gpu_status_handler(request: web.Request) -> web.Response:
    """Handle GET /api/gpu-status."""
    capabilities: CapabilityResolver = request.app["capabilities"]
    info = await asyncio.to_thread(capabilities.probe)
    return web.json_response(info.to_dict())


def setup_job_routes(app: web.Application) -> None:
    """Register job and encode routes on ``app``."""
    app.middlewares.append(error_middleware)
    app.router.add_get("/api/jobs", list_jobs_handler)
    app.router.add_get("/api/jobs/{job_id}", get_job_handler)
    app.router.add_delete("/api/jobs/{job_id}", delete_job_handler)
    app.router.add_post("/api/jobs/{job_id}/stop", stop_job_handler)
    app.router.add_post("/api/jobs/{job_id}/force-stop", force_stop_handler)
    app.router.add_post("/api/encode", encode_handler)
    app.router.add_get("/api/gpu-status", gpu_status_handler)
