"""HTTP API: aiohttp server exposing job management and a health probe."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web

from cronpost.errors import NotFoundError, PersistenceError, ScheduleError, ValidationError
from cronpost.log_context import set_log_context
from cronpost.server.auth import Handler, api_key_middleware
from cronpost.service import iso_timestamp

if TYPE_CHECKING:
    from cronpost.config import ServerConfig
    from cronpost.service import JobService

logger = logging.getLogger(__name__)


class JobServer:
    """HTTP front end for the job service.

    Routes:
    - ``GET    /health``     -- Liveness probe with the number of armed jobs (no auth).
    - ``POST   /jobs``       -- Create or replace a job.
    - ``GET    /jobs``       -- List jobs keyed by id (secrets redacted).
    - ``GET    /jobs/{id}``  -- One job.
    - ``DELETE /jobs/{id}``  -- Stop and delete a job.
    """

    def __init__(self, config: ServerConfig, service: JobService) -> None:
        self._config = config
        self._service = service
        self._runner: web.AppRunner | None = None

    def create_app(self) -> web.Application:
        app = web.Application(
            client_max_size=self._config.max_body_bytes,
            middlewares=[_error_middleware, api_key_middleware(self._config.api_key)],
        )
        app.router.add_get("/health", self._handle_health)
        app.router.add_post("/jobs", self._handle_add)
        app.router.add_get("/jobs", self._handle_list)
        app.router.add_get("/jobs/{job_id}", self._handle_get)
        app.router.add_delete("/jobs/{job_id}", self._handle_delete)
        return app

    async def start(self) -> None:
        """Create the aiohttp app and start listening."""
        self._runner = web.AppRunner(self.create_app(), access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()
        logger.info("Server running on %s:%d", self._config.host, self._config.port)

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        logger.info("Server stopped")

    # -- Handlers --

    async def _handle_health(self, _request: web.Request) -> web.Response:
        return web.json_response(
            {
                "status": "healthy",
                "timestamp": iso_timestamp(),
                "activeJobs": self._service.active_count,
            }
        )

    async def _handle_add(self, request: web.Request) -> web.Response:
        set_log_context(operation="api")
        raw_body = await request.read()
        try:
            body: Any = json.loads(raw_body or b"{}")
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error(400, "Invalid JSON body")
        if not isinstance(body, dict):
            return _error(400, "Invalid JSON body")

        try:
            view = await self._service.add_job(
                body.get("id"),
                body.get("url"),
                body.get("schedule"),
                body.get("cronSecret"),
            )
        except ScheduleError as exc:
            logger.warning("Rejected job %s: %s", body.get("id"), exc)
            return web.json_response(
                {"error": "Invalid cron schedule", "detail": str(exc)}, status=400
            )
        except ValidationError as exc:
            logger.warning("Rejected job %s: %s", body.get("id"), exc)
            return _error(400, str(exc))
        except PersistenceError as exc:
            logger.exception("Failed to persist job %s", body.get("id"))
            return _error(500, str(exc))

        return web.json_response(
            {
                "message": "Job added successfully",
                "job": {
                    "id": view.id,
                    "url": view.url,
                    "schedule": view.schedule,
                    "createdAt": view.created_at,
                    "createdBy": view.created_by,
                },
            }
        )

    async def _handle_list(self, _request: web.Request) -> web.Response:
        set_log_context(operation="api")
        return web.json_response(self._service.list_jobs())

    async def _handle_get(self, request: web.Request) -> web.Response:
        set_log_context(operation="api")
        try:
            job = self._service.get_job(request.match_info["job_id"])
        except NotFoundError:
            return _error(404, "Job not found")
        return web.json_response(job)

    async def _handle_delete(self, request: web.Request) -> web.Response:
        job_id = request.match_info["job_id"]
        set_log_context(operation="api", job_id=job_id)
        try:
            await self._service.delete_job(job_id)
        except NotFoundError:
            return _error(404, "Job not found")
        except PersistenceError as exc:
            logger.exception("Failed to delete job %s from the job file", job_id)
            return _error(500, str(exc))
        return web.json_response({"message": "Job deleted successfully"})


@web.middleware
async def _error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Turn unexpected handler failures into JSON 500 responses."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as exc:
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return _error(500, str(exc) or type(exc).__name__)


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)
