"""Service assembly: wires store, scheduler, delivery, HTTP server and keep-alive."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import TYPE_CHECKING

from cronpost.config import resolve_timezone
from cronpost.cron.delivery import DeliveryInvoker
from cronpost.cron.scheduler import Scheduler
from cronpost.cron.store import JobStore
from cronpost.keepalive import KeepalivePinger
from cronpost.server.app import JobServer
from cronpost.service import JobService

if TYPE_CHECKING:
    from cronpost.config import ServiceConfig
    from cronpost.paths import CronpostPaths

logger = logging.getLogger(__name__)


class CronpostApp:
    """The running service. ``run()`` blocks until SIGINT/SIGTERM or `request_stop`."""

    def __init__(self, config: ServiceConfig, paths: CronpostPaths) -> None:
        self._config = config
        self._paths = paths
        self.invoker = DeliveryInvoker(config.delivery)
        self.scheduler = Scheduler(
            self.invoker.deliver,
            timezone=resolve_timezone(config.timezone),
        )
        self.store = JobStore(jobs_path=paths.jobs_path)
        self.service = JobService(
            self.store,
            self.scheduler,
            invoker=self.invoker,
            created_by=config.created_by,
        )
        self.server = JobServer(config.server, self.service)
        self.keepalive = KeepalivePinger(config.keepalive, url=config.keepalive_url)
        self._stop_event = asyncio.Event()

    def request_stop(self) -> None:
        self._stop_event.set()

    async def run(self) -> None:
        """Start listening, replay persisted jobs, then wait for a stop request."""
        loop = asyncio.get_running_loop()
        if sys.platform != "win32":
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self.request_stop)

        try:
            await self.server.start()
            await self.service.initialize_jobs()
            await self.keepalive.start()
            await self._stop_event.wait()
            logger.info("Shutting down...")
        finally:
            if sys.platform != "win32":
                for sig in (signal.SIGINT, signal.SIGTERM):
                    loop.remove_signal_handler(sig)
            await self.shutdown()

    async def shutdown(self) -> None:
        await self.keepalive.stop()
        await self.server.stop()
        await self.scheduler.shutdown()
        await self.invoker.close()
