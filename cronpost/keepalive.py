"""Keep-alive pinger: periodic GET so hosting platforms don't idle the process."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

import aiohttp

from cronpost.log_context import set_log_context

if TYPE_CHECKING:
    from cronpost.config import KeepaliveConfig

logger = logging.getLogger(__name__)

_TIMEOUT = aiohttp.ClientTimeout(total=30)


class KeepalivePinger:
    """Sends ``GET <url>`` every ``interval_minutes`` while enabled.

    Independent of the scheduler: a failing ping is logged and the loop
    carries on.
    """

    def __init__(self, config: KeepaliveConfig, url: str) -> None:
        self._config = config
        self._url = url
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        if not self._config.enabled:
            logger.debug("Keep-alive disabled in config")
            return
        self._task = asyncio.create_task(self._loop(), name="keepalive")
        logger.info(
            "Keep-alive started (every %.0fm -> %s)",
            self._config.interval_minutes,
            self._url,
        )

    async def stop(self) -> None:
        if self._task:
            task = self._task
            self._task = None
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def ping(self) -> bool:
        """One ping. Returns True on a 2xx response."""
        try:
            async with (
                aiohttp.ClientSession(timeout=_TIMEOUT) as session,
                session.get(self._url) as resp,
            ):
                status = resp.status
        except (aiohttp.ClientError, TimeoutError) as exc:
            logger.error("Self-ping failed: %s", str(exc) or type(exc).__name__)
            return False
        if 200 <= status < 300:
            logger.info("Self-ping successful")
            return True
        logger.warning("Self-ping returned HTTP %d", status)
        return False

    async def _loop(self) -> None:
        set_log_context(operation="ping")
        interval = self._config.interval_minutes * 60
        while True:
            await asyncio.sleep(interval)
            await self.ping()
