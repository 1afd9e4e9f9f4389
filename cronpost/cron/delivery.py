"""Outbound delivery: the HTTP POST issued when a job fires."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiohttp

from cronpost.errors import DeliveryError
from cronpost.log_context import set_log_context

if TYPE_CHECKING:
    from cronpost.config import DeliveryConfig
    from cronpost.cron.registry import JobConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DeliveryOutcome:
    """Timestamped result of one delivery attempt."""

    job_id: str
    target: str
    ok: bool
    timestamp: str
    status: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "ok": self.ok,
            "timestamp": self.timestamp,
            "status": self.status,
            "error": self.error,
        }


class DeliveryInvoker:
    """Posts to job targets and records what happened.

    Failures are logged and recorded, never retried and never raised:
    the scheduler keeps firing regardless of the outcome.
    """

    def __init__(self, config: DeliveryConfig) -> None:
        self._config = config
        self._session: aiohttp.ClientSession | None = None
        self._last: dict[str, DeliveryOutcome] = {}

    async def deliver(self, job: JobConfig) -> DeliveryOutcome:
        """Scheduler callback: deliver one fire of *job*."""
        set_log_context(operation="post", job_id=job.id)
        return await self.invoke(job.target, job.secret, job_id=job.id)

    async def invoke(
        self,
        target: str,
        secret: str | None = None,
        *,
        job_id: str = "",
    ) -> DeliveryOutcome:
        """POST to *target*; attach a bearer token only when *secret* is non-empty."""
        headers = {"Content-Type": "application/json"}
        if secret:
            headers["Authorization"] = f"Bearer {secret}"

        try:
            status = await self._post(target, headers)
        except DeliveryError as exc:
            outcome = DeliveryOutcome(
                job_id=job_id,
                target=target,
                ok=False,
                timestamp=_now_iso(),
                status=exc.status,
                error=str(exc),
            )
            logger.error("[%s] Error executing job %s: %s", outcome.timestamp, job_id, exc)
        else:
            outcome = DeliveryOutcome(
                job_id=job_id,
                target=target,
                ok=True,
                timestamp=_now_iso(),
                status=status,
            )
            logger.info("[%s] Job %s executed: %d", outcome.timestamp, job_id, status)

        self._record(outcome)
        return outcome

    async def _post(self, target: str, headers: dict[str, str]) -> int:
        session = self._get_session()
        try:
            async with session.post(target, headers=headers) as resp:
                status = resp.status
        except (aiohttp.ClientError, TimeoutError, ValueError) as exc:
            detail = str(exc) or type(exc).__name__
            raise DeliveryError(detail) from exc
        if not 200 <= status < 300:
            msg = f"Target responded with HTTP {status}"
            raise DeliveryError(msg, status=status)
        return status

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._config.timeout_seconds)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"User-Agent": self._config.user_agent},
            )
        return self._session

    def _record(self, outcome: DeliveryOutcome) -> None:
        if outcome.job_id:
            self._last[outcome.job_id] = outcome

    # -- Observability --

    def last_outcome(self, job_id: str) -> DeliveryOutcome | None:
        return self._last.get(job_id)

    def forget(self, job_id: str) -> None:
        self._last.pop(job_id, None)

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None


def _now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
