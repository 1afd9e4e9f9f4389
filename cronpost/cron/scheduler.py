"""Scheduler core: one self-renewing asyncio timer per registered job."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, tzinfo

from cronpost.cron.clock import next_fire_after
from cronpost.cron.expression import TriggerRule, parse
from cronpost.cron.registry import JobConfig, JobRegistry, JobView
from cronpost.errors import ScheduleError
from cronpost.log_context import set_log_context

logger = logging.getLogger(__name__)

# Callback invoked (in its own task) for every fire of a job.
DeliveryCallback = Callable[[JobConfig], Awaitable[object]]
Clock = Callable[[], datetime]
Sleeper = Callable[[float], Awaitable[None]]


def _log_task_crash(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Timer task %s crashed", task.get_name(), exc_info=exc)


class LiveTimer:
    """Armed recurring trigger for exactly one job.

    Sleeps until the next fire time, hands the fire to ``on_fire`` without
    waiting for the delivery, then computes the following fire from the one
    that just happened and sleeps again.
    """

    def __init__(
        self,
        job: JobConfig,
        *,
        now: Clock,
        sleep: Sleeper,
        on_fire: Callable[[JobConfig, datetime], None],
    ) -> None:
        self.job = job
        self._now = now
        self._sleep = sleep
        self._on_fire = on_fire
        self._task: asyncio.Task[None] | None = None
        self._cancelled = False
        self.next_fire: datetime | None = None

    def start(self, first_fire: datetime) -> None:
        """Arm the timer. Must be called from inside the running event loop."""
        self.next_fire = first_fire
        self._task = asyncio.create_task(self._run(), name=f"timer:{self.job.id}")
        self._task.add_done_callback(_log_task_crash)

    def cancel(self) -> None:
        """Disarm the timer; a pending fire will not be delivered."""
        self._cancelled = True
        if self._task is not None:
            self._task.cancel()

    async def wait_closed(self) -> None:
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    async def _sleep_until(self, fire_at: datetime) -> None:
        # Re-check after every wake-up: sleeps can end early relative to wall time.
        while True:
            delay = fire_at.timestamp() - self._now().timestamp()
            if delay <= 0:
                return
            await self._sleep(delay)

    async def _run(self) -> None:
        set_log_context(operation="fire", job_id=self.job.id)
        try:
            while not self._cancelled and self.next_fire is not None:
                fire_at = self.next_fire
                await self._sleep_until(fire_at)
                if self._cancelled:
                    return
                self._on_fire(self.job, fire_at)
                self.next_fire = self._following(fire_at)
        except asyncio.CancelledError:
            logger.debug("Timer for job %s cancelled", self.job.id)
        except ScheduleError:
            logger.exception("Timer for job %s has no further fire times", self.job.id)
            self.next_fire = None

    def _following(self, fire_at: datetime) -> datetime:
        upcoming = next_fire_after(self.job.rule, fire_at)
        now = self._now()
        # Same-zone datetimes compare by wall clock; fold is ignored.
        if upcoming.timestamp() < now.timestamp():
            upcoming = next_fire_after(self.job.rule, now)
            logger.warning(
                "Job %s fell behind the clock, skipping to %s",
                self.job.id,
                upcoming.isoformat(),
            )
        return upcoming


class Scheduler:
    """Owns the live timers and the job registry as a single unit.

    ``start_job`` and ``stop_job`` are synchronous and never wait on
    deliveries, so registration stays responsive while jobs are firing.
    Both must be called from the event loop that runs the timers.
    """

    def __init__(
        self,
        deliver: DeliveryCallback,
        *,
        timezone: tzinfo = UTC,
        now: Clock | None = None,
        sleep: Sleeper | None = None,
    ) -> None:
        self._deliver = deliver
        self._tz = timezone
        self._now: Clock = now or (lambda: datetime.now(self._tz))
        self._sleep: Sleeper = sleep or asyncio.sleep
        self._timers: dict[str, LiveTimer] = {}
        self._registry = JobRegistry()
        self._deliveries: set[asyncio.Task[None]] = set()

    @property
    def registry(self) -> JobRegistry:
        return self._registry

    @property
    def active_count(self) -> int:
        """Number of currently armed timers."""
        return len(self._timers)

    def list_jobs(self) -> list[tuple[str, JobView]]:
        return self._registry.list()

    def next_fire(self, job_id: str) -> datetime | None:
        timer = self._timers.get(job_id)
        return timer.next_fire if timer else None

    # -- Lifecycle --

    def start_job(  # noqa: PLR0913
        self,
        job_id: str,
        schedule: str | TriggerRule,
        target: str,
        secret: str | None = None,
        *,
        created_at: str = "",
        created_by: str = "",
    ) -> JobConfig:
        """Schedule *job_id*, replacing any timer already running for it.

        The schedule is parsed and its first fire computed before the old
        timer is touched, so a `ScheduleError` leaves the previous schedule
        running.
        """
        rule = schedule if isinstance(schedule, TriggerRule) else parse(schedule)
        first_fire = next_fire_after(rule, self._now())
        job = JobConfig(
            id=job_id,
            target=target,
            rule=rule,
            secret=secret or None,
            created_at=created_at,
            created_by=created_by,
        )

        previous = self._timers.pop(job_id, None)
        if previous is not None:
            previous.cancel()

        timer = LiveTimer(job, now=self._now, sleep=self._sleep, on_fire=self._dispatch)
        timer.start(first_fire)
        self._timers[job_id] = timer
        self._registry.upsert(job)
        logger.info(
            "%s job %s (%s), next run %s",
            "Rescheduled" if previous else "Scheduled",
            job_id,
            rule.expression,
            first_fire.isoformat(),
        )
        return job

    def stop_job(self, job_id: str) -> bool:
        """Cancel *job_id*'s timer and drop it from the registry.

        Idempotent: returns False when nothing was scheduled.
        """
        timer = self._timers.pop(job_id, None)
        self._registry.remove(job_id)
        if timer is None:
            return False
        timer.cancel()
        logger.info("Stopped job %s", job_id)
        return True

    async def shutdown(self) -> None:
        """Cancel all timers and in-flight deliveries and wait for them to finish."""
        timers = list(self._timers.values())
        for timer in timers:
            timer.cancel()
        self._timers.clear()
        for timer in timers:
            await timer.wait_closed()

        deliveries = list(self._deliveries)
        for task in deliveries:
            task.cancel()
        if deliveries:
            await asyncio.gather(*deliveries, return_exceptions=True)
        logger.info("Scheduler stopped (%d timers cancelled)", len(timers))

    # -- Fire handling --

    def _dispatch(self, job: JobConfig, fire_at: datetime) -> None:
        """Run the delivery in a background task; the timer never awaits it."""
        logger.debug("Job %s fired (scheduled %s)", job.id, fire_at.isoformat())
        task = asyncio.create_task(self._safe_deliver(job), name=f"delivery:{job.id}")
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def _safe_deliver(self, job: JobConfig) -> None:
        try:
            await self._deliver(job)
        except Exception:
            logger.exception("Delivery callback failed for job %s", job.id)
