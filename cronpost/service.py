"""Job service: the single writer over the job store and the scheduler.

Every mutation goes through one lock so the durable file, the registry and
the live timers change together.  Validation happens before anything is
written or scheduled.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from cronpost.cron.expression import parse
from cronpost.cron.store import JobRecord
from cronpost.errors import NotFoundError, ScheduleError, ValidationError

if TYPE_CHECKING:
    from cronpost.cron.delivery import DeliveryInvoker
    from cronpost.cron.registry import JobView
    from cronpost.cron.scheduler import Scheduler
    from cronpost.cron.store import JobStore

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = frozenset({"http", "https"})


def is_valid_target_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    try:
        parsed = urlparse(url)
        host = parsed.hostname
    except ValueError:
        return False
    return parsed.scheme in _ALLOWED_SCHEMES and bool(host)


def iso_timestamp(moment: datetime | None = None) -> str:
    """UTC timestamp in the ``2024-01-01T00:00:00.000Z`` form used on disk."""
    moment = moment or datetime.now(UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JobService:
    """Add, remove, list and replay jobs."""

    def __init__(
        self,
        store: JobStore,
        scheduler: Scheduler,
        *,
        invoker: DeliveryInvoker | None = None,
        created_by: str = "cronpost",
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._invoker = invoker
        self._created_by = created_by
        self._lock = asyncio.Lock()

    @property
    def active_count(self) -> int:
        return self._scheduler.active_count

    async def initialize_jobs(self) -> int:
        """Load the job file and arm a timer for every persisted job.

        Jobs whose stored schedule no longer parses are logged and skipped.
        Raises `PersistenceError` if the file is unreadable.
        """
        async with self._lock:
            records = await asyncio.to_thread(self._store.load)
            started = 0
            for job_id, record in records.items():
                try:
                    self._scheduler.start_job(
                        job_id,
                        record.schedule,
                        record.url,
                        record.cron_secret,
                        created_at=record.created_at,
                        created_by=record.created_by,
                    )
                except ScheduleError as exc:
                    logger.error("Skipping persisted job %s: %s", job_id, exc)
                    continue
                started += 1
        logger.info("Initialized %d of %d persisted jobs", started, len(records))
        return started

    async def add_job(
        self,
        job_id: Any,
        url: Any,
        schedule: Any,
        cron_secret: Any = None,
    ) -> JobView:
        """Validate, persist and schedule a job, replacing any job with the same id.

        Raises `ValidationError` (or `ScheduleError`) before touching any
        state, and `PersistenceError` if the file write fails; in that case
        nothing is rescheduled.
        """
        if not job_id or not url or not schedule:
            msg = "Missing required fields"
            raise ValidationError(msg)
        if not all(isinstance(v, str) for v in (job_id, url, schedule)):
            msg = "Fields id, url and schedule must be strings"
            raise ValidationError(msg)
        if cron_secret is not None and not isinstance(cron_secret, str):
            msg = "cronSecret must be a string"
            raise ValidationError(msg)

        rule = parse(schedule)
        if not is_valid_target_url(url):
            msg = "Invalid URL format"
            raise ValidationError(msg)

        record = JobRecord(
            url=url,
            schedule=schedule,
            cron_secret=cron_secret or None,
            created_at=iso_timestamp(),
            created_by=self._created_by,
        )
        async with self._lock:
            await asyncio.to_thread(self._store.put, job_id, record)
            job = self._scheduler.start_job(
                job_id,
                rule,
                url,
                record.cron_secret,
                created_at=record.created_at,
                created_by=record.created_by,
            )
        logger.info("Job added: %s (%s -> %s)", job_id, rule.expression, url)
        return job.view()

    async def delete_job(self, job_id: str) -> None:
        """Stop the job's timer, then drop it from the job file.

        Raises `NotFoundError` if the id is not persisted.  If the file write
        fails the timer stays stopped while the job remains on disk.
        """
        async with self._lock:
            if self._store.get(job_id) is None:
                msg = f"Job '{job_id}' not found"
                raise NotFoundError(msg)
            self._scheduler.stop_job(job_id)
            if self._invoker is not None:
                self._invoker.forget(job_id)
            await asyncio.to_thread(self._store.delete, job_id)
        logger.info("Job deleted: %s", job_id)

    def list_jobs(self) -> dict[str, dict[str, Any]]:
        """Public listing keyed by id; secrets are never included."""
        return {job_id: self._describe(view) for job_id, view in self._scheduler.list_jobs()}

    def get_job(self, job_id: str) -> dict[str, Any]:
        job = self._scheduler.registry.get(job_id)
        if job is None:
            msg = f"Job '{job_id}' not found"
            raise NotFoundError(msg)
        return {"id": job_id, **self._describe(job.view())}

    def _describe(self, view: JobView) -> dict[str, Any]:
        data = view.to_dict()
        next_fire = self._scheduler.next_fire(view.id)
        data["nextRunAt"] = next_fire.isoformat() if next_fire else None
        last = self._invoker.last_outcome(view.id) if self._invoker else None
        data["lastRun"] = last.to_dict() if last else None
        return data
