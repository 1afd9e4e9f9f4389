"""In-memory job registry: the set of jobs that should be running."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from cronpost.cron.expression import TriggerRule


@dataclass(frozen=True, slots=True)
class JobConfig:
    """Immutable per-job configuration handed to a live timer."""

    id: str
    target: str
    rule: TriggerRule
    secret: str | None = None
    created_at: str = ""
    created_by: str = ""

    @property
    def schedule(self) -> str:
        return self.rule.expression

    def view(self) -> JobView:
        """Return the public projection of this job (no secret)."""
        return JobView(
            id=self.id,
            url=self.target,
            schedule=self.rule.expression,
            created_at=self.created_at,
            created_by=self.created_by,
        )


@dataclass(frozen=True, slots=True)
class JobView:
    """Public, secret-free view of a registered job."""

    id: str
    url: str
    schedule: str
    created_at: str
    created_by: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "schedule": self.schedule,
            "createdAt": self.created_at,
            "createdBy": self.created_by,
        }


class JobRegistry:
    """Insertion-ordered map of job id -> `JobConfig`.

    Mutated only by the scheduler; everyone else reads through `get` and
    `list`, which never expose secrets.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, JobConfig] = {}

    def upsert(self, job: JobConfig) -> None:
        """Insert *job*, or replace the entry with the same id in place."""
        self._jobs[job.id] = job

    def remove(self, job_id: str) -> JobConfig | None:
        """Drop *job_id*. Returns the removed job, or None if absent."""
        return self._jobs.pop(job_id, None)

    def get(self, job_id: str) -> JobConfig | None:
        return self._jobs.get(job_id)

    def list(self) -> list[tuple[str, JobView]]:
        """Snapshot of all jobs as ``(id, view)`` pairs, secrets redacted."""
        return [(job_id, job.view()) for job_id, job in self._jobs.items()]

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)
