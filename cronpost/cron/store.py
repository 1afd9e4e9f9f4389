"""Durable job storage: a JSON object keyed by job id.

The file is the source of truth across restarts.  Writes go through a temp
file and an atomic rename so a crash never leaves a half-written file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cronpost.errors import PersistenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class JobRecord:
    """One persisted job, in the on-disk field naming."""

    url: str
    schedule: str
    created_at: str
    created_by: str
    cron_secret: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"url": self.url, "schedule": self.schedule}
        if self.cron_secret:
            result["cronSecret"] = self.cron_secret
        result["createdAt"] = self.created_at
        result["createdBy"] = self.created_by
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JobRecord:
        return cls(
            url=data["url"],
            schedule=data["schedule"],
            cron_secret=data.get("cronSecret") or None,
            created_at=data.get("createdAt", ""),
            created_by=data.get("createdBy", ""),
        )


class JobStore:
    """Reads and writes the jobs file; keeps an in-memory copy in sync.

    The cache only changes after a successful write, so it always mirrors
    what is on disk.
    """

    def __init__(self, *, jobs_path: Path) -> None:
        self._jobs_path = jobs_path
        self._records: dict[str, JobRecord] = {}

    @property
    def path(self) -> Path:
        return self._jobs_path

    def load(self) -> dict[str, JobRecord]:
        """Read the jobs file. A missing file means no jobs.

        Raises `PersistenceError` if the file cannot be read or parsed.
        """
        if not self._jobs_path.exists():
            self._records = {}
            return {}
        try:
            data = json.loads(self._jobs_path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                msg = "top-level value is not an object"
                raise TypeError(msg)
            records = {job_id: JobRecord.from_dict(raw) for job_id, raw in data.items()}
        except OSError as exc:
            msg = f"Cannot read jobs file {self._jobs_path}: {exc}"
            raise PersistenceError(msg) from exc
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as exc:
            msg = f"Corrupt jobs file {self._jobs_path}: {exc}"
            raise PersistenceError(msg) from exc
        for job_id, record in records.items():
            logger.debug("Job loaded id=%s schedule=%s", job_id, record.schedule)
        self._records = records
        return dict(records)

    def get(self, job_id: str) -> JobRecord | None:
        return self._records.get(job_id)

    def put(self, job_id: str, record: JobRecord) -> None:
        """Insert or replace *job_id* and write the file."""
        updated = dict(self._records)
        updated[job_id] = record
        self._save(updated)
        self._records = updated

    def delete(self, job_id: str) -> bool:
        """Remove *job_id* and write the file. Returns False if not found."""
        if job_id not in self._records:
            return False
        updated = {k: v for k, v in self._records.items() if k != job_id}
        self._save(updated)
        self._records = updated
        return True

    def _save(self, records: dict[str, JobRecord]) -> None:
        """Save jobs to JSON file atomically (temp write + rename)."""
        data = {job_id: record.to_dict() for job_id, record in records.items()}
        content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
        try:
            self._jobs_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self._jobs_path.parent), suffix=".tmp")
        except OSError as exc:
            msg = f"Cannot write jobs file {self._jobs_path}: {exc}"
            raise PersistenceError(msg) from exc
        tmp = Path(tmp_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            tmp.replace(self._jobs_path)
        except OSError as exc:
            tmp.unlink(missing_ok=True)
            msg = f"Cannot write jobs file {self._jobs_path}: {exc}"
            raise PersistenceError(msg) from exc
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
