"""Logging context: ContextVar-based log enrichment for async operations.

Every log record is automatically enriched with an ``[op:job]`` prefix via a
`ContextFilter` attached to the root logger handlers.

Operation codes: ``api`` (HTTP request), ``fire`` (timer fired),
``post`` (outbound delivery), ``ping`` (keep-alive).
"""

from __future__ import annotations

import logging
from contextvars import ContextVar

# Cross-cutting context propagated through asyncio tasks.
ctx_operation: ContextVar[str | None] = ContextVar("ctx_operation", default=None)
ctx_job_id: ContextVar[str | None] = ContextVar("ctx_job_id", default=None)


class ContextFilter(logging.Filter):
    """Inject ContextVar values into every LogRecord as ``record.ctx``."""

    def filter(self, record: logging.LogRecord) -> bool:
        op = ctx_operation.get(None)
        job = ctx_job_id.get(None)
        parts: list[str] = []
        if op:
            parts.append(op)
        if job:
            parts.append(job)
        record.ctx = f"[{':'.join(parts)}] " if parts else ""
        return True


def set_log_context(*, operation: str | None = None, job_id: str | None = None) -> None:
    """Set logging context for the current asyncio task.

    Values propagate to all coroutines called within the same task.
    Each ``asyncio.create_task()`` copies the current context automatically.
    """
    if operation is not None:
        ctx_operation.set(operation)
    if job_id is not None:
        ctx_job_id.set(job_id)
