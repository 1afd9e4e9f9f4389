"""Cron scheduling engine: expression parsing, fire-time clock, live timers."""

from cronpost.cron.clock import iter_fire_times, next_fire_after
from cronpost.cron.delivery import DeliveryInvoker, DeliveryOutcome
from cronpost.cron.expression import TriggerRule, parse, validate
from cronpost.cron.registry import JobConfig, JobRegistry, JobView
from cronpost.cron.scheduler import LiveTimer, Scheduler
from cronpost.cron.store import JobRecord, JobStore

__all__ = [
    "DeliveryInvoker",
    "DeliveryOutcome",
    "JobConfig",
    "JobRecord",
    "JobRegistry",
    "JobStore",
    "JobView",
    "LiveTimer",
    "Scheduler",
    "TriggerRule",
    "iter_fire_times",
    "next_fire_after",
    "parse",
    "validate",
]
