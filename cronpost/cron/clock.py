"""Next-fire computation for parsed trigger rules.

Fire times come from `cronsim` in the zone of the reference time.  Five-field
rules with fixed minute and hour follow the wall clock: a repeated autumn
hour fires once and a time skipped in spring fires when the gap ends.  Every
other rule steps through real time, so the repeated hour is covered twice.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime

from cronsim import CronSim, CronSimError

from cronpost.cron.expression import TriggerRule
from cronpost.errors import ScheduleError


def next_fire_after(rule: TriggerRule, after: datetime) -> datetime:
    """Return the earliest fire time strictly after *after*.

    The result carries *after*'s tzinfo.  Raises `ScheduleError` if cronsim
    finds no match.
    """
    try:
        it = CronSim(rule.expression, after)
        fire: datetime = next(it)
        # A wall-clock slot can map to the first pass of a repeated hour,
        # which is already behind an *after* taken from the second pass.
        while fire.tzinfo is not None and fire.timestamp() <= after.timestamp():
            fire = next(it)
    except (CronSimError, StopIteration) as exc:
        msg = f"No fire time for '{rule.expression}' after {after.isoformat()}"
        raise ScheduleError(msg) from exc
    return fire


def iter_fire_times(rule: TriggerRule, start: datetime) -> Iterator[datetime]:
    """Yield successive fire times after *start*, each seeded from the previous one."""
    current = start
    while True:
        current = next_fire_after(rule, current)
        yield current
