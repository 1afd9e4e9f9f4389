"""Cron expression parsing and validation.

Accepts the classic five-field form ``minute hour day month weekday`` and the
six-field form with a leading ``second`` field.  Parsing goes through
`cronsim` and produces a `TriggerRule` holding the accepted values of every
field; nothing is scheduled here.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from cronsim import CronSim, CronSimError

from cronpost.errors import ScheduleError

# CronSim wants a start time even when only the fields are needed.
_PARSE_ANCHOR = datetime(2000, 1, 1, tzinfo=UTC)

_FIELD_NAMES = ("second", "minute", "hour", "day-of-month", "month", "day-of-week")


@dataclass(frozen=True, slots=True)
class TriggerRule:
    """Canonical parsed form of a cron expression.

    Every field is a sorted tuple of accepted values; a wildcard field holds
    its full range.  Weekdays use cron numbering (0 = Sunday).
    """

    expression: str
    seconds: tuple[int, ...]
    minutes: tuple[int, ...]
    hours: tuple[int, ...]
    days: tuple[int, ...]
    months: tuple[int, ...]
    weekdays: tuple[int, ...]
    dom_restricted: bool = False
    dow_restricted: bool = False


def _values(items: Iterable[object], field: str) -> tuple[int, ...]:
    # cronsim encodes L, LW, 5L and 5#2 as negative markers or tuples.
    values: set[int] = set()
    for item in items:
        if not isinstance(item, int) or item < 0:
            msg = f"Unsupported {field} syntax"
            raise ScheduleError(msg)
        values.add(item)
    return tuple(sorted(values))


def parse(expression: str) -> TriggerRule:
    """Parse *expression* into a `TriggerRule`.

    Raises `ScheduleError` on any syntax or range problem, or when the
    day-of-month never occurs in the selected months.
    """
    if not isinstance(expression, str):
        msg = "Cron expression must be a string"
        raise ScheduleError(msg)

    normalized = " ".join(expression.split())
    try:
        sim = CronSim(normalized, _PARSE_ANCHOR)
    except CronSimError as exc:
        msg = f"Invalid cron expression '{normalized}': {exc}"
        raise ScheduleError(msg) from exc

    seconds, minutes, hours, days, months, weekdays = (
        _values(items, name)
        for items, name in zip(
            (sim.seconds, sim.minutes, sim.hours, sim.days, sim.months, sim.weekdays),
            _FIELD_NAMES,
            strict=True,
        )
    )
    # 7 is Sunday too.
    weekdays = tuple(sorted({day % 7 for day in weekdays}))
    return TriggerRule(
        expression=normalized,
        seconds=seconds,
        minutes=minutes,
        hours=hours,
        days=days,
        months=months,
        weekdays=weekdays,
        dom_restricted=not sim.parts[3].startswith("*"),
        dow_restricted=not sim.parts[5].startswith("*"),
    )


def validate(expression: str) -> bool:
    """Return True if *expression* parses into a schedulable rule."""
    try:
        parse(expression)
    except ScheduleError:
        return False
    return True
