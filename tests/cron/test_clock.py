"""Tests for next-fire computation."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from itertools import islice
from zoneinfo import ZoneInfo

import pytest

from cronpost.cron.clock import iter_fire_times, next_fire_after
from cronpost.cron.expression import parse


def _next(expr: str, after: datetime) -> datetime:
    return next_fire_after(parse(expr), after)


class TestNextFireAfter:
    def test_next_top_of_hour(self) -> None:
        assert _next("0 * * * *", datetime(2024, 1, 1, 0, 5)) == datetime(2024, 1, 1, 1, 0)

    def test_strictly_after_reference(self) -> None:
        assert _next("0 * * * *", datetime(2024, 1, 1, 1, 0)) == datetime(2024, 1, 1, 2, 0)

    def test_every_minute(self) -> None:
        assert _next("* * * * *", datetime(2024, 1, 1, 0, 0, 30)) == datetime(2024, 1, 1, 0, 1)

    def test_microseconds_are_ignored(self) -> None:
        after = datetime(2024, 1, 1, 0, 0, 59, 999999)
        assert _next("* * * * *", after) == datetime(2024, 1, 1, 0, 1)

    def test_six_field_seconds(self) -> None:
        after = datetime(2024, 1, 1, 0, 0, 7)
        assert _next("*/15 * * * * *", after) == datetime(2024, 1, 1, 0, 0, 15)
        assert _next("*/15 * * * * *", datetime(2024, 1, 1, 0, 0, 45)) == datetime(
            2024, 1, 1, 0, 1, 0
        )

    def test_rolls_over_day(self) -> None:
        assert _next("30 9 * * *", datetime(2024, 3, 10, 10, 0)) == datetime(2024, 3, 11, 9, 30)

    def test_rolls_over_year(self) -> None:
        assert _next("0 0 1 1 *", datetime(2024, 6, 1)) == datetime(2025, 1, 1)

    def test_end_of_december(self) -> None:
        assert _next("59 23 31 12 *", datetime(2024, 12, 31, 23, 59)) == datetime(
            2025, 12, 31, 23, 59
        )

    def test_day_31_skips_short_months(self) -> None:
        assert _next("0 12 31 * *", datetime(2024, 4, 1)) == datetime(2024, 5, 31, 12, 0)

    def test_leap_day(self) -> None:
        assert _next("0 0 29 2 *", datetime(2024, 3, 1)) == datetime(2028, 2, 29)
        assert _next("0 0 29 2 *", datetime(2023, 6, 1)) == datetime(2024, 2, 29)

    def test_leap_day_across_non_leap_century(self) -> None:
        assert _next("0 0 29 2 *", datetime(2096, 3, 1)) == datetime(2104, 2, 29)

    def test_weekday_only(self) -> None:
        # 2024-01-01 is a Monday.
        assert _next("0 9 * * 5", datetime(2024, 1, 1)) == datetime(2024, 1, 5, 9, 0)

    def test_weekday_names(self) -> None:
        assert _next("0 9 * * SAT", datetime(2024, 1, 1)) == datetime(2024, 1, 6, 9, 0)

    def test_day_or_weekday_when_both_restricted(self) -> None:
        # 15th of the month OR any Friday: Friday the 5th comes first.
        assert _next("0 0 15 * 5", datetime(2024, 1, 1)) == datetime(2024, 1, 5)
        assert _next("0 0 15 * 5", datetime(2024, 1, 13)) == datetime(2024, 1, 15)

    def test_day_and_weekday_when_one_is_wildcard(self) -> None:
        # Every other day, restricted to Mondays (AND).
        assert _next("0 0 */2 * 1", datetime(2024, 1, 1, 1)) == datetime(2024, 1, 15)

    def test_month_restriction(self) -> None:
        assert _next("0 0 1 JUN *", datetime(2024, 6, 1, 0, 0)) == datetime(2025, 6, 1)

    def test_preserves_timezone(self) -> None:
        tz = ZoneInfo("Europe/Berlin")
        result = _next("0 9 * * *", datetime(2024, 1, 1, 10, 0, tzinfo=tz))
        assert result == datetime(2024, 1, 2, 9, 0, tzinfo=tz)
        assert result.tzinfo is tz

    def test_wall_clock_across_dst_change(self) -> None:
        tz = ZoneInfo("Europe/Berlin")
        # Clocks go forward on 2024-03-31; 09:00 is still 09:00 local.
        result = _next("0 9 * * *", datetime(2024, 3, 30, 10, 0, tzinfo=tz))
        assert result.replace(tzinfo=None) == datetime(2024, 3, 31, 9, 0)
        assert result.utcoffset() == timedelta(hours=2)

    def test_deterministic(self) -> None:
        rule = parse("*/7 3-5 * * *")
        after = datetime(2024, 5, 5, 4, 59, 59)
        assert next_fire_after(rule, after) == next_fire_after(rule, after)


class TestIterFireTimes:
    def test_successive_fires(self) -> None:
        fires = list(islice(iter_fire_times(parse("*/20 * * * *"), datetime(2024, 1, 1)), 4))
        assert fires == [
            datetime(2024, 1, 1, 0, 20),
            datetime(2024, 1, 1, 0, 40),
            datetime(2024, 1, 1, 1, 0),
            datetime(2024, 1, 1, 1, 20),
        ]

    @pytest.mark.parametrize(
        "expr",
        ["* * * * *", "0 0 29 2 *", "0 0 13 * 5", "*/5 * * * * *", "0 22 * * 1-5", "0 0 1 */3 *"],
    )
    def test_strictly_increasing(self, expr: str) -> None:
        fires = list(islice(iter_fire_times(parse(expr), datetime(2024, 2, 27, 23, 58)), 50))
        assert all(a < b for a, b in zip(fires, fires[1:], strict=False))



def test_aware_utc_input() -> None:
    after = datetime(2024, 1, 1, 0, 5, tzinfo=UTC)
    assert _next("0 * * * *", after) == datetime(2024, 1, 1, 1, 0, tzinfo=UTC)


# -- Daylight saving transitions (America/New_York, 2024) --

_NY = ZoneInfo("America/New_York")


class TestDaylightSaving:
    def test_minutely_enters_repeated_hour(self) -> None:
        # 01:59 EDT is followed by 01:00 EST, one real minute later.
        after = datetime(2024, 11, 3, 1, 59, tzinfo=_NY)
        result = _next("* * * * *", after)
        assert result.replace(tzinfo=None) == datetime(2024, 11, 3, 1, 0)
        assert result.fold == 1
        assert result.utcoffset() == timedelta(hours=-5)
        assert result.timestamp() - after.timestamp() == 60

    def test_minutely_covers_both_passes(self) -> None:
        start = datetime(2024, 11, 3, 5, 29, tzinfo=UTC).astimezone(_NY)
        fires = list(islice(iter_fire_times(parse("* * * * *"), start), 120))
        stamps = [f.timestamp() for f in fires]
        assert all(b - a == 60 for a, b in zip(stamps, stamps[1:], strict=False))
        assert sum(1 for f in fires if f.hour == 1) == 90

    def test_fixed_time_fires_once_in_repeated_hour(self) -> None:
        start = datetime(2024, 11, 3, 0, 0, tzinfo=_NY)
        fires = list(islice(iter_fire_times(parse("30 1 * * *"), start), 2))
        assert [f.replace(tzinfo=None) for f in fires] == [
            datetime(2024, 11, 3, 1, 30),
            datetime(2024, 11, 4, 1, 30),
        ]

    def test_fixed_time_from_second_pass_moves_to_next_day(self) -> None:
        after = datetime(2024, 11, 3, 1, 30, fold=1, tzinfo=_NY)
        result = _next("45 1 * * *", after)
        assert result.replace(tzinfo=None) == datetime(2024, 11, 4, 1, 45)

    def test_skipped_time_fires_when_gap_ends(self) -> None:
        result = _next("30 2 * * *", datetime(2024, 3, 10, 0, 0, tzinfo=_NY))
        assert result.replace(tzinfo=None) == datetime(2024, 3, 10, 3, 0)
        assert result.utcoffset() == timedelta(hours=-4)
