from __future__ import annotations

from datetime import date
from decimal import Decimal

from resource_planner.services.capacity import (
    available_hours_by_week,
    count_weekday_holidays,
    initials,
    overhead_fraction,
    unavailable_by_week,
    work_fraction,
)
from resource_planner.services.weeks import WeekRef, build_week_window


def test_initials_take_first_two_words() -> None:
    assert initials("Anna Maria Berg") == "AM"
    assert initials("erik") == "E"
    assert initials("  ") == ""


def test_percentages_are_clamped() -> None:
    assert work_fraction(None) == Decimal("1")
    assert work_fraction(0) == Decimal("0.05")
    assert work_fraction(150) == Decimal("1")
    assert overhead_fraction(None) == Decimal("0")
    assert overhead_fraction(-10) == Decimal("0")
    assert overhead_fraction(25) == Decimal("0.25")


def test_only_weekday_holidays_inside_the_week_count() -> None:
    holidays = [date(2026, 1, 1), date(2026, 1, 3), date(2026, 1, 6)]

    assert count_weekday_holidays(holidays, date(2025, 12, 29), date(2026, 1, 4)) == 1


def test_available_hours_apply_holidays_then_shares() -> None:
    weeks = [WeekRef(2026, 1), WeekRef(2026, 2)]

    available = available_hours_by_week(
        calendar_hours=Decimal("40"),
        holidays=[date(2026, 1, 1)],
        work_percentage=80,
        overhead_percentage=10,
        weeks=weeks,
        hours_per_holiday=8,
    )

    assert available == [Decimal("23.04"), Decimal("28.80")]


def test_available_hours_never_negative() -> None:
    holidays = [date(2026, 1, 5), date(2026, 1, 6), date(2026, 1, 7)]

    available = available_hours_by_week(
        calendar_hours=Decimal("16"),
        holidays=holidays,
        work_percentage=100,
        overhead_percentage=0,
        weeks=[WeekRef(2026, 2)],
        hours_per_holiday=8,
    )

    assert available == [Decimal("0.00")]


def test_unavailable_weeks_follow_employment_period() -> None:
    flags = unavailable_by_week(
        start_date=date(2026, 1, 10),
        end_date=date(2026, 1, 20),
        weeks=build_week_window(2026, 1, 4),
    )

    assert flags == [True, False, False, True]


def test_open_employment_period_is_always_available() -> None:
    assert unavailable_by_week(start_date=None, end_date=None, weeks=build_week_window(2026, 1, 3)) == [
        False,
        False,
        False,
    ]
