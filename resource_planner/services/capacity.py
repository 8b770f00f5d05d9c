"""Consultant capacity per ISO week."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal

from resource_planner.services.weeks import WeekRef, iso_week_date_range

ZERO = Decimal("0.00")
Q2 = Decimal("0.01")
HUNDRED = Decimal("100")


def _q2(value: Decimal) -> Decimal:
    return value.quantize(Q2)


def initials(name: str) -> str:
    return "".join(part[0] for part in name.split() if part).upper()[:2]


def work_fraction(work_percentage: int | None) -> Decimal:
    """Work share of a full calendar week, clamped to 5..100 percent."""

    pct = 100 if work_percentage is None else work_percentage
    return Decimal(max(5, min(100, pct))) / HUNDRED


def overhead_fraction(overhead_percentage: int | None) -> Decimal:
    pct = overhead_percentage or 0
    return Decimal(max(0, min(100, pct))) / HUNDRED


def count_weekday_holidays(holidays: Iterable[date], start: date, end: date) -> int:
    """Count holidays within ``start..end`` that fall on Monday to Friday."""

    return sum(1 for day in holidays if start <= day <= end and day.isoweekday() <= 5)


def available_hours_by_week(
    *,
    calendar_hours: Decimal,
    holidays: Sequence[date],
    work_percentage: int | None,
    overhead_percentage: int | None,
    weeks: Sequence[WeekRef],
    hours_per_holiday: int,
) -> list[Decimal]:
    """Hours available for project work in each week of the window.

    Weekday holidays reduce the calendar week before the work share and the
    overhead share are applied.
    """

    work = work_fraction(work_percentage)
    project_share = Decimal("1") - overhead_fraction(overhead_percentage)

    available: list[Decimal] = []
    for ref in weeks:
        start, end = iso_week_date_range(ref.year, ref.week)
        holiday_hours = Decimal(count_weekday_holidays(holidays, start, end) * hours_per_holiday)
        base_hours = max(ZERO, calendar_hours - holiday_hours)
        available.append(_q2(base_hours * work * project_share))
    return available


def unavailable_by_week(
    *,
    start_date: date | None,
    end_date: date | None,
    weeks: Sequence[WeekRef],
) -> list[bool]:
    """Flag weeks outside the employment period.

    A week is flagged when it ends before ``start_date`` or when it extends
    past ``end_date``. Flags are informational; bookings stay allowed.
    """

    flags: list[bool] = []
    for ref in weeks:
        _, week_end = iso_week_date_range(ref.year, ref.week)
        if start_date is not None and week_end < start_date:
            flags.append(True)
        elif end_date is not None and week_end > end_date:
            flags.append(True)
        else:
            flags.append(False)
    return flags
