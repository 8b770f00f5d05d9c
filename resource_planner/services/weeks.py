"""ISO week helpers used by the allocation planner."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

SHIFT_WEEKS = 4


@dataclass(frozen=True, slots=True, order=True)
class WeekRef:
    year: int
    week: int

    @property
    def label(self) -> str:
        return f"v{self.week} {self.year}"

    def isoformat(self) -> str:
        return f"{self.year}-W{self.week:02d}"


@dataclass(frozen=True, slots=True)
class MonthSpan:
    label: str
    col_span: int


def iso_weeks_in_year(year: int) -> int:
    # 28 December always falls in the last ISO week of its year.
    return date(year, 12, 28).isocalendar()[1]


def build_week_window(year: int, week_from: int, week_to: int) -> list[WeekRef]:
    """Expand a week range into ordered ``WeekRef`` values.

    A range with ``week_from > week_to`` wraps into the following year, e.g.
    ``(2025, 51, 2)`` yields 2025-W51, 2025-W52, 2026-W1, 2026-W2.
    """

    if week_from <= week_to:
        return [WeekRef(year, week) for week in range(week_from, week_to + 1)]

    weeks = [WeekRef(year, week) for week in range(week_from, iso_weeks_in_year(year) + 1)]
    weeks.extend(WeekRef(year + 1, week) for week in range(1, week_to + 1))
    return weeks


def iso_week_date_range(year: int, week: int) -> tuple[date, date]:
    """Return Monday and Sunday of the given ISO week."""

    jan4 = date(year, 1, 4)
    week1_monday = jan4 - timedelta(days=jan4.isoweekday() - 1)
    monday = week1_monday + timedelta(weeks=week - 1)
    return monday, monday + timedelta(days=6)


def current_year_week(today: date | None = None) -> WeekRef:
    iso = (today or date.today()).isocalendar()
    return WeekRef(iso[0], iso[1])


def add_weeks(ref: WeekRef, delta: int) -> WeekRef:
    monday, _ = iso_week_date_range(ref.year, ref.week)
    iso = (monday + timedelta(weeks=delta)).isocalendar()
    return WeekRef(iso[0], iso[1])


def shift_window(year: int, week_from: int, week_to: int, delta: int) -> tuple[int, int, int]:
    """Move a week window by ``delta`` weeks keeping its length.

    Returns the ``(year, week_from, week_to)`` triple of the new window.
    """

    span = len(build_week_window(year, week_from, week_to))
    start = add_weeks(WeekRef(year, week_from), delta)
    end = add_weeks(start, span - 1)
    return start.year, start.week, end.week


def format_week_range(weeks: list[WeekRef]) -> str | None:
    """Compact label for the span of ``weeks``: ``"7"``, ``"7–9"`` or ``"2025-51 – 2026-2"``."""

    if not weeks:
        return None
    first, last = min(weeks), max(weeks)
    if first == last:
        return f"{first.week}"
    if first.year == last.year:
        return f"{first.week}–{last.week}"
    return f"{first.year}-{first.week} – {last.year}-{last.week}"


def month_for_week(year: int, week: int) -> tuple[int, int]:
    """Calendar ``(year, month)`` of the Monday that starts the ISO week."""

    monday, _ = iso_week_date_range(year, week)
    return monday.year, monday.month


def month_spans_for_weeks(weeks: list[WeekRef]) -> list[MonthSpan]:
    """Group consecutive window weeks by the month of their Monday."""

    spans: list[MonthSpan] = []
    if not weeks:
        return spans

    current = month_for_week(weeks[0].year, weeks[0].week)
    count = 0
    for ref in weeks:
        key = month_for_week(ref.year, ref.week)
        if key != current:
            spans.append(MonthSpan(label=f"{MONTH_NAMES[current[1] - 1]} {current[0]}", col_span=count))
            current = key
            count = 0
        count += 1
    spans.append(MonthSpan(label=f"{MONTH_NAMES[current[1] - 1]} {current[0]}", col_span=count))
    return spans


def serialize_week_header(weeks: list[WeekRef]) -> dict[str, list[dict[str, object]]]:
    """Column header payload: one entry per week plus the month spans above them."""

    return {
        "weeks": [{"year": ref.year, "week": ref.week, "label": ref.label} for ref in weeks],
        "month_spans": [{"label": span.label, "col_span": span.col_span} for span in month_spans_for_weeks(weeks)],
    }
