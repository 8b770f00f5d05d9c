from __future__ import annotations

from datetime import date

from resource_planner.services.weeks import (
    MonthSpan,
    WeekRef,
    add_weeks,
    build_week_window,
    current_year_week,
    format_week_range,
    iso_week_date_range,
    iso_weeks_in_year,
    month_spans_for_weeks,
    serialize_week_header,
    shift_window,
)


def test_week_window_wraps_into_next_year() -> None:
    weeks = build_week_window(2025, 51, 2)

    assert weeks == [WeekRef(2025, 51), WeekRef(2025, 52), WeekRef(2026, 1), WeekRef(2026, 2)]


def test_week_window_within_one_year() -> None:
    weeks = build_week_window(2026, 10, 13)

    assert [ref.week for ref in weeks] == [10, 11, 12, 13]
    assert {ref.year for ref in weeks} == {2026}


def test_week_window_wrap_uses_long_years() -> None:
    weeks = build_week_window(2020, 52, 1)

    assert weeks == [WeekRef(2020, 52), WeekRef(2020, 53), WeekRef(2021, 1)]


def test_iso_weeks_in_year() -> None:
    assert iso_weeks_in_year(2025) == 52
    assert iso_weeks_in_year(2020) == 53
    assert iso_weeks_in_year(2026) == 53


def test_iso_week_date_range_crosses_year() -> None:
    assert iso_week_date_range(2026, 1) == (date(2025, 12, 29), date(2026, 1, 4))
    assert iso_week_date_range(2025, 52) == (date(2025, 12, 22), date(2025, 12, 28))


def test_current_year_week_uses_iso_calendar() -> None:
    assert current_year_week(date(2026, 1, 1)) == WeekRef(2026, 1)
    assert current_year_week(date(2027, 1, 1)) == WeekRef(2026, 53)


def test_add_weeks_and_shift_window() -> None:
    assert add_weeks(WeekRef(2025, 52), 1) == WeekRef(2026, 1)
    assert add_weeks(WeekRef(2026, 2), -2) == WeekRef(2025, 52)

    assert shift_window(2025, 50, 52, 4) == (2026, 2, 4)
    assert shift_window(2026, 3, 6, -4) == (2025, 51, 2)


def test_week_label_and_isoformat() -> None:
    assert WeekRef(2026, 7).label == "v7 2026"
    assert WeekRef(2026, 7).isoformat() == "2026-W07"


def test_month_spans_follow_monday_of_each_week() -> None:
    spans = month_spans_for_weeks(build_week_window(2026, 1, 6))

    assert spans == [
        MonthSpan(label="Dec 2025", col_span=1),
        MonthSpan(label="Jan 2026", col_span=4),
        MonthSpan(label="Feb 2026", col_span=1),
    ]
    assert month_spans_for_weeks([]) == []


def test_format_week_range() -> None:
    assert format_week_range([WeekRef(2026, 7)]) == "7"
    assert format_week_range([WeekRef(2026, 9), WeekRef(2026, 7)]) == "7–9"
    assert format_week_range(build_week_window(2025, 51, 2)) == "2025-51 – 2026-2"
    assert format_week_range([]) is None


def test_week_header_labels_use_calendar_year_of_monday() -> None:
    header = serialize_week_header(build_week_window(2025, 52, 1))

    assert [week["label"] for week in header["weeks"]] == ["v52 2025", "v1 2026"]
    assert header["month_spans"] == [{"label": "Dec 2025", "col_span": 2}]
