from datetime import datetime, timezone

from timeflow.models import Break
from timeflow.timemodel import (
    duration_ms,
    format_currency,
    format_date,
    format_duration,
    format_hours,
    format_time,
    hours_from_ms,
    parse_iso_utc,
)


def test_duration_subtracts_closed_breaks_only() -> None:
    start = datetime(2026, 2, 1, 9, 0, tzinfo=timezone.utc)
    end = datetime(2026, 2, 1, 13, 0, tzinfo=timezone.utc)
    breaks = [
        Break(datetime(2026, 2, 1, 10, 0, tzinfo=timezone.utc), datetime(2026, 2, 1, 10, 15, tzinfo=timezone.utc)),
        Break(datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)),
    ]

    assert duration_ms(start, end, breaks) == 3 * 3_600_000 + 45 * 60_000
    assert hours_from_ms(duration_ms(start, end, breaks)) == 3.75


def test_format_hours_always_shows_minutes() -> None:
    assert format_hours(5) == "5:00"
    assert format_hours(3.75) == "3:45"
    assert format_hours(0.5) == "0:30"
    assert format_hours(1.9999) == "2:00"


def test_format_currency_two_decimals_no_grouping() -> None:
    assert format_currency(75, "€") == "€75.00"
    assert format_currency(1234567.891, "$") == "$1234567.89"


def test_format_duration_hh_mm_ss() -> None:
    assert format_duration(0) == "00:00:00"
    assert format_duration(3_661_000) == "01:01:01"
    assert format_duration(-5_000) == "00:00:00"


def test_date_and_time_formats() -> None:
    value = datetime(2026, 3, 7, 15, 4, 9, tzinfo=timezone.utc)

    assert format_date(value) == "07/03/2026"
    assert format_date(value, "MM/DD/YYYY") == "03/07/2026"
    assert format_date(value, "YYYY-MM-DD") == "2026-03-07"
    assert format_date(value, full=True) == "Saturday, March 7, 2026"
    assert format_time(value) == "15:04"
    assert format_time(value, "12") == "3:04 PM"
    assert format_time(value, "24", include_seconds=True) == "15:04:09"


def test_parse_iso_utc_accepts_javascript_timestamps() -> None:
    parsed = parse_iso_utc("2026-02-01T09:00:00.000Z")

    assert parsed == datetime(2026, 2, 1, 9, 0, tzinfo=timezone.utc)
    assert parse_iso_utc(None) is None
