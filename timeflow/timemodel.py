from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Iterable

MS_PER_HOUR = 3_600_000
MS_PER_DAY = 86_400_000

CURRENCY_SYMBOLS = {
    "EUR": "€",
    "USD": "$",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "$",
    "AUD": "$",
    "CHF": "Fr",
    "CNY": "¥",
    "INR": "₹",
    "BRL": "R$",
}

DATE_FORMATS = ("DD/MM/YYYY", "MM/DD/YYYY", "YYYY-MM-DD")
TIME_FORMATS = ("12", "24")

_DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_iso_utc(value: str | None) -> datetime | None:
    """Parse an ISO timestamp and normalize to UTC."""
    if not value:
        return None

    # JavaScript exports use a trailing "Z" which older fromisoformat rejects.
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso_utc(value: datetime) -> str:
    if value.tzinfo is None:
        raise ValueError("Datetime must be timezone-aware")
    return value.astimezone(timezone.utc).isoformat()


def span_ms(start: datetime, end: datetime) -> int:
    return (end - start) // timedelta(milliseconds=1)


def break_total_ms(breaks: Iterable) -> int:
    """Sum of closed break spans. Breaks without an end contribute nothing."""
    total = 0
    for item in breaks:
        if item.end_time is None:
            continue
        total += span_ms(item.start_time, item.end_time)
    return total


def duration_ms(start: datetime, end: datetime, breaks: Iterable = ()) -> int:
    return span_ms(start, end) - break_total_ms(breaks)


def hours_from_ms(value: int) -> float:
    return value / MS_PER_HOUR


def currency_symbol(currency: str) -> str:
    return CURRENCY_SYMBOLS.get(currency, currency)


def format_currency(amount: float, symbol: str) -> str:
    return f"{symbol}{amount:.2f}"


def format_hours(hours: float) -> str:
    """Render fractional hours as H:MM, rounding to the nearest minute."""
    whole = math.floor(hours)
    minutes = math.floor((hours - whole) * 60 + 0.5)
    if minutes == 60:
        whole += 1
        minutes = 0
    return f"{whole}:{minutes:02}"


def format_duration(total_ms: int) -> str:
    """Render a duration as HH:MM:SS for live session display."""
    safe_seconds = max(0, int(total_ms) // 1000)
    hours, remainder = divmod(safe_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02}:{minutes:02}:{seconds:02}"


def format_time(value: datetime, time_format: str = "24", *, include_seconds: bool = False) -> str:
    if time_format == "12":
        period = "PM" if value.hour >= 12 else "AM"
        hour = value.hour % 12 or 12
        if include_seconds:
            return f"{hour}:{value.minute:02}:{value.second:02} {period}"
        return f"{hour}:{value.minute:02} {period}"

    if include_seconds:
        return f"{value.hour:02}:{value.minute:02}:{value.second:02}"
    return f"{value.hour:02}:{value.minute:02}"


def format_date(value: datetime, date_format: str = "DD/MM/YYYY", *, full: bool = False) -> str:
    if full:
        return f"{_DAY_NAMES[value.weekday()]}, {_MONTH_NAMES[value.month - 1]} {value.day}, {value.year}"

    day = f"{value.day:02}"
    month = f"{value.month:02}"
    if date_format == "MM/DD/YYYY":
        return f"{month}/{day}/{value.year}"
    if date_format == "YYYY-MM-DD":
        return f"{value.year}-{month}-{day}"
    return f"{day}/{month}/{value.year}"
