from __future__ import annotations

import calendar
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from .models import DailyHours, Period, ProjectTotal, TimeEntry, parse_period
from .state import StateHolder
from .timemodel import MS_PER_DAY, span_ms, utc_now

_SHORT_DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


@dataclass(frozen=True, slots=True)
class PeriodSummary:
    period: Period
    start_local: datetime
    total_hours: float
    total_earnings: float
    project_totals: tuple[ProjectTotal, ...]
    active_projects: int
    days_in_period: int

    @property
    def avg_hours_per_day(self) -> float:
        return self.total_hours / self.days_in_period


@dataclass(frozen=True, slots=True)
class Prediction:
    """Naive run-rate projection; no seasonal adjustment."""

    avg_rate: float
    avg_hours_per_day: float
    days_left_in_week: int
    days_left_in_month: int
    week_hours: float
    week_earnings: float
    month_hours: float
    month_earnings: float


@dataclass(frozen=True, slots=True)
class DashboardStats:
    today_hours: float
    week_hours: float
    month_hours: float
    month_earnings: float


def sunday_based_weekday(day: date) -> int:
    """Weekday index with Sunday as 0, matching the ``weekStart`` setting."""
    return (day.weekday() + 1) % 7


def week_start_date(day: date, week_start: int) -> date:
    diff = (sunday_based_weekday(day) - week_start) % 7
    return day - timedelta(days=diff)


def period_start(period: Period, now_utc: datetime, tz: ZoneInfo, week_start: int = 1) -> datetime:
    today = now_utc.astimezone(tz).date()
    if period is Period.WEEK:
        first = week_start_date(today, week_start)
    elif period is Period.MONTH:
        first = today.replace(day=1)
    else:
        first = today.replace(month=1, day=1)
    return datetime.combine(first, time.min, tzinfo=tz)


def days_in_period(start_local: datetime, now_utc: datetime) -> int:
    return max(1, math.ceil(span_ms(start_local, now_utc) / MS_PER_DAY))


def entries_since(entries: Iterable[TimeEntry], first_day: date) -> list[TimeEntry]:
    first_key = first_day.isoformat()
    return [entry for entry in entries if entry.date >= first_key]


def total_hours(entries: Iterable[TimeEntry]) -> float:
    return sum(entry.hours for entry in entries)


def total_earnings(entries: Iterable[TimeEntry]) -> float:
    return sum(entry.earnings for entry in entries)


def group_by_project(
    entries: Iterable[TimeEntry],
    project_name: Callable[[str], str],
) -> list[ProjectTotal]:
    """Per-project totals in order of each project's first appearance."""
    hours: dict[str, float] = {}
    earnings: dict[str, float] = {}
    for entry in entries:
        hours[entry.project_id] = hours.get(entry.project_id, 0.0) + entry.hours
        earnings[entry.project_id] = earnings.get(entry.project_id, 0.0) + entry.earnings

    return [
        ProjectTotal(
            project_id=project_id,
            name=project_name(project_id),
            hours=hours[project_id],
            earnings=earnings[project_id],
        )
        for project_id in hours
    ]


def summarize(
    entries: Iterable[TimeEntry],
    period: Period,
    now_utc: datetime,
    tz: ZoneInfo,
    project_name: Callable[[str], str],
    *,
    week_start: int = 1,
) -> PeriodSummary:
    start = period_start(period, now_utc, tz, week_start)
    selected = entries_since(entries, start.date())
    per_project = group_by_project(selected, project_name)
    return PeriodSummary(
        period=period,
        start_local=start,
        total_hours=total_hours(selected),
        total_earnings=total_earnings(selected),
        project_totals=tuple(per_project),
        active_projects=len(per_project),
        days_in_period=days_in_period(start, now_utc),
    )


def predict(
    current_hours: float,
    current_earnings: float,
    days_worked: int,
    now_utc: datetime,
    tz: ZoneInfo,
) -> Prediction:
    today = now_utc.astimezone(tz).date()
    avg_rate = current_earnings / current_hours if current_hours > 0 else 0.0
    avg_per_day = current_hours / days_worked if days_worked > 0 else 0.0

    # Counted from Sunday regardless of the weekStart setting.
    days_left_week = 7 - sunday_based_weekday(today)
    days_left_month = calendar.monthrange(today.year, today.month)[1] - today.day

    week_hours = current_hours + avg_per_day * days_left_week
    month_hours = current_hours + avg_per_day * days_left_month
    return Prediction(
        avg_rate=avg_rate,
        avg_hours_per_day=avg_per_day,
        days_left_in_week=days_left_week,
        days_left_in_month=days_left_month,
        week_hours=week_hours,
        week_earnings=week_hours * avg_rate,
        month_hours=month_hours,
        month_earnings=month_hours * avg_rate,
    )


class Aggregator:
    """Read-only views over the entry set of a ``StateHolder``."""

    def __init__(self, holder: StateHolder, tz: ZoneInfo) -> None:
        self.holder = holder
        self.tz = tz

    @property
    def week_start(self) -> int:
        return self.holder.state.settings.week_start

    def summary(self, period: Period | str, *, now_utc: datetime | None = None) -> PeriodSummary:
        state = self.holder.state
        return summarize(
            state.entries,
            parse_period(period),
            now_utc or utc_now(),
            self.tz,
            state.project_name,
            week_start=self.week_start,
        )

    def prediction(self, period: Period | str, *, now_utc: datetime | None = None) -> Prediction:
        now = now_utc or utc_now()
        current = self.summary(period, now_utc=now)
        return predict(
            current.total_hours,
            current.total_earnings,
            current.days_in_period,
            now,
            self.tz,
        )

    def dashboard(self, *, now_utc: datetime | None = None) -> DashboardStats:
        now = now_utc or utc_now()
        entries = self.holder.state.entries
        today = now.astimezone(self.tz).date()
        today_key = today.isoformat()
        month = entries_since(entries, today.replace(day=1))
        return DashboardStats(
            today_hours=total_hours(entry for entry in entries if entry.date == today_key),
            week_hours=total_hours(entries_since(entries, week_start_date(today, self.week_start))),
            month_hours=total_hours(month),
            month_earnings=total_earnings(month),
        )

    def daily_hours(self, days: int = 7, *, now_utc: datetime | None = None) -> list[DailyHours]:
        today = (now_utc or utc_now()).astimezone(self.tz).date()
        series = {today - timedelta(days=offset): 0.0 for offset in range(days - 1, -1, -1)}
        keys = {day.isoformat(): day for day in series}
        for entry in self.holder.state.entries:
            day = keys.get(entry.date)
            if day is not None:
                series[day] += entry.hours

        return [
            DailyHours(day_local=day, label=_SHORT_DAY_NAMES[day.weekday()], hours=hours)
            for day, hours in series.items()
        ]

    def project_totals(self) -> list[ProjectTotal]:
        """All-time totals for every entry, including unresolved projects."""
        state = self.holder.state
        return group_by_project(state.entries, state.project_name)
