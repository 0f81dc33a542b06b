from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from timeflow.aggregation import days_in_period, period_start, predict, week_start_date
from timeflow.app import TimeflowApp
from timeflow.db import Database
from timeflow.errors import ValidationError
from timeflow.models import Period

UTC = ZoneInfo("UTC")
NOW = datetime(2026, 2, 18, 12, 0, tzinfo=timezone.utc)  # Wednesday


def make_app() -> TimeflowApp:
    db = Database(":memory:")
    db.initialize()
    return TimeflowApp(db=db, tz=UTC).load()


def add(app: TimeflowApp, project_id: str, day: int, hours: int, month: int = 2) -> None:
    start = datetime(2026, month, day, 9, tzinfo=timezone.utc)
    end = datetime(2026, month, day, 9 + hours, tzinfo=timezone.utc)
    app.entries.create(project_id, start, end)


def test_week_start_respects_setting() -> None:
    wednesday = date(2026, 2, 18)

    assert week_start_date(wednesday, 1) == date(2026, 2, 16)
    assert week_start_date(wednesday, 0) == date(2026, 2, 15)
    assert week_start_date(date(2026, 2, 15), 1) == date(2026, 2, 9)
    assert week_start_date(date(2026, 2, 16), 1) == date(2026, 2, 16)


def test_period_boundaries_and_day_counts() -> None:
    week = period_start(Period.WEEK, NOW, UTC, 1)
    month = period_start(Period.MONTH, NOW, UTC)
    year = period_start(Period.YEAR, NOW, UTC)

    assert week == datetime(2026, 2, 16, tzinfo=UTC)
    assert month == datetime(2026, 2, 1, tzinfo=UTC)
    assert year == datetime(2026, 1, 1, tzinfo=UTC)
    assert days_in_period(week, NOW) == 3
    assert days_in_period(month, NOW) == 18
    assert days_in_period(year, NOW) == 49
    assert days_in_period(datetime(2026, 2, 18, tzinfo=UTC), datetime(2026, 2, 18, tzinfo=UTC)) == 1


def test_summary_totals_and_project_order() -> None:
    app = make_app()
    alpha = app.projects.create("Alpha", rate=10)
    beta = app.projects.create("Beta", rate=20)
    add(app, beta.id, 16, 2)
    add(app, alpha.id, 17, 3)
    add(app, beta.id, 18, 1)
    add(app, alpha.id, 10, 4)

    summary = app.aggregator.summary("week", now_utc=NOW)

    assert summary.total_hours == pytest.approx(6.0)
    assert summary.total_earnings == pytest.approx(90.0)
    assert summary.active_projects == 2
    assert summary.days_in_period == 3
    assert summary.avg_hours_per_day == pytest.approx(2.0)
    # Entries are newest first, so Beta (18th) appears before Alpha.
    assert [(total.name, total.hours) for total in summary.project_totals] == [("Beta", 3.0), ("Alpha", 3.0)]

    assert app.aggregator.summary("week", now_utc=NOW) == summary
    assert app.aggregator.summary("month", now_utc=NOW).total_hours == pytest.approx(10.0)


def test_prediction_extrapolates_run_rate() -> None:
    forecast = predict(5.0, 50.0, 3, NOW, UTC)

    assert forecast.avg_rate == pytest.approx(10.0)
    assert forecast.days_left_in_week == 4
    assert forecast.days_left_in_month == 10
    assert forecast.week_hours == pytest.approx(5 + 5 / 3 * 4)
    assert forecast.week_earnings == pytest.approx((5 + 5 / 3 * 4) * 10)
    assert forecast.month_hours == pytest.approx(5 + 5 / 3 * 10)


def test_prediction_counts_days_left_from_sunday() -> None:
    sunday = datetime(2026, 2, 22, 12, 0, tzinfo=timezone.utc)
    monday = datetime(2026, 2, 23, 12, 0, tzinfo=timezone.utc)

    assert predict(7.0, 70.0, 7, sunday, UTC).days_left_in_week == 7
    assert predict(7.0, 70.0, 7, sunday, UTC).week_hours == pytest.approx(14.0)
    assert predict(1.0, 10.0, 1, monday, UTC).days_left_in_week == 6


def test_prediction_ignores_week_start_setting() -> None:
    app = make_app()
    project = app.projects.create("Site", rate=10)
    add(app, project.id, 23, 2)
    monday = datetime(2026, 2, 23, 12, 0, tzinfo=timezone.utc)

    app.update_settings(week_start=0)
    sunday_start = app.aggregator.prediction("week", now_utc=monday)
    app.update_settings(week_start=1)
    monday_start = app.aggregator.prediction("week", now_utc=monday)

    assert sunday_start.days_left_in_week == 6
    assert monday_start.days_left_in_week == 6


def test_prediction_with_no_hours_is_zero() -> None:
    forecast = predict(0.0, 0.0, 1, NOW, UTC)

    assert forecast.avg_rate == 0.0
    assert forecast.week_earnings == 0.0
    assert forecast.month_hours == 0.0


def test_dashboard_and_daily_series() -> None:
    app = make_app()
    project = app.projects.create("Alpha", rate=10)
    add(app, project.id, 18, 2)
    add(app, project.id, 16, 1)
    add(app, project.id, 13, 3)
    add(app, project.id, 30, 5, month=1)

    stats = app.aggregator.dashboard(now_utc=NOW)
    assert stats.today_hours == pytest.approx(2.0)
    assert stats.week_hours == pytest.approx(3.0)
    assert stats.month_hours == pytest.approx(6.0)
    assert stats.month_earnings == pytest.approx(60.0)

    series = app.aggregator.daily_hours(now_utc=NOW)
    assert [item.day_local for item in series][0] == date(2026, 2, 12)
    assert [item.label for item in series][-1] == "Wed"
    assert [item.hours for item in series] == [0.0, 3.0, 0.0, 0.0, 1.0, 0.0, 2.0]


def test_project_totals_include_unknown_projects() -> None:
    app = make_app()
    project = app.projects.create("Alpha", rate=10)
    add(app, project.id, 18, 2)
    app.projects.delete(project.id)

    totals = app.aggregator.project_totals()

    assert [(total.name, total.hours) for total in totals] == [("Unknown Project", 2.0)]


def test_unknown_period_is_a_validation_error() -> None:
    app = make_app()

    with pytest.raises(ValidationError):
        app.aggregator.summary("decade", now_utc=NOW)
