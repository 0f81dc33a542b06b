from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from timeflow.app import TimeflowApp
from timeflow.db import Database
from timeflow.errors import InvalidStateError, ValidationError
from timeflow.models import SessionState


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 2, 4, hour, minute, tzinfo=timezone.utc)


def make_app(db: Database | None = None) -> TimeflowApp:
    if db is None:
        db = Database(":memory:")
        db.initialize()
    return TimeflowApp(db=db, tz=ZoneInfo("UTC")).load()


def test_clock_out_subtracts_breaks_and_snapshots_rate() -> None:
    app = make_app()
    project = app.projects.create("Project A", rate=20)

    app.sessions.clock_in(project.id, now_utc=at(9))
    app.sessions.start_break(now_utc=at(10))
    app.sessions.end_break(now_utc=at(10, 15))
    entry = app.sessions.clock_out(now_utc=at(13))

    assert entry.duration_ms == (3 * 60 + 45) * 60_000
    assert entry.hours == 3.75
    assert entry.earnings == pytest.approx(75.0)
    assert entry.break_ms == 15 * 60_000
    assert entry.break_count == 1
    assert entry.locked is False
    assert entry.date == "2026-02-04"
    assert app.sessions.state is SessionState.IDLE
    assert app.state.entries[0] == entry

    # Later rate changes do not touch the closed entry.
    app.projects.update(project.id, rate=50)
    assert app.state.entries[0].earnings == pytest.approx(75.0)


def test_clock_out_closes_open_break_at_the_same_instant() -> None:
    app = make_app()
    project = app.projects.create("Project A", rate=10)

    app.sessions.clock_in(project.id, now_utc=at(9))
    app.sessions.start_break(now_utc=at(11))
    entry = app.sessions.clock_out(now_utc=at(12))

    assert entry.hours == 2.0
    assert entry.break_ms == 60 * 60_000
    assert entry.break_count == 1
    assert app.state.session is None


def test_clock_in_requires_an_existing_project() -> None:
    app = make_app()

    with pytest.raises(ValidationError):
        app.sessions.clock_in(now_utc=at(9))
    with pytest.raises(ValidationError):
        app.sessions.clock_in("missing", now_utc=at(9))
    assert app.state.session is None


def test_clock_in_uses_selected_project() -> None:
    app = make_app()
    project = app.projects.create("Project A")
    app.projects.select(project.id)

    session = app.sessions.clock_in(now_utc=at(9))

    assert session.project_id == project.id


def test_invalid_transitions_raise_and_leave_state_alone() -> None:
    app = make_app()
    project = app.projects.create("Project A")

    with pytest.raises(InvalidStateError):
        app.sessions.start_break(now_utc=at(9))
    with pytest.raises(InvalidStateError):
        app.sessions.end_break(now_utc=at(9))
    with pytest.raises(InvalidStateError):
        app.sessions.clock_out(now_utc=at(9))

    app.sessions.clock_in(project.id, now_utc=at(9))
    with pytest.raises(InvalidStateError):
        app.sessions.clock_in(project.id, now_utc=at(9, 5))
    with pytest.raises(InvalidStateError):
        app.sessions.end_break(now_utc=at(9, 10))

    app.sessions.start_break(now_utc=at(10))
    with pytest.raises(InvalidStateError):
        app.sessions.start_break(now_utc=at(10, 5))

    assert app.sessions.state is SessionState.ON_BREAK
    assert app.state.entries == []


def test_break_cannot_end_before_it_started() -> None:
    app = make_app()
    project = app.projects.create("Project A")
    app.sessions.clock_in(project.id, now_utc=at(9))
    app.sessions.start_break(now_utc=at(11))

    with pytest.raises(ValidationError):
        app.sessions.end_break(now_utc=at(10))
    with pytest.raises(ValidationError):
        app.sessions.clock_out(now_utc=at(10))

    assert app.sessions.state is SessionState.ON_BREAK
    assert app.state.entries == []

    entry = app.sessions.clock_out(now_utc=at(12))
    assert entry.break_ms == 60 * 60_000
    assert entry.duration_ms == 2 * 60 * 60_000


def test_live_snapshot_excludes_breaks_and_never_goes_negative() -> None:
    app = make_app()
    project = app.projects.create("Project A")

    assert app.sessions.snapshot(at(9)).state is SessionState.IDLE

    app.sessions.clock_in(project.id, now_utc=at(9))
    app.sessions.start_break(now_utc=at(9, 30))
    app.sessions.end_break(now_utc=at(9, 40))
    app.sessions.start_break(now_utc=at(10))

    snapshot = app.sessions.snapshot(at(10, 20))
    assert snapshot.state is SessionState.ON_BREAK
    assert snapshot.project_name == "Project A"
    assert snapshot.elapsed_ms == 50 * 60_000
    assert snapshot.break_elapsed_ms == 20 * 60_000
    assert snapshot.break_count == 1

    # A clock that lags behind the stored start must not produce negatives.
    assert app.sessions.snapshot(at(8)).elapsed_ms == 0


def test_session_survives_restart(tmp_path) -> None:
    path = tmp_path / "timeflow.db"
    db = Database(path)
    db.initialize()
    app = make_app(db)
    project = app.projects.create("Project A", rate=20)
    app.sessions.clock_in(project.id, now_utc=at(9))
    app.sessions.start_break(now_utc=at(10))
    app.sessions.end_break(now_utc=at(10, 15))
    app.sessions.start_break(now_utc=at(12, 30))
    db.close()

    reopened = Database(path)
    reopened.initialize()
    restored = make_app(reopened)
    session = restored.state.session

    assert session is not None
    assert session.start_time == at(9)
    assert session.breaks[0].start_time == at(10)
    assert session.breaks[0].end_time == at(10, 15)
    assert session.open_break.start_time == at(12, 30)

    entry = restored.sessions.clock_out(now_utc=at(13))
    assert entry.hours == pytest.approx(3.25)
    reopened.close()


def test_failed_flush_rolls_back_the_transition() -> None:
    app = make_app()
    project = app.projects.create("Project A")

    def broken_save(document, key="timeflow_data"):
        raise OSError("disk full")

    app.db.save_state = broken_save
    with pytest.raises(OSError):
        app.sessions.clock_in(project.id, now_utc=at(9))

    assert app.state.session is None


def test_clock_out_entry_date_uses_local_day() -> None:
    db = Database(":memory:")
    db.initialize()
    app = TimeflowApp(db=db, tz=ZoneInfo("America/New_York")).load()
    project = app.projects.create("Late night")

    start = datetime(2026, 2, 5, 2, 0, tzinfo=timezone.utc)
    app.sessions.clock_in(project.id, now_utc=start)
    entry = app.sessions.clock_out(now_utc=start + timedelta(hours=1))

    assert entry.date == "2026-02-04"
