from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from zoneinfo import ZoneInfo

from .entries import EntryStore
from .errors import InvalidStateError, ValidationError
from .models import Break, Session, SessionState, TimeEntry, generate_id
from .state import StateHolder
from .timemodel import break_total_ms, hours_from_ms, span_ms, utc_now


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    state: SessionState
    project_id: str | None = None
    project_name: str | None = None
    started_at_utc: datetime | None = None
    elapsed_ms: int = 0
    break_elapsed_ms: int = 0
    break_count: int = 0


def live_elapsed_ms(session: Session, now_utc: datetime) -> int:
    """Worked time so far, excluding closed breaks and the open one."""
    elapsed = span_ms(session.start_time, now_utc) - break_total_ms(session.breaks)
    if session.open_break is not None:
        elapsed -= span_ms(session.open_break.start_time, now_utc)
    return max(0, elapsed)


class SessionMachine:
    """Clock-in / break / clock-out lifecycle for the single active session."""

    def __init__(
        self,
        holder: StateHolder,
        entries: EntryStore,
        tz: ZoneInfo,
        logger: logging.Logger | None = None,
    ) -> None:
        self.holder = holder
        self.entries = entries
        self.tz = tz
        self.logger = logger or logging.getLogger(__name__)

    @property
    def current(self) -> Session | None:
        return self.holder.state.session

    @property
    def state(self) -> SessionState:
        session = self.current
        return session.state if session is not None else SessionState.IDLE

    def clock_in(self, project_id: str | None = None, *, now_utc: datetime | None = None) -> Session:
        state = self.holder.state
        project_id = project_id or state.selected_project
        if not project_id:
            raise ValidationError("Please select a project first")
        if state.find_project(project_id) is None:
            raise ValidationError(f"Project {project_id} does not exist")
        if state.session is not None:
            raise InvalidStateError("Already clocked in, clock out first")

        started = now_utc or utc_now()
        with self.holder.transaction() as state:
            state.session = Session(project_id=project_id, start_time=started)

        self.logger.info("Clocked in: project=%s at=%s", project_id, started.isoformat())
        return state.session

    def start_break(self, *, now_utc: datetime | None = None) -> Session:
        session = self.current
        if session is None:
            raise InvalidStateError("Not clocked in")
        if session.open_break is not None:
            raise InvalidStateError("A break is already in progress")

        started = now_utc or utc_now()
        with self.holder.transaction() as state:
            state.session = replace(session, open_break=Break(start_time=started))

        self.logger.info("Break started at %s", started.isoformat())
        return state.session

    def end_break(self, *, now_utc: datetime | None = None) -> Session:
        session = self.current
        if session is None or session.open_break is None:
            raise InvalidStateError("No break in progress")

        ended = now_utc or utc_now()
        if ended < session.open_break.start_time:
            raise ValidationError("Break cannot end before it started")
        with self.holder.transaction() as state:
            state.session = _close_break(session, ended)

        self.logger.info("Break ended at %s", ended.isoformat())
        return state.session

    def clock_out(self, *, now_utc: datetime | None = None) -> TimeEntry:
        session = self.current
        if session is None:
            raise InvalidStateError("Not clocked in")

        ended = now_utc or utc_now()
        if ended <= session.start_time:
            raise ValidationError("Clock-out time must be after clock-in time")
        # An open break is closed at the same instant as the session.
        if session.open_break is not None:
            if ended < session.open_break.start_time:
                raise ValidationError("Clock-out time must be after the break started")
            session = _close_break(session, ended)

        with self.holder.transaction() as state:
            entry = self.build_entry(session, ended)
            self.entries.insert(state, entry)
            state.session = None

        self.logger.info(
            "Clocked out: project=%s duration=%sms breaks=%d",
            entry.project_id,
            entry.duration_ms,
            entry.break_count,
        )
        return entry

    def build_entry(self, session: Session, ended: datetime) -> TimeEntry:
        break_ms = break_total_ms(session.breaks)
        duration = span_ms(session.start_time, ended) - break_ms
        hours = hours_from_ms(duration)
        project = self.holder.state.find_project(session.project_id)
        # Rate is captured now; later rate changes do not touch this entry.
        rate = project.rate if project else 0.0
        return TimeEntry(
            id=generate_id(),
            project_id=session.project_id,
            date=session.start_time.astimezone(self.tz).date().isoformat(),
            start_time=session.start_time,
            end_time=ended,
            duration_ms=duration,
            hours=hours,
            earnings=hours * rate,
            break_ms=break_ms,
            break_count=len(session.breaks),
        )

    def snapshot(self, now_utc: datetime | None = None) -> SessionSnapshot:
        session = self.current
        if session is None:
            return SessionSnapshot(state=SessionState.IDLE)

        now = now_utc or utc_now()
        break_elapsed = 0
        if session.open_break is not None:
            break_elapsed = max(0, span_ms(session.open_break.start_time, now))
        return SessionSnapshot(
            state=session.state,
            project_id=session.project_id,
            project_name=self.holder.state.project_name(session.project_id),
            started_at_utc=session.start_time,
            elapsed_ms=live_elapsed_ms(session, now),
            break_elapsed_ms=break_elapsed,
            break_count=len(session.breaks),
        )


def _close_break(session: Session, ended: datetime) -> Session:
    closed = replace(session.open_break, end_time=ended)
    return replace(session, breaks=session.breaks + (closed,), open_break=None)
