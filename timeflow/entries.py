from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from .errors import LockedEntryError, ValidationError
from .models import AppState, EntryFilter, TimeEntry, generate_id
from .state import StateHolder
from .timemodel import hours_from_ms, span_ms, utc_now

_EDITABLE_FIELDS = frozenset({"project_id", "start_time", "end_time", "notes"})


def parse_manual_times(day_value: str, start_value: str, end_value: str, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Turn a YYYY-MM-DD day plus HH:MM start/end into aware datetimes."""
    try:
        day = date.fromisoformat(day_value.strip())
        start_clock = time.fromisoformat(start_value.strip())
        end_clock = time.fromisoformat(end_value.strip())
    except ValueError as exc:
        raise ValidationError("Use YYYY-MM-DD for the date and HH:MM for times") from exc

    start = datetime.combine(day, start_clock, tzinfo=tz)
    end = datetime.combine(day, end_clock, tzinfo=tz)
    return start, end


def filter_entries(entries: list[TimeEntry], which: EntryFilter, today: date) -> list[TimeEntry]:
    # ISO dates are zero padded, so string comparison orders them correctly.
    if which is EntryFilter.TODAY:
        today_key = today.isoformat()
        return [entry for entry in entries if entry.date == today_key]
    if which is EntryFilter.WEEK:
        week_ago = (today - timedelta(days=7)).isoformat()
        return [entry for entry in entries if entry.date >= week_ago]
    if which is EntryFilter.MONTH:
        month_start = today.replace(day=1).isoformat()
        return [entry for entry in entries if entry.date >= month_start]
    return list(entries)


class EntryStore:
    def __init__(self, holder: StateHolder, tz: ZoneInfo, logger: logging.Logger | None = None) -> None:
        self.holder = holder
        self.tz = tz
        self.logger = logger or logging.getLogger(__name__)

    def get(self, entry_id: str) -> TimeEntry:
        for entry in self.holder.state.entries:
            if entry.id == entry_id:
                return entry
        raise ValidationError(f"Entry {entry_id} does not exist")

    def resolve(self, token: str) -> TimeEntry:
        """Look an entry up by its full id or a unique id prefix."""
        token = (token or "").strip().lower()
        if not token:
            raise ValidationError("Please give an entry id")
        matches = [entry for entry in self.holder.state.entries if entry.id.startswith(token)]
        if not matches:
            raise ValidationError(f"Entry {token} does not exist")
        if len(matches) > 1:
            raise ValidationError(f"Entry id {token} is ambiguous, use more characters")
        return matches[0]

    def insert(self, state: AppState, entry: TimeEntry) -> None:
        """Add an entry inside an open transaction, newest first."""
        state.entries.insert(0, entry)
        _sort(state)

    def create(
        self,
        project_id: str,
        start_time: datetime,
        end_time: datetime,
        notes: str = "",
    ) -> TimeEntry:
        entry = self._build(
            entry_id=generate_id(),
            project_id=project_id,
            start_time=start_time,
            end_time=end_time,
            notes=notes,
            break_ms=0,
            break_count=0,
        )
        with self.holder.transaction() as state:
            self.insert(state, entry)

        self.logger.info("Entry created: id=%s project=%s hours=%.2f", entry.id, project_id, entry.hours)
        return entry

    def update(self, entry_id: str, **patch) -> TimeEntry:
        current = self.get(entry_id)
        if current.locked:
            raise LockedEntryError(entry_id)

        unknown = set(patch) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot edit field(s): {', '.join(sorted(unknown))}")

        if set(patch) <= {"notes"}:
            updated = replace(current, notes=(patch.get("notes", current.notes) or "").strip())
            with self.holder.transaction() as state:
                state.entries = [updated if entry.id == entry_id else entry for entry in state.entries]
            self.logger.info("Entry notes updated: id=%s", entry_id)
            return updated

        # Edits are corrections: earnings follow the project's current rate.
        updated = self._build(
            entry_id=current.id,
            project_id=patch.get("project_id", current.project_id),
            start_time=patch.get("start_time", current.start_time),
            end_time=patch.get("end_time", current.end_time),
            notes=patch.get("notes", current.notes),
            break_ms=current.break_ms,
            break_count=current.break_count,
        )
        with self.holder.transaction() as state:
            state.entries = [updated if entry.id == entry_id else entry for entry in state.entries]
            _sort(state)

        self.logger.info("Entry updated: id=%s", entry_id)
        return updated

    def delete(self, entry_id: str) -> None:
        current = self.get(entry_id)
        if current.locked:
            raise LockedEntryError(entry_id)

        with self.holder.transaction() as state:
            state.entries = [entry for entry in state.entries if entry.id != entry_id]

        self.logger.info("Entry deleted: id=%s", entry_id)

    def list(self, which: EntryFilter | str = EntryFilter.ALL, *, now_utc: datetime | None = None) -> list[TimeEntry]:
        try:
            which = EntryFilter(which)
        except ValueError as exc:
            raise ValidationError(f"Unknown entry filter: {which}") from exc

        today = (now_utc or utc_now()).astimezone(self.tz).date()
        return filter_entries(self.holder.state.entries, which, today)

    def lock(self, state: AppState, entry_ids: set[str]) -> None:
        """Mark entries as sent inside an open transaction."""
        state.entries = [
            replace(entry, locked=True) if entry.id in entry_ids else entry
            for entry in state.entries
        ]

    def _build(
        self,
        *,
        entry_id: str,
        project_id: str,
        start_time: datetime,
        end_time: datetime,
        notes: str,
        break_ms: int,
        break_count: int,
    ) -> TimeEntry:
        if not project_id:
            raise ValidationError("Please choose a project")
        if start_time is None or end_time is None:
            raise ValidationError("Start and end time are required")
        if start_time.tzinfo is None or end_time.tzinfo is None:
            raise ValidationError("Start and end time must be timezone-aware")
        if end_time <= start_time:
            raise ValidationError("End time must be after start time")

        duration = span_ms(start_time, end_time) - break_ms
        if duration <= 0:
            raise ValidationError("Entry is shorter than its recorded breaks")

        project = self.holder.state.find_project(project_id)
        if project is None:
            raise ValidationError(f"Project {project_id} does not exist")

        hours = hours_from_ms(duration)
        return TimeEntry(
            id=entry_id,
            project_id=project_id,
            date=start_time.astimezone(self.tz).date().isoformat(),
            start_time=start_time,
            end_time=end_time,
            duration_ms=duration,
            hours=hours,
            earnings=hours * project.rate,
            notes=(notes or "").strip(),
            break_ms=break_ms,
            break_count=break_count,
        )


def _sort(state: AppState) -> None:
    state.entries.sort(key=lambda entry: entry.start_time, reverse=True)
