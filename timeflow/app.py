from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from .aggregation import Aggregator
from .db import Database
from .entries import EntryStore
from .errors import ValidationError
from .models import Settings, validate_settings
from .registry import ProjectRegistry, RecipientRegistry
from .reporter import Reporter
from .session import SessionMachine
from .snapshot import dumps_export, merge_import
from .state import StateHolder
from .timemodel import utc_now


class TimeflowApp:
    """Wires every component over one shared, durably persisted state."""

    def __init__(self, db: Database, tz: ZoneInfo, logger: logging.Logger | None = None) -> None:
        self.db = db
        self.tz = tz
        self.logger = logger or logging.getLogger(__name__)

        self.holder = StateHolder(db)
        self.projects = ProjectRegistry(self.holder)
        self.recipients = RecipientRegistry(self.holder)
        self.entries = EntryStore(self.holder, tz)
        self.sessions = SessionMachine(self.holder, self.entries, tz)
        self.aggregator = Aggregator(self.holder, tz)
        self.reporter = Reporter(self.holder, self.entries, tz)

    @property
    def state(self):
        return self.holder.state

    def load(self) -> TimeflowApp:
        self.holder.load()
        return self

    def update_settings(self, **changes: Any) -> Settings:
        try:
            updated = replace(self.state.settings, **changes)
        except TypeError as exc:
            raise ValidationError(f"Unknown setting: {exc}") from exc

        validate_settings(updated)

        with self.holder.transaction() as state:
            state.settings = updated

        self.logger.info("Settings updated: %s", ", ".join(sorted(changes)))
        return updated

    def export_json(self, *, now_utc: datetime | None = None) -> str:
        return dumps_export(self.state, now_utc or utc_now())

    def import_json(self, document: str | bytes | dict[str, Any]) -> None:
        merged = merge_import(self.state, document)
        with self.holder.transaction() as state:
            state.restore(merged)

        self.logger.info(
            "Imported data: %d projects, %d entries, %d recipients",
            len(merged.projects),
            len(merged.entries),
            len(merged.recipients),
        )

    def clear_all(self) -> None:
        """Delete every record and the running session. Settings are kept."""
        with self.holder.transaction() as state:
            state.projects = []
            state.entries = []
            state.recipients = []
            state.sent_reports = []
            state.session = None
            state.selected_project = None

        self.logger.warning("All data cleared")
