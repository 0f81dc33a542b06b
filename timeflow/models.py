from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from .errors import ValidationError
from .timemodel import CURRENCY_SYMBOLS, DATE_FORMATS, TIME_FORMATS, currency_symbol

UNKNOWN_PROJECT = "Unknown Project"
DEFAULT_ACCENT_COLOR = "#6366f1"


def generate_id() -> str:
    return uuid.uuid4().hex


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    ON_BREAK = "on_break"


class Period(str, Enum):
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @property
    def label(self) -> str:
        return self.value.capitalize()


def parse_period(value: Period | str) -> Period:
    try:
        return Period(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown report period: {value}") from exc


class EntryFilter(str, Enum):
    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


@dataclass(frozen=True, slots=True)
class Project:
    id: str
    name: str
    rate: float = 0.0
    client: str = ""
    color: str = DEFAULT_ACCENT_COLOR


@dataclass(frozen=True, slots=True)
class Break:
    start_time: datetime
    end_time: datetime | None = None


@dataclass(frozen=True, slots=True)
class Session:
    project_id: str
    start_time: datetime
    breaks: tuple[Break, ...] = ()
    open_break: Break | None = None

    @property
    def state(self) -> SessionState:
        return SessionState.ON_BREAK if self.open_break is not None else SessionState.ACTIVE


@dataclass(frozen=True, slots=True)
class TimeEntry:
    id: str
    project_id: str
    date: str
    start_time: datetime
    end_time: datetime
    duration_ms: int
    hours: float
    earnings: float
    notes: str = ""
    locked: bool = False
    break_ms: int = 0
    break_count: int = 0


@dataclass(frozen=True, slots=True)
class ReportLayers:
    summary: bool = True
    projects: bool = True
    detailed: bool = False
    rates: bool = False
    hours_only: bool = False


@dataclass(frozen=True, slots=True)
class Recipient:
    id: str
    name: str
    email: str
    phone: str = ""
    send_email: bool = True
    send_sms: bool = False
    layers: ReportLayers = field(default_factory=ReportLayers)

    @property
    def eligible(self) -> bool:
        return self.send_email or self.send_sms


@dataclass(frozen=True, slots=True)
class SentReport:
    id: str
    sent_date: datetime
    period: str
    hours: float
    earnings: float
    recipient_count: int
    entry_ids: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Settings:
    currency: str = "EUR"
    date_format: str = "DD/MM/YYYY"
    time_format: str = "24"
    week_start: int = 1
    accent_color: str = DEFAULT_ACCENT_COLOR
    global_rate: float = 0.0
    global_rate_enabled: bool = True

    @property
    def currency_symbol(self) -> str:
        return currency_symbol(self.currency)


def validate_settings(settings: Settings) -> Settings:
    if settings.currency not in CURRENCY_SYMBOLS:
        raise ValidationError(f"Unsupported currency: {settings.currency}")
    if settings.date_format not in DATE_FORMATS:
        raise ValidationError(f"Unsupported date format: {settings.date_format}")
    if settings.time_format not in TIME_FORMATS:
        raise ValidationError(f"Unsupported time format: {settings.time_format}")
    if settings.week_start not in (0, 1):
        raise ValidationError("Week start must be 0 (Sunday) or 1 (Monday)")
    if settings.global_rate < 0:
        raise ValidationError("Global rate cannot be negative")
    return settings


@dataclass(slots=True)
class AppState:
    """In-memory snapshot of every persisted record."""

    projects: list[Project] = field(default_factory=list)
    entries: list[TimeEntry] = field(default_factory=list)
    recipients: list[Recipient] = field(default_factory=list)
    sent_reports: list[SentReport] = field(default_factory=list)
    settings: Settings = field(default_factory=Settings)
    session: Session | None = None
    selected_project: str | None = None

    def copy(self) -> AppState:
        # Records are frozen, so copying the containers is enough.
        return AppState(
            projects=list(self.projects),
            entries=list(self.entries),
            recipients=list(self.recipients),
            sent_reports=list(self.sent_reports),
            settings=self.settings,
            session=self.session,
            selected_project=self.selected_project,
        )

    def restore(self, other: AppState) -> None:
        self.projects = list(other.projects)
        self.entries = list(other.entries)
        self.recipients = list(other.recipients)
        self.sent_reports = list(other.sent_reports)
        self.settings = other.settings
        self.session = other.session
        self.selected_project = other.selected_project

    def find_project(self, project_id: str | None) -> Project | None:
        if project_id is None:
            return None
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    def project_name(self, project_id: str | None) -> str:
        project = self.find_project(project_id)
        return project.name if project else UNKNOWN_PROJECT


@dataclass(frozen=True, slots=True)
class ProjectTotal:
    project_id: str
    name: str
    hours: float
    earnings: float


@dataclass(frozen=True, slots=True)
class DailyHours:
    day_local: date
    label: str
    hours: float
