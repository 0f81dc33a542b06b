from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from .errors import ImportFormatError, ValidationError
from .models import (
    DEFAULT_ACCENT_COLOR,
    AppState,
    Break,
    Project,
    Recipient,
    ReportLayers,
    SentReport,
    Session,
    Settings,
    TimeEntry,
    validate_settings,
)
from .timemodel import parse_iso_utc, to_iso_utc

SCHEMA_VERSION = 2
EXPORT_VERSION = "2.0"

_SETTINGS_KEYS = {
    "currency": "currency",
    "dateFormat": "date_format",
    "timeFormat": "time_format",
    "weekStart": "week_start",
    "accentColor": "accent_color",
    "globalRate": "global_rate",
    "globalRateEnabled": "global_rate_enabled",
}


def _required_time(value: Any) -> datetime:
    parsed = parse_iso_utc(value)
    if parsed is None:
        raise ValueError("missing timestamp")
    return parsed


def project_to_dict(project: Project) -> dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "client": project.client,
        "rate": project.rate,
        "color": project.color,
    }


def project_from_dict(raw: dict[str, Any]) -> Project:
    return Project(
        id=str(raw["id"]),
        name=str(raw["name"]),
        rate=float(raw.get("rate") or 0),
        client=raw.get("client") or "",
        color=raw.get("color") or DEFAULT_ACCENT_COLOR,
    )


def entry_to_dict(entry: TimeEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "projectId": entry.project_id,
        "date": entry.date,
        "startTime": to_iso_utc(entry.start_time),
        "endTime": to_iso_utc(entry.end_time),
        "duration": entry.duration_ms,
        "hours": entry.hours,
        "earnings": entry.earnings,
        "notes": entry.notes,
        "locked": entry.locked,
        "breakTime": entry.break_ms,
        "breaks": entry.break_count,
    }


def entry_from_dict(raw: dict[str, Any]) -> TimeEntry:
    entry = TimeEntry(
        id=str(raw["id"]),
        project_id=str(raw["projectId"]),
        date=str(raw["date"]),
        start_time=_required_time(raw["startTime"]),
        end_time=_required_time(raw["endTime"]),
        duration_ms=int(raw["duration"]),
        hours=float(raw["hours"]),
        earnings=float(raw["earnings"]),
        notes=raw.get("notes") or "",
        locked=bool(raw.get("locked", False)),
        break_ms=int(raw.get("breakTime") or 0),
        break_count=int(raw.get("breaks") or 0),
    )
    if entry.end_time <= entry.start_time:
        raise ValueError(f"entry {entry.id} ends before it starts")
    if entry.duration_ms <= 0 or entry.hours < 0:
        raise ValueError(f"entry {entry.id} has a negative duration")
    return entry


def recipient_to_dict(recipient: Recipient) -> dict[str, Any]:
    layers = recipient.layers
    return {
        "id": recipient.id,
        "name": recipient.name,
        "email": recipient.email,
        "phone": recipient.phone,
        "sendEmail": recipient.send_email,
        "sendSMS": recipient.send_sms,
        "layers": {
            "summary": layers.summary,
            "projects": layers.projects,
            "detailed": layers.detailed,
            "rates": layers.rates,
            "hoursOnly": layers.hours_only,
        },
    }


def recipient_from_dict(raw: dict[str, Any]) -> Recipient:
    layers = raw.get("layers") or {}
    return Recipient(
        id=str(raw["id"]),
        name=str(raw["name"]),
        email=str(raw["email"]),
        phone=raw.get("phone") or "",
        send_email=bool(raw.get("sendEmail", False)),
        send_sms=bool(raw.get("sendSMS", False)),
        layers=ReportLayers(
            summary=bool(layers.get("summary", True)),
            projects=bool(layers.get("projects", True)),
            detailed=bool(layers.get("detailed", False)),
            rates=bool(layers.get("rates", False)),
            hours_only=bool(layers.get("hoursOnly", False)),
        ),
    )


def sent_report_to_dict(report: SentReport) -> dict[str, Any]:
    return {
        "id": report.id,
        "sentDate": to_iso_utc(report.sent_date),
        "period": report.period,
        "hours": report.hours,
        "earnings": report.earnings,
        "recipientCount": report.recipient_count,
        "entryIds": list(report.entry_ids),
    }


def sent_report_from_dict(raw: dict[str, Any]) -> SentReport:
    return SentReport(
        id=str(raw["id"]),
        sent_date=_required_time(raw["sentDate"]),
        period=str(raw["period"]),
        hours=float(raw["hours"]),
        earnings=float(raw["earnings"]),
        recipient_count=int(raw["recipientCount"]),
        entry_ids=tuple(str(item) for item in raw.get("entryIds") or ()),
    )


def settings_to_dict(settings: Settings) -> dict[str, Any]:
    return {key: getattr(settings, attr) for key, attr in _SETTINGS_KEYS.items()}


def migrate_settings(raw: dict[str, Any] | None, base: Settings | None = None) -> Settings:
    """Upgrade a stored settings record to the current schema.

    Keys missing from ``raw`` keep the value from ``base`` (or the defaults).
    Version 1 records stored ``weekStart`` as a string and carried a derived
    ``currencySymbol`` which is now looked up from ``currency``.
    """
    values = settings_to_dict(base or Settings())
    for key, value in (raw or {}).items():
        if key in _SETTINGS_KEYS and value is not None:
            values[key] = value

    return Settings(
        currency=str(values["currency"]),
        date_format=str(values["dateFormat"]),
        time_format=str(values["timeFormat"]),
        week_start=int(values["weekStart"]),
        accent_color=str(values["accentColor"]),
        global_rate=float(values["globalRate"] or 0),
        global_rate_enabled=bool(values["globalRateEnabled"]),
    )


def session_to_dict(session: Session | None) -> tuple[dict[str, Any] | None, dict[str, Any] | None]:
    if session is None:
        return None, None

    current_session = {
        "projectId": session.project_id,
        "startTime": to_iso_utc(session.start_time),
        "breaks": [
            {"startTime": to_iso_utc(item.start_time), "endTime": to_iso_utc(item.end_time)}
            for item in session.breaks
            if item.end_time is not None
        ],
    }
    current_break = None
    if session.open_break is not None:
        current_break = {"startTime": to_iso_utc(session.open_break.start_time)}
    return current_session, current_break


def session_from_dict(raw: dict[str, Any] | None, raw_break: dict[str, Any] | None) -> Session | None:
    if not raw:
        return None

    breaks = tuple(
        Break(start_time=_required_time(item["startTime"]), end_time=parse_iso_utc(item.get("endTime")))
        for item in raw.get("breaks") or ()
    )
    open_break = None
    if raw_break:
        open_break = Break(start_time=_required_time(raw_break["startTime"]))
    return Session(
        project_id=str(raw["projectId"]),
        start_time=_required_time(raw["startTime"]),
        breaks=breaks,
        open_break=open_break,
    )


def state_to_dict(state: AppState) -> dict[str, Any]:
    """Persisted record layout, shared with the export document.

    Keys are camelCase and timestamps are UTC ISO-8601 strings.
    """
    current_session, current_break = session_to_dict(state.session)
    return {
        "schemaVersion": SCHEMA_VERSION,
        "projects": [project_to_dict(item) for item in state.projects],
        "entries": [entry_to_dict(item) for item in state.entries],
        "recipients": [recipient_to_dict(item) for item in state.recipients],
        "sentReports": [sent_report_to_dict(item) for item in state.sent_reports],
        "settings": settings_to_dict(state.settings),
        "currentSession": current_session,
        "currentBreak": current_break,
        "selectedProject": state.selected_project,
    }


def state_from_dict(raw: dict[str, Any]) -> AppState:
    return AppState(
        projects=[project_from_dict(item) for item in raw.get("projects") or ()],
        entries=[entry_from_dict(item) for item in raw.get("entries") or ()],
        recipients=[recipient_from_dict(item) for item in raw.get("recipients") or ()],
        sent_reports=[sent_report_from_dict(item) for item in raw.get("sentReports") or ()],
        settings=migrate_settings(raw.get("settings")),
        session=session_from_dict(raw.get("currentSession"), raw.get("currentBreak")),
        selected_project=raw.get("selectedProject"),
    )


def export_document(state: AppState, now_utc: datetime) -> dict[str, Any]:
    return {
        "projects": [project_to_dict(item) for item in state.projects],
        "entries": [entry_to_dict(item) for item in state.entries],
        "recipients": [recipient_to_dict(item) for item in state.recipients],
        "sentReports": [sent_report_to_dict(item) for item in state.sent_reports],
        "settings": settings_to_dict(state.settings),
        "exportDate": to_iso_utc(now_utc),
        "version": EXPORT_VERSION,
    }


def dumps_export(state: AppState, now_utc: datetime) -> str:
    return json.dumps(export_document(state, now_utc), indent=2, ensure_ascii=False)


def merge_import(state: AppState, document: str | bytes | dict[str, Any]) -> AppState:
    """Return a copy of ``state`` with the keys present in ``document`` applied.

    The whole document is decoded before anything is assigned, so a malformed
    import never leaves a partially merged state behind.
    """
    if isinstance(document, (str, bytes)):
        try:
            document = json.loads(document)
        except json.JSONDecodeError as exc:
            raise ImportFormatError(f"Import file is not valid JSON: {exc.msg}") from exc

    if not isinstance(document, dict):
        raise ImportFormatError("Import file must contain a JSON object")

    merged = state.copy()
    try:
        if document.get("projects") is not None:
            merged.projects = [project_from_dict(item) for item in document["projects"]]
        if document.get("entries") is not None:
            merged.entries = [entry_from_dict(item) for item in document["entries"]]
            merged.entries.sort(key=lambda item: item.start_time, reverse=True)
        if document.get("recipients") is not None:
            merged.recipients = [recipient_from_dict(item) for item in document["recipients"]]
        if document.get("sentReports") is not None:
            merged.sent_reports = [sent_report_from_dict(item) for item in document["sentReports"]]
        if document.get("settings") is not None:
            merged.settings = validate_settings(migrate_settings(document["settings"], base=state.settings))
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ImportFormatError(f"Invalid import file: {exc}") from exc
    except ValidationError as exc:
        raise ImportFormatError(f"Invalid settings in import file: {exc}") from exc

    return merged
