from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import quote
from zoneinfo import ZoneInfo

from .aggregation import entries_since, group_by_project, period_start, total_earnings, total_hours
from .entries import EntryStore
from .errors import NoRecipientsError
from .models import Period, Recipient, ReportLayers, SentReport, Settings, TimeEntry, generate_id, parse_period
from .state import StateHolder
from .timemodel import format_currency, format_date, format_hours, format_time, utc_now


@dataclass(frozen=True, slots=True)
class ReportPayload:
    subject: str
    text: str
    sms: str


@dataclass(frozen=True, slots=True)
class Delivery:
    """A rendered report addressed to one recipient, ready for a messaging client."""

    recipient: Recipient
    payload: ReportPayload

    @property
    def mailto_uri(self) -> str | None:
        if not self.recipient.send_email:
            return None
        subject = quote(self.payload.subject, safe="")
        body = quote(self.payload.text, safe="")
        return f"mailto:{self.recipient.email}?subject={subject}&body={body}"

    @property
    def sms_uri(self) -> str | None:
        if not self.recipient.send_sms or not self.recipient.phone:
            return None
        return f"sms:{self.recipient.phone}?body={quote(self.payload.sms, safe='')}"


@dataclass(frozen=True, slots=True)
class SendOutcome:
    sent_report: SentReport
    deliveries: tuple[Delivery, ...]


def render_report(
    layers: ReportLayers,
    entries: Sequence[TimeEntry],
    period: Period,
    settings: Settings,
    tz: ZoneInfo,
    project_name: Callable[[str], str],
    now_utc: datetime,
) -> ReportPayload:
    hours = total_hours(entries)
    earnings = total_earnings(entries)
    symbol = settings.currency_symbol
    subject = f"Time Report - {period.label}"

    lines = [
        "TIME REPORT",
        f"Period: {period.label}",
        f"Generated: {format_date(now_utc.astimezone(tz), settings.date_format)}",
        "",
    ]

    # hoursOnly overrides every other layer, including rates.
    if layers.hours_only:
        lines.append(f"Total Hours: {format_hours(hours)}")
        return ReportPayload(
            subject=subject,
            text="\n".join(lines) + "\n",
            sms=f"Time Report: {format_hours(hours)} hours",
        )

    if layers.summary:
        lines.append("SUMMARY")
        lines.append(f"Total Hours: {format_hours(hours)}")
        if layers.rates:
            lines.append(f"Total Earnings: {format_currency(earnings, symbol)}")
        lines.append("")

    if layers.projects:
        lines.append("BY PROJECT")
        for total in group_by_project(entries, project_name):
            line = f"- {total.name}: {format_hours(total.hours)}"
            if layers.rates:
                line += f" ({format_currency(total.earnings, symbol)})"
            lines.append(line)
        lines.append("")

    if layers.detailed:
        lines.append("DETAILED ENTRIES")
        for entry in entries:
            start = entry.start_time.astimezone(tz)
            end = entry.end_time.astimezone(tz)
            line = (
                f"{format_date(start, settings.date_format)} | {project_name(entry.project_id)} | "
                f"{format_time(start, settings.time_format)}-{format_time(end, settings.time_format)} | "
                f"{format_hours(entry.hours)}"
            )
            if layers.rates:
                line += f" | {format_currency(entry.earnings, symbol)}"
            lines.append(line)
            if entry.notes:
                lines.append(f"  Note: {entry.notes}")

    sms = f"Time Report: {format_hours(hours)} hours"
    if layers.rates:
        sms += f", {format_currency(earnings, symbol)}"

    return ReportPayload(subject=subject, text="\n".join(lines) + "\n", sms=sms)


class Reporter:
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

    def unsent_entries(self, period: Period, now_utc: datetime) -> list[TimeEntry]:
        state = self.holder.state
        start = period_start(period, now_utc, self.tz, state.settings.week_start)
        return [entry for entry in entries_since(state.entries, start.date()) if not entry.locked]

    def build_payload(
        self,
        recipient: Recipient,
        entries: Sequence[TimeEntry],
        period: Period | str,
        *,
        now_utc: datetime | None = None,
    ) -> ReportPayload:
        state = self.holder.state
        return render_report(
            recipient.layers,
            entries,
            parse_period(period),
            state.settings,
            self.tz,
            state.project_name,
            now_utc or utc_now(),
        )

    def preview(self, recipient: Recipient, period: Period | str, *, now_utc: datetime | None = None) -> ReportPayload:
        now = now_utc or utc_now()
        return self.build_payload(recipient, self.unsent_entries(parse_period(period), now), period, now_utc=now)

    def send(self, period: Period | str, *, now_utc: datetime | None = None) -> SendOutcome:
        """Lock this period's unsent entries and record the report.

        Nothing is changed when no recipient has email or SMS enabled.
        """
        period = parse_period(period)
        now = now_utc or utc_now()
        recipients = [recipient for recipient in self.holder.state.recipients if recipient.eligible]
        if not recipients:
            raise NoRecipientsError()

        selected = self.unsent_entries(period, now)
        sent_report = SentReport(
            id=generate_id(),
            sent_date=now,
            period=period.value,
            hours=total_hours(selected),
            earnings=total_earnings(selected),
            recipient_count=len(recipients),
            entry_ids=tuple(entry.id for entry in selected),
        )
        deliveries = tuple(
            Delivery(recipient=recipient, payload=self.build_payload(recipient, selected, period, now_utc=now))
            for recipient in recipients
        )

        with self.holder.transaction() as state:
            self.entries.lock(state, set(sent_report.entry_ids))
            state.sent_reports.append(sent_report)

        self.logger.info(
            "Report sent: period=%s entries=%d recipients=%d",
            period.value,
            len(selected),
            len(recipients),
        )
        return SendOutcome(sent_report=sent_report, deliveries=deliveries)

    def history(self) -> list[SentReport]:
        return sorted(self.holder.state.sent_reports, key=lambda report: report.sent_date, reverse=True)
