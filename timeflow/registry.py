from __future__ import annotations

import logging
from dataclasses import replace

from .errors import ValidationError
from .models import DEFAULT_ACCENT_COLOR, Project, Recipient, ReportLayers, generate_id
from .state import StateHolder

_RECIPIENT_FIELDS = frozenset({"name", "email", "phone", "send_email", "send_sms", "layers"})


class ProjectRegistry:
    def __init__(self, holder: StateHolder, logger: logging.Logger | None = None) -> None:
        self.holder = holder
        self.logger = logger or logging.getLogger(__name__)

    def get(self, project_id: str) -> Project:
        project = self.holder.state.find_project(project_id)
        if project is None:
            raise ValidationError(f"Project {project_id} does not exist")
        return project

    def find_by_name(self, name: str) -> Project | None:
        wanted = name.strip().lower()
        for project in self.holder.state.projects:
            if project.name.lower() == wanted:
                return project
        return None

    def default_rate(self, rate: float | None) -> float:
        """Blank rates fall back to the global rate when it is enabled."""
        if rate is not None:
            return rate
        settings = self.holder.state.settings
        if settings.global_rate_enabled and settings.global_rate > 0:
            return settings.global_rate
        return 0.0

    def create(
        self,
        name: str,
        *,
        rate: float | None = None,
        client: str = "",
        color: str = DEFAULT_ACCENT_COLOR,
    ) -> Project:
        project = Project(
            id=generate_id(),
            name=_required_name(name),
            rate=_valid_rate(self.default_rate(rate)),
            client=(client or "").strip(),
            color=color,
        )
        with self.holder.transaction() as state:
            state.projects.append(project)

        self.logger.info("Project created: id=%s name=%s rate=%.2f", project.id, project.name, project.rate)
        return project

    def update(
        self,
        project_id: str,
        *,
        name: str | None = None,
        rate: float | None = None,
        client: str | None = None,
        color: str | None = None,
    ) -> Project:
        current = self.get(project_id)
        updated = replace(
            current,
            name=_required_name(name) if name is not None else current.name,
            rate=_valid_rate(rate) if rate is not None else current.rate,
            client=client.strip() if client is not None else current.client,
            color=color or current.color,
        )
        with self.holder.transaction() as state:
            state.projects = [updated if item.id == project_id else item for item in state.projects]

        self.logger.info("Project updated: id=%s", project_id)
        return updated

    def delete(self, project_id: str) -> None:
        """Remove a project. Entries keep their dangling project id."""
        self.get(project_id)
        with self.holder.transaction() as state:
            state.projects = [item for item in state.projects if item.id != project_id]
            if state.selected_project == project_id:
                state.selected_project = state.projects[0].id if state.projects else None

        self.logger.info("Project deleted: id=%s", project_id)

    def select(self, project_id: str) -> Project:
        project = self.get(project_id)
        with self.holder.transaction() as state:
            state.selected_project = project_id
        return project


class RecipientRegistry:
    def __init__(self, holder: StateHolder, logger: logging.Logger | None = None) -> None:
        self.holder = holder
        self.logger = logger or logging.getLogger(__name__)

    def get(self, recipient_id: str) -> Recipient:
        for recipient in self.holder.state.recipients:
            if recipient.id == recipient_id:
                return recipient
        raise ValidationError(f"Recipient {recipient_id} does not exist")

    def find_by_name(self, name: str) -> Recipient | None:
        wanted = name.strip().lower()
        for recipient in self.holder.state.recipients:
            if recipient.name.lower() == wanted:
                return recipient
        return None

    def eligible(self) -> list[Recipient]:
        return [recipient for recipient in self.holder.state.recipients if recipient.eligible]

    def create(
        self,
        name: str,
        email: str,
        *,
        phone: str = "",
        send_email: bool = True,
        send_sms: bool = False,
        layers: ReportLayers | None = None,
    ) -> Recipient:
        recipient = _validated(
            Recipient(
                id=generate_id(),
                name=(name or "").strip(),
                email=(email or "").strip(),
                phone=(phone or "").strip(),
                send_email=send_email,
                send_sms=send_sms,
                layers=layers or ReportLayers(),
            )
        )
        with self.holder.transaction() as state:
            state.recipients.append(recipient)

        self.logger.info("Recipient added: id=%s", recipient.id)
        return recipient

    def update(self, recipient_id: str, **changes) -> Recipient:
        current = self.get(recipient_id)
        unknown = set(changes) - _RECIPIENT_FIELDS
        if unknown:
            raise ValidationError(f"Cannot edit field(s): {', '.join(sorted(unknown))}")
        if "layers" in changes and not isinstance(changes["layers"], ReportLayers):
            raise ValidationError("Report layers must be a ReportLayers value")

        for key in ("name", "email", "phone"):
            if key in changes:
                changes[key] = (changes[key] or "").strip()
        updated = _validated(replace(current, **changes))

        with self.holder.transaction() as state:
            state.recipients = [updated if item.id == recipient_id else item for item in state.recipients]

        self.logger.info("Recipient updated: id=%s", recipient_id)
        return updated

    def delete(self, recipient_id: str) -> None:
        self.get(recipient_id)
        with self.holder.transaction() as state:
            state.recipients = [item for item in state.recipients if item.id != recipient_id]

        self.logger.info("Recipient removed: id=%s", recipient_id)


def _required_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Please enter a project name")
    return cleaned


def _valid_rate(rate: float) -> float:
    if rate < 0:
        raise ValidationError("Hourly rate cannot be negative")
    return float(rate)


def _validated(recipient: Recipient) -> Recipient:
    if not recipient.name or not recipient.email:
        raise ValidationError("Name and email are required")
    if recipient.send_sms and not recipient.phone:
        raise ValidationError("Phone number required for SMS")
    return recipient
