import io
from typing import Literal

import discord

from .entries import parse_manual_times
from .errors import TimeflowError, ValidationError
from .models import ReportLayers, SessionState
from .timemodel import format_currency, format_date, format_duration, format_hours, format_time


def register_commands(bot):
    """Register all slash commands on the bot. Called once during setup."""
    guild_scope = discord.Object(id=bot.config.guild_id)
    app = bot.app

    def money(amount: float) -> str:
        return format_currency(amount, app.state.settings.currency_symbol)

    def project_by_name(name: str):
        project = app.projects.find_by_name(name)
        if project is None:
            raise ValidationError(f"No project named `{name}`")
        return project

    async def wrong_guild(interaction) -> bool:
        if interaction.guild is None or interaction.guild.id != bot.config.guild_id:
            await interaction.response.send_message("This command can only be used in the configured server.", ephemeral=True)
            return True
        return False

    async def fail(interaction, exc: TimeflowError) -> None:
        bot.logger.info("Rejected %s: %s", interaction.command.name if interaction.command else "?", exc)
        await interaction.response.send_message(str(exc), ephemeral=True)

    @bot.tree.command(name="projects", description="List projects and their rates", guild=guild_scope)
    async def projects(interaction):
        if await wrong_guild(interaction):
            return

        state = app.state
        if not state.projects:
            await interaction.response.send_message("No projects yet. Create one with /add-project.", ephemeral=True)
            return

        totals = {total.project_id: total for total in app.aggregator.project_totals()}
        lines = ["Projects:"]
        for project in state.projects:
            marker = "*" if project.id == state.selected_project else "-"
            client = f"{project.client} • " if project.client else ""
            total = totals.get(project.id)
            hours = format_hours(total.hours) if total else "0:00"
            lines.append(f"{marker} {project.name} ({client}{money(project.rate)}/hr) `{hours}`")
        await interaction.response.send_message("\n".join(lines), ephemeral=True)

    @bot.tree.command(name="add-project", description="Create a project", guild=guild_scope)
    async def add_project(interaction, name: str, rate: float | None = None, client: str = ""):
        if await wrong_guild(interaction):
            return
        try:
            project = app.projects.create(name, rate=rate, client=client)
        except TimeflowError as exc:
            await fail(interaction, exc)
            return
        await interaction.response.send_message(
            f"Project `{project.name}` created at {money(project.rate)}/hr.", ephemeral=True
        )

    @bot.tree.command(name="select-project", description="Choose the project to clock in to", guild=guild_scope)
    async def select_project(interaction, name: str):
        if await wrong_guild(interaction):
            return
        try:
            project = app.projects.select(project_by_name(name).id)
        except TimeflowError as exc:
            await fail(interaction, exc)
            return
        await interaction.response.send_message(f"Selected `{project.name}`.", ephemeral=True)

    @bot.tree.command(name="clock-in", description="Start a work session", guild=guild_scope)
    async def clock_in(interaction, project: str | None = None):
        if await wrong_guild(interaction):
            return
        try:
            project_id = project_by_name(project).id if project else None
            session = app.sessions.clock_in(project_id)
        except TimeflowError as exc:
            await fail(interaction, exc)
            return
        await interaction.response.send_message(
            f"Clocked in to `{app.state.project_name(session.project_id)}`.", ephemeral=True
        )

    @bot.tree.command(name="break", description="Pause the running session", guild=guild_scope)
    async def start_break(interaction):
        if await wrong_guild(interaction):
            return
        try:
            app.sessions.start_break()
        except TimeflowError as exc:
            await fail(interaction, exc)
            return
        await interaction.response.send_message("Break started.", ephemeral=True)

    @bot.tree.command(name="resume", description="End the current break", guild=guild_scope)
    async def resume(interaction):
        if await wrong_guild(interaction):
            return
        try:
            app.sessions.end_break()
        except TimeflowError as exc:
            await fail(interaction, exc)
            return
        await interaction.response.send_message("Break ended.", ephemeral=True)

    @bot.tree.command(name="clock-out", description="Finish the session and record the entry", guild=guild_scope)
    async def clock_out(interaction):
        if await wrong_guild(interaction):
            return
        try:
            entry = app.sessions.clock_out()
        except TimeflowError as exc:
            await fail(interaction, exc)
            return
        await interaction.response.send_message(
            f"Clocked out - {format_hours(entry.hours)} hours recorded ({money(entry.earnings)}).",
            ephemeral=True,
        )

    @bot.tree.command(name="status", description="Show the running session and totals", guild=guild_scope)
    async def status(interaction):
        if await wrong_guild(interaction):
            return

        snapshot = app.sessions.snapshot()
        stats = app.aggregator.dashboard()
        if snapshot.state is SessionState.IDLE:
            lines = ["Not clocked in."]
        else:
            lines = [f"Working on `{snapshot.project_name}`: `{format_duration(snapshot.elapsed_ms)}`"]
            if snapshot.state is SessionState.ON_BREAK:
                lines.append(f"On break: `{format_duration(snapshot.break_elapsed_ms)}`")
        lines.extend(
            [
                f"Today: `{format_hours(stats.today_hours)}`",
                f"This week: `{format_hours(stats.week_hours)}`",
                f"This month: `{format_hours(stats.month_hours)}` ({money(stats.month_earnings)})",
            ]
        )
        await interaction.response.send_message("\n".join(lines), ephemeral=True)

    @bot.tree.command(name="add-entry", description="Record time manually", guild=guild_scope)
    async def add_entry(interaction, project: str, day: str, start: str, end: str, notes: str = ""):
        if await wrong_guild(interaction):
            return
        try:
            start_time, end_time = parse_manual_times(day, start, end, app.tz)
            entry = app.entries.create(project_by_name(project).id, start_time, end_time, notes)
        except TimeflowError as exc:
            await fail(interaction, exc)
            return
        await interaction.response.send_message(f"Entry added: {format_hours(entry.hours)} hours.", ephemeral=True)

    @bot.tree.command(name="entries", description="List recorded entries", guild=guild_scope)
    async def entries(interaction, which: Literal["all", "today", "week", "month"] = "week"):
        if await wrong_guild(interaction):
            return

        settings = app.state.settings
        rows = app.entries.list(which)
        if not rows:
            await interaction.response.send_message("No entries found for this period.", ephemeral=True)
            return

        lines = [f"Entries ({which}):"]
        for entry in rows[:20]:
            start = entry.start_time.astimezone(app.tz)
            end = entry.end_time.astimezone(app.tz)
            lock = " 🔒" if entry.locked else ""
            lines.append(
                f"- `{entry.id[:8]}` {format_date(start, settings.date_format)}"
                f" {format_time(start, settings.time_format)}"
                f"-{format_time(end, settings.time_format)} {app.state.project_name(entry.project_id)}"
                f" `{format_hours(entry.hours)}` {money(entry.earnings)}{lock}"
            )
        await interaction.response.send_message("\n".join(lines), ephemeral=True)

    @bot.tree.command(name="summary", description="Totals and predictions for a period", guild=guild_scope)
    async def summary(interaction, period: Literal["week", "month", "year"] = "week"):
        if await wrong_guild(interaction):
            return

        current = app.aggregator.summary(period)
        forecast = app.aggregator.prediction(period)
        lines = [
            f"**{current.period.label} so far**",
            f"Hours: `{current.total_hours:.1f}h` ({money(current.total_earnings)})",
            f"Average per day: `{current.avg_hours_per_day:.1f}h`",
            f"Active projects: `{current.active_projects}`",
        ]
        lines.extend(f"- {total.name}: `{format_hours(total.hours)}`" for total in current.project_totals)
        lines.append(f"Predicted week: `{forecast.week_hours:.1f}h` ({money(forecast.week_earnings)})")
        lines.append(f"Predicted month: `{forecast.month_hours:.1f}h` ({money(forecast.month_earnings)})")
        await interaction.response.send_message("\n".join(lines), ephemeral=True)

    @bot.tree.command(name="send-report", description="Send the period report and lock its entries", guild=guild_scope)
    async def send_report(interaction, period: Literal["week", "month", "year"] = "week"):
        if await wrong_guild(interaction):
            return
        try:
            outcome = app.reporter.send(period)
        except TimeflowError as exc:
            await fail(interaction, exc)
            return

        await interaction.response.defer(ephemeral=True)
        try:
            posted = await bot.post_deliveries(outcome.deliveries)
        except discord.HTTPException as exc:
            bot.logger.exception("Posting report deliveries failed")
            await interaction.followup.send(f"Report recorded but posting failed: `{exc}`", ephemeral=True)
            return

        report = outcome.sent_report
        await interaction.followup.send(
            f"Report sent to {report.recipient_count} recipient(s), {posted} posted. "
            f"{len(report.entry_ids)} entries locked ({format_hours(report.hours)}, {money(report.earnings)}).",
            ephemeral=True,
        )

    @bot.tree.command(name="edit-entry", description="Change an unsent entry", guild=guild_scope)
    async def edit_entry(
        interaction,
        entry: str,
        notes: str | None = None,
        project: str | None = None,
        day: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ):
        if await wrong_guild(interaction):
            return
        try:
            current = app.entries.resolve(entry)
            patch = {}
            if notes is not None:
                patch["notes"] = notes
            if project is not None:
                patch["project_id"] = project_by_name(project).id
            times = (day, start, end)
            if any(value is not None for value in times):
                if any(value is None for value in times):
                    raise ValidationError("Give day, start and end together to change the times")
                patch["start_time"], patch["end_time"] = parse_manual_times(day, start, end, app.tz)
            if not patch:
                raise ValidationError("Nothing to change")
            updated = app.entries.update(current.id, **patch)
        except TimeflowError as exc:
            await fail(interaction, exc)
            return
        await interaction.response.send_message(
            f"Entry `{updated.id[:8]}` updated: {format_hours(updated.hours)} hours ({money(updated.earnings)}).",
            ephemeral=True,
        )

    @bot.tree.command(name="delete-entry", description="Delete an unsent entry", guild=guild_scope)
    async def delete_entry(interaction, entry: str):
        if await wrong_guild(interaction):
            return
        try:
            current = app.entries.resolve(entry)
            app.entries.delete(current.id)
        except TimeflowError as exc:
            await fail(interaction, exc)
            return
        await interaction.response.send_message(f"Entry `{current.id[:8]}` deleted.", ephemeral=True)

    @bot.tree.command(name="delete-project", description="Delete a project; its entries are kept", guild=guild_scope)
    async def delete_project(interaction, name: str):
        if await wrong_guild(interaction):
            return
        try:
            project = project_by_name(name)
            app.projects.delete(project.id)
        except TimeflowError as exc:
            await fail(interaction, exc)
            return
        await interaction.response.send_message(f"Project `{project.name}` deleted.", ephemeral=True)

    @bot.tree.command(name="recipients", description="List report recipients", guild=guild_scope)
    async def recipients(interaction):
        if await wrong_guild(interaction):
            return

        rows = app.state.recipients
        if not rows:
            await interaction.response.send_message("No recipients yet. Add one with /add-recipient.", ephemeral=True)
            return

        lines = ["Recipients:"]
        for recipient in rows:
            channels = [
                name for name, enabled in (("email", recipient.send_email), ("SMS", recipient.send_sms)) if enabled
            ]
            layers = [
                name
                for name, enabled in (
                    ("summary", recipient.layers.summary),
                    ("projects", recipient.layers.projects),
                    ("detailed", recipient.layers.detailed),
                    ("rates", recipient.layers.rates),
                    ("hours only", recipient.layers.hours_only),
                )
                if enabled
            ]
            lines.append(
                f"- {recipient.name} <{recipient.email}> via {', '.join(channels) or 'nothing'}"
                f" [{', '.join(layers) or 'no layers'}]"
            )
        await interaction.response.send_message("\n".join(lines), ephemeral=True)

    @bot.tree.command(name="add-recipient", description="Add someone who receives reports", guild=guild_scope)
    async def add_recipient(
        interaction,
        name: str,
        email: str,
        phone: str = "",
        send_email: bool = True,
        send_sms: bool = False,
        summary: bool = True,
        projects: bool = True,
        detailed: bool = False,
        rates: bool = False,
        hours_only: bool = False,
    ):
        if await wrong_guild(interaction):
            return
        layers = ReportLayers(
            summary=summary,
            projects=projects,
            detailed=detailed,
            rates=rates,
            hours_only=hours_only,
        )
        try:
            recipient = app.recipients.create(
                name,
                email,
                phone=phone,
                send_email=send_email,
                send_sms=send_sms,
                layers=layers,
            )
        except TimeflowError as exc:
            await fail(interaction, exc)
            return
        await interaction.response.send_message(f"Recipient `{recipient.name}` added.", ephemeral=True)

    @bot.tree.command(name="remove-recipient", description="Stop sending reports to someone", guild=guild_scope)
    async def remove_recipient(interaction, name: str):
        if await wrong_guild(interaction):
            return
        recipient = app.recipients.find_by_name(name)
        if recipient is None:
            await fail(interaction, ValidationError(f"No recipient named `{name}`"))
            return
        app.recipients.delete(recipient.id)
        await interaction.response.send_message(f"Recipient `{recipient.name}` removed.", ephemeral=True)

    @bot.tree.command(name="settings", description="Show or change display and rate settings", guild=guild_scope)
    async def settings(
        interaction,
        currency: Literal["EUR", "USD", "GBP", "JPY", "CAD", "AUD", "CHF", "CNY", "INR", "BRL"] | None = None,
        date_format: Literal["DD/MM/YYYY", "MM/DD/YYYY", "YYYY-MM-DD"] | None = None,
        time_format: Literal["12", "24"] | None = None,
        week_start: Literal["sunday", "monday"] | None = None,
        global_rate: float | None = None,
        global_rate_enabled: bool | None = None,
    ):
        if await wrong_guild(interaction):
            return
        changes = {
            "currency": currency,
            "date_format": date_format,
            "time_format": time_format,
            "week_start": None if week_start is None else int(week_start == "monday"),
            "global_rate": global_rate,
            "global_rate_enabled": global_rate_enabled,
        }
        changes = {key: value for key, value in changes.items() if value is not None}
        try:
            current = app.update_settings(**changes) if changes else app.state.settings
        except TimeflowError as exc:
            await fail(interaction, exc)
            return

        rate = money(current.global_rate) + ("/hr" if current.global_rate_enabled else "/hr (disabled)")
        await interaction.response.send_message(
            f"Currency `{current.currency}`, dates `{current.date_format}`, {current.time_format}h clock, "
            f"week starts {'Monday' if current.week_start == 1 else 'Sunday'}, global rate {rate}.",
            ephemeral=True,
        )

    @bot.tree.command(name="export", description="Download every record as JSON", guild=guild_scope)
    async def export(interaction):
        if await wrong_guild(interaction):
            return
        document = app.export_json().encode("utf-8")
        await interaction.response.send_message(
            "Export ready.",
            file=discord.File(io.BytesIO(document), filename="timeflow-export.json"),
            ephemeral=True,
        )

    @bot.tree.command(name="import", description="Merge records from an exported JSON file", guild=guild_scope)
    async def import_data(interaction, file: discord.Attachment):
        if await wrong_guild(interaction):
            return
        await interaction.response.defer(ephemeral=True)
        try:
            app.import_json(await file.read())
        except TimeflowError as exc:
            bot.logger.info("Rejected import: %s", exc)
            await interaction.followup.send(str(exc), ephemeral=True)
            return
        state = app.state
        await interaction.followup.send(
            f"Imported {len(state.projects)} projects, {len(state.entries)} entries, "
            f"{len(state.recipients)} recipients.",
            ephemeral=True,
        )
