from __future__ import annotations

import logging

import discord
from discord.ext import commands
from dotenv import load_dotenv

from .app import TimeflowApp
from .commands import register_commands
from .config import Config, load_config
from .db import Database
from .reporter import Delivery

DISCORD_MESSAGE_LIMIT = 2000


def delivery_message(delivery: Delivery) -> str:
    recipient = delivery.recipient
    channels = []
    if recipient.send_email:
        channels.append(f"email {recipient.email}")
    if recipient.send_sms and recipient.phone:
        channels.append(f"SMS {recipient.phone}")

    header = f"**{delivery.payload.subject}** for {recipient.name} ({', '.join(channels)})"
    body = delivery.payload.text
    # Leave room for the header and code fences.
    room = DISCORD_MESSAGE_LIMIT - len(header) - 16
    if len(body) > room:
        body = body[: room - 3] + "..."
    return f"{header}\n```\n{body}\n```"


class TimeflowBot(commands.Bot):
    def __init__(self, config: Config, app: TimeflowApp) -> None:
        intents = discord.Intents.none()
        intents.guilds = True

        super().__init__(command_prefix="!", intents=intents)

        self.config = config
        self.app = app
        self.logger = logging.getLogger("timeflow-bot")
        self.report_channel: discord.TextChannel | None = None

    async def setup_hook(self) -> None:
        register_commands(self)
        await self.tree.sync(guild=discord.Object(id=self.config.guild_id))

    async def on_ready(self) -> None:
        self.logger.info("Connected as %s (%s)", self.user, self.user.id if self.user else "unknown")
        if self.report_channel is not None:
            return

        guild = self.get_guild(self.config.guild_id)
        if guild is None:
            self.logger.error("Configured guild %s not found", self.config.guild_id)
            await self.close()
            return

        report = guild.get_channel(self.config.report_channel_id)
        if not isinstance(report, discord.TextChannel):
            self.logger.error("Report channel %s is missing or not a text channel", self.config.report_channel_id)
            await self.close()
            return

        self.report_channel = report
        self.logger.info("Runtime checks passed")

    async def post_deliveries(self, deliveries: tuple[Delivery, ...]) -> int:
        """Post each committed report payload to the report channel."""
        if self.report_channel is None:
            self.logger.error("Report channel unavailable, %d deliveries not posted", len(deliveries))
            return 0

        posted = 0
        for delivery in deliveries:
            # Never ping anyone from generated reports.
            await self.report_channel.send(
                delivery_message(delivery),
                allowed_mentions=discord.AllowedMentions.none(),
            )
            posted += 1
        return posted

    async def close(self) -> None:
        self.app.db.close()
        await super().close()


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def main() -> None:
    load_dotenv()
    configure_logging()

    config = load_config()
    db = Database(config.db_path)
    db.initialize()

    app = TimeflowApp(db=db, tz=config.timezone).load()
    bot = TimeflowBot(config=config, app=app)
    bot.run(config.discord_token)


if __name__ == "__main__":
    main()
