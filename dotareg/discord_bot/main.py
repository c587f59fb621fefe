"""
Discord bot entry point: builds the client, registers slash commands and
syncs them on startup.
"""
import asyncio
import logging
import sys

import discord
from discord import app_commands

from dotareg.config import settings
from dotareg.discord_bot.api_client import ApiClient
from dotareg.discord_bot.commands import CommandHandlers, register_commands

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


def build_client() -> discord.Client:
    intents = discord.Intents.default()
    client = discord.Client(intents=intents)
    tree = app_commands.CommandTree(client)

    api = ApiClient(
        settings.WEBAPP_URL,
        timeout=settings.API_TIMEOUT_SECONDS,
        session_header=settings.SESSION_HEADER,
    )
    register_commands(tree, CommandHandlers(api))

    @client.event
    async def on_ready():
        if settings.DISCORD_GUILD_ID:
            guild = discord.Object(id=settings.DISCORD_GUILD_ID)
            tree.copy_global_to(guild=guild)
            await tree.sync(guild=guild)
        else:
            await tree.sync()
        logger.info("Bot ready as %s (%s)", client.user, client.user.id)

    @tree.error
    async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError):
        logger.exception("Unhandled command error: %s", error)
        if interaction.response.is_done():
            await interaction.followup.send("⚠️ Something went wrong.", ephemeral=True)
        else:
            await interaction.response.send_message("⚠️ Something went wrong.", ephemeral=True)

    return client


async def main() -> None:
    if not settings.bot_enabled:
        raise RuntimeError("DISCORD_TOKEN is not set")

    logger.info("Starting Discord bot against %s", settings.WEBAPP_URL)
    client = build_client()
    async with client:
        await client.start(settings.DISCORD_TOKEN)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
