"""
Slash commands.

`CommandHandlers` holds the logic, one coroutine per command, so it can be
driven with a mocked interaction; `register_commands` binds it to an
`app_commands.CommandTree`. Admin session tokens are kept per Discord user
for the lifetime of the process.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Literal, Optional

import discord
import httpx
from discord import app_commands

from dotareg.discord_bot.api_client import ApiClient, ApiError

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "❌ Something went wrong. Please try again later."
LOGIN_REQUIRED = "🔒 You need to `/login` first."

STATE_ICONS = {"OPEN": "🟢", "PENDING": "🕒", "CLOSED": "🔴"}


def _timestamp(value: Optional[str]) -> str:
    if not value:
        return "—"
    moment = datetime.fromisoformat(value)
    return f"<t:{int(moment.timestamp())}:R>"


class CommandHandlers:
    def __init__(self, api: ApiClient) -> None:
        self.api = api
        self.tokens: Dict[int, str] = {}

    async def _fail(self, interaction: discord.Interaction, exc: Exception, ephemeral: bool = True) -> None:
        if isinstance(exc, ApiError):
            await interaction.followup.send(f"❌ {exc.message}", ephemeral=ephemeral)
            return
        if isinstance(exc, httpx.HTTPError):
            logger.warning("Registration API unreachable: %s", exc)
        else:
            logger.exception("Command failed: %s", exc)
        await interaction.followup.send(GENERIC_FAILURE, ephemeral=ephemeral)

    def _token(self, interaction: discord.Interaction) -> Optional[str]:
        return self.tokens.get(interaction.user.id)

    # ── General ───────────────────────────────────────────────────────────────

    async def ping(self, interaction: discord.Interaction) -> None:
        latency_ms = round(interaction.client.latency * 1000)
        await interaction.response.send_message(f"🏓 Pong! Latency: {latency_ms} ms")

    async def login(self, interaction: discord.Interaction, username: str, password: str) -> None:
        await interaction.response.defer(ephemeral=True)
        try:
            data = await self.api.login(username, password)
        except Exception as exc:
            await self._fail(interaction, exc)
            return
        self.tokens[interaction.user.id] = data["sessionId"]
        logger.info("Discord user %s logged in as %s", interaction.user.id, username)
        await interaction.followup.send(
            f"✅ Logged in as **{data['user']['username']}**. Session expires {_timestamp(data['expiresAt'])}.",
            ephemeral=True,
        )

    async def logout(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True)
        token = self.tokens.pop(interaction.user.id, None)
        if token is None:
            await interaction.followup.send("You are not logged in.", ephemeral=True)
            return
        try:
            await self.api.logout(token)
        except ApiError as exc:
            logger.info("Logout rejected by the API: %s", exc.message)
        except httpx.HTTPError as exc:
            logger.warning("Logout call failed: %s", exc)
        await interaction.followup.send("👋 Logged out.", ephemeral=True)

    # ── Players ───────────────────────────────────────────────────────────────

    async def tournaments(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer()
        try:
            sessions = await self.api.public_sessions()
        except Exception as exc:
            await self._fail(interaction, exc, ephemeral=False)
            return
        if not sessions:
            await interaction.followup.send("No tournaments are accepting registrations right now.")
            return

        embed = discord.Embed(title="🏆 Tournaments", color=0x5865F2)
        for s in sessions[:25]:
            cap = f"/{s['maxPlayers']}" if s.get("maxPlayers") else ""
            lines = [
                f"{STATE_ICONS.get(s['state'], '')} **{s['state']}** · {s['playerCount']}{cap} players",
                f"ID: `{s['sessionId']}`",
            ]
            if s.get("countdownTarget"):
                verb = "Opens" if s["state"] == "PENDING" else "Closes"
                lines.append(f"{verb} {_timestamp(s['countdownTarget'])}")
            embed.add_field(name=s["title"], value="\n".join(lines), inline=False)
        await interaction.followup.send(embed=embed)

    async def status(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True)
        try:
            registrations = await self.api.registrations_for(str(interaction.user.id))
        except Exception as exc:
            await self._fail(interaction, exc)
            return
        if not registrations:
            await interaction.followup.send("You are not registered for any tournament.", ephemeral=True)
            return
        lines = [
            f"• **{r['title']}** as {r['name']} (ID `{r['dota2id']}`, MMR {r['peakmmr']})"
            for r in registrations
        ]
        await interaction.followup.send("📋 Your registrations:\n" + "\n".join(lines), ephemeral=True)

    async def register(
        self,
        interaction: discord.Interaction,
        session: str,
        dota2id: str,
        mmr: int,
    ) -> None:
        await interaction.response.defer()
        name = interaction.user.display_name
        try:
            data = await self.api.register(session, name, dota2id, mmr, str(interaction.user.id))
        except Exception as exc:
            await self._fail(interaction, exc, ephemeral=False)
            return

        status = data.get("status", {})
        embed = discord.Embed(
            title="✅ Registration Successful!",
            description=f"You have been registered for **{status.get('title', session)}**.",
            color=0x00FF00,
        )
        embed.add_field(
            name="Player Info",
            value=f"**Name:** {name}\n**Dota 2 ID:** {dota2id}\n**MMR:** {mmr}",
            inline=True,
        )
        if status:
            cap = f"/{status['maxPlayers']}" if status.get("maxPlayers") else ""
            embed.add_field(name="Players", value=f"{status['playerCount']}{cap}", inline=True)
        await interaction.followup.send(embed=embed)

    # ── Admin ─────────────────────────────────────────────────────────────────

    async def close_registration(self, interaction: discord.Interaction, session: str) -> None:
        await interaction.response.defer(ephemeral=True)
        token = self._token(interaction)
        if token is None:
            await interaction.followup.send(LOGIN_REQUIRED, ephemeral=True)
            return
        try:
            data = await self.api.close_registration(token, session)
        except Exception as exc:
            await self._fail(interaction, exc)
            return
        await interaction.followup.send(
            f"🔴 Registration for **{data['title']}** is closed ({data['playerCount']} players).",
            ephemeral=True,
        )

    async def reopen_registration(
        self,
        interaction: discord.Interaction,
        session: str,
        hours: int,
    ) -> None:
        await interaction.response.defer(ephemeral=True)
        token = self._token(interaction)
        if token is None:
            await interaction.followup.send(LOGIN_REQUIRED, ephemeral=True)
            return
        expires_at = datetime.now(timezone.utc) + timedelta(hours=hours)
        try:
            data = await self.api.reopen_registration(token, session, expires_at)
        except Exception as exc:
            await self._fail(interaction, exc)
            return
        await interaction.followup.send(
            f"🟢 Registration for **{data['title']}** reopened until {_timestamp(data['expiresAt'])}.",
            ephemeral=True,
        )

    async def masterlist_import(
        self,
        interaction: discord.Interaction,
        format: str,
        data: str,
    ) -> None:
        await interaction.response.defer(ephemeral=True)
        token = self._token(interaction)
        if token is None:
            await interaction.followup.send(LOGIN_REQUIRED, ephemeral=True)
            return
        # Slash command options are single-line; ";" separates rows
        text = data if format == "json" else data.replace(";", "\n")
        try:
            result = await self.api.masterlist_import(token, format, text)
        except Exception as exc:
            await self._fail(interaction, exc)
            return
        await interaction.followup.send(
            f"📥 Masterlist import: {result['added']} added, "
            f"{result['updated']} updated, {result['skipped']} skipped.",
            ephemeral=True,
        )


def register_commands(tree: app_commands.CommandTree, handlers: CommandHandlers) -> None:
    @tree.command(name="ping", description="Check that the bot is alive")
    async def ping(interaction: discord.Interaction):
        await handlers.ping(interaction)

    @tree.command(name="login", description="Log in as a tournament admin")
    @app_commands.describe(username="Your admin username", password="Your admin password")
    async def login(interaction: discord.Interaction, username: str, password: str):
        await handlers.login(interaction, username, password)

    @tree.command(name="logout", description="Log out of your admin session")
    async def logout(interaction: discord.Interaction):
        await handlers.logout(interaction)

    @tree.command(name="tournaments", description="List tournaments open for registration")
    async def tournaments(interaction: discord.Interaction):
        await handlers.tournaments(interaction)

    @tree.command(name="status", description="Show your tournament registrations")
    async def status(interaction: discord.Interaction):
        await handlers.status(interaction)

    @tree.command(name="register", description="Register for a tournament")
    @app_commands.describe(
        session="Tournament ID from /tournaments",
        dota2id="Your Dota 2 friend ID",
        mmr="Your peak MMR",
    )
    async def register(
        interaction: discord.Interaction,
        session: str,
        dota2id: str,
        mmr: app_commands.Range[int, 0, 20000],
    ):
        await handlers.register(interaction, session, dota2id, mmr)

    @tree.command(name="close_registration", description="Close registration for a tournament")
    @app_commands.describe(session="Tournament ID")
    async def close_registration(interaction: discord.Interaction, session: str):
        await handlers.close_registration(interaction, session)

    @tree.command(name="reopen_registration", description="Reopen registration for a number of hours")
    @app_commands.describe(session="Tournament ID", hours="How long registration stays open")
    async def reopen_registration(
        interaction: discord.Interaction,
        session: str,
        hours: app_commands.Range[int, 1, 720],
    ):
        await handlers.reopen_registration(interaction, session, hours)

    @tree.command(name="masterlist_import", description="Bulk import players into the masterlist")
    @app_commands.describe(
        format="Row format",
        data="Rows as Name,Dota2ID,MMR separated by ';'",
    )
    async def masterlist_import(
        interaction: discord.Interaction,
        format: Literal["csv", "tab", "json"],
        data: str,
    ):
        await handlers.masterlist_import(interaction, format, data)
