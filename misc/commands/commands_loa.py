from __future__ import annotations

import discord
from discord import app_commands
from discord.ext import commands

from config.defaults import EMBED_COLORS
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.command_errors import reply_ephemeral
from staff.clock import parse_iso_utc
from staff.models import LoaRecord


def _relative(ts: str | None) -> str:
    dt = parse_iso_utc(ts)
    return f"<t:{int(dt.timestamp())}:R>" if dt else "unknown"


def build_loa_list_embed(active: list[LoaRecord], pending: list[LoaRecord]) -> discord.Embed:
    embed = discord.Embed(title="Leave of Absence", color=EMBED_COLORS["loa"])
    if active:
        embed.add_field(
            name=f"Active ({len(active)})",
            value="\n".join(
                f"<@{r.user_id}> - {r.duration} (approved {_relative(r.approved_at_utc)})" for r in active[:20]
            )[:1024],
            inline=False,
        )
    if pending:
        embed.add_field(
            name=f"Pending ({len(pending)})",
            value="\n".join(
                f"<@{r.user_id}> - {r.duration}: {r.reason[:80]} (requested {_relative(r.requested_at_utc)})"
                for r in pending[:20]
            )[:1024],
            inline=False,
        )
    if not active and not pending:
        embed.description = "No active or pending LOA requests."
    return embed


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    @bot.tree.command(name="loa", description="Request a leave of absence")
    @app_commands.guild_only()
    @app_commands.describe(duration="How long, e.g. 1 week or 3 days", reason="Reason for the leave")
    async def loa_command(interaction: discord.Interaction, duration: str, reason: str):
        await gates.require(interaction, "staff")
        await interaction.response.defer(ephemeral=True, thinking=True)
        await deps.lifecycle.request_loa(
            guild_id=interaction.guild_id,
            user_id=interaction.user.id,
            duration=duration,
            reason=reason,
        )
        await reply_ephemeral(interaction, "Your LOA request has been submitted for review.")

    loa_group = app_commands.Group(
        name="loa-manage",
        description="Review leave of absence requests",
        guild_only=True,
    )

    @loa_group.command(name="approve", description="Approve a pending LOA request")
    @app_commands.describe(user="Staff member")
    async def loa_approve(interaction: discord.Interaction, user: discord.User):
        await gates.require(interaction, "hr")
        await interaction.response.defer(ephemeral=True, thinking=True)
        record = await deps.lifecycle.approve_loa(
            guild_id=interaction.guild_id,
            user_id=user.id,
            actor_id=interaction.user.id,
        )
        await reply_ephemeral(interaction, f"Approved LOA for {user.mention} ({record.duration}).")

    @loa_group.command(name="deny", description="Deny a pending LOA request")
    @app_commands.describe(user="Staff member", reason="Reason for denial")
    async def loa_deny(interaction: discord.Interaction, user: discord.User, reason: str):
        await gates.require(interaction, "hr")
        await interaction.response.defer(ephemeral=True, thinking=True)
        await deps.lifecycle.deny_loa(
            guild_id=interaction.guild_id,
            user_id=user.id,
            reason=reason,
            actor_id=interaction.user.id,
        )
        await reply_ephemeral(interaction, f"Denied LOA for {user.mention}.")

    @loa_group.command(name="list", description="List active and pending LOA requests")
    async def loa_list(interaction: discord.Interaction):
        await gates.require(interaction, "hr")
        active = await deps.lifecycle.list_active_loas(interaction.guild_id)
        pending = await deps.lifecycle.list_pending_loas(interaction.guild_id)
        await reply_ephemeral(interaction, embed=build_loa_list_embed(active, pending))

    bot.tree.add_command(loa_group)
