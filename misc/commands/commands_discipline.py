from __future__ import annotations

import discord
from discord import app_commands
from discord.ext import commands

from config.defaults import EMBED_COLORS
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.command_errors import reply_ephemeral
from staff.clock import parse_iso_utc
from staff.models import WarningRecord


def build_infractions_embed(user: discord.abc.User, warnings: list[WarningRecord], total: int) -> discord.Embed:
    embed = discord.Embed(title=f"Infractions for {user}", color=EMBED_COLORS["warning"])
    embed.add_field(name="Total Warnings", value=str(total), inline=True)
    for index, warning in enumerate(warnings, start=1):
        issued = parse_iso_utc(warning.issued_at_utc)
        when = f"<t:{int(issued.timestamp())}:f>" if issued else warning.issued_at_utc
        lines = [
            f"**Reason:** {warning.reason}",
            f"**Issued by:** <@{warning.issued_by}>",
            f"**Date:** {when}",
        ]
        if warning.proof:
            lines.append(f"**Proof:** {warning.proof}")
        embed.add_field(name=f"Warning #{index}", value="\n".join(lines)[:1024], inline=False)
    return embed


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    @bot.tree.command(name="warn", description="Issue a warning to a staff member")
    @app_commands.guild_only()
    @app_commands.describe(user="Staff member to warn", reason="Reason for the warning", proof="Evidence link or note")
    async def warn_command(interaction: discord.Interaction, user: discord.User, reason: str, proof: str | None = None):
        await gates.require(interaction, "hr")
        await interaction.response.defer(ephemeral=True, thinking=True)
        _, total = await deps.infractions.warn(
            guild_id=interaction.guild_id,
            user_id=user.id,
            reason=reason,
            proof=proof,
            actor_id=interaction.user.id,
        )
        await reply_ephemeral(interaction, f"Issued warning to {user.mention}. Total warnings: {total}")

    @bot.tree.command(name="infractions", description="View a staff member's infractions")
    @app_commands.guild_only()
    @app_commands.describe(user="Staff member")
    async def infractions_command(interaction: discord.Interaction, user: discord.User):
        await gates.require(interaction, "hr")
        warnings = await deps.infractions.infractions(guild_id=interaction.guild_id, user_id=user.id)
        if not warnings:
            await reply_ephemeral(interaction, f"{user.mention} has no infractions on record.")
            return
        await reply_ephemeral(interaction, embed=build_infractions_embed(user, warnings, len(warnings)))

    @bot.tree.command(name="clearinfractions", description="Clear all infractions for a staff member")
    @app_commands.guild_only()
    @app_commands.describe(user="Staff member")
    async def clearinfractions_command(interaction: discord.Interaction, user: discord.User):
        await gates.require(interaction, "admin")
        await interaction.response.defer(ephemeral=True, thinking=True)
        cleared = await deps.infractions.clear(
            guild_id=interaction.guild_id,
            user_id=user.id,
            actor_id=interaction.user.id,
        )
        await reply_ephemeral(interaction, f"Cleared {cleared} infractions for {user.mention}.")

    @bot.tree.command(name="terminate", description="Terminate a staff member")
    @app_commands.guild_only()
    @app_commands.describe(user="Staff member to terminate", reason="Reason for termination")
    async def terminate_command(interaction: discord.Interaction, user: discord.User, reason: str):
        await gates.require(interaction, "admin")
        await interaction.response.defer(ephemeral=True, thinking=True)
        record = await deps.roles.terminate(
            guild_id=interaction.guild_id,
            user_id=user.id,
            reason=reason,
            actor_id=interaction.user.id,
        )
        await reply_ephemeral(
            interaction,
            f"Terminated {user.mention}. Removed {len(record.roles_removed)} staff roles.",
        )

    @bot.tree.command(name="promote", description="Promote a staff member")
    @app_commands.guild_only()
    @app_commands.describe(user="User to promote", role="Role to promote to")
    @app_commands.choices(
        role=[
            app_commands.Choice(name="Staff", value="staff"),
            app_commands.Choice(name="HR", value="hr"),
            app_commands.Choice(name="Admin", value="admin"),
        ]
    )
    async def promote_command(interaction: discord.Interaction, user: discord.User, role: app_commands.Choice[str]):
        await gates.require(interaction, "admin")
        await interaction.response.defer(ephemeral=True, thinking=True)
        await deps.roles.promote(
            guild_id=interaction.guild_id,
            user_id=user.id,
            target=role.value,
            actor_id=interaction.user.id,
        )
        await reply_ephemeral(interaction, f"Promoted {user.mention} to {role.value}.")

    @bot.tree.command(name="demote", description="Demote a staff member to basic staff")
    @app_commands.guild_only()
    @app_commands.describe(user="User to demote")
    async def demote_command(interaction: discord.Interaction, user: discord.User):
        await gates.require(interaction, "admin")
        await interaction.response.defer(ephemeral=True, thinking=True)
        change = await deps.roles.demote(
            guild_id=interaction.guild_id,
            user_id=user.id,
            actor_id=interaction.user.id,
        )
        if not change.revoked:
            await reply_ephemeral(interaction, f"{user.mention} held no HR or admin role; nothing to demote.")
            return
        await reply_ephemeral(interaction, f"Demoted {user.mention} to basic staff.")
