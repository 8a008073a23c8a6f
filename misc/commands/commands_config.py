from __future__ import annotations

import discord
from discord import app_commands
from discord.ext import commands

from config.defaults import EMBED_COLORS
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from staff.config_store import CONFIG_SCHEMA
from staff.models import GuildConfig


def _fmt_role(role_id: int | None) -> str:
    return f"<@&{role_id}>" if role_id else "Not set"


def _fmt_channel(channel_id: int | None) -> str:
    return f"<#{channel_id}>" if channel_id else "Not set"


def _fmt_flag(value: bool) -> str:
    return "Enabled" if value else "Disabled"


def build_config_embed(cfg: GuildConfig) -> discord.Embed:
    embed = discord.Embed(title="Server Configuration", color=EMBED_COLORS["info"])
    embed.add_field(name="Prefix", value=f"`{cfg.prefix}`", inline=False)
    embed.add_field(
        name="Roles",
        value="\n".join(
            [
                f"Staff: {_fmt_role(cfg.roles.staff)}",
                f"HR: {_fmt_role(cfg.roles.hr)}",
                f"Admin: {_fmt_role(cfg.roles.admin)}",
                f"Owner: {_fmt_role(cfg.roles.owner)}",
            ]
        ),
        inline=False,
    )
    embed.add_field(
        name="Channels",
        value="\n".join(
            [
                f"Applications: {_fmt_channel(cfg.channels.applications)}",
                f"Staff Log: {_fmt_channel(cfg.channels.staff_log)}",
                f"Announcements: {_fmt_channel(cfg.channels.announcements)}",
                f"Feedback: {_fmt_channel(cfg.channels.feedback)}",
            ]
        ),
        inline=False,
    )
    embed.add_field(
        name="Features",
        value="\n".join(
            [
                f"Applications: {_fmt_flag(cfg.features.applications_enabled)}",
                f"LOA: {_fmt_flag(cfg.features.loa_enabled)}",
                f"Reminders: {_fmt_flag(cfg.features.reminders_enabled)}",
            ]
        ),
        inline=False,
    )
    return embed


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    config_group = app_commands.Group(
        name="config",
        description="Configure the staff bot for this server",
        guild_only=True,
    )

    @config_group.command(name="set", description="Set a configuration value")
    @app_commands.describe(
        key="Dotted key, e.g. roles.hr or channels.staff_log",
        value="Role/channel mention or id, true/false, a prefix, or none to clear",
    )
    async def config_set(interaction: discord.Interaction, key: str, value: str):
        await gates.require(interaction, "admin")
        path, cfg = await deps.config_store.set_path(interaction.guild_id, key, value)
        print(f"[Config] guild={interaction.guild_id} user={interaction.user.id} set {path}")
        await interaction.response.send_message(
            f"Updated `{path}`.",
            embed=build_config_embed(cfg),
            ephemeral=True,
        )

    @config_set.autocomplete("key")
    async def config_key_autocomplete(interaction: discord.Interaction, current: str):
        needle = (current or "").strip().lower()
        return [
            app_commands.Choice(name=path, value=path)
            for path in sorted(CONFIG_SCHEMA)
            if needle in path
        ][:25]

    @config_group.command(name="view", description="View the current configuration")
    async def config_view(interaction: discord.Interaction):
        cfg = await gates.require(interaction, "admin")
        await interaction.response.send_message(embed=build_config_embed(cfg), ephemeral=True)

    bot.tree.add_command(config_group)
