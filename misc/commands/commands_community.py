from __future__ import annotations

import discord
from discord import app_commands
from discord.ext import commands

from config.defaults import EMBED_COLORS
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.command_errors import reply_ephemeral
from staff.activity import ActivityReport
from staff.clock import parse_iso_utc
from staff.models import OnCallRecord
from staff.notify import UNDELIVERABLE
from staff.notify import Notice


def _relative(ts: str | None) -> str:
    dt = parse_iso_utc(ts)
    return f"<t:{int(dt.timestamp())}:R>" if dt else "unknown"


def build_report_embed(report: ActivityReport, user: discord.abc.User | None = None) -> discord.Embed:
    embed = discord.Embed(
        title=f"Staff Activity Report - {report.period}",
        color=EMBED_COLORS["report"],
        timestamp=discord.utils.utcnow(),
    )
    if user is None:
        embed.description = "\n".join(
            f"<@{stats.user_id}>: {stats.count} activities, {stats.hours} hours" for stats in report.totals
        )[:4000]
        return embed

    embed.description = f"Activity for {user.mention}"
    embed.add_field(name="Total Hours", value=str(report.total_hours), inline=True)
    for index, entry in enumerate(report.entries, start=1):
        hours = f" ({entry.hours}h)" if entry.hours > 0 else ""
        embed.add_field(
            name=f"Activity {index}",
            value=f"{entry.activity[:900]}{hours}\n{_relative(entry.logged_at_utc)}",
            inline=False,
        )
    return embed


def build_oncall_embed(entries: list[OnCallRecord]) -> discord.Embed:
    embed = discord.Embed(title="Staff On-Call", color=EMBED_COLORS["oncall"])
    embed.description = "\n".join(f"<@{e.user_id}> - since {_relative(e.set_at_utc)}" for e in entries)[:4000]
    return embed


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    @bot.tree.command(name="announce", description="Send a staff announcement")
    @app_commands.guild_only()
    @app_commands.describe(
        message="Announcement text",
        channel="Channel to send to (default: announcements)",
        ping="Role to ping",
    )
    async def announce_command(
        interaction: discord.Interaction,
        message: str,
        channel: discord.TextChannel | None = None,
        ping: discord.Role | None = None,
    ):
        cfg = await gates.require(interaction, "hr")
        await interaction.response.defer(ephemeral=True, thinking=True)
        target_id = (channel.id if channel else None) or cfg.channels.announcements or interaction.channel_id
        notice = Notice(
            title="Staff Announcement",
            description=message,
            color=EMBED_COLORS["info"],
            footer=f"Announced by {interaction.user}",
        )
        outcome = await deps.notifier.channel(int(target_id), notice, content=ping.mention if ping else None)
        if outcome == UNDELIVERABLE:
            await reply_ephemeral(interaction, f"I could not post in <#{target_id}>. Check my permissions there.")
            return
        await reply_ephemeral(interaction, f"Announcement sent to <#{target_id}>.")

    @bot.tree.command(name="feedback", description="Submit feedback to HR")
    @app_commands.guild_only()
    @app_commands.describe(message="Your feedback", anonymous="Hide your name from HR")
    async def feedback_command(interaction: discord.Interaction, message: str, anonymous: bool = False):
        await gates.require(interaction, None)
        await interaction.response.defer(ephemeral=True, thinking=True)
        await deps.feedback.submit(
            guild_id=interaction.guild_id,
            user_id=interaction.user.id,
            message=message,
            anonymous=anonymous,
        )
        await reply_ephemeral(interaction, "Thank you for your feedback!")

    @bot.tree.command(name="logactivity", description="Log your staff activity")
    @app_commands.guild_only()
    @app_commands.describe(activity="What you worked on", hours="Hours spent")
    async def logactivity_command(
        interaction: discord.Interaction,
        activity: str,
        hours: app_commands.Range[int, 0, 24] = 0,
    ):
        await gates.require(interaction, "staff")
        record = await deps.activity.log(
            guild_id=interaction.guild_id,
            user_id=interaction.user.id,
            activity=activity,
            hours=hours,
        )
        suffix = f" ({record.hours} hours)" if record.hours > 0 else ""
        await reply_ephemeral(interaction, f"Activity logged: {record.activity}{suffix}")

    @bot.tree.command(name="staffreport", description="View staff activity")
    @app_commands.guild_only()
    @app_commands.describe(period="Time window", user="Limit the report to one staff member")
    @app_commands.choices(
        period=[
            app_commands.Choice(name="Today", value="today"),
            app_commands.Choice(name="This Week", value="week"),
            app_commands.Choice(name="This Month", value="month"),
        ]
    )
    async def staffreport_command(
        interaction: discord.Interaction,
        period: app_commands.Choice[str] | None = None,
        user: discord.User | None = None,
    ):
        await gates.require(interaction, "hr")
        key = period.value if period else "week"
        report = await deps.activity.report(
            guild_id=interaction.guild_id,
            period=key,
            user_id=user.id if user else None,
        )
        if not report.totals:
            await reply_ephemeral(interaction, f"No activity found for the specified {key}.")
            return
        await reply_ephemeral(interaction, embed=build_report_embed(report, user))

    @bot.tree.command(name="tag", description="Show a saved tag")
    @app_commands.guild_only()
    @app_commands.describe(name="Tag name")
    async def tag_command(interaction: discord.Interaction, name: str):
        await gates.require(interaction, None)
        content = await deps.tags.resolve(guild_id=interaction.guild_id, name=name)
        await interaction.response.send_message(content, allowed_mentions=discord.AllowedMentions.none())

    tag_group = app_commands.Group(name="tag-manage", description="Manage saved tags", guild_only=True)

    @tag_group.command(name="create", description="Create a tag")
    @app_commands.describe(name="Tag name", content="Tag content")
    async def tag_create(interaction: discord.Interaction, name: str, content: str):
        await gates.require(interaction, "hr")
        tag = await deps.tags.create(
            guild_id=interaction.guild_id,
            name=name,
            content=content,
            actor_id=interaction.user.id,
        )
        await reply_ephemeral(interaction, f'Tag "{tag.name}" created successfully.')

    @tag_group.command(name="delete", description="Delete a tag")
    @app_commands.describe(name="Tag name")
    async def tag_delete(interaction: discord.Interaction, name: str):
        await gates.require(interaction, "hr")
        await deps.tags.delete(guild_id=interaction.guild_id, name=name)
        await reply_ephemeral(interaction, f'Tag "{name.strip().lower()}" deleted successfully.')

    @tag_group.command(name="list", description="List tags")
    async def tag_list(interaction: discord.Interaction):
        await gates.require(interaction, "hr")
        tags = await deps.tags.list(interaction.guild_id)
        if not tags:
            await reply_ephemeral(interaction, "No tags found.")
            return
        embed = discord.Embed(
            title="Available Tags",
            color=EMBED_COLORS["info"],
            description=", ".join(f"`{t.name}`" for t in tags)[:4000],
        )
        await reply_ephemeral(interaction, embed=embed)

    bot.tree.add_command(tag_group)

    oncall_group = app_commands.Group(name="oncall", description="Staff on-call roster", guild_only=True)

    @oncall_group.command(name="set", description="Mark yourself as on-call")
    async def oncall_set(interaction: discord.Interaction):
        await gates.require(interaction, "staff")
        _, changed = await deps.roster.set(guild_id=interaction.guild_id, user_id=interaction.user.id)
        await reply_ephemeral(
            interaction,
            "You are now marked as on-call." if changed else "You are already marked as on-call.",
        )

    @oncall_group.command(name="unset", description="Remove yourself from on-call")
    async def oncall_unset(interaction: discord.Interaction):
        await gates.require(interaction, "staff")
        changed = await deps.roster.unset(guild_id=interaction.guild_id, user_id=interaction.user.id)
        await reply_ephemeral(
            interaction,
            "You are no longer on-call." if changed else "You were not on-call.",
        )

    @oncall_group.command(name="list", description="List on-call staff")
    async def oncall_list(interaction: discord.Interaction):
        await gates.require(interaction, "staff")
        entries = await deps.roster.list_active(interaction.guild_id)
        if not entries:
            await reply_ephemeral(interaction, "No staff members are currently on-call.")
            return
        await reply_ephemeral(interaction, embed=build_oncall_embed(entries))

    bot.tree.add_command(oncall_group)
