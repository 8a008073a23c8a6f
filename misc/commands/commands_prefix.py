from __future__ import annotations

import time

import discord
from discord.ext import commands

from config.defaults import DEFAULT_PREFIX
from config.defaults import EMBED_COLORS
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from staff.permissions import highest_tier


def build_prefix_resolver(config_store):
    """Per-guild prefix from GuildConfig; mentions always work, DMs use the default prefix."""

    async def resolve_prefix(bot: commands.Bot, message: discord.Message):
        prefix = DEFAULT_PREFIX
        if message.guild is not None:
            try:
                cfg = await config_store.get(message.guild.id)
                prefix = cfg.prefix or DEFAULT_PREFIX
            except Exception as e:
                print(f"[Commands] prefix lookup failed guild={message.guild.id}: {e!r}")
        return commands.when_mentioned_or(prefix)(bot, message)

    return resolve_prefix


def build_help_embed(prefix: str) -> discord.Embed:
    embed = discord.Embed(
        title="Staff Bot Help",
        description="This bot manages staff and HR operations. Use slash commands for full functionality.",
        color=EMBED_COLORS["info"],
    )
    embed.add_field(
        name="Quick Commands",
        value=(
            f"`{prefix}ping` - Check bot latency\n"
            f"`{prefix}help` - Show this help\n"
            f"`{prefix}oncall` - List on-call staff"
        ),
        inline=False,
    )
    embed.add_field(
        name="Main Commands",
        value=(
            "Use `/` commands for all features:\n"
            "- `/apply` - Apply for staff\n"
            "- `/warn` - Issue warnings\n"
            "- `/loa` - Request leave\n"
            "- `/announce` - Make announcements\n"
            "- `/tag` - Show a saved snippet"
        ),
        inline=False,
    )
    embed.add_field(name="Configuration", value="Use `/config set` and `/config view` to set up channels and roles", inline=False)
    return embed


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    @bot.command(name="ping")
    async def ping_command(ctx: commands.Context):
        started = time.perf_counter()
        msg = await ctx.reply("Pong!", mention_author=False)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        await msg.edit(content=f"Pong! Latency: {elapsed_ms}ms (gateway {int(bot.latency * 1000)}ms)")

    @bot.command(name="help")
    async def help_command(ctx: commands.Context):
        embed = build_help_embed(ctx.clean_prefix)
        if ctx.guild is not None:
            cfg = await deps.config_store.get(ctx.guild.id)
            tier = highest_tier((r.id for r in getattr(ctx.author, "roles", [])), cfg)
            embed.set_footer(text=f"Your staff tier: {tier or 'none'}")
        await ctx.reply(embed=embed, mention_author=False)

    @bot.command(name="oncall")
    @commands.guild_only()
    async def oncall_command(ctx: commands.Context):
        cfg = await deps.config_store.get(ctx.guild.id)
        if not gates.member_allowed(ctx.author, "staff", cfg):
            await ctx.reply("You need staff permissions to check on-call status.", mention_author=False)
            return
        entries = await deps.roster.list_active(ctx.guild.id)
        if not entries:
            await ctx.reply("No staff members are currently on-call.", mention_author=False)
            return
        mentions = ", ".join(f"<@{e.user_id}>" for e in entries)
        await ctx.reply(
            f"On-call staff: {mentions}",
            mention_author=False,
            allowed_mentions=discord.AllowedMentions.none(),
        )
