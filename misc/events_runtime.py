from __future__ import annotations

import asyncio

import discord
from discord.ext import commands

from misc.commands.command_errors import install_tree_error_handler
from misc.runtime_deps import RuntimeBootDeps
from staff.errors import StaffError


def register_runtime_events(
    bot: commands.Bot,
    *,
    boot: RuntimeBootDeps,
) -> None:
    install_tree_error_handler(bot)

    if boot.dynamic_items:
        bot.add_dynamic_items(*boot.dynamic_items)

    @bot.event
    async def on_ready():
        print(f"Staff desk is online as {bot.user} guilds={len(bot.guilds)}")

        if boot.sync_commands and not getattr(bot, "_commands_synced", False):
            try:
                synced = await bot.tree.sync()
                bot._commands_synced = True
                print(f"[Commands] synced {len(synced)} application commands")
            except discord.HTTPException as e:
                print(f"[Commands] command sync failed: {e!r}")

        if boot.sweeps_enabled and boot.scheduler_loop_func and not getattr(bot, "_scheduler_task", None):
            bot._scheduler_task = asyncio.create_task(boot.scheduler_loop_func())
            print("[Scheduler] sweep loop started")

    @bot.event
    async def on_message(message: discord.Message):
        if message.author.bot or message.guild is None:
            return
        await bot.process_commands(message)

    @bot.event
    async def on_command_error(ctx: commands.Context, error: commands.CommandError):
        if isinstance(error, commands.CommandNotFound):
            return
        original = getattr(error, "original", error)
        if isinstance(original, StaffError):
            await ctx.reply(original.user_message, mention_author=False)
            return
        if isinstance(original, commands.NoPrivateMessage):
            await ctx.reply("This command can only be used in a server.", mention_author=False)
            return
        print(f"[Commands] prefix command {ctx.command} failed guild={getattr(ctx.guild, 'id', None)}: {original!r}")
        await ctx.reply("Something went wrong while handling that.", mention_author=False)
