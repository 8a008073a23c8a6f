from __future__ import annotations

import traceback

import discord
from discord import app_commands

from staff.errors import StaffError


GENERIC_FAILURE = "Something went wrong while handling that. The error has been logged."


async def reply_ephemeral(interaction: discord.Interaction, content: str | None = None, *, embed: discord.Embed | None = None) -> None:
    if interaction.response.is_done():
        await interaction.followup.send(content, embed=embed, ephemeral=True)
    else:
        await interaction.response.send_message(content, embed=embed, ephemeral=True)


def unwrap_error(error: BaseException) -> BaseException:
    if isinstance(error, app_commands.CommandInvokeError):
        return error.original
    return error


async def render_interaction_error(interaction: discord.Interaction, error: BaseException, *, where: str) -> None:
    """StaffError becomes an ephemeral reply; anything else is logged and reported generically."""
    original = unwrap_error(error)
    if isinstance(original, StaffError):
        message = original.user_message
    elif isinstance(original, app_commands.CheckFailure):
        message = str(original) or "You cannot use this command here."
    else:
        user_id = getattr(interaction.user, "id", None)
        print(f"[Commands] {where} failed guild={interaction.guild_id} user={user_id}: {original!r}")
        traceback.print_exception(type(original), original, original.__traceback__)
        message = GENERIC_FAILURE
    try:
        await reply_ephemeral(interaction, message)
    except discord.HTTPException as e:
        print(f"[Commands] could not report failure for {where}: {e!r}")


def install_tree_error_handler(bot) -> None:
    @bot.tree.error
    async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError):
        name = getattr(interaction.command, "qualified_name", None) or "command"
        await render_interaction_error(interaction, error, where=f"/{name}")
