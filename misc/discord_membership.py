from __future__ import annotations

import discord

from staff.errors import GrantFailed
from staff.errors import NotFound


class DiscordMembership:
    """Membership collaborator: reads and mutates a member's roles through discord.py."""

    def __init__(self, bot) -> None:
        self.bot = bot

    async def _member(self, guild_id: int, user_id: int) -> discord.Member:
        guild = self.bot.get_guild(int(guild_id))
        if guild is None:
            raise NotFound("This server is not available to the bot.")
        member = guild.get_member(int(user_id))
        if member is not None:
            return member
        try:
            return await guild.fetch_member(int(user_id))
        except discord.NotFound:
            raise NotFound("That user is not a member of this server.") from None

    async def role_ids(self, guild_id: int, user_id: int) -> set[int]:
        member = await self._member(guild_id, user_id)
        return {int(r.id) for r in member.roles}

    async def add_roles(self, guild_id: int, user_id: int, role_ids: list[int], *, reason: str) -> None:
        member = await self._member(guild_id, user_id)
        try:
            await member.add_roles(*(discord.Object(id=int(r)) for r in role_ids), reason=reason[:512])
        except (discord.Forbidden, discord.HTTPException) as e:
            print(f"[Roles] add failed guild={guild_id} user={user_id} roles={role_ids}: {e!r}")
            raise GrantFailed("I could not grant that role. Check my role position and permissions.") from e

    async def remove_roles(self, guild_id: int, user_id: int, role_ids: list[int], *, reason: str) -> None:
        member = await self._member(guild_id, user_id)
        try:
            await member.remove_roles(*(discord.Object(id=int(r)) for r in role_ids), reason=reason[:512])
        except (discord.Forbidden, discord.HTTPException) as e:
            print(f"[Roles] remove failed guild={guild_id} user={user_id} roles={role_ids}: {e!r}")
            raise GrantFailed("I could not remove staff roles. Check my role position and permissions.") from e
