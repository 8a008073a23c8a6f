from __future__ import annotations

from typing import Any

import discord

from staff.notify import DELIVERED
from staff.notify import UNDELIVERABLE
from staff.notify import Notice


def notice_to_embed(notice: Notice) -> discord.Embed:
    embed = discord.Embed(
        title=notice.title[:256],
        description=notice.description[:4000] if notice.description else None,
        color=notice.color,
        timestamp=discord.utils.utcnow(),
    )
    for name, value in notice.fields[:25]:
        embed.add_field(name=name[:256], value=(value or "-")[:1024], inline=False)
    if notice.footer:
        embed.set_footer(text=notice.footer[:2048])
    return embed


class DiscordNotifier:
    """NotificationSink over a live discord.py client. Delivery failures become UNDELIVERABLE."""

    def __init__(self, bot) -> None:
        self.bot = bot

    async def _resolve_user(self, user_id: int):
        user = self.bot.get_user(int(user_id))
        if user is not None:
            return user
        return await self.bot.fetch_user(int(user_id))

    async def _resolve_channel(self, channel_id: int):
        channel = self.bot.get_channel(int(channel_id))
        if channel is not None:
            return channel
        return await self.bot.fetch_channel(int(channel_id))

    async def direct(self, user_id: int, notice: Notice) -> str:
        try:
            user = await self._resolve_user(user_id)
            await user.send(embed=notice_to_embed(notice))
        except (discord.Forbidden, discord.NotFound, discord.HTTPException) as e:
            print(f"[Notify] DM to user={user_id} failed: {e!r}")
            return UNDELIVERABLE
        return DELIVERED

    async def channel(self, channel_id: int, notice: Notice, *, content: str | None = None, view: Any = None) -> str:
        try:
            channel = await self._resolve_channel(channel_id)
            kwargs: dict[str, Any] = {"embed": notice_to_embed(notice)}
            if content:
                kwargs["content"] = content[:2000]
                kwargs["allowed_mentions"] = discord.AllowedMentions(roles=True, users=True, everyone=False)
            if view is not None:
                kwargs["view"] = view
            await channel.send(**kwargs)
        except (discord.Forbidden, discord.NotFound, discord.HTTPException) as e:
            print(f"[Notify] post to channel={channel_id} failed: {e!r}")
            return UNDELIVERABLE
        return DELIVERED
