from __future__ import annotations

import discord

from staff.errors import InvalidInput
from staff.models import GuildConfig
from staff.permissions import require_tier


def member_role_ids(member) -> set[int]:
    return {int(r.id) for r in (getattr(member, "roles", None) or [])}


def member_is_administrator(member) -> bool:
    perms = getattr(member, "guild_permissions", None)
    return bool(getattr(perms, "administrator", False))


def require_guild(interaction: discord.Interaction) -> int:
    if interaction.guild_id is None:
        raise InvalidInput("This command can only be used in a server.")
    return int(interaction.guild_id)


async def gate_interaction(interaction: discord.Interaction, config_store, tier: str | None) -> GuildConfig:
    """Load the guild config and enforce `tier` for the invoking member (None = open to everyone)."""
    guild_id = require_guild(interaction)
    cfg = await config_store.get(guild_id)
    if tier is not None:
        member = interaction.user
        require_tier(member_role_ids(member), member_is_administrator(member), tier, cfg)
    return cfg
