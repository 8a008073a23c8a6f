from __future__ import annotations

from typing import Iterable

from config.defaults import TIER_ORDER
from staff.errors import InvalidInput
from staff.errors import Unauthorized
from staff.models import GuildConfig


def tier_rank(tier: str) -> int:
    try:
        return TIER_ORDER.index(str(tier or "").strip().lower())
    except ValueError:
        raise InvalidInput(f"Unknown tier: {tier!r} (expected one of {', '.join(TIER_ORDER)})") from None


def authorize(
    member_role_ids: Iterable[int],
    member_is_administrator: bool,
    required_tier: str,
    config: GuildConfig,
) -> bool:
    """True when the member holds the required tier's role or any configured tier above it.

    An unset role for the required tier itself can never be satisfied by membership;
    only the platform administrator bypass remains.
    """
    start = tier_rank(required_tier)
    held = {int(r) for r in member_role_ids}

    if config.roles.role_for(TIER_ORDER[start]) is not None:
        for tier in TIER_ORDER[start:]:
            role_id = config.roles.role_for(tier)
            if role_id is None:
                continue
            if int(role_id) in held:
                return True

    return bool(member_is_administrator)


def require_tier(
    member_role_ids: Iterable[int],
    member_is_administrator: bool,
    required_tier: str,
    config: GuildConfig,
) -> None:
    if not authorize(member_role_ids, member_is_administrator, required_tier, config):
        raise Unauthorized(required_tier)


def highest_tier(member_role_ids: Iterable[int], config: GuildConfig) -> str | None:
    held = {int(r) for r in member_role_ids}
    for tier in reversed(TIER_ORDER):
        role_id = config.roles.role_for(tier)
        if role_id is not None and int(role_id) in held:
            return tier
    return None


def held_staff_roles(member_role_ids: Iterable[int], config: GuildConfig, tiers: Iterable[str]) -> dict[str, int]:
    """Map each tier in `tiers` the member currently holds to its configured role id."""
    held = {int(r) for r in member_role_ids}
    out: dict[str, int] = {}
    for tier in tiers:
        role_id = config.roles.role_for(tier)
        if role_id is not None and int(role_id) in held:
            out[tier] = int(role_id)
    return out
