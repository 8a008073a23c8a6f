from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from staff.models import GuildConfig


async def _deny_all(*args, **kwargs) -> GuildConfig:
    raise RuntimeError("command gates are not wired")


def _default_false(*args, **kwargs) -> bool:
    return False


@dataclass(frozen=True)
class CommandDeps:
    # Core/shared
    storage: Any = None
    config_store: Any = None
    notifier: Any = None

    # Staff services
    lifecycle: Any = None
    roles: Any = None
    infractions: Any = None
    tags: Any = None
    activity: Any = None
    roster: Any = None
    feedback: Any = None


@dataclass(frozen=True)
class CommandGates:
    # (interaction, tier | None) -> GuildConfig, raising Unauthorized when the tier is not met
    require: Callable[..., Awaitable[GuildConfig]] = _deny_all
    # (member, tier, config) -> bool, for prefix commands
    member_allowed: Callable[..., bool] = _default_false
