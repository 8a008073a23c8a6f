from __future__ import annotations

from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.commands_applications import register as register_applications
from misc.commands.commands_community import register as register_community
from misc.commands.commands_config import register as register_config
from misc.commands.commands_discipline import register as register_discipline
from misc.commands.commands_loa import register as register_loa
from misc.commands.commands_prefix import register as register_prefix
from misc.discord_gates import gate_interaction
from misc.discord_gates import member_is_administrator
from misc.discord_gates import member_role_ids
from misc.events_runtime import register_runtime_events
from misc.runtime_deps import RuntimeBootDeps
from staff.permissions import authorize


def wire_bot_runtime(
    bot,
    *,
    storage,
    config_store,
    notifier,
    lifecycle,
    roles,
    infractions,
    tags,
    activity,
    roster,
    feedback,
    scheduler_loop_func,
    sweeps_enabled: bool,
    sync_commands: bool = True,
) -> None:
    async def require(interaction, tier: str | None):
        return await gate_interaction(interaction, config_store, tier)

    def member_allowed(member, tier: str, cfg) -> bool:
        return authorize(member_role_ids(member), member_is_administrator(member), tier, cfg)

    command_deps = CommandDeps(
        storage=storage,
        config_store=config_store,
        notifier=notifier,
        lifecycle=lifecycle,
        roles=roles,
        infractions=infractions,
        tags=tags,
        activity=activity,
        roster=roster,
        feedback=feedback,
    )
    command_gates = CommandGates(
        require=require,
        member_allowed=member_allowed,
    )

    register_config(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    review_items = register_applications(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_discipline(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_loa(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_community(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_prefix(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_runtime_events(
        bot,
        boot=RuntimeBootDeps(
            dynamic_items=tuple(review_items),
            sync_commands=sync_commands,
            sweeps_enabled=sweeps_enabled,
            scheduler_loop_func=scheduler_loop_func,
        ),
    )
