from __future__ import annotations

import asyncio
import importlib


class _SilentNotifier:
    async def direct(self, user_id, notice):
        return "skipped"

    async def channel(self, channel_id, notice, *, content=None, view=None):
        return "skipped"


class _NoMembership:
    async def role_ids(self, guild_id, user_id):
        return set()

    async def add_roles(self, guild_id, user_id, role_ids, *, reason):
        return None

    async def remove_roles(self, guild_id, user_id, role_ids, *, reason):
        return None


def _try_import_or_skip(module_name: str, pip_name: str | None = None) -> bool:
    try:
        importlib.import_module(module_name)
        return True
    except ModuleNotFoundError:
        install_name = pip_name or module_name
        print(
            f"Smoke wiring check skipped: missing dependency '{module_name}'. "
            f"Install requirements and retry (e.g. `pip install {install_name}` "
            f"or `pip install -e .`)."
        )
        return False


def _main() -> int:
    if not _try_import_or_skip("discord", "discord.py") or not _try_import_or_skip("yaml", "PyYAML"):
        return 0

    import discord
    from discord.ext import commands

    from db.storage import Storage
    from jobs.scheduler import SweepScheduler
    from jobs.sweeps import StaffSweeps
    from misc.runtime_wiring import wire_bot_runtime
    from staff.activity import ActivityService
    from staff.config_store import ConfigStore
    from staff.feedback import FeedbackBox
    from staff.infractions import InfractionService
    from staff.lifecycle import LifecycleEngine
    from staff.notify import AuditTrail
    from staff.roles import StaffRoleService
    from staff.roster import OnCallRoster
    from staff.tags import TagRegistry

    storage = Storage.open(":memory:")
    try:
        config_store = ConfigStore(storage)
        notifier = _SilentNotifier()
        membership = _NoMembership()
        audit = AuditTrail(storage=storage, config_store=config_store, notifier=notifier)
        lifecycle = LifecycleEngine(
            storage=storage,
            config_store=config_store,
            membership=membership,
            notifier=notifier,
            audit=audit,
        )
        activity = ActivityService(storage=storage)
        scheduler = SweepScheduler(storage=storage)
        StaffSweeps(
            config_store=config_store,
            lifecycle=lifecycle,
            activity=activity,
            notifier=notifier,
        ).register_all(scheduler)

        bot = commands.Bot(command_prefix="-", intents=discord.Intents.none(), help_command=None)
        wire_bot_runtime(
            bot,
            storage=storage,
            config_store=config_store,
            notifier=notifier,
            lifecycle=lifecycle,
            roles=StaffRoleService(
                storage=storage,
                config_store=config_store,
                membership=membership,
                notifier=notifier,
                audit=audit,
            ),
            infractions=InfractionService(storage=storage, notifier=notifier, audit=audit),
            tags=TagRegistry(storage=storage),
            activity=activity,
            roster=OnCallRoster(storage=storage),
            feedback=FeedbackBox(storage=storage, config_store=config_store, notifier=notifier),
            scheduler_loop_func=lambda: scheduler.run_forever(30),
            sweeps_enabled=False,
            sync_commands=False,
        )

        expected_slash = {
            "config",
            "apply",
            "application",
            "warn",
            "infractions",
            "clearinfractions",
            "terminate",
            "promote",
            "demote",
            "loa",
            "loa-manage",
            "announce",
            "feedback",
            "logactivity",
            "staffreport",
            "tag",
            "tag-manage",
            "oncall",
        }
        existing_slash = {c.name for c in bot.tree.get_commands()}
        missing = sorted(expected_slash - existing_slash)
        if missing:
            raise RuntimeError(f"Missing expected slash commands: {missing}")

        missing_prefix = sorted({"ping", "help", "oncall"} - set(bot.all_commands.keys()))
        if missing_prefix:
            raise RuntimeError(f"Missing expected prefix commands: {missing_prefix}")

        if not hasattr(bot, "on_ready"):
            raise RuntimeError("Runtime events were not registered")

        fired = asyncio.run(scheduler.run_tick())
        print(f"Scheduler tick fired: {fired or 'nothing due'}")
    finally:
        storage.close()

    print("Smoke wiring check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
