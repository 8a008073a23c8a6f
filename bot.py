from __future__ import annotations

import os

import discord
from discord.ext import commands

from config.defaults import DEFAULT_LOA_RETENTION_DAYS
from config.defaults import DEFAULT_SCHEDULER_TICK_SECONDS
from config.defaults import DEFAULT_SWEEP_GRACE_MINUTES
from config.defaults import DEFAULT_TIMEZONE
from db.storage import Storage
from jobs.scheduler import SweepScheduler
from jobs.sweeps import StaffSweeps
from jobs.templates import default_templates_path
from jobs.templates import load_sweep_templates
from misc.commands.commands_prefix import build_prefix_resolver
from misc.discord_membership import DiscordMembership
from misc.discord_sink import DiscordNotifier
from misc.runtime_wiring import wire_bot_runtime
from staff.activity import ActivityService
from staff.config_store import ConfigStore
from staff.feedback import FeedbackBox
from staff.infractions import InfractionService
from staff.lifecycle import LifecycleEngine
from staff.loa_policy import LoaExpiryPolicy
from staff.notify import AuditTrail
from staff.roles import StaffRoleService
from staff.roster import OnCallRoster
from staff.tags import TagRegistry


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        print(f"[CFG] invalid {name}={raw!r}; falling back to {default}")
        return default


# =========================
# ENV
# =========================
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN")

if not DISCORD_TOKEN:
    raise RuntimeError("Missing DISCORD_TOKEN env var")

# Set this to a mounted volume path in hosted deployments
DB_PATH = os.getenv("STAFFDESK_DB_PATH", "staffdesk.db")

SWEEPS_ENABLED = os.getenv("STAFFDESK_SWEEPS_ENABLED", "1").strip() == "1"
SWEEP_TIMEZONE = os.getenv("STAFFDESK_TIMEZONE", DEFAULT_TIMEZONE).strip() or DEFAULT_TIMEZONE
SCHEDULER_TICK_SECONDS = max(5, _env_int("STAFFDESK_SCHEDULER_TICK_SECONDS", DEFAULT_SCHEDULER_TICK_SECONDS))
SWEEP_GRACE_MINUTES = max(1, _env_int("STAFFDESK_SWEEP_GRACE_MINUTES", DEFAULT_SWEEP_GRACE_MINUTES))
LOA_RETENTION_DAYS = max(1, _env_int("STAFFDESK_LOA_RETENTION_DAYS", DEFAULT_LOA_RETENTION_DAYS))
SWEEP_TEMPLATES_PATH = os.getenv("STAFFDESK_SWEEP_TEMPLATES_PATH", default_templates_path()).strip()

print(
    f"[CFG] db={DB_PATH} sweeps_enabled={SWEEPS_ENABLED} tz={SWEEP_TIMEZONE} "
    f"tick={SCHEDULER_TICK_SECONDS}s grace={SWEEP_GRACE_MINUTES}m loa_retention={LOA_RETENTION_DAYS}d"
)

SWEEP_TEMPLATES, _templates_warning = load_sweep_templates(SWEEP_TEMPLATES_PATH)
if _templates_warning:
    print(f"[CFG] {_templates_warning}")
print(f"[CFG] sweep_templates version={SWEEP_TEMPLATES.version} path={SWEEP_TEMPLATES_PATH}")

# =========================
# STORAGE
# =========================
try:
    storage = Storage.open(DB_PATH)
except Exception as e:
    raise RuntimeError(f"Could not open staff database at {DB_PATH}: {e!r}") from e

# =========================
# DISCORD CLIENT
# =========================
config_store = ConfigStore(storage)

intents = discord.Intents.default()
intents.message_content = True
intents.members = True

bot = commands.Bot(
    command_prefix=build_prefix_resolver(config_store),
    intents=intents,
    help_command=None,
)

notifier = DiscordNotifier(bot)
membership = DiscordMembership(bot)
audit = AuditTrail(storage=storage, config_store=config_store, notifier=notifier)

lifecycle = LifecycleEngine(
    storage=storage,
    config_store=config_store,
    membership=membership,
    notifier=notifier,
    audit=audit,
    loa_policy=LoaExpiryPolicy(LOA_RETENTION_DAYS),
)
roles = StaffRoleService(
    storage=storage,
    config_store=config_store,
    membership=membership,
    notifier=notifier,
    audit=audit,
)
infractions = InfractionService(storage=storage, notifier=notifier, audit=audit)
tags = TagRegistry(storage=storage)
activity = ActivityService(storage=storage, timezone_name=SWEEP_TIMEZONE)
roster = OnCallRoster(storage=storage)
feedback = FeedbackBox(storage=storage, config_store=config_store, notifier=notifier)

# =========================
# SWEEPS
# =========================
scheduler = SweepScheduler(
    storage=storage,
    timezone_name=SWEEP_TIMEZONE,
    grace_minutes=SWEEP_GRACE_MINUTES,
)
StaffSweeps(
    config_store=config_store,
    lifecycle=lifecycle,
    activity=activity,
    notifier=notifier,
    templates=SWEEP_TEMPLATES,
).register_all(scheduler)


async def scheduler_loop() -> None:
    return await scheduler.run_forever(SCHEDULER_TICK_SECONDS)


wire_bot_runtime(
    bot,
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
    scheduler_loop_func=scheduler_loop,
    sweeps_enabled=SWEEPS_ENABLED,
)


try:
    bot.run(DISCORD_TOKEN)
finally:
    storage.close()
