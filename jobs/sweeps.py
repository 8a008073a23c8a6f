from __future__ import annotations

from datetime import datetime

from config.defaults import DAILY_REMINDER_TIME_LOCAL
from config.defaults import EMBED_COLORS
from config.defaults import LOA_EXPIRY_TIME_LOCAL
from config.defaults import WEEKLY_DIGEST_TIME_LOCAL
from config.defaults import WEEKLY_DIGEST_WEEKDAY
from jobs.scheduler import SweepScheduler
from jobs.scheduler import TimeTrigger
from jobs.templates import SweepTemplates
from jobs.templates import default_sweep_templates
from staff.notify import DELIVERED
from staff.notify import Notice
from staff.notify import log_outcome


class StaffSweeps:
    """The three fixed-time sweeps. Each iterates configured guilds and isolates failures per guild."""

    def __init__(
        self,
        *,
        config_store,
        lifecycle,
        activity,
        notifier,
        templates: SweepTemplates | None = None,
    ) -> None:
        self.config_store = config_store
        self.lifecycle = lifecycle
        self.activity = activity
        self.notifier = notifier
        self.templates = templates or default_sweep_templates()

    async def daily_reminder(self, now: datetime) -> int:
        sent = 0
        for guild_id in await self.config_store.all_guild_ids():
            try:
                cfg = await self.config_store.get(guild_id)
                if not cfg.features.reminders_enabled or cfg.channels.announcements is None:
                    continue
                notice = Notice(
                    title=self.templates.daily_reminder_title,
                    description=self.templates.daily_reminder_text(),
                    color=EMBED_COLORS["info"],
                )
                outcome = await self.notifier.channel(cfg.channels.announcements, notice)
                log_outcome(outcome, what="daily_reminder", guild_id=guild_id, target_id=cfg.channels.announcements)
                if outcome == DELIVERED:
                    sent += 1
            except Exception as e:
                print(f"[Sweep] daily reminder failed guild={guild_id}: {e!r}")
        return sent

    async def weekly_digest(self, now: datetime) -> int:
        sent = 0
        for guild_id in await self.config_store.all_guild_ids():
            try:
                cfg = await self.config_store.get(guild_id)
                if cfg.channels.staff_log is None:
                    continue
                report = await self.activity.weekly_digest(guild_id=guild_id, now=now)
                if not report.totals:
                    continue
                lines = [
                    f"<@{stats.user_id}>: {stats.count} activities, {stats.hours} hours" for stats in report.totals
                ]
                notice = Notice(
                    title=self.templates.weekly_digest_title,
                    description="\n".join([self.templates.weekly_digest_description, "", *lines]),
                    color=EMBED_COLORS["report"],
                ).add_field("Total Hours", report.total_hours)
                outcome = await self.notifier.channel(cfg.channels.staff_log, notice)
                log_outcome(outcome, what="weekly_digest", guild_id=guild_id, target_id=cfg.channels.staff_log)
                if outcome == DELIVERED:
                    sent += 1
            except Exception as e:
                print(f"[Sweep] weekly digest failed guild={guild_id}: {e!r}")
        return sent

    async def loa_expiry(self, now: datetime) -> int:
        expired = await self.lifecycle.sweep_loa_expirations(now)
        return len(expired)

    def register_all(self, scheduler: SweepScheduler) -> None:
        scheduler.register(TimeTrigger.at("daily_reminder", DAILY_REMINDER_TIME_LOCAL), self.daily_reminder)
        scheduler.register(
            TimeTrigger.at("weekly_digest", WEEKLY_DIGEST_TIME_LOCAL, weekday=WEEKLY_DIGEST_WEEKDAY),
            self.weekly_digest,
        )
        scheduler.register(TimeTrigger.at("loa_expiry", LOA_EXPIRY_TIME_LOCAL), self.loa_expiry)
