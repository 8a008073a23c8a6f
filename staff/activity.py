from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from config.defaults import DEFAULT_TIMEZONE
from config.defaults import REPORT_ACTIVITY_LIMIT
from config.defaults import REPORT_PERIODS
from staff.clock import Clock, utc_iso, utc_now
from staff.errors import InvalidInput
from staff.models import ActivityLogRecord
from staff.records_store import fetch_activity_since_sync
from staff.records_store import insert_activity_sync


ACTIVITY_MAX_CHARS = 500


@dataclass(slots=True)
class UserActivity:
    user_id: int
    count: int = 0
    hours: int = 0


@dataclass(slots=True)
class ActivityReport:
    guild_id: int
    period: str
    since_utc: str
    user_id: int | None
    totals: list[UserActivity]
    entries: list[ActivityLogRecord]

    @property
    def total_hours(self) -> int:
        return sum(t.hours for t in self.totals)


def _minus_one_month(dt: datetime) -> datetime:
    year, month = (dt.year - 1, 12) if dt.month == 1 else (dt.year, dt.month - 1)
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def period_start(period: str, now: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Start of a report window, in UTC. `today` starts at local midnight."""
    key = (period or "week").strip().lower()
    if key not in REPORT_PERIODS:
        raise InvalidInput(f"Period must be one of: {', '.join(REPORT_PERIODS)}.")
    local = now.astimezone(tz or ZoneInfo(DEFAULT_TIMEZONE))
    if key == "today":
        start = local.replace(hour=0, minute=0, second=0, microsecond=0)
    elif key == "week":
        start = local - timedelta(days=7)
    else:
        start = _minus_one_month(local)
    return start.astimezone(timezone.utc)


def summarize_activity(entries: list[ActivityLogRecord]) -> list[UserActivity]:
    """Count and hours per user, busiest first."""
    by_user: dict[int, UserActivity] = {}
    for entry in entries:
        stats = by_user.setdefault(entry.user_id, UserActivity(user_id=entry.user_id))
        stats.count += 1
        stats.hours += int(entry.hours or 0)
    return sorted(by_user.values(), key=lambda s: (-s.hours, -s.count, s.user_id))


class ActivityService:
    def __init__(self, *, storage, timezone_name: str = DEFAULT_TIMEZONE, clock: Clock | None = None) -> None:
        self.storage = storage
        self.clock = clock or utc_now
        try:
            self.tz = ZoneInfo(timezone_name or DEFAULT_TIMEZONE)
        except Exception:
            print(f"[CFG] unknown timezone {timezone_name!r}; falling back to {DEFAULT_TIMEZONE}")
            self.tz = ZoneInfo(DEFAULT_TIMEZONE)

    async def log(self, *, guild_id: int, user_id: int, activity: str, hours: int | None = 0) -> ActivityLogRecord:
        text = (activity or "").strip()
        if not text:
            raise InvalidInput("Describe the activity you are logging.")
        if len(text) > ACTIVITY_MAX_CHARS:
            raise InvalidInput(f"Activity descriptions are limited to {ACTIVITY_MAX_CHARS} characters.")
        hours = int(hours or 0)
        if hours < 0:
            raise InvalidInput("Hours cannot be negative.")
        return await self.storage.run(
            insert_activity_sync,
            guild_id=guild_id,
            user_id=user_id,
            activity=text,
            hours=hours,
            logged_at_utc=utc_iso(self.clock()),
        )

    async def report(
        self,
        *,
        guild_id: int,
        period: str = "week",
        user_id: int | None = None,
        now: datetime | None = None,
    ) -> ActivityReport:
        key = (period or "week").strip().lower()
        since = period_start(key, now or self.clock(), self.tz)
        entries = await self.storage.run(
            fetch_activity_since_sync,
            guild_id=guild_id,
            since_utc=utc_iso(since),
            user_id=user_id,
        )
        newest_first = sorted(entries, key=lambda e: (e.logged_at_utc, e.id), reverse=True)
        return ActivityReport(
            guild_id=guild_id,
            period=key,
            since_utc=utc_iso(since),
            user_id=user_id,
            totals=summarize_activity(entries),
            entries=newest_first[:REPORT_ACTIVITY_LIMIT],
        )

    async def weekly_digest(self, *, guild_id: int, now: datetime | None = None) -> ActivityReport:
        return await self.report(guild_id=guild_id, period="week", now=now)
