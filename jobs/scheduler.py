from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable
from zoneinfo import ZoneInfo

from config.defaults import DEFAULT_SCHEDULER_TICK_SECONDS
from config.defaults import DEFAULT_SWEEP_GRACE_MINUTES
from config.defaults import DEFAULT_TIMEZONE
from staff.clock import Clock, utc_iso, utc_now
from staff.records_store import claim_sweep_run_sync


SweepJob = Callable[[datetime], Awaitable[object]]


def parse_hhmm(value: str) -> tuple[int, int]:
    v = (value or "").strip()
    m = re.fullmatch(r"([01]\d|2[0-3]):([0-5]\d)", v)
    if not m:
        raise ValueError(f"Invalid HH:MM time: {value}")
    return int(m.group(1)), int(m.group(2))


@dataclass(frozen=True, slots=True)
class TimeTrigger:
    name: str
    hour: int
    minute: int
    weekday: int | None = None  # datetime.weekday(); None fires every day

    @classmethod
    def at(cls, name: str, hhmm: str, *, weekday: int | None = None) -> "TimeTrigger":
        hour, minute = parse_hhmm(hhmm)
        if weekday is not None and not 0 <= int(weekday) <= 6:
            raise ValueError(f"Invalid weekday: {weekday} (expected 0..6)")
        return cls(name=name, hour=hour, minute=minute, weekday=weekday)

    def latest_occurrence(self, now_local: datetime) -> datetime:
        """Most recent scheduled local time at or before `now_local`."""
        candidate = now_local.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if self.weekday is None:
            if candidate > now_local:
                candidate -= timedelta(days=1)
            return candidate
        candidate -= timedelta(days=(now_local.weekday() - self.weekday) % 7)
        if candidate > now_local:
            candidate -= timedelta(days=7)
        return candidate

    @staticmethod
    def run_key(occurrence: datetime) -> str:
        return occurrence.strftime("%Y-%m-%dT%H:%M")


class SweepScheduler:
    """Fires each registered trigger at most once per occurrence.

    A trigger is due when local time has passed its slot by no more than the grace
    window; the (trigger, occurrence) key is claimed in storage before the job runs,
    so restarts and overlapping ticks do not double-fire.
    """

    def __init__(
        self,
        *,
        storage,
        timezone_name: str = DEFAULT_TIMEZONE,
        grace_minutes: int = DEFAULT_SWEEP_GRACE_MINUTES,
        clock: Clock | None = None,
    ) -> None:
        self.storage = storage
        self.grace = timedelta(minutes=max(1, int(grace_minutes)))
        self.clock = clock or utc_now
        try:
            self.tz = ZoneInfo((timezone_name or DEFAULT_TIMEZONE).strip() or DEFAULT_TIMEZONE)
        except Exception:
            print(f"[Scheduler] unknown timezone {timezone_name!r}; using {DEFAULT_TIMEZONE}")
            self.tz = ZoneInfo(DEFAULT_TIMEZONE)
        self._jobs: list[tuple[TimeTrigger, SweepJob]] = []

    @property
    def triggers(self) -> list[TimeTrigger]:
        return [t for t, _ in self._jobs]

    def register(self, trigger: TimeTrigger, job: SweepJob) -> None:
        if any(t.name == trigger.name for t in self.triggers):
            raise ValueError(f"Duplicate trigger name: {trigger.name}")
        self._jobs.append((trigger, job))

    async def run_tick(self, now: datetime | None = None) -> list[str]:
        now_utc = now or self.clock()
        now_local = now_utc.astimezone(self.tz)
        fired: list[str] = []
        for trigger, job in self._jobs:
            occurrence = trigger.latest_occurrence(now_local)
            if now_local - occurrence > self.grace:
                continue
            claimed = await self.storage.run(
                claim_sweep_run_sync,
                job_name=trigger.name,
                run_key=trigger.run_key(occurrence),
                ran_at_utc=utc_iso(now_utc),
            )
            if not claimed:
                continue
            print(f"[Scheduler] running {trigger.name} for {trigger.run_key(occurrence)}")
            fired.append(trigger.name)
            try:
                await job(now_utc)
            except Exception as e:
                print(f"[Scheduler] {trigger.name} failed: {e!r}")
        return fired

    async def run_forever(self, interval_seconds: int = DEFAULT_SCHEDULER_TICK_SECONDS) -> None:
        while True:
            try:
                await self.run_tick()
            except Exception as e:
                print(f"[Scheduler] loop error: {e}")
            await asyncio.sleep(max(5, int(interval_seconds)))
