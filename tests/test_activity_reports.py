from __future__ import annotations

import unittest
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from staff.activity import period_start
from staff.activity import summarize_activity
from staff.errors import InvalidInput
from staff.models import ActivityLogRecord

from staff_fakes import GUILD_ID
from staff_fakes import build_services


ALICE = 90001
BOB = 90002


class PeriodStartTests(unittest.TestCase):
    def test_today_starts_at_local_midnight(self):
        now = datetime(2026, 3, 4, 3, 30, tzinfo=timezone.utc)
        start = period_start("today", now, ZoneInfo("America/New_York"))
        # 2026-03-03 22:30 in New York, so the local day began 2026-03-03 05:00 UTC
        self.assertEqual(start, datetime(2026, 3, 3, 5, 0, tzinfo=timezone.utc))

    def test_week_is_seven_days_back(self):
        now = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)
        self.assertEqual(period_start("week", now, ZoneInfo("UTC")), datetime(2026, 2, 25, 12, 0, tzinfo=timezone.utc))

    def test_month_clamps_to_shorter_month(self):
        now = datetime(2026, 3, 31, 8, 0, tzinfo=timezone.utc)
        self.assertEqual(period_start("month", now, ZoneInfo("UTC")), datetime(2026, 2, 28, 8, 0, tzinfo=timezone.utc))

    def test_january_rolls_back_a_year(self):
        now = datetime(2026, 1, 15, tzinfo=timezone.utc)
        self.assertEqual(period_start("month", now, ZoneInfo("UTC")), datetime(2025, 12, 15, tzinfo=timezone.utc))

    def test_unknown_period(self):
        with self.assertRaises(InvalidInput):
            period_start("year", datetime(2026, 1, 1, tzinfo=timezone.utc))


class SummaryTests(unittest.TestCase):
    def test_busiest_first(self):
        entries = [
            ActivityLogRecord(id=1, guild_id=1, user_id=ALICE, activity="a", hours=1, logged_at_utc="t"),
            ActivityLogRecord(id=2, guild_id=1, user_id=BOB, activity="b", hours=3, logged_at_utc="t"),
            ActivityLogRecord(id=3, guild_id=1, user_id=ALICE, activity="c", hours=1, logged_at_utc="t"),
        ]
        totals = summarize_activity(entries)
        self.assertEqual([(t.user_id, t.count, t.hours) for t in totals], [(BOB, 1, 3), (ALICE, 2, 2)])


class ActivityServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.svc = build_services()

    async def asyncTearDown(self):
        self.svc.storage.close()

    async def _log(self, user_id: int, activity: str, hours: int = 0):
        return await self.svc.activity.log(guild_id=GUILD_ID, user_id=user_id, activity=activity, hours=hours)

    async def test_log_validates_input(self):
        with self.assertRaises(InvalidInput):
            await self._log(ALICE, "   ")
        with self.assertRaises(InvalidInput):
            await self._log(ALICE, "Tickets", hours=-1)
        with self.assertRaises(InvalidInput):
            await self._log(ALICE, "x" * 501)
        record = await self._log(ALICE, "  Handled tickets  ", hours=2)
        self.assertEqual(record.activity, "Handled tickets")
        self.assertEqual(record.hours, 2)

    async def test_weekly_report_excludes_old_entries(self):
        await self._log(ALICE, "Old shift", hours=8)
        self.svc.clock.advance(days=8)
        await self._log(ALICE, "Tickets", hours=2)
        await self._log(BOB, "Events", hours=5)

        report = await self.svc.activity.report(guild_id=GUILD_ID, period="week")
        self.assertEqual([(t.user_id, t.hours) for t in report.totals], [(BOB, 5), (ALICE, 2)])
        self.assertEqual(report.total_hours, 7)
        self.assertEqual(report.entries[0].activity, "Events")

    async def test_user_report_lists_newest_ten(self):
        for i in range(12):
            self.svc.clock.advance(minutes=5)
            await self._log(ALICE, f"Task {i}", hours=1)
        await self._log(BOB, "Not included")

        report = await self.svc.activity.report(guild_id=GUILD_ID, period="today", user_id=ALICE)
        self.assertEqual(len(report.entries), 10)
        self.assertEqual(report.entries[0].activity, "Task 11")
        self.assertEqual(report.totals[0].count, 12)
        self.assertEqual(report.total_hours, 12)

    async def test_empty_report(self):
        report = await self.svc.activity.report(guild_id=GUILD_ID, period="month")
        self.assertEqual(report.totals, [])
        self.assertEqual(report.entries, [])

    async def test_weekly_digest_matches_week_report(self):
        await self._log(ALICE, "Tickets", hours=3)
        digest = await self.svc.activity.weekly_digest(guild_id=GUILD_ID)
        self.assertEqual(digest.period, "week")
        self.assertEqual([t.user_id for t in digest.totals], [ALICE])


if __name__ == "__main__":
    unittest.main()
