from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from staff.errors import DuplicatePending
from staff.errors import FeatureDisabled
from staff.errors import NotFound
from staff.lifecycle_store import fetch_audit_log_sync
from staff.loa_policy import LoaExpiryPolicy
from staff.loa_policy import parse_leave_duration
from staff.models import LoaRecord

from staff_fakes import GUILD_ID
from staff_fakes import build_services
from staff_fakes import configure_guild
from staff_fakes import fields_of


MEMBER = 60001
REVIEWER = 60002


class LeaveDurationTests(unittest.TestCase):
    def test_common_phrasings(self):
        self.assertEqual(parse_leave_duration("1 week"), timedelta(days=7))
        self.assertEqual(parse_leave_duration("3 days"), timedelta(days=3))
        self.assertEqual(parse_leave_duration("12h"), timedelta(hours=12))
        self.assertEqual(parse_leave_duration("a month"), timedelta(days=30))
        self.assertEqual(parse_leave_duration("  Two   Weeks "), timedelta(days=14))

    def test_unrecognized_text_is_none(self):
        self.assertIsNone(parse_leave_duration("until finals are over"))
        self.assertIsNone(parse_leave_duration("0 days"))
        self.assertIsNone(parse_leave_duration("5 fortnights"))
        self.assertIsNone(parse_leave_duration(""))

    def test_policy_falls_back_to_retention_window(self):
        policy = LoaExpiryPolicy(retention_days=30)
        record = LoaRecord(
            id=1,
            guild_id=GUILD_ID,
            user_id=MEMBER,
            duration="until finals are over",
            reason="exams",
            requested_at_utc="2026-03-01T00:00:00+00:00",
            status="approved",
            approved_at_utc="2026-03-01T00:00:00+00:00",
        )
        self.assertEqual(policy.expires_at(record), datetime(2026, 3, 31, tzinfo=timezone.utc))
        self.assertFalse(policy.is_expired(record, datetime(2026, 3, 30, tzinfo=timezone.utc)))
        self.assertTrue(policy.is_expired(record, datetime(2026, 3, 31, tzinfo=timezone.utc)))

    def test_pending_records_never_expire(self):
        record = LoaRecord(
            id=1,
            guild_id=GUILD_ID,
            user_id=MEMBER,
            duration="1 day",
            reason="trip",
            requested_at_utc="2026-03-01T00:00:00+00:00",
        )
        self.assertIsNone(LoaExpiryPolicy().expires_at(record))
        self.assertFalse(LoaExpiryPolicy().is_expired(record, datetime(2027, 1, 1, tzinfo=timezone.utc)))


class LoaLifecycleTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.svc = build_services()
        await configure_guild(self.svc.config_store)

    async def asyncTearDown(self):
        self.svc.storage.close()

    async def _request(self, duration: str = "1 week", user_id: int = MEMBER):
        return await self.svc.lifecycle.request_loa(
            guild_id=GUILD_ID,
            user_id=user_id,
            duration=duration,
            reason="Family trip",
        )

    async def test_request_creates_pending_and_logs(self):
        record = await self._request()
        self.assertEqual(record.status, "pending")
        pending = await self.svc.lifecycle.list_pending_loas(GUILD_ID)
        self.assertEqual([r.id for r in pending], [record.id])
        audit = await self.svc.storage.run(fetch_audit_log_sync, guild_id=GUILD_ID)
        self.assertEqual(audit[0].action, "LOA Requested")
        self.assertEqual(audit[0].actor_user_id, MEMBER)

    async def test_duplicate_pending_request_is_rejected(self):
        await self._request()
        with self.assertRaises(DuplicatePending):
            await self._request("2 days")

    async def test_disabled_feature_refuses_requests(self):
        await configure_guild(self.svc.config_store, loa_enabled=False)
        with self.assertRaises(FeatureDisabled):
            await self._request()

    async def test_approve_moves_to_active_and_reports_end(self):
        await self._request("1 week")
        record = await self.svc.lifecycle.approve_loa(guild_id=GUILD_ID, user_id=MEMBER, actor_id=REVIEWER)
        self.assertEqual(record.status, "approved")
        self.assertEqual(record.approved_by, REVIEWER)
        self.assertEqual(await self.svc.lifecycle.list_pending_loas(GUILD_ID), [])
        active = await self.svc.lifecycle.list_active_loas(GUILD_ID)
        self.assertEqual([r.user_id for r in active], [MEMBER])

        uid, dm = self.svc.notifier.direct_sent[-1]
        self.assertEqual(uid, MEMBER)
        self.assertEqual(dm.title, "LOA Approved")
        ends = datetime(2026, 3, 11, 12, 0, tzinfo=timezone.utc)
        self.assertEqual(fields_of(dm)["Ends"], f"<t:{int(ends.timestamp())}:D>")

    async def test_deny_and_missing_request(self):
        await self._request()
        record = await self.svc.lifecycle.deny_loa(
            guild_id=GUILD_ID,
            user_id=MEMBER,
            reason="Event week",
            actor_id=REVIEWER,
        )
        self.assertEqual(record.status, "denied")
        self.assertEqual(record.denial_reason, "Event week")
        with self.assertRaises(NotFound):
            await self.svc.lifecycle.approve_loa(guild_id=GUILD_ID, user_id=MEMBER, actor_id=REVIEWER)

    async def test_sweep_expires_once_after_duration(self):
        await self._request("1 week")
        await self.svc.lifecycle.approve_loa(guild_id=GUILD_ID, user_id=MEMBER, actor_id=REVIEWER)

        self.svc.clock.advance(days=6)
        self.assertEqual(await self.svc.lifecycle.sweep_loa_expirations(), [])

        self.svc.clock.advance(days=1)
        expired = await self.svc.lifecycle.sweep_loa_expirations()
        self.assertEqual([r.user_id for r in expired], [MEMBER])
        self.assertEqual(expired[0].status, "expired")
        self.assertEqual(self.svc.notifier.dm_titles(MEMBER)[-1], "LOA Ended")
        self.assertEqual(await self.svc.lifecycle.list_active_loas(GUILD_ID), [])

        audit = await self.svc.storage.run(fetch_audit_log_sync, guild_id=GUILD_ID, subject_user_id=MEMBER)
        self.assertEqual(audit[0].action, "LOA Expired")
        self.assertIsNone(audit[0].actor_user_id)

        self.svc.clock.advance(days=1)
        self.assertEqual(await self.svc.lifecycle.sweep_loa_expirations(), [])

    async def test_sweep_accepts_naive_now_as_utc(self):
        await self._request("1 week")
        await self.svc.lifecycle.approve_loa(guild_id=GUILD_ID, user_id=MEMBER, actor_id=REVIEWER)
        expired = await self.svc.lifecycle.sweep_loa_expirations(datetime(2026, 3, 11, 12, 0))
        self.assertEqual([r.user_id for r in expired], [MEMBER])
        self.assertEqual(expired[0].expired_at_utc, "2026-03-11T12:00:00+00:00")

    async def test_policy_error_in_one_guild_does_not_stop_others(self):
        other_guild = GUILD_ID + 1
        await self._request("1 day")
        await self.svc.lifecycle.approve_loa(guild_id=GUILD_ID, user_id=MEMBER, actor_id=REVIEWER)
        await self.svc.lifecycle.request_loa(guild_id=other_guild, user_id=MEMBER, duration="1 day", reason="Trip")
        await self.svc.lifecycle.approve_loa(guild_id=other_guild, user_id=MEMBER, actor_id=REVIEWER)

        policy = self.svc.lifecycle.loa_policy

        class BrokenForFirstGuild(LoaExpiryPolicy):
            def is_expired(self, record, now):
                if record.guild_id == GUILD_ID:
                    raise TypeError("bad record")
                return policy.is_expired(record, now)

        self.svc.lifecycle.loa_policy = BrokenForFirstGuild()
        self.svc.clock.advance(days=2)
        expired = await self.svc.lifecycle.sweep_loa_expirations()
        self.assertEqual([r.guild_id for r in expired], [other_guild])
        self.assertEqual(len(await self.svc.lifecycle.list_active_loas(GUILD_ID)), 1)

    async def test_member_can_request_again_after_expiry(self):
        await self._request("2 days")
        await self.svc.lifecycle.approve_loa(guild_id=GUILD_ID, user_id=MEMBER, actor_id=REVIEWER)
        self.svc.clock.advance(days=3)
        await self.svc.lifecycle.sweep_loa_expirations()
        record = await self._request("1 day")
        self.assertEqual(record.status, "pending")


if __name__ == "__main__":
    unittest.main()
