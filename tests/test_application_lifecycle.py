from __future__ import annotations

import unittest

from staff.errors import DuplicatePending
from staff.errors import FeatureDisabled
from staff.errors import GrantFailed
from staff.errors import InvalidInput
from staff.errors import NotFound
from staff.errors import RoleNotConfigured
from staff.lifecycle_store import deny_application_sync
from staff.lifecycle_store import fetch_audit_log_sync
from staff.lifecycle_store import insert_application_sync
from staff.lifecycle_store import list_applications_sync
from staff.models import ApplicationForm

from staff_fakes import CHANNEL_IDS
from staff_fakes import GUILD_ID
from staff_fakes import ROLE_IDS
from staff_fakes import build_services
from staff_fakes import configure_guild
from staff_fakes import fields_of


APPLICANT = 50001
REVIEWER = 50002


def _form(**overrides) -> ApplicationForm:
    values = {
        "name": "Sam Rivera",
        "age": "19",
        "experience": "Moderated two servers",
        "motivation": "Want to help the community",
        "availability": "10 hours per week",
    }
    values.update(overrides)
    return ApplicationForm(**values)


class ApplicationLifecycleTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.svc = build_services()
        await configure_guild(self.svc.config_store)

    async def asyncTearDown(self):
        self.svc.storage.close()

    async def _applications(self):
        return await self.svc.storage.run(list_applications_sync, guild_id=GUILD_ID, user_id=APPLICANT)

    async def test_submit_creates_pending_record(self):
        record = await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())
        self.assertEqual(record.status, "pending")
        self.assertEqual(record.name, "Sam Rivera")
        self.assertEqual(record.submitted_at_utc, "2026-03-04T12:00:00+00:00")

    async def test_second_pending_application_is_rejected(self):
        await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())
        with self.assertRaises(DuplicatePending):
            await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())
        self.assertEqual(len(await self._applications()), 1)

    async def test_store_rejects_duplicate_pending_without_precheck(self):
        await self.svc.storage.run(
            insert_application_sync,
            guild_id=GUILD_ID,
            user_id=APPLICANT,
            form=_form(),
            submitted_at_utc="2026-03-04T12:00:00+00:00",
        )
        with self.assertRaises(DuplicatePending):
            await self.svc.storage.run(
                insert_application_sync,
                guild_id=GUILD_ID,
                user_id=APPLICANT,
                form=_form(),
                submitted_at_utc="2026-03-04T12:00:01+00:00",
            )

    async def test_closed_applications_are_refused(self):
        await configure_guild(self.svc.config_store, applications_enabled=False)
        with self.assertRaises(FeatureDisabled):
            await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())

    async def test_blank_field_is_invalid(self):
        with self.assertRaises(InvalidInput):
            await self.svc.lifecycle.submit_application(
                guild_id=GUILD_ID,
                user_id=APPLICANT,
                form=_form(motivation="   "),
            )

    async def test_approve_grants_role_and_notifies(self):
        await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())
        record = await self.svc.lifecycle.approve_application(
            guild_id=GUILD_ID,
            user_id=APPLICANT,
            tier="hr",
            actor_id=REVIEWER,
        )
        self.assertEqual(record.status, "approved")
        self.assertEqual(record.approved_tier, "hr")
        self.assertEqual(record.approved_by, REVIEWER)
        self.assertIn(ROLE_IDS["hr"], self.svc.membership.held(APPLICANT))
        self.assertEqual(self.svc.notifier.dm_titles(APPLICANT), ["Application Approved"])

        logged = self.svc.notifier.posts_to(CHANNEL_IDS["staff_log"])
        self.assertEqual([n.title for n in logged], ["Application Approved"])
        self.assertEqual(fields_of(logged[0])["By"], f"<@{REVIEWER}>")

        audit = await self.svc.storage.run(fetch_audit_log_sync, guild_id=GUILD_ID, subject_user_id=APPLICANT)
        self.assertEqual(audit[0].action, "Application Approved")
        self.assertEqual(audit[0].payload, {"role": "hr"})

    async def test_approve_without_pending_is_not_found(self):
        with self.assertRaises(NotFound):
            await self.svc.lifecycle.approve_application(
                guild_id=GUILD_ID,
                user_id=APPLICANT,
                tier="staff",
                actor_id=REVIEWER,
            )

    async def test_approve_rejects_tiers_outside_applications(self):
        await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())
        with self.assertRaises(InvalidInput):
            await self.svc.lifecycle.approve_application(
                guild_id=GUILD_ID,
                user_id=APPLICANT,
                tier="admin",
                actor_id=REVIEWER,
            )

    async def test_unconfigured_role_keeps_application_pending(self):
        await self.svc.config_store.set(GUILD_ID, {"roles": {"staff": None}})
        await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())
        with self.assertRaises(RoleNotConfigured):
            await self.svc.lifecycle.approve_application(
                guild_id=GUILD_ID,
                user_id=APPLICANT,
                tier="staff",
                actor_id=REVIEWER,
            )
        self.assertEqual([a.status for a in await self._applications()], ["pending"])

    async def test_failed_grant_keeps_application_pending(self):
        self.svc.membership.fail_mutations = True
        await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())
        with self.assertRaises(GrantFailed):
            await self.svc.lifecycle.approve_application(
                guild_id=GUILD_ID,
                user_id=APPLICANT,
                tier="staff",
                actor_id=REVIEWER,
            )
        self.assertEqual([a.status for a in await self._applications()], ["pending"])
        self.assertEqual(self.svc.notifier.direct_sent, [])

    async def test_departed_member_becomes_grant_failure(self):
        await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())
        self.svc.membership.missing.add(APPLICANT)
        with self.assertRaises(GrantFailed):
            await self.svc.lifecycle.approve_application(
                guild_id=GUILD_ID,
                user_id=APPLICANT,
                tier="staff",
                actor_id=REVIEWER,
            )

    async def test_closed_dms_do_not_block_approval(self):
        self.svc.notifier.closed_dms.add(APPLICANT)
        await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())
        record = await self.svc.lifecycle.approve_application(
            guild_id=GUILD_ID,
            user_id=APPLICANT,
            tier="staff",
            actor_id=REVIEWER,
        )
        self.assertEqual(record.status, "approved")
        self.assertIn(ROLE_IDS["staff"], self.svc.membership.held(APPLICANT))

    async def test_deny_records_reason_and_allows_reapplying(self):
        await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())
        record = await self.svc.lifecycle.deny_application(
            guild_id=GUILD_ID,
            user_id=APPLICANT,
            reason="Not enough experience",
            actor_id=REVIEWER,
        )
        self.assertEqual(record.status, "denied")
        self.assertEqual(record.denial_reason, "Not enough experience")
        dm = self.svc.notifier.direct_sent[-1][1]
        self.assertEqual(dm.title, "Application Denied")
        self.assertEqual(fields_of(dm)["Reason"], "Not enough experience")

        with self.assertRaises(NotFound):
            await self.svc.lifecycle.approve_application(
                guild_id=GUILD_ID,
                user_id=APPLICANT,
                tier="staff",
                actor_id=REVIEWER,
            )
        again = await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())
        self.assertEqual(again.status, "pending")

    async def test_approved_applicant_may_apply_again(self):
        await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())
        await self.svc.lifecycle.approve_application(
            guild_id=GUILD_ID,
            user_id=APPLICANT,
            tier="staff",
            actor_id=REVIEWER,
        )
        self.assertIn(ROLE_IDS["staff"], self.svc.membership.held(APPLICANT))
        audit = await self.svc.storage.run(fetch_audit_log_sync, guild_id=GUILD_ID, subject_user_id=APPLICANT)
        self.assertEqual([a.action for a in audit], ["Application Approved"])

        again = await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())
        self.assertEqual(again.status, "pending")
        self.assertEqual([a.status for a in await self._applications()].count("approved"), 1)

    async def test_approved_application_cannot_be_denied(self):
        await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())
        await self.svc.lifecycle.approve_application(
            guild_id=GUILD_ID,
            user_id=APPLICANT,
            tier="staff",
            actor_id=REVIEWER,
        )
        with self.assertRaises(NotFound):
            await self.svc.lifecycle.deny_application(
                guild_id=GUILD_ID,
                user_id=APPLICANT,
                reason="Changed our minds",
                actor_id=REVIEWER,
            )
        self.assertEqual([a.status for a in await self._applications()], ["approved"])

    async def test_concurrent_denial_revokes_the_granted_role(self):
        pending = await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())
        add_roles = self.svc.membership.add_roles

        async def deny_during_grant(guild_id, user_id, role_ids, *, reason):
            await add_roles(guild_id, user_id, role_ids, reason=reason)
            await self.svc.storage.run(
                deny_application_sync,
                application_id=pending.id,
                actor_id=REVIEWER + 1,
                reason="Handled by another reviewer",
                denied_at_utc="2026-03-04T12:00:00+00:00",
            )

        self.svc.membership.add_roles = deny_during_grant
        with self.assertRaises(NotFound):
            await self.svc.lifecycle.approve_application(
                guild_id=GUILD_ID,
                user_id=APPLICANT,
                tier="staff",
                actor_id=REVIEWER,
            )
        self.assertNotIn(ROLE_IDS["staff"], self.svc.membership.held(APPLICANT))
        self.assertEqual([a.status for a in await self._applications()], ["denied"])
        self.assertEqual(self.svc.notifier.direct_sent, [])

    async def test_deny_requires_reason(self):
        await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())
        with self.assertRaises(InvalidInput):
            await self.svc.lifecycle.deny_application(
                guild_id=GUILD_ID,
                user_id=APPLICANT,
                reason=" ",
                actor_id=REVIEWER,
            )

    async def test_audit_skips_post_without_staff_log(self):
        await self.svc.config_store.set(GUILD_ID, {"channels": {"staff_log": None}})
        await self.svc.lifecycle.submit_application(guild_id=GUILD_ID, user_id=APPLICANT, form=_form())
        await self.svc.lifecycle.approve_application(
            guild_id=GUILD_ID,
            user_id=APPLICANT,
            tier="staff",
            actor_id=REVIEWER,
        )
        self.assertEqual(self.svc.notifier.channel_sent, [])
        audit = await self.svc.storage.run(fetch_audit_log_sync, guild_id=GUILD_ID)
        self.assertEqual([a.action for a in audit], ["Application Approved"])


if __name__ == "__main__":
    unittest.main()
