from __future__ import annotations

import unittest

from staff.errors import GrantFailed
from staff.errors import InvalidInput
from staff.errors import NotFound
from staff.errors import RoleNotConfigured
from staff.lifecycle_store import fetch_audit_log_sync
from staff.lifecycle_store import list_terminations_sync

from staff_fakes import GUILD_ID
from staff_fakes import ROLE_IDS
from staff_fakes import build_services
from staff_fakes import configure_guild
from staff_fakes import fields_of


MEMBER = 70001
ADMIN = 70002
UNRELATED_ROLE = 99999


class RoleTransitionTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.svc = build_services()
        await configure_guild(self.svc.config_store)

    async def asyncTearDown(self):
        self.svc.storage.close()

    async def test_promote_replaces_lower_tiers(self):
        self.svc.membership.give(MEMBER, ROLE_IDS["staff"], UNRELATED_ROLE)
        change = await self.svc.roles.promote(guild_id=GUILD_ID, user_id=MEMBER, target="hr", actor_id=ADMIN)
        self.assertEqual(change.granted, ["hr"])
        self.assertEqual(change.revoked, ["staff"])
        self.assertEqual(self.svc.membership.held(MEMBER), {ROLE_IDS["hr"], UNRELATED_ROLE})

        audit = await self.svc.storage.run(fetch_audit_log_sync, guild_id=GUILD_ID)
        self.assertEqual(audit[0].action, "Staff Promoted")
        self.assertEqual(audit[0].payload["new_role"], "hr")

    async def test_promote_to_admin_strips_staff_and_hr(self):
        self.svc.membership.give(MEMBER, ROLE_IDS["staff"], ROLE_IDS["hr"])
        change = await self.svc.roles.promote(guild_id=GUILD_ID, user_id=MEMBER, target="admin", actor_id=ADMIN)
        self.assertEqual(change.revoked, ["hr", "staff"])
        self.assertEqual(self.svc.membership.held(MEMBER), {ROLE_IDS["admin"]})

    async def test_promote_to_admin_from_any_staff_roles(self):
        starts = {
            "staff": {ROLE_IDS["staff"]},
            "hr": {ROLE_IDS["hr"]},
            "admin": {ROLE_IDS["admin"]},
            "none": set(),
        }
        for offset, (label, held) in enumerate(starts.items()):
            user_id = MEMBER + 100 + offset
            with self.subTest(start=label):
                self.svc.membership.give(user_id, *held)
                await self.svc.roles.promote(guild_id=GUILD_ID, user_id=user_id, target="admin", actor_id=ADMIN)
                self.assertEqual(self.svc.membership.held(user_id), {ROLE_IDS["admin"]})

    async def test_failed_grant_leaves_roles_untouched(self):
        self.svc.membership.give(MEMBER, ROLE_IDS["staff"])

        async def refuse_add(guild_id, user_id, role_ids, *, reason):
            raise GrantFailed("I could not grant that role.")

        self.svc.membership.add_roles = refuse_add
        with self.assertRaises(GrantFailed):
            await self.svc.roles.promote(guild_id=GUILD_ID, user_id=MEMBER, target="hr", actor_id=ADMIN)
        self.assertEqual(self.svc.membership.held(MEMBER), {ROLE_IDS["staff"]})
        audit = await self.svc.storage.run(fetch_audit_log_sync, guild_id=GUILD_ID)
        self.assertEqual(audit, [])

    async def test_failed_revoke_rolls_back_the_new_role(self):
        self.svc.membership.give(MEMBER, ROLE_IDS["staff"])
        remove_roles = self.svc.membership.remove_roles

        async def refuse_staff_removal(guild_id, user_id, role_ids, *, reason):
            if ROLE_IDS["staff"] in role_ids:
                raise GrantFailed("I could not remove staff roles.")
            await remove_roles(guild_id, user_id, role_ids, reason=reason)

        self.svc.membership.remove_roles = refuse_staff_removal
        with self.assertRaises(GrantFailed):
            await self.svc.roles.promote(guild_id=GUILD_ID, user_id=MEMBER, target="hr", actor_id=ADMIN)
        self.assertEqual(self.svc.membership.held(MEMBER), {ROLE_IDS["staff"]})

    async def test_promote_skips_grant_when_target_held(self):
        self.svc.membership.give(MEMBER, ROLE_IDS["hr"])
        await self.svc.roles.promote(guild_id=GUILD_ID, user_id=MEMBER, target="hr", actor_id=ADMIN)
        self.assertEqual(self.svc.membership.calls, [])

    async def test_promote_keeps_shared_role_id(self):
        await self.svc.config_store.set(GUILD_ID, {"roles": {"hr": ROLE_IDS["staff"]}})
        self.svc.membership.give(MEMBER, ROLE_IDS["staff"])
        change = await self.svc.roles.promote(guild_id=GUILD_ID, user_id=MEMBER, target="hr", actor_id=ADMIN)
        self.assertEqual(change.revoked, [])
        self.assertEqual(self.svc.membership.held(MEMBER), {ROLE_IDS["staff"]})

    async def test_promote_requires_configured_target(self):
        await self.svc.config_store.set(GUILD_ID, {"roles": {"admin": None}})
        with self.assertRaises(RoleNotConfigured):
            await self.svc.roles.promote(guild_id=GUILD_ID, user_id=MEMBER, target="admin", actor_id=ADMIN)

    async def test_promote_rejects_owner(self):
        with self.assertRaises(InvalidInput):
            await self.svc.roles.promote(guild_id=GUILD_ID, user_id=MEMBER, target="owner", actor_id=ADMIN)

    async def test_demote_returns_to_basic_staff(self):
        self.svc.membership.give(MEMBER, ROLE_IDS["admin"], ROLE_IDS["hr"])
        change = await self.svc.roles.demote(guild_id=GUILD_ID, user_id=MEMBER, actor_id=ADMIN)
        self.assertEqual(change.revoked, ["admin", "hr"])
        self.assertEqual(change.granted, ["staff"])
        self.assertEqual(self.svc.membership.held(MEMBER), {ROLE_IDS["staff"]})

    async def test_demote_basic_staff_changes_nothing_but_is_logged(self):
        self.svc.membership.give(MEMBER, ROLE_IDS["staff"])
        change = await self.svc.roles.demote(guild_id=GUILD_ID, user_id=MEMBER, actor_id=ADMIN)
        self.assertEqual(change.revoked, [])
        self.assertEqual(change.granted, [])
        self.assertEqual(self.svc.membership.calls, [])
        audit = await self.svc.storage.run(fetch_audit_log_sync, guild_id=GUILD_ID)
        self.assertEqual(audit[0].action, "Staff Demoted")

    async def test_terminate_removes_every_staff_role(self):
        self.svc.membership.give(MEMBER, ROLE_IDS["staff"], ROLE_IDS["hr"], UNRELATED_ROLE)
        record = await self.svc.roles.terminate(
            guild_id=GUILD_ID,
            user_id=MEMBER,
            reason="Inactivity",
            actor_id=ADMIN,
        )
        self.assertEqual(record.roles_removed, sorted([ROLE_IDS["staff"], ROLE_IDS["hr"]]))
        self.assertEqual(self.svc.membership.held(MEMBER), {UNRELATED_ROLE})

        stored = await self.svc.storage.run(list_terminations_sync, guild_id=GUILD_ID, user_id=MEMBER)
        self.assertEqual([t.reason for t in stored], ["Inactivity"])

        dm = self.svc.notifier.direct_sent[-1][1]
        self.assertEqual(dm.title, "Staff Termination Notice")
        self.assertEqual(fields_of(dm)["Reason"], "Inactivity")

    async def test_terminate_with_failed_removal_is_not_recorded(self):
        self.svc.membership.give(MEMBER, ROLE_IDS["staff"])
        self.svc.membership.fail_mutations = True
        with self.assertRaises(GrantFailed):
            await self.svc.roles.terminate(guild_id=GUILD_ID, user_id=MEMBER, reason="Conduct", actor_id=ADMIN)
        stored = await self.svc.storage.run(list_terminations_sync, guild_id=GUILD_ID, user_id=MEMBER)
        self.assertEqual(stored, [])

    async def test_departed_member_cannot_be_promoted(self):
        self.svc.membership.missing.add(MEMBER)
        with self.assertRaises(NotFound) as ctx:
            await self.svc.roles.promote(guild_id=GUILD_ID, user_id=MEMBER, target="staff", actor_id=ADMIN)
        self.assertIn("not a member", ctx.exception.user_message)


if __name__ == "__main__":
    unittest.main()
