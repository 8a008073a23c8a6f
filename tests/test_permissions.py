from __future__ import annotations

import unittest

from staff.errors import InvalidInput
from staff.errors import Unauthorized
from staff.models import GuildConfig
from staff.models import RolesConfig
from staff.permissions import authorize
from staff.permissions import held_staff_roles
from staff.permissions import highest_tier
from staff.permissions import require_tier


def _config(**roles) -> GuildConfig:
    return GuildConfig(guild_id=1, roles=RolesConfig(**roles))


class AuthorizeTests(unittest.TestCase):
    def setUp(self):
        self.cfg = _config(staff=11, hr=12, admin=13, owner=14)

    def test_exact_tier_role_is_allowed(self):
        self.assertTrue(authorize({11}, False, "staff", self.cfg))

    def test_lower_tier_is_rejected(self):
        self.assertFalse(authorize({11}, False, "hr", self.cfg))

    def test_higher_tier_satisfies_lower_requirement(self):
        self.assertTrue(authorize({12}, False, "staff", self.cfg))
        self.assertTrue(authorize({14}, False, "admin", self.cfg))

    def test_administrator_bypasses_roles(self):
        self.assertTrue(authorize(set(), True, "owner", self.cfg))

    def test_unset_required_role_leaves_only_administrator(self):
        cfg = _config(staff=11, hr=None, admin=13)
        self.assertFalse(authorize({13}, False, "hr", cfg))
        self.assertTrue(authorize({13}, True, "hr", cfg))

    def test_unset_higher_tier_is_skipped(self):
        cfg = _config(staff=11, hr=None, admin=13)
        self.assertTrue(authorize({13}, False, "staff", cfg))

    def test_unknown_tier_is_invalid(self):
        with self.assertRaises(InvalidInput):
            authorize({11}, False, "moderator", self.cfg)

    def test_require_tier_raises_with_tier(self):
        with self.assertRaises(Unauthorized) as ctx:
            require_tier({11}, False, "admin", self.cfg)
        self.assertEqual(ctx.exception.tier, "admin")
        self.assertIn("admin", ctx.exception.user_message)


class TierLookupTests(unittest.TestCase):
    def test_highest_tier(self):
        cfg = _config(staff=11, hr=12, admin=13)
        self.assertEqual(highest_tier({11, 12}, cfg), "hr")
        self.assertIsNone(highest_tier({99}, cfg))

    def test_held_staff_roles_only_reports_configured_and_held(self):
        cfg = _config(staff=11, hr=12, admin=None)
        held = held_staff_roles({11, 12, 13}, cfg, ("staff", "hr", "admin"))
        self.assertEqual(held, {"staff": 11, "hr": 12})


if __name__ == "__main__":
    unittest.main()
