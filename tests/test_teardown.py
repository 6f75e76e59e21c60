"""
Tests for prefix-filtered teardown.
"""

import unittest

import httpx

from fakes import FakeTenant, make_context

from w365_provisioner.teardown import run_teardown

POLICIES = "deviceManagement/virtualEndpoint/provisioningPolicies"


class TestRunTeardown(unittest.TestCase):

    def setUp(self):
        self.fake = FakeTenant()
        self.ctx, _ = make_context(self.fake)
        self.users = self.fake.add_group("W365-Users")
        self.finance = self.fake.add_group("Finance")
        self.setting = self.fake.add_user_setting("W365-Settings", group_ids=[self.users])
        self.other_setting = self.fake.add_user_setting("Legacy settings", group_ids=[self.finance])
        self.policy = self.fake.add_policy("W365-Policy", group_ids=[self.users])
        self.other_policy = self.fake.add_policy("w365-lowercase", group_ids=[self.finance])

    def tearDown(self):
        self.ctx.close()

    def test_deletes_only_prefixed_resources(self):
        report = run_teardown(self.ctx, "W365-")

        self.assertTrue(report.ok, report.warnings)
        self.assertEqual(list(self.fake.groups), [self.finance])
        self.assertEqual(list(self.fake.user_settings), [self.other_setting])
        self.assertEqual(list(self.fake.policies), [self.other_policy])
        self.assertEqual(len(report.deleted), 3)

    def test_policies_are_unassigned_before_deletion(self):
        run_teardown(self.ctx, "W365-")

        policy_calls = [c[0] for c in self.fake.writes() if c[2].startswith(f"{POLICIES}/{self.policy}")]
        self.assertEqual(policy_calls, ["POST", "DELETE"])

    def test_dry_run_writes_nothing(self):
        report = run_teardown(self.ctx, "W365-", dry_run=True)

        self.assertEqual(self.fake.writes(), [])
        self.assertEqual(len(report.matched), 3)
        self.assertEqual(report.deleted, [])

    def test_keep_groups(self):
        run_teardown(self.ctx, "W365-", include_groups=False)
        self.assertIn(self.users, self.fake.groups)

    def test_empty_prefix_is_rejected(self):
        for prefix in ("", "   "):
            with self.assertRaises(ValueError):
                run_teardown(self.ctx, prefix)
        self.assertEqual(self.fake.calls, [])

    def test_failed_delete_is_reported_and_run_continues(self):
        self.fake.failures[("DELETE", f"{POLICIES}/{self.policy}")] = [httpx.Response(409)]

        report = run_teardown(self.ctx, "W365-")

        self.assertFalse(report.ok)
        self.assertIn(self.policy, self.fake.policies)
        self.assertNotIn(self.setting, self.fake.user_settings)
        self.assertNotIn(self.users, self.fake.groups)
        self.assertNotIn("provisioningPolicy:W365-Policy", report.deleted)


if __name__ == "__main__":
    unittest.main()
