"""
Tests for merge-preserving assignment of Cloud PC settings and policies.
"""

import unittest

from fakes import FakeTenant, make_context

from w365_provisioner.assignments import (
    assign_merged,
    assignment_payload,
    existing_targets,
    group_target,
    merge_targets,
)
from w365_provisioner.models import GROUP_TARGET_TYPE


class TestMergeTargets(unittest.TestCase):
    """Set-union semantics of merge_targets"""

    def test_existing_targets_come_first_and_are_kept(self):
        existing = [group_target("a"), group_target("b")]
        merged = merge_targets(existing, [group_target("c"), group_target("a")])
        self.assertEqual([t.group_id for t in merged], ["a", "b", "c"])

    def test_merge_is_idempotent(self):
        existing = [group_target("a")]
        requested = [group_target("b"), group_target("c")]
        once = merge_targets(existing, requested)
        self.assertEqual(merge_targets(once, requested), once)

    def test_duplicate_requests_are_collapsed(self):
        merged = merge_targets([], [group_target("x"), group_target("x")])
        self.assertEqual(len(merged), 1)

    def test_service_plan_is_part_of_target_identity(self):
        merged = merge_targets([group_target("a")], [group_target("a", "plan-1")])
        self.assertEqual(len(merged), 2)

    def test_existing_targets_skip_entries_without_group(self):
        resource = {
            "assignments": [
                {"id": "1", "target": {"groupId": "g1"}},
                {"id": "2", "target": {"@odata.type": "#microsoft.graph.allLicensedUsersAssignmentTarget"}},
                {"id": "3"},
            ]
        }
        self.assertEqual(existing_targets(resource), [group_target("g1")])

    def test_payload_shape(self):
        payload = assignment_payload([group_target("g1"), group_target("g2", "plan")])
        self.assertEqual(
            payload,
            {
                "assignments": [
                    {"target": {"@odata.type": GROUP_TARGET_TYPE, "groupId": "g1"}},
                    {"target": {"@odata.type": GROUP_TARGET_TYPE, "groupId": "g2", "servicePlanId": "plan"}},
                ]
            },
        )


class TestAssignMerged(unittest.TestCase):
    """assign_merged against the fake tenant"""

    def setUp(self):
        self.fake = FakeTenant()
        self.ctx, self.store = make_context(self.fake)
        self.setting_id = self.fake.add_user_setting("W365-Settings", group_ids=["existing-group"])
        self.path = f"deviceManagement/virtualEndpoint/userSettings/{self.setting_id}"

    def tearDown(self):
        self.ctx.close()

    def test_preserves_existing_assignments(self):
        changed = assign_merged(self.ctx, self.path, [group_target("new-group")])

        self.assertTrue(changed)
        self.assertEqual(
            self.fake.assigned_group_ids(self.fake.user_settings, self.setting_id),
            ["existing-group", "new-group"],
        )

    def test_no_assign_call_when_nothing_new(self):
        changed = assign_merged(self.ctx, self.path, [group_target("existing-group")])

        self.assertFalse(changed)
        self.assertEqual(self.fake.writes(), [])

    def test_second_run_is_a_no_op(self):
        assign_merged(self.ctx, self.path, [group_target("new-group")])
        writes_after_first = len(self.fake.writes())

        self.assertFalse(assign_merged(self.ctx, self.path, [group_target("new-group")]))
        self.assertEqual(len(self.fake.writes()), writes_after_first)


if __name__ == "__main__":
    unittest.main()
