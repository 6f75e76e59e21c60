"""
Tests for idempotent security group handling.
"""

import unittest

from fakes import FakeTenant, make_context

from w365_provisioner.groups import (
    add_group_members,
    ensure_security_group,
    find_group,
    list_groups_by_prefix,
    mail_nickname,
)


class TestEnsureSecurityGroup(unittest.TestCase):

    def setUp(self):
        self.fake = FakeTenant()
        self.ctx, self.store = make_context(self.fake)

    def tearDown(self):
        self.ctx.close()

    def test_creates_missing_group(self):
        group, created = ensure_security_group(self.ctx, "W365-Users", "Cloud PC users")

        self.assertTrue(created)
        stored = self.fake.groups[group["id"]]
        self.assertTrue(stored["securityEnabled"])
        self.assertFalse(stored["mailEnabled"])
        self.assertEqual(stored["groupTypes"], [])
        self.assertEqual(stored["mailNickname"], "W365-Users")

    def test_existing_group_is_reused_without_writes(self):
        group_id = self.fake.add_group("W365-Users")

        group, created = ensure_security_group(self.ctx, "W365-Users", "Cloud PC users")

        self.assertFalse(created)
        self.assertEqual(group["id"], group_id)
        self.assertEqual(self.fake.writes(), [])

    def test_rerun_creates_only_once(self):
        ensure_security_group(self.ctx, "W365-Users", "Cloud PC users")
        ensure_security_group(self.ctx, "W365-Users", "Cloud PC users")
        self.assertEqual(len(self.fake.groups), 1)

    def test_names_with_quotes_are_matched(self):
        group_id = self.fake.add_group("W365-O'Neil team")
        self.assertEqual(find_group(self.ctx, "W365-O'Neil team")["id"], group_id)

    def test_duplicate_names_use_first_and_warn(self):
        first = self.fake.add_group("W365-Users")
        self.fake.add_group("W365-Users")

        self.assertEqual(find_group(self.ctx, "W365-Users")["id"], first)
        self.assertIn("duplicate_display_name", [e.message for e in self.store.list("WARNING")])


class TestMailNickname(unittest.TestCase):

    def test_strips_disallowed_characters(self):
        self.assertEqual(mail_nickname("W365 Users (Sales)"), "W365UsersSales")

    def test_truncates_to_64_characters(self):
        self.assertEqual(len(mail_nickname("x" * 100)), 64)

    def test_falls_back_when_nothing_remains(self):
        self.assertTrue(mail_nickname("()").startswith("w365-"))


class TestMembersAndPrefix(unittest.TestCase):

    def setUp(self):
        self.fake = FakeTenant()
        self.ctx, _ = make_context(self.fake)
        self.group_id = self.fake.add_group("W365-Users")

    def test_adds_new_members_and_skips_existing(self):
        alice = self.fake.add_user("alice@contoso.com")
        bob = self.fake.add_user("bob@contoso.com")
        self.fake.members[self.group_id].add(alice)
        warnings = []

        added = add_group_members(self.ctx, self.group_id, ["alice@contoso.com", "bob@contoso.com"], warnings)

        self.assertEqual(added, [bob])
        self.assertEqual(self.fake.members[self.group_id], {alice, bob})
        self.assertEqual(warnings, [])

    def test_unknown_user_is_a_warning(self):
        warnings = []
        added = add_group_members(self.ctx, self.group_id, ["ghost@contoso.com"], warnings)

        self.assertEqual(added, [])
        self.assertEqual(len(warnings), 1)

    def test_guest_upn_is_path_encoded(self):
        upn = "bob_fabrikam.com#EXT#@contoso.onmicrosoft.com"
        guest = self.fake.add_user(upn)
        warnings = []

        added = add_group_members(self.ctx, self.group_id, [upn], warnings)

        self.assertEqual(added, [guest])
        self.assertEqual(warnings, [])
        self.assertIn(("GET", "v1.0", f"users/{upn}"), self.fake.calls)

    def test_member_reference_uses_tenant_graph_endpoint(self):
        fake = FakeTenant()
        ctx, _ = make_context(fake, graph_base_url="https://graph.microsoft.us")
        group_id = fake.add_group("W365-Users")
        alice = fake.add_user("alice@contoso.us")

        add_group_members(ctx, group_id, ["alice@contoso.us"], [])
        ctx.close()

        self.assertEqual(fake.member_refs, [f"https://graph.microsoft.us/v1.0/directoryObjects/{alice}"])

    def test_prefix_listing(self):
        self.fake.add_group("W365-Admins")
        self.fake.add_group("Finance")
        names = sorted(g["displayName"] for g in list_groups_by_prefix(self.ctx, "W365-"))
        self.assertEqual(names, ["W365-Admins", "W365-Users"])


if __name__ == "__main__":
    unittest.main()
