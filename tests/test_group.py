"""Tests for groups, invites and role transitions."""

import unittest
from unittest.mock import MagicMock

from tests.helpers import AppTestCase, BaseTestCase
from watchd.core import constants
from watchd.core.roles import Role
from watchd.core.store import preference_key
from watchd.errors import (
    ConflictError,
    ExpiredError,
    ForbiddenError,
    NotFoundError,
    OwnershipUnresolvedError,
    TransferRequiredError,
    ValidationError,
)
from watchd.group.services import GroupService


class GroupServiceTestCase(BaseTestCase):
    """Test case for the group service."""

    def setUp(self):
        super().setUp()
        self.email_sender = MagicMock()
        self.email_sender.send_invite.return_value = {"sent": True}
        self.service = GroupService(self.store, email_sender=self.email_sender)
        self.create_user("alice", name="Alice", email="alice@example.com")
        self.create_user("bob", name="Bob", email="b@example.com")
        self.create_user("cara", name="Cara", email="cara@example.com")

    def _expire(self, token):
        self.db.collection(constants.INVITES).document(token).update(
            {"expiresAt": self.days_ago(1)}
        )

    def test_create_group(self):
        group = self.service.create_group("alice", "  Family  ")
        self.assertEqual(group["name"], "Family")
        self.assertEqual(group["slug"], "family")
        self.assertEqual(group["role"], "OWNER")

        stored = self.store.get(constants.GROUPS, group["id"])
        self.assertEqual(stored["ownerId"], "alice")
        self.assertEqual(self.membership(group["id"], "alice")["role"], "OWNER")
        self.assertIsNotNone(self.store.get(constants.GROUP_SLUGS, "family"))
        self.assertIsNotNone(
            self.store.get(constants.GROUP_SHARE_CODES, group["shareCode"])
        )

    def test_create_group_name_bounds(self):
        with self.assertRaises(ValidationError):
            self.service.create_group("alice", " x ")
        with self.assertRaises(ValidationError):
            self.service.create_group("alice", "x" * 61)

    def test_create_group_with_taken_slug(self):
        first = self.service.create_group("alice", "Family")
        second = self.service.create_group("bob", "Family")
        self.assertNotEqual(first["slug"], second["slug"])
        self.assertTrue(second["slug"].startswith("family-"))
        self.assertNotEqual(first["shareCode"], second["shareCode"])

    def test_create_group_slug_race_retries(self):
        def claim_slug():
            self.db.collection(constants.GROUP_SLUGS).document("family").set(
                {"groupId": "other"}
            )

        self.db.before_commit.append(claim_slug)
        group = self.service.create_group("alice", "Family")
        self.assertTrue(group["slug"].startswith("family-"))
        self.assertEqual(len(self.owners(group["id"])), 1)
        groups = list(self.db.collection(constants.GROUPS).stream())
        self.assertEqual(len(groups), 1)

    def test_scenario_invite_and_accept(self):
        group = self.service.create_group("alice", "Family")
        invite = self.service.invite("alice", group["id"], "B@example.com", "EDITOR")
        self.assertTrue(invite["emailSent"])
        self.assertEqual(invite["role"], "EDITOR")
        self.email_sender.send_invite.assert_called_once_with(
            "b@example.com", "Family", invite["token"], "Alice"
        )
        self.assertIsNotNone(self.store.get(constants.ALLOWLIST, "b@example.com"))

        joined = self.service.accept_invite("bob", invite["token"])
        self.assertEqual(joined["id"], group["id"])
        self.assertEqual(joined["role"], "EDITOR")
        members = self.service.list_members("alice", group["id"])
        self.assertEqual([m["userId"] for m in members], ["alice", "bob"])
        stored = self.store.get(constants.INVITES, invite["token"])
        self.assertEqual(stored["acceptedById"], "bob")
        self.assertEqual(stored["emailStatus"], "sent")

    def test_invite_defaults_to_editor(self):
        group = self.service.create_group("alice", "Family")
        invite = self.service.invite("alice", group["id"], "cara@example.com")
        self.assertEqual(invite["role"], "EDITOR")

    def test_accept_twice_keeps_one_membership(self):
        group = self.service.create_group("alice", "Family")
        token = self.service.invite("alice", group["id"], "b@example.com", "VIEWER")[
            "token"
        ]
        self.service.accept_invite("bob", token)
        self.service.accept_invite("bob", token)
        members = self.store.query(
            constants.MEMBERSHIPS, ("groupId", "==", group["id"])
        )
        self.assertEqual(len(members), 2)

    def test_token_cannot_be_reused_by_someone_else(self):
        group = self.service.create_group("alice", "Family")
        token = self.service.invite("alice", group["id"], "b@example.com")["token"]
        self.service.accept_invite("bob", token)
        with self.assertRaises(ConflictError):
            self.service.accept_invite("cara", token)
        self.assertIsNone(self.membership(group["id"], "cara"))

    def test_replaying_used_token_keeps_current_role(self):
        group = self.service.create_group("alice", "Family")
        token = self.service.invite("alice", group["id"], "b@example.com", "EDITOR")[
            "token"
        ]
        self.service.accept_invite("bob", token)
        self.service.change_role("alice", group["id"], "bob", "VIEWER")
        again = self.service.accept_invite("bob", token)
        self.assertEqual(again["role"], "VIEWER")
        self.assertEqual(self.membership(group["id"], "bob")["role"], "VIEWER")

    def test_removed_member_cannot_replay_token(self):
        group = self.service.create_group("alice", "Family")
        token = self.service.invite("alice", group["id"], "b@example.com")["token"]
        self.service.accept_invite("bob", token)
        self.service.remove_member("alice", group["id"], "bob")

        with self.assertRaises(ConflictError):
            self.service.accept_invite("bob", token)
        self._expire(token)
        with self.assertRaises(ConflictError):
            self.service.accept_invite("bob", token)
        self.assertIsNone(self.membership(group["id"], "bob"))

    def test_former_owner_cannot_replay_owner_invite(self):
        group = self.service.create_group("alice", "Family")
        token = self.service.invite("alice", group["id"], "b@example.com", "OWNER")[
            "token"
        ]
        self.service.accept_invite("bob", token)
        self.service.change_role("bob", group["id"], "alice", "OWNER")
        self._expire(token)

        again = self.service.accept_invite("bob", token)
        self.assertEqual(again["role"], "EDITOR")
        self.assertEqual(self.store.get(constants.GROUPS, group["id"])["ownerId"], "alice")
        self.assertEqual(self.membership(group["id"], "alice")["role"], "OWNER")
        self.assertEqual(len(self.owners(group["id"])), 1)

        self.service.leave("bob", group["id"])
        with self.assertRaises(ConflictError):
            self.service.accept_invite("bob", token)
        self.assertEqual(self.store.get(constants.GROUPS, group["id"])["ownerId"], "alice")

    def test_scenario_expired_invite(self):
        group = self.service.create_group("alice", "Family")
        token = self.service.invite("alice", group["id"], "b@example.com")["token"]
        self._expire(token)
        with self.assertRaises(ExpiredError):
            self.service.accept_invite("bob", token)
        self.assertIsNone(self.membership(group["id"], "bob"))

    def test_unknown_token(self):
        with self.assertRaises(NotFoundError):
            self.service.accept_invite("bob", "nope-not-a-token")

    def test_invite_email_failure_still_returns_token(self):
        self.email_sender.send_invite.return_value = {"sent": False}
        group = self.service.create_group("alice", "Family")
        invite = self.service.invite("alice", group["id"], "b@example.com")
        self.assertFalse(invite["emailSent"])
        stored = self.store.get(constants.INVITES, invite["token"])
        self.assertEqual(stored["emailStatus"], "failed")

    def test_invite_existing_member_conflicts(self):
        group = self.service.create_group("alice", "Family")
        self.add_member(group["id"], "bob", Role.VIEWER)
        with self.assertRaises(ConflictError):
            self.service.invite("alice", group["id"], "b@example.com")

    def test_viewer_and_outsider_cannot_invite(self):
        group = self.service.create_group("alice", "Family")
        self.add_member(group["id"], "bob", Role.VIEWER)
        with self.assertRaises(ForbiddenError):
            self.service.invite("bob", group["id"], "cara@example.com")
        with self.assertRaises(ForbiddenError):
            self.service.invite("cara", group["id"], "x@example.com")

    def test_editor_cannot_invite_owner(self):
        group = self.service.create_group("alice", "Family")
        self.add_member(group["id"], "bob", Role.EDITOR)
        with self.assertRaises(ForbiddenError):
            self.service.invite("bob", group["id"], "cara@example.com", "OWNER")

    def test_owner_invite_transfers_ownership(self):
        group = self.service.create_group("alice", "Family")
        token = self.service.invite("alice", group["id"], "b@example.com", "OWNER")[
            "token"
        ]
        self.service.accept_invite("bob", token)
        self.assertEqual(self.membership(group["id"], "bob")["role"], "OWNER")
        self.assertEqual(self.membership(group["id"], "alice")["role"], "EDITOR")
        self.assertEqual(self.store.get(constants.GROUPS, group["id"])["ownerId"], "bob")
        self.assertEqual(len(self.owners(group["id"])), 1)

    def test_owner_keeps_role_when_accepting_lesser_invite(self):
        group = self.service.create_group("alice", "Family")
        self.add_member(group["id"], "bob", Role.EDITOR)
        token = self.service.invite("bob", group["id"], "alice-alt@example.com")["token"]
        self.service.accept_invite("alice", token)
        self.assertEqual(self.membership(group["id"], "alice")["role"], "OWNER")

    def test_scenario_promote_remove_and_invite(self):
        group = self.service.create_group("alice", "Family")
        self.add_member(group["id"], "bob", Role.EDITOR)

        self.service.change_role("alice", group["id"], "bob", "OWNER")
        self.assertEqual(self.membership(group["id"], "alice")["role"], "EDITOR")
        self.assertEqual(self.membership(group["id"], "bob")["role"], "OWNER")
        self.assertEqual(len(self.owners(group["id"])), 1)

        self.service.remove_member("bob", group["id"], "alice")
        self.assertIsNone(self.membership(group["id"], "alice"))

        with self.assertRaises(ForbiddenError):
            self.service.invite("alice", group["id"], "cara@example.com", "OWNER")

    def test_demoted_owner_cannot_grant_owner(self):
        group = self.service.create_group("alice", "Family")
        self.add_member(group["id"], "bob", Role.EDITOR)
        self.service.change_role("alice", group["id"], "bob", "OWNER")
        with self.assertRaises(ForbiddenError):
            self.service.invite("alice", group["id"], "cara@example.com", "OWNER")

    def test_editor_cannot_promote_to_owner(self):
        group = self.service.create_group("alice", "Family")
        self.add_member(group["id"], "bob", Role.EDITOR)
        self.add_member(group["id"], "cara", Role.VIEWER)
        with self.assertRaises(ForbiddenError):
            self.service.change_role("bob", group["id"], "cara", "OWNER")
        self.assertEqual(self.membership(group["id"], "cara")["role"], "VIEWER")

    def test_owner_role_change_requires_transfer(self):
        group = self.service.create_group("alice", "Family")
        self.add_member(group["id"], "bob", Role.EDITOR)
        with self.assertRaises(TransferRequiredError):
            self.service.change_role("bob", group["id"], "alice", "VIEWER")
        with self.assertRaises(TransferRequiredError):
            self.service.change_role("alice", group["id"], "alice", "EDITOR")
        self.assertEqual(self.membership(group["id"], "alice")["role"], "OWNER")

    def test_editor_changes_non_owner_roles(self):
        group = self.service.create_group("alice", "Family")
        self.add_member(group["id"], "bob", Role.EDITOR)
        self.add_member(group["id"], "cara", Role.VIEWER)
        member = self.service.change_role("bob", group["id"], "cara", "editor")
        self.assertEqual(member["role"], "EDITOR")
        self.service.change_role("bob", group["id"], "bob", "VIEWER")
        self.assertEqual(self.membership(group["id"], "bob")["role"], "VIEWER")

    def test_change_role_unknown_target(self):
        group = self.service.create_group("alice", "Family")
        with self.assertRaises(NotFoundError):
            self.service.change_role("alice", group["id"], "ghost", "VIEWER")

    def test_remove_member_rules(self):
        group = self.service.create_group("alice", "Family")
        self.add_member(group["id"], "bob", Role.EDITOR)
        self.add_member(group["id"], "cara", Role.VIEWER)
        with self.assertRaises(ValidationError):
            self.service.remove_member("bob", group["id"], "bob")
        with self.assertRaises(TransferRequiredError):
            self.service.remove_member("bob", group["id"], "alice")
        with self.assertRaises(ForbiddenError):
            self.service.remove_member("cara", group["id"], "bob")
        with self.assertRaises(NotFoundError):
            self.service.remove_member("alice", group["id"], "ghost")

    def test_remove_member_drops_preferences(self):
        group = self.service.create_group("alice", "Family")
        self.add_member(group["id"], "cara", Role.VIEWER)
        pref_id = preference_key(group["id"], "cara")
        self.db.collection(constants.NOTIFICATION_PREFERENCES).document(pref_id).set(
            {"groupId": group["id"], "userId": "cara", "instant": True, "weekly": True}
        )
        self.service.remove_member("alice", group["id"], "cara")
        self.assertIsNone(self.membership(group["id"], "cara"))
        self.assertIsNone(self.store.get(constants.NOTIFICATION_PREFERENCES, pref_id))

    def test_leave(self):
        group = self.service.create_group("alice", "Family")
        self.add_member(group["id"], "bob", Role.VIEWER)
        with self.assertRaises(OwnershipUnresolvedError):
            self.service.leave("alice", group["id"])
        self.service.leave("bob", group["id"])
        self.assertIsNone(self.membership(group["id"], "bob"))
        with self.assertRaises(NotFoundError):
            self.service.leave("bob", group["id"])

    def test_leave_and_remove_release_title_claims(self):
        group = self.service.create_group("alice", "Family")
        self.add_member(group["id"], "bob", Role.EDITOR)
        self.add_member(group["id"], "cara", Role.EDITOR)
        bob_entry = self.share_entry("bob", "tt0111161", group["id"])
        self.share_entry("cara", "tt0113277", group["id"])
        self.share_entry("alice", "tt0078748", group["id"])

        self.service.leave("bob", group["id"])
        self.service.remove_member("alice", group["id"], "cara")

        claims = self.store.query(
            constants.GROUP_TITLES, ("groupId", "==", group["id"])
        )
        self.assertEqual([c["userId"] for c in claims], ["alice"])
        self.assertIsNotNone(self.store.get(constants.ENTRIES, bob_entry))

    def test_role_change_is_logged_by_name(self):
        group = self.service.create_group("alice", "Family")
        self.add_member(group["id"], "bob", Role.EDITOR)
        with self.assertLogs("watchd.group.services.group_service", "INFO") as logs:
            self.service.change_role("alice", group["id"], "bob", "VIEWER")
        self.assertIn("set to VIEWER by alice", logs.output[-1])
        self.assertNotIn("Role.", logs.output[-1])

    def test_list_groups_and_feed_resolution(self):
        family = self.service.create_group("alice", "Family")
        self.service.create_group("alice", "Book Club")
        self.service.create_group("bob", "Elsewhere")
        names = [g["name"] for g in self.service.list_groups("alice")]
        self.assertEqual(names, ["Book Club", "Family"])

        by_code = self.service.resolve_feed_group("alice", family["shareCode"])
        by_slug = self.service.resolve_feed_group("alice", "family")
        self.assertEqual(by_code["id"], family["id"])
        self.assertEqual(by_slug["id"], family["id"])
        self.assertIsNone(self.service.resolve_feed_group("alice", "elsewhere"))

    def test_list_members_order_and_access(self):
        group = self.service.create_group("alice", "Family")
        self.add_member(group["id"], "cara", Role.VIEWER)
        self.add_member(group["id"], "bob", Role.VIEWER)
        members = self.service.list_members("alice", group["id"])
        self.assertEqual([m["userId"] for m in members], ["alice", "bob", "cara"])
        with self.assertRaises(ForbiddenError):
            self.service.list_members("bob", group["id"])


class GroupRoutesTestCase(AppTestCase):
    """Test case for the group blueprint."""

    def setUp(self):
        super().setUp()
        self.login("alice", name="Alice")

    def test_create_and_list(self):
        response = self.client.post("/groups/", json={"name": "Family"})
        self.assertEqual(response.status_code, 201)
        group = response.get_json()["group"]
        listing = self.client.get("/groups/").get_json()["groups"]
        self.assertEqual([g["id"] for g in listing], [group["id"]])

    def test_create_rejects_short_name(self):
        response = self.client.post("/groups/", json={"name": "x"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"]["kind"], "validation_error")

    def test_invite_join_and_members(self):
        group = self.client.post("/groups/", json={"name": "Family"}).get_json()["group"]
        response = self.client.post(
            f"/groups/{group['id']}/invite", json={"email": "bob@example.com"}
        )
        self.assertEqual(response.status_code, 201)
        token = response.get_json()["token"]

        self.login("bob", name="Bob")
        joined = self.client.post("/groups/join", json={"token": token})
        self.assertEqual(joined.get_json()["group"]["role"], "EDITOR")

        members = self.client.get(f"/groups/{group['id']}/members").get_json()
        self.assertEqual(len(members["members"]), 2)

        leave = self.client.post(f"/groups/{group['id']}/leave")
        self.assertTrue(leave.get_json()["success"])

    def test_change_role_and_remove(self):
        group = self.client.post("/groups/", json={"name": "Family"}).get_json()["group"]
        self.create_user("bob", name="Bob")
        self.add_member(group["id"], "bob", Role.EDITOR)

        response = self.client.patch(
            f"/groups/{group['id']}/members", json={"userId": "bob", "role": "VIEWER"}
        )
        self.assertEqual(response.get_json()["member"]["role"], "VIEWER")

        response = self.client.delete(
            f"/groups/{group['id']}/members", json={"userId": "alice"}
        )
        self.assertEqual(response.status_code, 400)

        response = self.client.delete(
            f"/groups/{group['id']}/members", json={"userId": "bob"}
        )
        self.assertEqual(response.status_code, 200)

    def test_owner_cannot_leave(self):
        group = self.client.post("/groups/", json={"name": "Family"}).get_json()["group"]
        response = self.client.post(f"/groups/{group['id']}/leave")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()["error"]["kind"], "transfer_required")


if __name__ == "__main__":
    unittest.main()
