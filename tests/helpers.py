"""Base test cases backed by an in-memory Firestore."""

import datetime
import unittest
from unittest.mock import MagicMock, patch

from firebase_admin import firestore

from tests.conftest import EnhancedMockFirestore, mock_transactional, patch_mockfirestore
from watchd import create_app
from watchd.core import constants
from watchd.core.roles import Role
from watchd.core.store import (
    Store,
    entry_key,
    group_title_key,
    membership_key,
    utcnow,
)
from watchd.titles.models import Title


def make_title(imdb_id="tt0111161", title="The Shawshank Redemption", year="1994"):
    return Title(
        imdbId=imdb_id,
        title=title,
        type="movie",
        year=year,
        posterUrl=None,
        plot=None,
        raw={"imdbID": imdb_id, "Title": title},
    )


def fake_titles(*titles):
    """A title client that knows only the given titles."""
    known = {t.imdbId: t for t in titles} or {make_title().imdbId: make_title()}
    client = MagicMock()
    client.fetch_title_by_id.side_effect = known.get
    return client


class BaseTestCase(unittest.TestCase):
    """Gives each test a fresh store with working transactions."""

    def setUp(self):
        patch_mockfirestore()
        self.db = EnhancedMockFirestore()
        self.store = Store(self.db)
        patcher = patch.object(firestore, "transactional", mock_transactional)
        patcher.start()
        self.addCleanup(patcher.stop)

    def create_user(self, uid, name=None, email=None, role=constants.USER_ROLE_USER):
        """Creates a user document and returns its id."""
        self.db.collection(constants.USERS).document(uid).set(
            {
                "email": email or f"{uid}@example.com",
                "name": name,
                "role": role,
                "heroDismissedAt": None,
                "createdAt": utcnow(),
            }
        )
        return uid

    def create_group(self, group_id, owner_id, name="Movie Night", share_code=None):
        """Creates a group with its owner membership, bypassing the service."""
        self.db.collection(constants.GROUPS).document(group_id).set(
            {
                "name": name,
                "slug": group_id,
                "shareCode": share_code or f"code-{group_id}",
                "ownerId": owner_id,
                "createdAt": utcnow(),
            }
        )
        self.add_member(group_id, owner_id, Role.OWNER)
        return group_id

    def add_member(self, group_id, user_id, role=Role.EDITOR):
        now = utcnow()
        self.db.collection(constants.MEMBERSHIPS).document(
            membership_key(group_id, user_id)
        ).set(
            {
                "groupId": group_id,
                "userId": user_id,
                "role": Role(role).value,
                "status": constants.STATUS_ACTIVE,
                "createdAt": now,
                "updatedAt": now,
            }
        )

    def share_entry(self, user_id, imdb_id, group_id, title="Title", created_at=None):
        """Writes an entry, plus its group title claim when group_id is set."""
        entry_id = entry_key(user_id, imdb_id, group_id)
        self.db.collection(constants.ENTRIES).document(entry_id).set(
            {
                "userId": user_id,
                "groupId": group_id,
                "imdbId": imdb_id,
                "title": title,
                "review": None,
                "createdAt": created_at or utcnow(),
            }
        )
        if group_id:
            self.db.collection(constants.GROUP_TITLES).document(
                group_title_key(group_id, imdb_id)
            ).set(
                {
                    "groupId": group_id,
                    "imdbId": imdb_id,
                    "entryId": entry_id,
                    "userId": user_id,
                }
            )
        return entry_id

    def membership(self, group_id, user_id):
        return self.store.get(constants.MEMBERSHIPS, membership_key(group_id, user_id))

    def owners(self, group_id):
        return [
            m
            for m in self.store.query(constants.MEMBERSHIPS, ("groupId", "==", group_id))
            if m["role"] == Role.OWNER.value
        ]

    @staticmethod
    def days_ago(days):
        return utcnow() - datetime.timedelta(days=days)


class AppTestCase(BaseTestCase):
    """Flask test client wired to the in-memory store."""

    def setUp(self):
        super().setUp()
        patchers = [
            patch("firebase_admin.initialize_app"),
            patch.object(firestore, "client", return_value=self.db),
        ]
        for p in patchers:
            p.start()
            self.addCleanup(p.stop)

        self.app = create_app(
            {
                "TESTING": True,
                "WTF_CSRF_ENABLED": False,
                "INVITE_LINK_BASE_URL": "https://watchd.test",
            }
        )
        self.client = self.app.test_client()
        self.app_context = self.app.app_context()
        self.app_context.push()
        self.addCleanup(self.app_context.pop)

    def login(self, uid, name=None, role=constants.USER_ROLE_USER):
        """Creates the user if needed and signs the test client in as them."""
        if not self.store.get(constants.USERS, uid):
            self.create_user(uid, name=name or uid.title(), role=role)
        with self.client.session_transaction() as sess:
            sess["user_id"] = uid
            sess["is_admin"] = role == constants.USER_ROLE_ADMIN
