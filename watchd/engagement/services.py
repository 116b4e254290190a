"""Reactions and comments on watch entries."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from google.api_core import exceptions as google_exceptions

from watchd.core import constants
from watchd.core.store import (
    group_title_key,
    membership_key,
    reaction_key,
    read,
    utcnow,
)
from watchd.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from watchd.core.store import Store

logger = logging.getLogger(__name__)

# Firestore caps the number of values in an ``in`` filter.
IN_QUERY_LIMIT = 30


def _chunks(values: list[str], size: int = IN_QUERY_LIMIT):
    for i in range(0, len(values), size):
        yield values[i : i + size]


def clean_comment(body: str | None) -> str:
    """Trim a comment body and enforce its length bounds."""
    body = (body or "").strip()
    if len(body) < constants.COMMENT_MIN_LENGTH:
        raise ValidationError("Comment cannot be empty.")
    if len(body) > constants.COMMENT_MAX_LENGTH:
        raise ValidationError("Keep comments under 500 characters.")
    return body


class EngagementService:
    """Service class for reactions and comments.

    Every operation first runs the entry access check: members of the
    entry's group may engage with it, and personal entries are visible to
    their owner alone.

    A group entry is visible only while it holds the group's claim on its
    title. Leaving or being removed releases the member's claims, so their
    shared entries drop out of the group along with their comments and
    reactions, without being deleted.
    """

    def __init__(self, store: Store) -> None:
        self.store = store

    def check_access(self, user_id: str, entry_id: str) -> dict[str, Any]:
        entry = self.store.get(constants.ENTRIES, entry_id)
        if entry is None:
            raise NotFoundError("Entry not found.")
        group_id = entry.get("groupId")
        if group_id:
            membership = self.store.get(
                constants.MEMBERSHIPS, membership_key(group_id, user_id)
            )
            if not membership or membership.get("status") != constants.STATUS_ACTIVE:
                raise ForbiddenError("You are not part of this circle.")
            if not self.visible_entries([entry]):
                raise NotFoundError("Entry not found.")
        elif entry.get("userId") != user_id:
            raise ForbiddenError("This entry belongs to someone else.")
        return entry

    def visible_entries(self, entries: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Drop group entries that no longer hold their group's title claim."""
        keys = {
            e["id"]: group_title_key(e["groupId"], e["imdbId"])
            for e in entries
            if e.get("groupId")
        }
        claims = self.store.get_many(constants.GROUP_TITLES, list(keys.values()))
        return [
            e
            for e in entries
            if e["id"] not in keys
            or (claims.get(keys[e["id"]]) or {}).get("entryId") == e["id"]
        ]

    def active_member_ids(self, group_id: str) -> set[str]:
        return {
            m["userId"]
            for m in self.store.query(
                constants.MEMBERSHIPS,
                ("groupId", "==", group_id),
                ("status", "==", constants.STATUS_ACTIVE),
            )
        }

    def _entry_counts(self, entry: dict[str, Any]) -> dict[str, int]:
        member_ids = (
            self.active_member_ids(entry["groupId"]) if entry.get("groupId") else None
        )
        return self.reaction_counts([entry["id"]], member_ids)[entry["id"]]

    # Reactions

    def set_reaction(self, user_id: str, entry_id: str, kind: str) -> dict[str, Any]:
        """Like or dislike an entry, replacing any earlier reaction."""
        kind = (kind or "").strip().upper()
        if kind not in constants.REACTION_KINDS:
            raise ValidationError("Invalid reaction.")
        entry = self.check_access(user_id, entry_id)
        ref = self.store.ref(constants.REACTIONS, reaction_key(entry_id, user_id))

        def _upsert(transaction):
            existing = read(transaction, ref)
            now = utcnow()
            if existing is None:
                transaction.create(
                    ref,
                    {
                        "entryId": entry_id,
                        "userId": user_id,
                        "reaction": kind,
                        "createdAt": now,
                        "updatedAt": now,
                    },
                )
            else:
                transaction.update(ref, {"reaction": kind, "updatedAt": now})

        try:
            self.store.run_transaction(_upsert)
        except google_exceptions.Conflict:
            try:
                self.store.run_transaction(_upsert)
            except google_exceptions.Conflict as e:
                raise ConflictError("Reaction changed concurrently. Try again.") from e

        counts = self._entry_counts(entry)
        return {"entryId": entry_id, "viewerReaction": kind, **counts}

    def clear_reaction(self, user_id: str, entry_id: str) -> dict[str, Any]:
        """Remove the caller's reaction; clearing twice is harmless."""
        entry = self.check_access(user_id, entry_id)
        ref = self.store.ref(constants.REACTIONS, reaction_key(entry_id, user_id))
        if ref.get().exists:
            ref.delete()
        counts = self._entry_counts(entry)
        return {"entryId": entry_id, "viewerReaction": None, **counts}

    def reaction_counts(
        self, entry_ids: list[str], member_ids: set[str] | None = None
    ) -> dict[str, dict[str, int]]:
        """Like and dislike totals per entry id.

        With ``member_ids``, reactions by anyone else are not counted.
        """
        counts = {
            entry_id: {"likeCount": 0, "dislikeCount": 0} for entry_id in entry_ids
        }
        for chunk in _chunks(list(counts)):
            for reaction in self.store.query(
                constants.REACTIONS, ("entryId", "in", chunk)
            ):
                bucket = counts.get(reaction["entryId"])
                if bucket is None:
                    continue
                if member_ids is not None and reaction["userId"] not in member_ids:
                    continue
                if reaction.get("reaction") == constants.REACTION_LIKE:
                    bucket["likeCount"] += 1
                elif reaction.get("reaction") == constants.REACTION_DISLIKE:
                    bucket["dislikeCount"] += 1
        return counts

    def viewer_reactions(self, viewer_id: str, entry_ids: list[str]) -> dict[str, str]:
        """The viewer's own reaction kind per entry id, where one exists."""
        keys = {reaction_key(entry_id, viewer_id): entry_id for entry_id in entry_ids}
        found = self.store.get_many(constants.REACTIONS, list(keys))
        return {keys[key]: doc["reaction"] for key, doc in found.items()}

    # Comments

    def list_comments(self, viewer_id: str, entry_id: str) -> list[dict[str, Any]]:
        """Comments on an entry, oldest first, with their authors."""
        entry = self.check_access(viewer_id, entry_id)
        comments = self.store.query(constants.COMMENTS, ("entryId", "==", entry_id))
        if entry.get("groupId"):
            member_ids = self.active_member_ids(entry["groupId"])
            comments = [c for c in comments if c["userId"] in member_ids]
        comments.sort(key=lambda c: c["createdAt"])
        users = self.store.get_many(constants.USERS, [c["userId"] for c in comments])
        return [self._with_author(c, users.get(c["userId"])) for c in comments]

    def add_comment(self, user_id: str, entry_id: str, body: str) -> dict[str, Any]:
        body = clean_comment(body)
        self.check_access(user_id, entry_id)
        ref = self.store.new_ref(constants.COMMENTS)
        now = utcnow()
        data = {
            "entryId": entry_id,
            "userId": user_id,
            "body": body,
            "createdAt": now,
            "updatedAt": now,
        }
        ref.set(data)
        author = self.store.get(constants.USERS, user_id)
        return self._with_author({"id": ref.id, **data}, author)

    def edit_comment(
        self, user_id: str, entry_id: str, comment_id: str, body: str
    ) -> dict[str, Any]:
        body = clean_comment(body)
        comment = self._own_comment(
            user_id, entry_id, comment_id, "You can only edit your own comments."
        )
        now = utcnow()
        self.store.ref(constants.COMMENTS, comment_id).update(
            {"body": body, "updatedAt": now}
        )
        comment.update(body=body, updatedAt=now)
        author = self.store.get(constants.USERS, user_id)
        return self._with_author(comment, author)

    def delete_comment(self, user_id: str, entry_id: str, comment_id: str) -> None:
        self._own_comment(
            user_id, entry_id, comment_id, "You can only delete your own comments."
        )
        self.store.ref(constants.COMMENTS, comment_id).delete()

    def _own_comment(
        self, user_id: str, entry_id: str, comment_id: str, forbidden_message: str
    ) -> dict[str, Any]:
        comment = self.store.get(constants.COMMENTS, comment_id)
        if comment is None or comment.get("entryId") != entry_id:
            raise NotFoundError("Comment not found")
        if comment.get("userId") != user_id:
            raise ForbiddenError(forbidden_message)
        self.check_access(user_id, entry_id)
        return comment

    @staticmethod
    def _with_author(comment: dict[str, Any], user: dict[str, Any] | None) -> dict[str, Any]:
        user = user or {}
        return {
            "id": comment["id"],
            "entryId": comment["entryId"],
            "body": comment["body"],
            "createdAt": comment.get("createdAt"),
            "updatedAt": comment.get("updatedAt"),
            "user": {"id": comment["userId"], "name": user.get("name")},
        }
