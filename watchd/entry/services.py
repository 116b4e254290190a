"""Watch entries: scoped deduplication and feed reads."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from google.api_core import exceptions as google_exceptions

from watchd.core import constants
from watchd.core.roles import Role, can_mutate_entries
from watchd.core.store import entry_key, group_title_key, membership_key, read, utcnow
from watchd.engagement.services import EngagementService
from watchd.errors import (
    ConflictError,
    DependencyFailure,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from watchd.core.queue import NotificationQueue
    from watchd.core.store import Store
    from watchd.notifications.services import NotificationService
    from watchd.titles.client import OmdbClient

    from .models import FeedEntry

logger = logging.getLogger(__name__)

SORT_RECENT = "recent"
SORT_LIKES = "likes"

GROUP_DUPLICATE_MESSAGE = (
    "That title is already in this group. React or add a comment on the existing card."
)


def clean_note(note: str | None) -> str | None:
    """Trim a review note; blank notes are stored as None."""
    note = (note or "").strip()
    if len(note) > constants.NOTE_MAX_LENGTH:
        raise ValidationError("Notes must be 500 characters or fewer.")
    return note or None


def normalize_imdb_id(imdb_id: str | None) -> str:
    """IMDb ids are stored lowercase and trimmed, e.g. ``tt0111161``."""
    return (imdb_id or "").strip().lower()


def _public(entry: dict[str, Any]) -> dict[str, Any]:
    """Drop the raw lookup payload before returning an entry."""
    return {k: v for k, v in entry.items() if k != "omdb"}


class EntryService:
    """Service class for watch entries.

    Uniqueness of (user, title, scope) and of (group, title) is carried by
    deterministic document ids written with create-only semantics, so a
    concurrent duplicate fails at commit instead of slipping through.
    """

    def __init__(
        self,
        store: Store,
        titles: OmdbClient | None = None,
        queue: NotificationQueue | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        self.store = store
        self.titles = titles
        self.queue = queue
        self.notifier = notifier

    def _require_editor(self, user_id: str, group_id: str, action: str) -> None:
        membership = self.store.get(
            constants.MEMBERSHIPS, membership_key(group_id, user_id)
        )
        if not membership or membership.get("status") != constants.STATUS_ACTIVE:
            raise ForbiddenError("You are not part of that group.")
        if not can_mutate_entries(Role.parse(membership.get("role"))):
            raise ForbiddenError(f"View-only members cannot {action} this group.")

    def upsert_entry(
        self,
        user_id: str,
        imdb_id: str,
        group_id: str | None = None,
        note: str | None = None,
        liked: bool | None = None,
    ) -> dict[str, Any]:
        """Log a title for the caller, personally or into a group.

        Returns the stored entry. A title already shared into the group by
        someone else is a ConflictError naming that person.
        """
        imdb_id = normalize_imdb_id(imdb_id)
        if len(imdb_id) < 2:
            raise ValidationError("IMDb id is required.")
        group_id = group_id or None
        note = clean_note(note)
        liked = True if liked is None else liked

        if self.titles is None:
            raise DependencyFailure("Title lookup is not configured.")
        title = self.titles.fetch_title_by_id(imdb_id)
        if title is None:
            raise NotFoundError("IMDb title not found.")

        if group_id:
            self._require_editor(user_id, group_id, "add titles to")

        imdb_id = normalize_imdb_id(title.imdbId)
        entry_ref = self.store.ref(
            constants.ENTRIES, entry_key(user_id, imdb_id, group_id)
        )
        claim_ref = (
            self.store.ref(constants.GROUP_TITLES, group_title_key(group_id, imdb_id))
            if group_id
            else None
        )
        snapshot = {
            "title": title.title,
            "year": title.year,
            "type": title.type,
            "posterUrl": title.posterUrl,
            "omdb": title.raw,
        }

        def _upsert(transaction):
            claim = read(transaction, claim_ref) if claim_ref is not None else None
            if claim is not None and claim.get("userId") != user_id:
                sharer = read(
                    transaction, self.store.ref(constants.USERS, claim["userId"])
                )
                raise ConflictError(self._duplicate_message(sharer))
            existing = read(transaction, entry_ref)
            now = utcnow()
            claim_data = {
                "groupId": group_id,
                "imdbId": imdb_id,
                "entryId": entry_ref.id,
                "userId": user_id,
            }
            if existing is not None:
                changes = {**snapshot, "review": note, "liked": liked, "updatedAt": now}
                transaction.update(entry_ref, changes)
                if claim_ref is not None and claim is None:
                    # Released when the author left; sharing again reclaims it.
                    transaction.create(claim_ref, claim_data)
                return {**existing, **changes}, False

            data = {
                "userId": user_id,
                "groupId": group_id,
                "imdbId": imdb_id,
                **snapshot,
                "review": note,
                "liked": liked,
                "createdAt": now,
                "updatedAt": now,
            }
            transaction.create(entry_ref, data)
            if claim_ref is not None:
                if claim is None:
                    transaction.create(claim_ref, claim_data)
                else:
                    transaction.set(claim_ref, claim_data)
            return {"id": entry_ref.id, **data}, True

        try:
            entry, created = self.store.run_transaction(_upsert)
        except google_exceptions.Conflict:
            # A concurrent insert won; the retry sees it and updates instead.
            logger.info("Concurrent insert of %s, retrying as update", entry_ref.id)
            try:
                entry, created = self.store.run_transaction(_upsert)
            except google_exceptions.Conflict as e:
                raise ConflictError(GROUP_DUPLICATE_MESSAGE) from e

        if created and group_id and self.queue is not None and self.notifier is not None:
            self.queue.enqueue(
                self.notifier.on_entry_shared, _public(entry), group_id, user_id
            )
        return _public(entry)

    @staticmethod
    def _duplicate_message(sharer: dict[str, Any] | None) -> str:
        name = (sharer or {}).get("name")
        if name:
            return (
                f"{name} already shared this to the group. "
                "React or add a comment on the existing card."
            )
        return GROUP_DUPLICATE_MESSAGE

    def delete_entry(self, user_id: str, imdb_id: str, group_id: str | None = None) -> None:
        """Delete the caller's own entry along with its reactions and comments."""
        group_id = group_id or None
        imdb_id = normalize_imdb_id(imdb_id)
        if group_id:
            self._require_editor(user_id, group_id, "remove titles from")

        entry_ref = self.store.ref(
            constants.ENTRIES, entry_key(user_id, imdb_id, group_id)
        )
        claim_ref = (
            self.store.ref(constants.GROUP_TITLES, group_title_key(group_id, imdb_id))
            if group_id
            else None
        )

        def _delete(transaction):
            if read(transaction, entry_ref) is None:
                raise NotFoundError("Entry not found.")
            claim = read(transaction, claim_ref) if claim_ref is not None else None
            dependents = [
                self.store.ref(collection, doc["id"])
                for collection in (constants.REACTIONS, constants.COMMENTS)
                for doc in self.store.query(
                    collection,
                    ("entryId", "==", entry_ref.id),
                    transaction=transaction,
                )
            ]
            transaction.delete(entry_ref)
            if claim is not None and claim.get("userId") == user_id:
                transaction.delete(claim_ref)
            for ref in dependents:
                transaction.delete(ref)

        self.store.run_transaction(_delete)
        logger.info("Entry %s deleted", entry_ref.id)

    def get_feed(
        self,
        viewer_id: str,
        group_id: str | None = None,
        sort: str = SORT_RECENT,
        limit: int = constants.FEED_LIMIT,
    ) -> list[FeedEntry]:
        """Latest entries of a group, or of the viewer's personal scope.

        Group feeds skip entries whose author has left, and count only the
        reactions of current members.
        """
        engagement = EngagementService(self.store)
        member_ids = None
        if group_id:
            membership = self.store.get(
                constants.MEMBERSHIPS, membership_key(group_id, viewer_id)
            )
            if not membership or membership.get("status") != constants.STATUS_ACTIVE:
                raise ForbiddenError("You are not part of that group.")
            entries = engagement.visible_entries(
                self.store.query(constants.ENTRIES, ("groupId", "==", group_id))
            )
            member_ids = engagement.active_member_ids(group_id)
        else:
            entries = self.store.query(
                constants.ENTRIES,
                ("userId", "==", viewer_id),
                ("groupId", "==", None),
            )
        entries.sort(key=lambda e: e["createdAt"], reverse=True)
        entries = entries[:limit]

        entry_ids = [e["id"] for e in entries]
        counts = engagement.reaction_counts(entry_ids, member_ids)
        viewer_reactions = engagement.viewer_reactions(viewer_id, entry_ids)
        users = self.store.get_many(constants.USERS, [e["userId"] for e in entries])
        shared_groups = self._shared_groups(
            viewer_id, {e["imdbId"] for e in entries if e["userId"] == viewer_id}
        )

        feed: list[FeedEntry] = []
        for entry in entries:
            user = users.get(entry["userId"], {})
            item = _public(entry)
            item.update(
                addedBy={"id": entry["userId"], "name": user.get("name")},
                viewerReaction=viewer_reactions.get(entry["id"]),
                sharedGroups=(
                    shared_groups.get(entry["imdbId"], [])
                    if entry["userId"] == viewer_id
                    else []
                ),
                **counts[entry["id"]],
            )
            feed.append(item)  # type: ignore[arg-type]

        if sort == SORT_LIKES:
            # Stable sorts, least significant key first.
            feed.sort(key=lambda e: e["createdAt"], reverse=True)
            feed.sort(key=lambda e: (-e["likeCount"], e["dislikeCount"]))
        return feed

    def _shared_groups(
        self, viewer_id: str, imdb_ids: set[str]
    ) -> dict[str, list[dict[str, str]]]:
        """Groups each of the viewer's titles is shared into."""
        if not imdb_ids:
            return {}
        group_ids_by_title: dict[str, list[str]] = {}
        for entry in self.store.query(constants.ENTRIES, ("userId", "==", viewer_id)):
            if entry.get("groupId") and entry["imdbId"] in imdb_ids:
                group_ids_by_title.setdefault(entry["imdbId"], []).append(
                    entry["groupId"]
                )
        groups = self.store.get_many(
            constants.GROUPS,
            [gid for gids in group_ids_by_title.values() for gid in gids],
        )
        return {
            imdb_id: sorted(
                (
                    {"id": gid, "name": groups[gid].get("name", "")}
                    for gid in gids
                    if gid in groups
                ),
                key=lambda g: g["name"].lower(),
            )
            for imdb_id, gids in group_ids_by_title.items()
        }
