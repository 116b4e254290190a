"""Notification preferences, instant fan-out and the weekly digest."""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING, Any

from watchd.core import constants
from watchd.core.store import membership_key, preference_key, utcnow
from watchd.engagement.services import EngagementService
from watchd.errors import ForbiddenError

if TYPE_CHECKING:
    from watchd.core.store import Store

    from .email import EmailSender

logger = logging.getLogger(__name__)


class NotificationService:
    """Service class for group notifications.

    Delivery goes through ``EmailSender``, which reports failures instead of
    raising them, so none of these methods fail because of the mail server.
    """

    def __init__(self, store: Store, email_sender: EmailSender) -> None:
        self.store = store
        self.email_sender = email_sender

    def on_entry_shared(
        self, entry: dict[str, Any], group_id: str, actor_id: str
    ) -> dict[str, int]:
        """Email every instant subscriber of the group except the sharer."""
        group = self.store.get(constants.GROUPS, group_id) or {}
        prefs = self.store.query(
            constants.NOTIFICATION_PREFERENCES,
            ("groupId", "==", group_id),
            ("instant", "==", True),
        )
        recipient_ids = [p["userId"] for p in prefs if p["userId"] != actor_id]
        users = self.store.get_many(constants.USERS, recipient_ids + [actor_id])
        added_by = (users.get(actor_id) or {}).get("name") or "Someone"

        sent = 0
        recipients = 0
        for user_id in recipient_ids:
            email = (users.get(user_id) or {}).get("email")
            if not email:
                continue
            recipients += 1
            result = self.email_sender.send_group_update(
                email,
                group.get("name") or "Your circle",
                group.get("shareCode", ""),
                entry.get("title", ""),
                added_by,
                entry.get("review"),
            )
            sent += int(result["sent"])
        logger.info(
            "Entry %s shared to %s: %d of %d emails sent",
            entry.get("id"),
            group_id,
            sent,
            recipients,
        )
        return {"recipients": recipients, "sent": sent}

    def weekly_digest(self, now: datetime.datetime | None = None) -> dict[str, int]:
        """Send each weekly subscriber one roundup across their groups.

        Items are the group entries created in the trailing window, most
        liked first and newest first among ties.
        """
        now = now or utcnow()
        since = now - datetime.timedelta(days=constants.DIGEST_WINDOW_DAYS)
        prefs = self.store.query(
            constants.NOTIFICATION_PREFERENCES, ("weekly", "==", True)
        )
        group_ids = list(dict.fromkeys(p["groupId"] for p in prefs))
        groups = self.store.get_many(constants.GROUPS, group_ids)
        users = self.store.get_many(constants.USERS, [p["userId"] for p in prefs])

        items_by_group = {gid: self._recent_items(gid, since) for gid in group_ids}

        per_recipient: dict[str, list[dict[str, Any]]] = {}
        for pref in prefs:
            email = (users.get(pref["userId"]) or {}).get("email")
            items = items_by_group.get(pref["groupId"]) or []
            if not email or not items:
                continue
            group_name = (groups.get(pref["groupId"]) or {}).get("name") or "Your circle"
            per_recipient.setdefault(email, []).extend(
                {**item, "groupName": group_name} for item in items
            )

        sent = 0
        for email, items in per_recipient.items():
            items.sort(key=lambda i: i["createdAt"], reverse=True)
            items.sort(key=lambda i: i["likeCount"], reverse=True)
            sent += int(self.email_sender.send_weekly_digest(email, items)["sent"])

        logger.info(
            "Weekly digest: %d groups, %d recipients, %d sent",
            len(group_ids),
            len(per_recipient),
            sent,
        )
        return {
            "processedGroups": len(group_ids),
            "recipients": len(per_recipient),
            "sent": sent,
        }

    def _recent_items(
        self, group_id: str, since: datetime.datetime
    ) -> list[dict[str, Any]]:
        engagement = EngagementService(self.store)
        entries = [
            e
            for e in self.store.query(constants.ENTRIES, ("groupId", "==", group_id))
            if e["createdAt"] >= since
        ]
        entries = engagement.visible_entries(entries)
        if not entries:
            return []
        counts = engagement.reaction_counts(
            [e["id"] for e in entries], engagement.active_member_ids(group_id)
        )
        users = self.store.get_many(constants.USERS, [e["userId"] for e in entries])
        return [
            {
                "title": e.get("title", ""),
                "note": e.get("review"),
                "createdAt": e["createdAt"],
                "addedBy": (users.get(e["userId"]) or {}).get("name") or "Someone",
                "likeCount": counts[e["id"]]["likeCount"],
            }
            for e in entries
        ]

    # Preferences

    def get_preferences(self, user_id: str) -> list[dict[str, Any]]:
        """Every active group of the user with its notification flags."""
        memberships = self.store.query(
            constants.MEMBERSHIPS,
            ("userId", "==", user_id),
            ("status", "==", constants.STATUS_ACTIVE),
        )
        group_ids = [m["groupId"] for m in memberships]
        groups = self.store.get_many(constants.GROUPS, group_ids)
        prefs = self.store.get_many(
            constants.NOTIFICATION_PREFERENCES,
            [preference_key(gid, user_id) for gid in group_ids],
        )
        result = []
        for gid in group_ids:
            group = groups.get(gid)
            if group is None:
                continue
            pref = prefs.get(preference_key(gid, user_id), {})
            result.append(
                {
                    "id": gid,
                    "name": group.get("name", ""),
                    "shareCode": group.get("shareCode", ""),
                    "slug": group.get("slug", ""),
                    "instant": bool(pref.get("instant", False)),
                    "weekly": bool(pref.get("weekly", False)),
                }
            )
        result.sort(key=lambda g: g["name"].lower())
        return result

    def update_preference(
        self,
        user_id: str,
        group_id: str,
        instant: bool | None = None,
        weekly: bool | None = None,
    ) -> dict[str, Any]:
        """Upsert the user's flags for a group; None leaves a flag unchanged."""
        membership = self.store.get(
            constants.MEMBERSHIPS, membership_key(group_id, user_id)
        )
        if not membership or membership.get("status") != constants.STATUS_ACTIVE:
            raise ForbiddenError("You are not part of that group.")

        ref = self.store.ref(
            constants.NOTIFICATION_PREFERENCES, preference_key(group_id, user_id)
        )
        snapshot = ref.get()
        current = snapshot.to_dict() if snapshot.exists else {}
        pref = {
            "groupId": group_id,
            "userId": user_id,
            "instant": current.get("instant", False) if instant is None else instant,
            "weekly": current.get("weekly", False) if weekly is None else weekly,
            "updatedAt": utcnow(),
        }
        ref.set(pref)
        return pref
