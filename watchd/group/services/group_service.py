"""Service layer for groups, memberships, invites and role transitions."""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING, Any

from google.api_core import exceptions as google_exceptions

from watchd.auth.services import AuthService, normalize_email
from watchd.core import constants, tokens
from watchd.core.roles import ROLE_ORDER, Role, can_grant_role, can_manage_members
from watchd.core.store import membership_key, preference_key, read, utcnow
from watchd.errors import (
    ConflictError,
    ExpiredError,
    ForbiddenError,
    NotFoundError,
    OwnershipUnresolvedError,
    TransferRequiredError,
    ValidationError,
)

if TYPE_CHECKING:
    from watchd.core.store import Store
    from watchd.notifications.email import EmailSender

    from ..models import GroupSummary, MemberSummary

logger = logging.getLogger(__name__)


def _role_of(membership: dict[str, Any] | None) -> Role | None:
    if not membership or membership.get("status") != constants.STATUS_ACTIVE:
        return None
    return Role.parse(membership.get("role"))


def _as_aware(value: Any) -> Any:
    if isinstance(value, datetime.datetime) and value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


def _summary(group: dict[str, Any], role: Role | str) -> GroupSummary:
    return {
        "id": group["id"],
        "name": group.get("name", ""),
        "slug": group.get("slug", ""),
        "shareCode": group.get("shareCode", ""),
        "role": Role.parse(role).value,
    }


class GroupService:
    """Service class for group-related operations.

    Every operation that touches more than one document runs inside a single
    store transaction, and all checks happen before the first write.
    """

    def __init__(
        self,
        store: Store,
        email_sender: EmailSender | None = None,
        invite_ttl_days: int = constants.INVITE_TTL_DAYS,
    ) -> None:
        self.store = store
        self.email_sender = email_sender
        self.invite_ttl_days = invite_ttl_days

    # Reads

    def get_group(self, group_id: str) -> dict[str, Any]:
        group = self.store.get(constants.GROUPS, group_id)
        if group is None:
            raise NotFoundError("Group not found.")
        return group

    def get_membership(self, group_id: str, user_id: str) -> dict[str, Any] | None:
        """The caller's ACTIVE membership, or None."""
        membership = self.store.get(
            constants.MEMBERSHIPS, membership_key(group_id, user_id)
        )
        if _role_of(membership) is None:
            return None
        return membership

    def get_role(self, group_id: str, user_id: str) -> Role | None:
        return _role_of(self.get_membership(group_id, user_id))

    def list_groups(self, user_id: str) -> list[GroupSummary]:
        """The caller's active groups with their role, ordered by name."""
        memberships = self.store.query(
            constants.MEMBERSHIPS,
            ("userId", "==", user_id),
            ("status", "==", constants.STATUS_ACTIVE),
        )
        groups = self.store.get_many(
            constants.GROUPS, [m["groupId"] for m in memberships]
        )
        summaries = [
            _summary(groups[m["groupId"]], m["role"])
            for m in memberships
            if m["groupId"] in groups
        ]
        summaries.sort(key=lambda g: g["name"].lower())
        return summaries

    def list_members(self, actor_id: str, group_id: str) -> list[MemberSummary]:
        """Members of a group for its managers, ordered by role then name."""
        if not can_manage_members(self.get_role(group_id, actor_id)):
            raise ForbiddenError("Only owners or editors can manage members.")
        memberships = self.store.query(
            constants.MEMBERSHIPS, ("groupId", "==", group_id)
        )
        users = self.store.get_many(
            constants.USERS, [m["userId"] for m in memberships]
        )
        members: list[MemberSummary] = []
        for membership in memberships:
            user = users.get(membership["userId"], {})
            members.append(
                {
                    "userId": membership["userId"],
                    "role": membership["role"],
                    "status": membership.get("status", constants.STATUS_ACTIVE),
                    "name": user.get("name") or user.get("email") or "Member",
                    "email": user.get("email"),
                }
            )
        members.sort(
            key=lambda m: (ROLE_ORDER[Role.parse(m["role"])], m["name"].lower())
        )
        return members

    def resolve_feed_group(self, user_id: str, code: str | None) -> GroupSummary | None:
        """Pick one of the caller's groups by share code or slug."""
        if not code:
            return None
        for group in self.list_groups(user_id):
            if code in (group["shareCode"], group["slug"]):
                return group
        return None

    # Creation

    def create_group(self, creator_id: str, name: str) -> GroupSummary:
        """Create a group with the creator as its ACTIVE OWNER."""
        name = (name or "").strip()
        if not (
            constants.GROUP_NAME_MIN_LENGTH <= len(name) <= constants.GROUP_NAME_MAX_LENGTH
        ):
            raise ValidationError("Circle name must be 2-60 characters.")

        try:
            return self._create_group_once(creator_id, name)
        except google_exceptions.Conflict:
            # Someone claimed the same slug or share code between our check and
            # commit; pick fresh identifiers once.
            logger.info("Slug or share code race while creating %r, retrying", name)
        try:
            return self._create_group_once(creator_id, name)
        except google_exceptions.Conflict as e:
            raise ConflictError("Could not reserve a unique circle link.") from e

    def _create_group_once(self, creator_id: str, name: str) -> GroupSummary:
        slug = tokens.unique_slug(name, self._claimed(constants.GROUP_SLUGS))
        share_code = tokens.unique_share_code(self._claimed(constants.GROUP_SHARE_CODES))
        group_ref = self.store.new_ref(constants.GROUPS)
        now = utcnow()
        group_data = {
            "name": name,
            "slug": slug,
            "shareCode": share_code,
            "ownerId": creator_id,
            "createdAt": now,
        }

        def _create(transaction):
            claim = {"groupId": group_ref.id}
            transaction.create(self.store.ref(constants.GROUP_SLUGS, slug), claim)
            transaction.create(
                self.store.ref(constants.GROUP_SHARE_CODES, share_code), claim
            )
            transaction.create(group_ref, group_data)
            transaction.create(
                self.store.ref(
                    constants.MEMBERSHIPS, membership_key(group_ref.id, creator_id)
                ),
                {
                    "groupId": group_ref.id,
                    "userId": creator_id,
                    "role": Role.OWNER.value,
                    "status": constants.STATUS_ACTIVE,
                    "createdAt": now,
                    "updatedAt": now,
                },
            )

        self.store.run_transaction(_create)
        logger.info("Group %s created by %s", group_ref.id, creator_id)
        return _summary({"id": group_ref.id, **group_data}, Role.OWNER)

    def _claimed(self, collection: str):
        return lambda value: self.store.ref(collection, value).get().exists

    # Invites

    def invite(
        self,
        inviter_id: str,
        group_id: str,
        target_email: str,
        requested_role: str | None = None,
    ) -> dict[str, Any]:
        """Invite an email address into a group.

        The email is allowlisted so the invitee can sign in. The token is
        returned to the inviter even when the email could not be delivered.
        """
        email = normalize_email(target_email)
        role = Role.parse(requested_role or Role.EDITOR)

        inviter_role = self.get_role(group_id, inviter_id)
        if not can_manage_members(inviter_role):
            raise ForbiddenError("Only owners or editors can invite members.")
        group = self.get_group(group_id)
        if role is Role.OWNER and (
            not can_grant_role(inviter_role, role) or group.get("ownerId") != inviter_id
        ):
            raise ForbiddenError("Only the current owner can invite a new owner.")

        for user in self.store.query(constants.USERS, ("email", "==", email)):
            if self.get_membership(group_id, user["id"]) is not None:
                raise ConflictError("That person is already in this circle.")

        AuthService(self.store).allowlist_email(email, inviter_id)

        token = tokens.unique_invite_token(self._claimed(constants.INVITES))
        now = utcnow()
        expires_at = now + datetime.timedelta(days=self.invite_ttl_days)
        invite_ref = self.store.ref(constants.INVITES, token)
        invite_ref.set(
            {
                "groupId": group_id,
                "email": email,
                "token": token,
                "inviteRole": role.value,
                "expiresAt": expires_at,
                "acceptedAt": None,
                "acceptedById": None,
                "createdById": inviter_id,
                "createdAt": now,
                "emailStatus": "pending",
            }
        )

        email_sent = False
        if self.email_sender is not None:
            inviter = self.store.get(constants.USERS, inviter_id) or {}
            result = self.email_sender.send_invite(
                email, group.get("name", ""), token, inviter.get("name")
            )
            email_sent = result["sent"]
        invite_ref.update({"emailStatus": "sent" if email_sent else "failed"})
        if not email_sent:
            logger.warning("Invite email to %s for group %s not sent", email, group_id)

        return {
            "token": token,
            "role": role.value,
            "expiresAt": expires_at,
            "emailSent": email_sent,
        }

    def accept_invite(self, user_id: str, token: str) -> GroupSummary:
        """Join a group with an invite token.

        A used token grants nothing again. Its acceptor gets the group back
        while still a member, and a ConflictError once removed or departed.
        """
        invite_ref = self.store.ref(constants.INVITES, (token or "").strip())

        def _accept(transaction):
            invite = read(transaction, invite_ref)
            if invite is None:
                raise NotFoundError("Invite not found.")
            group_id = invite["groupId"]
            group_ref = self.store.ref(constants.GROUPS, group_id)
            member_ref = self.store.ref(
                constants.MEMBERSHIPS, membership_key(group_id, user_id)
            )

            if invite.get("acceptedById"):
                # A consumed token grants nothing again. Its own acceptor gets
                # the group back only while still a member.
                if invite["acceptedById"] != user_id:
                    raise ConflictError("This invite has already been used.")
                current_role = _role_of(read(transaction, member_ref))
                group = read(transaction, group_ref)
                if current_role is None or group is None:
                    raise ConflictError("This invite has already been used.")
                return _summary(group, current_role)

            now = utcnow()
            if _as_aware(invite["expiresAt"]) < now:
                raise ExpiredError("This invite has expired.")

            group = read(transaction, group_ref)
            if group is None:
                raise NotFoundError("Group not found.")
            existing = read(transaction, member_ref)
            prior_owner_ref, prior_owner = self._read_prior_owner(
                transaction, group, user_id
            )

            role = Role.parse(invite["inviteRole"])
            if group.get("ownerId") == user_id:
                # The owner only steps down through a transfer.
                role = Role.OWNER
            if role is Role.OWNER and group.get("ownerId") != user_id:
                self._transfer_ownership(
                    transaction, group_ref, prior_owner_ref, prior_owner, user_id, now
                )

            if existing is None:
                transaction.create(
                    member_ref,
                    {
                        "groupId": group_id,
                        "userId": user_id,
                        "role": role.value,
                        "status": constants.STATUS_ACTIVE,
                        "createdAt": now,
                        "updatedAt": now,
                    },
                )
            else:
                transaction.update(
                    member_ref,
                    {
                        "role": role.value,
                        "status": constants.STATUS_ACTIVE,
                        "updatedAt": now,
                    },
                )
            transaction.update(invite_ref, {"acceptedAt": now, "acceptedById": user_id})
            return _summary(group, role)

        try:
            return self.store.run_transaction(_accept)
        except google_exceptions.Conflict as e:
            raise ConflictError("This invite was accepted concurrently. Try again.") from e

    # Role transitions

    def change_role(
        self, actor_id: str, group_id: str, target_user_id: str, new_role: str
    ) -> MemberSummary:
        role = Role.parse(new_role)
        group_ref = self.store.ref(constants.GROUPS, group_id)
        target_ref = self.store.ref(
            constants.MEMBERSHIPS, membership_key(group_id, target_user_id)
        )

        def _change(transaction):
            actor_role = _role_of(
                read(
                    transaction,
                    self.store.ref(
                        constants.MEMBERSHIPS, membership_key(group_id, actor_id)
                    ),
                )
            )
            if not can_manage_members(actor_role):
                raise ForbiddenError("Only owners or editors can change roles.")
            group = read(transaction, group_ref)
            if group is None:
                raise NotFoundError("Group not found.")
            if role is Role.OWNER and (
                not can_grant_role(actor_role, role) or group.get("ownerId") != actor_id
            ):
                raise ForbiddenError("Only the current owner can promote a new owner.")
            target = read(transaction, target_ref)
            target_role = _role_of(target)
            if target_role is None:
                raise NotFoundError("Member not found.")
            if target_role is Role.OWNER and role is not Role.OWNER:
                raise TransferRequiredError(
                    "Promote another member to owner before changing this role."
                )

            now = utcnow()
            if role is Role.OWNER and target_role is not Role.OWNER:
                prior_owner_ref, prior_owner = self._read_prior_owner(
                    transaction, group, target_user_id
                )
                self._transfer_ownership(
                    transaction,
                    group_ref,
                    prior_owner_ref,
                    prior_owner,
                    target_user_id,
                    now,
                )
            if role is not target_role:
                transaction.update(target_ref, {"role": role.value, "updatedAt": now})
            return {
                "userId": target_user_id,
                "role": role.value,
                "status": constants.STATUS_ACTIVE,
            }

        result = self.store.run_transaction(_change)
        logger.info(
            "Role of %s in %s set to %s by %s",
            target_user_id,
            group_id,
            role.value,
            actor_id,
        )
        return result

    def remove_member(self, actor_id: str, group_id: str, target_user_id: str) -> None:
        if actor_id == target_user_id:
            raise ValidationError("Use leave to remove yourself from a circle.")
        target_ref = self.store.ref(
            constants.MEMBERSHIPS, membership_key(group_id, target_user_id)
        )
        pref_ref = self.store.ref(
            constants.NOTIFICATION_PREFERENCES, preference_key(group_id, target_user_id)
        )

        def _remove(transaction):
            actor = read(
                transaction,
                self.store.ref(constants.MEMBERSHIPS, membership_key(group_id, actor_id)),
            )
            if not can_manage_members(_role_of(actor)):
                raise ForbiddenError("Only owners or editors can remove members.")
            target = read(transaction, target_ref)
            if target is None:
                raise NotFoundError("Member not found.")
            if _role_of(target) is Role.OWNER:
                raise TransferRequiredError("The owner cannot be removed.")
            has_pref = read(transaction, pref_ref) is not None
            claims = self._read_title_claims(transaction, group_id, target_user_id)
            transaction.delete(target_ref)
            if has_pref:
                transaction.delete(pref_ref)
            for claim_ref in claims:
                transaction.delete(claim_ref)

        self.store.run_transaction(_remove)
        logger.info("%s removed %s from %s", actor_id, target_user_id, group_id)

    def leave(self, user_id: str, group_id: str) -> None:
        member_ref = self.store.ref(
            constants.MEMBERSHIPS, membership_key(group_id, user_id)
        )
        pref_ref = self.store.ref(
            constants.NOTIFICATION_PREFERENCES, preference_key(group_id, user_id)
        )

        def _leave(transaction):
            membership = read(transaction, member_ref)
            role = _role_of(membership)
            if role is None:
                raise NotFoundError("Membership not found.")
            if role is Role.OWNER:
                raise OwnershipUnresolvedError()
            has_pref = read(transaction, pref_ref) is not None
            claims = self._read_title_claims(transaction, group_id, user_id)
            transaction.delete(member_ref)
            if has_pref:
                transaction.delete(pref_ref)
            for claim_ref in claims:
                transaction.delete(claim_ref)

        self.store.run_transaction(_leave)
        logger.info("%s left %s", user_id, group_id)

    def _read_title_claims(
        self, transaction: Any, group_id: str, user_id: str
    ) -> list[Any]:
        """The departing member's title claims in the group.

        Releasing them hides the member's shared entries from the group and
        lets the others share those titles again. The entries themselves are
        kept.
        """
        return [
            self.store.ref(constants.GROUP_TITLES, claim["id"])
            for claim in self.store.query(
                constants.GROUP_TITLES,
                ("groupId", "==", group_id),
                ("userId", "==", user_id),
                transaction=transaction,
            )
        ]

    # Ownership transfer

    def _read_prior_owner(
        self, transaction: Any, group: dict[str, Any], new_owner_id: str
    ) -> tuple[Any, dict[str, Any] | None]:
        """Read the current owner's membership ahead of any write."""
        prior_owner_id = group.get("ownerId")
        if not prior_owner_id or prior_owner_id == new_owner_id:
            return None, None
        ref = self.store.ref(
            constants.MEMBERSHIPS, membership_key(group["id"], prior_owner_id)
        )
        return ref, read(transaction, ref)

    @staticmethod
    def _transfer_ownership(
        transaction: Any,
        group_ref: Any,
        prior_owner_ref: Any,
        prior_owner: dict[str, Any] | None,
        new_owner_id: str,
        now: datetime.datetime,
    ) -> None:
        """Demote the prior owner to EDITOR and point the group at the new one.

        The caller writes the new owner's membership in the same transaction.
        """
        if prior_owner is not None:
            transaction.update(
                prior_owner_ref, {"role": Role.EDITOR.value, "updatedAt": now}
            )
        transaction.update(group_ref, {"ownerId": new_owner_id, "updatedAt": now})
