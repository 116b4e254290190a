"""Data models for the group blueprint."""

from __future__ import annotations

from typing import Any, TypedDict

from watchd.core.types import FirestoreDocument


class Group(FirestoreDocument, total=False):
    """A group document in Firestore."""

    name: str
    slug: str
    shareCode: str
    ownerId: str


class Membership(FirestoreDocument, total=False):
    """A user's participation in a group, keyed by ``{groupId}:{userId}``."""

    groupId: str
    userId: str
    role: str
    status: str


class Invite(FirestoreDocument, total=False):
    """A single-use, time-boxed invite stored under its token."""

    groupId: str
    email: str
    token: str
    inviteRole: str
    expiresAt: Any
    acceptedAt: Any
    acceptedById: str
    createdById: str
    emailStatus: str


class GroupSummary(TypedDict):
    """A group as seen by one of its members."""

    id: str
    name: str
    slug: str
    shareCode: str
    role: str


class MemberSummary(TypedDict):
    """A member row for the group manager panel."""

    userId: str
    role: str
    status: str
    name: str
    email: str | None
