"""Data models for the entry blueprint."""

from __future__ import annotations

from typing import Any, TypedDict

from watchd.core.types import FirestoreDocument


class WatchEntry(FirestoreDocument, total=False):
    """A logged title, keyed by ``{userId}:{imdbId}:{groupId or personal}``."""

    userId: str
    groupId: str | None
    imdbId: str
    title: str
    year: str | None
    type: str
    posterUrl: str | None
    omdb: dict[str, Any] | None
    review: str | None
    liked: bool


class GroupTitleClaim(TypedDict):
    """Marks a title as already shared into a group."""

    groupId: str
    imdbId: str
    entryId: str
    userId: str


class SharedGroup(TypedDict):
    id: str
    name: str


class FeedEntry(TypedDict, total=False):
    """An entry decorated for the feed."""

    id: str
    userId: str
    groupId: str | None
    imdbId: str
    title: str
    year: str | None
    type: str
    posterUrl: str | None
    review: str | None
    liked: bool
    createdAt: Any
    updatedAt: Any
    addedBy: dict[str, Any]
    likeCount: int
    dislikeCount: int
    viewerReaction: str | None
    sharedGroups: list[SharedGroup]
