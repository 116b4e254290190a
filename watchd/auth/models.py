"""Data models for the auth blueprint."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from watchd.core import constants
from watchd.core.types import FirestoreDocument


class User(FirestoreDocument, total=False):
    """A user document in Firestore."""

    email: str
    name: str
    role: str
    heroDismissedAt: Any


class AllowlistEntry(FirestoreDocument, total=False):
    """An email allowed to sign in."""

    email: str
    createdById: str | None


class AuthDecision(str, enum.Enum):
    """Outcome of the identity gate."""

    ALLOWED = "ALLOWED"
    DENIED = "DENIED"


@dataclass(frozen=True)
class Principal:
    """An already-verified caller."""

    user_id: str
    email: str
    role: str = constants.USER_ROLE_USER
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == constants.USER_ROLE_ADMIN

    @property
    def display_name(self) -> str:
        return (self.name or "").strip() or "Someone"

    @classmethod
    def from_user(cls, user: dict[str, Any]) -> Principal:
        """Build a principal from a ``users`` document dict."""
        return cls(
            user_id=user["id"],
            email=(user.get("email") or "").lower(),
            role=user.get("role") or constants.USER_ROLE_USER,
            name=user.get("name"),
        )
