"""Group roles and the capabilities each one carries."""

from __future__ import annotations

import enum

from watchd.errors import ValidationError


class Role(str, enum.Enum):
    """A member's role inside a group."""

    OWNER = "OWNER"
    EDITOR = "EDITOR"
    VIEWER = "VIEWER"

    @classmethod
    def parse(cls, value: str | Role | None) -> Role:
        """Convert a payload value into a Role, raising ValidationError."""
        if isinstance(value, Role):
            return value
        try:
            return cls(str(value or "").upper())
        except ValueError:
            raise ValidationError(
                "Role must be one of OWNER, EDITOR or VIEWER."
            ) from None


# Ordering used when listing members.
ROLE_ORDER = {Role.OWNER: 0, Role.EDITOR: 1, Role.VIEWER: 2}


def can_manage_members(role: Role | None) -> bool:
    """Invite members and change non-owner roles."""
    return role in (Role.OWNER, Role.EDITOR)


def can_mutate_entries(role: Role | None) -> bool:
    """Add or remove titles in the group feed."""
    return role in (Role.OWNER, Role.EDITOR)


def can_grant_role(actor_role: Role | None, requested: Role) -> bool:
    """Whether an actor may hand out ``requested`` by invite or promotion."""
    if requested is Role.OWNER:
        return actor_role is Role.OWNER
    return can_manage_members(actor_role)
