"""Identity gate and allowlist management."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from watchd.core import constants
from watchd.core.store import utcnow
from watchd.errors import ForbiddenError, NotFoundError, ValidationError

from .models import AuthDecision, Principal

if TYPE_CHECKING:
    from watchd.core.store import Store

logger = logging.getLogger(__name__)


def normalize_email(email: str | None) -> str:
    """Lowercase and trim an email, rejecting obviously malformed values."""
    value = (email or "").strip().lower()
    if "@" not in value or value.startswith("@") or value.endswith("@"):
        raise ValidationError("A valid email address is required.")
    return value


class AuthService:
    """Service class for sign-in authorization and user records."""

    def __init__(self, store: Store) -> None:
        self.store = store

    def authorize(self, principal: Principal) -> AuthDecision:
        """Admins are always allowed; everyone else must be allowlisted."""
        if principal.is_admin:
            return AuthDecision.ALLOWED
        email = (principal.email or "").strip().lower()
        if email and self.store.get(constants.ALLOWLIST, email) is not None:
            return AuthDecision.ALLOWED
        return AuthDecision.DENIED

    def allowlist_email(self, email: str, created_by_id: str | None = None) -> str:
        """Idempotently add ``email`` to the allowlist."""
        normalized = normalize_email(email)
        ref = self.store.ref(constants.ALLOWLIST, normalized)
        if not ref.get().exists:
            ref.set(
                {
                    "email": normalized,
                    "createdById": created_by_id,
                    "createdAt": utcnow(),
                }
            )
        return normalized

    def list_allowlist(self, principal: Principal) -> list[dict[str, Any]]:
        """Allowlisted emails in alphabetical order (admins only)."""
        self._require_admin(principal)
        entries = []
        for doc in self.store.collection(constants.ALLOWLIST).stream():
            data = doc.to_dict() or {}
            entries.append(
                {
                    "email": data.get("email", doc.id),
                    "createdAt": data.get("createdAt"),
                    "createdById": data.get("createdById"),
                }
            )
        entries.sort(key=lambda e: e["email"])
        return entries

    def add_to_allowlist(self, principal: Principal, email: str) -> str:
        """Admin entry point for allowlisting an email."""
        self._require_admin(principal)
        return self.allowlist_email(email, principal.user_id)

    def remove_from_allowlist(self, principal: Principal, email: str) -> None:
        """Remove an email from the allowlist; missing emails are ignored."""
        self._require_admin(principal)
        ref = self.store.ref(constants.ALLOWLIST, normalize_email(email))
        if ref.get().exists:
            ref.delete()

    def sign_in(self, uid: str, email: str, name: str | None = None) -> Principal:
        """Establish a principal for a verified identity.

        Raises ForbiddenError when the identity gate denies the caller.
        """
        user_ref = self.store.ref(constants.USERS, uid)
        snapshot = user_ref.get()
        existing = snapshot.to_dict() if snapshot.exists else None
        principal = Principal(
            user_id=uid,
            email=(email or "").lower(),
            role=(existing or {}).get("role") or constants.USER_ROLE_USER,
            name=name or (existing or {}).get("name"),
        )

        if self.authorize(principal) is AuthDecision.DENIED:
            logger.info("Sign-in denied for %s", principal.email)
            raise ForbiddenError("This email is not on the invite list yet.")

        if existing is None:
            user_ref.set(
                {
                    "email": principal.email,
                    "name": principal.name,
                    "role": principal.role,
                    "heroDismissedAt": None,
                    "createdAt": utcnow(),
                }
            )
        else:
            user_ref.update({"email": principal.email, "name": principal.name})
        return principal

    def load_principal(self, user_id: str) -> Principal | None:
        """Principal for a session user id, or None if the user is gone."""
        user = self.store.get(constants.USERS, user_id)
        if user is None:
            return None
        return Principal.from_user(user)

    def dismiss_hero(self, user_id: str) -> None:
        """Remember that the user closed the welcome hero."""
        ref = self.store.ref(constants.USERS, user_id)
        if not ref.get().exists:
            raise NotFoundError("User not found.")
        ref.update({"heroDismissedAt": utcnow()})

    @staticmethod
    def _require_admin(principal: Principal) -> None:
        if not principal.is_admin:
            raise ForbiddenError("Admins only.")
