"""Collision-resistant identifiers for groups and invites."""

from __future__ import annotations

import re
import secrets
import time
from collections.abc import Callable

MAX_ATTEMPTS = 5
SHARE_CODE_LENGTH = 10
INVITE_TOKEN_BYTES = 32
SLUG_MAX_LENGTH = 40
SLUG_SUFFIX_LENGTH = 4
DEFAULT_SLUG = "circle"

_SLUG_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"


def _time_salt() -> str:
    """Base-36 encoding of the current time in milliseconds."""
    value = int(time.time() * 1000)
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_SLUG_ALPHABET[rem])
    return "".join(reversed(digits)) or "0"


def generate_unique(
    is_taken: Callable[[str], bool],
    factory: Callable[[], str],
    fallback: Callable[[], str] | None = None,
) -> str:
    """Return the first value from ``factory`` that ``is_taken`` rejects.

    After MAX_ATTEMPTS collisions the time-salted ``fallback`` is returned
    without another lookup.
    """
    for _ in range(MAX_ATTEMPTS):
        candidate = factory()
        if not is_taken(candidate):
            return candidate
    if fallback is None:
        return f"{factory()}{_time_salt()}"
    return fallback()


def new_share_code() -> str:
    """Short opaque code used in invite links and feed selection."""
    return secrets.token_urlsafe(SHARE_CODE_LENGTH)[:SHARE_CODE_LENGTH]


def new_invite_token() -> str:
    """Unguessable single-use invite credential."""
    return secrets.token_urlsafe(INVITE_TOKEN_BYTES)


def slugify(name: str) -> str:
    """Lowercase, URL-safe version of a group name."""
    base = re.sub(r"[^a-z0-9]+", "-", name.lower().strip())
    base = base.strip("-")[:SLUG_MAX_LENGTH].strip("-")
    return base or DEFAULT_SLUG


def _random_suffix() -> str:
    return "".join(
        secrets.choice(_SLUG_ALPHABET) for _ in range(SLUG_SUFFIX_LENGTH)
    )


def unique_slug(name: str, is_taken: Callable[[str], bool]) -> str:
    """Slugify ``name``, adding a random suffix when the slug is in use."""
    base = slugify(name)
    if not is_taken(base):
        return base
    return generate_unique(
        is_taken,
        lambda: f"{base}-{_random_suffix()}",
        fallback=lambda: f"{base}-{_time_salt()}",
    )


def unique_share_code(is_taken: Callable[[str], bool]) -> str:
    """A share code that is not yet claimed."""
    return generate_unique(is_taken, new_share_code)


def unique_invite_token(is_taken: Callable[[str], bool]) -> str:
    """An invite token that is not yet in use."""
    return generate_unique(is_taken, new_invite_token)
