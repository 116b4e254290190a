"""Outbound email for invites and group notifications."""

from __future__ import annotations

import logging
from typing import Any

from flask import current_app

from watchd.core.types import SendResult
from watchd.utils import EmailError, send_email

logger = logging.getLogger(__name__)


class EmailSender:
    """Renders and sends transactional emails.

    Every method reports ``{"sent": bool}`` instead of raising, so a broken
    mail server never rolls back the write that triggered the email.
    """

    def __init__(self, link_base_url: str | None = None) -> None:
        self._link_base_url = link_base_url

    @property
    def link_base_url(self) -> str:
        base = self._link_base_url or current_app.config.get(
            "INVITE_LINK_BASE_URL", ""
        )
        return base.rstrip("/")

    def invite_link(self, token: str) -> str:
        return f"{self.link_base_url}/circles?invite={token}"

    def feed_link(self, share_code: str) -> str:
        return f"{self.link_base_url}/?feed={share_code}"

    def send_invite(
        self,
        to: str,
        group_name: str,
        token: str,
        inviter_name: str | None = None,
    ) -> SendResult:
        return self._send(
            to,
            f"You're invited to {group_name}",
            "email/group_invite.html",
            group_name=group_name,
            inviter_name=inviter_name or "A friend",
            invite_link=self.invite_link(token),
        )

    def send_group_update(
        self,
        to: str,
        group_name: str,
        share_code: str,
        title: str,
        added_by: str,
        note: str | None = None,
    ) -> SendResult:
        return self._send(
            to,
            f"{added_by} shared {title} in {group_name}",
            "email/group_update.html",
            group_name=group_name,
            title=title,
            added_by=added_by,
            note=note,
            feed_link=self.feed_link(share_code),
        )

    def send_weekly_digest(self, to: str, items: list[dict[str, Any]]) -> SendResult:
        """Send the weekly roundup; an empty item list sends nothing."""
        if not items:
            return {"sent": False}
        return self._send(
            to,
            "Your weekly watchlist roundup",
            "email/weekly_digest.html",
            items=items,
            home_link=self.link_base_url or "/",
        )

    @staticmethod
    def _send(to: str, subject: str, template: str, **context: Any) -> SendResult:
        try:
            send_email(to=to, subject=subject, template=template, **context)
        except EmailError as e:
            logger.error("Email %r to %s failed: %s", subject, to, e)
            return {"sent": False}
        return {"sent": True}
