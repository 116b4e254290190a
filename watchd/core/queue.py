"""Dispatch of notification jobs outside the write path."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from flask import current_app

if TYPE_CHECKING:
    from flask import Flask

logger = logging.getLogger(__name__)

DISPATCH_INLINE = "inline"
DISPATCH_THREAD = "thread"


class NotificationQueue:
    """Runs notification jobs after the triggering write has committed.

    A failing job is logged and dropped; it never propagates to the caller.
    ``NOTIFICATION_DISPATCH`` selects ``inline`` (run before returning, used
    in tests and the CLI) or ``thread`` (run on a background thread inside an
    app context).
    """

    def __init__(self, app: Flask | None = None) -> None:
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.config.setdefault("NOTIFICATION_DISPATCH", DISPATCH_INLINE)
        app.extensions["notification_queue"] = self

    def enqueue(
        self, job: Callable[..., Any], *args: Any, **kwargs: Any
    ) -> threading.Thread | None:
        """Schedule ``job(*args, **kwargs)``.

        Returns the worker thread in ``thread`` mode so callers may join it.
        """
        app = current_app._get_current_object()  # type: ignore[attr-defined]
        if app.config.get("NOTIFICATION_DISPATCH") == DISPATCH_THREAD:
            thread = threading.Thread(
                target=self._run_in_context, args=(app, job, args, kwargs)
            )
            thread.start()
            return thread
        self._run(job, args, kwargs)
        return None

    def _run_in_context(
        self, app: Flask, job: Callable[..., Any], args: tuple, kwargs: dict
    ) -> None:
        with app.app_context():
            self._run(job, args, kwargs)

    @staticmethod
    def _run(job: Callable[..., Any], args: tuple, kwargs: dict) -> None:
        name = getattr(job, "__qualname__", repr(job))
        try:
            job(*args, **kwargs)
        except Exception:
            logger.exception("Notification job %s failed", name)
