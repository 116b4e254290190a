"""Routes for the entry blueprint."""

from flask import current_app, g, jsonify, request

from watchd.auth.decorators import login_required
from watchd.core import constants
from watchd.core.store import get_store
from watchd.errors import NotFoundError
from watchd.extensions import notification_queue
from watchd.group.services import GroupService
from watchd.notifications.email import EmailSender
from watchd.notifications.services import NotificationService
from watchd.titles.routes import get_title_client
from watchd.utils import optional_bool, validate_form

from . import bp
from .forms import DeleteEntryForm, EntryForm
from .services import SORT_LIKES, SORT_RECENT, EntryService


def get_entry_service():
    """Entry service wired to the title lookup and notification queue."""
    store = get_store()
    return EntryService(
        store,
        titles=get_title_client(),
        queue=notification_queue,
        notifier=NotificationService(store, EmailSender()),
    )


@bp.route("/", methods=["GET"])
@login_required
def feed():
    """The personal feed, or a circle's feed selected by share code or slug."""
    code = request.args.get("group") or constants.PERSONAL_SCOPE
    sort = SORT_LIKES if request.args.get("sort") == SORT_LIKES else SORT_RECENT
    group = None
    if code != constants.PERSONAL_SCOPE:
        group = GroupService(get_store()).resolve_feed_group(g.principal.user_id, code)
        if group is None:
            raise NotFoundError("Circle not found.")
    entries = EntryService(get_store()).get_feed(
        g.principal.user_id, group["id"] if group else None, sort=sort
    )
    return jsonify({"group": group, "sort": sort, "entries": entries})


@bp.route("/", methods=["POST"])
@login_required
def upsert_entry():
    """Log a title personally or share it into a circle."""
    form = validate_form(EntryForm())
    entry = get_entry_service().upsert_entry(
        g.principal.user_id,
        form.imdbId.data,
        group_id=form.groupId.data or None,
        note=form.note.data,
        liked=optional_bool("liked"),
    )
    current_app.logger.info(f"Entry {entry['id']} saved by {g.principal.user_id}")
    return jsonify({"entry": entry})


@bp.route("/", methods=["DELETE"])
@login_required
def delete_entry():
    """Remove one of the caller's entries."""
    form = validate_form(DeleteEntryForm())
    EntryService(get_store()).delete_entry(
        g.principal.user_id, form.imdbId.data, group_id=form.groupId.data or None
    )
    return jsonify({"success": True})
