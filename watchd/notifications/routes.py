"""Routes and CLI commands for notifications."""

import hmac

import click
from firebase_admin import firestore
from flask import current_app, g, jsonify, request

from watchd.auth.decorators import login_required
from watchd.core.store import Store, get_store
from watchd.errors import UnauthenticatedError
from watchd.extensions import csrf
from watchd.utils import optional_bool, validate_form

from . import bp
from .email import EmailSender
from .forms import PreferenceForm
from .services import NotificationService


def _cron_authorized():
    secret = current_app.config.get("NOTIFICATIONS_CRON_SECRET")
    if not secret:
        return False
    provided = request.headers.get("X-Cron-Secret")
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        provided = provided or auth_header[len("Bearer ") :]
    return bool(provided) and hmac.compare_digest(provided, secret)


@bp.route("/", methods=["GET"])
@login_required
def preferences():
    """Notification flags for each of the caller's circles."""
    service = NotificationService(get_store(), EmailSender())
    return jsonify({"groups": service.get_preferences(g.principal.user_id)})


@bp.route("/", methods=["POST"])
@login_required
def update_preference():
    """Turn instant or weekly emails on or off for one circle."""
    form = validate_form(PreferenceForm())
    service = NotificationService(get_store(), EmailSender())
    pref = service.update_preference(
        g.principal.user_id,
        form.groupId.data,
        instant=optional_bool("instant"),
        weekly=optional_bool("weekly"),
    )
    return jsonify({"success": True, "preference": pref})


@bp.route("/weekly", methods=["POST"])
@csrf.exempt
def weekly():
    """Cron webhook that sends the weekly digest."""
    if not _cron_authorized():
        current_app.logger.warning("Rejected weekly digest trigger")
        raise UnauthenticatedError("Unauthorized")
    summary = NotificationService(get_store(), EmailSender()).weekly_digest()
    return jsonify({"success": True, **summary})


@bp.cli.command("send-weekly-digest")
def send_weekly_digest_command():
    """Send the weekly digest from the command line."""
    summary = NotificationService(Store(firestore.client()), EmailSender()).weekly_digest()
    click.echo(
        f"Processed {summary['processedGroups']} groups, "
        f"sent {summary['sent']} of {summary['recipients']} digests."
    )
