"""Admin routes for the application."""

from flask import g, jsonify

from watchd.auth.decorators import login_required
from watchd.auth.forms import AllowlistForm
from watchd.auth.services import AuthService
from watchd.core.store import get_store
from watchd.utils import validate_form

from . import bp


@bp.route("/allowlist", methods=["GET"])
@login_required(admin_required=True)
def list_allowlist():
    """List every allowlisted email."""
    entries = AuthService(get_store()).list_allowlist(g.principal)
    return jsonify({"allowlist": entries})


@bp.route("/allowlist", methods=["POST"])
@login_required(admin_required=True)
def add_allowlist():
    """Allow an email to sign in."""
    form = validate_form(AllowlistForm())
    email = AuthService(get_store()).add_to_allowlist(g.principal, form.email.data)
    return jsonify({"success": True, "email": email})


@bp.route("/allowlist", methods=["DELETE"])
@login_required(admin_required=True)
def remove_allowlist():
    """Revoke an allowlisted email."""
    form = validate_form(AllowlistForm())
    AuthService(get_store()).remove_from_allowlist(g.principal, form.email.data)
    return jsonify({"success": True})
