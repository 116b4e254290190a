"""Routes for the auth blueprint."""

from firebase_admin import auth
from flask import current_app, g, jsonify, session

from watchd.core.store import get_store
from watchd.errors import UnauthenticatedError
from watchd.utils import validate_form

from . import bp
from .forms import SessionForm
from .services import AuthService


@bp.route("/session", methods=["POST"])
def session_login():
    """Exchange a verified Firebase ID token for a server-side session.

    The token itself is issued client-side; this endpoint only checks it and
    runs the allowlist gate before remembering the user id.
    """
    form = validate_form(SessionForm())
    try:
        decoded_token = auth.verify_id_token(form.idToken.data)
    except (auth.InvalidIdTokenError, ValueError) as e:
        current_app.logger.warning(f"Rejected ID token: {e}")
        raise UnauthenticatedError("Invalid or expired sign-in token.") from e

    principal = AuthService(get_store()).sign_in(
        decoded_token["uid"],
        decoded_token.get("email", ""),
        form.name.data or decoded_token.get("name"),
    )
    session.clear()
    session["user_id"] = principal.user_id
    session["is_admin"] = principal.is_admin
    g.principal = principal
    return jsonify(
        {
            "user": {
                "id": principal.user_id,
                "email": principal.email,
                "name": principal.name,
                "role": principal.role,
            }
        }
    )


@bp.route("/logout", methods=["POST"])
def logout():
    """Forget the server-side session."""
    session.clear()
    return jsonify({"ok": True})
