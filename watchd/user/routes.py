"""Routes for the user blueprint."""

from flask import current_app, g, jsonify

from watchd.auth.decorators import login_required
from watchd.auth.services import AuthService
from watchd.core import constants
from watchd.core.store import get_store

from . import bp


@bp.route("/me", methods=["GET"])
@login_required
def me():
    """Return the signed-in user and their UI preferences."""
    store = get_store()
    user = store.get(constants.USERS, g.principal.user_id) or {}
    return jsonify(
        {
            "user": {
                "id": g.principal.user_id,
                "email": g.principal.email,
                "name": g.principal.name,
                "role": g.principal.role,
                "heroDismissed": bool(user.get("heroDismissedAt")),
            }
        }
    )


@bp.route("/hero-dismiss", methods=["POST"])
@login_required
def hero_dismiss():
    """Hide the welcome hero for the signed-in user."""
    AuthService(get_store()).dismiss_hero(g.principal.user_id)
    current_app.logger.info(f"Hero dismissed by {g.principal.user_id}")
    return jsonify({"dismissed": True})
