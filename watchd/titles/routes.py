"""Routes for the titles blueprint."""

from flask import current_app, jsonify, request

from watchd.auth.decorators import login_required
from watchd.core import constants
from watchd.errors import ValidationError

from . import bp
from .client import OmdbClient


def get_title_client():
    """Title lookup client configured for the current app."""
    return OmdbClient.from_config(current_app.config)


@bp.route("/search", methods=["GET"])
@login_required
def search():
    """Search OMDb for titles to log or share."""
    query = (request.args.get("q") or "").strip()
    title_type = request.args.get("type")
    if len(query) < constants.SEARCH_MIN_LENGTH:
        raise ValidationError("Search query must be at least two characters.")
    results = get_title_client().search_titles(query, title_type)
    return jsonify({"results": [title.to_dict() for title in results]})
