"""Routes for reactions and comments."""

from flask import g, jsonify

from watchd.auth.decorators import login_required
from watchd.core.store import get_store
from watchd.utils import validate_form

from . import bp
from .forms import CommentForm, ReactionForm
from .services import EngagementService


@bp.route("/<string:entry_id>/reaction", methods=["POST"])
@login_required
def set_reaction(entry_id):
    """Like or dislike an entry."""
    form = validate_form(ReactionForm())
    result = EngagementService(get_store()).set_reaction(
        g.principal.user_id, entry_id, form.reaction.data
    )
    return jsonify(result)


@bp.route("/<string:entry_id>/reaction", methods=["DELETE"])
@login_required
def clear_reaction(entry_id):
    """Clear the caller's reaction."""
    result = EngagementService(get_store()).clear_reaction(
        g.principal.user_id, entry_id
    )
    return jsonify(result)


@bp.route("/<string:entry_id>/comments", methods=["GET"])
@login_required
def list_comments(entry_id):
    comments = EngagementService(get_store()).list_comments(
        g.principal.user_id, entry_id
    )
    return jsonify({"comments": comments})


@bp.route("/<string:entry_id>/comments", methods=["POST"])
@login_required
def add_comment(entry_id):
    form = validate_form(CommentForm())
    comment = EngagementService(get_store()).add_comment(
        g.principal.user_id, entry_id, form.body.data
    )
    return jsonify({"comment": comment}), 201


@bp.route("/<string:entry_id>/comments/<string:comment_id>", methods=["PATCH"])
@login_required
def edit_comment(entry_id, comment_id):
    form = validate_form(CommentForm())
    comment = EngagementService(get_store()).edit_comment(
        g.principal.user_id, entry_id, comment_id, form.body.data
    )
    return jsonify({"comment": comment})


@bp.route("/<string:entry_id>/comments/<string:comment_id>", methods=["DELETE"])
@login_required
def delete_comment(entry_id, comment_id):
    EngagementService(get_store()).delete_comment(
        g.principal.user_id, entry_id, comment_id
    )
    return jsonify({"ok": True})
