"""Routes for the group blueprint."""

from flask import current_app, g, jsonify

from watchd.auth.decorators import login_required
from watchd.core import constants
from watchd.core.store import get_store
from watchd.notifications.email import EmailSender
from watchd.utils import validate_form

from . import bp
from .forms import (
    GroupForm,
    InviteByEmailForm,
    JoinGroupForm,
    MemberRoleForm,
    RemoveMemberForm,
)
from .services import GroupService


def get_group_service():
    """Group service wired to the request store and mailer."""
    return GroupService(
        get_store(),
        email_sender=EmailSender(),
        invite_ttl_days=current_app.config.get(
            "INVITE_TTL_DAYS", constants.INVITE_TTL_DAYS
        ),
    )


@bp.route("/", methods=["GET"])
@login_required
def list_groups():
    """List the caller's circles."""
    groups = get_group_service().list_groups(g.principal.user_id)
    return jsonify({"groups": groups})


@bp.route("/", methods=["POST"])
@login_required
def create_group():
    """Create a circle owned by the caller."""
    form = validate_form(GroupForm())
    group = get_group_service().create_group(g.principal.user_id, form.name.data)
    current_app.logger.info(f"Group {group['id']} created by {g.principal.user_id}")
    return jsonify({"group": group}), 201


@bp.route("/<string:group_id>/invite", methods=["POST"])
@login_required
def invite(group_id):
    """Invite someone by email."""
    form = validate_form(InviteByEmailForm())
    result = get_group_service().invite(
        g.principal.user_id, group_id, form.email.data, form.role.data or None
    )
    return jsonify(result), 201


@bp.route("/join", methods=["POST"])
@login_required
def join():
    """Accept an invite token."""
    form = validate_form(JoinGroupForm())
    group = get_group_service().accept_invite(g.principal.user_id, form.token.data)
    return jsonify({"group": group})


@bp.route("/<string:group_id>/members", methods=["GET"])
@login_required
def list_members(group_id):
    """List members for the circle's managers."""
    members = get_group_service().list_members(g.principal.user_id, group_id)
    return jsonify({"members": members})


@bp.route("/<string:group_id>/members", methods=["PATCH"])
@login_required
def change_role(group_id):
    """Change a member's role."""
    form = validate_form(MemberRoleForm())
    member = get_group_service().change_role(
        g.principal.user_id, group_id, form.userId.data, form.role.data
    )
    return jsonify({"member": member})


@bp.route("/<string:group_id>/members", methods=["DELETE"])
@login_required
def remove_member(group_id):
    """Remove a member from the circle."""
    form = validate_form(RemoveMemberForm())
    get_group_service().remove_member(g.principal.user_id, group_id, form.userId.data)
    return jsonify({"success": True})


@bp.route("/<string:group_id>/leave", methods=["POST"])
@login_required
def leave(group_id):
    """Leave a circle."""
    get_group_service().leave(g.principal.user_id, group_id)
    return jsonify({"success": True})
