"""Forms for the group blueprint."""

from flask_wtf import FlaskForm
from wtforms import StringField
from wtforms.validators import AnyOf, DataRequired, Email, Length, Optional

from watchd.core import constants

ROLE_CHOICES = ["OWNER", "EDITOR", "VIEWER"]


class GroupForm(FlaskForm):
    """Form for creating a new group."""

    name = StringField(
        "Group Name",
        validators=[
            DataRequired(),
            Length(
                min=constants.GROUP_NAME_MIN_LENGTH,
                max=constants.GROUP_NAME_MAX_LENGTH,
            ),
        ],
    )


class InviteByEmailForm(FlaskForm):
    """Form for inviting a user by email."""

    email = StringField("Email", validators=[DataRequired(), Email()])
    role = StringField("Role", validators=[Optional(), AnyOf(ROLE_CHOICES)])


class JoinGroupForm(FlaskForm):
    """Form for accepting an invite token."""

    token = StringField(
        "Invite token",
        validators=[DataRequired(), Length(min=10, message="Invite token is required")],
    )


class MemberRoleForm(FlaskForm):
    """Form for changing a member's role."""

    userId = StringField("Member", validators=[DataRequired()])
    role = StringField("Role", validators=[DataRequired(), AnyOf(ROLE_CHOICES)])


class RemoveMemberForm(FlaskForm):
    """Form for removing a member."""

    userId = StringField("Member", validators=[DataRequired()])
