"""Forms for the engagement blueprint."""

from flask_wtf import FlaskForm
from wtforms import StringField, TextAreaField
from wtforms.validators import AnyOf, DataRequired

from watchd.core import constants


class ReactionForm(FlaskForm):
    reaction = StringField(
        "Reaction",
        validators=[
            DataRequired(message="Invalid reaction."),
            AnyOf(constants.REACTION_KINDS, message="Invalid reaction."),
        ],
    )


class CommentForm(FlaskForm):
    """Comment body. Length bounds are checked after trimming by the service."""

    body = TextAreaField("Comment", validators=[DataRequired("Comment cannot be empty")])
