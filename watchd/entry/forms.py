"""Forms for the entry blueprint."""

from flask_wtf import FlaskForm
from wtforms import StringField
from wtforms.validators import DataRequired, Length, Optional

from watchd.core import constants


class EntryForm(FlaskForm):
    """Form for logging or sharing a title. ``liked`` is read separately."""

    imdbId = StringField(
        "IMDb id",
        validators=[DataRequired(), Length(min=2, message="IMDb id is required")],
    )
    note = StringField(
        "Note", validators=[Optional(), Length(max=constants.NOTE_MAX_LENGTH)]
    )
    groupId = StringField("Circle", validators=[Optional()])


class DeleteEntryForm(FlaskForm):
    """Form for removing one of the caller's entries."""

    imdbId = StringField(
        "IMDb id",
        validators=[DataRequired(), Length(min=2, message="IMDb id is required")],
    )
    groupId = StringField("Circle", validators=[Optional()])
