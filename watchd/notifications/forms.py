"""Forms for the notifications blueprint."""

from flask_wtf import FlaskForm
from wtforms import StringField
from wtforms.validators import DataRequired


class PreferenceForm(FlaskForm):
    """The group to update. ``instant`` and ``weekly`` are read separately."""

    groupId = StringField("Circle", validators=[DataRequired()])
