"""Forms for the auth and admin blueprints."""

from flask_wtf import FlaskForm  # type: ignore
from wtforms import StringField
from wtforms.validators import DataRequired, Email, Length, Optional


class SessionForm(FlaskForm):
    """Payload exchanged for a server-side session."""

    idToken = StringField("ID token", validators=[DataRequired()])
    name = StringField("Name", validators=[Optional(), Length(max=120)])


class AllowlistForm(FlaskForm):
    """Email to add to or remove from the allowlist."""

    email = StringField("Email", validators=[DataRequired(), Email()])
