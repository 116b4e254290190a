"""Utility functions for the application."""

import smtplib

from flask import current_app, render_template, request
from flask_mail import Message

from .errors import ValidationError
from .extensions import mail


class EmailError(Exception):
    """Base class for email errors."""

    pass


def send_email(to, subject, template, **kwargs):
    """Send an email to a recipient.

    Raises:
        EmailError: If sending the email fails.
    """
    msg = Message(
        subject,
        recipients=[to],
        html=render_template(template, **kwargs),
        sender=current_app.config["MAIL_DEFAULT_SENDER"],
    )
    try:
        mail.send(msg)
    except smtplib.SMTPAuthenticationError as e:
        if e.smtp_code == 534:
            raise EmailError(
                "Authentication failed. The mail provider requires an app "
                "password; check MAIL_USERNAME and MAIL_PASSWORD."
            ) from e
        raise EmailError(f"SMTP Authentication failed: {e}") from e
    except Exception as e:
        raise EmailError(f"Failed to send email: {e}") from e


def validate_form(form):
    """Validate a submitted form, raising ValidationError with its messages."""
    if form.validate_on_submit():
        return form
    messages = []
    for field_name, errors in form.errors.items():
        for error in errors:
            messages.append(f"{field_name}: {error}")
    raise ValidationError(", ".join(messages) or "Invalid request.")


def optional_bool(key):
    """Read a tri-state boolean from the JSON body.

    Returns None when the key is absent or null so callers can keep the
    stored value.
    """
    payload = request.get_json(silent=True) or {}
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be true or false.")
    return value
