"""The titles blueprint."""

from flask import Blueprint

bp = Blueprint("titles", __name__, url_prefix="/titles")

from . import routes  # noqa: E402

__all__ = ["routes"]
