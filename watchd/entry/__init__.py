"""The entry blueprint."""

from flask import Blueprint

bp = Blueprint("entry", __name__, url_prefix="/watchlist")

from . import routes  # noqa: E402

__all__ = ["routes"]
