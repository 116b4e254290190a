"""The engagement blueprint: reactions and comments on entries."""

from flask import Blueprint

bp = Blueprint("engagement", __name__, url_prefix="/watchlist")

from . import routes  # noqa: E402

__all__ = ["routes"]
