"""App-wide error handlers rendering JSON error payloads."""

from flask import Blueprint, current_app, jsonify
from flask_wtf.csrf import CSRFError
from google.api_core.exceptions import GoogleAPICallError

from .errors import AppError, DependencyFailure, ForbiddenError, NotFoundError

error_handlers_bp = Blueprint("error_handlers", __name__)


def _error_response(error):
    return jsonify({"error": error.to_dict()}), error.status_code


@error_handlers_bp.app_errorhandler(AppError)
def handle_app_error(error):
    """Handles every application error by its kind and status."""
    if error.status_code >= 500:
        current_app.logger.error(f"Application Error: {error.message}")
    else:
        current_app.logger.warning(f"{type(error).__name__}: {error.message}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(GoogleAPICallError)
def handle_store_error(e):
    """Handles Firestore errors without exposing their details."""
    current_app.logger.error(f"Firestore Error: {e}")
    return _error_response(
        DependencyFailure("The data store is unavailable. Please try again later.")
    )


@error_handlers_bp.app_errorhandler(CSRFError)
def handle_csrf_error(e):
    """Handles CSRF errors, which usually mean the session expired."""
    current_app.logger.warning(f"CSRF Error: {e.description}")
    return _error_response(
        ForbiddenError("Your session may have expired. Please try again.")
    )


@error_handlers_bp.app_errorhandler(404)
def handle_404(e):
    """Handles generic 404 errors for routes that don't exist."""
    return _error_response(NotFoundError("Not found."))


@error_handlers_bp.app_errorhandler(405)
def handle_405(e):
    return jsonify({"error": {"kind": "method_not_allowed", "message": str(e)}}), 405


@error_handlers_bp.app_errorhandler(500)
def handle_500(e):
    """Handles unexpected server errors."""
    current_app.logger.error(f"Internal Server Error: {e}")
    return (
        jsonify({"error": {"kind": "internal_error", "message": "Something went wrong."}}),
        500,
    )
