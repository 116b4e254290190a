"""Decorators for the auth blueprint."""

from functools import wraps

from flask import g

from watchd.errors import ForbiddenError, UnauthenticatedError


def login_required(f=None, admin_required=False):
    """Reject the request unless a principal was loaded for the session.

    Usage:
    @login_required
    def protected_view():
        ...

    @login_required(admin_required=True)
    def admin_view():
        ...
    """

    def decorator(func):
        @wraps(func)
        def decorated_function(*args, **kwargs):
            principal = g.get("principal")
            if principal is None:
                raise UnauthenticatedError()
            if admin_required and not principal.is_admin:
                raise ForbiddenError("Admins only.")
            return func(*args, **kwargs)

        return decorated_function

    if f:
        return decorator(f)
    return decorator
