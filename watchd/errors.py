"""Custom exception classes for the application."""


class AppError(Exception):
    """Base application error class."""

    kind = "app_error"

    def __init__(self, message, status_code=400):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    def to_dict(self):
        """Return the machine-readable error payload."""
        return {"kind": self.kind, "message": self.message}


class ValidationError(AppError):
    """Raised when user input fails validation."""

    kind = "validation_error"

    def __init__(self, message="Validation failed."):
        """Initialize the error."""
        super().__init__(message, 400)


class UnauthenticatedError(AppError):
    """Raised when an operation needs a signed-in principal."""

    kind = "unauthenticated"

    def __init__(self, message="Sign in required."):
        """Initialize the error."""
        super().__init__(message, 401)


class ForbiddenError(AppError):
    """Raised when the principal lacks the role or ownership for an action."""

    kind = "forbidden"

    def __init__(self, message="Not authorized."):
        """Initialize the error."""
        super().__init__(message, 403)


class NotFoundError(AppError):
    """Raised when a resource is not found."""

    kind = "not_found"

    def __init__(self, message="Resource not found."):
        """Initialize the error."""
        super().__init__(message, 404)


class ConflictError(AppError):
    """Raised when trying to create a resource that already exists."""

    kind = "conflict"

    def __init__(self, message="Resource already exists."):
        """Initialize the error."""
        super().__init__(message, 409)


class ExpiredError(AppError):
    """Raised when an invite is used after its window closed."""

    kind = "expired"

    def __init__(self, message="Invite expired."):
        """Initialize the error."""
        super().__init__(message, 410)


class TransferRequiredError(AppError):
    """Raised when the owner would be stripped or removed without a transfer."""

    kind = "transfer_required"

    def __init__(self, message="Transfer ownership first."):
        """Initialize the error."""
        super().__init__(message, 409)


class OwnershipUnresolvedError(TransferRequiredError):
    """Raised when the owner tries to leave their own group."""

    def __init__(self, message="Owners need to transfer ownership before leaving."):
        """Initialize the error."""
        super().__init__(message)


class DependencyFailure(AppError):
    """Raised when the title lookup or another collaborator is unavailable."""

    kind = "dependency_failure"

    def __init__(self, message="A required service is unavailable."):
        """Initialize the error."""
        super().__init__(message, 502)
