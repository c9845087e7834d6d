"""
Authorization error taxonomy.

Raised by the permission guard and engine, translated to HTTP responses by the
handler registered in app.main. None of these is ever recovered into an allow.
"""
from fastapi import status


FORBIDDEN_MESSAGE = "You do not have permission to perform this action"


class AuthorizationError(Exception):
    """Base class; subclasses pin the HTTP status and public message."""

    status_code: int = status.HTTP_403_FORBIDDEN
    public_message: str = FORBIDDEN_MESSAGE

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)


class UnauthenticatedError(AuthorizationError):
    """No valid user identity is attached to the request."""

    status_code = status.HTTP_401_UNAUTHORIZED
    public_message = "Not authenticated"


class ForbiddenError(AuthorizationError):
    """
    Capability or resource denial.

    `reason` is "capability" or "resource" and is only used for logging: both
    reasons produce the same status and message so a client cannot tell an
    invisible resource from a missing one.
    """

    status_code = status.HTTP_403_FORBIDDEN
    public_message = FORBIDDEN_MESSAGE

    def __init__(self, reason: str = "capability", message: str | None = None):
        super().__init__(message)
        self.reason = reason


class AuthorizationIntegrityError(AuthorizationError):
    """A user's role cannot be loaded or the catalog lacks an entry in use."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message = "Authorization configuration error"


class StorageUnavailableError(AuthorizationError):
    """Reading the role or grant failed; transient, not a permission answer."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    public_message = "Authorization data temporarily unavailable"
