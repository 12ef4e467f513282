"""Typed exceptions for auth failures.

Each error carries the HTTP-status-equivalent code and machine-readable
error code it maps to, so the request handlers never have to guess.
"""

from api.base import ErrorCodes


class AuthError(Exception):
    """Base class for authentication/authorization errors."""

    status_code = 500
    code = ErrorCodes.INTERNAL_ERROR

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class ValidationError(AuthError):
    """
    Missing or malformed input, or a password that fails the strength gate.

    hints carries the password strength feedback when relevant.
    """

    status_code = 400
    code = ErrorCodes.VALIDATION_ERROR

    def __init__(self, message: str, hints: list[str] | None = None, code: str | None = None):
        self.hints = hints or []
        super().__init__(message, code)


class AuthenticationError(AuthError):
    """
    Bad credentials, missing token, or invalid token.

    The message is kept generic so responses never reveal whether an
    account exists. remaining_attempts is only set on failed logins.
    """

    status_code = 401
    code = ErrorCodes.NOT_AUTHENTICATED

    def __init__(
        self,
        message: str = "Invalid credentials",
        remaining_attempts: int | None = None,
        code: str | None = None,
    ):
        self.remaining_attempts = remaining_attempts
        super().__init__(message, code)


class AuthorizationError(AuthError):
    """Authenticated, but the role is insufficient for the operation."""

    status_code = 403
    code = ErrorCodes.FORBIDDEN


class RateLimitedError(AuthError):
    """Lockout active. Client should wait before retrying."""

    status_code = 429
    code = ErrorCodes.RATE_LIMITED

    def __init__(self, retry_after_seconds: int, message: str | None = None):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message or f"Rate limited. Retry after {retry_after_seconds} seconds.")


class NotFoundError(AuthError):
    """
    Referenced entity is absent.

    Used sparingly: most flows disguise not-found as AuthenticationError.
    """

    status_code = 404
    code = ErrorCodes.NOT_FOUND


class InternalError(AuthError):
    """Persistence or crypto failure. Message never includes internals."""

    status_code = 500
    code = ErrorCodes.INTERNAL_ERROR

    def __init__(self, message: str = "An internal error occurred"):
        super().__init__(message)
