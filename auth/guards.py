"""Protected-request checks: bearer token authentication and role gates."""

from api.base import ErrorCodes
from auth.exceptions import AuthenticationError, AuthorizationError
from auth.session import SessionManager
from auth.types import Role, SessionClaims

BEARER_PREFIX = "Bearer "


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an 'Authorization: Bearer <token>' header value."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def authenticate_bearer(authorization: str | None, sessions: SessionManager) -> SessionClaims:
    """Verify the bearer token and return its claims.

    Raises:
        AuthenticationError: If no token is present or it fails verification.
    """
    token = extract_bearer_token(authorization)
    if token is None:
        raise AuthenticationError("Unauthorized - No token provided")

    claims = sessions.verify(token)
    if claims is None:
        raise AuthenticationError("Unauthorized - Invalid token", code=ErrorCodes.INVALID_TOKEN)
    return claims


def require_authenticated(actor: SessionClaims | None) -> SessionClaims:
    """Raises AuthenticationError when there is no authenticated identity."""
    if actor is None:
        raise AuthenticationError("Authentication required")
    return actor


def require_admin(actor: SessionClaims | None) -> SessionClaims:
    """Raises AuthorizationError unless the actor holds the admin role."""
    actor = require_authenticated(actor)
    if actor.role != Role.ADMIN:
        raise AuthorizationError("Forbidden - Admin access required")
    return actor
