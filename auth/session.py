"""Stateless session tokens.

Sessions are HS256-signed JWTs (python-jose) carrying user id, email, role,
issued-at and expiry. Nothing is stored server-side: expiry is the only way a
token ends, and rotating the signing key invalidates every outstanding token.
A role change or account deletion is not reflected until the token is
reissued.
"""

import logging
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.config import AuthConfig
from auth.types import Role, SessionClaims
from utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
MIN_SIGNING_KEY_LENGTH = 32


class SessionManager:
    """Issues and verifies session tokens.

    Verification never raises: any structural, cryptographic, or expiry
    failure yields None, which callers treat as unauthenticated.
    """

    def __init__(self, signing_key: str, config: AuthConfig, clock: Clock | None = None):
        if not signing_key or len(signing_key) < MIN_SIGNING_KEY_LENGTH:
            raise ValueError(
                f"signing_key must be at least {MIN_SIGNING_KEY_LENGTH} characters"
            )
        self._signing_key = signing_key
        self._config = config
        self._clock = clock or SystemClock()

    def issue(self, user_id: str, email: str, role: Role | str) -> str:
        """Sign a new token for the given identity."""
        # JWT timestamps are whole seconds
        now = self._clock.now().replace(microsecond=0)
        expires_at = now + timedelta(days=self._config.session_expiry_days)

        payload = {
            "sub": user_id,
            "email": email,
            "role": Role(role).value,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(payload, self._signing_key, algorithm=ALGORITHM)

    def verify(self, token: str | None) -> SessionClaims | None:
        """Return the token's claims, or None if invalid, tampered, or expired."""
        if not token:
            return None

        try:
            # Expiry is checked below against the injected clock
            payload = jwt.decode(
                token,
                self._signing_key,
                algorithms=[ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as e:
            logger.debug(f"Session token rejected: {e}")
            return None

        try:
            claims = SessionClaims(
                user_id=payload["sub"],
                email=payload["email"],
                role=payload["role"],
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            logger.debug(f"Session token has malformed claims: {e}")
            return None

        if self._clock.now() >= claims.expires_at:
            return None

        return claims
