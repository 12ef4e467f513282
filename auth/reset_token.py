"""Single-use password reset tokens.

The raw token is handed to the user (via the notifier) exactly once. Only its
SHA-256 digest is stored, so a leaked users collection cannot be replayed.
The digest is unsalted because reset requires lookup by digest; 256 bits of
token entropy make precomputation pointless.
"""

import hashlib
import secrets
from datetime import datetime, timedelta

from auth.config import AuthConfig

TOKEN_BYTES = 32


def generate_reset_token() -> str:
    """Return a URL-safe token carrying 256 bits of randomness."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def digest_reset_token(token: str) -> str:
    """Deterministic one-way fingerprint of a reset token (hex SHA-256)."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def reset_token_expiry(now: datetime, config: AuthConfig) -> datetime:
    """Expiry timestamp for a token issued at now."""
    return now + timedelta(minutes=config.reset_token_expiry_minutes)


def build_reset_url(token: str, config: AuthConfig) -> str:
    """Link the user follows to choose a new password."""
    return f"{config.app_base_url.rstrip('/')}/reset-password?token={token}"
