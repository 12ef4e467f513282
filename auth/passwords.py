"""One-way credential hashing with bcrypt.

bcrypt salts every hash and its cost factor is adaptive: raise
AuthConfig.bcrypt_rounds as hardware gets faster. Existing hashes keep
verifying because the cost is embedded in the digest.
"""

import logging

import bcrypt

logger = logging.getLogger(__name__)


class PasswordHasher:
    """bcrypt hash/verify with a fixed cost factor."""

    def __init__(self, rounds: int = 12):
        self._rounds = rounds
        # Hashed once so unknown-user logins cost the same as wrong passwords
        self._dummy_hash = self.hash("timing-equalization-dummy")

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, plaintext: str) -> str:
        """Return a salted bcrypt digest of plaintext.

        Raises:
            ValueError: If plaintext exceeds bcrypt's 72-byte input limit.
        """
        return bcrypt.hashpw(
            plaintext.encode("utf-8"), bcrypt.gensalt(rounds=self._rounds)
        ).decode("utf-8")

    def verify(self, plaintext: str, digest: str | None) -> bool:
        """Return True if plaintext matches digest.

        Malformed or missing digests return False rather than raising.
        """
        if not digest:
            return False
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), digest.encode("utf-8"))
        except (ValueError, TypeError) as e:
            logger.warning(f"Password verification against malformed digest: {e}")
            return False

    def dummy_verify(self, plaintext: str) -> None:
        """Spend one bcrypt comparison without a real digest."""
        self.verify(plaintext, self._dummy_hash)
