"""Brute-force lockout for password logins.

Failed logins are counted per (email, IP address) in the login_attempts
collection. Each key moves through three states:

    clean     no record
    counting  1 .. max-1 failures recorded
    locked    locked_until set; further failures are not counted

A lock is released (record deleted) the first time a check observes it has
expired. A successful login deletes the record outright.

Store errors during check() fail OPEN: an outage of the attempts collection
must not lock every user out of the system. Availability wins over strict
lockout here; do not switch this to fail closed without revisiting the
denial-of-service exposure.
"""

import logging
import math
from datetime import timedelta

from auth.config import AuthConfig
from auth.types import AttemptCheck, LoginAttempt
from clients.document_store import DocumentStore, DuplicateKeyError
from utils.clock import Clock, SystemClock
from utils.timezone import ensure_utc

logger = logging.getLogger(__name__)


def _lock_message(seconds: float) -> str:
    minutes = max(1, math.ceil(seconds / 60))
    unit = "minute" if minutes == 1 else "minutes"
    return f"Too many failed login attempts. Try again in {minutes} {unit}."


class LoginAttemptTracker:
    """Failed-login counter and lockout window keyed by (email, IP)."""

    COLLECTION = "login_attempts"

    def __init__(self, store: DocumentStore, config: AuthConfig, clock: Clock | None = None):
        self._store = store
        self._config = config
        self._clock = clock or SystemClock()
        self._max_attempts = config.login_max_attempts
        self._lock_duration = timedelta(minutes=config.login_lock_minutes)

    def _key(self, email: str, ip_address: str) -> dict:
        """Filter for one (email, IP) record (email normalized to lowercase)."""
        return {"email": email.lower(), "ip_address": ip_address}

    def _load(self, email: str, ip_address: str) -> LoginAttempt | None:
        doc = self._store.find_one(self.COLLECTION, self._key(email, ip_address))
        if doc is None:
            return None
        return LoginAttempt(
            email=doc["email"],
            ip_address=doc["ip_address"],
            attempts=doc.get("attempts", 0),
            last_attempt=ensure_utc(doc["last_attempt"]),
            locked_until=ensure_utc(doc["locked_until"]) if doc.get("locked_until") else None,
        )

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def check(self, email: str, ip_address: str) -> AttemptCheck:
        """Decide whether a login attempt may proceed.

        Never raises. Store failures are logged and the attempt is allowed.
        """
        try:
            return self._check(email, ip_address)
        except Exception:
            logger.exception(f"Login attempt check failed for {email}; allowing (fail-open)")
            return AttemptCheck(allowed=True)

    def _check(self, email: str, ip_address: str) -> AttemptCheck:
        attempt = self._load(email, ip_address)
        if attempt is None:
            return AttemptCheck(allowed=True)

        now = self._clock.now()

        if attempt.locked_until is not None:
            if now < attempt.locked_until:
                remaining = (attempt.locked_until - now).total_seconds()
                return AttemptCheck(
                    allowed=False,
                    message=_lock_message(remaining),
                    retry_after_seconds=max(1, math.ceil(remaining)),
                )

            # Lock expired - back to clean
            self._store.delete_one(self.COLLECTION, self._key(email, ip_address))
            logger.info(f"Login lock expired for {email} from {ip_address}")
            return AttemptCheck(allowed=True)

        if attempt.attempts >= self._max_attempts:
            # Limit reached without a lock (concurrent failures); lock now
            locked_until = now + self._lock_duration
            self._store.update_one(
                self.COLLECTION,
                self._key(email, ip_address),
                {"$set": {"locked_until": locked_until, "last_attempt": now}},
            )
            logger.warning(f"Login locked for {email} from {ip_address} until {locked_until.isoformat()}")
            seconds = self._lock_duration.total_seconds()
            return AttemptCheck(
                allowed=False,
                message=_lock_message(seconds),
                retry_after_seconds=int(seconds),
            )

        return AttemptCheck(
            allowed=True,
            remaining_attempts=self._max_attempts - attempt.attempts,
        )

    def record_failure(self, email: str, ip_address: str) -> int:
        """Count one failed login. Returns attempts remaining before lockout.

        Reaching the limit sets the lock in the same update. Failures while
        locked are not counted. Store failures are logged and report 0.
        """
        try:
            return self._record_failure(email, ip_address)
        except Exception:
            logger.exception(f"Failed to record login failure for {email}")
            return 0

    def _record_failure(self, email: str, ip_address: str) -> int:
        now = self._clock.now()
        key = self._key(email, ip_address)
        attempt = self._load(email, ip_address)

        if attempt is None:
            document = {**key, "attempts": 1, "last_attempt": now}
            if self._max_attempts <= 1:
                document["locked_until"] = now + self._lock_duration
            try:
                self._store.insert_one(self.COLLECTION, document)
                return max(0, self._max_attempts - 1)
            except DuplicateKeyError:
                # A concurrent first failure created the record; count on top of it
                attempt = self._load(email, ip_address)
                if attempt is None:
                    raise

        if attempt.locked_until is not None:
            if now < attempt.locked_until:
                return 0
            # Expired lock nobody checked yet; start a fresh count
            self._store.update_one(
                self.COLLECTION,
                key,
                {"$set": {"attempts": 1, "last_attempt": now}, "$unset": {"locked_until": ""}},
            )
            return max(0, self._max_attempts - 1)

        new_count = attempt.attempts + 1
        update = {"$inc": {"attempts": 1}, "$set": {"last_attempt": now}}
        if new_count >= self._max_attempts:
            update["$set"]["locked_until"] = now + self._lock_duration
            logger.warning(f"Login attempt limit reached for {email} from {ip_address}")
        self._store.update_one(self.COLLECTION, key, update)

        return max(0, self._max_attempts - new_count)

    def clear(self, email: str, ip_address: str) -> None:
        """Forget all failures for this key (after a successful login)."""
        try:
            self._store.delete_one(self.COLLECTION, self._key(email, ip_address))
        except Exception:
            logger.exception(f"Failed to clear login attempts for {email}")

    def cleanup_stale(self) -> int:
        """Delete unlocked records older than the retention horizon.

        Intended for a periodic external job, not the request path.
        Returns count deleted.
        """
        cutoff = self._clock.now() - timedelta(hours=self._config.login_attempt_retention_hours)
        deleted = self._store.delete_many(
            self.COLLECTION,
            {"last_attempt": {"$lt": cutoff}, "locked_until": {"$exists": False}},
        )
        if deleted:
            logger.info(f"Purged {deleted} stale login attempt records")
        return deleted
