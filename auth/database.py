"""User record persistence for authentication.

Works against the users collection through the DocumentStore contract.
Credential material (password hash, reset digest) is stored here and
nowhere else; callers get UserRecord models and hand PublicProfile to clients.
"""

from datetime import datetime
from uuid import uuid4

from api.base import ErrorCodes
from auth.exceptions import ValidationError
from auth.types import Role, UserRecord
from clients.document_store import Document, DocumentStore, DuplicateKeyError
from utils.clock import Clock, SystemClock
from utils.timezone import ensure_utc


def _to_record(doc: Document) -> UserRecord:
    expires = doc.get("reset_token_expires_at")
    return UserRecord(
        id=str(doc["_id"]),
        name=doc.get("name"),
        email=doc["email"],
        password_hash=doc["password_hash"],
        role=doc.get("role", Role.USER.value),
        country=doc.get("country"),
        reset_token_digest=doc.get("reset_token_digest"),
        reset_token_expires_at=ensure_utc(expires) if expires else None,
        created_at=ensure_utc(doc["created_at"]),
        updated_at=ensure_utc(doc["updated_at"]),
    )


class UserDatabase:
    """Database operations for user records."""

    COLLECTION = "users"

    def __init__(self, store: DocumentStore, clock: Clock | None = None):
        self._store = store
        self._clock = clock or SystemClock()

    def _find(self, filter: Document) -> UserRecord | None:
        doc = self._store.find_one(self.COLLECTION, filter)
        if doc is None:
            return None
        return _to_record(doc)

    def get_by_email(self, email: str) -> UserRecord | None:
        """Find user by email (case-insensitive)."""
        return self._find({"email": email.lower()})

    def get_by_id(self, user_id: str) -> UserRecord | None:
        """Find user by ID."""
        return self._find({"_id": user_id})

    def create_user(
        self,
        email: str,
        password_hash: str,
        name: str | None = None,
        country: str | None = None,
        role: Role = Role.USER,
    ) -> UserRecord:
        """Create new user with email (lowercased).

        The unique email index is the final arbiter: a registration that
        passed the lookup but lost the race to an identical email gets the
        same error as one caught by the lookup.

        Raises:
            ValidationError: If the email is already registered.
        """
        now = self._clock.now()
        document = {
            "_id": str(uuid4()),
            "name": name,
            "email": email.lower(),
            "password_hash": password_hash,
            "role": Role(role).value,
            "country": country,
            "created_at": now,
            "updated_at": now,
        }
        try:
            self._store.insert_one(self.COLLECTION, document)
        except DuplicateKeyError:
            raise ValidationError("Email already exists", code=ErrorCodes.ALREADY_EXISTS)
        return _to_record(document)

    def update_password(
        self,
        user_id: str,
        password_hash: str,
        consume_reset_digest: str | None = None,
    ) -> bool:
        """Replace the password hash.

        With consume_reset_digest, the update only applies while that digest
        is still stored, and clears the digest and its expiry in the same
        single-document write. A second reset racing on the same token
        therefore matches nothing.

        Returns:
            True if the user was found (and the digest still matched).
        """
        filter: Document = {"_id": user_id}
        update: Document = {
            "$set": {"password_hash": password_hash, "updated_at": self._clock.now()},
        }
        if consume_reset_digest is not None:
            filter["reset_token_digest"] = consume_reset_digest
            update["$unset"] = {"reset_token_digest": "", "reset_token_expires_at": ""}

        return self._store.update_one(self.COLLECTION, filter, update) > 0

    def store_reset_token(self, user_id: str, digest: str, expires_at: datetime) -> bool:
        """Record a reset token digest, replacing any earlier one."""
        matched = self._store.update_one(
            self.COLLECTION,
            {"_id": user_id},
            {"$set": {"reset_token_digest": digest, "reset_token_expires_at": expires_at}},
        )
        return matched > 0

    def find_by_reset_digest(self, digest: str, now: datetime) -> UserRecord | None:
        """Find the user holding an unexpired reset token with this digest."""
        return self._find({
            "reset_token_digest": digest,
            "reset_token_expires_at": {"$gt": now},
        })

    def update_role(self, user_id: str, role: Role) -> bool:
        """Set the user's role. Returns False if user not found."""
        matched = self._store.update_one(
            self.COLLECTION,
            {"_id": user_id},
            {"$set": {"role": Role(role).value, "updated_at": self._clock.now()}},
        )
        return matched > 0

    def delete_user(self, user_id: str) -> bool:
        """Permanently delete user. Returns False if user not found."""
        return self._store.delete_one(self.COLLECTION, {"_id": user_id}) > 0
