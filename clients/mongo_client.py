"""
MongoDB-backed document store.

Thin wrapper around pymongo implementing the DocumentStore contract.
Constructed once at startup and passed to the components that need it;
there is no module-level connection.
Fail-fast: raises on connection failure, never returns fallback values.
"""

import logging

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo import errors as mongo_errors
from pymongo.errors import PyMongoError

from clients.document_store import Document, DocumentStoreError, DuplicateKeyError

logger = logging.getLogger(__name__)


class MongoDocumentStore:
    """
    DocumentStore over a single MongoDB database.

    Usage:
        store = MongoDocumentStore("mongodb://127.0.0.1:27017", "authcore")
        store.ensure_indexes()
        user = store.find_one("users", {"email": "a@x.com"})
    """

    def __init__(self, url: str, database: str, client: MongoClient | None = None):
        """
        Connect and verify connectivity.

        Args:
            url: MongoDB connection URL
            database: Database name
            client: Pre-built client (tests inject a mock here)

        Raises:
            DocumentStoreError: If the server cannot be reached
        """
        if not database:
            raise ValueError("database is required")

        # tz_aware so stored datetimes come back comparable with now_utc()
        self._client = client or MongoClient(url, tz_aware=True, serverSelectionTimeoutMS=5000)
        try:
            self._client.admin.command("ping")
        except PyMongoError as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise DocumentStoreError(f"Connection failed: {e}")

        self._db = self._client[database]
        logger.info(f"MongoDocumentStore connected to database '{database}'")

    def ensure_indexes(self) -> None:
        """Create the indexes the auth core relies on. Idempotent."""
        self._db["users"].create_index("email", unique=True)
        self._db["users"].create_index("reset_token_digest", sparse=True)
        self._db["login_attempts"].create_index(
            [("email", ASCENDING), ("ip_address", ASCENDING)], unique=True
        )
        self._db["login_attempts"].create_index("last_attempt")
        self._db["activity_logs"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
        self._db["activity_logs"].create_index("action")

    def find_one(self, collection: str, filter: Document) -> Document | None:
        return self._db[collection].find_one(filter)

    def find(
        self,
        collection: str,
        filter: Document,
        sort: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        cursor = self._db[collection].find(filter)
        if sort is not None:
            cursor = cursor.sort(sort, DESCENDING if descending else ASCENDING)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def insert_one(self, collection: str, document: Document) -> str:
        # pymongo adds _id to the dict it is given; keep the caller's copy clean
        try:
            result = self._db[collection].insert_one(dict(document))
        except mongo_errors.DuplicateKeyError as e:
            raise DuplicateKeyError(f"Duplicate key in {collection}: {e}")
        return str(result.inserted_id)

    def update_one(self, collection: str, filter: Document, update: Document) -> int:
        try:
            return self._db[collection].update_one(filter, update).matched_count
        except mongo_errors.DuplicateKeyError as e:
            raise DuplicateKeyError(f"Duplicate key in {collection}: {e}")

    def delete_one(self, collection: str, filter: Document) -> int:
        return self._db[collection].delete_one(filter).deleted_count

    def delete_many(self, collection: str, filter: Document) -> int:
        return self._db[collection].delete_many(filter).deleted_count

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
        logger.info("MongoDocumentStore closed")
