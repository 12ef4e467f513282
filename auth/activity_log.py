"""Activity logging for the account audit trail.

Append-only log in the activity_logs collection. Entries are never updated or
deleted by the auth core. Appending is fire-and-forget: a failed write is
logged and swallowed so it can never fail the operation being audited.
"""

import logging
from typing import Any

from auth.types import ActivityAction, ActivityLogEntry
from clients.document_store import DocumentStore
from utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class ActivityLogger:
    """Append-only activity log with simple newest-first queries."""

    COLLECTION = "activity_logs"

    def __init__(self, store: DocumentStore, clock: Clock | None = None):
        self._store = store
        self._clock = clock or SystemClock()

    def append(self, entry: ActivityLogEntry) -> None:
        """Persist entry with the current timestamp. Never raises."""
        document = entry.model_dump(mode="python")
        document["action"] = entry.action.value
        document["created_at"] = self._clock.now()

        try:
            self._store.insert_one(self.COLLECTION, document)
        except Exception:
            logger.exception(f"Failed to write activity log {entry.action.value} for {entry.user_email}")
            return

        logger.info(f"Activity logged: {entry.action.value} by {entry.user_email}")

    def _query(self, filter: dict[str, Any], limit: int) -> list[dict[str, Any]]:
        try:
            return self._store.find(
                self.COLLECTION, filter, sort="created_at", descending=True, limit=limit
            )
        except Exception:
            logger.exception("Failed to read activity logs")
            return []

    def get_user_activity(self, user_id: str, limit: int = 10) -> list[dict[str, Any]]:
        """Recent entries performed by user_id, newest first."""
        return self._query({"user_id": user_id}, limit)

    def get_recent(self, limit: int = 50) -> list[dict[str, Any]]:
        """Recent entries across all users, newest first."""
        return self._query({}, limit)

    def get_by_action(self, action: ActivityAction | str, limit: int = 20) -> list[dict[str, Any]]:
        """Recent entries with the given action tag, newest first."""
        return self._query({"action": ActivityAction(action).value}, limit)
