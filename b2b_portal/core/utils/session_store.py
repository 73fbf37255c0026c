"""Server-side session storage in the ``user_sessions`` table.

Session payloads are JSON-serialized and keyed by an opaque session id that only
the server mints. Every read filters on ``expires_at``, so an expired record is
indistinguishable from one that never existed even if cleanup has not run yet.

All operations degrade to a sentinel value (False, None, 0 or []) when the
backing store fails; callers keep serving the request in a degraded mode.
"""
from __future__ import annotations

import itertools
import json
import logging
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Union

from b2b_portal.db.persistence import (
    PersistenceError,
    PersistenceService,
    RecordNotFoundError,
    eq,
    gt,
    lte,
)

logger = logging.getLogger(__name__)

SESSIONS_TABLE = "user_sessions"
SESSION_ID_PREFIX = "sess_"
DEFAULT_MAX_AGE = timedelta(hours=24)

# Process-wide counter mixed into every id
_id_counter = itertools.count()


def utc_now() -> datetime:
    """Naive UTC timestamp, the representation stored in the sessions table."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SessionStore:
    def __init__(self, persistence: Optional[PersistenceService]):
        self.persistence = persistence

    async def ensure_schema_ready(self) -> bool:
        """Make sure the sessions table exists. Returns False instead of raising."""
        if self.persistence is None:
            logger.warning("No persistence service configured, sessions will not be stored")
            return False
        try:
            await self.persistence.ensure_table(SESSIONS_TABLE)
        except PersistenceError as e:
            logger.error(f"Sessions table is not accessible: {e}")
            return False
        logger.info("Sessions table is accessible")
        return True

    @staticmethod
    def generate_session_id() -> str:
        """Mint a new opaque session id.

        The random part comes from ``secrets``; the counter and nanosecond clock
        suffix keeps ids unique within the process even if the random part ever
        collided.
        """
        random_part = secrets.token_urlsafe(24)
        return f"{SESSION_ID_PREFIX}{random_part}{next(_id_counter):x}{time.time_ns():x}"

    async def set_session(
        self,
        session_id: str,
        payload: Dict[str, Any],
        max_age: Union[timedelta, int, float] = DEFAULT_MAX_AGE,
    ) -> bool:
        """
        Upsert the session record.

        Args:
            session_id: The session id
            payload: JSON-serializable session payload
            max_age: Lifetime as a timedelta or a number of seconds

        Returns:
            True when the record was written
        """
        if self.persistence is None:
            return False
        if not isinstance(max_age, timedelta):
            max_age = timedelta(seconds=max_age)

        now = utc_now()
        customer = payload.get("customer") or {}
        try:
            serialized = json.dumps(payload)
        except (TypeError, ValueError) as e:
            logger.error(f"Session payload is not serializable: {e}")
            return False

        try:
            await self.persistence.upsert(
                SESSIONS_TABLE,
                {
                    "session_id": session_id,
                    "user_email": customer.get("email") if isinstance(customer, dict) else None,
                    "session_data": serialized,
                    "expires_at": now + max_age,
                    "updated_at": now,
                },
                on_conflict="session_id",
                insert_defaults={"created_at": now},
            )
        except PersistenceError as e:
            logger.error(f"Error saving session: {e}")
            return False

        logger.debug("Session saved")
        return True

    async def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored payload, or None if the session is unknown or expired."""
        if self.persistence is None or not session_id:
            return None
        try:
            row = await self.persistence.select_one(
                SESSIONS_TABLE,
                [eq("session_id", session_id), gt("expires_at", utc_now())],
                columns=["session_data"],
            )
        except RecordNotFoundError:
            logger.debug("No valid session found")
            return None
        except PersistenceError as e:
            logger.error(f"Error getting session: {e}")
            return None

        try:
            payload = json.loads(row["session_data"])
        except (TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable session payload: {e}")
            return None
        return payload if isinstance(payload, dict) else None

    async def destroy_session(self, session_id: str) -> bool:
        """Delete the record. Deleting an unknown session is not an error."""
        if self.persistence is None:
            return False
        try:
            await self.persistence.delete(SESSIONS_TABLE, [eq("session_id", session_id)])
        except PersistenceError as e:
            logger.error(f"Error destroying session: {e}")
            return False
        return True

    async def cleanup_expired_sessions(self) -> int:
        """Best-effort removal of expired records. Returns how many were removed."""
        if self.persistence is None:
            return 0
        try:
            removed = await self.persistence.delete(
                SESSIONS_TABLE, [lte("expires_at", utc_now())]
            )
        except PersistenceError as e:
            logger.error(f"Error cleaning expired sessions: {e}")
            return 0
        logger.info("Expired sessions cleaned up", extra={"removed": removed})
        return removed

    async def get_user_sessions(self, user_email: str) -> List[Dict[str, Any]]:
        """Live sessions for ``user_email``, newest first."""
        if self.persistence is None:
            return []
        try:
            return await self.persistence.select(
                SESSIONS_TABLE,
                [eq("user_email", user_email), gt("expires_at", utc_now())],
                columns=["session_id", "created_at", "expires_at"],
                order_by="created_at",
                descending=True,
            )
        except PersistenceError as e:
            logger.error(f"Error getting user sessions: {e}")
            return []
