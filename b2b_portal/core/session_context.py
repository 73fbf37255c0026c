"""Request-scoped session state.

A ``SessionContext`` is built once per request from the id found in the session
cookie. It either resumes a live stored session (merging its payload) or starts a
fresh one under a newly minted id. Nothing is persisted until ``save`` is called.

    START -> cookie id? -- no --> MINT_NEW -> READY (empty)
                        -- yes -> LOOKUP -- found --> MERGE -> READY (populated)
                                         -- missing/expired -> MINT_NEW -> READY (empty)
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional, Union

from b2b_portal.core.utils.session_store import DEFAULT_MAX_AGE, SessionStore

logger = logging.getLogger(__name__)

# Keys that describe the context itself rather than the session data
CONTROL_FIELDS = frozenset({"session_id", "sessionId", "save", "regenerate"})


class SessionContext:
    def __init__(
        self,
        store: SessionStore,
        session_id: Optional[str] = None,
        max_age: Union[timedelta, int, float] = DEFAULT_MAX_AGE,
    ):
        self.store = store
        self.session_id = session_id
        self.max_age = max_age
        self.payload: Dict[str, Any] = {}
        # True once an id was minted during this request; the caller must then
        # send a new session cookie.
        self.is_new = False
        self.saved = False

    @classmethod
    async def load(
        cls,
        store: SessionStore,
        session_id: Optional[str] = None,
        max_age: Union[timedelta, int, float] = DEFAULT_MAX_AGE,
    ) -> "SessionContext":
        """Build the context for a request.

        Never raises: if the store fails during bootstrap the request continues
        with a fresh anonymous session.
        """
        context = cls(store, session_id=session_id, max_age=max_age)
        if not session_id:
            context.regenerate()
            return context

        try:
            record = await store.get_session(session_id)
        except Exception:
            logger.exception("Session lookup failed, continuing with a new session")
            record = None

        if record is None:
            context.regenerate()
        else:
            context.merge(record)
        return context

    @property
    def customer(self) -> Optional[Dict[str, Any]]:
        customer = self.payload.get("customer")
        return customer if isinstance(customer, dict) else None

    @property
    def is_authenticated(self) -> bool:
        customer = self.customer
        return bool(customer and customer.get("isAuthenticated"))

    def regenerate(self) -> None:
        """Replace the session id with a freshly minted one."""
        self.session_id = self.store.generate_session_id()
        self.is_new = True

    def merge(self, record: Mapping[str, Any]) -> None:
        """Copy a stored payload onto this context, keeping the current id."""
        session_id = self.session_id
        self.payload.update(
            {key: value for key, value in record.items() if key not in CONTROL_FIELDS}
        )
        self.session_id = session_id

    def data(self) -> Dict[str, Any]:
        """The persistable payload, without any control fields."""
        return {key: value for key, value in self.payload.items() if key not in CONTROL_FIELDS}

    async def save(self) -> bool:
        if not self.session_id:
            self.regenerate()
        self.saved = await self.store.set_session(self.session_id, self.data(), self.max_age)
        return self.saved

    async def destroy(self) -> bool:
        """Delete the stored record and forget the payload."""
        self.payload.clear()
        if not self.session_id:
            return True
        return await self.store.destroy_session(self.session_id)
