from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from b2b_portal.db.base import Base


class UserSession(Base):
    """Durable session record keyed by the opaque session id."""

    __tablename__ = "user_sessions"

    # Base provides: id, created_at, updated_at
    session_id: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    user_email: Mapped[Optional[str]] = mapped_column(String, index=True, nullable=True)
    # JSON-serialized payload
    session_data: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    expires_at: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<UserSession(session_id={self.session_id!r}, expires_at={self.expires_at!r})>"
