"""Database models"""

from b2b_portal.db.models.session_store import UserSession
from b2b_portal.db.models.user_profile import UserProfile

__all__ = [
    "UserProfile",
    "UserSession",
]
