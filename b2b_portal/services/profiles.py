"""Access to the ``user_profiles`` table and profile-completeness rules."""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from b2b_portal.core.utils.session_store import utc_now
from b2b_portal.db.persistence import PersistenceService, RecordNotFoundError, eq

logger = logging.getLogger(__name__)

PROFILES_TABLE = "user_profiles"

# Fields a B2B customer must fill in before the profile counts as complete
REQUIRED_PROFILE_FIELDS: Tuple[str, ...] = (
    "first_name",
    "last_name",
    "mobile_phone",
    "company_name",
    "company_rut",
    "company_giro",
    "company_address",
    "region",
    "comuna",
)

LOGIN_COLUMNS: Tuple[str, ...] = ("email", "password_hash") + REQUIRED_PROFILE_FIELDS

# Columns exposed to the logged-in customer
PROFILE_COLUMNS: Tuple[str, ...] = ("email",) + REQUIRED_PROFILE_FIELDS + ("profile_completed",)

FIELD_LABELS: Dict[str, str] = {
    "first_name": "First name",
    "last_name": "Last name",
    "mobile_phone": "Mobile phone",
    "company_name": "Company name",
    "company_rut": "Company RUT",
    "company_giro": "Business activity",
    "company_address": "Address",
    "region": "Region",
    "comuna": "Comuna",
}


def missing_profile_fields(profile: Mapping[str, Any]) -> List[str]:
    """Required fields that are absent or blank."""
    return [
        field
        for field in REQUIRED_PROFILE_FIELDS
        if not str(profile.get(field) or "").strip()
    ]


def is_profile_complete(profile: Mapping[str, Any]) -> bool:
    return not missing_profile_fields(profile)


def completion_percentage(profile: Mapping[str, Any]) -> int:
    filled = len(REQUIRED_PROFILE_FIELDS) - len(missing_profile_fields(profile))
    return round(filled * 100 / len(REQUIRED_PROFILE_FIELDS))


class ProfileRepository:
    def __init__(self, persistence: PersistenceService):
        self.persistence = persistence

    async def get_profile(
        self, email: str, columns: Optional[Sequence[str]] = None
    ) -> Dict[str, Any]:
        """Fetch one profile by exact email.

        Raises:
            RecordNotFoundError: No profile with that email
            PersistenceError: Any other store failure
        """
        return await self.persistence.select_one(PROFILES_TABLE, [eq("email", email)], columns=columns)

    async def find_profile(
        self, email: str, columns: Optional[Sequence[str]] = None
    ) -> Optional[Dict[str, Any]]:
        """Like ``get_profile`` but returns None when the profile does not exist."""
        try:
            return await self.get_profile(email, columns=columns)
        except RecordNotFoundError:
            return None

    async def update_profile(self, email: str, updates: Mapping[str, Any]) -> Dict[str, Any]:
        """Apply ``updates`` and return the updated profile.

        Raises:
            RecordNotFoundError: No profile with that email
        """
        values = {**updates, "updated_at": utc_now()}
        rows = await self.persistence.update(PROFILES_TABLE, values, [eq("email", email)])
        if not rows:
            raise RecordNotFoundError(f"No profile for {email}")
        return rows[0]

    async def set_password_hash(self, email: str, password_hash: str) -> Dict[str, Any]:
        return await self.update_profile(email, {"password_hash": password_hash})

    async def complete_profile(self, email: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Patch profile fields and set ``profile_completed`` from the result."""
        current = await self.get_profile(email)
        merged = {**current, **fields}
        updates = dict(fields)
        updates["profile_completed"] = is_profile_complete(merged)
        profile = await self.update_profile(email, updates)
        logger.info(
            "Profile updated",
            extra={"fields": sorted(fields), "profile_completed": updates["profile_completed"]},
        )
        return profile

    async def sync_completed_flag(self, email: str) -> Tuple[Dict[str, Any], bool]:
        """Set ``profile_completed`` when every required field is filled.

        Returns the (possibly updated) profile and whether the flag changed.
        """
        profile = await self.get_profile(email)
        if profile.get("profile_completed") or not is_profile_complete(profile):
            return profile, False
        return await self.update_profile(email, {"profile_completed": True}), True
