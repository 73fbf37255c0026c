"""
Profile endpoints for the logged-in customer.

Both routes require an authenticated session and act on the profile whose email
is stored in ``payload["customer"]``.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from b2b_portal.api.cookies import set_session_cookie
from b2b_portal.api.dependencies import (
    get_profile_repository,
    get_session_context,
    get_settings,
    read_json_body,
)
from b2b_portal.core.config import Settings
from b2b_portal.core.security import build_debug_details, mask_email
from b2b_portal.core.session_context import SessionContext
from b2b_portal.db.persistence import PersistenceError, RecordNotFoundError
from b2b_portal.services.profiles import (
    FIELD_LABELS,
    PROFILE_COLUMNS,
    REQUIRED_PROFILE_FIELDS,
    ProfileRepository,
    missing_profile_fields,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(status_code: int, message: str, config: Settings, **debug: Any) -> JSONResponse:
    body: Dict[str, Any] = {"success": False, "message": message}
    details = build_debug_details(debug, config.DEV_MODE) if debug else None
    if details is not None:
        body["debug"] = details
    return JSONResponse(body, status_code=status_code)


def _not_authenticated() -> JSONResponse:
    return JSONResponse({"success": False, "message": "Not authenticated"}, status_code=401)


def _unavailable(config: Settings) -> JSONResponse:
    logger.error("Persistence service is not configured")
    return _error(500, "Database unavailable", config, persistenceConfigured=False)


def _empty_profile(customer: Dict[str, Any]) -> Dict[str, Any]:
    """Blank profile seeded from the session, for customers without a stored row."""
    profile: Dict[str, Any] = {field: "" for field in REQUIRED_PROFILE_FIELDS}
    profile.update(
        email=customer["email"],
        first_name=customer.get("firstName") or "",
        last_name=customer.get("lastName") or "",
        profile_completed=False,
    )
    return profile


@router.get("/current")
async def current_profile(
    context: SessionContext = Depends(get_session_context),
    profiles: Optional[ProfileRepository] = Depends(get_profile_repository),
    config: Settings = Depends(get_settings),
):
    if not context.is_authenticated:
        return _not_authenticated()
    if profiles is None:
        return _unavailable(config)

    customer = context.customer
    try:
        profile = await profiles.find_profile(customer["email"], columns=PROFILE_COLUMNS)
    except PersistenceError as e:
        logger.error(f"Profile lookup failed: {e}")
        return _error(500, "Internal server error", config, error=str(e))

    return {"success": True, "profile": profile or _empty_profile(customer)}


@router.post("/update")
async def update_profile(
    request: Request,
    context: SessionContext = Depends(get_session_context),
    profiles: Optional[ProfileRepository] = Depends(get_profile_repository),
    config: Settings = Depends(get_settings),
):
    """
    Save the company details of the logged-in customer.

    Every required field must be present and non-blank. On success the display
    data in the session is refreshed from the stored profile.
    """
    if not context.is_authenticated:
        return _not_authenticated()

    body = await read_json_body(request)
    fields = {
        field: str(body[field]).strip()
        for field in REQUIRED_PROFILE_FIELDS
        if body.get(field) is not None
    }
    missing = missing_profile_fields(fields)
    if missing:
        labels = ", ".join(FIELD_LABELS[field] for field in missing)
        return _error(400, f"The following fields are required: {labels}", config)

    if profiles is None:
        return _unavailable(config)

    email = context.customer["email"]
    try:
        profile = await profiles.complete_profile(email, fields)
    except RecordNotFoundError:
        return _error(404, "Profile not found", config)
    except PersistenceError as e:
        logger.error(f"Profile update failed for {mask_email(email)}: {e}")
        return _error(500, "Internal server error", config, error=str(e))

    context.payload["customer"] = {
        **context.customer,
        "firstName": profile.get("first_name"),
        "lastName": profile.get("last_name"),
        "company": profile.get("company_name"),
    }
    response = JSONResponse(
        {
            "success": True,
            "message": "Company details saved",
            "profileCompleted": bool(profile.get("profile_completed")),
        }
    )
    if await context.save():
        set_session_cookie(response, context.session_id, config)
    else:
        logger.warning(f"Profile saved but session display data not refreshed for {mask_email(email)}")
    return response
