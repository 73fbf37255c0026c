"""Session cookie helpers."""

from typing import Optional

from fastapi import Request, Response

from b2b_portal.core.config import Settings, settings as default_settings


def read_session_cookie(request: Request, config: Settings = default_settings) -> Optional[str]:
    value = request.cookies.get(config.SESSION_COOKIE_NAME)
    return value or None


def set_session_cookie(response: Response, session_id: str, config: Settings = default_settings) -> None:
    """Attach the session cookie.

    Production deployments serve the portal cross-site over HTTPS, so the cookie
    is ``Secure`` with ``SameSite=None`` there and ``Lax`` everywhere else.
    """
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=session_id,
        max_age=config.SESSION_MAX_AGE_SECONDS,
        httponly=True,
        secure=config.is_production,
        samesite="none" if config.is_production else "lax",
        path="/",
    )


def delete_session_cookie(response: Response, config: Settings = default_settings) -> None:
    response.delete_cookie(
        key=config.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=config.is_production,
        samesite="none" if config.is_production else "lax",
    )
