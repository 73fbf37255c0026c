"""
Customer authentication endpoints.

The login, email check and password setup routes accept every method so that the
authentication flow itself answers non-POST requests with its 405 body.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from b2b_portal.api.cookies import delete_session_cookie, set_session_cookie
from b2b_portal.api.dependencies import (
    client_ip,
    get_auth_flow,
    get_session_context,
    get_session_store,
    get_settings,
    read_json_body,
)
from b2b_portal.core.config import Settings
from b2b_portal.core.session_context import SessionContext
from b2b_portal.core.utils.logging_config import log_security_event
from b2b_portal.core.utils.session_store import SessionStore
from b2b_portal.services.authentication import AuthenticationFlow, AuthOutcome

router = APIRouter()

FLOW_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


async def _body_for(request: Request) -> Dict[str, Any]:
    if request.method.upper() != "POST":
        return {}
    return await read_json_body(request)


def _respond(outcome: AuthOutcome, context: SessionContext, config: Settings) -> JSONResponse:
    response = JSONResponse(outcome.body, status_code=outcome.status_code)
    # A saved session extends its expiry, so the cookie is (re)sent with it
    if context.saved:
        set_session_cookie(response, context.session_id, config)
    return response


@router.api_route("/login", methods=FLOW_METHODS)
async def login(
    request: Request,
    context: SessionContext = Depends(get_session_context),
    flow: AuthenticationFlow = Depends(get_auth_flow),
    config: Settings = Depends(get_settings),
):
    """
    Log a B2B customer in with email and password.

    On success the session is persisted and the session cookie is set.
    """
    outcome = await flow.handle(
        request.method, await _body_for(request), context, client_ip=client_ip(request)
    )
    return _respond(outcome, context, config)


@router.api_route("/check-email", methods=FLOW_METHODS)
async def check_email(
    request: Request,
    flow: AuthenticationFlow = Depends(get_auth_flow),
):
    """Report whether an email is unknown, has a password, or still needs one."""
    outcome = await flow.check_email(request.method, await _body_for(request))
    return JSONResponse(outcome.body, status_code=outcome.status_code)


@router.api_route("/setup-password", methods=FLOW_METHODS)
async def setup_password(
    request: Request,
    context: SessionContext = Depends(get_session_context),
    flow: AuthenticationFlow = Depends(get_auth_flow),
    config: Settings = Depends(get_settings),
):
    """Configure the first password of a provisioned account and log it in."""
    outcome = await flow.setup_password(
        request.method, await _body_for(request), context, client_ip=client_ip(request)
    )
    return _respond(outcome, context, config)


@router.post("/logout")
async def logout(
    request: Request,
    context: SessionContext = Depends(get_session_context),
    config: Settings = Depends(get_settings),
):
    customer = context.customer or {}
    # A freshly minted id was never stored
    if not context.is_new:
        await context.destroy()
        log_security_event(
            "logout",
            "Customer logged out",
            user_id=customer.get("email"),
            ip_address=client_ip(request),
        )

    response = JSONResponse({"success": True, "message": "Logged out"})
    delete_session_cookie(response, config)
    return response


@router.get("/sessions")
async def list_sessions(
    context: SessionContext = Depends(get_session_context),
    store: SessionStore = Depends(get_session_store),
):
    """Live sessions of the logged-in customer, newest first.

    Session ids are truncated so other sessions' cookies are never disclosed.
    """
    if not context.is_authenticated:
        return JSONResponse({"success": False, "message": "Not authenticated"}, status_code=401)

    records = await store.get_user_sessions(context.customer["email"])
    sessions: List[Dict[str, Any]] = [
        {
            "id": record["session_id"][:12],
            "current": record["session_id"] == context.session_id,
            "createdAt": record["created_at"].isoformat() if record.get("created_at") else None,
            "expiresAt": record["expires_at"].isoformat() if record.get("expires_at") else None,
        }
        for record in records
    ]
    return {"success": True, "sessions": sessions}
