"""Session status endpoint used by the storefront to gate the portal."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from b2b_portal.api.dependencies import get_session_context
from b2b_portal.core.session_context import SessionContext

router = APIRouter()


@router.get("/session-check")
async def session_check(context: SessionContext = Depends(get_session_context)):
    if not context.is_authenticated:
        return JSONResponse({"authenticated": False}, status_code=401)
    return {"authenticated": True, "customer": context.customer}
