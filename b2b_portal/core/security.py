"""
Security utilities for the B2B portal.

Helpers that keep internal detail out of client-visible responses and logs,
plus the response-hardening middleware.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

CORRELATION_HEADER = "X-Request-ID"

# Request id of the request being handled, picked up by the log formatter
correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

_SENSITIVE_PATTERNS = [
    # bcrypt hashes
    (r'\$2[abxy]\$\d{2}\$[./A-Za-z0-9]{53}', '****'),
    # Long opaque tokens (session ids, API tokens)
    (r'\b(?=[A-Za-z0-9+/_-]*\d)[A-Za-z0-9+/_-]{20,}\b', '****'),
    (r'token[\'"\s]*[:=][\'"\s]*[^\s\'"]+', 'token=****'),
    (r'key[\'"\s]*[:=][\'"\s]*[^\s\'"]+', 'key=****'),
    (r'password[\'"\s]*[:=][\'"\s]*[^\s\'"]+', 'password=****'),
]


def sanitize_error_message(error_msg: Any) -> str:
    """
    Sanitize error messages to prevent sensitive data leakage.

    Args:
        error_msg: The raw error message to sanitize

    Returns:
        A sanitized error message safe for API responses
    """
    if not error_msg:
        return "Unknown error occurred"

    sanitized = str(error_msg)
    for pattern, replacement in _SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)

    # Truncate very long error messages
    if len(sanitized) > 200:
        sanitized = sanitized[:200] + "..."

    return sanitized


def build_debug_details(details: Dict[str, Any], dev_mode: bool) -> Optional[Dict[str, Any]]:
    """
    Debug block for a failure response.

    Returns None outside development mode so callers can drop the field entirely.
    String values are sanitized even in development mode.
    """
    if not dev_mode:
        return None
    return {
        key: sanitize_error_message(value) if isinstance(value, str) else value
        for key, value in details.items()
    }


def mask_email(email: Optional[str]) -> str:
    """Keep the first letter and the domain: ``j****@example.com``."""
    if not email or "@" not in email:
        return "****"
    local, domain = email.split("@", 1)
    return f"{local[:1]}****@{domain}"


def mask_session_id(session_id: Optional[str], visible: int = 12) -> str:
    """Short prefix of a session id, enough to correlate log lines."""
    if not session_id:
        return "****"
    return f"{session_id[:visible]}..."


def create_safe_error_response(
    error: Exception, default_message: str = "Operation failed", dev_mode: bool = False
) -> str:
    """
    Create a safe error message that doesn't leak sensitive information.

    Outside development mode the error is only classified; in development mode
    a sanitized version of the raw message is returned.
    """
    if dev_mode:
        return sanitize_error_message(str(error))

    error_str = str(error).lower()
    if "timed out" in error_str or "timeout" in error_str:
        return "Upstream service timed out"
    if "network" in error_str or "connection" in error_str:
        return "Network connection error"
    return default_message


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds hardening headers to every response and tags the request with a
    correlation id for structured logs.

    An inbound ``X-Request-ID`` is reused, otherwise a new id is generated; the
    id is echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        correlation_id_ctx.set(correlation_id)

        response = await call_next(request)

        security_headers = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Referrer-Policy": "strict-origin-when-cross-origin",
            # JSON API only, nothing may be framed or executed
            "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
            "Cache-Control": "no-store",
            CORRELATION_HEADER: correlation_id,
        }
        for header_name, header_value in security_headers.items():
            response.headers[header_name] = header_value

        return response
