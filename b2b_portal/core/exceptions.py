"""Domain errors raised by the portal services.

Each error carries the HTTP status it maps to, a message that is safe to show to
the client, and an internal ``reason`` code that is only logged (or echoed in
development mode).
"""

from typing import Any, Dict, Optional


class PortalError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"
    default_reason: str = "internal_error"

    def __init__(
        self,
        message: Optional[str] = None,
        reason: Optional[str] = None,
        debug: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.reason = reason or self.default_reason
        self.debug = debug or {}
        super().__init__(self.message)


class MethodNotAllowedError(PortalError):
    status_code = 405
    default_message = "Method not allowed. Only POST requests are supported."
    default_reason = "method_not_allowed"


class ValidationError(PortalError):
    """Malformed or missing input."""

    status_code = 400
    default_message = "Invalid request"
    default_reason = "validation_failed"


class AuthenticationError(PortalError):
    """Unknown user or wrong password. The message never says which."""

    status_code = 401
    default_message = "Invalid credentials"
    default_reason = "invalid_credentials"


class AccountStateError(PortalError):
    """The profile exists but cannot log in with a password yet."""

    status_code = 401
    default_message = "User has no password configured"
    default_reason = "no_password_set"


class InfrastructureError(PortalError):
    """Persistence or transport failure."""

    status_code = 500
    default_message = "Internal server error"
    default_reason = "infrastructure_error"


class EnrichmentWarning(Exception):
    """The external customer lookup failed. Logged, never surfaced to the client."""
