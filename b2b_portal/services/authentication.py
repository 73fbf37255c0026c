"""Customer authentication against ``user_profiles``.

``AuthenticationFlow`` turns a parsed request body plus the request's
``SessionContext`` into an ``AuthOutcome`` (status code and JSON body). The HTTP
layer only parses the body, builds the context and writes the outcome and the
session cookie back.

Login steps:
    1. POST only
    2. validate email and password
    3. check the store is reachable
    4. load the profile by exact email
    5. reject profiles without a password hash
    6. verify the password
    7. best-effort enrichment from Shopify (tags, company), time-bounded
    8. populate ``payload["customer"]`` and save it under a new session id

Unknown emails and wrong passwords produce byte-identical responses.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from b2b_portal.core.exceptions import (
    AccountStateError,
    AuthenticationError,
    EnrichmentWarning,
    InfrastructureError,
    MethodNotAllowedError,
    PortalError,
    ValidationError,
)
from b2b_portal.core.security import build_debug_details, mask_email
from b2b_portal.core.session_context import SessionContext
from b2b_portal.core.utils.logging_config import log_security_event
from b2b_portal.db.persistence import (
    PersistenceError,
    PersistenceService,
    RecordNotFoundError,
)
from b2b_portal.services.credentials import CredentialVerifier
from b2b_portal.services.customers import CustomerDirectory, parse_tags
from b2b_portal.services.profiles import LOGIN_COLUMNS, ProfileRepository, is_profile_complete

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_NEW_PASSWORD_LENGTH = 8
# bcrypt only hashes the first 72 bytes
MAX_PASSWORD_BYTES = 72

DEFAULT_FIRST_NAME = "User"
DEFAULT_LAST_NAME = "B2B"
DEFAULT_COMPANY = "Company"

PORTAL_REDIRECT = "/portal"


@dataclass
class AuthOutcome:
    status_code: int
    body: Dict[str, Any]
    warnings: List[EnrichmentWarning] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.body.get("success"))


def validate_email(value: Any) -> str:
    """Return the trimmed email or raise ``ValidationError``."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Email is required", reason="email_missing")
    email = value.strip()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email format", reason="email_malformed")
    return email


def validate_password(value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError("Password is required", reason="password_missing")
    return value


def validate_new_password(value: Any, confirmation: Any) -> str:
    """Password policy for newly configured passwords."""
    if not isinstance(value, str) or len(value) < MIN_NEW_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_NEW_PASSWORD_LENGTH} characters long",
            reason="password_too_short",
        )
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes long",
            reason="password_too_long",
        )
    if not (re.search(r"[A-Za-z]", value) and re.search(r"\d", value)):
        raise ValidationError(
            "Password must contain at least one letter and one number",
            reason="password_too_weak",
        )
    if value != confirmation:
        raise ValidationError("Passwords do not match", reason="password_confirmation_mismatch")
    return value


class AuthenticationFlow:
    def __init__(
        self,
        persistence: Optional[PersistenceService],
        verifier: CredentialVerifier,
        customers: Optional[CustomerDirectory] = None,
        enrichment_timeout: float = 5.0,
        dev_mode: bool = False,
    ):
        self.persistence = persistence
        self.profiles = ProfileRepository(persistence) if persistence is not None else None
        self.verifier = verifier
        self.customers = customers
        self.enrichment_timeout = enrichment_timeout
        self.dev_mode = dev_mode

    # ------------------------------------------------------------------
    # entry points

    async def handle(
        self,
        method: str,
        body: Mapping[str, Any],
        context: SessionContext,
        client_ip: Optional[str] = None,
    ) -> AuthOutcome:
        """Log a customer in and populate ``context`` on success."""
        return await self._guard(method, lambda: self._login(body, context, client_ip))

    async def check_email(self, method: str, body: Mapping[str, Any]) -> AuthOutcome:
        """Tell the client which step comes next for an email address."""
        return await self._guard(method, lambda: self._check_email(body))

    async def setup_password(
        self,
        method: str,
        body: Mapping[str, Any],
        context: SessionContext,
        client_ip: Optional[str] = None,
    ) -> AuthOutcome:
        """Configure the first password of a provisioned profile and log in."""
        return await self._guard(method, lambda: self._setup_password(body, context, client_ip))

    # ------------------------------------------------------------------
    # flows

    async def _login(
        self, body: Mapping[str, Any], context: SessionContext, client_ip: Optional[str]
    ) -> AuthOutcome:
        email = validate_email(body.get("email"))
        password = validate_password(body.get("password"))
        profiles = await self._available_profiles()

        try:
            profile = await profiles.get_profile(email, columns=LOGIN_COLUMNS)
        except RecordNotFoundError:
            # Spend the same bcrypt work as a real check
            await self.verifier.burn_async(password)
            self._log_failure(email, "user_not_found", client_ip)
            raise AuthenticationError()
        except PersistenceError as e:
            logger.error(f"Profile lookup failed: {e}")
            raise InfrastructureError(debug={"error": str(e), "code": e.code}) from e

        password_hash = profile.get("password_hash")
        if not password_hash or not str(password_hash).strip():
            self._log_failure(email, "no_password_set", client_ip)
            raise AccountStateError()

        if not await self.verifier.verify_async(password, password_hash):
            self._log_failure(email, "password_mismatch", client_ip)
            raise AuthenticationError()

        customer_data, warnings = await self._establish_session(context, email, profile)
        log_security_event("login_success", "Customer login succeeded", user_id=email, ip_address=client_ip)

        return AuthOutcome(
            200,
            {
                "success": True,
                "message": "Login successful",
                "nextStep": "portal_access",
                "profileCompleted": is_profile_complete(profile),
                "customerData": customer_data,
                "redirect": PORTAL_REDIRECT,
                "shouldRedirect": True,
            },
            warnings=warnings,
        )

    async def _check_email(self, body: Mapping[str, Any]) -> AuthOutcome:
        email = validate_email(body.get("email"))
        profiles = await self._available_profiles()

        try:
            profile = await profiles.find_profile(email, columns=LOGIN_COLUMNS)
        except PersistenceError as e:
            logger.error(f"Profile lookup failed: {e}")
            raise InfrastructureError(debug={"error": str(e), "code": e.code}) from e

        if profile is None:
            return AuthOutcome(
                200,
                {
                    "success": True,
                    "status": "not_found",
                    "message": "User not found",
                    "nextStep": "register",
                    "email": email,
                },
            )

        has_password = bool(str(profile.get("password_hash") or "").strip())
        customer_data = self._display_data(email, profile, {})
        customer_data["hasPassword"] = has_password
        if has_password:
            status, message, next_step = "existing_user", "User found with password", "password"
        else:
            status, message, next_step = "first_time", "First time in the portal", "create_password"

        return AuthOutcome(
            200,
            {
                "success": True,
                "status": status,
                "message": message,
                "nextStep": next_step,
                "email": email,
                "customerData": customer_data,
            },
        )

    async def _setup_password(
        self, body: Mapping[str, Any], context: SessionContext, client_ip: Optional[str]
    ) -> AuthOutcome:
        email = validate_email(body.get("email"))
        password = validate_new_password(body.get("password"), body.get("confirmPassword"))
        profiles = await self._available_profiles()

        try:
            profile = await profiles.get_profile(email, columns=LOGIN_COLUMNS)
        except RecordNotFoundError:
            self._log_failure(email, "user_not_found", client_ip)
            raise AuthenticationError()
        except PersistenceError as e:
            logger.error(f"Profile lookup failed: {e}")
            raise InfrastructureError(debug={"error": str(e), "code": e.code}) from e

        if str(profile.get("password_hash") or "").strip():
            raise ValidationError("Password is already configured", reason="password_already_set")

        try:
            await profiles.set_password_hash(email, await self.verifier.hash_password_async(password))
        except PersistenceError as e:
            logger.error(f"Storing password hash failed: {e}")
            raise InfrastructureError(debug={"error": str(e), "code": e.code}) from e

        customer_data, warnings = await self._establish_session(context, email, profile)
        log_security_event("password_setup", "Customer configured a password", user_id=email, ip_address=client_ip)

        return AuthOutcome(
            200,
            {
                "success": True,
                "message": "Password configured successfully",
                "nextStep": "login_complete",
                "profileCompleted": is_profile_complete(profile),
                "customerData": customer_data,
                "redirect": PORTAL_REDIRECT,
                "shouldRedirect": True,
            },
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # helpers

    async def _guard(self, method: str, operation: Callable[[], Awaitable[AuthOutcome]]) -> AuthOutcome:
        try:
            if method.upper() != "POST":
                raise MethodNotAllowedError()
            return await operation()
        except PortalError as e:
            return self._failure(e)
        except Exception as e:
            logger.exception("Unexpected error while handling authentication request")
            return self._failure(InfrastructureError(debug={"error": str(e), "type": type(e).__name__}))

    def _failure(self, error: PortalError) -> AuthOutcome:
        body: Dict[str, Any] = {"success": False, "message": error.message}
        debug = build_debug_details({"reason": error.reason, **error.debug}, self.dev_mode)
        if debug is not None:
            body["debug"] = debug
        return AuthOutcome(error.status_code, body)

    async def _available_profiles(self) -> ProfileRepository:
        if self.persistence is None or self.profiles is None:
            logger.error("Persistence service is not configured")
            raise InfrastructureError("Database unavailable", debug={"persistenceConfigured": False})
        try:
            await self.persistence.ping()
        except PersistenceError as e:
            logger.error(f"Persistence service unavailable: {e}")
            raise InfrastructureError("Database unavailable", debug={"error": str(e)}) from e
        return self.profiles

    def _log_failure(self, email: str, reason: str, client_ip: Optional[str]) -> None:
        logger.info(f"Login rejected for {mask_email(email)}: {reason}")
        log_security_event(
            "login_failure",
            "Customer login failed",
            user_id=email,
            ip_address=client_ip,
            extra_data={"reason": reason},
        )

    async def _enrich(self, email: str) -> Tuple[Dict[str, Any], List[EnrichmentWarning]]:
        """Look the customer up in Shopify. Failures become warnings."""
        if self.customers is None:
            return {}, []
        try:
            customer = await asyncio.wait_for(
                self.customers.find_customer_by_email(email), timeout=self.enrichment_timeout
            )
        except asyncio.TimeoutError:
            warning = EnrichmentWarning(f"Customer lookup timed out after {self.enrichment_timeout}s")
        except EnrichmentWarning as e:
            warning = e
        except Exception as e:
            warning = EnrichmentWarning(f"Customer lookup failed: {e}")
        else:
            if not customer:
                return {}, []
            address = customer.get("default_address") or {}
            return {
                "tags": parse_tags(customer.get("tags")),
                "company": address.get("company"),
                "firstName": customer.get("first_name"),
                "lastName": customer.get("last_name"),
            }, []

        logger.warning(f"Session enrichment skipped: {warning}")
        return {}, [warning]

    @staticmethod
    def _display_data(email: str, profile: Mapping[str, Any], enrichment: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "email": email,
            "firstName": profile.get("first_name") or enrichment.get("firstName") or DEFAULT_FIRST_NAME,
            "lastName": profile.get("last_name") or enrichment.get("lastName") or DEFAULT_LAST_NAME,
            "company": profile.get("company_name") or enrichment.get("company") or DEFAULT_COMPANY,
        }

    async def _establish_session(
        self, context: SessionContext, email: str, profile: Mapping[str, Any]
    ) -> Tuple[Dict[str, Any], List[EnrichmentWarning]]:
        enrichment, warnings = await self._enrich(email)
        customer_data = self._display_data(email, profile, enrichment)

        context.payload["customer"] = {
            **customer_data,
            "tags": enrichment.get("tags", []),
            # TODO: derive the rate from the b2b/ima discount tags once pricing rules are agreed
            "discount": None,
            "isAuthenticated": True,
        }

        # Authenticated state always lives under a freshly minted id
        previous_id = context.session_id if context.saved or not context.is_new else None
        context.regenerate()
        if not await context.save():
            logger.error(f"Session could not be persisted for {mask_email(email)}")
            raise InfrastructureError(
                "Session could not be created", debug={"stage": "session_save"}
            )
        if previous_id:
            await context.store.destroy_session(previous_id)
        return customer_data, warnings
