"""FastAPI dependencies wiring the services together.

Every collaborator is resolved through ``Depends`` so tests can replace it via
``app.dependency_overrides``.
"""

import json
import logging
from datetime import timedelta
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, Request

from b2b_portal.api.cookies import read_session_cookie
from b2b_portal.core.config import Settings, settings
from b2b_portal.core.session_context import SessionContext
from b2b_portal.core.utils.session_store import SessionStore
from b2b_portal.db.persistence import PersistenceService, SqlAlchemyPersistence
from b2b_portal.db.session import engine
from b2b_portal.services.authentication import AuthenticationFlow
from b2b_portal.services.credentials import CredentialVerifier
from b2b_portal.services.customers import CustomerDirectory
from b2b_portal.services.profiles import ProfileRepository

logger = logging.getLogger(__name__)


def get_settings() -> Settings:
    return settings


@lru_cache()
def _default_persistence() -> SqlAlchemyPersistence:
    return SqlAlchemyPersistence(engine)


def get_persistence() -> Optional[PersistenceService]:
    """The configured persistence service, or None when none is available."""
    return _default_persistence()


@lru_cache()
def _verifier(rounds: int) -> CredentialVerifier:
    return CredentialVerifier(rounds=rounds)


def get_credential_verifier(config: Settings = Depends(get_settings)) -> CredentialVerifier:
    return _verifier(config.BCRYPT_ROUNDS)


def get_customer_directory(config: Settings = Depends(get_settings)) -> Optional[CustomerDirectory]:
    """Shopify customer lookup, only when the store credentials are configured."""
    if not config.shopify_configured:
        return None
    return CustomerDirectory(
        config.SHOPIFY_STORE_DOMAIN,
        config.SHOPIFY_ADMIN_API_TOKEN,
        api_version=config.SHOPIFY_API_VERSION,
        timeout=config.ENRICHMENT_TIMEOUT_SECONDS,
    )


def get_session_store(
    persistence: Optional[PersistenceService] = Depends(get_persistence),
) -> SessionStore:
    return SessionStore(persistence)


def get_profile_repository(
    persistence: Optional[PersistenceService] = Depends(get_persistence),
) -> Optional[ProfileRepository]:
    return ProfileRepository(persistence) if persistence is not None else None


def get_auth_flow(
    persistence: Optional[PersistenceService] = Depends(get_persistence),
    verifier: CredentialVerifier = Depends(get_credential_verifier),
    customers: Optional[CustomerDirectory] = Depends(get_customer_directory),
    config: Settings = Depends(get_settings),
) -> AuthenticationFlow:
    return AuthenticationFlow(
        persistence,
        verifier,
        customers=customers,
        enrichment_timeout=config.ENRICHMENT_TIMEOUT_SECONDS,
        dev_mode=config.DEV_MODE,
    )


async def get_session_context(
    request: Request,
    store: SessionStore = Depends(get_session_store),
    config: Settings = Depends(get_settings),
) -> SessionContext:
    return await SessionContext.load(
        store,
        read_session_cookie(request, config),
        max_age=timedelta(seconds=config.SESSION_MAX_AGE_SECONDS),
    )


async def read_json_body(request: Request) -> Dict[str, Any]:
    """Parse the raw request body as a JSON object.

    A missing, malformed or non-object body is treated as empty so that input
    validation reports the missing fields.
    """
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        logger.debug("Request body is not valid JSON, treating it as empty")
        return {}
    return body if isinstance(body, dict) else {}


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
