"""
Global test configuration and fixtures for the B2B portal

This module provides shared fixtures: an in-memory persistence service, a
temporary SQLite database, a fast bcrypt verifier and FastAPI test clients with
their dependencies overridden.
"""

import os
import tempfile
from pathlib import Path

# Point the application at a throwaway database before it is imported
_TEST_DIR = tempfile.mkdtemp(prefix="b2b_portal_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DIR}/app.db"
os.environ["ENVIRONMENT"] = "test"

import pytest
from fastapi.testclient import TestClient

from b2b_portal.api.dependencies import (
    get_credential_verifier,
    get_customer_directory,
    get_persistence,
    get_settings,
)
from b2b_portal.core.config import settings
from b2b_portal.core.utils.session_store import SessionStore
from b2b_portal.db.base import Base
from b2b_portal.db.persistence import SqlAlchemyPersistence
from b2b_portal.db.session import build_engine
from b2b_portal.main import app
from b2b_portal.services.credentials import CredentialVerifier
from tests.utils.factories import TEST_PASSWORD, ProfileFactory
from tests.utils.fakes import InMemoryPersistence, UnavailablePersistence


# ============================================================================
# Test Environment Setup
# ============================================================================

@pytest.fixture(scope="function")
def test_settings():
    """Settings for one test; tweak with ``model_copy`` or attribute assignment"""
    return settings.model_copy(update={"ENVIRONMENT": "test", "DEV_MODE": False, "BCRYPT_ROUNDS": 4})


@pytest.fixture(scope="session")
def verifier():
    """bcrypt at the minimum cost keeps the suite fast"""
    return CredentialVerifier(rounds=4)


@pytest.fixture(scope="session")
def password_hash(verifier):
    return verifier.hash_password(TEST_PASSWORD)


# ============================================================================
# Persistence Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def memory_persistence():
    return InMemoryPersistence()


@pytest.fixture(scope="function")
def session_store(memory_persistence):
    return SessionStore(memory_persistence)


@pytest.fixture(scope="function")
def sqlite_engine(tmp_path: Path):
    """A fresh SQLite database file with the portal schema"""
    engine = build_engine(f"sqlite:///{tmp_path / 'portal.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def sql_persistence(sqlite_engine):
    return SqlAlchemyPersistence(sqlite_engine)


@pytest.fixture(scope="function")
def customer_profile(memory_persistence, password_hash):
    """A complete profile with a password, stored in the in-memory persistence"""
    return memory_persistence.add_row(
        "user_profiles", **ProfileFactory.complete(password_hash=password_hash)
    )


# ============================================================================
# Application Client Fixtures
# ============================================================================

def _override(persistence, verifier, test_settings, customers=None):
    app.dependency_overrides[get_persistence] = lambda: persistence
    app.dependency_overrides[get_credential_verifier] = lambda: verifier
    app.dependency_overrides[get_customer_directory] = lambda: customers
    app.dependency_overrides[get_settings] = lambda: test_settings


@pytest.fixture(scope="function")
def client(memory_persistence, verifier, test_settings):
    """FastAPI test client backed by the in-memory persistence service"""
    _override(memory_persistence, verifier, test_settings)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def unavailable_client(verifier, test_settings):
    """FastAPI test client whose persistence service is down"""
    _override(UnavailablePersistence(), verifier, test_settings)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ============================================================================
# Test Markers and Configuration
# ============================================================================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "critical: mark test as critical path functionality"
    )
    config.addinivalue_line(
        "markers", "security: mark test as security-related"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers based on file location"""
    for item in items:
        path = str(item.fspath)
        if "security" in path:
            item.add_marker(pytest.mark.security)
        if "critical" in path:
            item.add_marker(pytest.mark.critical)
        if "/unit/" in path:
            item.add_marker(pytest.mark.unit)
