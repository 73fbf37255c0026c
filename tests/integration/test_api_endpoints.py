"""
HTTP-level tests for the authentication and session endpoints
"""

import json

import pytest

from b2b_portal.core.config import settings
from b2b_portal.core.utils.session_store import SESSIONS_TABLE
from b2b_portal.db.persistence import PersistenceUnavailableError
from tests.utils.factories import TEST_PASSWORD, ProfileFactory
from tests.utils.helpers import (
    assert_response_structure,
    session_cookie_headers,
    session_cookie_value,
)

EMAIL = "buyer@company.cl"
LOGIN_KEYS = ["success", "message", "nextStep", "profileCompleted", "customerData", "redirect", "shouldRedirect"]


def login(client, email=EMAIL, password=TEST_PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


class TestHealth:
    def test_basic_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_api_health_reports_sessions(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["services"]["sessions"]["table_ready"] is True

    def test_api_health_unhealthy_when_store_down(self, unavailable_client):
        response = unavailable_client.get("/api/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_security_headers(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Request-ID"] == "req-42"


@pytest.mark.critical
class TestLogin:
    def test_valid_credentials(self, client, customer_profile, memory_persistence):
        response = login(client)

        assert response.status_code == 200
        body = response.json()
        assert_response_structure(body, LOGIN_KEYS)
        assert body["success"] is True
        assert body["customerData"]["email"] == EMAIL

        session_id = session_cookie_value(response)
        assert session_id is not None
        [row] = memory_persistence.tables[SESSIONS_TABLE]
        assert row["session_id"] == session_id
        assert json.loads(row["session_data"])["customer"]["email"] == EMAIL

    def test_cookie_flags_outside_production(self, client, customer_profile):
        [header] = session_cookie_headers(login(client))
        lowered = header.lower()

        assert "httponly" in lowered
        assert f"max-age={settings.SESSION_MAX_AGE_SECONDS}" in lowered
        assert "samesite=lax" in lowered
        assert "secure" not in lowered

    def test_cookie_flags_in_production(self, client, customer_profile, test_settings):
        test_settings.ENVIRONMENT = "production"

        [header] = session_cookie_headers(login(client))
        lowered = header.lower()

        assert "secure" in lowered
        assert "samesite=none" in lowered

    def test_no_body(self, client):
        response = client.post("/api/auth/login")

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Email is required"}
        assert session_cookie_headers(response) == []

    def test_malformed_json_counts_as_empty(self, client):
        response = client.post(
            "/api/auth/login", content=b"{email: nope", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Email is required"

    def test_get_is_not_allowed(self, client):
        response = client.get("/api/auth/login")

        assert response.status_code == 405
        assert response.json()["success"] is False

    def test_wrong_password(self, client, customer_profile):
        response = login(client, password="Not-the-password-1")

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Invalid credentials"}
        assert session_cookie_headers(response) == []

    def test_persistence_down(self, unavailable_client):
        response = login(unavailable_client)

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert "debug" not in response.json()

    def test_reusing_valid_cookie_without_body(self, client, customer_profile, memory_persistence):
        session_id = session_cookie_value(login(client))

        # The client cookie jar sends the session cookie back
        response = client.post("/api/auth/login")

        assert response.status_code == 400
        assert session_cookie_headers(response) == []
        assert [row["session_id"] for row in memory_persistence.tables[SESSIONS_TABLE]] == [session_id]
        assert client.get("/api/session-check").json()["customer"]["email"] == EMAIL

    def test_relogin_rotates_session_id(self, client, customer_profile, memory_persistence):
        first = session_cookie_value(login(client))
        second = session_cookie_value(login(client))

        assert first != second
        assert [row["session_id"] for row in memory_persistence.tables[SESSIONS_TABLE]] == [second]

    def test_session_write_refused(self, client, customer_profile, memory_persistence, monkeypatch):
        async def refuse(table, values, on_conflict, insert_defaults=None):
            raise PersistenceUnavailableError("write refused")

        monkeypatch.setattr(memory_persistence, "upsert", refuse)

        response = login(client)

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Session could not be created"}
        assert session_cookie_headers(response) == []
        assert client.get("/api/session-check").status_code == 401


class TestSessionEndpoints:
    def test_session_check_anonymous(self, client):
        response = client.get("/api/session-check")

        assert response.status_code == 401
        assert response.json() == {"authenticated": False}

    def test_session_check_after_login(self, client, customer_profile):
        login(client)

        response = client.get("/api/session-check")

        assert response.status_code == 200
        body = response.json()
        assert body["authenticated"] is True
        assert body["customer"]["email"] == EMAIL

    def test_forged_cookie_is_not_authenticated(self, client):
        client.cookies.set(settings.SESSION_COOKIE_NAME, "sess_forged")

        response = client.get("/api/session-check")

        assert response.status_code == 401

    def test_logout(self, client, customer_profile, memory_persistence):
        login(client)

        response = client.post("/api/auth/logout")

        assert response.status_code == 200
        assert memory_persistence.tables[SESSIONS_TABLE] == []
        [header] = session_cookie_headers(response)
        assert "max-age=0" in header.lower()
        client.cookies.clear()
        assert client.get("/api/session-check").status_code == 401

    def test_list_sessions(self, client, customer_profile):
        login(client)

        response = client.get("/api/auth/sessions")

        assert response.status_code == 200
        [session] = response.json()["sessions"]
        assert session["current"] is True
        assert len(session["id"]) == 12

    def test_list_sessions_requires_login(self, client):
        assert client.get("/api/auth/sessions").status_code == 401


class TestOnboarding:
    def test_check_email_then_setup_password(self, client, memory_persistence):
        memory_persistence.add_row("user_profiles", **ProfileFactory.complete())

        check = client.post("/api/auth/check-email", json={"email": EMAIL})
        assert check.json()["status"] == "first_time"

        setup = client.post(
            "/api/auth/setup-password",
            json={"email": EMAIL, "password": "Imanix2024", "confirmPassword": "Imanix2024"},
        )
        assert setup.status_code == 200
        assert session_cookie_value(setup) is not None

        assert client.post("/api/auth/check-email", json={"email": EMAIL}).json()["status"] == "existing_user"
        assert client.get("/api/session-check").status_code == 200

    def test_check_email_unknown(self, client):
        response = client.post("/api/auth/check-email", json={"email": "ghost@company.cl"})

        assert response.status_code == 200
        assert response.json()["nextStep"] == "register"


class TestProfileEndpoints:
    UPDATE = {
        "first_name": "Ana María",
        "last_name": "Rojas",
        "mobile_phone": "+56987654321",
        "company_name": "Rojas Hermanos SpA",
        "company_rut": "76.123.456-7",
        "company_giro": "Ferretería",
        "company_address": "Av. Apoquindo 4500",
        "region": "Metropolitana",
        "comuna": "Las Condes",
    }

    def test_current_requires_login(self, client):
        response = client.get("/api/profile/current")

        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_current_profile(self, client, customer_profile):
        login(client)

        response = client.get("/api/profile/current")

        assert response.status_code == 200
        profile = response.json()["profile"]
        assert profile["email"] == EMAIL
        assert profile["company_rut"] == "76.123.456-7"
        assert profile["profile_completed"] is True
        assert "password_hash" not in profile

    def test_update_requires_login(self, client, customer_profile):
        response = client.post("/api/profile/update", json=self.UPDATE)

        assert response.status_code == 401

    def test_update_saves_profile_and_session(self, client, memory_persistence, password_hash):
        memory_persistence.add_row("user_profiles", **ProfileFactory.bare(EMAIL, password_hash=password_hash))
        assert login(client).json()["profileCompleted"] is False

        response = client.post("/api/profile/update", json=self.UPDATE)

        assert response.status_code == 200
        assert response.json()["profileCompleted"] is True
        [row] = memory_persistence.tables["user_profiles"]
        assert row["comuna"] == "Las Condes"
        assert row["profile_completed"] is True

        customer = client.get("/api/session-check").json()["customer"]
        assert customer["firstName"] == "Ana María"
        assert customer["company"] == "Rojas Hermanos SpA"
        assert customer["isAuthenticated"] is True

    def test_update_lists_missing_fields(self, client, customer_profile, memory_persistence):
        login(client)
        body = {**self.UPDATE, "company_rut": "  ", "comuna": None}

        response = client.post("/api/profile/update", json=body)

        assert response.status_code == 400
        assert response.json()["message"] == "The following fields are required: Company RUT, Comuna"
        assert memory_persistence.tables["user_profiles"][0]["comuna"] == "Providencia"

    def test_update_ignores_unknown_fields(self, client, customer_profile, memory_persistence):
        login(client)

        response = client.post(
            "/api/profile/update", json={**self.UPDATE, "password_hash": "x", "email": "other@company.cl"}
        )

        assert response.status_code == 200
        [row] = memory_persistence.tables["user_profiles"]
        assert row["email"] == EMAIL
        assert row["password_hash"] == customer_profile["password_hash"]
