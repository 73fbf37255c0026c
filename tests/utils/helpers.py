"""
Test helper functions for common testing operations

These helpers provide utilities for response validation and common testing
patterns across the test suite.
"""

from typing import Any, Dict, Optional, Union

from b2b_portal.core.config import settings


def assert_response_structure(response_data: Dict[str, Any], expected_keys: list[str], optional_keys: Optional[list[str]] = None):
    """Assert that response has expected structure"""
    optional_keys = optional_keys or []

    for key in expected_keys:
        assert key in response_data, f"Required key '{key}' missing from response"

    allowed_keys = set(expected_keys + optional_keys)
    unexpected_keys = set(response_data.keys()) - allowed_keys
    assert not unexpected_keys, f"Unexpected keys in response: {unexpected_keys}"


def assert_no_sensitive_data_in_logs(caplog, sensitive_patterns: list[str]):
    """Assert that sensitive data patterns don't appear in logs"""
    all_logs = " ".join([record.getMessage() for record in caplog.records])

    for pattern in sensitive_patterns:
        assert pattern not in all_logs, f"Sensitive pattern '{pattern}' found in logs"


def assert_no_sensitive_data_in_response(response_data: Union[Dict, str], sensitive_patterns: list[str]):
    """Assert that sensitive data patterns don't appear in API responses"""
    response_text = str(response_data)

    for pattern in sensitive_patterns:
        assert pattern not in response_text, f"Sensitive pattern '{pattern}' found in response"


def session_cookie_headers(response) -> list[str]:
    """All Set-Cookie headers for the portal session cookie"""
    return [
        header
        for header in response.headers.get_list("set-cookie")
        if header.startswith(f"{settings.SESSION_COOKIE_NAME}=")
    ]


def session_cookie_value(response) -> Optional[str]:
    headers = session_cookie_headers(response)
    if not headers:
        return None
    return headers[0].split(";", 1)[0].split("=", 1)[1]
