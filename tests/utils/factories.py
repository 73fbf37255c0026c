"""
Test data factories for consistent test data generation

These factories create realistic profile and session data for the B2B portal
tests.
"""

from datetime import timedelta
from typing import Any, Dict

from b2b_portal.core.utils.session_store import utc_now

TEST_PASSWORD = "Ferreteria2024"


class ProfileFactory:
    """Factory for ``user_profiles`` rows"""

    @staticmethod
    def complete(email: str = "buyer@company.cl", **overrides: Any) -> Dict[str, Any]:
        """A profile with every required field filled in"""
        profile = {
            "email": email,
            "password_hash": None,
            "first_name": "Ana",
            "last_name": "Rojas",
            "mobile_phone": "+56912345678",
            "company_name": "Ferretería Rojas SpA",
            "company_rut": "76.123.456-7",
            "company_giro": "Venta al por mayor",
            "company_address": "Av. Providencia 1234",
            "region": "Metropolitana",
            "comuna": "Providencia",
            "profile_completed": True,
            "created_at": utc_now(),
            "updated_at": utc_now(),
        }
        profile.update(overrides)
        return profile

    @staticmethod
    def bare(email: str = "new@company.cl", **overrides: Any) -> Dict[str, Any]:
        """A provisioned profile with nothing but the email"""
        profile = {
            "email": email,
            "password_hash": None,
            "profile_completed": False,
            "created_at": utc_now(),
            "updated_at": utc_now(),
        }
        profile.update(overrides)
        return profile


class ShopifyFactory:
    """Factory for Shopify Admin API payloads"""

    @staticmethod
    def customer(email: str = "buyer@company.cl", **overrides: Any) -> Dict[str, Any]:
        customer = {
            "id": 7012345678901,
            "email": email,
            "first_name": "Ana",
            "last_name": "Rojas",
            "tags": "b2b, ima20, mayorista",
            "default_address": {"company": "Ferretería Rojas SpA"},
        }
        customer.update(overrides)
        return customer

    @staticmethod
    def product(index: int, tag: str = "b2b") -> Dict[str, Any]:
        return {
            "id": f"gid://shopify/Product/{index}",
            "title": f"Product {index}",
            "handle": f"product-{index}",
            "tags": [tag],
            "totalInventory": 10 * index,
            "images": {"edges": []},
            "variants": {"edges": []},
        }


def expired(hours: int = 1):
    """A timestamp in the past"""
    return utc_now() - timedelta(hours=hours)
