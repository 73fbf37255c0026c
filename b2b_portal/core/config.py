"""
Application configuration using Pydantic Settings.

Configuration values can be set via environment variables or .env file.
"""

import json
from typing import List, Optional, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    APP_NAME: str = "Imanix B2B Portal"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    DEV_MODE: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # Relational store holding user_profiles and user_sessions
    DATABASE_URL: str = "sqlite:///./data/b2b_portal.db"

    # Session cookie
    SESSION_COOKIE_NAME: str = "imanix.b2b.session"
    SESSION_MAX_AGE_SECONDS: int = 24 * 60 * 60

    # Password hashing cost for newly created hashes
    BCRYPT_ROUNDS: int = 12

    # Shopify Admin API
    SHOPIFY_STORE_DOMAIN: Optional[str] = None
    SHOPIFY_ADMIN_API_TOKEN: Optional[str] = None
    SHOPIFY_API_VERSION: str = "2024-01"
    SHOPIFY_CATALOG_API_VERSION: str = "2024-04"
    ENRICHMENT_TIMEOUT_SECONDS: float = 5.0

    # Catalog snapshot produced by scripts/sync_products.py
    CATALOG_PRODUCT_TAG: str = "b2b"
    CATALOG_SNAPSHOT_PATH: str = "b2b-products.json"

    CORS_ORIGINS: Union[List[str], str] = ["http://localhost:3000"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, value: Union[List[str], str]) -> List[str]:
        """Accept a JSON list or a comma-separated string."""
        if isinstance(value, str):
            value = value.strip()
            if value.startswith("["):
                return json.loads(value)
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def shopify_configured(self) -> bool:
        return bool(self.SHOPIFY_STORE_DOMAIN and self.SHOPIFY_ADMIN_API_TOKEN)


# Global settings instance
settings = Settings()
