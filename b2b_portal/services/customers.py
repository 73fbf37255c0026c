"""Shopify customer lookup used to enrich the session after login."""

import logging
from typing import Any, Dict, List, Optional, Union

import httpx

from b2b_portal.core.exceptions import EnrichmentWarning

logger = logging.getLogger(__name__)


def parse_tags(tags: Union[str, List[str], None]) -> List[str]:
    """Shopify returns customer tags as one comma-separated string."""
    if not tags:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")
    return [tag.strip() for tag in tags if tag and tag.strip()]


class CustomerDirectory:
    """Read-only client for the Admin REST customer search endpoint.

    Example usage:
        directory = CustomerDirectory("shop.myshopify.com", token)
        customer = await directory.find_customer_by_email("buyer@company.cl")
    """

    def __init__(
        self,
        store_domain: str,
        access_token: str,
        api_version: str = "2024-01",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = f"https://{store_domain}/admin/api/{api_version}"
        self.access_token = access_token
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "X-Shopify-Access-Token": self.access_token,
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
            transport=self._transport,
        )

    async def find_customer_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Return the first customer matching ``email``, or None.

        Raises:
            EnrichmentWarning: If the API call fails or returns garbage
        """
        try:
            async with self._client() as client:
                response = await client.get(
                    "/customers/search.json", params={"query": f"email:{email}"}
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise EnrichmentWarning(f"Shopify API error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise EnrichmentWarning(f"Shopify API request failed: {e}") from e
        except ValueError as e:
            raise EnrichmentWarning(f"Shopify API returned invalid JSON: {e}") from e

        customers = data.get("customers") if isinstance(data, dict) else None
        if not customers:
            return None
        return customers[0]
