"""Pull tagged products from the Shopify Admin GraphQL API into a JSON snapshot.

Example usage:
    client = CatalogClient("shop.myshopify.com", token)
    products = await client.fetch_tagged_products("b2b")
    write_snapshot(products, Path("b2b-products.json"))
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

PAGE_SIZE = 50

PRODUCTS_BY_TAG_QUERY = """
query getProductsByTag($cursor: String, $query: String!, $pageSize: Int!) {
  products(first: $pageSize, after: $cursor, query: $query) {
    pageInfo {
      hasNextPage
      endCursor
    }
    edges {
      node {
        id
        title
        handle
        tags
        totalInventory
        images(first: 5) {
          edges {
            node {
              id
              url
              altText
              width
              height
            }
          }
        }
        variants(first: 10) {
          edges {
            node {
              id
              title
              sku
              price
              inventoryQuantity
              image {
                url
                altText
              }
            }
          }
        }
      }
    }
  }
}
"""


class CatalogSyncError(Exception):
    """The catalog could not be fetched completely."""


class CatalogClient:
    def __init__(
        self,
        store_domain: str,
        access_token: str,
        api_version: str = "2024-04",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.graphql_url = f"https://{store_domain}/admin/api/{api_version}/graphql.json"
        self.access_token = access_token
        self.timeout = timeout
        self._transport = transport

    async def _fetch_page(
        self, client: httpx.AsyncClient, tag: str, cursor: Optional[str]
    ) -> Dict[str, Any]:
        try:
            response = await client.post(
                self.graphql_url,
                json={
                    "query": PRODUCTS_BY_TAG_QUERY,
                    "variables": {"cursor": cursor, "query": f"tag:{tag}", "pageSize": PAGE_SIZE},
                },
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise CatalogSyncError(
                f"GraphQL request failed with status {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise CatalogSyncError(f"GraphQL request failed: {e}") from e
        except ValueError as e:
            raise CatalogSyncError(f"GraphQL response is not JSON: {e}") from e

        if body.get("errors"):
            raise CatalogSyncError(f"GraphQL errors: {json.dumps(body['errors'])}")
        try:
            return body["data"]["products"]
        except (KeyError, TypeError) as e:
            raise CatalogSyncError("GraphQL response has no products connection") from e

    async def fetch_tagged_products(self, tag: str) -> List[Dict[str, Any]]:
        """Walk every page of products carrying ``tag``."""
        products: List[Dict[str, Any]] = []
        cursor: Optional[str] = None
        has_next_page = True

        async with httpx.AsyncClient(
            headers={
                "X-Shopify-Access-Token": self.access_token,
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            while has_next_page:
                connection = await self._fetch_page(client, tag, cursor)
                products.extend(edge["node"] for edge in connection.get("edges", []))

                page_info = connection.get("pageInfo") or {}
                has_next_page = bool(page_info.get("hasNextPage"))
                cursor = page_info.get("endCursor")
                if has_next_page and not cursor:
                    raise CatalogSyncError("API reported another page without an end cursor")

                logger.info("Catalog page processed", extra={"products_so_far": len(products)})

        return products


def write_snapshot(products: List[Dict[str, Any]], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(products, indent=2, ensure_ascii=False), encoding="utf-8")
