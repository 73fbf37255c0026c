#!/usr/bin/env python3
"""
Download every product carrying the B2B tag into a JSON snapshot.

The storefront reads the snapshot instead of querying the Admin API on each
page view.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from b2b_portal.core.config import settings
from b2b_portal.core.utils.logging_config import setup_logging
from b2b_portal.services.catalog_sync import CatalogClient, CatalogSyncError, write_snapshot

logger = logging.getLogger("b2b_portal.catalog_sync")


async def sync_products(client: CatalogClient, tag: str, output: Path) -> int:
    products = await client.fetch_tagged_products(tag)
    write_snapshot(products, output)
    logger.info("Catalog snapshot written", extra={"products": len(products), "path": str(output)})
    return len(products)


def main(argv: Optional[List[str]] = None, client: Optional[CatalogClient] = None) -> int:
    parser = argparse.ArgumentParser(description="Sync tagged Shopify products to a JSON file")
    parser.add_argument("--tag", default=settings.CATALOG_PRODUCT_TAG, help="Product tag to export")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path(settings.CATALOG_SNAPSHOT_PATH),
        help="Snapshot file to write",
    )
    args = parser.parse_args(argv)

    setup_logging(log_level="INFO", enable_json=not settings.DEV_MODE)

    if client is None:
        if not settings.shopify_configured:
            logger.error("SHOPIFY_STORE_DOMAIN and SHOPIFY_ADMIN_API_TOKEN must be set")
            return 2
        client = CatalogClient(
            settings.SHOPIFY_STORE_DOMAIN,
            settings.SHOPIFY_ADMIN_API_TOKEN,
            api_version=settings.SHOPIFY_CATALOG_API_VERSION,
        )

    try:
        count = asyncio.run(sync_products(client, args.tag, args.output))
    except CatalogSyncError as e:
        logger.error(f"Catalog sync failed: {e}")
        return 1

    print(f"✅ {count} products written to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
