"""
Unit tests for the Shopify customer lookup
"""

import httpx
import pytest

from b2b_portal.core.exceptions import EnrichmentWarning
from b2b_portal.services.customers import CustomerDirectory, parse_tags
from tests.utils.factories import ShopifyFactory

pytestmark = pytest.mark.unit


def directory_with(handler) -> CustomerDirectory:
    return CustomerDirectory(
        "imanix-test.myshopify.com", "shpat_test", transport=httpx.MockTransport(handler)
    )


class TestParseTags:
    def test_comma_separated_string(self):
        assert parse_tags("b2b, ima20 ,mayorista") == ["b2b", "ima20", "mayorista"]

    def test_empty_values(self):
        assert parse_tags(None) == []
        assert parse_tags("") == []
        assert parse_tags(" , ") == []

    def test_list_is_normalized(self):
        assert parse_tags(["b2b ", "", "vip"]) == ["b2b", "vip"]


class TestFindCustomerByEmail:
    async def test_request_shape_and_first_match(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = request.url
            seen["token"] = request.headers.get("X-Shopify-Access-Token")
            return httpx.Response(200, json={"customers": [ShopifyFactory.customer(), ShopifyFactory.customer(id=2)]})

        customer = await directory_with(handler).find_customer_by_email("buyer@company.cl")

        assert customer["id"] == 7012345678901
        assert seen["url"].path == "/admin/api/2024-01/customers/search.json"
        assert seen["url"].params["query"] == "email:buyer@company.cl"
        assert seen["token"] == "shpat_test"

    async def test_no_match(self):
        customer = await directory_with(
            lambda request: httpx.Response(200, json={"customers": []})
        ).find_customer_by_email("nobody@company.cl")

        assert customer is None

    async def test_http_error_becomes_warning(self):
        directory = directory_with(lambda request: httpx.Response(401, json={"errors": "Invalid API key"}))

        with pytest.raises(EnrichmentWarning, match="401"):
            await directory.find_customer_by_email("buyer@company.cl")

    async def test_transport_error_becomes_warning(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(EnrichmentWarning):
            await directory_with(handler).find_customer_by_email("buyer@company.cl")

    async def test_invalid_json_becomes_warning(self):
        directory = directory_with(lambda request: httpx.Response(200, content=b"<html>"))

        with pytest.raises(EnrichmentWarning):
            await directory.find_customer_by_email("buyer@company.cl")
