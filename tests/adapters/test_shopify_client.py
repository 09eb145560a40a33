import json

import httpx
import pytest

from application.dtos.payments import PaidOrderRequest
from infrastructure.external.commerce.exceptions import (
    CommerceConfigurationError,
    CommerceError,
    CommerceUserError,
)
from infrastructure.external.commerce.shopify_client import (
    ShopifyClient,
    map_mailing_address,
    to_order_gid,
)


def _client(handler, **kwargs):
    kwargs.setdefault("shop", "mcduffy-test.myshopify.com")
    kwargs.setdefault("access_token", "shpat_test")
    return ShopifyClient(api_version="2025-10", transport=httpx.MockTransport(handler), **kwargs)


ORDER = PaidOrderRequest(
    currency="PHP",
    email="owner@example.com",
    line_items=[{"title": "McDuffy Fresh", "quantity": 1}],
    amount="1500.00",
    note="n | PayMongo payment: pay_1",
    tags=["subscription", "PayMongo"],
    shipping_address={"firstName": "Ana", "city": "Makati", "country": "PH"},
)


@pytest.mark.asyncio
async def test_create_paid_order_posts_sale_transaction():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["token"] = request.headers["X-Shopify-Access-Token"]
        seen["variables"] = json.loads(request.content)["variables"]
        return httpx.Response(200, json={"data": {"orderCreate": {"userErrors": [], "order": {"id": "gid://shopify/Order/1", "name": "#1001"}}}})

    client = _client(handler)
    order = await client.create_paid_order(ORDER)

    assert order.id == "gid://shopify/Order/1"
    assert order.name == "#1001"
    assert seen["url"] == "https://mcduffy-test.myshopify.com/admin/api/2025-10/graphql.json"
    assert seen["token"] == "shpat_test"
    payload = seen["variables"]["order"]
    assert payload["transactions"][0]["kind"] == "SALE"
    assert payload["transactions"][0]["amountSet"]["shopMoney"] == {"amount": "1500.00", "currencyCode": "PHP"}
    assert payload["shippingAddress"]["provinceCode"] == "Metro Manila"
    assert payload["billingAddress"] == payload["shippingAddress"]


@pytest.mark.asyncio
async def test_order_user_errors_raise_without_retry():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"data": {"orderCreate": {"userErrors": [{"field": ["email"], "message": "Email is invalid"}], "order": None}}})

    client = _client(handler)
    with pytest.raises(CommerceUserError) as excinfo:
        await client.create_paid_order(ORDER)
    assert "Email is invalid" in excinfo.value.message
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_order_create_not_retried_on_server_error():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(502, json={"errors": "bad gateway"})

    client = _client(handler)
    with pytest.raises(CommerceError):
        await client.create_paid_order(ORDER)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_top_level_graphql_errors():
    client = _client(lambda request: httpx.Response(200, json={"errors": [{"message": "Throttled"}]}))
    with pytest.raises(CommerceError) as excinfo:
        await client.find_orders_by_email("owner@example.com")
    assert excinfo.value.errors == [{"message": "Throttled"}]


@pytest.mark.asyncio
async def test_find_customer_and_metafield_write():
    requests = []

    def handler(request):
        body = json.loads(request.content)
        requests.append(body)
        if "customers(" in body["query"]:
            return httpx.Response(200, json={"data": {"customers": {"edges": [{"node": {"id": "gid://shopify/Customer/9", "email": "owner@example.com", "metafield": {"value": "{\"dog_name\": \"Biscuit\"}"}}}]}}})
        return httpx.Response(200, json={"data": {"metafieldsSet": {"userErrors": [], "metafields": []}}})

    client = _client(handler)
    customer = await client.find_customer("owner@example.com", metafield_namespace="mcduffy", metafield_key="dog_profile")
    ok = await client.set_customer_metafield(customer["id"], "mcduffy", "dog_profile", {"dog_name": "Biscuit"})

    assert customer["metafield"]["value"] == "{\"dog_name\": \"Biscuit\"}"
    assert requests[0]["variables"]["query"] == "email:owner@example.com"
    metafield = requests[1]["variables"]["metafields"][0]
    assert metafield["type"] == "json"
    assert json.loads(metafield["value"]) == {"dog_name": "Biscuit"}
    assert ok is True


@pytest.mark.asyncio
async def test_tags_use_order_gid():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content)["variables"])
        return httpx.Response(200, json={"data": {"tagsAdd": {"userErrors": []}}})

    client = _client(handler)
    await client.add_order_tags("123", ["paused"])
    assert seen[0] == {"id": "gid://shopify/Order/123", "tags": ["paused"]}


@pytest.mark.asyncio
async def test_missing_credentials():
    client = _client(lambda request: httpx.Response(200, json={}), shop="")
    with pytest.raises(CommerceConfigurationError):
        await client.find_orders_by_email("owner@example.com")


def test_address_and_gid_helpers():
    assert to_order_gid("gid://shopify/Order/5") == "gid://shopify/Order/5"
    assert to_order_gid("5") == "gid://shopify/Order/5"
    assert map_mailing_address(None) is None
    mapped = map_mailing_address({"province": "Cebu", "countryCode": "US"})
    assert mapped["provinceCode"] == "Cebu"
    assert mapped["countryCode"] == "US"
    assert mapped["address1"] == ""
