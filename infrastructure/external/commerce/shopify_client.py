"""
Shopify Admin GraphQL client.

All calls go to ``https://{shop}/admin/api/{version}/graphql.json`` with the
``X-Shopify-Access-Token`` header. Shop and token are checked on first use so
the service can boot without commerce credentials.
"""
from __future__ import annotations

import json
from typing import Any, Optional

import httpx

from application.dtos.payments import CreatedOrder, PaidOrderRequest
from core.logging_config import get_logger
from core.settings import payment_settings
from infrastructure.external.api_clients.base import APIError, BaseAPIClient, TransportError
from infrastructure.external.commerce.exceptions import (
    CommerceConfigurationError,
    CommerceError,
    CommerceUserError,
)

logger = get_logger(__name__)

ORDER_GID_PREFIX = "gid://shopify/Order/"

DEFAULT_PROVINCE = "Metro Manila"
DEFAULT_COUNTRY_CODE = "PH"

ORDER_CREATE = """
mutation orderCreate($order: OrderCreateOrderInput!) {
  orderCreate(order: $order) {
    userErrors { field message }
    order { id name }
  }
}
"""

ORDERS_BY_QUERY = """
query($query: String!, $first: Int!) {
  orders(first: $first, query: $query, sortKey: CREATED_AT, reverse: true) {
    edges {
      node {
        id
        name
        createdAt
        totalPriceSet { shopMoney { amount currencyCode } }
        tags
        note
        customAttributes { key value }
        lineItems(first: 5) { edges { node { title quantity } } }
      }
    }
  }
}
"""

TAGS_ADD = """
mutation tagsAdd($id: ID!, $tags: [String!]!) {
  tagsAdd(id: $id, tags: $tags) {
    node { ... on Order { id tags } }
    userErrors { field message }
  }
}
"""

TAGS_REMOVE = """
mutation tagsRemove($id: ID!, $tags: [String!]!) {
  tagsRemove(id: $id, tags: $tags) {
    node { ... on Order { id tags } }
    userErrors { field message }
  }
}
"""

ORDER_UPDATE = """
mutation orderUpdate($input: OrderInput!) {
  orderUpdate(input: $input) {
    order { id note }
    userErrors { field message }
  }
}
"""

CUSTOMER_BY_QUERY = """
query($query: String!, $namespace: String!, $key: String!) {
  customers(first: 1, query: $query) {
    edges {
      node {
        id
        email
        metafield(namespace: $namespace, key: $key) { value }
      }
    }
  }
}
"""

CUSTOMER_CREATE = """
mutation customerCreate($input: CustomerInput!) {
  customerCreate(input: $input) {
    customer { id email }
    userErrors { field message }
  }
}
"""

METAFIELDS_SET = """
mutation metafieldsSet($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { key namespace value }
    userErrors { field message }
  }
}
"""


def to_order_gid(order_id: str) -> str:
    """Numeric order ids become ``gid://shopify/Order/{id}``; gids pass through."""
    if order_id.startswith("gid://"):
        return order_id
    return f"{ORDER_GID_PREFIX}{order_id}"


def map_mailing_address(address: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Storefront address -> ``MailingAddressInput``."""
    if not address:
        return None
    country = address.get("country")
    return {
        "firstName": address.get("firstName") or "",
        "lastName": address.get("lastName") or "",
        "address1": address.get("address1") or "",
        "address2": address.get("address2") or "",
        "city": address.get("city") or "",
        "provinceCode": address.get("province") or address.get("provinceCode") or DEFAULT_PROVINCE,
        "zip": address.get("zip") or "",
        "countryCode": "PH" if country == "PH" else (address.get("countryCode") or DEFAULT_COUNTRY_CODE),
        "phone": address.get("phone") or "",
    }


class ShopifyClient(BaseAPIClient):

    def __init__(
        self,
        *,
        shop: Optional[str] = None,
        access_token: Optional[str] = None,
        api_version: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        t = payment_settings.timeouts
        super().__init__(
            base_url="",
            timeout=httpx.Timeout(connect=t.connect, read=t.read, write=t.write, timeout=t.total),
            max_retries=payment_settings.retry.max,
            retry_delay=payment_settings.retry.base_backoff,
            transport=transport,
        )
        self._shop = shop if shop is not None else payment_settings.shop_domain
        self._access_token = access_token if access_token is not None else payment_settings.shop_access_token
        self._api_version = api_version or payment_settings.shopify.api_version

    @property
    def endpoint(self) -> str:
        if not self._shop or not self._access_token:
            raise CommerceConfigurationError("Missing SHOPIFY_SHOP or SHOPIFY_ADMIN_ACCESS_TOKEN")
        return f"https://{self._shop}/admin/api/{self._api_version}/graphql.json"

    def _auth_headers(self) -> dict[str, str]:
        return {"X-Shopify-Access-Token": self._access_token or ""}

    async def aclose(self) -> None:
        await self.close()

    async def _graphql(self, query: str, variables: dict[str, Any], *, retry: bool) -> dict[str, Any]:
        endpoint = self.endpoint
        try:
            response = await self.post(
                endpoint,
                json_data={"query": query, "variables": variables},
                retry=retry,
            )
        except TransportError as exc:
            raise CommerceError(exc.message) from exc
        except APIError as exc:
            raise CommerceError(exc.message, status_code=exc.status_code) from exc

        body = response.data
        if not isinstance(body, dict):
            raise CommerceError("Invalid JSON from Shopify", status_code=response.status_code)
        if body.get("errors"):
            raise CommerceError(
                f"Shopify GraphQL errors: {json.dumps(body['errors'], default=str)}",
                status_code=response.status_code,
                errors=body["errors"],
            )
        return body.get("data") or {}

    @staticmethod
    def _payload(data: dict[str, Any], operation: str) -> dict[str, Any]:
        return data.get(operation) or {}

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def create_paid_order(self, req: PaidOrderRequest) -> CreatedOrder:
        address = map_mailing_address(req.shipping_address)
        variables = {
            "order": {
                "currency": req.currency,
                "email": req.email,
                "lineItems": req.line_items,
                # 交易记录将订单标记为已支付
                "transactions": [{
                    "kind": "SALE",
                    "status": "SUCCESS",
                    "amountSet": {"shopMoney": {"amount": req.amount, "currencyCode": req.currency}},
                }],
                "note": req.note,
                "tags": req.tags,
                "shippingAddress": address,
                "billingAddress": address,
            }
        }
        # 非幂等：不重试，避免重复建单
        data = await self._graphql(ORDER_CREATE, variables, retry=False)
        payload = self._payload(data, "orderCreate")
        user_errors = payload.get("userErrors") or []
        if user_errors:
            raise CommerceUserError("orderCreate", user_errors)
        order = payload.get("order") or {}
        if not order.get("id"):
            raise CommerceError("Shopify orderCreate returned no order")
        logger.info("shopify_order_created", order_id=order["id"], order_name=order.get("name"))
        return CreatedOrder(id=order["id"], name=order.get("name"))

    async def find_orders_by_email(self, email: str, first: int = 50) -> list[dict[str, Any]]:
        data = await self._graphql(ORDERS_BY_QUERY, {"query": f"email:{email}", "first": first}, retry=True)
        edges = (data.get("orders") or {}).get("edges") or []
        return [edge["node"] for edge in edges if edge.get("node")]

    async def add_order_tags(self, order_id: str, tags: list[str]) -> None:
        data = await self._graphql(TAGS_ADD, {"id": to_order_gid(order_id), "tags": tags}, retry=True)
        user_errors = self._payload(data, "tagsAdd").get("userErrors") or []
        if user_errors:
            raise CommerceUserError("tagsAdd", user_errors)

    async def remove_order_tags(self, order_id: str, tags: list[str]) -> None:
        data = await self._graphql(TAGS_REMOVE, {"id": to_order_gid(order_id), "tags": tags}, retry=True)
        user_errors = self._payload(data, "tagsRemove").get("userErrors") or []
        if user_errors:
            # 移除不存在的标签不影响后续流程
            logger.warning("shopify_tags_remove_rejected", order_id=order_id, tags=tags, user_errors=user_errors)

    async def update_order_note(self, order_id: str, note: str) -> None:
        variables = {"input": {"id": to_order_gid(order_id), "note": note}}
        data = await self._graphql(ORDER_UPDATE, variables, retry=True)
        user_errors = self._payload(data, "orderUpdate").get("userErrors") or []
        if user_errors:
            raise CommerceUserError("orderUpdate", user_errors)

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    async def find_customer(
        self,
        email: str,
        *,
        metafield_namespace: Optional[str] = None,
        metafield_key: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        """Customer node with the profile metafield (``metafield.value`` may be null)."""
        variables = {
            "query": f"email:{email}",
            "namespace": metafield_namespace or payment_settings.dog_profiles.metafield_namespace,
            "key": metafield_key or payment_settings.dog_profiles.metafield_key,
        }
        data = await self._graphql(CUSTOMER_BY_QUERY, variables, retry=True)
        edges = (data.get("customers") or {}).get("edges") or []
        return edges[0]["node"] if edges else None

    async def create_customer(self, email: str, tags: list[str]) -> Optional[dict[str, Any]]:
        data = await self._graphql(CUSTOMER_CREATE, {"input": {"email": email, "tags": tags}}, retry=False)
        payload = self._payload(data, "customerCreate")
        user_errors = payload.get("userErrors") or []
        if user_errors:
            raise CommerceUserError("customerCreate", user_errors)
        return payload.get("customer")

    async def set_customer_metafield(self, customer_id: str, namespace: str, key: str, value: Any) -> bool:
        variables = {
            "metafields": [{
                "ownerId": customer_id,
                "namespace": namespace,
                "key": key,
                "type": "json",
                "value": json.dumps(value, default=str),
            }]
        }
        data = await self._graphql(METAFIELDS_SET, variables, retry=True)
        user_errors = self._payload(data, "metafieldsSet").get("userErrors") or []
        if user_errors:
            logger.warning("shopify_metafield_rejected", customer_id=customer_id, user_errors=user_errors)
            return False
        return True
