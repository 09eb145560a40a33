"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os

os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PAYMENTS__PAYMONGO__WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("PAYMENTS__PAYMONGO__SECRET_KEY", "sk_test_123")
os.environ.setdefault("PAYMENTS__SHOPIFY__SHOP", "mcduffy-test.myshopify.com")
os.environ.setdefault("PAYMENTS__SHOPIFY__ACCESS_TOKEN", "shpat_test")

import asyncio  # noqa: E402
import json  # noqa: E402
from typing import Any, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from application.dtos.payments import CreatedOrder, CustomerSpec, PaidOrderRequest, PlanSpec  # noqa: E402
from infrastructure.database import build_engine, build_session_factory, create_tables  # noqa: E402
from infrastructure.locks import InProcessKeyedLock  # noqa: E402
from infrastructure.unit_of_work import make_uow_factory  # noqa: E402


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'bridge.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def uow_factory(engine):
    return make_uow_factory(build_session_factory(engine))


@pytest.fixture
def lock():
    return InProcessKeyedLock(blocking_timeout=5)


class FakeCommerce:
    """In-memory CommercePlatform recording every call."""

    def __init__(self) -> None:
        self.created: list[PaidOrderRequest] = []
        self.create_delay = 0.0
        self.create_error: Optional[Exception] = None
        self.orders: list[dict[str, Any]] = []
        self.tag_calls: list[tuple[str, str, list[str]]] = []
        self.notes: list[tuple[str, str]] = []
        self.customers: dict[str, dict[str, Any]] = {}
        self.metafield_writes: list[tuple[str, str, str, Any]] = []

    async def create_paid_order(self, req: PaidOrderRequest) -> CreatedOrder:
        if self.create_delay:
            await asyncio.sleep(self.create_delay)
        if self.create_error is not None:
            raise self.create_error
        self.created.append(req)
        n = len(self.created)
        return CreatedOrder(id=f"gid://shopify/Order/{1000 + n}", name=f"#{1000 + n}")

    async def find_orders_by_email(self, email: str, first: int = 50) -> list[dict[str, Any]]:
        return list(self.orders)

    async def add_order_tags(self, order_id: str, tags: list[str]) -> None:
        self.tag_calls.append(("add", order_id, tags))

    async def remove_order_tags(self, order_id: str, tags: list[str]) -> None:
        self.tag_calls.append(("remove", order_id, tags))

    async def update_order_note(self, order_id: str, note: str) -> None:
        self.notes.append((order_id, note))

    async def find_customer(self, email: str, **kwargs) -> Optional[dict[str, Any]]:
        return self.customers.get(email)

    async def create_customer(self, email: str, tags: list[str]) -> Optional[dict[str, Any]]:
        customer = {"id": f"gid://shopify/Customer/{len(self.customers) + 1}", "email": email, "tags": tags, "metafield": None}
        self.customers[email] = customer
        return customer

    async def set_customer_metafield(self, customer_id: str, namespace: str, key: str, value: Any) -> bool:
        self.metafield_writes.append((customer_id, namespace, key, value))
        for customer in self.customers.values():
            if customer["id"] == customer_id:
                customer["metafield"] = {"value": json.dumps(value)}
        return True


class FakeProcessor:
    """In-memory PaymentProcessor with scriptable responses."""

    def __init__(self) -> None:
        self.plans: list[PlanSpec] = []
        self.customers: list[CustomerSpec] = []
        self.subscription: dict[str, Any] = {
            "id": "sub_1",
            "data": {
                "id": "sub_1",
                "attributes": {
                    "latest_invoice": {
                        "payment_intent": {"id": "pi_1", "attributes": {"client_key": "pi_1_client_abc"}}
                    }
                },
            },
        }
        self.intents: dict[str, dict[str, Any]] = {}
        self.errors: dict[str, Exception] = {}
        self.cancelled: list[tuple[str, str]] = []

    def _maybe_fail(self, op: str) -> None:
        if op in self.errors:
            raise self.errors[op]

    async def create_plan(self, plan: PlanSpec) -> str:
        self._maybe_fail("plan")
        self.plans.append(plan)
        return "plan_1"

    async def create_customer(self, customer: CustomerSpec) -> str:
        self._maybe_fail("customer")
        self.customers.append(customer)
        return "cus_1"

    async def create_subscription(self, customer_id: str, plan_id: str) -> dict[str, Any]:
        self._maybe_fail("subscription")
        return self.subscription

    async def get_payment_intent(self, payment_intent_id: str) -> dict[str, Any]:
        self._maybe_fail("payment_intent")
        return self.intents.get(payment_intent_id) or {"id": payment_intent_id, "attributes": {"status": "succeeded"}}

    async def cancel_subscription(self, subscription_id: str, reason: str = "other") -> dict[str, Any]:
        self._maybe_fail("cancel")
        self.cancelled.append((subscription_id, reason))
        return {"id": subscription_id, "attributes": {"status": "cancelled"}}


@pytest.fixture
def commerce():
    return FakeCommerce()


@pytest.fixture
def processor():
    return FakeProcessor()