"""HTTP surface tests: services are replaced through dependency overrides."""
import httpx
import pytest
from fastapi.testclient import TestClient

from api import dependencies
from application.dtos.payments import (
    CreateOrderResult,
    DogProfile,
    SubscribeResult,
    SubscriptionActionResult,
    SubscriptionView,
    WebhookAck,
    WebhookOutcome,
)
from application.services.webhook_reconciler import WebhookReconciler
from domain.common.exceptions import (
    BlueprintNotFoundException,
    DogProfileNotFoundException,
    SubscriptionStepFailedException,
)
from domain.fulfillment.entity import OrderBlueprint
from core.exceptions import business_code_to_http_status
from main import app
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode
from tests.helpers import WEBHOOK_SECRET, paid_event, signed


class StubReconciler:
    def __init__(self, ack: WebhookAck):
        self.ack = ack
        self.calls = []

    async def handle(self, raw_body, signature_header):
        self.calls.append((raw_body, signature_header))
        return self.ack


class StubSubscriptions:
    def __init__(self):
        self.actions = []

    async def subscribe(self, req):
        if req.customer.email == "broken@example.com":
            raise SubscriptionStepFailedException("plan", "Amount is too low (data.attributes.amount)")
        return SubscribeResult(subscription_id="sub_1", payment_intent_id="pi_1", client_key="pi_1_client")

    async def create_order_for_intent(self, payment_intent_id):
        if payment_intent_id == "pi_missing":
            raise BlueprintNotFoundException(payment_intent_id)
        return CreateOrderResult(order_id="gid://shopify/Order/1", order_name="#1001", message="Order created successfully")

    async def list_subscriptions(self, email):
        return [SubscriptionView(id="1", order_id="1", plan_name="Full Plan", amount=150000, currency="PHP")]

    async def _action(self, name, order_id, req):
        self.actions.append((name, order_id, req))
        return SubscriptionActionResult(status=name, message=f"{name} ok")

    async def pause(self, order_id, req):
        return await self._action("paused", order_id, req)

    async def resume(self, order_id, req):
        return await self._action("active", order_id, req)

    async def skip(self, order_id, req):
        return await self._action("skipped", order_id, req)

    async def cancel(self, order_id, req):
        result = await self._action("cancelled", order_id, req)
        result.processor_cancelled = bool(req.paymongo_subscription_id)
        return result


class StubProfiles:
    def __init__(self):
        self.saved = []

    async def get(self, email):
        if email != "owner@example.com":
            raise DogProfileNotFoundException(email)
        return DogProfile(email=email, dog_name="Biscuit")

    async def save(self, profile):
        self.saved.append(profile)
        return profile.model_copy(update={"updated_at": "2026-01-01T00:00:00Z"})


@pytest.fixture
def client():
    with_overrides = TestClient(app)
    yield with_overrides
    app.dependency_overrides.clear()


def _override(dep, value):
    app.dependency_overrides[dep] = lambda: value
    return value


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json()["data"] == {"ok": True}
    assert resp.headers["X-Request-ID"]


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.json()["code"] == BusinessCode.NOT_FOUND


def test_business_codes_map_to_http_status():
    assert business_code_to_http_status(BusinessCode.CONFLICT) == 409
    assert business_code_to_http_status(BusinessCode.PARAM_VALIDATION_ERROR) == 422
    assert business_code_to_http_status(PaymentCode.COMMERCE_ERROR) == 502
    assert business_code_to_http_status(99999) == 400
    assert {code.name for code in BusinessCode} == {
        "SUCCESS",
        "PARAM_ERROR",
        "PARAM_VALIDATION_ERROR",
        "NOT_FOUND",
        "CONFLICT",
        "SYSTEM_ERROR",
        "SERVICE_UNAVAILABLE",
    }


def test_webhook_passes_raw_body_and_header(client):
    stub = _override(dependencies.get_webhook_reconciler, StubReconciler(
        WebhookAck(status_code=200, outcome=WebhookOutcome.FULFILLED, order_id="gid://shopify/Order/7")
    ))
    body = b'{"data": {"attributes": {"type": "payment.paid"}}}'

    resp = client.post("/api/paymongo/webhook", content=body, headers={"Paymongo-Signature": "t=1,te=ab,li="})

    assert resp.status_code == 200
    payload = resp.json()
    assert payload["code"] == 0
    assert payload["message"] == "ok"
    assert payload["data"] == {"outcome": "fulfilled", "order_id": "gid://shopify/Order/7"}
    assert stub.calls == [(body, "t=1,te=ab,li=")]


@pytest.mark.parametrize("outcome", [WebhookOutcome.FAILED, WebhookOutcome.DUPLICATE, WebhookOutcome.IGNORED])
def test_webhook_acknowledges_non_fulfilled_outcomes(client, outcome):
    _override(dependencies.get_webhook_reconciler, StubReconciler(WebhookAck(status_code=200, outcome=outcome)))
    resp = client.post("/api/paymongo/webhook", content=b"{}")
    assert resp.status_code == 200
    assert resp.json()["data"]["outcome"] == outcome.value


def test_webhook_rejections_use_error_envelope(client):
    _override(dependencies.get_webhook_reconciler, StubReconciler(
        WebhookAck(status_code=400, outcome=WebhookOutcome.REJECTED_SIGNATURE)
    ))
    resp = client.post("/api/paymongo/webhook", content=b"{}")
    assert resp.status_code == 400
    assert resp.json()["error"]["type"] == "PaymentSignatureError"

    _override(dependencies.get_webhook_reconciler, StubReconciler(
        WebhookAck(status_code=400, outcome=WebhookOutcome.REJECTED_MALFORMED)
    ))
    resp = client.post("/api/paymongo/webhook", content=b"nope")
    assert resp.status_code == 400
    assert resp.json()["error"]["type"] == "MalformedPayload"


def test_subscribe_validates_and_maps_step_errors(client):
    _override(dependencies.get_subscription_service, StubSubscriptions())

    ok = client.post("/api/paymongo/subscribe", json={
        "customer": {"email": "owner@example.com", "firstName": "Ana"},
        "plan": {"amount": 150000, "interval": "monthly"},
    })
    assert ok.status_code == 200
    assert ok.json()["data"] == {"subscription_id": "sub_1", "payment_intent_id": "pi_1", "client_key": "pi_1_client"}

    invalid = client.post("/api/paymongo/subscribe", json={"customer": {"email": "owner@example.com"}, "plan": {"amount": 0}})
    assert invalid.status_code == 422

    failed = client.post("/api/paymongo/subscribe", json={
        "customer": {"email": "broken@example.com"},
        "plan": {"amount": 100},
    })
    assert failed.status_code == 400
    assert failed.json()["error"]["type"] == "plan_create_failed"
    assert failed.json()["message"] == "Amount is too low (data.attributes.amount)"


def test_create_order_route(client):
    _override(dependencies.get_subscription_service, StubSubscriptions())

    resp = client.post("/api/shopify/create-order", json={"paymentIntentId": "pi_1"})
    assert resp.status_code == 200
    assert resp.json()["data"]["order_name"] == "#1001"

    missing = client.post("/api/shopify/create-order", json={"paymentIntentId": "pi_missing"})
    assert missing.status_code == 404

    no_id = client.post("/api/shopify/create-order", json={})
    assert no_id.status_code == 422


def test_subscription_listing_and_actions(client):
    stub = _override(dependencies.get_subscription_service, StubSubscriptions())

    listing = client.get("/api/subscriptions", params={"email": "owner@example.com"})
    assert listing.status_code == 200
    assert listing.json()["data"]["count"] == 1
    assert client.get("/api/subscriptions").status_code == 422

    for action in ("pause", "resume", "skip"):
        resp = client.post(f"/api/subscriptions/123/{action}", json={"email": "owner@example.com"})
        assert resp.status_code == 200

    cancel = client.post(
        "/api/subscriptions/123/cancel",
        json={"email": "owner@example.com", "paymongoSubscriptionId": "sub_1", "reason": "too_expensive"},
    )
    assert cancel.json()["data"]["processor_cancelled"] is True
    assert [a[0] for a in stub.actions] == ["paused", "active", "skipped", "cancelled"]
    assert stub.actions[-1][2].reason == "too_expensive"


def test_dog_profile_routes(client):
    stub = _override(dependencies.get_dog_profile_service, StubProfiles())

    found = client.get("/api/dog-profiles", params={"email": "owner@example.com"})
    assert found.status_code == 200
    assert found.json()["data"]["dog_name"] == "Biscuit"

    missing = client.get("/api/dog-profiles", params={"email": "nobody@example.com"})
    assert missing.status_code == 404
    assert missing.json()["message"] == "Profile not found"

    saved = client.post("/api/dog-profiles", json={"email": "owner@example.com", "dog_name": "Biscuit", "dog_age": 0})
    assert saved.status_code == 200
    profile = saved.json()["data"]["profile"]
    assert profile["dog_age_unit"] == "years"
    assert profile["updated_at"] == "2026-01-01T00:00:00Z"
    assert stub.saved[0].dog_age == 0

    assert client.post("/api/dog-profiles", json={"dog_name": "NoEmail"}).status_code == 422


@pytest.mark.asyncio
async def test_webhook_end_to_end(uow_factory, commerce, lock):
    reconciler = WebhookReconciler(uow_factory, commerce, lock, webhook_secret=WEBHOOK_SECRET)
    _override(dependencies.get_webhook_reconciler, reconciler)
    async with uow_factory() as uow:
        await uow.blueprints.save("pi_1", OrderBlueprint(
            currency="PHP", email="owner@example.com", line_items=[], amount="1500.00",
        ))
    body, header = signed(paid_event())

    try:
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as http:
            first = await http.post("/api/paymongo/webhook", content=body, headers={"Paymongo-Signature": header})
            again = await http.post("/api/paymongo/webhook", content=body, headers={"Paymongo-Signature": header})
            forged = await http.post("/api/paymongo/webhook", content=body, headers={"Paymongo-Signature": "t=1,te=00"})
    finally:
        app.dependency_overrides.clear()

    assert first.json()["data"]["outcome"] == "fulfilled"
    assert again.json()["data"]["outcome"] == "duplicate"
    assert forged.status_code == 400
    assert len(commerce.created) == 1
