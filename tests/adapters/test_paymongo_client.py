import base64
import json

import httpx
import pytest

from application.dtos.payments import CustomerSpec, PlanSpec
from infrastructure.external.payments.exceptions import (
    PaymentConfigurationError,
    PaymentProviderError,
    PaymentRecoverableError,
)
from infrastructure.external.payments.paymongo_client import PayMongoClient


def _client(handler, **kwargs):
    kwargs.setdefault("secret_key", "sk_test_123")
    return PayMongoClient(
        base_url="https://api.paymongo.test/v1",
        retry={"max": 2, "base": 0.0},
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


PLAN = PlanSpec(name="McDuffy Plan", description="Gently cooked subscription", amount=150000, currency="PHP", interval="month", interval_count=1)


@pytest.mark.asyncio
async def test_create_plan_sends_basic_auth_and_attributes():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"id": "plan_1", "type": "plan"}})

    client = _client(handler)
    plan_id = await client.create_plan(PLAN)
    await client.aclose()

    assert plan_id == "plan_1"
    assert seen["url"] == "https://api.paymongo.test/v1/plans"
    assert seen["auth"] == "Basic " + base64.b64encode(b"sk_test_123:").decode()
    attrs = seen["body"]["data"]["attributes"]
    assert attrs["amount"] == 150000
    assert attrs["interval"] == "month"


@pytest.mark.asyncio
async def test_create_customer_sends_only_accepted_fields():
    seen = {}

    def handler(request):
        seen["attrs"] = json.loads(request.content)["data"]["attributes"]
        return httpx.Response(200, json={"data": {"id": "cus_1"}})

    client = _client(handler)
    await client.create_customer(CustomerSpec(email="a@b.c", first_name="Ana", last_name="Cruz", phone="+639171234567"))

    assert set(seen["attrs"]) == {"email", "first_name", "last_name", "phone"}


@pytest.mark.asyncio
async def test_client_errors_carry_processor_errors():
    def handler(request):
        return httpx.Response(400, json={"errors": [{"code": "parameter_below_minimum", "detail": "amount is too low", "source": {"pointer": "data.attributes.amount"}}]})

    client = _client(handler)
    with pytest.raises(PaymentProviderError) as excinfo:
        await client.create_plan(PLAN)

    assert not isinstance(excinfo.value, PaymentRecoverableError)
    assert excinfo.value.status_code == 400
    assert excinfo.value.provider_code == "parameter_below_minimum"
    assert excinfo.value.errors[0]["detail"] == "amount is too low"


@pytest.mark.asyncio
async def test_mutations_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, json={"errors": [{"code": "unavailable", "detail": "try later"}]})

    client = _client(handler)
    with pytest.raises(PaymentRecoverableError):
        await client.create_subscription("cus_1", "plan_1")
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_payment_intent_lookup_is_retried():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(502, json={})
        return httpx.Response(200, json={"data": {"id": "pi_1", "attributes": {"status": "succeeded", "client_key": "ck"}}})

    client = _client(handler)
    intent = await client.get_payment_intent("pi_1")

    assert len(calls) == 3
    assert intent["attributes"]["status"] == "succeeded"


@pytest.mark.asyncio
async def test_transport_failure_is_recoverable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    with pytest.raises(PaymentRecoverableError) as excinfo:
        await client.get_payment_intent("pi_1")
    assert excinfo.value.provider_code == "transport_error"


@pytest.mark.asyncio
async def test_subscription_envelope_keeps_top_level_id():
    def handler(request):
        return httpx.Response(200, json={"data": {"id": "sub_1", "attributes": {"latest_invoice": {"payment_intent": {"id": "pi_1"}}}}})

    client = _client(handler)
    sub = await client.create_subscription("cus_1", "plan_1")
    assert sub["id"] == "sub_1"
    assert sub["data"]["attributes"]["latest_invoice"]["payment_intent"]["id"] == "pi_1"


@pytest.mark.asyncio
async def test_missing_secret_key_is_a_configuration_error():
    client = _client(lambda request: httpx.Response(200, json={}), secret_key="")
    with pytest.raises(PaymentConfigurationError):
        await client.create_plan(PLAN)
