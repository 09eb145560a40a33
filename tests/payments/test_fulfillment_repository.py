import pytest

from domain.fulfillment.entity import LedgerKeyType, OrderBlueprint


def _blueprint(**overrides):
    data = dict(
        currency="PHP",
        email="owner@example.com",
        line_items=[{"title": "McDuffy Fresh", "quantity": 1, "priceSet": {"shopMoney": {"amount": "1500.00", "currencyCode": "PHP"}}}],
        amount="1500.00",
        note="first box",
        tags=["subscription"],
        shipping_address={"city": "Makati", "country": "PH"},
        subscription_id="sub_1",
        plan_id="plan_1",
        customer_id="cus_1",
    )
    data.update(overrides)
    return OrderBlueprint(**data)


@pytest.mark.asyncio
async def test_mark_then_is_processed_by_either_key(uow_factory):
    async with uow_factory() as uow:
        assert await uow.ledger.is_processed(payment_id="pay_1") is False
        await uow.ledger.mark_processed(payment_id="pay_1", payment_intent_id="pi_1", order_id="gid://shopify/Order/1")

    async with uow_factory(readonly=True) as uow:
        assert await uow.ledger.is_processed(payment_id="pay_1") is True
        assert await uow.ledger.is_processed(payment_intent_id="pi_1") is True
        assert await uow.ledger.is_processed(payment_id="pay_2", payment_intent_id="pi_1") is True
        assert await uow.ledger.is_processed(payment_id="pay_2") is False
        record = await uow.ledger.get_record(LedgerKeyType.PAYMENT_INTENT, "pi_1")
    assert record.order_id == "gid://shopify/Order/1"
    assert record.processed_at.tzinfo is not None


@pytest.mark.asyncio
async def test_mark_processed_is_idempotent_and_keeps_first_record(uow_factory):
    async with uow_factory() as uow:
        await uow.ledger.mark_processed(payment_intent_id="pi_1", order_id="order-a")
    async with uow_factory() as uow:
        await uow.ledger.mark_processed(payment_id="pay_9", payment_intent_id="pi_1", order_id="order-b")

    async with uow_factory(readonly=True) as uow:
        first = await uow.ledger.get_record(LedgerKeyType.PAYMENT_INTENT, "pi_1")
        added = await uow.ledger.get_record(LedgerKeyType.PAYMENT, "pay_9")
    assert first.order_id == "order-a"
    assert added.order_id == "order-b"


@pytest.mark.asyncio
async def test_both_keys_roll_back_together(uow_factory):
    with pytest.raises(RuntimeError):
        async with uow_factory() as uow:
            await uow.ledger.mark_processed(payment_id="pay_1", payment_intent_id="pi_1")
            raise RuntimeError("boom")

    async with uow_factory(readonly=True) as uow:
        assert await uow.ledger.is_processed(payment_id="pay_1") is False
        assert await uow.ledger.is_processed(payment_intent_id="pi_1") is False


@pytest.mark.asyncio
async def test_ledger_requires_a_key(uow_factory):
    async with uow_factory(readonly=True) as uow:
        with pytest.raises(ValueError):
            await uow.ledger.is_processed()
        with pytest.raises(ValueError):
            await uow.ledger.mark_processed(payment_id="", payment_intent_id=None)


@pytest.mark.asyncio
async def test_blueprint_roundtrip_and_write_once(uow_factory):
    async with uow_factory() as uow:
        await uow.blueprints.save("pi_1", _blueprint())
    async with uow_factory() as uow:
        await uow.blueprints.save("pi_1", _blueprint(note="second write", amount="999.00"))

    async with uow_factory(readonly=True) as uow:
        stored = await uow.blueprints.get("pi_1")
        missing = await uow.blueprints.get("pi_unknown")

    assert missing is None
    assert stored.note == "first box"
    assert stored.amount == "1500.00"
    assert stored.tags == ["subscription"]
    assert stored.shipping_address == {"city": "Makati", "country": "PH"}
    assert stored.subscription_id == "sub_1"
    assert stored.created_at is not None


def test_blueprint_rejects_bad_currency():
    from domain.common.exceptions import DomainValidationException

    with pytest.raises(DomainValidationException):
        _blueprint(currency="PESO")
