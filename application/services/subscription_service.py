"""
Subscription application service.

Orchestrates the processor (plans, customers, subscriptions, payment intents),
the commerce platform (orders, tags, notes) and the fulfillment stores.
Processor and commerce adapters are injected from the composition root.
"""
from __future__ import annotations

import asyncio
import calendar
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Awaitable, Callable, Optional, TypeVar

from application.dtos.payments import (
    CreateOrderResult,
    CustomerSpec,
    PaidOrderRequest,
    PlanSpec,
    SubscribeRequest,
    SubscribeResult,
    SubscriptionActionRequest,
    SubscriptionActionResult,
    SubscriptionView,
)
from application.ports.commerce import CommercePlatform
from application.ports.locks import KeyedLock, fulfillment_lock_key
from application.ports.payment_gateway import PaymentProcessor
from application.utils.payloads import dig, first_string
from core.logging_config import get_logger
from domain.common.exceptions import (
    BlueprintNotFoundException,
    BusinessException,
    MissingPaymentIntentException,
    PaymentNotSucceededException,
    SubscriptionStepFailedException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.fulfillment.entity import LedgerKeyType, OrderBlueprint
from infrastructure.external.payments.exceptions import PaymentProviderError, first_error_detail
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


logger = get_logger(__name__)

T = TypeVar("T")

PHONE_PATTERN = re.compile(r"^\+63\d{10}$")

FRONTEND_ORDER_TAGS = ["PayMongo", "subscription-frontend"]

SUBSCRIPTION_PAYMENT_INTENT_PATHS: tuple[tuple[str, ...], ...] = (
    ("attributes", "latest_invoice", "payment_intent", "id"),
    ("attributes", "latest_invoice", "payment_intent_id"),
    ("data", "attributes", "latest_invoice", "data", "attributes", "payment_intent", "id"),
    ("data", "attributes", "latest_invoice", "data", "attributes", "payment_intent_id"),
)

SUBSCRIPTION_CLIENT_KEY_PATHS: tuple[tuple[str, ...], ...] = (
    ("attributes", "latest_invoice", "payment_intent", "attributes", "client_key"),
    ("data", "attributes", "latest_invoice", "data", "attributes", "payment_intent", "attributes", "client_key"),
)

PAYMENT_INTENT_CLIENT_KEY_PATHS: tuple[tuple[str, ...], ...] = (
    ("attributes", "client_key"),
    ("data", "attributes", "client_key"),
)

# Order markers that identify subscription orders
SUBSCRIPTION_MARKERS = ("subscription", "paymongo", "recurring")
PRODUCT_KEYWORDS = ("mcduffy", "fresh", "gently cooked", "home cooked", "dog food")
SUBSCRIPTION_ID_ATTRIBUTES = ("subscription_id", "paymongo_subscription_id")
DEFAULT_PLAN_NAME = "McDuffy Subscription"


def is_subscription_order(order: dict[str, Any]) -> bool:
    tags = [str(t).lower() for t in order.get("tags") or []]
    if any(marker in tag for tag in tags for marker in SUBSCRIPTION_MARKERS):
        return True
    note = (order.get("note") or "").lower()
    if any(marker in note for marker in SUBSCRIPTION_MARKERS):
        return True
    for edge in dig(order, ("lineItems", "edges")) or []:
        title = (dig(edge, ("node", "title")) or "").lower()
        if any(keyword in title for keyword in PRODUCT_KEYWORDS):
            return True
    return False


def _add_months(dt: datetime, months: int) -> datetime:
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _iso_z(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def next_billing_date(created_at: Optional[str], now: datetime) -> Optional[str]:
    """First monthly anniversary of ``created_at`` strictly after ``now``."""
    created = _parse_datetime(created_at)
    if created is None:
        return None
    months = 0
    candidate = created
    while candidate <= now:
        months += 1
        candidate = _add_months(created, months)
    return _iso_z(candidate)


def _amount_in_centavos(amount: Any) -> int:
    try:
        value = Decimal(str(amount if amount is not None else 0))
    except InvalidOperation:
        return 0
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_subscription_view(order: dict[str, Any], now: datetime) -> SubscriptionView:
    tags = order.get("tags") or []
    attributes = {
        a.get("key"): a.get("value")
        for a in order.get("customAttributes") or []
        if isinstance(a, dict)
    }
    status = "active"
    if "paused" in tags:
        status = "suspended"
    if "cancelled" in tags:
        status = "cancelled"

    money = dig(order, ("totalPriceSet", "shopMoney")) or {}
    edges = dig(order, ("lineItems", "edges")) or []
    plan_name = dig(edges[0], ("node", "title")) if edges else None
    order_gid = order.get("id") or ""

    return SubscriptionView(
        id=order_gid.replace("gid://shopify/Order/", ""),
        order_id=order_gid,
        order_name=order.get("name"),
        paymongo_subscription_id=next(
            (attributes[k] for k in SUBSCRIPTION_ID_ATTRIBUTES if attributes.get(k)), None
        ),
        status=status,
        provider=attributes.get("provider") or "card",
        recipe=attributes.get("recipe"),
        plan_name=plan_name or DEFAULT_PLAN_NAME,
        amount=_amount_in_centavos(money.get("amount")),
        currency=money.get("currencyCode") or "PHP",
        created_at=order.get("createdAt"),
        next_billing_date=next_billing_date(order.get("createdAt"), now),
    )


class SubscriptionService:

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        processor: PaymentProcessor,
        commerce: CommercePlatform,
        lock: KeyedLock,
        *,
        fulfillment_timeout: float = 20.0,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._uow_factory = uow_factory
        self._processor = processor
        self._commerce = commerce
        self._lock = lock
        self._fulfillment_timeout = fulfillment_timeout
        self._clock = clock

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    async def _step(self, step: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except PaymentProviderError as exc:
            detail = first_error_detail(exc.errors, exc.message)
            logger.warning("subscription_step_failed", step=step, detail=detail, provider_code=exc.provider_code)
            raise SubscriptionStepFailedException(step, detail, errors=exc.errors) from exc

    async def subscribe(self, req: SubscribeRequest) -> SubscribeResult:
        customer = req.customer
        if customer.phone and not PHONE_PATTERN.match(customer.phone):
            raise BusinessException(
                code=BusinessCode.PARAM_ERROR,
                message="Use +63 followed by 10 digits (e.g. +639171234567)",
                error_type="phone_invalid",
                field="customer.phone",
            )

        plan = PlanSpec.from_request(req.plan)
        plan_id = await self._step("plan", self._processor.create_plan(plan))
        customer_id = await self._step(
            "customer",
            self._processor.create_customer(
                CustomerSpec(
                    email=customer.email,
                    first_name=customer.first_name,
                    last_name=customer.last_name,
                    phone=customer.phone or None,
                )
            ),
        )
        subscription = await self._step(
            "subscription", self._processor.create_subscription(customer_id, plan_id)
        )

        subscription_id = subscription.get("id") or dig(subscription, ("data", "id"))
        payment_intent_id = first_string(subscription, SUBSCRIPTION_PAYMENT_INTENT_PATHS)
        client_key = first_string(subscription, SUBSCRIPTION_CLIENT_KEY_PATHS)

        if payment_intent_id and not client_key:
            try:
                intent = await self._processor.get_payment_intent(payment_intent_id)
                client_key = first_string(intent, PAYMENT_INTENT_CLIENT_KEY_PATHS)
            except PaymentProviderError as exc:
                logger.warning(
                    "payment_intent_lookup_failed",
                    payment_intent_id=payment_intent_id,
                    error=exc.message,
                )

        if not payment_intent_id or not client_key:
            raise MissingPaymentIntentException(subscription_id, raw=subscription)

        await self._stage_blueprint(
            payment_intent_id,
            req,
            subscription_id=subscription_id,
            plan_id=plan_id,
            customer_id=customer_id,
        )

        logger.info(
            "subscription_created",
            subscription_id=subscription_id,
            payment_intent_id=payment_intent_id,
            plan_id=plan_id,
            customer_id=customer_id,
        )
        return SubscribeResult(
            subscription_id=subscription_id,
            payment_intent_id=payment_intent_id,
            client_key=client_key,
        )

    async def _stage_blueprint(
        self,
        payment_intent_id: str,
        req: SubscribeRequest,
        *,
        subscription_id: Optional[str],
        plan_id: str,
        customer_id: str,
    ) -> None:
        """Persist the order blueprint; failures are logged and never fail intake."""
        draft = req.shopify_order
        if draft is None:
            logger.warning("blueprint_order_missing", payment_intent_id=payment_intent_id)
            return
        try:
            blueprint = OrderBlueprint(
                currency=draft.currency,
                email=draft.email or req.customer.email,
                line_items=draft.line_items,
                amount=draft.amount,
                note=draft.note,
                tags=list(draft.tags),
                shipping_address=draft.shipping_address,
                subscription_id=subscription_id,
                plan_id=plan_id,
                customer_id=customer_id,
                created_at=self._clock(),
            )
            async with self._uow_factory() as uow:
                await uow.blueprints.save(payment_intent_id, blueprint)
        except Exception as exc:
            logger.error(
                "blueprint_stage_failed",
                payment_intent_id=payment_intent_id,
                error=str(exc),
                exc_info=True,
            )

    # ------------------------------------------------------------------
    # Storefront fallback order creation
    # ------------------------------------------------------------------

    async def create_order_for_intent(self, payment_intent_id: str) -> CreateOrderResult:
        async with self._lock.hold(fulfillment_lock_key(payment_intent_id)):
            async with self._uow_factory(readonly=True) as uow:
                record = await uow.ledger.get_record(LedgerKeyType.PAYMENT_INTENT, payment_intent_id)
                if record is not None:
                    logger.info("order_already_created", payment_intent_id=payment_intent_id, order_id=record.order_id)
                    return CreateOrderResult(
                        already_created=True,
                        order_id=record.order_id,
                        message="Order already created",
                    )

            intent = await self._processor.get_payment_intent(payment_intent_id)
            status = dig(intent, ("attributes", "status"))
            if status != "succeeded":
                raise PaymentNotSucceededException(payment_intent_id, status)

            async with self._uow_factory(readonly=True) as uow:
                blueprint = await uow.blueprints.get(payment_intent_id)
            if blueprint is None:
                logger.error("order_blueprint_missing", payment_intent_id=payment_intent_id)
                raise BlueprintNotFoundException(payment_intent_id)

            request = PaidOrderRequest(
                currency=blueprint.currency,
                email=blueprint.email,
                line_items=blueprint.line_items,
                amount=blueprint.amount,
                note=f"{blueprint.note or ''} | PayMongo PI: {payment_intent_id}",
                tags=[*blueprint.tags, *FRONTEND_ORDER_TAGS],
                shipping_address=blueprint.shipping_address,
            )
            try:
                order = await asyncio.wait_for(
                    self._commerce.create_paid_order(request), timeout=self._fulfillment_timeout
                )
            except asyncio.TimeoutError:
                logger.error("order_create_timeout", payment_intent_id=payment_intent_id)
                raise BusinessException(
                    code=PaymentCode.TIMEOUT,
                    message="Order creation timed out. Please contact support.",
                    error_type="OrderCreateTimeout",
                    details={"payment_intent_id": payment_intent_id},
                )

            async with self._uow_factory() as uow:
                await uow.ledger.mark_processed(payment_intent_id=payment_intent_id, order_id=order.id)

        logger.info(
            "order_created_from_frontend",
            payment_intent_id=payment_intent_id,
            order_id=order.id,
            order_name=order.name,
        )
        return CreateOrderResult(
            order_id=order.id,
            order_name=order.name,
            message="Order created successfully",
        )

    # ------------------------------------------------------------------
    # Listing and actions
    # ------------------------------------------------------------------

    async def list_subscriptions(self, email: str) -> list[SubscriptionView]:
        orders = await self._commerce.find_orders_by_email(email)
        matching = [order for order in orders if is_subscription_order(order)]
        logger.info("subscriptions_listed", email=email, orders=len(orders), subscriptions=len(matching))
        now = self._clock()
        return [to_subscription_view(order, now) for order in matching]

    def _stamp(self) -> str:
        return _iso_z(self._clock())

    async def pause(self, order_id: str, req: SubscriptionActionRequest) -> SubscriptionActionResult:
        # 处理方不支持暂停：仅在订单上打标记，扣款仍会继续
        logger.warning("subscription_pause_tag_only", order_id=order_id, email=req.email)
        await self._commerce.add_order_tags(order_id, ["paused"])
        await self._commerce.remove_order_tags(order_id, ["active"])
        await self._commerce.update_order_note(
            order_id,
            f"Subscription paused by customer on {self._stamp()}. "
            "NOTE: PayMongo subscription is still active - manual cancellation may be needed.",
        )
        return SubscriptionActionResult(
            status="paused",
            message="Subscription paused successfully. Note: Contact support if you need to stop charges.",
            warning="PayMongo does not support pausing. Contact support to fully stop charges.",
        )

    async def resume(self, order_id: str, req: SubscriptionActionRequest) -> SubscriptionActionResult:
        logger.info("subscription_resume", order_id=order_id, email=req.email)
        await self._commerce.remove_order_tags(order_id, ["paused"])
        await self._commerce.add_order_tags(order_id, ["active"])
        await self._commerce.update_order_note(
            order_id, f"Subscription resumed by customer on {self._stamp()}"
        )
        return SubscriptionActionResult(status="active", message="Subscription resumed successfully")

    async def skip(self, order_id: str, req: SubscriptionActionRequest) -> SubscriptionActionResult:
        logger.warning("subscription_skip_tag_only", order_id=order_id, email=req.email)
        await self._commerce.add_order_tags(order_id, ["skipped-next"])
        await self._commerce.update_order_note(
            order_id,
            f"Next delivery skipped by customer on {self._stamp()}. "
            "NOTE: Payment may still process - manual adjustment needed.",
        )
        return SubscriptionActionResult(
            message="Next delivery marked as skipped. Our team will adjust your order.",
            warning="Payment schedule unchanged. Our team will process any refunds if needed.",
        )

    async def cancel(self, order_id: str, req: SubscriptionActionRequest) -> SubscriptionActionResult:
        processor_subscription_id = req.paymongo_subscription_id
        processor_cancelled = False

        if processor_subscription_id:
            try:
                await self._processor.cancel_subscription(processor_subscription_id, req.reason or "other")
                processor_cancelled = True
            except BusinessException as exc:
                # 继续更新订单标记；订阅可能已取消或ID有误
                logger.error(
                    "processor_cancel_failed",
                    order_id=order_id,
                    subscription_id=processor_subscription_id,
                    error=exc.message,
                )
        else:
            logger.info("processor_cancel_skipped", order_id=order_id)

        await self._commerce.add_order_tags(order_id, ["cancelled"])
        await self._commerce.remove_order_tags(order_id, ["active", "paused"])

        stamp = self._stamp()
        if processor_cancelled:
            note = (
                f"Subscription cancelled by customer on {stamp}. "
                f"PayMongo subscription ({processor_subscription_id}) also cancelled."
            )
            message = "Subscription cancelled successfully. No further charges will occur."
        else:
            note = (
                f"Subscription cancelled by customer on {stamp}. "
                "NOTE: PayMongo subscription may need manual cancellation."
            )
            message = "Subscription marked as cancelled. Please contact support to confirm no further charges."
        await self._commerce.update_order_note(order_id, note)

        logger.info(
            "subscription_cancelled",
            order_id=order_id,
            subscription_id=processor_subscription_id,
            processor_cancelled=processor_cancelled,
        )
        return SubscriptionActionResult(
            status="cancelled",
            message=message,
            processor_cancelled=processor_cancelled,
        )
