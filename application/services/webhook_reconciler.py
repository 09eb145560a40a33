"""
Webhook reconciler: turns processor ``payment.paid`` notifications into
exactly one paid commerce order per payment.

The reconciler always answers; every outcome is acknowledged with 200 except
malformed bodies and bad signatures (400). Acknowledging a failed fulfillment
stops processor redelivery, so failures are logged at error level for manual
follow-up rather than retried.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Optional

from application.dtos.payments import (
    PaidOrderRequest,
    PaymentEvent,
    WebhookAck,
    WebhookOutcome,
)
from application.ports.commerce import CommercePlatform
from application.ports.locks import KeyedLock, fulfillment_lock_key
from application.utils.payloads import dig, first_string
from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.fulfillment.signature import verify_signature


logger = get_logger(__name__)

PAYMENT_PAID = "payment.paid"
PAYMENT_FAILED = "payment.failed"

ORDER_TAG = "PayMongo"

# Ordered: the first non-empty string wins
PAYMENT_INTENT_ID_PATHS: tuple[tuple[str, ...], ...] = (
    ("attributes", "payment_intent_id"),
    ("attributes", "payment_intent", "id"),
    ("attributes", "payment_intentId"),
)


def extract_payment_intent_id(resource: Any) -> Optional[str]:
    return first_string(resource, PAYMENT_INTENT_ID_PATHS)


def parse_payment_event(payload: dict[str, Any]) -> PaymentEvent:
    """Pick the fields the reconciler acts on out of an event envelope.

    ``data.attributes.type`` is the event type, ``data.attributes.livemode``
    selects the live signature and ``data.attributes.data`` is the resource
    (a payment for ``payment.*`` events).
    """
    attributes = dig(payload, ("data", "attributes"))
    attributes = attributes if isinstance(attributes, dict) else {}
    resource = attributes.get("data")
    resource = resource if isinstance(resource, dict) else {}
    payment_id = resource.get("id")
    event_type = attributes.get("type")
    return PaymentEvent(
        event_type=event_type if isinstance(event_type, str) else None,
        livemode=bool(attributes.get("livemode")),
        payment_id=payment_id if isinstance(payment_id, str) and payment_id else None,
        payment_intent_id=extract_payment_intent_id(resource),
        resource=resource,
    )


class WebhookReconciler:

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        commerce: CommercePlatform,
        lock: KeyedLock,
        *,
        webhook_secret: Optional[str],
        fulfillment_timeout: float = 20.0,
    ) -> None:
        self._uow_factory = uow_factory
        self._commerce = commerce
        self._lock = lock
        self._webhook_secret = webhook_secret
        self._fulfillment_timeout = fulfillment_timeout

    async def handle(self, raw_body: bytes, signature_header: Optional[str]) -> WebhookAck:
        try:
            payload = json.loads(raw_body)
        except (UnicodeDecodeError, ValueError, RecursionError):
            logger.warning("webhook_invalid_json", body_size=len(raw_body))
            return WebhookAck(status_code=400, outcome=WebhookOutcome.REJECTED_MALFORMED)
        if not isinstance(payload, dict):
            logger.warning("webhook_invalid_json", body_size=len(raw_body))
            return WebhookAck(status_code=400, outcome=WebhookOutcome.REJECTED_MALFORMED)

        event = parse_payment_event(payload)

        if not self._webhook_secret:
            logger.error("webhook_secret_missing")
        if not verify_signature(signature_header, raw_body, self._webhook_secret, event.livemode):
            logger.warning(
                "webhook_signature_invalid",
                livemode=event.livemode,
                has_header=bool(signature_header),
            )
            return WebhookAck(status_code=400, outcome=WebhookOutcome.REJECTED_SIGNATURE)

        log = logger.bind(
            event_type=event.event_type,
            payment_id=event.payment_id,
            payment_intent_id=event.payment_intent_id,
        )

        if event.event_type != PAYMENT_PAID:
            if event.event_type == PAYMENT_FAILED:
                log.info("webhook_payment_failed")
            else:
                log.info("webhook_event_ignored")
            return WebhookAck(status_code=200, outcome=WebhookOutcome.IGNORED)

        if not event.payment_id and not event.payment_intent_id:
            log.error("webhook_payment_unidentified")
            return WebhookAck(status_code=200, outcome=WebhookOutcome.UNIDENTIFIED)

        try:
            async with self._lock.hold(fulfillment_lock_key(event.payment_intent_id, event.payment_id)):
                return await self._fulfill(event, log)
        except Exception as exc:
            log.error("webhook_fulfillment_failed", error=str(exc), error_class=type(exc).__name__, exc_info=True)
            return WebhookAck(status_code=200, outcome=WebhookOutcome.FAILED)

    async def _fulfill(self, event: PaymentEvent, log) -> WebhookAck:
        async with self._uow_factory(readonly=True) as uow:
            if await uow.ledger.is_processed(
                payment_id=event.payment_id, payment_intent_id=event.payment_intent_id
            ):
                log.info("webhook_duplicate_ignored")
                return WebhookAck(status_code=200, outcome=WebhookOutcome.DUPLICATE)
            blueprint = (
                await uow.blueprints.get(event.payment_intent_id) if event.payment_intent_id else None
            )

        if blueprint is None:
            log.error("webhook_blueprint_missing")
            return WebhookAck(status_code=200, outcome=WebhookOutcome.BLUEPRINT_MISSING)

        request = PaidOrderRequest(
            currency=blueprint.currency,
            email=blueprint.email,
            line_items=blueprint.line_items,
            amount=blueprint.amount,
            note=f"{blueprint.note or ''} | PayMongo payment: {event.payment_id or ''}",
            tags=[*blueprint.tags, ORDER_TAG],
            shipping_address=blueprint.shipping_address,
        )
        order = await asyncio.wait_for(
            self._commerce.create_paid_order(request), timeout=self._fulfillment_timeout
        )

        async with self._uow_factory() as uow:
            await uow.ledger.mark_processed(
                payment_id=event.payment_id,
                payment_intent_id=event.payment_intent_id,
                order_id=order.id,
            )

        log.info("webhook_order_created", order_id=order.id, order_name=order.name)
        return WebhookAck(status_code=200, outcome=WebhookOutcome.FULFILLED, order_id=order.id)
