"""
PayMongo REST client: plans, customers, subscriptions and payment intents.

Authentication is HTTP Basic with the secret key as the username and an
empty password. Every response body is a JSON:API envelope
``{"data": {"id", "type", "attributes"}}``; errors come back as
``{"errors": [{"code", "detail", "source": {"pointer"|"attribute"}}]}``.
"""
from __future__ import annotations

import base64
from typing import Any, Optional

import httpx

from application.dtos.payments import CustomerSpec, PlanSpec, normalize_interval
from core.settings import payment_settings
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import (
    PaymentConfigurationError,
    PaymentProviderError,
)


class PayMongoClient(BasePaymentClient):
    provider = "paymongo"

    def __init__(
        self,
        *,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(
            base_url or payment_settings.paymongo.base_url,
            timeouts=timeouts or payment_settings.timeouts.model_dump(),
            retry=retry or {
                "max": payment_settings.retry.max,
                "base": payment_settings.retry.base_backoff,
            },
            transport=transport,
        )
        self._secret_key = secret_key if secret_key is not None else payment_settings.paymongo_api_key

    def _auth_headers(self) -> dict[str, str]:
        if not self._secret_key:
            raise PaymentConfigurationError("PAYMONGO_SECRET_KEY is not set", provider=self.provider)
        token = base64.b64encode(f"{self._secret_key}:".encode("utf-8")).decode("ascii")
        return {"Authorization": f"Basic {token}"}

    def _resource_id(self, envelope: dict[str, Any], what: str) -> str:
        resource_id = (envelope.get("data") or {}).get("id")
        if not resource_id:
            raise PaymentProviderError(
                f"Missing {what} id from PayMongo",
                provider=self.provider,
                details={"raw": envelope},
            )
        return resource_id

    async def create_plan(self, plan: PlanSpec) -> str:
        body = {
            "data": {
                "attributes": {
                    "name": plan.name,
                    "description": plan.description,
                    "amount": int(plan.amount),
                    "currency": plan.currency,
                    "interval": normalize_interval(plan.interval),
                    "interval_count": plan.interval_count,
                }
            }
        }
        envelope = await self._call("POST", "/plans", idempotent=False, json_data=body)
        plan_id = self._resource_id(envelope, "plan")
        self._log("paymongo_plan_created", plan_id=plan_id, amount=plan.amount, interval=plan.interval)
        return plan_id

    async def create_customer(self, customer: CustomerSpec) -> str:
        # 仅发送 PayMongo 接受的四个属性
        body = {
            "data": {
                "attributes": {
                    "email": customer.email,
                    "first_name": customer.first_name,
                    "last_name": customer.last_name,
                    "phone": customer.phone,
                }
            }
        }
        envelope = await self._call("POST", "/customers", idempotent=False, json_data=body)
        customer_id = self._resource_id(envelope, "customer")
        self._log("paymongo_customer_created", customer_id=customer_id)
        return customer_id

    async def create_subscription(self, customer_id: str, plan_id: str) -> dict[str, Any]:
        body = {"data": {"attributes": {"customer": customer_id, "plan": plan_id}}}
        envelope = await self._call("POST", "/subscriptions", idempotent=False, json_data=body)
        subscription_id = (envelope.get("data") or {}).get("id")
        self._log("paymongo_subscription_created", subscription_id=subscription_id)
        return {"id": subscription_id, **envelope}

    async def get_payment_intent(self, payment_intent_id: str) -> dict[str, Any]:
        envelope = await self._call("GET", f"/payment_intents/{payment_intent_id}", idempotent=True)
        resource = envelope.get("data") or {}
        status = (resource.get("attributes") or {}).get("status")
        self._log(
            "paymongo_payment_intent_fetched",
            payment_intent_id=payment_intent_id,
            status=status,
            internal_status=self._map_status(status) if status else None,
        )
        return resource

    async def cancel_subscription(self, subscription_id: str, reason: str = "other") -> dict[str, Any]:
        body = {"data": {"attributes": {"cancellation_reason": reason or "other"}}}
        envelope = await self._call(
            "POST", f"/subscriptions/{subscription_id}/cancel", idempotent=False, json_data=body
        )
        self._log("paymongo_subscription_cancelled", subscription_id=subscription_id, reason=reason)
        return envelope.get("data") or {}
