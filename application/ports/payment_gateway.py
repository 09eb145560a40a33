"""
Payment processor port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
The capability set is fixed: adapters implement every method.
"""
from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from application.dtos.payments import PlanSpec, CustomerSpec


@runtime_checkable
class PaymentProcessor(Protocol):
    """Subscription-capable payment processor.

    ``create_plan`` and ``create_customer`` return the new resource id.
    ``create_subscription`` returns the whole response envelope with the
    subscription id copied to a top-level ``id``; ``get_payment_intent`` and
    ``cancel_subscription`` return the resource (``data`` member).
    """

    provider: str

    async def create_plan(self, plan: PlanSpec) -> str: ...

    async def create_customer(self, customer: CustomerSpec) -> str: ...

    async def create_subscription(self, customer_id: str, plan_id: str) -> dict[str, Any]: ...

    async def get_payment_intent(self, payment_intent_id: str) -> dict[str, Any]: ...

    async def cancel_subscription(self, subscription_id: str, reason: str = "other") -> dict[str, Any]: ...


__all__ = ["PaymentProcessor"]
