"""
Keyed mutual-exclusion port.

Fulfillment for one payment intent must never run twice at the same time,
whether triggered by a webhook redelivery or by the storefront fallback.
"""
from __future__ import annotations

from typing import AsyncContextManager, Protocol, runtime_checkable


def fulfillment_lock_key(payment_intent_id: str | None, payment_id: str | None = None) -> str:
    """Lock key shared by every path that can create an order for a payment."""
    return f"fulfillment:{payment_intent_id or payment_id}"


@runtime_checkable
class KeyedLock(Protocol):
    """Serializes critical sections that share the same key.

    ``hold`` raises ``LockAcquisitionError`` when the lock cannot be taken
    within the configured blocking timeout.
    """

    def hold(self, key: str) -> AsyncContextManager[None]: ...


__all__ = ["KeyedLock", "fulfillment_lock_key"]
