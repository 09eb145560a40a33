"""
Commerce platform port: order creation and order/customer annotations.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from application.dtos.payments import PaidOrderRequest, CreatedOrder


@runtime_checkable
class CommercePlatform(Protocol):

    async def create_paid_order(self, req: PaidOrderRequest) -> CreatedOrder: ...

    async def find_orders_by_email(self, email: str, first: int = 50) -> list[dict[str, Any]]: ...

    async def add_order_tags(self, order_id: str, tags: list[str]) -> None: ...

    async def remove_order_tags(self, order_id: str, tags: list[str]) -> None: ...

    async def update_order_note(self, order_id: str, note: str) -> None: ...

    async def find_customer(
        self,
        email: str,
        *,
        metafield_namespace: Optional[str] = None,
        metafield_key: Optional[str] = None,
    ) -> Optional[dict[str, Any]]: ...

    async def create_customer(self, email: str, tags: list[str]) -> Optional[dict[str, Any]]: ...

    async def set_customer_metafield(
        self, customer_id: str, namespace: str, key: str, value: Any
    ) -> bool: ...


__all__ = ["CommercePlatform"]
