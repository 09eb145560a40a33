"""
履约领域实体 - 订单蓝图与幂等记录
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from domain.common.exceptions import DomainValidationException


class LedgerKeyType(str, Enum):
    """幂等记录键类型"""
    PAYMENT = "payment"
    PAYMENT_INTENT = "payment_intent"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class OrderBlueprint:
    """
    订单蓝图 - 订阅创建时暂存，支付成功后用于创建已支付订单

    业务规则：
    1. 以 payment_intent_id 为键，仅写入一次
    2. 创建后不可修改
    3. 对账完成后仍保留（审计/重放）
    """

    currency: str
    email: str
    line_items: list[dict[str, Any]]
    amount: str
    note: str = ""
    tags: list[str] = field(default_factory=list)
    shipping_address: Optional[dict[str, Any]] = None
    subscription_id: Optional[str] = None
    plan_id: Optional[str] = None
    customer_id: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise DomainValidationException(
                f"无效的货币代码: {self.currency}",
                field="currency"
            )
        if not self.email:
            raise DomainValidationException("蓝图缺少 email", field="email")
        object.__setattr__(self, "created_at", _ensure_utc(self.created_at))

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("created_at", None)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, created_at: Optional[datetime] = None) -> "OrderBlueprint":
        return cls(
            currency=data["currency"],
            email=data["email"],
            line_items=list(data.get("line_items") or []),
            amount=str(data["amount"]),
            note=data.get("note") or "",
            tags=list(data.get("tags") or []),
            shipping_address=data.get("shipping_address"),
            subscription_id=data.get("subscription_id"),
            plan_id=data.get("plan_id"),
            customer_id=data.get("customer_id"),
            created_at=created_at,
        )


@dataclass(frozen=True)
class ProcessedPayment:
    """幂等记录：某个支付/支付意图已产生履约副作用"""

    key_type: LedgerKeyType
    key: str
    order_id: Optional[str]
    processed_at: datetime

    def __post_init__(self):
        object.__setattr__(self, "processed_at", _ensure_utc(self.processed_at))
