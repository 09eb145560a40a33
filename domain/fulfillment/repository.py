"""
履约仓储接口 - 幂等账本与蓝图存储的抽象

两者是同一持久化存储中两个独立的分区，只有对账流程和订阅受理流程会写入。
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import LedgerKeyType, OrderBlueprint, ProcessedPayment


class IdempotencyLedger(ABC):
    """幂等账本：记录哪些支付/支付意图已经创建过订单"""

    @abstractmethod
    async def is_processed(
        self,
        payment_id: Optional[str] = None,
        payment_intent_id: Optional[str] = None,
    ) -> bool:
        """任一非空键已有记录即返回 True；两个键都为空属于调用方错误（ValueError）"""
        pass

    @abstractmethod
    async def mark_processed(
        self,
        payment_id: Optional[str] = None,
        payment_intent_id: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> None:
        """幂等写入；同一次调用给出的键原子地一起落盘，返回前已持久化"""
        pass

    @abstractmethod
    async def get_record(self, key_type: LedgerKeyType, key: str) -> Optional[ProcessedPayment]:
        """读取单条记录（含已创建的订单号），不存在返回 None"""
        pass


class BlueprintStore(ABC):
    """订单蓝图存储：按 payment_intent_id 写一次、可重复读"""

    @abstractmethod
    async def save(self, payment_intent_id: str, blueprint: OrderBlueprint) -> None:
        """保存蓝图；已存在时保留首次写入的内容"""
        pass

    @abstractmethod
    async def get(self, payment_intent_id: str) -> Optional[OrderBlueprint]:
        """读取蓝图，不存在返回 None"""
        pass
