"""
履约仓储实现 - 使用SQLAlchemy实现幂等账本与蓝图存储
"""
from typing import Optional
from datetime import datetime, timezone

from sqlalchemy import select, or_, and_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from domain.fulfillment.entity import OrderBlueprint, ProcessedPayment, LedgerKeyType
from domain.fulfillment.repository import IdempotencyLedger, BlueprintStore
from infrastructure.models.fulfillment import ProcessedPaymentModel, OrderBlueprintModel
from core.logging_config import get_logger


logger = get_logger(__name__)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _ledger_keys(payment_id: Optional[str], payment_intent_id: Optional[str]) -> list[tuple[str, str]]:
    keys = []
    if payment_id:
        keys.append((LedgerKeyType.PAYMENT.value, payment_id))
    if payment_intent_id:
        keys.append((LedgerKeyType.PAYMENT_INTENT.value, payment_intent_id))
    if not keys:
        raise ValueError("payment_id or payment_intent_id is required")
    return keys


class SQLAlchemyIdempotencyLedger(IdempotencyLedger):
    """幂等账本的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: ProcessedPaymentModel) -> ProcessedPayment:
        return ProcessedPayment(
            key_type=LedgerKeyType(model.key_type),
            key=model.key,
            order_id=model.order_id,
            processed_at=model.processed_at,
        )

    async def is_processed(
        self,
        payment_id: Optional[str] = None,
        payment_intent_id: Optional[str] = None,
    ) -> bool:
        keys = _ledger_keys(payment_id, payment_intent_id)
        result = await self.session.execute(
            select(ProcessedPaymentModel.id).where(
                or_(*[
                    and_(ProcessedPaymentModel.key_type == kt, ProcessedPaymentModel.key == k)
                    for kt, k in keys
                ])
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def mark_processed(
        self,
        payment_id: Optional[str] = None,
        payment_intent_id: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> None:
        keys = _ledger_keys(payment_id, payment_intent_id)
        now = datetime.now(timezone.utc)
        rows = [
            {"key_type": kt, "key": k, "order_id": order_id, "processed_at": now}
            for kt, k in keys
        ]

        insert = _DIALECT_INSERTS.get(self.session.bind.dialect.name)
        if insert is not None:
            # 单条 INSERT ... ON CONFLICT DO NOTHING：两键原子写入，已存在的键保持首写
            stmt = insert(ProcessedPaymentModel).values(rows).on_conflict_do_nothing(
                index_elements=["key_type", "key"]
            )
            await self.session.execute(stmt)
        else:
            existing = await self._existing_keys(keys)
            for row in rows:
                if (row["key_type"], row["key"]) not in existing:
                    self.session.add(ProcessedPaymentModel(**row))
        await self.session.flush()

        logger.info(
            "ledger_marked_processed",
            payment_id=payment_id,
            payment_intent_id=payment_intent_id,
            order_id=order_id,
        )

    async def get_record(self, key_type: LedgerKeyType, key: str) -> Optional[ProcessedPayment]:
        """读取单条幂等记录；手动建单重复调用时据此返回已创建的订单号"""
        result = await self.session.execute(
            select(ProcessedPaymentModel).where(
                ProcessedPaymentModel.key_type == key_type.value,
                ProcessedPaymentModel.key == key,
            )
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def _existing_keys(self, keys: list[tuple[str, str]]) -> set[tuple[str, str]]:
        result = await self.session.execute(
            select(ProcessedPaymentModel.key_type, ProcessedPaymentModel.key).where(
                or_(*[
                    and_(ProcessedPaymentModel.key_type == kt, ProcessedPaymentModel.key == k)
                    for kt, k in keys
                ])
            )
        )
        return {(row[0], row[1]) for row in result.all()}


class SQLAlchemyBlueprintStore(BlueprintStore):
    """订单蓝图存储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def save(self, payment_intent_id: str, blueprint: OrderBlueprint) -> None:
        if not payment_intent_id:
            raise ValueError("payment_intent_id is required")
        existing = await self.session.get(OrderBlueprintModel, payment_intent_id)
        if existing is not None:
            logger.warning("blueprint_already_exists", payment_intent_id=payment_intent_id)
            return
        self.session.add(
            OrderBlueprintModel(
                payment_intent_id=payment_intent_id,
                subscription_id=blueprint.subscription_id,
                payload=blueprint.to_dict(),
                created_at=blueprint.created_at or datetime.now(timezone.utc),
            )
        )
        await self.session.flush()
        logger.info(
            "blueprint_saved",
            payment_intent_id=payment_intent_id,
            subscription_id=blueprint.subscription_id,
        )

    async def get(self, payment_intent_id: str) -> Optional[OrderBlueprint]:
        if not payment_intent_id:
            return None
        result = await self.session.execute(
            select(OrderBlueprintModel).where(OrderBlueprintModel.payment_intent_id == payment_intent_id)
        )
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return OrderBlueprint.from_dict(model.payload, created_at=model.created_at)
