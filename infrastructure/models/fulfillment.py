"""
履约数据库模型 - 幂等账本与订单蓝图
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, Index, UniqueConstraint
from datetime import datetime, timezone

from .base import Base


class ProcessedPaymentModel(Base):
    """
    幂等账本表

    每个 (key_type, key) 只有一行；同一次标记写入的 payment / payment_intent
    两行在同一条 INSERT 语句中落盘
    """
    __tablename__ = "processed_payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key_type = Column(String(20), nullable=False, comment="键类型: payment/payment_intent")
    key = Column(String(200), nullable=False, comment="PayMongo payment id 或 payment intent id")
    order_id = Column(String(200), nullable=True, comment="创建的 Shopify 订单ID")
    processed_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="处理时间"
    )

    __table_args__ = (
        UniqueConstraint("key_type", "key", name="uq_processed_payments_key"),
        Index("ix_processed_payments_order_id", "order_id"),
    )

    def __repr__(self):
        return (
            f"<ProcessedPaymentModel(key_type='{self.key_type}', key='{self.key}', "
            f"order_id='{self.order_id}')>"
        )


class OrderBlueprintModel(Base):
    """
    订单蓝图表

    订阅受理时写入一次，不更新、不删除
    """
    __tablename__ = "order_blueprints"

    payment_intent_id = Column(String(200), primary_key=True, comment="PayMongo payment intent id")
    subscription_id = Column(String(200), nullable=True, index=True, comment="PayMongo subscription id")
    payload = Column(JSON, nullable=False, comment="订单创建数据")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )

    def __repr__(self):
        return f"<OrderBlueprintModel(payment_intent_id='{self.payment_intent_id}')>"
