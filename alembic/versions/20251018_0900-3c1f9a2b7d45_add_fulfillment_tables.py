"""add_fulfillment_tables

Revision ID: 3c1f9a2b7d45
Revises:
Create Date: 2025-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3c1f9a2b7d45'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Idempotency ledger
    op.create_table(
        'processed_payments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('key_type', sa.String(length=20), nullable=False, comment='键类型: payment/payment_intent'),
        sa.Column('key', sa.String(length=200), nullable=False, comment='PayMongo payment id 或 payment intent id'),
        sa.Column('order_id', sa.String(length=200), nullable=True, comment='创建的 Shopify 订单ID'),
        sa.Column('processed_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='处理时间'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key_type', 'key', name='uq_processed_payments_key'),
    )
    op.create_index('ix_processed_payments_order_id', 'processed_payments', ['order_id'], unique=False)

    # Order blueprints, written once at subscription intake
    op.create_table(
        'order_blueprints',
        sa.Column('payment_intent_id', sa.String(length=200), nullable=False, comment='PayMongo payment intent id'),
        sa.Column('subscription_id', sa.String(length=200), nullable=True, comment='PayMongo subscription id'),
        sa.Column('payload', sa.JSON(), nullable=False, comment='订单创建数据'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='创建时间'),
        sa.PrimaryKeyConstraint('payment_intent_id'),
    )
    op.create_index('ix_order_blueprints_subscription_id', 'order_blueprints', ['subscription_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_order_blueprints_subscription_id', table_name='order_blueprints')
    op.drop_table('order_blueprints')
    op.drop_index('ix_processed_payments_order_id', table_name='processed_payments')
    op.drop_table('processed_payments')
