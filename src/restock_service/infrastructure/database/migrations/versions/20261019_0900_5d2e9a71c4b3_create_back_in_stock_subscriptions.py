"""Create back_in_stock_subscriptions

Revision ID: 5d2e9a71c4b3
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5d2e9a71c4b3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('back_in_stock_subscriptions',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('shop', sa.String(length=255), nullable=False),
    sa.Column('email', sa.String(length=320), nullable=False),
    sa.Column('variant_id', sa.String(length=64), nullable=False),
    sa.Column('inventory_item_id', sa.String(length=64), nullable=True),
    sa.Column('product_id', sa.String(length=64), nullable=True),
    sa.Column('product_title', sa.String(length=500), nullable=True),
    sa.Column('variant_title', sa.String(length=255), nullable=True),
    sa.Column('product_handle', sa.String(length=255), nullable=True),
    sa.Column('subscribed_price', sa.Float(), nullable=True),
    sa.Column('notified', sa.Boolean(), server_default=sa.false(), nullable=False),
    sa.Column('opened', sa.Boolean(), server_default=sa.false(), nullable=False),
    sa.Column('clicked', sa.Boolean(), server_default=sa.false(), nullable=False),
    sa.Column('purchased', sa.Boolean(), server_default=sa.false(), nullable=False),
    sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('shop', 'email', 'variant_id', name='uq_subscription_identity'),
    )
    # Serves the claim UPDATE: WHERE shop = ? AND variant_id = ? AND notified = false
    op.create_index('ix_subscriptions_cohort', 'back_in_stock_subscriptions', ['shop', 'variant_id', 'notified'], unique=False)
    op.create_index('ix_subscriptions_inventory_item', 'back_in_stock_subscriptions', ['shop', 'inventory_item_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_subscriptions_inventory_item', table_name='back_in_stock_subscriptions')
    op.drop_index('ix_subscriptions_cohort', table_name='back_in_stock_subscriptions')
    op.drop_table('back_in_stock_subscriptions')
