"""create_breeze_order_tables

Revision ID: 3b1f7c2d9a41
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3b1f7c2d9a41'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True, comment='Host user id, NULL for guests'),
        sa.Column('billing_email', sa.String(length=320), nullable=False, comment='Billing email'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD', comment='ISO-4217 code'),
        sa.Column('payment_status', sa.String(length=40), nullable=False, server_default='unpaid',
                  comment='unpaid/pending_remote/awaiting_webhook_confirmation/paid/failed'),
        sa.Column('shipping_total', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0'),
        sa.Column('shipping_method', sa.String(length=200), nullable=True),
        sa.Column('discount_total', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0'),
        sa.Column('tax_total', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0'),
        sa.Column('breeze_customer_id', sa.String(length=200), nullable=True, comment='Remote customer id'),
        sa.Column('breeze_payment_page_id', sa.String(length=200), nullable=True, comment='Remote payment page id'),
        sa.Column('breeze_return_token', sa.String(length=128), nullable=True, comment='One-time return token'),
        sa.Column('transaction_id', sa.String(length=200), nullable=True, comment='Provider reference recorded on payment'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_orders_id', 'orders', ['id'])
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_payment_status', 'orders', ['payment_status'])
    op.create_index('ix_orders_breeze_payment_page_id', 'orders', ['breeze_payment_page_id'])
    op.create_index('ix_orders_user_status', 'orders', ['user_id', 'payment_status'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('short_description', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('line_total', sa.Numeric(precision=15, scale=2), nullable=False, comment='Post-discount line total'),
        sa.Column('catalog_price', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0'),
        sa.Column('image_url', sa.String(length=1000), nullable=True),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_items_id', 'order_items', ['id'])
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    op.create_table(
        'order_notes',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('note', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_notes_id', 'order_notes', ['id'])
    op.create_index('ix_order_notes_order_id', 'order_notes', ['order_id'])

    op.create_table(
        'breeze_customer_links',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('breeze_customer_id', sa.String(length=200), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('user_id'),
    )


def downgrade() -> None:
    op.drop_table('breeze_customer_links')
    op.drop_index('ix_order_notes_order_id', table_name='order_notes')
    op.drop_index('ix_order_notes_id', table_name='order_notes')
    op.drop_table('order_notes')
    op.drop_index('ix_order_items_order_id', table_name='order_items')
    op.drop_index('ix_order_items_id', table_name='order_items')
    op.drop_table('order_items')
    op.drop_index('ix_orders_user_status', table_name='orders')
    op.drop_index('ix_orders_breeze_payment_page_id', table_name='orders')
    op.drop_index('ix_orders_payment_status', table_name='orders')
    op.drop_index('ix_orders_user_id', table_name='orders')
    op.drop_index('ix_orders_id', table_name='orders')
    op.drop_table('orders')
