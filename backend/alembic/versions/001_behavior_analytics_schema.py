"""Behavior analytics schema: event store plus the shop tables the reports read.

Revision ID: 001_behavior_analytics
Revises:
Create Date: 2025-03-02

"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001_behavior_analytics'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # ### Customers table ###
    op.create_table(
        'Customers',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255)),
        sa.Column('email', sa.String(255), unique=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ### Products table ###
    op.create_table(
        'Products',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('price', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), server_default='0'),
        sa.Column('status', sa.String(50), server_default='active'),
        sa.Column('category', sa.String(100)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_products_category', 'Products', ['category'])
    op.create_index('idx_products_stock', 'Products', ['stock_quantity'])

    # ### Orders table ###
    op.create_table(
        'Orders',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('order_number', sa.String(50), unique=True),
        sa.Column('total_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('order_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('receive_date', sa.DateTime(timezone=True)),
        sa.Column('status', sa.String(50), server_default='pending'),
        sa.Column('payment_method', sa.String(50)),
        sa.Column('delivery_address', sa.String(500)),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('Customers.id'), index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_Orders_order_date', 'Orders', ['order_date'])

    # ### Order_Detail table ###
    op.create_table(
        'Order_Detail',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('quantity', sa.Integer(), server_default='1'),
        sa.Column('price', sa.Numeric(precision=15, scale=2), server_default='0'),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('Orders.id', ondelete='CASCADE'), index=True),
        sa.Column('product_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('Products.id'), index=True),
    )

    # ### Viewed_Products table ###
    op.create_table(
        'Viewed_Products',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('Customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('Products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('viewed_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('customer_id', 'product_id', name='uq_viewed_products_customer_product'),
    )

    # ### User_Behavior table (event store) ###
    op.create_table(
        'User_Behavior',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('event_id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()')),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('session_id', sa.String(255), nullable=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('entity_id', sa.String(255), nullable=True),
        sa.Column('entity_type', sa.String(50), nullable=True),
        sa.Column('page_url', sa.Text(), nullable=True),
        sa.Column('referrer_url', sa.Text(), nullable=True),
        sa.Column('device_info', postgresql.JSONB(), nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('event_data', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_user_behavior_type_created', 'User_Behavior', ['event_type', 'created_at'])
    op.create_index('idx_user_behavior_session_created', 'User_Behavior', ['session_id', 'created_at'])
    op.create_index('idx_user_behavior_customer', 'User_Behavior', ['customer_id'])
    op.create_index('idx_user_behavior_created', 'User_Behavior', ['created_at'])


def downgrade() -> None:
    op.drop_table('User_Behavior')
    op.drop_table('Viewed_Products')
    op.drop_table('Order_Detail')
    op.drop_table('Orders')
    op.drop_table('Products')
    op.drop_table('Customers')
