"""create_allocation_tables

Revision ID: 001_allocation_tables
Revises:
Create Date: 2026-10-19

Creates raffles, orders and assigned_numbers.

The primary key (raffle_id, number) on assigned_numbers is what makes a
number impossible to bind twice within a raffle. The partial unique index
on raffles.status keeps at most one raffle active.

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001_allocation_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'raffles',
        sa.Column('raffle_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('total_numbers', sa.Integer(), nullable=False),
        sa.Column('first_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('price_per_number', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('total_numbers > 0', name='chk_raffle_total_positive'),
        sa.CheckConstraint('price_per_number > 0', name='chk_raffle_price_positive'),
        sa.CheckConstraint(
            "status IN ('active', 'paused', 'finished')", name='chk_raffle_status'
        ),
    )
    op.create_index(
        'uq_raffles_single_active',
        'raffles',
        ['status'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )

    op.create_table(
        'orders',
        sa.Column('order_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'raffle_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('raffles.raffle_id'),
            nullable=False,
        ),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_method', sa.String(20), nullable=False),
        sa.Column('client_transaction_reference', sa.String(100), nullable=True, unique=True),
        sa.Column('provider_transaction_id', sa.String(100), nullable=True),
        sa.Column('buyer_name', sa.String(150), nullable=True),
        sa.Column('buyer_phone', sa.String(30), nullable=True),
        sa.Column('buyer_email', sa.String(255), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('quantity > 0', name='chk_order_quantity_positive'),
        sa.CheckConstraint(
            "status IN ('pending', 'in_progress', 'paid', 'cancelled')",
            name='chk_order_status',
        ),
    )
    op.create_index('idx_orders_raffle_created', 'orders', ['raffle_id', 'created_at'])
    op.create_index('idx_orders_status', 'orders', ['status'])

    op.create_table(
        'assigned_numbers',
        sa.Column(
            'raffle_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('raffles.raffle_id'),
            primary_key=True,
        ),
        sa.Column('number', sa.Integer(), primary_key=True),
        sa.Column(
            'order_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('orders.order_id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('status', sa.String(20), nullable=False, server_default='assigned'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('idx_assigned_numbers_order', 'assigned_numbers', ['order_id'])


def downgrade() -> None:
    op.drop_index('idx_assigned_numbers_order', table_name='assigned_numbers')
    op.drop_table('assigned_numbers')
    op.drop_index('idx_orders_status', table_name='orders')
    op.drop_index('idx_orders_raffle_created', table_name='orders')
    op.drop_table('orders')
    op.drop_index('uq_raffles_single_active', table_name='raffles')
    op.drop_table('raffles')
