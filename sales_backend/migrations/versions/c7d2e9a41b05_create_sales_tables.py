"""create_sales_tables

Revision ID: c7d2e9a41b05
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'c7d2e9a41b05'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create sales and sale_line_items tables."""
    op.create_table(
        'sales',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.String(length=64), nullable=False),
        sa.Column('client', sa.String(length=255), nullable=True),
        sa.Column('total', sa.Numeric(precision=20, scale=4), nullable=False),
        sa.Column('total_profit', sa.Numeric(precision=20, scale=4), nullable=False),
        sa.Column(
            'status',
            sa.Enum('pending', 'completed', 'failed', 'cancelled', name='salestatus'),
            nullable=False,
        ),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sales_owner_created_at', 'sales', ['owner_id', 'created_at'])
    op.create_index('ix_sales_created_at', 'sales', ['created_at'])
    op.create_index('ix_sales_status', 'sales', ['status'])

    op.create_table(
        'sale_line_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('sale_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(precision=20, scale=4), nullable=False),
        sa.Column('purchase_price', sa.Numeric(precision=20, scale=4), nullable=True),
        sa.Column('profit', sa.Numeric(precision=20, scale=4), nullable=True),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity >= 1', name='ck_sale_line_quantity_positive'),
        sa.CheckConstraint('price >= 0', name='ck_sale_line_price_non_negative'),
        sa.CheckConstraint(
            'purchase_price IS NULL OR purchase_price >= 0',
            name='ck_sale_line_purchase_price_non_negative',
        ),
    )
    op.create_index('ix_sale_line_items_sale', 'sale_line_items', ['sale_id'])
    op.create_index('ix_sale_line_items_product', 'sale_line_items', ['product_id'])


def downgrade() -> None:
    """Drop sales and sale_line_items tables."""
    op.drop_index('ix_sale_line_items_product', table_name='sale_line_items')
    op.drop_index('ix_sale_line_items_sale', table_name='sale_line_items')
    op.drop_table('sale_line_items')
    op.drop_index('ix_sales_status', table_name='sales')
    op.drop_index('ix_sales_created_at', table_name='sales')
    op.drop_index('ix_sales_owner_created_at', table_name='sales')
    op.drop_table('sales')
    op.execute("DROP TYPE IF EXISTS salestatus")
