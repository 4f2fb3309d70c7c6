"""add_sales

Revision ID: 0002_add_sales
Revises: 0001_init
"""
from alembic import op
import sqlalchemy as sa

revision = '0002_add_sales'
down_revision = '0001_init'
branch_labels = None
depends_on = None


def upgrade() -> None:
    # order_id has no FK so a sale survives the deletion of its order
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.Integer, nullable=False),
        sa.Column('products', sa.JSON, nullable=False),
        sa.Column('total_amount', sa.Numeric(10,2), nullable=False),
        sa.Column('user_id', sa.Integer, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    # One sale per order
    op.create_index('ix_sales_order_id', 'sales', ['order_id'], unique=True)


def downgrade() -> None:
    op.drop_index('ix_sales_order_id', table_name='sales')
    op.drop_table('sales')
