from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_number', sa.String(20), nullable=False),
        sa.Column('user_id', sa.Integer, nullable=False),
        sa.Column('shipping_address', sa.JSON, nullable=True),
        sa.Column('payment_method', sa.String(50), nullable=True),
        sa.Column('payment_method_details', sa.JSON, nullable=True),
        sa.Column('payment_result', sa.JSON, nullable=True),
        sa.Column('items_price', sa.Numeric(10,2), nullable=False),
        sa.Column('tax_price', sa.Numeric(10,2), nullable=False),
        sa.Column('shipping_price', sa.Numeric(10,2), nullable=False),
        sa.Column('total_price', sa.Numeric(10,2), nullable=False),
        sa.Column('is_paid', sa.Boolean, nullable=False),
        sa.Column('paid_at', sa.DateTime, nullable=True),
        sa.Column('is_delivered', sa.Boolean, nullable=False),
        sa.Column('delivered_at', sa.DateTime, nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
        sqlite_autoincrement=True,
    )
    # Backstop for the check-then-insert in the order number generator
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer, nullable=False),
        sa.Column('product_id', sa.Integer, nullable=False),
        sa.Column('name', sa.String(200), nullable=True),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('price', sa.Numeric(10,2), nullable=True),
        sa.Column('image', sa.String(500), nullable=True),
    )

def downgrade():
    op.drop_table('order_items')
    op.drop_index('ix_orders_order_number', table_name='orders')
    op.drop_table('orders')
