"""Initial schema: orders, catalog compositions, purchasing, report caches

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. customers, orders, order_items, payments (authoritative sales data)
2. products, items, product_items (catalog + compositions, product cost basis columns)
3. purchases, purchase_items (purchase lines feeding HPP)
4. report_transaction_cache (one denormalized row per live order)
5. report_sales_daily (one rollup row per date)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated=True):
    cols = [sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()))
    return cols


def upgrade():
    # ==========================================================================
    # 1. CUSTOMERS / CATALOG
    # ==========================================================================
    op.create_table('customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_customers'),
        sa.UniqueConstraint('email', name='uq_customers_email'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_customers_name', 'customers', ['name'])

    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('cost', sa.Numeric(15, 2), nullable=True),
        sa.Column('cost_method', sa.String(length=16), nullable=True),
        sa.Column('cost_recalculated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sa.UniqueConstraint('sku', name='uq_products_sku'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_products_name', 'products', ['name'])
    op.create_index('ix_products_active', 'products', ['is_active'])

    op.create_table('items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=False, server_default='pcs'),
        sa.Column('cost_per_unit', sa.Numeric(15, 2), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_items'),
        sa.UniqueConstraint('item_code', name='uq_items_item_code'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_items_active', 'items', ['is_active'])

    op.create_table('product_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('quantity_needed', sa.Numeric(15, 3), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=True),
        sa.Column('cost_per_unit', sa.Numeric(15, 2), nullable=True),
        sa.Column('is_critical', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_product_items_product_id_products', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], name='fk_product_items_item_id_items', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_product_items'),
        sa.UniqueConstraint('product_id', 'item_id', name='uq_product_items_product_item'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_product_items_product_id', 'product_items', ['product_id'])
    op.create_index('ix_product_items_item_id', 'product_items', ['item_id'])

    # ==========================================================================
    # 2. SALES
    # ==========================================================================
    op.create_table('orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=64), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('customer_info', sa.JSON(), nullable=True),
        sa.Column('order_type', sa.String(length=16), nullable=False, server_default='dine_in'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('table_number', sa.String(length=16), nullable=True),
        sa.Column('guest_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('subtotal', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('discount_amount', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('tax_amount', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('service_charge', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], name='fk_orders_customer_id_customers', ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
        sa.UniqueConstraint('order_number', name='uq_orders_order_number'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'])
    op.create_index('ix_orders_order_type', 'orders', ['order_type'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])
    op.create_index('ix_orders_status_created', 'orders', ['status', 'created_at'])
    op.create_index('ix_orders_created_deleted', 'orders', ['created_at', 'deleted_at'])

    op.create_table('order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('total_price', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], name='fk_order_items_order_id_orders', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_order_items_product_id_products', ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_order_items'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

    op.create_table('payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False, server_default='cash'),
        sa.Column('amount', sa.Numeric(15, 2), nullable=False),
        sa.Column('bank', sa.String(length=64), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], name='fk_payments_order_id_orders', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_payments'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_payments_order_id', 'payments', ['order_id'])

    # ==========================================================================
    # 3. PURCHASING
    # ==========================================================================
    op.create_table('purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_number', sa.String(length=64), nullable=False),
        sa.Column('supplier_name', sa.String(length=255), nullable=True),
        sa.Column('purchase_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('total_amount', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_purchases'),
        sa.UniqueConstraint('purchase_number', name='uq_purchases_purchase_number'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_purchases_purchase_date', 'purchases', ['purchase_date'])

    op.create_table('purchase_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('quantity_ordered', sa.Numeric(15, 3), nullable=False),
        sa.Column('quantity_received', sa.Numeric(15, 3), nullable=False, server_default='0'),
        sa.Column('unit', sa.String(length=32), nullable=True),
        sa.Column('unit_cost', sa.Numeric(15, 2), nullable=False),
        sa.Column('total_cost', sa.Numeric(15, 2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], name='fk_purchase_items_purchase_id_purchases', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], name='fk_purchase_items_item_id_items', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_purchase_items'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_purchase_items_purchase_id', 'purchase_items', ['purchase_id'])
    op.create_index('ix_purchase_items_item_id', 'purchase_items', ['item_id'])
    op.create_index('ix_purchase_items_item_created', 'purchase_items', ['item_id', 'created_at'])

    # ==========================================================================
    # 4. REPORT CACHES (derived, rebuildable with "flask reports update-cache")
    # ==========================================================================
    op.create_table('report_transaction_cache',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=64), nullable=False),
        sa.Column('order_date', sa.Date(), nullable=False),
        sa.Column('order_time', sa.Time(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('table_number', sa.String(length=16), nullable=True),
        sa.Column('order_type', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('total_amount', sa.Numeric(15, 2), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('items_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('items_detail', sa.JSON(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_report_transaction_cache'),
        sa.UniqueConstraint('order_id', name='uq_report_transaction_cache_order_id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_report_transaction_cache_order_date', 'report_transaction_cache', ['order_date'])
    op.create_index('ix_report_transaction_cache_status', 'report_transaction_cache', ['status'])
    op.create_index('ix_report_transaction_cache_date_time', 'report_transaction_cache', ['order_date', 'order_time'])

    op.create_table('report_sales_daily',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('report_date', sa.Date(), nullable=False),
        sa.Column('total_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completed_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cancelled_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_revenue', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('total_discount', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('total_tax', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('average_order_value', sa.Numeric(15, 2), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_report_sales_daily'),
        sa.UniqueConstraint('report_date', name='uq_report_sales_daily_report_date'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_report_sales_daily_report_date', 'report_sales_daily', ['report_date'])


def downgrade():
    op.drop_table('report_sales_daily')
    op.drop_table('report_transaction_cache')
    op.drop_table('purchase_items')
    op.drop_table('purchases')
    op.drop_table('payments')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('product_items')
    op.drop_table('items')
    op.drop_table('products')
    op.drop_table('customers')
