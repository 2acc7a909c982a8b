"""live_sync_schema

Revision ID: 001_live_sync_schema
Revises:
Create Date: 2026-10-01 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_live_sync_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


MONEY = sa.Numeric(12, 2)
QTY = sa.Numeric(12, 2)


def _synced_at() -> sa.Column:
    return sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True)


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table('product_categories'):
        op.create_table('product_categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('cat_type', sa.Integer(), nullable=True),
        _synced_at(),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_product_categories_id'), 'product_categories', ['id'], unique=False)
        op.create_index(op.f('ix_product_categories_code'), 'product_categories', ['code'], unique=True)

    if not inspector.has_table('brands'):
        op.create_table('brands',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        _synced_at(),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_brands_id'), 'brands', ['id'], unique=False)
        op.create_index(op.f('ix_brands_code'), 'brands', ['code'], unique=True)

    if not inspector.has_table('customers'):
        op.create_table('customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('legacy_code', sa.String(length=50), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=50), nullable=True),
        sa.Column('zip_code', sa.String(length=20), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('credit_limit', MONEY, nullable=True),
        sa.Column('payment_terms', sa.String(length=50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('is_placeholder', sa.Boolean(), nullable=False, server_default=sa.false()),
        _synced_at(),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_customers_id'), 'customers', ['id'], unique=False)
        op.create_index(op.f('ix_customers_legacy_code'), 'customers', ['legacy_code'], unique=True)

    if not inspector.has_table('products'):
        op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('legacy_id', sa.Integer(), nullable=True),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('brand', sa.String(length=255), nullable=False),
        sa.Column('size', sa.String(length=100), nullable=False),
        sa.Column('category_code', sa.String(length=50), nullable=True),
        sa.Column('product_type', sa.String(length=50), nullable=False),
        sa.Column('quality', sa.String(length=50), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('weight', sa.Numeric(10, 2), nullable=True),
        sa.Column('manufacturer_code', sa.String(length=100), nullable=True),
        sa.Column('last_cost', MONEY, nullable=True),
        sa.Column('sale_price', MONEY, nullable=True),
        sa.Column('is_tire', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('is_placeholder', sa.Boolean(), nullable=False, server_default=sa.false()),
        _synced_at(),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_products_id'), 'products', ['id'], unique=False)
        op.create_index(op.f('ix_products_legacy_id'), 'products', ['legacy_id'], unique=True)
        op.create_index(op.f('ix_products_sku'), 'products', ['sku'], unique=True)

    if not inspector.has_table('locations'):
        op.create_table('locations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('legacy_code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('is_placeholder', sa.Boolean(), nullable=False, server_default=sa.true()),
        _synced_at(),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_locations_id'), 'locations', ['id'], unique=False)
        op.create_index(op.f('ix_locations_legacy_code'), 'locations', ['legacy_code'], unique=True)

    if not inspector.has_table('inventory_levels'):
        op.create_table('inventory_levels',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('location_id', sa.Integer(), nullable=False),
        sa.Column('quantity', QTY, nullable=False),
        sa.Column('reserved_qty', QTY, nullable=False),
        sa.Column('available_qty', QTY, nullable=False),
        sa.Column('max_qty', QTY, nullable=True),
        sa.Column('min_qty', QTY, nullable=True),
        _synced_at(),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'location_id', name='uq_inventory_product_location')
        )
        op.create_index(op.f('ix_inventory_levels_id'), 'inventory_levels', ['id'], unique=False)
        op.create_index(op.f('ix_inventory_levels_product_id'), 'inventory_levels', ['product_id'], unique=False)
        op.create_index(op.f('ix_inventory_levels_location_id'), 'inventory_levels', ['location_id'], unique=False)

    if not inspector.has_table('vehicles'):
        op.create_table('vehicles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('legacy_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('vin', sa.String(length=50), nullable=True),
        sa.Column('make', sa.String(length=100), nullable=True),
        sa.Column('model', sa.String(length=100), nullable=True),
        sa.Column('year', sa.String(length=10), nullable=True),
        sa.Column('license_no', sa.String(length=50), nullable=True),
        sa.Column('mileage', sa.Integer(), nullable=True),
        _synced_at(),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_vehicles_id'), 'vehicles', ['id'], unique=False)
        op.create_index(op.f('ix_vehicles_legacy_id'), 'vehicles', ['legacy_id'], unique=True)
        op.create_index(op.f('ix_vehicles_customer_id'), 'vehicles', ['customer_id'], unique=False)

    if not inspector.has_table('invoices'):
        op.create_table('invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_key', sa.String(length=100), nullable=False),
        sa.Column('invoice_number', sa.String(length=50), nullable=False),
        sa.Column('site_no', sa.Integer(), nullable=True),
        sa.Column('location_id', sa.Integer(), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('invoice_date', sa.Date(), nullable=True),
        sa.Column('salesperson', sa.String(length=255), nullable=True),
        sa.Column('subtotal', MONEY, nullable=False),
        sa.Column('tax_amount', MONEY, nullable=False),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('gross_profit', MONEY, nullable=False),
        sa.Column('parts_cost', MONEY, nullable=False),
        sa.Column('labor_cost', MONEY, nullable=False),
        sa.Column('is_placeholder', sa.Boolean(), nullable=False, server_default=sa.false()),
        _synced_at(),
        *_timestamps(),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_invoices_id'), 'invoices', ['id'], unique=False)
        op.create_index(op.f('ix_invoices_invoice_key'), 'invoices', ['invoice_key'], unique=True)
        op.create_index(op.f('ix_invoices_invoice_number'), 'invoices', ['invoice_number'], unique=False)
        op.create_index(op.f('ix_invoices_customer_id'), 'invoices', ['customer_id'], unique=False)
        op.create_index(op.f('ix_invoices_invoice_date'), 'invoices', ['invoice_date'], unique=False)

    if not inspector.has_table('invoice_line_items'):
        op.create_table('invoice_line_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_code', sa.String(length=100), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('quantity', QTY, nullable=False),
        sa.Column('unit_price', MONEY, nullable=False),
        sa.Column('line_total', MONEY, nullable=False),
        sa.Column('cost', MONEY, nullable=False),
        sa.Column('unit_cost', MONEY, nullable=False),
        sa.Column('parts_cost', MONEY, nullable=False),
        sa.Column('labor_cost', MONEY, nullable=False),
        sa.Column('fet', MONEY, nullable=False),
        sa.Column('gross_profit', MONEY, nullable=False),
        sa.Column('gross_profit_margin', sa.Numeric(5, 2), nullable=False),
        _synced_at(),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_id', 'line_number', name='uq_line_item_invoice_line')
        )
        op.create_index(op.f('ix_invoice_line_items_id'), 'invoice_line_items', ['id'], unique=False)
        op.create_index(op.f('ix_invoice_line_items_invoice_id'), 'invoice_line_items', ['invoice_id'], unique=False)
        op.create_index(op.f('ix_invoice_line_items_product_id'), 'invoice_line_items', ['product_id'], unique=False)

    if not inspector.has_table('sync_runs'):
        op.create_table('sync_runs',
        sa.Column('run_id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('source', sa.String(length=100), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('summary', sa.JSON(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('run_id')
        )
        op.create_index(op.f('ix_sync_runs_status'), 'sync_runs', ['status'], unique=False)
        op.create_index(op.f('ix_sync_runs_expires_at'), 'sync_runs', ['expires_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    # orden inverso a las llaves foraneas
    for table in (
        'sync_runs',
        'invoice_line_items',
        'invoices',
        'vehicles',
        'inventory_levels',
        'locations',
        'products',
        'customers',
        'brands',
        'product_categories',
    ):
        if inspector.has_table(table):
            op.drop_table(table)
