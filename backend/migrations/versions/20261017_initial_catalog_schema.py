"""initial catalog schema

Revision ID: 20261017_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates the complete Stockroom schema:
- warehouses: storage locations per organization
- categories / subcategories: two-level product taxonomy
- products + price_history: catalog and price/cost audit trail
- feature_definitions / product_features: typed product attributes
- inventory: per (product, warehouse) stock with optimistic version_id
- stock_movements: append-only movement log
- user_preferences: per-user UI state

MULTI-TENANT: organization_id is the auth provider's organization id. There
is no local organizations table.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261017_initial'
down_revision = None
branch_labels = None
depends_on = None


def _tenant_columns():
    return [
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('organization_id', sa.String(length=64), nullable=False),
        sa.Column('created_by_user_id', sa.String(length=64), nullable=False),
        sa.Column('created_by_name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    # ============================================================================
    # warehouses
    # ============================================================================
    op.create_table(
        'warehouses',
        *_tenant_columns(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('address', sa.String(length=200), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('state_province', sa.String(length=100), nullable=False),
        sa.Column('postal_code', sa.String(length=20), nullable=False),
        sa.Column('country', sa.String(length=100), nullable=False),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_warehouses_organization_id', 'warehouses', ['organization_id'])
    op.create_index('ix_warehouses_org_name', 'warehouses', ['organization_id', 'name'])

    # ============================================================================
    # categories / subcategories
    # ============================================================================
    op.create_table(
        'categories',
        *_tenant_columns(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'name', name='uq_categories_org_name'),
    )
    op.create_index('ix_categories_organization_id', 'categories', ['organization_id'])

    op.create_table(
        'subcategories',
        *_tenant_columns(),
        sa.Column('category_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('category_id', 'name', name='uq_subcategories_category_name'),
    )
    op.create_index('ix_subcategories_organization_id', 'subcategories', ['organization_id'])
    op.create_index('ix_subcategories_category_id', 'subcategories', ['category_id'])

    # ============================================================================
    # products / price_history
    # ============================================================================
    op.create_table(
        'products',
        *_tenant_columns(),
        sa.Column('sku', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category_id', sa.String(length=36), nullable=True),
        sa.Column('subcategory_id', sa.String(length=36), nullable=True),
        sa.Column('cost', sa.Numeric(12, 2), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('photo_urls', sa.JSON(), nullable=False),
        sa.Column('link', sa.String(length=2048), nullable=True),
        sa.Column('serial_number', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('low_stock_threshold', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
        sa.ForeignKeyConstraint(['subcategory_id'], ['subcategories.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'sku', name='uq_products_org_sku'),
    )
    op.create_index('ix_products_organization_id', 'products', ['organization_id'])
    op.create_index('ix_products_category_id', 'products', ['category_id'])
    op.create_index('ix_products_subcategory_id', 'products', ['subcategory_id'])
    op.create_index('ix_products_org_name', 'products', ['organization_id', 'name'])
    op.create_index('ix_products_org_status', 'products', ['organization_id', 'status'])

    op.create_table(
        'price_history',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('organization_id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.String(length=36), nullable=False),
        sa.Column('change_type', sa.String(length=16), nullable=False),
        sa.Column('old_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('new_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('old_cost', sa.Numeric(12, 2), nullable=True),
        sa.Column('new_cost', sa.Numeric(12, 2), nullable=True),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('effective_date', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('created_by_user_id', sa.String(length=64), nullable=False),
        sa.Column('created_by_name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_price_history_organization_id', 'price_history', ['organization_id'])
    op.create_index('ix_price_history_product_created', 'price_history', ['product_id', 'created_at'])

    # ============================================================================
    # feature_definitions / product_features
    # ============================================================================
    op.create_table(
        'feature_definitions',
        *_tenant_columns(),
        sa.Column('category_id', sa.String(length=36), nullable=True),
        sa.Column('subcategory_id', sa.String(length=36), nullable=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('input_type', sa.String(length=16), nullable=False),
        sa.Column('options', sa.JSON(), nullable=True),
        sa.Column('unit', sa.String(length=32), nullable=True),
        sa.Column('is_required', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['subcategory_id'], ['subcategories.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_feature_definitions_organization_id', 'feature_definitions', ['organization_id'])
    op.create_index('ix_feature_definitions_org_category', 'feature_definitions',
                    ['organization_id', 'category_id'])
    op.create_index('ix_feature_definitions_org_subcategory', 'feature_definitions',
                    ['organization_id', 'subcategory_id'])

    op.create_table(
        'product_features',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('organization_id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.String(length=36), nullable=False),
        sa.Column('feature_definition_id', sa.String(length=36), nullable=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('is_custom', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['feature_definition_id'], ['feature_definitions.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'name', name='uq_product_features_product_name'),
    )
    op.create_index('ix_product_features_organization_id', 'product_features', ['organization_id'])
    op.create_index('ix_product_features_product_id', 'product_features', ['product_id'])

    # ============================================================================
    # inventory: one row per (product, warehouse)
    # ============================================================================
    op.create_table(
        'inventory',
        *_tenant_columns(),
        sa.Column('product_id', sa.String(length=36), nullable=False),
        sa.Column('warehouse_id', sa.String(length=36), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reserved_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('location_details', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('since_date', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'warehouse_id', name='uq_inventory_product_warehouse'),
        sa.CheckConstraint('quantity >= 0', name='ck_inventory_quantity_nonnegative'),
        sa.CheckConstraint('reserved_quantity >= 0', name='ck_inventory_reserved_nonnegative'),
    )
    op.create_index('ix_inventory_organization_id', 'inventory', ['organization_id'])
    op.create_index('ix_inventory_product_id', 'inventory', ['product_id'])
    op.create_index('ix_inventory_warehouse_id', 'inventory', ['warehouse_id'])
    op.create_index('ix_inventory_org_warehouse', 'inventory', ['organization_id', 'warehouse_id'])

    # ============================================================================
    # stock_movements: append-only log
    # ============================================================================
    op.create_table(
        'stock_movements',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('organization_id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.String(length=36), nullable=False),
        sa.Column('movement_type', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('from_warehouse_id', sa.String(length=36), nullable=True),
        sa.Column('to_warehouse_id', sa.String(length=36), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='completed'),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('reference_number', sa.String(length=100), nullable=True),
        sa.Column('reference_type', sa.String(length=50), nullable=True),
        sa.Column('unit_cost', sa.Numeric(12, 2), nullable=True),
        sa.Column('total_cost', sa.Numeric(14, 2), nullable=True),
        sa.Column('created_by_user_id', sa.String(length=64), nullable=False),
        sa.Column('created_by_name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_by_user_id', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['from_warehouse_id'], ['warehouses.id'], ),
        sa.ForeignKeyConstraint(['to_warehouse_id'], ['warehouses.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_stock_movements_quantity_positive'),
    )
    op.create_index('ix_stock_movements_organization_id', 'stock_movements', ['organization_id'])
    op.create_index('ix_stock_movements_movement_type', 'stock_movements', ['movement_type'])
    op.create_index('ix_stock_movements_status', 'stock_movements', ['status'])
    op.create_index('ix_stock_movements_from_warehouse_id', 'stock_movements', ['from_warehouse_id'])
    op.create_index('ix_stock_movements_to_warehouse_id', 'stock_movements', ['to_warehouse_id'])
    op.create_index('ix_stock_movements_org_created', 'stock_movements', ['organization_id', 'created_at'])
    op.create_index('ix_stock_movements_org_product', 'stock_movements', ['organization_id', 'product_id'])

    # ============================================================================
    # user_preferences
    # ============================================================================
    op.create_table(
        'user_preferences',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('organization_id', sa.String(length=64), nullable=False),
        sa.Column('table_preferences', sa.JSON(), nullable=False),
        sa.Column('ui_preferences', sa.JSON(), nullable=False),
        sa.Column('feature_settings', sa.JSON(), nullable=False),
        sa.Column('navigation_state', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_preferences_user_id', 'user_preferences', ['user_id'], unique=True)
    op.create_index('ix_user_preferences_organization_id', 'user_preferences', ['organization_id'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('user_preferences')
    op.drop_table('stock_movements')
    op.drop_table('inventory')
    op.drop_table('product_features')
    op.drop_table('feature_definitions')
    op.drop_table('price_history')
    op.drop_table('products')
    op.drop_table('subcategories')
    op.drop_table('categories')
    op.drop_table('warehouses')
