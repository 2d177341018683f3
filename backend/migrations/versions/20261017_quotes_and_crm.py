"""quotes, clients, companies, services and category templates

Revision ID: 20261017_quotes
Revises: 20261017_initial
Create Date: 2026-10-17 12:00:00.000000

Adds the sales side of Stockroom:
- clients: quote recipients
- companies / contacts: business accounts and their people
- service_categories / services: billable services for quotes
- quotes / quote_items / quote_events / quote_comments / quote_access_tokens
- category_templates and their categories, subcategories and features,
  shared by every organization, plus template_import_jobs
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261017_quotes'
down_revision = '20261017_initial'
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


def _address_columns():
    return [
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('state_province', sa.String(length=100), nullable=True),
        sa.Column('postal_code', sa.String(length=20), nullable=True),
        sa.Column('country', sa.String(length=100), nullable=True),
    ]


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    # ============================================================================
    # clients / companies / contacts
    # ============================================================================
    op.create_table(
        'clients',
        *_tenant_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('company', sa.String(length=255), nullable=True),
        *_address_columns(),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_clients_organization_id', 'clients', ['organization_id'])
    op.create_index('ix_clients_org_email', 'clients', ['organization_id', 'email'])
    op.create_index('ix_clients_org_created', 'clients', ['organization_id', 'created_at'])

    op.create_table(
        'companies',
        *_tenant_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('website', sa.String(length=2048), nullable=True),
        sa.Column('industry', sa.String(length=100), nullable=True),
        sa.Column('company_size', sa.String(length=50), nullable=True),
        sa.Column('tax_id', sa.String(length=50), nullable=True),
        *_address_columns(),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'name', name='uq_companies_org_name'),
    )
    op.create_index('ix_companies_organization_id', 'companies', ['organization_id'])

    op.create_table(
        'contacts',
        *_tenant_columns(),
        sa.Column('company_id', sa.String(length=36), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('mobile', sa.String(length=50), nullable=True),
        sa.Column('title', sa.String(length=100), nullable=True),
        sa.Column('department', sa.String(length=100), nullable=True),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('preferred_contact_method', sa.String(length=16), nullable=True),
        sa.Column('has_different_address', sa.Boolean(), nullable=False, server_default='0'),
        *_address_columns(),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('birthday', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_contacts_organization_id', 'contacts', ['organization_id'])
    op.create_index('ix_contacts_company_id', 'contacts', ['company_id'])
    op.create_index('ix_contacts_company_email', 'contacts', ['company_id', 'email'])

    # ============================================================================
    # service_categories / services
    # ============================================================================
    op.create_table(
        'service_categories',
        *_tenant_columns(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('color', sa.String(length=16), nullable=True),
        sa.Column('icon', sa.String(length=50), nullable=True),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'name', name='uq_service_categories_org_name'),
    )
    op.create_index('ix_service_categories_organization_id', 'service_categories', ['organization_id'])

    op.create_table(
        'services',
        *_tenant_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('service_category_id', sa.String(length=36), nullable=True),
        sa.Column('rate', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('rate_type', sa.String(length=16), nullable=False, server_default='fixed'),
        sa.Column('unit', sa.String(length=50), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.ForeignKeyConstraint(['service_category_id'], ['service_categories.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'name', name='uq_services_org_name'),
    )
    op.create_index('ix_services_organization_id', 'services', ['organization_id'])
    op.create_index('ix_services_service_category_id', 'services', ['service_category_id'])
    op.create_index('ix_services_org_status', 'services', ['organization_id', 'status'])

    # ============================================================================
    # quotes and their children
    # ============================================================================
    op.create_table(
        'quotes',
        *_tenant_columns(),
        sa.Column('quote_number', sa.String(length=32), nullable=False),
        sa.Column('client_id', sa.String(length=36), nullable=False),
        sa.Column('company_id', sa.String(length=36), nullable=True),
        sa.Column('assigned_to_user_id', sa.String(length=64), nullable=True),
        sa.Column('assigned_to_name', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('valid_from', sa.Date(), nullable=True),
        sa.Column('valid_until', sa.Date(), nullable=True),
        sa.Column('subtotal', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('discount_type', sa.String(length=16), nullable=True),
        sa.Column('discount_value', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('discount_amount', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('tax_rate', sa.Numeric(precision=5, scale=2), nullable=False, server_default='0'),
        sa.Column('tax_amount', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('terms_and_conditions', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('internal_notes', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('declined_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'quote_number', name='uq_quotes_org_number'),
    )
    op.create_index('ix_quotes_organization_id', 'quotes', ['organization_id'])
    op.create_index('ix_quotes_client_id', 'quotes', ['client_id'])
    op.create_index('ix_quotes_company_id', 'quotes', ['company_id'])
    op.create_index('ix_quotes_assigned_to_user_id', 'quotes', ['assigned_to_user_id'])
    op.create_index('ix_quotes_org_status', 'quotes', ['organization_id', 'status'])
    op.create_index('ix_quotes_org_created', 'quotes', ['organization_id', 'created_at'])

    op.create_table(
        'quote_items',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('organization_id', sa.String(length=64), nullable=False),
        sa.Column('quote_id', sa.String(length=36), nullable=False),
        sa.Column('item_type', sa.String(length=16), nullable=False),
        sa.Column('product_id', sa.String(length=36), nullable=True),
        sa.Column('service_id', sa.String(length=36), nullable=True),
        sa.Column('warehouse_id', sa.String(length=36), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('sku', sa.String(length=50), nullable=True),
        sa.Column('quantity', sa.Numeric(precision=10, scale=2), nullable=False, server_default='1'),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('discount_type', sa.String(length=16), nullable=True),
        sa.Column('discount_value', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('subtotal', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reserved_quantity', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['service_id'], ['services.id'], ),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_quote_items_organization_id', 'quote_items', ['organization_id'])
    op.create_index('ix_quote_items_quote_id', 'quote_items', ['quote_id'])
    op.create_index('ix_quote_items_product_id', 'quote_items', ['product_id'])
    op.create_index('ix_quote_items_service_id', 'quote_items', ['service_id'])

    op.create_table(
        'quote_events',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('organization_id', sa.String(length=64), nullable=False),
        sa.Column('quote_id', sa.String(length=36), nullable=False),
        sa.Column('event_type', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column('user_type', sa.String(length=16), nullable=False, server_default='team'),
        sa.Column('user_name', sa.String(length=255), nullable=True),
        sa.Column('event_metadata', sa.JSON(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_quote_events_organization_id', 'quote_events', ['organization_id'])
    op.create_index('ix_quote_events_quote_created', 'quote_events', ['quote_id', 'created_at'])

    op.create_table(
        'quote_comments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('organization_id', sa.String(length=64), nullable=False),
        sa.Column('quote_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column('user_type', sa.String(length=16), nullable=False, server_default='team'),
        sa.Column('user_name', sa.String(length=255), nullable=True),
        sa.Column('comment', sa.Text(), nullable=False),
        sa.Column('is_internal', sa.Boolean(), nullable=False, server_default='1'),
        _created_at(),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_quote_comments_organization_id', 'quote_comments', ['organization_id'])
    op.create_index('ix_quote_comments_quote_created', 'quote_comments', ['quote_id', 'created_at'])

    op.create_table(
        'quote_access_tokens',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('organization_id', sa.String(length=64), nullable=False),
        sa.Column('quote_id', sa.String(length=36), nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_accessed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('access_count', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token'),
    )
    op.create_index('ix_quote_access_tokens_organization_id', 'quote_access_tokens', ['organization_id'])
    op.create_index('ix_quote_access_tokens_quote_id', 'quote_access_tokens', ['quote_id'])

    # ============================================================================
    # category template library (shared) and import jobs
    # ============================================================================
    op.create_table(
        'category_templates',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('business_type', sa.String(length=100), nullable=False),
        sa.Column('icon', sa.String(length=50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('usage_count', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'template_categories',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('template_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
        sa.ForeignKeyConstraint(['template_id'], ['category_templates.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_template_categories_template_id', 'template_categories', ['template_id'])

    op.create_table(
        'template_subcategories',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('template_category_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
        sa.ForeignKeyConstraint(['template_category_id'], ['template_categories.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_template_subcategories_template_category_id', 'template_subcategories', ['template_category_id'],
    )

    op.create_table(
        'template_features',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('template_category_id', sa.String(length=36), nullable=True),
        sa.Column('template_subcategory_id', sa.String(length=36), nullable=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('input_type', sa.String(length=16), nullable=False),
        sa.Column('options', sa.JSON(), nullable=True),
        sa.Column('unit', sa.String(length=32), nullable=True),
        sa.Column('is_required', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
        sa.ForeignKeyConstraint(['template_category_id'], ['template_categories.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['template_subcategory_id'], ['template_subcategories.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_template_features_template_category_id', 'template_features', ['template_category_id'])
    op.create_index(
        'ix_template_features_template_subcategory_id', 'template_features', ['template_subcategory_id'],
    )

    op.create_table(
        'template_import_jobs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('organization_id', sa.String(length=64), nullable=False),
        sa.Column('template_id', sa.String(length=36), nullable=False),
        sa.Column('created_by_user_id', sa.String(length=64), nullable=False),
        sa.Column('created_by_name', sa.String(length=255), nullable=True),
        sa.Column('import_mode', sa.String(length=16), nullable=False, server_default='merge'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='importing'),
        sa.Column('steps', sa.JSON(), nullable=False),
        sa.Column('cursor', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completed_items', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_item', sa.String(length=255), nullable=True),
        sa.Column('current_item_type', sa.String(length=16), nullable=True),
        sa.Column('id_map', sa.JSON(), nullable=False),
        sa.Column('errors', sa.JSON(), nullable=False),
        sa.Column('result', sa.JSON(), nullable=False),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['template_id'], ['category_templates.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_template_import_jobs_organization_id', 'template_import_jobs', ['organization_id'])


def downgrade():
    """Drop the sales and template tables (destructive operation)."""
    op.drop_table('template_import_jobs')
    op.drop_table('template_features')
    op.drop_table('template_subcategories')
    op.drop_table('template_categories')
    op.drop_table('category_templates')
    op.drop_table('quote_access_tokens')
    op.drop_table('quote_comments')
    op.drop_table('quote_events')
    op.drop_table('quote_items')
    op.drop_table('quotes')
    op.drop_table('services')
    op.drop_table('service_categories')
    op.drop_table('contacts')
    op.drop_table('companies')
    op.drop_table('clients')