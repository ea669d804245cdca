"""initial stock and sales schema

Revision ID: s1a2b3c4d5e6
Revises:
Create Date: 2026-10-01 00:00:00.000000

Creates the complete schema:
- users, session_tokens: role-based access with bearer sessions
- products, suppliers, customers: master data
- purchase_receipts, lots: stock-in documents and the lot ledger
- invoices, invoice_lines: immutable sale documents
- stock_ledger_events: append-only audit trail

Concurrency backstops:
- lots.quantity_remaining >= 0 (check constraint)
- invoices.invoice_number unique
- version_id columns for optimistic locking
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 's1a2b3c4d5e6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # users / session_tokens
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='cashier'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username', name='uq_users_username'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'])
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    # ============================================================================
    # products / suppliers / customers
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=128), nullable=True),
        sa.Column('generic_name', sa.String(length=255), nullable=True),
        sa.Column('brand', sa.String(length=128), nullable=True),
        sa.Column('price', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('discount', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('cost', sa.Numeric(14, 4), nullable=True),
        sa.Column('quantity_on_hand', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku', name='uq_products_sku'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_name', 'products', ['name'])
    op.create_index('ix_products_active', 'products', ['is_active'])

    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=512), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_suppliers_name', 'suppliers', ['name'])

    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=512), nullable=True),
        sa.Column('vat_number', sa.String(length=64), nullable=True),
        sa.Column('route', sa.String(length=64), nullable=True),
        sa.Column('sales_rep_id', sa.Integer(), nullable=True),
        sa.Column('is_directory', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_name_directory', 'customers', ['name', 'is_directory'])
    op.create_index('ix_customers_active', 'customers', ['is_active'])

    # ============================================================================
    # purchase_receipts / lots
    # ============================================================================
    op.create_table(
        'purchase_receipts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ref_no', sa.String(length=64), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('supplier_name', sa.String(length=255), nullable=True),
        sa.Column('batch_number', sa.String(length=64), nullable=False),
        sa.Column('sub_total', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id']),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('ref_no', name='uq_purchase_receipts_ref_no'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchase_receipts_supplier_id', 'purchase_receipts', ['supplier_id'])

    op.create_table(
        'lots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('source', sa.String(length=16), nullable=False, server_default='BATCH'),
        sa.Column('batch_number', sa.String(length=64), nullable=True),
        sa.Column('purchase_receipt_id', sa.Integer(), nullable=True),
        sa.Column('mfg_date', sa.Date(), nullable=True),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('pack_size', sa.String(length=32), nullable=False, server_default=''),
        sa.Column('unit_cost', sa.Numeric(14, 4), nullable=True),
        sa.Column('unit_price', sa.Numeric(14, 4), nullable=True),
        sa.Column('quantity_received', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity_remaining', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ACTIVE'),
        sa.Column('retired_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('quantity_remaining >= 0', name='ck_lots_remaining_nonnegative'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['purchase_receipt_id'], ['purchase_receipts.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_lots_product_id', 'lots', ['product_id'])
    op.create_index('ix_lots_purchase_receipt_id', 'lots', ['purchase_receipt_id'])
    op.create_index('ix_lots_status', 'lots', ['status'])
    op.create_index('ix_lots_sku_expiry', 'lots', ['sku', 'expiry_date', 'id'])
    op.create_index('ix_lots_sku_batch', 'lots', ['sku', 'batch_number'])

    # ============================================================================
    # invoices / invoice_lines
    # ============================================================================
    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=32), nullable=False),
        sa.Column('fiscal_code', sa.String(length=8), nullable=False),
        sa.Column('invoice_date', sa.Date(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_address', sa.String(length=512), nullable=True),
        sa.Column('customer_vat', sa.String(length=64), nullable=True),
        sa.Column('payment_type', sa.String(length=32), nullable=True),
        sa.Column('route_rep_code', sa.String(length=32), nullable=True),
        sa.Column('sales_rep_id', sa.Integer(), nullable=True),
        sa.Column('sales_rep_name', sa.String(length=128), nullable=True),
        sa.Column('batch_reference', sa.String(length=128), nullable=True),
        sa.Column('sub_total', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('line_discount_total', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('tax_rate', sa.Numeric(7, 4), nullable=True),
        sa.Column('tax_amount', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('grand_total', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='POSTED'),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_number', name='uq_invoices_invoice_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoices_fiscal_code', 'invoices', ['fiscal_code'])
    op.create_index('ix_invoices_customer_id', 'invoices', ['customer_id'])
    op.create_index('ix_invoices_date', 'invoices', ['invoice_date'])

    op.create_table(
        'invoice_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('pack_size', sa.String(length=32), nullable=False, server_default=''),
        sa.Column('units_per_pack', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('base_units', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 4), nullable=False),
        sa.Column('unit_discount', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('line_total', sa.Numeric(14, 4), nullable=False),
        sa.Column('lot_reference', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_id', 'line_number', name='uq_invoice_lines_invoice_line'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoice_lines_invoice_id', 'invoice_lines', ['invoice_id'])
    op.create_index('ix_invoice_lines_sku', 'invoice_lines', ['sku'])

    # ============================================================================
    # stock_ledger_events: append-only audit trail
    # ============================================================================
    op.create_table(
        'stock_ledger_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('lot_id', sa.Integer(), nullable=True),
        sa.Column('invoice_id', sa.Integer(), nullable=True),
        sa.Column('quantity_delta', sa.Integer(), nullable=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['lot_id'], ['lots.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.ForeignKeyConstraint(['actor_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_ledger_events_event_type', 'stock_ledger_events', ['event_type'])
    op.create_index('ix_stock_ledger_events_sku', 'stock_ledger_events', ['sku'])
    op.create_index('ix_stock_ledger_events_invoice_id', 'stock_ledger_events', ['invoice_id'])
    op.create_index('ix_stock_ledger_lot_type', 'stock_ledger_events', ['lot_id', 'event_type'])
    op.create_index('ix_stock_ledger_occurred', 'stock_ledger_events', ['occurred_at'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('stock_ledger_events')
    op.drop_table('invoice_lines')
    op.drop_table('invoices')
    op.drop_table('lots')
    op.drop_table('purchase_receipts')
    op.drop_table('customers')
    op.drop_table('suppliers')
    op.drop_table('products')
    op.drop_table('session_tokens')
    op.drop_table('users')
