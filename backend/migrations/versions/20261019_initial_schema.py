"""initial schema

Revision ID: gs0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the greenstore schema:
- users / session_tokens: identity seam used for sessions and approver re-auth
- categories / products: catalog rows; products carry the cached current_stock
- stock_movements / stock_losses: append-only stock ledger
- discounts / sales: promotional rules and one-line sale records
- approvals: single-use manager approval tokens (hash only)
- audit_logs / settings: append-only audit trail and policy thresholds
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'gs0001'
down_revision = None
branch_labels = None
depends_on = None


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def _updated_at():
    return sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    # ============================================================================
    # users / session_tokens
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='operator'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        _created_at(),
        sa.CheckConstraint("role IN ('operator', 'supervisor', 'manager', 'admin')", name='ck_users_role'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        _created_at(),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)

    # ============================================================================
    # categories / products
    # ============================================================================
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('unit_type', sa.String(length=8), nullable=False, server_default='unit'),
        sa.Column('price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('current_stock', sa.Numeric(12, 3), nullable=False, server_default='0'),
        sa.Column('min_stock', sa.Numeric(12, 3), nullable=False, server_default='0'),
        sa.Column('max_stock', sa.Numeric(12, 3), nullable=False, server_default='0'),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint('current_stock >= 0', name='ck_products_stock_non_negative'),
        sa.CheckConstraint('price >= 0', name='ck_products_price_non_negative'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_category', 'products', ['category_id'])

    # ============================================================================
    # stock ledger (append-only)
    # ============================================================================
    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('delta', sa.Numeric(12, 3), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('performed_by_user_id', sa.Integer(), nullable=True),
        _created_at(),
        sa.CheckConstraint(
            "type IN ('sale', 'loss', 'adjustment', 'inbound', 'outbound')",
            name='ck_stock_movements_type',
        ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['performed_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_movements_product_id', 'stock_movements', ['product_id'])
    op.create_index('ix_stock_movements_product_created', 'stock_movements', ['product_id', 'created_at'])

    op.create_table(
        'stock_losses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Numeric(12, 3), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('reported_by_user_id', sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['reported_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_losses_product_id', 'stock_losses', ['product_id'])

    # ============================================================================
    # discounts / sales
    # ============================================================================
    op.create_table(
        'discounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('value', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('min_quantity', sa.Numeric(12, 3), nullable=True),
        sa.Column('buy_quantity', sa.Integer(), nullable=True),
        sa.Column('get_quantity', sa.Integer(), nullable=True),
        sa.Column('target_type', sa.String(length=16), nullable=False, server_default='all'),
        sa.Column('target_value', sa.String(length=64), nullable=True),
        sa.Column('criteria', sa.JSON(), nullable=True),
        sa.Column('days_of_week', sa.JSON(), nullable=True),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('starts_time', sa.String(length=8), nullable=True),
        sa.Column('ends_time', sa.String(length=8), nullable=True),
        sa.Column('stacking_rule', sa.String(length=16), nullable=False, server_default='exclusive'),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint(
            "type IN ('percent', 'fixed', 'buy_x_get_y', 'fixed_bundle')",
            name='ck_discounts_type',
        ),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_discounts_active', 'discounts', ['active'])

    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Numeric(12, 3), nullable=False),
        sa.Column('total', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_id', sa.Integer(), nullable=True),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('final_total', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('sold_by_user_id', sa.Integer(), nullable=False),
        _created_at(),
        sa.CheckConstraint('discount_amount >= 0', name='ck_sales_discount_non_negative'),
        sa.CheckConstraint('discount_amount <= total', name='ck_sales_discount_within_total'),
        sa.CheckConstraint('final_total >= 0', name='ck_sales_final_total_non_negative'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['discount_id'], ['discounts.id'], ),
        sa.ForeignKeyConstraint(['sold_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_product_id', 'sales', ['product_id'])
    op.create_index('ix_sales_created_at', 'sales', ['created_at'])

    # ============================================================================
    # approvals (plaintext tokens are never stored)
    # ============================================================================
    op.create_table(
        'approvals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('approved_by_user_id', sa.Integer(), nullable=False),
        _created_at(),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['approved_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_approvals_lookup', 'approvals', ['token_hash', 'action'])

    # ============================================================================
    # audit_logs / settings
    # ============================================================================
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('performed_by_user_id', sa.Integer(), nullable=True),
        sa.Column('approved_by_user_id', sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['performed_by_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['approved_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_audit_logs_action_created', 'audit_logs', ['action', 'created_at'])

    op.create_table(
        'settings',
        sa.Column('key', sa.String(length=64), nullable=False),
        sa.Column('value', sa.Text(), nullable=True),
        _updated_at(),
        sa.PrimaryKeyConstraint('key'),
    )


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('settings')
    op.drop_table('audit_logs')
    op.drop_table('approvals')
    op.drop_table('sales')
    op.drop_table('discounts')
    op.drop_table('stock_losses')
    op.drop_table('stock_movements')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('session_tokens')
    op.drop_table('users')
