"""Initial affiliate tracking schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Tenants, products, affiliates, clicks, conversions and payouts.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'tenants',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'products',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('domain', sa.String(255), nullable=False),
        sa.Column('api_key', sa.String(128), nullable=False),
        sa.Column('commission_type', sa.String(20), nullable=False),
        sa.Column('commission_value', sa.Numeric(18, 6), nullable=False),
        sa.Column('cookie_duration', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint("commission_type IN ('percentage', 'fixed')", name='ck_products_commission_type'),
        sa.CheckConstraint('commission_value >= 0', name='ck_products_commission_value_non_negative'),
        sa.CheckConstraint('cookie_duration > 0', name='ck_products_cookie_duration_positive'),
    )
    op.create_index('ix_products_tenant_id', 'products', ['tenant_id'])
    op.create_index('ix_products_slug', 'products', ['slug'], unique=True)
    op.create_index('ix_products_api_key', 'products', ['api_key'], unique=True)

    op.create_table(
        'affiliates',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('code', sa.String(64), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('balance', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('tenant_id', 'email', name='uq_affiliates_tenant_email'),
        sa.CheckConstraint('balance >= 0', name='ck_affiliates_balance_non_negative'),
    )
    op.create_index('ix_affiliates_tenant_id', 'affiliates', ['tenant_id'])
    op.create_index('ix_affiliates_code', 'affiliates', ['code'], unique=True)

    op.create_table(
        'clicks',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('affiliate_id', sa.String(36), sa.ForeignKey('affiliates.id'), nullable=False),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('user_agent', sa.String(512), nullable=True),
        sa.Column('referrer', sa.String(1024), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_clicks_affiliate_product', 'clicks', ['affiliate_id', 'product_id'])

    op.create_table(
        'conversions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('affiliate_id', sa.String(36), sa.ForeignKey('affiliates.id'), nullable=False),
        sa.Column('order_id', sa.String(255), nullable=False),
        sa.Column('order_amount', sa.BigInteger(), nullable=False),
        sa.Column('commission_amount', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('decided_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('order_id', 'product_id', name='uq_conversions_order_product'),
        sa.CheckConstraint('order_amount >= 0', name='ck_conversions_order_amount_non_negative'),
        sa.CheckConstraint('commission_amount >= 0', name='ck_conversions_commission_non_negative'),
    )
    op.create_index('ix_conversions_affiliate_id', 'conversions', ['affiliate_id'])
    op.create_index('ix_conversions_status', 'conversions', ['status'])

    op.create_table(
        'payouts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('affiliate_id', sa.String(36), sa.ForeignKey('affiliates.id'), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('requested_at', sa.DateTime(), nullable=False),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('amount > 0', name='ck_payouts_amount_positive'),
    )
    op.create_index('ix_payouts_affiliate_id', 'payouts', ['affiliate_id'])
    op.create_index('ix_payouts_status', 'payouts', ['status'])


def downgrade() -> None:
    op.drop_table('payouts')
    op.drop_table('conversions')
    op.drop_table('clicks')
    op.drop_table('affiliates')
    op.drop_table('products')
    op.drop_table('tenants')
