"""Initial billing models: users, plans, subscriptions, bots, orders, coupons.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('stripe_customer_id', sa.String(255), nullable=True),
        sa.Column('trial_used_categories', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('idx_user_email', 'users', ['email'])

    op.create_table(
        'plans',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False, unique=True),
        sa.Column('category', sa.String(255), nullable=False),
        sa.Column('tier', sa.String(100), nullable=False),
        sa.Column('price_monthly', sa.Float(), nullable=False),
        sa.Column('price_yearly', sa.Float(), nullable=False),
        sa.Column('features', sa.JSON(), nullable=False),
        sa.Column('included_bots', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_plan_category', 'plans', ['category'])

    op.create_table(
        'subscriptions',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('status', sa.String(50), nullable=True),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('is_trial', sa.Boolean(), nullable=False),
        sa.Column('stripe_session_id', sa.String(255), nullable=True, unique=True),
        sa.Column('stripe_subscription_id', sa.String(255), nullable=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.uuid', ondelete='CASCADE'), nullable=False),
        sa.Column('plan_id', sa.String(36), sa.ForeignKey('plans.uuid'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_subscription_user_plan', 'subscriptions', ['user_id', 'plan_id'])
    op.create_index('idx_subscription_status', 'subscriptions', ['status'])
    op.create_index('idx_subscription_stripe_subscription_id', 'subscriptions', ['stripe_subscription_id'])

    op.create_table(
        'bots',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('status', sa.String(50), nullable=True),
        sa.Column('api_key', sa.String(255), nullable=False),
        sa.Column('secret_key', sa.String(255), nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.uuid', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'name', name='uq_bot_user_name'),
    )
    op.create_index('idx_bot_user_id', 'bots', ['user_id'])

    op.create_table(
        'orders',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('plan_name', sa.String(255), nullable=False),
        sa.Column('payment_method', sa.String(50), nullable=False),
        sa.Column('status', sa.String(50), nullable=True),
        sa.Column('stripe_session_id', sa.String(255), nullable=False, unique=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.uuid', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_order_user_id', 'orders', ['user_id'])

    op.create_table(
        'coupons',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('code', sa.String(100), nullable=False, unique=True),
        sa.Column('discount_type', sa.String(20), nullable=True),
        sa.Column('discount_value', sa.Float(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('usage_limit', sa.Integer(), nullable=True),
        sa.Column('usage_count', sa.Integer(), nullable=False),
        sa.Column('limit_per_user', sa.Integer(), nullable=True),
        sa.Column('expiry_date', sa.DateTime(), nullable=True),
        sa.Column('stripe_coupon_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'coupon_usages',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('coupon_id', sa.String(36), sa.ForeignKey('coupons.uuid'), nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.uuid', ondelete='CASCADE'), nullable=False),
        sa.Column('used_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_coupon_usage_coupon_user', 'coupon_usages', ['coupon_id', 'user_id'])


def downgrade():
    op.drop_index('idx_coupon_usage_coupon_user', table_name='coupon_usages')
    op.drop_table('coupon_usages')
    op.drop_table('coupons')
    op.drop_index('idx_order_user_id', table_name='orders')
    op.drop_table('orders')
    op.drop_index('idx_bot_user_id', table_name='bots')
    op.drop_table('bots')
    op.drop_index('idx_subscription_stripe_subscription_id', table_name='subscriptions')
    op.drop_index('idx_subscription_status', table_name='subscriptions')
    op.drop_index('idx_subscription_user_plan', table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_index('idx_plan_category', table_name='plans')
    op.drop_table('plans')
    op.drop_index('idx_user_email', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
