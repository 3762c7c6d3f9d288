# alembic/versions/20261001_baseline_schema.py
"""Baseline marketplace schema: accounts, strategies, subscriptions, payments, eKYC, content, push, baskets

Revision ID: 20261001_baseline
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '20261001_baseline'
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _id():
    return sa.Column('id', sa.String(36), primary_key=True)


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False)


def _fk(name, target, ondelete="CASCADE", nullable=False):
    return sa.Column(name, sa.String(36), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    # --- Accounts ---
    op.create_table('users',
        _id(),
        sa.Column('username', sa.String(64), nullable=False),
        sa.Column('password', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(32), nullable=True),
        sa.Column('role', sa.String(32), server_default='investor', nullable=False),
        sa.Column('company_name', sa.String(255), nullable=True),
        sa.Column('overview', sa.Text(), nullable=True),
        sa.Column('themes', JSONType, nullable=True),
        sa.Column('logo_url', sa.String(512), nullable=True),
        sa.Column('sebi_cert_url', sa.String(512), nullable=True),
        sa.Column('sebi_reg_number', sa.String(32), nullable=True),
        sa.Column('is_registered', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('is_approved', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('agreement_consent', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('agreement_consent_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('active_since', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table('password_reset_tokens',
        _id(),
        _fk('user_id', 'users.id'),
        sa.Column('token', sa.String(128), nullable=False, unique=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('used', sa.Boolean(), server_default=sa.false(), nullable=False),
        _created_at(),
    )
    op.create_index('ix_password_reset_tokens_user_id', 'password_reset_tokens', ['user_id'])

    # --- Strategies & recommendations ---
    op.create_table('strategies',
        _id(),
        _fk('advisor_id', 'users.id'),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', sa.String(32), server_default='Equity', nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(32), server_default='Draft', nullable=False),
        sa.Column('theme', JSONType, nullable=True),
        sa.Column('management_style', sa.String(64), nullable=True),
        sa.Column('horizon', sa.String(64), nullable=True),
        sa.Column('key_sectors', JSONType, nullable=True),
        sa.Column('volatility', sa.String(32), nullable=True),
        sa.Column('risk_level', sa.String(32), nullable=True),
        sa.Column('benchmark', sa.String(64), nullable=True),
        sa.Column('minimum_investment', sa.Numeric(14, 2), nullable=True),
        sa.Column('cagr', sa.Numeric(8, 2), nullable=True),
        sa.Column('plan_ids', JSONType, nullable=True),
        sa.Column('total_recommendations', sa.Integer(), server_default='0', nullable=False),
        sa.Column('stocks_in_buy_zone', sa.Integer(), server_default='0', nullable=False),
        _created_at(),
        sa.Column('modified_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    )
    op.create_index('ix_strategies_advisor_id', 'strategies', ['advisor_id'])
    op.create_index('ix_strategies_status', 'strategies', ['status'])

    op.create_table('plans',
        _id(),
        _fk('advisor_id', 'users.id'),
        sa.Column('name', sa.String(128), nullable=False),
        sa.Column('code', sa.String(32), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('duration_days', sa.Integer(), nullable=True),
        _created_at(),
    )
    op.create_index('ix_plans_advisor_id', 'plans', ['advisor_id'])

    op.create_table('calls',
        _id(),
        _fk('strategy_id', 'strategies.id'),
        sa.Column('stock_name', sa.String(64), nullable=False),
        sa.Column('action', sa.String(32), server_default='Buy', nullable=False),
        sa.Column('buy_range_start', sa.Numeric(14, 2), nullable=True),
        sa.Column('buy_range_end', sa.Numeric(14, 2), nullable=True),
        sa.Column('target_price', sa.Numeric(14, 2), nullable=True),
        sa.Column('profit_goal', sa.Numeric(8, 2), nullable=True),
        sa.Column('stop_loss', sa.Numeric(14, 2), nullable=True),
        sa.Column('rationale', sa.Text(), nullable=True),
        sa.Column('status', sa.String(32), server_default='Active', nullable=False),
        sa.Column('entry_price', sa.Numeric(14, 2), nullable=True),
        sa.Column('sell_price', sa.Numeric(14, 2), nullable=True),
        sa.Column('gain_percent', sa.Numeric(8, 2), nullable=True),
        sa.Column('call_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('exit_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_published', sa.Boolean(), server_default=sa.true(), nullable=False),
        _created_at(),
    )
    op.create_index('ix_calls_strategy_id', 'calls', ['strategy_id'])
    op.create_index('ix_calls_status', 'calls', ['status'])

    op.create_table('positions',
        _id(),
        _fk('strategy_id', 'strategies.id'),
        sa.Column('segment', sa.String(32), server_default='Equity', nullable=False),
        sa.Column('call_put', sa.String(8), nullable=True),
        sa.Column('buy_sell', sa.String(32), server_default='Buy', nullable=False),
        sa.Column('symbol', sa.String(64), nullable=False),
        sa.Column('expiry', sa.String(32), nullable=True),
        sa.Column('strike_price', sa.Numeric(14, 2), nullable=True),
        sa.Column('entry_price', sa.Numeric(14, 2), nullable=True),
        sa.Column('lots', sa.Integer(), nullable=True),
        sa.Column('target', sa.Numeric(14, 2), nullable=True),
        sa.Column('stop_loss', sa.Numeric(14, 2), nullable=True),
        sa.Column('rationale', sa.Text(), nullable=True),
        sa.Column('status', sa.String(32), server_default='Active', nullable=False),
        sa.Column('is_published', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('publish_mode', sa.String(16), server_default='draft', nullable=False),
        sa.Column('enable_leg', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('use_percentage', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('exit_price', sa.Numeric(14, 2), nullable=True),
        sa.Column('exit_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('gain_percent', sa.Numeric(8, 2), nullable=True),
        _created_at(),
    )
    op.create_index('ix_positions_strategy_id', 'positions', ['strategy_id'])
    op.create_index('ix_positions_status', 'positions', ['status'])

    # --- Subscriptions, payments, onboarding ---
    op.create_table('subscriptions',
        _id(),
        _fk('plan_id', 'plans.id', ondelete="SET NULL", nullable=True),
        _fk('strategy_id', 'strategies.id', ondelete="SET NULL", nullable=True),
        _fk('user_id', 'users.id'),
        _fk('advisor_id', 'users.id'),
        sa.Column('status', sa.String(32), server_default='active', nullable=False),
        sa.Column('ekyc_done', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('risk_profiling', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    for col in ('plan_id', 'strategy_id', 'user_id', 'advisor_id'):
        op.create_index(f'ix_subscriptions_{col}', 'subscriptions', [col])

    op.create_table('payments',
        _id(),
        sa.Column('order_id', sa.String(64), nullable=False),
        _fk('user_id', 'users.id'),
        _fk('strategy_id', 'strategies.id', ondelete="SET NULL", nullable=True),
        _fk('plan_id', 'plans.id', ondelete="SET NULL", nullable=True),
        _fk('advisor_id', 'users.id'),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(8), server_default='INR', nullable=False),
        sa.Column('status', sa.String(32), server_default='PENDING', nullable=False),
        sa.Column('payment_session_id', sa.String(255), nullable=True),
        sa.Column('payment_method', sa.String(64), nullable=True),
        sa.Column('cf_payment_id', sa.String(64), nullable=True),
        _fk('subscription_id', 'subscriptions.id', ondelete="SET NULL", nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index('ix_payments_order_id', 'payments', ['order_id'], unique=True)
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])
    op.create_index('ix_payments_advisor_id', 'payments', ['advisor_id'])
    op.create_index('ix_payments_status', 'payments', ['status'])

    op.create_table('ekyc_verifications',
        _id(),
        _fk('subscription_id', 'subscriptions.id'),
        _fk('user_id', 'users.id'),
        sa.Column('kind', sa.String(32), nullable=False),
        sa.Column('status', sa.String(32), server_default='pending', nullable=False),
        sa.Column('reference_id', sa.String(64), nullable=True),
        sa.Column('aadhaar_last4', sa.String(4), nullable=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('dob', sa.String(32), nullable=True),
        sa.Column('gender', sa.String(16), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('pan_number', sa.String(10), nullable=True),
        sa.Column('pan_name', sa.String(255), nullable=True),
        sa.Column('pan_category', sa.String(32), nullable=True),
        sa.Column('name_match', sa.Boolean(), nullable=True),
        sa.Column('dob_match', sa.Boolean(), nullable=True),
        sa.Column('aadhaar_linked', sa.Boolean(), nullable=True),
        sa.Column('transaction_id', sa.String(64), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index('ix_ekyc_verifications_subscription_id', 'ekyc_verifications', ['subscription_id'])
    op.create_index('ix_ekyc_verifications_user_id', 'ekyc_verifications', ['user_id'])

    op.create_table('risk_profiles',
        _id(),
        _fk('subscription_id', 'subscriptions.id', nullable=True),
        _fk('user_id', 'users.id'),
        _fk('advisor_id', 'users.id', nullable=True),
        sa.Column('answers', JSONType, nullable=False),
        sa.Column('capacity_score', sa.Integer(), nullable=False),
        sa.Column('tolerance_score', sa.Integer(), nullable=False),
        sa.Column('overall_score', sa.Integer(), nullable=False),
        sa.Column('risk_category', sa.String(32), nullable=False),
        _created_at(),
    )
    op.create_index('ix_risk_profiles_subscription_id', 'risk_profiles', ['subscription_id'])
    op.create_index('ix_risk_profiles_user_id', 'risk_profiles', ['user_id'])

    op.create_table('watchlist',
        _id(),
        _fk('user_id', 'users.id'),
        sa.Column('item_type', sa.String(32), nullable=False),
        sa.Column('item_id', sa.String(36), nullable=False),
        _created_at(),
        sa.UniqueConstraint('user_id', 'item_type', 'item_id', name='uq_watchlist_user_item'),
    )
    op.create_index('ix_watchlist_user_id', 'watchlist', ['user_id'])

    # --- Advisor content ---
    op.create_table('content',
        _id(),
        _fk('advisor_id', 'users.id'),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('type', sa.String(32), server_default='MarketUpdate', nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('attachments', JSONType, nullable=True),
        _created_at(),
    )
    op.create_index('ix_content_advisor_id', 'content', ['advisor_id'])
    op.create_index('ix_content_type', 'content', ['type'])

    op.create_table('scores',
        _id(),
        _fk('advisor_id', 'users.id'),
        sa.Column('beginning_of_month', sa.Integer(), server_default='0', nullable=False),
        sa.Column('received_during', sa.Integer(), server_default='0', nullable=False),
        sa.Column('resolved_during', sa.Integer(), server_default='0', nullable=False),
        sa.Column('pending_at_end', sa.Integer(), server_default='0', nullable=False),
        sa.Column('pendency_reasons', sa.Text(), nullable=True),
        sa.Column('month', sa.String(16), nullable=True),
        _created_at(),
    )
    op.create_index('ix_scores_advisor_id', 'scores', ['advisor_id'])

    op.create_table('advisor_questions',
        _id(),
        _fk('advisor_id', 'users.id'),
        _fk('user_id', 'users.id', ondelete="SET NULL", nullable=True),
        sa.Column('name', sa.String(128), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(32), nullable=True),
        sa.Column('question', sa.Text(), nullable=False),
        sa.Column('answer', sa.Text(), nullable=True),
        sa.Column('is_read', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('answered_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index('ix_advisor_questions_advisor_id', 'advisor_questions', ['advisor_id'])

    # --- Notifications ---
    op.create_table('notifications',
        _id(),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('data', JSONType, nullable=True),
        sa.Column('target_scope', sa.String(32), nullable=False),
        _fk('strategy_id', 'strategies.id', nullable=True),
        _created_at(),
    )
    op.create_index('ix_notifications_strategy_id', 'notifications', ['strategy_id'])

    op.create_table('push_subscriptions',
        _id(),
        sa.Column('endpoint', sa.Text(), nullable=False, unique=True),
        sa.Column('p256dh', sa.String(255), nullable=False),
        sa.Column('auth', sa.String(255), nullable=False),
        _fk('user_id', 'users.id', nullable=True),
        _created_at(),
    )
    op.create_index('ix_push_subscriptions_user_id', 'push_subscriptions', ['user_id'])

    # --- Baskets ---
    op.create_table('basket_rebalances',
        _id(),
        _fk('strategy_id', 'strategies.id'),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('effective_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index('ix_basket_rebalances_strategy_id', 'basket_rebalances', ['strategy_id'])

    op.create_table('basket_constituents',
        _id(),
        _fk('strategy_id', 'strategies.id'),
        _fk('rebalance_id', 'basket_rebalances.id'),
        sa.Column('symbol', sa.String(64), nullable=False),
        sa.Column('exchange', sa.String(8), server_default='NSE', nullable=False),
        sa.Column('weight_percent', sa.Numeric(6, 2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=True),
        sa.Column('price_at_rebalance', sa.Numeric(14, 2), nullable=True),
        sa.Column('action', sa.String(16), nullable=True),
    )
    op.create_index('ix_basket_constituents_strategy_id', 'basket_constituents', ['strategy_id'])
    op.create_index('ix_basket_constituents_rebalance_id', 'basket_constituents', ['rebalance_id'])

    op.create_table('basket_rationales',
        _id(),
        _fk('strategy_id', 'strategies.id'),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('category', sa.String(32), server_default='general', nullable=False),
        sa.Column('attachments', JSONType, nullable=True),
        _created_at(),
    )
    op.create_index('ix_basket_rationales_strategy_id', 'basket_rationales', ['strategy_id'])

    op.create_table('basket_nav_snapshots',
        _id(),
        _fk('strategy_id', 'strategies.id'),
        sa.Column('as_of_date', sa.Date(), nullable=False),
        sa.Column('nav', sa.Numeric(14, 4), nullable=False),
        sa.Column('total_return', sa.Numeric(8, 2), nullable=True),
        sa.Column('daily_return', sa.Numeric(8, 2), nullable=True),
    )
    op.create_index('ix_basket_nav_snapshots_strategy_id', 'basket_nav_snapshots', ['strategy_id'])


def downgrade() -> None:
    for table in (
        'basket_nav_snapshots', 'basket_rationales', 'basket_constituents', 'basket_rebalances',
        'push_subscriptions', 'notifications', 'advisor_questions', 'scores', 'content',
        'watchlist', 'risk_profiles', 'ekyc_verifications', 'payments', 'subscriptions',
        'positions', 'calls', 'plans', 'strategies', 'password_reset_tokens', 'users',
    ):
        op.drop_table(table)
