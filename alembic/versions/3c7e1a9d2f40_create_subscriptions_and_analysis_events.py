"""create_subscriptions_and_analysis_events

Revision ID: 3c7e1a9d2f40
Revises: 
Create Date: 2026-10-18 09:14:22.118407

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c7e1a9d2f40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create subscription records and analysis usage events."""
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('plan', sa.String(), nullable=False, server_default='free'),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('stripe_customer_id', sa.String(), nullable=True),
        sa.Column('stripe_subscription_id', sa.String(), nullable=True),
        sa.Column('current_period_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('pro_override', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('pro_override_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_subscription_id'),
    )
    op.create_index(op.f('ix_subscriptions_id'), 'subscriptions', ['id'], unique=False)
    op.create_index(op.f('ix_subscriptions_user_id'), 'subscriptions', ['user_id'], unique=True)
    op.create_index(op.f('ix_subscriptions_stripe_customer_id'), 'subscriptions', ['stripe_customer_id'], unique=True)

    op.create_table(
        'analysis_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('client_id', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_analysis_events_id'), 'analysis_events', ['id'], unique=False)
    op.create_index(op.f('ix_analysis_events_user_id'), 'analysis_events', ['user_id'], unique=False)
    op.create_index(op.f('ix_analysis_events_client_id'), 'analysis_events', ['client_id'], unique=False)
    op.create_index(op.f('ix_analysis_events_created_at'), 'analysis_events', ['created_at'], unique=False)
    op.create_index('idx_analysis_user_client', 'analysis_events', ['user_id', 'client_id'], unique=False)


def downgrade() -> None:
    """Drop analysis events and subscription records."""
    op.drop_index('idx_analysis_user_client', table_name='analysis_events')
    op.drop_index(op.f('ix_analysis_events_created_at'), table_name='analysis_events')
    op.drop_index(op.f('ix_analysis_events_client_id'), table_name='analysis_events')
    op.drop_index(op.f('ix_analysis_events_user_id'), table_name='analysis_events')
    op.drop_index(op.f('ix_analysis_events_id'), table_name='analysis_events')
    op.drop_table('analysis_events')
    op.drop_index(op.f('ix_subscriptions_stripe_customer_id'), table_name='subscriptions')
    op.drop_index(op.f('ix_subscriptions_user_id'), table_name='subscriptions')
    op.drop_index(op.f('ix_subscriptions_id'), table_name='subscriptions')
    op.drop_table('subscriptions')
