"""initial boost schema

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0a1b2c3d4e5f'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table(
        'businesses',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('context', sa.JSON(), nullable=True),
        sa.Column('context_updated_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_businesses_user_id'), 'businesses', ['user_id'], unique=False)

    op.create_table(
        'runs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('business_id', sa.Uuid(), nullable=True),
        sa.Column('input', sa.JSON(), nullable=False),
        sa.Column('output', sa.Text(), nullable=True),
        sa.Column('structured_output', sa.JSON(), nullable=True),
        sa.Column('research_data', sa.JSON(), nullable=True),
        sa.Column(
            'status',
            sa.Enum('pending', 'processing', 'complete', 'failed', name='run_status', native_enum=False),
            nullable=False,
        ),
        sa.Column('stage', sa.String(), nullable=True),
        sa.Column(
            'source',
            sa.Enum('stripe', 'credits', 'promo', 'refinement', name='run_source', native_enum=False),
            nullable=False,
        ),
        sa.Column('error_message', sa.String(), nullable=True),
        sa.Column('parent_run_id', sa.Uuid(), nullable=True),
        sa.Column('additional_context', sa.Text(), nullable=True),
        sa.Column('refinements_used', sa.Integer(), nullable=False),
        sa.Column('share_slug', sa.String(), nullable=True),
        sa.Column('stripe_session_id', sa.String(), nullable=True),
        sa.Column('plan_start_date', sa.Date(), nullable=True),
        sa.Column('feedback_email_sent', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.ForeignKeyConstraint(['parent_run_id'], ['runs.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_runs_user_id'), 'runs', ['user_id'], unique=False)
    op.create_index(op.f('ix_runs_business_id'), 'runs', ['business_id'], unique=False)
    op.create_index(op.f('ix_runs_parent_run_id'), 'runs', ['parent_run_id'], unique=False)
    op.create_index(op.f('ix_runs_share_slug'), 'runs', ['share_slug'], unique=True)
    op.create_index(op.f('ix_runs_stripe_session_id'), 'runs', ['stripe_session_id'], unique=False)

    op.create_table(
        'run_credits',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('credits', sa.Integer(), nullable=False),
        sa.Column('source', sa.String(), nullable=False),
        sa.Column('stripe_checkout_session_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_checkout_session_id'),
    )
    op.create_index(op.f('ix_run_credits_user_id'), 'run_credits', ['user_id'], unique=False)

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('business_id', sa.Uuid(), nullable=True),
        sa.Column('stripe_subscription_id', sa.String(), nullable=False),
        sa.Column('stripe_customer_id', sa.String(), nullable=False),
        sa.Column(
            'status',
            sa.Enum(
                'active', 'past_due', 'canceled', 'paused', 'trialing',
                name='subscription_status',
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column('current_period_start', sa.DateTime(), nullable=True),
        sa.Column('current_period_end', sa.DateTime(), nullable=True),
        sa.Column('current_week', sa.Integer(), nullable=False),
        sa.Column('original_run_id', sa.Uuid(), nullable=True),
        sa.Column('strategy_context', sa.JSON(), nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.ForeignKeyConstraint(['original_run_id'], ['runs.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_subscription_id'),
    )
    op.create_index(op.f('ix_subscriptions_user_id'), 'subscriptions', ['user_id'], unique=False)

    op.create_table(
        'free_tool_results',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('slug', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('tool_type', sa.String(), nullable=False),
        sa.Column('input', sa.JSON(), nullable=False),
        sa.Column('output', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', 'tool_type', name='uq_free_tool_results_email_tool'),
    )
    op.create_index(op.f('ix_free_tool_results_slug'), 'free_tool_results', ['slug'], unique=True)
    op.create_index(op.f('ix_free_tool_results_tool_type'), 'free_tool_results', ['tool_type'], unique=False)

    op.create_table(
        'free_audits',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('business_id', sa.Uuid(), nullable=True),
        sa.Column('input', sa.JSON(), nullable=False),
        sa.Column('output', sa.Text(), nullable=True),
        sa.Column('structured_output', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('source', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'task_completions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('run_id', sa.Uuid(), nullable=False),
        sa.Column('task_index', sa.Integer(), nullable=False),
        sa.Column('track', sa.String(), nullable=True),
        sa.Column('completed', sa.Boolean(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('outcome', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['run_id'], ['runs.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('run_id', 'task_index', name='uq_task_completions_run_task'),
    )
    op.create_index(op.f('ix_task_completions_run_id'), 'task_completions', ['run_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_task_completions_run_id'), table_name='task_completions')
    op.drop_table('task_completions')
    op.drop_table('free_audits')
    op.drop_index(op.f('ix_free_tool_results_tool_type'), table_name='free_tool_results')
    op.drop_index(op.f('ix_free_tool_results_slug'), table_name='free_tool_results')
    op.drop_table('free_tool_results')
    op.drop_index(op.f('ix_subscriptions_user_id'), table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_index(op.f('ix_run_credits_user_id'), table_name='run_credits')
    op.drop_table('run_credits')
    op.drop_index(op.f('ix_runs_stripe_session_id'), table_name='runs')
    op.drop_index(op.f('ix_runs_share_slug'), table_name='runs')
    op.drop_index(op.f('ix_runs_parent_run_id'), table_name='runs')
    op.drop_index(op.f('ix_runs_business_id'), table_name='runs')
    op.drop_index(op.f('ix_runs_user_id'), table_name='runs')
    op.drop_table('runs')
    op.drop_index(op.f('ix_businesses_user_id'), table_name='businesses')
    op.drop_table('businesses')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
