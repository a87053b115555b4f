"""baseline_ai_tables

Revision ID: 4b1e7c2a9d10
Revises:
Create Date: 2026-10-17 09:12:44.104211

Production-safe migration: Only creates tables that do not exist yet.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '4b1e7c2a9d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    """Create users, ai_settings and ai_usage_log if missing."""
    # Users are owned by the portal; created here only for fresh databases
    if not table_exists('users'):
        op.create_table('users',
            sa.Column('id', sa.String(), nullable=False),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('role', sa.String(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    if not table_exists('ai_settings'):
        op.create_table('ai_settings',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('provider', sa.String(), nullable=False),
            sa.Column('api_key', sa.String(), nullable=False),
            sa.Column('model', sa.String(), nullable=False),
            sa.Column('max_generations_per_user', sa.Integer(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False),
            sa.Column('created_by', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_ai_settings_id'), 'ai_settings', ['id'], unique=False)
        op.create_index(op.f('ix_ai_settings_provider'), 'ai_settings', ['provider'], unique=True)
        op.create_index(op.f('ix_ai_settings_is_active'), 'ai_settings', ['is_active'], unique=False)

    if not table_exists('ai_usage_log'):
        op.create_table('ai_usage_log',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.String(), nullable=False),
            sa.Column('project_id', sa.Integer(), nullable=True),
            sa.Column('generation_type', sa.String(), nullable=False),
            sa.Column('provider', sa.String(), nullable=False),
            sa.Column('model', sa.String(), nullable=False),
            sa.Column('prompt_tokens', sa.Integer(), nullable=True),
            sa.Column('completion_tokens', sa.Integer(), nullable=True),
            sa.Column('total_tokens', sa.Integer(), nullable=True),
            sa.Column('status', sa.String(), nullable=False),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('idx_ai_usage_user_status', 'ai_usage_log', ['user_id', 'status'], unique=False)
        op.create_index(op.f('ix_ai_usage_log_id'), 'ai_usage_log', ['id'], unique=False)
        op.create_index(op.f('ix_ai_usage_log_user_id'), 'ai_usage_log', ['user_id'], unique=False)
        op.create_index(op.f('ix_ai_usage_log_generation_type'), 'ai_usage_log', ['generation_type'], unique=False)
        op.create_index(op.f('ix_ai_usage_log_status'), 'ai_usage_log', ['status'], unique=False)
        op.create_index(op.f('ix_ai_usage_log_created_at'), 'ai_usage_log', ['created_at'], unique=False)


def downgrade() -> None:
    """Downgrade: Drop the AI tables. The users table is left in place."""
    op.drop_index(op.f('ix_ai_usage_log_created_at'), table_name='ai_usage_log')
    op.drop_index(op.f('ix_ai_usage_log_status'), table_name='ai_usage_log')
    op.drop_index(op.f('ix_ai_usage_log_generation_type'), table_name='ai_usage_log')
    op.drop_index(op.f('ix_ai_usage_log_user_id'), table_name='ai_usage_log')
    op.drop_index(op.f('ix_ai_usage_log_id'), table_name='ai_usage_log')
    op.drop_index('idx_ai_usage_user_status', table_name='ai_usage_log')
    op.drop_table('ai_usage_log')

    op.drop_index(op.f('ix_ai_settings_is_active'), table_name='ai_settings')
    op.drop_index(op.f('ix_ai_settings_provider'), table_name='ai_settings')
    op.drop_index(op.f('ix_ai_settings_id'), table_name='ai_settings')
    op.drop_table('ai_settings')
