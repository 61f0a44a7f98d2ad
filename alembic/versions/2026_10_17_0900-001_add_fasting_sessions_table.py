"""Add fasting_sessions table

Revision ID: 001
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
import sqlmodel
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

OPEN_STATES_SQL = "state IN ('notStarted', 'active', 'paused')"


def upgrade() -> None:
    """Create fasting_sessions table."""
    op.create_table('fasting_sessions', sa.Column('id', sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column('user_id', sqlmodel.sql.sqltypes.AutoString(length=128), nullable=False),
        sa.Column('state', sqlmodel.sql.sqltypes.AutoString(length=20), nullable=False),
        sa.Column('end_reason', sqlmodel.sql.sqltypes.AutoString(length=20), nullable=True),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_duration_seconds', sa.Float(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('document', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.PrimaryKeyConstraint('id'))
    op.create_index(op.f('ix_fasting_sessions_user_id'), 'fasting_sessions', ['user_id'], unique=False)
    op.create_index('ix_fasting_sessions_user_state', 'fasting_sessions', ['user_id', 'state'], unique=False)
    op.create_index('ix_fasting_sessions_user_ended_at', 'fasting_sessions', ['user_id', 'ended_at'], unique=False)
    op.create_index('ix_fasting_sessions_user_duration', 'fasting_sessions',
                    ['user_id', 'end_reason', 'actual_duration_seconds'], unique=False)
    # At most one open session per user
    op.create_index('ux_fasting_sessions_user_open', 'fasting_sessions', ['user_id'], unique=True,
                    postgresql_where=sa.text(OPEN_STATES_SQL), sqlite_where=sa.text(OPEN_STATES_SQL))


def downgrade() -> None:
    """Drop fasting_sessions table."""
    op.drop_index('ux_fasting_sessions_user_open', table_name='fasting_sessions')
    op.drop_index('ix_fasting_sessions_user_duration', table_name='fasting_sessions')
    op.drop_index('ix_fasting_sessions_user_ended_at', table_name='fasting_sessions')
    op.drop_index('ix_fasting_sessions_user_state', table_name='fasting_sessions')
    op.drop_index(op.f('ix_fasting_sessions_user_id'), table_name='fasting_sessions')
    op.drop_table('fasting_sessions')
